#!/usr/bin/env python3
# backend/run.py
"""
Development server runner for the Bookati API.
"""
import os

import uvicorn

if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))
    print(f"Starting Bookati API on http://localhost:{port}")
    print(f"API Docs: http://localhost:{port}/docs")

    uvicorn.run("bookati.main:app", host="0.0.0.0", port=port, reload=True, log_level="info")
