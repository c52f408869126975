# backend/bookati/api/dependencies/tenant.py
"""
Tenant scoping dependencies.

Authentication is handled outside this service; the gateway forwards the
resolved tenant in ``X-Tenant-ID`` and every query is scoped by it.
"""

from typing import Optional

from fastapi import Header, HTTPException, status


def get_tenant_id(x_tenant_id: Optional[str] = Header(None, alias="X-Tenant-ID")) -> str:
    if not x_tenant_id or not x_tenant_id.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": "X-Tenant-ID header is required",
                "code": "TENANT_REQUIRED",
                "details": {},
            },
        )
    return x_tenant_id.strip()


def get_optional_tenant_id(
    x_tenant_id: Optional[str] = Header(None, alias="X-Tenant-ID"),
) -> Optional[str]:
    """Tenant for operational endpoints that may also run across all tenants."""
    if x_tenant_id and x_tenant_id.strip():
        return x_tenant_id.strip()
    return None
