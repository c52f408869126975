"""Background tasks for the Bookati capacity core."""
