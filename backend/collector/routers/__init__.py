"""API routers."""
from .collector import router as collector_router
from .hosts import router as hosts_router
from .status import router as status_router

__all__ = ["collector_router", "hosts_router", "status_router"]
