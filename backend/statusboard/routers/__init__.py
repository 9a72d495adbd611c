"""API routers."""

from statusboard.routers.health import router as health_router
from statusboard.routers.status import router as status_router
from statusboard.routers.withdrawals import router as withdrawals_router

__all__ = ["health_router", "status_router", "withdrawals_router"]
