"""
API v1 routes package.
Read-only query routes over the local health store.
"""

from .metric_routes import router as metric_router
from .sleep_routes import router as sleep_router
from .ecg_routes import router as ecg_router
from .sync_routes import router as sync_router

__all__ = [
    "metric_router",
    "sleep_router",
    "ecg_router",
    "sync_router",
]
