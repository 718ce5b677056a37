"""API layer module.

Contains FastAPI routers and request/response schemas.
"""

from catalogsync.api.catalog import router as catalog_router
from catalogsync.api.health import router as health_router
from catalogsync.api.sync import router as sync_router

__all__ = [
    "catalog_router",
    "health_router",
    "sync_router",
]
