"""Request dependencies resolving the objects built by the app lifespan."""

from fastapi import HTTPException, Request, status

from catalogsync.application.orchestrator import ProductSyncOrchestrator
from catalogsync.catalog.reader import CatalogReader


def get_orchestrator(request: Request) -> ProductSyncOrchestrator:
    """Get the sync orchestrator attached to the application."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error_code": "SYNC_UNAVAILABLE",
                "message": "Product sync is not initialised",
            },
        )
    return orchestrator


def get_reader(request: Request) -> CatalogReader:
    """Get the catalog reader attached to the application."""
    reader = getattr(request.app.state, "reader", None)
    if reader is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "error_code": "CATALOG_UNAVAILABLE",
                "message": "Catalog reader is not initialised",
            },
        )
    return reader
