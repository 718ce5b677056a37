"""Catalog sync service main application module.

This module builds the FastAPI application, wires the stores, the sync
orchestrator and the catalog reader in the lifespan, and installs the
consistent error handlers.
"""

from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from catalogsync.api.catalog import router as catalog_router
from catalogsync.api.health import router as health_router
from catalogsync.api.middleware import setup_middleware
from catalogsync.api.sync import router as sync_router
from catalogsync.application.image_queue import ImageGenerator
from catalogsync.application.orchestrator import ProductSyncOrchestrator
from catalogsync.catalog.fallback import DEMO_PRODUCTS, build_fallback_entries
from catalogsync.catalog.reader import CatalogReader
from catalogsync.catalog.repository import CatalogStore, InternalProductStore, SyncLogStore
from catalogsync.catalog.transformer import CatalogTransformer
from catalogsync.domain.exceptions import (
    CatalogEntryNotFoundError,
    ConfigurationError,
    OrchestratorStateError,
    ProductNotFoundError,
    StoreError,
    SyncError,
    TransientStoreError,
)
from catalogsync.infrastructure.config import Settings, settings
from catalogsync.infrastructure.database import create_engine, create_session_factory, create_tables
from catalogsync.infrastructure.image_client import HttpImageGenerator, PlaceholderImageGenerator
from catalogsync.infrastructure.logging_config import configure_logging
from catalogsync.infrastructure.memory import (
    InMemoryCatalogStore,
    InMemoryInternalProductStore,
    InMemorySyncLogStore,
)
from catalogsync.infrastructure.sql_store import (
    SqlCatalogStore,
    SqlInternalProductStore,
    SqlSyncLogStore,
)

logger = structlog.get_logger()


# ============================================================================
# Composition Root
# ============================================================================


@dataclass
class Stores:
    internal: InternalProductStore
    catalog: CatalogStore
    logs: SyncLogStore


async def build_stores(app_settings: Settings, stack: AsyncExitStack) -> Stores:
    """Create the configured store backend, seeding demo products if enabled.

    Args:
        app_settings: Application settings.
        stack: Exit stack that owns backend resources.

    Returns:
        Stores for the internal products, the public catalog and the sync log.
    """
    if app_settings.store_backend == "sql":
        engine = create_engine(app_settings.database_url, echo=app_settings.debug)
        stack.push_async_callback(engine.dispose)
        await create_tables(engine)
        session_factory = create_session_factory(engine)
        internal = SqlInternalProductStore(session_factory, app_settings.poll_interval_seconds)
        if app_settings.seed_demo_products and not await internal.list_all():
            for product in DEMO_PRODUCTS:
                await internal.put(product)
        return Stores(
            internal=internal,
            catalog=SqlCatalogStore(session_factory),
            logs=SqlSyncLogStore(session_factory),
        )

    seed = list(DEMO_PRODUCTS) if app_settings.seed_demo_products else []
    return Stores(
        internal=InMemoryInternalProductStore(seed),
        catalog=InMemoryCatalogStore(),
        logs=InMemorySyncLogStore(),
    )


def build_image_generator(app_settings: Settings, stack: AsyncExitStack) -> ImageGenerator:
    if not app_settings.image_service_url:
        logger.info("No image service configured, using placeholder images")
        return PlaceholderImageGenerator()
    generator = HttpImageGenerator(
        app_settings.image_service_url, timeout=app_settings.image_timeout_seconds
    )
    stack.push_async_callback(generator.close)
    return generator


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        app_settings: Settings to use; the module-level settings when omitted.

    Returns:
        Configured FastAPI application.
    """
    app_settings = app_settings or settings

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Handle application startup and shutdown events.

        Args:
            app: The FastAPI application instance.

        Yields:
            None after startup, cleanup happens after yield.
        """
        configure_logging(app_settings.log_level, json_output=app_settings.log_json)
        logger.info(
            "Starting catalog sync service",
            version=app_settings.api_version,
            store_backend=app_settings.store_backend,
        )

        async with AsyncExitStack() as stack:
            transformer = CatalogTransformer(
                app_settings.pricing_policy(), app_settings.catalog_policy()
            )
            policy = app_settings.sync_policy()
            stores = await build_stores(app_settings, stack)

            orchestrator = ProductSyncOrchestrator(
                internal_store=stores.internal,
                catalog_store=stores.catalog,
                log_store=stores.logs,
                transformer=transformer,
                image_generator=build_image_generator(app_settings, stack),
                policy=policy,
            )
            app.state.reader = CatalogReader(
                stores.catalog,
                cache_ttl_seconds=app_settings.catalog_cache_ttl_seconds,
                cache_max_entries=app_settings.catalog_cache_max_entries,
                fallback_entries=build_fallback_entries(transformer),
            )
            app.state.orchestrator = orchestrator

            report = await orchestrator.start()
            stack.push_async_callback(orchestrator.stop)
            logger.info(
                "Initial reconciliation complete",
                created=report.created,
                updated=report.updated,
                errors=report.errors,
            )

            yield

            logger.info("Shutting down catalog sync service")

    app = FastAPI(
        title="HiggsFlow Catalog Sync",
        description="Internal product to public catalog synchronisation",
        version=app_settings.api_version,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_middleware(app)

    app.include_router(health_router, tags=["Health"])
    app.include_router(sync_router)
    app.include_router(catalog_router)

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(SyncError, sync_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
    return app


# ============================================================================
# Custom Exception Handlers
# ============================================================================


_SYNC_ERROR_STATUS: list[tuple[type[SyncError], int, str]] = [
    (CatalogEntryNotFoundError, 404, "ENTRY_NOT_FOUND"),
    (ProductNotFoundError, 404, "PRODUCT_NOT_FOUND"),
    (OrchestratorStateError, 409, "SYNC_STATE_CONFLICT"),
    (TransientStoreError, 503, "STORE_UNAVAILABLE"),
    (StoreError, 502, "STORE_ERROR"),
    (ConfigurationError, 500, "CONFIGURATION_ERROR"),
]


def _error_body(request: Request, error_code: str, message: str, details: Any) -> Any:
    return jsonable_encoder({
        "error_code": error_code,
        "message": message,
        "details": details,
        "request_id": getattr(request.state, "request_id", None),
    })


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTP exceptions with consistent format."""
    detail = exc.detail
    if isinstance(detail, dict):
        error_code = detail.get("error_code", "ERROR")
        message = detail.get("message", str(detail))
        details = detail.get("details", [])
    else:
        error_code = "ERROR"
        message = str(detail)
        details = []

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, error_code, message, details),
    )


async def sync_exception_handler(request: Request, exc: SyncError) -> JSONResponse:
    """Map domain errors that escape a handler onto HTTP statuses."""
    status_code, error_code = 500, "SYNC_ERROR"
    for error_type, mapped_status, mapped_code in _SYNC_ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code, error_code = mapped_status, mapped_code
            break

    logger.warning(
        "Domain error in handler",
        path=request.url.path,
        error_code=error_code,
        error=exc.message,
    )
    return JSONResponse(
        status_code=status_code,
        content=_error_body(request, error_code, exc.message, exc.details),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions with consistent format."""
    logger.exception(
        "Unhandled exception in handler",
        path=request.url.path,
        method=request.method,
        error=str(exc),
    )
    return JSONResponse(
        status_code=500,
        content=_error_body(request, "INTERNAL_ERROR", "An internal error occurred", []),
    )


app = create_app()
