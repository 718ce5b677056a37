"""Sync control endpoints.

Expose the sync health snapshot, the per-product status view and the
on-demand reconciliation and product sync triggers.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from catalogsync.api.dependencies import get_orchestrator
from catalogsync.api.schemas import (
    ErrorResponse,
    ProductSyncStatusListResponse,
    ProductSyncStatusSchema,
    ReconciliationResponse,
    SyncHealthResponse,
    SyncProductsRequest,
    SyncProductsResponse,
    SyncStatsSchema,
)
from catalogsync.application.orchestrator import (
    ImageStatus,
    ProductSyncOrchestrator,
    SyncStatus,
)
from catalogsync.domain.exceptions import OrchestratorStateError

router = APIRouter(prefix="/sync", tags=["Sync"])


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "/health",
    response_model=SyncHealthResponse,
    summary="Sync health",
    description="Counters, queue lengths and catalog coverage.",
)
async def sync_health(
    orchestrator: Annotated[ProductSyncOrchestrator, Depends(get_orchestrator)],
) -> SyncHealthResponse:
    """Snapshot sync health without pausing the pipeline."""
    health = orchestrator.health()
    stats = health.stats
    return SyncHealthResponse(
        state=health.state.value,
        healthy=health.is_healthy,
        stats=SyncStatsSchema(
            total_synced=stats.total_synced,
            success_count=stats.success_count,
            error_count=stats.error_count,
            retry_count=stats.retry_count,
            success_rate=round(stats.success_rate, 4),
            last_sync_time=stats.last_sync_time,
            images_generated=stats.images_generated,
            image_errors=stats.image_errors,
            reconciliation_runs=stats.reconciliation_runs,
            last_reconciliation=stats.last_reconciliation,
        ),
        sync_queue_length=health.sync_queue_length,
        image_queue_length=health.image_queue_length,
        processing_batch=health.processing_batch,
        processing_images=health.processing_images,
        listeners_active=health.listeners_active,
        coverage=await orchestrator.coverage(),
    )


@router.post(
    "/reconcile",
    response_model=ReconciliationResponse,
    responses={409: {"model": ErrorResponse}},
    summary="Run reconciliation",
    description="Compare every internal product with the catalog and repair drift.",
)
async def reconcile(
    orchestrator: Annotated[ProductSyncOrchestrator, Depends(get_orchestrator)],
) -> ReconciliationResponse:
    """Run a reconciliation pass.

    While sync is running, drift is queued for the sync processor rather
    than written directly.

    Raises:
        HTTPException: If the orchestrator is starting or stopping.
    """
    try:
        report = await orchestrator.reconcile()
    except OrchestratorStateError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error_code": "SYNC_STATE_CONFLICT", "message": e.message},
        ) from e
    return ReconciliationResponse(**report.to_dict())


@router.get(
    "/products",
    response_model=ProductSyncStatusListResponse,
    summary="Per-product sync status",
    description="Sync, image and listing status of every internal product.",
)
async def product_statuses(
    orchestrator: Annotated[ProductSyncOrchestrator, Depends(get_orchestrator)],
) -> ProductSyncStatusListResponse:
    """List internal products with their catalog sync status, newest first."""
    statuses = await orchestrator.product_statuses()
    items = [
        ProductSyncStatusSchema(
            product_id=s.product_id,
            name=s.name,
            sku=s.sku,
            sync_status=s.sync_status.value,
            entry_id=s.entry_id,
            entry_count=s.entry_count,
            last_synced_at=s.last_synced_at,
            image_status=s.image_status.value,
            eligible=s.eligible,
            eligibility_reasons=s.eligibility_reasons,
            suggested_price=s.suggested_price,
            sync_pending=s.sync_pending,
        )
        for s in statuses
    ]
    return ProductSyncStatusListResponse(
        items=items,
        total=len(items),
        synced=sum(1 for s in statuses if s.sync_status == SyncStatus.SYNCED),
        eligible=sum(1 for s in statuses if s.eligible),
        needs_images=sum(1 for s in statuses if s.image_status == ImageStatus.NEEDS_GENERATION),
    )


@router.post(
    "/products",
    response_model=SyncProductsResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={409: {"model": ErrorResponse}},
    summary="Queue products for sync",
)
async def sync_products(
    request: SyncProductsRequest,
    orchestrator: Annotated[ProductSyncOrchestrator, Depends(get_orchestrator)],
) -> SyncProductsResponse:
    """Queue products for sync on the next batch tick.

    Raises:
        HTTPException: If sync is not running.
    """
    try:
        queued = orchestrator.request_sync(request.product_ids)
    except OrchestratorStateError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error_code": "SYNC_NOT_RUNNING", "message": e.message},
        ) from e
    return SyncProductsResponse(queued=queued, queue_length=len(orchestrator.sync_queue))
