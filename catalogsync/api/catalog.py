"""Storefront catalog endpoints.

Read-only views over the public catalog: listing, search, featured
entries and per-category statistics.
"""

from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from catalogsync.api.dependencies import get_reader
from catalogsync.api.schemas import (
    CatalogEntrySchema,
    CatalogListResponse,
    CategoryStatsResponse,
    CategoryStatsSchema,
    ErrorResponse,
    SearchHitSchema,
    SearchResponse,
    entry_to_schema,
)
from catalogsync.catalog.reader import CatalogFilters, CatalogReader, SortOption
from catalogsync.domain.exceptions import CatalogEntryNotFoundError

router = APIRouter(prefix="/catalog", tags=["Catalog"])


# ============================================================================
# Dependencies
# ============================================================================


def get_filters(
    category: str | None = None,
    featured: bool | None = None,
    trending: bool | None = None,
    in_stock: bool | None = None,
    min_price: Annotated[Decimal | None, Query(ge=0)] = None,
    max_price: Annotated[Decimal | None, Query(ge=0)] = None,
    sort: SortOption = SortOption.RELEVANCE,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
) -> CatalogFilters:
    """Build catalog filters from query parameters."""
    return CatalogFilters(
        category=category,
        featured=featured,
        trending=trending,
        in_stock=in_stock,
        min_price=min_price,
        max_price=max_price,
        sort=sort,
        page=page,
        page_size=page_size,
    )


# ============================================================================
# Endpoints
# ============================================================================


@router.get(
    "/products",
    response_model=CatalogListResponse,
    summary="List catalog products",
)
async def list_products(
    filters: Annotated[CatalogFilters, Depends(get_filters)],
    reader: Annotated[CatalogReader, Depends(get_reader)],
) -> CatalogListResponse:
    """List public catalog entries with filters, sorting and pagination."""
    page = await reader.browse(filters)
    return CatalogListResponse(
        items=[entry_to_schema(entry) for entry in page.entries],
        total=page.total,
        page=page.page,
        page_size=page.page_size,
        has_more=page.has_more,
        total_pages=page.total_pages,
        fallback=page.fallback,
        cached=page.cached,
    )


@router.get(
    "/products/{entry_id}",
    response_model=CatalogEntrySchema,
    responses={404: {"model": ErrorResponse}},
    summary="Get catalog product",
)
async def get_product(
    entry_id: str,
    reader: Annotated[CatalogReader, Depends(get_reader)],
) -> CatalogEntrySchema:
    """Get one public catalog entry.

    Raises:
        HTTPException: If the entry does not exist or is not public.
    """
    try:
        entry = await reader.get_entry(entry_id)
    except CatalogEntryNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error_code": "ENTRY_NOT_FOUND", "message": e.message},
        ) from e
    return entry_to_schema(entry)


@router.get(
    "/search",
    response_model=SearchResponse,
    summary="Search catalog",
)
async def search_products(
    q: Annotated[str, Query(max_length=200)],
    filters: Annotated[CatalogFilters, Depends(get_filters)],
    reader: Annotated[CatalogReader, Depends(get_reader)],
) -> SearchResponse:
    """Score public entries against a free-text query."""
    result = await reader.search(q, filters)
    return SearchResponse(
        query=result.query,
        results=[
            SearchHitSchema(entry=entry_to_schema(hit.entry), score=hit.score)
            for hit in result.results
        ],
        total=result.total,
        suggestions=result.suggestions,
        fallback=result.fallback,
    )


@router.get(
    "/featured",
    response_model=list[CatalogEntrySchema],
    summary="Featured products",
)
async def featured_products(
    reader: Annotated[CatalogReader, Depends(get_reader)],
    limit: Annotated[int, Query(ge=1, le=50)] = 8,
) -> list[CatalogEntrySchema]:
    entries = await reader.featured(limit)
    return [entry_to_schema(entry) for entry in entries]


@router.get(
    "/stats",
    response_model=CategoryStatsResponse,
    summary="Category statistics",
)
async def category_stats(
    reader: Annotated[CatalogReader, Depends(get_reader)],
) -> CategoryStatsResponse:
    """Count and average price of public entries per category."""
    stats = await reader.category_stats()
    return CategoryStatsResponse(
        categories={
            name: CategoryStatsSchema(
                count=int(bucket["count"]),
                in_stock=int(bucket["in_stock"]),
                average_price=bucket["average_price"],
            )
            for name, bucket in stats.items()
        }
    )
