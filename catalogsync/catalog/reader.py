"""Read-only storefront query facade over the public catalog.

Lists, filters, sorts, paginates and searches public entries. Results are
cached briefly per filter signature, and when the store is unreachable or
empty a fixed fallback catalog is served instead of an error.
"""

import json
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

import structlog

from catalogsync.catalog.fallback import build_fallback_entries
from catalogsync.catalog.repository import CatalogStore
from catalogsync.domain.exceptions import CatalogEntryNotFoundError, SyncError
from catalogsync.domain.models import PublicCatalogEntry, Visibility

logger = structlog.get_logger()

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

MAX_SUGGESTIONS = 8
SEARCH_CANDIDATE_LIMIT = 100


# ============================================================================
# Query Types
# ============================================================================


class SortOption(str, Enum):
    """Supported storefront orderings."""

    RELEVANCE = "relevance"
    PRICE_LOW = "price-low"
    PRICE_HIGH = "price-high"
    NAME = "name"
    RATING = "rating"
    NEWEST = "newest"
    POPULAR = "popular"


@dataclass(frozen=True)
class CatalogFilters:
    """Storefront list filters.

    Attributes:
        category: Exact (case-insensitive) public category name.
        featured: Only featured (True) or non-featured (False) entries.
        trending: Only trending (True) or non-trending (False) entries.
        in_stock: Only entries currently in stock.
        min_price: Lower bound on the discount price.
        max_price: Upper bound on the discount price.
        sort: Ordering of results.
        page: 1-based page number.
        page_size: Entries per page.
    """

    category: str | None = None
    featured: bool | None = None
    trending: bool | None = None
    in_stock: bool | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None
    sort: SortOption = SortOption.RELEVANCE
    page: int = 1
    page_size: int = 20

    def signature(self) -> str:
        """Stable cache key covering every filter except pagination."""
        data = asdict(self)
        data.pop("page")
        data.pop("page_size")
        return json.dumps(data, default=str, sort_keys=True)


@dataclass
class CatalogPage:
    """One page of list results."""

    entries: list[PublicCatalogEntry]
    total: int
    page: int
    page_size: int
    fallback: bool = False
    cached: bool = False

    @property
    def total_pages(self) -> int:
        return max(1, -(-self.total // self.page_size))

    @property
    def has_more(self) -> bool:
        return self.page * self.page_size < self.total


@dataclass
class ScoredEntry:
    entry: PublicCatalogEntry
    score: float


@dataclass
class SearchResult:
    """Ranked search results with query suggestions."""

    query: str
    results: list[ScoredEntry]
    total: int
    suggestions: list[str] = field(default_factory=list)
    fallback: bool = False


# ============================================================================
# Search Scoring
# ============================================================================


@dataclass(frozen=True)
class SearchWeights:
    """Field weights for text search scoring."""

    name: float = 100
    exact_name: float = 50
    category: float = 50
    seo_keywords: float = 40
    description: float = 30
    specifications: float = 30
    supplier: float = 25
    tags: float = 20
    applications: float = 15
    featured_boost: float = 10
    trending_boost: float = 15
    rating_boost: float = 5
    in_stock_boost: float = 5


def score_entry(entry: PublicCatalogEntry, query: str, weights: SearchWeights) -> float:
    """Score one entry against a lower-cased query.

    Quality boosts are only applied to entries that matched on some field,
    so boosts alone never surface an irrelevant entry.

    Args:
        entry: Catalog entry.
        query: Lower-cased, stripped search term.
        weights: Field weights.

    Returns:
        Relevance score; zero means no match.
    """
    score = 0.0
    name = entry.display_name.lower()
    if query in name:
        score += weights.name
        if name == query:
            score += weights.exact_name
    if query in entry.category.lower() or query in entry.subcategory.lower():
        score += weights.category
    if query in entry.customer_description.lower():
        score += weights.description
    if any(query in keyword.lower() for keyword in entry.seo.keywords):
        score += weights.seo_keywords
    if query in entry.supplier.name.lower():
        score += weights.supplier
    if any(
        query in key.lower() or query in value.lower()
        for key, value in entry.specifications.items()
    ):
        score += weights.specifications
    if any(query in tag.lower() for tag in entry.product_tags):
        score += weights.tags
    if any(query in application.lower() for application in entry.industry_applications):
        score += weights.applications

    if score > 0:
        if entry.featured:
            score += weights.featured_boost
        if entry.trending:
            score += weights.trending_boost
        if entry.supplier.rating >= 4.5:
            score += weights.rating_boost
        if entry.availability.in_stock:
            score += weights.in_stock_boost
    return score


# ============================================================================
# Reader
# ============================================================================


class CatalogReader:
    """Storefront query facade. Never writes to the catalog.

    Example usage:
        reader = CatalogReader(catalog_store)
        page = await reader.browse(CatalogFilters(category="Hydraulic Systems"))
        result = await reader.search("bearing")
    """

    def __init__(
        self,
        store: CatalogStore,
        cache_ttl_seconds: float = 300.0,
        fallback_entries: list[PublicCatalogEntry] | None = None,
        weights: SearchWeights | None = None,
        time_source: Callable[[], float] = time.monotonic,
        cache_max_entries: int = 256,
    ) -> None:
        """Initialize reader.

        Args:
            store: Public catalog store.
            cache_ttl_seconds: Lifetime of cached list results.
            fallback_entries: Entries served when the store is down or empty.
            weights: Search field weights.
            time_source: Monotonic seconds, injectable for tests.
            cache_max_entries: Most list results kept; least recently used go first.
        """
        self.store = store
        self.cache_ttl_seconds = cache_ttl_seconds
        self.fallback_entries = (
            fallback_entries if fallback_entries is not None else build_fallback_entries()
        )
        self.weights = weights or SearchWeights()
        self._time = time_source
        self.cache_max_entries = cache_max_entries
        self._cache: OrderedDict[str, tuple[float, list[PublicCatalogEntry]]] = OrderedDict()

    # ========================================================================
    # List
    # ========================================================================

    async def browse(self, filters: CatalogFilters | None = None) -> CatalogPage:
        """List public entries matching filters, sorted and paginated.

        Args:
            filters: Query filters; defaults to the first relevance page.

        Returns:
            CatalogPage. ``fallback`` is set when the fallback catalog was used.
        """
        filters = filters or CatalogFilters()
        key = filters.signature()
        cached = self._cache_get(key)
        if cached is not None:
            return self._paginate(cached, filters, fallback=False, cached=True)

        entries, fallback = await self._load_public()
        matched = self._sort(self._apply_filters(entries, filters), filters.sort)
        if not fallback:
            self._cache_put(key, matched)
        return self._paginate(matched, filters, fallback=fallback, cached=False)

    async def get_entry(self, entry_id: str) -> PublicCatalogEntry:
        """Get one public entry by id.

        Raises:
            CatalogEntryNotFoundError: If the entry is missing or not public.
        """
        if entry_id.startswith("fallback-"):
            for entry in self.fallback_entries:
                if entry.id == entry_id:
                    return entry
            raise CatalogEntryNotFoundError(entry_id)

        try:
            entry = await self.store.get(entry_id)
        except SyncError as e:
            logger.warning("Catalog store unavailable for lookup", entry_id=entry_id, error=e.message)
            raise CatalogEntryNotFoundError(entry_id) from e
        if entry is None or not entry.is_public:
            raise CatalogEntryNotFoundError(entry_id)
        return entry

    async def featured(self, limit: int = 8) -> list[PublicCatalogEntry]:
        page = await self.browse(CatalogFilters(featured=True, page_size=limit))
        return page.entries

    async def category_stats(self) -> dict[str, dict[str, float]]:
        """Count public entries and average discount price per category."""
        entries, _ = await self._load_public()
        stats: dict[str, dict[str, float]] = {}
        for entry in entries:
            bucket = stats.setdefault(entry.category, {"count": 0, "in_stock": 0, "total_price": 0.0})
            bucket["count"] += 1
            bucket["in_stock"] += 1 if entry.availability.in_stock else 0
            bucket["total_price"] += float(entry.pricing.discount_price)
        for bucket in stats.values():
            bucket["average_price"] = round(bucket.pop("total_price") / bucket["count"], 2)
        return stats

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def clear_cache(self) -> None:
        self._cache.clear()

    # ========================================================================
    # Search
    # ========================================================================

    async def search(
        self,
        term: str,
        filters: CatalogFilters | None = None,
    ) -> SearchResult:
        """Score public entries against a search term.

        Args:
            term: Free-text query.
            filters: Additional list filters; pagination limits the returned results.

        Returns:
            SearchResult with entries sorted by descending score.
        """
        filters = filters or CatalogFilters()
        limit = filters.page_size
        broad = replace(filters, sort=SortOption.RELEVANCE, page=1, page_size=SEARCH_CANDIDATE_LIMIT)
        page = await self.browse(broad)
        query = term.strip().lower()

        if not query:
            results = [ScoredEntry(entry, 0.0) for entry in page.entries[:limit]]
            return SearchResult(query=query, results=results, total=len(results), fallback=page.fallback)

        scored = [ScoredEntry(entry, score_entry(entry, query, self.weights)) for entry in page.entries]
        matched = sorted((s for s in scored if s.score > 0), key=lambda s: s.score, reverse=True)
        logger.debug("Catalog search", query=query, candidates=len(scored), matched=len(matched))
        return SearchResult(
            query=query,
            results=matched[:limit],
            total=len(matched),
            suggestions=self.suggestions(query, [s.entry for s in matched]),
            fallback=page.fallback,
        )

    @staticmethod
    def suggestions(query: str, ranked: list[PublicCatalogEntry]) -> list[str]:
        """Derive related query terms from ranked results.

        Categories of every result, longer SEO keywords of the top ten and
        supplier names of the top five, skipping anything containing the query.
        """
        suggestions: dict[str, None] = {}
        for entry in ranked:
            if entry.category and query not in entry.category.lower():
                suggestions.setdefault(entry.category)
        for entry in ranked[:10]:
            for keyword in entry.seo.keywords:
                if len(keyword) > 3 and query not in keyword.lower():
                    suggestions.setdefault(keyword)
        for entry in ranked[:5]:
            if entry.supplier.name and query not in entry.supplier.name.lower():
                suggestions.setdefault(entry.supplier.name)
        return list(suggestions)[:MAX_SUGGESTIONS]

    # ========================================================================
    # Internals
    # ========================================================================

    async def _load_public(self) -> tuple[list[PublicCatalogEntry], bool]:
        try:
            entries = await self.store.list_entries(visibility=Visibility.PUBLIC)
        except SyncError as e:
            logger.warning("Catalog store unavailable, serving fallback", error=e.message)
            return list(self.fallback_entries), True
        entries = [entry for entry in entries if entry.is_public]
        if not entries:
            logger.info("Catalog empty, serving fallback")
            return list(self.fallback_entries), True
        return entries, False

    def _cache_get(self, key: str) -> list[PublicCatalogEntry] | None:
        hit = self._cache.get(key)
        if hit is None:
            return None
        expires_at, entries = hit
        if self._time() >= expires_at:
            del self._cache[key]
            return None
        self._cache.move_to_end(key)
        return entries

    def _cache_put(self, key: str, entries: list[PublicCatalogEntry]) -> None:
        now = self._time()
        for stale in [k for k, (expires_at, _) in self._cache.items() if now >= expires_at]:
            del self._cache[stale]
        self._cache[key] = (now + self.cache_ttl_seconds, entries)
        self._cache.move_to_end(key)
        while len(self._cache) > self.cache_max_entries:
            self._cache.popitem(last=False)

    @staticmethod
    def _apply_filters(
        entries: list[PublicCatalogEntry],
        filters: CatalogFilters,
    ) -> list[PublicCatalogEntry]:
        result = []
        category = filters.category.lower() if filters.category else None
        for entry in entries:
            if category is not None and entry.category.lower() != category:
                continue
            if filters.featured is not None and entry.featured != filters.featured:
                continue
            if filters.trending is not None and entry.trending != filters.trending:
                continue
            if filters.in_stock and not entry.availability.in_stock:
                continue
            price = entry.pricing.discount_price
            if filters.min_price is not None and price < filters.min_price:
                continue
            if filters.max_price is not None and price > filters.max_price:
                continue
            result.append(entry)
        return result

    @staticmethod
    def _sort(entries: list[PublicCatalogEntry], sort: SortOption) -> list[PublicCatalogEntry]:
        if sort == SortOption.PRICE_LOW:
            return sorted(entries, key=lambda e: e.pricing.discount_price)
        if sort == SortOption.PRICE_HIGH:
            return sorted(entries, key=lambda e: e.pricing.discount_price, reverse=True)
        if sort == SortOption.NAME:
            return sorted(entries, key=lambda e: e.display_name.lower())
        if sort == SortOption.RATING:
            return sorted(entries, key=lambda e: e.supplier.rating, reverse=True)
        if sort == SortOption.NEWEST:
            return sorted(entries, key=lambda e: e.created_at or _EPOCH, reverse=True)
        if sort == SortOption.POPULAR:
            return sorted(
                entries,
                key=lambda e: (e.analytics.views, e.analytics.clicks),
                reverse=True,
            )
        return sorted(
            entries,
            key=lambda e: (e.featured, e.updated_at or _EPOCH),
            reverse=True,
        )

    @staticmethod
    def _paginate(
        entries: list[PublicCatalogEntry],
        filters: CatalogFilters,
        fallback: bool,
        cached: bool,
    ) -> CatalogPage:
        page = max(filters.page, 1)
        size = max(filters.page_size, 1)
        start = (page - 1) * size
        return CatalogPage(
            entries=entries[start : start + size],
            total=len(entries),
            page=page,
            page_size=size,
            fallback=fallback,
            cached=cached,
        )
