"""Grouped structural diff between a candidate and a stored catalog entry.

Entries are compared per semantic group rather than as whole documents,
so timestamp churn, storefront analytics and image patches never cause
spurious writes.
"""

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from catalogsync.domain.base import format_timestamp, utc_now
from catalogsync.domain.models import PublicCatalogEntry, SEOMetadata, SearchPriority


def _affects_imagery(candidate: PublicCatalogEntry, existing: PublicCatalogEntry) -> bool:
    return (
        candidate.category != existing.category
        or candidate.display_name != existing.display_name
        or candidate.specifications != existing.specifications
    )


def _seo_content(seo: SEOMetadata) -> SEOMetadata:
    # search_priority is a derived listing flag, compared in its own group
    return replace(seo, search_priority=SearchPriority.LOW)


@dataclass(frozen=True)
class DiffGroup:
    """One semantic comparison group.

    Attributes:
        name: Group name reported in FieldUpdate.changed_groups.
        fields: Top-level document keys written when the group changed.
        key: Extracts the comparable value from an entry.
    """

    name: str
    fields: tuple[str, ...]
    key: Callable[[PublicCatalogEntry], Any]


DIFF_GROUPS: tuple[DiffGroup, ...] = (
    DiffGroup("pricing", ("pricing",), lambda e: e.pricing),
    DiffGroup("availability", ("availability",), lambda e: e.availability),
    DiffGroup(
        "content",
        ("displayName", "customerDescription"),
        lambda e: (e.display_name, e.customer_description),
    ),
    DiffGroup(
        "classification",
        ("category", "subcategory", "seo", "industryApplications", "productTags"),
        lambda e: (
            e.category,
            e.subcategory,
            _seo_content(e.seo),
            e.industry_applications,
            e.product_tags,
        ),
    ),
    DiffGroup("supplier", ("supplier",), lambda e: e.supplier),
    DiffGroup("specifications", ("specifications",), lambda e: e.specifications),
    DiffGroup(
        "listing",
        ("visibility", "featured", "newProduct", "seo"),
        lambda e: (e.visibility, e.featured, e.new_product, e.seo.search_priority),
    ),
)


@dataclass
class FieldUpdate:
    """Minimal partial update for one catalog entry.

    Attributes:
        changes: Top-level document keys mapped to their new document values.
        changed_groups: Names of the semantic groups that differ.
        changed_fields: Top-level document keys that differ, for the sync log.
        regenerate_images: True if imagery-affecting content changed.
    """

    changes: dict[str, Any] = field(default_factory=dict)
    changed_groups: list[str] = field(default_factory=list)
    changed_fields: list[str] = field(default_factory=list)
    regenerate_images: bool = False

    def to_document(self) -> dict[str, Any]:
        """Get the partial document to merge into the stored entry."""
        return dict(self.changes)


class ChangeDetector:
    """Computes grouped diffs between catalog entries.

    Example usage:
        detector = ChangeDetector()
        update = detector.diff(candidate, existing)
        if update is not None:
            await catalog_store.update(existing.id, update.to_document())
    """

    def __init__(self, groups: tuple[DiffGroup, ...] = DIFF_GROUPS) -> None:
        self.groups = groups

    def diff(
        self,
        candidate: PublicCatalogEntry,
        existing: PublicCatalogEntry,
        now: datetime | None = None,
    ) -> FieldUpdate | None:
        """Diff a freshly transformed candidate against the stored entry.

        Args:
            candidate: Entry produced by the transformer from current product state.
            existing: Entry currently in the catalog store.
            now: Timestamp written as syncedAt/updatedAt.

        Returns:
            FieldUpdate with only the changed fields plus the timestamp bump,
            or None when every group is equal.
        """
        candidate_doc = candidate.to_document()
        changes: dict[str, Any] = {}
        changed_groups: list[str] = []

        for group in self.groups:
            if group.key(candidate) == group.key(existing):
                continue
            changed_groups.append(group.name)
            for name in group.fields:
                changes[name] = candidate_doc[name]

        if not changed_groups:
            return None

        changed_fields = list(changes)
        stamp = format_timestamp(now or utc_now())
        changes["syncedAt"] = stamp
        changes["updatedAt"] = stamp
        changes["version"] = existing.version + 1

        return FieldUpdate(
            changes=changes,
            changed_groups=changed_groups,
            changed_fields=changed_fields,
            regenerate_images=_affects_imagery(candidate, existing),
        )
