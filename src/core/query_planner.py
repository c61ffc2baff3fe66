# src/core/query_planner.py

from dataclasses import dataclass
from typing import Any, List, Mapping, Optional

from src.core.conditions import Condition, DateRange
from src.core.document_store import FieldFilter, lookup_field

DEFAULT_TIMESTAMP_FIELD = 'createdAt'
DEFAULT_LIMIT = 1000


@dataclass(frozen=True)
class QueryPlan:
    """What to fetch from one collection. Pure data; executing it is the
    FallbackExecutor's job."""

    collection: str
    range: DateRange
    extra: Optional[Condition] = None
    limit: int = DEFAULT_LIMIT
    timestamp_field: str = DEFAULT_TIMESTAMP_FIELD

    def range_filters(self) -> List[FieldFilter]:
        """Range predicate alone; always served by a single-field index"""
        return [
            FieldFilter(self.timestamp_field, '>=', self.range.start),
            FieldFilter(self.timestamp_field, '<=', self.range.end),
        ]

    def filters(self) -> List[FieldFilter]:
        """Compound filter: range plus the extra condition, if any"""
        filters = self.range_filters()
        if self.extra is not None:
            filters.append(
                FieldFilter(self.extra.field, self.extra.operator, self.extra.value)
            )
        return filters

    def range_matches(self, document: Mapping[str, Any]) -> bool:
        """Evaluate the range predicate against a document's fields"""
        return self.range.contains(lookup_field(document, self.timestamp_field))

    @property
    def unbounded(self) -> bool:
        return self.limit == 0


def plan_query(collection: str,
               date_range: DateRange,
               condition: Optional[Condition] = None,
               limit: int = DEFAULT_LIMIT,
               timestamp_field: str = DEFAULT_TIMESTAMP_FIELD) -> QueryPlan:
    """
    Build the most selective plan for one collection

    Args:
        collection: Target collection name
        date_range: Inclusive range on the timestamp field
        condition: Optional extra predicate, added to the same compound query
        limit: Maximum documents to return; 0 for no limit
        timestamp_field: Indexed timestamp field anchoring every plan

    Returns:
        QueryPlan
    """
    if not collection:
        raise ValueError("Collection name is required")
    if limit < 0:
        raise ValueError(f"Limit must be zero (unlimited) or positive, got {limit}")

    return QueryPlan(
        collection=collection,
        range=date_range,
        extra=condition,
        limit=limit,
        timestamp_field=timestamp_field,
    )
