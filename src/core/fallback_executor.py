# src/core/fallback_executor.py

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Mapping, NamedTuple, Optional

from src.core.conditions import Condition, as_utc
from src.core.document_store import DocumentSnapshot, DocumentStore, lookup_field
from src.core.query_planner import QueryPlan
from src.utils.error_handling import IndexUnavailableError


class Match(NamedTuple):
    """A fetched document and the reference used to delete it"""
    reference: Any
    snapshot: DocumentSnapshot


@dataclass
class MatchSet:
    """Ordered query results for one collection.

    `degraded` is True when the extra condition was applied in memory
    because the store lacked a composite index.
    """
    collection: str
    matches: List[Match] = field(default_factory=list)
    degraded: bool = False

    def __len__(self) -> int:
        return len(self.matches)

    @property
    def references(self) -> List[Any]:
        return [match.reference for match in self.matches]


def _type_class(value: Any) -> Optional[str]:
    # Store ordering only compares values of the same class.
    if isinstance(value, bool):
        return 'boolean'
    if isinstance(value, (int, float)):
        return 'number'
    if isinstance(value, str):
        return 'string'
    if isinstance(value, datetime):
        return 'timestamp'
    return None


def _compare(field_value: Any, operator: str, target: Any) -> bool:
    if _type_class(field_value) is None or _type_class(field_value) != _type_class(target):
        # Mismatched types: only '!=' can match, and only with a present value.
        return operator == '!='

    if isinstance(field_value, datetime):
        field_value, target = as_utc(field_value), as_utc(target)

    if operator == '==':
        return field_value == target
    if operator == '!=':
        return field_value != target
    if operator == '<':
        return field_value < target
    if operator == '<=':
        return field_value <= target
    if operator == '>':
        return field_value > target
    if operator == '>=':
        return field_value >= target
    return False


def matches_condition(document: Optional[Mapping[str, Any]], condition: Condition) -> bool:
    """
    Evaluate a condition the way the store would

    Missing and null fields never match, including for '!='. 'contains'
    is array membership.
    """
    field_value = lookup_field(document, condition.field)
    if field_value is None:
        return False

    if condition.operator == 'contains':
        if not isinstance(field_value, list):
            return False
        return any(_compare(item, '==', condition.value) for item in field_value)

    return _compare(field_value, condition.operator, condition.value)


class FallbackExecutor:
    """Runs a QueryPlan, degrading to range-only + in-memory filtering when
    the compound query needs a missing index."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store
        self.logger = logging.getLogger(__name__)

    async def execute(self, plan: QueryPlan) -> MatchSet:
        """
        Execute a plan

        Only IndexUnavailableError is handled here, and only once; every
        other error propagates to the caller unchanged.

        Args:
            plan: QueryPlan to execute

        Returns:
            MatchSet bounded by plan.limit
        """
        try:
            snapshots = await self.store.query(plan.collection, plan.filters(), plan.limit)
            return self._to_match_set(plan.collection, snapshots, degraded=False)
        except IndexUnavailableError:
            if plan.extra is None:
                raise
            self.logger.warning(
                f"Query on {plan.collection} requires a composite index; "
                f"falling back to in-memory filtering on {plan.extra.field}"
            )

        snapshots = await self.store.query(plan.collection, plan.range_filters(), 0)
        filtered = [
            snapshot for snapshot in snapshots
            if matches_condition(snapshot.to_dict(), plan.extra)
        ]
        if plan.limit > 0:
            filtered = filtered[:plan.limit]

        self.logger.info(
            f"In-memory filter kept {len(filtered)} of {len(snapshots)} "
            f"document(s) in {plan.collection}"
        )
        return self._to_match_set(plan.collection, filtered, degraded=True)

    @staticmethod
    def _to_match_set(collection: str,
                      snapshots: List[DocumentSnapshot],
                      degraded: bool) -> MatchSet:
        return MatchSet(
            collection=collection,
            matches=[Match(snapshot.reference, snapshot) for snapshot in snapshots],
            degraded=degraded,
        )
