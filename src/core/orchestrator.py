# src/core/orchestrator.py
"""Runs query -> preview -> confirmation -> delete across collections."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from src.core.batch_mutator import BatchMutator, BatchResult
from src.core.conditions import Condition, DateRange
from src.core.confirmation_gate import ConfirmationGate, GateState
from src.core.document_store import DocumentStore
from src.core.fallback_executor import FallbackExecutor, MatchSet
from src.core.query_planner import DEFAULT_LIMIT, DEFAULT_TIMESTAMP_FIELD, plan_query
from src.core.result_reporter import DEFAULT_PREVIEW_SIZE, MatchReport, summarize_matches
from src.monitoring.metrics import MaintenanceMetrics
from src.utils.error_handling import ErrorHandler, ParseError
from src.utils.tracing import clear_correlation_id, new_run_id

CANONICAL_COLLECTIONS = ('notes', 'opportunities', 'accounts', 'inboundEmails')
COLLECTION_ALIASES = {'emails': 'inboundEmails'}
ALL_COLLECTIONS = 'all'


def resolve_collections(selector: Union[str, Iterable[str]],
                        canonical: Sequence[str] = CANONICAL_COLLECTIONS,
                        aliases: Optional[Mapping[str, str]] = None) -> List[str]:
    """
    Resolve a collection selector to canonical collection names

    Args:
        selector: 'all', a comma-separated string, or a list of names
        canonical: Recognized collection names, in 'all' order
        aliases: Short names mapped to canonical names

    Returns:
        De-duplicated names in first-seen order

    Raises:
        ParseError: Empty selector or unknown collection
    """
    aliases = COLLECTION_ALIASES if aliases is None else aliases
    names = selector.split(',') if isinstance(selector, str) else list(selector)
    names = [name.strip() for name in names if name and name.strip()]
    if not names:
        raise ParseError("At least one collection is required")

    if any(name.lower() == ALL_COLLECTIONS for name in names):
        return list(canonical)

    resolved: List[str] = []
    for name in names:
        name = aliases.get(name, name)
        if name not in resolved:
            resolved.append(name)

    invalid = [name for name in resolved if name not in canonical]
    if invalid:
        valid = ', '.join(list(canonical) + sorted(aliases))
        raise ParseError(f"Invalid collection(s): {', '.join(invalid)}. Valid collections: {valid}")
    return resolved


@dataclass
class RunSummary:
    """Per-collection outcomes of one maintenance run"""
    collections: List[str]
    dry_run: bool = False
    run_id: str = ''
    results: Dict[str, BatchResult] = field(default_factory=dict)
    reports: Dict[str, MatchReport] = field(default_factory=dict)
    errors: Dict[str, str] = field(default_factory=dict)
    decision: Optional[GateState] = None

    @property
    def total(self) -> BatchResult:
        return sum(self.results.values(), BatchResult())

    @property
    def total_matched(self) -> int:
        return sum(report.count for report in self.reports.values())

    @property
    def failed(self) -> bool:
        return bool(self.errors) or self.total.failed_chunks > 0

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0


class MaintenanceOrchestrator:
    """Multi-collection maintenance run.

    Every collection is queried and previewed first, then one confirmation
    covers the whole run, then collections are deleted one at a time. An
    error in one collection is recorded against it and never stops the
    others.
    """

    def __init__(self,
                 store: DocumentStore,
                 gate: ConfirmationGate,
                 chunk_size: Optional[int] = None,
                 preview_size: int = DEFAULT_PREVIEW_SIZE,
                 timestamp_field: str = DEFAULT_TIMESTAMP_FIELD,
                 metrics: Optional[MaintenanceMetrics] = None,
                 error_handler: Optional[ErrorHandler] = None,
                 on_preview: Optional[Callable[[RunSummary], None]] = None) -> None:
        self.store = store
        self.gate = gate
        self.executor = FallbackExecutor(store)
        self.mutator = BatchMutator(store, chunk_size)
        self.preview_size = preview_size
        self.timestamp_field = timestamp_field
        self.metrics = metrics or MaintenanceMetrics()
        self.error_handler = error_handler or ErrorHandler()
        self.on_preview = on_preview
        self.logger = logging.getLogger(__name__)

    async def preview(self,
                      collections: Sequence[str],
                      date_range: DateRange,
                      condition: Optional[Condition] = None,
                      limit: int = DEFAULT_LIMIT) -> RunSummary:
        """Query and report every collection without touching the gate"""
        summary = RunSummary(collections=list(collections), dry_run=True, run_id=new_run_id())
        try:
            await self._query_collections(summary, date_range, condition, limit)
        finally:
            clear_correlation_id()
        return summary

    async def run(self,
                  collections: Sequence[str],
                  date_range: DateRange,
                  condition: Optional[Condition] = None,
                  limit: int = DEFAULT_LIMIT) -> RunSummary:
        """
        Run the full pipeline

        Args:
            collections: Resolved collection names
            date_range: Shared range on the timestamp field
            condition: Optional shared extra condition
            limit: Per-collection result limit; 0 for unlimited

        Returns:
            RunSummary; check exit_code for partial failure
        """
        started = time.monotonic()
        summary = RunSummary(
            collections=list(collections),
            dry_run=self.gate.dry_run,
            run_id=new_run_id(),
        )
        try:
            self.logger.info(
                f"Starting maintenance run over {', '.join(collections)} "
                f"({'dry run' if self.gate.dry_run else 'live'})"
            )

            match_sets = await self._query_collections(summary, date_range, condition, limit)
            if self.on_preview is not None:
                self.on_preview(summary)

            deletable = {name: match_set for name, match_set in match_sets.items() if len(match_set)}
            total = sum(len(match_set) for match_set in deletable.values())
            summary.decision = await self.gate.evaluate(total, list(deletable))

            if summary.decision is GateState.PROCEED:
                for name, match_set in deletable.items():
                    summary.results[name] = await self._delete_collection(summary, name, match_set)

            self.metrics.record_run(time.monotonic() - started)
            self.logger.info(
                f"Run finished: matched={summary.total_matched} "
                f"deleted={summary.total.succeeded} errored={len(summary.errors)}"
            )
        finally:
            clear_correlation_id()
        return summary

    async def _query_collections(self,
                                 summary: RunSummary,
                                 date_range: DateRange,
                                 condition: Optional[Condition],
                                 limit: int) -> Dict[str, MatchSet]:
        if limit < 0:
            raise ParseError(f"Limit must be zero (unlimited) or positive, got {limit}")

        match_sets: Dict[str, MatchSet] = {}
        for name in summary.collections:
            summary.results[name] = BatchResult()
            self.logger.info(
                f"Querying {name}: {date_range.start.isoformat()} to {date_range.end.isoformat()}"
                + (f", {condition.describe()}" if condition else "")
            )
            try:
                plan = plan_query(name, date_range, condition, limit, self.timestamp_field)
                match_set = await self.executor.execute(plan)
            except Exception as e:
                summary.errors[name] = self.error_handler.handle_error(e, name)
                summary.reports[name] = MatchReport(collection=name, count=0)
                self.metrics.record_error(name)
                continue

            summary.reports[name] = summarize_matches(
                match_set,
                preview_size=self.preview_size,
                filter_field=condition.field if condition else None,
                timestamp_field=self.timestamp_field,
            )
            match_sets[name] = match_set
            self.metrics.record_matches(name, len(match_set), match_set.degraded)
            self.logger.info(f"Found {len(match_set)} document(s) in {name}")

        return match_sets

    async def _delete_collection(self,
                                 summary: RunSummary,
                                 name: str,
                                 match_set: MatchSet) -> BatchResult:
        try:
            result = await self.mutator.delete(name, match_set.references)
        except Exception as e:
            summary.errors[name] = self.error_handler.handle_error(e, name)
            self.metrics.record_error(name)
            return BatchResult(attempted=len(match_set))

        self.metrics.record_deletion(name, result)
        if result.failed_chunks:
            summary.errors.setdefault(
                name,
                f"{result.failed_chunks} delete batch(es) failed; "
                f"{result.failed} document(s) may remain",
            )
        return result
