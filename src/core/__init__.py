# src/core/__init__.py

from .conditions import Condition, DateRange, build_condition, build_date_range, parse_condition
from .query_planner import QueryPlan, plan_query
from .document_store import DocumentStore, FieldFilter, FirestoreDocumentStore
from .fallback_executor import FallbackExecutor, Match, MatchSet
from .result_reporter import MatchReport, format_report, summarize_matches
from .batch_mutator import BatchMutator, BatchResult
from .confirmation_gate import ConfirmationGate, GateState
from .orchestrator import MaintenanceOrchestrator, RunSummary, resolve_collections

__all__ = [
    'Condition',
    'DateRange',
    'build_condition',
    'build_date_range',
    'parse_condition',
    'QueryPlan',
    'plan_query',
    'DocumentStore',
    'FieldFilter',
    'FirestoreDocumentStore',
    'FallbackExecutor',
    'Match',
    'MatchSet',
    'MatchReport',
    'format_report',
    'summarize_matches',
    'BatchMutator',
    'BatchResult',
    'ConfirmationGate',
    'GateState',
    'MaintenanceOrchestrator',
    'RunSummary',
    'resolve_collections'
]
