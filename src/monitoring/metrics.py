# src/monitoring/metrics.py
"""
Prometheus metrics for maintenance runs

Each run gets its own CollectorRegistry so repeated runs in one process
(tests, the interactive console) do not collide on metric names. The
registry can be written to a node-exporter textfile after the run.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, write_to_textfile

if TYPE_CHECKING:
    from src.core.batch_mutator import BatchResult


class MaintenanceMetrics:
    """Counters and gauges describing one maintenance run"""

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        self.registry = registry or CollectorRegistry()
        self.logger = logging.getLogger(__name__)

        self.documents_matched = Counter(
            "crm_maintenance_documents_matched_total",
            "Documents matched by maintenance queries.",
            ["collection"],
            registry=self.registry,
        )
        self.documents_deleted = Counter(
            "crm_maintenance_documents_deleted_total",
            "Documents deleted in committed batches.",
            ["collection"],
            registry=self.registry,
        )
        self.failed_chunks = Counter(
            "crm_maintenance_failed_chunks_total",
            "Delete batches that failed to commit.",
            ["collection"],
            registry=self.registry,
        )
        self.degraded_queries = Counter(
            "crm_maintenance_degraded_queries_total",
            "Queries answered by range-only fetch plus in-memory filtering.",
            ["collection"],
            registry=self.registry,
        )
        self.collection_errors = Counter(
            "crm_maintenance_collection_errors_total",
            "Collections whose query or delete step raised an error.",
            ["collection"],
            registry=self.registry,
        )
        self.run_duration = Gauge(
            "crm_maintenance_run_duration_seconds",
            "Duration of the most recent maintenance run in seconds.",
            registry=self.registry,
        )
        self.last_run_timestamp = Gauge(
            "crm_maintenance_last_run_timestamp_seconds",
            "Unix time the most recent maintenance run finished.",
            registry=self.registry,
        )

    def record_matches(self, collection: str, count: int, degraded: bool) -> None:
        self.documents_matched.labels(collection=collection).inc(count)
        if degraded:
            self.degraded_queries.labels(collection=collection).inc()

    def record_deletion(self, collection: str, result: 'BatchResult') -> None:
        self.documents_deleted.labels(collection=collection).inc(result.succeeded)
        if result.failed_chunks:
            self.failed_chunks.labels(collection=collection).inc(result.failed_chunks)

    def record_error(self, collection: str) -> None:
        self.collection_errors.labels(collection=collection).inc()

    def record_run(self, duration_seconds: float) -> None:
        self.run_duration.set(duration_seconds)
        self.last_run_timestamp.set(datetime.now(timezone.utc).timestamp())

    def sample(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        """Current value of a sample, 0.0 if it was never recorded"""
        value = self.registry.get_sample_value(name, labels or {})
        return value if value is not None else 0.0

    def write_textfile(self, path: str) -> None:
        """Write the registry in the textfile-collector format"""
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        write_to_textfile(path, self.registry)
        self.logger.info(f"Wrote run metrics to {path}")
