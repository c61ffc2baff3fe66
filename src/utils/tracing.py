# src/utils/tracing.py
"""
Correlation IDs for maintenance runs

Every log line emitted while a run is in progress carries the run's
correlation ID, so the query, confirmation and delete phases of one
invocation can be picked out of shared logs. Uses contextvars so the ID
follows the run across await boundaries.
"""

import contextvars
import logging
import uuid

_correlation_id: contextvars.ContextVar[str] = contextvars.ContextVar(
    'correlation_id',
    default=''
)


def set_correlation_id(cid: str) -> None:
    """Set the correlation ID for the current context"""
    _correlation_id.set(cid)


def clear_correlation_id() -> None:
    """Clear the correlation ID once a run is over"""
    _correlation_id.set('')


def new_run_id() -> str:
    """Start a fresh correlation ID for a maintenance run and return it"""
    cid = str(uuid.uuid4())
    set_correlation_id(cid)
    return cid


class CorrelationIdFilter(logging.Filter):
    """Logging filter that stamps records with the current correlation ID.

    Attach to handlers so format strings can reference %(correlation_id)s.
    Records logged outside a run get '-' instead of minting a new ID.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, 'correlation_id', None):
            record.correlation_id = _correlation_id.get() or '-'
        return True
