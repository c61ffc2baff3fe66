# src/utils/__init__.py

"""
Utility modules for the CRM maintenance engine.

Error taxonomy shared by the engine and CLI, and correlation IDs that tie
together the log lines of a single maintenance run.
"""

from .error_handling import (
    DateRangeError,
    ErrorHandler,
    IndexUnavailableError,
    MaintenanceError,
    ParseError,
    PartialBatchFailure,
    StoreAccessError
)
from .tracing import (
    CorrelationIdFilter,
    clear_correlation_id,
    new_run_id,
    set_correlation_id
)

__all__ = [
    'DateRangeError',
    'ErrorHandler',
    'IndexUnavailableError',
    'MaintenanceError',
    'ParseError',
    'PartialBatchFailure',
    'StoreAccessError',
    'CorrelationIdFilter',
    'clear_correlation_id',
    'new_run_id',
    'set_correlation_id'
]
