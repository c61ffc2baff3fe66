# src/utils/error_handling.py
"""Error taxonomy and per-collection error bookkeeping for maintenance runs."""

import logging
import traceback
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional


class MaintenanceError(Exception):
    """Base class for maintenance engine errors"""

    pass


class ParseError(MaintenanceError):
    """Malformed predicate, date, or collection selector.

    Raised before any store access; the operator must fix the input.
    """

    pass


class DateRangeError(ParseError):
    """Date range whose start is after its end"""

    pass


class IndexUnavailableError(MaintenanceError):
    """The store has no composite index for the requested filter combination"""

    pass


class StoreAccessError(MaintenanceError):
    """Permission, network, or quota failure talking to the document store"""

    pass


class PartialBatchFailure(MaintenanceError):
    """A delete batch failed to commit.

    Recorded on the collection's BatchResult rather than raised, so later
    chunks still run.
    """

    def __init__(
        self, collection: str, chunk_index: int, size: int, cause: Exception
    ) -> None:
        self.collection = collection
        self.chunk_index = chunk_index
        self.size = size
        self.cause = cause
        super().__init__(
            f"Delete batch {chunk_index} ({size} document(s)) in "
            f"{collection} failed: {cause}"
        )


@dataclass
class ErrorRecord:
    """One error observed during a run"""

    context: str
    error_type: str
    message: str
    timestamp: datetime


class ErrorHandler:
    """Tracks and logs errors per context (usually a collection name)."""

    INDEX_HINT = (
        "You may need to create a composite index for this query; "
        "the store's error message contains the index creation link."
    )

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self.error_counts: Dict[str, int] = {}
        self.records: List[ErrorRecord] = []

    def handle_error(self, error: Exception, context: str) -> str:
        """
        Record an error and return the operator-facing message for it

        Args:
            error: Exception that occurred
            context: Where it occurred (collection name, command)

        Returns:
            Message suitable for the run summary
        """
        self._track_error(context, error)
        self._log_error(error, context)
        return self.describe(error)

    def describe(self, error: Exception) -> str:
        """Render an error for operators, adding a hint for index problems"""
        message = str(error) or type(error).__name__
        if isinstance(error, IndexUnavailableError):
            return f"{message} ({self.INDEX_HINT})"
        return message

    def _track_error(self, context: str, error: Exception) -> None:
        current_time = datetime.now(timezone.utc)

        if context not in self.error_counts:
            self.error_counts[context] = 0

        self.error_counts[context] += 1
        self.records.append(
            ErrorRecord(
                context=context,
                error_type=type(error).__name__,
                message=str(error),
                timestamp=current_time,
            )
        )

    def _log_error(self, error: Exception, context: str) -> None:
        self.logger.error(f"{context}: {type(error).__name__}: {error!s}")
        if not self.logger.isEnabledFor(logging.DEBUG):
            return

        log_data = {
            "error_type": type(error).__name__,
            "error_message": str(error),
            "context": context,
            "stack_trace": "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ),
        }
        self.logger.debug(f"Error details: {log_data}")

    @property
    def has_errors(self) -> bool:
        return bool(self.records)
