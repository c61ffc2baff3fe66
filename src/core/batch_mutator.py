# src/core/batch_mutator.py

import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from src.core.document_store import DocumentStore
from src.utils.error_handling import PartialBatchFailure


@dataclass
class BatchResult:
    """Outcome of deleting one collection's matches"""
    attempted: int = 0
    succeeded: int = 0
    failed_chunks: int = 0
    failures: List[PartialBatchFailure] = field(default_factory=list)

    @property
    def failed(self) -> int:
        """Documents in chunks that did not commit"""
        return self.attempted - self.succeeded

    def __add__(self, other: 'BatchResult') -> 'BatchResult':
        return BatchResult(
            attempted=self.attempted + other.attempted,
            succeeded=self.succeeded + other.succeeded,
            failed_chunks=self.failed_chunks + other.failed_chunks,
            failures=self.failures + other.failures,
        )


def chunk_references(references: Sequence[Any], chunk_size: int) -> List[List[Any]]:
    """Split references into consecutive chunks of at most chunk_size"""
    if chunk_size <= 0:
        raise ValueError(f"Chunk size must be positive, got {chunk_size}")
    return [list(references[i:i + chunk_size]) for i in range(0, len(references), chunk_size)]


class BatchMutator:
    def __init__(self, store: DocumentStore, chunk_size: Optional[int] = None) -> None:
        """
        Initialize batch mutator

        Args:
            store: Document store to delete from
            chunk_size: Documents per atomic batch; defaults to, and may not
                exceed, the store's batch ceiling
        """
        ceiling = store.max_batch_size
        chunk_size = chunk_size or ceiling
        if chunk_size > ceiling:
            raise ValueError(
                f"Chunk size {chunk_size} exceeds the store batch limit of {ceiling}"
            )
        self.store = store
        self.chunk_size = chunk_size
        self.logger = logging.getLogger(__name__)

    async def delete(self, collection: str, references: Sequence[Any]) -> BatchResult:
        """
        Delete references chunk by chunk, strictly one commit at a time

        Any error from a chunk commit is recorded as a PartialBatchFailure
        and the next chunk still runs, so committed chunks are always
        counted. Cancellation is not caught. Failed chunks are not retried:
        whether a commit whose acknowledgment was lost actually applied is
        unknown, so a re-run re-queries instead.

        Returns:
            BatchResult with per-chunk failure records
        """
        result = BatchResult(attempted=len(references))

        for index, chunk in enumerate(chunk_references(references, self.chunk_size)):
            try:
                await self.store.commit_delete_batch(chunk)
            except Exception as e:
                failure = PartialBatchFailure(collection, index, len(chunk), e)
                result.failed_chunks += 1
                result.failures.append(failure)
                self.logger.error(str(failure))
                continue

            result.succeeded += len(chunk)
            self.logger.info(
                f"Deleted {len(chunk)} document(s) from {collection} "
                f"({result.succeeded}/{result.attempted})"
            )

        return result
