# tests/conftest.py

import operator
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Set

import pytest

from src.core.document_store import DocumentStore, FieldFilter
from src.utils.error_handling import IndexUnavailableError, StoreAccessError

_OPS = {
    '==': operator.eq,
    '!=': operator.ne,
    '<': operator.lt,
    '<=': operator.le,
    '>': operator.gt,
    '>=': operator.ge,
}


class FakeReference:
    def __init__(self, collection: str, doc_id: str) -> None:
        self.collection = collection
        self.id = doc_id

    def __eq__(self, other: object) -> bool:
        return isinstance(other, FakeReference) and (self.collection, self.id) == (other.collection, other.id)

    def __hash__(self) -> int:
        return hash((self.collection, self.id))

    def __repr__(self) -> str:
        return f"FakeReference({self.collection}/{self.id})"


class FakeSnapshot:
    def __init__(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self.id = doc_id
        self.reference = FakeReference(collection, doc_id)
        self._data = data

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._data)


def _filter_matches(data: Dict[str, Any], field_filter: FieldFilter) -> bool:
    value = data.get(field_filter.field)
    if value is None:
        return False
    if field_filter.operator == 'contains':
        return isinstance(value, list) and field_filter.value in value
    if type(value) is not type(field_filter.value) and not (
        isinstance(value, (int, float)) and isinstance(field_filter.value, (int, float))
    ):
        return field_filter.operator == '!='
    return _OPS[field_filter.operator](value, field_filter.value)


class FakeDocumentStore(DocumentStore):
    """In-memory store with optional missing-index and failure simulation.

    Range filters on a single field are always served; with
    composite_indexes=False a query filtering on more than one field raises
    IndexUnavailableError, like a store without the composite index.
    """

    def __init__(self,
                 documents: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None,
                 composite_indexes: bool = True,
                 failing_collections: Optional[Dict[str, Exception]] = None,
                 failing_commits: Optional[Set[int]] = None,
                 commit_errors: Optional[Dict[int, BaseException]] = None,
                 max_batch_size: int = 500) -> None:
        self.documents = documents or {}
        self.composite_indexes = composite_indexes
        self.failing_collections = failing_collections or {}
        self.failing_commits = failing_commits or set()
        self.commit_errors = commit_errors or {}
        self.max_batch_size = max_batch_size
        self.queries: List[Dict[str, Any]] = []
        self.commits: List[List[FakeReference]] = []

    async def query(self, collection: str, filters: Sequence[FieldFilter], limit: int = 0):
        self.queries.append({'collection': collection, 'filters': list(filters), 'limit': limit})
        if collection in self.failing_collections:
            raise self.failing_collections[collection]
        if not self.composite_indexes and len({f.field for f in filters}) > 1:
            raise IndexUnavailableError("The query requires an index. You can create it here: https://example.test/index")

        docs = self.documents.get(collection, {})
        snapshots = [
            FakeSnapshot(collection, doc_id, data)
            for doc_id, data in docs.items()
            if all(_filter_matches(data, f) for f in filters)
        ]
        snapshots.sort(key=lambda s: (s.to_dict().get('createdAt'), s.id))
        if limit > 0:
            snapshots = snapshots[:limit]
        return snapshots

    async def commit_delete_batch(self, references):
        commit_index = len(self.commits)
        self.commits.append(list(references))
        if len(references) > self.max_batch_size:
            raise ValueError("batch too large")
        if commit_index in self.failing_commits:
            raise StoreAccessError(f"commit {commit_index} failed")
        if commit_index in self.commit_errors:
            raise self.commit_errors[commit_index]
        for reference in references:
            self.documents.get(reference.collection, {}).pop(reference.id, None)


def ts(day: int, month: int = 1, year: int = 2025, hour: int = 12) -> datetime:
    return datetime(year, month, day, hour, tzinfo=timezone.utc)


@pytest.fixture
def crm_documents():
    """Scenario A data: three email notes and two manual notes in January 2025,
    plus one email note outside the range."""
    return {
        'notes': {
            'n1': {'createdAt': ts(3), 'source': 'email', 'subject': 'Renewal'},
            'n2': {'createdAt': ts(10), 'source': 'email', 'subject': 'Pricing'},
            'n3': {'createdAt': ts(20), 'source': 'email'},
            'n4': {'createdAt': ts(5), 'source': 'manual', 'name': 'Call notes'},
            'n5': {'createdAt': ts(25), 'source': 'manual'},
            'n6': {'createdAt': ts(2, month=2), 'source': 'email'},
        },
    }


@pytest.fixture
def fake_store(crm_documents):
    return FakeDocumentStore(crm_documents)


@pytest.fixture
def make_store():
    return FakeDocumentStore
