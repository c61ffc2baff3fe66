# src/core/document_store.py
"""Document store boundary and its Firestore implementation."""

import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Mapping, NamedTuple, Optional, Protocol, Sequence

from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter as FirestoreFieldFilter
from google.oauth2 import service_account

from src.utils.error_handling import IndexUnavailableError, StoreAccessError

# Firestore rejects write batches with more than 500 operations.
FIRESTORE_MAX_BATCH_SIZE = 500
DEFAULT_KEY_PATH = Path('scripts') / 'serviceAccountKey.json'

logger = logging.getLogger(__name__)


class FieldFilter(NamedTuple):
    """Store-neutral single-field filter"""
    field: str
    operator: str
    value: Any


class DocumentSnapshot(Protocol):
    """The parts of a fetched document the engine relies on"""

    @property
    def id(self) -> str: ...

    @property
    def reference(self) -> Any: ...

    def to_dict(self) -> Optional[Dict[str, Any]]: ...


def lookup_field(document: Optional[Mapping[str, Any]], path: str) -> Any:
    """Resolve a dotted field path; None when any segment is missing"""
    node: Any = document
    for part in path.split('.'):
        if not isinstance(node, Mapping) or part not in node:
            return None
        node = node[part]
    return node


class DocumentStore(ABC):
    """Collection-oriented store with compound queries and atomic delete batches.

    Implementations raise IndexUnavailableError when a filter combination
    needs a composite index that does not exist, and StoreAccessError for
    every other store-side failure.
    """

    max_batch_size: int = FIRESTORE_MAX_BATCH_SIZE

    @abstractmethod
    async def query(self,
                    collection: str,
                    filters: Sequence[FieldFilter],
                    limit: int = 0) -> List[DocumentSnapshot]:
        """Fetch documents matching all filters; limit 0 means unbounded"""

    @abstractmethod
    async def commit_delete_batch(self, references: Sequence[Any]) -> None:
        """Delete the referenced documents in one atomic batch"""


class FirestoreDocumentStore(DocumentStore):
    """DocumentStore backed by google-cloud-firestore's AsyncClient"""

    OPERATOR_MAP = {'contains': 'array_contains'}

    def __init__(self, client: firestore.AsyncClient) -> None:
        self.client = client
        self.logger = logging.getLogger(__name__)

    async def query(self,
                    collection: str,
                    filters: Sequence[FieldFilter],
                    limit: int = 0) -> List[DocumentSnapshot]:
        query = self.client.collection(collection)
        for field_filter in filters:
            query = query.where(filter=FirestoreFieldFilter(
                field_filter.field,
                self.OPERATOR_MAP.get(field_filter.operator, field_filter.operator),
                field_filter.value,
            ))
        if limit > 0:
            query = query.limit(limit)

        try:
            return list(await query.get())
        except google_exceptions.FailedPrecondition as e:
            if 'index' in str(e).lower():
                raise IndexUnavailableError(str(e)) from e
            raise StoreAccessError(f"Query on {collection} failed: {e}") from e
        except (google_exceptions.GoogleAPICallError,
                google_exceptions.RetryError,
                auth_exceptions.GoogleAuthError) as e:
            raise StoreAccessError(f"Query on {collection} failed: {e}") from e

    async def commit_delete_batch(self, references: Sequence[Any]) -> None:
        if len(references) > self.max_batch_size:
            raise ValueError(
                f"Batch of {len(references)} exceeds the store limit of {self.max_batch_size}"
            )

        batch = self.client.batch()
        for reference in references:
            batch.delete(reference)

        try:
            await batch.commit()
        except (google_exceptions.GoogleAPICallError,
                google_exceptions.RetryError,
                auth_exceptions.GoogleAuthError) as e:
            raise StoreAccessError(f"Delete batch commit failed: {e}") from e


def create_firestore_client(project_id: Optional[str] = None,
                            credentials_path: Optional[str] = None,
                            database: Optional[str] = None) -> firestore.AsyncClient:
    """
    Create a Firestore AsyncClient

    Credentials are looked up in order: explicit key path,
    GOOGLE_APPLICATION_CREDENTIALS, scripts/serviceAccountKey.json, then
    application default credentials.

    Raises:
        StoreAccessError: If the key file is missing or no credentials resolve
    """
    key_path = credentials_path or os.environ.get('GOOGLE_APPLICATION_CREDENTIALS')
    if not key_path and DEFAULT_KEY_PATH.exists():
        key_path = str(DEFAULT_KEY_PATH)

    kwargs: Dict[str, Any] = {}
    if project_id:
        kwargs['project'] = project_id
    if database:
        kwargs['database'] = database

    try:
        if key_path:
            if not os.path.exists(key_path):
                raise StoreAccessError(f"Service account key not found: {key_path}")
            credentials = service_account.Credentials.from_service_account_file(key_path)
            kwargs.setdefault('project', credentials.project_id)
            kwargs['credentials'] = credentials
            logger.info("Firestore client initialized with service account key")
        else:
            logger.info("No service account key found; using application default credentials")
        return firestore.AsyncClient(**kwargs)
    except (auth_exceptions.GoogleAuthError, ValueError) as e:
        logger.critical(f"Failed to initialize Firestore client: {str(e)}")
        raise StoreAccessError(f"Failed to initialize Firestore client: {e}") from e
