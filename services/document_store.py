"""Document store handles (SQL-backed and in-memory) with optimistic versioning."""

from __future__ import annotations

import random
import threading
import time
import uuid
from abc import ABC, abstractmethod
from copy import deepcopy
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from sqlalchemy import select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.errors import StoreUnavailable
from core.logging import get_logger
from models.document import StoredDocument

logger = get_logger(__name__)

DEFAULT_MAX_RETRIES = 25
_BACKOFF_BASE_SECONDS = 0.002
_BACKOFF_CAP_SECONDS = 0.05

Filters = Mapping[str, Any]
Mutator = Callable[[Dict[str, Any]], Dict[str, Any]]


@dataclass(frozen=True)
class VersionedDocument:
    doc_id: str
    data: Mapping[str, Any]
    version: int


class DocumentMissingError(LookupError):
    """Raised by ``update_with`` when the target document does not exist."""

    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"{collection}/{doc_id} does not exist")
        self.collection = collection
        self.doc_id = doc_id


def _matches(data: Mapping[str, Any], filters: Optional[Filters]) -> bool:
    if not filters:
        return True
    for key, expected in filters.items():
        actual = data.get(key)
        if isinstance(expected, (list, tuple, set, frozenset)):
            if actual not in expected:
                return False
        elif actual != expected:
            return False
    return True


def _backoff(attempt: int) -> None:
    delay = min(_BACKOFF_CAP_SECONDS, _BACKOFF_BASE_SECONDS * (2 ** min(attempt, 5)))
    time.sleep(random.uniform(0, delay))


class DocumentStore(ABC):
    """Minimal get/create/set/compare-and-set/query interface over JSON documents.

    Every write bumps the document ``version``. ``compare_and_set`` only succeeds
    when the caller saw the latest version, which is what the read-modify-write
    helpers below build on.
    """

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[VersionedDocument]:
        """Return the document or ``None`` when absent."""

    @abstractmethod
    def create(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> Tuple[VersionedDocument, bool]:
        """Insert the document unless it exists; returns ``(document, created)``."""

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> VersionedDocument:
        """Unconditionally replace (or insert) the document."""

    @abstractmethod
    def compare_and_set(
        self,
        collection: str,
        doc_id: str,
        data: Mapping[str, Any],
        *,
        expected_version: int,
    ) -> bool:
        """Replace the document only if its version still equals ``expected_version``."""

    @abstractmethod
    def query(self, collection: str, filters: Optional[Filters] = None) -> List[VersionedDocument]:
        """Return documents whose top-level fields equal (or are contained in) ``filters``."""

    def ping(self) -> bool:
        return True

    def add(self, collection: str, data: Mapping[str, Any]) -> VersionedDocument:
        """Insert ``data`` under a freshly generated id."""
        doc_id = uuid.uuid4().hex
        document, _ = self.create(collection, doc_id, data)
        return document

    def update_with(
        self,
        collection: str,
        doc_id: str,
        mutate: Mutator,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> VersionedDocument:
        """Optimistic read-modify-write: re-read and retry whenever another writer won the race."""

        for attempt in range(max_retries):
            current = self.get(collection, doc_id)
            if current is None:
                raise DocumentMissingError(collection, doc_id)
            updated = mutate(deepcopy(dict(current.data)))
            if self.compare_and_set(collection, doc_id, updated, expected_version=current.version):
                return VersionedDocument(doc_id=doc_id, data=updated, version=current.version + 1)
            logger.debug("Version conflict on %s/%s (attempt %d).", collection, doc_id, attempt + 1)
            _backoff(attempt)
        logger.warning("Gave up updating %s/%s after %d conflicting attempts.", collection, doc_id, max_retries)
        raise StoreUnavailable(
            "Too many concurrent updates. Please retry shortly.",
            code="store.contention",
        )

    def update(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> VersionedDocument:
        """Shallow-merge ``fields`` into an existing document."""

        def _merge(data: Dict[str, Any]) -> Dict[str, Any]:
            data.update(deepcopy(dict(fields)))
            return data

        return self.update_with(collection, doc_id, _merge)


class MemoryDocumentStore(DocumentStore):
    """Thread-safe in-process store used by tests and local development."""

    def __init__(self) -> None:
        self._documents: Dict[Tuple[str, str], Tuple[Dict[str, Any], int]] = {}
        self._lock = threading.Lock()

    def get(self, collection: str, doc_id: str) -> Optional[VersionedDocument]:
        with self._lock:
            entry = self._documents.get((collection, doc_id))
            if entry is None:
                return None
            data, version = entry
            return VersionedDocument(doc_id=doc_id, data=deepcopy(data), version=version)

    def create(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> Tuple[VersionedDocument, bool]:
        with self._lock:
            existing = self._documents.get((collection, doc_id))
            if existing is not None:
                return VersionedDocument(doc_id=doc_id, data=deepcopy(existing[0]), version=existing[1]), False
            stored = deepcopy(dict(data))
            self._documents[(collection, doc_id)] = (stored, 1)
            return VersionedDocument(doc_id=doc_id, data=deepcopy(stored), version=1), True

    def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> VersionedDocument:
        with self._lock:
            existing = self._documents.get((collection, doc_id))
            version = existing[1] + 1 if existing else 1
            stored = deepcopy(dict(data))
            self._documents[(collection, doc_id)] = (stored, version)
            return VersionedDocument(doc_id=doc_id, data=deepcopy(stored), version=version)

    def compare_and_set(
        self,
        collection: str,
        doc_id: str,
        data: Mapping[str, Any],
        *,
        expected_version: int,
    ) -> bool:
        with self._lock:
            existing = self._documents.get((collection, doc_id))
            if existing is None or existing[1] != expected_version:
                return False
            self._documents[(collection, doc_id)] = (deepcopy(dict(data)), expected_version + 1)
            return True

    def query(self, collection: str, filters: Optional[Filters] = None) -> List[VersionedDocument]:
        with self._lock:
            items = [
                VersionedDocument(doc_id=doc_id, data=deepcopy(data), version=version)
                for (name, doc_id), (data, version) in self._documents.items()
                if name == collection and _matches(data, filters)
            ]
        return sorted(items, key=lambda item: item.doc_id)


class SqlDocumentStore(DocumentStore):
    """SQLAlchemy-backed store over the ``documents`` table."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def _unavailable(self, operation: str, exc: Exception) -> StoreUnavailable:
        logger.exception("Document store %s failed: %s", operation, exc)
        return StoreUnavailable(
            "The account store is unavailable. Please retry shortly.",
            code="store.unavailable",
        )

    def ping(self) -> bool:
        session = self._session_factory()
        try:
            session.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as exc:
            logger.warning("Document store ping failed: %s", exc)
            return False
        finally:
            session.close()

    def get(self, collection: str, doc_id: str) -> Optional[VersionedDocument]:
        session = self._session_factory()
        try:
            row = session.get(StoredDocument, (collection, doc_id))
            if row is None:
                return None
            return VersionedDocument(doc_id=row.doc_id, data=deepcopy(row.body or {}), version=int(row.version))
        except SQLAlchemyError as exc:
            raise self._unavailable("get", exc) from exc
        finally:
            session.close()

    def create(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> Tuple[VersionedDocument, bool]:
        session = self._session_factory()
        try:
            session.add(StoredDocument(collection=collection, doc_id=doc_id, body=deepcopy(dict(data)), version=1))
            session.commit()
            return VersionedDocument(doc_id=doc_id, data=deepcopy(dict(data)), version=1), True
        except IntegrityError:
            session.rollback()
        except SQLAlchemyError as exc:
            session.rollback()
            raise self._unavailable("create", exc) from exc
        finally:
            session.close()

        existing = self.get(collection, doc_id)
        if existing is None:  # pragma: no cover - deleted between insert and read
            raise StoreUnavailable("Failed to create the document.", code="store.unavailable")
        return existing, False

    def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> VersionedDocument:
        payload = deepcopy(dict(data))
        session = self._session_factory()
        try:
            row = session.get(StoredDocument, (collection, doc_id))
            if row is None:
                row = StoredDocument(collection=collection, doc_id=doc_id, body=payload, version=1)
                session.add(row)
            else:
                row.body = payload
                row.version = int(row.version) + 1
                row.updated_at = datetime.now(timezone.utc)
            session.commit()
            return VersionedDocument(doc_id=doc_id, data=deepcopy(payload), version=int(row.version))
        except SQLAlchemyError as exc:
            session.rollback()
            raise self._unavailable("set", exc) from exc
        finally:
            session.close()

    def compare_and_set(
        self,
        collection: str,
        doc_id: str,
        data: Mapping[str, Any],
        *,
        expected_version: int,
    ) -> bool:
        session = self._session_factory()
        try:
            result = session.execute(
                update(StoredDocument)
                .where(
                    StoredDocument.collection == collection,
                    StoredDocument.doc_id == doc_id,
                    StoredDocument.version == expected_version,
                )
                .values(
                    body=deepcopy(dict(data)),
                    version=expected_version + 1,
                    updated_at=datetime.now(timezone.utc),
                )
            )
            session.commit()
            return result.rowcount == 1
        except SQLAlchemyError as exc:
            session.rollback()
            raise self._unavailable("compare_and_set", exc) from exc
        finally:
            session.close()

    def query(self, collection: str, filters: Optional[Filters] = None) -> List[VersionedDocument]:
        # JSON field filtering differs per dialect; collections here are small enough to filter in Python.
        session = self._session_factory()
        try:
            rows = session.execute(
                select(StoredDocument)
                .where(StoredDocument.collection == collection)
                .order_by(StoredDocument.doc_id)
            ).scalars().all()
        except SQLAlchemyError as exc:
            raise self._unavailable("query", exc) from exc
        finally:
            session.close()
        return [
            VersionedDocument(doc_id=row.doc_id, data=deepcopy(row.body or {}), version=int(row.version))
            for row in rows
            if _matches(row.body or {}, filters)
        ]


__all__ = [
    "DEFAULT_MAX_RETRIES",
    "DocumentMissingError",
    "DocumentStore",
    "MemoryDocumentStore",
    "SqlDocumentStore",
    "VersionedDocument",
]
