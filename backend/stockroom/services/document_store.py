# Overview: Entity store boundary; CRUD + subscribe over flat documents with a push change feed.

"""
Entity Store

The core consumes durable state only through `EntityStore`:

    create(collection, record) -> id
    update(collection, id, patch)
    delete(collection, id)
    get(collection, id) -> dict | None
    list_documents(collection) -> {id: dict}
    subscribe(collection, on_change) -> unsubscribe

GUARANTEES (and non-guarantees):
- Every write is a single-document write. There are no multi-document
  transactions; callers needing cross-document consistency must use
  idempotency markers on the documents themselves.
- Every change carries the document revision it produced. Batches for one
  document can reach subscribers out of write order when writers race, so
  subscribers drop any change whose revision is not newer than the one they
  hold. Nothing is promised across collections.
- subscribe() delivers a full resync batch first; resync() re-delivers a full
  batch (feed reconnection). A resync REPLACES the subscriber's view of that
  collection.
- Transport/database failures surface as StoreWriteError / StoreReadError.

SqlDocumentStore is the in-process implementation backed by the `documents`
table. Other processes sharing the database see writes on their next resync.
"""

from __future__ import annotations

import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Document
from .concurrency import run_with_retry


CATEGORIES = "categories"
PRODUCTS = "products"
SUPPLIERS = "suppliers"
ORDERS = "orders"

COLLECTIONS = (CATEGORIES, PRODUCTS, SUPPLIERS, ORDERS)


class StoreError(Exception):
    """Base class for entity store failures."""


class StoreReadError(StoreError):
    """Raised when a read against the store fails (transient, retryable)."""


class StoreWriteError(StoreError):
    """Raised when a write against the store fails (transient, retryable)."""


class DocumentNotFoundError(StoreWriteError):
    """Raised when updating a document that does not exist."""
    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"{collection}/{doc_id} not found")
        self.collection = collection
        self.doc_id = doc_id


@dataclass(frozen=True)
class DocumentChange:
    kind: str  # "added" | "modified" | "removed"
    doc_id: str
    data: dict | None = None
    # Document revision after the write; 0 when unknown
    revision: int = 0


@dataclass(frozen=True)
class ChangeBatch:
    collection: str
    changes: tuple[DocumentChange, ...] = ()
    resync: bool = False
    # Full collection contents when resync=True
    documents: tuple[tuple[str, dict], ...] = ()
    # Revision of each document in `documents`
    revisions: tuple[tuple[str, int], ...] = ()


ChangeListener = Callable[[ChangeBatch], None]


def new_document_id() -> str:
    return uuid.uuid4().hex[:20]


class EntityStore(ABC):
    """CRUD + subscribe primitives consumed by the inventory core."""

    @abstractmethod
    def create(self, collection: str, record: dict) -> str:
        ...

    @abstractmethod
    def update(self, collection: str, doc_id: str, patch: dict) -> None:
        ...

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        ...

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> dict | None:
        ...

    @abstractmethod
    def list_documents(self, collection: str) -> dict[str, dict]:
        ...

    @abstractmethod
    def subscribe(self, collection: str, on_change: ChangeListener) -> Callable[[], None]:
        ...


class SqlDocumentStore(EntityStore):
    """
    Document store over the `documents` table with an in-process change feed.

    Must be used inside a Flask application context.
    """

    def __init__(self, *, commit_attempts: int = 3, backoff_base: float = 0.05):
        self.commit_attempts = commit_attempts
        self.backoff_base = backoff_base
        self._subscribers: dict[str, list[ChangeListener]] = {}
        # Re-entrant: a listener may write (e.g. seeding) while a batch is being delivered
        self._lock = threading.RLock()

    # -- writes --

    def create(self, collection: str, record: dict) -> str:
        body = {k: v for k, v in (record or {}).items() if k != "id"}
        doc_id = new_document_id()

        def _op():
            row = Document(collection=collection, doc_id=doc_id, body=body, revision=1)
            db.session.add(row)
            db.session.commit()
            return row

        row = self._write(_op, f"create {collection}")
        self._publish(ChangeBatch(
            collection=collection,
            changes=(DocumentChange("added", doc_id, dict(row.body), row.revision),),
        ))
        return doc_id

    def update(self, collection: str, doc_id: str, patch: dict) -> None:
        def _op():
            row = self._find(collection, doc_id)
            if row is None:
                raise DocumentNotFoundError(collection, doc_id)
            body = dict(row.body or {})
            body.update({k: v for k, v in patch.items() if k != "id"})
            # Reassign so the JSON column is flagged dirty
            row.body = body
            row.revision = (row.revision or 0) + 1
            db.session.commit()
            return row

        row = self._write(_op, f"update {collection}/{doc_id}")
        self._publish(ChangeBatch(
            collection=collection,
            changes=(DocumentChange("modified", doc_id, dict(row.body), row.revision),),
        ))

    def delete(self, collection: str, doc_id: str) -> None:
        def _op():
            row = self._find(collection, doc_id)
            if row is None:
                return None
            revision = (row.revision or 0) + 1
            db.session.delete(row)
            db.session.commit()
            return revision

        revision = self._write(_op, f"delete {collection}/{doc_id}")
        if revision is not None:
            self._publish(ChangeBatch(
                collection=collection,
                changes=(DocumentChange("removed", doc_id, revision=revision),),
            ))

    # -- reads --

    def get(self, collection: str, doc_id: str) -> dict | None:
        try:
            row = self._find(collection, doc_id)
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreReadError(f"Failed to read {collection}/{doc_id}") from exc
        if row is None:
            return None
        return dict(row.body or {})

    def list_documents(self, collection: str) -> dict[str, dict]:
        return {row.doc_id: dict(row.body or {}) for row in self._rows(collection)}

    # -- change feed --

    def subscribe(self, collection: str, on_change: ChangeListener) -> Callable[[], None]:
        with self._lock:
            batch = self._snapshot(collection)
            self._subscribers.setdefault(collection, []).append(on_change)
            self._deliver(on_change, batch)

        def unsubscribe() -> None:
            with self._lock:
                listeners = self._subscribers.get(collection, [])
                if on_change in listeners:
                    listeners.remove(on_change)

        return unsubscribe

    def resync(self, collection: str) -> None:
        """Re-deliver the full collection to every subscriber (feed reconnect)."""
        with self._lock:
            batch = self._snapshot(collection)
            for listener in list(self._subscribers.get(collection, [])):
                self._deliver(listener, batch)

    def subscriber_count(self, collection: str) -> int:
        with self._lock:
            return len(self._subscribers.get(collection, []))

    # -- internals --

    def _rows(self, collection: str) -> list[Document]:
        try:
            return (
                db.session.query(Document)
                .filter(Document.collection == collection)
                .populate_existing()
                .order_by(Document.id.asc())
                .all()
            )
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreReadError(f"Failed to read {collection}") from exc

    def _find(self, collection: str, doc_id: str) -> Document | None:
        return (
            db.session.query(Document)
            .filter(Document.collection == collection, Document.doc_id == doc_id)
            # Another session may have written since this one cached the row
            .populate_existing()
            .first()
        )

    def _write(self, op, description: str):
        try:
            return run_with_retry(op, attempts=self.commit_attempts, backoff_base=self.backoff_base)
        except DocumentNotFoundError:
            db.session.rollback()
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StoreWriteError(f"Failed to {description}") from exc

    def _snapshot(self, collection: str) -> ChangeBatch:
        rows = self._rows(collection)
        return ChangeBatch(
            collection=collection,
            resync=True,
            documents=tuple((row.doc_id, dict(row.body or {})) for row in rows),
            revisions=tuple((row.doc_id, row.revision or 0) for row in rows),
        )

    def _publish(self, batch: ChangeBatch) -> None:
        with self._lock:
            for listener in list(self._subscribers.get(batch.collection, [])):
                self._deliver(listener, batch)

    def _deliver(self, listener: ChangeListener, batch: ChangeBatch) -> None:
        try:
            listener(batch)
        except Exception:
            # The write already committed; a failing listener must not fail the writer
            current_app.logger.exception("Change feed listener failed for %s", batch.collection)
