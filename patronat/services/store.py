"""Hierarchical document store backed by SQLAlchemy.

Documents live at slash separated paths (``crews/{crewId}/games/{gameId}``) and
hold a JSON payload. Collections are implicit: a collection exists while at
least one document has it as parent. Filtering and ordering happen in Python,
which is fine for the collection sizes this application deals with.
"""

from __future__ import annotations

import copy
import threading
import uuid
from contextlib import contextmanager
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Iterable, Iterator

from flask import current_app, g
from sqlalchemy import delete as sa_delete, select
from sqlalchemy.exc import DisconnectionError, OperationalError, SQLAlchemyError

from patronat.extensions import db
from patronat.models import Document

MAX_BATCH_OPERATIONS = 500

ASCENDING = 'ASCENDING'
DESCENDING = 'DESCENDING'

_OPERATORS = ('==', '!=', '<', '<=', '>', '>=', 'in', 'not-in', 'array-contains')


class StoreError(Exception):
    """Raised when a store operation fails."""
    pass


class NotFoundError(StoreError):
    """Raised when a document that must exist does not."""
    pass


class PermissionDeniedError(StoreError):
    """Raised when the caller may not perform the operation."""
    pass


class TransientStoreError(StoreError):
    """Raised for failures that may succeed when retried (connection loss, lock timeouts)."""
    pass


class BatchLimitError(StoreError):
    """Raised when a batch exceeds the per-commit operation limit."""
    pass


class _Sentinel:
    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name


SERVER_TIMESTAMP = _Sentinel('SERVER_TIMESTAMP')
DELETE_FIELD = _Sentinel('DELETE_FIELD')
_MISSING = _Sentinel('MISSING')


# ---------------------------------------------------------------------------
# Value encoding
# ---------------------------------------------------------------------------

def _encode(value: Any, now: datetime) -> Any:
    """Turn a Python value into its JSON column representation."""
    if value is SERVER_TIMESTAMP:
        value = now
    if isinstance(value, datetime):
        return {'__datetime__': value.isoformat()}
    if isinstance(value, date):
        return {'__date__': value.isoformat()}
    if isinstance(value, Enum):
        return _encode(value.value, now)
    if isinstance(value, dict):
        return {str(k): _encode(v, now) for k, v in value.items() if v is not DELETE_FIELD}
    if isinstance(value, (list, tuple, set)):
        return [_encode(v, now) for v in value]
    return value


def _decode(value: Any) -> Any:
    if isinstance(value, dict):
        if len(value) == 1 and '__datetime__' in value:
            return datetime.fromisoformat(value['__datetime__'])
        if len(value) == 1 and '__date__' in value:
            return date.fromisoformat(value['__date__'])
        return {k: _decode(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_decode(v) for v in value]
    return value


def _sort_key(value: Any) -> tuple:
    """Total ordering across value types (null < bool < number < time < text < other)."""
    if value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return (3, value.timestamp())
    if isinstance(value, date):
        return (3, datetime(value.year, value.month, value.day, tzinfo=timezone.utc).timestamp())
    if isinstance(value, str):
        return (4, value)
    return (5, str(value))


def get_field(data: dict | None, field_path: str, default: Any = None) -> Any:
    """Read a dotted field path (``modifiedBy.name``) from a document payload."""
    current: Any = data
    for part in field_path.split('.'):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def _set_field(data: dict, field_path: str, value: Any) -> None:
    parts = field_path.split('.')
    target = data
    for part in parts[:-1]:
        child = target.get(part)
        if not isinstance(child, dict):
            child = {}
            target[part] = child
        target = child
    if value is DELETE_FIELD:
        target.pop(parts[-1], None)
    else:
        target[parts[-1]] = value


def _merge(target: dict, source: dict) -> dict:
    for key, value in source.items():
        if value is DELETE_FIELD:
            target.pop(key, None)
        elif isinstance(value, dict) and isinstance(target.get(key), dict):
            _merge(target[key], value)
        else:
            target[key] = value
    return target


def _matches(data: dict, field: str, op: str, expected: Any) -> bool:
    actual = get_field(data, field, _MISSING)
    if actual is _MISSING:
        return False
    if op == '==':
        if isinstance(actual, bool) or isinstance(expected, bool):
            return actual is expected
        return actual == expected
    if op == '!=':
        return actual != expected
    if op == 'in':
        return actual in expected
    if op == 'not-in':
        return actual not in expected
    if op == 'array-contains':
        return isinstance(actual, list) and expected in actual
    left, right = _sort_key(actual), _sort_key(expected)
    if left[0] != right[0]:
        return False
    if op == '<':
        return left < right
    if op == '<=':
        return left <= right
    if op == '>':
        return left > right
    return left >= right


def _translate_error(exc: SQLAlchemyError) -> StoreError:
    if isinstance(exc, (OperationalError, DisconnectionError)):
        return TransientStoreError(str(exc))
    return StoreError(str(exc))


def _parent_path(path: str) -> str:
    return path.rsplit('/', 1)[0]


# ---------------------------------------------------------------------------
# Snapshots and references
# ---------------------------------------------------------------------------

class DocumentSnapshot:
    """Read-only view of a document at the time it was read."""

    def __init__(self, reference: DocumentRef, data: dict | None,
                 create_time: datetime | None = None, update_time: datetime | None = None) -> None:
        self.reference = reference
        self._data = data
        self.create_time = create_time
        self.update_time = update_time

    @property
    def id(self) -> str:
        return self.reference.id

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> dict | None:
        return copy.deepcopy(self._data) if self._data is not None else None

    def get(self, field_path: str, default: Any = None) -> Any:
        return get_field(self._data, field_path, default)

    def __repr__(self) -> str:
        return f"<DocumentSnapshot {self.reference.path} exists={self.exists}>"


class Query:
    """Immutable query over the documents of one collection."""

    def __init__(self, store: DocumentStore, collection_path: str,
                 filters: tuple = (), orders: tuple = (), limit_to: int | None = None) -> None:
        self._store = store
        self._path = collection_path
        self._filters = filters
        self._orders = orders
        self._limit = limit_to

    @property
    def collection_path(self) -> str:
        return self._path

    def _copy(self, **changes) -> Query:
        params = {
            'filters': self._filters,
            'orders': self._orders,
            'limit_to': self._limit,
        }
        params.update(changes)
        return Query(self._store, self._path, **params)

    def with_store(self, store: DocumentStore) -> Query:
        return Query(store, self._path, self._filters, self._orders, self._limit)

    def where(self, field: str, op: str, value: Any) -> Query:
        if op not in _OPERATORS:
            raise ValueError(f"Unsupported operator: {op}")
        return self._copy(filters=self._filters + ((field, op, value),))

    def order_by(self, field: str, direction: str = ASCENDING) -> Query:
        if direction not in (ASCENDING, DESCENDING):
            raise ValueError(f"Unsupported direction: {direction}")
        return self._copy(orders=self._orders + ((field, direction),))

    def limit(self, count: int) -> Query:
        return self._copy(limit_to=count)

    def get(self) -> list[DocumentSnapshot]:
        return list(self.stream())

    def stream(self) -> Iterator[DocumentSnapshot]:
        snapshots = self._store._query(self)
        yield from snapshots

    def _apply(self, snapshots: list[DocumentSnapshot]) -> list[DocumentSnapshot]:
        result = [
            snap for snap in snapshots
            if all(_matches(snap._data, field, op, value) for field, op, value in self._filters)
        ]
        # Ordering on a field excludes documents that lack it
        for field, _ in self._orders:
            result = [snap for snap in result if get_field(snap._data, field, _MISSING) is not _MISSING]
        for field, direction in reversed(self._orders):
            result.sort(key=lambda snap: _sort_key(get_field(snap._data, field)),
                        reverse=direction == DESCENDING)
        if self._limit is not None:
            result = result[:self._limit]
        return result


class CollectionRef(Query):
    """Reference to a (possibly nested) collection."""

    def __init__(self, store: DocumentStore, path: str) -> None:
        if not path or len(path.strip('/').split('/')) % 2 != 1:
            raise ValueError(f"Invalid collection path: {path!r}")
        super().__init__(store, path.strip('/'))

    @property
    def id(self) -> str:
        return self._path.rsplit('/', 1)[-1]

    @property
    def path(self) -> str:
        return self._path

    @property
    def parent(self) -> DocumentRef | None:
        if '/' not in self._path:
            return None
        return DocumentRef(self._store, _parent_path(self._path))

    def document(self, doc_id: str | None = None) -> DocumentRef:
        return DocumentRef(self._store, f"{self._path}/{doc_id or new_document_id()}")

    def add(self, data: dict) -> DocumentRef:
        ref = self.document()
        ref.set(data)
        return ref


class DocumentRef:
    """Reference to a document; reading or writing it hits the database."""

    def __init__(self, store: DocumentStore, path: str) -> None:
        path = path.strip('/')
        if not path or len(path.split('/')) % 2 != 0:
            raise ValueError(f"Invalid document path: {path!r}")
        self._store = store
        self.path = path

    @property
    def id(self) -> str:
        return self.path.rsplit('/', 1)[-1]

    @property
    def parent(self) -> CollectionRef:
        return CollectionRef(self._store, _parent_path(self.path))

    def collection(self, name: str) -> CollectionRef:
        return CollectionRef(self._store, f"{self.path}/{name}")

    def get(self) -> DocumentSnapshot:
        return self._store._read(self)

    def set(self, data: dict, merge: bool = False) -> None:
        self._store._commit([('set', self.path, data, merge)])

    def update(self, fields: dict) -> None:
        self._store._commit([('update', self.path, fields, False)])

    def delete(self) -> None:
        self._store._commit([('delete', self.path, None, False)])

    def __eq__(self, other: object) -> bool:
        return isinstance(other, DocumentRef) and other.path == self.path

    def __hash__(self) -> int:
        return hash(self.path)

    def __repr__(self) -> str:
        return f"<DocumentRef {self.path}>"


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

class _WriteBuffer:
    def __init__(self, store: DocumentStore, max_operations: int = MAX_BATCH_OPERATIONS) -> None:
        self._store = store
        self._max = max_operations
        self._operations: list[tuple] = []
        self.committed = False

    def __len__(self) -> int:
        return len(self._operations)

    def _queue(self, operation: tuple) -> None:
        if self.committed:
            raise StoreError('Write buffer already committed')
        if len(self._operations) >= self._max:
            raise BatchLimitError(f"A batch may contain at most {self._max} operations")
        self._operations.append(operation)

    def set(self, ref: DocumentRef, data: dict, merge: bool = False) -> None:
        self._queue(('set', ref.path, data, merge))

    def update(self, ref: DocumentRef, fields: dict) -> None:
        self._queue(('update', ref.path, fields, False))

    def delete(self, ref: DocumentRef) -> None:
        self._queue(('delete', ref.path, None, False))


class WriteBatch(_WriteBuffer):
    """Group of writes applied atomically on ``commit``."""

    def commit(self) -> int:
        count = len(self._operations)
        if count:
            self._store._commit(self._operations)
        self.committed = True
        return count


class Transaction(_WriteBuffer):
    """Read-then-write unit of work.

    Reads go straight to the database (locking rows where the backend supports
    it) and writes are buffered until the transaction commits.
    """

    def get(self, ref_or_query: DocumentRef | Query):
        if isinstance(ref_or_query, DocumentRef):
            return self._store._read(ref_or_query, for_update=True)
        return self._store._query(ref_or_query, for_update=True)

    def commit(self) -> int:
        count = len(self._operations)
        self._store._commit(self._operations)
        self.committed = True
        return count


# ---------------------------------------------------------------------------
# Listeners
# ---------------------------------------------------------------------------

class _ListenerRegistry:
    """Process wide registry of snapshot listeners keyed by collection path."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[str, list[tuple[Query, Callable]]] = {}

    def add(self, query: Query, callback: Callable[[list[DocumentSnapshot]], None]) -> Callable[[], None]:
        entry = (query, callback)
        with self._lock:
            self._listeners.setdefault(query.collection_path, []).append(entry)

        def unsubscribe() -> None:
            with self._lock:
                entries = self._listeners.get(query.collection_path, [])
                if entry in entries:
                    entries.remove(entry)
                if not entries:
                    self._listeners.pop(query.collection_path, None)

        return unsubscribe

    def count(self, collection_path: str | None = None) -> int:
        with self._lock:
            if collection_path is not None:
                return len(self._listeners.get(collection_path, []))
            return sum(len(entries) for entries in self._listeners.values())

    def notify(self, store: DocumentStore, collections: Iterable[str]) -> None:
        with self._lock:
            pending = [entry for path in collections for entry in self._listeners.get(path, [])]
        for query, callback in pending:
            try:
                callback(query.with_store(store).get())
            except Exception as e:
                current_app.logger.error(f"Snapshot listener on {query.collection_path} failed: {e}")


listeners = _ListenerRegistry()


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

def new_document_id() -> str:
    return uuid.uuid4().hex[:20]


class DocumentStore:
    """Entry point of the document store bound to a SQLAlchemy session."""

    def __init__(self, session=None) -> None:
        self.session = session if session is not None else db.session

    def collection(self, path: str) -> CollectionRef:
        return CollectionRef(self, path)

    def document(self, path: str) -> DocumentRef:
        return DocumentRef(self, path)

    def batch(self, max_operations: int = MAX_BATCH_OPERATIONS) -> WriteBatch:
        return WriteBatch(self, max_operations)

    @contextmanager
    def transaction(self, max_operations: int = MAX_BATCH_OPERATIONS) -> Iterator[Transaction]:
        tx = Transaction(self, max_operations)
        try:
            yield tx
        except Exception:
            self.session.rollback()
            raise
        if not tx.committed:
            tx.commit()

    def on_snapshot(self, query: Query, callback: Callable[[list[DocumentSnapshot]], None]) -> Callable[[], None]:
        """Call ``callback`` with the query results now and after every write to its collection.

        Returns the function that removes the listener.
        """
        unsubscribe = listeners.add(query, callback)
        callback(query.get())
        return unsubscribe

    def recursive_delete(self, ref: DocumentRef) -> int:
        """Delete a document together with every nested subcollection document."""
        prefix = f"{ref.path}/"
        try:
            rows = self.session.execute(
                select(Document.collection).where(
                    (Document.path == ref.path) | Document.path.startswith(prefix, autoescape=True)
                )
            ).scalars().all()
            self.session.execute(
                sa_delete(Document).where(
                    (Document.path == ref.path) | Document.path.startswith(prefix, autoescape=True)
                )
            )
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise _translate_error(exc) from exc
        listeners.notify(self, set(rows))
        return len(rows)

    # Internal helpers -------------------------------------------------------

    def _row(self, path: str, for_update: bool = False) -> Document | None:
        stmt = select(Document).where(Document.path == path)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def _snapshot(self, row: Document) -> DocumentSnapshot:
        return DocumentSnapshot(
            DocumentRef(self, row.path),
            _decode(row.data or {}),
            create_time=row.created_at,
            update_time=row.updated_at,
        )

    def _read(self, ref: DocumentRef, for_update: bool = False) -> DocumentSnapshot:
        try:
            row = self._row(ref.path, for_update)
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise _translate_error(exc) from exc
        if row is None:
            return DocumentSnapshot(DocumentRef(self, ref.path), None)
        return self._snapshot(row)

    def _query(self, query: Query, for_update: bool = False) -> list[DocumentSnapshot]:
        stmt = select(Document).where(Document.collection == query.collection_path).order_by(Document.id)
        if for_update:
            stmt = stmt.with_for_update()
        try:
            rows = self.session.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise _translate_error(exc) from exc
        return query._apply([self._snapshot(row) for row in rows])

    def _apply(self, operation: tuple, now: datetime) -> None:
        kind, path, payload, merge = operation
        row = self._row(path)

        if kind == 'delete':
            if row is not None:
                self.session.delete(row)
            return

        if kind == 'update':
            if row is None:
                raise NotFoundError(f"No document to update: {path}")
            current = _decode(row.data or {})
            for field_path, value in payload.items():
                _set_field(current, field_path, value)
            row.data = _encode(current, now)
            row.updated_at = now
            return

        if row is None:
            row = Document(
                path=path,
                collection=_parent_path(path),
                doc_id=path.rsplit('/', 1)[-1],
                data={},
                created_at=now,
            )
            self.session.add(row)
            current = {}
        else:
            current = _decode(row.data or {}) if merge else {}
        row.data = _encode(_merge(current, dict(payload)), now)
        row.updated_at = now

    def _commit(self, operations: list[tuple]) -> None:
        if len(operations) > MAX_BATCH_OPERATIONS:
            raise BatchLimitError(f"A commit may contain at most {MAX_BATCH_OPERATIONS} operations")
        now = datetime.now(timezone.utc)
        try:
            for operation in operations:
                self._apply(operation, now)
            self.session.commit()
        except StoreError:
            self.session.rollback()
            raise
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise _translate_error(exc) from exc
        listeners.notify(self, {_parent_path(op[1]) for op in operations})


def get_store() -> DocumentStore:
    """Return the document store bound to the current application context."""
    if 'document_store' not in g:
        g.document_store = DocumentStore(db.session)
    return g.document_store


__all__ = [
    'ASCENDING',
    'DESCENDING',
    'DELETE_FIELD',
    'SERVER_TIMESTAMP',
    'MAX_BATCH_OPERATIONS',
    'BatchLimitError',
    'CollectionRef',
    'DocumentRef',
    'DocumentSnapshot',
    'DocumentStore',
    'NotFoundError',
    'PermissionDeniedError',
    'Query',
    'StoreError',
    'Transaction',
    'TransientStoreError',
    'WriteBatch',
    'get_field',
    'get_store',
    'listeners',
    'new_document_id',
]
