"""Remote document store contract and an in-memory implementation.

The catalog layer only depends on the small surface declared by
:class:`DocumentStore`. Production builds plug in a hosted document database
adapter; local development and the test-suite use
:class:`InMemoryDocumentStore`.
"""
from __future__ import annotations

import copy
import logging
import threading
from typing import (
    Any,
    Callable,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    TypeVar,
)

from jewelcatalog.domain.catalog_models import Document
from jewelcatalog.exceptions import RemoteStoreError

# Upper bound on values in a single "field in [...]" query.
MAX_IN_QUERY_VALUES = 10

DocumentListener = Callable[[Optional[Document], Optional[Exception]], None]

T = TypeVar("T")


def chunked(values: Sequence[T], size: int = MAX_IN_QUERY_VALUES) -> List[List[T]]:
    """Split ``values`` into consecutive lists of at most ``size`` items."""
    if size < 1:
        raise ValueError("chunk size must be positive")
    items = list(values)
    return [items[i:i + size] for i in range(0, len(items), size)]


class Subscription(Protocol):
    def remove(self) -> None:
        ...


class DocumentStore(Protocol):
    """Operations the catalog layer needs from the remote store."""

    def get_document(self, collection: str, doc_id: str) -> Optional[Document]:
        ...

    def query_collection(
        self, collection: str, order_by: Optional[str] = None
    ) -> List[Document]:
        ...

    def query_where_in(
        self, collection: str, field: str, values: Sequence[Any]
    ) -> List[Document]:
        ...

    def set_document(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        ...

    def delete_document(self, collection: str, doc_id: str) -> None:
        ...

    def subscribe(
        self, collection: str, doc_id: str, listener: DocumentListener
    ) -> Subscription:
        ...


class ListenerRegistration:
    """Handle returned by :meth:`InMemoryDocumentStore.subscribe`."""

    def __init__(self, on_remove: Callable[[], None]) -> None:
        self._on_remove = on_remove
        self._removed = False
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return not self._removed

    def remove(self) -> None:
        with self._lock:
            if self._removed:
                return
            self._removed = True
        self._on_remove()


class InMemoryDocumentStore:
    """Thread-safe dictionary-backed :class:`DocumentStore`.

    Writes notify subscribers synchronously on the writing thread. Setting
    :attr:`online` to ``False`` makes every read and write raise
    :class:`RemoteStoreError`, which is how offline behaviour is exercised.
    """

    def __init__(self, logger: Optional[logging.Logger] = None) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._listeners: Dict[Tuple[str, str], List[DocumentListener]] = {}
        self._failing: Dict[str, Exception] = {}
        self.online = True

    # --- Failure injection -----------------------------------------------

    def fail_collection(self, collection: str, error: Optional[Exception] = None) -> None:
        """Make every access to ``collection`` raise until :meth:`heal` is called."""
        with self._lock:
            self._failing[collection] = error or RemoteStoreError(
                f"{collection} is unavailable"
            )

    def heal(self, collection: Optional[str] = None) -> None:
        with self._lock:
            if collection is None:
                self._failing.clear()
            else:
                self._failing.pop(collection, None)

    def _check(self, collection: str) -> None:
        if not self.online:
            raise RemoteStoreError("Remote document store is unreachable")
        error = self._failing.get(collection)
        if error is not None:
            raise error

    # --- Reads -----------------------------------------------------------

    def get_document(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._lock:
            self._check(collection)
            fields = self._collections.get(collection, {}).get(doc_id)
            if fields is None:
                return None
            return Document(doc_id, copy.deepcopy(fields))

    def query_collection(
        self, collection: str, order_by: Optional[str] = None
    ) -> List[Document]:
        with self._lock:
            self._check(collection)
            docs = [
                Document(doc_id, copy.deepcopy(fields))
                for doc_id, fields in self._collections.get(collection, {}).items()
            ]
        if order_by:
            # Documents lacking the order field sort last, as in hosted stores.
            docs.sort(key=lambda doc: (doc.get(order_by) is None, doc.get(order_by) or 0))
        return docs

    def query_where_in(
        self, collection: str, field: str, values: Sequence[Any]
    ) -> List[Document]:
        if len(values) > MAX_IN_QUERY_VALUES:
            raise ValueError(
                f"'in' queries accept at most {MAX_IN_QUERY_VALUES} values, got {len(values)}"
            )
        wanted = set(values)
        return [
            doc for doc in self.query_collection(collection)
            if doc.get(field) in wanted
        ]

    # --- Writes ----------------------------------------------------------

    def set_document(self, collection: str, doc_id: str, fields: Mapping[str, Any]) -> None:
        with self._lock:
            self._check(collection)
            stored = copy.deepcopy(dict(fields))
            self._collections.setdefault(collection, {})[doc_id] = stored
            listeners = list(self._listeners.get((collection, doc_id), ()))
        self._notify(listeners, Document(doc_id, copy.deepcopy(stored)))

    def delete_document(self, collection: str, doc_id: str) -> None:
        with self._lock:
            self._check(collection)
            self._collections.get(collection, {}).pop(doc_id, None)
            listeners = list(self._listeners.get((collection, doc_id), ()))
        self._notify(listeners, None)

    def seed(self, collection: str, documents: Iterable[Tuple[str, Mapping[str, Any]]]) -> None:
        """Bulk-load documents without notifying listeners."""
        with self._lock:
            target = self._collections.setdefault(collection, {})
            for doc_id, fields in documents:
                target[doc_id] = copy.deepcopy(dict(fields))

    # --- Listeners -------------------------------------------------------

    def subscribe(
        self, collection: str, doc_id: str, listener: DocumentListener
    ) -> ListenerRegistration:
        key = (collection, doc_id)
        with self._lock:
            self._listeners.setdefault(key, []).append(listener)

        def _remove() -> None:
            with self._lock:
                registered = self._listeners.get(key, [])
                if listener in registered:
                    registered.remove(listener)

        return ListenerRegistration(_remove)

    def emit_error(self, collection: str, doc_id: str, error: Exception) -> None:
        """Deliver a transport error to listeners of one document."""
        with self._lock:
            listeners = list(self._listeners.get((collection, doc_id), ()))
        for listener in listeners:
            listener(None, error)

    def listener_count(self, collection: str, doc_id: str) -> int:
        with self._lock:
            return len(self._listeners.get((collection, doc_id), ()))

    def _notify(self, listeners: List[DocumentListener], document: Optional[Document]) -> None:
        for listener in listeners:
            try:
                listener(document, None)
            except Exception as exc:
                self._logger.error("Document listener raised: %s", exc, exc_info=True)
