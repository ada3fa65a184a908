"""Remote catalog version lookup with a short memoization window."""
from __future__ import annotations

import logging
import threading
import time
from typing import Callable, Optional

from jewelcatalog.domain.catalog_models import Document
from jewelcatalog.exceptions import RemoteStoreError
from jewelcatalog.infrastructure.app_constants import (
    CACHE_CONTROL_DOCUMENT,
    DEFAULT_VERSION_TOKEN,
    METADATA_COLLECTION,
    SERVER_VERSION_CACHE_DURATION,
    VERSION_FIELD,
)
from jewelcatalog.persistence.document_store import DocumentStore, Subscription

VersionCallback = Callable[[str], None]


def _token_from(document: Optional[Document]) -> str:
    if document is None:
        return DEFAULT_VERSION_TOKEN
    return document.get_str(VERSION_FIELD, DEFAULT_VERSION_TOKEN) or DEFAULT_VERSION_TOKEN


class RemoteVersionOracle:
    """Read the catalog version token from the remote cache-control document."""

    def __init__(
        self,
        store: DocumentStore,
        *,
        memo_seconds: float = SERVER_VERSION_CACHE_DURATION,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._store = store
        self._memo_seconds = memo_seconds
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._cached_token: Optional[str] = None
        self._cached_at = 0.0

    def current_token(self, *, force: bool = False) -> str:
        """Return the remote token, reusing a read younger than the memo window.

        Raises :class:`RemoteStoreError` when the remote read fails; a stale
        memoized value is never substituted for a failed read.
        """
        now = self._clock()
        if not force:
            with self._lock:
                if (
                    self._cached_token is not None
                    and now - self._cached_at < self._memo_seconds
                ):
                    self._logger.debug("Using cached server version: %s", self._cached_token)
                    return self._cached_token

        try:
            document = self._store.get_document(METADATA_COLLECTION, CACHE_CONTROL_DOCUMENT)
        except RemoteStoreError:
            raise
        except Exception as exc:
            raise RemoteStoreError(f"Unable to read cache version: {exc}") from exc

        token = _token_from(document)
        self._remember(token, now)
        return token

    def invalidate(self) -> None:
        with self._lock:
            self._cached_token = None
            self._cached_at = 0.0

    def subscribe(self, on_change: VersionCallback) -> Subscription:
        """Invoke ``on_change`` with the token every time the control document changes."""

        def _listener(document: Optional[Document], error: Optional[Exception]) -> None:
            if error is not None:
                self._logger.error("Error listening for cache version changes: %s", error)
                return
            if document is None:
                return
            token = _token_from(document)
            self._remember(token, self._clock())
            self._logger.debug("Cache version changed: %s", token)
            try:
                on_change(token)
            except Exception as exc:
                self._logger.error("Cache version callback failed: %s", exc, exc_info=True)

        return self._store.subscribe(METADATA_COLLECTION, CACHE_CONTROL_DOCUMENT, _listener)

    def _remember(self, token: str, when: float) -> None:
        with self._lock:
            self._cached_token = token
            self._cached_at = when
