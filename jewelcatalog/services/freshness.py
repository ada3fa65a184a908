"""Decide whether the local catalog snapshot is stale."""
from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

from jewelcatalog.exceptions import VersionStoreError
from jewelcatalog.infrastructure.app_constants import DEFAULT_VERSION_TOKEN
from jewelcatalog.persistence.document_store import Subscription
from jewelcatalog.persistence.version_store import VersionStore
from jewelcatalog.services.version_oracle import RemoteVersionOracle


class CacheFreshnessCoordinator:
    """Compare local and remote version tokens and relay push notifications."""

    def __init__(
        self,
        version_store: VersionStore,
        oracle: RemoteVersionOracle,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._version_store = version_store
        self._oracle = oracle
        self._logger = logger or logging.getLogger(__name__)
        self._subscriptions: List[Subscription] = []
        self._lock = threading.Lock()

    def local_token(self) -> str:
        """Return the applied token; an unreadable store counts as ``"0"``."""
        try:
            return self._version_store.get().token
        except VersionStoreError as exc:
            self._logger.error("Reading local cache version failed, assuming %s: %s",
                               DEFAULT_VERSION_TOKEN, exc)
            return DEFAULT_VERSION_TOKEN

    def should_refresh(self) -> bool:
        """Return ``True`` when the remote token differs or cannot be read."""
        local = self.local_token()
        try:
            remote = self._oracle.current_token()
        except Exception as exc:
            self._logger.error("Error checking cache version, assuming refresh needed: %s", exc)
            return True
        self._logger.debug("Cache version check - Local: %s, Server: %s", local, remote)
        return remote != local

    def on_remote_change(self, handler: Callable[[str], None]) -> Subscription:
        """Forward remote token changes to ``handler`` on the notifying thread."""
        subscription = self._oracle.subscribe(handler)
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def close(self) -> None:
        with self._lock:
            subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            try:
                subscription.remove()
            except Exception as exc:
                self._logger.debug("Failed to remove version subscription: %s", exc)
