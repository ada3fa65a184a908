"""Durable record of the catalog version applied to the local cache."""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Optional

from PyQt5.QtCore import QSettings

from jewelcatalog.domain.catalog_models import LocalVersionRecord
from jewelcatalog.exceptions import VersionStoreError
from jewelcatalog.infrastructure.app_constants import (
    CACHE_VERSION_KEY,
    DEFAULT_VERSION_TOKEN,
    LAST_UPDATE_TIMESTAMP_KEY,
    SETTINGS_APP,
    SETTINGS_ORG,
)


def _default_settings() -> QSettings:
    return QSettings(SETTINGS_ORG, SETTINGS_APP)


class VersionStore:
    """Persist the last applied version token and its timestamp in QSettings."""

    def __init__(
        self,
        settings_provider: Optional[Callable[[], Any]] = None,
        *,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._settings_provider = settings_provider or _default_settings
        self._settings = None
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()

    def _get_settings(self):
        if self._settings is None:
            self._settings = self._settings_provider()
        return self._settings

    def get(self) -> LocalVersionRecord:
        """Return the applied version, defaulting to token ``"0"`` at time 0."""
        with self._lock:
            try:
                settings = self._get_settings()
                token = settings.value(CACHE_VERSION_KEY, DEFAULT_VERSION_TOKEN)
                raw_ts = settings.value(LAST_UPDATE_TIMESTAMP_KEY, 0)
            except Exception as exc:
                raise VersionStoreError(f"Unable to read local cache version: {exc}") from exc
        try:
            applied_at = int(raw_ts or 0)
        except (TypeError, ValueError):
            self._logger.warning("Ignoring malformed cache timestamp %r", raw_ts)
            applied_at = 0
        if token is None or token == "":
            token = DEFAULT_VERSION_TOKEN
        return LocalVersionRecord(token=str(token), applied_at=applied_at)

    def set(self, token: str) -> LocalVersionRecord:
        """Store ``token`` stamped with the current time and flush to disk."""
        applied_at = int(self._clock() * 1000)
        with self._lock:
            try:
                settings = self._get_settings()
                previous = {
                    CACHE_VERSION_KEY: settings.value(CACHE_VERSION_KEY, None),
                    LAST_UPDATE_TIMESTAMP_KEY: settings.value(LAST_UPDATE_TIMESTAMP_KEY, None),
                }
            except Exception as exc:
                raise VersionStoreError(f"Unable to save local cache version: {exc}") from exc
            try:
                settings.setValue(CACHE_VERSION_KEY, str(token))
                settings.setValue(LAST_UPDATE_TIMESTAMP_KEY, applied_at)
                settings.sync()
                status = settings.status()
            except Exception as exc:
                self._restore(settings, previous)
                raise VersionStoreError(f"Unable to save local cache version: {exc}") from exc
            if status != QSettings.NoError:
                # An unsaved token must not read back as applied.
                self._restore(settings, previous)
                raise VersionStoreError(
                    f"Saving local cache version failed with settings status {status}"
                )
        self._logger.debug("Saved local cache version: %s", token)
        return LocalVersionRecord(token=str(token), applied_at=applied_at)

    def _restore(self, settings, previous) -> None:
        try:
            for key, value in previous.items():
                if value is None:
                    settings.remove(key)
                else:
                    settings.setValue(key, value)
        except Exception as exc:
            self._logger.error("Unable to roll back local cache version: %s", exc)

    def clear(self) -> None:
        """Forget the applied version so the next freshness check refreshes."""
        with self._lock:
            try:
                settings = self._get_settings()
                settings.remove(CACHE_VERSION_KEY)
                settings.remove(LAST_UPDATE_TIMESTAMP_KEY)
                settings.sync()
            except Exception as exc:
                raise VersionStoreError(f"Unable to clear local cache version: {exc}") from exc
