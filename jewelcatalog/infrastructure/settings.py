"""Utility helpers for application QSettings access."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Callable, Optional

from PyQt5.QtCore import QSettings

from jewelcatalog.exceptions import ConfigurationError
from jewelcatalog.infrastructure.app_constants import (
    SERVER_VERSION_CACHE_DURATION,
    SETTINGS_APP,
    SETTINGS_ORG,
)


def get_app_settings(*, org: str = SETTINGS_ORG, app: str = SETTINGS_APP) -> QSettings:
    """Return a QSettings instance using the default org/app identifiers."""
    return QSettings(org, app)


def _coerce_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    if value is None:
        return default
    return bool(value)


@dataclass(frozen=True)
class CatalogSettings:
    """Tunables for the catalog cache."""

    version_memo_seconds: float = float(SERVER_VERSION_CACHE_DURATION)
    refresh_on_read: bool = True
    listen_for_changes: bool = True
    background_join_timeout: float = 5.0


def load_catalog_settings(
    settings_provider: Optional[Callable[[], Any]] = None,
) -> CatalogSettings:
    """Read cache settings from QSettings; ``JEWEL_CATALOG_*`` env vars win."""
    settings = (settings_provider or get_app_settings)()
    defaults = CatalogSettings()

    raw_memo = os.environ.get(
        "JEWEL_CATALOG_VERSION_MEMO_SECONDS",
        settings.value("cache/version_memo_seconds", defaults.version_memo_seconds),
    )
    raw_join = os.environ.get(
        "JEWEL_CATALOG_BACKGROUND_JOIN_TIMEOUT",
        settings.value("cache/background_join_timeout", defaults.background_join_timeout),
    )
    try:
        memo_seconds = float(raw_memo)
        join_timeout = float(raw_join)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid cache timing setting: {exc}") from exc
    if memo_seconds < 0:
        raise ConfigurationError(
            f"cache/version_memo_seconds must be >= 0, got {memo_seconds}"
        )

    refresh_on_read = _coerce_bool(
        os.environ.get(
            "JEWEL_CATALOG_REFRESH_ON_READ",
            settings.value("cache/refresh_on_read", defaults.refresh_on_read),
        ),
        defaults.refresh_on_read,
    )
    listen_for_changes = _coerce_bool(
        os.environ.get(
            "JEWEL_CATALOG_LISTEN_FOR_CHANGES",
            settings.value("cache/listen_for_changes", defaults.listen_for_changes),
        ),
        defaults.listen_for_changes,
    )

    return CatalogSettings(
        version_memo_seconds=memo_seconds,
        refresh_on_read=refresh_on_read,
        listen_for_changes=listen_for_changes,
        background_join_timeout=max(0.0, join_timeout),
    )


__all__ = ["CatalogSettings", "get_app_settings", "load_catalog_settings", "QSettings"]
