"""Construction and teardown of the catalog data layer."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from jewelcatalog.domain.catalog_models import ImageUrlResolver
from jewelcatalog.infrastructure.app_constants import APP_TITLE
from jewelcatalog.infrastructure.logger import cleanup_old_logs, get_log_config, setup_logging
from jewelcatalog.infrastructure.settings import (
    CatalogSettings,
    get_app_settings,
    load_catalog_settings,
)
from jewelcatalog.persistence.document_store import DocumentStore
from jewelcatalog.persistence.version_store import VersionStore
from jewelcatalog.services.catalog_cache import CatalogCache, UserIdProvider
from jewelcatalog.services.catalog_fetcher import CatalogFetcher
from jewelcatalog.services.freshness import CacheFreshnessCoordinator
from jewelcatalog.services.version_oracle import RemoteVersionOracle
from jewelcatalog.services.wishlist_cache import WishlistOverlayCache


@dataclass
class CatalogContext:
    """Aggregate of the objects wired together by :func:`build_catalog_context`."""

    settings: CatalogSettings
    version_store: VersionStore
    oracle: RemoteVersionOracle
    coordinator: CacheFreshnessCoordinator
    fetcher: CatalogFetcher
    wishlist: WishlistOverlayCache
    cache: CatalogCache
    logger: logging.Logger

    def close(self) -> None:
        """Release listeners and wait for background refreshes."""
        try:
            self.cache.close()
        except Exception as exc:
            self.logger.debug("Failed to close catalog cache: %s", exc)
        try:
            self.coordinator.close()
        except Exception as exc:
            self.logger.debug("Failed to close freshness coordinator: %s", exc)
        self.logger.info("Catalog data layer closed")

    def __enter__(self) -> "CatalogContext":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.close()
        return False


def configure_logging(
    *,
    log_config_getter: Callable[[], dict] = get_log_config,
    logging_setup: Callable[..., logging.Logger] = setup_logging,
) -> logging.Logger:
    """Apply logging settings and prune old log files when configured to."""
    log_config = log_config_getter()
    logger = logging_setup(
        log_dir=log_config["log_dir"],
        debug_mode=log_config["debug_mode"],
        enable_info=log_config["enable_info"],
        enable_error=log_config["enable_error"],
        enable_debug=log_config["enable_debug"],
    )
    logger.info("%s starting", APP_TITLE)
    logger.debug("Logging configuration: %s", log_config)
    if log_config.get("auto_cleanup"):
        try:
            cleanup_old_logs(log_config["log_dir"], log_config["cleanup_days"])
        except Exception as exc:
            logger.error("Failed to clean up old logs: %s", exc, exc_info=True)
    return logger


def build_catalog_context(
    document_store: DocumentStore,
    *,
    user_id_provider: Optional[UserIdProvider] = None,
    image_url_resolver: Optional[ImageUrlResolver] = None,
    settings_provider: Callable[[], Any] = get_app_settings,
    catalog_settings: Optional[CatalogSettings] = None,
    logger: Optional[logging.Logger] = None,
) -> CatalogContext:
    """Wire the version store, oracle, coordinator and caches together."""
    logger = logger or logging.getLogger("jewelcatalog")
    settings = catalog_settings or load_catalog_settings(settings_provider)
    logger.debug("Catalog settings: %s", settings)

    version_store = VersionStore(settings_provider)
    oracle = RemoteVersionOracle(document_store, memo_seconds=settings.version_memo_seconds)
    coordinator = CacheFreshnessCoordinator(version_store, oracle)
    fetcher = CatalogFetcher(document_store, image_url_resolver=image_url_resolver)
    wishlist = WishlistOverlayCache(fetcher)
    cache = CatalogCache(
        fetcher,
        coordinator,
        version_store,
        oracle,
        wishlist,
        user_id_provider=user_id_provider,
        refresh_on_read=settings.refresh_on_read,
        listen_for_changes=settings.listen_for_changes,
        join_timeout=settings.background_join_timeout,
    )
    logger.info("Catalog data layer ready (local version %s)", coordinator.local_token())
    return CatalogContext(
        settings=settings,
        version_store=version_store,
        oracle=oracle,
        coordinator=coordinator,
        fetcher=fetcher,
        wishlist=wishlist,
        cache=cache,
        logger=logger,
    )
