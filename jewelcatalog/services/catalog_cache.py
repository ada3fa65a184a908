"""Read-through catalog cache with version-gated, single-flight refresh."""
from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from PyQt5.QtCore import QObject, pyqtSignal

from jewelcatalog.domain.catalog_models import (
    CollectionKind,
    Product,
    RefreshResult,
)
from jewelcatalog.exceptions import (
    NotAuthenticatedError,
    RemoteStoreError,
    VersionStoreError,
)
from jewelcatalog.persistence.document_store import Subscription
from jewelcatalog.persistence.version_store import VersionStore
from jewelcatalog.services.catalog_fetcher import CatalogFetcher
from jewelcatalog.services.freshness import CacheFreshnessCoordinator
from jewelcatalog.services.version_oracle import RemoteVersionOracle
from jewelcatalog.services.wishlist_cache import WishlistOverlayCache

UserIdProvider = Callable[[], Optional[str]]

# Refresh order; the wishlist overlay is refreshed right before featured products.
REFRESH_ORDER: Tuple[CollectionKind, ...] = (
    CollectionKind.CATEGORIES,
    CollectionKind.FEATURED_PRODUCTS,
    CollectionKind.COLLECTIONS,
    CollectionKind.CAROUSEL_ITEMS,
)


class CatalogCache(QObject):
    """In-memory snapshot of the four catalog views.

    Reads return the cached tuple immediately when the view is populated and
    fall through to the fetcher otherwise. Every read schedules a background
    freshness check; when the remote version moved, :meth:`refresh_all`
    re-fetches all views. At most one full refresh runs at a time.

    Signals are emitted from worker threads, so Qt delivers them to UI
    objects through queued connections.
    """

    collection_updated = pyqtSignal(str)
    refresh_finished = pyqtSignal(object)

    def __init__(
        self,
        fetcher: CatalogFetcher,
        coordinator: CacheFreshnessCoordinator,
        version_store: VersionStore,
        oracle: RemoteVersionOracle,
        wishlist: WishlistOverlayCache,
        *,
        user_id_provider: Optional[UserIdProvider] = None,
        refresh_on_read: bool = True,
        listen_for_changes: bool = True,
        join_timeout: float = 5.0,
        logger: Optional[logging.Logger] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.fetcher = fetcher
        self._coordinator = coordinator
        self._version_store = version_store
        self._oracle = oracle
        self._wishlist = wishlist
        self._user_id_provider = user_id_provider or (lambda: None)
        self._refresh_on_read = refresh_on_read
        self._join_timeout = join_timeout
        self._logger = logger or logging.getLogger(__name__)

        self._snapshots: Dict[CollectionKind, Tuple] = {}
        # User whose wishlist the featured snapshot's favorite flags reflect.
        self._annotated_user: Optional[str] = None
        self._state_lock = threading.Lock()
        # Non-blocking acquire is the Idle -> Refreshing transition.
        self._refresh_lock = threading.Lock()
        self._threads_lock = threading.RLock()
        self._threads: List[threading.Thread] = []
        self._closed = False

        self._subscription: Optional[Subscription] = None
        if listen_for_changes:
            self._subscription = coordinator.on_remote_change(self._on_remote_version)

    # --- Reads ---------------------------------------------------------------

    def read(self, kind: CollectionKind) -> Tuple:
        """Return the cached view, fetching it first if it was never loaded.

        Raises :class:`RemoteStoreError` only when nothing is cached and the
        first fetch fails.
        """
        kind = CollectionKind(kind)
        with self._state_lock:
            cached = self._snapshots.get(kind)
        if cached is not None and kind is CollectionKind.FEATURED_PRODUCTS:
            cached = self._sync_user()

        if cached is not None:
            self._logger.debug("Emitting %s %s from cache", len(cached), kind.value)
            result = cached
        else:
            self._logger.debug("Cache empty, fetching %s", kind.value)
            result = self._load(kind)

        if self._refresh_on_read:
            self._spawn(self._check_and_refresh, "CatalogFreshnessCheck")
        return result

    def get_categories(self) -> Tuple:
        return self.read(CollectionKind.CATEGORIES)

    def get_featured_products(self) -> Tuple:
        return self.read(CollectionKind.FEATURED_PRODUCTS)

    def get_collections(self) -> Tuple:
        return self.read(CollectionKind.COLLECTIONS)

    def get_carousel_items(self) -> Tuple:
        return self.read(CollectionKind.CAROUSEL_ITEMS)

    def peek(self, kind: CollectionKind) -> Tuple:
        """Return the cached view without fetching or checking freshness."""
        with self._state_lock:
            return self._snapshots.get(CollectionKind(kind), ())

    def is_populated(self, kind: CollectionKind) -> bool:
        with self._state_lock:
            return CollectionKind(kind) in self._snapshots

    def _load(self, kind: CollectionKind) -> Tuple:
        if kind is CollectionKind.FEATURED_PRODUCTS:
            bulk_ok = self._refresh_wishlist()
            user_id = self._wishlist.user_id
            items = self.fetcher.fetch(kind)
            return self._store_featured(self._annotate(items, bulk_ok=bulk_ok), user_id)
        return self._store(kind, self.fetcher.fetch(kind))

    def _store(self, kind: CollectionKind, items: Sequence) -> Tuple:
        snapshot = tuple(items)
        with self._state_lock:
            self._snapshots[kind] = snapshot
        self.collection_updated.emit(kind.value)
        return snapshot

    def _store_featured(self, products: Sequence[Product], user_id: Optional[str]) -> Tuple:
        """Store featured products annotated for ``user_id``.

        Overlay entries written since the annotation started win over the
        flags carried by ``products``.
        """
        with self._state_lock:
            if self._wishlist.user_id == user_id:
                members = self._wishlist.snapshot()
                products = [
                    product.with_favorite(members[product.id]) if product.id in members else product
                    for product in products
                ]
            snapshot = tuple(products)
            self._snapshots[CollectionKind.FEATURED_PRODUCTS] = snapshot
            self._annotated_user = user_id
        self.collection_updated.emit(CollectionKind.FEATURED_PRODUCTS.value)
        return snapshot

    # --- Refresh -------------------------------------------------------------

    def refresh_all(self) -> Optional[RefreshResult]:
        """Re-fetch every view and persist the remote version.

        Returns ``None`` without doing anything when another refresh is
        already running; the call is not queued.
        """
        if not self._refresh_lock.acquire(blocking=False):
            self._logger.debug("Data refresh already in progress, skipping")
            return None

        result = RefreshResult()
        try:
            self._logger.info("Starting catalog data refresh")
            for kind in REFRESH_ORDER:
                bulk_ok = False
                annotated_for = None
                if kind is CollectionKind.FEATURED_PRODUCTS:
                    bulk_ok = result.wishlist_refreshed = self._refresh_wishlist()
                    annotated_for = self._wishlist.user_id
                try:
                    items = self.fetcher.fetch(kind)
                    if kind is CollectionKind.FEATURED_PRODUCTS:
                        snapshot = self._store_featured(
                            self._annotate(items, bulk_ok=bulk_ok), annotated_for
                        )
                    else:
                        snapshot = self._store(kind, items)
                except Exception as exc:
                    self._logger.error("Error refreshing %s: %s", kind.value, exc,
                                       exc_info=not isinstance(exc, RemoteStoreError))
                    result.failed[kind] = str(exc)
                    continue
                result.refreshed.append(kind)
                self._logger.debug("Refreshed %s %s", len(snapshot), kind.value)

            result.token = self._persist_remote_version()
        finally:
            self._refresh_lock.release()

        self._logger.info(
            "Catalog refresh complete: refreshed=%s failed=%s version=%s",
            [kind.value for kind in result.refreshed],
            [kind.value for kind in result.failed],
            result.token,
        )
        self.refresh_finished.emit(result)
        return result

    @property
    def is_refreshing(self) -> bool:
        return self._refresh_lock.locked()

    def refresh_in_background(self) -> None:
        self._spawn(self.refresh_all, "CatalogRefresh")

    def _persist_remote_version(self) -> Optional[str]:
        try:
            token = self._oracle.current_token(force=True)
        except Exception as exc:
            self._logger.error("Unable to read cache version after refresh: %s", exc)
            return None
        try:
            self._version_store.set(token)
        except VersionStoreError as exc:
            self._logger.error("Unable to save cache version %s: %s", token, exc)
            return None
        return token

    def _check_and_refresh(self) -> None:
        if self._coordinator.should_refresh():
            self._logger.debug("Cache is outdated, refreshing data")
            self.refresh_all()
        else:
            self._logger.debug("Cache is current, using cached data")

    def _on_remote_version(self, token: str) -> None:
        if self._closed:
            return
        local = self._coordinator.local_token()
        if token == local:
            return
        self._logger.info("Cache version changed from %s to %s, refreshing data", local, token)
        self._spawn(self.refresh_all, "CatalogPushRefresh")

    # --- Wishlist ------------------------------------------------------------

    def add_to_wishlist(self, product_id: str) -> None:
        """Add remotely, then mark the product as a favorite in the cache."""
        user_id = self._require_user()
        self.fetcher.add_to_wishlist(user_id, product_id)
        self._apply_local_write(user_id, product_id, True)

    def remove_from_wishlist(self, product_id: str) -> None:
        """Remove remotely, then clear the favorite flag in the cache."""
        user_id = self._require_user()
        self.fetcher.remove_from_wishlist(user_id, product_id)
        self._apply_local_write(user_id, product_id, False)

    def _apply_local_write(self, user_id: str, product_id: str, value: bool) -> None:
        self._wishlist.bind_user(user_id)
        self._wishlist.set_member(product_id, value)
        self._sync_user()
        self._patch_favorite(user_id, product_id, value)

    def is_member(self, product_id: str) -> bool:
        self._wishlist.bind_user(self._current_user())
        return self._wishlist.is_member(product_id)

    def refresh_wishlist(self) -> bool:
        return self._refresh_wishlist()

    def _refresh_wishlist(self) -> bool:
        user_id = self._current_user()
        self._wishlist.bind_user(user_id)
        if user_id is None:
            return False
        try:
            self._wishlist.refresh(user_id)
        except Exception as exc:
            self._logger.error("Error refreshing wishlist cache: %s", exc)
            return False
        return True

    def _annotate(self, products: Sequence[Product], *, bulk_ok: bool) -> List[Product]:
        if bulk_ok:
            self._wishlist.mark_known(product.id for product in products)
        with self._state_lock:
            previous = {}
            if self._annotated_user == self._wishlist.user_id:
                previous = {
                    product.id: product.is_favorite
                    for product in self._snapshots.get(CollectionKind.FEATURED_PRODUCTS, ())
                }
        annotated = []
        for product in products:
            try:
                favorite = self._wishlist.is_member(product.id)
            except RemoteStoreError as exc:
                favorite = previous.get(product.id, False)
                self._logger.warning("Wishlist lookup for %s failed, using %s: %s",
                                     product.id, favorite, exc)
            annotated.append(product.with_favorite(favorite))
        return annotated

    def _patch_favorite(self, user_id: str, product_id: str, value: bool) -> None:
        changed = False
        with self._state_lock:
            products = self._snapshots.get(CollectionKind.FEATURED_PRODUCTS)
            if products is None or self._annotated_user != user_id:
                return
            patched = tuple(
                product.with_favorite(value) if product.id == product_id else product
                for product in products
            )
            changed = any(a is not b for a, b in zip(products, patched))
            if changed:
                self._snapshots[CollectionKind.FEATURED_PRODUCTS] = patched
        if changed:
            self.collection_updated.emit(CollectionKind.FEATURED_PRODUCTS.value)

    def _sync_user(self) -> Tuple:
        """Drop the previous user's favorites when the signed-in user changed.

        Returns the featured snapshot, ``()`` when it was never loaded.
        """
        user_id = self._current_user()
        with self._state_lock:
            products = self._snapshots.get(CollectionKind.FEATURED_PRODUCTS)
            if products is None:
                return ()
            if user_id == self._annotated_user:
                return products
            cleared = tuple(product.with_favorite(False) for product in products)
            self._snapshots[CollectionKind.FEATURED_PRODUCTS] = cleared
            self._annotated_user = user_id
        self._logger.info("Signed-in user changed, re-annotating featured products")
        self._wishlist.bind_user(user_id)
        if user_id is not None:
            self._spawn(self._reannotate_featured, "WishlistReannotate")
        return cleared

    def _reannotate_featured(self) -> None:
        bulk_ok = self._refresh_wishlist()
        user_id = self._wishlist.user_id
        with self._state_lock:
            products = self._snapshots.get(CollectionKind.FEATURED_PRODUCTS)
        if products is None:
            return
        self._store_featured(self._annotate(products, bulk_ok=bulk_ok), user_id)

    def _current_user(self) -> Optional[str]:
        return self._user_id_provider()

    def _require_user(self) -> str:
        user_id = self._current_user()
        if not user_id:
            raise NotAuthenticatedError("No signed-in user for wishlist operation")
        return user_id

    # --- Uncached pass-through reads ----------------------------------------

    def get_product_details(self, product_id: str) -> Product:
        product = self.fetcher.fetch_product(product_id)
        self._wishlist.bind_user(self._current_user())
        return self._annotate([product], bulk_ok=False)[0]

    def get_products_by_category(
        self, category_id: str, exclude_product_id: Optional[str] = None
    ) -> List[Product]:
        products = self.fetcher.fetch_products_by_category(category_id, exclude_product_id)
        self._wishlist.bind_user(self._current_user())
        return self._annotate(products, bulk_ok=False)

    def get_wishlist_products(self) -> List[Product]:
        user_id = self._require_user()
        self._wishlist.refresh(user_id)
        member_ids = sorted(pid for pid, member in self._wishlist.snapshot().items() if member)
        products = self.fetcher.fetch_products_by_ids(member_ids)
        return [product.with_favorite(True) for product in products]

    def record_product_view(self, product_id: str) -> bool:
        user_id = self._current_user()
        if not user_id:
            return False
        return self.fetcher.record_product_view(user_id, product_id)

    # --- Background work and teardown ----------------------------------------

    def _spawn(self, target: Callable[[], object], name: str) -> None:
        def _worker() -> None:
            try:
                target()
            except Exception as exc:
                self._logger.error("Background task %s failed: %s", name, exc, exc_info=True)

        with self._threads_lock:
            if self._closed:
                return
            thread = threading.Thread(target=_worker, name=name, daemon=True)
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
            # Started under the lock so close() never sees an unstarted thread.
            thread.start()

    def close(self) -> None:
        """Stop listening for remote changes and wait for background work."""
        with self._threads_lock:
            self._closed = True
        if self._subscription is not None:
            try:
                self._subscription.remove()
            except Exception as exc:
                self._logger.debug("Failed to remove version listener: %s", exc)
            self._subscription = None
        with self._threads_lock:
            threads, self._threads = self._threads, []
        current = threading.current_thread()
        for thread in threads:
            if thread is not current and thread.is_alive():
                thread.join(timeout=self._join_timeout)
