"""Per-user cache of wishlist membership used to annotate products."""
from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional, Tuple

from jewelcatalog.domain.catalog_models import Product
from jewelcatalog.services.catalog_fetcher import CatalogFetcher


class WishlistOverlayCache:
    """Map product ids to wishlist membership for exactly one user.

    Absent entries mean "not yet known": :meth:`is_member` resolves them with
    a point lookup instead of assuming ``False``.
    """

    def __init__(self, fetcher: CatalogFetcher, logger: Optional[logging.Logger] = None) -> None:
        self._fetcher = fetcher
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._user_id: Optional[str] = None
        self._members: Dict[str, bool] = {}
        # Local writes made while a bulk refresh is in flight, keyed by product id.
        self._write_seq = 0
        self._writes: Dict[str, Tuple[int, bool]] = {}
        self._active_refreshes: List[int] = []

    @property
    def user_id(self) -> Optional[str]:
        return self._user_id

    def bind_user(self, user_id: Optional[str]) -> None:
        """Scope the overlay to ``user_id``; a different user clears it."""
        with self._lock:
            self._bind_locked(user_id)

    def _bind_locked(self, user_id: Optional[str]) -> None:
        if user_id != self._user_id:
            if self._members:
                self._logger.debug("Wishlist user changed, dropping %s cached entries",
                                   len(self._members))
            self._members = {}
            self._writes = {}
            self._user_id = user_id

    def refresh(self, user_id: str) -> None:
        """Replace the mapping with the user's authoritative wishlist.

        Writes recorded through :meth:`set_member` after the bulk read started
        are re-applied on top of the fetched mapping.
        """
        with self._lock:
            self._bind_locked(user_id)
            started_at = self._write_seq
            self._active_refreshes.append(started_at)
        try:
            member_ids = self._fetcher.fetch_wishlist_ids(user_id)
            with self._lock:
                if self._user_id != user_id:
                    self._logger.debug("Wishlist user changed during refresh, discarding result")
                    return
                members = {product_id: True for product_id in member_ids}
                for product_id, (seq, value) in self._writes.items():
                    if seq > started_at:
                        members[product_id] = value
                self._members = members
        finally:
            with self._lock:
                self._active_refreshes.remove(started_at)
                if not self._active_refreshes:
                    self._writes = {}
        self._logger.debug("Wishlist cache refreshed with %s items", len(member_ids))

    def mark_known(self, product_ids: Iterable[str]) -> None:
        """Record ``False`` for ids the last bulk refresh did not return."""
        with self._lock:
            for product_id in product_ids:
                self._members.setdefault(product_id, False)

    def is_member(self, product_id: str) -> bool:
        with self._lock:
            user_id = self._user_id
            cached = self._members.get(product_id)
        if cached is not None:
            return cached
        if user_id is None:
            return False
        value = self._fetcher.is_in_wishlist(user_id, product_id)
        with self._lock:
            # Skip the fill if the user changed during the lookup.
            if self._user_id == user_id:
                self._members.setdefault(product_id, value)
        return value

    def set_member(self, product_id: str, value: bool) -> None:
        with self._lock:
            self._members[product_id] = bool(value)
            if self._active_refreshes:
                self._write_seq += 1
                self._writes[product_id] = (self._write_seq, bool(value))

    def annotate(self, products: Iterable[Product]) -> List[Product]:
        return [product.with_favorite(self.is_member(product.id)) for product in products]

    def snapshot(self) -> Dict[str, bool]:
        with self._lock:
            return dict(self._members)

    def clear(self) -> None:
        with self._lock:
            self._members = {}
            self._writes = {}
