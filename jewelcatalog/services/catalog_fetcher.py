"""Uncached catalog reads and wishlist writes against the remote store."""
from __future__ import annotations

import logging
import time
from typing import Callable, Dict, Iterable, List, Optional, Set

from jewelcatalog.domain.catalog_models import (
    CarouselItem,
    Category,
    Collection,
    CollectionKind,
    ImageUrlResolver,
    Product,
)
from jewelcatalog.exceptions import (
    DocumentNotFoundError,
    RemoteStoreError,
    WishlistWriteError,
)
from jewelcatalog.infrastructure.app_constants import (
    CAROUSEL_COLLECTION,
    CATEGORIES_COLLECTION,
    CATEGORY_PRODUCTS_COLLECTION,
    FEATURED_COLLECTION,
    FEATURED_LIST_DOCUMENT,
    ORDER_FIELD,
    PRODUCTS_COLLECTION,
    RECENTLY_VIEWED_SUBCOLLECTION,
    THEMED_COLLECTIONS_COLLECTION,
    USERS_COLLECTION,
    WISHLIST_SUBCOLLECTION,
)
from jewelcatalog.persistence.document_store import DocumentStore, chunked


def wishlist_path(user_id: str) -> str:
    return f"{USERS_COLLECTION}/{user_id}/{WISHLIST_SUBCOLLECTION}"


def recently_viewed_path(user_id: str) -> str:
    return f"{USERS_COLLECTION}/{user_id}/{RECENTLY_VIEWED_SUBCOLLECTION}"


class CatalogFetcher:
    """Plain fetcher: every call goes to the remote store.

    Read failures surface as :class:`RemoteStoreError`; callers decide
    whether to fall back to cached data.
    """

    def __init__(
        self,
        store: DocumentStore,
        *,
        image_url_resolver: Optional[ImageUrlResolver] = None,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._store = store
        self._resolve_image = image_url_resolver or (lambda url: url)
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)

    def fetch(self, kind: CollectionKind) -> list:
        """Fetch one of the four catalog views by kind."""
        handlers = {
            CollectionKind.CATEGORIES: self.fetch_categories,
            CollectionKind.FEATURED_PRODUCTS: self.fetch_featured_products,
            CollectionKind.COLLECTIONS: self.fetch_collections,
            CollectionKind.CAROUSEL_ITEMS: self.fetch_carousel_items,
        }
        return handlers[CollectionKind(kind)]()

    # --- Catalog views -----------------------------------------------------

    def fetch_categories(self) -> List[Category]:
        docs = self._store.query_collection(CATEGORIES_COLLECTION, order_by=ORDER_FIELD)
        categories = [Category.from_document(doc, self._resolve_image) for doc in docs]
        self._logger.debug("Fetched %s categories", len(categories))
        return categories

    def fetch_featured_products(self) -> List[Product]:
        featured = self._store.get_document(FEATURED_COLLECTION, FEATURED_LIST_DOCUMENT)
        product_ids = [str(pid) for pid in featured.get_list("product_ids")] if featured else []
        if not product_ids:
            self._logger.debug("No featured product IDs found")
            return []
        products = self.fetch_products_by_ids(product_ids)
        self._logger.debug("Fetched %s featured products", len(products))
        return products

    def fetch_collections(self) -> List[Collection]:
        docs = self._store.query_collection(THEMED_COLLECTIONS_COLLECTION, order_by=ORDER_FIELD)
        collections = [Collection.from_document(doc, self._resolve_image) for doc in docs]
        self._logger.debug("Fetched %s themed collections", len(collections))
        return collections

    def fetch_carousel_items(self) -> List[CarouselItem]:
        docs = self._store.query_collection(CAROUSEL_COLLECTION)
        items = [CarouselItem.from_document(doc, self._resolve_image) for doc in docs]
        self._logger.debug("Fetched %s carousel items", len(items))
        return items

    # --- Products ----------------------------------------------------------

    def fetch_products_by_ids(self, product_ids: Iterable[str]) -> List[Product]:
        """Look products up by id in batches, preserving the requested order."""
        ids = list(dict.fromkeys(product_ids))
        found: Dict[str, Product] = {}
        for batch in chunked(ids):
            for doc in self._store.query_where_in(PRODUCTS_COLLECTION, "id", batch):
                product = Product.from_document(doc, self._resolve_image)
                found[product.id] = product
        missing = [pid for pid in ids if pid not in found]
        if missing:
            self._logger.warning("Products not found: %s", ", ".join(missing))
        return [found[pid] for pid in ids if pid in found]

    def fetch_product(self, product_id: str) -> Product:
        doc = self._store.get_document(PRODUCTS_COLLECTION, product_id)
        if doc is None:
            raise DocumentNotFoundError(f"Product not found: {product_id}")
        return Product.from_document(doc, self._resolve_image)

    def fetch_products_by_category(
        self, category_id: str, exclude_product_id: Optional[str] = None
    ) -> List[Product]:
        doc = self._store.get_document(CATEGORY_PRODUCTS_COLLECTION, category_id)
        product_ids = [str(pid) for pid in doc.get_list("product_ids")] if doc else []
        if exclude_product_id is not None:
            product_ids = [pid for pid in product_ids if pid != exclude_product_id]
        if not product_ids:
            return []
        products = self.fetch_products_by_ids(product_ids)
        self._logger.debug("Fetched %s products for category %s", len(products), category_id)
        return products

    # --- Wishlist ----------------------------------------------------------

    def fetch_wishlist_ids(self, user_id: str) -> Set[str]:
        docs = self._store.query_collection(wishlist_path(user_id))
        return {doc.id for doc in docs}

    def is_in_wishlist(self, user_id: str, product_id: str) -> bool:
        return self._store.get_document(wishlist_path(user_id), product_id) is not None

    def add_to_wishlist(self, user_id: str, product_id: str) -> None:
        try:
            self._store.set_document(
                wishlist_path(user_id),
                product_id,
                {"timestamp": int(self._clock() * 1000)},
            )
        except Exception as exc:
            raise WishlistWriteError(
                f"Adding {product_id} to wishlist failed: {exc}"
            ) from exc
        self._logger.info("Added product %s to wishlist for user %s", product_id, user_id)

    def remove_from_wishlist(self, user_id: str, product_id: str) -> None:
        try:
            self._store.delete_document(wishlist_path(user_id), product_id)
        except Exception as exc:
            raise WishlistWriteError(
                f"Removing {product_id} from wishlist failed: {exc}"
            ) from exc
        self._logger.info("Removed product %s from wishlist for user %s", product_id, user_id)

    def record_product_view(self, user_id: str, product_id: str) -> bool:
        """Best-effort write of a recently-viewed marker."""
        try:
            self._store.set_document(
                recently_viewed_path(user_id),
                product_id,
                {"timestamp": int(self._clock() * 1000)},
            )
        except RemoteStoreError as exc:
            self._logger.warning("Error recording product view: %s", exc)
            return False
        self._logger.debug("Recorded product view for user %s, product %s", user_id, product_id)
        return True
