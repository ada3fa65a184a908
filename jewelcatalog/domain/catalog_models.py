"""Catalog entities and the raw document type returned by the remote store."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

ImageUrlResolver = Callable[[str], str]


def _identity(url: str) -> str:
    return url


class CollectionKind(str, Enum):
    """The four catalog views kept in the local snapshot."""

    CATEGORIES = "categories"
    FEATURED_PRODUCTS = "featured_products"
    COLLECTIONS = "collections"
    CAROUSEL_ITEMS = "carousel_items"


@dataclass(frozen=True)
class Document:
    """A single remote document: its id plus a field mapping."""

    id: str
    fields: Mapping[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.fields.get(key, default)

    def get_str(self, key: str, default: str = "") -> str:
        value = self.fields.get(key)
        if value is None:
            return default
        return str(value)

    def get_float(self, key: str, default: float = 0.0) -> float:
        value = self.fields.get(key)
        try:
            return float(value)
        except (TypeError, ValueError):
            return default

    def get_list(self, key: str) -> List[Any]:
        value = self.fields.get(key)
        if isinstance(value, (list, tuple)):
            return list(value)
        return []


@dataclass(frozen=True)
class LocalVersionRecord:
    """Last version token applied locally and when it was applied (epoch ms)."""

    token: str = "0"
    applied_at: int = 0


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    image_url: str

    @classmethod
    def from_document(
        cls, doc: Document, resolve_image: ImageUrlResolver = _identity
    ) -> "Category":
        return cls(
            id=doc.id,
            name=doc.get_str("name"),
            image_url=resolve_image(doc.get_str("image_url")),
        )


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    price: float
    image_url: str
    currency: str = "Rs"
    is_favorite: bool = False
    category_id: str = ""
    material_id: str = ""
    material_type: str = ""
    stone: str = ""
    clarity: str = ""
    cut: str = ""
    description: str = ""

    def with_favorite(self, value: bool) -> "Product":
        """Return a copy with ``is_favorite`` set, or ``self`` when unchanged."""
        if self.is_favorite == bool(value):
            return self
        return replace(self, is_favorite=bool(value))

    @classmethod
    def from_document(
        cls, doc: Document, resolve_image: ImageUrlResolver = _identity
    ) -> "Product":
        images = doc.get_list("images")
        first_image = str(images[0]) if images else ""
        return cls(
            id=doc.get_str("id") or doc.id,
            name=doc.get_str("name"),
            price=doc.get_float("price"),
            currency=doc.get_str("currency", "Rs") or "Rs",
            image_url=resolve_image(first_image),
            category_id=doc.get_str("category_id"),
            material_id=doc.get_str("material_id"),
            material_type=doc.get_str("material_type"),
            stone=doc.get_str("stone"),
            clarity=doc.get_str("clarity"),
            cut=doc.get_str("cut"),
            description=doc.get_str("description"),
        )


@dataclass(frozen=True)
class Collection:
    id: str
    name: str
    image_url: str
    description: str = ""

    @classmethod
    def from_document(
        cls, doc: Document, resolve_image: ImageUrlResolver = _identity
    ) -> "Collection":
        return cls(
            id=doc.id,
            name=doc.get_str("name"),
            image_url=resolve_image(doc.get_str("imageUrl")),
            description=doc.get_str("description"),
        )


@dataclass(frozen=True)
class CarouselItem:
    id: str
    image_url: str
    title: str
    subtitle: str
    button_text: str

    @classmethod
    def from_document(
        cls, doc: Document, resolve_image: ImageUrlResolver = _identity
    ) -> "CarouselItem":
        return cls(
            id=doc.id,
            image_url=resolve_image(doc.get_str("imageUrl")),
            title=doc.get_str("title"),
            subtitle=doc.get_str("subtitle"),
            button_text=doc.get_str("buttonText"),
        )


@dataclass
class RefreshResult:
    """Outcome of one full catalog refresh."""

    refreshed: List[CollectionKind] = field(default_factory=list)
    failed: Dict[CollectionKind, str] = field(default_factory=dict)
    wishlist_refreshed: bool = False
    token: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return not self.failed and self.token is not None


__all__ = [
    "CarouselItem",
    "Category",
    "Collection",
    "CollectionKind",
    "Document",
    "ImageUrlResolver",
    "LocalVersionRecord",
    "Product",
    "RefreshResult",
]
