from __future__ import annotations

from typing import Iterable

from jewelcatalog.persistence.document_store import InMemoryDocumentStore


def seed_catalog(
    store: InMemoryDocumentStore,
    *,
    version: str = "1",
    featured_ids: Iterable[str] = ("p1", "p2"),
) -> InMemoryDocumentStore:
    """Load a small jewellery catalog into ``store``."""
    store.seed("metadata", [("cache_control", {"version": version})])
    store.seed("categories", [
        ("rings", {"name": "Rings", "image_url": "gs://rings.png", "order": 2}),
        ("necklaces", {"name": "Necklaces", "image_url": "gs://necklaces.png", "order": 1}),
    ])
    store.seed("products", [
        ("p1", {"id": "p1", "name": "Gold Ring", "price": 1200.0, "currency": "Rs",
                "images": ["gs://p1.png"], "category_id": "rings"}),
        ("p2", {"id": "p2", "name": "Pearl Necklace", "price": 2400.5,
                "images": ["gs://p2.png"], "category_id": "necklaces"}),
        ("p3", {"id": "p3", "name": "Silver Band", "price": 300,
                "images": [], "category_id": "rings"}),
    ])
    store.seed("featured_products", [("featured_list", {"product_ids": list(featured_ids)})])
    store.seed("themed_collections", [
        ("bridal", {"name": "Bridal", "imageUrl": "gs://bridal.png",
                    "description": "Wedding sets", "order": 1}),
    ])
    store.seed("carousel_items", [
        ("summer", {"imageUrl": "gs://summer.png", "title": "Summer Sale",
                    "subtitle": "Up to 30% off", "buttonText": "Shop now"}),
    ])
    store.seed("category_products", [("rings", {"product_ids": ["p1", "p3"]})])
    return store
