from jewelcatalog.domain.catalog_models import (
    CarouselItem,
    Category,
    Collection,
    CollectionKind,
    Document,
    Product,
    RefreshResult,
)


def _https(url):
    return url.replace("gs://", "https://cdn.example/")


def test_product_from_document_uses_first_image_and_defaults():
    doc = Document("doc-1", {"id": "p9", "name": "Kundan Set", "price": "1500",
                             "images": ["gs://a.png", "gs://b.png"]})

    product = Product.from_document(doc, _https)

    assert product.id == "p9"
    assert product.price == 1500.0
    assert product.currency == "Rs"
    assert product.image_url == "https://cdn.example/a.png"
    assert product.is_favorite is False


def test_product_falls_back_to_document_id_and_zero_price():
    product = Product.from_document(Document("p4", {"name": "Anklet", "price": None}))

    assert product.id == "p4"
    assert product.price == 0.0
    assert product.image_url == ""


def test_with_favorite_returns_same_instance_when_unchanged():
    product = Product(id="p1", name="Ring", price=1.0, image_url="")

    assert product.with_favorite(False) is product
    flagged = product.with_favorite(True)
    assert flagged.is_favorite is True
    assert product.is_favorite is False


def test_other_entities_map_their_remote_field_names():
    category = Category.from_document(Document("rings", {"name": "Rings", "image_url": "gs://r"}))
    collection = Collection.from_document(
        Document("bridal", {"name": "Bridal", "imageUrl": "gs://b", "description": "Sets"})
    )
    item = CarouselItem.from_document(
        Document("c1", {"imageUrl": "gs://c", "title": "T", "subtitle": "S", "buttonText": "Go"})
    )

    assert category == Category("rings", "Rings", "gs://r")
    assert collection.description == "Sets"
    assert item.button_text == "Go"


def test_collection_kind_accepts_plain_strings():
    assert CollectionKind("featured_products") is CollectionKind.FEATURED_PRODUCTS


def test_refresh_result_success_requires_token_and_no_failures():
    result = RefreshResult(refreshed=[CollectionKind.CATEGORIES], token="3")
    assert result.succeeded

    result.failed[CollectionKind.COLLECTIONS] = "offline"
    assert not result.succeeded
