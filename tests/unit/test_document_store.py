import pytest

from jewelcatalog.exceptions import RemoteStoreError
from jewelcatalog.persistence.document_store import (
    MAX_IN_QUERY_VALUES,
    InMemoryDocumentStore,
    chunked,
)


def test_chunked_splits_into_batches_of_ten():
    ids = [f"p{i}" for i in range(23)]

    batches = chunked(ids)

    assert [len(batch) for batch in batches] == [10, 10, 3]
    assert sum(batches, []) == ids


def test_chunked_rejects_non_positive_size():
    with pytest.raises(ValueError):
        chunked([1, 2], size=0)


def test_query_collection_orders_by_field(document_store):
    docs = document_store.query_collection("categories", order_by="order")

    assert [doc.id for doc in docs] == ["necklaces", "rings"]


def test_query_where_in_enforces_the_value_cap(document_store):
    with pytest.raises(ValueError):
        document_store.query_where_in("products", "id", [str(i) for i in range(MAX_IN_QUERY_VALUES + 1)])


def test_query_where_in_matches_field_values(document_store):
    docs = document_store.query_where_in("products", "id", ["p3", "p1", "missing"])

    assert sorted(doc.id for doc in docs) == ["p1", "p3"]


def test_returned_documents_are_copies(document_store):
    doc = document_store.get_document("featured_products", "featured_list")
    doc.fields["product_ids"].append("p3")

    again = document_store.get_document("featured_products", "featured_list")

    assert again.get_list("product_ids") == ["p1", "p2"]


def test_offline_store_raises_remote_error(document_store):
    document_store.online = False

    with pytest.raises(RemoteStoreError):
        document_store.query_collection("categories")
    with pytest.raises(RemoteStoreError):
        document_store.set_document("users/u1/wishlist", "p1", {})


def test_failing_collection_only_affects_that_collection(document_store):
    document_store.fail_collection("themed_collections")

    with pytest.raises(RemoteStoreError):
        document_store.query_collection("themed_collections")
    assert document_store.query_collection("carousel_items")

    document_store.heal("themed_collections")
    assert document_store.query_collection("themed_collections")


def test_subscribers_see_writes_and_deletes_until_removed():
    store = InMemoryDocumentStore()
    seen = []
    registration = store.subscribe("metadata", "cache_control",
                                   lambda doc, err: seen.append(doc and doc.get("version")))

    store.set_document("metadata", "cache_control", {"version": "2"})
    store.delete_document("metadata", "cache_control")
    registration.remove()
    store.set_document("metadata", "cache_control", {"version": "3"})

    assert seen == ["2", None]
    assert store.listener_count("metadata", "cache_control") == 0
    assert registration.active is False


def test_listener_errors_do_not_break_writes():
    store = InMemoryDocumentStore()

    def _boom(doc, err):
        raise RuntimeError("listener bug")

    store.subscribe("metadata", "cache_control", _boom)
    store.set_document("metadata", "cache_control", {"version": "2"})

    assert store.get_document("metadata", "cache_control").get("version") == "2"
