import pytest

from jewelcatalog.exceptions import RemoteStoreError
from jewelcatalog.persistence.document_store import InMemoryDocumentStore
from jewelcatalog.services.version_oracle import RemoteVersionOracle


class _CountingStore(InMemoryDocumentStore):
    def __init__(self):
        super().__init__()
        self.reads = 0

    def get_document(self, collection, doc_id):
        self.reads += 1
        return super().get_document(collection, doc_id)


@pytest.fixture()
def store():
    store = _CountingStore()
    store.seed("metadata", [("cache_control", {"version": "3"})])
    return store


def test_reads_are_memoized_within_the_window(store, clock):
    oracle = RemoteVersionOracle(store, clock=clock)

    assert oracle.current_token() == "3"
    store.seed("metadata", [("cache_control", {"version": "4"})])
    clock.advance(299)

    assert oracle.current_token() == "3"
    assert store.reads == 1


def test_window_expiry_triggers_a_new_read(store, clock):
    oracle = RemoteVersionOracle(store, clock=clock)
    oracle.current_token()
    store.seed("metadata", [("cache_control", {"version": "4"})])
    clock.advance(300)

    assert oracle.current_token() == "4"
    assert store.reads == 2


def test_force_bypasses_the_window(store, clock):
    oracle = RemoteVersionOracle(store, clock=clock)
    oracle.current_token()
    store.seed("metadata", [("cache_control", {"version": "4"})])

    assert oracle.current_token(force=True) == "4"
    assert oracle.current_token() == "4"
    assert store.reads == 2


def test_missing_control_document_reads_as_zero(clock):
    oracle = RemoteVersionOracle(InMemoryDocumentStore(), clock=clock)

    assert oracle.current_token() == "0"


def test_failure_is_reported_instead_of_stale_token(store, clock):
    oracle = RemoteVersionOracle(store, clock=clock)
    oracle.current_token()
    clock.advance(301)
    store.online = False

    with pytest.raises(RemoteStoreError):
        oracle.current_token()


def test_unexpected_store_errors_are_wrapped(clock):
    class _Broken:
        def get_document(self, collection, doc_id):
            raise TimeoutError("deadline exceeded")

    oracle = RemoteVersionOracle(_Broken(), clock=clock)

    with pytest.raises(RemoteStoreError):
        oracle.current_token()


def test_subscription_delivers_changes_and_updates_memo(store, clock):
    oracle = RemoteVersionOracle(store, clock=clock)
    seen = []
    subscription = oracle.subscribe(seen.append)

    store.set_document("metadata", "cache_control", {"version": "5"})
    store.set_document("metadata", "cache_control", {"version": "5"})

    assert seen == ["5", "5"]
    assert oracle.current_token() == "5"
    assert store.reads == 0

    subscription.remove()
    store.set_document("metadata", "cache_control", {"version": "6"})
    assert seen == ["5", "5"]


def test_listener_errors_are_logged_not_raised(store, clock):
    oracle = RemoteVersionOracle(store, clock=clock)
    seen = []
    oracle.subscribe(seen.append)

    store.emit_error("metadata", "cache_control", RemoteStoreError("stream reset"))

    assert seen == []
