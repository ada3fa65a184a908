import logging

import pytest

from jewelcatalog.exceptions import VersionStoreError
from jewelcatalog.persistence.document_store import InMemoryDocumentStore
from jewelcatalog.persistence.version_store import VersionStore
from jewelcatalog.services.freshness import CacheFreshnessCoordinator
from jewelcatalog.services.version_oracle import RemoteVersionOracle


@pytest.fixture()
def store():
    store = InMemoryDocumentStore()
    store.seed("metadata", [("cache_control", {"version": "3"})])
    return store


def _coordinator(store, settings_stub, clock):
    version_store = VersionStore(settings_stub, clock=clock)
    oracle = RemoteVersionOracle(store, clock=clock)
    coordinator = CacheFreshnessCoordinator(
        version_store, oracle, logger=logging.getLogger("test_freshness")
    )
    return coordinator, version_store


def test_matching_tokens_do_not_need_refresh(store, settings_stub, clock):
    coordinator, version_store = _coordinator(store, settings_stub, clock)
    version_store.set("3")

    assert coordinator.should_refresh() is False


def test_newer_remote_token_needs_refresh(store, settings_stub, clock):
    coordinator, version_store = _coordinator(store, settings_stub, clock)
    version_store.set("3")
    store.seed("metadata", [("cache_control", {"version": "4"})])

    assert coordinator.should_refresh() is True


def test_repeated_checks_are_stable_within_memo_window(store, settings_stub, clock):
    coordinator, version_store = _coordinator(store, settings_stub, clock)
    version_store.set("3")

    results = [coordinator.should_refresh() for _ in range(5)]

    assert results == [False] * 5


def test_remote_failure_fails_open(store, settings_stub, clock):
    coordinator, version_store = _coordinator(store, settings_stub, clock)
    version_store.set("3")
    store.online = False

    assert coordinator.should_refresh() is True


def test_unreadable_local_store_counts_as_version_zero(store, clock):
    class _BrokenStore:
        def get(self):
            raise VersionStoreError("disk gone")

    oracle = RemoteVersionOracle(store, clock=clock)
    coordinator = CacheFreshnessCoordinator(_BrokenStore(), oracle)

    assert coordinator.local_token() == "0"
    assert coordinator.should_refresh() is True


def test_remote_changes_are_forwarded_until_close(store, settings_stub, clock):
    coordinator, _ = _coordinator(store, settings_stub, clock)
    seen = []
    coordinator.on_remote_change(seen.append)

    store.set_document("metadata", "cache_control", {"version": "4"})
    coordinator.close()
    store.set_document("metadata", "cache_control", {"version": "5"})

    assert seen == ["4"]
    assert store.listener_count("metadata", "cache_control") == 0
