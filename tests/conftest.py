import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from jewelcatalog.persistence.document_store import InMemoryDocumentStore  # noqa: E402
from tests.factories import seed_catalog  # noqa: E402

def _coerce_bool(value, default):
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    if value is None:
        if isinstance(default, bool):
            return default
        return False
    return bool(value)

class _SettingsStub:
    """In-memory replacement for QSettings during tests."""

    NoError = 0
    AccessError = 1

    _data = {}
    _status = 0

    def __init__(self, org="JewelleryApp", app="JewelCatalog"):
        self._key = (org, app)
        self._store = _SettingsStub._data.setdefault(self._key, {})

    def value(self, key, default=None, type=None, **kwargs):  # noqa: A002 - signature mirrors QSettings
        if "defaultValue" in kwargs and default is None:
            default = kwargs["defaultValue"]
        val = self._store.get(key, default)
        if type is bool:
            return _coerce_bool(val, default)
        return val

    def setValue(self, key, value):
        self._store[key] = value

    def remove(self, key):
        self._store.pop(key, None)

    def sync(self):  # QSettings compatibility
        return True

    def status(self):
        return _SettingsStub._status

    @classmethod
    def fail_writes(cls, failing=True):
        cls._status = cls.AccessError if failing else cls.NoError

    @classmethod
    def clear(cls):
        cls._data.clear()
        cls._status = cls.NoError

class ImmediateThread:
    """Runs the thread target synchronously when ``start`` is called."""

    started = []

    def __init__(self, target=None, name=None, daemon=None, **kwargs):
        self._target = target
        self.name = name

    def start(self):
        ImmediateThread.started.append(self.name)
        if self._target:
            self._target()

    def is_alive(self):
        return False

    def join(self, timeout=None):
        return None

class FakeClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds

@pytest.fixture(scope="session")
def qt_app():
    os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
    from PyQt5.QtCore import QCoreApplication

    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    return app

@pytest.fixture()
def settings_stub(monkeypatch):
    _SettingsStub.clear()
    monkeypatch.setattr("jewelcatalog.infrastructure.settings.QSettings", _SettingsStub, raising=False)
    monkeypatch.setattr("jewelcatalog.persistence.version_store.QSettings", _SettingsStub, raising=False)
    yield _SettingsStub
    _SettingsStub.clear()

@pytest.fixture()
def inline_threads(monkeypatch):
    ImmediateThread.started = []
    monkeypatch.setattr(
        "jewelcatalog.services.catalog_cache.threading.Thread",
        ImmediateThread,
    )
    return ImmediateThread

@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def document_store():
    return seed_catalog(InMemoryDocumentStore())
