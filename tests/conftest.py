"""Shared fixtures: in-memory and SQLite data services with a sample catalog."""

import pytest

from helpers import seed_sample
from pos_app.db.memory import MemoryStore
from pos_app.db.sqlite import SqliteStore
from pos_app.services import auth


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    monkeypatch.setattr(auth, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def memory_store():
    return MemoryStore()


@pytest.fixture
def sqlite_store(tmp_path):
    store = SqliteStore(str(tmp_path / "pos.db"))
    store.init_db()
    return store


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    s = SqliteStore(str(tmp_path / "pos.db"))
    s.init_db()
    return s


@pytest.fixture
def catalog(store):
    return seed_sample(store)
