from decimal import Decimal

from pos_app import seed
from pos_app.db.memory import MemoryStore
from pos_app.db.sqlite import SqliteStore


def test_seed_demo_catalog():
    store = MemoryStore()
    assert seed.seed_demo(store) == 8
    assert [c.name for c in store.list_categories()] == ["Pijamas", "Playeras"]
    assert {e.variant_name for e in store.list_catalog_entries()} == {"Bebé", "Peque", "Adulto"}
    assert len(store.list_active_promotions()) == 3


def test_main_creates_user(monkeypatch, tmp_path):
    store = SqliteStore(str(tmp_path / "pos.db"))
    store.init_db()
    monkeypatch.setattr(seed, "get_store", lambda: store)

    assert seed.main(["admin@tienda.mx", "secreto", "--demo"]) == 0
    assert store.sign_in("admin@tienda.mx", "secreto").user.email == "admin@tienda.mx"
    assert store.get_catalog_entry(1).unit_price == Decimal("120")

    # the same user cannot be registered twice
    assert seed.main(["admin@tienda.mx", "otro"]) == 1
