"""Tests for finalizing a sale."""

from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from helpers import seed_sample
from pos_app.constants import PROMO_FIXED, PROMO_PERCENT
from pos_app.db.memory import MemoryStore
from pos_app.errors import DataServiceError
from pos_app.services.checkout import SaleDraft, apply, finalize_sale, validate_draft, with_customer
from pos_app.services.ports import NewVariant
from pos_app.services.pricing import ItemAdded, Promotion, PromotionSelected


class FlakyStore(MemoryStore):
    def __init__(self, fail_on: str) -> None:
        super().__init__()
        self.fail_on = fail_on

    def find_or_create_customer(self, *args, **kwargs):
        if self.fail_on == "customer":
            raise DataServiceError("connection lost")
        return super().find_or_create_customer(*args, **kwargs)

    def record_complete_sale(self, *args, **kwargs):
        if self.fail_on == "sale":
            raise DataServiceError("constraint violated")
        return super().record_complete_sale(*args, **kwargs)


def _draft(catalog, store) -> SaleDraft:
    promo = store.create_promotion(Promotion(name="$5", kind=PROMO_FIXED, value=Decimal("5")))
    draft = with_customer(SaleDraft(), "  Ana  ", " 5551234 ")
    draft = apply(draft, ItemAdded(catalog["adulto"]))
    draft = apply(draft, ItemAdded(catalog["bebe"]))
    return apply(draft, PromotionSelected(promo))


def test_with_customer_strips():
    draft = with_customer(SaleDraft(), "  Ana  ", " 555 ")
    assert (draft.customer_name, draft.customer_phone) == ("Ana", "555")


def test_validate_draft(memory_store):
    catalog = seed_sample(memory_store)
    assert validate_draft(SaleDraft()) == "Falta el nombre del cliente"
    assert validate_draft(with_customer(SaleDraft(), "Ana")) == "La venta no tiene productos"
    assert validate_draft(_draft(catalog, memory_store)) is None


def test_finalize_records_everything(memory_store):
    catalog = seed_sample(memory_store)
    draft = _draft(catalog, memory_store)

    ok, receipt = finalize_sale(memory_store, draft)

    assert ok
    sale = memory_store.get_sale(receipt.sale_id)
    assert sale.ticket_number == receipt.ticket_number
    assert sale.customer_phone == "5551234"
    assert sale.total == Decimal("105")
    assert sale.discount == Decimal("5")
    assert sale.promotion_id == draft.cart.promotion.id
    assert len(sale.items) == 2


def test_finalize_reuses_customer_by_phone(memory_store):
    catalog = seed_sample(memory_store)
    draft = _draft(catalog, memory_store)
    finalize_sale(memory_store, draft)
    finalize_sale(memory_store, draft)
    assert len(memory_store.customers) == 1


def test_finalize_rejects_invalid_draft(memory_store):
    ok, err = finalize_sale(memory_store, with_customer(SaleDraft(), "Ana"))
    assert not ok
    assert err == "La venta no tiene productos"
    assert memory_store.sales == {}


@pytest.mark.parametrize("fail_on", ["customer", "sale"])
def test_failed_finalize_keeps_cart_and_stores_nothing(fail_on):
    store = FlakyStore(fail_on)
    catalog = seed_sample(store)
    draft = _draft(catalog, store)
    before = draft

    ok, err = finalize_sale(store, draft)

    assert not ok
    assert err in ("connection lost", "constraint violated")
    assert draft == before
    assert draft.cart.totals.total == Decimal("105")
    assert store.sales == {}

    store.fail_on = ""
    ok, receipt = finalize_sale(store, draft)
    assert ok
    assert list(store.sales) == [receipt.sale_id]


def test_finalize_against_sqlite(sqlite_store):
    catalog = seed_sample(sqlite_store)
    ok, receipt = finalize_sale(sqlite_store, _draft(catalog, sqlite_store))
    assert ok
    assert sqlite_store.get_sale(receipt.sale_id).total == Decimal("105")


def test_sqlite_sale_is_all_or_nothing(sqlite_store, monkeypatch):
    catalog = seed_sample(sqlite_store)
    ghost = replace(catalog["bebe"], variant_id=999)
    draft = with_customer(SaleDraft(), "Ana")
    draft = apply(apply(draft, ItemAdded(catalog["adulto"])), ItemAdded(ghost))

    def no_void(sale_id):
        raise AssertionError("a failed sale must not need voiding")

    monkeypatch.setattr(sqlite_store, "delete_sale", no_void)
    ok, err = finalize_sale(sqlite_store, draft)

    assert not ok
    assert "FOREIGN KEY" in err
    assert sqlite_store.list_sales_for_day(date.today()) == []
    with sqlite_store._session() as conn:
        assert conn.execute("SELECT COUNT(*) FROM sales").fetchone()[0] == 0
        assert conn.execute("SELECT COUNT(*) FROM sale_items").fetchone()[0] == 0


def test_stored_totals_keep_total_equal_subtotal_minus_discount(sqlite_store):
    cat = sqlite_store.create_category("Varios")
    (cheap,) = sqlite_store.create_product(
        cat.id, "Botón", "", [NewVariant(name="Adulto", unit_cost=Decimal("0.10"), unit_price=Decimal("0.25"))]
    )
    half = sqlite_store.create_promotion(Promotion(name="Mitad", kind=PROMO_PERCENT, value=Decimal("50")))
    draft = with_customer(SaleDraft(), "Ana")
    draft = apply(apply(draft, ItemAdded(cheap)), PromotionSelected(half))
    assert draft.cart.totals.discount == Decimal("0.125")

    ok, receipt = finalize_sale(sqlite_store, draft)

    assert ok
    sale = sqlite_store.get_sale(receipt.sale_id)
    assert sale.discount == Decimal("0.13")
    assert sale.total == Decimal("0.12")
    assert sale.total == sale.subtotal - sale.discount
