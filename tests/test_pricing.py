"""Tests for cart pricing and the cart reducer."""

from decimal import Decimal

import pytest

from helpers import entry
from pos_app.constants import PROMO_FIXED, PROMO_FREE_ITEM, PROMO_PERCENT
from pos_app.services.pricing import (
    Cart,
    CartCleared,
    ItemAdded,
    ItemRemoved,
    LineItem,
    PricedCart,
    Promotion,
    PromotionSelected,
    add_item,
    as_money,
    calc_margin,
    compute_totals,
    make_cart,
    reduce,
    remove_item,
    set_promotion,
)


def _line(variant_id: int, price: str, qty: int = 1) -> LineItem:
    return LineItem(variant_id=variant_id, unit_price=Decimal(price), unit_cost=Decimal("0"), quantity=qty)


def _promo(kind: str, value: str, **kw) -> Promotion:
    return Promotion(kind=kind, value=Decimal(value), **kw)


class TestComputeTotals:
    def test_no_promotion(self):
        totals = compute_totals([_line(1, "10", 2), _line(2, "5.50")])
        assert totals == PricedCart(Decimal("25.50"), Decimal("0"), Decimal("25.50"))

    def test_percent_off(self):
        totals = compute_totals([_line(1, "100")], _promo(PROMO_PERCENT, "15"))
        assert totals.subtotal == Decimal("100")
        assert totals.discount == Decimal("15")
        assert totals.total == Decimal("85")

    @pytest.mark.parametrize("value", ["0", "10", "33.3", "100", "150"])
    def test_percent_off_is_clamped_to_subtotal(self, value):
        items = [_line(1, "19.99", 3), _line(2, "7.25")]
        totals = compute_totals(items, _promo(PROMO_PERCENT, value))
        s = totals.subtotal
        assert totals.discount == min(s * Decimal(value) / 100, s)
        assert totals.total >= 0

    def test_fixed_amount_off(self):
        totals = compute_totals([_line(1, "80")], _promo(PROMO_FIXED, "50"))
        assert totals.discount == Decimal("50")
        assert totals.total == Decimal("30")

    def test_fixed_amount_larger_than_subtotal(self):
        totals = compute_totals([_line(1, "10", 3)], _promo(PROMO_FIXED, "50"))
        assert totals.subtotal == Decimal("30")
        assert totals.discount == Decimal("30")
        assert totals.total == Decimal("0")

    def test_free_item_with_five_units(self):
        items = [_line(1, "10", 3), _line(2, "5", 2)]
        totals = compute_totals(items, _promo(PROMO_FREE_ITEM, "1"))
        assert totals.subtotal == Decimal("40")
        assert totals.discount == Decimal("5")
        assert totals.total == Decimal("35")

    def test_free_item_below_threshold(self):
        items = [_line(1, "10", 2), _line(2, "5", 2)]
        totals = compute_totals(items, _promo(PROMO_FREE_ITEM, "1"))
        assert totals.discount == Decimal("0")
        assert totals.total == totals.subtotal

    def test_free_item_takes_cheapest_unit_price(self):
        items = [_line(1, "3", 1), _line(2, "50", 6)]
        totals = compute_totals(items, _promo(PROMO_FREE_ITEM, "1"))
        assert totals.discount == Decimal("3")

    def test_free_item_custom_threshold(self):
        items = [_line(1, "10", 2), _line(2, "5", 1)]
        assert compute_totals(items, _promo(PROMO_FREE_ITEM, "1", free_item_threshold=3)).discount == Decimal("5")
        assert compute_totals(items, _promo(PROMO_FREE_ITEM, "1", free_item_threshold=4)).discount == Decimal("0")

    def test_free_item_explicit_zero_threshold_is_kept(self):
        promo = _promo(PROMO_FREE_ITEM, "1", free_item_threshold=0)
        assert promo.threshold == 0
        assert _promo(PROMO_FREE_ITEM, "1").threshold == 5

    @pytest.mark.parametrize("kind", [PROMO_PERCENT, PROMO_FIXED, PROMO_FREE_ITEM])
    def test_empty_cart(self, kind):
        totals = compute_totals([], _promo(kind, "20"))
        assert totals == PricedCart(Decimal("0"), Decimal("0"), Decimal("0"))

    @pytest.mark.parametrize("kind", [PROMO_PERCENT, PROMO_FIXED, PROMO_FREE_ITEM])
    def test_zero_value_promotion(self, kind):
        totals = compute_totals([_line(1, "12.5", 2)], _promo(kind, "0"))
        assert totals.discount <= totals.subtotal
        assert totals.total >= 0

    def test_negative_value_is_accepted(self):
        totals = compute_totals([_line(1, "10")], _promo(PROMO_FIXED, "-5"))
        assert totals.discount == Decimal("-5")
        assert totals.total == Decimal("15")

    def test_unknown_kind_gives_no_discount(self):
        totals = compute_totals([_line(1, "10")], _promo("2x1", "1"))
        assert totals.discount == Decimal("0")

    def test_idempotent(self):
        items = [_line(1, "9.99", 4), _line(2, "0.01", 3)]
        promo = _promo(PROMO_PERCENT, "12.5")
        assert compute_totals(items, promo) == compute_totals(items, promo)

    def test_no_float_drift(self):
        cart = Cart()
        v = entry(1, "0.10")
        for _ in range(3):
            cart = add_item(cart, v)
        assert cart.totals.subtotal == Decimal("0.30")
        for _ in range(100):
            cart = remove_item(add_item(cart, entry(2, "0.07")), 2)
        assert cart.totals.total == Decimal("0.30")


class TestCartOperations:
    def test_add_new_variant_copies_catalog_prices(self):
        cart = add_item(Cart(), entry(7, "120", "60", name="Pijama", variant="Bebé"))
        (line,) = cart.items
        assert line.variant_id == 7
        assert line.quantity == 1
        assert line.unit_price == Decimal("120")
        assert line.unit_cost == Decimal("60")
        assert line.label == "Pijama (Bebé)"
        assert cart.totals.total == Decimal("120")

    def test_adding_same_variant_twice_aggregates(self):
        v = entry(1, "15")
        cart = add_item(add_item(Cart(), v), v)
        assert len(cart.items) == 1
        assert cart.items[0].quantity == 2
        assert cart.totals == compute_totals([_line(1, "15", 2)])

    def test_insertion_order_kept(self):
        cart = Cart()
        for vid in (3, 1, 2, 1):
            cart = add_item(cart, entry(vid, "1"))
        assert [it.variant_id for it in cart.items] == [3, 1, 2]

    def test_remove_drops_whole_line(self):
        v = entry(1, "15")
        cart = add_item(add_item(add_item(Cart(), v), v), entry(2, "5"))
        cart = remove_item(cart, 1)
        assert [it.variant_id for it in cart.items] == [2]
        assert cart.totals.subtotal == Decimal("5")

    def test_remove_unknown_is_noop(self):
        cart = add_item(Cart(), entry(1, "15"))
        assert remove_item(cart, 99) == cart

    def test_remove_then_add_resets_quantity(self):
        v = entry(1, "15")
        cart = add_item(add_item(add_item(Cart(), v), v), v)
        cart = add_item(remove_item(cart, 1), v)
        assert cart.items[0].quantity == 1

    def test_promotion_change_keeps_items(self):
        cart = add_item(add_item(Cart(), entry(1, "100")), entry(2, "50"))
        with_promo = set_promotion(cart, _promo(PROMO_PERCENT, "10"))
        assert with_promo.items == cart.items
        assert with_promo.totals.discount == Decimal("15")
        cleared = set_promotion(with_promo, None)
        assert cleared.items == cart.items
        assert cleared.totals == cart.totals

    def test_operations_do_not_mutate_input(self):
        cart = add_item(Cart(), entry(1, "10"))
        add_item(cart, entry(1, "10"))
        set_promotion(cart, _promo(PROMO_FIXED, "5"))
        assert cart.items[0].quantity == 1
        assert cart.promotion is None

    def test_promotion_applies_to_later_adds(self):
        cart = set_promotion(Cart(), _promo(PROMO_FREE_ITEM, "1"))
        for vid, price in [(1, "10"), (1, "10"), (1, "10"), (2, "5"), (2, "5")]:
            cart = add_item(cart, entry(vid, price))
        assert cart.units == 5
        assert cart.totals.discount == Decimal("5")


class TestReducer:
    def test_events(self):
        v = entry(1, "20")
        cart = reduce(Cart(), ItemAdded(v))
        cart = reduce(cart, ItemAdded(v))
        cart = reduce(cart, PromotionSelected(_promo(PROMO_FIXED, "5")))
        assert cart.totals.total == Decimal("35")
        cart = reduce(cart, ItemRemoved(1))
        assert cart.is_empty
        assert cart.totals.total == Decimal("0")
        assert reduce(cart, CartCleared()) == Cart()

    def test_unknown_event(self):
        with pytest.raises(TypeError):
            reduce(Cart(), "add")


def test_make_cart_derives_totals():
    cart = make_cart([_line(1, "10", 2)], _promo(PROMO_FIXED, "3"))
    assert cart.totals == PricedCart(Decimal("20"), Decimal("3"), Decimal("17"))


def test_as_money():
    assert as_money(0.1) == Decimal("0.1")
    assert as_money("12,50") == Decimal("12.50")
    assert as_money(None) == Decimal("0")


def test_margin_guards_zero_price():
    assert calc_margin(Decimal("0"), Decimal("5")) == (Decimal("-5"), Decimal("0"))
    profit, margin = calc_margin(Decimal("200"), Decimal("150"))
    assert profit == Decimal("50")
    assert margin == Decimal("25")
