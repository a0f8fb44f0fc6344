"""
Cart pricing.

A cart is an immutable value: every mutation returns a new Cart with its
totals already recomputed from the line items and the selected promotion.
Nothing here does I/O.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional, Tuple, Union

from pos_app.constants import (
    FREE_ITEM_THRESHOLD,
    PROMO_FIXED,
    PROMO_FREE_ITEM,
    PROMO_PERCENT,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def as_money(v: Union[Decimal, int, float, str, None]) -> Decimal:
    """Converts user/db input to Decimal without going through binary floats."""
    if v is None:
        return ZERO
    if isinstance(v, Decimal):
        return v
    if isinstance(v, float):
        return Decimal(repr(v))
    return Decimal(str(v).strip().replace(",", "."))


@dataclass(frozen=True)
class LineItem:
    variant_id: int
    unit_price: Decimal
    unit_cost: Decimal
    quantity: int = 1
    product_name: str = ""
    variant_name: str = ""
    category: str = ""

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def label(self) -> str:
        return f"{self.product_name} ({self.variant_name})" if self.variant_name else self.product_name


@dataclass(frozen=True)
class Promotion:
    kind: str
    value: Decimal
    free_item_threshold: Optional[int] = None
    id: Optional[int] = None
    name: str = ""
    description: str = ""
    active: bool = True
    starts_on: Optional[date] = None
    ends_on: Optional[date] = None

    @property
    def threshold(self) -> int:
        if self.free_item_threshold is None:
            return FREE_ITEM_THRESHOLD
        return self.free_item_threshold


@dataclass(frozen=True)
class PricedCart:
    subtotal: Decimal = ZERO
    discount: Decimal = ZERO
    total: Decimal = ZERO


@dataclass(frozen=True)
class Cart:
    items: Tuple[LineItem, ...] = ()
    promotion: Optional[Promotion] = None
    totals: PricedCart = field(default_factory=PricedCart)

    @property
    def units(self) -> int:
        return sum(it.quantity for it in self.items)

    @property
    def is_empty(self) -> bool:
        return not self.items

    def find(self, variant_id: int) -> Optional[LineItem]:
        for it in self.items:
            if it.variant_id == variant_id:
                return it
        return None


def compute_totals(items: Iterable[LineItem], promotion: Optional[Promotion] = None) -> PricedCart:
    items = tuple(items)
    subtotal = sum((it.unit_price * it.quantity for it in items), ZERO)

    discount = ZERO
    if promotion is not None:
        if promotion.kind == PROMO_PERCENT:
            discount = subtotal * (promotion.value / HUNDRED)
        elif promotion.kind == PROMO_FIXED:
            discount = promotion.value
        elif promotion.kind == PROMO_FREE_ITEM:
            units = sum(it.quantity for it in items)
            if items and units >= promotion.threshold:
                # the cheapest single unit goes for free
                discount = min(it.unit_price for it in items)

    discount = min(discount, subtotal)
    return PricedCart(subtotal=subtotal, discount=discount, total=subtotal - discount)


def make_cart(items: Iterable[LineItem] = (), promotion: Optional[Promotion] = None) -> Cart:
    items = tuple(items)
    return Cart(items=items, promotion=promotion, totals=compute_totals(items, promotion))


def add_item(cart: Cart, variant: Any) -> Cart:
    """
    `variant` is anything shaped like a catalog entry: variant_id, unit_price,
    unit_cost and optionally product_name / variant_name / category.
    """
    existing = cart.find(variant.variant_id)
    if existing is not None:
        items = tuple(
            replace(it, quantity=it.quantity + 1) if it.variant_id == variant.variant_id else it
            for it in cart.items
        )
    else:
        items = cart.items + (
            LineItem(
                variant_id=variant.variant_id,
                unit_price=as_money(variant.unit_price),
                unit_cost=as_money(variant.unit_cost),
                quantity=1,
                product_name=getattr(variant, "product_name", ""),
                variant_name=getattr(variant, "variant_name", ""),
                category=getattr(variant, "category", ""),
            ),
        )
    return make_cart(items, cart.promotion)


def remove_item(cart: Cart, variant_id: int) -> Cart:
    if cart.find(variant_id) is None:
        return cart
    return make_cart((it for it in cart.items if it.variant_id != variant_id), cart.promotion)


def set_promotion(cart: Cart, promotion: Optional[Promotion]) -> Cart:
    return make_cart(cart.items, promotion)


def clear_cart(cart: Cart) -> Cart:
    return Cart()


# ---------------- reducer ----------------

@dataclass(frozen=True)
class ItemAdded:
    variant: Any


@dataclass(frozen=True)
class ItemRemoved:
    variant_id: int


@dataclass(frozen=True)
class PromotionSelected:
    promotion: Optional[Promotion]


@dataclass(frozen=True)
class CartCleared:
    pass


CartEvent = Union[ItemAdded, ItemRemoved, PromotionSelected, CartCleared]


def reduce(cart: Cart, event: CartEvent) -> Cart:
    if isinstance(event, ItemAdded):
        return add_item(cart, event.variant)
    if isinstance(event, ItemRemoved):
        return remove_item(cart, event.variant_id)
    if isinstance(event, PromotionSelected):
        return set_promotion(cart, event.promotion)
    if isinstance(event, CartCleared):
        return clear_cart(cart)
    raise TypeError(f"unknown cart event: {event!r}")


def calc_margin(unit_price: Decimal, unit_cost: Decimal) -> Tuple[Decimal, Decimal]:
    """Returns (profit, margin %) for one unit; margin is 0 when the price is 0."""
    profit = unit_price - unit_cost
    if unit_price <= 0:
        return profit, ZERO
    return profit, profit / unit_price * HUNDRED
