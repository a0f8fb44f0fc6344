from decimal import ROUND_HALF_UP, Decimal

from pos_app.config import settings
from pos_app.services.pricing import PricedCart


def quantize_money(v: Decimal) -> Decimal:
    q = Decimal(1).scaleb(-settings.decimals)
    return Decimal(v).quantize(q, rounding=ROUND_HALF_UP)


def rounded_totals(totals: PricedCart) -> PricedCart:
    """Rounds subtotal and discount once; total is derived so it always equals subtotal - discount."""
    subtotal = quantize_money(totals.subtotal)
    discount = quantize_money(totals.discount)
    return PricedCart(subtotal=subtotal, discount=discount, total=subtotal - discount)


def money(v: Decimal) -> str:
    return f"{quantize_money(v)} {settings.currency}"


def percent(v: Decimal) -> str:
    return f"{Decimal(v).quantize(Decimal('0.1'), rounding=ROUND_HALF_UP)}%"
