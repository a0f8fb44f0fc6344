from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Tuple

from pos_app.errors import PosError
from pos_app.services.ports import SaleService
from pos_app.services.pricing import Cart, CartEvent, reduce

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaleDraft:
    """The sale being rung up: customer data plus the cart."""

    cart: Cart = field(default_factory=Cart)
    customer_name: str = ""
    customer_phone: str = ""


def apply(draft: SaleDraft, event: CartEvent) -> SaleDraft:
    return replace(draft, cart=reduce(draft.cart, event))


def with_customer(draft: SaleDraft, name: str, phone: str = "") -> SaleDraft:
    return replace(draft, customer_name=name.strip(), customer_phone=(phone or "").strip())


def validate_draft(draft: SaleDraft) -> Optional[str]:
    if not draft.customer_name:
        return "Falta el nombre del cliente"
    if draft.cart.is_empty:
        return "La venta no tiene productos"
    return None


def finalize_sale(store: SaleService, draft: SaleDraft) -> Tuple[bool, Any]:
    """
    Stores the customer, then the sale header with its line items as one
    atomic write.

    Returns (True, Receipt) or (False, error message). The draft is never
    touched; on failure the caller keeps it so the sale can be retried.
    """
    err = validate_draft(draft)
    if err:
        return False, err

    cart = draft.cart
    promotion_id = cart.promotion.id if cart.promotion else None

    try:
        customer_id = store.find_or_create_customer(draft.customer_name, draft.customer_phone)
        receipt = store.record_complete_sale(customer_id, cart.totals, cart.items, promotion_id)
    except PosError as e:
        logger.exception("sale could not be stored")
        return False, str(e)

    logger.info(
        "sale %s finalized: ticket=%s total=%s units=%s",
        receipt.sale_id,
        receipt.ticket_number,
        cart.totals.total,
        cart.units,
    )
    return True, receipt
