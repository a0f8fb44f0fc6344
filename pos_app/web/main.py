from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import FileResponse, JSONResponse
from pydantic import AfterValidator, BaseModel, Field, field_validator

from pos_app.constants import PROMOTION_KINDS, VARIANTS
from pos_app.db.sqlite import get_store
from pos_app.errors import AuthError, DataServiceError, NotFoundError, ValidationError
from pos_app.services.checkout import SaleDraft, finalize_sale, validate_draft, with_customer
from pos_app.services.ports import NewVariant
from pos_app.services.pricing import Cart, LineItem, Promotion, calc_margin, make_cart
from pos_app.services.ticket_pdf import generate_ticket_pdf
from pos_app.utils.formatters import quantize_money, rounded_totals
from pos_app.utils.validators import require_positive_number

logger = logging.getLogger(__name__)

app = FastAPI(title="POS API")


def get_data_store():
    return get_store()


@app.exception_handler(NotFoundError)
def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
def _invalid(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content={"detail": str(exc)})


@app.exception_handler(AuthError)
def _unauthorized(request: Request, exc: AuthError) -> JSONResponse:
    return JSONResponse(status_code=401, content={"detail": str(exc)})


@app.exception_handler(DataServiceError)
def _unavailable(request: Request, exc: DataServiceError) -> JSONResponse:
    logger.error("data service error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


# ---------------- payloads ----------------

class LoginIn(BaseModel):
    email: str
    password: str


class CartLineIn(BaseModel):
    variant_id: int
    quantity: int = Field(1, ge=1)


class QuoteIn(BaseModel):
    items: List[CartLineIn] = []
    promotion_id: Optional[int] = None


class SaleIn(QuoteIn):
    customer_name: str
    customer_phone: str = ""


class VariantPricesIn(BaseModel):
    unit_cost: Decimal = Field(..., ge=0)
    unit_price: Decimal = Field(..., gt=0)


class NewVariantIn(BaseModel):
    unit_cost: Decimal = Field(Decimal("0"), ge=0)
    unit_price: Decimal = Decimal("0")
    active: bool = True


class ProductIn(BaseModel):
    name: str
    description: str = ""
    category_id: Optional[int] = None
    new_category: str = ""
    variants: Dict[str, NewVariantIn]


def _check_kind(v: str) -> str:
    if v not in PROMOTION_KINDS:
        raise ValueError(f"kind must be one of: {', '.join(PROMOTION_KINDS)}")
    return v


PromotionKind = Annotated[str, AfterValidator(_check_kind)]


class PromotionIn(BaseModel):
    name: str
    kind: PromotionKind
    value: Decimal
    free_item_threshold: Optional[int] = Field(None, ge=1)
    description: str = ""
    starts_on: Optional[date] = None
    ends_on: Optional[date] = None
    active: bool = True


class PromotionPatch(BaseModel):
    name: Optional[str] = None
    kind: Optional[PromotionKind] = None
    value: Optional[Decimal] = None
    free_item_threshold: Optional[int] = Field(None, ge=1)
    description: Optional[str] = None
    starts_on: Optional[date] = None
    ends_on: Optional[date] = None
    active: Optional[bool] = None

    @field_validator("name", "kind", "value", "active")
    @classmethod
    def _not_null(cls, v: Any) -> Any:
        if v is None:
            raise ValueError("may not be null")
        return v


class ActiveIn(BaseModel):
    active: bool


# ---------------- helpers ----------------

def _money(v: Decimal) -> str:
    return str(quantize_money(v))


def _entry_out(e) -> Dict[str, Any]:
    profit, margin = calc_margin(e.unit_price, e.unit_cost)
    return {
        "variant_id": e.variant_id,
        "product_name": e.product_name,
        "variant_name": e.variant_name,
        "category": e.category,
        "category_color": e.category_color,
        "description": e.description,
        "unit_price": _money(e.unit_price),
        "unit_cost": _money(e.unit_cost),
        "profit": _money(profit),
        "margin": f"{margin:.1f}",
    }


def _promotion_out(p: Promotion) -> Dict[str, Any]:
    return {
        "id": p.id,
        "name": p.name,
        "kind": p.kind,
        "value": str(p.value),
        "free_item_threshold": p.free_item_threshold,
        "description": p.description,
        "starts_on": p.starts_on.isoformat() if p.starts_on else None,
        "ends_on": p.ends_on.isoformat() if p.ends_on else None,
        "active": p.active,
    }


def _cart_out(cart: Cart) -> Dict[str, Any]:
    totals = rounded_totals(cart.totals)
    return {
        "items": [
            {
                "variant_id": it.variant_id,
                "label": it.label,
                "quantity": it.quantity,
                "unit_price": _money(it.unit_price),
                "line_total": _money(it.line_total),
            }
            for it in cart.items
        ],
        "promotion_id": cart.promotion.id if cart.promotion else None,
        "subtotal": str(totals.subtotal),
        "discount": str(totals.discount),
        "total": str(totals.total),
    }


def _build_cart(store, payload: QuoteIn) -> Cart:
    lines: Dict[int, LineItem] = {}
    for line in payload.items:
        if line.variant_id in lines:
            prev = lines[line.variant_id]
            lines[line.variant_id] = replace(prev, quantity=prev.quantity + line.quantity)
            continue
        e = store.get_catalog_entry(line.variant_id)
        lines[line.variant_id] = LineItem(
            variant_id=e.variant_id,
            unit_price=e.unit_price,
            unit_cost=e.unit_cost,
            quantity=line.quantity,
            product_name=e.product_name,
            variant_name=e.variant_name,
            category=e.category,
        )

    promo = None
    if payload.promotion_id is not None:
        promo = store.get_promotion(payload.promotion_id)
        if not promo.active:
            raise ValidationError("promotion is not active")
    return make_cart(lines.values(), promo)


# ---------------- auth ----------------

@app.post("/auth/login")
def login(payload: LoginIn, store=Depends(get_data_store)):
    session = store.sign_in(payload.email, payload.password)
    return {"email": session.user.email, "token": session.token}


@app.post("/auth/logout")
def logout(store=Depends(get_data_store)):
    store.sign_out()
    return {"ok": True}


@app.get("/auth/me")
def me(store=Depends(get_data_store)):
    user = store.current_user()
    if user is None:
        raise AuthError("not signed in")
    return {"id": user.id, "email": user.email}


# ---------------- catalog ----------------

@app.get("/catalog")
def catalog(category: Optional[str] = None, q: Optional[str] = None, store=Depends(get_data_store)):
    if q:
        rows = store.search_catalog(q)
    elif category:
        rows = store.list_by_category(category)
    else:
        rows = store.list_catalog_entries()
    return [_entry_out(e) for e in rows]


@app.get("/catalog/categories")
def categories(store=Depends(get_data_store)):
    return [{"id": c.id, "name": c.name, "color": c.color} for c in store.list_categories()]


@app.post("/catalog/products", status_code=201)
def create_product(payload: ProductIn, store=Depends(get_data_store)):
    category_id = payload.category_id
    if payload.new_category.strip():
        category_id = store.create_category(payload.new_category.strip()).id
    if not category_id:
        raise ValidationError("select a category or give a new one")

    variants = [
        NewVariant(name=VARIANTS.get(key, key), unit_cost=v.unit_cost, unit_price=v.unit_price)
        for key, v in payload.variants.items()
        if v.active
    ]
    created = store.create_product(category_id, payload.name, payload.description, variants)
    return [_entry_out(e) for e in created]


@app.patch("/catalog/variants/{variant_id}")
def update_variant(variant_id: int, payload: VariantPricesIn, store=Depends(get_data_store)):
    return _entry_out(store.update_variant_prices(variant_id, payload.unit_cost, payload.unit_price))


# ---------------- promotions ----------------

@app.get("/promotions")
def promotions(include_inactive: bool = Query(False, alias="all"), store=Depends(get_data_store)):
    rows = store.list_promotions() if include_inactive else store.list_active_promotions()
    return [_promotion_out(p) for p in rows]


@app.post("/promotions", status_code=201)
def create_promotion(payload: PromotionIn, store=Depends(get_data_store)):
    if not payload.name.strip():
        raise ValidationError("name is required")
    require_positive_number(payload.value, "value")
    promo = Promotion(**payload.model_dump())
    return _promotion_out(store.create_promotion(promo))


@app.patch("/promotions/{promotion_id}")
def update_promotion(promotion_id: int, payload: PromotionPatch, store=Depends(get_data_store)):
    fields = payload.model_dump(exclude_unset=True)
    if "name" in fields and not fields["name"].strip():
        raise ValidationError("name is required")
    if "value" in fields:
        require_positive_number(fields["value"], "value")
    return _promotion_out(store.update_promotion(promotion_id, **fields))


@app.post("/promotions/{promotion_id}/active")
def set_promotion_active(promotion_id: int, payload: ActiveIn, store=Depends(get_data_store)):
    return _promotion_out(store.set_promotion_active(promotion_id, payload.active))


# ---------------- sale ----------------

@app.post("/quote")
def quote(payload: QuoteIn, store=Depends(get_data_store)):
    return _cart_out(_build_cart(store, payload))


@app.post("/sales", status_code=201)
def create_sale(payload: SaleIn, store=Depends(get_data_store)):
    draft = with_customer(SaleDraft(cart=_build_cart(store, payload)), payload.customer_name, payload.customer_phone)
    err = validate_draft(draft)
    if err:
        raise ValidationError(err)
    ok, result = finalize_sale(store, draft)
    if not ok:
        raise DataServiceError(result)
    return {"sale_id": result.sale_id, "ticket_number": result.ticket_number, **_cart_out(draft.cart)}


@app.get("/sales")
def sales_of_day(day: Optional[date] = None, store=Depends(get_data_store)):
    rows = store.list_sales_for_day(day or date.today())
    return [
        {
            "id": s.id,
            "ticket_number": s.ticket_number,
            "customer_name": s.customer_name,
            "created_at": s.created_at.isoformat(),
            "total": _money(s.total),
        }
        for s in rows
    ]


@app.get("/sales/{sale_id}")
def sale_detail(sale_id: int, store=Depends(get_data_store)):
    s = store.get_sale(sale_id)
    return {
        "id": s.id,
        "ticket_number": s.ticket_number,
        "customer_name": s.customer_name,
        "customer_phone": s.customer_phone,
        "created_at": s.created_at.isoformat(),
        "promotion_id": s.promotion_id,
        "subtotal": _money(s.subtotal),
        "discount": _money(s.discount),
        "total": _money(s.total),
        "items": [
            {
                "variant_id": it.variant_id,
                "label": it.label,
                "quantity": it.quantity,
                "unit_price": _money(it.unit_price),
            }
            for it in s.items
        ],
    }


@app.get("/sales/{sale_id}/ticket", response_class=FileResponse)
def sale_ticket(sale_id: int, store=Depends(get_data_store)):
    path = generate_ticket_pdf(store.get_sale(sale_id))
    return FileResponse(path, filename=f"ticket_{sale_id}.pdf", media_type="application/pdf")


# ---------------- reports ----------------

@app.get("/reports/daily")
def daily_report(day: Optional[date] = None, store=Depends(get_data_store)):
    r = store.daily_report(day or date.today())
    return {
        "day": r.day.isoformat(),
        "sales_count": r.sales_count,
        "revenue": _money(r.revenue),
        "profit": _money(r.profit),
    }
