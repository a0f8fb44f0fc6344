"""In-memory data service. Same contracts as the SQLite store, no persistence."""
from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence

from pos_app.constants import DEFAULT_CATEGORY_COLOR
from pos_app.errors import DataServiceError, NotFoundError, ValidationError
from pos_app.services.auth import AuthState, hash_password
from pos_app.services.ports import (
    PROMOTION_FIELDS,
    AuthCallback,
    CatalogEntry,
    Category,
    Customer,
    DailyReport,
    NewVariant,
    Receipt,
    SaleRecord,
    Session,
    User,
)
from pos_app.services.pricing import LineItem, PricedCart, Promotion, as_money
from pos_app.utils.formatters import rounded_totals


class MemoryStore:
    def __init__(self) -> None:
        self.categories: Dict[int, Category] = {}
        self.products: Dict[int, Dict[str, Any]] = {}
        self.variants: Dict[int, Dict[str, Any]] = {}
        self.promotions: Dict[int, Promotion] = {}
        self.promotion_created: Dict[int, datetime] = {}
        self.customers: Dict[int, Customer] = {}
        self.sales: Dict[int, Dict[str, Any]] = {}
        self.sale_items: Dict[int, List[LineItem]] = {}
        self.users: Dict[str, Dict[str, Any]] = {}
        self.auth = AuthState()
        self._ids: Dict[str, int] = {}

    def _next_id(self, table: str) -> int:
        self._ids[table] = self._ids.get(table, 0) + 1
        return self._ids[table]

    # ---------------- catalog ----------------

    def _entry(self, variant_id: int) -> CatalogEntry:
        v = self.variants[variant_id]
        p = self.products[v["product_id"]]
        c = self.categories[p["category_id"]]
        return CatalogEntry(
            variant_id=variant_id,
            product_name=p["name"],
            variant_name=v["name"],
            category=c.name,
            unit_price=v["unit_price"],
            unit_cost=v["unit_cost"],
            description=p["description"],
            category_color=c.color,
        )

    def list_catalog_entries(self) -> List[CatalogEntry]:
        rows = [self._entry(vid) for vid in self.variants]
        return sorted(rows, key=lambda e: (e.category, e.product_name, e.variant_id))

    def list_by_category(self, category: str) -> List[CatalogEntry]:
        rows = [e for e in self.list_catalog_entries() if e.category == category]
        return sorted(rows, key=lambda e: e.variant_name)

    def search_catalog(self, term: str) -> List[CatalogEntry]:
        t = term.strip().lower()
        return [
            e
            for e in self.list_catalog_entries()
            if t in e.product_name.lower() or t in e.category.lower() or t in e.description.lower()
        ]

    def get_catalog_entry(self, variant_id: int) -> CatalogEntry:
        if variant_id not in self.variants:
            raise NotFoundError(f"variante no encontrada: {variant_id}")
        return self._entry(variant_id)

    def list_categories(self) -> List[Category]:
        return sorted(self.categories.values(), key=lambda c: c.name)

    def create_category(self, name: str, description: str = "", color: str = "") -> Category:
        name = name.strip()
        if any(c.name == name for c in self.categories.values()):
            raise DataServiceError(f"la categoría ya existe: {name}")
        cat = Category(
            id=self._next_id("categories"),
            name=name,
            description=description or f"Categoría para {name}",
            color=color or DEFAULT_CATEGORY_COLOR,
        )
        self.categories[cat.id] = cat
        return cat

    def create_product(
        self, category_id: int, name: str, description: str, variants: Sequence[NewVariant]
    ) -> List[CatalogEntry]:
        if category_id not in self.categories:
            raise NotFoundError(f"categoría no encontrada: {category_id}")
        priced = [v for v in variants if v.unit_price > 0]
        if not priced:
            raise ValidationError("at least one variant with a valid price is required")

        pid = self._next_id("products")
        self.products[pid] = {"category_id": category_id, "name": name.strip(), "description": description.strip()}
        created = []
        for v in priced:
            vid = self._next_id("variants")
            self.variants[vid] = {
                "product_id": pid,
                "name": v.name,
                "unit_cost": as_money(v.unit_cost),
                "unit_price": as_money(v.unit_price),
            }
            created.append(self._entry(vid))
        return created

    def update_variant_prices(self, variant_id: int, unit_cost: Decimal, unit_price: Decimal) -> CatalogEntry:
        if variant_id not in self.variants:
            raise NotFoundError(f"variante no encontrada: {variant_id}")
        self.variants[variant_id].update(unit_cost=as_money(unit_cost), unit_price=as_money(unit_price))
        return self._entry(variant_id)

    # ---------------- promotions ----------------

    def list_active_promotions(self) -> List[Promotion]:
        return sorted((p for p in self.promotions.values() if p.active), key=lambda p: p.name)

    def list_promotions(self) -> List[Promotion]:
        return sorted(self.promotions.values(), key=lambda p: (self.promotion_created[p.id], p.id), reverse=True)

    def get_promotion(self, promotion_id: int) -> Promotion:
        if promotion_id not in self.promotions:
            raise NotFoundError(f"promoción no encontrada: {promotion_id}")
        return self.promotions[promotion_id]

    def create_promotion(self, promotion: Promotion) -> Promotion:
        promo = replace(promotion, id=self._next_id("promotions"), value=as_money(promotion.value))
        self.promotions[promo.id] = promo
        self.promotion_created[promo.id] = datetime.now()
        return promo

    def update_promotion(self, promotion_id: int, **fields: Any) -> Promotion:
        unknown = set(fields) - set(PROMOTION_FIELDS)
        if unknown:
            raise ValidationError(f"unknown promotion fields: {', '.join(sorted(unknown))}")
        if "value" in fields:
            fields["value"] = as_money(fields["value"])
        promo = replace(self.get_promotion(promotion_id), **fields)
        self.promotions[promotion_id] = promo
        return promo

    def set_promotion_active(self, promotion_id: int, active: bool) -> Promotion:
        return self.update_promotion(promotion_id, active=bool(active))

    # ---------------- sales ----------------

    def find_or_create_customer(self, name: str, phone: str = "") -> int:
        phone = (phone or "").strip()
        if phone:
            for c in self.customers.values():
                if c.phone == phone:
                    return c.id
        cid = self._next_id("customers")
        self.customers[cid] = Customer(id=cid, name=name.strip(), phone=phone)
        return cid

    def record_sale(self, customer_id: int, totals: PricedCart, promotion_id: Optional[int] = None) -> Receipt:
        if customer_id not in self.customers:
            raise NotFoundError(f"cliente no encontrado: {customer_id}")
        totals = rounded_totals(totals)
        sid = self._next_id("sales")
        ticket = f"{sid:06d}"
        self.sales[sid] = {
            "customer_id": customer_id,
            "ticket_number": ticket,
            "created_at": datetime.now(),
            "subtotal": totals.subtotal,
            "discount": totals.discount,
            "total": totals.total,
            "promotion_id": promotion_id,
        }
        self.sale_items[sid] = []
        return Receipt(sale_id=sid, ticket_number=ticket)

    def record_sale_line_items(self, sale_id: int, items: Sequence[LineItem]) -> None:
        if sale_id not in self.sales:
            raise NotFoundError(f"venta no encontrada: {sale_id}")
        self.sale_items[sale_id].extend(items)

    def record_complete_sale(
        self,
        customer_id: int,
        totals: PricedCart,
        items: Sequence[LineItem],
        promotion_id: Optional[int] = None,
    ) -> Receipt:
        missing = [it.variant_id for it in items if it.variant_id not in self.variants]
        if missing:
            raise NotFoundError(f"variante no encontrada: {missing[0]}")
        receipt = self.record_sale(customer_id, totals, promotion_id)
        self.sale_items[receipt.sale_id].extend(items)
        return receipt

    def delete_sale(self, sale_id: int) -> None:
        self.sales.pop(sale_id, None)
        self.sale_items.pop(sale_id, None)

    def _record(self, sale_id: int) -> SaleRecord:
        s = self.sales[sale_id]
        c = self.customers[s["customer_id"]]
        return SaleRecord(
            id=sale_id,
            ticket_number=s["ticket_number"],
            customer_name=c.name,
            customer_phone=c.phone,
            created_at=s["created_at"],
            subtotal=s["subtotal"],
            discount=s["discount"],
            total=s["total"],
            promotion_id=s["promotion_id"],
            items=list(self.sale_items[sale_id]),
        )

    def get_sale(self, sale_id: int) -> SaleRecord:
        if sale_id not in self.sales:
            raise NotFoundError(f"venta no encontrada: {sale_id}")
        return self._record(sale_id)

    def list_sales_for_day(self, day: date) -> List[SaleRecord]:
        rows = [self._record(sid) for sid, s in self.sales.items() if s["created_at"].date() == day]
        return sorted(rows, key=lambda r: r.created_at, reverse=True)

    def daily_report(self, day: date) -> DailyReport:
        sales = self.list_sales_for_day(day)
        revenue = sum((s.total for s in sales), Decimal("0"))
        cost = sum((it.unit_cost * it.quantity for s in sales for it in s.items), Decimal("0"))
        return DailyReport(day=day, sales_count=len(sales), revenue=revenue, profit=revenue - cost)

    # ---------------- identity ----------------

    def register_user(self, email: str, password: str) -> User:
        email = email.strip().lower()
        if email in self.users:
            raise DataServiceError(f"el usuario ya existe: {email}")
        uid = self._next_id("users")
        self.users[email] = {"id": uid, "password_hash": hash_password(password)}
        return User(id=uid, email=email)

    def sign_in(self, email: str, password: str) -> Session:
        email = email.strip().lower()
        row = self.users.get(email)
        return self.auth.start(row["id"] if row else 0, email, password, row["password_hash"] if row else None)

    def sign_out(self) -> None:
        self.auth.end()

    def current_user(self) -> Optional[User]:
        return self.auth.session.user if self.auth.session else None

    def subscribe_to_auth_changes(self, callback: AuthCallback) -> Callable[[], None]:
        return self.auth.subscribe(callback)
