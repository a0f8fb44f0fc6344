"""
Contracts of the data service the point of sale talks to.

Both `pos_app.db.memory.MemoryStore` and `pos_app.db.sqlite.SqliteStore`
implement all four protocols, so shells and services only depend on these.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

from pos_app.services.pricing import LineItem, PricedCart, Promotion


@dataclass(frozen=True)
class CatalogEntry:
    variant_id: int
    product_name: str
    variant_name: str
    category: str
    unit_price: Decimal
    unit_cost: Decimal
    description: str = ""
    category_color: str = ""


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    description: str = ""
    color: str = ""


@dataclass(frozen=True)
class NewVariant:
    name: str
    unit_cost: Decimal
    unit_price: Decimal


@dataclass(frozen=True)
class Customer:
    id: int
    name: str
    phone: str = ""


@dataclass(frozen=True)
class Receipt:
    sale_id: int
    ticket_number: str


@dataclass(frozen=True)
class SaleRecord:
    id: int
    ticket_number: str
    customer_name: str
    customer_phone: str
    created_at: datetime
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    promotion_id: Optional[int] = None
    items: List[LineItem] = field(default_factory=list)


@dataclass(frozen=True)
class DailyReport:
    day: date
    sales_count: int
    revenue: Decimal
    profit: Decimal


@dataclass(frozen=True)
class User:
    id: int
    email: str


@dataclass(frozen=True)
class Session:
    user: User
    token: str
    created_at: datetime


AuthCallback = Callable[[str, Optional[Session]], None]


class CatalogService(Protocol):
    def list_catalog_entries(self) -> List[CatalogEntry]: ...

    def list_by_category(self, category: str) -> List[CatalogEntry]: ...

    def search_catalog(self, term: str) -> List[CatalogEntry]: ...

    def get_catalog_entry(self, variant_id: int) -> CatalogEntry: ...

    def list_categories(self) -> List[Category]: ...

    def create_category(self, name: str, description: str = "", color: str = "") -> Category: ...

    def create_product(
        self, category_id: int, name: str, description: str, variants: Sequence[NewVariant]
    ) -> List[CatalogEntry]: ...

    def update_variant_prices(self, variant_id: int, unit_cost: Decimal, unit_price: Decimal) -> CatalogEntry: ...


class PromotionService(Protocol):
    def list_active_promotions(self) -> List[Promotion]: ...

    def list_promotions(self) -> List[Promotion]: ...

    def get_promotion(self, promotion_id: int) -> Promotion: ...

    def create_promotion(self, promotion: Promotion) -> Promotion: ...

    def update_promotion(self, promotion_id: int, **fields: Any) -> Promotion: ...

    def set_promotion_active(self, promotion_id: int, active: bool) -> Promotion: ...


class SaleService(Protocol):
    def find_or_create_customer(self, name: str, phone: str = "") -> int: ...

    def record_sale(
        self, customer_id: int, totals: PricedCart, promotion_id: Optional[int] = None
    ) -> Receipt: ...

    def record_sale_line_items(self, sale_id: int, items: Sequence[LineItem]) -> None: ...

    def record_complete_sale(
        self,
        customer_id: int,
        totals: PricedCart,
        items: Sequence[LineItem],
        promotion_id: Optional[int] = None,
    ) -> Receipt: ...

    def delete_sale(self, sale_id: int) -> None: ...

    def get_sale(self, sale_id: int) -> SaleRecord: ...

    def list_sales_for_day(self, day: date) -> List[SaleRecord]: ...

    def daily_report(self, day: date) -> DailyReport: ...


class IdentityService(Protocol):
    def sign_in(self, email: str, password: str) -> Session: ...

    def sign_out(self) -> None: ...

    def current_user(self) -> Optional[User]: ...

    def subscribe_to_auth_changes(self, callback: AuthCallback) -> Callable[[], None]: ...


PROMOTION_FIELDS: Dict[str, type] = {
    "kind": str,
    "value": Decimal,
    "free_item_threshold": int,
    "name": str,
    "description": str,
    "active": bool,
    "starts_on": date,
    "ends_on": date,
}
