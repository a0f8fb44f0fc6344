from __future__ import annotations

import logging
import os
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Iterator, List, Optional, Sequence

from pos_app.config import settings
from pos_app.constants import DEFAULT_CATEGORY_COLOR
from pos_app.errors import DataServiceError, NotFoundError, ValidationError
from pos_app.services.auth import AuthState, hash_password
from pos_app.services.ports import (
    PROMOTION_FIELDS,
    AuthCallback,
    CatalogEntry,
    Category,
    DailyReport,
    NewVariant,
    Receipt,
    SaleRecord,
    Session,
    User,
)
from pos_app.services.pricing import LineItem, PricedCart, Promotion, as_money
from pos_app.utils.formatters import quantize_money, rounded_totals

logger = logging.getLogger(__name__)

TS_FORMAT = "%Y-%m-%d %H:%M:%S"

CATALOG_SELECT = """
    SELECT v.id AS variant_id, p.name AS product_name, v.name AS variant_name,
           c.name AS category, v.unit_price, v.unit_cost,
           p.description, c.color AS category_color
    FROM variants v
    JOIN products p ON p.id = v.product_id
    JOIN categories c ON c.id = p.category_id
"""

SALE_SELECT = """
    SELECT s.id, s.ticket_number, s.created_at, s.subtotal, s.discount, s.total,
           s.promotion_id, cu.name AS customer_name, cu.phone AS customer_phone
    FROM sales s
    JOIN customers cu ON cu.id = s.customer_id
"""


def _now() -> str:
    return datetime.now().strftime(TS_FORMAT)


def _money_str(v: Any) -> str:
    return str(quantize_money(as_money(v)))


def _entry_from_row(r: sqlite3.Row) -> CatalogEntry:
    return CatalogEntry(
        variant_id=int(r["variant_id"]),
        product_name=r["product_name"],
        variant_name=r["variant_name"],
        category=r["category"],
        unit_price=Decimal(r["unit_price"]),
        unit_cost=Decimal(r["unit_cost"]),
        description=r["description"] or "",
        category_color=r["category_color"] or "",
    )


def _promotion_from_row(r: sqlite3.Row) -> Promotion:
    return Promotion(
        id=int(r["id"]),
        name=r["name"],
        kind=r["kind"],
        value=Decimal(r["value"]),
        free_item_threshold=r["free_item_threshold"],
        description=r["description"] or "",
        active=bool(r["active"]),
        starts_on=date.fromisoformat(r["starts_on"]) if r["starts_on"] else None,
        ends_on=date.fromisoformat(r["ends_on"]) if r["ends_on"] else None,
    )


def _line_from_row(r: sqlite3.Row) -> LineItem:
    return LineItem(
        variant_id=int(r["variant_id"]),
        unit_price=Decimal(r["unit_price"]),
        unit_cost=Decimal(r["unit_cost"]),
        quantity=int(r["quantity"]),
        product_name=r["product_name"],
        variant_name=r["variant_name"],
        category=r["category"],
    )


def _promotion_column(name: str, value: Any) -> Any:
    if name == "value":
        return str(as_money(value))
    if name == "active":
        return 1 if value else 0
    if name in ("starts_on", "ends_on"):
        return value.isoformat() if value else None
    return value


class SqliteStore:
    """Data service on a local SQLite file."""

    def __init__(self, db_path: str | None = None) -> None:
        self.db_path = db_path or settings.db_path
        self.auth = AuthState()

    def _connect(self) -> sqlite3.Connection:
        folder = os.path.dirname(self.db_path)
        if folder:
            os.makedirs(folder, exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _session(self) -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.exception("sqlite operation failed")
            raise DataServiceError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_db(self) -> None:
        with open(os.path.join(os.path.dirname(__file__), "schema.sql"), "r", encoding="utf-8") as f:
            script = f.read()
        with self._session() as conn:
            conn.executescript(script)

    # ---------------- catalog ----------------

    def list_catalog_entries(self) -> List[CatalogEntry]:
        with self._session() as conn:
            rows = conn.execute(CATALOG_SELECT + " ORDER BY c.name, p.name, v.id").fetchall()
        return [_entry_from_row(r) for r in rows]

    def list_by_category(self, category: str) -> List[CatalogEntry]:
        with self._session() as conn:
            rows = conn.execute(
                CATALOG_SELECT + " WHERE c.name = ? ORDER BY v.name",
                (category,),
            ).fetchall()
        return [_entry_from_row(r) for r in rows]

    def search_catalog(self, term: str) -> List[CatalogEntry]:
        like = f"%{term.strip()}%"
        with self._session() as conn:
            rows = conn.execute(
                CATALOG_SELECT
                + " WHERE p.name LIKE ? OR c.name LIKE ? OR p.description LIKE ?"
                + " ORDER BY c.name, p.name, v.id",
                (like, like, like),
            ).fetchall()
        return [_entry_from_row(r) for r in rows]

    def get_catalog_entry(self, variant_id: int) -> CatalogEntry:
        with self._session() as conn:
            row = conn.execute(CATALOG_SELECT + " WHERE v.id = ?", (variant_id,)).fetchone()
        if not row:
            raise NotFoundError(f"variante no encontrada: {variant_id}")
        return _entry_from_row(row)

    def list_categories(self) -> List[Category]:
        with self._session() as conn:
            rows = conn.execute(
                "SELECT id, name, description, color FROM categories WHERE active = 1 ORDER BY name"
            ).fetchall()
        return [Category(id=int(r["id"]), name=r["name"], description=r["description"], color=r["color"]) for r in rows]

    def create_category(self, name: str, description: str = "", color: str = "") -> Category:
        name = name.strip()
        description = description or f"Categoría para {name}"
        color = color or DEFAULT_CATEGORY_COLOR
        with self._session() as conn:
            cur = conn.execute(
                "INSERT INTO categories(name, description, color) VALUES(?,?,?)",
                (name, description, color),
            )
            cid = int(cur.lastrowid)
        return Category(id=cid, name=name, description=description, color=color)

    def create_product(
        self, category_id: int, name: str, description: str, variants: Sequence[NewVariant]
    ) -> List[CatalogEntry]:
        priced = [v for v in variants if as_money(v.unit_price) > 0]
        if not priced:
            raise ValidationError("at least one variant with a valid price is required")

        with self._session() as conn:
            if not conn.execute("SELECT 1 FROM categories WHERE id = ?", (category_id,)).fetchone():
                raise NotFoundError(f"categoría no encontrada: {category_id}")
            now = _now()
            cur = conn.execute(
                "INSERT INTO products(category_id, name, description, created_at) VALUES(?,?,?,?)",
                (category_id, name.strip(), description.strip(), now),
            )
            pid = int(cur.lastrowid)
            conn.executemany(
                "INSERT INTO variants(product_id, name, unit_cost, unit_price, updated_at) VALUES(?,?,?,?,?)",
                [(pid, v.name, _money_str(v.unit_cost), _money_str(v.unit_price), now) for v in priced],
            )
            rows = conn.execute(CATALOG_SELECT + " WHERE p.id = ? ORDER BY v.id", (pid,)).fetchall()
        return [_entry_from_row(r) for r in rows]

    def update_variant_prices(self, variant_id: int, unit_cost: Decimal, unit_price: Decimal) -> CatalogEntry:
        with self._session() as conn:
            cur = conn.execute(
                "UPDATE variants SET unit_cost = ?, unit_price = ?, updated_at = ? WHERE id = ?",
                (_money_str(unit_cost), _money_str(unit_price), _now(), variant_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"variante no encontrada: {variant_id}")
        return self.get_catalog_entry(variant_id)

    # ---------------- promotions ----------------

    def list_active_promotions(self) -> List[Promotion]:
        with self._session() as conn:
            rows = conn.execute("SELECT * FROM promotions WHERE active = 1 ORDER BY name").fetchall()
        return [_promotion_from_row(r) for r in rows]

    def list_promotions(self) -> List[Promotion]:
        with self._session() as conn:
            rows = conn.execute("SELECT * FROM promotions ORDER BY created_at DESC, id DESC").fetchall()
        return [_promotion_from_row(r) for r in rows]

    def get_promotion(self, promotion_id: int) -> Promotion:
        with self._session() as conn:
            row = conn.execute("SELECT * FROM promotions WHERE id = ?", (promotion_id,)).fetchone()
        if not row:
            raise NotFoundError(f"promoción no encontrada: {promotion_id}")
        return _promotion_from_row(row)

    def create_promotion(self, promotion: Promotion) -> Promotion:
        now = _now()
        with self._session() as conn:
            cur = conn.execute(
                """
                INSERT INTO promotions(name, kind, value, free_item_threshold, description,
                                       starts_on, ends_on, active, created_at, updated_at)
                VALUES(?,?,?,?,?,?,?,?,?,?)
                """,
                (
                    promotion.name,
                    promotion.kind,
                    _promotion_column("value", promotion.value),
                    promotion.free_item_threshold,
                    promotion.description,
                    _promotion_column("starts_on", promotion.starts_on),
                    _promotion_column("ends_on", promotion.ends_on),
                    _promotion_column("active", promotion.active),
                    now,
                    now,
                ),
            )
            pid = int(cur.lastrowid)
        logger.info("promotion %s created (%s)", pid, promotion.kind)
        return self.get_promotion(pid)

    def update_promotion(self, promotion_id: int, **fields: Any) -> Promotion:
        unknown = set(fields) - set(PROMOTION_FIELDS)
        if unknown:
            raise ValidationError(f"unknown promotion fields: {', '.join(sorted(unknown))}")
        if fields:
            # column names come from PROMOTION_FIELDS only
            cols = ", ".join(f"{k} = ?" for k in fields)
            params = [_promotion_column(k, v) for k, v in fields.items()]
            with self._session() as conn:
                cur = conn.execute(
                    f"UPDATE promotions SET {cols}, updated_at = ? WHERE id = ?",
                    (*params, _now(), promotion_id),
                )
                if cur.rowcount == 0:
                    raise NotFoundError(f"promoción no encontrada: {promotion_id}")
        return self.get_promotion(promotion_id)

    def set_promotion_active(self, promotion_id: int, active: bool) -> Promotion:
        promo = self.update_promotion(promotion_id, active=bool(active))
        logger.info("promotion %s active=%s", promotion_id, promo.active)
        return promo

    # ---------------- sales ----------------

    def find_or_create_customer(self, name: str, phone: str = "") -> int:
        phone = (phone or "").strip()
        with self._session() as conn:
            if phone:
                row = conn.execute(
                    "SELECT id FROM customers WHERE phone = ? ORDER BY id LIMIT 1", (phone,)
                ).fetchone()
                if row:
                    return int(row["id"])
            cur = conn.execute(
                "INSERT INTO customers(name, phone, created_at) VALUES(?,?,?)",
                (name.strip(), phone, _now()),
            )
            return int(cur.lastrowid)

    def _insert_sale(
        self, conn: sqlite3.Connection, customer_id: int, totals: PricedCart, promotion_id: Optional[int]
    ) -> Receipt:
        totals = rounded_totals(totals)
        cur = conn.execute(
            """
            INSERT INTO sales(customer_id, created_at, subtotal, discount, total, promotion_id)
            VALUES(?,?,?,?,?,?)
            """,
            (customer_id, _now(), str(totals.subtotal), str(totals.discount), str(totals.total), promotion_id),
        )
        sale_id = int(cur.lastrowid)
        ticket = f"{sale_id:06d}"
        conn.execute("UPDATE sales SET ticket_number = ? WHERE id = ?", (ticket, sale_id))
        return Receipt(sale_id=sale_id, ticket_number=ticket)

    def _insert_items(self, conn: sqlite3.Connection, sale_id: int, items: Sequence[LineItem]) -> None:
        conn.executemany(
            """
            INSERT INTO sale_items(sale_id, variant_id, product_name, variant_name, category,
                                   quantity, unit_price, unit_cost)
            VALUES(?,?,?,?,?,?,?,?)
            """,
            [
                (
                    sale_id,
                    it.variant_id,
                    it.product_name,
                    it.variant_name,
                    it.category,
                    it.quantity,
                    _money_str(it.unit_price),
                    _money_str(it.unit_cost),
                )
                for it in items
            ],
        )

    def record_sale(self, customer_id: int, totals: PricedCart, promotion_id: Optional[int] = None) -> Receipt:
        with self._session() as conn:
            return self._insert_sale(conn, customer_id, totals, promotion_id)

    def record_sale_line_items(self, sale_id: int, items: Sequence[LineItem]) -> None:
        with self._session() as conn:
            if not conn.execute("SELECT 1 FROM sales WHERE id = ?", (sale_id,)).fetchone():
                raise NotFoundError(f"venta no encontrada: {sale_id}")
            self._insert_items(conn, sale_id, items)

    def record_complete_sale(
        self,
        customer_id: int,
        totals: PricedCart,
        items: Sequence[LineItem],
        promotion_id: Optional[int] = None,
    ) -> Receipt:
        """Header and line items in one transaction: both are stored or neither is."""
        with self._session() as conn:
            receipt = self._insert_sale(conn, customer_id, totals, promotion_id)
            self._insert_items(conn, receipt.sale_id, items)
        return receipt

    def delete_sale(self, sale_id: int) -> None:
        with self._session() as conn:
            conn.execute("DELETE FROM sale_items WHERE sale_id = ?", (sale_id,))
            conn.execute("DELETE FROM sales WHERE id = ?", (sale_id,))

    def _sale_records(self, conn: sqlite3.Connection, rows: List[sqlite3.Row]) -> List[SaleRecord]:
        out = []
        for r in rows:
            items = conn.execute(
                "SELECT * FROM sale_items WHERE sale_id = ? ORDER BY id", (r["id"],)
            ).fetchall()
            out.append(
                SaleRecord(
                    id=int(r["id"]),
                    ticket_number=r["ticket_number"],
                    customer_name=r["customer_name"],
                    customer_phone=r["customer_phone"],
                    created_at=datetime.strptime(r["created_at"], TS_FORMAT),
                    subtotal=Decimal(r["subtotal"]),
                    discount=Decimal(r["discount"]),
                    total=Decimal(r["total"]),
                    promotion_id=r["promotion_id"],
                    items=[_line_from_row(i) for i in items],
                )
            )
        return out

    def get_sale(self, sale_id: int) -> SaleRecord:
        with self._session() as conn:
            row = conn.execute(SALE_SELECT + " WHERE s.id = ?", (sale_id,)).fetchone()
            if not row:
                raise NotFoundError(f"venta no encontrada: {sale_id}")
            return self._sale_records(conn, [row])[0]

    def list_sales_for_day(self, day: date) -> List[SaleRecord]:
        start = day.strftime("%Y-%m-%d")
        end = (day + timedelta(days=1)).strftime("%Y-%m-%d")
        with self._session() as conn:
            rows = conn.execute(
                SALE_SELECT + " WHERE s.created_at >= ? AND s.created_at < ? ORDER BY s.created_at DESC, s.id DESC",
                (start, end),
            ).fetchall()
            return self._sale_records(conn, rows)

    def daily_report(self, day: date) -> DailyReport:
        sales = self.list_sales_for_day(day)
        revenue = sum((s.total for s in sales), Decimal("0"))
        cost = sum((it.unit_cost * it.quantity for s in sales for it in s.items), Decimal("0"))
        return DailyReport(day=day, sales_count=len(sales), revenue=revenue, profit=revenue - cost)

    # ---------------- identity ----------------

    def register_user(self, email: str, password: str) -> User:
        email = email.strip().lower()
        with self._session() as conn:
            cur = conn.execute(
                "INSERT INTO users(email, password_hash, created_at) VALUES(?,?,?)",
                (email, hash_password(password), _now()),
            )
            return User(id=int(cur.lastrowid), email=email)

    def sign_in(self, email: str, password: str) -> Session:
        email = email.strip().lower()
        with self._session() as conn:
            row = conn.execute("SELECT id, password_hash FROM users WHERE email = ?", (email,)).fetchone()
        return self.auth.start(
            int(row["id"]) if row else 0,
            email,
            password,
            row["password_hash"] if row else None,
        )

    def sign_out(self) -> None:
        self.auth.end()

    def current_user(self) -> Optional[User]:
        return self.auth.session.user if self.auth.session else None

    def subscribe_to_auth_changes(self, callback: AuthCallback) -> Callable[[], None]:
        return self.auth.subscribe(callback)


_store: Optional[SqliteStore] = None


def get_store() -> SqliteStore:
    global _store
    if _store is None:
        _store = SqliteStore()
        _store.init_db()
    return _store
