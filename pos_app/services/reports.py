from __future__ import annotations

from datetime import date
from typing import List, Optional

from pos_app.constants import PROMO_FIXED, PROMO_FREE_ITEM, PROMO_PERCENT, PROMOTION_KINDS
from pos_app.services.ports import CatalogEntry, DailyReport, SaleService
from pos_app.services.pricing import Cart, Promotion, calc_margin
from pos_app.utils.formatters import money, percent, rounded_totals


def report_for(store: SaleService, day: Optional[date] = None) -> DailyReport:
    return store.daily_report(day or date.today())


def report_text(report: DailyReport) -> str:
    return "\n".join(
        [
            f"<b>Reporte {report.day.isoformat()}</b>",
            f"Ventas: {report.sales_count}",
            f"Ingresos: {money(report.revenue)}",
            f"Ganancias: {money(report.profit)}",
        ]
    )


def promotion_label(promo: Promotion) -> str:
    if promo.kind == PROMO_PERCENT:
        value = f"{promo.value}%"
    elif promo.kind == PROMO_FIXED:
        value = money(promo.value)
    elif promo.kind == PROMO_FREE_ITEM:
        value = f"{promo.threshold}+ piezas: la más barata gratis"
    else:
        value = str(promo.value)
    kind = PROMOTION_KINDS.get(promo.kind, promo.kind)
    status = "" if promo.active else " (inactiva)"
    return f"#{promo.id} {promo.name} — {kind}: {value}{status}"


def catalog_text(entries: List[CatalogEntry]) -> str:
    if not entries:
        return "Catálogo vacío"
    lines: List[str] = []
    current = None
    for e in entries:
        if e.category != current:
            current = e.category
            lines.append(f"\n<b>{current}</b>")
        profit, margin = calc_margin(e.unit_price, e.unit_cost)
        lines.append(
            f"  • #{e.variant_id} {e.product_name} ({e.variant_name}) — {money(e.unit_price)}"
            f" | ganancia {money(profit)} ({percent(margin)})"
        )
    return "\n".join(lines).strip()


def cart_text(cart: Cart) -> str:
    if cart.is_empty:
        return "🧺 Carrito vacío"
    lines = ["<b>Carrito:</b>"]
    for it in cart.items:
        lines.append(f"  • #{it.variant_id} {it.label} × {it.quantity} = {money(it.line_total)}")
    lines.append("")
    if cart.promotion:
        lines.append(f"Promoción: {promotion_label(cart.promotion)}")
    totals = rounded_totals(cart.totals)
    lines.append(f"Subtotal: {money(totals.subtotal)}")
    lines.append(f"Descuento: -{money(totals.discount)}")
    lines.append(f"<b>Total: {money(totals.total)}</b>")
    return "\n".join(lines)
