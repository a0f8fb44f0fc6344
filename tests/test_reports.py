from datetime import date
from decimal import Decimal

from helpers import entry, seed_sample
from pos_app.constants import PROMO_FIXED, PROMO_FREE_ITEM, PROMO_PERCENT
from pos_app.services.checkout import SaleDraft, apply, finalize_sale, with_customer
from pos_app.services.ports import DailyReport
from pos_app.services.pricing import Cart, ItemAdded, PricedCart, Promotion, add_item, set_promotion
from pos_app.services.reports import cart_text, catalog_text, promotion_label, report_for, report_text
from pos_app.services.ticket_pdf import generate_ticket_pdf
from pos_app.utils.formatters import money, quantize_money, rounded_totals


def test_money_rounds_half_up():
    assert money(Decimal("2.005")).startswith("2.01 ")
    assert money(Decimal("10")).startswith("10.00 ")


def test_report_text():
    text = report_text(DailyReport(day=date(2026, 5, 1), sales_count=3, revenue=Decimal("450"), profit=Decimal("120.5")))
    assert "2026-05-01" in text
    assert "Ventas: 3" in text
    assert "450.00" in text
    assert "120.50" in text


def test_report_for_defaults_to_today(memory_store):
    assert report_for(memory_store).day == date.today()


def test_promotion_labels():
    pct = Promotion(id=1, name="Verano", kind=PROMO_PERCENT, value=Decimal("15"))
    fixed = Promotion(id=2, name="Cincuenta", kind=PROMO_FIXED, value=Decimal("50"), active=False)
    free = Promotion(id=3, name="Regalo", kind=PROMO_FREE_ITEM, value=Decimal("1"))
    assert promotion_label(pct) == "#1 Verano — Descuento %: 15%"
    assert "50.00" in promotion_label(fixed)
    assert promotion_label(fixed).endswith("(inactiva)")
    assert "5+ piezas" in promotion_label(free)


def test_catalog_text_groups_by_category(memory_store):
    seed_sample(memory_store)
    text = catalog_text(memory_store.list_catalog_entries())
    assert text.index("<b>Pijamas</b>") < text.index("<b>Playeras</b>")
    assert "ganancia 40.00" in text
    assert "(40.0%)" in text
    assert catalog_text([]) == "Catálogo vacío"


def test_cart_text():
    assert "vacío" in cart_text(Cart())
    cart = add_item(add_item(Cart(), entry(1, "100", variant="Adulto")), entry(1, "100", variant="Adulto"))
    cart = set_promotion(cart, Promotion(id=9, name="10", kind=PROMO_PERCENT, value=Decimal("10")))
    text = cart_text(cart)
    assert "× 2" in text
    assert "Subtotal: 200.00" in text
    assert "Descuento: -20.00" in text
    assert "Total: 180.00" in text


def test_ticket_pdf(memory_store, tmp_path):
    catalog = seed_sample(memory_store)
    draft = with_customer(SaleDraft(), "Ana", "5551234")
    draft = apply(apply(draft, ItemAdded(catalog["adulto"])), ItemAdded(catalog["peque"]))
    ok, receipt = finalize_sale(memory_store, draft)
    assert ok

    path = generate_ticket_pdf(memory_store.get_sale(receipt.sale_id), export_dir=str(tmp_path))

    assert path.endswith(f"ticket_{receipt.ticket_number}.pdf")
    with open(path, "rb") as f:
        assert f.read(4) == b"%PDF"


def test_rounded_totals_derive_the_total():
    totals = rounded_totals(PricedCart(Decimal("0.25"), Decimal("0.125"), Decimal("0.125")))
    assert totals == PricedCart(Decimal("0.25"), Decimal("0.13"), Decimal("0.12"))
    assert quantize_money(Decimal("2.005")) == Decimal("2.01")


def test_cart_text_shows_consistent_totals():
    half = Promotion(id=1, name="Mitad", kind=PROMO_PERCENT, value=Decimal("50"))
    cart = set_promotion(add_item(Cart(), entry(1, "0.25")), half)
    text = cart_text(cart)
    assert "Descuento: -0.13" in text
    assert "Total: 0.12" in text
