from __future__ import annotations

import os

from reportlab.lib.pagesizes import A6
from reportlab.pdfgen import canvas

from pos_app.config import settings
from pos_app.services.ports import SaleRecord
from pos_app.utils.formatters import money, quantize_money


def generate_ticket_pdf(sale: SaleRecord, export_dir: str | None = None) -> str:
    export_dir = export_dir or settings.export_dir
    os.makedirs(export_dir, exist_ok=True)

    path = os.path.join(export_dir, f"ticket_{sale.ticket_number}.pdf")

    c = canvas.Canvas(path, pagesize=A6)
    w, h = A6
    left, right = 14, w - 14

    y = h - 28
    c.setFont("Helvetica-Bold", 12)
    c.drawString(left, y, f"TICKET #{sale.ticket_number}")
    y -= 16

    c.setFont("Helvetica", 8)
    c.drawString(left, y, f"Cliente: {sale.customer_name}")
    y -= 11
    if sale.customer_phone:
        c.drawString(left, y, f"Tel: {sale.customer_phone}")
        y -= 11
    c.drawString(left, y, f"Fecha: {sale.created_at:%Y-%m-%d %H:%M}")
    y -= 16

    # header
    c.setFont("Helvetica-Bold", 8)
    c.drawString(left, y, "Producto")
    c.drawRightString(190, y, "Cant")
    c.drawRightString(235, y, "Precio")
    c.drawRightString(right, y, "Total")
    y -= 6
    c.line(left, y, right, y)
    y -= 11

    c.setFont("Helvetica", 8)
    for it in sale.items:
        c.drawString(left, y, it.label[:32])
        c.drawRightString(190, y, str(it.quantity))
        c.drawRightString(235, y, f"{quantize_money(it.unit_price)}")
        c.drawRightString(right, y, f"{quantize_money(it.line_total)}")
        y -= 11
        if y < 60:
            c.showPage()
            y = h - 28
            c.setFont("Helvetica", 8)

    y -= 4
    c.line(left, y, right, y)
    y -= 12
    c.drawRightString(right, y, f"Subtotal: {quantize_money(sale.subtotal)}")
    y -= 11
    c.drawRightString(right, y, f"Descuento: -{quantize_money(sale.discount)}")
    y -= 14
    c.setFont("Helvetica-Bold", 10)
    c.drawRightString(right, y, f"TOTAL: {money(sale.total)}")

    c.save()
    return path
