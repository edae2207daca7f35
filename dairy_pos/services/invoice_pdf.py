# ==============================================================================
# RENDER DE FACTURA EN PDF
# ==============================================================================
# Diseño fijo sobre A4 con el canvas de reportlab. Las coordenadas se
# expresan en mm desde el borde superior (como en papel) y se convierten al
# sistema de reportlab (origen abajo a la izquierda) en _Page.
#
# Columnas: Item 14mm | Qty 120mm | Price 140mm | Total 170mm
# Si una fila no cabe sobre el margen inferior se abre una página nueva y se
# repite la cabecera de la tabla.
# ==============================================================================

import io

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen import canvas

from dairy_pos.models import Bill, BillStatus, ShopProfile
from dairy_pos.services.formatting import pdf_currency, format_date, format_qty


FONT = 'Helvetica'
FONT_BOLD = 'Helvetica-Bold'

LINE_HEIGHT = 7      # mm
ROW_HEIGHT = 6       # mm
TOP_MARGIN = 14      # mm
BOTTOM_MARGIN = 20   # mm

COL_ITEM = 14
COL_QTY = 120
COL_PRICE = 140
COL_TOTAL = 170
RULE_END = 195


class _Page:
    """Canvas con coordenadas en mm medidas desde arriba."""

    def __init__(self, buffer):
        self.c = canvas.Canvas(buffer, pagesize=A4)
        self.height_mm = A4[1] / mm
        self.y = TOP_MARGIN

    def text(self, value, x, size=10, bold=False):
        self.c.setFont(FONT_BOLD if bold else FONT, size)
        self.c.drawString(x * mm, (self.height_mm - self.y) * mm, str(value))

    def line(self, x1, x2):
        self.c.line(x1 * mm, (self.height_mm - self.y) * mm, x2 * mm, (self.height_mm - self.y) * mm)

    def fits(self, height):
        return self.y + height <= self.height_mm - BOTTOM_MARGIN

    def new_page(self):
        self.c.showPage()
        self.y = TOP_MARGIN


def _fit(text: str, width_mm: float, size: int) -> str:
    """Recorta el texto con "..." para que no invada la siguiente columna."""
    if stringWidth(text, FONT, size) <= width_mm * mm:
        return text
    while text and stringWidth(text + '...', FONT, size) > width_mm * mm:
        text = text[:-1]
    return text + '...'


def _table_header(page: _Page) -> None:
    page.text('Item', COL_ITEM, 11, bold=True)
    page.text('Qty', COL_QTY, 11, bold=True)
    page.text('Price', COL_PRICE, 11, bold=True)
    page.text('Total', COL_TOTAL, 11, bold=True)
    page.y += 2
    page.line(COL_ITEM, RULE_END)
    page.y += 6


def gen_pdf(bill: Bill, shop: ShopProfile) -> bytes:
    """
    Genera el PDF de una factura.

    Args:
        bill: Factura
        shop: Perfil de la tienda (cabecera)

    Returns:
        Bytes del documento PDF
    """
    buffer = io.BytesIO()
    page = _Page(buffer)
    page.c.setTitle(f"Invoice {bill.invoice_no}")
    page.c.setAuthor(shop.name)

    # Cabecera de la tienda
    page.text(shop.name, COL_ITEM, 16, bold=True)
    page.y += LINE_HEIGHT
    page.text(shop.addr, COL_ITEM, 10)
    page.y += LINE_HEIGHT
    page.text(f"Phone: {shop.phone}", COL_ITEM, 10)
    page.y += LINE_HEIGHT + 2

    # Datos de la factura
    page.text(f"Invoice: {bill.invoice_no}", COL_ITEM, 12)
    page.text(f"Date: {format_date(bill.created_at, with_time=True)}", COL_PRICE, 12)
    page.y += LINE_HEIGHT
    status = bill.status.value
    if bill.status == BillStatus.PENDING and bill.due_date:
        status += f" (Due: {format_date(bill.due_date)})"
    page.text(f"Customer: {bill.customer.name or '-'}", COL_ITEM, 12)
    page.text(f"Status: {status}", COL_PRICE, 12)
    page.y += LINE_HEIGHT + 2

    _table_header(page)

    for item in bill.items:
        if not page.fits(ROW_HEIGHT):
            page.new_page()
            _table_header(page)
        page.text(_fit(item.name, COL_QTY - COL_ITEM - 2, 11), COL_ITEM, 11)
        page.text(format_qty(item.qty), COL_QTY, 11)
        page.text(pdf_currency(item.price), COL_PRICE, 11)
        page.text(pdf_currency(item.total), COL_TOTAL, 11)
        page.y += ROW_HEIGHT

    # Totales + agradecimiento
    if not page.fits(2 + 6 + 3 * LINE_HEIGHT + 2):
        page.new_page()
    page.y += 2
    page.line(COL_QTY, RULE_END)
    page.y += 6
    for label, amount in (('Subtotal:', bill.subtotal),
                          ('Discount:', bill.discount),
                          ('Grand Total:', bill.total)):
        page.text(label, COL_PRICE, 12, bold=label == 'Grand Total:')
        page.text(pdf_currency(amount), COL_TOTAL, 12, bold=label == 'Grand Total:')
        page.y += LINE_HEIGHT
    page.y += 2
    page.text('Thank you for your purchase!', COL_ITEM, 10)

    page.c.showPage()
    page.c.save()
    return buffer.getvalue()
