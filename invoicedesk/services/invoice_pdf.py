# invoicedesk/services/invoice_pdf.py
from __future__ import annotations

import re
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Iterable, Optional, Sequence

from reportlab.lib.colors import Color, HexColor, white
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.units import mm
from reportlab.pdfbase.pdfmetrics import stringWidth
from reportlab.pdfgen.canvas import Canvas

from invoicedesk.env import DEFAULT_DATE_FORMAT
from invoicedesk.invoice_calculations import format_money, format_rate
from invoicedesk.models import (
    DEFAULT_BUSINESS_ADDRESS,
    DEFAULT_BUSINESS_EMAIL,
    DEFAULT_BUSINESS_NAME,
    DEFAULT_BUSINESS_PHONE,
    DEFAULT_BUSINESS_SLOGAN,
    InvoiceContent,
    LineItem,
    Settings,
)


PAGE_WIDTH, PAGE_HEIGHT = landscape(A4)
PAGE_WIDTH_MM = PAGE_WIDTH / mm
PAGE_HEIGHT_MM = PAGE_HEIGHT / mm

# Layout in millimetres, measured from the top-left corner.
MARGIN = 15.0
PARTIES_TOP = 50.0
TABLE_HEADER_TOP = 85.0
TABLE_HEADER_HEIGHT = 8.0
FIRST_ROW_TOP = 98.0
PAGE_TOP = MARGIN
SAFE_BOTTOM = PAGE_HEIGHT_MM - 40.0
FOOTER_BASELINE = PAGE_HEIGHT_MM - 15.0

LINE_HEIGHT = 4.0
MIN_TEXT_HEIGHT = 10.0
ROW_PADDING = 2.0
ROW_GAP = 5.0
TEXT_OFFSET = 4.5
TOTALS_HEIGHT = 22.0

DESC_X = MARGIN + 5.0
QTY_RIGHT = PAGE_WIDTH_MM - MARGIN - 85.0
PRICE_RIGHT = PAGE_WIDTH_MM - MARGIN - 45.0
AMOUNT_RIGHT = PAGE_WIDTH_MM - MARGIN - 5.0
QTY_COL_WIDTH = 25.0
DESC_WIDTH = QTY_RIGHT - QTY_COL_WIDTH - DESC_X
MAX_ROW_LINES = int((SAFE_BOTTOM - PAGE_TOP) // LINE_HEIGHT)
ELLIPSIS = "..."

FONT = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
ITEM_FONT_SIZE = 8

BRAND_BLUE = HexColor("#007ACC")
NAVY = HexColor("#000080")
MUTED = HexColor("#646464")
ROW_SHADE = HexColor("#F5F5F5")
RULE = HexColor("#C8C8C8")
BLACK = HexColor("#000000")

FOOTER_TEXT = "Thank you for your business!"

_PAGE_OBJECT = re.compile(rb"/Type\s*/Page\b")


def _safe_str(x: Any) -> str:
    return (str(x) if x is not None else "").strip()


def _split_long_word(word: str, font: str, size: float, max_width: float) -> list[str]:
    chunks: list[str] = []
    cur = ""
    for ch in word:
        if cur and stringWidth(cur + ch, font, size) > max_width:
            chunks.append(cur)
            cur = ch
        else:
            cur += ch
    if cur:
        chunks.append(cur)
    return chunks


def _wrap_text(text: str, font: str, size: float, max_width: float) -> list[str]:
    text = _safe_str(text)
    if not text:
        return [""]
    lines: list[str] = []
    for paragraph in text.splitlines():
        cur = ""
        for w in paragraph.split():
            parts = [w]
            if stringWidth(w, font, size) > max_width:
                parts = _split_long_word(w, font, size, max_width)
            for part in parts:
                cand = f"{cur} {part}" if cur else part
                if stringWidth(cand, font, size) <= max_width:
                    cur = cand
                else:
                    if cur:
                        lines.append(cur)
                    cur = part
        lines.append(cur)
    while len(lines) > 1 and not lines[-1]:
        lines.pop()
    return lines or [""]


@dataclass(frozen=True)
class RowPlacement:
    index: int
    page: int
    top: float
    height: float


@dataclass(frozen=True)
class ItemLayout:
    rows: list[RowPlacement]
    page_count: int
    end_cursor: float


def plan_item_pages(
    heights: Iterable[float],
    *,
    first_top: float = FIRST_ROW_TOP,
    page_top: float = PAGE_TOP,
    safe_bottom: float = SAFE_BOTTOM,
    gap: float = ROW_GAP,
) -> ItemLayout:
    """Place item rows top to bottom across pages.

    A row that would cross ``safe_bottom`` moves to a new page starting at
    ``page_top``; rows are never split. A row taller than a whole page is
    placed at the top of a fresh page as-is. ``end_cursor`` is the bottom of
    the last row on the last page.
    """
    rows: list[RowPlacement] = []
    page = 0
    cursor = first_top
    end_cursor = first_top
    for index, height in enumerate(heights):
        if cursor + height > safe_bottom and cursor > page_top:
            page += 1
            cursor = page_top
        rows.append(RowPlacement(index=index, page=page, top=cursor, height=height))
        end_cursor = cursor + height
        cursor = end_cursor + gap
    return ItemLayout(rows=rows, page_count=page + 1, end_cursor=end_cursor)


@dataclass(frozen=True)
class TotalsPlacement:
    new_page: bool
    top: float


def place_totals(
    end_cursor: float,
    *,
    safe_bottom: float = SAFE_BOTTOM,
    footer_top: float = FOOTER_BASELINE - 3.0,
    height: float = TOTALS_HEIGHT,
) -> TotalsPlacement:
    """Totals sit at ``max(end_cursor, safe_bottom)`` on the last item page,
    or at ``safe_bottom`` on a new page when they would reach the footer."""
    top = max(end_cursor, safe_bottom)
    if top + height > footer_top:
        return TotalsPlacement(new_page=True, top=safe_bottom)
    return TotalsPlacement(new_page=False, top=top)


def description_lines(item: LineItem) -> list[str]:
    lines = _wrap_text(item.description, FONT, ITEM_FONT_SIZE, DESC_WIDTH * mm)
    if len(lines) <= MAX_ROW_LINES:
        return lines
    # A row never exceeds one page; the cut is marked on the last kept line.
    kept = lines[:MAX_ROW_LINES]
    last = kept[-1]
    while last and stringWidth(last + ELLIPSIS, FONT, ITEM_FONT_SIZE) > DESC_WIDTH * mm:
        last = last[:-1]
    kept[-1] = last.rstrip() + ELLIPSIS
    return kept


def row_height(line_count: int) -> float:
    return max(line_count * LINE_HEIGHT, MIN_TEXT_HEIGHT)


def count_pdf_pages(pdf_bytes: bytes) -> int:
    return len(_PAGE_OBJECT.findall(pdf_bytes))


def _or_default(value: str, default: str) -> str:
    return _safe_str(value) or default


def render_invoice_to_pdf_bytes(
    invoice: InvoiceContent,
    settings: Optional[Settings] = None,
    *,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> bytes:
    """Render an invoice as a landscape A4 PDF.

    Layout: business block centered with number and date on the right,
    bill-to and work-location blocks side by side, the item table with
    wrapped descriptions and shaded even rows, totals pinned no higher than
    40 mm above the bottom edge, and a centered thank-you footer.
    Stored values are never rounded; money is formatted here.
    """
    settings = settings or Settings()

    buf = BytesIO()
    c = Canvas(buf, pagesize=(PAGE_WIDTH, PAGE_HEIGHT))
    w = PAGE_WIDTH_MM

    business_name = _or_default(settings.business_name, DEFAULT_BUSINESS_NAME)
    c.setTitle(f"Invoice {invoice.number}")
    c.setAuthor(business_name)
    c.setSubject(f"Invoice for {invoice.customer.name}")

    def y_pt(y: float) -> float:
        return PAGE_HEIGHT - y * mm

    def text(x: float, y: float, s: Any, size: float = 9, bold: bool = False, color: Color = BLACK) -> None:
        c.setFont(FONT_BOLD if bold else FONT, size)
        c.setFillColor(color)
        c.drawString(x * mm, y_pt(y), _safe_str(s))

    def text_r(x_right: float, y: float, s: Any, size: float = 9, bold: bool = False, color: Color = BLACK) -> None:
        c.setFont(FONT_BOLD if bold else FONT, size)
        c.setFillColor(color)
        c.drawRightString(x_right * mm, y_pt(y), _safe_str(s))

    def text_c(y: float, s: Any, size: float = 9, bold: bool = False, color: Color = BLACK) -> None:
        c.setFont(FONT_BOLD if bold else FONT, size)
        c.setFillColor(color)
        c.drawCentredString(w / 2 * mm, y_pt(y), _safe_str(s))

    def box(x: float, top: float, width: float, height: float, color: Color, radius: float = 0.0) -> None:
        c.setFillColor(color)
        if radius:
            c.roundRect(x * mm, y_pt(top + height), width * mm, height * mm, radius * mm, stroke=0, fill=1)
        else:
            c.rect(x * mm, y_pt(top + height), width * mm, height * mm, stroke=0, fill=1)

    def rule(x1: float, x2: float, y: float, color: Color) -> None:
        c.setStrokeColor(color)
        c.setLineWidth(0.5)
        c.line(x1 * mm, y_pt(y), x2 * mm, y_pt(y))

    # Header: logo mark, business block, invoice meta
    y = MARGIN
    box(MARGIN, y, 20, 20, BRAND_BLUE, radius=3)
    box(MARGIN + 5, y + 5, 10, 10, white, radius=2)
    box(MARGIN + 7, y + 7, 6, 6, BRAND_BLUE, radius=1)

    text_c(y + 8, business_name, size=20, color=NAVY)
    text_c(y + 15, _or_default(settings.business_slogan, DEFAULT_BUSINESS_SLOGAN), size=10, color=MUTED)
    text_c(y + 21, _or_default(settings.business_address, DEFAULT_BUSINESS_ADDRESS), size=8)
    text_c(y + 26, f"Phone: {_or_default(settings.business_phone, DEFAULT_BUSINESS_PHONE)}", size=8)
    text_c(y + 31, f"Email: {_or_default(settings.business_email, DEFAULT_BUSINESS_EMAIL)}", size=8)

    text_r(w - MARGIN, y + 8, f"INVOICE: {invoice.number}", size=12)
    text_r(w - MARGIN, y + 15, f"DATE: {invoice.date.strftime(date_format)}", size=12)
    if _safe_str(settings.business_tax_id):
        text_r(w - MARGIN, y + 22, f"TAX ID: {settings.business_tax_id}", size=8, color=MUTED)

    # Parties
    col_width = w / 2 - MARGIN - 15
    customer = invoice.customer
    bill_to = [customer.name, customer.address]
    if _safe_str(customer.phone):
        bill_to.append(f"Phone: {customer.phone}")
    if _safe_str(customer.email):
        bill_to.append(f"Email: {customer.email}")

    location = invoice.work_location
    work_site = [location.name, location.address]
    if _safe_str(location.city):
        work_site.append(f"City: {location.city}")
    if _safe_str(location.state):
        work_site.append(f"State: {location.state}")
    if _safe_str(location.zip):
        work_site.append(f"Zip: {location.zip}")

    def party_block(x: float, title: str, rule_width: float, lines: Sequence[str]) -> None:
        text(x, PARTIES_TOP, title, size=10, color=NAVY)
        rule(x, x + rule_width, PARTIES_TOP + 2, BRAND_BLUE)
        wrapped: list[str] = []
        for ln in lines:
            if _safe_str(ln):
                wrapped.extend(_wrap_text(ln, FONT, 9, col_width * mm))
        yy = PARTIES_TOP + 8
        for ln in wrapped[:6]:
            text(x, yy, ln, size=9)
            yy += 5

    party_block(MARGIN, "BILL TO:", 40, bill_to)
    party_block(w / 2 + 10, "WORK LOCATION:", 50, work_site)

    # Item table
    box(MARGIN, TABLE_HEADER_TOP, w - 2 * MARGIN, TABLE_HEADER_HEIGHT, BRAND_BLUE, radius=1)
    header_y = TABLE_HEADER_TOP + 5
    text(DESC_X, header_y, "DESCRIPTION", color=white)
    text_r(QTY_RIGHT, header_y, "QTY", color=white)
    text_r(PRICE_RIGHT, header_y, "PRICE", color=white)
    text_r(AMOUNT_RIGHT, header_y, "AMOUNT", color=white)

    wrapped_rows = [description_lines(item) for item in invoice.items]
    layout = plan_item_pages(row_height(len(lines)) for lines in wrapped_rows)

    page = 0
    for placement in layout.rows:
        if placement.page != page:
            c.showPage()
            page = placement.page
        item = invoice.items[placement.index]
        if placement.index % 2 == 0:
            box(MARGIN, placement.top, w - 2 * MARGIN, placement.height + ROW_PADDING, ROW_SHADE)
        baseline = placement.top + TEXT_OFFSET
        yy = baseline
        for ln in wrapped_rows[placement.index]:
            text(DESC_X, yy, ln, size=ITEM_FONT_SIZE)
            yy += LINE_HEIGHT
        text_r(QTY_RIGHT, baseline, item.quantity, size=ITEM_FONT_SIZE)
        text_r(PRICE_RIGHT, baseline, format_money(item.unit_price), size=ITEM_FONT_SIZE)
        text_r(AMOUNT_RIGHT, baseline, format_money(item.amount), size=ITEM_FONT_SIZE)

    totals = place_totals(layout.end_cursor)
    if totals.new_page:
        c.showPage()
    y = totals.top

    label_x = w - MARGIN - 70
    rule(w - MARGIN - 100, w - MARGIN, y, RULE)
    y += 8
    text(label_x, y, "Subtotal:")
    text_r(AMOUNT_RIGHT, y, format_money(invoice.subtotal))
    y += 6
    text(label_x, y, f"Tax ({format_rate(invoice.tax_rate)}%):")
    text_r(AMOUNT_RIGHT, y, format_money(invoice.tax_amount))
    y += 8
    text(label_x, y, "TOTAL:", size=11, bold=True, color=NAVY)
    text_r(AMOUNT_RIGHT, y, format_money(invoice.total), size=11, bold=True, color=NAVY)

    text_c(FOOTER_BASELINE, FOOTER_TEXT, size=7, color=MUTED)

    c.save()
    return buf.getvalue()
