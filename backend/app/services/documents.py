"""PDF rendering for invoices."""

from dataclasses import dataclass
from decimal import Decimal
from io import BytesIO
from typing import Optional

from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from backend.app.models.invoice import Invoice
from backend.app.models.user import User

CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£", "CAD": "CA$", "AUD": "A$"}

MARGIN = 20 * mm
ROW_HEIGHT = 6 * mm


def format_money(value: Decimal | None, currency: str = "USD") -> str:
    amount = Decimal(value or 0).quantize(Decimal("0.01"))
    symbol = CURRENCY_SYMBOLS.get(currency.upper())
    if symbol:
        return f"{symbol}{amount:,.2f}"
    return f"{amount:,.2f} {currency.upper()}"


@dataclass(frozen=True)
class SenderInfo:
    name: str
    email: str
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None
    tax_id: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "SenderInfo":
        return cls(
            name=user.sender_name,
            email=user.email,
            address=user.address,
            city=user.city,
            state=user.state,
            zip_code=user.zip_code,
            country=user.country,
            phone=user.phone,
            tax_id=user.tax_id,
        )

    def address_lines(self) -> list[str]:
        lines = []
        if self.address:
            lines.append(self.address)
        locality = " ".join(part for part in (self.city, self.state, self.zip_code) if part)
        if locality:
            lines.append(locality)
        if self.country:
            lines.append(self.country)
        if self.phone:
            lines.append(self.phone)
        lines.append(self.email)
        if self.tax_id:
            lines.append(f"Tax ID: {self.tax_id}")
        return lines


def _client_lines(invoice: Invoice) -> list[str]:
    client = invoice.client
    lines = [client.name]
    if client.company:
        lines.append(client.company)
    if client.address:
        lines.append(client.address)
    locality = " ".join(part for part in (client.city, client.state, client.zip_code) if part)
    if locality:
        lines.append(locality)
    lines.append(client.email)
    return lines


def _draw_table_header(pdf: canvas.Canvas, y: float, width: float) -> float:
    pdf.setFont("Helvetica-Bold", 10)
    pdf.drawString(MARGIN, y, "Description")
    pdf.drawRightString(width - MARGIN - 70 * mm, y, "Qty")
    pdf.drawRightString(width - MARGIN - 35 * mm, y, "Unit price")
    pdf.drawRightString(width - MARGIN, y, "Amount")
    pdf.line(MARGIN, y - 2 * mm, width - MARGIN, y - 2 * mm)
    pdf.setFont("Helvetica", 10)
    return y - ROW_HEIGHT - 2 * mm


def render_invoice_document(invoice: Invoice, sender: SenderInfo) -> bytes:
    """Render ``invoice`` as a PDF and return the file contents."""
    buffer = BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=A4)
    pdf.setTitle(f"Invoice {invoice.invoice_number}")
    width, height = A4
    y = height - MARGIN

    pdf.setFont("Helvetica-Bold", 20)
    pdf.drawString(MARGIN, y, "INVOICE")
    pdf.setFont("Helvetica", 10)
    pdf.drawRightString(width - MARGIN, y, invoice.invoice_number)
    y -= 8 * mm
    pdf.drawRightString(width - MARGIN, y, f"Issued: {invoice.issue_date.isoformat()}")
    if invoice.due_date:
        pdf.drawRightString(width - MARGIN, y - 5 * mm, f"Due: {invoice.due_date.isoformat()}")
    pdf.drawRightString(width - MARGIN, y - 10 * mm, f"Status: {invoice.status.value}")

    pdf.setFont("Helvetica-Bold", 11)
    pdf.drawString(MARGIN, y, sender.name)
    pdf.setFont("Helvetica", 10)
    for line in sender.address_lines():
        y -= 5 * mm
        pdf.drawString(MARGIN, y, line)

    y -= 12 * mm
    pdf.setFont("Helvetica-Bold", 10)
    pdf.drawString(MARGIN, y, "Bill to")
    pdf.setFont("Helvetica", 10)
    for line in _client_lines(invoice):
        y -= 5 * mm
        pdf.drawString(MARGIN, y, line)

    y = _draw_table_header(pdf, y - 12 * mm, width)
    for item in sorted(invoice.line_items, key=lambda item: item.sort_order):
        if y < MARGIN + 40 * mm:
            pdf.showPage()
            y = _draw_table_header(pdf, height - MARGIN, width)
        pdf.drawString(MARGIN, y, item.description[:60])
        pdf.drawRightString(width - MARGIN - 70 * mm, y, f"{Decimal(item.quantity).normalize():f}")
        pdf.drawRightString(width - MARGIN - 35 * mm, y, format_money(item.unit_price, invoice.currency))
        pdf.drawRightString(width - MARGIN, y, format_money(item.amount, invoice.currency))
        y -= ROW_HEIGHT

    pdf.line(width / 2, y, width - MARGIN, y)
    y -= ROW_HEIGHT
    summary = [("Subtotal", invoice.subtotal)]
    if invoice.tax_rate:
        summary.append((f"Tax ({Decimal(invoice.tax_rate).normalize():f}%)", invoice.tax_amount))
    if invoice.discount_amount:
        summary.append(("Discount", -Decimal(invoice.discount_amount)))
    summary.append(("Total", invoice.total))
    if invoice.amount_paid:
        summary.append(("Paid", invoice.amount_paid))
        summary.append(("Balance due", invoice.balance_due))
    for label, value in summary:
        pdf.setFont("Helvetica-Bold" if label in ("Total", "Balance due") else "Helvetica", 10)
        pdf.drawString(width / 2, y, label)
        pdf.drawRightString(width - MARGIN, y, format_money(value, invoice.currency))
        y -= ROW_HEIGHT

    pdf.setFont("Helvetica", 9)
    for heading, text in (("Notes", invoice.notes), ("Terms", invoice.terms)):
        if text:
            y -= 4 * mm
            pdf.drawString(MARGIN, y, f"{heading}: {text[:110]}")

    pdf.showPage()
    pdf.save()
    return buffer.getvalue()
