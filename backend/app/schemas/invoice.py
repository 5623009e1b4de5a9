"""Invoice schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from backend.app.core.enums import InvoiceStatus, RecurringInterval, ReminderTone
from backend.app.schemas.client import ClientRead
from backend.app.schemas.payment import ActivityRead, PaymentRead


# Inputs are limited to the precision the columns store, so a reloaded
# invoice recomputes to the same totals.
Quantity = Annotated[Decimal, Field(max_digits=12, decimal_places=4)]
UnitPrice = Annotated[Decimal, Field(max_digits=12, decimal_places=4)]
TaxRate = Annotated[Decimal, Field(max_digits=7, decimal_places=4)]
Money = Annotated[Decimal, Field(max_digits=12, decimal_places=2)]


class LineItemIn(BaseModel):
    description: str = Field(min_length=1)
    quantity: Quantity
    unit_price: UnitPrice


class LineItemRead(BaseModel):
    id: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    sort_order: int

    model_config = ConfigDict(from_attributes=True)


class InvoiceCreate(BaseModel):
    client_id: int
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    line_items: List[LineItemIn] = Field(min_length=1)
    tax_rate: Optional[TaxRate] = None
    discount_amount: Optional[Money] = None
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    notes: Optional[str] = None
    terms: Optional[str] = None
    is_recurring: bool = False
    recurring_interval: Optional[RecurringInterval] = None


class InvoiceUpdate(BaseModel):
    client_id: Optional[int] = None
    issue_date: Optional[date] = None
    due_date: Optional[date] = None
    line_items: Optional[List[LineItemIn]] = Field(default=None, min_length=1)
    tax_rate: Optional[TaxRate] = None
    discount_amount: Optional[Money] = None
    notes: Optional[str] = None
    terms: Optional[str] = None


class RecurringUpdate(BaseModel):
    is_recurring: bool
    recurring_interval: Optional[RecurringInterval] = None


class InvoiceRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    owner_id: int
    client_id: int
    invoice_number: str
    status: InvoiceStatus

    issue_date: date
    due_date: Optional[date]

    subtotal: Decimal
    tax_rate: Optional[Decimal]
    tax_amount: Decimal
    discount_amount: Decimal
    total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    currency: str

    notes: Optional[str]
    terms: Optional[str]

    sent_at: Optional[datetime]
    viewed_at: Optional[datetime]
    paid_at: Optional[datetime]

    is_recurring: bool
    recurring_interval: Optional[RecurringInterval]
    next_recurring_date: Optional[date]

    created_at: datetime
    updated_at: datetime

    client: Optional[ClientRead] = None
    line_items: List[LineItemRead] = []


class InvoiceDetail(InvoiceRead):
    share_token: str
    payments: List[PaymentRead] = []
    activities: List[ActivityRead] = []


class PublicInvoiceRead(BaseModel):
    """What a client sees when opening the invoice link."""

    model_config = ConfigDict(from_attributes=True)

    invoice_number: str
    status: InvoiceStatus
    issue_date: date
    due_date: Optional[date]
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total: Decimal
    amount_paid: Decimal
    balance_due: Decimal
    currency: str
    notes: Optional[str]
    terms: Optional[str]
    line_items: List[LineItemRead] = []


class InvoicePage(BaseModel):
    items: List[InvoiceRead]
    total: int
    page: int
    page_size: int
    total_pages: int


class NotificationResult(BaseModel):
    delivered: bool
    error: Optional[str] = None


class InvoiceNotificationResult(BaseModel):
    """An invoice after a committed transition plus the outcome of its email."""

    invoice: InvoiceRead
    notification: NotificationResult


class ReminderRequest(BaseModel):
    tone: ReminderTone = ReminderTone.FRIENDLY


class RecurringGenerateRequest(BaseModel):
    invoice_id: Optional[int] = None


class SweepFailureRead(BaseModel):
    invoice_id: int
    error: str


class RecurringGenerateResult(BaseModel):
    generated: List[InvoiceRead]
    count: int
    failures: List[SweepFailureRead] = []


class OverdueCheckResult(BaseModel):
    marked: List[InvoiceRead]
    count: int
    failures: List[SweepFailureRead] = []
