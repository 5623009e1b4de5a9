"""Invoice lifecycle state machine.

Every status change goes through this module. Each transition function checks
the event against ``ALLOWED_FROM``, mutates the invoice in memory, and appends
an activity row; callers commit the session afterwards.

    DRAFT --send--> SENT --view--> VIEWED
    DRAFT/SENT --cancel--> CANCELLED
    SENT/VIEWED/PARTIALLY_PAID --mark_overdue--> OVERDUE   (due_date < today)
    any non-terminal --payment--> PARTIALLY_PAID | PAID    (derived from money)

PAID and CANCELLED are terminal.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from backend.app.core.enums import ActivityAction, InvoiceStatus, PaymentMethod
from backend.app.core.errors import InvalidStateError, ValidationError
from backend.app.core.time import utc_now
from backend.app.models.activity import InvoiceActivity
from backend.app.models.invoice import Invoice
from backend.app.services.totals import ZERO, round_money


class InvoiceEvent(str, Enum):
    SEND = "SEND"
    VIEW = "VIEW"
    RECORD_PAYMENT = "RECORD_PAYMENT"
    MARK_OVERDUE = "MARK_OVERDUE"
    CANCEL = "CANCEL"


TERMINAL_STATES = frozenset({InvoiceStatus.PAID, InvoiceStatus.CANCELLED})

ALLOWED_FROM = {
    InvoiceEvent.SEND: frozenset({InvoiceStatus.DRAFT}),
    InvoiceEvent.VIEW: frozenset({InvoiceStatus.SENT}),
    InvoiceEvent.RECORD_PAYMENT: frozenset(InvoiceStatus) - TERMINAL_STATES,
    InvoiceEvent.MARK_OVERDUE: frozenset(
        {InvoiceStatus.SENT, InvoiceStatus.VIEWED, InvoiceStatus.PARTIALLY_PAID}
    ),
    InvoiceEvent.CANCEL: frozenset({InvoiceStatus.DRAFT, InvoiceStatus.SENT}),
}

# Reminders do not change status but only make sense while money is owed.
REMINDABLE_STATES = frozenset(
    {InvoiceStatus.SENT, InvoiceStatus.VIEWED, InvoiceStatus.PARTIALLY_PAID, InvoiceStatus.OVERDUE}
)

_EVENT_VERBS = {
    InvoiceEvent.SEND: "send",
    InvoiceEvent.VIEW: "view",
    InvoiceEvent.RECORD_PAYMENT: "record a payment on",
    InvoiceEvent.MARK_OVERDUE: "mark overdue",
    InvoiceEvent.CANCEL: "cancel",
}


def can_apply(status: InvoiceStatus | str, event: InvoiceEvent) -> bool:
    return InvoiceStatus(status) in ALLOWED_FROM[event]


def ensure_can_apply(invoice: Invoice, event: InvoiceEvent) -> None:
    status = InvoiceStatus(invoice.status)
    if status not in ALLOWED_FROM[event]:
        raise InvalidStateError(f"Cannot {_EVENT_VERBS[event]} an invoice with status {status.value}")


def ensure_remindable(invoice: Invoice) -> None:
    status = InvoiceStatus(invoice.status)
    if status not in REMINDABLE_STATES:
        raise InvalidStateError(f"Cannot send a reminder for an invoice with status {status.value}")


def record_activity(
    invoice: Invoice,
    action: ActivityAction,
    details: dict | None = None,
    now: datetime | None = None,
) -> InvoiceActivity:
    activity = InvoiceActivity(action=action, details=details, created_at=now or utc_now())
    invoice.activities.append(activity)
    return activity


def payment_status(amount_paid: Decimal, total: Decimal) -> InvoiceStatus:
    if amount_paid >= total:
        return InvoiceStatus.PAID
    return InvoiceStatus.PARTIALLY_PAID


def send(invoice: Invoice, now: datetime | None = None) -> Invoice:
    ensure_can_apply(invoice, InvoiceEvent.SEND)
    client = invoice.client
    if client is None or not client.email:
        raise ValidationError("Client email is required to send an invoice")
    now = now or utc_now()
    invoice.status = InvoiceStatus.SENT
    invoice.sent_at = now
    record_activity(invoice, ActivityAction.SENT, {"to": client.email}, now=now)
    return invoice


def view(invoice: Invoice, now: datetime | None = None) -> Invoice:
    ensure_can_apply(invoice, InvoiceEvent.VIEW)
    now = now or utc_now()
    invoice.status = InvoiceStatus.VIEWED
    invoice.viewed_at = now
    record_activity(invoice, ActivityAction.VIEWED, now=now)
    return invoice


def is_past_due(invoice: Invoice, today: date) -> bool:
    return invoice.due_date is not None and invoice.due_date < today


def mark_overdue(invoice: Invoice, today: date, now: datetime | None = None) -> Invoice:
    ensure_can_apply(invoice, InvoiceEvent.MARK_OVERDUE)
    if not is_past_due(invoice, today):
        raise InvalidStateError("Invoice is not past its due date")
    invoice.status = InvoiceStatus.OVERDUE
    record_activity(invoice, ActivityAction.UPDATED, {"status": InvoiceStatus.OVERDUE.value}, now=now)
    return invoice


def cancel(invoice: Invoice, now: datetime | None = None) -> Invoice:
    ensure_can_apply(invoice, InvoiceEvent.CANCEL)
    invoice.status = InvoiceStatus.CANCELLED
    record_activity(invoice, ActivityAction.UPDATED, {"status": InvoiceStatus.CANCELLED.value}, now=now)
    return invoice


def settle_payment(
    invoice: Invoice,
    amount: Decimal,
    method: PaymentMethod,
    now: datetime | None = None,
    action: ActivityAction = ActivityAction.PAYMENT_RECEIVED,
) -> InvoiceStatus:
    """Add ``amount`` to the invoice and derive its status from the new balance.

    Overpayment is accepted as-is; ``amount_paid`` may exceed ``total``.
    """
    ensure_can_apply(invoice, InvoiceEvent.RECORD_PAYMENT)
    if amount <= ZERO:
        raise ValidationError("Payment amount must be greater than zero")
    now = now or utc_now()

    new_amount_paid = round_money((invoice.amount_paid or ZERO) + amount)
    status = payment_status(new_amount_paid, invoice.total or ZERO)
    invoice.amount_paid = new_amount_paid
    invoice.status = status
    if status is InvoiceStatus.PAID:
        invoice.paid_at = now
    record_activity(invoice, action, {"amount": str(amount), "method": method.value}, now=now)
    return status
