"""Payment recording and reconciliation.

One call records exactly one Payment row and one activity entry. Duplicate
submissions are not detected here: ``transaction_id`` is stored but not
checked for uniqueness.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from backend.app.core.enums import ActivityAction, PaymentMethod
from backend.app.core.errors import InvalidStateError, NotFoundError, ValidationError
from backend.app.core.time import utc_now
from backend.app.crud.crud_invoice import invoice_crud
from backend.app.models.invoice import Invoice
from backend.app.models.payment import Payment
from backend.app.services import lifecycle
from backend.app.services.invoices import get_invoice
from backend.app.services.payment_gateway import PAYMENT_COMPLETED, GatewayEvent
from backend.app.services.totals import ZERO, round_money, to_decimal

logger = logging.getLogger(__name__)


def parse_method(method: Any) -> PaymentMethod:
    if isinstance(method, PaymentMethod):
        return method
    try:
        return PaymentMethod(str(method).strip().upper())
    except ValueError as exc:
        raise ValidationError(f"Unrecognized payment method: {method}") from exc


def parse_amount(amount: Any) -> Decimal:
    if amount is None:
        raise ValidationError("Payment amount is required")
    value = to_decimal(amount, "amount")
    if value <= ZERO:
        raise ValidationError("Payment amount must be greater than zero")
    return round_money(value)


def apply_payment_to_invoice(
    invoice: Invoice,
    amount: Decimal,
    method: PaymentMethod,
    transaction_id: str | None = None,
    notes: str | None = None,
    now: datetime | None = None,
    action: ActivityAction = ActivityAction.PAYMENT_RECEIVED,
) -> Payment:
    """Apply a validated payment to an in-memory invoice and return the new Payment row."""
    now = now or utc_now()
    lifecycle.settle_payment(invoice, amount, method, now=now, action=action)
    payment = Payment(
        owner_id=invoice.owner_id,
        amount=amount,
        method=method,
        transaction_id=transaction_id,
        notes=notes,
        paid_at=now,
    )
    invoice.payments.append(payment)
    return payment


def record_payment(
    db: Session,
    owner_id: int,
    invoice_id: int,
    amount: Any,
    method: Any,
    transaction_id: str | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> Invoice:
    payment_amount = parse_amount(amount)
    payment_method = parse_method(method)
    invoice = get_invoice(db, owner_id, invoice_id, for_update=True)

    payment = apply_payment_to_invoice(
        invoice, payment_amount, payment_method, transaction_id=transaction_id, notes=notes, now=now
    )
    invoice_crud.append_payment(db, payment)
    invoice_crud.commit(db)
    db.refresh(invoice)
    logger.info(
        "Recorded %s payment of %s on invoice %s (status %s)",
        payment_method.value,
        payment_amount,
        invoice.invoice_number,
        invoice.status.value,
    )
    return invoice


def mark_paid(
    db: Session,
    owner_id: int,
    invoice_id: int,
    method: Any = PaymentMethod.OTHER,
    notes: str | None = None,
    now: datetime | None = None,
) -> Invoice:
    """Settle the remaining balance in one payment."""
    payment_method = parse_method(method)
    invoice = get_invoice(db, owner_id, invoice_id, for_update=True)
    lifecycle.ensure_can_apply(invoice, lifecycle.InvoiceEvent.RECORD_PAYMENT)
    balance = invoice.balance_due
    if balance <= ZERO:
        raise InvalidStateError("Invoice has no outstanding balance")

    payment = apply_payment_to_invoice(
        invoice, balance, payment_method, notes=notes, now=now, action=ActivityAction.MARKED_PAID
    )
    invoice_crud.append_payment(db, payment)
    invoice_crud.commit(db)
    db.refresh(invoice)
    logger.info("Invoice %s marked as paid", invoice.invoice_number)
    return invoice


def record_gateway_payment(db: Session, event: GatewayEvent, now: datetime | None = None) -> Invoice | None:
    """Record a completed online payment reported by the gateway webhook.

    Returns None for events that do not carry a completed payment.
    """
    if event.type != PAYMENT_COMPLETED:
        return None
    if event.invoice_id is None:
        logger.warning("Gateway payment event without an invoice reference (transaction %s)", event.transaction_id)
        return None
    invoice = invoice_crud.find_any(db, invoice_id=event.invoice_id)
    if invoice is None:
        raise NotFoundError("Invoice not found")
    return record_payment(
        db,
        invoice.owner_id,
        invoice.id,
        event.amount,
        PaymentMethod.STRIPE,
        transaction_id=event.transaction_id,
        notes="Paid online",
        now=now,
    )
