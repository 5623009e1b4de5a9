"""Invoice services: creation, editing, listing and lifecycle entry points.

Every function takes the owning user's id explicitly and raises domain errors
from ``backend.app.core.errors``.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable, List

from sqlalchemy.orm import Session

from backend.app.core.enums import ActivityAction, InvoiceStatus, RecurringInterval, ReminderTone
from backend.app.core.errors import InvalidStateError, NotFoundError, ValidationError
from backend.app.core.settings import get_settings
from backend.app.core.time import utc_now
from backend.app.crud.crud_client import client_crud
from backend.app.crud.crud_invoice import invoice_crud
from backend.app.models.client import Client
from backend.app.models.invoice import Invoice
from backend.app.models.line_item import LineItem
from backend.app.models.user import User
from backend.app.schemas.invoice import InvoiceCreate, InvoiceUpdate
from backend.app.services import lifecycle
from backend.app.services.numbering import next_invoice_number
from backend.app.services.recurrence import next_occurrence
from backend.app.services.totals import ZERO, compute_totals, line_item_amount, round_money, to_decimal

logger = logging.getLogger(__name__)


@dataclass
class SweepFailure:
    invoice_id: int
    error: str


@dataclass
class OverdueSweepResult:
    marked: List[Invoice] = field(default_factory=list)
    failures: List[SweepFailure] = field(default_factory=list)


def get_invoice(db: Session, owner_id: int, invoice_id: int, for_update: bool = False) -> Invoice:
    invoice = invoice_crud.find_invoice(db, invoice_id=invoice_id, owner_id=owner_id, for_update=for_update)
    if invoice is None:
        raise NotFoundError("Invoice not found")
    return invoice


def _get_client(db: Session, owner_id: int, client_id: int) -> Client:
    client = client_crud.get(db, client_id=client_id, owner_id=owner_id)
    if client is None:
        raise NotFoundError("Client not found")
    return client


def _as_dict(item: Any) -> dict:
    if isinstance(item, dict):
        return item
    return item.model_dump()


def build_line_items(items: Iterable[Any]) -> List[LineItem]:
    """Create line item rows in input order; ``sort_order`` is the input index."""
    rows = []
    for index, item in enumerate(items):
        data = _as_dict(item)
        description = (data.get("description") or "").strip()
        if not description:
            raise ValidationError("Line item description is required")
        quantity = to_decimal(data.get("quantity"), "quantity")
        unit_price = to_decimal(data.get("unit_price"), "unit_price")
        rows.append(
            LineItem(
                description=description,
                quantity=quantity,
                unit_price=unit_price,
                amount=line_item_amount(quantity, unit_price),
                sort_order=index,
            )
        )
    return rows


def next_number_for_owner(db: Session, owner_id: int, today: date | None = None) -> str:
    settings = get_settings()
    last_sequence = invoice_crud.last_invoice_number_sequence(db, owner_id=owner_id)
    return next_invoice_number(settings.invoice_prefix, last_sequence, today)


def _owner_currency(db: Session, owner_id: int) -> str:
    owner = db.get(User, owner_id)
    if owner is not None and owner.currency:
        return owner.currency
    return get_settings().default_currency


def _check_recurring(is_recurring: bool, interval: RecurringInterval | None) -> None:
    if is_recurring and interval is None:
        raise ValidationError("recurring_interval is required for recurring invoices")


def _check_dates(issue_date: date, due_date: date | None) -> None:
    if due_date is not None and due_date < issue_date:
        raise ValidationError("due_date must not be before issue_date")


def create_invoice(db: Session, owner_id: int, data: InvoiceCreate, now: datetime | None = None) -> Invoice:
    now = now or utc_now()
    client = _get_client(db, owner_id, data.client_id)
    _check_recurring(data.is_recurring, data.recurring_interval)

    issue_date = data.issue_date or now.date()
    _check_dates(issue_date, data.due_date)
    totals = compute_totals(data.line_items, data.tax_rate, data.discount_amount)
    line_items = build_line_items(data.line_items)

    interval = data.recurring_interval if data.is_recurring else None
    invoice = Invoice(
        owner_id=owner_id,
        client_id=client.id,
        invoice_number=next_number_for_owner(db, owner_id, now.date()),
        status=InvoiceStatus.DRAFT,
        issue_date=issue_date,
        due_date=data.due_date,
        subtotal=totals.subtotal,
        tax_rate=data.tax_rate,
        tax_amount=totals.tax_amount,
        discount_amount=round_money(to_decimal(data.discount_amount or ZERO, "discount_amount")),
        total=totals.total,
        amount_paid=ZERO,
        currency=(data.currency or _owner_currency(db, owner_id)).upper(),
        notes=data.notes,
        terms=data.terms,
        is_recurring=data.is_recurring,
        recurring_interval=interval,
        next_recurring_date=next_occurrence(issue_date, interval) if interval else None,
    )
    invoice.line_items = line_items
    lifecycle.record_activity(invoice, ActivityAction.CREATED, now=now)
    invoice_crud.save_invoice(db, invoice)
    logger.info("Created invoice %s (id=%s) for owner %s", invoice.invoice_number, invoice.id, owner_id)
    return invoice


def update_invoice(
    db: Session, owner_id: int, invoice_id: int, data: InvoiceUpdate, now: datetime | None = None
) -> Invoice:
    invoice = get_invoice(db, owner_id, invoice_id, for_update=True)
    if invoice.status != InvoiceStatus.DRAFT:
        raise InvalidStateError("Only draft invoices can be edited")

    changes = data.model_dump(exclude_unset=True)
    if "client_id" in changes and changes["client_id"] is not None:
        invoice.client_id = _get_client(db, owner_id, changes["client_id"]).id

    issue_date = changes.get("issue_date") or invoice.issue_date
    due_date = changes["due_date"] if "due_date" in changes else invoice.due_date
    _check_dates(issue_date, due_date)

    tax_rate = changes["tax_rate"] if "tax_rate" in changes else invoice.tax_rate
    discount = changes["discount_amount"] if "discount_amount" in changes else invoice.discount_amount
    items = data.line_items if data.line_items is not None else invoice.line_items
    totals = compute_totals(items, tax_rate, discount)

    if data.line_items is not None:
        invoice.line_items = build_line_items(data.line_items)
    invoice.issue_date = issue_date
    invoice.due_date = due_date
    invoice.tax_rate = tax_rate
    invoice.discount_amount = round_money(to_decimal(discount or ZERO, "discount_amount"))
    invoice.subtotal = totals.subtotal
    invoice.tax_amount = totals.tax_amount
    invoice.total = totals.total
    if "notes" in changes:
        invoice.notes = changes["notes"]
    if "terms" in changes:
        invoice.terms = changes["terms"]
    if invoice.is_recurring and "issue_date" in changes:
        invoice.next_recurring_date = next_occurrence(issue_date, invoice.recurring_interval)

    lifecycle.record_activity(invoice, ActivityAction.UPDATED, {"fields": sorted(changes)}, now=now)
    return invoice_crud.save_invoice(db, invoice)


def delete_invoice(db: Session, owner_id: int, invoice_id: int) -> None:
    invoice = get_invoice(db, owner_id, invoice_id)
    if invoice.status != InvoiceStatus.DRAFT:
        raise InvalidStateError("Only draft invoices can be deleted")
    invoice_number = invoice.invoice_number
    db.delete(invoice)
    invoice_crud.commit(db)
    logger.info("Deleted invoice %s for owner %s", invoice_number, owner_id)


def list_invoices(
    db: Session,
    owner_id: int,
    status: InvoiceStatus | None = None,
    client_id: int | None = None,
    page: int = 1,
    page_size: int = 20,
) -> dict:
    if page < 1 or page_size < 1:
        raise ValidationError("page and page_size must be positive")
    items, total = invoice_crud.list_invoices(
        db, owner_id=owner_id, status=status, client_id=client_id, page=page, page_size=page_size
    )
    return {
        "items": items,
        "total": total,
        "page": page,
        "page_size": page_size,
        "total_pages": math.ceil(total / page_size),
    }


def list_recurring_invoices(db: Session, owner_id: int) -> List[Invoice]:
    return invoice_crud.list_recurring(db, owner_id=owner_id)


def set_recurring(
    db: Session,
    owner_id: int,
    invoice_id: int,
    is_recurring: bool,
    interval: RecurringInterval | None = None,
    now: datetime | None = None,
) -> Invoice:
    _check_recurring(is_recurring, interval)
    invoice = get_invoice(db, owner_id, invoice_id, for_update=True)
    invoice.is_recurring = is_recurring
    invoice.recurring_interval = interval if is_recurring else None
    invoice.next_recurring_date = next_occurrence(invoice.issue_date, interval) if is_recurring else None
    lifecycle.record_activity(
        invoice,
        ActivityAction.UPDATED,
        {"is_recurring": is_recurring, "recurring_interval": interval.value if is_recurring else None},
        now=now,
    )
    return invoice_crud.save_invoice(db, invoice)


def send_invoice(db: Session, owner_id: int, invoice_id: int, now: datetime | None = None) -> Invoice:
    invoice = get_invoice(db, owner_id, invoice_id, for_update=True)
    lifecycle.send(invoice, now=now)
    invoice_crud.save_invoice(db, invoice)
    logger.info("Invoice %s marked as sent", invoice.invoice_number)
    return invoice


def view_shared_invoice(db: Session, share_token: str, now: datetime | None = None) -> Invoice:
    """Record that the client opened the invoice link.

    Only the first view of a SENT invoice changes anything; later views and
    views of invoices in other states return the invoice untouched.
    """
    invoice = invoice_crud.find_by_share_token(db, share_token=share_token)
    if invoice is None or invoice.status == InvoiceStatus.DRAFT:
        raise NotFoundError("Invoice not found")
    if lifecycle.can_apply(invoice.status, lifecycle.InvoiceEvent.VIEW):
        lifecycle.view(invoice, now=now)
        invoice_crud.save_invoice(db, invoice)
    return invoice


def cancel_invoice(db: Session, owner_id: int, invoice_id: int, now: datetime | None = None) -> Invoice:
    invoice = get_invoice(db, owner_id, invoice_id, for_update=True)
    lifecycle.cancel(invoice, now=now)
    invoice_crud.save_invoice(db, invoice)
    logger.info("Invoice %s cancelled", invoice.invoice_number)
    return invoice


def mark_invoice_overdue(
    db: Session, owner_id: int, invoice_id: int, today: date, now: datetime | None = None
) -> Invoice:
    invoice = get_invoice(db, owner_id, invoice_id, for_update=True)
    lifecycle.mark_overdue(invoice, today, now=now)
    return invoice_crud.save_invoice(db, invoice)


def mark_overdue_invoices(
    db: Session, today: date, owner_id: int | None = None, now: datetime | None = None
) -> OverdueSweepResult:
    """Move every past-due SENT/VIEWED/PARTIALLY_PAID invoice to OVERDUE.

    Each invoice is committed on its own. A failure is rolled back, logged and
    reported in ``failures``; the remaining invoices are still processed.
    """
    candidates = invoice_crud.list_overdue_candidates(db, today=today, owner_id=owner_id)
    targets = [(invoice.id, invoice.owner_id) for invoice in candidates]
    result = OverdueSweepResult()

    for invoice_id, invoice_owner_id in targets:
        try:
            marked = mark_invoice_overdue(db, invoice_owner_id, invoice_id, today, now=now)
        except Exception as exc:
            db.rollback()
            logger.exception("Failed to mark invoice %s overdue", invoice_id)
            result.failures.append(SweepFailure(invoice_id=invoice_id, error=str(exc)))
        else:
            result.marked.append(marked)

    logger.info(
        "Marked %d invoice(s) overdue as of %s, %d failed",
        len(result.marked),
        today.isoformat(),
        len(result.failures),
    )
    return result


def record_reminder(
    db: Session, invoice: Invoice, tone: ReminderTone, now: datetime | None = None
) -> Invoice:
    lifecycle.ensure_remindable(invoice)
    lifecycle.record_activity(invoice, ActivityAction.REMINDER_SENT, {"tone": tone.value}, now=now)
    return invoice_crud.save_invoice(db, invoice)
