"""Recurring invoice generation.

Generating from a source invoice clones it into a new DRAFT and clears the
source's ``next_recurring_date`` so the source is consumed for this cycle. The
schedule continues from the newly generated invoice: it carries its own
``next_recurring_date`` and becomes eligible for the sweep once it is SENT or
PAID.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List

from sqlalchemy.orm import Session

from backend.app.core.enums import ActivityAction, InvoiceStatus
from backend.app.core.errors import NotFoundError, ValidationError
from backend.app.core.time import utc_now
from backend.app.crud.crud_invoice import invoice_crud
from backend.app.models.invoice import Invoice
from backend.app.models.line_item import LineItem
from backend.app.services import lifecycle
from backend.app.services.invoices import SweepFailure, next_number_for_owner
from backend.app.services.recurrence import next_occurrence
from backend.app.services.totals import ZERO

logger = logging.getLogger(__name__)


@dataclass
class RecurringSweepResult:
    generated: List[Invoice] = field(default_factory=list)
    failures: List[SweepFailure] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.generated)


def clone_recurring_invoice(source: Invoice, invoice_number: str, now: datetime) -> Invoice:
    """Build the next invoice of a recurring series from ``source``.

    Monetary fields and line items are copied verbatim; the due date keeps the
    source's issue-to-due offset.
    """
    if not source.is_recurring:
        raise ValidationError("Invoice is not recurring")
    if source.recurring_interval is None:
        raise ValidationError("Invoice has no recurring interval set")

    issue_date = now.date()
    due_date = None
    if source.due_date is not None:
        due_date = issue_date + (source.due_date - source.issue_date)

    invoice = Invoice(
        owner_id=source.owner_id,
        client_id=source.client_id,
        invoice_number=invoice_number,
        status=InvoiceStatus.DRAFT,
        issue_date=issue_date,
        due_date=due_date,
        subtotal=source.subtotal,
        tax_rate=source.tax_rate,
        tax_amount=source.tax_amount,
        discount_amount=source.discount_amount,
        total=source.total,
        amount_paid=ZERO,
        currency=source.currency,
        notes=source.notes,
        terms=source.terms,
        is_recurring=True,
        recurring_interval=source.recurring_interval,
        next_recurring_date=next_occurrence(issue_date, source.recurring_interval),
    )
    invoice.line_items = [
        LineItem(
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            amount=item.amount,
            sort_order=item.sort_order,
        )
        for item in sorted(source.line_items, key=lambda item: item.sort_order)
    ]
    lifecycle.record_activity(
        invoice,
        ActivityAction.CREATED,
        {"generated_from": source.id, "source_invoice_number": source.invoice_number},
        now=now,
    )
    return invoice


def generate_from_recurring(db: Session, owner_id: int, source_invoice_id: int, now: datetime | None = None) -> Invoice:
    now = now or utc_now()
    source = invoice_crud.find_invoice(db, invoice_id=source_invoice_id, owner_id=owner_id, for_update=True)
    if source is None:
        raise NotFoundError("Recurring invoice not found")

    invoice = clone_recurring_invoice(source, next_number_for_owner(db, owner_id, now.date()), now)
    source.next_recurring_date = None
    lifecycle.record_activity(
        source, ActivityAction.RECURRING_GENERATED, {"invoice_number": invoice.invoice_number}, now=now
    )
    db.add(invoice)
    invoice_crud.commit(db)
    db.refresh(invoice)
    logger.info("Generated invoice %s from recurring invoice %s", invoice.invoice_number, source.invoice_number)
    return invoice


def due_recurring_invoices(db: Session, now: datetime | None = None, owner_id: int | None = None) -> List[Invoice]:
    """Recurring SENT/PAID invoices whose next date is on or before ``now``."""
    now = now or utc_now()
    return invoice_crud.list_due_recurring(db, as_of=now.date(), owner_id=owner_id)


def run_recurring_sweep(db: Session, now: datetime | None = None, owner_id: int | None = None) -> RecurringSweepResult:
    """Generate the next invoice for every due recurring invoice.

    Each source is processed in its own transaction. A failure is rolled back,
    logged and reported in ``failures``; the remaining sources are still
    processed.
    """
    now = now or utc_now()
    targets = [(invoice.id, invoice.owner_id) for invoice in due_recurring_invoices(db, now, owner_id)]
    result = RecurringSweepResult()

    for invoice_id, invoice_owner_id in targets:
        try:
            generated = generate_from_recurring(db, invoice_owner_id, invoice_id, now=now)
        except Exception as exc:
            db.rollback()
            logger.exception("Failed to generate recurring invoice from invoice %s", invoice_id)
            result.failures.append(SweepFailure(invoice_id=invoice_id, error=str(exc)))
        else:
            result.generated.append(generated)

    logger.info(
        "Recurring sweep finished: %d generated, %d failed, %d due",
        len(result.generated),
        len(result.failures),
        len(targets),
    )
    return result
