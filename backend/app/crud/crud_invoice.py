"""Persistence operations for invoices and their child records."""

from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from backend.app.core.enums import InvoiceStatus
from backend.app.core.errors import ConflictError
from backend.app.models.activity import InvoiceActivity
from backend.app.models.invoice import Invoice
from backend.app.models.payment import Payment
from backend.app.services.numbering import parse_sequence

RECURRING_SOURCE_STATES = (InvoiceStatus.SENT, InvoiceStatus.PAID)
OVERDUE_CANDIDATE_STATES = (InvoiceStatus.SENT, InvoiceStatus.VIEWED, InvoiceStatus.PARTIALLY_PAID)


class CRUDInvoice:
    def find_invoice(
        self, db: Session, *, invoice_id: int, owner_id: int, for_update: bool = False
    ) -> Optional[Invoice]:
        query = db.query(Invoice).filter(Invoice.id == invoice_id, Invoice.owner_id == owner_id)
        if for_update:
            # Ignored by SQLite; the version column still catches lost updates there.
            query = query.with_for_update()
        return query.first()

    def find_any(self, db: Session, *, invoice_id: int) -> Optional[Invoice]:
        return db.query(Invoice).filter(Invoice.id == invoice_id).first()

    def find_by_share_token(self, db: Session, *, share_token: str) -> Optional[Invoice]:
        return db.query(Invoice).filter(Invoice.share_token == share_token).first()

    def save_invoice(self, db: Session, invoice: Invoice) -> Invoice:
        db.add(invoice)
        self.commit(db)
        db.refresh(invoice)
        return invoice

    def append_payment(self, db: Session, payment: Payment) -> Payment:
        db.add(payment)
        return payment

    def append_activity(self, db: Session, activity: InvoiceActivity) -> InvoiceActivity:
        db.add(activity)
        return activity

    def commit(self, db: Session) -> None:
        try:
            db.commit()
        except StaleDataError as exc:
            db.rollback()
            raise ConflictError("Invoice was modified concurrently, please retry") from exc
        except IntegrityError as exc:
            db.rollback()
            raise ConflictError("Invoice could not be saved because of a conflicting record, please retry") from exc

    def list_invoices(
        self,
        db: Session,
        *,
        owner_id: int,
        status: InvoiceStatus | None = None,
        client_id: int | None = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[Invoice], int]:
        query = db.query(Invoice).filter(Invoice.owner_id == owner_id)
        if status is not None:
            query = query.filter(Invoice.status == status)
        if client_id is not None:
            query = query.filter(Invoice.client_id == client_id)
        total = query.count()
        items = (
            query.order_by(Invoice.created_at.desc(), Invoice.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return items, total

    def list_all(self, db: Session, *, owner_id: int) -> List[Invoice]:
        return db.query(Invoice).filter(Invoice.owner_id == owner_id).order_by(Invoice.id.asc()).all()

    def last_invoice_number_sequence(self, db: Session, *, owner_id: int) -> int:
        latest = (
            db.query(Invoice.invoice_number)
            .filter(Invoice.owner_id == owner_id)
            .order_by(Invoice.id.desc())
            .first()
        )
        return parse_sequence(latest[0]) if latest else 0

    def list_recurring(self, db: Session, *, owner_id: int) -> List[Invoice]:
        return (
            db.query(Invoice)
            .filter(Invoice.owner_id == owner_id, Invoice.is_recurring.is_(True))
            .order_by(Invoice.next_recurring_date.asc(), Invoice.id.asc())
            .all()
        )

    def list_due_recurring(self, db: Session, *, as_of: date, owner_id: int | None = None) -> List[Invoice]:
        query = db.query(Invoice).filter(
            Invoice.is_recurring.is_(True),
            Invoice.next_recurring_date.isnot(None),
            Invoice.next_recurring_date <= as_of,
            Invoice.status.in_(RECURRING_SOURCE_STATES),
        )
        if owner_id is not None:
            query = query.filter(Invoice.owner_id == owner_id)
        return query.order_by(Invoice.next_recurring_date.asc(), Invoice.id.asc()).all()

    def list_overdue_candidates(self, db: Session, *, today: date, owner_id: int | None = None) -> List[Invoice]:
        query = db.query(Invoice).filter(
            Invoice.status.in_(OVERDUE_CANDIDATE_STATES),
            Invoice.due_date.isnot(None),
            Invoice.due_date < today,
        )
        if owner_id is not None:
            query = query.filter(Invoice.owner_id == owner_id)
        return query.order_by(Invoice.id.asc()).all()

    def count_for_client(self, db: Session, *, client_id: int) -> int:
        return db.query(Invoice).filter(Invoice.client_id == client_id).count()


invoice_crud = CRUDInvoice()
