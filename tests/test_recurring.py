from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from backend.app.core.enums import ActivityAction, InvoiceStatus, RecurringInterval
from backend.app.core.errors import NotFoundError, ValidationError
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.models.client import Client
from backend.app.models.invoice import Invoice
from backend.app.models.user import User
from backend.app.schemas.invoice import InvoiceCreate
from backend.app.services import invoices as invoice_service
from backend.app.services import recurring
from backend.app.services.payments import record_payment

CREATED = datetime(2024, 1, 31, 9, 0, tzinfo=timezone.utc)
LATER = datetime(2024, 3, 5, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def setup_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def _create_owner_client(db, email="owner@example.com"):
    user = User(email=email, hashed_password="x", is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    client = Client(owner_id=user.id, name="Acme", email="billing@acme.example.com")
    db.add(client)
    db.commit()
    db.refresh(client)
    return user, client


def _create_recurring(db, owner_id, client_id, interval=RecurringInterval.MONTHLY, send=True):
    data = InvoiceCreate(
        client_id=client_id,
        issue_date=date(2024, 1, 31),
        due_date=date(2024, 2, 14),
        line_items=[
            {"description": "Retainer", "quantity": "1", "unit_price": "500.00"},
            {"description": "Support hours", "quantity": "2.5", "unit_price": "80.00"},
        ],
        tax_rate=Decimal("10"),
        discount_amount=Decimal("20"),
        notes="Thanks",
        is_recurring=True,
        recurring_interval=interval,
    )
    invoice = invoice_service.create_invoice(db, owner_id, data, now=CREATED)
    if send:
        invoice = invoice_service.send_invoice(db, owner_id, invoice.id, now=CREATED)
    return invoice


def test_next_recurring_date_is_set_on_creation():
    db = SessionLocal()
    try:
        user, client = _create_owner_client(db)
        invoice = _create_recurring(db, user.id, client.id, send=False)
        assert invoice.next_recurring_date == date(2024, 2, 29)
    finally:
        db.close()


def test_generate_preserves_total_and_items():
    db = SessionLocal()
    try:
        user, client = _create_owner_client(db)
        source = _create_recurring(db, user.id, client.id)

        generated = recurring.generate_from_recurring(db, user.id, source.id, now=LATER)
        db.refresh(source)

        assert generated.id != source.id
        assert generated.status == InvoiceStatus.DRAFT
        assert generated.total == source.total == Decimal("750.00")
        assert generated.amount_paid == Decimal("0.00")
        assert generated.invoice_number == "INV-2024-0002"
        assert generated.issue_date == date(2024, 3, 5)
        assert generated.due_date == date(2024, 3, 19)
        assert generated.next_recurring_date == date(2024, 4, 5)
        assert [(i.description, i.quantity, i.sort_order) for i in generated.line_items] == [
            (i.description, i.quantity, i.sort_order) for i in source.line_items
        ]
        assert generated.activities[0].action == ActivityAction.CREATED
        assert generated.activities[0].details["generated_from"] == source.id

        assert source.next_recurring_date is None
        assert source.activities[-1].action == ActivityAction.RECURRING_GENERATED
    finally:
        db.close()


def test_generate_rejects_non_recurring_invoice():
    db = SessionLocal()
    try:
        user, client = _create_owner_client(db)
        data = InvoiceCreate(client_id=client.id, line_items=[{"description": "One-off", "quantity": "1", "unit_price": "10"}])
        invoice = invoice_service.create_invoice(db, user.id, data, now=CREATED)
        with pytest.raises(ValidationError):
            recurring.generate_from_recurring(db, user.id, invoice.id, now=LATER)
        with pytest.raises(NotFoundError):
            recurring.generate_from_recurring(db, user.id, 12345, now=LATER)
    finally:
        db.close()


def test_due_sources_are_sent_or_paid_with_past_date():
    db = SessionLocal()
    try:
        user, client = _create_owner_client(db)
        sent = _create_recurring(db, user.id, client.id)
        draft = _create_recurring(db, user.id, client.id, send=False)
        paid = _create_recurring(db, user.id, client.id)
        record_payment(db, user.id, paid.id, "750.00", "CASH", now=CREATED)
        yearly = _create_recurring(db, user.id, client.id, interval=RecurringInterval.YEARLY)

        due_ids = {inv.id for inv in recurring.due_recurring_invoices(db, now=LATER)}
        assert due_ids == {sent.id, paid.id}
        assert draft.id not in due_ids
        assert yearly.id not in due_ids
    finally:
        db.close()


def test_sweep_isolates_failures(monkeypatch):
    db = SessionLocal()
    try:
        user, client = _create_owner_client(db)
        sources = [_create_recurring(db, user.id, client.id) for _ in range(3)]
        failing_id = sources[1].id
        original = recurring.generate_from_recurring

        def flaky_generate(db, owner_id, source_invoice_id, now=None):
            if source_invoice_id == failing_id:
                raise RuntimeError("storage unavailable")
            return original(db, owner_id, source_invoice_id, now=now)

        monkeypatch.setattr(recurring, "generate_from_recurring", flaky_generate)
        result = recurring.run_recurring_sweep(db, now=LATER)

        assert result.count == 2
        assert len(result.failures) == 1
        assert result.failures[0].invoice_id == failing_id
        assert "storage unavailable" in result.failures[0].error

        remaining = db.query(Invoice).filter(Invoice.id == failing_id).first()
        assert remaining.next_recurring_date == date(2024, 2, 29)
        assert db.query(Invoice).count() == 5
    finally:
        db.close()


def test_sweep_does_not_regenerate_consumed_sources():
    db = SessionLocal()
    try:
        user, client = _create_owner_client(db)
        _create_recurring(db, user.id, client.id)
        first = recurring.run_recurring_sweep(db, now=LATER)
        second = recurring.run_recurring_sweep(db, now=LATER)
        assert first.count == 1
        assert second.count == 0
    finally:
        db.close()


def test_sweep_can_be_limited_to_one_owner():
    db = SessionLocal()
    try:
        user, client = _create_owner_client(db)
        other, other_client = _create_owner_client(db, email="other@example.com")
        _create_recurring(db, user.id, client.id)
        _create_recurring(db, other.id, other_client.id)

        result = recurring.run_recurring_sweep(db, now=LATER, owner_id=user.id)
        assert result.count == 1
        assert result.generated[0].owner_id == user.id
    finally:
        db.close()
