from datetime import datetime, timezone
from decimal import Decimal

import pytest

from backend.app.core.enums import ActivityAction, InvoiceStatus, PaymentMethod
from backend.app.core.errors import InvalidStateError, NotFoundError, ValidationError
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.models.client import Client
from backend.app.models.payment import Payment
from backend.app.models.user import User
from backend.app.schemas.invoice import InvoiceCreate
from backend.app.services import invoices as invoice_service
from backend.app.services.payment_gateway import PAYMENT_COMPLETED, GatewayEvent
from backend.app.services.payments import mark_paid, record_gateway_payment, record_payment

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


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


def _create_sent_invoice(db, owner_id, client_id, price="100.00"):
    data = InvoiceCreate(client_id=client_id, line_items=[{"description": "Work", "quantity": "1", "unit_price": price}])
    invoice = invoice_service.create_invoice(db, owner_id, data, now=NOW)
    return invoice_service.send_invoice(db, owner_id, invoice.id, now=NOW)


def _payment_count(db, invoice_id):
    return db.query(Payment).filter(Payment.invoice_id == invoice_id).count()


def test_partial_then_full_payment():
    db = SessionLocal()
    try:
        user, client = _create_owner_client(db)
        invoice = _create_sent_invoice(db, user.id, client.id)

        invoice = record_payment(db, user.id, invoice.id, "60", "CASH", now=NOW)
        assert invoice.status == InvoiceStatus.PARTIALLY_PAID
        assert invoice.amount_paid == Decimal("60.00")
        assert invoice.paid_at is None

        invoice = record_payment(db, user.id, invoice.id, Decimal("40.00"), "bank_transfer", transaction_id="tx-2", now=NOW)
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.amount_paid == Decimal("100.00")
        assert invoice.paid_at is not None
        assert _payment_count(db, invoice.id) == 2
        assert invoice.payments[1].method == PaymentMethod.BANK_TRANSFER
        assert invoice.payments[1].transaction_id == "tx-2"
        actions = [a.action for a in invoice.activities]
        assert actions.count(ActivityAction.PAYMENT_RECEIVED) == 2
    finally:
        db.close()


def test_payment_on_paid_invoice_is_rejected_without_new_payment():
    db = SessionLocal()
    try:
        user, client = _create_owner_client(db)
        invoice = _create_sent_invoice(db, user.id, client.id)
        record_payment(db, user.id, invoice.id, "100", "CASH", now=NOW)

        with pytest.raises(InvalidStateError):
            record_payment(db, user.id, invoice.id, "1", "CASH", now=NOW)
        db.rollback()
        assert _payment_count(db, invoice.id) == 1
    finally:
        db.close()


def test_payment_on_cancelled_invoice_is_rejected():
    db = SessionLocal()
    try:
        user, client = _create_owner_client(db)
        invoice = _create_sent_invoice(db, user.id, client.id)
        invoice_service.cancel_invoice(db, user.id, invoice.id, now=NOW)

        with pytest.raises(InvalidStateError):
            record_payment(db, user.id, invoice.id, "10", "CASH", now=NOW)
        db.rollback()
        assert _payment_count(db, invoice.id) == 0
    finally:
        db.close()


def test_invalid_amount_and_method():
    db = SessionLocal()
    try:
        user, client = _create_owner_client(db)
        invoice = _create_sent_invoice(db, user.id, client.id)
        with pytest.raises(ValidationError):
            record_payment(db, user.id, invoice.id, "0", "CASH", now=NOW)
        with pytest.raises(ValidationError):
            record_payment(db, user.id, invoice.id, "-5", "CASH", now=NOW)
        with pytest.raises(ValidationError):
            record_payment(db, user.id, invoice.id, "5", "BITCOIN", now=NOW)
        assert _payment_count(db, invoice.id) == 0
    finally:
        db.close()


def test_payment_is_scoped_to_owner():
    db = SessionLocal()
    try:
        user, client = _create_owner_client(db)
        other, _ = _create_owner_client(db, email="other@example.com")
        invoice = _create_sent_invoice(db, user.id, client.id)
        with pytest.raises(NotFoundError):
            record_payment(db, other.id, invoice.id, "10", "CASH", now=NOW)
    finally:
        db.close()


def test_overpayment_is_recorded_as_is():
    db = SessionLocal()
    try:
        user, client = _create_owner_client(db)
        invoice = _create_sent_invoice(db, user.id, client.id)
        invoice = record_payment(db, user.id, invoice.id, "120", "CASH", now=NOW)
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.amount_paid == Decimal("120.00")
    finally:
        db.close()


def test_mark_paid_settles_remaining_balance():
    db = SessionLocal()
    try:
        user, client = _create_owner_client(db)
        invoice = _create_sent_invoice(db, user.id, client.id)
        record_payment(db, user.id, invoice.id, "30", "CASH", now=NOW)

        invoice = mark_paid(db, user.id, invoice.id, now=NOW)
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.amount_paid == Decimal("100.00")
        assert invoice.payments[-1].amount == Decimal("70.00")
        assert invoice.payments[-1].method == PaymentMethod.OTHER
        assert invoice.activities[-1].action == ActivityAction.MARKED_PAID

        with pytest.raises(InvalidStateError):
            mark_paid(db, user.id, invoice.id, now=NOW)
    finally:
        db.close()


def test_gateway_event_records_stripe_payment():
    db = SessionLocal()
    try:
        user, client = _create_owner_client(db)
        invoice = _create_sent_invoice(db, user.id, client.id)
        event = GatewayEvent(type=PAYMENT_COMPLETED, invoice_id=invoice.id, amount=Decimal("100.00"), transaction_id="pi_1")

        paid = record_gateway_payment(db, event, now=NOW)
        assert paid.status == InvoiceStatus.PAID
        assert paid.payments[0].method == PaymentMethod.STRIPE
        assert paid.payments[0].transaction_id == "pi_1"
    finally:
        db.close()


def test_gateway_event_without_payment_is_ignored():
    db = SessionLocal()
    try:
        assert record_gateway_payment(db, GatewayEvent(type="charge.refunded")) is None
        assert record_gateway_payment(db, GatewayEvent(type=PAYMENT_COMPLETED, amount=Decimal("5"))) is None
        with pytest.raises(NotFoundError):
            record_gateway_payment(db, GatewayEvent(type=PAYMENT_COMPLETED, invoice_id=999, amount=Decimal("5")))
    finally:
        db.close()
