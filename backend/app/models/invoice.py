"""Invoice model for billing."""

import secrets
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from backend.app.core.enums import InvoiceStatus, RecurringInterval
from backend.app.core.time import utc_now
from backend.app.db.base_class import Base


def _new_share_token() -> str:
    return secrets.token_urlsafe(24)


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (UniqueConstraint("owner_id", "invoice_number", name="uq_invoices_owner_number"),)

    id = Column(Integer, primary_key=True, index=True)
    owner_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("clients.id"), nullable=False, index=True)
    invoice_number = Column(String(50), nullable=False)

    status = Column(SAEnum(InvoiceStatus, native_enum=False, length=20), default=InvoiceStatus.DRAFT, nullable=False)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=True)

    subtotal = Column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    tax_rate = Column(Numeric(7, 4), nullable=True)
    tax_amount = Column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    discount_amount = Column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    total = Column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    amount_paid = Column(Numeric(12, 2), default=Decimal("0.00"), nullable=False)
    currency = Column(String(3), default="USD", nullable=False)

    notes = Column(Text, nullable=True)
    terms = Column(Text, nullable=True)

    sent_at = Column(DateTime(timezone=True), nullable=True)
    viewed_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    is_recurring = Column(Boolean, default=False, nullable=False)
    recurring_interval = Column(SAEnum(RecurringInterval, native_enum=False, length=20), nullable=True)
    next_recurring_date = Column(Date, nullable=True)

    share_token = Column(String(64), unique=True, index=True, nullable=False, default=_new_share_token)
    version = Column(Integer, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utc_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    owner = relationship("User", back_populates="invoices")
    client = relationship("Client", back_populates="invoices")
    line_items = relationship(
        "LineItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="LineItem.sort_order",
    )
    payments = relationship(
        "Payment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="Payment.id",
    )
    activities = relationship(
        "InvoiceActivity",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceActivity.id",
    )

    @property
    def balance_due(self) -> Decimal:
        balance = (self.total or Decimal("0.00")) - (self.amount_paid or Decimal("0.00"))
        if balance < Decimal("0.00"):
            return Decimal("0.00")
        return balance
