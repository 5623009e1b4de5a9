"""Invoice activity model: append-only audit trail of lifecycle events."""

from sqlalchemy import JSON, Column, DateTime, Enum as SAEnum, ForeignKey, Integer
from sqlalchemy.orm import relationship

from backend.app.core.enums import ActivityAction
from backend.app.core.time import utc_now
from backend.app.db.base_class import Base


class InvoiceActivity(Base):
    __tablename__ = "invoice_activities"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False, index=True)
    action = Column(SAEnum(ActivityAction, native_enum=False, length=30), nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utc_now)

    invoice = relationship("Invoice", back_populates="activities")
