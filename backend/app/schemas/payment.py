"""Payment schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from backend.app.core.enums import ActivityAction, PaymentMethod


class PaymentCreate(BaseModel):
    amount: Decimal
    # Plain string so unknown methods surface as a domain validation error
    method: str
    transaction_id: Optional[str] = None
    notes: Optional[str] = None


class MarkPaidRequest(BaseModel):
    method: str = PaymentMethod.OTHER.value
    notes: Optional[str] = None


class PaymentRead(BaseModel):
    id: int
    invoice_id: int
    amount: Decimal
    method: PaymentMethod
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    paid_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ActivityRead(BaseModel):
    id: int
    invoice_id: int
    action: ActivityAction
    details: Optional[dict[str, Any]] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class CheckoutSessionRead(BaseModel):
    url: str
