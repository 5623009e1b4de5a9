"""Online card payments through Stripe Checkout.

Webhook signature verification is left to the deployment edge; this module
only turns already-parsed event payloads into ``GatewayEvent`` values.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

import stripe

from backend.app.core.enums import InvoiceStatus
from backend.app.core.errors import DependencyError, InvalidStateError
from backend.app.core.settings import get_settings
from backend.app.models.invoice import Invoice

logger = logging.getLogger(__name__)

PAYMENT_COMPLETED = "payment_completed"


@dataclass(frozen=True)
class GatewayEvent:
    type: str
    invoice_id: Optional[int] = None
    amount: Optional[Decimal] = None
    transaction_id: Optional[str] = None


def amount_due_minor_units(invoice: Invoice) -> int:
    """Outstanding balance in cents."""
    return int((invoice.balance_due * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _from_minor_units(value: Any) -> Decimal:
    return (Decimal(int(value or 0)) / Decimal(100)).quantize(Decimal("0.01"))


def _invoice_id_from_metadata(metadata: dict | None) -> Optional[int]:
    raw = (metadata or {}).get("invoice_id")
    try:
        return int(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


def normalize_gateway_event(event: dict) -> GatewayEvent:
    event_type = event.get("type", "")
    obj = (event.get("data") or {}).get("object") or {}

    if event_type == "checkout.session.completed":
        return GatewayEvent(
            type=PAYMENT_COMPLETED,
            invoice_id=_invoice_id_from_metadata(obj.get("metadata")),
            amount=_from_minor_units(obj.get("amount_total")),
            transaction_id=obj.get("payment_intent"),
        )
    if event_type == "payment_intent.succeeded":
        return GatewayEvent(
            type=PAYMENT_COMPLETED,
            invoice_id=_invoice_id_from_metadata(obj.get("metadata")),
            amount=_from_minor_units(obj.get("amount")),
            transaction_id=obj.get("id"),
        )
    return GatewayEvent(type=event_type)


class PaymentGateway:
    def create_checkout_session(self, invoice: Invoice) -> str:
        raise NotImplementedError


class StripeGateway(PaymentGateway):
    def __init__(self, api_key: str, app_url: str):
        self.api_key = api_key
        self.app_url = app_url.rstrip("/")

    def create_checkout_session(self, invoice: Invoice) -> str:
        if invoice.status in (InvoiceStatus.PAID, InvoiceStatus.CANCELLED):
            raise InvalidStateError(f"Cannot pay an invoice with status {invoice.status.value}")
        amount_due = amount_due_minor_units(invoice)
        if amount_due <= 0:
            raise InvalidStateError("Invoice has no outstanding balance")
        if not self.api_key:
            raise DependencyError("Payment gateway is not configured")

        try:
            session = stripe.checkout.Session.create(
                api_key=self.api_key,
                mode="payment",
                payment_method_types=["card"],
                client_reference_id=str(invoice.id),
                customer_email=invoice.client.email if invoice.client else None,
                line_items=[
                    {
                        "price_data": {
                            "currency": invoice.currency.lower(),
                            "product_data": {
                                "name": f"Invoice {invoice.invoice_number}",
                                "description": f"Payment for invoice {invoice.invoice_number}",
                            },
                            "unit_amount": amount_due,
                        },
                        "quantity": 1,
                    }
                ],
                metadata={"invoice_id": str(invoice.id), "invoice_number": invoice.invoice_number},
                success_url=f"{self.app_url}/invoice/{invoice.share_token}/success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{self.app_url}/invoice/{invoice.share_token}",
            )
        except stripe.StripeError as exc:
            logger.warning("Stripe checkout session failed for invoice %s: %s", invoice.invoice_number, exc)
            raise DependencyError("Payment gateway request failed") from exc
        return session.url


def get_payment_gateway() -> PaymentGateway:
    settings = get_settings()
    return StripeGateway(settings.stripe_secret_key, settings.app_url)
