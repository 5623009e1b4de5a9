"""Payment gateway webhook intake."""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException, status
from sqlalchemy.orm import Session

from backend.app.core.settings import get_settings
from backend.app.db.session import get_db
from backend.app.services.notifications import InvoiceNotifier, get_notifier, notify_best_effort
from backend.app.services.payment_gateway import normalize_gateway_event
from backend.app.services.payments import record_gateway_payment

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


def require_webhooks_enabled():
    if not get_settings().payment_webhooks_enabled:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")


@router.post("/payments", dependencies=[Depends(require_webhooks_enabled)])
def receive_payment_event(
    event: Dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    notifier: InvoiceNotifier = Depends(get_notifier),
):
    # Callers are not authenticated here: anything accepted below records a
    # STRIPE payment, so signature checks must happen before the request arrives.
    normalized = normalize_gateway_event(event)
    invoice = record_gateway_payment(db, normalized)
    if invoice is None:
        return {"received": True, "type": normalized.type, "invoice_id": None}

    notify_best_effort(
        lambda: notifier.send_payment_confirmation(invoice, invoice.owner.sender_name, normalized.amount), invoice
    )
    return {"received": True, "type": normalized.type, "invoice_id": invoice.id, "status": invoice.status}
