"""Invoice routes for owners."""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from backend.app.core.enums import InvoiceStatus
from backend.app.core.security import get_current_user
from backend.app.core.time import utc_today
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.schemas.invoice import (
    InvoiceCreate,
    InvoiceDetail,
    InvoiceNotificationResult,
    InvoicePage,
    InvoiceRead,
    InvoiceUpdate,
    OverdueCheckResult,
    RecurringGenerateRequest,
    RecurringGenerateResult,
    RecurringUpdate,
    ReminderRequest,
)
from backend.app.schemas.payment import CheckoutSessionRead, MarkPaidRequest, PaymentCreate
from backend.app.services import invoices as invoice_service
from backend.app.services import lifecycle, payments, recurring
from backend.app.services.documents import SenderInfo, render_invoice_document
from backend.app.services.notifications import InvoiceNotifier, get_notifier, notify_best_effort
from backend.app.services.payment_gateway import PaymentGateway, get_payment_gateway

router = APIRouter(prefix="/invoices", tags=["invoices"])


@router.get("", response_model=InvoicePage)
def list_invoices(
    status: InvoiceStatus | None = None,
    client_id: int | None = None,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return invoice_service.list_invoices(
        db, current_user.id, status=status, client_id=client_id, page=page, page_size=page_size
    )


@router.post("", response_model=InvoiceDetail, status_code=status.HTTP_201_CREATED)
def create_invoice(
    payload: InvoiceCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return invoice_service.create_invoice(db, current_user.id, payload)


@router.get("/recurring", response_model=list[InvoiceRead])
def list_recurring_invoices(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return invoice_service.list_recurring_invoices(db, current_user.id)


@router.post("/recurring", response_model=RecurringGenerateResult)
def generate_recurring_invoices(
    payload: RecurringGenerateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if payload.invoice_id is not None:
        invoice = recurring.generate_from_recurring(db, current_user.id, payload.invoice_id)
        return {"generated": [invoice], "count": 1, "failures": []}

    result = recurring.run_recurring_sweep(db, owner_id=current_user.id)
    return {
        "generated": result.generated,
        "count": result.count,
        "failures": [{"invoice_id": f.invoice_id, "error": f.error} for f in result.failures],
    }


@router.post("/overdue-check", response_model=OverdueCheckResult)
def check_overdue_invoices(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    result = invoice_service.mark_overdue_invoices(db, utc_today(), owner_id=current_user.id)
    return {
        "marked": result.marked,
        "count": len(result.marked),
        "failures": [{"invoice_id": f.invoice_id, "error": f.error} for f in result.failures],
    }


@router.get("/{invoice_id}", response_model=InvoiceDetail)
def get_invoice(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return invoice_service.get_invoice(db, current_user.id, invoice_id)


@router.patch("/{invoice_id}", response_model=InvoiceDetail)
def update_invoice(
    invoice_id: int,
    payload: InvoiceUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return invoice_service.update_invoice(db, current_user.id, invoice_id, payload)


@router.delete("/{invoice_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_invoice(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    invoice_service.delete_invoice(db, current_user.id, invoice_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{invoice_id}/send", response_model=InvoiceNotificationResult)
def send_invoice(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier: InvoiceNotifier = Depends(get_notifier),
):
    invoice = invoice_service.send_invoice(db, current_user.id, invoice_id)
    notification = notify_best_effort(lambda: notifier.send_invoice(invoice, current_user.sender_name), invoice)
    return {"invoice": invoice, "notification": notification}


@router.post("/{invoice_id}/cancel", response_model=InvoiceRead)
def cancel_invoice(invoice_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return invoice_service.cancel_invoice(db, current_user.id, invoice_id)


@router.post("/{invoice_id}/payments", response_model=InvoiceNotificationResult, status_code=status.HTTP_201_CREATED)
def record_payment(
    invoice_id: int,
    payload: PaymentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier: InvoiceNotifier = Depends(get_notifier),
):
    invoice = payments.record_payment(
        db,
        current_user.id,
        invoice_id,
        payload.amount,
        payload.method,
        transaction_id=payload.transaction_id,
        notes=payload.notes,
    )
    notification = notify_best_effort(
        lambda: notifier.send_payment_confirmation(invoice, current_user.sender_name, payload.amount), invoice
    )
    return {"invoice": invoice, "notification": notification}


@router.post("/{invoice_id}/mark-paid", response_model=InvoiceRead)
def mark_invoice_paid(
    invoice_id: int,
    payload: MarkPaidRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return payments.mark_paid(db, current_user.id, invoice_id, payload.method, notes=payload.notes)


@router.post("/{invoice_id}/remind", response_model=InvoiceRead)
def send_reminder(
    invoice_id: int,
    payload: ReminderRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    notifier: InvoiceNotifier = Depends(get_notifier),
):
    invoice = invoice_service.get_invoice(db, current_user.id, invoice_id)
    lifecycle.ensure_remindable(invoice)
    # A reminder is only recorded once it has actually been delivered.
    notifier.send_reminder(invoice, current_user.sender_name, payload.tone)
    return invoice_service.record_reminder(db, invoice, payload.tone)


@router.post("/{invoice_id}/checkout", response_model=CheckoutSessionRead)
def create_checkout_session(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    invoice = invoice_service.get_invoice(db, current_user.id, invoice_id)
    return {"url": gateway.create_checkout_session(invoice)}


@router.get("/{invoice_id}/pdf")
def download_invoice_pdf(
    invoice_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    invoice = invoice_service.get_invoice(db, current_user.id, invoice_id)
    content = render_invoice_document(invoice, SenderInfo.from_user(current_user))
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{invoice.invoice_number}.pdf"'},
    )


@router.put("/{invoice_id}/recurring", response_model=InvoiceRead)
def set_recurring(
    invoice_id: int,
    payload: RecurringUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return invoice_service.set_recurring(
        db, current_user.id, invoice_id, payload.is_recurring, payload.recurring_interval
    )
