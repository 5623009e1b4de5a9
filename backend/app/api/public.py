"""Unauthenticated invoice view reached through the emailed link."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.schemas.invoice import PublicInvoiceRead
from backend.app.services.invoices import view_shared_invoice

router = APIRouter(prefix="/public", tags=["public"])


@router.get("/invoices/{share_token}", response_model=PublicInvoiceRead)
def view_invoice(share_token: str, db: Session = Depends(get_db)):
    return view_shared_invoice(db, share_token)
