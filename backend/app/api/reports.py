"""Revenue reporting endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.core.security import get_current_user
from backend.app.crud.crud_invoice import invoice_crud
from backend.app.db.session import get_db
from backend.app.models.user import User
from backend.app.schemas.reports import RevenueReport
from backend.app.services.dashboard import build_report

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("", response_model=RevenueReport)
def get_reports(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    invoices = invoice_crud.list_all(db, owner_id=current_user.id)
    return build_report(invoices)
