"""Dashboard schemas for owner-level overviews."""

from decimal import Decimal
from typing import List

from pydantic import BaseModel

from backend.app.schemas.invoice import InvoiceRead


class InvoiceCounts(BaseModel):
    draft: int = 0
    sent: int = 0
    viewed: int = 0
    partially_paid: int = 0
    paid: int = 0
    overdue: int = 0
    cancelled: int = 0


class DashboardStats(BaseModel):
    total_revenue: Decimal
    outstanding_amount: Decimal
    overdue_amount: Decimal
    paid_this_month: Decimal
    invoice_count: InvoiceCounts
    recent_invoices: List[InvoiceRead]
