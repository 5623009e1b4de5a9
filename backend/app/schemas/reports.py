from decimal import Decimal
from typing import List

from pydantic import BaseModel

from backend.app.core.enums import InvoiceStatus
from backend.app.schemas.dashboard import DashboardStats


class MonthlyRevenueRow(BaseModel):
    """Paid revenue for one calendar month."""

    year: int
    month: int
    label: str
    revenue: Decimal
    invoices: int


class ClientRevenueRow(BaseModel):
    client_id: int
    name: str
    revenue: Decimal
    invoices: int


class StatusCount(BaseModel):
    status: InvoiceStatus
    count: int


class RevenueReport(BaseModel):
    monthly_revenue: List[MonthlyRevenueRow]
    revenue_by_client: List[ClientRevenueRow]
    status_breakdown: List[StatusCount]
    stats: DashboardStats
