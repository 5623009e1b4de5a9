"""Read-side aggregation over a snapshot of an owner's invoices.

Nothing here touches the database; callers load the invoices and pass them in.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Dict, Iterable, List, Sequence, Tuple

from backend.app.core.enums import InvoiceStatus
from backend.app.core.time import as_utc, utc_today
from backend.app.models.invoice import Invoice

OUTSTANDING_STATES = frozenset({InvoiceStatus.SENT, InvoiceStatus.VIEWED, InvoiceStatus.PARTIALLY_PAID})

MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")


def _sum_totals(invoices: Iterable[Invoice]) -> Decimal:
    return sum((Decimal(inv.total or 0) for inv in invoices), Decimal("0.00")).quantize(Decimal("0.01"))


def _paid_month(invoice: Invoice) -> Tuple[int, int] | None:
    if invoice.paid_at is None:
        return None
    paid_on = as_utc(invoice.paid_at).date()
    return paid_on.year, paid_on.month


def _paid(invoices: Sequence[Invoice]) -> List[Invoice]:
    return [inv for inv in invoices if inv.status == InvoiceStatus.PAID]


def _last_n_months(today: date, n: int = 6) -> List[Tuple[int, int]]:
    # oldest first
    year = today.year
    month = today.month
    months = []
    for _ in range(n):
        months.append((year, month))
        month -= 1
        if month == 0:
            month = 12
            year -= 1
    return list(reversed(months))


def status_counts(invoices: Sequence[Invoice]) -> Dict[str, int]:
    counts = {status.value.lower(): 0 for status in InvoiceStatus}
    for inv in invoices:
        counts[InvoiceStatus(inv.status).value.lower()] += 1
    return counts


def build_dashboard_stats(invoices: Sequence[Invoice], today: date | None = None, recent_limit: int = 5) -> dict:
    today = today or utc_today()
    paid = _paid(invoices)
    current_month = (today.year, today.month)

    recent = sorted(invoices, key=lambda inv: (as_utc(inv.created_at), inv.id), reverse=True)[:recent_limit]
    return {
        "total_revenue": _sum_totals(paid),
        "outstanding_amount": _sum_totals(inv for inv in invoices if inv.status in OUTSTANDING_STATES),
        "overdue_amount": _sum_totals(inv for inv in invoices if inv.status == InvoiceStatus.OVERDUE),
        "paid_this_month": _sum_totals(inv for inv in paid if _paid_month(inv) == current_month),
        "invoice_count": status_counts(invoices),
        "recent_invoices": recent,
    }


def monthly_revenue(invoices: Sequence[Invoice], today: date | None = None, months: int = 6) -> List[dict]:
    """Paid revenue per calendar month of ``paid_at`` for the trailing ``months`` months."""
    today = today or utc_today()
    month_keys = _last_n_months(today, months)
    buckets = {key: {"revenue": Decimal("0.00"), "invoices": 0} for key in month_keys}
    for inv in _paid(invoices):
        key = _paid_month(inv)
        if key in buckets:
            buckets[key]["revenue"] += Decimal(inv.total or 0)
            buckets[key]["invoices"] += 1

    rows = []
    for year, month in month_keys:
        rows.append(
            {
                "year": year,
                "month": month,
                "label": MONTH_LABELS[month - 1],
                "revenue": buckets[(year, month)]["revenue"].quantize(Decimal("0.01")),
                "invoices": buckets[(year, month)]["invoices"],
            }
        )
    return rows


def revenue_by_client(invoices: Sequence[Invoice], limit: int = 5) -> List[dict]:
    """Top clients by paid revenue, highest first."""
    totals: Dict[int, dict] = defaultdict(lambda: {"name": "Unknown", "revenue": Decimal("0.00"), "invoices": 0})
    for inv in _paid(invoices):
        entry = totals[inv.client_id]
        if inv.client is not None:
            entry["name"] = inv.client.name
        entry["revenue"] += Decimal(inv.total or 0)
        entry["invoices"] += 1

    ranked = sorted(totals.items(), key=lambda item: (-item[1]["revenue"], item[0]))[:limit]
    return [
        {
            "client_id": client_id,
            "name": entry["name"],
            "revenue": entry["revenue"].quantize(Decimal("0.01")),
            "invoices": entry["invoices"],
        }
        for client_id, entry in ranked
    ]


def status_breakdown(invoices: Sequence[Invoice]) -> List[dict]:
    counts = status_counts(invoices)
    return [{"status": status, "count": counts[status.value.lower()]} for status in InvoiceStatus]


def build_report(invoices: Sequence[Invoice], today: date | None = None) -> dict:
    today = today or utc_today()
    return {
        "monthly_revenue": monthly_revenue(invoices, today),
        "revenue_by_client": revenue_by_client(invoices),
        "status_breakdown": status_breakdown(invoices),
        "stats": build_dashboard_stats(invoices, today),
    }
