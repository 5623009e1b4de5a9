"""Sequential invoice numbers of the form ``{PREFIX}-{YEAR}-{NNNN}``.

The sequence never resets: the year segment is the wall-clock year at
generation time, so an owner's numbers keep counting across a year boundary
(``INV-2024-0042`` is followed by ``INV-2025-0043``).
"""

from datetime import date

from backend.app.core.time import utc_today


def parse_sequence(invoice_number: str | None) -> int:
    """Return the trailing numeric segment of an invoice number, or 0."""
    if not invoice_number:
        return 0
    tail = invoice_number.rsplit("-", 1)[-1]
    try:
        return int(tail)
    except ValueError:
        return 0


def next_invoice_number(prefix: str, last_sequence: int, today: date | None = None) -> str:
    year = (today or utc_today()).year
    sequence = max(last_sequence, 0) + 1
    return f"{prefix}-{year}-{sequence:04d}"
