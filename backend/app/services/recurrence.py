"""Next-occurrence arithmetic for recurring invoices.

Month-based intervals use ``dateutil.relativedelta``, which clamps to the last
day of a shorter month instead of rolling over: 2024-01-31 + MONTHLY is
2024-02-29 and 2023-01-31 + MONTHLY is 2023-02-28. The result is always
computed from the given anchor, never from a previously clamped date.
"""

from datetime import date, datetime

from dateutil.relativedelta import relativedelta

from backend.app.core.enums import RecurringInterval

INTERVAL_STEPS = {
    RecurringInterval.WEEKLY: relativedelta(days=7),
    RecurringInterval.BIWEEKLY: relativedelta(days=14),
    RecurringInterval.MONTHLY: relativedelta(months=1),
    RecurringInterval.QUARTERLY: relativedelta(months=3),
    RecurringInterval.YEARLY: relativedelta(years=1),
}


def next_occurrence(from_date: date, interval: RecurringInterval | str) -> date:
    if isinstance(from_date, datetime):
        from_date = from_date.date()
    return from_date + INTERVAL_STEPS[RecurringInterval(interval)]
