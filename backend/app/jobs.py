"""Daily maintenance jobs: overdue marking and the recurring invoice sweep.

Run with ``python -m backend.app.jobs`` from cron or a scheduler.
"""

import logging
from datetime import datetime

from sqlalchemy.orm import Session

from backend.app.core.logging_config import configure_logging
from backend.app.core.time import utc_now
from backend.app.db.base import Base
from backend.app.db.session import SessionLocal, engine
from backend.app.services.invoices import mark_overdue_invoices
from backend.app.services.recurring import run_recurring_sweep

logger = logging.getLogger(__name__)


def run_daily_jobs(db: Session, now: datetime | None = None) -> dict:
    now = now or utc_now()
    overdue = mark_overdue_invoices(db, now.date(), now=now)
    sweep = run_recurring_sweep(db, now=now)
    summary = {
        "overdue_marked": len(overdue.marked),
        "overdue_failed": len(overdue.failures),
        "recurring_generated": sweep.count,
        "recurring_failed": len(sweep.failures),
    }
    logger.info("Daily jobs finished: %s", summary)
    return summary


def main() -> int:
    configure_logging()
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        summary = run_daily_jobs(db)
    finally:
        db.close()
    return 1 if summary["overdue_failed"] or summary["recurring_failed"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
