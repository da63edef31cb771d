import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session
from app.database import SessionLocal
from app.billing.resets import reset_monthly_quotas, ResetReport

logger = logging.getLogger(__name__)

def reset_all_users() -> ResetReport:
    """
    Reset usage of every user whose billing period has ended.
    Runs in the scheduler thread, so it opens its own session.
    """
    db: Session = SessionLocal()
    try:
        return reset_monthly_quotas(db)
    finally:
        db.close()

def start_scheduler() -> BackgroundScheduler:
    scheduler = BackgroundScheduler(timezone="UTC")  # ensure UTC schedule
    # Run at 00:05 UTC every day (picks up every period that ended since yesterday)
    scheduler.add_job(reset_all_users, CronTrigger(hour=0, minute=5, timezone="UTC"), id="reset-quotas")
    scheduler.start()
    logger.info("Quota reset job scheduled daily at 00:05 UTC")
    return scheduler
