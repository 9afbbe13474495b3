"""Background scheduler for the request/certificate reconciler."""

import logging

from apscheduler.schedulers.background import BackgroundScheduler

from certui.config import get_settings

logger = logging.getLogger(__name__)

_scheduler: BackgroundScheduler | None = None


def run_reconciliation() -> int:
    """Run one reconciliation pass in its own session."""
    from certui.database import SessionLocal
    from certui.services.reconciler import reconcile_signed_requests

    session = SessionLocal()
    try:
        return reconcile_signed_requests(session)
    finally:
        session.close()


def _run_scheduled_reconciliation():
    logger.debug("Scheduled reconciliation triggered")
    try:
        run_reconciliation()
    except Exception as e:
        logger.error("Scheduled reconciliation failed: %s", e, exc_info=True)


def start_scheduler():
    """Start the background reconciliation scheduler."""
    global _scheduler
    settings = get_settings()

    if not settings.reconcile_enabled:
        logger.info("Reconciliation scheduler disabled")
        return

    _scheduler = BackgroundScheduler()
    _scheduler.add_job(
        _run_scheduled_reconciliation,
        "interval",
        minutes=settings.reconcile_interval_minutes,
        id="reconcile_signed_requests",
        name="Reconcile signed CSRs",
        replace_existing=True,
    )
    _scheduler.start()
    logger.info(
        "Scheduler started: reconciliation every %d minutes",
        settings.reconcile_interval_minutes,
    )


def stop_scheduler():
    """Stop the background scheduler."""
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Scheduler stopped")
