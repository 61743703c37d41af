"""Background scheduler for periodic licence statistics audits."""

import logging

from apscheduler.schedulers.background import BackgroundScheduler

logger = logging.getLogger(__name__)

scheduler = BackgroundScheduler(daemon=True)


def init_scheduler(app):
    """Initialize and start the background scheduler."""
    from config.settings import STATS_AUDIT_INTERVAL_HOURS

    if scheduler.running:
        return

    scheduler.add_job(
        func=run_stats_audit,
        args=[app],
        trigger="interval",
        hours=STATS_AUDIT_INTERVAL_HOURS,
        id="stats_audit",
        replace_existing=True,
    )

    scheduler.start()
    logger.info(
        "Scheduler started: stats audit every %d hour(s)",
        STATS_AUDIT_INTERVAL_HOURS,
    )


def run_stats_audit(app):
    """Check that the active subscription count matches the licence set.

    Drift is only reported; the totals are not rewritten here.
    """
    logger.info("Running scheduled stats audit...")

    try:
        from web.services import get_licence_manager

        with app.app_context():
            drift = get_licence_manager().audit_stats()
        if drift.in_sync:
            logger.info("Stats audit complete: %d active licence(s)", drift.actual_active)
        return drift
    except Exception:
        logger.exception("Scheduled stats audit failed")
        return None
