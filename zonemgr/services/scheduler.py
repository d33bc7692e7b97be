from __future__ import annotations

import logging

from apscheduler.schedulers.background import BackgroundScheduler  # type: ignore[import-untyped]
from apscheduler.triggers.cron import CronTrigger  # type: ignore[import-untyped]
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore[import-untyped]

from zonemgr.db.session import SessionLocal
from zonemgr.services.diagnostics import cleanup_diagnostic_log, run_monitoring
from zonemgr.settings import get_settings

log = logging.getLogger(__name__)

_scheduler: BackgroundScheduler | None = None


def monitoring_job() -> None:
    db = SessionLocal()
    try:
        result = run_monitoring(db)
        if not result.ok:
            log.warning(f"Monitoring job finished with {len(result.errors)} failure(s)")
    except Exception as e:
        log.error(f"Monitoring job failed: {e}")
        db.rollback()
    finally:
        db.close()


def diagnostic_log_retention_job() -> None:
    db = SessionLocal()
    try:
        deleted = cleanup_diagnostic_log(db)
        log.info(f"Diagnostic log retention job completed: {deleted} removed")
    except Exception as e:
        log.error(f"Diagnostic log retention job failed: {e}")
        db.rollback()
    finally:
        db.close()


def start_scheduler() -> None:
    global _scheduler

    if _scheduler is not None:
        return

    settings = get_settings()
    _scheduler = BackgroundScheduler(timezone="UTC")

    if settings.monitoring_enabled:
        _scheduler.add_job(
            monitoring_job,
            IntervalTrigger(minutes=settings.monitoring_interval_minutes),
            id="monitoring",
            name="Check servers and zones",
            replace_existing=True,
        )

    _scheduler.add_job(
        diagnostic_log_retention_job,
        CronTrigger(hour="3", minute="0"),
        id="diagnostic_log_retention",
        name="Cleanup old diagnostic log entries",
        replace_existing=True,
    )

    _scheduler.start()
    log.info("Background scheduler started")


def stop_scheduler() -> None:
    global _scheduler
    if _scheduler is not None:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        log.info("Background scheduler stopped")
