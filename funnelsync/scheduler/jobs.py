"""FunnelSync — Scheduler Jobs.

APScheduler jobs:
  - current-period refresh for every client, every few hours
  - daily archival of closed periods followed by archive validation
"""

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from sqlmodel import Session

from funnelsync.api.deps import default_connectors
from funnelsync.config import settings
from funnelsync.core.logging import get_logger
from funnelsync.core.periods import PeriodType
from funnelsync.database import engine
from funnelsync.sync.batch import BatchRunner
from funnelsync.sync.transitions import archive_closed_periods
from funnelsync.validation.anomaly_validator import AnomalyValidator

logger = get_logger("scheduler")

scheduler = AsyncIOScheduler()


def _session_factory() -> Session:
    return Session(engine)


async def refresh_current_periods_job():
    """Refresh this week's and this month's snapshot for every client."""
    logger.info("Scheduled current-period refresh starting...")
    connectors = default_connectors()
    runner = BatchRunner(_session_factory, connectors)
    try:
        for period_type in (PeriodType.MONTHLY, PeriodType.WEEKLY):
            result = await runner.run(period_type, force_refresh=True)
            logger.info(
                f"{period_type.value} refresh: {result.ok_count}/{len(result.results)} ok, "
                f"{len(result.failures)} failed"
            )
    except Exception as e:
        logger.error(f"Scheduled refresh failed: {e}")
    finally:
        for connector in connectors.values():
            await connector.close()


async def archive_and_validate_job():
    """Move closed periods into the archive, then re-validate it."""
    logger.info("Scheduled archival starting...")
    try:
        with _session_factory() as session:
            counts = archive_closed_periods(session)
            issues = AnomalyValidator(session).run()
        logger.info(
            f"Scheduled archival complete: {counts['archived']} archived, "
            f"{len(issues)} validation issues"
        )
    except Exception as e:
        logger.error(f"Scheduled archival failed: {e}")


def start_scheduler():
    """Configure and start the scheduler."""
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled via config")
        return

    scheduler.add_job(
        refresh_current_periods_job,
        "interval",
        hours=settings.refresh_interval_hours,
        id="refresh_current_periods",
        replace_existing=True,
        misfire_grace_time=600,
    )
    scheduler.add_job(
        archive_and_validate_job,
        "cron",
        hour=settings.archive_hour,
        minute=0,
        id="archive_and_validate",
        replace_existing=True,
        misfire_grace_time=3600,
    )
    scheduler.start()
    logger.info(
        f"Scheduler started. Refresh every {settings.refresh_interval_hours}h, "
        f"archival at {settings.archive_hour}:00 UTC"
    )


def stop_scheduler():
    """Shutdown the scheduler gracefully."""
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
