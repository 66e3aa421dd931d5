# reviewdesk/services/scheduler.py
import logging
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from reviewdesk.database import async_session_maker
from reviewdesk.services.retention import purge_expired_versions
from reviewdesk.settings.config import settings

scheduler: AsyncIOScheduler | None = None
logger = logging.getLogger(__name__)


def _timezone():
    try:
        return ZoneInfo(settings.APP_TZ)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown APP_TZ=%r; using UTC", settings.APP_TZ)
        return ZoneInfo("UTC")


def _trigger(tz) -> CronTrigger:
    cron_expr = (settings.RETENTION_CRON or "").strip()
    try:
        if cron_expr:
            return CronTrigger.from_crontab(cron_expr, timezone=tz)
    except ValueError:
        logger.warning("Invalid RETENTION_CRON=%r; falling back to daily 03:00", cron_expr)
    return CronTrigger(hour=3, minute=0, timezone=tz)


async def job_retention_sweep():
    async with async_session_maker() as db:
        report = await purge_expired_versions(db)
    return report


def start_scheduler():
    global scheduler
    if scheduler:
        return
    tz = _timezone()
    scheduler = AsyncIOScheduler(timezone=tz)
    scheduler.add_job(
        job_retention_sweep,
        _trigger(tz),
        id="retention_sweep",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    scheduler.start()
    logger.info("Retention scheduler started (cron=%r tz=%s)", settings.RETENTION_CRON, tz)


def stop_scheduler():
    global scheduler
    if scheduler:
        scheduler.shutdown(wait=False)
        scheduler = None
        logger.info("Retention scheduler stopped")
