"""
Calendar sync scheduler.

A periodic timer that checks, for every clinic with a connected Google
Calendar, whether its busy-time pull is due. Due clinics get today's and
tomorrow's busy ranges pulled into the busy time cache, so slot queries can
answer without calling Google.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore
from sqlalchemy.orm import Session

from core.config import CALENDAR_SYNC_CHECK_MINUTES
from core.constants import CALENDAR_SYNC_SCHEDULER_MAX_INSTANCES
from core.database import get_db_context
from models import Clinic
from services.busy_interval_source import BusyIntervalSource, BusyTimeCache, get_busy_time_cache
from services.calendar_integration import CalendarIntegration, GoogleCalendarIntegration
from services.google_calendar_service import GoogleCalendarError
from utils.datetime_utils import CLINIC_TZ, clinic_now

logger = logging.getLogger(__name__)

# Global singleton instance
_calendar_sync_scheduler: Optional['CalendarSyncScheduler'] = None


def is_sync_due(clinic: Clinic, now: datetime) -> bool:
    """Whether the clinic's configured sync interval has elapsed."""
    if clinic.last_calendar_sync_at is None:
        return True
    interval = clinic.get_validated_settings().scheduling_settings.calendar_sync_interval_minutes
    return now >= clinic.last_calendar_sync_at + timedelta(minutes=interval)


class CalendarSyncScheduler:
    """
    Scheduler for pulling external busy times.

    Wakes up every CALENDAR_SYNC_CHECK_MINUTES; each clinic decides from its
    own settings whether a pull is due.
    """

    def __init__(
        self,
        cache: Optional[BusyTimeCache] = None,
        integration_factory: Callable[[Clinic], CalendarIntegration] = GoogleCalendarIntegration.for_clinic,
        now_provider: Callable[[], datetime] = clinic_now
    ):
        """
        Initialize the calendar sync scheduler.

        Note: Database sessions are created fresh for each scheduler run
        to avoid stale session issues.
        """
        self.scheduler = AsyncIOScheduler(timezone=CLINIC_TZ)
        self.cache = cache
        self.integration_factory = integration_factory
        self.now_provider = now_provider
        self._is_started = False

    async def start_scheduler(self) -> None:
        """
        Start the background scheduler for calendar syncs.

        This should be called during application startup.
        """
        if self._is_started:
            logger.warning("Calendar sync scheduler is already started")
            return

        self.scheduler.add_job(  # type: ignore
            self._run_sync_check,
            IntervalTrigger(minutes=CALENDAR_SYNC_CHECK_MINUTES),
            id="calendar_busy_time_sync",
            name="Pull busy times from connected calendars",
            replace_existing=True,
            max_instances=CALENDAR_SYNC_SCHEDULER_MAX_INSTANCES,
            coalesce=True,
        )

        self.scheduler.start()
        self._is_started = True
        logger.info(f"Calendar sync scheduler started (checks every {CALENDAR_SYNC_CHECK_MINUTES} minute(s))")

    async def stop_scheduler(self) -> None:
        """
        Stop the background scheduler.

        This should be called during application shutdown.
        """
        if self._is_started:
            self.scheduler.shutdown(wait=False)
            self._is_started = False
            logger.info("Calendar sync scheduler stopped")

    async def _run_sync_check(self) -> None:
        """Called by the scheduler; uses a fresh database session per run."""
        try:
            with get_db_context() as db:
                synced = await self.sync_due_clinics(db)
            if synced:
                logger.info(f"Synced busy times for clinics {synced}")
        except Exception as e:
            logger.exception(f"Error during calendar sync check: {e}")
            # Don't re-raise - allow scheduler to continue

    async def sync_due_clinics(self, db: Session) -> List[int]:
        """
        Pull busy times for every connected clinic whose sync is due.

        A failing clinic is logged and skipped; the others still sync. A clinic
        whose pull fails keeps its previous sync stamp, so it is retried on the
        next check.

        Returns:
            IDs of the clinics that were synced
        """
        now = self.now_provider()
        cache = self.cache if self.cache is not None else get_busy_time_cache()

        clinics = db.query(Clinic).filter(Clinic.google_calendar_credentials.isnot(None)).all()

        synced: List[int] = []
        for clinic in clinics:
            if not clinic.calendar_connected or not is_sync_due(clinic, now):
                continue
            try:
                integration = self.integration_factory(clinic)
                if not integration.is_connected():
                    continue
                source = BusyIntervalSource(clinic.id, integration, cache)
                today = now.astimezone(CLINIC_TZ).date()
                for day in (today, today + timedelta(days=1)):
                    await source.fetch_day(day, force_refresh=True, raise_errors=True)
                clinic.last_calendar_sync_at = now
                db.commit()
                synced.append(clinic.id)
            except GoogleCalendarError as e:
                logger.warning(f"Calendar sync failed for clinic {clinic.id}, will retry: {e}")
                db.rollback()
            except Exception as e:
                logger.exception(f"Calendar sync failed for clinic {clinic.id}: {e}")
                db.rollback()

        return synced


def get_calendar_sync_scheduler() -> CalendarSyncScheduler:
    """
    Get the global calendar sync scheduler instance.

    Returns:
        CalendarSyncScheduler: The global scheduler instance
    """
    global _calendar_sync_scheduler
    if _calendar_sync_scheduler is None:
        _calendar_sync_scheduler = CalendarSyncScheduler()
    return _calendar_sync_scheduler


async def start_calendar_sync_scheduler() -> None:
    """
    Start the global calendar sync scheduler.

    This should be called during application startup.
    """
    scheduler = get_calendar_sync_scheduler()
    await scheduler.start_scheduler()


async def stop_calendar_sync_scheduler() -> None:
    """
    Stop the global calendar sync scheduler.

    This should be called during application shutdown.
    """
    global _calendar_sync_scheduler
    if _calendar_sync_scheduler is not None:
        await _calendar_sync_scheduler.stop_scheduler()
