"""
Busy interval source.

Fetches the external calendar's occupied ranges for a day. Results are kept
in a process-wide cache keyed by clinic and day, filled either by slot
queries or by the calendar sync scheduler, and reused until they expire.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from threading import Lock
from typing import Callable, Dict, List, Optional, Tuple

from core.constants import BUSY_TIME_CACHE_TTL_MINUTES
from services.calendar_integration import CalendarIntegration
from services.google_calendar_service import GoogleCalendarError
from shared_types.availability import BusyTime
from utils.datetime_utils import clinic_now, day_bounds

logger = logging.getLogger(__name__)


@dataclass
class _CacheEntry:
    busy_times: List[BusyTime]
    fetched_at: datetime


class BusyTimeCache:
    """TTL cache of busy ranges per (clinic, day)."""

    def __init__(
        self,
        ttl: timedelta = timedelta(minutes=BUSY_TIME_CACHE_TTL_MINUTES),
        now_provider: Callable[[], datetime] = clinic_now
    ) -> None:
        self.ttl = ttl
        self._now = now_provider
        self._entries: Dict[Tuple[int, date], _CacheEntry] = {}
        self._lock = Lock()

    def get(self, clinic_id: int, day: date) -> Optional[List[BusyTime]]:
        with self._lock:
            entry = self._entries.get((clinic_id, day))
            if entry is None:
                return None
            if self._now() - entry.fetched_at > self.ttl:
                del self._entries[(clinic_id, day)]
                return None
            return list(entry.busy_times)

    def put(self, clinic_id: int, day: date, busy_times: List[BusyTime]) -> None:
        with self._lock:
            self._entries[(clinic_id, day)] = _CacheEntry(list(busy_times), self._now())

    def invalidate(self, clinic_id: int, day: date) -> None:
        with self._lock:
            self._entries.pop((clinic_id, day), None)


# Global cache instance
_busy_time_cache: Optional[BusyTimeCache] = None


def get_busy_time_cache() -> BusyTimeCache:
    """Get the global busy time cache instance."""
    global _busy_time_cache
    if _busy_time_cache is None:
        _busy_time_cache = BusyTimeCache()
    return _busy_time_cache


class BusyIntervalSource:
    """
    Reads busy ranges from a clinic's calendar integration.

    A disconnected integration is never called and yields an empty set. A
    failing fetch is logged and also yields an empty set: the external
    calendar is advisory, so slot queries keep working on local data.
    """

    def __init__(
        self,
        clinic_id: int,
        integration: CalendarIntegration,
        cache: Optional[BusyTimeCache] = None
    ) -> None:
        self.clinic_id = clinic_id
        self.integration = integration
        self.cache = cache if cache is not None else get_busy_time_cache()

    async def fetch_day(
        self,
        day: date,
        force_refresh: bool = False,
        raise_errors: bool = False
    ) -> List[BusyTime]:
        """
        Fetch busy ranges covering one clinic day.

        Args:
            day: Clinic calendar date
            force_refresh: Skip the cache and store a fresh pull
            raise_errors: Re-raise a failed pull instead of returning an empty set

        Returns:
            Busy ranges overlapping the day

        Raises:
            GoogleCalendarError: If the pull fails and `raise_errors` is set
        """
        if not self.integration.is_connected():
            return []

        if not force_refresh:
            cached = self.cache.get(self.clinic_id, day)
            if cached is not None:
                return cached

        range_start, range_end = day_bounds(day)
        try:
            busy_times = await self.integration.list_busy_times(range_start, range_end)
        except GoogleCalendarError as e:
            if raise_errors:
                raise
            logger.warning(f"Could not fetch busy times for clinic {self.clinic_id} on {day}, ignoring external calendar: {e}")
            return []

        self.cache.put(self.clinic_id, day, busy_times)
        logger.debug(f"Clinic {self.clinic_id}: cached {len(busy_times)} busy ranges for {day}")
        return busy_times
