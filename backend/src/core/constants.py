"""Application constants and configuration values."""

from core.config import FRONTEND_URL

# Database field lengths
MAX_STRING_LENGTH = 255
MAX_NOTES_LENGTH = 1000

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
_CORS_ORIGINS_RAW = [
    "http://localhost:3000",      # Next.js dev server
    FRONTEND_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Scheduling defaults (used when a clinic has not saved its own settings)
DEFAULT_WORKING_HOURS_START = "09:00"
DEFAULT_WORKING_HOURS_END = "18:00"
DEFAULT_WORKING_DAYS = [1, 2, 3, 4, 5]  # 0=Sunday ... 6=Saturday
DEFAULT_SLOT_INTERVAL_MINUTES = 30
DEFAULT_APPOINTMENT_DURATION_MINUTES = 30
DEFAULT_CALENDAR_SYNC_INTERVAL_MINUTES = 15

# A completed booking within this many days keeps a patient "active"
ACTIVE_WINDOW_DAYS = 30

# Busy times pulled by the sync scheduler are reused for this long
BUSY_TIME_CACHE_TTL_MINUTES = 15

# Prevent overlapping calendar sync runs
CALENDAR_SYNC_SCHEDULER_MAX_INSTANCES = 1

# Google Calendar
DEFAULT_CALENDAR_ID = "primary"
MEETING_EVENT_COLOR_ID = "9"
APPOINTMENT_EVENT_COLOR_ID = "7"
