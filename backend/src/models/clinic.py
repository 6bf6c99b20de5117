"""
Clinic model and its validated scheduling settings.

A clinic owns patients, treatments and bookings, and optionally a connected
Google Calendar whose busy times are reconciled against local bookings.
"""

from datetime import datetime
from typing import Optional, Dict, Any, List

from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy import JSON, String, Text, Boolean
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.database import AwareDateTime, Base
from core.constants import (
    MAX_STRING_LENGTH,
    DEFAULT_WORKING_HOURS_START,
    DEFAULT_WORKING_HOURS_END,
    DEFAULT_WORKING_DAYS,
    DEFAULT_SLOT_INTERVAL_MINUTES,
    DEFAULT_APPOINTMENT_DURATION_MINUTES,
    DEFAULT_CALENDAR_SYNC_INTERVAL_MINUTES,
    DEFAULT_CALENDAR_ID,
)
from utils.datetime_utils import parse_time_string


# Settings schema validation models
class WorkingHours(BaseModel):
    """Daily opening window in clinic wall-clock time."""
    start: str = Field(default=DEFAULT_WORKING_HOURS_START, description="Opening time, HH:MM")
    end: str = Field(default=DEFAULT_WORKING_HOURS_END, description="Closing time, HH:MM")
    days_of_week: List[int] = Field(
        default_factory=lambda: list(DEFAULT_WORKING_DAYS),
        description="Open days, 0=Sunday ... 6=Saturday",
    )

    @field_validator('start', 'end')
    @classmethod
    def validate_time_format(cls, v: str) -> str:
        parse_time_string(v)
        return v

    @field_validator('days_of_week')
    @classmethod
    def validate_days(cls, v: List[int]) -> List[int]:
        for day in v:
            if day < 0 or day > 6:
                raise ValueError(f"days_of_week values must be between 0 and 6, got {day}")
        return sorted(set(v))

    @model_validator(mode='after')
    def validate_window(self) -> 'WorkingHours':
        if parse_time_string(self.start) >= parse_time_string(self.end):
            raise ValueError("Working hours start must be before end")
        return self


class SchedulingSettings(BaseModel):
    working_hours: WorkingHours = Field(default_factory=WorkingHours)
    slot_interval_minutes: int = Field(
        default=DEFAULT_SLOT_INTERVAL_MINUTES, ge=5, le=240,
        description="Minutes between offered start times. May be shorter than an appointment, allowing staggered starts.",
    )
    default_duration_minutes: int = Field(
        default=DEFAULT_APPOINTMENT_DURATION_MINUTES, ge=5, le=480,
        description="Appointment length used when no treatment duration applies",
    )
    calendar_sync_interval_minutes: int = Field(
        default=DEFAULT_CALENDAR_SYNC_INTERVAL_MINUTES, ge=1, le=1440,
        description="How often busy times are pulled from the connected calendar",
    )


class ClinicSettings(BaseModel):
    scheduling_settings: SchedulingSettings = Field(default_factory=SchedulingSettings)


class Clinic(Base):
    """
    Clinic entity.

    Holds the clinic's validated settings JSON and the optional Google
    Calendar connection used for busy-time reconciliation and meeting mirrors.
    """

    __tablename__ = "clinics"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    name: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH))

    settings: Mapped[Dict[str, Any]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict
    )
    """
    JSON column containing all clinic settings (matches ClinicSettings):
    {
        "scheduling_settings": {
            "working_hours": {"start": "09:00", "end": "18:00", "days_of_week": [1, 2, 3, 4, 5]},
            "slot_interval_minutes": 30,
            "default_duration_minutes": 30,
            "calendar_sync_interval_minutes": 15
        }
    }
    """

    google_calendar_credentials: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    """OAuth2 authorized-user JSON for the clinic calendar. NULL means not connected."""

    google_calendar_id: Mapped[str] = mapped_column(String(MAX_STRING_LENGTH), default=DEFAULT_CALENDAR_ID)

    auto_create_join_links: Mapped[bool] = mapped_column(Boolean, default=True)
    """Request a Google Meet link when mirroring meetings."""

    last_calendar_sync_at: Mapped[Optional[datetime]] = mapped_column(AwareDateTime, nullable=True)
    """When busy times were last pulled by the sync scheduler."""

    created_at: Mapped[datetime] = mapped_column(AwareDateTime, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(AwareDateTime, nullable=False)

    patients = relationship("Patient", back_populates="clinic")
    treatments = relationship("Treatment", back_populates="clinic")

    @property
    def calendar_connected(self) -> bool:
        return bool(self.google_calendar_credentials)

    def get_validated_settings(self) -> ClinicSettings:
        return ClinicSettings.model_validate(self.settings or {})
