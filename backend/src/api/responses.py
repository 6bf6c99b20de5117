"""
Shared request and response models for the scheduling API.

This module contains Pydantic models that keep the wire shape of slots,
bookings and derived patient status consistent across endpoints.
"""

from datetime import datetime, date as date_type
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from core.constants import MAX_NOTES_LENGTH
from models.booking import Booking
from shared_types.availability import ConflictReason, TimeSlot
from shared_types.scheduling import (
    BookingKind, BookingOutcome, BookingResult, CalendarMirrorWarning, PatientStatus,
)


class TimeSlotResponse(BaseModel):
    """Response model for a single slot."""
    time: str  # Format: "HH:MM" in clinic time
    date: date_type
    start: datetime
    end: datetime
    available: bool
    conflict_reason: ConflictReason

    @classmethod
    def from_slot(cls, slot: TimeSlot) -> "TimeSlotResponse":
        return cls(
            time=slot.time,
            date=slot.date,
            start=slot.start,
            end=slot.end,
            available=slot.available,
            conflict_reason=slot.conflict_reason,
        )


class TimeSlotListResponse(BaseModel):
    """Response model for a day's slots."""
    date: date_type
    duration_minutes: int
    slots: List[TimeSlotResponse]


class BookingCreateRequest(BaseModel):
    """Request model for creating a booking."""
    patient_id: int
    start: datetime  # Must be one of the day's slot starts for meetings and appointments
    kind: BookingKind = BookingKind.APPOINTMENT
    duration_minutes: Optional[int] = Field(default=None, gt=0, le=480)
    treatment_id: Optional[int] = None
    notes: Optional[str] = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, v: Optional[str]) -> Optional[str]:
        if v is not None:
            v = v.strip()
            if len(v) > MAX_NOTES_LENGTH:
                raise ValueError(f'Notes must be at most {MAX_NOTES_LENGTH} characters')
            return v or None
        return v


class BookingOutcomeUpdateRequest(BaseModel):
    """Request model for setting a booking outcome (cancellation included)."""
    outcome: BookingOutcome


class BookingResponse(BaseModel):
    """Response model for booking information."""
    id: int
    patient_id: int
    treatment_id: Optional[int] = None
    kind: BookingKind
    scheduled_at: datetime
    duration_minutes: int
    completed: bool
    completed_at: Optional[datetime] = None
    outcome: Optional[BookingOutcome] = None  # None for calls, messages and emails
    notes: Optional[str] = None
    external_event_id: Optional[str] = None
    external_join_link: Optional[str] = None

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            patient_id=booking.patient_id,
            treatment_id=booking.treatment_id,
            kind=BookingKind(booking.kind),
            scheduled_at=booking.scheduled_at,
            duration_minutes=booking.duration_minutes,
            completed=booking.completed,
            completed_at=booking.completed_at,
            outcome=booking.effective_outcome,
            notes=booking.notes,
            external_event_id=booking.external_event_id,
            external_join_link=booking.external_join_link,
        )


class BookingListResponse(BaseModel):
    bookings: List[BookingResponse]


class WarningResponse(BaseModel):
    """Soft warning: the action succeeded but the calendar copy is out of step."""
    booking_id: int
    message: str

    @classmethod
    def from_warning(cls, warning: CalendarMirrorWarning) -> "WarningResponse":
        return cls(booking_id=warning.booking_id, message=warning.message)


class BookingResultResponse(BaseModel):
    """Response model for booking actions."""
    booking: BookingResponse
    patient_status: PatientStatus
    warnings: List[WarningResponse] = []

    @classmethod
    def from_result(cls, result: BookingResult) -> "BookingResultResponse":
        return cls(
            booking=BookingResponse.from_booking(result.booking),
            patient_status=result.patient_status,
            warnings=[WarningResponse.from_warning(w) for w in result.warnings],
        )


class PatientStatusResponse(BaseModel):
    """Response model for a patient's derived lifecycle status."""
    patient_id: int
    status: PatientStatus
    evaluated_at: datetime
