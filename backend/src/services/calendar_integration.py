"""
External calendar integration used by scheduling.

Scheduling only depends on the CalendarIntegration protocol. A clinic with
stored Google credentials gets a GoogleCalendarIntegration; every other
clinic gets DisconnectedCalendarIntegration, which is never asked for data.
"""

import logging
from datetime import datetime
from typing import List, Optional, Protocol

from core.constants import DEFAULT_CALENDAR_ID, MEETING_EVENT_COLOR_ID
from models.booking import Booking
from models.clinic import Clinic
from services.google_calendar_service import (
    GoogleCalendarError, GoogleCalendarService, extract_join_link,
)
from shared_types.availability import BusyTime
from shared_types.scheduling import MirroredEvent, PatientContact

logger = logging.getLogger(__name__)


class CalendarIntegration(Protocol):
    def is_connected(self) -> bool: ...

    async def list_busy_times(self, range_start: datetime, range_end: datetime) -> List[BusyTime]: ...

    async def create_event(self, booking: Booking, patient_contact: PatientContact) -> Optional[MirroredEvent]: ...

    async def delete_event(self, external_event_id: str) -> None: ...


class DisconnectedCalendarIntegration:
    """Null integration for clinics without a connected calendar."""

    def is_connected(self) -> bool:
        return False

    async def list_busy_times(self, range_start: datetime, range_end: datetime) -> List[BusyTime]:
        return []

    async def create_event(self, booking: Booking, patient_contact: PatientContact) -> Optional[MirroredEvent]:
        return None

    async def delete_event(self, external_event_id: str) -> None:
        return None


class GoogleCalendarIntegration:
    """
    Integration backed by the clinic's Google Calendar.

    `list_busy_times` and `delete_event` raise GoogleCalendarError; callers
    decide how to degrade. `create_event` returns None on any Google error so
    a failed mirror never fails the booking it belongs to.
    """

    def __init__(self, calendar_service: GoogleCalendarService, auto_create_join_links: bool = True) -> None:
        self.calendar_service = calendar_service
        self.auto_create_join_links = auto_create_join_links

    @classmethod
    def for_clinic(cls, clinic: Clinic) -> CalendarIntegration:
        """
        Build the integration for a clinic.

        Falls back to the disconnected integration when the clinic has no
        credentials or they cannot be loaded.
        """
        if not clinic.calendar_connected:
            return DisconnectedCalendarIntegration()

        assert clinic.google_calendar_credentials is not None
        try:
            service = GoogleCalendarService(
                clinic.google_calendar_credentials, clinic.google_calendar_id or DEFAULT_CALENDAR_ID
            )
        except GoogleCalendarError as e:
            logger.warning(f"Calendar for clinic {clinic.id} unavailable, treating as disconnected: {e}")
            return DisconnectedCalendarIntegration()

        return cls(service, auto_create_join_links=clinic.auto_create_join_links)

    def is_connected(self) -> bool:
        return True

    async def list_busy_times(self, range_start: datetime, range_end: datetime) -> List[BusyTime]:
        return await self.calendar_service.list_busy_times(range_start, range_end)

    async def create_event(self, booking: Booking, patient_contact: PatientContact) -> Optional[MirroredEvent]:
        """Mirror a booking as a calendar event with the patient as attendee."""
        description_lines = [f"Patient: {patient_contact.name}"]
        if patient_contact.phone:
            description_lines.append(f"Phone: {patient_contact.phone}")
        if patient_contact.email:
            description_lines.append(f"Email: {patient_contact.email}")
        if booking.notes:
            description_lines.append(f"Notes: {booking.notes}")

        try:
            event = await self.calendar_service.create_event(
                summary=f"{patient_contact.name} - {booking.kind}",
                start=booking.scheduled_at,
                end=booking.end_at,
                description="\n".join(description_lines),
                color_id=MEETING_EVENT_COLOR_ID,
                attendees=[patient_contact.email] if patient_contact.email else None,
                conference_request_id=f"booking-{booking.id}" if self.auto_create_join_links else None,
                extended_properties={
                    "private": {
                        "source": "clinic_crm",
                        "booking_id": str(booking.id),
                        "patient_id": str(booking.patient_id),
                    }
                },
            )
        except GoogleCalendarError as e:
            logger.warning(f"Failed to mirror booking {booking.id}: {e}")
            return None

        event_id = event.get("id")
        if not event_id:
            logger.warning(f"Calendar returned no event id for booking {booking.id}")
            return None

        return MirroredEvent(external_event_id=event_id, join_link=extract_join_link(event))

    async def delete_event(self, external_event_id: str) -> None:
        await self.calendar_service.delete_event(external_event_id)
