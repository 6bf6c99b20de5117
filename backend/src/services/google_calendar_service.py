# pyright: reportUnknownMemberType=false, reportUnknownVariableType=false, reportMissingTypeStubs=false
"""
Google Calendar service for busy-time reads and booking mirrors.

This module handles all Google Calendar API interactions: reading the
occupied ranges of the clinic calendar, and creating or deleting the events
that mirror locally stored meetings.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Dict, Any, List, Optional

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from core.config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET
from core.constants import DEFAULT_CALENDAR_ID, APPOINTMENT_EVENT_COLOR_ID
from shared_types.availability import BusyTime
from utils.datetime_utils import parse_datetime_to_clinic

logger = logging.getLogger(__name__)


class GoogleCalendarError(Exception):
    """Custom exception for Google Calendar API errors."""
    pass


def format_utc_datetime(dt: datetime) -> str:
    """Format a datetime as an RFC3339 UTC string with Z suffix."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    iso_str = dt.astimezone(timezone.utc).isoformat()
    if iso_str.endswith('+00:00'):
        return iso_str[:-6] + 'Z'
    return iso_str


def _error_message(e: HttpError) -> str:
    try:
        error_details = json.loads(e.content.decode('utf-8')) if e.content else {}
    except (ValueError, UnicodeDecodeError):
        error_details = {}
    return error_details.get('error', {}).get('message', str(e))


class GoogleCalendarService:
    """
    Service for Google Calendar API operations.

    Attributes:
        credentials: Google OAuth2 credentials for API access
        calendar_id: Google Calendar ID (defaults to primary calendar)
        service: Google Calendar API service client
    """

    def __init__(self, credentials_json: str, calendar_id: str = DEFAULT_CALENDAR_ID) -> None:
        """
        Initialize Google Calendar service.

        Args:
            credentials_json: JSON string containing Google OAuth2 credentials
            calendar_id: Google Calendar ID to operate on (defaults to primary)

        Raises:
            GoogleCalendarError: If credentials are invalid or service initialization fails
        """
        try:
            creds_data = json.loads(credentials_json)

            # Add OAuth2 client configuration to the credentials
            creds_data.update({
                "client_id": GOOGLE_CLIENT_ID,
                "client_secret": GOOGLE_CLIENT_SECRET
            })

            self.credentials = Credentials.from_authorized_user_info(creds_data)

            if self.credentials.expired and self.credentials.refresh_token:
                self.credentials.refresh(Request())

            self.service = build('calendar', 'v3', credentials=self.credentials)
            self.calendar_id = calendar_id

        except json.JSONDecodeError as e:
            raise GoogleCalendarError(f"Invalid credentials JSON: {e}")
        except Exception as e:
            raise GoogleCalendarError(f"Failed to initialize Google Calendar service: {e}")

    async def list_busy_times(self, time_min: datetime, time_max: datetime) -> List[BusyTime]:
        """
        Get the occupied ranges of the calendar between two instants.

        Reads single (expanded) events so each range keeps the id of the event
        behind it. Cancelled events, transparent ("free") events and all-day
        events are not busy.

        Raises:
            GoogleCalendarError: If the events cannot be listed
        """
        busy_times: List[BusyTime] = []
        page_token: Optional[str] = None
        try:
            while True:
                response = self.service.events().list(
                    calendarId=self.calendar_id,
                    timeMin=format_utc_datetime(time_min),
                    timeMax=format_utc_datetime(time_max),
                    singleEvents=True,
                    orderBy='startTime',
                    pageToken=page_token,
                ).execute()

                for item in response.get('items', []):
                    if item.get('status') == 'cancelled' or item.get('transparency') == 'transparent':
                        continue
                    start = item.get('start', {}).get('dateTime')
                    end = item.get('end', {}).get('dateTime')
                    if not start or not end:
                        continue
                    busy_times.append(BusyTime(
                        start=parse_datetime_to_clinic(start),
                        end=parse_datetime_to_clinic(end),
                        source_event_id=item.get('id'),
                    ))

                page_token = response.get('nextPageToken')
                if not page_token:
                    break

        except HttpError as e:
            raise GoogleCalendarError(f"Failed to list calendar events: {_error_message(e)}")
        except GoogleCalendarError:
            raise
        except Exception as e:
            raise GoogleCalendarError(f"Unexpected error listing calendar events: {e}")

        logger.debug(f"Fetched {len(busy_times)} busy ranges from calendar {self.calendar_id}")
        return busy_times

    async def create_event(
        self,
        summary: str,
        start: datetime,
        end: datetime,
        description: str = "",
        location: str = "",
        color_id: str = APPOINTMENT_EVENT_COLOR_ID,
        attendees: Optional[List[str]] = None,
        conference_request_id: Optional[str] = None,
        extended_properties: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Create a new Google Calendar event.

        Args:
            summary: Event title/summary
            start: Event start datetime
            end: Event end datetime
            description: Event description
            location: Event location (optional)
            color_id: Calendar color ID (1-11)
            attendees: Email addresses to invite
            conference_request_id: When set, a Google Meet link is requested
            extended_properties: Additional metadata for sync

        Returns:
            Google Calendar event data including event ID

        Raises:
            GoogleCalendarError: If event creation fails
        """
        event_body: Dict[str, Any] = {
            'summary': summary or '',
            'description': description or '',
            'location': location or '',
            'colorId': color_id,
            'start': {
                'dateTime': format_utc_datetime(start),
                'timeZone': 'UTC',
            },
            'end': {
                'dateTime': format_utc_datetime(end),
                'timeZone': 'UTC',
            },
            'reminders': {
                'useDefault': False,
                'overrides': [
                    {'method': 'email', 'minutes': 24 * 60},
                    {'method': 'popup', 'minutes': 30},
                ],
            },
        }

        if attendees:
            event_body['attendees'] = [{'email': email} for email in attendees]

        if conference_request_id:
            event_body['conferenceData'] = {
                'createRequest': {
                    'requestId': conference_request_id,
                    'conferenceSolutionKey': {'type': 'hangoutsMeet'},
                },
            }

        if extended_properties:
            event_body['extendedProperties'] = extended_properties

        try:
            logger.debug(f"Creating Google Calendar event with calendar_id={self.calendar_id}, body={json.dumps(event_body, indent=2)}")

            event = self.service.events().insert(
                calendarId=self.calendar_id,
                body=event_body,
                conferenceDataVersion=1 if conference_request_id else 0,
                sendUpdates='all' if attendees else 'none',
            ).execute()

            logger.info(f"Google Calendar event created successfully: {event.get('id')}")
            return event

        except HttpError as e:
            error_message = _error_message(e)
            logger.error(f"Google Calendar API error: {error_message} (status: {e.resp.status})")
            raise GoogleCalendarError(f"Failed to create calendar event: {error_message}")
        except Exception as e:
            logger.error(f"Unexpected error creating calendar event: {e}", exc_info=True)
            raise GoogleCalendarError(f"Unexpected error creating calendar event: {e}")

    async def delete_event(self, event_id: str) -> None:
        """
        Delete a Google Calendar event.

        Args:
            event_id: Google Calendar event ID to delete

        Raises:
            GoogleCalendarError: If event deletion fails
        """
        try:
            self.service.events().delete(
                calendarId=self.calendar_id,
                eventId=event_id
            ).execute()

        except HttpError as e:
            if e.resp.status in (404, 410):
                # Event already deleted, treat as success
                return
            raise GoogleCalendarError(f"Failed to delete calendar event: {_error_message(e)}")
        except Exception as e:
            raise GoogleCalendarError(f"Unexpected error deleting calendar event: {e}")


def extract_join_link(event: Dict[str, Any]) -> Optional[str]:
    """Return the video join link of an event, if Google generated one."""
    if event.get('hangoutLink'):
        return event['hangoutLink']
    for entry_point in event.get('conferenceData', {}).get('entryPoints', []):
        if entry_point.get('entryPointType') == 'video' and entry_point.get('uri'):
            return entry_point['uri']
    return None
