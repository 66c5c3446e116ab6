"""
Google Calendar provider.
"""

import logging
from datetime import datetime
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from focus.config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, GOOGLE_REFRESH_TOKEN
from focus.calendar.base import CalendarProvider
from focus.errors import ProviderError
from focus.scheduler import BusyInterval, parse_iso, to_iso

logger = logging.getLogger(__name__)

FOCUS_COLOR_ID = "9"  # Blueberry


# ============== AUTH ==============

def get_calendar_service():
    """Build Google Calendar service from stored credentials."""
    creds = Credentials(
        token=None,
        refresh_token=GOOGLE_REFRESH_TOKEN,
        client_id=GOOGLE_CLIENT_ID,
        client_secret=GOOGLE_CLIENT_SECRET,
        token_uri="https://oauth2.googleapis.com/token"
    )
    return build('calendar', 'v3', credentials=creds)


# ============== PROVIDER ==============

class GoogleCalendar(CalendarProvider):
    name = "google"

    def __init__(self, disabled: bool = False, service=None):
        self.disabled = disabled
        self._service = service

    @property
    def service(self):
        if self._service is None:
            self._service = get_calendar_service()
        return self._service

    def is_connected(self) -> bool:
        if self.disabled:
            return False
        return bool(GOOGLE_REFRESH_TOKEN and GOOGLE_CLIENT_ID and GOOGLE_CLIENT_SECRET) or self._service is not None

    def _require_connected(self) -> None:
        if not self.is_connected():
            raise ProviderError("Google Calendar is not connected.")

    def fetch_busy(self, time_min: datetime, time_max: datetime) -> list[BusyInterval]:
        self._require_connected()
        try:
            result = self.service.freebusy().query(body={
                "timeMin": to_iso(time_min),
                "timeMax": to_iso(time_max),
                "items": [{"id": "primary"}],
            }).execute()
        except HttpError as e:
            logger.error(f"Google free/busy query failed: {e}")
            raise ProviderError("Failed to query Google free/busy") from e

        busy = result.get("calendars", {}).get("primary", {}).get("busy", [])
        return [
            BusyInterval(parse_iso(b["start"]), parse_iso(b["end"]))
            for b in busy
            if b.get("start") and b.get("end")
        ]

    def create_event(self, summary: str, start_time: datetime, end_time: datetime,
                     description: str | None = None) -> str:
        self._require_connected()
        event = {
            'summary': summary,
            'start': {'dateTime': to_iso(start_time)},
            'end': {'dateTime': to_iso(end_time)},
            'colorId': FOCUS_COLOR_ID,
        }
        if description:
            event['description'] = description

        try:
            created = self.service.events().insert(calendarId='primary', body=event).execute()
        except HttpError as e:
            logger.error(f"Google create event failed: {e}")
            raise ProviderError("Failed to create Google calendar event") from e

        return created.get("id", "")
