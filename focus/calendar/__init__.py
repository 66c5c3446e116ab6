"""
Provider registry. Picks the calendar the user has configured.
"""

from focus.calendar.base import CalendarProvider
from focus.calendar.google import GoogleCalendar
from focus.calendar.lark import LarkCalendar, oauth_states

PROVIDERS = ("google", "lark")


def get_provider(settings: dict, name: str | None = None) -> CalendarProvider:
    """Build the provider named in settings (or the one asked for)."""
    name = name or settings.get("calendar_provider", "google")
    if name == "lark":
        return LarkCalendar(
            app_id=settings.get("lark_app_id"),
            app_secret=settings.get("lark_app_secret"),
        )
    return GoogleCalendar(disabled=bool(settings.get("google_disabled")))


__all__ = [
    "CalendarProvider", "GoogleCalendar", "LarkCalendar", "oauth_states",
    "PROVIDERS", "get_provider",
]
