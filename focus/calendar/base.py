"""
Calendar provider interface.
Both providers hand back busy time and accept new events in the same shape.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from focus.scheduler import BusyInterval


class CalendarProvider(ABC):
    name: str = ""

    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the provider can currently be queried."""

    @abstractmethod
    def fetch_busy(self, time_min: datetime, time_max: datetime) -> list[BusyInterval]:
        """Busy intervals on the primary calendar between the two instants."""

    @abstractmethod
    def create_event(self, summary: str, start_time: datetime, end_time: datetime,
                     description: str | None = None) -> str:
        """Create an event and return the provider's event id."""
