"""Calendar parsing and censorship for calproxy."""

from .censor import censor_calendar, property_to_string
from .models import CalendarEvent, CalendarModel, CalendarProperty
from .parser import CalendarParser, ICalendarParser

__all__ = [
    "CalendarEvent",
    "CalendarModel",
    "CalendarParser",
    "CalendarProperty",
    "ICalendarParser",
    "censor_calendar",
    "property_to_string",
]
