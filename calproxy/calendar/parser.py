"""iCalendar parsing for the censorship transform.

The transform only needs an ordered, raw view of the calendar, so parsing is
expressed as a small protocol. ``ICalendarParser`` implements it on top of the
icalendar library: ``Calendar.from_ical`` checks that the text is a single,
well-formed ``VCALENDAR`` and the content lines are then walked once to keep
property order and raw values intact.
"""

from __future__ import annotations

import logging
from typing import Protocol

from icalendar import Calendar
from icalendar.parser import Contentlines

from calproxy.core.exceptions import ParseError

from .models import CalendarEvent, CalendarModel, CalendarProperty

logger = logging.getLogger(__name__)

CALENDAR_COMPONENT = "VCALENDAR"
EVENT_COMPONENT = "VEVENT"
BYTE_ORDER_MARK = "\ufeff"


class CalendarParser(Protocol):
    """Turns raw calendar text into a ``CalendarModel``."""

    def parse(self, text: str) -> CalendarModel:
        """Parse ``text``, raising ``ParseError`` if it is not a calendar."""
        ...


def raw_value(line: str) -> str:
    """Return the text after the first colon that is not inside a quoted parameter."""
    in_quotes = False
    for i, ch in enumerate(line):
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == ":" and not in_quotes:
            return line[i + 1 :]
    raise ValueError(f"No value separator in {line!r}")


def _to_property(name: str, params: dict, value: str) -> CalendarProperty:
    converted: dict[str, list[str]] = {}
    for param_name, param_value in params.items():
        values = param_value if isinstance(param_value, list) else [param_value]
        converted[str(param_name).upper()] = [str(v) for v in values]
    return CalendarProperty(name=name.upper(), params=converted, value=str(value))


class ICalendarParser:
    """CalendarParser backed by the icalendar library."""

    def parse(self, text: str) -> CalendarModel:
        """Parse raw ICS text.

        Args:
            text: Calendar text as fetched from the origin

        Returns:
            CalendarModel with top-level properties and events in source order

        Raises:
            ParseError: If the text is empty, is not a single VCALENDAR or has
                unbalanced BEGIN/END lines
        """
        text = text.removeprefix(BYTE_ORDER_MARK) if text else text
        if not text or not text.strip():
            raise ParseError("Empty calendar content")

        try:
            Calendar.from_ical(text)
        except Exception as e:
            raise ParseError(f"Invalid iCalendar content: {e}") from e

        try:
            lines = Contentlines.from_ical(text)
        except ValueError as e:
            raise ParseError(f"Could not split calendar into content lines: {e}") from e

        stack: list[str] = []
        top_level: list[CalendarProperty] = []
        events: list[CalendarEvent] = []
        current_event: list[CalendarProperty] | None = None
        closed = False

        for line in lines:
            if not line:
                continue
            if closed:
                raise ParseError("Content found after END:VCALENDAR")

            try:
                name, params, _ = line.parts()
                value = raw_value(line)
            except ValueError as e:
                if current_event is not None:
                    # icalendar tolerates broken lines inside events; so do we.
                    logger.debug("Skipping unparsable event line: %s", e)
                    continue
                raise ParseError(f"Malformed content line: {e}") from e

            prop = _to_property(name, params, value)

            if prop.name == "BEGIN":
                component = prop.value.strip().upper()
                if not stack:
                    if component != CALENDAR_COMPONENT:
                        raise ParseError(f"Expected BEGIN:VCALENDAR, found BEGIN:{prop.value}")
                    stack.append(component)
                    continue
                if current_event is None and component == EVENT_COMPONENT and len(stack) == 1:
                    current_event = []
                elif current_event is None:
                    top_level.append(prop)
                stack.append(component)
                continue

            if prop.name == "END":
                component = prop.value.strip().upper()
                if not stack or stack[-1] != component:
                    raise ParseError(f"Unbalanced END:{prop.value}")
                stack.pop()
                if not stack:
                    closed = True
                elif current_event is not None and component == EVENT_COMPONENT and len(stack) == 1:
                    events.append(CalendarEvent(properties=tuple(current_event)))
                    current_event = None
                elif current_event is None:
                    top_level.append(prop)
                continue

            if not stack:
                raise ParseError(f"Property {prop.name} outside of VCALENDAR")
            if current_event is not None:
                # Properties of nested components (VALARM) are not event properties.
                if len(stack) == 2:
                    current_event.append(prop)
                continue
            top_level.append(prop)

        if stack:
            raise ParseError(f"Missing END for {', '.join(reversed(stack))}")

        logger.debug(
            "Parsed calendar: %d top-level properties, %d events", len(top_level), len(events)
        )
        return CalendarModel(properties=tuple(top_level), events=tuple(events))
