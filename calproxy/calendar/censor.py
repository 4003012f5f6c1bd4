"""Free/busy censorship of an origin calendar.

The censored calendar keeps timezone definitions verbatim and reduces every
event to its scheduling properties. Titles, descriptions, locations,
attendees, alarms and every other property are dropped.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from .models import CalendarEvent, CalendarModel, CalendarProperty
from .parser import CalendarParser, ICalendarParser

logger = logging.getLogger(__name__)

LINE_BREAK = "\r\n"
TIMEZONE_COMPONENT = "VTIMEZONE"
UID_PREFIX = "calproxy"

# Event properties that survive censorship, apart from SUMMARY and UID.
SCHEDULING_PROPERTIES = frozenset({"DTSTART", "DTEND", "DURATION", "RRULE"})


def escape_param_value(value: str) -> str:
    """Quote a parameter value. Parameter values may not contain double quotes."""
    return '"' + value.replace('"', "") + '"'


def param_to_string(values: list[str]) -> str:
    return ",".join(escape_param_value(v) for v in values)


def params_to_string(params: dict[str, list[str]]) -> str:
    return ";".join(f"{name}={param_to_string(values)}" for name, values in params.items())


def property_to_string(prop: CalendarProperty) -> str:
    """Serialize a property as ``NAME[;PARAM="VALUE"[,"VALUE"...]...]:VALUE``."""
    param_str = params_to_string(prop.params)
    if param_str:
        param_str = ";" + param_str
    return f"{prop.name}{param_str}:{prop.value}"


def filtered_headers(properties: tuple[CalendarProperty, ...]) -> list[str]:
    """Return the serialized VTIMEZONE blocks of the top-level properties."""
    lines: list[str] = []
    allow = False
    for prop in properties:
        is_timezone = prop.value.strip().upper() == TIMEZONE_COMPONENT
        if prop.name == "BEGIN" and is_timezone:
            allow = True
        if allow:
            lines.append(property_to_string(prop))
        if prop.name == "END" and is_timezone:
            allow = False
    return lines


def censored_uid(uid: str, origin_id: str) -> str:
    """Rewrite an event UID so equal UIDs from different origins never collide."""
    return f"{UID_PREFIX}-{uid}-{origin_id}"


def censored_event(event: CalendarEvent, origin_id: str, placeholder_title: str) -> list[str]:
    """Reduce one event to placeholder title, scheduling properties and rewritten UID."""
    summary = CalendarProperty(name="SUMMARY", value=placeholder_title)
    lines = ["BEGIN:VEVENT", property_to_string(summary)]
    for prop in event.properties:
        if prop.name in SCHEDULING_PROPERTIES:
            lines.append(property_to_string(prop))
        elif prop.name == "UID":
            uid = replace(prop, value=censored_uid(prop.value, origin_id))
            lines.append(property_to_string(uid))
    lines.append("END:VEVENT")
    return lines


def censor_model(model: CalendarModel, origin_id: str, placeholder_title: str) -> str:
    lines = ["BEGIN:VCALENDAR"]
    lines.extend(filtered_headers(model.properties))
    for event in model.events:
        lines.extend(censored_event(event, origin_id, placeholder_title))
    lines.append("END:VCALENDAR")
    return LINE_BREAK.join(lines) + LINE_BREAK


def censor_calendar(
    raw_text: str,
    origin_id: str,
    placeholder_title: str,
    parser: Optional[CalendarParser] = None,
) -> str:
    """Produce the free/busy variant of an origin calendar.

    Args:
        raw_text: Calendar text as fetched from the origin
        origin_id: Stable identifier of the origin, appended to every UID
        placeholder_title: Used verbatim as every event's SUMMARY
        parser: Calendar parser to use (defaults to ``ICalendarParser``)

    Returns:
        Censored calendar text, CRLF line breaks, ending in a single CRLF

    Raises:
        ParseError: If ``raw_text`` is not a well-formed calendar
    """
    model = (parser or ICalendarParser()).parse(raw_text)
    censored = censor_model(model, origin_id, placeholder_title)
    logger.debug("Censored %d events for origin %s...", len(model.events), origin_id[:12])
    return censored
