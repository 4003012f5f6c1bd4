"""Raw, order-preserving calendar model used by the censorship transform.

Values are kept as raw text after unfolding, backslash escapes included, and
are never converted to dates or other types.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class CalendarProperty:
    """A single content line: ``NAME;PARAM=VALUE,...:VALUE``.

    Attributes:
        name: Upper-cased property name (e.g. ``DTSTART``)
        params: Ordered mapping of parameter name to one or more values,
            without surrounding quotes
        value: Text after the first unquoted colon
    """

    name: str
    params: dict[str, list[str]] = field(default_factory=dict)
    value: str = ""


@dataclass(frozen=True)
class CalendarEvent:
    """Properties of one ``VEVENT``, in source order."""

    properties: tuple[CalendarProperty, ...] = ()

    @property
    def uid(self) -> str | None:
        for prop in self.properties:
            if prop.name == "UID":
                return prop.value
        return None


@dataclass(frozen=True)
class CalendarModel:
    """Parsed calendar.

    Attributes:
        properties: Every top-level content line that is not part of a
            ``VEVENT``, including the ``BEGIN``/``END`` lines of nested
            components such as ``VTIMEZONE``
        events: The calendar's events in source order
    """

    properties: tuple[CalendarProperty, ...] = ()
    events: tuple[CalendarEvent, ...] = ()
