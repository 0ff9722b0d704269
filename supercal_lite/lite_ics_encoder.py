"""iCalendar (RFC 5545 subset) writer - SuperCal Lite version.

Output is a single VCALENDAR with one VEVENT per event. Every line, the last
one included, ends with CRLF; lines are never folded.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime
from typing import Any, Optional

from .lite_datetime_utils import (
    ICS_DAY_CODES,
    format_ics_date,
    format_ics_datetime,
    now_utc,
)
from .lite_models import (
    CalendarEvent,
    Category,
    CustomUnit,
    EndAfter,
    EndOnDate,
    Frequency,
    RecurrenceRule,
)

logger = logging.getLogger(__name__)

CRLF = "\r\n"

DEFAULT_PRODID_APP = "SuperCalendrier"
DEFAULT_PRODID_LOCALE = "FR"
DEFAULT_UID_DOMAIN = "supercalendrier.com"

_FREQ_NAMES = {
    Frequency.DAILY: "DAILY",
    Frequency.WEEKLY: "WEEKLY",
    Frequency.MONTHLY: "MONTHLY",
    Frequency.YEARLY: "YEARLY",
}

_CUSTOM_FREQ_NAMES = {
    CustomUnit.DAYS: "DAILY",
    CustomUnit.WEEKS: "WEEKLY",
    CustomUnit.MONTHS: "MONTHLY",
    CustomUnit.YEARS: "YEARLY",
}


def escape_ics_text(text: str) -> str:
    """Escape a TEXT value.

    CRLF and bare CR line breaks are normalized to LF. Backslashes are escaped
    before the other characters so the escapes added afterwards are not doubled.

    Examples:
        >>> escape_ics_text("a;b,c")
        'a\\\\;b\\\\,c'
    """
    return (
        text.replace("\r\n", "\n")
        .replace("\r", "\n")
        .replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\n", "\\n")
    )


def build_rrule(rule: RecurrenceRule) -> str:
    """Render a recurrence rule as an RRULE value (without the ``RRULE:`` name).

    Monthly and yearly modes have no RRULE counterpart here; the receiving side
    rebuilds them from the event's start date.
    """
    if rule.frequency == Frequency.CUSTOM:
        freq = _CUSTOM_FREQ_NAMES.get(rule.custom_unit, "DAILY")
    else:
        freq = _FREQ_NAMES.get(rule.frequency, "DAILY")

    parts = [f"FREQ={freq}"]
    if rule.interval > 1:
        parts.append(f"INTERVAL={rule.interval}")
    if rule.frequency == Frequency.WEEKLY and rule.weekly_days:
        parts.append("BYDAY=" + ",".join(ICS_DAY_CODES[day] for day in rule.weekly_days))

    end = rule.end
    if isinstance(end, EndAfter):
        parts.append(f"COUNT={end.occurrences}")
    elif isinstance(end, EndOnDate):
        parts.append(f"UNTIL={format_ics_date(end.until)}T235959Z")

    return ";".join(parts)


class LiteICSEncoder:
    """Serializes events and categories to iCalendar text."""

    def __init__(self, settings: Any = None) -> None:
        """Initialize encoder.

        Args:
            settings: Optional settings providing prodid_app, prodid_locale and uid_domain
        """
        self.prodid_app = getattr(settings, "prodid_app", DEFAULT_PRODID_APP)
        self.prodid_locale = getattr(settings, "prodid_locale", DEFAULT_PRODID_LOCALE)
        self.uid_domain = getattr(settings, "uid_domain", DEFAULT_UID_DOMAIN)

    @property
    def prodid(self) -> str:
        return f"-//{self.prodid_app}//{self.prodid_locale}"

    def encode(
        self,
        events: Iterable[CalendarEvent],
        categories: Iterable[Category],
        *,
        event_ids: Optional[Sequence[str]] = None,
        now: Optional[datetime] = None,
    ) -> str:
        """Serialize events to a VCALENDAR document.

        Args:
            events: Events to export, in output order
            categories: Known categories used to resolve ``category_id``
            event_ids: When given, only events with these ids are exported
            now: DTSTAMP value shared by every VEVENT (defaults to the current time)

        Returns:
            iCalendar text with CRLF line endings
        """
        stamp = format_ics_datetime(now or now_utc())
        categories_by_id = {category.id: category for category in categories}
        wanted = set(event_ids) if event_ids is not None else None

        lines = [
            "BEGIN:VCALENDAR",
            "VERSION:2.0",
            f"PRODID:{self.prodid}",
            "CALSCALE:GREGORIAN",
            "METHOD:PUBLISH",
        ]
        exported = 0
        for event in events:
            if wanted is not None and event.id not in wanted:
                continue
            lines.extend(self._event_lines(event, categories_by_id, stamp))
            exported += 1
        lines.append("END:VCALENDAR")

        logger.debug("Encoded %d events to iCalendar", exported)
        return CRLF.join(lines) + CRLF

    def _event_lines(
        self,
        event: CalendarEvent,
        categories_by_id: dict[str, Category],
        stamp: str,
    ) -> list[str]:
        lines = [
            "BEGIN:VEVENT",
            f"UID:{event.id}@{self.uid_domain}",
            f"DTSTAMP:{stamp}",
        ]

        if event.is_all_day:
            lines.append(f"DTSTART;VALUE=DATE:{format_ics_date(event.start_date)}")
            lines.append(f"DTEND;VALUE=DATE:{format_ics_date(event.end_date)}")
        else:
            lines.append(f"DTSTART:{format_ics_datetime(event.start_datetime)}")
            lines.append(f"DTEND:{format_ics_datetime(event.end_datetime)}")

        lines.append(f"SUMMARY:{escape_ics_text(event.title)}")
        if event.description:
            lines.append(f"DESCRIPTION:{escape_ics_text(event.description)}")
        if event.location:
            lines.append(f"LOCATION:{escape_ics_text(event.location)}")

        category = categories_by_id.get(event.category_id) if event.category_id else None
        if category is not None:
            lines.append(f"CATEGORIES:{escape_ics_text(category.name)}")

        if event.recurrence is not None:
            lines.append(f"RRULE:{build_rrule(event.recurrence)}")

        lines.append("END:VEVENT")
        return lines


def encode(
    events: Iterable[CalendarEvent],
    categories: Iterable[Category],
    *,
    event_ids: Optional[Sequence[str]] = None,
    now: Optional[datetime] = None,
    settings: Any = None,
) -> str:
    """Serialize events with a one-off encoder.

    Args:
        events: Events to export
        categories: Known categories
        event_ids: Optional id filter
        now: Optional DTSTAMP clock value
        settings: Optional configuration object

    Returns:
        iCalendar text
    """
    return LiteICSEncoder(settings).encode(events, categories, event_ids=event_ids, now=now)
