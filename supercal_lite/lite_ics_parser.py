"""Line-oriented iCalendar (RFC 5545 subset) reader - SuperCal Lite version.

Only the properties written by the SuperCal encoder are understood. Anything
else is ignored, and incomplete VEVENT blocks are dropped and counted instead
of failing the whole import.
"""

import logging
import random
import re
import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Any, Optional

from pydantic import ValidationError

from .lite_datetime_utils import ICS_DAY_INDEX, now_utc, parse_ics_date, parse_ics_datetime
from .lite_exceptions import CalendarDecodeError, RecurrenceRuleError
from .lite_models import (
    DEFAULT_CATEGORY_EMOJI,
    DEFAULT_CATEGORY_PALETTE,
    CalendarEvent,
    Category,
    DayOfMonth,
    DecodedCalendar,
    EndAfter,
    EndNever,
    EndOnDate,
    FixedDate,
    Frequency,
    RecurrenceRule,
)

logger = logging.getLogger(__name__)

_LINE_SPLIT_RE = re.compile(r"\r\n|\n|\r")
_UNESCAPE_RE = re.compile(r"\\([\\;,nN])")

RRULE_FREQUENCIES = {
    "DAILY": Frequency.DAILY,
    "WEEKLY": Frequency.WEEKLY,
    "MONTHLY": Frequency.MONTHLY,
    "YEARLY": Frequency.YEARLY,
}

DEFAULT_RRULE_COUNT = 10


def unescape_ics_text(text: str) -> str:
    """Reverse TEXT escaping in a single left-to-right pass.

    Examples:
        >>> unescape_ics_text("a\\\\;b\\\\nc")
        'a;b\\nc'
    """

    def _replace(match: re.Match) -> str:
        char = match.group(1)
        return "\n" if char in "nN" else char

    return _UNESCAPE_RE.sub(_replace, text)


def split_ics_list(value: str) -> list[str]:
    """Split a comma-separated TEXT list on unescaped commas and unescape each item.

    Blank items are dropped.
    """
    items: list[str] = []
    current: list[str] = []
    chars = iter(value)
    for char in chars:
        if char == "\\":
            # keep the escape pair intact for unescape_ics_text
            current.append(char + next(chars, ""))
        elif char == ",":
            items.append("".join(current))
            current = []
        else:
            current.append(char)
    items.append("".join(current))
    return [name for name in (unescape_ics_text(item).strip() for item in items) if name]


def _int_or_default(value: str, default: int) -> int:
    try:
        number = int(value)
    except ValueError:
        return default
    return number if number >= 1 else default


def parse_rrule_string(rrule_string: str) -> dict[str, Any]:
    """Parse an RRULE value into its components.

    Args:
        rrule_string: RRULE value (e.g. "FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,WE")

    Returns:
        Dictionary with ``freq`` (upper-case name), ``interval``, ``byday``
        (weekday indices, 0=Sunday), ``count`` and ``until``. When both COUNT
        and UNTIL appear the last one wins.

    Raises:
        RecurrenceRuleError: If the value is empty or has no FREQ
    """
    if not rrule_string or not rrule_string.strip():
        raise RecurrenceRuleError("Empty RRULE string")

    rrule: dict[str, Any] = {"freq": None, "interval": 1, "byday": [], "count": None, "until": None}

    for part in rrule_string.split(";"):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        key = key.strip().upper()
        value = value.strip()

        if key == "FREQ":
            rrule["freq"] = value.upper()
        elif key == "INTERVAL":
            rrule["interval"] = _int_or_default(value, 1)
        elif key == "BYDAY":
            codes = [code.strip().upper() for code in value.split(",") if code.strip()]
            unknown = [code for code in codes if code not in ICS_DAY_INDEX]
            if unknown:
                logger.debug("Dropping unsupported BYDAY codes: %s", unknown)
            rrule["byday"] = [ICS_DAY_INDEX[code] for code in codes if code in ICS_DAY_INDEX]
        elif key == "COUNT":
            rrule["count"] = _int_or_default(value, DEFAULT_RRULE_COUNT)
            rrule["until"] = None
        elif key == "UNTIL":
            try:
                rrule["until"] = parse_ics_datetime(value).date()
                rrule["count"] = None
            except ValueError:
                logger.warning("Ignoring unparseable RRULE UNTIL value: %r", value)

    if not rrule["freq"]:
        raise RecurrenceRuleError(f"RRULE missing required FREQ parameter: {rrule_string}")

    return rrule


def build_recurrence_rule(rrule: dict[str, Any], start_date: date) -> RecurrenceRule:
    """Turn parsed RRULE components into a RecurrenceRule.

    Monthly and yearly rules carry no day selector in RRULE, so they are anchored
    on ``start_date``. An unrecognised FREQ falls back to daily.

    Raises:
        ValidationError: If the components do not form a valid rule
    """
    frequency = RRULE_FREQUENCIES.get(rrule["freq"])
    if frequency is None:
        logger.warning("Unsupported RRULE FREQ %r, treating as DAILY", rrule["freq"])
        frequency = Frequency.DAILY

    if rrule.get("count"):
        end: Any = EndAfter(occurrences=rrule["count"])
    elif rrule.get("until"):
        end = EndOnDate(until=rrule["until"])
    else:
        end = EndNever()

    kwargs: dict[str, Any] = {
        "frequency": frequency,
        "interval": rrule.get("interval", 1),
        "end": end,
    }
    if frequency == Frequency.WEEKLY:
        kwargs["weekly_days"] = tuple(rrule.get("byday") or ())
    elif frequency == Frequency.MONTHLY:
        kwargs["monthly"] = DayOfMonth(day_of_month=start_date.day)
    elif frequency == Frequency.YEARLY:
        kwargs["yearly"] = FixedDate(month=start_date.month, day_of_month=start_date.day)

    return RecurrenceRule(**kwargs)


@dataclass
class _EventShell:
    """Properties collected between BEGIN:VEVENT and END:VEVENT."""

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=now_utc)
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    is_all_day: bool = False
    category_id: Optional[str] = None
    rrule: Optional[dict[str, Any]] = None


class LiteICSParser:
    """Decodes SuperCal iCalendar text into events and categories."""

    def __init__(self, settings: Any = None, rng: Optional[random.Random] = None) -> None:
        """Initialize ICS parser.

        Args:
            settings: Optional settings providing category_palette and default_category_emoji
            rng: Random source for category colours (seed it for reproducible output)
        """
        palette: Sequence[str] = getattr(settings, "category_palette", None) or DEFAULT_CATEGORY_PALETTE
        self.palette = tuple(palette)
        self.default_emoji = getattr(settings, "default_category_emoji", DEFAULT_CATEGORY_EMOJI)
        self.rng = rng or random.Random()

    def parse(self, content: Any) -> DecodedCalendar:
        """Decode iCalendar text.

        Args:
            content: Calendar text (str) or UTF-8 bytes

        Returns:
            DecodedCalendar with committed events, minted categories and skip statistics

        Raises:
            CalendarDecodeError: If the content cannot be read as text lines
        """
        text = self._coerce_text(content)
        result = DecodedCalendar()
        categories_by_name: dict[str, Category] = {}
        shell: Optional[_EventShell] = None

        for raw_line in _LINE_SPLIT_RE.split(text):
            marker = raw_line.strip().upper()
            if not marker:
                continue

            if marker == "BEGIN:VEVENT":
                if shell is not None:
                    self._skip(result, "VEVENT block not terminated before the next BEGIN:VEVENT")
                shell = _EventShell()
                continue
            if marker == "END:VEVENT":
                if shell is not None:
                    self._commit(shell, result)
                shell = None
                continue

            if shell is not None:
                # TEXT values keep their surrounding whitespace
                self._apply_property(shell, raw_line, result, categories_by_name)

        if shell is not None:
            self._skip(result, "VEVENT block not terminated at end of input")

        result.categories = list(categories_by_name.values())
        logger.info(
            "Decoded %d events, %d categories (%d blocks skipped)",
            result.event_count,
            len(result.categories),
            result.skipped_count,
        )
        return result

    def _coerce_text(self, content: Any) -> str:
        if isinstance(content, (bytes, bytearray)):
            try:
                return bytes(content).decode("utf-8-sig")
            except UnicodeDecodeError as e:
                raise CalendarDecodeError(f"Calendar bytes are not valid UTF-8: {e}") from e
        if isinstance(content, str):
            return content
        raise CalendarDecodeError(f"Cannot read calendar text from {type(content).__name__}")

    def _apply_property(
        self,
        shell: _EventShell,
        line: str,
        result: DecodedCalendar,
        categories_by_name: dict[str, Category],
    ) -> None:
        """Apply one ``NAME[;PARAMS]:VALUE`` line to the event being built."""
        key, sep, value = line.partition(":")
        if not sep or not value:
            return

        name, *params = key.split(";")
        name = name.strip().upper()
        date_only = any(param.strip().upper() == "VALUE=DATE" for param in params)

        if name == "SUMMARY":
            shell.title = unescape_ics_text(value)
        elif name == "DESCRIPTION":
            shell.description = unescape_ics_text(value)
        elif name == "LOCATION":
            shell.location = unescape_ics_text(value)
        elif name in ("DTSTART", "DTEND"):
            moment = self._parse_moment(name, value, date_only, result)
            if moment is None:
                return
            if name == "DTSTART":
                shell.start = moment
                shell.is_all_day = date_only
            else:
                shell.end = moment
        elif name == "CATEGORIES":
            for category_name in split_ics_list(value):
                category = categories_by_name.get(category_name)
                if category is None:
                    category = Category(
                        name=category_name,
                        color=self.rng.choice(self.palette),
                        emoji=self.default_emoji,
                    )
                    categories_by_name[category_name] = category
                shell.category_id = category.id
        elif name == "RRULE":
            try:
                shell.rrule = parse_rrule_string(value)
            except RecurrenceRuleError as e:
                result.add_warning(str(e))
                logger.warning("Ignoring RRULE: %s", e)

    def _parse_moment(
        self, name: str, value: str, date_only: bool, result: DecodedCalendar
    ) -> Optional[datetime]:
        try:
            if date_only:
                return datetime.combine(parse_ics_date(value), time.min)
            return parse_ics_datetime(value)
        except ValueError:
            warning = f"Skipping unparseable {name} value: {value!r}"
            result.add_warning(warning)
            logger.warning(warning)
            return None

    def _commit(self, shell: _EventShell, result: DecodedCalendar) -> None:
        """Validate the collected properties and append the event, or skip the block."""
        if not shell.title or shell.start is None:
            self._skip(result, "VEVENT block missing SUMMARY or DTSTART", level=logging.DEBUG)
            return

        start = shell.start
        end = shell.end or start

        recurrence = None
        if shell.rrule is not None:
            if shell.rrule["freq"] not in RRULE_FREQUENCIES:
                result.add_warning(f"Unsupported RRULE FREQ {shell.rrule['freq']!r} read as DAILY")
            try:
                recurrence = build_recurrence_rule(shell.rrule, start.date())
            except ValidationError as e:
                result.add_warning(f"Ignoring invalid RRULE on '{shell.title}': {e}")
                logger.warning("Ignoring invalid RRULE on %r: %s", shell.title, e)

        try:
            event = CalendarEvent(
                id=shell.id,
                title=shell.title,
                start_date=start.date(),
                end_date=end.date(),
                start_time=None if shell.is_all_day else start.time(),
                end_time=None if shell.is_all_day else end.time(),
                is_all_day=shell.is_all_day,
                location=shell.location,
                description=shell.description,
                category_id=shell.category_id,
                recurrence=recurrence,
                created_at=shell.created_at,
                updated_at=shell.created_at,
            )
        except ValidationError as e:
            self._skip(result, f"Invalid VEVENT '{shell.title}': {e}")
            return

        result.events.append(event)

    def _skip(self, result: DecodedCalendar, reason: str, level: int = logging.WARNING) -> None:
        result.skipped_count += 1
        if level >= logging.WARNING:
            result.add_warning(reason)
        logger.log(level, "Skipping event block: %s", reason)


def decode(content: Any, settings: Any = None, rng: Optional[random.Random] = None) -> DecodedCalendar:
    """Decode iCalendar text with a one-off parser.

    Args:
        content: Calendar text or UTF-8 bytes
        settings: Optional configuration object
        rng: Optional random source for category colours

    Returns:
        DecodedCalendar
    """
    return LiteICSParser(settings, rng).parse(content)
