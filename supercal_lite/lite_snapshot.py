"""JSON snapshot (whole-calendar backup) import and export - SuperCal Lite version."""

import json
import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any, Optional

from pydantic import ValidationError

from .lite_datetime_utils import now_utc
from .lite_exceptions import SnapshotFormatError, SnapshotVersionError
from .lite_models import CalendarEvent, CalendarSnapshot, Category

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = "1.0.0"
MIN_COMPATIBLE_VERSION = "0.9.0"

# Legacy documents nest events and categories under this key
LEGACY_WRAPPER_KEY = "calendarData"

# Desktop-app backups use camelCase records
_DESKTOP_EVENT_FIELDS = {
    "startDate": "start_date",
    "endDate": "end_date",
    "startTime": "start_time",
    "endTime": "end_time",
    "isAllDay": "is_all_day",
    "categoryId": "category_id",
    "recurrenceId": "series_id",
    "recurrenceSequence": "sequence_number",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}
_DESKTOP_CATEGORY_FIELDS = {"createdAt": "created_at"}
_DESKTOP_FREQUENCIES = ("daily", "weekly", "monthly", "yearly", "custom")

_DEFAULT_CATEGORIES = (
    ("Work", "#2196f3", "💼"),
    ("Personal", "#4caf50", "🏠"),
    ("Appointment", "#f44336", "🔔"),
    ("Vacation", "#ff9800", "🏝️"),
    ("Sport", "#9c27b0", "🏃"),
    ("Event", "#795548", "🎉"),
    ("Golf", "#4caf50", "🏌️"),
)


def _version_parts(version: str) -> list[int]:
    parts = []
    for part in version.strip().split("."):
        try:
            parts.append(int(part))
        except ValueError:
            parts.append(0)
    return parts


def compare_versions(v1: str, v2: str) -> int:
    """Compare dotted version strings numerically.

    Missing or non-numeric parts count as 0, so "1.0" equals "1.0.0".

    Returns:
        -1 if v1 < v2, 0 if equal, 1 if v1 > v2
    """
    parts1 = _version_parts(v1)
    parts2 = _version_parts(v2)
    for index in range(max(len(parts1), len(parts2))):
        p1 = parts1[index] if index < len(parts1) else 0
        p2 = parts2[index] if index < len(parts2) else 0
        if p1 < p2:
            return -1
        if p1 > p2:
            return 1
    return 0


def default_categories(now: Optional[datetime] = None) -> list[Category]:
    """Build the starter categories for a new calendar."""
    created_at = now or now_utc()
    return [
        Category(name=name, color=color, emoji=emoji, created_at=created_at)
        for name, color, emoji in _DEFAULT_CATEGORIES
    ]


def repair_category_references(
    events: Iterable[CalendarEvent], categories: Iterable[Category]
) -> tuple[list[CalendarEvent], int]:
    """Clear category references that point at no known category.

    Args:
        events: Events to check
        categories: Known categories

    Returns:
        Tuple of (event copies with dangling references cleared, number repaired)
    """
    valid_ids = {category.id for category in categories}
    repaired_events = []
    repaired = 0
    for event in events:
        if event.category_id and event.category_id not in valid_ids:
            logger.warning(
                "Clearing unknown category %s on event %r (%s)",
                event.category_id,
                event.title,
                event.id,
            )
            event = event.model_copy(update={"category_id": None})
            repaired += 1
        repaired_events.append(event)

    if repaired:
        logger.info("Repaired %d events with unknown categories", repaired)
    return repaired_events, repaired


def _rename_keys(record: dict[str, Any], mapping: dict[str, str]) -> dict[str, Any]:
    return {mapping.get(key, key): value for key, value in record.items()}


def _desktop_month(value: Any) -> Any:
    # Desktop months are 0-based
    return value + 1 if isinstance(value, int) else value


def _desktop_recurrence(data: dict[str, Any]) -> Optional[dict[str, Any]]:
    """Convert a desktop-app recurrence object into RecurrenceRule fields.

    Returns None for ``type: none`` and for types the expander cannot run.
    """
    frequency = data.get("type")
    if frequency not in _DESKTOP_FREQUENCIES:
        if frequency != "none":
            logger.warning("Dropping unsupported recurrence type %r", frequency)
        return None

    rule: dict[str, Any] = {"frequency": frequency, "interval": data.get("interval") or 1}
    if frequency == "weekly" and data.get("days"):
        rule["weekly_days"] = data["days"]
    elif frequency == "monthly":
        if data.get("monthlyType") == "day-of-week":
            rule["monthly"] = {
                "kind": "day-of-week",
                "week_number": data.get("weekNumber"),
                "day_of_week": data.get("dayOfWeek"),
            }
        else:
            rule["monthly"] = {"kind": "day-of-month", "day_of_month": data.get("dayOfMonth")}
    elif frequency == "yearly":
        if data.get("yearlyType") == "day-of-week":
            rule["yearly"] = {
                "kind": "day-of-week",
                "week_number": data.get("weekNumber"),
                "day_of_week": data.get("dayOfWeek"),
                "month": _desktop_month(data.get("month")),
            }
        else:
            rule["yearly"] = {
                "kind": "date",
                "month": _desktop_month(data.get("month")),
                "day_of_month": data.get("dayOfMonth"),
            }
    elif frequency == "custom":
        rule["custom_unit"] = data.get("unit")

    end = data.get("end")
    if isinstance(end, dict):
        if end.get("type") == "after":
            rule["end"] = {"kind": "after", "occurrences": end.get("occurrences")}
        elif end.get("type") == "on-date":
            rule["end"] = {"kind": "on-date", "until": end.get("date")}
    return rule


def _normalize_event_record(record: Any) -> Any:
    """Map a desktop-app event record onto CalendarEvent fields.

    Records already in snapshot shape pass through untouched.
    """
    if not isinstance(record, dict) or not any(key in record for key in _DESKTOP_EVENT_FIELDS):
        return record

    event = _rename_keys(record, _DESKTOP_EVENT_FIELDS)
    if event.get("is_all_day"):
        # The desktop app stores 00:00/23:59 on all-day events
        event["start_time"] = None
        event["end_time"] = None
    recurrence = event.get("recurrence")
    if isinstance(recurrence, dict) and "type" in recurrence and "frequency" not in recurrence:
        event["recurrence"] = _desktop_recurrence(recurrence)
    return event


def _normalize_category_record(record: Any) -> Any:
    if not isinstance(record, dict):
        return record
    return _rename_keys(record, _DESKTOP_CATEGORY_FIELDS)


def dump_snapshot(
    events: Iterable[CalendarEvent],
    categories: Iterable[Category],
    preferences: Optional[dict[str, Any]] = None,
    *,
    version: str = SNAPSHOT_VERSION,
    now: Optional[datetime] = None,
) -> str:
    """Serialize a whole calendar to indented JSON.

    Args:
        events: Events to include
        categories: Categories to include
        preferences: Opaque host preferences, stored as-is
        version: Application data version written into the document
        now: Export timestamp (defaults to the current time)

    Returns:
        JSON text
    """
    snapshot = CalendarSnapshot(
        events=list(events),
        categories=list(categories),
        preferences=dict(preferences or {}),
        version=version,
        export_date=now or now_utc(),
    )
    logger.debug(
        "Dumping snapshot with %d events and %d categories",
        len(snapshot.events),
        len(snapshot.categories),
    )
    return snapshot.model_dump_json(indent=2)


def load_snapshot(text: str, *, min_compatible_version: str = MIN_COMPATIBLE_VERSION) -> CalendarSnapshot:
    """Parse a JSON snapshot, accepting the legacy ``calendarData`` wrapper.

    Event and category records written by the desktop app use camelCase keys
    and their own recurrence shape; they are mapped onto the model fields
    before validation.

    Args:
        text: JSON document
        min_compatible_version: Oldest data version that can still be read

    Returns:
        Validated CalendarSnapshot

    Raises:
        SnapshotFormatError: If the document is not a calendar snapshot
        SnapshotVersionError: If the document version is too old
    """
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise SnapshotFormatError(f"Snapshot is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise SnapshotFormatError("Snapshot top level must be a JSON object")

    version = data.get("version")
    if version and compare_versions(str(version), min_compatible_version) < 0:
        raise SnapshotVersionError(
            f"Snapshot version {version} is older than the minimum supported {min_compatible_version}"
        )

    legacy = data.get(LEGACY_WRAPPER_KEY)
    if not isinstance(legacy, dict):
        legacy = {}

    events = data.get("events")
    if not isinstance(events, list):
        events = legacy.get("events")
    categories = data.get("categories")
    if not isinstance(categories, list):
        categories = legacy.get("categories")

    if not isinstance(events, list) and not isinstance(categories, list):
        raise SnapshotFormatError("Snapshot holds neither events nor categories")

    payload: dict[str, Any] = {
        "events": [_normalize_event_record(e) for e in events] if isinstance(events, list) else [],
        "categories": (
            [_normalize_category_record(c) for c in categories] if isinstance(categories, list) else []
        ),
        "preferences": data.get("preferences") or {},
    }
    if version:
        payload["version"] = str(version)
    export_date = data.get("export_date") or data.get("exportDate")
    if export_date:
        payload["export_date"] = export_date

    try:
        snapshot = CalendarSnapshot.model_validate(payload)
    except ValidationError as e:
        raise SnapshotFormatError(f"Snapshot content is invalid: {e}") from e

    logger.debug(
        "Loaded snapshot version %s with %d events and %d categories%s",
        snapshot.version,
        len(snapshot.events),
        len(snapshot.categories),
        " (legacy wrapper)" if legacy else "",
    )
    return snapshot
