"""Data models for recurrence expansion and calendar interchange - SuperCal Lite version."""

import uuid
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator, model_validator

from .lite_datetime_utils import now_utc as _now_utc

DEFAULT_CATEGORY_PALETTE = (
    "#4361ee",
    "#2196f3",
    "#4caf50",
    "#f44336",
    "#ff9800",
    "#9c27b0",
    "#795548",
    "#607d8b",
    "#f72585",
    "#4cc9f0",
)
DEFAULT_CATEGORY_EMOJI = "📅"

HEX_COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"


def _new_id() -> str:
    return str(uuid.uuid4())


# Recurrence rule models


class Frequency(str, Enum):
    """Base repetition unit of a recurrence rule."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"


class CustomUnit(str, Enum):
    """Unit added per step by a custom rule."""

    DAYS = "days"
    WEEKS = "weeks"
    MONTHS = "months"
    YEARS = "years"


WeekNumber = Literal[1, 2, 3, 4, -1]


class DayOfMonth(BaseModel):
    """Monthly mode: the same day number every month."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["day-of-month"] = "day-of-month"
    day_of_month: int = Field(..., ge=1, le=31)


class NthWeekday(BaseModel):
    """Monthly mode: the Nth weekday of every month (-1 = last)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["day-of-week"] = "day-of-week"
    week_number: WeekNumber
    day_of_week: int = Field(..., ge=0, le=6, description="0=Sunday .. 6=Saturday")


class FixedDate(BaseModel):
    """Yearly mode: the same month and day every year."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["date"] = "date"
    month: int = Field(..., ge=1, le=12)
    day_of_month: int = Field(..., ge=1, le=31)


class YearlyNthWeekday(BaseModel):
    """Yearly mode: the Nth weekday of a fixed month."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["day-of-week"] = "day-of-week"
    week_number: WeekNumber
    day_of_week: int = Field(..., ge=0, le=6, description="0=Sunday .. 6=Saturday")
    month: int = Field(..., ge=1, le=12)


class EndNever(BaseModel):
    """The series only stops at the expansion safety cap."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["never"] = "never"


class EndAfter(BaseModel):
    """The series stops after ``occurrences`` instances beyond the first."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["after"] = "after"
    occurrences: int = Field(..., ge=1)


class EndOnDate(BaseModel):
    """The series stops after the last instance on or before ``until``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["on-date"] = "on-date"
    until: date


MonthlyMode = Annotated[Union[DayOfMonth, NthWeekday], Field(discriminator="kind")]
YearlyMode = Annotated[Union[FixedDate, YearlyNthWeekday], Field(discriminator="kind")]
EndPolicy = Annotated[Union[EndNever, EndAfter, EndOnDate], Field(discriminator="kind")]


class RecurrenceRule(BaseModel):
    """How a template event repeats.

    Exactly the payload matching ``frequency`` may be populated: ``monthly``
    for monthly rules, ``yearly`` for yearly rules, ``custom_unit`` for custom
    rules and (optionally) ``weekly_days`` for weekly rules.
    """

    model_config = ConfigDict(frozen=True)

    frequency: Frequency
    interval: int = Field(default=1, ge=1, description="Multiplier of the base unit")
    weekly_days: tuple[int, ...] = Field(
        default=(), description="Weekday indices (0=Sunday); empty means the start weekday"
    )
    monthly: Optional[MonthlyMode] = None
    yearly: Optional[YearlyMode] = None
    custom_unit: Optional[CustomUnit] = None
    end: EndPolicy = Field(default_factory=EndNever)

    @field_validator("weekly_days")
    @classmethod
    def _check_weekly_days(cls, days: tuple[int, ...]) -> tuple[int, ...]:
        for day in days:
            if not 0 <= day <= 6:
                raise ValueError(f"weekday index {day} outside 0..6")
        return tuple(dict.fromkeys(days))

    @model_validator(mode="after")
    def _check_mode_payloads(self) -> "RecurrenceRule":
        expected = {
            "monthly": self.frequency == Frequency.MONTHLY,
            "yearly": self.frequency == Frequency.YEARLY,
            "custom_unit": self.frequency == Frequency.CUSTOM,
        }
        for field_name, required in expected.items():
            present = getattr(self, field_name) is not None
            if required and not present:
                raise ValueError(f"{self.frequency.value} rules require '{field_name}'")
            if present and not required:
                raise ValueError(f"'{field_name}' is not allowed on {self.frequency.value} rules")
        if self.weekly_days and self.frequency != Frequency.WEEKLY:
            raise ValueError("'weekly_days' is only allowed on weekly rules")
        return self


# Calendar models


class CalendarEvent(BaseModel):
    """A calendar event: a template before expansion or a persisted instance."""

    id: str = Field(default_factory=_new_id, description="Event ID")
    title: str = Field(default="", description="Event title")

    # Time information
    start_date: date = Field(..., description="First day of the event")
    end_date: date = Field(..., description="Last day of the event")
    start_time: Optional[time] = Field(default=None, description="Start time (timed events)")
    end_time: Optional[time] = Field(default=None, description="End time (timed events)")
    is_all_day: bool = Field(default=False, description="All-day event flag")

    location: Optional[str] = None
    description: Optional[str] = None
    category_id: Optional[str] = Field(
        default=None, description="Category reference; may dangle"
    )

    # Recurrence
    recurrence: Optional[RecurrenceRule] = None
    series_id: Optional[str] = Field(default=None, description="Shared by one expansion")
    sequence_number: Optional[int] = Field(default=None, ge=0, description="Position in series")

    # Metadata
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode="after")
    def _check_consistency(self) -> "CalendarEvent":
        if self.end_date < self.start_date:
            raise ValueError(f"end_date {self.end_date} is before start_date {self.start_date}")
        if self.is_all_day and (self.start_time is not None or self.end_time is not None):
            raise ValueError("all-day events cannot carry start/end times")
        return self

    @property
    def duration(self) -> timedelta:
        """Whole-day span between start and end dates."""
        return self.end_date - self.start_date

    @property
    def start_datetime(self) -> datetime:
        """Start date combined with the start time (midnight when unset)."""
        return datetime.combine(self.start_date, self.start_time or time.min)

    @property
    def end_datetime(self) -> datetime:
        """End date combined with the end time (midnight when unset)."""
        return datetime.combine(self.end_date, self.end_time or time.min)

    @property
    def is_series_member(self) -> bool:
        """Check whether the event was produced by a recurrence expansion."""
        return self.series_id is not None

    @field_serializer("created_at", "updated_at", when_used="unless-none")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime fields to ISO format."""
        return dt.isoformat()


class Category(BaseModel):
    """Event category. Referenced by events through ``category_id``."""

    id: str = Field(default_factory=_new_id, description="Category ID")
    name: str = Field(..., min_length=1, description="Display name; identity across ICS")
    color: str = Field(default=DEFAULT_CATEGORY_PALETTE[0], pattern=HEX_COLOR_PATTERN)
    emoji: str = Field(default=DEFAULT_CATEGORY_EMOJI, min_length=1)
    created_at: datetime = Field(default_factory=_now_utc)

    @field_serializer("created_at")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize datetime to ISO format."""
        return dt.isoformat()


# Result models


class DecodedCalendar(BaseModel):
    """Result of decoding calendar interchange text."""

    events: list[CalendarEvent] = Field(default_factory=list, description="Committed events")
    categories: list[Category] = Field(default_factory=list, description="Categories by name")

    # Partial-recovery statistics
    skipped_count: int = Field(default=0, description="Incomplete VEVENT blocks dropped")
    warnings: list[str] = Field(default_factory=list)

    parse_time: datetime = Field(default_factory=_now_utc)

    @property
    def event_count(self) -> int:
        """Number of decoded events."""
        return len(self.events)

    def add_warning(self, warning: str) -> None:
        """Add a warning message."""
        self.warnings.append(warning)


class CalendarSnapshot(BaseModel):
    """JSON backup of a whole calendar."""

    events: list[CalendarEvent] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    preferences: dict[str, Any] = Field(default_factory=dict, description="Opaque host settings")
    version: str = Field(default="1.0.0", description="Application data version")
    export_date: datetime = Field(default_factory=_now_utc)
