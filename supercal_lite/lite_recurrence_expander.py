"""Recurrence expansion for SuperCal Lite templates.

A template event carrying one RecurrenceRule is materialized into the finite,
ordered list of instances the host persists. Each step is computed from the
previous instance's start date, never from the template's.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Optional

from .lite_datetime_utils import (
    add_months,
    add_years,
    normalized_date,
    nth_weekday_of_month,
    weekday_index,
)
from .lite_models import (
    CalendarEvent,
    CustomUnit,
    EndAfter,
    EndOnDate,
    Frequency,
    NthWeekday,
    RecurrenceRule,
    YearlyNthWeekday,
)

logger = logging.getLogger(__name__)

# Upper bound on instances per expansion, whatever the end policy
MAX_SERIES_INSTANCES = 100

_Stepper = Callable[[RecurrenceRule, date, CalendarEvent], date]


@dataclass
class RecurrenceExpanderConfig:
    """Configuration for recurrence expansion.

    ``max_series_instances`` may lower the safety cap but never raise it.
    """

    max_series_instances: int = MAX_SERIES_INSTANCES

    @classmethod
    def from_settings(cls, settings: Any) -> "RecurrenceExpanderConfig":
        """Extract expansion configuration from a settings object.

        Args:
            settings: Configuration object (e.g. Config) or None

        Returns:
            RecurrenceExpanderConfig with values from settings or defaults
        """
        raw = getattr(settings, "max_series_instances", MAX_SERIES_INSTANCES)
        try:
            requested = int(raw)
        except (TypeError, ValueError):
            logger.warning(
                "max_series_instances=%r is not an int; using %d", raw, MAX_SERIES_INSTANCES
            )
            requested = MAX_SERIES_INSTANCES
        return cls(max_series_instances=max(1, min(requested, MAX_SERIES_INSTANCES)))


class RecurrenceExpander:
    """Expands template events into series instances."""

    def __init__(self, settings: Any = None):
        """Initialize expander with configuration settings.

        Args:
            settings: Optional configuration object with expansion settings
        """
        config = RecurrenceExpanderConfig.from_settings(settings)
        self.max_instances = config.max_series_instances
        self._steppers: dict[Frequency, _Stepper] = {
            Frequency.DAILY: self._next_daily,
            Frequency.WEEKLY: self._next_weekly,
            Frequency.MONTHLY: self._next_monthly,
            Frequency.YEARLY: self._next_yearly,
            Frequency.CUSTOM: self._next_custom,
        }

    def expand(self, template: CalendarEvent) -> list[CalendarEvent]:
        """Expand a template into its ordered series instances.

        The template itself is always the first instance (sequence 0). Without
        a recurrence rule the result is that single instance.

        Args:
            template: Template event, optionally carrying a recurrence rule

        Returns:
            List of instances sharing one series_id
        """
        rule = template.recurrence
        stepper = self._steppers.get(rule.frequency) if rule is not None else None
        if rule is None or stepper is None:
            return [template.model_copy(update={"sequence_number": 0})]

        series_id = template.series_id or template.id
        duration = template.duration
        until: Optional[date] = rule.end.until if isinstance(rule.end, EndOnDate) else None

        limit = self.max_instances
        if isinstance(rule.end, EndAfter):
            limit = min(limit, rule.end.occurrences + 1)

        instances = [template.model_copy(update={"series_id": series_id, "sequence_number": 0})]
        current = template.start_date
        stop_reason = "cap" if limit == self.max_instances else "count"

        while len(instances) < limit:
            next_date = stepper(rule, current, template)
            if until is not None and next_date > until:
                stop_reason = "until"
                break
            instances.append(
                self._build_instance(template, series_id, next_date, duration, len(instances))
            )
            current = next_date

        logger.debug(
            "Expanded %s rule for event %s into %d instances (stopped on %s)",
            rule.frequency.value,
            template.id,
            len(instances),
            stop_reason,
        )
        return instances

    def _build_instance(
        self,
        template: CalendarEvent,
        series_id: str,
        start_date: date,
        duration: timedelta,
        sequence: int,
    ) -> CalendarEvent:
        """Copy the template onto a new start date, keeping its duration."""
        return template.model_copy(
            update={
                "id": f"{template.id}_{start_date:%Y%m%d}",
                "start_date": start_date,
                "end_date": start_date + duration,
                "series_id": series_id,
                "sequence_number": sequence,
            }
        )

    def _next_daily(self, rule: RecurrenceRule, current: date, template: CalendarEvent) -> date:
        return current + timedelta(days=rule.interval)

    def _next_weekly(self, rule: RecurrenceRule, current: date, template: CalendarEvent) -> date:
        """Next selected weekday inside the current interval block.

        Only ``8 * interval - 1`` days are scanned; when nothing qualifies the
        step falls back to a plain ``7 * interval`` days.
        """
        days = set(rule.weekly_days) or {weekday_index(template.start_date)}
        block = 7 * rule.interval
        for offset in range(1, 8 * rule.interval):
            candidate = current + timedelta(days=offset)
            if weekday_index(candidate) in days and offset % block < 7:
                return candidate
        return current + timedelta(days=block)

    def _next_monthly(self, rule: RecurrenceRule, current: date, template: CalendarEvent) -> date:
        mode = rule.monthly
        month = current.month + rule.interval
        if isinstance(mode, NthWeekday):
            return nth_weekday_of_month(current.year, month, mode.day_of_week, mode.week_number)
        return normalized_date(current.year, month, mode.day_of_month)

    def _next_yearly(self, rule: RecurrenceRule, current: date, template: CalendarEvent) -> date:
        mode = rule.yearly
        year = current.year + rule.interval
        if isinstance(mode, YearlyNthWeekday):
            return nth_weekday_of_month(year, mode.month, mode.day_of_week, mode.week_number)
        return normalized_date(year, mode.month, mode.day_of_month)

    def _next_custom(self, rule: RecurrenceRule, current: date, template: CalendarEvent) -> date:
        unit = rule.custom_unit
        if unit == CustomUnit.WEEKS:
            return current + timedelta(weeks=rule.interval)
        if unit == CustomUnit.MONTHS:
            return add_months(current, rule.interval)
        if unit == CustomUnit.YEARS:
            return add_years(current, rule.interval)
        return current + timedelta(days=rule.interval)


def expand(template: CalendarEvent, settings: Any = None) -> list[CalendarEvent]:
    """Expand a template with a one-off expander.

    Args:
        template: Template event
        settings: Optional configuration object

    Returns:
        Ordered list of series instances
    """
    return RecurrenceExpander(settings).expand(template)
