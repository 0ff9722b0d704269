import random
from collections.abc import Generator
from datetime import UTC, date, datetime, time
from types import SimpleNamespace
from typing import Any

import pytest

from supercal_lite.lite_models import (
    CalendarEvent,
    Category,
    DEFAULT_CATEGORY_PALETTE,
)


@pytest.fixture
def simple_settings() -> SimpleNamespace:
    """Lightweight settings object used across lite tests.

    Mirrors the attributes of config_loader.Config that the codecs and the
    expander read through getattr. Keep this fixture small and fast.
    """
    return SimpleNamespace(
        prodid_app="SuperCalendrier",
        prodid_locale="FR",
        uid_domain="supercalendrier.com",
        max_series_instances=100,
        category_palette=DEFAULT_CATEGORY_PALETTE,
        default_category_emoji="📅",
    )


@pytest.fixture
def seeded_rng() -> random.Random:
    """Deterministic random source for category colour picks."""
    return random.Random(1234)


@pytest.fixture
def fixed_now() -> datetime:
    """A fixed UTC clock value for DTSTAMP and export timestamps."""
    return datetime(2025, 3, 14, 9, 30, 0, tzinfo=UTC)


@pytest.fixture
def work_category() -> Category:
    return Category(id="cat-work", name="Work", color="#2196f3", emoji="💼")


@pytest.fixture
def timed_event(work_category: Category) -> CalendarEvent:
    """A timed single-day event referencing the work category."""
    return CalendarEvent(
        id="evt-timed",
        title="Team sync",
        start_date=date(2025, 1, 6),
        end_date=date(2025, 1, 6),
        start_time=time(10, 0),
        end_time=time(11, 30),
        location="Room 4",
        description="Weekly status",
        category_id=work_category.id,
    )


@pytest.fixture
def all_day_event() -> CalendarEvent:
    """A two-day all-day event without a category."""
    return CalendarEvent(
        id="evt-allday",
        title="Offsite",
        start_date=date(2025, 2, 3),
        end_date=date(2025, 2, 4),
        is_all_day=True,
    )


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Ensure SUPERCAL_* environment variables never leak into tests."""
    for name in ("SUPERCAL_CONFIG", "SUPERCAL_DEBUG", "SUPERCAL_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    yield
