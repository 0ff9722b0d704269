"""
Unit tests for supercal_lite.lite_ics_parser.

Covers:
- unescape_ics_text() / split_ics_list()
- parse_rrule_string() and build_recurrence_rule()
- LiteICSParser.parse(): partial recovery, categories, dates, RRULE, input errors
- encode -> decode round trip
"""

import random
from datetime import date, time
from types import SimpleNamespace

import pytest

from supercal_lite.lite_exceptions import CalendarDecodeError, RecurrenceRuleError
from supercal_lite.lite_ics_encoder import encode, escape_ics_text
from supercal_lite.lite_ics_parser import (
    LiteICSParser,
    build_recurrence_rule,
    decode,
    parse_rrule_string,
    split_ics_list,
    unescape_ics_text,
)
from supercal_lite.lite_models import (
    DEFAULT_CATEGORY_PALETTE,
    CalendarEvent,
    Category,
    DayOfMonth,
    EndAfter,
    EndNever,
    EndOnDate,
    FixedDate,
    Frequency,
    RecurrenceRule,
)

pytestmark = pytest.mark.unit


def _calendar(*vevents: str, newline: str = "\r\n") -> str:
    """Wrap VEVENT bodies in a minimal VCALENDAR."""
    lines = ["BEGIN:VCALENDAR", "VERSION:2.0"]
    for body in vevents:
        lines.append("BEGIN:VEVENT")
        lines.extend(body.strip().splitlines())
        lines.append("END:VEVENT")
    lines.append("END:VCALENDAR")
    return newline.join(lines)


class TestUnescape:
    @pytest.mark.parametrize(
        "text",
        [
            "plain",
            "semi;colon,comma",
            "new\nline",
            "trailing\\",
            "\\n is not a newline",
            "\\\\;",
            "mixed \\, and \\; and \\\\n",
            "",
        ],
    )
    def test_unescape_reverses_escape(self, text: str) -> None:
        assert unescape_ics_text(escape_ics_text(text)) == text

    def test_capital_n_is_newline(self) -> None:
        assert unescape_ics_text("a\\Nb") == "a\nb"

    def test_unknown_escape_is_kept(self) -> None:
        assert unescape_ics_text("a\\tb") == "a\\tb"

    def test_split_list_respects_escaped_commas(self) -> None:
        assert split_ics_list("Work,Rock\\, Paper, Home ,,") == ["Work", "Rock, Paper", "Home"]

    def test_split_list_escaped_backslash_before_comma(self) -> None:
        assert split_ics_list("a\\\\,b") == ["a\\", "b"]


class TestParseRruleString:
    def test_full_weekly_rule(self) -> None:
        parsed = parse_rrule_string("FREQ=WEEKLY;INTERVAL=2;BYDAY=MO,XX,FR;COUNT=3")
        assert parsed["freq"] == "WEEKLY"
        assert parsed["interval"] == 2
        assert parsed["byday"] == [1, 5]
        assert parsed["count"] == 3
        assert parsed["until"] is None

    @pytest.mark.parametrize("value,expected", [("abc", 1), ("0", 1), ("-3", 1), ("4", 4)])
    def test_interval_fallback(self, value: str, expected: int) -> None:
        assert parse_rrule_string(f"FREQ=DAILY;INTERVAL={value}")["interval"] == expected

    def test_non_numeric_count_falls_back_to_ten(self) -> None:
        assert parse_rrule_string("FREQ=DAILY;COUNT=many")["count"] == 10

    def test_until_parsed_to_date(self) -> None:
        parsed = parse_rrule_string("FREQ=DAILY;UNTIL=20250301T235959Z")
        assert parsed["until"] == date(2025, 3, 1)
        assert parsed["count"] is None

    def test_last_end_part_wins(self) -> None:
        parsed = parse_rrule_string("FREQ=DAILY;COUNT=4;UNTIL=20250301")
        assert parsed["count"] is None
        assert parsed["until"] == date(2025, 3, 1)

    def test_lower_case_keys_accepted(self) -> None:
        assert parse_rrule_string("freq=monthly")["freq"] == "MONTHLY"

    @pytest.mark.parametrize("bad", ["", "   ", "INTERVAL=2", "FREQ=;COUNT=2"])
    def test_missing_freq_raises(self, bad: str) -> None:
        with pytest.raises(RecurrenceRuleError):
            parse_rrule_string(bad)


class TestBuildRecurrenceRule:
    def test_monthly_anchored_on_start_day(self) -> None:
        rule = build_recurrence_rule(parse_rrule_string("FREQ=MONTHLY"), date(2025, 1, 17))
        assert rule.frequency == Frequency.MONTHLY
        assert rule.monthly == DayOfMonth(day_of_month=17)
        assert rule.end == EndNever()

    def test_yearly_anchored_on_start_date(self) -> None:
        rule = build_recurrence_rule(parse_rrule_string("FREQ=YEARLY;COUNT=2"), date(2025, 7, 14))
        assert rule.yearly == FixedDate(month=7, day_of_month=14)
        assert rule.end == EndAfter(occurrences=2)

    def test_unknown_freq_reads_as_daily(self) -> None:
        rule = build_recurrence_rule(parse_rrule_string("FREQ=HOURLY;INTERVAL=3"), date(2025, 1, 1))
        assert rule.frequency == Frequency.DAILY
        assert rule.interval == 3

    def test_byday_ignored_outside_weekly(self) -> None:
        rule = build_recurrence_rule(parse_rrule_string("FREQ=DAILY;BYDAY=MO"), date(2025, 1, 1))
        assert rule.weekly_days == ()


class TestLiteICSParser:
    def test_partial_recovery_drops_block_without_summary(self) -> None:
        text = _calendar(
            "DTSTART:20250101T100000Z\nLOCATION:Nowhere",
            "SUMMARY:Keeper\nDTSTART:20250102T100000Z",
        )

        result = decode(text)

        assert [e.title for e in result.events] == ["Keeper"]
        assert result.skipped_count == 1

    def test_block_without_start_is_dropped(self) -> None:
        result = decode(_calendar("SUMMARY:No start"))
        assert result.events == []
        assert result.skipped_count == 1

    def test_empty_summary_value_is_ignored(self) -> None:
        result = decode(_calendar("SUMMARY:\nDTSTART:20250102T100000Z"))
        assert result.skipped_count == 1

    def test_missing_dtend_defaults_to_start(self) -> None:
        event = decode(_calendar("SUMMARY:Point\nDTSTART:20250102T100000Z")).events[0]
        assert event.end_date == date(2025, 1, 2)
        assert event.start_time == time(10, 0)
        assert event.end_time == time(10, 0)

    def test_timed_event_fields(self) -> None:
        event = decode(
            _calendar(
                "SUMMARY:Review\\, final\n"
                "DESCRIPTION:Bring notes\\nand coffee\n"
                "LOCATION:HQ\\; floor 2\n"
                "DTSTART:20250106T100000Z\n"
                "DTEND:20250106T113000Z\n"
                "X-UNKNOWN:whatever"
            )
        ).events[0]
        assert event.title == "Review, final"
        assert event.description == "Bring notes\nand coffee"
        assert event.location == "HQ; floor 2"
        assert event.start_date == date(2025, 1, 6)
        assert event.start_time == time(10, 0)
        assert event.end_time == time(11, 30)
        assert not event.is_all_day
        assert event.created_at is not None

    def test_all_day_event_drops_times(self) -> None:
        event = decode(
            _calendar("SUMMARY:Holiday\nDTSTART;VALUE=DATE:20250203\nDTEND:20250204T120000Z")
        ).events[0]
        assert event.is_all_day
        assert event.start_date == date(2025, 2, 3)
        assert event.end_date == date(2025, 2, 4)
        assert event.start_time is None
        assert event.end_time is None

    def test_value_date_time_param_is_not_all_day(self) -> None:
        event = decode(
            _calendar("SUMMARY:Call\nDTSTART;VALUE=DATE-TIME:20250203T080000")
        ).events[0]
        assert not event.is_all_day
        assert event.start_time == time(8, 0)

    def test_unparseable_date_is_skipped_with_warning(self) -> None:
        result = decode(_calendar("SUMMARY:Broken\nDTSTART:tomorrow"))
        assert result.events == []
        assert result.skipped_count == 1
        assert any("DTSTART" in warning for warning in result.warnings)

    def test_end_before_start_block_is_dropped(self) -> None:
        result = decode(
            _calendar(
                "SUMMARY:Backwards\nDTSTART:20250110T100000Z\nDTEND:20250101T100000Z",
                "SUMMARY:Fine\nDTSTART:20250110T100000Z",
            )
        )
        assert [e.title for e in result.events] == ["Fine"]
        assert result.skipped_count == 1

    def test_unterminated_block_is_counted(self) -> None:
        text = "BEGIN:VCALENDAR\r\nBEGIN:VEVENT\r\nSUMMARY:Lost\r\nDTSTART:20250101T100000Z"
        result = decode(text)
        assert result.events == []
        assert result.skipped_count == 1

    def test_nested_begin_discards_open_block(self) -> None:
        text = (
            "BEGIN:VEVENT\nSUMMARY:First\nDTSTART:20250101T100000Z\n"
            "BEGIN:VEVENT\nSUMMARY:Second\nDTSTART:20250102T100000Z\nEND:VEVENT"
        )
        result = decode(text)
        assert [e.title for e in result.events] == ["Second"]
        assert result.skipped_count == 1

    def test_properties_outside_events_are_ignored(self) -> None:
        result = decode("SUMMARY:Stray\nDTSTART:20250101T100000Z\n" + _calendar())
        assert result.events == []
        assert result.skipped_count == 0

    @pytest.mark.parametrize("newline", ["\n", "\r", "\r\n"])
    def test_line_endings(self, newline: str) -> None:
        text = _calendar("SUMMARY:Any\nDTSTART:20250101T100000Z", newline=newline)
        assert decode(text).event_count == 1

    def test_categories_deduplicated_by_name(self, seeded_rng: random.Random) -> None:
        text = _calendar(
            "SUMMARY:One\nDTSTART:20250101T100000Z\nCATEGORIES:Work",
            "SUMMARY:Two\nDTSTART:20250102T100000Z\nCATEGORIES:Home,Work",
        )

        result = LiteICSParser(rng=seeded_rng).parse(text)

        assert sorted(c.name for c in result.categories) == ["Home", "Work"]
        work = next(c for c in result.categories if c.name == "Work")
        assert [e.category_id for e in result.events] == [work.id, work.id]
        assert all(c.color in DEFAULT_CATEGORY_PALETTE for c in result.categories)
        assert all(c.emoji == "📅" for c in result.categories)

    def test_escaped_comma_in_category_name(self) -> None:
        result = decode(
            _calendar("SUMMARY:One\nDTSTART:20250101T100000Z\nCATEGORIES:Rock\\, Paper")
        )
        assert [c.name for c in result.categories] == ["Rock, Paper"]

    def test_palette_and_emoji_from_settings(self) -> None:
        settings = SimpleNamespace(category_palette=("#000000",), default_category_emoji="⭐")
        result = LiteICSParser(settings).parse(
            _calendar("SUMMARY:One\nDTSTART:20250101T100000Z\nCATEGORIES:Misc")
        )
        assert result.categories[0].color == "#000000"
        assert result.categories[0].emoji == "⭐"

    def test_seeded_rng_is_reproducible(self) -> None:
        text = _calendar(
            "SUMMARY:One\nDTSTART:20250101T100000Z\nCATEGORIES:A,B,C,D",
        )
        first = LiteICSParser(rng=random.Random(7)).parse(text)
        second = LiteICSParser(rng=random.Random(7)).parse(text)
        assert [c.color for c in first.categories] == [c.color for c in second.categories]

    def test_rrule_weekly(self) -> None:
        event = decode(
            _calendar(
                "SUMMARY:Gym\nDTSTART:20250106T070000Z\nRRULE:FREQ=WEEKLY;BYDAY=MO,WE,FR;COUNT=6"
            )
        ).events[0]
        assert event.recurrence is not None
        assert event.recurrence.frequency == Frequency.WEEKLY
        assert event.recurrence.weekly_days == (1, 3, 5)
        assert event.recurrence.end == EndAfter(occurrences=6)

    def test_rrule_until(self) -> None:
        event = decode(
            _calendar("SUMMARY:Course\nDTSTART:20250106T070000Z\nRRULE:FREQ=DAILY;UNTIL=20250131T235959Z")
        ).events[0]
        assert event.recurrence.end == EndOnDate(until=date(2025, 1, 31))

    def test_rrule_monthly_rebuilt_from_start(self) -> None:
        event = decode(
            _calendar("SUMMARY:Rent\nDTSTART;VALUE=DATE:20250105\nRRULE:FREQ=MONTHLY")
        ).events[0]
        assert event.recurrence.monthly == DayOfMonth(day_of_month=5)

    def test_rrule_unknown_freq_warns(self) -> None:
        result = decode(_calendar("SUMMARY:Ping\nDTSTART:20250106T070000Z\nRRULE:FREQ=HOURLY"))
        assert result.events[0].recurrence.frequency == Frequency.DAILY
        assert any("HOURLY" in warning for warning in result.warnings)

    def test_rrule_without_freq_leaves_event_single(self) -> None:
        result = decode(_calendar("SUMMARY:Ping\nDTSTART:20250106T070000Z\nRRULE:COUNT=3"))
        assert result.events[0].recurrence is None
        assert result.warnings

    def test_bytes_input_with_bom(self) -> None:
        text = _calendar("SUMMARY:Café\nDTSTART:20250101T100000Z")
        result = decode(b"\xef\xbb\xbf" + text.encode("utf-8"))
        assert result.events[0].title == "Café"

    def test_invalid_utf8_raises(self) -> None:
        with pytest.raises(CalendarDecodeError):
            decode(b"BEGIN:VEVENT\nSUMMARY:\xff\xfe\n")

    @pytest.mark.parametrize("content", [None, 42, ["BEGIN:VEVENT"]])
    def test_non_text_input_raises(self, content: object) -> None:
        with pytest.raises(CalendarDecodeError):
            decode(content)

    def test_empty_text_decodes_to_nothing(self) -> None:
        result = decode("")
        assert result.event_count == 0
        assert result.categories == []


class TestRoundTrip:
    def test_encode_then_decode_preserves_events(
        self,
        timed_event: CalendarEvent,
        all_day_event: CalendarEvent,
        work_category: Category,
    ) -> None:
        originals = [timed_event, all_day_event]

        result = decode(encode(originals, [work_category]))

        assert result.skipped_count == 0
        assert len(result.events) == len(originals)
        categories_by_id = {c.id: c for c in result.categories}
        for original, decoded in zip(originals, result.events):
            assert decoded.title == original.title
            assert decoded.start_date == original.start_date
            assert decoded.end_date == original.end_date
            assert decoded.start_time == original.start_time
            assert decoded.end_time == original.end_time
            assert decoded.is_all_day == original.is_all_day
            assert decoded.location == original.location
            assert decoded.description == original.description
        assert categories_by_id[result.events[0].category_id].name == work_category.name
        assert result.events[1].category_id is None

    def test_round_trip_special_characters(self, work_category: Category) -> None:
        event = CalendarEvent(
            title="a;b,c\\d",
            description="multi\nline \\n text",
            location="x, y; z",
            start_date=date(2025, 4, 1),
            end_date=date(2025, 4, 1),
            category_id=work_category.id,
        )
        tricky = work_category.model_copy(update={"name": "R&D, Lab; 2"})

        result = decode(encode([event], [tricky]))
        decoded = result.events[0]

        assert decoded.title == event.title
        assert decoded.description == event.description
        assert decoded.location == event.location
        assert [c.name for c in result.categories] == [tricky.name]
        assert result.categories[0].id == decoded.category_id

    def test_round_trip_keeps_surrounding_whitespace(self) -> None:
        event = CalendarEvent(
            title="Standup ",
            description="notes  ",
            location=" Room 2",
            start_date=date(2025, 4, 1),
            end_date=date(2025, 4, 1),
        )

        decoded = decode(encode([event], [])).events[0]

        assert (decoded.title, decoded.description, decoded.location) == (
            "Standup ",
            "notes  ",
            " Room 2",
        )

    @pytest.mark.parametrize("raw", ["line1\r\nline2", "line1\rline2"])
    def test_round_trip_windows_line_breaks(self, raw: str) -> None:
        event = CalendarEvent(
            title="Notes",
            description=raw,
            start_date=date(2025, 4, 1),
            end_date=date(2025, 4, 1),
        )

        result = decode(encode([event], []))

        assert result.skipped_count == 0
        assert result.events[0].description == "line1\nline2"

    def test_round_trip_keeps_recurrence(self) -> None:
        rule = RecurrenceRule(
            frequency=Frequency.WEEKLY, interval=2, weekly_days=(2, 4), end=EndAfter(occurrences=8)
        )
        event = CalendarEvent(
            title="Class",
            start_date=date(2025, 1, 7),
            end_date=date(2025, 1, 7),
            recurrence=rule,
        )

        assert decode(encode([event], [])).events[0].recurrence == rule
