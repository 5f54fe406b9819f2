"""Tests for the time expression resolver."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from reminder_bot.services import resolver
from reminder_bot.services.resolver import NOT_FOUND, Found, resolve, to_24_hour

# Fixed reference time: Monday 2024-01-01 15:00 UTC
NOW = datetime(2024, 1, 1, 15, 0, tzinfo=timezone.utc)


def _found(text: str, now: datetime = NOW) -> Found:
    result = resolve(text, now, fallback=False)
    assert isinstance(result, Found), f"no expression found in {text!r}"
    return result


# ---------------------------------------------------------------------------
# Negative outcome
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("text", ["", "   ", "buy milk", "call the bank about my card"])
def test_no_expression_is_not_found(text: str):
    """Text without any date or time yields NotFound, not an exception."""
    assert resolve(text, NOW, fallback=False) == NOT_FOUND


# ---------------------------------------------------------------------------
# Clock times and AM/PM normalisation
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "hour, meridiem, expected",
    [(12, "am", 0), (12, "pm", 12), (9, "pm", 21), (9, "am", 9), (1, "p.m.", 13)],
)
def test_to_24_hour(hour: int, meridiem: str, expected: int):
    assert to_24_hour(hour, meridiem) == expected


@pytest.mark.parametrize(
    "text, hour",
    [("at 12am", 0), ("at 12pm", 12), ("at 9pm", 21), ("9 a.m.", 9)],
)
def test_am_pm_boundaries(text: str, hour: int):
    """12am is midnight, 12pm is noon, other PM hours shift by twelve."""
    assert _found(text).instant.hour == hour


def test_minutes_default_to_zero():
    found = _found("ping me at 5pm")
    assert (found.instant.hour, found.instant.minute) == (17, 0)


def test_clock_with_minutes():
    found = _found("standup at 2:30pm")
    assert found.instant == datetime(2024, 1, 1, 14, 30, tzinfo=timezone.utc) + timedelta(days=1)


def test_24_hour_clock():
    found = _found("deploy at 16:45")
    assert found.instant == datetime(2024, 1, 1, 16, 45, tzinfo=timezone.utc)


def test_clock_only_resolves_on_reference_date():
    """A future clock time stays on the reference's calendar date."""
    found = _found("call mom at 6pm")
    assert found.instant == datetime(2024, 1, 1, 18, 0, tzinfo=timezone.utc)
    assert found.explicit_day is False


def test_past_clock_time_rolls_to_next_day():
    """'9am' said at 3pm means 9am tomorrow."""
    found = _found("remind me at 9am")
    assert found.instant == datetime(2024, 1, 2, 9, 0, tzinfo=timezone.utc)
    assert found.span.text == "at 9am"


def test_explicit_past_day_is_not_advanced():
    """An expression with an explicit day is returned literally."""
    found = _found("today at 9am")
    assert found.instant == datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
    assert found.explicit_day is True


def test_explicit_past_date_is_not_advanced():
    found = _found("party on December 25, 2023 at 10am")
    assert found.instant == datetime(2023, 12, 25, 10, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Relative offsets
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "text, delta",
    [
        ("in 2 hours", timedelta(hours=2)),
        ("in 45 mins", timedelta(minutes=45)),
        ("in an hour", timedelta(hours=1)),
        ("in a couple of hours", timedelta(hours=2)),
        ("in half an hour", timedelta(minutes=30)),
        ("in ten minutes", timedelta(minutes=10)),
        ("in 3 days", timedelta(days=3)),
        ("in 2 weeks", timedelta(weeks=2)),
        ("20 minutes from now", timedelta(minutes=20)),
    ],
)
def test_relative_offsets_are_exact(text: str, delta: timedelta):
    assert _found(text).instant == NOW + delta


def test_relative_month_offset():
    assert _found("renew passport in 1 month").instant == datetime(
        2024, 2, 1, 15, 0, tzinfo=timezone.utc
    )


def test_relative_days_with_clock_time():
    found = _found("in 2 days at 9am")
    assert found.instant == datetime(2024, 1, 3, 9, 0, tzinfo=timezone.utc)
    assert found.span.text == "in 2 days at 9am"


# ---------------------------------------------------------------------------
# Days, weekdays and dates
# ---------------------------------------------------------------------------


def test_tomorrow_at_time():
    found = _found("Submit assignment tomorrow at 9am")
    assert found.instant == datetime(2024, 1, 2, 9, 0, tzinfo=timezone.utc)
    assert found.span.text == "tomorrow at 9am"


def test_time_before_day_merges():
    found = _found("at 5pm tomorrow")
    assert found.instant == datetime(2024, 1, 2, 17, 0, tzinfo=timezone.utc)


def test_date_without_time_defaults_to_noon():
    assert _found("Pay bills by Friday").instant == datetime(
        2024, 1, 5, 12, 0, tzinfo=timezone.utc
    )


def test_weekday_with_time():
    found = _found("Doctor appointment on Friday at 2:30pm")
    assert found.instant == datetime(2024, 1, 5, 14, 30, tzinfo=timezone.utc)
    assert found.span.text == "on Friday at 2:30pm"


def test_bare_weekday_already_past_today_moves_a_week():
    """'Monday at 9am' said on Monday afternoon means next Monday."""
    found = _found("monday at 9am")
    assert found.instant == datetime(2024, 1, 8, 9, 0, tzinfo=timezone.utc)


def test_this_weekday_is_literal():
    found = _found("this monday at 9am")
    assert found.instant == datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)


def test_next_weekday_skips_today():
    assert _found("next monday").instant == datetime(2024, 1, 8, 12, 0, tzinfo=timezone.utc)


def test_tonight_with_bare_hour_is_evening():
    assert _found("tonight at 9").instant == datetime(2024, 1, 1, 21, 0, tzinfo=timezone.utc)


def test_tomorrow_morning():
    assert _found("tomorrow morning").instant == datetime(2024, 1, 2, 6, 0, tzinfo=timezone.utc)


def test_good_morning_is_not_a_time():
    found = _found("Good morning, stretch at 8pm")
    assert found.instant == datetime(2024, 1, 1, 20, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "text, expected",
    [
        ("March 5 at 3pm", datetime(2024, 3, 5, 15, 0, tzinfo=timezone.utc)),
        ("the 5th of March", datetime(2024, 3, 5, 12, 0, tzinfo=timezone.utc)),
        ("on 2024-02-10", datetime(2024, 2, 10, 12, 0, tzinfo=timezone.utc)),
        ("on 5/3", datetime(2024, 5, 3, 12, 0, tzinfo=timezone.utc)),
        ("on 5/3/25 at 8am", datetime(2025, 5, 3, 8, 0, tzinfo=timezone.utc)),
    ],
)
def test_calendar_dates(text: str, expected: datetime):
    assert _found(text).instant == expected


def test_invalid_calendar_date_is_ignored():
    assert resolve("on 2/30", NOW, fallback=False) == NOT_FOUND


# ---------------------------------------------------------------------------
# Selection and time zones
# ---------------------------------------------------------------------------


def test_earliest_expression_wins():
    found = _found("call mom at 5pm and dad at 6pm")
    assert found.span.text == "at 5pm"


def test_instant_keeps_reference_zone():
    tz = timezone(timedelta(hours=-5))
    now = datetime(2024, 1, 1, 15, 0, tzinfo=tz)
    found = _found("at 9am", now)
    assert found.instant == datetime(2024, 1, 2, 9, 0, tzinfo=tz)
    assert found.instant.utcoffset() == timedelta(hours=-5)


def test_naive_reference_is_utc():
    found = _found("in 2 hours", datetime(2024, 1, 1, 15, 0))
    assert found.instant == NOW + timedelta(hours=2)


# ---------------------------------------------------------------------------
# Compound offsets and number words
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "text, delta",
    [
        ("in 1 hour and 30 minutes", timedelta(hours=1, minutes=30)),
        ("in 1 hour 30 minutes", timedelta(hours=1, minutes=30)),
        ("in 2 hours, 15 minutes", timedelta(hours=2, minutes=15)),
        ("in twenty five minutes", timedelta(minutes=25)),
        ("in forty-five mins", timedelta(minutes=45)),
        ("in an hour and a few minutes", timedelta(hours=1, minutes=3)),
        ("1 hour and 10 minutes from now", timedelta(hours=1, minutes=10)),
    ],
)
def test_compound_offsets_are_summed(text: str, delta: timedelta):
    found = _found(text)
    assert found.instant == NOW + delta
    assert found.span.text.endswith(text.split()[-1])


def test_compound_offset_with_days():
    found = _found("in 1 day and 2 hours")
    assert found.instant == NOW + timedelta(days=1, hours=2)


def test_offset_chain_stops_at_unrelated_words():
    found = _found("in 2 hours 3 people will call")
    assert found.instant == NOW + timedelta(hours=2)
    assert found.span.text == "in 2 hours"


@pytest.mark.parametrize(
    "text, hour",
    [("at nine am", 9), ("at eleven pm", 23), ("twelve pm", 12), ("seven p.m.", 19)],
)
def test_clock_hour_in_words(text: str, hour: int):
    assert _found(text).instant.hour == hour


def test_clock_in_words_rolls_over():
    found = _found("call mom at nine am")
    assert found.instant == datetime(2024, 1, 2, 9, 0, tzinfo=timezone.utc)
    assert found.span.text == "at nine am"


# ---------------------------------------------------------------------------
# dateparser fallback
# ---------------------------------------------------------------------------


class _StubDateData:
    """Stands in for DateDataParser: always answers with one reading."""

    def __init__(self, value: datetime, period: str):
        self.value = value
        self.period = period
        self.phrases: list[str] = []

    def __call__(self, **kwargs):
        return self

    def get_date_data(self, phrase: str):
        self.phrases.append(phrase)
        return SimpleNamespace(date_obj=self.value, period=self.period)


def _stub_fallback(monkeypatch, phrase: str, value: datetime, period: str) -> _StubDateData:
    stub = _StubDateData(value, period)
    monkeypatch.setattr(resolver, "search_dates", lambda text, **kwargs: [(phrase, value)])
    monkeypatch.setattr(resolver, "DateDataParser", stub)
    return stub


@pytest.mark.parametrize(
    "text",
    ["buy milk", "I may call Sam", "fix the sat dish", "march with the band", "call the bank"],
)
def test_fallback_leaves_time_free_messages_unparsed(text: str):
    """Words that merely look like dates never become reminders."""
    assert resolve(text, NOW) == NOT_FOUND


def test_fallback_rejects_bare_number():
    result = resolve("call mom 0900", NOW)
    if isinstance(result, Found):
        assert result.instant.year in (2024, 2025)
    else:
        assert result == NOT_FOUND


def test_built_in_patterns_win_over_fallback():
    found = resolve("meeting in twenty five minutes", NOW)
    assert isinstance(found, Found)
    assert found.instant == NOW + timedelta(minutes=25)


def test_fallback_clock_only_hit_rolls_over(monkeypatch):
    stub = _stub_fallback(monkeypatch, "9h30", datetime(2024, 1, 1, 9, 30), "time")
    found = resolve("water plants 9h30", NOW)

    assert stub.phrases == ["9h30"]
    assert isinstance(found, Found)
    assert found.instant == datetime(2024, 1, 2, 9, 30, tzinfo=timezone.utc)
    assert found.explicit_day is False
    assert found.span.text == "9h30"


def test_fallback_day_without_clock_uses_default_time(monkeypatch):
    _stub_fallback(monkeypatch, "3.2.2024", datetime(2024, 2, 3, 0, 0), "day")
    found = resolve("renew visa 3.2.2024", NOW)

    assert isinstance(found, Found)
    assert found.instant == datetime(2024, 2, 3, 12, 0, tzinfo=timezone.utc)
    assert found.explicit_day is True


def test_fallback_rejects_implausible_year(monkeypatch):
    _stub_fallback(monkeypatch, "mom 0900", datetime(900, 1, 1, 0, 0), "day")
    assert resolve("call mom 0900", NOW) == NOT_FOUND


def test_fallback_rejects_phrase_without_digit(monkeypatch):
    stub = _stub_fallback(monkeypatch, "sat", datetime(2024, 1, 6, 0, 0), "day")
    assert resolve("fix the sat dish", NOW) == NOT_FOUND
    assert stub.phrases == []


def test_fallback_disabled_skips_dateparser(monkeypatch):
    stub = _stub_fallback(monkeypatch, "9h30", datetime(2024, 1, 1, 9, 30), "time")
    assert resolve("water plants 9h30", NOW, fallback=False) == NOT_FOUND
    assert stub.phrases == []
