"""Tests for task text extraction."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from reminder_bot.services.extractor import PLACEHOLDER, extract
from reminder_bot.services.resolver import Found, Span, resolve

NOW = datetime(2024, 1, 1, 15, 0, tzinfo=timezone.utc)


def _span(text: str, fragment: str) -> Span:
    start = text.index(fragment)
    return Span(start, start + len(fragment), fragment)


def test_removes_time_expression():
    text = "Call mom at 6pm"
    assert extract(text, _span(text, "at 6pm")) == "Call mom"


def test_removes_lead_in_phrase():
    """'Set a reminder to' is stripped along with the time expression."""
    text = "Set a reminder to water the plants tomorrow at 6pm"
    assert extract(text, _span(text, "tomorrow at 6pm")) == "water the plants"


def test_remind_me_to_is_stripped():
    text = "remind me to submit the report on Friday"
    assert extract(text, _span(text, "on Friday")) == "submit the report"


def test_trailing_connector_is_dropped():
    text = "Pay bills by Friday"
    assert extract(text, _span(text, "Friday")) == "Pay bills"


def test_trailing_punctuation_is_dropped():
    text = "Call mom at 6pm."
    assert extract(text, _span(text, "at 6pm")) == "Call mom"


def test_leading_punctuation_is_dropped():
    text = "at 6pm, call the dentist"
    assert extract(text, _span(text, "at 6pm")) == "call the dentist"


def test_degenerate_text_falls_back_to_first_words():
    """Nothing left after removal: use the first words of the message."""
    text = "remind me at 9am"
    assert extract(text, _span(text, "at 9am")) == "remind me at"


def test_empty_text_uses_placeholder():
    assert extract("", Span(0, 0, "")) == PLACEHOLDER


@pytest.mark.parametrize(
    "text",
    [
        "remind me tomorrow",
        "tomorrow at 9am",
        "in 2 hours",
        "remind me to at 5pm",
        "Buy groceries next monday at 10am",
    ],
)
def test_result_is_never_empty(text: str):
    found = resolve(text, NOW, fallback=False)
    assert isinstance(found, Found)
    assert extract(text, found.span).strip()
