"""Service for turning a reminder message into its task description."""

from __future__ import annotations

import re

from reminder_bot.services.resolver import Span

PLACEHOLDER = "Your reminder"
FALLBACK_WORDS = 3

# Most specific first so "remind" never eats the front of "remind me to".
_LEAD_INS = [
    re.compile(rf"\b{phrase}\b\s*", re.IGNORECASE)
    for phrase in (
        r"set\s+a\s+reminder\s+to",
        r"set\s+a\s+reminder\s+for",
        r"set\s+reminder\s+to",
        r"set\s+reminder\s+for",
        r"remind\s+me\s+to",
        r"remind\s+me",
        r"reminder\s+to",
        r"remind",
    )
]

_TRAILING_CONNECTOR = re.compile(r"(?:^|\s+)(?:at|on|by|in|for)\s*$", re.IGNORECASE)
_TRAILING_PUNCTUATION = re.compile(r"[\s.,;:!?\-]+$")
_LEADING_PUNCTUATION = re.compile(r"^[\s,;:\-]+")


def _strip_connectors(text: str) -> str:
    while True:
        cleaned = _TRAILING_PUNCTUATION.sub("", text)
        cleaned = _TRAILING_CONNECTOR.sub("", cleaned).strip()
        if cleaned == text:
            return cleaned
        text = cleaned


def extract(text: str, span: Span) -> str:
    """Return the task description left once lead-ins and *span* are removed.

    Falls back to the first words of *text*, then to a placeholder, so the
    result is never empty.
    """
    task = text
    for lead_in in _LEAD_INS:
        task = lead_in.sub("", task, count=1)

    if span.text:
        task = task.replace(span.text, " ", 1)

    task = " ".join(task.split())
    task = _LEADING_PUNCTUATION.sub("", task)
    task = _strip_connectors(task)

    if len(task) >= 2:
        return task

    words = text.split()[:FALLBACK_WORDS]
    return " ".join(words) or PLACEHOLDER
