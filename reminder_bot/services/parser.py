"""Service for parsing a free-text message into a reminder draft."""

from __future__ import annotations

import logging
from datetime import datetime

from reminder_bot.domain.models import ParsedDraft, ParseFailure
from reminder_bot.services.extractor import extract
from reminder_bot.services.resolver import NotFound, resolve

logger = logging.getLogger(__name__)


def parse_reminder(
    text: str, now: datetime, *, fallback: bool = True
) -> ParsedDraft | ParseFailure:
    """Parse *text* into a ParsedDraft, or ParseFailure when it has no time.

    The result depends only on the arguments: *now* is the reference instant
    for every relative expression.
    """
    match = resolve(text, now, fallback=fallback)
    if isinstance(match, NotFound):
        logger.info("No date/time found in message")
        return ParseFailure()

    draft = ParsedDraft(
        task_text=extract(text, match.span),
        target_instant=match.instant,
    )
    logger.debug(
        "Parsed reminder task=%r span=%r instant=%s",
        draft.task_text,
        match.span.text,
        draft.target_instant.isoformat(),
    )
    return draft
