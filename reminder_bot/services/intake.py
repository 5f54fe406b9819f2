"""Service for turning an inbound chat message into a stored reminder."""

from __future__ import annotations

import logging
from datetime import datetime, tzinfo

from reminder_bot.domain.models import IntakeResponse, IntakeStatus, ParseFailure
from reminder_bot.repos.base import ReminderRepository
from reminder_bot.services.parser import parse_reminder

logger = logging.getLogger(__name__)

EXAMPLES = (
    "• Submit assignment tomorrow at 9am\n"
    "• Doctor appointment on Friday at 2:30pm\n"
    "• Call John in 2 hours\n"
    "• Pay bills by Friday"
)

REPROMPT = "I couldn't find a time in your message. Examples of what you can say:\n\n" + EXAMPLES

WELCOME = (
    "Welcome to the Reminder Bot! 🔔\n\n"
    "You can create reminders by simply sending a message with a task and a time. "
    "For example:\n\n" + EXAMPLES
)

HELP = (
    "How to use the Reminder Bot:\n\n"
    "Just send a message with what you want to be reminded about and when. "
    "For example:\n\n" + EXAMPLES
)


def format_confirmation(task_text: str, target_instant: datetime, tz: tzinfo) -> str:
    when = target_instant.astimezone(tz).strftime("%a, %b %d, %I:%M %p")
    return f"✅ I'll remind you to {task_text} on {when}"


def handle_message(
    sender: str,
    text: str,
    now: datetime,
    store: ReminderRepository,
    *,
    tz: tzinfo,
    fallback: bool = True,
) -> IntakeResponse:
    """Parse *text* from *sender* and store the reminder it describes.

    Returns an ``unparsed`` response carrying the re-prompt when the message
    has no time in it.  ``StoreUnavailable`` propagates to the caller.
    """
    outcome = parse_reminder(text, now.astimezone(tz), fallback=fallback)
    if isinstance(outcome, ParseFailure):
        logger.info("Could not understand message from %s", sender)
        return IntakeResponse(status=IntakeStatus.UNPARSED, reply=REPROMPT)

    reminder = store.create(sender, outcome.task_text, outcome.target_instant)
    logger.info(
        "Reminder scheduled id=%s recipient=%s target=%s",
        reminder.id,
        reminder.recipient,
        reminder.target_instant.isoformat(),
    )
    return IntakeResponse(
        status=IntakeStatus.SCHEDULED,
        reply=format_confirmation(outcome.task_text, outcome.target_instant, tz),
        reminder=reminder,
    )
