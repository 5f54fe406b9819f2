"""Exception taxonomy for the reminder service.

A missing time expression is not an error and has no exception here; the
parser returns a ``ParseFailure`` value for it.
"""

from __future__ import annotations


class ReminderError(Exception):
    """Base class for reminder service failures."""


class StoreUnavailable(ReminderError):
    """The persistence layer could not complete an operation."""


class DeliveryFailure(ReminderError):
    """A delivery adapter could not send a message."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class UnknownChannel(DeliveryFailure):
    """No adapter is registered for the recipient's channel tag."""

    def __init__(self, channel: str) -> None:
        super().__init__(f"no adapter registered for channel {channel!r}")
        self.channel = channel
