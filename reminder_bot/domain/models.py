"""Domain models for the reminder service."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MarkResult(StrEnum):
    MARKED = "marked"
    ALREADY_DELIVERED = "already_delivered"
    NOT_FOUND = "not_found"


class IntakeStatus(StrEnum):
    SCHEDULED = "scheduled"
    UNPARSED = "unparsed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _require_aware(value: datetime) -> datetime:
    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError("datetime must be timezone-aware")
    return value.astimezone(timezone.utc)


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class Reminder(BaseModel):
    id: str = Field(default_factory=_new_id)
    recipient: str = Field(min_length=1)
    task_text: str = Field(min_length=1)
    target_instant: datetime
    delivered: bool = False
    created_at: datetime = Field(default_factory=_utcnow)
    delivered_at: datetime | None = None

    @field_validator("target_instant", "created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return _require_aware(value)

    def is_due(self, now: datetime) -> bool:
        """Due means pending with a target at or before *now*."""
        return not self.delivered and self.target_instant <= now

    @property
    def channel(self) -> str:
        return channel_of(self.recipient)


class ParsedDraft(BaseModel):
    """Parser output before storage."""

    model_config = ConfigDict(frozen=True)

    task_text: str = Field(min_length=1)
    target_instant: datetime

    @field_validator("target_instant")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("target_instant must be timezone-aware")
        return value


class ParseFailure(BaseModel):
    """No time expression was found in the message."""

    model_config = ConfigDict(frozen=True)


DEFAULT_CHANNEL = "whatsapp"


def channel_of(address: str) -> str:
    """Return the channel tag of a recipient address.

    ``telegram:42`` belongs to ``telegram``; addresses without a tag are
    WhatsApp numbers as delivered by the Twilio webhook.
    """
    tag, sep, _ = address.partition(":")
    if not sep or not tag:
        return DEFAULT_CHANNEL
    return tag.strip().lower()


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class IncomingMessage(BaseModel):
    sender: str = Field(min_length=1)
    text: str


class IntakeResponse(BaseModel):
    status: IntakeStatus
    reply: str
    reminder: Reminder | None = None


class CycleReport(BaseModel):
    now: datetime
    due: list[str] = Field(default_factory=list)
    delivered: list[str] = Field(default_factory=list)
    failed: list[str] = Field(default_factory=list)
    skipped: bool = False
