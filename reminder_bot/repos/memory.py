"""In-memory reminder repository."""

from __future__ import annotations

import threading
from datetime import datetime, timezone

from reminder_bot.domain.models import MarkResult, Reminder


class MemoryReminderRepository:
    """Dict-backed store for Reminder instances, keyed by id.

    Insertion order doubles as creation order.  A single lock guards every
    read and write, which makes ``mark_delivered`` a compare-and-set.
    """

    def __init__(self) -> None:
        self._store: dict[str, Reminder] = {}
        self._lock = threading.Lock()

    def create(self, recipient: str, task_text: str, target_instant: datetime) -> Reminder:
        reminder = Reminder(
            recipient=recipient.strip(),
            task_text=task_text.strip(),
            target_instant=target_instant,
        )
        with self._lock:
            self._store[reminder.id] = reminder
        return reminder.model_copy()

    def find_due_pending(self, now: datetime) -> list[Reminder]:
        with self._lock:
            return [r.model_copy() for r in self._store.values() if r.is_due(now)]

    def mark_delivered(
        self, reminder_id: str, delivered_at: datetime | None = None
    ) -> MarkResult:
        with self._lock:
            reminder = self._store.get(reminder_id)
            if reminder is None:
                return MarkResult.NOT_FOUND
            if reminder.delivered:
                return MarkResult.ALREADY_DELIVERED
            reminder.delivered = True
            reminder.delivered_at = delivered_at or datetime.now(timezone.utc)
            return MarkResult.MARKED

    def get(self, reminder_id: str) -> Reminder | None:
        with self._lock:
            reminder = self._store.get(reminder_id)
            return reminder.model_copy() if reminder is not None else None

    def list_all(self) -> list[Reminder]:
        with self._lock:
            return [r.model_copy() for r in self._store.values()]

    def list_for_recipient(self, recipient: str) -> list[Reminder]:
        with self._lock:
            return [r.model_copy() for r in self._store.values() if r.recipient == recipient]
