"""Contract every reminder store implements.

Both mutating operations must be safe under concurrent callers, and
``mark_delivered`` must be an atomic compare-and-set on the delivered flag.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from reminder_bot.domain.models import MarkResult, Reminder


class ReminderRepository(Protocol):
    def create(self, recipient: str, task_text: str, target_instant: datetime) -> Reminder: ...

    def find_due_pending(self, now: datetime) -> list[Reminder]:
        """Undelivered reminders with ``target_instant <= now``, oldest first."""
        ...

    def mark_delivered(
        self, reminder_id: str, delivered_at: datetime | None = None
    ) -> MarkResult: ...

    def get(self, reminder_id: str) -> Reminder | None: ...

    def list_all(self) -> list[Reminder]: ...

    def list_for_recipient(self, recipient: str) -> list[Reminder]: ...
