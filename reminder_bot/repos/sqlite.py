"""SQLite reminder repository."""

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone
from pathlib import Path

from reminder_bot.domain.errors import StoreUnavailable
from reminder_bot.domain.models import MarkResult, Reminder

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROSECOND = timedelta(microseconds=1)


def _to_us(value: datetime) -> int:
    return (value - _EPOCH) // _MICROSECOND


def _from_us(value: int) -> datetime:
    return _EPOCH + value * _MICROSECOND


class SqliteReminderRepository:
    """
    SQLite reminder store.

    Instants are stored as integer microseconds since the epoch (UTC), so
    due-ness comparisons are exact.  Each method opens its own connection;
    ``mark_delivered`` is a single conditional UPDATE, which makes it an
    atomic compare-and-set across processes sharing the file.

    Any ``sqlite3.Error`` surfaces as ``StoreUnavailable``.
    """

    def __init__(self, db_path: str | Path = "reminders.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("Reminder store ready db=%s", self._db_path)

    # ---- low-level helpers ----

    @contextlib.contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        except sqlite3.Error as exc:
            raise StoreUnavailable(f"cannot open {self._db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            with contextlib.suppress(sqlite3.Error):
                conn.execute("PRAGMA journal_mode=WAL")
            yield conn
            conn.commit()
        except sqlite3.Error as exc:
            raise StoreUnavailable(str(exc)) from exc
        finally:
            conn.close()

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS reminders (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    id TEXT NOT NULL UNIQUE,
                    recipient TEXT NOT NULL,
                    task_text TEXT NOT NULL,
                    target_us INTEGER NOT NULL,
                    delivered INTEGER NOT NULL DEFAULT 0,
                    created_us INTEGER NOT NULL,
                    delivered_us INTEGER
                )
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_reminders_due "
                "ON reminders(delivered, target_us)"
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_reminders_recipient ON reminders(recipient)"
            )

    @staticmethod
    def _row_to_reminder(row: sqlite3.Row) -> Reminder:
        return Reminder(
            id=row["id"],
            recipient=row["recipient"],
            task_text=row["task_text"],
            target_instant=_from_us(int(row["target_us"])),
            delivered=bool(row["delivered"]),
            created_at=_from_us(int(row["created_us"])),
            delivered_at=(
                _from_us(int(row["delivered_us"]))
                if row["delivered_us"] is not None
                else None
            ),
        )

    def _select(self, where: str = "", params: tuple = ()) -> list[Reminder]:
        sql = "SELECT * FROM reminders"
        if where:
            sql += f" WHERE {where}"
        sql += " ORDER BY created_us ASC, seq ASC"
        with self._connect() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_reminder(r) for r in rows]

    # ---- public API ----

    def create(self, recipient: str, task_text: str, target_instant: datetime) -> Reminder:
        reminder = Reminder(
            recipient=recipient.strip(),
            task_text=task_text.strip(),
            target_instant=target_instant,
        )
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO reminders(id, recipient, task_text, target_us, delivered, created_us)
                VALUES (?, ?, ?, ?, 0, ?)
                """,
                (
                    reminder.id,
                    reminder.recipient,
                    reminder.task_text,
                    _to_us(reminder.target_instant),
                    _to_us(reminder.created_at),
                ),
            )
        logger.debug(
            "Reminder added id=%s recipient=%s target=%s",
            reminder.id,
            reminder.recipient,
            reminder.target_instant.isoformat(),
        )
        return reminder

    def find_due_pending(self, now: datetime) -> list[Reminder]:
        return self._select("delivered = 0 AND target_us <= ?", (_to_us(now),))

    def mark_delivered(
        self, reminder_id: str, delivered_at: datetime | None = None
    ) -> MarkResult:
        delivered_at = delivered_at or datetime.now(timezone.utc)
        with self._connect() as conn:
            cur = conn.execute(
                "UPDATE reminders SET delivered = 1, delivered_us = ? "
                "WHERE id = ? AND delivered = 0",
                (_to_us(delivered_at), reminder_id),
            )
            if cur.rowcount == 1:
                return MarkResult.MARKED
            row = conn.execute(
                "SELECT delivered FROM reminders WHERE id = ?", (reminder_id,)
            ).fetchone()
        if row is None:
            return MarkResult.NOT_FOUND
        return MarkResult.ALREADY_DELIVERED

    def get(self, reminder_id: str) -> Reminder | None:
        found = self._select("id = ?", (reminder_id,))
        return found[0] if found else None

    def list_all(self) -> list[Reminder]:
        return self._select()

    def list_for_recipient(self, recipient: str) -> list[Reminder]:
        return self._select("recipient = ?", (recipient,))
