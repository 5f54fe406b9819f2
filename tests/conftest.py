"""Shared fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from reminder_bot.repos.memory import MemoryReminderRepository
from reminder_bot.repos.sqlite import SqliteReminderRepository


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path: Path):
    """Each store test runs against both repository implementations."""
    if request.param == "memory":
        return MemoryReminderRepository()
    return SqliteReminderRepository(tmp_path / "reminders.sqlite3")
