"""Polling dispatcher that delivers due reminders.

Each cycle asks the store for due, undelivered reminders, sends each through
the adapter registered for its channel, and marks it delivered once the send
succeeded.  A failed send leaves the reminder pending so the next cycle
retries it: duplicates are possible, lost reminders are not.

Ticks run at a fixed rate.  A tick that fires while the previous cycle is
still running is skipped, so two cycles never scan concurrently within one
process.  ``stop()`` lets an in-flight cycle finish before returning.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable

from reminder_bot.domain.errors import DeliveryFailure, StoreUnavailable
from reminder_bot.domain.models import CycleReport, MarkResult, Reminder
from reminder_bot.repos.base import ReminderRepository
from reminder_bot.services.delivery import AdapterRegistry

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60.0
REMINDER_TEMPLATE = "⏰ REMINDER: {task}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_reminder(task_text: str) -> str:
    return REMINDER_TEMPLATE.format(task=task_text)


class Dispatcher:
    def __init__(
        self,
        store: ReminderRepository,
        registry: AdapterRegistry,
        *,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._store = store
        self._registry = registry
        self._interval = float(interval_seconds)
        self._clock = clock
        self._cycle_lock = asyncio.Lock()
        self._stopping = asyncio.Event()
        self._current: asyncio.Task | None = None
        self._runner: asyncio.Task | None = None

    @property
    def busy(self) -> bool:
        return self._cycle_lock.locked()

    @property
    def running(self) -> bool:
        return self._runner is not None and not self._runner.done()

    # ------------------------------------------------------------------
    # One cycle
    # ------------------------------------------------------------------

    async def run_cycle(self, now: datetime | None = None) -> CycleReport:
        """Scan for due reminders at *now* and deliver each of them.

        Returns a report with ``skipped=True`` without touching the store
        when another cycle is still in progress.
        """
        now = now or self._clock()
        if self._cycle_lock.locked():
            logger.warning("Previous cycle still running; skipping tick at %s", now.isoformat())
            return CycleReport(now=now, skipped=True)

        async with self._cycle_lock:
            return await self._cycle(now)

    async def _cycle(self, now: datetime) -> CycleReport:
        report = CycleReport(now=now)
        try:
            due = await asyncio.to_thread(self._store.find_due_pending, now)
        except StoreUnavailable:
            logger.exception("Reminder store unavailable; retrying next tick")
            return report

        report.due = [r.id for r in due]
        if due:
            logger.info("Found %d due reminders at %s", len(due), now.isoformat())

        for reminder in due:
            if await self._deliver(reminder, now):
                report.delivered.append(reminder.id)
            else:
                report.failed.append(reminder.id)
        return report

    async def _deliver(self, reminder: Reminder, now: datetime) -> bool:
        try:
            adapter = self._registry.for_recipient(reminder.recipient)
            await adapter.send(reminder.recipient, format_reminder(reminder.task_text))
        except DeliveryFailure as exc:
            logger.warning(
                "Delivery failed id=%s recipient=%s: %s",
                reminder.id,
                reminder.recipient,
                exc.reason,
            )
            return False
        except Exception:
            logger.exception("Unexpected delivery error id=%s", reminder.id)
            return False

        try:
            result = await asyncio.to_thread(self._store.mark_delivered, reminder.id, now)
        except StoreUnavailable:
            logger.exception("Could not mark %s delivered; it will be sent again", reminder.id)
            return False

        if result is MarkResult.ALREADY_DELIVERED:
            logger.info("Reminder %s was already marked delivered", reminder.id)
        elif result is MarkResult.NOT_FOUND:
            logger.warning("Reminder %s vanished before it could be marked", reminder.id)
        else:
            logger.info("Reminder %s delivered to %s", reminder.id, reminder.recipient)
        return True

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    async def _tick(self) -> None:
        try:
            await self.run_cycle()
        except Exception:
            logger.exception("Dispatcher cycle crashed")

    async def run(self) -> None:
        """Tick every interval until ``stop()`` is called."""
        self._stopping.clear()
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        logger.info("Dispatcher started interval=%.1fs", self._interval)

        while not self._stopping.is_set():
            if self.busy:
                logger.warning("Previous cycle still running; skipping tick")
            else:
                self._current = asyncio.create_task(self._tick())
            next_tick += self._interval
            try:
                await asyncio.wait_for(
                    self._stopping.wait(), timeout=max(0.0, next_tick - loop.time())
                )
            except asyncio.TimeoutError:
                pass

        if self._current is not None:
            await self._current
        logger.info("Dispatcher stopped")

    def start(self) -> asyncio.Task:
        if self.running:
            raise RuntimeError("dispatcher already running")
        self._runner = asyncio.create_task(self.run())
        return self._runner

    async def stop(self) -> None:
        """Stop ticking and wait for the in-flight cycle to finish."""
        self._stopping.set()
        if self._runner is not None:
            await self._runner
            self._runner = None
