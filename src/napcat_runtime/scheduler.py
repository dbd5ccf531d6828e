"""Recurring tasks.

Two schedules are supported:
- interval: the callback runs every ``interval`` seconds
- cron: the callback runs at each fire time of a five-field cron
  expression (``"*/5 * * * *"``), evaluated in local time

A task runs until cancelled. A failing run is logged and the task keeps going.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from croniter import croniter

logger = logging.getLogger(__name__)

TaskCallback = Callable[[], Awaitable[Any] | Any]


class RecurringTask:
    """One callback repeated on a fixed interval."""

    def __init__(
        self,
        name: str,
        interval: float,
        callback: TaskCallback,
        run_immediately: bool = False,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.callback = callback
        self.run_immediately = run_immediately
        self.runs = 0
        self.last_run: datetime | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop(), name=f"recurring:{self.name}")

    def cancel(self) -> None:
        """Stop the task; safe to call more than once."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.debug(f"Cancelled recurring task {self.name}")
        self._task = None

    async def run_once(self) -> None:
        """Run the callback now, logging failures."""
        self.runs += 1
        self.last_run = datetime.now(UTC)
        try:
            result = self.callback()
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception(f"Recurring task {self.name} failed")

    def next_delay(self) -> float:
        """Seconds to wait before the next run."""
        return self.interval

    async def _loop(self) -> None:
        if self.run_immediately:
            await self.run_once()
        while True:
            await asyncio.sleep(self.next_delay())
            await self.run_once()


class CronTask(RecurringTask):
    """One callback run at the fire times of a cron expression."""

    def __init__(
        self,
        name: str,
        expression: str,
        callback: TaskCallback,
        run_immediately: bool = False,
    ):
        if not croniter.is_valid(expression):
            raise ValueError(f"Invalid cron expression: {expression!r}")
        # Interval unused: each delay comes from the next fire time
        super().__init__(name, 60, callback, run_immediately)
        self.expression = expression

    def next_fire(self, now: datetime | None = None) -> datetime:
        """The first fire time strictly after ``now`` (default: current local time)."""
        base = now or datetime.now().astimezone()
        return croniter(self.expression, base).get_next(datetime)

    def next_delay(self) -> float:
        now = datetime.now().astimezone()
        return max((self.next_fire(now) - now).total_seconds(), 0.0)


class Scheduler:
    """Tracks every recurring task started by the runtime."""

    def __init__(self) -> None:
        self._tasks: list[RecurringTask] = []

    @property
    def tasks(self) -> list[RecurringTask]:
        return list(self._tasks)

    def schedule(
        self,
        name: str,
        interval: float,
        callback: TaskCallback,
        run_immediately: bool = False,
    ) -> RecurringTask:
        """Start a recurring task.

        Args:
            name: Task name, for logs
            interval: Seconds between runs
            callback: Function or coroutine function
            run_immediately: Run once right away instead of after the first interval

        Returns:
            The started task
        """
        task = RecurringTask(name, interval, callback, run_immediately)
        self._start(task)
        logger.info(f"Scheduled {name} every {interval}s")
        return task

    def cron(self, name: str, expression: str, callback: TaskCallback) -> CronTask:
        """Start a task that runs at each fire time of ``expression``.

        Raises:
            ValueError: If the expression does not parse
        """
        task = CronTask(name, expression, callback)
        self._start(task)
        logger.info(f"Scheduled {name} at {expression!r}")
        return task

    def _start(self, task: RecurringTask) -> None:
        task.start()
        self._tasks.append(task)

    def cancel(self, task: RecurringTask) -> None:
        task.cancel()
        if task in self._tasks:
            self._tasks.remove(task)

    def cancel_all(self) -> None:
        """Cancel every task."""
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()
