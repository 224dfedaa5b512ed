"""Periodic background tasks with a single-flight guard.

Each ``PeriodicTask`` ticks on its own interval. A tick that arrives while
the previous run is still in flight is skipped and counted, never queued,
so a slow cycle cannot pile up work behind it.
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_SHUTDOWN_GRACE_SECONDS = 30.0


@dataclass
class TaskStats:
    """Run statistics for a periodic task."""

    ticks: int = 0
    runs: int = 0
    skipped_ticks: int = 0
    failures: int = 0
    last_run_at: datetime | None = None
    last_duration_seconds: float = 0.0
    last_error: str | None = None


class PeriodicTask:
    """Runs an async callable every ``interval_seconds``.

    Example:
        ```python
        task = PeriodicTask("discovery", discovery.run_cycle, 300)
        task.start()
        ...
        await task.stop()
        ```
    """

    def __init__(
        self,
        name: str,
        body: Callable[[], Awaitable[Any]],
        interval_seconds: float,
        *,
        run_immediately: bool = True,
    ) -> None:
        self.name = name
        self._body = body
        self._interval = interval_seconds
        self._run_immediately = run_immediately

        self._stats = TaskStats()
        self._stop_event = asyncio.Event()
        self._loop_task: asyncio.Task[None] | None = None
        self._current: asyncio.Task[None] | None = None

    @property
    def stats(self) -> TaskStats:
        return self._stats

    @property
    def is_running(self) -> bool:
        """True while a run of the body is in flight."""
        return self._current is not None and not self._current.done()

    @property
    def is_started(self) -> bool:
        return self._loop_task is not None

    def tick(self) -> bool:
        """Start a run unless one is already in flight.

        Returns:
            True if a run was started, False if the tick was skipped.
        """
        self._stats.ticks += 1
        if self.is_running:
            self._stats.skipped_ticks += 1
            logger.debug("%s: previous run still in flight, skipping tick", self.name)
            return False
        self._current = asyncio.create_task(self._run_body(), name=f"{self.name}-run")
        return True

    async def run_once(self) -> bool:
        """Run the body now and wait for it, honouring the single-flight guard."""
        if not self.tick():
            return False
        assert self._current is not None
        await self._current
        return True

    async def _run_body(self) -> None:
        started = time.monotonic()
        self._stats.runs += 1
        self._stats.last_run_at = datetime.now(UTC)
        try:
            await self._body()
            self._stats.last_error = None
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._stats.failures += 1
            self._stats.last_error = str(e)
            logger.exception("%s: run failed", self.name)
        finally:
            self._stats.last_duration_seconds = time.monotonic() - started

    def start(self) -> None:
        """Start ticking in the background."""
        if self._loop_task is not None:
            logger.warning("%s: already started", self.name)
            return
        self._stop_event.clear()
        self._loop_task = asyncio.create_task(self._loop(), name=f"{self.name}-loop")
        logger.info("%s: started (interval=%ss)", self.name, self._interval)

    async def _loop(self) -> None:
        if self._run_immediately:
            self.tick()
        while not self._stop_event.is_set():
            try:
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
                    break
                except TimeoutError:
                    pass

                if self._stop_event.is_set():
                    break

                self.tick()

            except asyncio.CancelledError:
                break

    async def stop(self, grace_seconds: float = DEFAULT_SHUTDOWN_GRACE_SECONDS) -> None:
        """Stop ticking and wait up to ``grace_seconds`` for an in-flight run."""
        self._stop_event.set()

        if self._loop_task is not None:
            self._loop_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._loop_task
            self._loop_task = None

        current = self._current
        if current is not None and not current.done():
            try:
                await asyncio.wait_for(asyncio.shield(current), timeout=grace_seconds)
            except TimeoutError:
                logger.warning("%s: in-flight run exceeded shutdown grace, cancelling", self.name)
                current.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await current
        logger.info("%s: stopped", self.name)
