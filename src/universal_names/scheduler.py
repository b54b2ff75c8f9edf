"""
Background periodic tasks.

The cache sweep and the expiration tracker poll run as independent
PeriodicTasks, each with its own start/stop lifecycle. Stopping a task
never touches in-flight resolution calls.
"""

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Optional, Union

from .audit_logger import AuditLogger, ComponentLogger

TaskCallback = Callable[[], Union[Awaitable[Any], Any]]


class PeriodicTask:
    """Runs a callback every interval_seconds until stopped."""

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        callback: TaskCallback,
        run_immediately: bool = False,
        logger: Optional[AuditLogger] = None,
    ) -> None:
        """
        Initialize the task.

        Args:
            name: Task name used in logs
            interval_seconds: Delay between runs
            callback: Sync or async callable invoked on every tick
            run_immediately: Run once right after start instead of after one interval
            logger: Optional audit logger
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self._name = name
        self._interval = interval_seconds
        self._callback = callback
        self._run_immediately = run_immediately
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._running = False
        self._run_count = 0
        self._last_error: Optional[Exception] = None
        self._log = ComponentLogger(logger, "PeriodicTask")

    @property
    def name(self) -> str:
        return self._name

    @property
    def interval_seconds(self) -> float:
        return self._interval

    @property
    def run_count(self) -> int:
        return self._run_count

    @property
    def last_error(self) -> Optional[Exception]:
        return self._last_error

    def start(self) -> None:
        """
        Schedule the loop on the running event loop.

        Calling start on a running task is a no-op.
        """
        if self._task is not None and not self._task.done():
            return
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(
            self.run(self._stop_event), name=f"periodic:{self._name}"
        )

    async def stop(self) -> None:
        """Signal the loop to stop and wait for the current tick to finish."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        self._running = False

    def is_running(self) -> bool:
        return self._running

    async def run(self, stop_event: asyncio.Event) -> None:
        """
        Run the loop until stop_event is set.

        Callback errors are logged and the loop keeps running.
        """
        self._running = True
        try:
            if self._run_immediately:
                await self.run_once()

            while not stop_event.is_set():
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self._interval)
                    break
                except asyncio.TimeoutError:
                    pass
                await self.run_once()
        finally:
            self._running = False

    async def run_once(self) -> None:
        """Invoke the callback once, logging instead of propagating its errors."""
        self._run_count += 1
        try:
            result = self._callback()
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            self._last_error = e
            self._log.error(f"Periodic task '{self._name}' failed", error=e)
