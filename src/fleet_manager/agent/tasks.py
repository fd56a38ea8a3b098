"""Background task runner for long-running lifecycle operations.

HTTP handlers return ``202 Accepted`` right after submitting; each request
gets its own thread, so concurrent requests never queue behind each other.
Each submission returns a :class:`TaskHandle` whose future records the
outcome, so callers (and tests) can wait for completion instead
of polling the status endpoint. There is no cancellation: once started, a
task runs to completion or to its own subprocess timeout.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from fleet_manager.errors import ExternalProcessFailure

logger = logging.getLogger(__name__)


@dataclass
class TaskHandle:
    """A submitted background task."""

    name: str
    future: Future[Any]
    submitted_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @property
    def done(self) -> bool:
        return self.future.done()

    @property
    def error(self) -> BaseException | None:
        """The exception the task raised, or None if pending or successful."""
        if not self.future.done():
            return None
        return self.future.exception()

    def wait(self, timeout: float | None = None) -> Any:
        """Block until the task finishes. Re-raises the task's exception."""
        return self.future.result(timeout=timeout)


class TaskRunner:
    """Runs each named callable on its own thread and keeps their handles."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._history: list[TaskHandle] = []
        self._threads: list[threading.Thread] = []

    def submit(self, name: str, fn: Callable[[], Any]) -> TaskHandle:
        future: Future[Any] = Future()
        future.set_running_or_notify_cancel()
        thread = threading.Thread(
            target=self._complete, args=(future, name, fn), name=f"task-{name}", daemon=True,
        )
        handle = TaskHandle(name=name, future=future)
        with self._lock:
            self._history.append(handle)
            self._threads = [t for t in self._threads if t.is_alive()]
            self._threads.append(thread)
        thread.start()
        logger.info("Task %s submitted", name)
        return handle

    def wait(self, handle: TaskHandle, timeout: float | None = None) -> BaseException | None:
        """Wait for *handle* and return its exception (None on success)."""
        return handle.future.exception(timeout=timeout)

    def tasks(self) -> list[TaskHandle]:
        with self._lock:
            return list(self._history)

    def shutdown(self, wait: bool = True) -> None:
        """Join running tasks. Tasks are daemon threads, so ``wait=False`` abandons them."""
        if not wait:
            return
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join()

    @classmethod
    def _complete(cls, future: Future[Any], name: str, fn: Callable[[], Any]) -> None:
        try:
            future.set_result(cls._run(name, fn))
        except BaseException as e:
            future.set_exception(e)

    @staticmethod
    def _run(name: str, fn: Callable[[], Any]) -> Any:
        try:
            result = fn()
        except ExternalProcessFailure as e:
            logger.error("Task %s failed: %s", name, e)
            raise
        except Exception:
            logger.exception("Task %s failed", name)
            raise
        logger.info("Task %s completed", name)
        return result
