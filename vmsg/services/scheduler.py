"""Background task scheduling for recording processing.

Each submitted task runs on its own daemon thread. The scheduler owns a
cancellation event that long-running work (the encoder wait) polls, so a
shutdown stops in-flight encoders instead of abandoning them.
"""

import logging
import threading
from collections.abc import Callable
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class TaskScheduler(Protocol):
    """Runs callables independently of the caller."""

    cancel_event: threading.Event

    def submit(self, fn: Callable[..., Any], *args: Any) -> None: ...

    def shutdown(self, wait: bool = True, timeout: float | None = None) -> None: ...


class ThreadTaskScheduler:
    """Starts one daemon thread per submitted task."""

    def __init__(self, name: str = "vmsg-task"):
        self.name = name
        self.cancel_event = threading.Event()
        self._threads: set[threading.Thread] = set()
        self._lock = threading.Lock()

    def submit(self, fn: Callable[..., Any], *args: Any) -> None:
        """Run fn(*args) on a new background thread.

        Raises:
            RuntimeError: If the scheduler has been shut down.
        """
        if self.cancel_event.is_set():
            raise RuntimeError("Scheduler has been shut down")

        thread = threading.Thread(
            target=self._run,
            args=(fn, args),
            name=f"{self.name}-{getattr(fn, '__name__', 'task')}",
            daemon=True,
        )
        with self._lock:
            self._threads.add(thread)
        thread.start()

    def _run(self, fn: Callable[..., Any], args: tuple) -> None:
        try:
            fn(*args)
        except Exception as e:
            logger.error(f"Background task {thread_name()} failed: {e}", exc_info=True)
        finally:
            with self._lock:
                self._threads.discard(threading.current_thread())

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._threads)

    def shutdown(self, wait: bool = True, timeout: float | None = None) -> None:
        """Signal cancellation to running tasks and optionally wait for them.

        Args:
            wait: Join running threads before returning.
            timeout: Maximum seconds to wait per thread.
        """
        self.cancel_event.set()
        if not wait:
            return
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout=timeout)
        logger.info(f"Scheduler stopped, {self.active_count} task(s) still running")


def thread_name() -> str:
    return threading.current_thread().name
