"""Unit tests for the background task scheduler."""

import logging
import threading

import pytest


class TestThreadTaskScheduler:
    """Tests for ThreadTaskScheduler."""

    def test_task_runs_on_background_thread(self) -> None:
        from vmsg.services.scheduler import ThreadTaskScheduler

        scheduler = ThreadTaskScheduler(name="test-task")
        done = threading.Event()
        seen: list[tuple[str, str]] = []

        def task(value: str) -> None:
            seen.append((value, threading.current_thread().name))
            done.set()

        scheduler.submit(task, "abc")

        assert done.wait(timeout=5)
        scheduler.shutdown(wait=True, timeout=5)
        assert seen[0][0] == "abc"
        assert seen[0][1].startswith("test-task-")
        assert seen[0][1] != threading.current_thread().name

    def test_submit_does_not_wait_for_task(self) -> None:
        from vmsg.services.scheduler import ThreadTaskScheduler

        scheduler = ThreadTaskScheduler()
        release = threading.Event()

        scheduler.submit(release.wait, 5)

        assert scheduler.active_count == 1
        release.set()
        scheduler.shutdown(wait=True, timeout=5)
        assert scheduler.active_count == 0

    def test_task_exception_is_logged_not_raised(self, caplog: pytest.LogCaptureFixture) -> None:
        from vmsg.services.scheduler import ThreadTaskScheduler

        scheduler = ThreadTaskScheduler()

        def broken() -> None:
            raise ValueError("task exploded")

        with caplog.at_level(logging.ERROR, logger="vmsg.services.scheduler"):
            scheduler.submit(broken)
            scheduler.shutdown(wait=True, timeout=5)

        assert "task exploded" in caplog.text

    def test_shutdown_signals_cancellation(self) -> None:
        from vmsg.services.scheduler import ThreadTaskScheduler

        scheduler = ThreadTaskScheduler()
        observed = threading.Event()

        def wait_for_cancel() -> None:
            if scheduler.cancel_event.wait(timeout=5):
                observed.set()

        scheduler.submit(wait_for_cancel)
        scheduler.shutdown(wait=True, timeout=5)

        assert observed.is_set()

    def test_submit_after_shutdown_raises(self) -> None:
        from vmsg.services.scheduler import ThreadTaskScheduler

        scheduler = ThreadTaskScheduler()
        scheduler.shutdown()

        with pytest.raises(RuntimeError):
            scheduler.submit(lambda: None)
