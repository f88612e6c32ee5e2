"""Fixed-period scheduler running the polling job one cycle at a time."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Mapping
from datetime import timedelta
from typing import Any, Protocol

from .poll_mailbox import PollInProgressError

LOGGER = logging.getLogger(__name__)


class ScheduledJob(Protocol):
    """Anything with a synchronous ``execute`` entry point."""

    def execute(self, args: Mapping[str, Any] | None = None) -> object:
        raise NotImplementedError


class Scheduler:
    """Invoke ``job.execute`` every ``period``; cycles never overlap.

    A cycle that raises is logged and not retried; the next attempt happens at
    the next regular tick.
    """

    def __init__(self, job: ScheduledJob, period: timedelta) -> None:
        if period <= timedelta(0):
            raise ValueError("period must be positive")
        self._job = job
        self._period = period
        self._stop = threading.Event()

    def stop(self) -> None:
        """Ask the loop to exit after the running cycle."""
        self._stop.set()

    def run_once(self) -> None:
        try:
            self._job.execute({})
        except PollInProgressError:
            LOGGER.info("Previous polling cycle still running; skipping this tick")
        except Exception:  # pylint: disable=broad-except
            LOGGER.exception("Polling cycle failed; it will not be retried")

    def run_forever(self, *, max_cycles: int | None = None) -> int:
        """Run until :meth:`stop` is called or ``max_cycles`` have run."""
        cycles = 0
        LOGGER.info("Scheduler started with a period of %s", self._period)
        while not self._stop.is_set():
            started = time.monotonic()
            self.run_once()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            elapsed = time.monotonic() - started
            remaining = max(self._period.total_seconds() - elapsed, 0.0)
            self._stop.wait(remaining)
        LOGGER.info("Scheduler stopped after %s cycle(s)", cycles)
        return cycles


__all__ = ["ScheduledJob", "Scheduler"]
