# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Periodic execution on a dedicated worker thread.

:class:`Background` runs an action every ``interval`` seconds and is driven
by four control commands. It is an explicit three-state machine:

========  ==========================================================
State     Transitions
========  ==========================================================
RUNNING   tick runs the action; ``pause`` moves to PAUSED; ``resume``
          does nothing; ``do`` runs the action and restarts the
          interval; ``stop`` moves to STOPPED.
PAUSED    ``pause`` does nothing; ``resume`` moves to RUNNING and
          restarts the interval; ``do`` runs the action and stays
          PAUSED; ``stop`` moves to STOPPED.
STOPPED   terminal; every command raises
          :class:`~sfxmetrics.errors.BackgroundJobNotStartedError`.
========  ==========================================================

Commands are handed to the worker through a one-slot rendezvous: the caller
blocks until the worker has taken the command and carried it out, so after
``do()`` returns the action has run.

:class:`BackgroundReporter` is a :class:`~sfxmetrics.reporter.Reporter` that
reports on such a schedule once started.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from datetime import timedelta
from enum import Enum

from .client import Submitter
from .clock import SYSTEM_CLOCK, Clock, MonotonicClock
from .config import Config
from .errors import (
    BackgroundJobNotStartedError,
    BackgroundReporterNotStartedError,
    CancelledError,
)
from .logging import StructuredLogger, get_logger
from .reporter import Reporter
from .threading import BackgroundWorker, CancellationToken

__all__ = [
    "Background",
    "BackgroundReporter",
    "Command",
    "State",
]

logger: StructuredLogger = get_logger(__name__, context={"component": "background"})


class State(Enum):
    """Lifecycle state of a :class:`Background` job."""

    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class Command(Enum):
    """Control commands accepted by the worker."""

    PAUSE = "pause"
    RESUME = "resume"
    DO = "do"
    STOP = "stop"


def _seconds(interval: float | timedelta) -> float:
    seconds = (
        interval.total_seconds() if isinstance(interval, timedelta) else float(interval)
    )
    if seconds <= 0:
        msg = "interval must be positive"
        raise ValueError(msg)
    return seconds


class Background:
    """Runs ``action`` every ``interval`` on its own worker thread.

    The worker starts immediately in the RUNNING state. The action always
    runs on the worker thread, so it never overlaps itself. Exceptions it
    raises are logged and do not stop the schedule.

    Example::

        job = Background(timedelta(seconds=5), flush)
        job.pause()
        job.do()      # flush now, schedule stays paused
        job.resume()  # next flush in 5 seconds
        job.stop()
    """

    def __init__(
        self,
        interval: float | timedelta,
        action: Callable[[], None],
        *,
        clock: MonotonicClock = SYSTEM_CLOCK,
        name: str = "sfxmetrics-background",
    ) -> None:
        super().__init__()
        self.interval = _seconds(interval)
        self._action = action
        self._clock = clock
        self._cond = threading.Condition()
        self._send_lock = threading.Lock()
        self._state = State.RUNNING
        self._pending: Command | None = None
        self._worker_ident: int | None = None
        self._worker = BackgroundWorker(self._loop, name=name)
        self._worker.start()

    @property
    def state(self) -> State:
        with self._cond:
            return self._state

    def pause(self) -> None:
        """Disable the periodic tick. Pausing a paused job does nothing."""
        self._send(Command.PAUSE)

    def resume(self) -> None:
        """Re-enable the tick, one full interval from now."""
        self._send(Command.RESUME)

    def do(self) -> None:
        """Run the action now, whatever the state."""
        self._send(Command.DO)

    def stop(self, timeout: float | None = None) -> None:
        """Stop the worker and wait for it to exit.

        Raises:
            BackgroundJobNotStartedError: If the job is already stopped.
        """
        self._send(Command.STOP)
        _ = self._worker.join(timeout=timeout)

    def _send(self, command: Command) -> None:
        if threading.get_ident() == self._worker_ident:
            msg = "a background job cannot be controlled from its own action"
            raise RuntimeError(msg)
        with self._send_lock, self._cond:
            if self._state is State.STOPPED:
                raise BackgroundJobNotStartedError("background job not started")
            self._pending = command
            self._cond.notify_all()
            while self._pending is not None:
                _ = self._cond.wait()

    def _run_action(self) -> None:
        try:
            self._action()
        except Exception as error:
            logger.exception(
                "Background action failed.",
                event="background.action.failed",
                context={"error": repr(error)},
            )

    def _next_command(self, next_tick: float) -> Command | None:
        """Wait for a command, or return None when the tick is due."""
        with self._cond:
            while self._pending is None:
                if self._state is State.RUNNING:
                    remaining = next_tick - self._clock.monotonic()
                    if remaining <= 0:
                        return None
                    _ = self._cond.wait(remaining)
                else:
                    _ = self._cond.wait()
            return self._pending

    def _loop(self) -> None:
        self._worker_ident = threading.get_ident()
        next_tick = self._clock.monotonic() + self.interval
        while True:
            command = self._next_command(next_tick)
            if command is None:
                self._run_action()
                now = self._clock.monotonic()
                next_tick += self.interval
                if next_tick <= now:
                    next_tick = now + self.interval
                continue

            state = self.state
            if command is Command.DO:
                self._run_action()
                if state is State.RUNNING:
                    next_tick = self._clock.monotonic() + self.interval
            elif command is Command.PAUSE:
                state = State.PAUSED
            elif command is Command.RESUME and state is State.PAUSED:
                state = State.RUNNING
                next_tick = self._clock.monotonic() + self.interval
            elif command is Command.STOP:
                state = State.STOPPED

            with self._cond:
                self._state = state
                self._pending = None
                self._cond.notify_all()

            if state is State.STOPPED:
                logger.debug("Background job stopped.", event="background.stopped")
                return


class BackgroundReporter(Reporter):
    """Reporter that reports every ``interval`` once started.

    Created unstarted. Report failures on the schedule are logged and never
    propagated; :meth:`report` can still be called directly and raises as
    usual.

    Example::

        reporter = BackgroundReporter(new_config(), {"host": "web-1"}, 10.0)
        reporter.track(requests)
        reporter.start()
        ...
        reporter.stop()
    """

    def __init__(
        self,
        config: Config | None = None,
        default_dimensions: Mapping[str, str] | None = None,
        interval: float | timedelta = timedelta(seconds=10),
        *,
        submitter: Submitter | None = None,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        super().__init__(
            config, default_dimensions, submitter=submitter, clock=clock
        )
        self.interval = _seconds(interval)
        self._clock = clock
        self._job: Background | None = None
        self._job_lock = threading.Lock()

    @property
    def started(self) -> bool:
        with self._job_lock:
            return self._job is not None

    def start(self) -> None:
        """Begin reporting on the schedule. Starting a started reporter does nothing."""
        with self._job_lock:
            if self._job is not None:
                return
            self._job = Background(
                self.interval,
                self._report_in_background,
                clock=self._clock,
                name="sfxmetrics-reporter",
            )

    def pause(self) -> None:
        self._require_job().pause()

    def resume(self) -> None:
        self._require_job().resume()

    def stop(self, timeout: float | None = None) -> None:
        """Stop the schedule; the reporter can be started again later.

        The handle is released only once the job has stopped, so a refused
        stop (for example from inside a report) leaves the reporter running
        and controllable.

        Raises:
            BackgroundReporterNotStartedError: If the reporter is not started.
            RuntimeError: If called from the reporter's own schedule.
        """
        job = self._require_job()
        try:
            job.stop(timeout=timeout)
        except BackgroundJobNotStartedError:
            self._release(job)
            raise BackgroundReporterNotStartedError(
                "background reporter not started"
            ) from None
        self._release(job)

    def close(self) -> None:
        with self._job_lock:
            job = self._job
        if job is not None:
            try:
                job.stop()
            except BackgroundJobNotStartedError:
                pass  # already stopped by a concurrent stop()
            self._release(job)
        super().close()

    def _release(self, job: Background) -> None:
        with self._job_lock:
            if self._job is job:
                self._job = None

    def _require_job(self) -> Background:
        with self._job_lock:
            job = self._job
        if job is None:
            raise BackgroundReporterNotStartedError("background reporter not started")
        return job

    def _report_in_background(self) -> None:
        try:
            _ = self.report(CancellationToken.background())
        except CancelledError:
            logger.debug(
                "Background report cancelled.",
                event="background_reporter.report.cancelled",
            )
        except Exception as error:
            logger.error(
                "Background report failed.",
                event="background_reporter.report.failed",
                context={"error": repr(error)},
            )
