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

"""Tests for the background scheduler and BackgroundReporter."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Iterator
from datetime import timedelta

import pytest

from sfxmetrics import (
    Background,
    BackgroundJobNotStartedError,
    BackgroundReporter,
    BackgroundReporterNotStartedError,
    Counter,
    State,
    StatusError,
)
from tests.helpers.submitters import CapturingSubmitter

INTERVAL = 0.5
SETTLE = 0.75


class _Calls:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._count = 0

    def __call__(self) -> None:
        with self._lock:
            self._count += 1

    @property
    def count(self) -> int:
        with self._lock:
            return self._count


def _wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def calls() -> _Calls:
    return _Calls()


@pytest.fixture
def job(calls: _Calls) -> Iterator[Background]:
    background = Background(INTERVAL, calls)
    yield background
    if background.state is not State.STOPPED:
        background.stop()


class TestBackground:
    """Tests for the Background state machine."""

    def test_rejects_non_positive_interval(self, calls: _Calls) -> None:
        """The interval must be positive."""
        with pytest.raises(ValueError):
            _ = Background(0, calls)

    def test_accepts_timedelta(self, calls: _Calls) -> None:
        """Intervals may be given as timedelta."""
        background = Background(timedelta(milliseconds=250), calls)
        try:
            assert background.interval == 0.25
        finally:
            background.stop()

    def test_starts_running_and_ticks(self, job: Background, calls: _Calls) -> None:
        """The action runs once per interval."""
        assert job.state is State.RUNNING
        time.sleep(SETTLE)
        assert calls.count == 1

    def test_do_under_pause(self, job: Background, calls: _Calls) -> None:
        """Pause stops ticks, do runs anyway, resume restarts, stop is terminal."""
        time.sleep(SETTLE)
        assert calls.count == 1

        job.pause()
        assert job.state is State.PAUSED
        time.sleep(SETTLE)
        assert calls.count == 1

        job.do()
        assert calls.count == 2
        assert job.state is State.PAUSED

        job.resume()
        assert job.state is State.RUNNING
        time.sleep(SETTLE)
        assert calls.count == 3

        job.stop()
        assert job.state is State.STOPPED
        for operation in (job.pause, job.resume, job.do, job.stop):
            with pytest.raises(BackgroundJobNotStartedError):
                operation()

    def test_do_realigns_next_tick(self, job: Background, calls: _Calls) -> None:
        """After do(), the next tick is one interval later."""
        time.sleep(INTERVAL * 0.6)
        job.do()
        assert calls.count == 1
        time.sleep(INTERVAL * 0.6)
        assert calls.count == 1
        time.sleep(INTERVAL * 0.7)
        assert calls.count == 2

    def test_do_runs_exactly_once_per_call(
        self, job: Background, calls: _Calls
    ) -> None:
        """Each do() runs the action exactly once."""
        job.pause()
        for _ in range(5):
            job.do()
        assert calls.count == 5

    def test_pause_and_resume_are_idempotent(
        self, job: Background, calls: _Calls
    ) -> None:
        """Pausing twice or resuming a running job changes nothing."""
        job.resume()
        assert job.state is State.RUNNING
        job.pause()
        job.pause()
        assert job.state is State.PAUSED

    def test_failing_action_keeps_running(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Action exceptions are logged and the worker survives."""
        attempts: list[int] = []

        def action() -> None:
            attempts.append(1)
            raise RuntimeError("boom")

        background = Background(60.0, action)
        try:
            with caplog.at_level(logging.ERROR, logger="sfxmetrics.background"):
                background.do()
                background.do()
        finally:
            background.stop()

        assert len(attempts) == 2
        events = [getattr(record, "event", None) for record in caplog.records]
        assert events.count("background.action.failed") == 2


class TestBackgroundReporter:
    """Tests for BackgroundReporter."""

    def test_controls_require_start(self, submitter: CapturingSubmitter) -> None:
        """pause, resume and stop fail before start()."""
        with BackgroundReporter(interval=1.0, submitter=submitter) as reporter:
            assert not reporter.started
            for operation in (reporter.pause, reporter.resume, reporter.stop):
                with pytest.raises(BackgroundReporterNotStartedError):
                    operation()

    def test_reports_periodically(self, submitter: CapturingSubmitter) -> None:
        """Once started, tracked metrics are reported on the schedule."""
        reporter = BackgroundReporter(
            default_dimensions={"host": "h"}, interval=0.1, submitter=submitter
        )
        counter = Counter("ticks")
        reporter.track(counter)
        _ = counter.inc(4)

        reporter.start()
        reporter.start()
        try:
            assert _wait_for(lambda: bool(submitter.batches))
        finally:
            reporter.stop()

        assert submitter.values("ticks") == [4]
        assert submitter.batches[0][0].dimensions == {"host": "h"}
        assert counter.value == 0
        with pytest.raises(BackgroundReporterNotStartedError):
            reporter.stop()

    def test_failures_are_logged_not_raised(
        self, submitter: CapturingSubmitter, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Submission errors on the schedule are logged at ERROR."""
        reporter = BackgroundReporter(interval=0.1, submitter=submitter)
        counter = Counter("c", value=1)
        reporter.track(counter)
        submitter.failures.append(StatusError(500, b"down"))

        with caplog.at_level(logging.ERROR, logger="sfxmetrics.background"):
            reporter.start()
            try:
                assert _wait_for(lambda: bool(submitter.batches))
            finally:
                reporter.stop()

        events = [getattr(record, "event", None) for record in caplog.records]
        assert "background_reporter.report.failed" in events
        assert submitter.values("c") == [1]

    def test_can_restart_after_stop(self, submitter: CapturingSubmitter) -> None:
        """A stopped reporter can be started again."""
        reporter = BackgroundReporter(interval=0.1, submitter=submitter)
        reporter.start()
        reporter.stop()
        reporter.start()
        assert reporter.started
        reporter.pause()
        reporter.resume()
        reporter.close()
        assert not reporter.started

    def test_refused_stop_keeps_reporter_controllable(
        self, submitter: CapturingSubmitter
    ) -> None:
        """A stop() refused from inside a report leaves the handle in place."""
        reporter = BackgroundReporter(interval=0.1, submitter=submitter)
        refused: list[RuntimeError] = []
        attempted = threading.Event()

        def stop_from_inside() -> None:
            if attempted.is_set():
                return
            try:
                reporter.stop()
            except RuntimeError as error:
                refused.append(error)
            finally:
                attempted.set()

        reporter.add_pre_report_callback(stop_from_inside)
        reporter.start()
        try:
            assert attempted.wait(timeout=5.0)
            assert len(refused) == 1
            assert not isinstance(refused[0], BackgroundReporterNotStartedError)
            assert reporter.started
            reporter.pause()
            reporter.resume()
        finally:
            reporter.stop()
        assert not reporter.started
