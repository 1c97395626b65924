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

"""Tests for threading primitives."""

from __future__ import annotations

import logging
import threading

import pytest

from sfxmetrics.errors import CancelledError
from sfxmetrics.threading import (
    BackgroundWorker,
    CallbackRegistry,
    Cancellable,
    CancellationToken,
    SystemGate,
)


class TestSystemGate:
    """Tests for SystemGate."""

    def test_initial_state_is_not_set(self) -> None:
        """Gate starts in not-set state."""
        assert SystemGate().is_set() is False

    def test_set_and_clear(self) -> None:
        """set() opens the gate and clear() closes it."""
        gate = SystemGate()
        gate.set()
        assert gate.is_set() is True
        gate.clear()
        assert gate.is_set() is False

    def test_wait_returns_true_when_set(self) -> None:
        """wait() returns True immediately when gate is set."""
        gate = SystemGate()
        gate.set()
        assert gate.wait(timeout=0.001) is True

    def test_wait_returns_false_on_timeout(self) -> None:
        """wait() returns False when timeout expires."""
        assert SystemGate().wait(timeout=0.001) is False

    def test_set_releases_waiter(self) -> None:
        """A waiting thread is released by set() from another thread."""
        gate = SystemGate()
        released: list[bool] = []
        waiter = threading.Thread(target=lambda: released.append(gate.wait(5.0)))
        waiter.start()
        gate.set()
        waiter.join(timeout=5.0)
        assert released == [True]


class TestCallbackRegistry:
    """Tests for CallbackRegistry."""

    def test_invokes_in_registration_order(self) -> None:
        """Callbacks run in the order they were registered."""
        registry = CallbackRegistry()
        order: list[int] = []
        registry.register(lambda: order.append(1))
        registry.register(lambda: order.append(2))
        assert registry.invoke_all() == []
        assert order == [1, 2]

    def test_unregister(self) -> None:
        """Unregistered callbacks are not invoked; unknown ones are ignored."""
        registry = CallbackRegistry()
        calls: list[str] = []

        def callback() -> None:
            calls.append("called")

        registry.register(callback)
        registry.unregister(callback)
        registry.unregister(callback)
        _ = registry.invoke_all()
        assert calls == []
        assert registry.count == 0

    def test_errors_are_collected(self) -> None:
        """A failing callback does not stop the others."""
        registry = CallbackRegistry()
        calls: list[str] = []
        error = ValueError("boom")

        def failing() -> None:
            raise error

        registry.register(failing)
        registry.register(lambda: calls.append("after"))
        assert registry.invoke_all() == [error]
        assert calls == ["after"]

    def test_clear(self) -> None:
        """clear() removes every callback."""
        registry = CallbackRegistry()
        registry.register(lambda: None)
        registry.clear()
        assert registry.count == 0


class TestBackgroundWorker:
    """Tests for BackgroundWorker."""

    def test_runs_target_on_daemon_thread(self) -> None:
        """The target runs on a named daemon thread."""
        seen: list[tuple[str, bool]] = []

        def target() -> None:
            current = threading.current_thread()
            seen.append((current.name, current.daemon))

        worker = BackgroundWorker(target, name="sfxmetrics-test")
        worker.start()
        assert worker.join(timeout=5.0) is True
        assert seen == [("sfxmetrics-test", True)]
        assert worker.running is False

    def test_start_twice_raises(self) -> None:
        """A worker can only be started once."""
        release = threading.Event()

        def target() -> None:
            _ = release.wait(5.0)

        worker = BackgroundWorker(target)
        worker.start()
        try:
            assert worker.running is True
            with pytest.raises(RuntimeError):
                worker.start()
        finally:
            release.set()
            _ = worker.join(timeout=5.0)

    def test_join_before_start(self) -> None:
        """Joining a worker that never started returns immediately."""
        assert BackgroundWorker(lambda: None).join() is True

    def test_join_from_own_thread_returns_false(self) -> None:
        """A worker cannot join itself."""
        results: list[bool] = []
        holder: list[BackgroundWorker] = []
        ready = threading.Event()

        def target() -> None:
            _ = ready.wait(5.0)
            results.append(holder[0].join(timeout=1.0))

        worker = BackgroundWorker(target)
        holder.append(worker)
        worker.start()
        ready.set()
        _ = worker.join(timeout=5.0)
        assert results == [False]


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_satisfies_protocol(self) -> None:
        """CancellationToken is Cancellable."""
        assert isinstance(CancellationToken(), Cancellable)

    def test_cancel_and_check(self) -> None:
        """check() raises once the token is cancelled."""
        token = CancellationToken()
        token.check()
        token.cancel()
        token.cancel()
        assert token.is_cancelled()
        assert token.wait(timeout=0.001) is True
        with pytest.raises(CancelledError):
            token.check()

    def test_background_token_is_fresh(self) -> None:
        """background() returns a new uncancelled token each time."""
        first = CancellationToken.background()
        assert first is not CancellationToken.background()
        assert not first.is_cancelled()

    def test_on_cancel_runs_once(self) -> None:
        """Registered callbacks run once on cancel."""
        token = CancellationToken()
        calls: list[str] = []
        _ = token.on_cancel(lambda: calls.append("cancel"))
        token.cancel()
        token.cancel()
        assert calls == ["cancel"]

    def test_on_cancel_after_cancel_runs_immediately(self) -> None:
        """A callback registered on a cancelled token runs right away."""
        token = CancellationToken()
        token.cancel()
        calls: list[str] = []
        unregister = token.on_cancel(lambda: calls.append("late"))
        unregister()
        assert calls == ["late"]

    def test_unregister_prevents_callback(self) -> None:
        """An unregistered callback does not run."""
        token = CancellationToken()
        calls: list[str] = []
        unregister = token.on_cancel(lambda: calls.append("cancel"))
        unregister()
        token.cancel()
        assert calls == []

    def test_failing_callback_is_logged(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Callback errors are logged and the remaining callbacks still run."""
        token = CancellationToken()
        calls: list[str] = []

        def failing() -> None:
            raise RuntimeError("boom")

        _ = token.on_cancel(failing)
        _ = token.on_cancel(lambda: calls.append("after"))
        with caplog.at_level(logging.WARNING, logger="sfxmetrics.threading"):
            token.cancel()

        assert calls == ["after"]
        events = [getattr(record, "event", None) for record in caplog.records]
        assert events == ["cancellation.callback.failed"]

    def test_child_follows_parent(self) -> None:
        """Cancelling the parent cancels the child but not the reverse."""
        parent = CancellationToken()
        child = parent.child()
        sibling = parent.child()
        sibling.cancel()
        assert not parent.is_cancelled()
        parent.cancel()
        assert child.is_cancelled()

    def test_child_of_cancelled_parent(self) -> None:
        """A child created from a cancelled parent starts cancelled."""
        parent = CancellationToken()
        parent.cancel()
        assert parent.child().is_cancelled()

    def test_with_timeout_cancels_itself(self) -> None:
        """with_timeout() returns a child cancelled after the delay."""
        parent = CancellationToken()
        token = parent.with_timeout(0.05)
        assert token.wait(timeout=5.0) is True
        assert not parent.is_cancelled()

    def test_with_timeout_rejects_negative(self) -> None:
        """Negative timeouts are rejected."""
        with pytest.raises(ValueError):
            _ = CancellationToken().with_timeout(-1.0)

    def test_cancel_wakes_waiter(self) -> None:
        """wait() returns as soon as another thread cancels."""
        token = CancellationToken()
        results: list[bool] = []
        waiter = threading.Thread(target=lambda: results.append(token.wait(5.0)))
        waiter.start()
        token.cancel()
        waiter.join(timeout=5.0)
        assert results == [True]
