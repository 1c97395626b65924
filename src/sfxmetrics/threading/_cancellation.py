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

"""Cancellation tokens propagated through report cycles."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from ..errors import CancelledError
from ..logging import StructuredLogger, get_logger
from ._callback_registry import CallbackRegistry

logger: StructuredLogger = get_logger(__name__, context={"component": "cancellation"})


@dataclass
class CancellationToken:
    """Thread-safe cancellation token.

    A token plays the part of a request context: it is passed to
    :meth:`~sfxmetrics.reporter.Reporter.report` and on into the submitter,
    which aborts its network wait as soon as the token is cancelled.

    Example::

        token = CancellationToken()

        def worker():
            reporter.report(token)  # raises CancelledError once cancelled

        # In control thread
        token.cancel()

    Tokens form a tree: :meth:`child` returns a token that is cancelled
    whenever its parent is, and :meth:`with_timeout` returns a child that
    also cancels itself after a delay.
    """

    _event: threading.Event = field(default_factory=threading.Event, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _callbacks: CallbackRegistry = field(default_factory=CallbackRegistry, repr=False)
    _timer: threading.Timer | None = field(default=None, repr=False)

    @classmethod
    def background(cls) -> CancellationToken:
        """Return a fresh token that nobody else holds, so it is never cancelled."""
        return cls()

    def cancel(self) -> None:
        """Request cancellation. Subsequent calls are no-ops."""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            timer, self._timer = self._timer, None

        if timer is not None:
            timer.cancel()

        for error in self._callbacks.invoke_all():
            logger.warning(
                "Cancellation callback failed.",
                event="cancellation.callback.failed",
                exc_info=error,
            )
        self._callbacks.clear()

    def is_cancelled(self) -> bool:
        """Return True if cancellation was requested."""
        return self._event.is_set()

    def check(self) -> None:
        """Raise CancelledError if cancelled."""
        if self.is_cancelled():
            raise CancelledError("operation was cancelled")

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or timeout expires.

        Returns:
            True if the token was cancelled.
        """
        return self._event.wait(timeout=timeout)

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` when cancellation is requested.

        If the token is already cancelled the callback runs immediately in
        the calling thread.

        Returns:
            A function that unregisters the callback.
        """
        with self._lock:
            cancelled = self._event.is_set()
            if not cancelled:
                self._callbacks.register(callback)

        if cancelled:
            callback()
            return _noop

        def unregister() -> None:
            self._callbacks.unregister(callback)

        return unregister

    def child(self) -> CancellationToken:
        """Create a child token that cancels when this token cancels."""
        token = CancellationToken()
        unregister = self.on_cancel(token.cancel)
        _ = token.on_cancel(unregister)
        return token

    def with_timeout(self, seconds: float) -> CancellationToken:
        """Create a child token that also cancels itself after ``seconds``."""
        if seconds < 0:
            msg = "timeout must be non-negative"
            raise ValueError(msg)
        token = self.child()
        timer = threading.Timer(seconds, token.cancel)
        timer.daemon = True
        with token._lock:
            if token._event.is_set():
                return token
            token._timer = timer
        timer.start()
        return token


def _noop() -> None:
    pass


__all__ = [
    "CancellationToken",
]
