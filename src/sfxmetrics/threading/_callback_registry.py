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

"""Thread-safe registry of zero-argument callbacks."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field


@dataclass
class CallbackRegistry:
    """Thread-safe, ordered registry of zero-argument callbacks.

    Callbacks are registered and unregistered under a lock but invoked
    outside of it, so a callback may register or unregister others without
    deadlocking. Cancellation tokens use this to fan out ``cancel()`` to
    waiting submitters and child tokens.

    Example::

        registry = CallbackRegistry()
        registry.register(lambda: print("cancelled"))

        errors = registry.invoke_all()
        for error in errors:
            logger.error("Callback failed", exc_info=error)
    """

    _callbacks: list[Callable[[], None]] = field(default_factory=list, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def register(self, callback: Callable[[], None]) -> None:
        """Register a callback; registration order is invocation order."""
        with self._lock:
            self._callbacks.append(callback)

    def unregister(self, callback: Callable[[], None]) -> None:
        """Unregister a callback. Does nothing if it is not registered."""
        with self._lock:
            try:
                self._callbacks.remove(callback)
            except ValueError:
                pass

    def invoke_all(self) -> list[Exception]:
        """Invoke every callback, collecting exceptions.

        One callback's exception does not prevent the others from running.

        Returns:
            Exceptions raised by callbacks (empty if all succeeded).
        """
        with self._lock:
            callbacks = list(self._callbacks)

        errors: list[Exception] = []
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                errors.append(e)
        return errors

    def clear(self) -> None:
        """Remove all registered callbacks."""
        with self._lock:
            self._callbacks.clear()

    @property
    def count(self) -> int:
        """Number of registered callbacks."""
        with self._lock:
            return len(self._callbacks)


__all__ = [
    "CallbackRegistry",
]
