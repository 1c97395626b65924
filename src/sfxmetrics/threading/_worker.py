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

"""Managed daemon threads."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field


@dataclass
class BackgroundWorker:
    """Managed daemon thread with lifecycle control.

    Used for the scheduler loop of :class:`~sfxmetrics.background.Background`
    and for the per-request helper threads of the submission client. The
    worker does not know how to ask its target to finish; callers signal
    shutdown through their own channel and then :meth:`join`.

    Example::

        worker = BackgroundWorker(loop, name="sfxmetrics-background")
        worker.start()

        # Later, after signalling the loop to exit...
        worker.join(timeout=10.0)
    """

    target: Callable[[], None]
    name: str = "worker"
    daemon: bool = True
    _thread: threading.Thread | None = field(default=None, repr=False)
    _started: bool = field(default=False, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def start(self) -> None:
        """Start the background worker thread.

        Raises:
            RuntimeError: If the worker was already started.
        """
        with self._lock:
            if self._started:
                msg = "Worker already started"
                raise RuntimeError(msg)

            self._thread = threading.Thread(
                target=self.target,
                name=self.name,
                daemon=self.daemon,
            )
            self._thread.start()
            self._started = True

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the worker thread to finish.

        Returns:
            True if the thread finished, False if still running.
        """
        with self._lock:
            thread = self._thread

        if thread is None:
            return True
        if thread is threading.current_thread():
            return False

        thread.join(timeout=timeout)
        return not thread.is_alive()

    @property
    def running(self) -> bool:
        """Return True if the worker was started and is still running."""
        with self._lock:
            if self._thread is None:
                return False
            return self._thread.is_alive()


__all__ = [
    "BackgroundWorker",
]
