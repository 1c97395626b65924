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

"""Gate implementation for thread signaling."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field


@dataclass
class SystemGate:
    """Gate backed by :class:`threading.Event`.

    The submission client opens a gate from two sources (request completion
    and token cancellation) and waits on it once.

    Example::

        gate = SystemGate()

        # In worker thread
        if gate.wait(timeout=5.0):
            print("Gate opened!")

        # In control thread
        gate.set()
    """

    _event: threading.Event = field(default_factory=threading.Event, repr=False)

    def set(self) -> None:
        """Open the gate, releasing all waiters."""
        self._event.set()

    def clear(self) -> None:
        """Close the gate."""
        self._event.clear()

    def is_set(self) -> bool:
        """Return True if the gate is open."""
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the gate opens or timeout expires."""
        return self._event.wait(timeout=timeout)


__all__ = [
    "SystemGate",
]
