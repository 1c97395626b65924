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

"""Cancellation protocol accepted by the reporter and submitters."""

from __future__ import annotations

from collections.abc import Callable
from typing import Protocol, runtime_checkable


@runtime_checkable
class Cancellable(Protocol):
    """Protocol for cooperative cancellation.

    A cancellable is handed down a call chain (``Reporter.report`` into
    ``Submitter.submit``) so the caller can abandon the operation. Callees
    check it before starting work and may register a callback to interrupt
    blocking waits.
    """

    def cancel(self) -> None:
        """Request cancellation."""
        ...

    def is_cancelled(self) -> bool:
        """Return True if cancellation was requested."""
        ...

    def check(self) -> None:
        """Raise :class:`~sfxmetrics.errors.CancelledError` if cancelled."""
        ...

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run ``callback`` once cancellation is requested.

        Returns:
            A zero-argument function that unregisters the callback.
        """
        ...


__all__ = [
    "Cancellable",
]
