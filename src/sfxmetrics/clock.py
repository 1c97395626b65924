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

"""Controllable time abstractions for timestamps and scheduling.

There are two distinct time domains:

- **Monotonic time** (float seconds): used by the background scheduler to
  place ticks. Guaranteed to never go backwards.

- **Wall-clock time** (UTC datetime): used to stamp data points. Data point
  timestamps are integer milliseconds since the Unix epoch, see
  :func:`epoch_millis`.

Example (production)::

    from sfxmetrics.clock import SYSTEM_CLOCK, epoch_millis

    stamp = epoch_millis(SYSTEM_CLOCK.utcnow())

Example (testing)::

    from sfxmetrics.clock import FakeClock

    clock = FakeClock()
    clock.advance(1.5)
    assert epoch_millis(clock.utcnow()) == 1704067201500
"""

from __future__ import annotations

import threading
import time as _time
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Final, Protocol, runtime_checkable

_EPOCH: Final[datetime] = datetime(1970, 1, 1, tzinfo=UTC)


@runtime_checkable
class MonotonicClock(Protocol):
    """Protocol for monotonic time measurement."""

    def monotonic(self) -> float:
        """Return monotonic time in seconds."""
        ...


@runtime_checkable
class WallClock(Protocol):
    """Protocol for wall-clock time measurement.

    Wall clocks can jump (NTP adjustments) and must not be used for measuring
    durations.
    """

    def utcnow(self) -> datetime:
        """Return current UTC datetime (timezone-aware)."""
        ...


@runtime_checkable
class Clock(MonotonicClock, WallClock, Protocol):
    """Unified clock combining monotonic and wall-clock time."""

    pass


@dataclass(frozen=True, slots=True)
class SystemClock:
    """Production clock delegating to :func:`time.monotonic` and ``datetime.now(UTC)``."""

    def monotonic(self) -> float:
        """Return monotonic time from time.monotonic()."""
        return _time.monotonic()

    def utcnow(self) -> datetime:
        """Return current UTC datetime."""
        return datetime.now(UTC)


# Module-level singleton for production use
SYSTEM_CLOCK: Final[Clock] = SystemClock()
"""Default system clock instance.

Tests can inject :class:`FakeClock` instead for deterministic timestamps.
"""


@dataclass
class FakeClock:
    """Controllable clock for deterministic testing.

    Both monotonic and wall-clock time advance together when ``advance()``
    is called.

    Thread-safety:
        All operations are thread-safe.
    """

    _monotonic: float = 0.0
    _wall: datetime = field(default_factory=lambda: datetime(2024, 1, 1, tzinfo=UTC))
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def monotonic(self) -> float:
        """Return current monotonic time."""
        with self._lock:
            return self._monotonic

    def utcnow(self) -> datetime:
        """Return current wall-clock time."""
        with self._lock:
            return self._wall

    def advance(self, seconds: float) -> None:
        """Advance both clocks by the given duration.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            msg = "Cannot advance time by negative seconds"
            raise ValueError(msg)
        with self._lock:
            self._monotonic += seconds
            self._wall += timedelta(seconds=seconds)

    def set_wall(self, value: datetime) -> None:
        """Set wall-clock time to an absolute, timezone-aware value."""
        if value.tzinfo is None:
            msg = "Wall clock time must be timezone-aware"
            raise ValueError(msg)
        with self._lock:
            self._wall = value


def epoch_millis(moment: datetime) -> int:
    """Return ``moment`` as integer milliseconds since the Unix epoch."""

    if moment.tzinfo is None:
        msg = "epoch_millis requires a timezone-aware datetime"
        raise ValueError(msg)
    delta = moment - _EPOCH
    return (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000


def now_millis(clock: WallClock = SYSTEM_CLOCK) -> int:
    """Return the clock's current time in epoch milliseconds."""

    return epoch_millis(clock.utcnow())


__all__ = [
    "SYSTEM_CLOCK",
    "Clock",
    "FakeClock",
    "MonotonicClock",
    "SystemClock",
    "WallClock",
    "epoch_millis",
    "now_millis",
]
