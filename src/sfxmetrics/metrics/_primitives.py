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

"""Metric primitives holding their own value.

Every primitive keeps its numeric state in an atomic integer from
:mod:`sfxmetrics.values`, so application threads can mutate it while the
reporter snapshots it.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping

from ..clock import now_millis
from ..datapoint import DataPoint, MetricType
from ..values import MAX_INT64, MAX_UINT64, Int64, Uint64, to_int64
from ._types import copy_dimensions, require_name, require_non_negative


def _check_unsigned(value: int, what: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"{what} must be an int, got {type(value).__name__}")
    if value < 0 or value > MAX_UINT64:
        raise ValueError(f"{what} must fit in an unsigned 64-bit integer: {value}")
    return value


def raise_watermark(watermark: Uint64, reported: int) -> None:
    """Advance ``watermark`` to ``max(watermark, reported)``.

    Compare-and-swap loop: a stale or duplicate acknowledgement never moves
    the watermark backward.
    """

    previous = watermark.load()
    while reported > previous:
        if watermark.compare_and_swap(previous, reported):
            return
        previous = watermark.load()


class Gauge:
    """Point-in-time value reported at every cycle.

    Example::

        queue_depth = Gauge("queue.depth", {"queue": "ingest"})
        queue_depth.record(12)
        reporter.track(queue_depth)
    """

    def __init__(
        self,
        metric: str,
        dimensions: Mapping[str, str] | None = None,
        value: int = 0,
    ) -> None:
        super().__init__()
        self.metric = require_name(metric)
        self.dimensions = copy_dimensions(dimensions)
        self._value = Int64(to_int64(value))

    def record(self, value: int) -> None:
        """Store ``value`` as the current reading."""
        self._value.set(to_int64(value))

    def inc(self, delta: int = 1) -> int:
        """Add ``delta`` to the current reading and return the new value."""
        return self._value.inc(delta)

    def dec(self, delta: int = 1) -> int:
        """Subtract ``delta`` from the current reading and return the new value."""
        return self._value.subtract(delta)

    @property
    def value(self) -> int:
        return self._value.load()

    def snapshot(self) -> DataPoint:
        return DataPoint(
            self.metric,
            MetricType.GAUGE,
            self._value.load(),
            now_millis(),
            self.dimensions,
        )

    def post_report(self, reported_value: int) -> None:
        del reported_value  # gauges carry no acknowledgement state

    def __repr__(self) -> str:
        return f"Gauge({self.metric!r}, value={self.value})"


class StableGauge:
    """Gauge that only reports when its value changed since the last report.

    The first snapshot always emits, whatever the value. A failed submission
    does not update the last reported value, so the same reading is offered
    again on the next cycle.
    """

    def __init__(
        self,
        metric: str,
        dimensions: Mapping[str, str] | None = None,
        value: int = 0,
    ) -> None:
        super().__init__()
        self._gauge = Gauge(metric, dimensions, value)
        self._lock = threading.Lock()
        self._last_reported = 0
        self._has_reported = False

    @property
    def metric(self) -> str:
        return self._gauge.metric

    @property
    def dimensions(self) -> dict[str, str]:
        return self._gauge.dimensions

    @dimensions.setter
    def dimensions(self, value: Mapping[str, str]) -> None:
        self._gauge.dimensions = dict(value)

    def record(self, value: int) -> None:
        self._gauge.record(value)

    @property
    def value(self) -> int:
        return self._gauge.value

    def snapshot(self) -> DataPoint | None:
        point = self._gauge.snapshot()
        with self._lock:
            if self._has_reported and point.value == self._last_reported:
                return None
        return point

    def post_report(self, reported_value: int) -> None:
        with self._lock:
            self._last_reported = reported_value
            self._has_reported = True

    def __repr__(self) -> str:
        return f"StableGauge({self.metric!r}, value={self.value})"


class Counter:
    """Delta counter drained by subtraction after each successful report.

    ``snapshot()`` reads the accumulated value without resetting it; after
    the batch was acknowledged, ``post_report(v)`` subtracts exactly ``v``.
    Increments that land between the two survive into the next cycle, and
    nothing is lost when a submission fails.

    Values at or above ``2**63`` cannot be encoded; the counter stays silent
    until it drains below that bound.
    """

    def __init__(
        self,
        metric: str,
        dimensions: Mapping[str, str] | None = None,
        value: int = 0,
    ) -> None:
        super().__init__()
        self.metric = require_name(metric)
        self.dimensions = copy_dimensions(dimensions)
        self._value = Uint64(_check_unsigned(value, "initial value"))

    def inc(self, delta: int = 1) -> int:
        """Add a non-negative ``delta`` and return the new value."""
        if delta < 0:
            msg = "counter increments must be non-negative"
            raise ValueError(msg)
        return self._value.inc(delta)

    @property
    def value(self) -> int:
        return self._value.load()

    def snapshot(self) -> DataPoint | None:
        value = self._value.load()
        if value == 0 or value > MAX_INT64:
            return None
        return DataPoint(
            self.metric,
            MetricType.COUNTER,
            value,
            now_millis(),
            self.dimensions,
        )

    def post_report(self, reported_value: int) -> None:
        self._value.subtract(require_non_negative(reported_value, "counter"))

    def __repr__(self) -> str:
        return f"Counter({self.metric!r}, value={self.value})"


class CumulativeCounter:
    """Monotone running total; the ingest side computes the deltas.

    A watermark remembers the highest acknowledged value. Snapshots equal to
    the watermark are suppressed, so an idle counter sends nothing.
    """

    def __init__(
        self,
        metric: str,
        dimensions: Mapping[str, str] | None = None,
        value: int = 0,
    ) -> None:
        super().__init__()
        self.metric = require_name(metric)
        self.dimensions = copy_dimensions(dimensions)
        self._current = Uint64(_check_unsigned(value, "initial value"))
        self._previous_reported = Uint64(0)

    def sample(self, value: int) -> None:
        """Store the latest observed total."""
        self._current.set(_check_unsigned(value, "sample"))

    def inc(self, delta: int = 1) -> int:
        """Add a non-negative ``delta`` to the running total."""
        if delta < 0:
            msg = "cumulative counter increments must be non-negative"
            raise ValueError(msg)
        return self._current.inc(delta)

    @property
    def value(self) -> int:
        return self._current.load()

    @property
    def previous_reported(self) -> int:
        return self._previous_reported.load()

    def snapshot(self) -> DataPoint | None:
        previous = self._previous_reported.load()
        value = self._current.load()
        if value == previous or value > MAX_INT64:
            return None
        return DataPoint(
            self.metric,
            MetricType.CUMULATIVE_COUNTER,
            value,
            now_millis(),
            self.dimensions,
        )

    def post_report(self, reported_value: int) -> None:
        raise_watermark(
            self._previous_reported,
            require_non_negative(reported_value, "cumulative counter"),
        )

    def __repr__(self) -> str:
        return (
            f"CumulativeCounter({self.metric!r}, value={self.value}, "
            f"previous_reported={self.previous_reported})"
        )


__all__ = [
    "Counter",
    "CumulativeCounter",
    "Gauge",
    "StableGauge",
    "raise_watermark",
]
