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

"""Distribution summaries reported as five rollups."""

from __future__ import annotations

import threading
from collections.abc import Mapping
from typing import Final

from ..clock import now_millis
from ..datapoint import DataPoint, MetricType
from ..dimensions import merge
from ..values import MAX_INT64, MIN_INT64, to_int64
from ._types import require_name

ROLLUP_KEY: Final[str] = "rollup"


class Bucket:
    """Summary of a stream of integer observations.

    ``count``, ``sum`` and ``sum_of_squares`` accumulate for the lifetime of
    the bucket. ``min`` and ``max`` cover the observations since the last
    snapshot and are ``None`` until something is added. All state sits under
    one per-bucket lock.

    Buckets are created by :meth:`Reporter.new_bucket
    <sfxmetrics.reporter.Reporter.new_bucket>` and are not tracked like other
    metrics: they never receive a post-report acknowledgement.
    """

    def __init__(
        self,
        metric: str,
        dimensions: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__()
        self._metric = require_name(metric)
        self._lock = threading.Lock()
        self._dimensions: dict[str, str] = {}
        self._count = 0
        self._sum = 0
        self._sum_of_squares = 0
        self._min: int | None = None
        self._max: int | None = None
        if dimensions:
            self.set_dimensions(dimensions)

    @property
    def metric(self) -> str:
        return self._metric

    @property
    def dimensions(self) -> dict[str, str]:
        """Copy of the bucket's own dimensions."""
        with self._lock:
            return dict(self._dimensions)

    def set_dimension(self, key: str, value: str) -> None:
        """Add or overwrite one dimension; empty keys or values are ignored."""
        if not key or not value:
            return
        with self._lock:
            self._dimensions[key] = value

    def set_dimensions(self, dimensions: Mapping[str, str]) -> None:
        for key, value in dimensions.items():
            self.set_dimension(key, value)

    def remove_dimension(self, *keys: str) -> None:
        with self._lock:
            for key in keys:
                _ = self._dimensions.pop(key, None)

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    @property
    def sum(self) -> int:
        with self._lock:
            return self._sum

    @property
    def sum_of_squares(self) -> int:
        with self._lock:
            return self._sum_of_squares

    @property
    def min(self) -> int | None:
        with self._lock:
            return self._min

    @property
    def max(self) -> int | None:
        with self._lock:
            return self._max

    def add(self, value: int) -> None:
        """Record one observation."""
        value = to_int64(value)
        with self._lock:
            self._count += 1
            self._sum += value
            self._sum_of_squares += value * value
            if self._count == 1 or self._min is None or value < self._min:
                self._min = value
            if self._count == 1 or self._max is None or value > self._max:
                self._max = value

    def snapshot(
        self, default_dimensions: Mapping[str, str] | None = None
    ) -> list[DataPoint]:
        """Return the rollup data points and reset ``min`` and ``max``.

        ``count``, ``sum`` and ``sumsquare`` are always present. ``.min`` and
        ``.max`` are only present when the bucket is non-empty and saw an
        observation since the previous snapshot. A rollup whose value no
        longer fits in an int64 is left out.
        """

        timestamp = now_millis()
        with self._lock:
            base = merge(default_dimensions, self._dimensions)
            count, total, squares = self._count, self._sum, self._sum_of_squares
            low, self._min = self._min, None
            high, self._max = self._max, None

        def point(metric: str, kind: MetricType, value: int, rollup: str) -> DataPoint:
            return DataPoint(
                metric,
                kind,
                value,
                timestamp,
                {**base, ROLLUP_KEY: rollup},
            )

        points: list[DataPoint] = []
        for rollup, value in (("count", count), ("sum", total), ("sumsquare", squares)):
            if MIN_INT64 <= value <= MAX_INT64:
                points.append(point(self._metric, MetricType.COUNTER, value, rollup))
        if count > 0 and low is not None:
            points.append(point(f"{self._metric}.min", MetricType.GAUGE, low, "min"))
        if count > 0 and high is not None:
            points.append(point(f"{self._metric}.max", MetricType.GAUGE, high, "max"))
        return points

    def __repr__(self) -> str:
        return f"Bucket({self._metric!r}, count={self.count})"


__all__ = [
    "ROLLUP_KEY",
    "Bucket",
]
