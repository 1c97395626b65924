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

"""Immutable data point snapshots."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import IntEnum
from types import MappingProxyType

from . import dimensions as _dims


class MetricType(IntEnum):
    """Kind of a metric; the integer values are the wire enum values."""

    GAUGE = 0
    COUNTER = 1
    ENUM = 2
    CUMULATIVE_COUNTER = 3


@dataclass(frozen=True, slots=True)
class DataPoint:
    """Point-in-time value of one metric.

    Attributes:
        metric: Metric name.
        metric_type: Kind of the metric.
        value: Reported value. Primitives always produce an int64; ad-hoc
            data point callbacks may also supply a float or a string.
        timestamp: Milliseconds since the Unix epoch, or ``None`` to stamp the
            point when it is serialised.
        dimensions: Read-only mapping of dimension keys to values.
    """

    metric: str
    metric_type: MetricType
    value: int | float | str
    timestamp: int | None = None
    dimensions: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "metric_type", MetricType(self.metric_type))
        object.__setattr__(
            self, "dimensions", MappingProxyType(dict(self.dimensions))
        )

    def with_timestamp(self, timestamp: int) -> DataPoint:
        """Return a copy stamped with ``timestamp``."""
        return replace(self, timestamp=timestamp)

    def with_dimensions(self, dimensions: Mapping[str, str]) -> DataPoint:
        """Return a copy whose dimensions are replaced by ``dimensions``."""
        return replace(self, dimensions=dimensions)

    def with_default_dimensions(self, defaults: Mapping[str, str]) -> DataPoint:
        """Return a copy with ``defaults`` merged underneath its own dimensions."""
        if not defaults:
            return self
        return replace(self, dimensions=_dims.merge(defaults, self.dimensions))

    def for_wire(self) -> DataPoint:
        """Return a copy with wire-filtered, key-normalised dimensions."""
        return replace(self, dimensions=_dims.for_wire(self.dimensions))

    def __hash__(self) -> int:
        return hash(
            (
                self.metric,
                self.metric_type,
                self.value,
                self.timestamp,
                frozenset(self.dimensions.items()),
            )
        )


__all__ = [
    "DataPoint",
    "MetricType",
]
