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

"""Metrics whose value lives outside the metric.

Each wrapped metric reads through a :class:`~sfxmetrics.values.Getter` at
snapshot time. A getter that raises, or returns something that cannot be
coerced to an int64, makes the metric skip the cycle; the reason is logged at
DEBUG and never propagated to the reporter.
"""

from __future__ import annotations

from collections.abc import Mapping

from ..clock import now_millis
from ..datapoint import DataPoint, MetricType
from ..logging import StructuredLogger, get_logger
from ..values import Getter, Subtractor, Uint64, to_int64
from ._primitives import raise_watermark
from ._types import copy_dimensions, require_name, require_non_negative

logger: StructuredLogger = get_logger(__name__, context={"component": "metrics"})


def _read_int64(metric: str, getter: Getter) -> int | None:
    try:
        return to_int64(getter.get())
    except Exception as error:  # getters are user code
        logger.debug(
            "Wrapped metric skipped this cycle.",
            event="metric.snapshot.skipped",
            context={
                "metric": metric,
                "error": repr(error),
            },
        )
        return None


class WrappedGauge:
    """Gauge reading its value from a getter on every snapshot."""

    def __init__(
        self,
        metric: str,
        value: Getter,
        dimensions: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__()
        self.metric = require_name(metric)
        self.value = value
        self.dimensions = copy_dimensions(dimensions)

    def snapshot(self) -> DataPoint | None:
        value = _read_int64(self.metric, self.value)
        if value is None:
            return None
        return DataPoint(
            self.metric,
            MetricType.GAUGE,
            value,
            now_millis(),
            self.dimensions,
        )

    def post_report(self, reported_value: int) -> None:
        del reported_value

    def __repr__(self) -> str:
        return f"WrappedGauge({self.metric!r}, {self.value!r})"


class WrappedCounter:
    """Delta counter over external storage.

    The storage must support atomic subtraction; after a successful report
    the reported value is subtracted from it, exactly like :class:`Counter`.
    Zero and negative readings are not reported.

    Example::

        requests = Uint64()
        reporter.track(WrappedCounter("http.requests", requests))
        requests.inc()  # from any thread
    """

    def __init__(
        self,
        metric: str,
        value: Subtractor,
        dimensions: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__()
        self.metric = require_name(metric)
        self.value = value
        self.dimensions = copy_dimensions(dimensions)

    def snapshot(self) -> DataPoint | None:
        value = _read_int64(self.metric, self.value)
        if value is None or value <= 0:
            return None
        return DataPoint(
            self.metric,
            MetricType.COUNTER,
            value,
            now_millis(),
            self.dimensions,
        )

    def post_report(self, reported_value: int) -> None:
        self.value.subtract(require_non_negative(reported_value, "counter"))

    def __repr__(self) -> str:
        return f"WrappedCounter({self.metric!r}, {self.value!r})"


class WrappedCumulativeCounter:
    """Running total read from a getter, with its own watermark.

    The external value is never modified; ``post_report`` only advances the
    watermark so an unchanged total is not resent.
    """

    def __init__(
        self,
        metric: str,
        value: Getter,
        dimensions: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__()
        self.metric = require_name(metric)
        self.value = value
        self.dimensions = copy_dimensions(dimensions)
        self._previous_reported = Uint64(0)

    @property
    def previous_reported(self) -> int:
        return self._previous_reported.load()

    def snapshot(self) -> DataPoint | None:
        value = _read_int64(self.metric, self.value)
        if value is None or value < 0:
            return None
        if value == self._previous_reported.load():
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
            f"WrappedCumulativeCounter({self.metric!r}, {self.value!r}, "
            f"previous_reported={self.previous_reported})"
        )


__all__ = [
    "WrappedCounter",
    "WrappedCumulativeCounter",
    "WrappedGauge",
]
