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

"""Metric protocol shared by every primitive the reporter can track."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol, runtime_checkable

from ..datapoint import DataPoint
from ..errors import NegativeReportError, NoMetricNameError


@runtime_checkable
class Metric(Protocol):
    """Protocol for trackable metrics.

    The reporter drives every tracked metric through the same two-phase
    protocol once per cycle:

    1. ``snapshot()`` captures the observable value, or returns ``None`` when
       the metric has nothing to report this cycle.
    2. After the ingest endpoint acknowledged the batch, ``post_report(v)`` is
       called with the value carried by the snapshot. It is never called when
       the submission failed or when ``snapshot()`` returned ``None``.

    Both methods must tolerate concurrent mutation of the underlying value.
    """

    metric: str
    dimensions: dict[str, str]

    def snapshot(self) -> DataPoint | None:
        """Return the current data point, or None to skip this cycle."""
        ...

    def post_report(self, reported_value: int) -> None:
        """Acknowledge that ``reported_value`` was delivered."""
        ...


def require_name(metric: str) -> str:
    """Return ``metric`` or raise :class:`NoMetricNameError` if it is empty."""

    if not metric:
        raise NoMetricNameError("metric name must not be empty")
    return metric


def require_non_negative(value: int, kind: str) -> int:
    """Guard for counter-like acknowledgements."""

    if value < 0:
        raise NegativeReportError(f"negative {kind} acknowledgement: {value}")
    return value


def copy_dimensions(dimensions: Mapping[str, str] | None) -> dict[str, str]:
    return dict(dimensions) if dimensions else {}


__all__ = [
    "Metric",
    "copy_dimensions",
    "require_name",
    "require_non_negative",
]
