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

"""Registry of tracked metrics and the report cycle.

A :class:`Reporter` owns the set of metrics, buckets and callbacks that make
up one stream of data points. :meth:`Reporter.report` runs a single cycle:

1. pre-report callbacks refresh any state the metrics read;
2. every tracked metric is snapshotted;
3. data point callbacks and buckets contribute ad-hoc points;
4. the batch is submitted, and only on success does each snapshotted metric
   receive ``post_report`` with the value it reported.

The registry lock is held for the whole cycle, so at most one cycle runs at a
time and the tracked set cannot change underneath it.

Example::

    reporter = Reporter(new_config(), {"service": "api"})
    requests = Counter("http.requests")
    reporter.track(requests)

    requests.inc()
    reporter.report()
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType, TracebackType
from typing import Any, Self

from .client import Client, Submitter
from .clock import SYSTEM_CLOCK, WallClock, now_millis
from .config import Config, new_config
from .datapoint import DataPoint
from .errors import CancelledError
from .logging import StructuredLogger, get_logger
from .metrics import Bucket, Metric
from .threading import Cancellable, CancellationToken

__all__ = [
    "DataPointCallback",
    "PreReportCallback",
    "Reporter",
]

type PreReportCallback = Callable[[], None]
type DataPointCallback = Callable[[dict[str, str]], Iterable[DataPoint] | None]

logger: StructuredLogger = get_logger(__name__, context={"component": "reporter"})


class Reporter:
    """Tracks metrics and submits their snapshots.

    Args:
        config: Client configuration; defaults to :func:`new_config`.
        default_dimensions: Dimensions added to every data point. A metric's
            own dimension wins over a default with the same key.
        submitter: Destination for the batches. Defaults to a
            :class:`~sfxmetrics.client.Client` built from ``config``, which
            the reporter then owns and closes.
        clock: Wall clock stamping data points that carry no timestamp, so
            the returned batch matches what was sent.
    """

    def __init__(
        self,
        config: Config | None = None,
        default_dimensions: Mapping[str, str] | None = None,
        *,
        submitter: Submitter | None = None,
        clock: WallClock = SYSTEM_CLOCK,
    ) -> None:
        super().__init__()
        self._clock = clock
        self.config = config if config is not None else new_config()
        self._owns_submitter = submitter is None
        self._submitter: Submitter = (
            submitter if submitter is not None else Client(self.config, clock=clock)
        )
        self._default_dimensions = dict(default_dimensions or {})
        self._lock = threading.Lock()
        self._metrics: dict[int, Metric] = {}
        self._buckets: dict[int, Bucket] = {}
        self._pre_report_callbacks: list[PreReportCallback] = []
        self._datapoint_callbacks: list[DataPointCallback] = []

    @property
    def default_dimensions(self) -> Mapping[str, str]:
        with self._lock:
            return MappingProxyType(dict(self._default_dimensions))

    @property
    def tracked(self) -> tuple[Metric, ...]:
        """Tracked metrics in tracking order."""
        with self._lock:
            return tuple(self._metrics.values())

    @property
    def buckets(self) -> tuple[Bucket, ...]:
        with self._lock:
            return tuple(self._buckets.values())

    def track(self, *metrics: Metric) -> None:
        """Start reporting ``metrics``. Tracking the same object twice is a no-op."""
        with self._lock:
            for metric in metrics:
                _ = self._metrics.setdefault(id(metric), metric)

    def untrack(self, *metrics: Metric) -> None:
        """Stop reporting ``metrics``; unknown metrics are ignored."""
        with self._lock:
            for metric in metrics:
                _ = self._metrics.pop(id(metric), None)

    def new_bucket(
        self, metric: str, dimensions: Mapping[str, str] | None = None
    ) -> Bucket:
        """Create a :class:`Bucket` reported by this registry until removed.

        Raises:
            NoMetricNameError: If ``metric`` is empty.
        """
        bucket = Bucket(metric, dimensions)
        with self._lock:
            self._buckets[id(bucket)] = bucket
        return bucket

    def remove_bucket(self, *buckets: Bucket) -> None:
        with self._lock:
            for bucket in buckets:
                _ = self._buckets.pop(id(bucket), None)

    def add_pre_report_callback(self, callback: PreReportCallback) -> None:
        """Run ``callback`` at the start of every cycle, before any snapshot."""
        with self._lock:
            self._pre_report_callbacks.append(callback)

    def remove_pre_report_callback(self, callback: PreReportCallback) -> None:
        with self._lock:
            if callback in self._pre_report_callbacks:
                self._pre_report_callbacks.remove(callback)

    def add_data_point_callback(self, callback: DataPointCallback) -> None:
        """Add ad-hoc data points to every cycle.

        ``callback`` receives a copy of the default dimensions and returns the
        data points to append (or ``None``). Those points never receive a
        post-report acknowledgement.
        """
        with self._lock:
            self._datapoint_callbacks.append(callback)

    def report(self, token: Cancellable | None = None) -> list[DataPoint]:
        """Run one report cycle and return the submitted data points.

        An empty cycle returns ``[]`` without contacting the submitter.

        Raises:
            CancelledError: ``token`` was cancelled before or during submission.
            SubmissionError: The submitter rejected the batch. No metric
                receives ``post_report``, so pending deltas carry over.
        """

        token = token if token is not None else CancellationToken.background()
        token.check()

        with self._lock:
            logger.debug(
                "Report cycle started.",
                event="reporter.report.start",
                context={
                    "tracked": len(self._metrics),
                    "buckets": len(self._buckets),
                },
            )
            for callback in self._pre_report_callbacks:
                callback()

            defaults = dict(self._default_dimensions)
            points: list[DataPoint] = []
            acknowledgements: list[tuple[Metric, Any]] = []

            for metric in self._metrics.values():
                point = metric.snapshot()
                if point is None:
                    continue
                points.append(point.with_default_dimensions(defaults))
                acknowledgements.append((metric, point.value))

            for callback in self._datapoint_callbacks:
                extra = callback(dict(defaults))
                if extra is not None:
                    points.extend(extra)

            for bucket in self._buckets.values():
                points.extend(bucket.snapshot(defaults))

            now = now_millis(self._clock)
            points = [
                _stamped(point, now).for_wire() for point in points if point.metric
            ]
            if not points:
                logger.debug(
                    "Nothing to report.",
                    event="reporter.report.empty",
                )
                return []

            try:
                self._submitter.submit(points, token)
            except CancelledError:
                logger.debug(
                    "Report cycle cancelled.",
                    event="reporter.report.cancelled",
                    context={"datapoints": len(points)},
                )
                raise
            except Exception as error:
                logger.warning(
                    "Report submission failed.",
                    event="reporter.report.failed",
                    context={
                        "datapoints": len(points),
                        "error": repr(error),
                    },
                )
                raise

            for metric, value in acknowledgements:
                metric.post_report(value)

            logger.info(
                "Report submitted.",
                event="reporter.report.submitted",
                context={"datapoints": len(points)},
            )
            return points

    def close(self) -> None:
        """Close the submitter if the reporter created it."""
        if self._owns_submitter and isinstance(self._submitter, Client):
            self._submitter.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()


def _stamped(point: DataPoint, now: int) -> DataPoint:
    return point if point.timestamp is not None else point.with_timestamp(now)
