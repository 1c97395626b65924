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

"""In-process metrics reported to a SignalFx-compatible ingest endpoint.

Application threads update metric primitives; a :class:`Reporter` snapshots
them and submits protobuf batches. Counters are drained by subtracting what
was acknowledged, so increments racing a report are never lost or counted
twice.

Example::

    from sfxmetrics import BackgroundReporter, Counter, new_config

    reporter = BackgroundReporter(new_config(), {"service": "api"}, 10.0)
    requests = Counter("http.requests")
    reporter.track(requests)
    reporter.start()

    requests.inc()
"""

from __future__ import annotations

from ._version import __version__
from .background import Background, BackgroundReporter, State
from .client import Client, Submitter
from .config import Config, new_config
from .datapoint import DataPoint, MetricType
from .errors import (
    BackgroundJobNotStartedError,
    BackgroundReporterNotStartedError,
    CancelledError,
    IllegalTypeError,
    InvalidBodyError,
    MarshalError,
    NegativeReportError,
    NoMetricNameError,
    PostError,
    ResponseError,
    SfxError,
    StatusError,
    SubmissionError,
    ValueOverflowError,
)
from .logging import configure_logging, get_logger
from .metrics import (
    Bucket,
    Counter,
    CumulativeCounter,
    Gauge,
    Metric,
    StableGauge,
    WrappedCounter,
    WrappedCumulativeCounter,
    WrappedGauge,
)
from .process import ProcessMetrics
from .reporter import Reporter
from .threading import Cancellable, CancellationToken
from .values import GetterFunc, Int32, Int64, Ref, Uint32, Uint64, Value

__all__ = [
    "Background",
    "BackgroundJobNotStartedError",
    "BackgroundReporter",
    "BackgroundReporterNotStartedError",
    "Bucket",
    "Cancellable",
    "CancellationToken",
    "CancelledError",
    "Client",
    "Config",
    "Counter",
    "CumulativeCounter",
    "DataPoint",
    "Gauge",
    "GetterFunc",
    "IllegalTypeError",
    "Int32",
    "Int64",
    "InvalidBodyError",
    "MarshalError",
    "Metric",
    "MetricType",
    "NegativeReportError",
    "NoMetricNameError",
    "PostError",
    "ProcessMetrics",
    "Ref",
    "Reporter",
    "ResponseError",
    "SfxError",
    "StableGauge",
    "State",
    "StatusError",
    "SubmissionError",
    "Submitter",
    "Uint32",
    "Uint64",
    "Value",
    "ValueOverflowError",
    "WrappedCounter",
    "WrappedCumulativeCounter",
    "WrappedGauge",
    "__version__",
    "configure_logging",
    "get_logger",
    "new_config",
]
