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

"""Metric primitives tracked by :class:`~sfxmetrics.reporter.Reporter`.

Three families share the :class:`Metric` protocol:

- Self-contained primitives (:class:`Gauge`, :class:`StableGauge`,
  :class:`Counter`, :class:`CumulativeCounter`) that own an atomic value.
- Wrapped primitives (:class:`WrappedGauge`, :class:`WrappedCounter`,
  :class:`WrappedCumulativeCounter`) that read a getter at snapshot time.
- :class:`Bucket`, which summarises a distribution as rollups and is owned
  by the reporter that created it.

Example::

    from sfxmetrics.metrics import Counter

    errors = Counter("app.errors", {"service": "api"})
    errors.inc()
    reporter.track(errors)
"""

from __future__ import annotations

from ._bucket import ROLLUP_KEY, Bucket
from ._primitives import (
    Counter,
    CumulativeCounter,
    Gauge,
    StableGauge,
    raise_watermark,
)
from ._types import Metric
from ._wrapped import WrappedCounter, WrappedCumulativeCounter, WrappedGauge

__all__ = [
    "ROLLUP_KEY",
    "Bucket",
    "Counter",
    "CumulativeCounter",
    "Gauge",
    "Metric",
    "StableGauge",
    "WrappedCounter",
    "WrappedCumulativeCounter",
    "WrappedGauge",
    "raise_watermark",
]
