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

"""Base exception hierarchy for :mod:`sfxmetrics`."""

from __future__ import annotations


class SfxError(Exception):
    """Base class for all sfxmetrics exceptions.

    Callers can catch every library-specific failure with a single handler
    while standard Python exceptions propagate normally.

    Example:
        Reporting without letting a flaky ingest endpoint crash the caller::

            try:
                reporter.report()
            except SfxError as e:
                logger.warning("Report failed: %s", e)

    Note:
        Subclasses also inherit from standard exception types (``TypeError``,
        ``ValueError``, ``RuntimeError``) so they can be caught by handlers
        expecting those.
    """


class IllegalTypeError(SfxError, TypeError):
    """Raised when a value cannot be coerced to the requested kind.

    Getters may only produce ``None``, an ``int`` within the 64-bit range, a
    ``float``, a ``str`` or a reference to one of those. Anything else
    (including ``bool``) is rejected.
    """


class ValueOverflowError(IllegalTypeError):
    """Raised when an unsigned value does not fit into a signed int64.

    Counters hold unsigned 64-bit values but the wire format carries signed
    int64. Values in ``[2**63, 2**64)`` are valid storage but cannot be
    reported; the metric suppresses its data point until the value drains
    below ``2**63``.
    """


class NoMetricNameError(SfxError, ValueError):
    """Raised when a metric or bucket is constructed with an empty name."""


class NegativeReportError(SfxError, RuntimeError):
    """Raised when a counter-like metric is acknowledged with a negative value.

    Counter snapshots never produce negative values, so this indicates a
    programming error in the code driving ``post_report``. It is not meant to
    be caught.
    """


class SubmissionError(SfxError, RuntimeError):
    """Base class for failures while submitting data points.

    A submission error means nothing was acknowledged: the reporter skips all
    post-report hooks so counters keep their pending deltas for the next cycle.
    """


class MarshalError(SubmissionError):
    """Raised when data points cannot be encoded into the wire format."""


class PostError(SubmissionError):
    """Raised when the HTTP request could not be sent or no response arrived."""


class ResponseError(SubmissionError):
    """Raised when the HTTP response body could not be read."""


class StatusError(SubmissionError):
    """Raised when the ingest endpoint answers with a non-200 status.

    Attributes:
        status_code: HTTP status code returned by the endpoint.
        body: Raw response body.
    """

    def __init__(self, status_code: int, body: bytes) -> None:
        self.status_code = status_code
        self.body = body
        super().__init__(
            f"{body.decode('utf-8', errors='replace')}: invalid status code: {status_code}"
        )


class InvalidBodyError(SubmissionError):
    """Raised when a 200 response carries anything other than the JSON ``"OK"``.

    Attributes:
        body: The response body, decoded when it was valid JSON text.
    """

    def __init__(self, body: str) -> None:
        self.body = body
        super().__init__(body)


class CancelledError(SfxError, RuntimeError):
    """Raised when a report or submission is cancelled through its token.

    Cancellation has the same effect as a failed submission (no post-report
    hooks run) but is not a failure of the endpoint.
    """


class BackgroundJobNotStartedError(SfxError, RuntimeError):
    """Raised when controlling a :class:`~sfxmetrics.background.Background` that was stopped."""


class BackgroundReporterNotStartedError(SfxError, RuntimeError):
    """Raised when controlling a background reporter that is not running."""


__all__ = [
    "BackgroundJobNotStartedError",
    "BackgroundReporterNotStartedError",
    "CancelledError",
    "IllegalTypeError",
    "InvalidBodyError",
    "MarshalError",
    "NegativeReportError",
    "NoMetricNameError",
    "PostError",
    "ResponseError",
    "SfxError",
    "StatusError",
    "SubmissionError",
    "ValueOverflowError",
]
