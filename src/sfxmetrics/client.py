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

"""HTTP submission of data points to the ingest endpoint.

:class:`Client` posts protobuf-encoded batches with :mod:`httpx`. Each request
runs on a helper thread while the caller waits for the response, the
cancellation of its token or the configured timeout, whichever comes first.
A cancelled or timed-out caller closes the in-flight response, which aborts
a body read still in progress, and returns immediately; a response that
arrives later is closed unread.

Example::

    with Client(new_config()) as client:
        client.submit([DataPoint("requests", MetricType.COUNTER, 3)])
"""

from __future__ import annotations

import json
import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from types import TracebackType
from typing import Final, Protocol, Self, runtime_checkable

import httpx
from google.protobuf.message import EncodeError

from .clock import SYSTEM_CLOCK, WallClock, epoch_millis
from .config import Config
from .datapoint import DataPoint
from .errors import (
    CancelledError,
    IllegalTypeError,
    InvalidBodyError,
    MarshalError,
    PostError,
    ResponseError,
    StatusError,
    SubmissionError,
)
from .logging import StructuredLogger, get_logger
from .proto import encode_datapoints
from .threading import BackgroundWorker, Cancellable, CancellationToken, SystemGate

__all__ = [
    "CONTENT_TYPE",
    "Client",
    "Submitter",
]

CONTENT_TYPE: Final[str] = "application/x-protobuf"
_SUCCESS_BODY: Final[str] = "OK"

logger: StructuredLogger = get_logger(__name__, context={"component": "client"})


@runtime_checkable
class Submitter(Protocol):
    """Anything able to deliver a batch of data points.

    ``submit`` returns normally only when the whole batch was acknowledged
    and raises otherwise. Implementations must honour ``token``: once it is
    cancelled, ``submit`` raises :class:`~sfxmetrics.errors.CancelledError`
    without waiting for the network.
    """

    def submit(
        self,
        datapoints: Sequence[DataPoint],
        token: Cancellable | None = None,
    ) -> None: ...


@dataclass(slots=True)
class _Attempt:
    """Result slot shared between the caller and the helper thread.

    Exactly one side wins: either the helper calls :meth:`complete` first and
    the caller reads the result, or the caller calls :meth:`abandon` first and
    the helper drops whatever it gets.
    """

    gate: SystemGate = field(default_factory=SystemGate)
    lock: threading.Lock = field(default_factory=threading.Lock)
    response: httpx.Response | None = None
    status_code: int | None = None
    body: bytes = b""
    error: SubmissionError | None = None
    done: bool = False
    abandoned: bool = False

    def attach(self, response: httpx.Response) -> bool:
        """Expose the in-flight response to :meth:`abandon`; False if too late."""
        with self.lock:
            if self.abandoned:
                return False
            self.response = response
            return True

    def complete(
        self, status_code: int | None, body: bytes, error: SubmissionError | None
    ) -> None:
        with self.lock:
            if not self.abandoned:
                self.done = True
                self.status_code = status_code
                self.body = body
                self.error = error
        self.gate.set()

    def abandon(self) -> bool:
        """Give up on the attempt and close its in-flight response.

        Closing the response aborts a body read in progress on the helper
        thread. Returns False when the helper already completed.
        """
        with self.lock:
            if self.done:
                return False
            self.abandoned = True
            response = self.response
        if response is not None:
            response.close()
        return True

    def interrupt(self) -> None:
        _ = self.abandon()
        self.gate.set()


class Client:
    """Submitter posting to ``config.url`` with :mod:`httpx`.

    Args:
        config: Connection settings. The client keeps its own reference; use
            :meth:`Config.update` to derive a different configuration.
        transport: Optional httpx transport, e.g. :class:`httpx.MockTransport`
            in tests. Connection limits and TLS settings only apply to the
            default transport.
        clock: Wall clock used to stamp data points without a timestamp.
    """

    def __init__(
        self,
        config: Config,
        *,
        transport: httpx.BaseTransport | None = None,
        clock: WallClock = SYSTEM_CLOCK,
    ) -> None:
        super().__init__()
        self.config = config
        self._clock = clock
        timeout = config.timeout_seconds
        self._http = httpx.Client(
            timeout=httpx.Timeout(timeout, connect=timeout, read=timeout),
            limits=httpx.Limits(
                max_keepalive_connections=config.max_idle_connections
            ),
            verify=not config.tls_insecure_skip_verify,
            transport=transport,
        )

    @property
    def headers(self) -> dict[str, str]:
        return {
            "Content-Type": CONTENT_TYPE,
            "Connection": "Keep-Alive",
            "User-Agent": self.config.user_agent,
            "X-SF-TOKEN": self.config.auth_token,
        }

    def submit(
        self,
        datapoints: Sequence[DataPoint],
        token: Cancellable | None = None,
    ) -> None:
        """Post ``datapoints`` and verify the endpoint acknowledged them.

        The whole attempt is bounded by ``config.timeout``. Cancelling
        ``token`` mid-request closes the in-flight response, so a body still
        being read is aborted.

        Raises:
            CancelledError: ``token`` was cancelled before or during the request.
            MarshalError: A data point could not be encoded.
            PostError: The request failed, or no response arrived in time.
            ResponseError: The response body could not be read.
            StatusError: The endpoint answered with a status other than 200.
            InvalidBodyError: The 200 response body was not the JSON ``"OK"``.
        """

        token = token if token is not None else CancellationToken.background()
        token.check()

        try:
            payload = encode_datapoints(datapoints, epoch_millis(self._clock.utcnow()))
        except (IllegalTypeError, EncodeError, ValueError) as error:
            raise MarshalError(f"Unable to marshal data points: {error}") from error

        request = self._http.build_request(
            "POST", self.config.url, content=payload, headers=self.headers
        )
        attempt = _Attempt()
        unregister = token.on_cancel(attempt.interrupt)
        worker = BackgroundWorker(
            lambda: self._send(request, attempt), name="sfxmetrics-submit"
        )
        try:
            worker.start()
            _ = attempt.gate.wait(timeout=self.config.timeout_seconds)
        finally:
            unregister()

        if attempt.abandon():
            context = {"datapoints": len(datapoints)}
            if token.is_cancelled():
                logger.debug(
                    "Submission cancelled while waiting for the endpoint.",
                    event="client.submit.cancelled",
                    context=context,
                )
                raise CancelledError("submission was cancelled")
            logger.debug(
                "Submission timed out.",
                event="client.submit.timeout",
                context={**context, "timeout": self.config.timeout_seconds},
            )
            raise PostError(f"No response within {self.config.timeout_seconds}s")

        if attempt.error is not None:
            raise attempt.error
        assert attempt.status_code is not None
        _check_response(attempt.status_code, attempt.body)

    def _send(self, request: httpx.Request, attempt: _Attempt) -> None:
        response: httpx.Response | None = None
        status_code: int | None = None
        body = b""
        error: SubmissionError | None = None
        try:
            response = self._http.send(request, stream=True)
            if attempt.attach(response):
                status_code = response.status_code
                body = response.read()
        except httpx.HTTPError as exc:
            if response is None:
                error = PostError(f"Unable to POST request: {exc}")
            else:
                error = ResponseError(f"Unable to verify response body: {exc}")
            error.__cause__ = exc
        except Exception as exc:
            error = PostError(f"Unable to POST request: {exc!r}")
            error.__cause__ = exc
        finally:
            if response is not None:
                response.close()
            attempt.complete(status_code, body, error)

    def close(self) -> None:
        """Release pooled connections."""
        self._http.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.close()


def _check_response(status_code: int, body: bytes) -> None:
    if status_code != httpx.codes.OK:
        raise StatusError(status_code, body)

    text = body.decode("utf-8", errors="replace")
    try:
        decoded = json.loads(text)
    except json.JSONDecodeError as error:
        raise InvalidBodyError(text) from error

    if decoded != _SUCCESS_BODY:
        raise InvalidBodyError(decoded if isinstance(decoded, str) else text)
