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

"""Typed configuration for the ingest client."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import timedelta
from typing import Any, Final

from ._version import __version__

__all__ = [
    "AUTH_TOKEN_ENV",
    "DEFAULT_MAX_IDLE_CONNECTIONS",
    "DEFAULT_TIMEOUT",
    "DEFAULT_URL",
    "DEFAULT_USER_AGENT",
    "Config",
    "new_config",
]

AUTH_TOKEN_ENV: Final[str] = "SFX_API_TOKEN"
DEFAULT_MAX_IDLE_CONNECTIONS: Final[int] = 2
DEFAULT_TIMEOUT: Final[timedelta] = timedelta(seconds=60)
DEFAULT_URL: Final[str] = "https://ingest.signalfx.com/v2/datapoint"
DEFAULT_USER_AGENT: Final[str] = f"sfxmetrics/{__version__}"


@dataclass(frozen=True, slots=True)
class Config:
    """Connection settings for :class:`~sfxmetrics.client.Client`.

    Attributes:
        max_idle_connections: Upper bound on keep-alive connections to the
            ingest endpoint.
        timeout: Connect and read timeout for each submission.
        url: Ingest endpoint receiving protobuf data points.
        auth_token: Value of the ``X-SF-TOKEN`` header.
        user_agent: Value of the ``User-Agent`` header.
        tls_insecure_skip_verify: Disable TLS certificate verification.
    """

    max_idle_connections: int = DEFAULT_MAX_IDLE_CONNECTIONS
    timeout: timedelta = DEFAULT_TIMEOUT
    url: str = DEFAULT_URL
    auth_token: str = field(default="", repr=False)
    user_agent: str = DEFAULT_USER_AGENT
    tls_insecure_skip_verify: bool = False

    def __post_init__(self) -> None:
        if self.max_idle_connections < 0:
            msg = "max_idle_connections must be non-negative"
            raise ValueError(msg)
        if self.timeout <= timedelta(0):
            msg = "timeout must be positive"
            raise ValueError(msg)
        if not self.url:
            msg = "url must not be empty"
            raise ValueError(msg)

    @property
    def timeout_seconds(self) -> float:
        return self.timeout.total_seconds()

    def update(self, **changes: Any) -> Config:
        """Return a copy with ``changes`` applied; the receiver is unchanged."""
        return replace(self, **changes)


def new_config(env: Mapping[str, str] | None = None, **overrides: Any) -> Config:
    """Return a :class:`Config` with defaults and the environment's auth token.

    ``SFX_API_TOKEN`` is read from ``env`` (``os.environ`` when omitted).
    Keyword ``overrides`` win over both.
    """

    env = os.environ if env is None else env
    values: dict[str, Any] = {"auth_token": env.get(AUTH_TOKEN_ENV, "")}
    values.update(overrides)
    return Config(**values)
