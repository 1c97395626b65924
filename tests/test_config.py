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

"""Tests for client configuration."""

from __future__ import annotations

from datetime import timedelta

import pytest

from sfxmetrics import Config, new_config
from sfxmetrics.config import (
    AUTH_TOKEN_ENV,
    DEFAULT_MAX_IDLE_CONNECTIONS,
    DEFAULT_TIMEOUT,
    DEFAULT_URL,
    DEFAULT_USER_AGENT,
)


class TestNewConfig:
    """Tests for new_config()."""

    def test_defaults(self) -> None:
        """Without environment or overrides the defaults apply."""
        config = new_config(env={})
        assert config.max_idle_connections == DEFAULT_MAX_IDLE_CONNECTIONS == 2
        assert config.timeout == DEFAULT_TIMEOUT == timedelta(seconds=60)
        assert config.url == DEFAULT_URL
        assert config.user_agent == DEFAULT_USER_AGENT
        assert config.auth_token == ""
        assert config.tls_insecure_skip_verify is False

    def test_token_from_environment(self) -> None:
        """The auth token is read from SFX_API_TOKEN."""
        assert AUTH_TOKEN_ENV == "SFX_API_TOKEN"
        assert new_config(env={AUTH_TOKEN_ENV: "abc"}).auth_token == "abc"

    def test_token_from_process_environment(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """os.environ is used when no mapping is given."""
        monkeypatch.setenv(AUTH_TOKEN_ENV, "from-env")
        assert new_config().auth_token == "from-env"

    def test_overrides_win(self) -> None:
        """Keyword overrides beat the environment."""
        config = new_config(
            env={AUTH_TOKEN_ENV: "abc"}, auth_token="explicit", max_idle_connections=5
        )
        assert config.auth_token == "explicit"
        assert config.max_idle_connections == 5


class TestConfig:
    """Tests for Config validation and copies."""

    def test_update_returns_copy(self) -> None:
        """update() leaves the receiver unchanged."""
        config = new_config(env={})
        updated = config.update(url="http://localhost:9080/v2/datapoint")
        assert config.url == DEFAULT_URL
        assert updated.url == "http://localhost:9080/v2/datapoint"

    def test_token_not_in_repr(self) -> None:
        """The auth token stays out of repr()."""
        assert "secret" not in repr(Config(auth_token="secret"))

    def test_timeout_seconds(self) -> None:
        """timeout_seconds is the timeout as a float."""
        assert Config(timeout=timedelta(milliseconds=1500)).timeout_seconds == 1.5

    @pytest.mark.parametrize(
        "changes",
        [
            {"max_idle_connections": -1},
            {"timeout": timedelta(0)},
            {"url": ""},
        ],
    )
    def test_invalid_values(self, changes: dict[str, object]) -> None:
        """Invalid settings are rejected at construction."""
        with pytest.raises(ValueError):
            _ = Config(**changes)  # type: ignore[arg-type]
