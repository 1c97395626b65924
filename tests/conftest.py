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

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator

import pytest

from sfxmetrics import Config, Reporter, new_config
from tests.helpers.submitters import CapturingSubmitter

pytest_plugins = ["tests.plugins.threadstress"]


@pytest.fixture
def config() -> Config:
    return new_config(env={"SFX_API_TOKEN": "test-token"})


@pytest.fixture
def submitter() -> CapturingSubmitter:
    return CapturingSubmitter()


@pytest.fixture
def reporter(config: Config, submitter: CapturingSubmitter) -> Iterator[Reporter]:
    with Reporter(config, submitter=submitter) as instance:
        yield instance


@pytest.fixture
def run_threads() -> Callable[[int, Callable[[], None]], None]:
    """Return a runner starting ``count`` threads on ``target`` together."""

    def run(count: int, target: Callable[[], None]) -> None:
        barrier = threading.Barrier(count)

        def worker() -> None:
            _ = barrier.wait()
            target()

        threads = [threading.Thread(target=worker) for _ in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10.0)

    return run
