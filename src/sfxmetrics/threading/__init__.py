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

"""Threading primitives shared by the reporter, scheduler and client.

- **Cancellation**: :class:`CancellationToken`, the stock :class:`Cancellable`,
  carries the caller's intent to abandon a report cycle down into the network
  submission.
- **Coordination**: :class:`SystemGate` and :class:`CallbackRegistry`.
- **Execution**: :class:`BackgroundWorker` owns one daemon thread.

Example::

    from sfxmetrics.threading import CancellationToken

    token = CancellationToken().with_timeout(5.0)
    reporter.report(token)
"""

from __future__ import annotations

from sfxmetrics.threading._callback_registry import CallbackRegistry
from sfxmetrics.threading._cancellation import CancellationToken
from sfxmetrics.threading._gate import SystemGate
from sfxmetrics.threading._types import Cancellable
from sfxmetrics.threading._worker import BackgroundWorker

__all__ = [
    "BackgroundWorker",
    "CallbackRegistry",
    "Cancellable",
    "CancellationToken",
    "SystemGate",
]
