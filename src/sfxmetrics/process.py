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

"""Interpreter and process statistics as tracked metrics.

:class:`ProcessMetrics` attaches a fixed set of wrapped metrics to a
reporter. One pre-report callback takes a :mod:`psutil` sample per cycle and
every metric reads its field from that sample, so all of them describe the
same instant. A field that cannot be measured on the current platform (for
example ``num_fds`` on Windows) is skipped like any failing getter.
"""

from __future__ import annotations

import gc
import os
import threading
from dataclasses import dataclass
from typing import Final

import psutil

from .clock import SYSTEM_CLOCK, MonotonicClock
from .logging import StructuredLogger, get_logger
from .metrics import Metric, WrappedCumulativeCounter, WrappedGauge
from .reporter import Reporter
from .values import GetterFunc

__all__ = [
    "PROCESS_DIMENSIONS",
    "ProcessMetrics",
    "ProcessSample",
]

PROCESS_DIMENSIONS: Final[dict[str, str]] = {
    "instance": "global_stats",
    "stattype": "python_sys",
}

logger: StructuredLogger = get_logger(__name__, context={"component": "process"})


@dataclass(frozen=True, slots=True)
class ProcessSample:
    """One reading of the process statistics."""

    rss: int
    vms: int
    cpu_user_ms: int
    cpu_system_ms: int
    num_threads: int
    num_fds: int | None
    gc_collections: int
    gc_objects: int


def take_sample(process: psutil.Process) -> ProcessSample:
    with process.oneshot():
        memory = process.memory_info()
        cpu = process.cpu_times()
        num_threads = process.num_threads()
        num_fds = process.num_fds() if hasattr(process, "num_fds") else None
    return ProcessSample(
        rss=int(memory.rss),
        vms=int(memory.vms),
        cpu_user_ms=int(cpu.user * 1000),
        cpu_system_ms=int(cpu.system * 1000),
        num_threads=num_threads,
        num_fds=num_fds,
        gc_collections=sum(stats["collections"] for stats in gc.get_stats()),
        gc_objects=len(gc.get_objects()),
    )


class ProcessMetrics:
    """Reports memory, CPU, thread, descriptor and GC statistics.

    Example::

        pack = ProcessMetrics(reporter)
        ...
        pack.close()  # stop reporting them
    """

    def __init__(
        self,
        reporter: Reporter,
        *,
        process: psutil.Process | None = None,
        clock: MonotonicClock = SYSTEM_CLOCK,
    ) -> None:
        super().__init__()
        self._reporter = reporter
        self._process = process if process is not None else psutil.Process()
        self._clock = clock
        self._started = clock.monotonic()
        self._lock = threading.Lock()
        self._sample: ProcessSample | None = None

        dims = PROCESS_DIMENSIONS
        self.metrics: tuple[Metric, ...] = (
            WrappedGauge("rss", self._field("rss"), dims),
            WrappedGauge("vms", self._field("vms"), dims),
            WrappedCumulativeCounter("cpu.user", self._field("cpu_user_ms"), dims),
            WrappedCumulativeCounter(
                "cpu.system", self._field("cpu_system_ms"), dims
            ),
            WrappedGauge("num_threads", self._field("num_threads"), dims),
            WrappedGauge("num_fds", self._field("num_fds"), dims),
            WrappedCumulativeCounter(
                "gc.collections", self._field("gc_collections"), dims
            ),
            WrappedGauge("gc.objects", self._field("gc_objects"), dims),
            WrappedGauge("process.uptime.ms", GetterFunc(self._uptime_ms), dims),
            WrappedGauge("num_cpu", GetterFunc(os.cpu_count), dims),
        )
        reporter.add_pre_report_callback(self.refresh)
        reporter.track(*self.metrics)

    @property
    def sample(self) -> ProcessSample | None:
        with self._lock:
            return self._sample

    def refresh(self) -> None:
        """Take a new sample; on failure every field is skipped this cycle."""
        try:
            sample = take_sample(self._process)
        except psutil.Error as error:
            logger.debug(
                "Process sample failed.",
                event="process.sample.failed",
                context={"error": repr(error)},
            )
            sample = None
        with self._lock:
            self._sample = sample

    def close(self) -> None:
        """Untrack every metric of the pack and stop sampling."""
        self._reporter.remove_pre_report_callback(self.refresh)
        self._reporter.untrack(*self.metrics)

    def _field(self, name: str) -> GetterFunc:
        def read() -> object:
            sample = self.sample
            if sample is None:
                msg = "no process sample available"
                raise LookupError(msg)
            return getattr(sample, name)

        return GetterFunc(read)

    def _uptime_ms(self) -> int:
        return int((self._clock.monotonic() - self._started) * 1000)
