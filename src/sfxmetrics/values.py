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

"""Value adapters for reading live measurements.

Wrapped metrics read their value through a :class:`Getter` at snapshot time.
A getter may return ``None``, an ``int`` (signed or unsigned, up to 64 bits),
a ``float``, a ``str`` or a *reference* to one of those. References are
:class:`Ref` cells and the atomic integers below; they are dereferenced once
when the value is coerced, which is how live tracking works::

    hits = Ref(0)
    gauge = WrappedGauge("cache.hits", Value(hits))
    hits.value = 10  # visible at the next snapshot

Coercion goes through the tagged variant :class:`Datum` rather than ad-hoc
``isinstance`` chains at every call site.

The atomic integers (:class:`Int32`, :class:`Int64`, :class:`Uint32`,
:class:`Uint64`) wrap around on overflow like their machine counterparts and
can be handed to :class:`~sfxmetrics.metrics.WrappedCounter` directly, since
they implement :class:`Subtractor`.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Final, Generic, Protocol, TypeVar, runtime_checkable

from .errors import IllegalTypeError, ValueOverflowError

T = TypeVar("T")

MIN_INT64: Final[int] = -(2**63)
MAX_INT64: Final[int] = 2**63 - 1
MAX_UINT64: Final[int] = 2**64 - 1


@runtime_checkable
class Getter(Protocol):
    """Anything that can produce a current value on demand.

    ``get()`` raises to signal failure; wrapped metrics treat any exception
    as "nothing to report this cycle".
    """

    def get(self) -> object:
        """Return the current value."""
        ...


@runtime_checkable
class Subtractor(Getter, Protocol):
    """A getter whose underlying storage supports atomic subtraction."""

    def subtract(self, delta: int) -> int:
        """Atomically subtract ``delta`` and return the new value."""
        ...


class Value:
    """Getter that always returns the wrapped object.

    Wrapping a :class:`Ref` or an atomic integer gives live tracking; wrapping
    a plain number gives a constant.
    """

    __slots__ = ("_value",)

    def __init__(self, value: object) -> None:
        super().__init__()
        self._value = value

    def get(self) -> object:
        return self._value

    def __repr__(self) -> str:
        return f"Value({self._value!r})"


class GetterFunc:
    """Adapter turning a zero-argument callable into a :class:`Getter`.

    The callable runs on every ``get()``, i.e. once per report cycle.
    """

    __slots__ = ("_fn",)

    def __init__(self, fn: Callable[[], object]) -> None:
        super().__init__()
        self._fn = fn

    def get(self) -> object:
        return self._fn()


class Ref(Generic[T]):
    """Mutable cell whose contents are read at coercion time.

    Plain attribute assignment is atomic under the interpreter, but callers
    that read-modify-write the cell concurrently should use an atomic integer
    instead, or mutate the cell only inside a pre-report callback.
    """

    __slots__ = ("value",)

    def __init__(self, value: T) -> None:
        super().__init__()
        self.value = value

    def set(self, value: T) -> None:
        self.value = value

    def get(self) -> T:
        return self.value

    def __repr__(self) -> str:
        return f"Ref({self.value!r})"


class DatumKind(Enum):
    """Arithmetic kind of a coerced value."""

    NULL = "null"
    INT = "int"
    FLOAT = "float"
    STR = "str"


@dataclass(frozen=True, slots=True)
class Datum:
    """Tagged variant holding one coerced value."""

    kind: DatumKind
    value: int | float | str | None = None

    @classmethod
    def of(cls, raw: object) -> Datum:
        """Classify ``raw`` after dereferencing it once.

        Raises:
            IllegalTypeError: If ``raw`` is not a supported kind or an integer
                outside the 64-bit range.
        """
        raw = deref(raw)
        if raw is None:
            return cls(DatumKind.NULL)
        # bool is an int subclass but not a measurement
        if isinstance(raw, bool):
            raise IllegalTypeError(f"illegal value type: {type(raw).__name__}")
        if isinstance(raw, int):
            if raw < MIN_INT64 or raw > MAX_UINT64:
                raise IllegalTypeError(f"integer out of 64-bit range: {raw}")
            return cls(DatumKind.INT, raw)
        if isinstance(raw, float):
            return cls(DatumKind.FLOAT, raw)
        if isinstance(raw, str):
            return cls(DatumKind.STR, raw)
        raise IllegalTypeError(f"illegal value type: {type(raw).__name__}")


def deref(raw: object) -> object:
    """Return the pointee of a reference, or ``raw`` itself."""

    if isinstance(raw, Ref):
        return raw.value  # pyright: ignore[reportUnknownMemberType]
    if isinstance(raw, _AtomicInt):
        return raw.load()
    return raw


def to_int64(raw: object) -> int:
    """Coerce ``raw`` to a signed 64-bit integer.

    Raises:
        ValueOverflowError: For unsigned values above ``2**63 - 1``.
        IllegalTypeError: For floats, strings, ``None`` and unsupported types.
    """

    datum = Datum.of(raw)
    if datum.kind is not DatumKind.INT:
        raise IllegalTypeError(f"cannot coerce {datum.kind.value} to int64")
    value = datum.value
    assert isinstance(value, int)
    if value > MAX_INT64:
        raise ValueOverflowError(f"value {value} overflows int64")
    return value


def to_float64(raw: object) -> float:
    """Coerce ``raw`` to a float; only float kinds are accepted."""

    datum = Datum.of(raw)
    if datum.kind is not DatumKind.FLOAT:
        raise IllegalTypeError(f"cannot coerce {datum.kind.value} to float64")
    assert isinstance(datum.value, float)
    return datum.value


def to_string(raw: object) -> str:
    """Coerce ``raw`` to a string; only string kinds are accepted."""

    datum = Datum.of(raw)
    if datum.kind is not DatumKind.STR:
        raise IllegalTypeError(f"cannot coerce {datum.kind.value} to string")
    assert isinstance(datum.value, str)
    return datum.value


class _AtomicInt:
    """Fixed-width integer with atomic read-modify-write operations.

    Each operation holds a per-object lock only for the arithmetic itself;
    no operation ever blocks on I/O while holding it.
    """

    __slots__ = ("_lock", "_value")

    _bits: ClassVar[int] = 64
    _signed: ClassVar[bool] = True

    def __init__(self, value: int = 0) -> None:
        super().__init__()
        self._lock = threading.Lock()
        self._value = self._wrap(value)

    @classmethod
    def _wrap(cls, value: int) -> int:
        value &= (1 << cls._bits) - 1
        if cls._signed and value >= 1 << (cls._bits - 1):
            value -= 1 << cls._bits
        return value

    def set(self, value: int) -> None:
        """Atomically store ``value``."""
        wrapped = self._wrap(value)
        with self._lock:
            self._value = wrapped

    def inc(self, delta: int = 1) -> int:
        """Atomically add ``delta`` and return the new value."""
        with self._lock:
            self._value = self._wrap(self._value + delta)
            return self._value

    def subtract(self, delta: int) -> int:
        """Atomically subtract ``delta`` and return the new value."""
        with self._lock:
            self._value = self._wrap(self._value - delta)
            return self._value

    def load(self) -> int:
        """Atomically read the current value."""
        with self._lock:
            return self._value

    def get(self) -> int:
        """Return the current value; satisfies :class:`Getter`."""
        return self.load()

    def swap(self, value: int) -> int:
        """Atomically store ``value`` and return the previous value."""
        wrapped = self._wrap(value)
        with self._lock:
            previous, self._value = self._value, wrapped
            return previous

    def compare_and_swap(self, old: int, new: int) -> bool:
        """Store ``new`` only if the current value equals ``old``."""
        wrapped = self._wrap(new)
        with self._lock:
            if self._value != old:
                return False
            self._value = wrapped
            return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.load()})"


class Int32(_AtomicInt):
    """Atomic signed 32-bit integer."""

    __slots__ = ()
    _bits = 32
    _signed = True


class Int64(_AtomicInt):
    """Atomic signed 64-bit integer."""

    __slots__ = ()
    _bits = 64
    _signed = True


class Uint32(_AtomicInt):
    """Atomic unsigned 32-bit integer."""

    __slots__ = ()
    _bits = 32
    _signed = False


class Uint64(_AtomicInt):
    """Atomic unsigned 64-bit integer."""

    __slots__ = ()
    _bits = 64
    _signed = False


__all__ = [
    "MAX_INT64",
    "MAX_UINT64",
    "MIN_INT64",
    "Datum",
    "DatumKind",
    "Getter",
    "GetterFunc",
    "Int32",
    "Int64",
    "Ref",
    "Subtractor",
    "Uint32",
    "Uint64",
    "Value",
    "deref",
    "to_float64",
    "to_int64",
    "to_string",
]
