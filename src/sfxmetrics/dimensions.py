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

"""Dimension merging and wire normalisation.

In memory, dimensions keep the keys the application chose. Only on the way to
the wire are empty keys or values dropped and keys rewritten so that every
character outside ``[A-Za-z0-9_]`` becomes ``_``.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Final

_ILLEGAL_KEY_CHARS: Final[re.Pattern[str]] = re.compile(r"[^A-Za-z0-9_]")

type Dimensions = Mapping[str, str]


def normalize_key(key: str) -> str:
    """Replace every character outside ``[A-Za-z0-9_]`` with ``_``."""

    return _ILLEGAL_KEY_CHARS.sub("_", key)


def merge(*layers: Mapping[str, str] | None) -> dict[str, str]:
    """Merge dimension layers left to right; later layers win."""

    merged: dict[str, str] = {}
    for layer in layers:
        if layer:
            merged.update(layer)
    return merged


def for_wire(dimensions: Mapping[str, str] | None) -> dict[str, str]:
    """Return dimensions filtered of empty keys/values with normalised keys.

    If two keys normalise to the same string, the later one wins. Applying
    this twice gives the same result as applying it once.
    """

    if not dimensions:
        return {}
    return {
        normalize_key(key): value
        for key, value in dimensions.items()
        if key and value
    }


__all__ = [
    "Dimensions",
    "for_wire",
    "merge",
    "normalize_key",
]
