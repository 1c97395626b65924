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

"""Tests for the protobuf wire codec."""

from __future__ import annotations

import pytest

from sfxmetrics import DataPoint, IllegalTypeError, MetricType
from sfxmetrics.proto import (
    PACKAGE,
    DataPointUploadMessage,
    decode_datapoints,
    encode_datapoints,
    to_message,
)

NOW_MS = 1_700_000_000_000


class TestMessageShape:
    """Tests for the upload message layout."""

    def test_descriptor_package_and_fields(self) -> None:
        """The message lives in the ingest package with the wire field numbers."""
        descriptor = DataPointUploadMessage.DESCRIPTOR
        assert descriptor.full_name == f"{PACKAGE}.DataPointUploadMessage"
        point = descriptor.fields_by_name["datapoints"].message_type
        numbers = {field.name: field.number for field in point.fields}
        assert numbers == {
            "metric": 2,
            "timestamp": 3,
            "value": 4,
            "metricType": 5,
            "dimensions": 6,
        }

    def test_fields_of_a_point(self) -> None:
        """Name, type, timestamp, value and dimensions are carried over."""
        message = to_message(
            [DataPoint("cpu", MetricType.CUMULATIVE_COUNTER, 12, 55, {"h": "a"})],
            NOW_MS,
        )
        (proto_point,) = message.datapoints
        assert proto_point.metric == "cpu"
        assert proto_point.metricType == 3
        assert proto_point.timestamp == 55
        assert proto_point.value.intValue == 12
        assert [(d.key, d.value) for d in proto_point.dimensions] == [("h", "a")]

    def test_missing_timestamp_uses_now(self) -> None:
        """A point without a timestamp is stamped with the given time."""
        (point,) = decode_datapoints(
            encode_datapoints([DataPoint("m", MetricType.GAUGE, 1)], NOW_MS)
        )
        assert point.timestamp == NOW_MS


class TestValueEncoding:
    """Tests for the Datum variant."""

    @pytest.mark.parametrize(
        ("value", "field"),
        [
            (-(2**63), "intValue"),
            (2**63 - 1, "intValue"),
            (2.5, "doubleValue"),
            ("up", "strValue"),
        ],
    )
    def test_exactly_one_datum_field(self, value: object, field: str) -> None:
        """Each value kind sets exactly its own Datum field."""
        message = to_message(
            [DataPoint("m", MetricType.GAUGE, value, 1)],  # type: ignore[arg-type]
            NOW_MS,
        )
        datum = message.datapoints[0].value
        set_fields = [descriptor.name for descriptor, _ in datum.ListFields()]
        assert set_fields == [field]

    @pytest.mark.parametrize("value", [True, 2**63, -(2**63) - 1, None, b"x"])
    def test_illegal_values(self, value: object) -> None:
        """Bools, out-of-range ints and other types cannot be encoded."""
        with pytest.raises(IllegalTypeError):
            _ = encode_datapoints(
                [DataPoint("m", MetricType.GAUGE, value, 1)],  # type: ignore[arg-type]
                NOW_MS,
            )


class TestFiltering:
    """Tests for what never reaches the wire."""

    def test_empty_names_are_dropped(self) -> None:
        """Points with an empty metric name are not encoded."""
        points = decode_datapoints(
            encode_datapoints(
                [
                    DataPoint("", MetricType.GAUGE, 1, 1),
                    DataPoint("kept", MetricType.GAUGE, 2, 1),
                ],
                NOW_MS,
            )
        )
        assert [point.metric for point in points] == ["kept"]

    def test_dimensions_are_filtered_and_normalised(self) -> None:
        """Empty keys or values are dropped and keys are normalised."""
        (point,) = decode_datapoints(
            encode_datapoints(
                [
                    DataPoint(
                        "m",
                        MetricType.GAUGE,
                        1,
                        1,
                        {"host.name": "a", "": "x", "empty": "", "ok_1": "b"},
                    )
                ],
                NOW_MS,
            )
        )
        assert point.dimensions == {"host_name": "a", "ok_1": "b"}

    def test_empty_batch(self) -> None:
        """An empty batch encodes to an empty message."""
        assert decode_datapoints(encode_datapoints([], NOW_MS)) == []
