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

"""Protocol buffer codec for the ``/v2/datapoint`` ingest endpoint.

The message classes are built at import time from a hand-written
:class:`~google.protobuf.descriptor_pb2.FileDescriptorProto` registered in a
private descriptor pool, so no generated ``_pb2`` module is needed::

    message Datum {
      optional string strValue = 1;
      optional double doubleValue = 2;
      optional int64 intValue = 3;
    }
    message Dimension { optional string key = 1; optional string value = 2; }
    enum MetricType { GAUGE = 0; COUNTER = 1; ENUM = 2; CUMULATIVE_COUNTER = 3; }
    message DataPoint {
      optional string metric = 2;
      optional int64 timestamp = 3;
      optional Datum value = 4;
      optional MetricType metricType = 5;
      repeated Dimension dimensions = 6;
    }
    message DataPointUploadMessage { repeated DataPoint datapoints = 1; }
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Final

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

from .datapoint import DataPoint, MetricType
from .dimensions import for_wire
from .errors import IllegalTypeError
from .values import MAX_INT64, MIN_INT64

PACKAGE: Final[str] = "com.signalfx.metrics.protobuf"

_FDP = descriptor_pb2.FieldDescriptorProto
_OPTIONAL = _FDP.LABEL_OPTIONAL
_REPEATED = _FDP.LABEL_REPEATED


def _add_field(
    message: descriptor_pb2.DescriptorProto,
    name: str,
    number: int,
    field_type: int,
    *,
    label: int = _OPTIONAL,
    type_name: str | None = None,
) -> None:
    field = message.field.add()
    field.name = name
    field.number = number
    field.type = field_type  # pyright: ignore[reportAttributeAccessIssue]
    field.label = label  # pyright: ignore[reportAttributeAccessIssue]
    if type_name is not None:
        field.type_name = f".{PACKAGE}.{type_name}"


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto()
    file_proto.name = "signalfx_metrics.proto"
    file_proto.package = PACKAGE
    file_proto.syntax = "proto2"

    enum = file_proto.enum_type.add()
    enum.name = "MetricType"
    for metric_type in MetricType:
        value = enum.value.add()
        value.name = metric_type.name
        value.number = int(metric_type)

    datum = file_proto.message_type.add()
    datum.name = "Datum"
    _add_field(datum, "strValue", 1, _FDP.TYPE_STRING)
    _add_field(datum, "doubleValue", 2, _FDP.TYPE_DOUBLE)
    _add_field(datum, "intValue", 3, _FDP.TYPE_INT64)

    dimension = file_proto.message_type.add()
    dimension.name = "Dimension"
    _add_field(dimension, "key", 1, _FDP.TYPE_STRING)
    _add_field(dimension, "value", 2, _FDP.TYPE_STRING)

    point = file_proto.message_type.add()
    point.name = "DataPoint"
    _add_field(point, "metric", 2, _FDP.TYPE_STRING)
    _add_field(point, "timestamp", 3, _FDP.TYPE_INT64)
    _add_field(point, "value", 4, _FDP.TYPE_MESSAGE, type_name="Datum")
    _add_field(point, "metricType", 5, _FDP.TYPE_ENUM, type_name="MetricType")
    _add_field(
        point,
        "dimensions",
        6,
        _FDP.TYPE_MESSAGE,
        label=_REPEATED,
        type_name="Dimension",
    )

    upload = file_proto.message_type.add()
    upload.name = "DataPointUploadMessage"
    _add_field(
        upload,
        "datapoints",
        1,
        _FDP.TYPE_MESSAGE,
        label=_REPEATED,
        type_name="DataPoint",
    )
    return file_proto


_POOL = descriptor_pool.DescriptorPool()
_POOL.AddSerializedFile(_build_file().SerializeToString())


def _message_class(name: str) -> Any:
    return message_factory.GetMessageClass(
        _POOL.FindMessageTypeByName(f"{PACKAGE}.{name}")
    )


ProtoDatum: Final = _message_class("Datum")
ProtoDimension: Final = _message_class("Dimension")
ProtoDataPoint: Final = _message_class("DataPoint")
DataPointUploadMessage: Final = _message_class("DataPointUploadMessage")


def _fill_datum(datum: Any, value: object) -> None:
    if isinstance(value, bool):
        raise IllegalTypeError("bool is not a valid data point value")
    if isinstance(value, int):
        if value < MIN_INT64 or value > MAX_INT64:
            raise IllegalTypeError(f"integer out of int64 range: {value}")
        datum.intValue = value
    elif isinstance(value, float):
        datum.doubleValue = value
    elif isinstance(value, str):
        datum.strValue = value
    else:
        raise IllegalTypeError(f"illegal value type: {type(value).__name__}")


def to_message(points: Iterable[DataPoint], now_ms: int) -> Any:
    """Build a ``DataPointUploadMessage`` from ``points``.

    Points with an empty metric name are dropped, dimensions are filtered and
    normalised, and a missing timestamp becomes ``now_ms``.

    Raises:
        IllegalTypeError: If a value cannot be represented as a ``Datum``.
    """

    message = DataPointUploadMessage()
    for point in points:
        if not point.metric:
            continue
        proto_point = message.datapoints.add()
        proto_point.metric = point.metric
        proto_point.timestamp = (
            point.timestamp if point.timestamp is not None else now_ms
        )
        proto_point.metricType = int(point.metric_type)
        _fill_datum(proto_point.value, point.value)
        for key, value in for_wire(point.dimensions).items():
            dimension = proto_point.dimensions.add()
            dimension.key = key
            dimension.value = value
    return message


def encode_datapoints(points: Iterable[DataPoint], now_ms: int) -> bytes:
    """Serialise ``points`` as a ``DataPointUploadMessage`` body."""

    return to_message(points, now_ms).SerializeToString()


def _datum_value(datum: Any) -> int | float | str:
    if datum.HasField("intValue"):
        return int(datum.intValue)
    if datum.HasField("doubleValue"):
        return float(datum.doubleValue)
    if datum.HasField("strValue"):
        return str(datum.strValue)
    raise IllegalTypeError("datum carries no value")


def decode_datapoints(payload: bytes) -> list[DataPoint]:
    """Parse a ``DataPointUploadMessage`` body back into data points."""

    message = DataPointUploadMessage()
    message.ParseFromString(payload)
    return [
        DataPoint(
            proto_point.metric,
            MetricType(proto_point.metricType),
            _datum_value(proto_point.value),
            proto_point.timestamp if proto_point.HasField("timestamp") else None,
            {dimension.key: dimension.value for dimension in proto_point.dimensions},
        )
        for proto_point in message.datapoints
    ]


__all__ = [
    "PACKAGE",
    "DataPointUploadMessage",
    "ProtoDataPoint",
    "ProtoDatum",
    "ProtoDimension",
    "decode_datapoints",
    "encode_datapoints",
    "to_message",
]
