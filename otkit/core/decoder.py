"""
otkit.core.decoder - OTLP protobuf decoder.

Decodes serialized OTLP export requests (traces, metrics, logs) and their
component messages into the immutable trees of otkit.core.model and
otkit.core.signals.

Each OTLP message is described by a dispatch table mapping field numbers to
FieldSpec entries. The field numbers and wire types follow the canonical
opentelemetry-proto v1 definitions. Fields missing from a table are skipped,
which keeps the decoder forward compatible with newer producers.

Functions:
    decode: Decode an ExportTraceServiceRequest into a TraceExport
    decode_logs: Decode an ExportLogsServiceRequest into a LogsExport
    decode_metrics: Decode an ExportMetricsServiceRequest into a MetricsExport
    decode_message: Decode any supported message type by name
    decode_raw: List the top-level fields of an arbitrary protobuf message

Example:
    >>> from otkit.core.decoder import decode
    >>> export = decode(payload)
    >>> export.span_count
    3
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from otkit.core.errors import DecodeError
from otkit.core.model import (
    INVALID_SPAN_ID,
    INVALID_TRACE_ID,
    SPAN_ID_SIZE,
    TRACE_ID_SIZE,
    Event,
    Link,
    ResourceSpans,
    ScopeSpans,
    Span,
    SpanKind,
    Status,
    StatusCode,
    TraceExport,
)
from otkit.core.signals import (
    AggregationTemporality,
    Buckets,
    Exemplar,
    ExponentialHistogram,
    ExponentialHistogramDataPoint,
    Gauge,
    Histogram,
    HistogramDataPoint,
    LogRecord,
    LogsExport,
    Metric,
    MetricsExport,
    NumberDataPoint,
    ResourceLogs,
    ResourceMetrics,
    ScopeLogs,
    ScopeMetrics,
    SeverityNumber,
    Sum,
    Summary,
    SummaryDataPoint,
    ValueAtQuantile,
)
from otkit.core.values import (
    AnyValue,
    Attributes,
    InstrumentationScope,
    KeyValue,
    Resource,
    ValueKind,
)
from otkit.core.wire import (
    DecodeLimits,
    NodeBudget,
    Tag,
    WireReader,
    WireType,
    to_int32,
    to_int64,
    zigzag_decode,
)

logger = logging.getLogger(__name__)


class FieldKind(Enum):
    """Protobuf field types used by the OTLP schema."""
    STRING = "string"
    BYTES = "bytes"
    TRACE_ID = "trace_id"
    SPAN_ID = "span_id"
    MESSAGE = "message"
    BOOL = "bool"
    ENUM = "enum"
    INT64 = "int64"
    UINT32 = "uint32"
    UINT64 = "uint64"
    SINT32 = "sint32"
    FIXED32 = "fixed32"
    FIXED64 = "fixed64"
    SFIXED64 = "sfixed64"
    DOUBLE = "double"


WIRE_TYPES: Dict[FieldKind, WireType] = {
    FieldKind.STRING: WireType.LEN,
    FieldKind.BYTES: WireType.LEN,
    FieldKind.TRACE_ID: WireType.LEN,
    FieldKind.SPAN_ID: WireType.LEN,
    FieldKind.MESSAGE: WireType.LEN,
    FieldKind.BOOL: WireType.VARINT,
    FieldKind.ENUM: WireType.VARINT,
    FieldKind.INT64: WireType.VARINT,
    FieldKind.UINT32: WireType.VARINT,
    FieldKind.UINT64: WireType.VARINT,
    FieldKind.SINT32: WireType.VARINT,
    FieldKind.FIXED32: WireType.I32,
    FieldKind.FIXED64: WireType.I64,
    FieldKind.SFIXED64: WireType.I64,
    FieldKind.DOUBLE: WireType.I64,
}

SCALAR_READERS: Dict[FieldKind, Callable[[WireReader], Any]] = {
    FieldKind.STRING: WireReader.read_string,
    FieldKind.BYTES: WireReader.read_bytes,
    FieldKind.TRACE_ID: WireReader.read_bytes,
    FieldKind.SPAN_ID: WireReader.read_bytes,
    FieldKind.BOOL: lambda r: r.read_varint() != 0,
    FieldKind.ENUM: lambda r: to_int32(r.read_varint()),
    FieldKind.INT64: lambda r: to_int64(r.read_varint()),
    FieldKind.UINT32: lambda r: r.read_varint() & 0xFFFFFFFF,
    FieldKind.UINT64: WireReader.read_varint,
    FieldKind.SINT32: lambda r: zigzag_decode(r.read_varint() & 0xFFFFFFFF),
    FieldKind.FIXED32: WireReader.read_fixed32,
    FieldKind.FIXED64: WireReader.read_fixed64,
    FieldKind.SFIXED64: WireReader.read_sfixed64,
    FieldKind.DOUBLE: WireReader.read_double,
}

_ID_SIZES = {
    FieldKind.TRACE_ID: TRACE_ID_SIZE,
    FieldKind.SPAN_ID: SPAN_ID_SIZE,
}


@dataclass(frozen=True)
class FieldSpec:
    """How to read one field of a message.

    Attributes:
        name: Key under which the value is collected
        kind: Protobuf type of the field
        repeated: Collect every occurrence into a list
        message: Schema name of the submessage for MESSAGE fields
        oneof: Name of the oneof group; the value is stored as
            ``(name, value)`` under the group name, last member wins
    """
    name: str
    kind: FieldKind
    repeated: bool = False
    message: Optional[str] = None
    oneof: Optional[str] = None


@dataclass(frozen=True)
class MessageSchema:
    name: str
    fields: Mapping[int, FieldSpec]
    build: Callable[[Dict[str, Any]], Any]


SCHEMAS: Dict[str, MessageSchema] = {}


def _schema(name: str, fields: Mapping[int, FieldSpec]) -> Callable:
    """Register the decorated builder as the constructor for ``name``."""
    def register(build: Callable[[Dict[str, Any]], Any]) -> Callable:
        SCHEMAS[name] = MessageSchema(name, fields, build)
        return build
    return register


def _msg(name: str, message: str, repeated: bool = False, oneof: Optional[str] = None) -> FieldSpec:
    return FieldSpec(name, FieldKind.MESSAGE, repeated=repeated, message=message, oneof=oneof)


def _attrs(values: Dict[str, Any], name: str = "attributes") -> Attributes:
    return Attributes(tuple(values.get(name, ())))


def _tuple(values: Dict[str, Any], name: str) -> tuple:
    return tuple(values.get(name, ()))


def _oneof(values: Dict[str, Any], group: str) -> Tuple[Optional[str], Any]:
    return values.get(group, (None, None))


def _optional_id(value: Optional[bytes]) -> Optional[bytes]:
    return value if value else None


# -----------------------------------------------------------------------------
# common/v1 and resource/v1
# -----------------------------------------------------------------------------

_ANY_VALUE_KINDS = {
    "string_value": ValueKind.STRING,
    "bool_value": ValueKind.BOOL,
    "int_value": ValueKind.INT,
    "double_value": ValueKind.DOUBLE,
    "array_value": ValueKind.ARRAY,
    "kvlist_value": ValueKind.KVLIST,
    "bytes_value": ValueKind.BYTES,
}


@_schema("AnyValue", {
    1: FieldSpec("string_value", FieldKind.STRING, oneof="value"),
    2: FieldSpec("bool_value", FieldKind.BOOL, oneof="value"),
    3: FieldSpec("int_value", FieldKind.INT64, oneof="value"),
    4: FieldSpec("double_value", FieldKind.DOUBLE, oneof="value"),
    5: _msg("array_value", "ArrayValue", oneof="value"),
    6: _msg("kvlist_value", "KeyValueList", oneof="value"),
    7: FieldSpec("bytes_value", FieldKind.BYTES, oneof="value"),
})
def _build_any_value(values: Dict[str, Any]) -> AnyValue:
    member, payload = _oneof(values, "value")
    if member is None:
        return AnyValue()
    return AnyValue(_ANY_VALUE_KINDS[member], payload)


@_schema("ArrayValue", {1: _msg("values", "AnyValue", repeated=True)})
def _build_array_value(values: Dict[str, Any]) -> Tuple[AnyValue, ...]:
    return _tuple(values, "values")


@_schema("KeyValueList", {1: _msg("values", "KeyValue", repeated=True)})
def _build_kvlist_value(values: Dict[str, Any]) -> Tuple[KeyValue, ...]:
    return _tuple(values, "values")


@_schema("KeyValue", {
    1: FieldSpec("key", FieldKind.STRING),
    2: _msg("value", "AnyValue"),
})
def _build_key_value(values: Dict[str, Any]) -> KeyValue:
    return KeyValue(values.get("key", ""), values.get("value", AnyValue()))


@_schema("InstrumentationScope", {
    1: FieldSpec("name", FieldKind.STRING),
    2: FieldSpec("version", FieldKind.STRING),
    3: _msg("attributes", "KeyValue", repeated=True),
    4: FieldSpec("dropped_attributes_count", FieldKind.UINT32),
})
def _build_scope(values: Dict[str, Any]) -> InstrumentationScope:
    return InstrumentationScope(
        name=values.get("name", ""),
        version=values.get("version", ""),
        attributes=_attrs(values),
        dropped_attributes_count=values.get("dropped_attributes_count", 0),
    )


# Deprecated predecessor of InstrumentationScope, still sent by old SDKs
# inside the instrumentation_library_* fields (number 1000).
@_schema("InstrumentationLibrary", {
    1: FieldSpec("name", FieldKind.STRING),
    2: FieldSpec("version", FieldKind.STRING),
})
def _build_library(values: Dict[str, Any]) -> InstrumentationScope:
    return InstrumentationScope(name=values.get("name", ""), version=values.get("version", ""))


@_schema("Resource", {
    1: _msg("attributes", "KeyValue", repeated=True),
    2: FieldSpec("dropped_attributes_count", FieldKind.UINT32),
})
def _build_resource(values: Dict[str, Any]) -> Resource:
    return Resource(
        attributes=_attrs(values),
        dropped_attributes_count=values.get("dropped_attributes_count", 0),
    )


# -----------------------------------------------------------------------------
# trace/v1
# -----------------------------------------------------------------------------

@_schema("Status", {
    2: FieldSpec("message", FieldKind.STRING),
    3: FieldSpec("code", FieldKind.ENUM),
})
def _build_status(values: Dict[str, Any]) -> Status:
    return Status(code=StatusCode(values.get("code", 0)), message=values.get("message", ""))


@_schema("Event", {
    1: FieldSpec("time_unix_nano", FieldKind.FIXED64),
    2: FieldSpec("name", FieldKind.STRING),
    3: _msg("attributes", "KeyValue", repeated=True),
    4: FieldSpec("dropped_attributes_count", FieldKind.UINT32),
})
def _build_event(values: Dict[str, Any]) -> Event:
    return Event(
        time_unix_nano=values.get("time_unix_nano", 0),
        name=values.get("name", ""),
        attributes=_attrs(values),
        dropped_attributes_count=values.get("dropped_attributes_count", 0),
    )


@_schema("Link", {
    1: FieldSpec("trace_id", FieldKind.TRACE_ID),
    2: FieldSpec("span_id", FieldKind.SPAN_ID),
    3: FieldSpec("trace_state", FieldKind.STRING),
    4: _msg("attributes", "KeyValue", repeated=True),
    5: FieldSpec("dropped_attributes_count", FieldKind.UINT32),
    6: FieldSpec("flags", FieldKind.FIXED32),
})
def _build_link(values: Dict[str, Any]) -> Link:
    return Link(
        trace_id=values.get("trace_id") or INVALID_TRACE_ID,
        span_id=values.get("span_id") or INVALID_SPAN_ID,
        trace_state=values.get("trace_state", ""),
        attributes=_attrs(values),
        dropped_attributes_count=values.get("dropped_attributes_count", 0),
        flags=values.get("flags", 0),
    )


@_schema("Span", {
    1: FieldSpec("trace_id", FieldKind.TRACE_ID),
    2: FieldSpec("span_id", FieldKind.SPAN_ID),
    3: FieldSpec("trace_state", FieldKind.STRING),
    4: FieldSpec("parent_span_id", FieldKind.SPAN_ID),
    5: FieldSpec("name", FieldKind.STRING),
    6: FieldSpec("kind", FieldKind.ENUM),
    7: FieldSpec("start_time_unix_nano", FieldKind.FIXED64),
    8: FieldSpec("end_time_unix_nano", FieldKind.FIXED64),
    9: _msg("attributes", "KeyValue", repeated=True),
    10: FieldSpec("dropped_attributes_count", FieldKind.UINT32),
    11: _msg("events", "Event", repeated=True),
    12: FieldSpec("dropped_events_count", FieldKind.UINT32),
    13: _msg("links", "Link", repeated=True),
    14: FieldSpec("dropped_links_count", FieldKind.UINT32),
    15: _msg("status", "Status"),
    16: FieldSpec("flags", FieldKind.FIXED32),
})
def _build_span(values: Dict[str, Any]) -> Span:
    return Span(
        trace_id=values.get("trace_id") or INVALID_TRACE_ID,
        span_id=values.get("span_id") or INVALID_SPAN_ID,
        parent_span_id=_optional_id(values.get("parent_span_id")),
        name=values.get("name", ""),
        kind=SpanKind(values.get("kind", 0)),
        start_time_unix_nano=values.get("start_time_unix_nano", 0),
        end_time_unix_nano=values.get("end_time_unix_nano", 0),
        attributes=_attrs(values),
        events=_tuple(values, "events"),
        links=_tuple(values, "links"),
        status=values.get("status", Status()),
        trace_state=values.get("trace_state", ""),
        flags=values.get("flags", 0),
        dropped_attributes_count=values.get("dropped_attributes_count", 0),
        dropped_events_count=values.get("dropped_events_count", 0),
        dropped_links_count=values.get("dropped_links_count", 0),
    )


@_schema("ScopeSpans", {
    1: _msg("scope", "InstrumentationScope"),
    2: _msg("spans", "Span", repeated=True),
    3: FieldSpec("schema_url", FieldKind.STRING),
})
def _build_scope_spans(values: Dict[str, Any]) -> ScopeSpans:
    return ScopeSpans(
        scope=values.get("scope"),
        spans=_tuple(values, "spans"),
        schema_url=values.get("schema_url", ""),
    )


_schema("InstrumentationLibrarySpans", {
    1: _msg("scope", "InstrumentationLibrary"),
    2: _msg("spans", "Span", repeated=True),
    3: FieldSpec("schema_url", FieldKind.STRING),
})(_build_scope_spans)


@_schema("ResourceSpans", {
    1: _msg("resource", "Resource"),
    2: _msg("scope_spans", "ScopeSpans", repeated=True),
    3: FieldSpec("schema_url", FieldKind.STRING),
    1000: _msg("scope_spans", "InstrumentationLibrarySpans", repeated=True),
})
def _build_resource_spans(values: Dict[str, Any]) -> ResourceSpans:
    return ResourceSpans(
        resource=values.get("resource", Resource()),
        scope_spans=_tuple(values, "scope_spans"),
        schema_url=values.get("schema_url", ""),
    )


@_schema("ExportTraceServiceRequest", {
    1: _msg("resource_spans", "ResourceSpans", repeated=True),
})
def _build_trace_export(values: Dict[str, Any]) -> TraceExport:
    return TraceExport(resource_spans=_tuple(values, "resource_spans"))


# -----------------------------------------------------------------------------
# logs/v1
# -----------------------------------------------------------------------------

@_schema("LogRecord", {
    1: FieldSpec("time_unix_nano", FieldKind.FIXED64),
    2: FieldSpec("severity_number", FieldKind.ENUM),
    3: FieldSpec("severity_text", FieldKind.STRING),
    5: _msg("body", "AnyValue"),
    6: _msg("attributes", "KeyValue", repeated=True),
    7: FieldSpec("dropped_attributes_count", FieldKind.UINT32),
    8: FieldSpec("flags", FieldKind.FIXED32),
    9: FieldSpec("trace_id", FieldKind.TRACE_ID),
    10: FieldSpec("span_id", FieldKind.SPAN_ID),
    11: FieldSpec("observed_time_unix_nano", FieldKind.FIXED64),
    12: FieldSpec("event_name", FieldKind.STRING),
})
def _build_log_record(values: Dict[str, Any]) -> LogRecord:
    return LogRecord(
        time_unix_nano=values.get("time_unix_nano", 0),
        observed_time_unix_nano=values.get("observed_time_unix_nano", 0),
        severity_number=SeverityNumber(values.get("severity_number", 0)),
        severity_text=values.get("severity_text", ""),
        body=values.get("body", AnyValue()),
        attributes=_attrs(values),
        dropped_attributes_count=values.get("dropped_attributes_count", 0),
        flags=values.get("flags", 0),
        trace_id=_optional_id(values.get("trace_id")),
        span_id=_optional_id(values.get("span_id")),
        event_name=values.get("event_name", ""),
    )


@_schema("ScopeLogs", {
    1: _msg("scope", "InstrumentationScope"),
    2: _msg("log_records", "LogRecord", repeated=True),
    3: FieldSpec("schema_url", FieldKind.STRING),
})
def _build_scope_logs(values: Dict[str, Any]) -> ScopeLogs:
    return ScopeLogs(
        scope=values.get("scope"),
        log_records=_tuple(values, "log_records"),
        schema_url=values.get("schema_url", ""),
    )


_schema("InstrumentationLibraryLogs", {
    1: _msg("scope", "InstrumentationLibrary"),
    2: _msg("log_records", "LogRecord", repeated=True),
    3: FieldSpec("schema_url", FieldKind.STRING),
})(_build_scope_logs)


@_schema("ResourceLogs", {
    1: _msg("resource", "Resource"),
    2: _msg("scope_logs", "ScopeLogs", repeated=True),
    3: FieldSpec("schema_url", FieldKind.STRING),
    1000: _msg("scope_logs", "InstrumentationLibraryLogs", repeated=True),
})
def _build_resource_logs(values: Dict[str, Any]) -> ResourceLogs:
    return ResourceLogs(
        resource=values.get("resource", Resource()),
        scope_logs=_tuple(values, "scope_logs"),
        schema_url=values.get("schema_url", ""),
    )


@_schema("ExportLogsServiceRequest", {
    1: _msg("resource_logs", "ResourceLogs", repeated=True),
})
def _build_logs_export(values: Dict[str, Any]) -> LogsExport:
    return LogsExport(resource_logs=_tuple(values, "resource_logs"))


# -----------------------------------------------------------------------------
# metrics/v1
# -----------------------------------------------------------------------------

@_schema("Exemplar", {
    7: _msg("filtered_attributes", "KeyValue", repeated=True),
    2: FieldSpec("time_unix_nano", FieldKind.FIXED64),
    3: FieldSpec("as_double", FieldKind.DOUBLE, oneof="value"),
    6: FieldSpec("as_int", FieldKind.SFIXED64, oneof="value"),
    4: FieldSpec("span_id", FieldKind.SPAN_ID),
    5: FieldSpec("trace_id", FieldKind.TRACE_ID),
})
def _build_exemplar(values: Dict[str, Any]) -> Exemplar:
    return Exemplar(
        filtered_attributes=_attrs(values, "filtered_attributes"),
        time_unix_nano=values.get("time_unix_nano", 0),
        value=_oneof(values, "value")[1],
        span_id=_optional_id(values.get("span_id")),
        trace_id=_optional_id(values.get("trace_id")),
    )


@_schema("NumberDataPoint", {
    7: _msg("attributes", "KeyValue", repeated=True),
    2: FieldSpec("start_time_unix_nano", FieldKind.FIXED64),
    3: FieldSpec("time_unix_nano", FieldKind.FIXED64),
    4: FieldSpec("as_double", FieldKind.DOUBLE, oneof="value"),
    6: FieldSpec("as_int", FieldKind.SFIXED64, oneof="value"),
    5: _msg("exemplars", "Exemplar", repeated=True),
    8: FieldSpec("flags", FieldKind.UINT32),
})
def _build_number_point(values: Dict[str, Any]) -> NumberDataPoint:
    return NumberDataPoint(
        attributes=_attrs(values),
        start_time_unix_nano=values.get("start_time_unix_nano", 0),
        time_unix_nano=values.get("time_unix_nano", 0),
        value=_oneof(values, "value")[1],
        exemplars=_tuple(values, "exemplars"),
        flags=values.get("flags", 0),
    )


@_schema("HistogramDataPoint", {
    9: _msg("attributes", "KeyValue", repeated=True),
    2: FieldSpec("start_time_unix_nano", FieldKind.FIXED64),
    3: FieldSpec("time_unix_nano", FieldKind.FIXED64),
    4: FieldSpec("count", FieldKind.FIXED64),
    5: FieldSpec("sum", FieldKind.DOUBLE),
    6: FieldSpec("bucket_counts", FieldKind.FIXED64, repeated=True),
    7: FieldSpec("explicit_bounds", FieldKind.DOUBLE, repeated=True),
    8: _msg("exemplars", "Exemplar", repeated=True),
    10: FieldSpec("flags", FieldKind.UINT32),
    11: FieldSpec("min", FieldKind.DOUBLE),
    12: FieldSpec("max", FieldKind.DOUBLE),
})
def _build_histogram_point(values: Dict[str, Any]) -> HistogramDataPoint:
    return HistogramDataPoint(
        attributes=_attrs(values),
        start_time_unix_nano=values.get("start_time_unix_nano", 0),
        time_unix_nano=values.get("time_unix_nano", 0),
        count=values.get("count", 0),
        sum=values.get("sum"),
        bucket_counts=_tuple(values, "bucket_counts"),
        explicit_bounds=_tuple(values, "explicit_bounds"),
        exemplars=_tuple(values, "exemplars"),
        flags=values.get("flags", 0),
        min=values.get("min"),
        max=values.get("max"),
    )


@_schema("Buckets", {
    1: FieldSpec("offset", FieldKind.SINT32),
    2: FieldSpec("bucket_counts", FieldKind.UINT64, repeated=True),
})
def _build_buckets(values: Dict[str, Any]) -> Buckets:
    return Buckets(offset=values.get("offset", 0), bucket_counts=_tuple(values, "bucket_counts"))


@_schema("ExponentialHistogramDataPoint", {
    1: _msg("attributes", "KeyValue", repeated=True),
    2: FieldSpec("start_time_unix_nano", FieldKind.FIXED64),
    3: FieldSpec("time_unix_nano", FieldKind.FIXED64),
    4: FieldSpec("count", FieldKind.FIXED64),
    5: FieldSpec("sum", FieldKind.DOUBLE),
    6: FieldSpec("scale", FieldKind.SINT32),
    7: FieldSpec("zero_count", FieldKind.FIXED64),
    8: _msg("positive", "Buckets"),
    9: _msg("negative", "Buckets"),
    10: FieldSpec("flags", FieldKind.UINT32),
    11: _msg("exemplars", "Exemplar", repeated=True),
    12: FieldSpec("min", FieldKind.DOUBLE),
    13: FieldSpec("max", FieldKind.DOUBLE),
    14: FieldSpec("zero_threshold", FieldKind.DOUBLE),
})
def _build_exponential_point(values: Dict[str, Any]) -> ExponentialHistogramDataPoint:
    return ExponentialHistogramDataPoint(
        attributes=_attrs(values),
        start_time_unix_nano=values.get("start_time_unix_nano", 0),
        time_unix_nano=values.get("time_unix_nano", 0),
        count=values.get("count", 0),
        sum=values.get("sum"),
        scale=values.get("scale", 0),
        zero_count=values.get("zero_count", 0),
        positive=values.get("positive", Buckets()),
        negative=values.get("negative", Buckets()),
        flags=values.get("flags", 0),
        exemplars=_tuple(values, "exemplars"),
        min=values.get("min"),
        max=values.get("max"),
        zero_threshold=values.get("zero_threshold", 0.0),
    )


@_schema("ValueAtQuantile", {
    1: FieldSpec("quantile", FieldKind.DOUBLE),
    2: FieldSpec("value", FieldKind.DOUBLE),
})
def _build_quantile(values: Dict[str, Any]) -> ValueAtQuantile:
    return ValueAtQuantile(quantile=values.get("quantile", 0.0), value=values.get("value", 0.0))


@_schema("SummaryDataPoint", {
    7: _msg("attributes", "KeyValue", repeated=True),
    2: FieldSpec("start_time_unix_nano", FieldKind.FIXED64),
    3: FieldSpec("time_unix_nano", FieldKind.FIXED64),
    4: FieldSpec("count", FieldKind.FIXED64),
    5: FieldSpec("sum", FieldKind.DOUBLE),
    6: _msg("quantile_values", "ValueAtQuantile", repeated=True),
    8: FieldSpec("flags", FieldKind.UINT32),
})
def _build_summary_point(values: Dict[str, Any]) -> SummaryDataPoint:
    return SummaryDataPoint(
        attributes=_attrs(values),
        start_time_unix_nano=values.get("start_time_unix_nano", 0),
        time_unix_nano=values.get("time_unix_nano", 0),
        count=values.get("count", 0),
        sum=values.get("sum", 0.0),
        quantile_values=_tuple(values, "quantile_values"),
        flags=values.get("flags", 0),
    )


def _temporality(values: Dict[str, Any]) -> AggregationTemporality:
    return AggregationTemporality(values.get("aggregation_temporality", 0))


@_schema("Gauge", {1: _msg("data_points", "NumberDataPoint", repeated=True)})
def _build_gauge(values: Dict[str, Any]) -> Gauge:
    return Gauge(data_points=_tuple(values, "data_points"))


@_schema("Sum", {
    1: _msg("data_points", "NumberDataPoint", repeated=True),
    2: FieldSpec("aggregation_temporality", FieldKind.ENUM),
    3: FieldSpec("is_monotonic", FieldKind.BOOL),
})
def _build_sum(values: Dict[str, Any]) -> Sum:
    return Sum(
        data_points=_tuple(values, "data_points"),
        aggregation_temporality=_temporality(values),
        is_monotonic=values.get("is_monotonic", False),
    )


@_schema("Histogram", {
    1: _msg("data_points", "HistogramDataPoint", repeated=True),
    2: FieldSpec("aggregation_temporality", FieldKind.ENUM),
})
def _build_histogram(values: Dict[str, Any]) -> Histogram:
    return Histogram(data_points=_tuple(values, "data_points"), aggregation_temporality=_temporality(values))


@_schema("ExponentialHistogram", {
    1: _msg("data_points", "ExponentialHistogramDataPoint", repeated=True),
    2: FieldSpec("aggregation_temporality", FieldKind.ENUM),
})
def _build_exponential_histogram(values: Dict[str, Any]) -> ExponentialHistogram:
    return ExponentialHistogram(
        data_points=_tuple(values, "data_points"),
        aggregation_temporality=_temporality(values),
    )


@_schema("Summary", {1: _msg("data_points", "SummaryDataPoint", repeated=True)})
def _build_summary(values: Dict[str, Any]) -> Summary:
    return Summary(data_points=_tuple(values, "data_points"))


@_schema("Metric", {
    1: FieldSpec("name", FieldKind.STRING),
    2: FieldSpec("description", FieldKind.STRING),
    3: FieldSpec("unit", FieldKind.STRING),
    5: _msg("gauge", "Gauge", oneof="data"),
    7: _msg("sum", "Sum", oneof="data"),
    9: _msg("histogram", "Histogram", oneof="data"),
    10: _msg("exponential_histogram", "ExponentialHistogram", oneof="data"),
    11: _msg("summary", "Summary", oneof="data"),
    12: _msg("metadata", "KeyValue", repeated=True),
})
def _build_metric(values: Dict[str, Any]) -> Metric:
    return Metric(
        name=values.get("name", ""),
        description=values.get("description", ""),
        unit=values.get("unit", ""),
        data=_oneof(values, "data")[1],
        metadata=_attrs(values, "metadata"),
    )


@_schema("ScopeMetrics", {
    1: _msg("scope", "InstrumentationScope"),
    2: _msg("metrics", "Metric", repeated=True),
    3: FieldSpec("schema_url", FieldKind.STRING),
})
def _build_scope_metrics(values: Dict[str, Any]) -> ScopeMetrics:
    return ScopeMetrics(
        scope=values.get("scope"),
        metrics=_tuple(values, "metrics"),
        schema_url=values.get("schema_url", ""),
    )


_schema("InstrumentationLibraryMetrics", {
    1: _msg("scope", "InstrumentationLibrary"),
    2: _msg("metrics", "Metric", repeated=True),
    3: FieldSpec("schema_url", FieldKind.STRING),
})(_build_scope_metrics)


@_schema("ResourceMetrics", {
    1: _msg("resource", "Resource"),
    2: _msg("scope_metrics", "ScopeMetrics", repeated=True),
    3: FieldSpec("schema_url", FieldKind.STRING),
    1000: _msg("scope_metrics", "InstrumentationLibraryMetrics", repeated=True),
})
def _build_resource_metrics(values: Dict[str, Any]) -> ResourceMetrics:
    return ResourceMetrics(
        resource=values.get("resource", Resource()),
        scope_metrics=_tuple(values, "scope_metrics"),
        schema_url=values.get("schema_url", ""),
    )


@_schema("ExportMetricsServiceRequest", {
    1: _msg("resource_metrics", "ResourceMetrics", repeated=True),
})
def _build_metrics_export(values: Dict[str, Any]) -> MetricsExport:
    return MetricsExport(resource_metrics=_tuple(values, "resource_metrics"))


# -----------------------------------------------------------------------------
# Decoding engine
# -----------------------------------------------------------------------------

class _MessageDecoder:
    """Walks a buffer according to the registered schemas.

    One instance decodes one payload; the node budget is shared by every
    message materialized during that call.
    """

    def __init__(self, data: bytes, limits: DecodeLimits) -> None:
        self.data = data
        self.limits = limits
        self.budget = NodeBudget(limits.max_nodes)

    def decode(self, schema_name: str) -> Any:
        return self._message(WireReader(self.data), SCHEMAS[schema_name], 0)

    def _message(self, reader: WireReader, schema: MessageSchema, depth: int) -> Any:
        self.budget.charge(reader.pos)
        values: Dict[str, Any] = {}
        while not reader.at_end():
            tag = reader.read_tag()
            spec = schema.fields.get(tag.field_number)
            if spec is None:
                reader.skip(tag)
                continue
            self._field(reader, schema, spec, tag, depth, values)
        return schema.build(values)

    def _field(
        self,
        reader: WireReader,
        schema: MessageSchema,
        spec: FieldSpec,
        tag: Tag,
        depth: int,
        values: Dict[str, Any],
    ) -> None:
        expected = WIRE_TYPES[spec.kind]
        if tag.wire_type is not expected:
            if spec.repeated and tag.wire_type is WireType.LEN and expected is not WireType.LEN:
                values.setdefault(spec.name, []).extend(reader.read_packed(SCALAR_READERS[spec.kind]))
                return
            raise DecodeError(
                f"{schema.name}.{spec.name} expects wire type {expected.name}, "
                f"got {tag.wire_type.name}",
                tag.offset,
            )

        if spec.kind is FieldKind.MESSAGE:
            start, end = reader.read_length_delimited()
            if depth + 1 > self.limits.max_depth:
                raise DecodeError(
                    f"nesting depth exceeds limit of {self.limits.max_depth}", tag.offset
                )
            value = self._message(reader.sub_reader(start, end), SCHEMAS[spec.message], depth + 1)
        else:
            value = SCALAR_READERS[spec.kind](reader)
            size = _ID_SIZES.get(spec.kind)
            if size is not None and len(value) not in (0, size):
                raise DecodeError(
                    f"{schema.name}.{spec.name} must be {size} bytes, got {len(value)}",
                    tag.offset,
                )

        if spec.repeated:
            values.setdefault(spec.name, []).append(value)
        elif spec.oneof is not None:
            values[spec.oneof] = (spec.name, value)
        else:
            values[spec.name] = value


# Message names accepted by decode_message, in the order the CLI lists them.
MESSAGE_TYPES: Tuple[str, ...] = (
    "Direct",
    "Span",
    "Metric",
    "LogRecord",
    "ScopeSpans",
    "ScopeMetrics",
    "ScopeLogs",
    "Resource",
    "ResourceSpans",
    "ResourceMetrics",
    "ResourceLogs",
    "ExportTraceServiceRequest",
    "ExportMetricsServiceRequest",
    "ExportLogsServiceRequest",
)


@dataclass(frozen=True)
class RawField:
    """A top-level field as seen on the wire, without a schema."""
    field_number: int
    wire_type: WireType
    value: Union[int, bytes]
    offset: int


@dataclass(frozen=True)
class RawMessage:
    fields: Tuple[RawField, ...] = ()


def _as_bytes(data: Union[bytes, bytearray, memoryview]) -> bytes:
    return data if isinstance(data, bytes) else bytes(data)


def decode_raw(data: Union[bytes, bytearray, memoryview]) -> RawMessage:
    """List the top-level fields of any protobuf message.

    Varint and fixed-width payloads are returned as unsigned integers,
    length-delimited payloads as bytes.

    Raises:
        DecodeError: If the buffer is not a well-formed field sequence
    """
    reader = WireReader(_as_bytes(data))
    fields: List[RawField] = []
    while not reader.at_end():
        tag = reader.read_tag()
        if tag.wire_type is WireType.VARINT:
            value: Union[int, bytes] = reader.read_varint()
        elif tag.wire_type is WireType.I64:
            value = reader.read_fixed64()
        elif tag.wire_type is WireType.I32:
            value = reader.read_fixed32()
        else:
            value = reader.read_bytes()
        fields.append(RawField(tag.field_number, tag.wire_type, value, tag.offset))
    return RawMessage(tuple(fields))


def decode_message(
    name: str,
    data: Union[bytes, bytearray, memoryview],
    limits: Optional[DecodeLimits] = None,
) -> Any:
    """Decode ``data`` as the OTLP message type called ``name``.

    Args:
        name: One of MESSAGE_TYPES
        data: Serialized protobuf bytes
        limits: Depth and node limits, defaults to DecodeLimits()

    Returns:
        The decoded tree; its type depends on ``name``

    Raises:
        ValueError: If ``name`` is not a supported message type
        DecodeError: If the payload is malformed or exceeds the limits
    """
    if name not in MESSAGE_TYPES:
        raise ValueError(f"Unsupported message type: {name}")
    if name == "Direct":
        return decode_raw(data)

    payload = _as_bytes(data)
    decoder = _MessageDecoder(payload, limits or DecodeLimits())
    result = decoder.decode(name)
    logger.debug(
        "Decoded %s: %d bytes, %d messages", name, len(payload), decoder.budget.count
    )
    return result


def decode(
    data: Union[bytes, bytearray, memoryview],
    limits: Optional[DecodeLimits] = None,
) -> TraceExport:
    """Decode a serialized ExportTraceServiceRequest.

    A serialized TracesData message has the same layout and decodes the
    same way.

    Raises:
        DecodeError: With the failing byte offset on malformed input
    """
    return decode_message("ExportTraceServiceRequest", data, limits)


def decode_logs(
    data: Union[bytes, bytearray, memoryview],
    limits: Optional[DecodeLimits] = None,
) -> LogsExport:
    """Decode a serialized ExportLogsServiceRequest (or LogsData)."""
    return decode_message("ExportLogsServiceRequest", data, limits)


def decode_metrics(
    data: Union[bytes, bytearray, memoryview],
    limits: Optional[DecodeLimits] = None,
) -> MetricsExport:
    """Decode a serialized ExportMetricsServiceRequest (or MetricsData)."""
    return decode_message("ExportMetricsServiceRequest", data, limits)
