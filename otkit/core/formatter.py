"""
otkit.core.formatter - Text rendering of decoded OTLP structures.

Renders decoded exports, their component messages and search results in
one of three modes:

- pretty: nested indentation mirroring resource -> scope -> item
- compact: one tab-delimited line per span, log record or data point
- json: OTLP/JSON-like dictionaries, indented

Attribute values are rendered type-tagged so that output can be diffed
unambiguously: strings are JSON-quoted, doubles use repr, and bytes,
arrays and key-value lists carry a ``bytes:``, ``array:`` or ``kvlist:``
prefix.

Classes:
    FormatStyle: Presentation options
    TextFormatter: Renders any decoded structure in a given mode

Functions:
    format_value: Render one AnyValue
    format_export: Render a decoded export or message
    format_spans: Render a sequence of spans (e.g. search results)
"""

from __future__ import annotations

import base64
import json
import math
from dataclasses import dataclass, fields, is_dataclass
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from otkit.core.decoder import RawMessage
from otkit.core.model import Event, Link, ResourceSpans, ScopeSpans, Span, TraceExport
from otkit.core.signals import (
    ExponentialHistogramDataPoint,
    Exemplar,
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
    Sum,
    SummaryDataPoint,
)
from otkit.core.values import AnyValue, Attributes, InstrumentationScope, Resource, ValueKind
from otkit.core.wire import WireType
from otkit.utils.tree import flatten_spans

FORMAT_MODES = ("pretty", "compact", "json")


def format_value(value: AnyValue) -> str:
    """Render an AnyValue as type-tagged text.

    Example:
        >>> format_value(AnyValue.of([1, "a", b"\\x01"]))
        'array:[1, "a", bytes:01]'
    """
    kind = value.kind
    if kind is ValueKind.STRING:
        return json.dumps(value.value, ensure_ascii=False)
    if kind is ValueKind.BOOL:
        return "true" if value.value else "false"
    if kind is ValueKind.INT:
        return str(value.value)
    if kind is ValueKind.DOUBLE:
        return repr(value.value)
    if kind is ValueKind.BYTES:
        return f"bytes:{value.value.hex()}"
    if kind is ValueKind.ARRAY:
        return "array:[" + ", ".join(format_value(item) for item in value.value) + "]"
    if kind is ValueKind.KVLIST:
        items = ", ".join(
            f"{json.dumps(kv.key, ensure_ascii=False)}: {format_value(kv.value)}" for kv in value.value
        )
        return "kvlist:{" + items + "}"
    return "<empty>"


def _cell(text: str) -> str:
    """Escape a free-text column of compact output."""
    return text.replace("\\", "\\\\").replace("\t", "\\t").replace("\n", "\\n")


def _number(value: Any) -> str:
    if value is None:
        return "-"
    return repr(value) if isinstance(value, float) else str(value)


def _optional_hex(value: Optional[bytes]) -> str:
    return value.hex() if value else "-"


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


@dataclass
class FormatStyle:
    """Presentation options.

    Attributes:
        indent: Indentation unit for pretty mode
        json_indent: Indentation passed to json.dumps
        show_defaults: Print zero/empty optional fields in pretty mode
    """
    indent: str = "  "
    json_indent: int = 2
    show_defaults: bool = False


class TextFormatter:
    """Renders decoded OTLP structures as text.

    Example:
        >>> formatter = TextFormatter()
        >>> print(formatter.render(export, "compact"))
        5b8efff798038103d269b633813fc60c\teee19b7ec3c1b174\tGET /cart\t...
    """

    def __init__(self, style: Optional[FormatStyle] = None) -> None:
        self.style = style or FormatStyle()
        self._pretty_handlers: Dict[type, Callable[[Any, int], List[str]]] = {
            TraceExport: self._pretty_trace_export,
            ResourceSpans: self._pretty_resource_spans,
            ScopeSpans: self._pretty_scope_spans,
            Span: self._pretty_span,
            LogsExport: self._pretty_logs_export,
            ResourceLogs: self._pretty_resource_logs,
            ScopeLogs: self._pretty_scope_logs,
            LogRecord: self._pretty_log_record,
            MetricsExport: self._pretty_metrics_export,
            ResourceMetrics: self._pretty_resource_metrics,
            ScopeMetrics: self._pretty_scope_metrics,
            Metric: self._pretty_metric,
            Resource: self._pretty_resource,
            RawMessage: self._pretty_raw,
        }

    def render(self, obj: Any, mode: str = "pretty") -> str:
        """Render a decoded export, message or list of them.

        Raises:
            ValueError: If the mode or the object type is not supported
        """
        if mode == "pretty":
            return "\n".join(self.pretty_lines(obj))
        if mode == "compact":
            return "\n".join(self.compact_lines(obj))
        if mode == "json":
            return json.dumps(
                to_json_dict(obj), indent=self.style.json_indent, ensure_ascii=False, allow_nan=False
            )
        raise ValueError(f"Unknown format mode {mode!r} (expected one of: {', '.join(FORMAT_MODES)})")

    # -------------------------------------------------------------------------
    # pretty
    # -------------------------------------------------------------------------

    def pretty_lines(self, obj: Any, depth: int = 0) -> List[str]:
        if isinstance(obj, (list, tuple)):
            lines: List[str] = []
            for item in obj:
                lines.extend(self.pretty_lines(item, depth))
            return lines
        handler = self._pretty_handlers.get(type(obj))
        if handler is None:
            raise ValueError(f"Cannot format object of type {type(obj).__name__}")
        return handler(obj, depth)

    def _pad(self, depth: int) -> str:
        return self.style.indent * depth

    def _line(self, depth: int, text: str) -> str:
        return f"{self._pad(depth)}{text}"

    def _optional(self, lines: List[str], depth: int, label: str, value: Any) -> None:
        if value or self.style.show_defaults:
            lines.append(self._line(depth, f"{label}: {value}"))

    def _attributes(self, attrs: Attributes, depth: int, label: str = "attributes") -> List[str]:
        if not attrs:
            return []
        lines = [self._line(depth, f"{label}:")]
        for kv in attrs:
            lines.append(self._line(depth + 1, f"{kv.key} = {format_value(kv.value)}"))
        return lines

    def _pretty_resource(self, resource: Resource, depth: int) -> List[str]:
        lines = [self._line(depth, "Resource")]
        for kv in resource.attributes:
            lines.append(self._line(depth + 1, f"{kv.key} = {format_value(kv.value)}"))
        self._optional(lines, depth + 1, "dropped_attributes_count", resource.dropped_attributes_count)
        return lines

    def _pretty_scope(self, scope: Optional[InstrumentationScope], depth: int) -> List[str]:
        if scope is None:
            return [self._line(depth, "Scope <none>")]
        title = " ".join(part for part in (scope.name or '""', scope.version) if part)
        lines = [self._line(depth, f"Scope {title}")]
        for kv in scope.attributes:
            lines.append(self._line(depth + 1, f"{kv.key} = {format_value(kv.value)}"))
        self._optional(lines, depth + 1, "dropped_attributes_count", scope.dropped_attributes_count)
        return lines

    def _pretty_trace_export(self, export: TraceExport, depth: int) -> List[str]:
        lines: List[str] = []
        for index, resource_spans in enumerate(export.resource_spans):
            lines.extend(self._pretty_resource_spans(resource_spans, depth, index))
        return lines or [self._line(depth, "(no resource spans)")]

    def _pretty_resource_spans(self, rs: ResourceSpans, depth: int, index: int = 0) -> List[str]:
        lines = [self._line(depth, f"ResourceSpans[{index}]")]
        lines.extend(self._pretty_resource(rs.resource, depth + 1))
        self._optional(lines, depth + 1, "schema_url", rs.schema_url)
        for i, scope_spans in enumerate(rs.scope_spans):
            lines.extend(self._pretty_scope_spans(scope_spans, depth + 1, i))
        return lines

    def _pretty_scope_spans(self, ss: ScopeSpans, depth: int, index: int = 0) -> List[str]:
        lines = [self._line(depth, f"ScopeSpans[{index}]")]
        lines.extend(self._pretty_scope(ss.scope, depth + 1))
        self._optional(lines, depth + 1, "schema_url", ss.schema_url)
        for span in ss.spans:
            lines.extend(self._pretty_span(span, depth + 1))
        return lines

    def _status_text(self, span: Span) -> str:
        code = span.status.code.name
        if span.status.message:
            return f"{code} {json.dumps(span.status.message, ensure_ascii=False)}"
        return code

    def _pretty_span(self, span: Span, depth: int) -> List[str]:
        d = depth + 1
        lines = [
            self._line(depth, f"Span {json.dumps(span.name, ensure_ascii=False)}"),
            self._line(d, f"trace_id: {span.trace_id_hex}"),
            self._line(d, f"span_id: {span.span_id_hex}"),
            self._line(d, f"parent_span_id: {span.parent_span_id_hex or '<root>'}"),
            self._line(d, f"kind: {span.kind.name}"),
            self._line(d, f"start_time_unix_nano: {span.start_time_unix_nano}"),
            self._line(d, f"end_time_unix_nano: {span.end_time_unix_nano}"),
            self._line(d, f"duration_ns: {span.duration}"),
            self._line(d, f"status: {self._status_text(span)}"),
        ]
        self._optional(lines, d, "trace_state", span.trace_state)
        self._optional(lines, d, "flags", span.flags)
        lines.extend(self._attributes(span.attributes, d))
        self._optional(lines, d, "dropped_attributes_count", span.dropped_attributes_count)
        if span.events:
            lines.append(self._line(d, "events:"))
            for event in span.events:
                lines.extend(self._pretty_event(event, d + 1))
        self._optional(lines, d, "dropped_events_count", span.dropped_events_count)
        if span.links:
            lines.append(self._line(d, "links:"))
            for link in span.links:
                lines.extend(self._pretty_link(link, d + 1))
        self._optional(lines, d, "dropped_links_count", span.dropped_links_count)
        return lines

    def _pretty_event(self, event: Event, depth: int) -> List[str]:
        name = json.dumps(event.name, ensure_ascii=False)
        lines = [self._line(depth, f"- {name} at {event.time_unix_nano}")]
        lines.extend(self._attributes(event.attributes, depth + 1))
        return lines

    def _pretty_link(self, link: Link, depth: int) -> List[str]:
        lines = [self._line(depth, f"- trace_id={link.trace_id.hex()} span_id={link.span_id.hex()}")]
        self._optional(lines, depth + 1, "trace_state", link.trace_state)
        self._optional(lines, depth + 1, "flags", link.flags)
        lines.extend(self._attributes(link.attributes, depth + 1))
        return lines

    def _pretty_logs_export(self, export: LogsExport, depth: int) -> List[str]:
        lines: List[str] = []
        for index, resource_logs in enumerate(export.resource_logs):
            lines.extend(self._pretty_resource_logs(resource_logs, depth, index))
        return lines or [self._line(depth, "(no resource logs)")]

    def _pretty_resource_logs(self, rl: ResourceLogs, depth: int, index: int = 0) -> List[str]:
        lines = [self._line(depth, f"ResourceLogs[{index}]")]
        lines.extend(self._pretty_resource(rl.resource, depth + 1))
        self._optional(lines, depth + 1, "schema_url", rl.schema_url)
        for i, scope_logs in enumerate(rl.scope_logs):
            lines.extend(self._pretty_scope_logs(scope_logs, depth + 1, i))
        return lines

    def _pretty_scope_logs(self, sl: ScopeLogs, depth: int, index: int = 0) -> List[str]:
        lines = [self._line(depth, f"ScopeLogs[{index}]")]
        lines.extend(self._pretty_scope(sl.scope, depth + 1))
        self._optional(lines, depth + 1, "schema_url", sl.schema_url)
        for record in sl.log_records:
            lines.extend(self._pretty_log_record(record, depth + 1))
        return lines

    def _pretty_log_record(self, record: LogRecord, depth: int) -> List[str]:
        d = depth + 1
        severity = f"{record.severity_number.name} ({int(record.severity_number)})"
        lines = [
            self._line(depth, "LogRecord"),
            self._line(d, f"time_unix_nano: {record.time_unix_nano}"),
            self._line(d, f"observed_time_unix_nano: {record.observed_time_unix_nano}"),
            self._line(d, f"severity: {severity}"),
        ]
        self._optional(lines, d, "severity_text", record.severity_text)
        lines.append(self._line(d, f"body: {format_value(record.body)}"))
        if record.trace_id is not None:
            lines.append(self._line(d, f"trace_id: {record.trace_id.hex()}"))
        if record.span_id is not None:
            lines.append(self._line(d, f"span_id: {record.span_id.hex()}"))
        self._optional(lines, d, "event_name", record.event_name)
        self._optional(lines, d, "flags", record.flags)
        lines.extend(self._attributes(record.attributes, d))
        self._optional(lines, d, "dropped_attributes_count", record.dropped_attributes_count)
        return lines

    def _pretty_metrics_export(self, export: MetricsExport, depth: int) -> List[str]:
        lines: List[str] = []
        for index, resource_metrics in enumerate(export.resource_metrics):
            lines.extend(self._pretty_resource_metrics(resource_metrics, depth, index))
        return lines or [self._line(depth, "(no resource metrics)")]

    def _pretty_resource_metrics(self, rm: ResourceMetrics, depth: int, index: int = 0) -> List[str]:
        lines = [self._line(depth, f"ResourceMetrics[{index}]")]
        lines.extend(self._pretty_resource(rm.resource, depth + 1))
        self._optional(lines, depth + 1, "schema_url", rm.schema_url)
        for i, scope_metrics in enumerate(rm.scope_metrics):
            lines.extend(self._pretty_scope_metrics(scope_metrics, depth + 1, i))
        return lines

    def _pretty_scope_metrics(self, sm: ScopeMetrics, depth: int, index: int = 0) -> List[str]:
        lines = [self._line(depth, f"ScopeMetrics[{index}]")]
        lines.extend(self._pretty_scope(sm.scope, depth + 1))
        self._optional(lines, depth + 1, "schema_url", sm.schema_url)
        for metric in sm.metrics:
            lines.extend(self._pretty_metric(metric, depth + 1))
        return lines

    def _metric_type(self, metric: Metric) -> str:
        data = metric.data
        details = []
        temporality = getattr(data, "aggregation_temporality", None)
        if temporality is not None:
            details.append(temporality.name)
        if isinstance(data, Sum) and data.is_monotonic:
            details.append("monotonic")
        suffix = f" ({', '.join(details)})" if details else ""
        return f"{metric.data_type}{suffix}"

    def _pretty_metric(self, metric: Metric, depth: int) -> List[str]:
        d = depth + 1
        lines = [self._line(depth, f"Metric {json.dumps(metric.name, ensure_ascii=False)}")]
        self._optional(lines, d, "description", metric.description)
        self._optional(lines, d, "unit", metric.unit)
        lines.append(self._line(d, f"type: {self._metric_type(metric)}"))
        lines.extend(self._attributes(metric.metadata, d, "metadata"))
        for index, point in enumerate(metric.data_points):
            lines.append(self._line(d, f"DataPoint[{index}]"))
            lines.extend(self._pretty_data_point(point, d + 1))
        return lines

    def _pretty_data_point(self, point: Any, depth: int) -> List[str]:
        lines = [
            self._line(depth, f"start_time_unix_nano: {point.start_time_unix_nano}"),
            self._line(depth, f"time_unix_nano: {point.time_unix_nano}"),
        ]
        if isinstance(point, NumberDataPoint):
            lines.append(self._line(depth, f"value: {_number(point.value)}"))
        else:
            lines.append(self._line(depth, f"count: {point.count}"))
            lines.append(self._line(depth, f"sum: {_number(point.sum)}"))
        if isinstance(point, (HistogramDataPoint, ExponentialHistogramDataPoint)):
            lines.append(self._line(depth, f"min: {_number(point.min)}"))
            lines.append(self._line(depth, f"max: {_number(point.max)}"))
        if isinstance(point, HistogramDataPoint):
            lines.append(self._line(depth, f"bucket_counts: {list(point.bucket_counts)}"))
            lines.append(self._line(depth, f"explicit_bounds: {list(point.explicit_bounds)}"))
        elif isinstance(point, ExponentialHistogramDataPoint):
            lines.append(self._line(depth, f"scale: {point.scale}"))
            lines.append(self._line(depth, f"zero_count: {point.zero_count}"))
            self._optional(lines, depth, "zero_threshold", point.zero_threshold)
            for label, buckets in (("positive", point.positive), ("negative", point.negative)):
                lines.append(self._line(
                    depth, f"{label}: offset={buckets.offset} bucket_counts={list(buckets.bucket_counts)}"
                ))
        elif isinstance(point, SummaryDataPoint):
            for q in point.quantile_values:
                lines.append(self._line(depth, f"quantile {q.quantile!r}: {q.value!r}"))
        self._optional(lines, depth, "flags", point.flags)
        lines.extend(self._attributes(point.attributes, depth))
        for exemplar in getattr(point, "exemplars", ()):
            lines.extend(self._pretty_exemplar(exemplar, depth))
        return lines

    def _pretty_exemplar(self, exemplar: Exemplar, depth: int) -> List[str]:
        lines = [self._line(
            depth,
            f"exemplar value={_number(exemplar.value)} time={exemplar.time_unix_nano} "
            f"trace_id={_optional_hex(exemplar.trace_id)} span_id={_optional_hex(exemplar.span_id)}",
        )]
        lines.extend(self._attributes(exemplar.filtered_attributes, depth + 1, "filtered_attributes"))
        return lines

    def _pretty_raw(self, message: RawMessage, depth: int) -> List[str]:
        lines = []
        for raw in message.fields:
            value = raw.value
            text = f"bytes:{value.hex()}" if isinstance(value, bytes) else str(value)
            lines.append(self._line(
                depth, f"field {raw.field_number} ({raw.wire_type.name}) at {raw.offset}: {text}"
            ))
        return lines or [self._line(depth, "(no fields)")]

    # -------------------------------------------------------------------------
    # compact
    # -------------------------------------------------------------------------

    def compact_lines(self, obj: Any) -> List[str]:
        if isinstance(obj, (list, tuple)):
            lines: List[str] = []
            for item in obj:
                lines.extend(self.compact_lines(item))
            return lines
        if isinstance(obj, (TraceExport, ResourceSpans, ScopeSpans, Span)):
            return [self.compact_span(span) for span in _spans_of(obj)]
        if isinstance(obj, (LogsExport, ResourceLogs, ScopeLogs, LogRecord)):
            return [self.compact_log_record(record) for record in _log_records_of(obj)]
        if isinstance(obj, (MetricsExport, ResourceMetrics, ScopeMetrics, Metric)):
            return [
                self.compact_data_point(metric, point)
                for metric in _metrics_of(obj)
                for point in metric.data_points
            ]
        if isinstance(obj, Resource):
            return [f"{_cell(kv.key)}\t{format_value(kv.value)}" for kv in obj.attributes]
        if isinstance(obj, RawMessage):
            return [
                f"{raw.field_number}\t{raw.wire_type.name}\t"
                + (f"bytes:{raw.value.hex()}" if isinstance(raw.value, bytes) else str(raw.value))
                for raw in obj.fields
            ]
        raise ValueError(f"Cannot format object of type {type(obj).__name__}")

    def compact_span(self, span: Span) -> str:
        """trace id, span id, name, start, duration and status, tab separated."""
        return "\t".join([
            span.trace_id_hex,
            span.span_id_hex,
            _cell(span.name),
            str(span.start_time_unix_nano),
            str(span.duration),
            span.status.code.name,
        ])

    def compact_log_record(self, record: LogRecord) -> str:
        severity = record.severity_text or record.severity_number.name
        return "\t".join([
            str(record.time_unix_nano),
            _cell(severity),
            _optional_hex(record.trace_id),
            _optional_hex(record.span_id),
            _cell(format_value(record.body)),
        ])

    def compact_data_point(self, metric: Metric, point: Any) -> str:
        if isinstance(point, NumberDataPoint):
            value = _number(point.value)
        else:
            value = f"count={point.count} sum={_number(point.sum)}"
        attrs = ",".join(f"{kv.key}={format_value(kv.value)}" for kv in point.attributes)
        return "\t".join([
            _cell(metric.name),
            metric.data_type,
            str(point.time_unix_nano),
            value,
            _cell(attrs),
        ])


def _spans_of(obj: Any) -> List[Span]:
    if isinstance(obj, TraceExport):
        return flatten_spans(obj)
    if isinstance(obj, ResourceSpans):
        return [span for ss in obj.scope_spans for span in ss.spans]
    if isinstance(obj, ScopeSpans):
        return list(obj.spans)
    return [obj]


def _log_records_of(obj: Any) -> List[LogRecord]:
    if isinstance(obj, LogsExport):
        return [r for rl in obj.resource_logs for sl in rl.scope_logs for r in sl.log_records]
    if isinstance(obj, ResourceLogs):
        return [r for sl in obj.scope_logs for r in sl.log_records]
    if isinstance(obj, ScopeLogs):
        return list(obj.log_records)
    return [obj]


def _metrics_of(obj: Any) -> List[Metric]:
    if isinstance(obj, MetricsExport):
        return [m for rm in obj.resource_metrics for sm in rm.scope_metrics for m in sm.metrics]
    if isinstance(obj, ResourceMetrics):
        return [m for sm in obj.scope_metrics for m in sm.metrics]
    if isinstance(obj, ScopeMetrics):
        return list(obj.metrics)
    return [obj]


# -----------------------------------------------------------------------------
# json
# -----------------------------------------------------------------------------

_ANY_VALUE_JSON_KEYS = {
    ValueKind.STRING: "stringValue",
    ValueKind.BOOL: "boolValue",
    ValueKind.INT: "intValue",
    ValueKind.DOUBLE: "doubleValue",
    ValueKind.BYTES: "bytesValue",
    ValueKind.ARRAY: "arrayValue",
    ValueKind.KVLIST: "kvlistValue",
}


def _json_double(value: float) -> Any:
    """Non-finite doubles become the strings of the protobuf JSON mapping."""
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    return value


def _any_value_json(value: AnyValue) -> Dict[str, Any]:
    if value.kind is ValueKind.EMPTY:
        return {}
    key = _ANY_VALUE_JSON_KEYS[value.kind]
    if value.kind is ValueKind.INT:
        payload: Any = str(value.value)
    elif value.kind is ValueKind.BYTES:
        payload = base64.b64encode(value.value).decode("ascii")
    elif value.kind is ValueKind.ARRAY:
        payload = {"values": [_any_value_json(item) for item in value.value]}
    elif value.kind is ValueKind.KVLIST:
        payload = {"values": [{"key": kv.key, "value": _any_value_json(kv.value)} for kv in value.value]}
    elif value.kind is ValueKind.DOUBLE:
        payload = _json_double(value.value)
    else:
        payload = value.value
    return {key: payload}


def to_json_dict(obj: Any) -> Any:
    """Convert a decoded structure to OTLP/JSON-like plain objects.

    Field names are camelCased, ids are lowercase hex, 64-bit timestamps
    and integer attribute values are strings, bytes attribute values are
    base64, enums are their integer values and non-finite doubles are
    "NaN" or "Infinity" strings, as in the OTLP/JSON encoding. None fields
    are omitted.
    """
    if isinstance(obj, AnyValue):
        return _any_value_json(obj)
    if isinstance(obj, Attributes):
        return [{"key": kv.key, "value": _any_value_json(kv.value)} for kv in obj]
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, bytes):
        return obj.hex()
    if isinstance(obj, (list, tuple)):
        return [to_json_dict(item) for item in obj]
    if is_dataclass(obj) and not isinstance(obj, type):
        out: Dict[str, Any] = {}
        for f in fields(obj):
            value = getattr(obj, f.name)
            if value is None:
                continue
            key = _camel(f.name)
            if isinstance(obj, Metric) and f.name == "data":
                key = _camel(obj.data_type)
            elif isinstance(obj, (NumberDataPoint, Exemplar)) and f.name == "value":
                key = "asDouble" if isinstance(value, float) else "asInt"
            if f.name.endswith("unix_nano") or key == "asInt":
                out[key] = str(value)
            elif isinstance(value, WireType):
                out[key] = value.name
            else:
                out[key] = to_json_dict(value)
        return out
    if isinstance(obj, float):
        return _json_double(obj)
    return obj


_DEFAULT_FORMATTER = TextFormatter()


def format_export(obj: Any, mode: str = "pretty", style: Optional[FormatStyle] = None) -> str:
    """Render a decoded export (or any decoded message) as text.

    Args:
        obj: TraceExport, LogsExport, MetricsExport, any component message
            returned by decode_message, or a list of them
        mode: pretty, compact or json
        style: Presentation options

    Returns:
        The rendered text, without a trailing newline

    Raises:
        ValueError: If the mode or the object type is not supported
    """
    formatter = TextFormatter(style) if style is not None else _DEFAULT_FORMATTER
    return formatter.render(obj, mode)


def format_spans(spans: Iterable[Span], mode: str = "pretty", style: Optional[FormatStyle] = None) -> str:
    """Render a sequence of spans, e.g. the result of a search."""
    span_list: Sequence[Span] = list(spans)
    return format_export(span_list, mode, style)
