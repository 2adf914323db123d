"""
otkit.core - Decode-and-search engine for OTLP protobuf payloads.

This subpackage contains the main functionality:
- wire: low level protobuf reader, DecodeLimits
- decoder: OTLP message schemas, decode/decode_logs/decode_metrics
- values, model, signals: the immutable decoded trees
- query: Predicate tree and search
- expression: text syntax for predicates
- formatter: pretty, compact and json rendering
"""

from otkit.core.errors import OTKError, DecodeError, PredicateError, ReportError
from otkit.core.wire import DecodeLimits
from otkit.core.values import AnyValue, Attributes, KeyValue, ValueKind, Resource, InstrumentationScope
from otkit.core.model import Span, SpanKind, Status, StatusCode, Event, Link, ScopeSpans, ResourceSpans, TraceExport
from otkit.core.signals import LogsExport, MetricsExport
from otkit.core.decoder import MESSAGE_TYPES, decode, decode_logs, decode_metrics, decode_message, decode_raw
from otkit.core.query import Comparison, And, Or, Not, Predicate, SpanMatch, SpanSearch, search
from otkit.core.expression import parse_predicate
from otkit.core.formatter import FormatStyle, TextFormatter, format_export, format_spans, format_value

__all__ = [
    "OTKError",
    "DecodeError",
    "PredicateError",
    "ReportError",
    "DecodeLimits",
    "AnyValue",
    "Attributes",
    "KeyValue",
    "ValueKind",
    "Resource",
    "InstrumentationScope",
    "Span",
    "SpanKind",
    "Status",
    "StatusCode",
    "Event",
    "Link",
    "ScopeSpans",
    "ResourceSpans",
    "TraceExport",
    "LogsExport",
    "MetricsExport",
    "MESSAGE_TYPES",
    "decode",
    "decode_logs",
    "decode_metrics",
    "decode_message",
    "decode_raw",
    "Comparison",
    "And",
    "Or",
    "Not",
    "Predicate",
    "SpanMatch",
    "SpanSearch",
    "search",
    "parse_predicate",
    "FormatStyle",
    "TextFormatter",
    "format_export",
    "format_spans",
    "format_value",
]
