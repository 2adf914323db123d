"""
otkit - OpenTelemetry toolkit for testing OTLP pipelines.

This package decodes raw OTLP protobuf payloads (traces, metrics, logs)
into immutable trees, searches decoded traces with composable predicates,
renders the results as text, and emits synthetic telemetry to a collector.

Example:
    >>> from otkit import decode, parse_predicate, search, format_spans
    >>> export = decode(payload)
    >>> slow = parse_predicate("span.duration > 250ms and span.kind == server")
    >>> print(format_spans(search(export, slow), "compact"))
"""

__version__ = "0.1.0"
__author__ = "KR"
__email__ = "Karthickrajam18@gmail.com"

from otkit.core.errors import OTKError, DecodeError, PredicateError, ReportError
from otkit.core.wire import DecodeLimits
from otkit.core.values import AnyValue, Attributes
from otkit.core.model import Span, TraceExport
from otkit.core.decoder import decode, decode_logs, decode_metrics, decode_message
from otkit.core.query import Comparison, And, Or, Not, Predicate, search
from otkit.core.expression import parse_predicate
from otkit.core.formatter import format_export, format_spans, format_value

__all__ = [
    "OTKError",
    "DecodeError",
    "PredicateError",
    "ReportError",
    "DecodeLimits",
    "AnyValue",
    "Attributes",
    "Span",
    "TraceExport",
    "decode",
    "decode_logs",
    "decode_metrics",
    "decode_message",
    "Comparison",
    "And",
    "Or",
    "Not",
    "Predicate",
    "search",
    "parse_predicate",
    "format_export",
    "format_spans",
    "format_value",
]
