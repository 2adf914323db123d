"""
otkit.core.model - In-memory model of a decoded OTLP trace export.

The tree mirrors the wire hierarchy: TraceExport -> ResourceSpans ->
ScopeSpans -> Span -> Event/Link. Every node is an immutable dataclass
and owns its children; parent spans are referenced by id only.

Classes:
    SpanKind: Span kind enumeration (open, unknown values are preserved)
    StatusCode: Span status code enumeration
    Status: Span status (code and message)
    Event: Timestamped annotation on a span
    Link: Reference from a span to another span
    Span: A single timed operation
    ScopeSpans: Spans produced by one instrumentation scope
    ResourceSpans: Scopes produced by one resource
    TraceExport: Root of a decoded ExportTraceServiceRequest
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional, Tuple

from otkit.core.values import Attributes, InstrumentationScope, Resource

TRACE_ID_SIZE = 16
SPAN_ID_SIZE = 8

INVALID_TRACE_ID = bytes(TRACE_ID_SIZE)
INVALID_SPAN_ID = bytes(SPAN_ID_SIZE)


class OpenEnum(IntEnum):
    """IntEnum that keeps values it does not know about.

    Protobuf enums are open: a newer producer may send a value this
    version has no name for. Such values become pseudo-members named
    ``UNKNOWN_<value>`` instead of failing the decode.
    """

    @classmethod
    def _missing_(cls, value: object) -> Optional[OpenEnum]:
        if not isinstance(value, int):
            return None
        member = int.__new__(cls, value)
        member._name_ = f"UNKNOWN_{value}"
        member._value_ = value
        return member


class SpanKind(OpenEnum):
    UNSPECIFIED = 0
    INTERNAL = 1
    SERVER = 2
    CLIENT = 3
    PRODUCER = 4
    CONSUMER = 5


class StatusCode(OpenEnum):
    UNSET = 0
    OK = 1
    ERROR = 2


@dataclass(frozen=True)
class Status:
    code: StatusCode = StatusCode.UNSET
    message: str = ""


@dataclass(frozen=True)
class Event:
    """A timestamped annotation on a span."""
    time_unix_nano: int = 0
    name: str = ""
    attributes: Attributes = field(default_factory=Attributes)
    dropped_attributes_count: int = 0


@dataclass(frozen=True)
class Link:
    """A pointer from the current span to another span."""
    trace_id: bytes = INVALID_TRACE_ID
    span_id: bytes = INVALID_SPAN_ID
    trace_state: str = ""
    attributes: Attributes = field(default_factory=Attributes)
    dropped_attributes_count: int = 0
    flags: int = 0


@dataclass(frozen=True)
class Span:
    """A single timed operation within a trace.

    Attributes:
        trace_id: 16-byte trace identifier
        span_id: 8-byte span identifier
        parent_span_id: 8-byte parent identifier, None for root spans
        name: Operation name
        kind: Span kind
        start_time_unix_nano: Start timestamp in ns since the epoch
        end_time_unix_nano: End timestamp in ns since the epoch
        attributes: Span attributes in arrival order
        events: Span events in arrival order
        links: Span links in arrival order
        status: Final status of the operation
        trace_state: W3C trace state header value
        flags: W3C trace flags plus OTLP extension bits
    """
    trace_id: bytes = INVALID_TRACE_ID
    span_id: bytes = INVALID_SPAN_ID
    parent_span_id: Optional[bytes] = None
    name: str = ""
    kind: SpanKind = SpanKind.UNSPECIFIED
    start_time_unix_nano: int = 0
    end_time_unix_nano: int = 0
    attributes: Attributes = field(default_factory=Attributes)
    events: Tuple[Event, ...] = ()
    links: Tuple[Link, ...] = ()
    status: Status = field(default_factory=Status)
    trace_state: str = ""
    flags: int = 0
    dropped_attributes_count: int = 0
    dropped_events_count: int = 0
    dropped_links_count: int = 0

    @property
    def duration(self) -> int:
        """Duration in nanoseconds.

        Producers occasionally emit an end timestamp before the start
        timestamp; the duration is then reported as zero.
        """
        return max(0, self.end_time_unix_nano - self.start_time_unix_nano)

    @property
    def trace_id_hex(self) -> str:
        return self.trace_id.hex()

    @property
    def span_id_hex(self) -> str:
        return self.span_id.hex()

    @property
    def parent_span_id_hex(self) -> Optional[str]:
        return self.parent_span_id.hex() if self.parent_span_id is not None else None

    @property
    def is_root(self) -> bool:
        return self.parent_span_id is None


@dataclass(frozen=True)
class ScopeSpans:
    scope: Optional[InstrumentationScope] = None
    spans: Tuple[Span, ...] = ()
    schema_url: str = ""


@dataclass(frozen=True)
class ResourceSpans:
    resource: Resource = field(default_factory=Resource)
    scope_spans: Tuple[ScopeSpans, ...] = ()
    schema_url: str = ""


@dataclass(frozen=True)
class TraceExport:
    """Root of a decoded trace payload."""
    resource_spans: Tuple[ResourceSpans, ...] = ()

    @property
    def span_count(self) -> int:
        return sum(len(ss.spans) for rs in self.resource_spans for ss in rs.scope_spans)
