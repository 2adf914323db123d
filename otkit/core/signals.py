"""
otkit.core.signals - In-memory model of decoded OTLP log and metric exports.

These trees are structurally analogous to the trace tree in
otkit.core.model: Resource -> Scope -> {LogRecord | Metric}.

Classes:
    SeverityNumber: Log severity enumeration
    LogRecord, ScopeLogs, ResourceLogs, LogsExport: the logs tree
    AggregationTemporality: Metric temporality enumeration
    Exemplar: Sample measurement attached to a data point
    NumberDataPoint, HistogramDataPoint, ExponentialHistogramDataPoint,
    SummaryDataPoint: metric data points
    Gauge, Sum, Histogram, ExponentialHistogram, Summary: metric data variants
    Metric, ScopeMetrics, ResourceMetrics, MetricsExport: the metrics tree
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple, Union

from otkit.core.model import OpenEnum
from otkit.core.values import AnyValue, Attributes, InstrumentationScope, Resource


class SeverityNumber(OpenEnum):
    UNSPECIFIED = 0
    TRACE = 1
    TRACE2 = 2
    TRACE3 = 3
    TRACE4 = 4
    DEBUG = 5
    DEBUG2 = 6
    DEBUG3 = 7
    DEBUG4 = 8
    INFO = 9
    INFO2 = 10
    INFO3 = 11
    INFO4 = 12
    WARN = 13
    WARN2 = 14
    WARN3 = 15
    WARN4 = 16
    ERROR = 17
    ERROR2 = 18
    ERROR3 = 19
    ERROR4 = 20
    FATAL = 21
    FATAL2 = 22
    FATAL3 = 23
    FATAL4 = 24


@dataclass(frozen=True)
class LogRecord:
    """A single log record.

    Attributes:
        time_unix_nano: When the event occurred, 0 if unknown
        observed_time_unix_nano: When the collection system saw the event
        severity_number: Normalized severity
        severity_text: Severity as reported by the source
        body: Log body, any AnyValue variant
        attributes: Record attributes in arrival order
        trace_id: Correlated trace id, None when absent
        span_id: Correlated span id, None when absent
        event_name: Name identifying the event class
    """
    time_unix_nano: int = 0
    observed_time_unix_nano: int = 0
    severity_number: SeverityNumber = SeverityNumber.UNSPECIFIED
    severity_text: str = ""
    body: AnyValue = field(default_factory=AnyValue)
    attributes: Attributes = field(default_factory=Attributes)
    dropped_attributes_count: int = 0
    flags: int = 0
    trace_id: Optional[bytes] = None
    span_id: Optional[bytes] = None
    event_name: str = ""


@dataclass(frozen=True)
class ScopeLogs:
    scope: Optional[InstrumentationScope] = None
    log_records: Tuple[LogRecord, ...] = ()
    schema_url: str = ""


@dataclass(frozen=True)
class ResourceLogs:
    resource: Resource = field(default_factory=Resource)
    scope_logs: Tuple[ScopeLogs, ...] = ()
    schema_url: str = ""


@dataclass(frozen=True)
class LogsExport:
    """Root of a decoded ExportLogsServiceRequest."""
    resource_logs: Tuple[ResourceLogs, ...] = ()

    @property
    def record_count(self) -> int:
        return sum(len(sl.log_records) for rl in self.resource_logs for sl in rl.scope_logs)


class AggregationTemporality(OpenEnum):
    UNSPECIFIED = 0
    DELTA = 1
    CUMULATIVE = 2


@dataclass(frozen=True)
class Exemplar:
    filtered_attributes: Attributes = field(default_factory=Attributes)
    time_unix_nano: int = 0
    value: Union[int, float, None] = None
    span_id: Optional[bytes] = None
    trace_id: Optional[bytes] = None


@dataclass(frozen=True)
class NumberDataPoint:
    """A gauge or sum measurement. ``value`` is an int or a float."""
    attributes: Attributes = field(default_factory=Attributes)
    start_time_unix_nano: int = 0
    time_unix_nano: int = 0
    value: Union[int, float, None] = None
    exemplars: Tuple[Exemplar, ...] = ()
    flags: int = 0


@dataclass(frozen=True)
class HistogramDataPoint:
    attributes: Attributes = field(default_factory=Attributes)
    start_time_unix_nano: int = 0
    time_unix_nano: int = 0
    count: int = 0
    sum: Optional[float] = None
    bucket_counts: Tuple[int, ...] = ()
    explicit_bounds: Tuple[float, ...] = ()
    exemplars: Tuple[Exemplar, ...] = ()
    flags: int = 0
    min: Optional[float] = None
    max: Optional[float] = None


@dataclass(frozen=True)
class Buckets:
    """Exponential histogram bucket range starting at ``offset``."""
    offset: int = 0
    bucket_counts: Tuple[int, ...] = ()


@dataclass(frozen=True)
class ExponentialHistogramDataPoint:
    attributes: Attributes = field(default_factory=Attributes)
    start_time_unix_nano: int = 0
    time_unix_nano: int = 0
    count: int = 0
    sum: Optional[float] = None
    scale: int = 0
    zero_count: int = 0
    positive: Buckets = field(default_factory=Buckets)
    negative: Buckets = field(default_factory=Buckets)
    flags: int = 0
    exemplars: Tuple[Exemplar, ...] = ()
    min: Optional[float] = None
    max: Optional[float] = None
    zero_threshold: float = 0.0


@dataclass(frozen=True)
class ValueAtQuantile:
    quantile: float = 0.0
    value: float = 0.0


@dataclass(frozen=True)
class SummaryDataPoint:
    attributes: Attributes = field(default_factory=Attributes)
    start_time_unix_nano: int = 0
    time_unix_nano: int = 0
    count: int = 0
    sum: float = 0.0
    quantile_values: Tuple[ValueAtQuantile, ...] = ()
    flags: int = 0


@dataclass(frozen=True)
class Gauge:
    data_points: Tuple[NumberDataPoint, ...] = ()


@dataclass(frozen=True)
class Sum:
    data_points: Tuple[NumberDataPoint, ...] = ()
    aggregation_temporality: AggregationTemporality = AggregationTemporality.UNSPECIFIED
    is_monotonic: bool = False


@dataclass(frozen=True)
class Histogram:
    data_points: Tuple[HistogramDataPoint, ...] = ()
    aggregation_temporality: AggregationTemporality = AggregationTemporality.UNSPECIFIED


@dataclass(frozen=True)
class ExponentialHistogram:
    data_points: Tuple[ExponentialHistogramDataPoint, ...] = ()
    aggregation_temporality: AggregationTemporality = AggregationTemporality.UNSPECIFIED


@dataclass(frozen=True)
class Summary:
    data_points: Tuple[SummaryDataPoint, ...] = ()


MetricData = Union[Gauge, Sum, Histogram, ExponentialHistogram, Summary]

_DATA_TYPE_NAMES = {
    Gauge: "gauge",
    Sum: "sum",
    Histogram: "histogram",
    ExponentialHistogram: "exponential_histogram",
    Summary: "summary",
}


@dataclass(frozen=True)
class Metric:
    """A named metric carrying exactly one data variant (or none)."""
    name: str = ""
    description: str = ""
    unit: str = ""
    data: Optional[MetricData] = None
    metadata: Attributes = field(default_factory=Attributes)

    @property
    def data_type(self) -> str:
        """Name of the data variant, ``"none"`` when no variant was sent."""
        if self.data is None:
            return "none"
        return _DATA_TYPE_NAMES[type(self.data)]

    @property
    def data_points(self) -> tuple:
        return self.data.data_points if self.data is not None else ()


@dataclass(frozen=True)
class ScopeMetrics:
    scope: Optional[InstrumentationScope] = None
    metrics: Tuple[Metric, ...] = ()
    schema_url: str = ""


@dataclass(frozen=True)
class ResourceMetrics:
    resource: Resource = field(default_factory=Resource)
    scope_metrics: Tuple[ScopeMetrics, ...] = ()
    schema_url: str = ""


@dataclass(frozen=True)
class MetricsExport:
    """Root of a decoded ExportMetricsServiceRequest."""
    resource_metrics: Tuple[ResourceMetrics, ...] = ()

    @property
    def metric_count(self) -> int:
        return sum(len(sm.metrics) for rm in self.resource_metrics for sm in rm.scope_metrics)
