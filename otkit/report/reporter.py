"""
otkit.report.reporter - Emit synthetic traces, metrics and logs.

Each report function builds a short-lived OpenTelemetry SDK pipeline
(provider, processor or reader, exporter), emits the requested telemetry,
then flushes and shuts the pipeline down so every item is exported before
the function returns.

Exporters and readers can be injected, which is how the tests capture
output with the SDK in-memory exporters instead of a live collector.

Classes:
    TraceReport: Options for report_trace
    MetricReport: Options for report_metric
    LogReport: Options for report_log

Functions:
    report_trace: Emit spans, return their trace ids
    report_metric: Record metric measurements, return the recorded values
    report_log: Emit log records, return how many were sent
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple, Union

from opentelemetry._logs import LogRecord, SeverityNumber
from opentelemetry.sdk._logs import LoggerProvider
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor, LogExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader, PeriodicExportingMetricReader
from opentelemetry.sdk.metrics.view import ExplicitBucketHistogramAggregation, View
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter
from opentelemetry.trace import Status, StatusCode

from otkit.core.errors import ReportError
from otkit.report.endpoint import EndpointConfig

logger = logging.getLogger(__name__)

INSTRUMENTATION_NAME = "otk.kto"

LONG_TAG_KEY = "ll"

DEFAULT_BUCKETS: Tuple[float, ...] = (10.0, 20.0, 30.0, 40.0, 50.0, 60.0, 70.0, 80.0, 90.0)

# (data type, instrument) pairs that can be recorded
METRIC_COMBINATIONS = frozenset({
    ("u64", "counter"),
    ("f64", "counter"),
    ("i64", "up_down_counter"),
    ("f64", "up_down_counter"),
    ("i64", "histogram"),
    ("u64", "histogram"),
    ("f64", "histogram"),
})

_SEVERITIES: Dict[str, SeverityNumber] = {
    "TRACE": SeverityNumber.TRACE,
    "DEBUG": SeverityNumber.DEBUG,
    "INFO": SeverityNumber.INFO,
    "WARN": SeverityNumber.WARN,
    "WARNING": SeverityNumber.WARN,
    "ERROR": SeverityNumber.ERROR,
    "FATAL": SeverityNumber.FATAL,
}


def _resource(attributes: Dict[str, str]) -> Resource:
    # Only the user supplied tags, no SDK defaults such as telemetry.sdk.*
    return Resource(dict(attributes))


def _check_count(name: str, value: int) -> None:
    if value < 0:
        raise ReportError(f"{name} must not be negative, got {value}")


@dataclass
class TraceReport:
    """Options for report_trace.

    Attributes:
        endpoint: Collector endpoint
        resource_attributes: Resource tags
        name: Span name
        attributes: Span attributes
        long_length_tag: ``(text, count)``; adds an ``ll`` attribute holding
            ``text`` repeated ``count`` times, for testing size limits
        status_message: When set, spans end with an ERROR status carrying
            this message; otherwise the status is OK
        duration_ms: How long each span stays open
        batch: Number of spans to send
    """
    endpoint: EndpointConfig = field(default_factory=EndpointConfig)
    resource_attributes: Dict[str, str] = field(default_factory=dict)
    name: str = "otk_test_span"
    attributes: Dict[str, str] = field(default_factory=dict)
    long_length_tag: Optional[Tuple[str, int]] = None
    status_message: Optional[str] = None
    duration_ms: int = 0
    batch: int = 1

    def __post_init__(self) -> None:
        _check_count("batch", self.batch)
        _check_count("duration_ms", self.duration_ms)
        if self.long_length_tag is not None:
            _check_count("long_length_tag count", self.long_length_tag[1])


def report_trace(options: TraceReport, exporter: Optional[SpanExporter] = None) -> List[str]:
    """Send ``options.batch`` spans to the collector.

    Args:
        options: What to send
        exporter: Span exporter to use instead of one built from
            ``options.endpoint``

    Returns:
        Lowercase hex trace id of every span sent, in order

    Raises:
        ReportError: For invalid options or an unimplemented protocol
    """
    if exporter is None:
        exporter = options.endpoint.span_exporter()

    provider = TracerProvider(resource=_resource(options.resource_attributes))
    provider.add_span_processor(BatchSpanProcessor(exporter))
    tracer = provider.get_tracer(INSTRUMENTATION_NAME)

    long_value = None
    if options.long_length_tag is not None:
        text, count = options.long_length_tag
        long_value = text * count

    trace_ids: List[str] = []
    try:
        for _ in range(options.batch):
            span = tracer.start_span(options.name)
            for key, value in options.attributes.items():
                span.set_attribute(key, value)
            if long_value is not None:
                span.set_attribute(LONG_TAG_KEY, long_value)
            if options.duration_ms:
                time.sleep(options.duration_ms / 1000)
            if options.status_message is None:
                span.set_status(Status(StatusCode.OK))
            else:
                span.set_status(Status(StatusCode.ERROR, options.status_message))
            span.end()

            trace_id = format(span.get_span_context().trace_id, "032x")
            trace_ids.append(trace_id)
            logger.info("Sent span %r in trace %s", options.name, trace_id)
    finally:
        provider.shutdown()

    return trace_ids


@dataclass
class MetricReport:
    """Options for report_metric.

    Attributes:
        endpoint: Collector endpoint
        resource_attributes: Resource tags
        library_name: Instrumentation scope name of the meter
        data_type: u64, i64 or f64
        instrument: counter, up_down_counter or histogram
        name: Metric name
        values: Measurements, as text, recorded in order
        times: How many times the whole value list is recorded
        wait_secs: Pause after recording, before the final flush
        buckets: Explicit histogram bucket boundaries
        labels: Attributes attached to every measurement
    """
    endpoint: EndpointConfig = field(default_factory=EndpointConfig)
    resource_attributes: Dict[str, str] = field(default_factory=dict)
    library_name: str = INSTRUMENTATION_NAME
    data_type: str = "f64"
    instrument: str = "counter"
    name: str = "otk_test_metric"
    values: Sequence[str] = ("1",)
    times: int = 1
    wait_secs: float = 0.15
    buckets: Sequence[float] = DEFAULT_BUCKETS
    labels: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if (self.data_type, self.instrument) not in METRIC_COMBINATIONS:
            raise ReportError(
                f"Invalid argument: invalid combination {self.data_type}/{self.instrument}"
            )
        _check_count("times", self.times)
        if self.wait_secs < 0:
            raise ReportError(f"wait_secs must not be negative, got {self.wait_secs}")

    def parsed_values(self) -> List[Union[int, float]]:
        """Parse ``values`` for the data type and repeat them ``times``.

        Raises:
            ReportError: If a value does not parse as the data type
        """
        parsed: List[Union[int, float]] = []
        for text in self.values:
            try:
                value: Union[int, float] = float(text) if self.data_type == "f64" else int(text)
            except ValueError:
                raise ReportError(f"Invalid argument: parse metric value failed: {text!r}") from None
            if self.data_type == "u64" and value < 0:
                raise ReportError(f"Invalid argument: u64 value must not be negative: {text!r}")
            parsed.append(value)
        return parsed * self.times


def report_metric(options: MetricReport, reader: Optional[MetricReader] = None) -> List[Union[int, float]]:
    """Record ``options.values`` on one instrument and export them.

    Args:
        options: What to record
        reader: Metric reader to use instead of a periodic exporting reader
            for ``options.endpoint``. An injected reader is flushed but not
            shut down, so the caller can still collect from it.

    Returns:
        The recorded values, in order

    Raises:
        ReportError: For invalid options or an unimplemented protocol
    """
    values = options.parsed_values()

    owns_reader = reader is None
    if reader is None:
        reader = PeriodicExportingMetricReader(
            options.endpoint.metric_exporter(), export_interval_millis=100
        )

    views = []
    if options.instrument == "histogram":
        views.append(View(
            instrument_name=options.name,
            aggregation=ExplicitBucketHistogramAggregation(boundaries=tuple(options.buckets)),
        ))
    provider = MeterProvider(
        metric_readers=[reader],
        resource=_resource(options.resource_attributes),
        views=views,
    )
    meter = provider.get_meter(options.library_name)
    labels = dict(options.labels)
    logger.info("Recording %d values on %s %s %r", len(values), options.data_type,
                options.instrument, options.name)

    try:
        if options.instrument == "counter":
            counter = meter.create_counter(options.name)
            for value in values:
                counter.add(value, attributes=labels)
        elif options.instrument == "up_down_counter":
            up_down = meter.create_up_down_counter(options.name)
            for value in values:
                up_down.add(value, attributes=labels)
        else:
            histogram = meter.create_histogram(options.name)
            for value in values:
                histogram.record(value, attributes=labels)
        if options.wait_secs:
            time.sleep(options.wait_secs)
        provider.force_flush()
    finally:
        if owns_reader:
            provider.shutdown()

    return values


@dataclass
class LogReport:
    """Options for report_log.

    Attributes:
        endpoint: Collector endpoint
        resource_attributes: Resource tags
        body: Log body
        severity: Severity text; well-known names also set the severity number
        attributes: Log record attributes
        batch: Number of records to send
    """
    body: str = ""
    endpoint: EndpointConfig = field(default_factory=EndpointConfig)
    resource_attributes: Dict[str, str] = field(default_factory=dict)
    severity: str = "INFO"
    attributes: Dict[str, str] = field(default_factory=dict)
    batch: int = 1

    def __post_init__(self) -> None:
        _check_count("batch", self.batch)

    @property
    def severity_number(self) -> SeverityNumber:
        return _SEVERITIES.get(self.severity.upper(), SeverityNumber.UNSPECIFIED)


def report_log(options: LogReport, exporter: Optional[LogExporter] = None) -> int:
    """Send ``options.batch`` log records to the collector.

    Returns:
        Number of records emitted

    Raises:
        ReportError: For invalid options or an unimplemented protocol
    """
    if exporter is None:
        exporter = options.endpoint.log_exporter()

    provider = LoggerProvider(resource=_resource(options.resource_attributes))
    provider.add_log_record_processor(BatchLogRecordProcessor(exporter))
    otel_logger = provider.get_logger(INSTRUMENTATION_NAME)

    try:
        for _ in range(options.batch):
            now = time.time_ns()
            otel_logger.emit(LogRecord(
                timestamp=now,
                observed_timestamp=now,
                severity_text=options.severity,
                severity_number=options.severity_number,
                body=options.body,
                attributes=dict(options.attributes),
            ))
    finally:
        provider.shutdown()

    logger.info("Sent %d log records", options.batch)
    return options.batch
