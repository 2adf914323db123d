"""
otkit.report - Emit synthetic telemetry to an OTLP collector.

This subpackage contains:
- endpoint: EndpointConfig and the OTLP gRPC/HTTP exporter factories
- reporter: report_trace, report_metric and report_log
"""

from otkit.report.endpoint import EndpointConfig, Protocol, DEFAULT_PORTS
from otkit.report.reporter import (
    TraceReport,
    MetricReport,
    LogReport,
    report_trace,
    report_metric,
    report_log,
    METRIC_COMBINATIONS,
)

__all__ = [
    "EndpointConfig",
    "Protocol",
    "DEFAULT_PORTS",
    "TraceReport",
    "MetricReport",
    "LogReport",
    "report_trace",
    "report_metric",
    "report_log",
    "METRIC_COMBINATIONS",
]
