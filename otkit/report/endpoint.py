"""
otkit.report.endpoint - Collector endpoint configuration and OTLP exporters.

Classes:
    Protocol: Transport used to reach the collector
    EndpointConfig: Where and how to send telemetry

Example:
    >>> config = EndpointConfig.from_env(protocol="http")
    >>> config.signal_url("traces")
    'http://localhost:4318/v1/traces'
    >>> exporter = config.span_exporter()
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Mapping, Optional, Union

import grpc
from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter as GrpcLogExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter as GrpcMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter as GrpcSpanExporter
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter as HttpLogExporter
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter as HttpMetricExporter
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter as HttpSpanExporter
from opentelemetry.sdk._logs.export import LogExporter
from opentelemetry.sdk.metrics.export import MetricExporter
from opentelemetry.sdk.trace.export import SpanExporter

from otkit.core.errors import ReportError

logger = logging.getLogger(__name__)

HOST_ENV = "OTK_REPORT_HOST"
PORT_ENV = "OTK_REPORT_PORT"


class Protocol(Enum):
    GRPC = "grpc"
    HTTP = "http"
    HTTP_JSON = "http_json"

    @classmethod
    def parse(cls, value: Union[str, Protocol]) -> Protocol:
        """Parse a protocol name; ``g``, ``h`` and ``hj`` are accepted too."""
        if isinstance(value, Protocol):
            return value
        name = _PROTOCOL_ALIASES.get(value.lower(), value.lower())
        try:
            return cls(name)
        except ValueError:
            raise ReportError(f"Unknown protocol {value!r} (expected grpc, http or http_json)") from None


_PROTOCOL_ALIASES = {"g": "grpc", "h": "http", "hj": "http_json"}

DEFAULT_PORTS: Dict[Protocol, int] = {
    Protocol.GRPC: 4317,
    Protocol.HTTP: 4318,
    Protocol.HTTP_JSON: 4318,
}


@dataclass
class EndpointConfig:
    """Collector endpoint settings shared by the report commands.

    Attributes:
        protocol: grpc or http (http_json is not implemented)
        host: Collector host name
        port: Collector port, defaults to 4317 for grpc and 4318 for http
        tls: Connect over TLS
        ca_cert: PEM file with the CA certificate to trust (requires tls)
        metadata: gRPC metadata / HTTP headers sent with every export
        timeout: Export timeout in seconds
    """
    protocol: Protocol = Protocol.GRPC
    host: str = "localhost"
    port: Optional[int] = None
    tls: bool = False
    ca_cert: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    timeout: float = 10.0

    def __post_init__(self) -> None:
        self.protocol = Protocol.parse(self.protocol)
        if self.port is not None and not 0 < self.port < 65536:
            raise ReportError(f"Invalid port: {self.port}")
        if self.ca_cert and not self.tls:
            raise ReportError("ca_cert requires tls")
        if self.timeout <= 0:
            raise ReportError(f"Timeout must be positive, got {self.timeout}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> EndpointConfig:
        """Build a config whose host and port default to OTK_REPORT_HOST and
        OTK_REPORT_PORT. Explicit keyword arguments that are not None win."""
        env = os.environ if environ is None else environ
        values: Dict[str, object] = {}
        if env.get(HOST_ENV):
            values["host"] = env[HOST_ENV]
        if env.get(PORT_ENV):
            try:
                values["port"] = int(env[PORT_ENV])
            except ValueError:
                raise ReportError(f"{PORT_ENV} must be an integer, got {env[PORT_ENV]!r}") from None
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    @property
    def resolved_port(self) -> int:
        return self.port if self.port is not None else DEFAULT_PORTS[self.protocol]

    @property
    def scheme(self) -> str:
        return "https" if self.tls else "http"

    @property
    def base_url(self) -> str:
        return f"{self.scheme}://{self.host}:{self.resolved_port}"

    def signal_url(self, signal: str) -> str:
        """OTLP/HTTP URL for a signal (traces, metrics or logs)."""
        return f"{self.base_url}/v1/{signal}"

    def _require_implemented(self) -> None:
        if self.protocol is Protocol.HTTP_JSON:
            raise ReportError("Unimplemented: http_json")

    def _grpc_options(self) -> dict:
        options: dict = {
            "endpoint": self.base_url,
            "insecure": not self.tls,
            "headers": dict(self.metadata),
            "timeout": self.timeout,
        }
        if self.tls:
            root = Path(self.ca_cert).read_bytes() if self.ca_cert else None
            options["credentials"] = grpc.ssl_channel_credentials(root_certificates=root)
        return options

    def _http_options(self, signal: str) -> dict:
        options: dict = {
            "endpoint": self.signal_url(signal),
            "headers": dict(self.metadata),
            "timeout": self.timeout,
        }
        if self.ca_cert:
            options["certificate_file"] = self.ca_cert
        return options

    def span_exporter(self) -> SpanExporter:
        """Create the OTLP span exporter for this endpoint.

        Raises:
            ReportError: For the unimplemented http_json protocol
        """
        self._require_implemented()
        logger.info("Exporting spans over %s to %s", self.protocol.value, self.base_url)
        if self.protocol is Protocol.GRPC:
            return GrpcSpanExporter(**self._grpc_options())
        return HttpSpanExporter(**self._http_options("traces"))

    def metric_exporter(self) -> MetricExporter:
        self._require_implemented()
        logger.info("Exporting metrics over %s to %s", self.protocol.value, self.base_url)
        if self.protocol is Protocol.GRPC:
            return GrpcMetricExporter(**self._grpc_options())
        return HttpMetricExporter(**self._http_options("metrics"))

    def log_exporter(self) -> LogExporter:
        self._require_implemented()
        logger.info("Exporting logs over %s to %s", self.protocol.value, self.base_url)
        if self.protocol is Protocol.GRPC:
            return GrpcLogExporter(**self._grpc_options())
        return HttpLogExporter(**self._http_options("logs"))
