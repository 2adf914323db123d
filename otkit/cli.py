"""
otkit.cli - Command-line interface for otkit.

This module provides a CLI for decoding OTLP protobuf payloads, searching
decoded traces and sending synthetic telemetry to a collector.

Usage:
    otkit decode [input] [--name/-n <type>] [--base64/-b] [--list/-l] [--format/-f <format>]
    otkit search [input] [expression] [--trace-id <hex>] [--base64/-b] [--format/-f <format>]
    otkit report-trace [endpoint options] [--name/-n <name>] [--attrs/-a k=v ...]
    otkit report-metric [endpoint options] [--mtype/-m <type>] [--dtype/-d <type>] [--value v ...]
    otkit report-log [endpoint options] --body/-b <text> [--severity/-s <text>]

Examples:
    otkit decode payload.bin
    otkit decode -n ExportLogsServiceRequest -f json logs.bin
    otkit decode -b captured.b64 -f compact
    otkit search -b captured.b64 'span.duration > 250ms and attribute[http.status_code] >= 500'
    otkit report-trace --host collector -a env=dev --batch 10
"""

from __future__ import annotations

import argparse
import base64
import binascii
import logging
import random
import string
import sys
from pathlib import Path
from typing import Callable, Iterator, List, Optional, Tuple

from otkit import __version__
from otkit.core.decoder import MESSAGE_TYPES, decode, decode_message
from otkit.core.errors import DecodeError, PredicateError, ReportError
from otkit.core.expression import parse_predicate
from otkit.core.formatter import FORMAT_MODES, format_export, format_spans
from otkit.core.query import Comparison, Predicate, search
from otkit.core.wire import DecodeLimits
from otkit.report.endpoint import EndpointConfig
from otkit.report.reporter import (
    LogReport,
    MetricReport,
    TraceReport,
    report_log,
    report_metric,
    report_trace,
)
from otkit.utils.tree import group_by_trace

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE_TYPE = "ExportTraceServiceRequest"
DUMP_NAME_LENGTH = 7


def parse_key_value(text: str) -> Tuple[str, str]:
    """Parse a ``key=value`` argument.

    The text is split on the first ``=``, so the value may itself contain
    ``=`` characters.

    Raises:
        ValueError: If the text contains no ``=``
    """
    key, sep, value = text.partition("=")
    if not sep:
        raise ValueError(f"invalid format {text!r} (expect key=value)")
    return key, value


def parse_long_tag(text: str) -> Tuple[str, int]:
    """Parse ``text=count`` for --long-length-tag."""
    key, value = parse_key_value(text)
    return key, int(value)


def _add_endpoint_options(parser: argparse.ArgumentParser) -> None:
    group = parser.add_argument_group("endpoint")
    group.add_argument(
        "--protocol",
        default="grpc",
        help="Protocol to use: grpc (g), http (h) or http_json (hj) (default: grpc)",
    )
    group.add_argument(
        "--host",
        default=None,
        help="Collector host (default: $OTK_REPORT_HOST or localhost)",
    )
    group.add_argument(
        "--port",
        type=int,
        default=None,
        help="Collector port (default: $OTK_REPORT_PORT, else 4317 for grpc and 4318 for http)",
    )
    group.add_argument("--tls", action="store_true", help="Connect over TLS")
    group.add_argument("--ca-cert", default=None, help="CA certificate (PEM) to trust, requires --tls")
    group.add_argument(
        "--metadata",
        type=parse_key_value,
        nargs="*",
        default=[],
        metavar="KEY=VALUE",
        help="gRPC metadata / HTTP headers sent with every export",
    )
    group.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="Export timeout in seconds (default: 10)",
    )
    parser.add_argument(
        "-r", "--rtags",
        type=parse_key_value,
        nargs="*",
        default=[],
        metavar="KEY=VALUE",
        help="Resource attributes",
    )


def _add_output_options(parser: argparse.ArgumentParser, default_format: str) -> None:
    parser.add_argument(
        "-f", "--format",
        choices=FORMAT_MODES,
        default=default_format,
        help=f"Output format (default: {default_format})",
    )
    parser.add_argument(
        "-o", "--output",
        type=str,
        default=None,
        help="Output file path (defaults to stdout)",
    )
    parser.add_argument(
        "-b", "--base64",
        action="store_true",
        help="Input holds one base64 encoded payload per line",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=DecodeLimits.max_depth,
        help=f"Maximum message nesting depth (default: {DecodeLimits.max_depth})",
    )
    parser.add_argument(
        "--max-nodes",
        type=int,
        default=DecodeLimits.max_nodes,
        help=f"Maximum number of decoded messages (default: {DecodeLimits.max_nodes})",
    )


def parse_args(args: List[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        args: List of arguments (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        prog="otkit",
        description="OpenTelemetry toolkit: decode OTLP payloads, search traces, report telemetry",
        epilog="Example: otkit decode -b captured.b64 -f compact",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    commands = parser.add_subparsers(dest="command", metavar="command")
    commands.required = True

    decode_parser = commands.add_parser(
        "decode",
        aliases=["d", "de", "dec"],
        help="Decode a protobuf payload",
    )
    decode_parser.add_argument("input", nargs="?", default="-", help="File to read (- for stdin)")
    decode_parser.add_argument(
        "-n", "--name",
        choices=MESSAGE_TYPES,
        default=DEFAULT_MESSAGE_TYPE,
        metavar="TYPE",
        help=f"Message type to decode as (default: {DEFAULT_MESSAGE_TYPE})",
    )
    decode_parser.add_argument(
        "-l", "--list",
        action="store_true",
        help="List the supported message types and exit",
    )
    _add_output_options(decode_parser, default_format="pretty")
    decode_parser.set_defaults(handler=run_decode)

    search_parser = commands.add_parser(
        "search",
        aliases=["s", "st"],
        help="Search spans in an ExportTraceServiceRequest payload",
    )
    search_parser.add_argument("input", nargs="?", default="-", help="File to read (- for stdin)")
    search_parser.add_argument(
        "expression",
        nargs="?",
        default=None,
        help="Search expression, e.g. 'span.name == \"GET /\" and span.duration > 1ms'",
    )
    search_parser.add_argument(
        "--trace-id",
        default=None,
        help="Only spans of this trace (32 lowercase hex digits)",
    )
    _add_output_options(search_parser, default_format="compact")
    search_parser.set_defaults(handler=run_search)

    trace_parser = commands.add_parser(
        "report-trace",
        aliases=["t", "trace", "r", "re", "rep", "rt", "ret", "rept"],
        help="Send spans to a collector",
    )
    _add_endpoint_options(trace_parser)
    trace_parser.add_argument("-n", "--name", default="otk_test_span", help="Span name")
    trace_parser.add_argument(
        "-a", "--attrs",
        type=parse_key_value,
        nargs="*",
        default=[],
        metavar="KEY=VALUE",
        help="Span attributes",
    )
    trace_parser.add_argument(
        "--long-length-tag",
        type=parse_long_tag,
        default=None,
        metavar="TEXT=COUNT",
        help="Add an 'll' attribute holding TEXT repeated COUNT times",
    )
    trace_parser.add_argument("--status-msg", default=None, help="End spans with ERROR and this message")
    trace_parser.add_argument("--duration", type=int, default=0, help="Span duration in milliseconds")
    trace_parser.add_argument("--batch", type=int, default=1, help="Number of spans to send")
    trace_parser.set_defaults(handler=run_report_trace)

    metric_parser = commands.add_parser(
        "report-metric",
        aliases=["rm", "rem", "repm", "metric"],
        help="Record metric measurements and send them to a collector",
    )
    _add_endpoint_options(metric_parser)
    metric_parser.add_argument("--library-name", default="otk.kto", help="Meter (scope) name")
    metric_parser.add_argument("-d", "--dtype", default="f64", choices=["u64", "i64", "f64"], help="Data type")
    metric_parser.add_argument(
        "-m", "--mtype",
        default="counter",
        choices=["counter", "up_down_counter", "histogram"],
        help="Instrument type",
    )
    metric_parser.add_argument("-n", "--name", default="otk_test_metric", help="Metric name")
    metric_parser.add_argument("--value", nargs="*", default=["1"], help="Values to record")
    metric_parser.add_argument("-t", "--times", type=int, default=1, help="How many times to record the values")
    metric_parser.add_argument("-w", "--wait-secs", type=float, default=0.15, help="Seconds to wait before flushing")
    metric_parser.add_argument(
        "--histograms",
        type=float,
        nargs="*",
        default=[10, 20, 30, 40, 50, 60, 70, 80, 90],
        help="Histogram bucket boundaries",
    )
    metric_parser.add_argument(
        "-l", "--labels",
        type=parse_key_value,
        nargs="*",
        default=[],
        metavar="KEY=VALUE",
        help="Measurement attributes",
    )
    metric_parser.set_defaults(handler=run_report_metric)

    log_parser = commands.add_parser(
        "report-log",
        aliases=["l", "rl", "repl", "log"],
        help="Send log records to a collector",
    )
    _add_endpoint_options(log_parser)
    log_parser.add_argument("-b", "--body", required=True, help="Log body")
    log_parser.add_argument("-s", "--severity", default="INFO", help="Severity text (default: INFO)")
    log_parser.add_argument(
        "-a", "--attrs",
        type=parse_key_value,
        nargs="*",
        default=[],
        metavar="KEY=VALUE",
        help="Log record attributes",
    )
    log_parser.add_argument("--batch", type=int, default=1, help="Number of records to send")
    log_parser.set_defaults(handler=run_report_log)

    return parser.parse_args(args)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


# =============================================================================
# Input / output
# =============================================================================


def _open_path(input_path: str) -> Path:
    path = Path(input_path)
    if not path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")
    return path


def read_payload(input_path: str) -> bytes:
    """Read a whole binary payload from a file, or stdin for ``-``.

    Raises:
        FileNotFoundError: If the input file doesn't exist
    """
    if input_path == "-":
        return sys.stdin.buffer.read()
    return _open_path(input_path).read_bytes()


def _lines(input_path: str) -> Iterator[str]:
    if input_path == "-":
        yield from sys.stdin
        return
    with open(_open_path(input_path), "r", encoding="ascii") as f:
        yield from f


def iter_base64_payloads(input_path: str) -> Iterator[bytes]:
    """Yield the payloads of a file holding one base64 payload per line.

    Blank lines are skipped. Reading is incremental so stdin can be
    streamed.

    Raises:
        FileNotFoundError: If the input file doesn't exist
        ValueError: If a line is not valid base64
    """
    for number, line in enumerate(_lines(input_path), start=1):
        line = line.strip()
        if not line:
            continue
        try:
            yield base64.b64decode(line, validate=True)
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 on line {number}: {e}") from e


def dump_payload(payload: bytes, directory: str = ".") -> Path:
    """Save a payload that failed to decode as ``otk.<random>.bin``."""
    suffix = "".join(random.choices(string.ascii_letters + string.digits, k=DUMP_NAME_LENGTH))
    path = Path(directory) / f"otk.{suffix}.bin"
    path.write_bytes(payload)
    return path


def write_output(content: str, output_path: str | None) -> None:
    """Write content to output file or stdout.

    Args:
        content: The content to write
        output_path: Path to output file, or None for stdout
    """
    if output_path:
        path = Path(output_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
            if content and not content.endswith("\n"):
                f.write("\n")
    else:
        print(content)


def _payloads(args: argparse.Namespace) -> Iterator[bytes]:
    if args.base64:
        return iter_base64_payloads(args.input)
    return iter([read_payload(args.input)])


def _process_payloads(
    args: argparse.Namespace,
    render: Callable[[bytes], Optional[str]],
) -> int:
    """Render every input payload and write the results.

    In base64 mode a payload that fails to decode is reported on stderr,
    dumped to disk and skipped. For a single binary payload the
    DecodeError propagates.
    """
    chunks: List[str] = []
    for payload in _payloads(args):
        try:
            text = render(payload)
        except DecodeError as e:
            if not args.base64:
                raise
            print(f"error during decoding: {e}", file=sys.stderr)
            print(f"data dumped as {dump_payload(payload)}", file=sys.stderr)
            continue
        if text is None:
            continue
        if args.output:
            chunks.append(text)
        else:
            print(text)

    if args.output:
        write_output("\n".join(chunks), args.output)
        logger.info("Output written to: %s", args.output)
    return 0


# =============================================================================
# Commands
# =============================================================================


def _limits(args: argparse.Namespace) -> DecodeLimits:
    return DecodeLimits(max_depth=args.max_depth, max_nodes=args.max_nodes)


def run_decode(args: argparse.Namespace) -> int:
    if args.list:
        print("\n".join(MESSAGE_TYPES))
        return 0

    logger.info("Decoding as proto %s", args.name)
    limits = _limits(args)

    def render(payload: bytes) -> str:
        return format_export(decode_message(args.name, payload, limits), args.format)

    return _process_payloads(args, render)


def build_search_predicate(expression: Optional[str], trace_id: Optional[str]) -> Predicate:
    """Combine the search expression and --trace-id into one predicate.

    Raises:
        PredicateError: If neither is given or either is invalid
    """
    predicates: List[Predicate] = []
    if trace_id is not None:
        predicates.append(Comparison("span.trace_id", "eq", trace_id))
    if expression is not None:
        predicates.append(parse_predicate(expression))
    if not predicates:
        raise PredicateError("Nothing to search for: give an expression or --trace-id")
    predicate = predicates[0]
    for other in predicates[1:]:
        predicate = predicate & other
    return predicate


def run_search(args: argparse.Namespace) -> int:
    predicate = build_search_predicate(args.expression, args.trace_id)
    logger.info("Searching for %r", predicate)
    limits = _limits(args)

    def render(payload: bytes) -> Optional[str]:
        spans = list(search(decode(payload, limits), predicate))
        logger.info("Found %d spans in %d traces", len(spans), len(group_by_trace(spans)))
        if not spans:
            return None
        return format_spans(spans, args.format)

    return _process_payloads(args, render)


def _endpoint(args: argparse.Namespace) -> EndpointConfig:
    return EndpointConfig.from_env(
        protocol=args.protocol,
        host=args.host,
        port=args.port,
        tls=args.tls,
        ca_cert=args.ca_cert,
        metadata=dict(args.metadata),
        timeout=args.timeout,
    )


def run_report_trace(args: argparse.Namespace) -> int:
    options = TraceReport(
        endpoint=_endpoint(args),
        resource_attributes=dict(args.rtags),
        name=args.name,
        attributes=dict(args.attrs),
        long_length_tag=args.long_length_tag,
        status_message=args.status_msg,
        duration_ms=args.duration,
        batch=args.batch,
    )
    logger.debug("%r", options)
    for trace_id in report_trace(options):
        print(trace_id)
    return 0


def run_report_metric(args: argparse.Namespace) -> int:
    options = MetricReport(
        endpoint=_endpoint(args),
        resource_attributes=dict(args.rtags),
        library_name=args.library_name,
        data_type=args.dtype,
        instrument=args.mtype,
        name=args.name,
        values=args.value,
        times=args.times,
        wait_secs=args.wait_secs,
        buckets=args.histograms,
        labels=dict(args.labels),
    )
    logger.debug("%r", options)
    report_metric(options)
    return 0


def run_report_log(args: argparse.Namespace) -> int:
    options = LogReport(
        endpoint=_endpoint(args),
        resource_attributes=dict(args.rtags),
        body=args.body,
        severity=args.severity,
        attributes=dict(args.attrs),
        batch=args.batch,
    )
    logger.debug("%r", options)
    report_log(options)
    return 0


def main(args: List[str] | None = None) -> int:
    """Main entry point for the CLI.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    try:
        parsed_args = parse_args(args)
        configure_logging(parsed_args.verbose)
        return parsed_args.handler(parsed_args)

    except FileNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    except DecodeError as e:
        print(f"Error: Invalid payload: {e}", file=sys.stderr)
        return 2

    except (PredicateError, ReportError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 3

    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 4


if __name__ == "__main__":
    sys.exit(main())
