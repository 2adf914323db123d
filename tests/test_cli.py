"""
Tests for otkit.cli module.

This module contains tests for the CLI interface including argument
parsing, payload input, the decode and search commands, exit codes and
the wiring of the report commands.
"""

import base64
import io
import sys
from pathlib import Path
from typing import List

import pytest

from otkit.cli import (
    build_search_predicate,
    dump_payload,
    iter_base64_payloads,
    main,
    parse_args,
    parse_key_value,
    read_payload,
    run_decode,
    run_report_trace,
    run_search,
    write_output,
)
from otkit.core.errors import PredicateError
from otkit.core.query import And, Comparison
from otkit.report.endpoint import Protocol
from tests import otlp_builder as ob

TRACE_ID = bytes.fromhex("5b8efff798038103d269b633813fc60c")
ROOT_ID = bytes.fromhex("eee19b7ec3c1b174")
CHILD_ID = bytes.fromhex("0102030405060708")

# Field 1 declares 5 bytes but only 2 follow
BROKEN_PAYLOAD = b"\x0a\x05ab"


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def trace_payload() -> bytes:
    root = ob.span("root", trace_id=TRACE_ID, span_id=ROOT_ID, start=100, end=900)
    child = ob.span(
        "child", trace_id=TRACE_ID, span_id=CHILD_ID, parent_span_id=ROOT_ID,
        start=200, end=300, attrs={"http.status_code": 503},
    )
    return ob.simple_trace(root, child)


@pytest.fixture
def trace_file(tmp_path: Path, trace_payload: bytes) -> Path:
    path = tmp_path / "trace.bin"
    path.write_bytes(trace_payload)
    return path


@pytest.fixture
def base64_file(tmp_path: Path, trace_payload: bytes) -> Path:
    """Two good payloads around a blank line and a broken one."""
    lines = [
        base64.b64encode(trace_payload).decode(),
        "",
        base64.b64encode(BROKEN_PAYLOAD).decode(),
        base64.b64encode(trace_payload).decode(),
    ]
    path = tmp_path / "captured.b64"
    path.write_text("\n".join(lines) + "\n")
    return path


@pytest.fixture(autouse=True)
def clean_report_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("OTK_REPORT_HOST", raising=False)
    monkeypatch.delenv("OTK_REPORT_PORT", raising=False)


# =============================================================================
# Argument parsing
# =============================================================================


class TestParseArgs:
    """Tests for argument parsing."""

    def test_decode_defaults(self):
        args = parse_args(["decode"])
        assert args.input == "-"
        assert args.name == "ExportTraceServiceRequest"
        assert args.format == "pretty"
        assert args.base64 is False
        assert args.output is None
        assert args.max_depth == 64
        assert args.max_nodes == 1_000_000
        assert args.handler is run_decode

    @pytest.mark.parametrize("alias", ["d", "de", "dec"])
    def test_decode_aliases(self, alias: str):
        assert parse_args([alias, "x.bin"]).handler is run_decode

    def test_decode_options(self):
        args = parse_args(["decode", "-n", "Span", "-b", "-f", "json", "-o", "out.json", "in.b64"])
        assert args.name == "Span"
        assert args.base64 is True
        assert args.format == "json"
        assert args.output == "out.json"
        assert args.input == "in.b64"

    def test_unknown_message_type(self):
        with pytest.raises(SystemExit):
            parse_args(["decode", "-n", "Nope"])

    def test_search_defaults(self):
        args = parse_args(["search", "in.bin", "span.name == a"])
        assert args.expression == "span.name == a"
        assert args.format == "compact"
        assert args.trace_id is None
        assert args.handler is run_search

    @pytest.mark.parametrize("alias", ["t", "trace", "r", "re", "rep", "rt", "ret", "rept"])
    def test_report_trace_aliases(self, alias: str):
        assert parse_args([alias]).handler is run_report_trace

    def test_endpoint_options(self):
        args = parse_args([
            "report-trace", "--protocol", "h", "--host", "collector", "--port", "9999",
            "--metadata", "x-token=abc", "team=core", "-r", "env=dev",
        ])
        assert args.protocol == "h"
        assert args.host == "collector"
        assert args.port == 9999
        assert args.metadata == [("x-token", "abc"), ("team", "core")]
        assert args.rtags == [("env", "dev")]

    def test_long_length_tag(self):
        args = parse_args(["report-trace", "--long-length-tag", "ab=3"])
        assert args.long_length_tag == ("ab", 3)

    def test_report_metric_defaults(self):
        args = parse_args(["rm"])
        assert args.dtype == "f64"
        assert args.mtype == "counter"
        assert args.value == ["1"]
        assert args.histograms == [10, 20, 30, 40, 50, 60, 70, 80, 90]

    def test_report_log_requires_body(self):
        with pytest.raises(SystemExit):
            parse_args(["report-log"])

    def test_bad_key_value_rejected(self):
        with pytest.raises(SystemExit):
            parse_args(["report-trace", "-a", "novalue"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_args([])

    def test_verbose(self):
        assert parse_args(["-v", "decode"]).verbose is True


class TestParseKeyValue:
    """Tests for key=value arguments."""

    def test_split_on_first_equals(self):
        assert parse_key_value("q=a=b") == ("q", "a=b")

    def test_empty_value(self):
        assert parse_key_value("k=") == ("k", "")

    def test_missing_equals(self):
        with pytest.raises(ValueError, match="expect key=value"):
            parse_key_value("novalue")


# =============================================================================
# Input / output
# =============================================================================


class TestPayloadInput:
    """Tests for reading payloads."""

    def test_read_file(self, trace_file: Path, trace_payload: bytes):
        assert read_payload(str(trace_file)) == trace_payload

    def test_read_stdin(self, monkeypatch: pytest.MonkeyPatch, trace_payload: bytes):
        monkeypatch.setattr(sys, "stdin", io.TextIOWrapper(io.BytesIO(trace_payload)))
        assert read_payload("-") == trace_payload

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError, match="Input file not found"):
            read_payload(str(tmp_path / "nope.bin"))

    def test_base64_lines(self, base64_file: Path, trace_payload: bytes):
        payloads = list(iter_base64_payloads(str(base64_file)))
        assert payloads == [trace_payload, BROKEN_PAYLOAD, trace_payload]

    def test_invalid_base64(self, tmp_path: Path):
        path = tmp_path / "bad.b64"
        path.write_text("AAAA\n!!!!\n")
        with pytest.raises(ValueError, match="Invalid base64 on line 2"):
            list(iter_base64_payloads(str(path)))

    def test_dump_payload(self, tmp_path: Path):
        path = dump_payload(b"\x01\x02", str(tmp_path))
        assert path.parent == tmp_path
        assert path.name.startswith("otk.")
        assert path.suffix == ".bin"
        assert len(path.name) == len("otk.") + 7 + len(".bin")
        assert path.read_bytes() == b"\x01\x02"


class TestWriteOutput:
    """Tests for write_output function."""

    def test_write_to_stdout(self, capsys):
        write_output("hello", None)
        assert capsys.readouterr().out == "hello\n"

    def test_write_to_file(self, tmp_path: Path):
        path = tmp_path / "out.txt"
        write_output("hello", str(path))
        assert path.read_text() == "hello\n"

    def test_creates_parent_directories(self, tmp_path: Path):
        path = tmp_path / "nested" / "dir" / "out.txt"
        write_output("x\n", str(path))
        assert path.read_text() == "x\n"


# =============================================================================
# decode
# =============================================================================


class TestDecodeCommand:
    """Tests for the decode command."""

    def test_pretty(self, trace_file: Path, capsys):
        assert main(["decode", str(trace_file)]) == 0
        out = capsys.readouterr().out
        assert 'Span "root"' in out
        assert "parent_span_id: eee19b7ec3c1b174" in out

    def test_compact(self, trace_file: Path, capsys):
        assert main(["decode", "-f", "compact", str(trace_file)]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 2
        assert lines[0].split("\t")[:3] == [TRACE_ID.hex(), ROOT_ID.hex(), "root"]

    def test_output_file(self, trace_file: Path, tmp_path: Path, capsys):
        output = tmp_path / "decoded.json"
        assert main(["decode", "-f", "json", "-o", str(output), str(trace_file)]) == 0
        assert capsys.readouterr().out == ""
        assert '"resourceSpans"' in output.read_text()

    def test_list(self, capsys):
        assert main(["decode", "--list"]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert "ExportTraceServiceRequest" in lines
        assert "Span" in lines

    def test_other_message_type(self, tmp_path: Path, capsys):
        path = tmp_path / "logs.bin"
        path.write_bytes(ob.logs_request([ob.log_record("disk full", severity_number=13)]))
        assert main(["decode", "-n", "ExportLogsServiceRequest", str(path)]) == 0
        out = capsys.readouterr().out
        assert '"disk full"' in out
        assert "WARN (13)" in out

    def test_base64_skips_broken_payload(
        self, base64_file: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys
    ):
        monkeypatch.chdir(tmp_path)
        assert main(["decode", "-b", "-f", "compact", str(base64_file)]) == 0
        captured = capsys.readouterr()
        assert len(captured.out.splitlines()) == 4
        assert "error during decoding: declared length 5 exceeds remaining 2 bytes" in captured.err
        assert "data dumped as otk." in captured.err
        dumps = list(tmp_path.glob("otk.*.bin"))
        assert len(dumps) == 1
        assert dumps[0].read_bytes() == BROKEN_PAYLOAD

    def test_invalid_payload_exit_code(self, tmp_path: Path, capsys):
        path = tmp_path / "broken.bin"
        path.write_bytes(BROKEN_PAYLOAD)
        assert main(["decode", str(path)]) == 2
        assert "Error: Invalid payload: declared length 5" in capsys.readouterr().err

    def test_depth_limit_option(self, trace_file: Path, capsys):
        assert main(["decode", "--max-depth", "1", str(trace_file)]) == 2
        assert "nesting depth exceeds limit of 1" in capsys.readouterr().err

    def test_file_not_found_exit_code(self, tmp_path: Path, capsys):
        assert main(["decode", str(tmp_path / "missing.bin")]) == 1
        assert "Input file not found" in capsys.readouterr().err

    def test_invalid_base64_exit_code(self, tmp_path: Path, capsys):
        path = tmp_path / "bad.b64"
        path.write_text("!!!!\n")
        assert main(["decode", "-b", str(path)]) == 3


# =============================================================================
# search
# =============================================================================


class TestBuildSearchPredicate:
    """Tests for combining the expression and --trace-id."""

    def test_expression_only(self):
        assert build_search_predicate("span.name == a", None) == Comparison("span.name", "eq", "a")

    def test_trace_id_only(self):
        assert build_search_predicate(None, TRACE_ID.hex()) == Comparison("span.trace_id", "eq", TRACE_ID.hex())

    def test_both(self):
        predicate = build_search_predicate("span.name == a", TRACE_ID.hex())
        assert predicate == And(
            Comparison("span.trace_id", "eq", TRACE_ID.hex()),
            Comparison("span.name", "eq", "a"),
        )

    def test_neither(self):
        with pytest.raises(PredicateError, match="Nothing to search for"):
            build_search_predicate(None, None)


class TestSearchCommand:
    """Tests for the search command."""

    def test_matching_spans(self, trace_file: Path, capsys):
        assert main(["search", str(trace_file), "attribute[http.status_code] >= 500"]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 1
        assert lines[0].split("\t")[2] == "child"

    def test_no_match_prints_nothing(self, trace_file: Path, capsys):
        assert main(["search", str(trace_file), 'span.name == "nope"']) == 0
        assert capsys.readouterr().out == ""

    def test_trace_id(self, trace_file: Path, capsys):
        assert main(["search", "--trace-id", TRACE_ID.hex(), str(trace_file)]) == 0
        assert len(capsys.readouterr().out.splitlines()) == 2

    def test_duration_and_pretty(self, trace_file: Path, capsys):
        assert main(["search", "-f", "pretty", str(trace_file), "span.duration > 500ns"]) == 0
        out = capsys.readouterr().out
        assert 'Span "root"' in out
        assert 'Span "child"' not in out

    def test_base64(self, base64_file: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys):
        monkeypatch.chdir(tmp_path)
        assert main(["search", "-b", str(base64_file), "not span.parent_span_id exists"]) == 0
        lines = capsys.readouterr().out.splitlines()
        assert [line.split("\t")[2] for line in lines] == ["root", "root"]

    @pytest.mark.parametrize(
        "extra",
        [
            [],
            ["span.name =="],
            ["span.bogus == 1"],
            ["--trace-id", "xyz"],
            ["(" * 3000 + "span.name == a" + ")" * 3000],
            ["not " * 5000 + "span.name == a"],
        ],
    )
    def test_bad_search_exit_code(self, trace_file: Path, extra: List[str], capsys):
        assert main(["search", str(trace_file)] + extra) == 3
        assert capsys.readouterr().err.startswith("Error: ")


# =============================================================================
# report commands
# =============================================================================


class TestReportCommands:
    """The report commands build their options and hand them over."""

    def test_report_trace(self, monkeypatch: pytest.MonkeyPatch, capsys):
        seen = []

        def fake_report_trace(options):
            seen.append(options)
            return ["ab" * 16, "cd" * 16]

        monkeypatch.setattr("otkit.cli.report_trace", fake_report_trace)
        code = main([
            "report-trace", "-n", "checkout", "-a", "k=v", "--status-msg", "boom",
            "--batch", "2", "--protocol", "http", "-r", "service.name=cli",
        ])
        assert code == 0
        assert capsys.readouterr().out.splitlines() == ["ab" * 16, "cd" * 16]
        options = seen[0]
        assert options.name == "checkout"
        assert options.attributes == {"k": "v"}
        assert options.status_message == "boom"
        assert options.batch == 2
        assert options.resource_attributes == {"service.name": "cli"}
        assert options.endpoint.protocol is Protocol.HTTP
        assert options.endpoint.resolved_port == 4318

    def test_endpoint_from_environment(self, monkeypatch: pytest.MonkeyPatch):
        seen = []
        monkeypatch.setattr("otkit.cli.report_log", lambda options: seen.append(options) or 1)
        monkeypatch.setenv("OTK_REPORT_HOST", "collector.local")
        monkeypatch.setenv("OTK_REPORT_PORT", "14317")
        assert main(["report-log", "-b", "hello", "-s", "warn"]) == 0
        options = seen[0]
        assert options.body == "hello"
        assert options.severity == "warn"
        assert options.endpoint.host == "collector.local"
        assert options.endpoint.port == 14317

    def test_cli_options_override_environment(self, monkeypatch: pytest.MonkeyPatch):
        seen = []
        monkeypatch.setattr("otkit.cli.report_log", lambda options: seen.append(options) or 1)
        monkeypatch.setenv("OTK_REPORT_HOST", "collector.local")
        assert main(["report-log", "-b", "x", "--host", "other"]) == 0
        assert seen[0].endpoint.host == "other"

    def test_report_metric(self, monkeypatch: pytest.MonkeyPatch):
        seen = []
        monkeypatch.setattr("otkit.cli.report_metric", lambda options: seen.append(options) or [])
        code = main([
            "report-metric", "-d", "i64", "-m", "histogram", "--value", "3", "7",
            "-t", "2", "-l", "route=/", "--histograms", "5", "10", "-w", "0",
        ])
        assert code == 0
        options = seen[0]
        assert options.parsed_values() == [3, 7, 3, 7]
        assert options.labels == {"route": "/"}
        assert list(options.buckets) == [5.0, 10.0]

    def test_invalid_metric_combination(self, monkeypatch: pytest.MonkeyPatch, capsys):
        monkeypatch.setattr("otkit.cli.report_metric", lambda options: pytest.fail("not reached"))
        assert main(["report-metric", "-d", "i64", "-m", "counter"]) == 3
        assert "invalid combination i64/counter" in capsys.readouterr().err

    def test_ca_cert_without_tls(self, capsys):
        assert main(["report-trace", "--ca-cert", "ca.pem"]) == 3
        assert "ca_cert requires tls" in capsys.readouterr().err

    def test_unimplemented_protocol(self, capsys):
        assert main(["report-trace", "--protocol", "hj"]) == 3
        assert "Unimplemented: http_json" in capsys.readouterr().err

    def test_unexpected_error_exit_code(self, monkeypatch: pytest.MonkeyPatch, capsys):
        def explode(options):
            raise RuntimeError("collector exploded")

        monkeypatch.setattr("otkit.cli.report_trace", explode)
        assert main(["report-trace"]) == 4
        assert "collector exploded" in capsys.readouterr().err
