"""
Tests for otkit.core.query module.

Tests cover field resolution (including attribute precedence), operator
semantics per value kind, literal validation at construction time,
boolean composition and the search driver.
"""

import pytest

from otkit.core.decoder import decode
from otkit.core.errors import PredicateError
from otkit.core.model import Span, SpanKind, Status, StatusCode, TraceExport
from otkit.core.query import (
    ALL,
    FIELD_NAMES,
    And,
    Comparison,
    FieldRef,
    Not,
    Op,
    Or,
    SpanMatch,
    compare,
    parse_duration,
    search,
    values_equal,
)
from otkit.core.values import AnyValue, Attributes, InstrumentationScope, Resource
from tests import otlp_builder as pb

TRACE_ID = bytes.fromhex("0af7651916cd43dd8448eb211c80319c")
OTHER_TRACE = bytes.fromhex("4bf92f3577b34da6a3ce929d0e0e4736")


def _id(n: int) -> bytes:
    return n.to_bytes(8, "big")


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def abc_export() -> TraceExport:
    """Three spans a -> b, a -> c in one trace, plus d in another trace."""
    spans = [
        pb.span(name="a", trace_id=TRACE_ID, span_id=_id(1), kind=2, start=100, end=1_100,
                attrs={"http.status_code": 200, "env": "span-env"}),
        pb.span(name="b", trace_id=TRACE_ID, span_id=_id(2), parent_span_id=_id(1), kind=3,
                start=200, end=300, attrs={"db.system": "postgresql"}, status_code=2,
                status_message="deadlock detected"),
        pb.span(name="c", trace_id=TRACE_ID, span_id=_id(3), parent_span_id=_id(1), kind=3,
                start=400, end=350, attrs={"http.status_code": 503}),
        pb.span(name="d", trace_id=OTHER_TRACE, span_id=_id(4), kind=1, start=0, end=5_000_000,
                attrs={"retries": 2.0, "tags": ["x", "y"], "meta": {"k": 1}, "blob": b"\x00\x01\x02"}),
    ]
    payload = pb.trace_request([
        pb.resource_spans(
            [pb.scope_spans(spans, pb.scope("io.checkout", "2.1", {"scope.only": "s", "env": "scope-env"}))],
            pb.resource({"service.name": "checkout", "env": "resource-env", "region": "eu"}),
        )
    ])
    return decode(payload)


def names(result) -> list:
    return [span.name for span in result]


# =============================================================================
# Durations
# =============================================================================


class TestParseDuration:
    """Tests for duration literals."""

    @pytest.mark.parametrize(
        "literal,expected",
        [
            (0, 0),
            (1500, 1500),
            ("100", 100),
            ("100ns", 100),
            ("10us", 10_000),
            ("10µs", 10_000),
            ("250ms", 250_000_000),
            ("1.5s", 1_500_000_000),
            ("2m", 120_000_000_000),
            ("1h", 3_600_000_000_000),
            (" 3 ms ", 3_000_000),
            ("0.1s", 100_000_000),
        ],
    )
    def test_valid(self, literal, expected: int) -> None:
        assert parse_duration(literal) == expected

    @pytest.mark.parametrize("literal", [-1, "-1ms", "1d", "ms", "", "fast", True, None, float("nan")])
    def test_invalid(self, literal) -> None:
        with pytest.raises(PredicateError):
            parse_duration(literal)


# =============================================================================
# Field references
# =============================================================================


class TestFieldRef:
    """Tests for FieldRef.parse."""

    def test_plain_field(self) -> None:
        ref = FieldRef.parse("span.name")
        assert ref == FieldRef("span.name")
        assert str(ref) == "span.name"

    def test_keyed_field(self) -> None:
        ref = FieldRef.parse("attribute[http.status_code]")
        assert ref.path == "attribute"
        assert ref.key == "http.status_code"
        assert str(ref) == "attribute[http.status_code]"

    def test_key_with_brackets_and_spaces(self) -> None:
        ref = FieldRef.parse("resource.attribute[a b[0]]")
        assert ref.key == "a b[0]"

    @pytest.mark.parametrize("text", ["span.nope", "attribute", "span.name[x]", "attribute[]", ""])
    def test_unknown(self, text: str) -> None:
        with pytest.raises(PredicateError, match="Unknown field"):
            FieldRef.parse(text)

    def test_field_names_listed(self) -> None:
        assert "span.duration" in FIELD_NAMES
        assert "attribute[key]" in FIELD_NAMES


# =============================================================================
# Comparison semantics
# =============================================================================


class TestValueComparison:
    """Tests for compare and values_equal."""

    def test_int_double_numeric_equality(self) -> None:
        assert values_equal(AnyValue.of(2), AnyValue.of(2.0))

    def test_bool_is_not_numeric(self) -> None:
        assert not values_equal(AnyValue.of(True), AnyValue.of(1))

    def test_missing_only_matches_exists(self) -> None:
        for op in Op:
            expected = AnyValue.of(1)
            assert compare(op, None, expected) is False

    def test_ne_requires_same_kind(self) -> None:
        assert compare(Op.NE, AnyValue.of("a"), AnyValue.of("b"))
        assert not compare(Op.NE, AnyValue.of("a"), AnyValue.of(1))
        assert not compare(Op.NE, AnyValue.of(1), AnyValue.of(1.0))
        assert compare(Op.NE, AnyValue.of(1), AnyValue.of(1.5))

    def test_ordering_on_non_numeric_is_false(self) -> None:
        assert not compare(Op.GT, AnyValue.of("b"), AnyValue.of(1))

    def test_contains(self) -> None:
        assert compare(Op.CONTAINS, AnyValue.of("deadlock detected"), AnyValue.of("lock"))
        assert compare(Op.CONTAINS, AnyValue.of(b"\x00\x01\x02"), AnyValue.of(b"\x01\x02"))
        assert not compare(Op.CONTAINS, AnyValue.of(b"\x00\x01\x02"), AnyValue.of(b"\x02\x01"))
        assert compare(Op.CONTAINS, AnyValue.of([1, "x"]), AnyValue.of("x"))
        assert compare(Op.CONTAINS, AnyValue.of([1, "x"]), AnyValue.of(1.0))
        assert compare(Op.CONTAINS, AnyValue.of({"k": 1}), AnyValue.of("k"))
        assert not compare(Op.CONTAINS, AnyValue.of({"k": 1}), AnyValue.of("v"))
        assert not compare(Op.CONTAINS, AnyValue.of(10), AnyValue.of(1))


class TestComparisonValidation:
    """Predicates are validated when they are built."""

    def test_unknown_operator(self) -> None:
        with pytest.raises(PredicateError, match="Unknown operator"):
            Comparison("span.name", "like", "x")

    def test_operator_not_supported_for_field(self) -> None:
        with pytest.raises(PredicateError, match="not supported for span.name"):
            Comparison("span.name", "gt", "x")

    def test_contains_not_supported_for_duration(self) -> None:
        with pytest.raises(PredicateError):
            Comparison("span.duration", "contains", "1ms")

    def test_exists_takes_no_value(self) -> None:
        with pytest.raises(PredicateError, match="does not take a value"):
            Comparison("attribute[env]", "exists", "x")

    def test_value_required(self) -> None:
        with pytest.raises(PredicateError, match="requires a value"):
            Comparison("span.name", "eq")

    def test_ordering_requires_numeric_literal(self) -> None:
        with pytest.raises(PredicateError, match="numeric"):
            Comparison("attribute[http.status_code]", "gte", "500")
        with pytest.raises(PredicateError, match="numeric"):
            Comparison("attribute[flag]", "gt", True)

    def test_contains_rejects_collections(self) -> None:
        with pytest.raises(PredicateError):
            Comparison("attribute[tags]", "contains", ["x"])

    def test_string_field_requires_string(self) -> None:
        with pytest.raises(PredicateError):
            Comparison("span.name", "eq", 5)

    def test_invalid_enum_name(self) -> None:
        with pytest.raises(PredicateError, match="Invalid SpanKind"):
            Comparison("span.kind", "eq", "sideways")

    @pytest.mark.parametrize("literal", ["server", "SERVER", "SPAN_KIND_SERVER", 2, "2", SpanKind.SERVER])
    def test_enum_spellings(self, literal) -> None:
        assert Comparison("span.kind", "eq", literal) == Comparison("span.kind", "eq", "server")

    @pytest.mark.parametrize("literal", ["zz", "", "00" * 17])
    def test_invalid_ids(self, literal: str) -> None:
        with pytest.raises(PredicateError):
            Comparison("span.trace_id", "eq", literal)

    def test_invalid_duration_literal(self) -> None:
        with pytest.raises(PredicateError, match="Invalid duration"):
            Comparison("span.duration", "gt", "soon")

    def test_op_enum_accepted(self) -> None:
        assert Comparison("span.name", Op.EQ, "a") == Comparison("span.name", "EQ", "a")

    def test_repr(self) -> None:
        assert repr(Comparison("span.name", "eq", "b")) == "Comparison('span.name', 'eq', 'b')"
        assert repr(Comparison("attribute[env]", "exists")) == "Comparison('attribute[env]', 'exists')"


# =============================================================================
# Search
# =============================================================================


class TestSearchSpanFields:
    """Search over the built-in span fields."""

    def test_name_or(self, abc_export: TraceExport) -> None:
        predicate = Or(Comparison("span.name", "eq", "b"), Comparison("span.name", "eq", "c"))
        assert names(search(abc_export, predicate)) == ["b", "c"]

    def test_name_ne(self, abc_export: TraceExport) -> None:
        assert names(search(abc_export, Comparison("span.name", "ne", "a"))) == ["b", "c", "d"]

    def test_name_contains(self, abc_export: TraceExport) -> None:
        assert names(search(abc_export, Comparison("span.status.message", "contains", "lock"))) == ["b"]

    def test_kind(self, abc_export: TraceExport) -> None:
        assert names(search(abc_export, Comparison("span.kind", "eq", "client"))) == ["b", "c"]

    def test_status_code(self, abc_export: TraceExport) -> None:
        assert names(search(abc_export, Comparison("span.status.code", "eq", "STATUS_CODE_ERROR"))) == ["b"]
        assert names(search(abc_export, Comparison("span.status.code", "ne", "error"))) == ["a", "c", "d"]

    def test_duration(self, abc_export: TraceExport) -> None:
        assert names(search(abc_export, Comparison("span.duration", "gt", "1ms"))) == ["d"]
        assert names(search(abc_export, Comparison("span.duration", "gte", 1000))) == ["a", "d"]
        assert names(search(abc_export, Comparison("span.duration", "lt", "0.5us"))) == ["b", "c"]

    def test_negative_duration_saturates_to_zero(self, abc_export: TraceExport) -> None:
        """Span c ends before it starts."""
        assert names(search(abc_export, Comparison("span.duration", "eq", 0))) == ["c"]

    def test_trace_id(self, abc_export: TraceExport) -> None:
        predicate = Comparison("span.trace_id", "eq", OTHER_TRACE.hex())
        assert names(search(abc_export, predicate)) == ["d"]

    def test_trace_id_uppercase_hex(self, abc_export: TraceExport) -> None:
        predicate = Comparison("span.trace_id", "eq", OTHER_TRACE.hex().upper())
        assert names(search(abc_export, predicate)) == ["d"]

    def test_trace_id_prefix(self, abc_export: TraceExport) -> None:
        predicate = Comparison("span.trace_id", "contains", "0af765")
        assert names(search(abc_export, predicate)) == ["a", "b", "c"]

    def test_parent_span_id(self, abc_export: TraceExport) -> None:
        assert names(search(abc_export, Comparison("span.parent_span_id", "exists"))) == ["b", "c"]
        assert names(search(abc_export, Comparison("span.parent_span_id", "eq", _id(1).hex()))) == ["b", "c"]
        assert names(search(abc_export, Not(Comparison("span.parent_span_id", "exists")))) == ["a", "d"]

    def test_scope_fields(self, abc_export: TraceExport) -> None:
        assert search(abc_export, Comparison("scope.name", "eq", "io.checkout")).count() == 4
        assert search(abc_export, Comparison("scope.version", "eq", "2.0")).count() == 0


class TestSearchAttributes:
    """Search over attributes, including the span -> scope -> resource precedence."""

    def test_span_attribute_wins(self, abc_export: TraceExport) -> None:
        assert names(search(abc_export, Comparison("attribute[env]", "eq", "span-env"))) == ["a"]

    def test_scope_attribute_beats_resource(self, abc_export: TraceExport) -> None:
        assert names(search(abc_export, Comparison("attribute[env]", "eq", "scope-env"))) == ["b", "c", "d"]
        assert names(search(abc_export, Comparison("attribute[env]", "eq", "resource-env"))) == []

    def test_falls_back_to_resource(self, abc_export: TraceExport) -> None:
        assert search(abc_export, Comparison("attribute[region]", "eq", "eu")).count() == 4

    def test_explicit_resource_and_scope(self, abc_export: TraceExport) -> None:
        assert search(abc_export, Comparison("resource.attribute[env]", "eq", "resource-env")).count() == 4
        assert search(abc_export, Comparison("scope.attribute[scope.only]", "exists")).count() == 4
        assert search(abc_export, Comparison("resource.attribute[scope.only]", "exists")).count() == 0

    def test_numeric(self, abc_export: TraceExport) -> None:
        assert names(search(abc_export, Comparison("attribute[http.status_code]", "gte", 500))) == ["c"]
        assert names(search(abc_export, Comparison("attribute[http.status_code]", "eq", 200.0))) == ["a"]
        assert names(search(abc_export, Comparison("attribute[retries]", "eq", 2))) == ["d"]

    def test_ne_skips_missing_and_other_kinds(self, abc_export: TraceExport) -> None:
        predicate = Comparison("attribute[http.status_code]", "ne", 200)
        assert names(search(abc_export, predicate)) == ["c"]
        assert names(search(abc_export, Comparison("attribute[http.status_code]", "ne", "200"))) == []

    def test_exists(self, abc_export: TraceExport) -> None:
        assert names(search(abc_export, Comparison("attribute[db.system]", "exists"))) == ["b"]

    def test_collections(self, abc_export: TraceExport) -> None:
        assert names(search(abc_export, Comparison("attribute[tags]", "contains", "y"))) == ["d"]
        assert names(search(abc_export, Comparison("attribute[tags]", "eq", ["x", "y"]))) == ["d"]
        assert names(search(abc_export, Comparison("attribute[meta]", "contains", "k"))) == ["d"]
        assert names(search(abc_export, Comparison("attribute[blob]", "contains", b"\x01"))) == ["d"]

    def test_type_mismatch_never_raises(self, abc_export: TraceExport) -> None:
        assert names(search(abc_export, Comparison("attribute[db.system]", "gt", 1))) == []


class TestComposition:
    """Tests for And, Or, Not and the operator overloads."""

    def test_operators_build_tree(self) -> None:
        a = Comparison("span.name", "eq", "a")
        b = Comparison("span.name", "eq", "b")
        assert (a & b) == And(a, b)
        assert (a | b) == Or(a, b)
        assert ~a == Not(a)

    def test_equality_and_hash(self) -> None:
        first = Comparison("attribute[k]", "eq", 1)
        second = Comparison("attribute[k]", "eq", 1)
        assert first == second
        assert len({first, second}) == 1
        assert first != Comparison("attribute[k]", "eq", 2)

    def test_empty_and_rejected(self) -> None:
        with pytest.raises(PredicateError):
            And()

    def test_non_predicate_operand_rejected(self) -> None:
        with pytest.raises(PredicateError):
            Or(Comparison("span.name", "eq", "a"), "span.name == b")

    def test_nested(self, abc_export: TraceExport) -> None:
        predicate = Comparison("span.kind", "eq", "client") & ~Comparison("span.status.code", "eq", "error")
        assert names(search(abc_export, predicate)) == ["c"]

    def test_matches_span_without_context(self) -> None:
        span = Span(name="solo", attributes=Attributes.of({"k": "v"}), status=Status(StatusCode.OK))
        assert Comparison("attribute[k]", "eq", "v").matches_span(span)
        assert not Comparison("scope.name", "exists").matches_span(span)
        scope = InstrumentationScope(name="lib")
        assert Comparison("scope.name", "eq", "lib").matches_span(span, scope=scope)
        resource = Resource(Attributes.of({"region": "us"}))
        assert Comparison("attribute[region]", "eq", "us").matches_span(span, resource=resource)


class TestSearchDriver:
    """Tests for search and SpanSearch."""

    def test_none_matches_everything(self, abc_export: TraceExport) -> None:
        assert names(search(abc_export)) == ["a", "b", "c", "d"]
        assert names(search(abc_export, ALL)) == ["a", "b", "c", "d"]

    def test_rejects_non_predicate(self, abc_export: TraceExport) -> None:
        with pytest.raises(PredicateError, match="Expected a Predicate"):
            search(abc_export, "span.name == a")

    def test_restartable(self, abc_export: TraceExport) -> None:
        result = search(abc_export, Comparison("span.kind", "eq", "client"))
        assert names(result) == names(result) == ["b", "c"]

    def test_first_and_count(self, abc_export: TraceExport) -> None:
        result = search(abc_export, Comparison("span.kind", "eq", "client"))
        assert result.first().name == "b"
        assert result.count() == 2
        assert search(abc_export, Comparison("span.name", "eq", "zzz")).first() is None

    def test_matches_carry_context(self, abc_export: TraceExport) -> None:
        match = next(search(abc_export, Comparison("span.name", "eq", "d")).matches())
        assert isinstance(match, SpanMatch)
        assert match.resource.service_name == "checkout"
        assert match.scope.name == "io.checkout"

    def test_empty_export(self) -> None:
        assert search(TraceExport()).count() == 0
