"""
Tests for otkit.core.values and the enum helpers of otkit.core.model.
"""

import pytest

from otkit.core.model import Span, SpanKind, StatusCode
from otkit.core.signals import SeverityNumber
from otkit.core.values import AnyValue, Attributes, KeyValue, Resource, ValueKind


class TestAnyValue:
    """Tests for AnyValue construction and accessors."""

    @pytest.mark.parametrize(
        "value,kind",
        [
            (None, ValueKind.EMPTY),
            ("s", ValueKind.STRING),
            (True, ValueKind.BOOL),
            (3, ValueKind.INT),
            (0.5, ValueKind.DOUBLE),
            (b"\x01", ValueKind.BYTES),
            (bytearray(b"\x01"), ValueKind.BYTES),
            ([1, 2], ValueKind.ARRAY),
            ((1,), ValueKind.ARRAY),
            ({"a": 1}, ValueKind.KVLIST),
        ],
    )
    def test_of(self, value, kind: ValueKind) -> None:
        assert AnyValue.of(value).kind is kind

    def test_of_is_idempotent(self) -> None:
        value = AnyValue.of("x")
        assert AnyValue.of(value) is value

    def test_of_unsupported(self) -> None:
        with pytest.raises(TypeError, match="Unsupported attribute value type"):
            AnyValue.of(object())

    def test_bool_is_not_int(self) -> None:
        value = AnyValue.of(False)
        assert value.as_bool() is False
        assert value.as_int() is None
        assert not value.is_numeric

    def test_accessors_return_none_for_other_kinds(self) -> None:
        value = AnyValue.of("text")
        assert value.as_str() == "text"
        assert value.as_int() is None
        assert value.as_float() is None
        assert value.as_bytes() is None
        assert value.as_array() is None
        assert value.as_kvlist() is None

    def test_as_float_widens_int(self) -> None:
        assert AnyValue.of(4).as_float() == 4.0

    def test_kvlist_keeps_keys(self) -> None:
        value = AnyValue.of({"a": 1, "b": [True]})
        assert [kv.key for kv in value.as_kvlist()] == ["a", "b"]

    def test_to_python(self) -> None:
        value = AnyValue.of({"id": b"\xab", "list": [1, None]})
        assert value.to_python() == {"id": "ab", "list": [1, None]}

    def test_empty(self) -> None:
        assert AnyValue().is_empty
        assert AnyValue().to_python() is None


class TestAttributes:
    """Tests for the ordered attribute list."""

    @pytest.fixture
    def duplicated(self) -> Attributes:
        return Attributes((
            KeyValue("k", AnyValue.of(1)),
            KeyValue("other", AnyValue.of("x")),
            KeyValue("k", AnyValue.of(2)),
        ))

    def test_get_last_wins(self, duplicated: Attributes) -> None:
        assert duplicated.get("k").as_int() == 2

    def test_get_all(self, duplicated: Attributes) -> None:
        assert [v.as_int() for v in duplicated.get_all("k")] == [1, 2]

    def test_keys_are_distinct(self, duplicated: Attributes) -> None:
        assert duplicated.keys() == ["k", "other"]

    def test_missing(self, duplicated: Attributes) -> None:
        assert duplicated.get("nope") is None
        assert not duplicated.has("nope")
        assert duplicated.has("other")

    def test_len_iter_bool(self, duplicated: Attributes) -> None:
        assert len(duplicated) == 3
        assert [kv.key for kv in duplicated] == ["k", "other", "k"]
        assert duplicated
        assert not Attributes()

    def test_of_and_to_dict(self) -> None:
        attrs = Attributes.of({"a": 1, "b": "two"})
        assert attrs.to_dict() == {"a": 1, "b": "two"}


class TestResource:
    """Tests for Resource helpers."""

    def test_service_name(self) -> None:
        assert Resource(Attributes.of({"service.name": "cart"})).service_name == "cart"

    def test_service_name_missing_or_not_string(self) -> None:
        assert Resource().service_name is None
        assert Resource(Attributes.of({"service.name": 5})).service_name is None


class TestOpenEnums:
    """Protobuf enums keep values this version does not know."""

    def test_known(self) -> None:
        assert SpanKind(2) is SpanKind.SERVER
        assert StatusCode(2) is StatusCode.ERROR

    def test_unknown_value(self) -> None:
        kind = SpanKind(42)
        assert int(kind) == 42
        assert kind.name == "UNKNOWN_42"

    def test_unknown_severity(self) -> None:
        assert SeverityNumber(99).name == "UNKNOWN_99"

    def test_non_int_rejected(self) -> None:
        with pytest.raises(ValueError):
            SpanKind("server")


class TestSpan:
    """Tests for Span derived properties."""

    def test_duration(self) -> None:
        assert Span(start_time_unix_nano=10, end_time_unix_nano=25).duration == 15

    def test_duration_saturates(self) -> None:
        assert Span(start_time_unix_nano=25, end_time_unix_nano=10).duration == 0

    def test_hex_ids(self) -> None:
        span = Span(trace_id=b"\x01" * 16, span_id=b"\x02" * 8, parent_span_id=b"\x03" * 8)
        assert span.trace_id_hex == "01" * 16
        assert span.span_id_hex == "02" * 8
        assert span.parent_span_id_hex == "03" * 8
        assert not span.is_root

    def test_root(self) -> None:
        assert Span().is_root
        assert Span().parent_span_id_hex is None
