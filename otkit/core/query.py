"""
otkit.core.query - Structured search over decoded traces.

A search walks every span of a TraceExport in wire order and yields the
spans for which a Predicate holds. Predicates form a tree of Comparison
leaves combined with And, Or and Not, and can be composed with the
``&``, ``|`` and ``~`` operators.

Predicates are validated when they are built: an unknown field, an unknown
operator or a literal that cannot apply to the field raises PredicateError
immediately. Evaluation never raises; a missing field or a type mismatch
simply does not match.

Classes:
    Op: Comparison operators
    FieldRef: A parsed field reference such as ``attribute[http.method]``
    SpanMatch: A matching span with its resource and scope
    Predicate: Base class of the predicate tree
    Comparison: ``field <op> value`` leaf
    And, Or, Not: Boolean composition
    SpanSearch: Restartable lazy result of search()

Example:
    >>> from otkit.core.query import Comparison, search
    >>> slow = Comparison("span.duration", "gt", "250ms")
    >>> errors = Comparison("span.status.code", "eq", "error")
    >>> for span in search(export, slow & ~errors):
    ...     print(span.name)
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Iterator, NamedTuple, Optional, Tuple, Type, Union

from otkit.core.errors import PredicateError
from otkit.core.model import SPAN_ID_SIZE, TRACE_ID_SIZE, OpenEnum, Span, SpanKind, StatusCode, TraceExport
from otkit.core.values import AnyValue, InstrumentationScope, Resource, ValueKind
from otkit.utils.tree import walk_spans


class Op(Enum):
    EQ = "eq"
    NE = "ne"
    CONTAINS = "contains"
    GT = "gt"
    LT = "lt"
    GTE = "gte"
    LTE = "lte"
    EXISTS = "exists"

    @classmethod
    def parse(cls, value: Union[str, Op]) -> Op:
        if isinstance(value, Op):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            valid = ", ".join(op.value for op in cls)
            raise PredicateError(f"Unknown operator {value!r} (expected one of: {valid})") from None


_ORDERING_OPS = frozenset({Op.GT, Op.LT, Op.GTE, Op.LTE})
_ALL_OPS = frozenset(Op)


class SpanMatch(NamedTuple):
    """A span together with the resource and scope it was exported under."""
    resource: Resource
    scope: Optional[InstrumentationScope]
    span: Span


# -----------------------------------------------------------------------------
# Literal coercion
# -----------------------------------------------------------------------------

_DURATION_RE = re.compile(r"^\s*(\d+(?:\.\d*)?|\.\d+)\s*(ns|us|µs|ms|s|m|h)?\s*$")

_DURATION_UNITS = {
    None: 1,
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}


def parse_duration(value: Any) -> int:
    """Convert a duration literal to nanoseconds.

    Accepts a non-negative integer number of nanoseconds, or a string such
    as ``"100ns"``, ``"10us"``, ``"250ms"``, ``"1.5s"``, ``"2m"`` or
    ``"1h"``. A string without a unit is read as nanoseconds.

    Raises:
        PredicateError: If the literal is not a valid duration
    """
    if isinstance(value, bool):
        raise PredicateError(f"Invalid duration: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise PredicateError(f"Duration must not be negative: {value}")
        return value
    if isinstance(value, float):
        if not math.isfinite(value) or value < 0:
            raise PredicateError(f"Invalid duration: {value!r}")
        return int(value)
    if isinstance(value, str):
        match = _DURATION_RE.match(value)
        if match:
            return int(Decimal(match.group(1)) * _DURATION_UNITS[match.group(2)])
    raise PredicateError(
        f"Invalid duration: {value!r} (expected e.g. 250ms, 1.5s, 10us, 100ns "
        "or an integer number of nanoseconds)"
    )


def _coerce_enum(enum_cls: Type[OpenEnum], prefix: str) -> Callable[[Any], AnyValue]:
    def coerce(value: Any) -> AnyValue:
        if isinstance(value, OpenEnum):
            return AnyValue(ValueKind.INT, int(value))
        if isinstance(value, int) and not isinstance(value, bool):
            return AnyValue(ValueKind.INT, value)
        if isinstance(value, str):
            text = value.strip()
            if text.isdigit():
                return AnyValue(ValueKind.INT, int(text))
            name = text.upper()
            if name.startswith(prefix):
                name = name[len(prefix):]
            if name in enum_cls.__members__:
                return AnyValue(ValueKind.INT, int(enum_cls.__members__[name]))
        valid = ", ".join(member.lower() for member in enum_cls.__members__)
        raise PredicateError(f"Invalid {enum_cls.__name__} {value!r} (expected one of: {valid})")
    return coerce


def _coerce_id(size: int) -> Callable[[Any], AnyValue]:
    def coerce(value: Any) -> AnyValue:
        if isinstance(value, (bytes, bytearray)):
            raw = bytes(value)
        elif isinstance(value, str):
            try:
                raw = bytes.fromhex(value.strip())
            except ValueError:
                raise PredicateError(f"Malformed hex id: {value!r}") from None
        else:
            raise PredicateError(f"Id literal must be a hex string, got {value!r}")
        if not raw or len(raw) > size:
            raise PredicateError(f"Id literal must be 1 to {size} bytes, got {len(raw)}")
        return AnyValue(ValueKind.BYTES, raw)
    return coerce


def _coerce_string(value: Any) -> AnyValue:
    if not isinstance(value, str):
        raise PredicateError(f"Expected a string literal, got {value!r}")
    return AnyValue(ValueKind.STRING, value)


def _coerce_duration(value: Any) -> AnyValue:
    return AnyValue(ValueKind.INT, parse_duration(value))


def _coerce_attribute(value: Any) -> AnyValue:
    try:
        return AnyValue.of(value)
    except TypeError as e:
        raise PredicateError(str(e)) from e


# -----------------------------------------------------------------------------
# Field references
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class _FieldType:
    resolve: Callable[[SpanMatch, Optional[str]], Optional[AnyValue]]
    coerce: Callable[[Any], AnyValue]
    ops: FrozenSet[Op]
    keyed: bool = False


def _string(value: str) -> AnyValue:
    return AnyValue(ValueKind.STRING, value)


def _resolve_attribute(match: SpanMatch, key: Optional[str]) -> Optional[AnyValue]:
    # Span attributes shadow scope attributes, which shadow resource attributes
    value = match.span.attributes.get(key)
    if value is None and match.scope is not None:
        value = match.scope.attributes.get(key)
    if value is None:
        value = match.resource.attributes.get(key)
    return value


def _scope_field(getter: Callable[[InstrumentationScope], str]):
    def resolve(match: SpanMatch, _key: Optional[str]) -> Optional[AnyValue]:
        return _string(getter(match.scope)) if match.scope is not None else None
    return resolve


def _resolve_parent(match: SpanMatch, _key: Optional[str]) -> Optional[AnyValue]:
    parent = match.span.parent_span_id
    return AnyValue(ValueKind.BYTES, parent) if parent is not None else None


_STRING_OPS = frozenset({Op.EQ, Op.NE, Op.CONTAINS, Op.EXISTS})
_ENUM_OPS = frozenset({Op.EQ, Op.NE, Op.EXISTS})
_DURATION_OPS = frozenset({Op.EQ, Op.NE, Op.GT, Op.LT, Op.GTE, Op.LTE, Op.EXISTS})

_FIELDS: Dict[str, _FieldType] = {
    "span.name": _FieldType(
        lambda m, _: _string(m.span.name), _coerce_string, _STRING_OPS),
    "span.kind": _FieldType(
        lambda m, _: AnyValue(ValueKind.INT, int(m.span.kind)),
        _coerce_enum(SpanKind, "SPAN_KIND_"), _ENUM_OPS),
    "span.status.code": _FieldType(
        lambda m, _: AnyValue(ValueKind.INT, int(m.span.status.code)),
        _coerce_enum(StatusCode, "STATUS_CODE_"), _ENUM_OPS),
    "span.status.message": _FieldType(
        lambda m, _: _string(m.span.status.message), _coerce_string, _STRING_OPS),
    "span.duration": _FieldType(
        lambda m, _: AnyValue(ValueKind.INT, m.span.duration), _coerce_duration, _DURATION_OPS),
    "span.trace_id": _FieldType(
        lambda m, _: AnyValue(ValueKind.BYTES, m.span.trace_id), _coerce_id(TRACE_ID_SIZE), _STRING_OPS),
    "span.span_id": _FieldType(
        lambda m, _: AnyValue(ValueKind.BYTES, m.span.span_id), _coerce_id(SPAN_ID_SIZE), _STRING_OPS),
    "span.parent_span_id": _FieldType(
        _resolve_parent, _coerce_id(SPAN_ID_SIZE), _STRING_OPS),
    "scope.name": _FieldType(
        _scope_field(lambda s: s.name), _coerce_string, _STRING_OPS),
    "scope.version": _FieldType(
        _scope_field(lambda s: s.version), _coerce_string, _STRING_OPS),
    "attribute": _FieldType(
        _resolve_attribute, _coerce_attribute, _ALL_OPS, keyed=True),
    "resource.attribute": _FieldType(
        lambda m, key: m.resource.attributes.get(key), _coerce_attribute, _ALL_OPS, keyed=True),
    "scope.attribute": _FieldType(
        lambda m, key: m.scope.attributes.get(key) if m.scope is not None else None,
        _coerce_attribute, _ALL_OPS, keyed=True),
}

_KEYED_RE = re.compile(r"^(?P<path>[a-z.]+)\[(?P<key>.+)\]$", re.DOTALL)

FIELD_NAMES: Tuple[str, ...] = tuple(
    f"{name}[key]" if spec.keyed else name for name, spec in _FIELDS.items()
)


@dataclass(frozen=True)
class FieldRef:
    """A validated reference to a span field or attribute.

    Attributes:
        path: Field path, e.g. ``span.name`` or ``resource.attribute``
        key: Attribute key for keyed paths, None otherwise
    """
    path: str
    key: Optional[str] = None

    @classmethod
    def parse(cls, text: Union[str, FieldRef]) -> FieldRef:
        """Parse ``span.name`` or ``attribute[http.method]`` style references.

        Raises:
            PredicateError: If the field is unknown or a key is missing
        """
        if isinstance(text, FieldRef):
            return text
        if not isinstance(text, str):
            raise PredicateError(f"Field must be a string, got {text!r}")
        text = text.strip()
        match = _KEYED_RE.match(text)
        if match:
            path, key = match.group("path"), match.group("key")
            spec = _FIELDS.get(path)
            if spec is not None and spec.keyed:
                return cls(path, key)
        else:
            spec = _FIELDS.get(text)
            if spec is not None and not spec.keyed:
                return cls(text)
        raise PredicateError(
            f"Unknown field {text!r} (expected one of: {', '.join(FIELD_NAMES)})"
        )

    @property
    def _type(self) -> _FieldType:
        return _FIELDS[self.path]

    def resolve(self, match: SpanMatch) -> Optional[AnyValue]:
        """Look the field up on a span, None if it is absent."""
        return self._type.resolve(match, self.key)

    def __str__(self) -> str:
        return f"{self.path}[{self.key}]" if self.key is not None else self.path


# -----------------------------------------------------------------------------
# Value comparison
# -----------------------------------------------------------------------------

def _same_kind(a: AnyValue, b: AnyValue) -> bool:
    return a.kind is b.kind or (a.is_numeric and b.is_numeric)


def _numeric_pair(a: AnyValue, b: AnyValue) -> Tuple[Union[int, float], Union[int, float]]:
    # Compare int with int exactly; mixed pairs are widened to float
    if a.kind is ValueKind.INT and b.kind is ValueKind.INT:
        return a.value, b.value
    return a.as_float(), b.as_float()


def values_equal(a: AnyValue, b: AnyValue) -> bool:
    """Equality used by eq/ne/contains. INT and DOUBLE compare numerically."""
    if a.is_numeric and b.is_numeric:
        x, y = _numeric_pair(a, b)
        return x == y
    return a.kind is b.kind and a.value == b.value


def _contains(actual: AnyValue, expected: AnyValue) -> bool:
    if actual.kind is ValueKind.STRING:
        return expected.kind is ValueKind.STRING and expected.value in actual.value
    if actual.kind is ValueKind.BYTES:
        return expected.kind is ValueKind.BYTES and expected.value in actual.value
    if actual.kind is ValueKind.ARRAY:
        return any(values_equal(item, expected) for item in actual.value)
    if actual.kind is ValueKind.KVLIST:
        return expected.kind is ValueKind.STRING and any(kv.key == expected.value for kv in actual.value)
    return False


def _order(op: Op, actual: AnyValue, expected: AnyValue) -> bool:
    if not (actual.is_numeric and expected.is_numeric):
        return False
    x, y = _numeric_pair(actual, expected)
    if op is Op.GT:
        return x > y
    if op is Op.LT:
        return x < y
    if op is Op.GTE:
        return x >= y
    return x <= y


def compare(op: Op, actual: Optional[AnyValue], expected: Optional[AnyValue]) -> bool:
    """Apply ``op`` to a resolved field value and a literal.

    A missing field (None) matches no operator except ``exists``, which
    reports it as absent.
    """
    if op is Op.EXISTS:
        return actual is not None
    if actual is None or expected is None:
        return False
    if op is Op.EQ:
        return values_equal(actual, expected)
    if op is Op.NE:
        return _same_kind(actual, expected) and not values_equal(actual, expected)
    if op is Op.CONTAINS:
        return _contains(actual, expected)
    return _order(op, actual, expected)


# -----------------------------------------------------------------------------
# Predicate tree
# -----------------------------------------------------------------------------

class Predicate:
    """Base class of the predicate tree."""

    def evaluate(self, match: SpanMatch) -> bool:
        raise NotImplementedError

    def matches_span(
        self,
        span: Span,
        resource: Optional[Resource] = None,
        scope: Optional[InstrumentationScope] = None,
    ) -> bool:
        """Evaluate against a single span outside of a search."""
        return self.evaluate(SpanMatch(resource or Resource(), scope, span))

    def __and__(self, other: Predicate) -> And:
        return And(self, other)

    def __or__(self, other: Predicate) -> Or:
        return Or(self, other)

    def __invert__(self) -> Not:
        return Not(self)

    def _key(self) -> tuple:
        raise NotImplementedError

    def __eq__(self, other: object) -> bool:
        if type(self) is not type(other):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash((type(self).__name__, self._key()))


class Comparison(Predicate):
    """Leaf predicate ``field <op> value``.

    Args:
        field: Field reference, e.g. ``"span.name"`` or ``"attribute[env]"``
        op: One of eq, ne, contains, gt, lt, gte, lte, exists
        value: Literal to compare with; must be omitted for exists

    Raises:
        PredicateError: If the field, operator or literal is invalid
    """

    def __init__(self, field: Union[str, FieldRef], op: Union[str, Op], value: Any = None) -> None:
        self.field = FieldRef.parse(field)
        self.op = Op.parse(op)
        field_type = self.field._type

        if self.op not in field_type.ops:
            raise PredicateError(f"Operator {self.op.value} is not supported for {self.field}")

        if self.op is Op.EXISTS:
            if value is not None:
                raise PredicateError("Operator exists does not take a value")
            self.value: Optional[AnyValue] = None
            return

        if value is None:
            raise PredicateError(f"Operator {self.op.value} requires a value")
        self.value = field_type.coerce(value)

        if self.op in _ORDERING_OPS and not self.value.is_numeric:
            raise PredicateError(
                f"Operator {self.op.value} requires a numeric value, got {value!r}"
            )
        if self.op is Op.CONTAINS and self.value.kind in (ValueKind.ARRAY, ValueKind.KVLIST):
            raise PredicateError("Operator contains does not accept array or kvlist values")

    def evaluate(self, match: SpanMatch) -> bool:
        return compare(self.op, self.field.resolve(match), self.value)

    def _key(self) -> tuple:
        return (self.field, self.op, self.value)

    def __repr__(self) -> str:
        if self.value is None:
            return f"Comparison({str(self.field)!r}, {self.op.value!r})"
        return f"Comparison({str(self.field)!r}, {self.op.value!r}, {self.value.to_python()!r})"


def _check_operands(name: str, operands: Tuple[Predicate, ...]) -> Tuple[Predicate, ...]:
    if not operands:
        raise PredicateError(f"{name} needs at least one operand")
    for operand in operands:
        if not isinstance(operand, Predicate):
            raise PredicateError(f"{name} operands must be predicates, got {operand!r}")
    return operands


class And(Predicate):
    def __init__(self, *operands: Predicate) -> None:
        self.operands = _check_operands("And", operands)

    def evaluate(self, match: SpanMatch) -> bool:
        return all(p.evaluate(match) for p in self.operands)

    def _key(self) -> tuple:
        return self.operands

    def __repr__(self) -> str:
        return f"And({', '.join(map(repr, self.operands))})"


class Or(Predicate):
    def __init__(self, *operands: Predicate) -> None:
        self.operands = _check_operands("Or", operands)

    def evaluate(self, match: SpanMatch) -> bool:
        return any(p.evaluate(match) for p in self.operands)

    def _key(self) -> tuple:
        return self.operands

    def __repr__(self) -> str:
        return f"Or({', '.join(map(repr, self.operands))})"


class Not(Predicate):
    def __init__(self, operand: Predicate) -> None:
        self.operand = _check_operands("Not", (operand,))[0]

    def evaluate(self, match: SpanMatch) -> bool:
        return not self.operand.evaluate(match)

    def _key(self) -> tuple:
        return (self.operand,)

    def __repr__(self) -> str:
        return f"Not({self.operand!r})"


class _Always(Predicate):
    def evaluate(self, match: SpanMatch) -> bool:
        return True

    def _key(self) -> tuple:
        return ()

    def __repr__(self) -> str:
        return "ALL"


ALL: Predicate = _Always()


class SpanSearch:
    """Lazy, restartable sequence of the spans matching a predicate.

    Each iteration walks the export again from the start, so iterating
    twice yields the same spans in the same order.
    """

    def __init__(self, export: TraceExport, predicate: Predicate) -> None:
        self.export = export
        self.predicate = predicate

    def matches(self) -> Iterator[SpanMatch]:
        """Yield matches with their resource and scope context."""
        for resource, scope, span in walk_spans(self.export):
            match = SpanMatch(resource, scope, span)
            if self.predicate.evaluate(match):
                yield match

    def __iter__(self) -> Iterator[Span]:
        return (match.span for match in self.matches())

    def first(self) -> Optional[Span]:
        return next(iter(self), None)

    def count(self) -> int:
        return sum(1 for _ in self.matches())


def search(export: TraceExport, predicate: Optional[Predicate] = None) -> SpanSearch:
    """Search a decoded trace for spans matching ``predicate``.

    Args:
        export: Decoded trace export
        predicate: Predicate to evaluate; None matches every span

    Returns:
        A restartable iterable of matching spans in wire order

    Raises:
        PredicateError: If ``predicate`` is not a Predicate
    """
    if predicate is None:
        predicate = ALL
    if not isinstance(predicate, Predicate):
        raise PredicateError(f"Expected a Predicate, got {type(predicate).__name__}")
    return SpanSearch(export, predicate)
