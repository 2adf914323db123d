"""
otkit.core.expression - Text syntax for search predicates.

Parses expressions such as::

    span.name == "GET /cart" and not attribute[http.status_code] < 400
    (span.kind eq server or span.kind eq client) and span.duration > 250ms
    resource.attribute[service.name] exists

into the Predicate tree of otkit.core.query. Grammar::

    expr       := and_expr ("or" and_expr)*
    and_expr   := unary ("and" unary)*
    unary      := "not" unary | "(" expr ")" | comparison
    comparison := FIELD OP [LITERAL]

Operators are written as words (eq, ne, contains, gt, lt, gte, lte,
exists) or symbols (==, !=, ~, >, <, >=, <=). Keywords are case
insensitive.

Nesting of "not" and parentheses is capped at MAX_NESTING levels.

Literals for attribute fields are typed: double-quoted JSON strings,
integers, floats, true/false and ``bytes:<hex>``; anything else is a bare
string. For the built-in span and scope fields a bare word is passed
through as text, so ``span.trace_id == 0123...`` and
``span.duration > 1.5s`` keep their spelling.
"""

from __future__ import annotations

import json
import re
from typing import Any, List, NamedTuple, Optional

from otkit.core.errors import PredicateError
from otkit.core.query import And, Comparison, FieldRef, Not, Op, Or, Predicate

_TOKEN_RE = re.compile(
    r"""
      (?P<space>\s+)
    | (?P<lparen>\()
    | (?P<rparen>\))
    | (?P<op>==|!=|>=|<=|>|<|~|=)
    | (?P<string>"(?:[^"\\]|\\.)*")
    | (?P<word>[^\s()"=!<>~\[]+(?:\[[^\]]*\])?)
    """,
    re.VERBOSE,
)

_SYMBOLS = {
    "==": Op.EQ,
    "=": Op.EQ,
    "!=": Op.NE,
    "~": Op.CONTAINS,
    ">": Op.GT,
    "<": Op.LT,
    ">=": Op.GTE,
    "<=": Op.LTE,
}

_INT_RE = re.compile(r"[+-]?\d+")
_FLOAT_RE = re.compile(r"[+-]?(?:\d+\.\d*|\.\d+|\d+)(?:[eE][+-]?\d+)?")

_BYTES_PREFIX = "bytes:"

MAX_NESTING = 64


class _Token(NamedTuple):
    kind: str
    text: str
    pos: int


def tokenize(text: str) -> List[_Token]:
    """Split an expression into tokens, dropping whitespace.

    Raises:
        PredicateError: On a character that starts no token
    """
    tokens: List[_Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise PredicateError(f"Unexpected character {text[pos]!r} at position {pos}")
        if match.lastgroup != "space":
            tokens.append(_Token(match.lastgroup, match.group(), pos))
        pos = match.end()
    return tokens


def _keyword(token: Optional[_Token], word: str) -> bool:
    return token is not None and token.kind == "word" and token.text.lower() == word


def parse_literal(text: str, typed: bool = True) -> Any:
    """Convert a bare word or quoted string token to a Python value."""
    if text.startswith('"'):
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise PredicateError(f"Malformed string literal {text}: {e.msg}") from e
    if not typed:
        return text

    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    if text.startswith(_BYTES_PREFIX):
        try:
            return bytes.fromhex(text[len(_BYTES_PREFIX):])
        except ValueError:
            raise PredicateError(f"Malformed bytes literal {text!r}") from None
    if _INT_RE.fullmatch(text):
        return int(text)
    if _FLOAT_RE.fullmatch(text):
        return float(text)
    return text


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.tokens = tokenize(text)
        self.index = 0

    def peek(self) -> Optional[_Token]:
        return self.tokens[self.index] if self.index < len(self.tokens) else None

    def advance(self) -> _Token:
        token = self.peek()
        if token is None:
            raise PredicateError(f"Unexpected end of expression: {self.text!r}")
        self.index += 1
        return token

    def parse(self) -> Predicate:
        if not self.tokens:
            raise PredicateError("Empty search expression")
        predicate = self.parse_or(0)
        token = self.peek()
        if token is not None:
            raise PredicateError(f"Unexpected {token.text!r} at position {token.pos}")
        return predicate

    def parse_or(self, depth: int) -> Predicate:
        operands = [self.parse_and(depth)]
        while _keyword(self.peek(), "or"):
            self.advance()
            operands.append(self.parse_and(depth))
        return operands[0] if len(operands) == 1 else Or(*operands)

    def parse_and(self, depth: int) -> Predicate:
        operands = [self.parse_unary(depth)]
        while _keyword(self.peek(), "and"):
            self.advance()
            operands.append(self.parse_unary(depth))
        return operands[0] if len(operands) == 1 else And(*operands)

    def parse_unary(self, depth: int) -> Predicate:
        token = self.peek()
        negated = _keyword(token, "not")
        grouped = token is not None and token.kind == "lparen"
        if (negated or grouped) and depth >= MAX_NESTING:
            raise PredicateError(
                f"Expression nesting exceeds {MAX_NESTING} levels at position {token.pos}"
            )
        if negated:
            self.advance()
            return Not(self.parse_unary(depth + 1))
        if grouped:
            self.advance()
            inner = self.parse_or(depth + 1)
            closing = self.advance()
            if closing.kind != "rparen":
                raise PredicateError(f"Expected ')' at position {closing.pos}")
            return inner
        return self.parse_comparison()

    def parse_comparison(self) -> Predicate:
        token = self.advance()
        if token.kind != "word":
            raise PredicateError(f"Expected a field at position {token.pos}, got {token.text!r}")
        field = FieldRef.parse(token.text)

        op_token = self.advance()
        if op_token.kind == "op":
            op = _SYMBOLS[op_token.text]
        elif op_token.kind == "word":
            op = Op.parse(op_token.text)
        else:
            raise PredicateError(f"Expected an operator at position {op_token.pos}")

        if op is Op.EXISTS:
            return Comparison(field, op)

        literal = self.peek()
        if literal is None or literal.kind not in ("word", "string"):
            raise PredicateError(f"Operator {op.value} after {field} requires a value")
        self.advance()
        return Comparison(field, op, parse_literal(literal.text, typed=field.key is not None))


def parse_predicate(text: str) -> Predicate:
    """Parse a search expression into a Predicate.

    Args:
        text: Expression text

    Returns:
        The predicate tree

    Raises:
        PredicateError: On a syntax error or an invalid comparison

    Example:
        >>> parse_predicate('span.name == "b" or span.name == "c"')
        Or(Comparison('span.name', 'eq', 'b'), Comparison('span.name', 'eq', 'c'))
    """
    return _Parser(text).parse()
