"""Parser for single-column comparison predicates.

Accepts SQL-like filter expressions such as:

- ``book_id = 123``
- ``status != 'Pending'``
- ``publication_date >= '2024-01-01'``
- ``list_price > 19.99``
- ``available = true``

Grammar (whitespace allowed around every token)::

    predicate     := column operator value EOF
    column        := [A-Za-z0-9_.]+
    operator      := ">=" | "<=" | "!=" | "=" | ">" | "<"
    value         := quoted_string | literal | number
    quoted_string := "'" ... "'" | '"' ... '"'   (\\' and \\" escapes)
    literal       := true | TRUE | false | FALSE | null | NULL
    number        := [+-]? digits ("." digits)?
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Tuple, Union

from delta_query.core.enums import OPERATOR_TOKENS, Operator, ValueKind
from delta_query.errors import ParseError

PredicateValue = Union[int, float, str, bool, None]

_WHITESPACE = " \t\r\n"
_COLUMN_CHARS = frozenset("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_.")
_DIGITS = frozenset("0123456789")
_QUOTES = ("'", '"')

_LITERALS: Tuple[Tuple[str, PredicateValue], ...] = (
    ("true", True),
    ("TRUE", True),
    ("false", False),
    ("FALSE", False),
    ("null", None),
    ("NULL", None),
)


def value_kind(value: PredicateValue) -> ValueKind:
    """Return the tag of a predicate value (bool is checked before int)."""
    if value is None:
        return ValueKind.NULL
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, int):
        return ValueKind.INTEGER
    if isinstance(value, float):
        return ValueKind.FLOAT
    if isinstance(value, str):
        return ValueKind.TEXT
    raise TypeError(f"Unsupported predicate value type: {type(value).__name__}")


@dataclass(frozen=True)
class Predicate:
    """A single typed comparison ``column <operator> value``.

    ``kind`` is derived from ``value`` and takes part in equality, so
    ``Integer(1)``, ``Float(1.0)`` and ``Bool(True)`` stay distinct.
    """

    operator: Operator
    column: str
    value: PredicateValue
    kind: ValueKind = field(init=False)

    def __post_init__(self) -> None:
        if not self.column or any(ch not in _COLUMN_CHARS for ch in self.column):
            raise ValueError(f"Invalid column name: {self.column!r}")
        object.__setattr__(self, "operator", Operator(self.operator))
        object.__setattr__(self, "kind", value_kind(self.value))

    def __str__(self) -> str:
        return format_predicate(self)


class _Cursor:
    """Position-tracking reader over the predicate text."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.text)

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def startswith(self, token: str) -> bool:
        return self.text.startswith(token, self.pos)

    def skip_whitespace(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos] in _WHITESPACE:
            self.pos += 1

    def take_while(self, allowed: frozenset) -> str:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] in allowed:
            self.pos += 1
        return self.text[start : self.pos]

    def fail(self, reason: str, offset: Optional[int] = None) -> ParseError:
        return ParseError(self.text, self.pos if offset is None else offset, reason)


def _parse_column(cur: _Cursor) -> str:
    column = cur.take_while(_COLUMN_CHARS)
    if not column:
        raise cur.fail("expected column name")
    return column


def _parse_operator(cur: _Cursor) -> Operator:
    for token, op in OPERATOR_TOKENS:
        if cur.startswith(token):
            cur.pos += len(token)
            return op
    raise cur.fail("expected operator (one of >=, <=, !=, =, >, <)")


def _parse_quoted(cur: _Cursor) -> str:
    start = cur.pos
    quote = cur.peek()
    cur.pos += 1
    chars: List[str] = []
    while not cur.at_end():
        ch = cur.peek()
        if ch == "\\" and cur.pos + 1 < len(cur.text) and cur.text[cur.pos + 1] in _QUOTES:
            chars.append(cur.text[cur.pos + 1])
            cur.pos += 2
            continue
        if ch == quote:
            cur.pos += 1
            return "".join(chars)
        chars.append(ch)
        cur.pos += 1
    raise cur.fail(f"unterminated string starting at offset {start}", offset=start)


def _parse_number(cur: _Cursor) -> Union[int, float]:
    start = cur.pos
    parts: List[str] = []
    if cur.peek() in ("+", "-"):
        parts.append(cur.peek())
        cur.pos += 1
    digits = cur.take_while(_DIGITS)
    if not digits:
        raise cur.fail("expected value (quoted string, true/false/null or number)", offset=start)
    parts.append(digits)
    if cur.peek() == "." and cur.pos + 1 < len(cur.text) and cur.text[cur.pos + 1] in _DIGITS:
        cur.pos += 1
        parts.append(".")
        parts.append(cur.take_while(_DIGITS))
    number = "".join(parts)
    try:
        return int(number)
    except ValueError:
        return float(number)


def _parse_value(cur: _Cursor) -> PredicateValue:
    if cur.peek() in _QUOTES:
        return _parse_quoted(cur)
    for token, literal in _LITERALS:
        if cur.startswith(token):
            cur.pos += len(token)
            return literal
    return _parse_number(cur)


def parse_predicate(text: str) -> Predicate:
    """Parse a predicate string into a :class:`Predicate`.

    The whole input must match the grammar; surrounding whitespace is
    ignored and anything left over after the value is an error.

    Raises:
        ParseError: With the line/column where parsing stopped.

    Examples:
        >>> parse_predicate("book_id = 123")
        Predicate(operator=<Operator.EQ: '='>, column='book_id', value=123, kind=<ValueKind.INTEGER: 'integer'>)
        >>> parse_predicate("status != 'Pending'").value
        'Pending'
    """
    if not isinstance(text, str):
        raise TypeError(f"Predicate must be a string, got {type(text).__name__}")
    cur = _Cursor(text)
    cur.skip_whitespace()
    column = _parse_column(cur)
    cur.skip_whitespace()
    op = _parse_operator(cur)
    cur.skip_whitespace()
    value = _parse_value(cur)
    cur.skip_whitespace()
    if not cur.at_end():
        raise cur.fail(f"expected end of string, got {cur.text[cur.pos:]!r}")
    return Predicate(operator=op, column=column, value=value)


def _format_float(value: float) -> str:
    # Positional notation only: the grammar has no exponent form.
    text = format(Decimal(repr(value)), "f")
    return text if "." in text else f"{text}.0"


def format_value(value: PredicateValue) -> str:
    """Render a predicate value in the form the parser reads back."""
    kind = value_kind(value)
    if kind is ValueKind.NULL:
        return "null"
    if kind is ValueKind.BOOL:
        return "true" if value else "false"
    if kind is ValueKind.INTEGER:
        return str(value)
    if kind is ValueKind.FLOAT:
        return _format_float(value)  # type: ignore[arg-type]
    escaped = str(value).replace("'", "\\'").replace('"', '\\"')
    return f"'{escaped}'"


def format_predicate(predicate: Predicate) -> str:
    """Return the canonical text of a predicate.

    ``parse_predicate(format_predicate(p)) == p`` for every parsed ``p``.
    """
    return f"{predicate.column} {predicate.operator.value} {format_value(predicate.value)}"


__all__ = [
    "Predicate",
    "PredicateValue",
    "parse_predicate",
    "format_predicate",
    "format_value",
    "value_kind",
]
