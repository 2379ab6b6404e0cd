"""Core enumerations used across the package."""

from __future__ import annotations

from enum import Enum


class Operator(str, Enum):
    """Comparison operators understood by the predicate grammar.

    Values are the operator tokens so predicates can be rendered back
    to text without a lookup table.
    """

    EQ = "="
    NEQ = "!="
    GT = ">"
    LT = "<"
    GTE = ">="
    LTE = "<="


# Longest tokens first: "=" must not match the tail of ">=" or "<=".
OPERATOR_TOKENS = (
    (">=", Operator.GTE),
    ("<=", Operator.LTE),
    ("!=", Operator.NEQ),
    ("=", Operator.EQ),
    (">", Operator.GT),
    ("<", Operator.LT),
)


class ValueKind(str, Enum):
    """Tag of a predicate value."""

    INTEGER = "integer"
    FLOAT = "float"
    TEXT = "text"
    BOOL = "bool"
    NULL = "null"


class JoinHow(str, Enum):
    """Supported join strategies for combining two results."""

    INNER = "inner"
    LEFT = "left"
    RIGHT = "right"
    OUTER = "outer"
    CROSS = "cross"


__all__ = ["Operator", "OPERATOR_TOKENS", "ValueKind", "JoinHow"]
