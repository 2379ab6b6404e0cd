"""Exception hierarchy for delta_query.

Errors fall into two groups:
- Caller errors (parse, filter, search, config) are raised immediately and
  stop the enclosing operation.
- Per-file errors (transport, decode) are raised by the collaborators and
  absorbed by the query orchestrator, which logs and skips the file.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence


class DeltaQueryError(Exception):
    """Base class for all errors raised by this package."""


class ParseError(DeltaQueryError, ValueError):
    """Malformed predicate text.

    Attributes:
        text: The predicate string that failed to parse.
        offset: Zero-based character offset where parsing stopped.
        line: One-based line of ``offset``.
        column: One-based column of ``offset``.
        reason: What the parser expected at that position.
    """

    def __init__(self, text: str, offset: int, reason: str) -> None:
        self.text = text
        self.offset = offset
        self.reason = reason
        consumed = text[:offset]
        self.line = consumed.count("\n") + 1
        self.column = offset - (consumed.rfind("\n") + 1) + 1
        super().__init__(f"parse error at line {self.line}, column {self.column}: {reason}")


class FilterError(DeltaQueryError):
    """Base class for failures of the strict row filter."""


class InvalidPredicateError(FilterError, ValueError):
    def __init__(self, text: str, cause: Optional[ParseError] = None) -> None:
        self.text = text
        self.cause = cause
        super().__init__(f"invalid filter: {text}")


class UnknownColumnError(FilterError, KeyError):
    def __init__(self, column: str) -> None:
        self.column = column
        super().__init__(column)

    def __str__(self) -> str:
        return f"unknown column in filter: {self.column}"


class InvalidDateError(FilterError, ValueError):
    def __init__(self, column: str, value: str) -> None:
        self.column = column
        self.value = value
        super().__init__(f"invalid date for column {column}: {value!r}")


class IncompatibleTypesError(FilterError, TypeError):
    def __init__(self, column: str, dtype: Any, value: Any) -> None:
        self.column = column
        self.dtype = dtype
        self.value = value
        super().__init__(
            f"cannot compare column {column} of type {dtype} with {type(value).__name__} value {value!r}"
        )


class SearchError(DeltaQueryError):
    """Base class for text search failures."""


class NoMatchingColumnsError(SearchError, ValueError):
    def __init__(self, columns: Sequence[str]) -> None:
        self.columns = list(columns)
        super().__init__(
            f"none of the specified columns exist in the dataframe: {self.columns}"
        )


class QueryError(DeltaQueryError):
    """Base class for failures that abort a whole query."""


class ConfigError(QueryError, ValueError):
    """Missing or invalid client configuration."""


class CatalogError(QueryError):
    """The sharing server rejected the table query or answered with garbage."""

    def __init__(self, reason: str, status: Optional[int] = None, body: str = "") -> None:
        self.reason = reason
        self.status = status
        self.body = body
        if status is not None:
            super().__init__(f"{reason}: status={status}")
        else:
            super().__init__(reason)


class TransportError(DeltaQueryError):
    """A single file could not be downloaded."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"failed to download {url}: {reason}")


class DecodeError(DeltaQueryError):
    """A downloaded file could not be decoded into a table."""


__all__ = [
    "DeltaQueryError",
    "ParseError",
    "FilterError",
    "InvalidPredicateError",
    "UnknownColumnError",
    "InvalidDateError",
    "IncompatibleTypesError",
    "SearchError",
    "NoMatchingColumnsError",
    "QueryError",
    "ConfigError",
    "CatalogError",
    "TransportError",
    "DecodeError",
]
