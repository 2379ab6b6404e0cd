"""Row-level filtering of decoded tables.

Two entry points share one evaluator:

- :func:`apply_predicates` is used while a query downloads files. Bad
  predicates are logged and skipped so a typo never empties a whole query.
- :func:`apply_strict` is used on already-fetched results. Every predicate
  must parse, name an existing column and carry a value comparable with that
  column; otherwise nothing is filtered and the first problem is raised.
"""

from __future__ import annotations

import logging
import re
from datetime import date, datetime, timezone
from typing import Any, Iterable, List, Optional, Sequence, Union

import polars as pl

from delta_query.core.enums import Operator, ValueKind
from delta_query.core.query.predicate import Predicate, parse_predicate
from delta_query.errors import (
    FilterError,
    IncompatibleTypesError,
    InvalidDateError,
    InvalidPredicateError,
    ParseError,
    UnknownColumnError,
)

logger = logging.getLogger(__name__)

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

PredicateLike = Union[str, Predicate]


def parse_predicates(texts: Iterable[str]) -> List[Predicate]:
    """Parse predicate strings, logging and dropping the ones that fail."""
    parsed: List[Predicate] = []
    for text in texts:
        try:
            parsed.append(parse_predicate(text))
        except ParseError as e:
            logger.error("Failed to parse predicate %r: %s", text, e)
    return parsed


def _is_string_dtype(dtype: pl.DataType) -> bool:
    return dtype == pl.String or dtype == pl.Categorical or dtype == pl.Enum


def _parse_date(column: str, value: str) -> date:
    if not _ISO_DATE_RE.match(value):
        raise InvalidDateError(column, value)
    try:
        return date.fromisoformat(value)
    except ValueError as e:
        raise InvalidDateError(column, value) from e


def _parse_datetime(column: str, value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise InvalidDateError(column, value) from e


def coerce_value(column: str, dtype: pl.DataType, predicate: Predicate) -> Any:
    """Return the predicate value converted for comparison with ``dtype``.

    Raises:
        InvalidDateError: Text compared with a Date/Datetime column is not ISO-8601.
        IncompatibleTypesError: The value can never be compared with the column.
    """
    kind = predicate.kind
    value = predicate.value
    if kind is ValueKind.NULL:
        if predicate.operator in (Operator.EQ, Operator.NEQ):
            return None
        raise IncompatibleTypesError(column, dtype, value)
    if dtype == pl.Null:
        return value
    if dtype.is_numeric():
        if kind in (ValueKind.INTEGER, ValueKind.FLOAT):
            return value
    elif dtype == pl.Boolean:
        if kind is ValueKind.BOOL:
            return value
    elif _is_string_dtype(dtype):
        if kind is ValueKind.TEXT:
            return value
    elif dtype == pl.Date:
        if kind is ValueKind.TEXT:
            return _parse_date(column, value)  # type: ignore[arg-type]
    elif dtype == pl.Datetime:
        if kind is ValueKind.TEXT:
            return _parse_datetime(column, value)  # type: ignore[arg-type]
    raise IncompatibleTypesError(column, dtype, value)


def _literal(dtype: pl.DataType, value: Any) -> pl.Expr:
    if isinstance(value, datetime) and dtype == pl.Datetime:
        tz = getattr(dtype, "time_zone", None)
        if tz and value.tzinfo is None:
            return pl.lit(value).dt.replace_time_zone(tz)
        if not tz and value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return pl.lit(value)


def predicate_expr(predicate: Predicate, dtype: pl.DataType, value: Any) -> pl.Expr:
    """Build the boolean expression for one predicate with an already coerced value."""
    col = pl.col(predicate.column)
    op = predicate.operator
    if predicate.kind is ValueKind.NULL:
        return col.is_null() if op is Operator.EQ else col.is_not_null()
    if dtype == pl.Null:
        # Every cell is null: no comparison can hold.
        return pl.lit(False)
    lit = _literal(dtype, value)
    if op is Operator.EQ:
        return col == lit
    if op is Operator.NEQ:
        return col != lit
    if op is Operator.GT:
        return col > lit
    if op is Operator.LT:
        return col < lit
    if op is Operator.GTE:
        return col >= lit
    return col <= lit


def _filter(df: pl.DataFrame, exprs: List[pl.Expr]) -> pl.DataFrame:
    if not exprs:
        return df
    return df.filter(pl.all_horizontal(exprs))


def apply_predicates(
    df: pl.DataFrame, predicates: Sequence[Optional[PredicateLike]]
) -> pl.DataFrame:
    """Filter rows leniently (logical AND of all usable predicates).

    Strings are parsed first; ``None`` entries, unparsable strings,
    predicates on columns the table does not have, and values that cannot
    be compared with their column are skipped with a log message.
    """
    exprs: List[pl.Expr] = []
    schema = df.schema
    for item in predicates:
        if item is None:
            continue
        if isinstance(item, str):
            parsed = parse_predicates([item])
            if not parsed:
                continue
            predicate = parsed[0]
        else:
            predicate = item
        if predicate.column not in schema:
            logger.debug("Skip predicate on absent column %s", predicate.column)
            continue
        dtype = schema[predicate.column]
        try:
            value = coerce_value(predicate.column, dtype, predicate)
        except FilterError as e:
            logger.warning("Skip predicate %s: %s", predicate, e)
            continue
        exprs.append(predicate_expr(predicate, dtype, value))
    return _filter(df, exprs)


def apply_strict(df: pl.DataFrame, predicate_strings: Sequence[str]) -> pl.DataFrame:
    """Filter rows with every predicate or not at all.

    All predicates are validated before any row is touched.

    Raises:
        InvalidPredicateError: A string does not parse.
        UnknownColumnError: A predicate names a column the table lacks.
        InvalidDateError: Date text against a Date/Datetime column is malformed.
        IncompatibleTypesError: The value type cannot be compared with the column.
    """
    exprs: List[pl.Expr] = []
    schema = df.schema
    for text in predicate_strings:
        try:
            predicate = parse_predicate(text)
        except ParseError as e:
            raise InvalidPredicateError(text, e) from e
        if predicate.column not in schema:
            raise UnknownColumnError(predicate.column)
        dtype = schema[predicate.column]
        value = coerce_value(predicate.column, dtype, predicate)
        exprs.append(predicate_expr(predicate, dtype, value))
    return _filter(df, exprs)


def select_columns(df: pl.DataFrame, columns: Optional[Sequence[str]]) -> pl.DataFrame:
    """Project to the requested columns that exist, in the requested order.

    When none of the requested columns exist the table is returned as is
    and a warning is logged.
    """
    if columns is None:
        return df
    available = set(df.columns)
    keep: List[str] = []
    for c in columns:
        if c in available and c not in keep:
            keep.append(c)
    if not keep:
        logger.warning(
            "No valid columns found: requested=%s available=%s", list(columns), df.columns
        )
        return df
    return df.select(keep)


__all__ = [
    "parse_predicates",
    "coerce_value",
    "predicate_expr",
    "apply_predicates",
    "apply_strict",
    "select_columns",
]
