from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

import polars as pl

from delta_query.core.enums import JoinHow
from delta_query.errors import NoMatchingColumnsError, SearchError, UnknownColumnError

logger = logging.getLogger(__name__)

# Polars join strategy for each JoinHow.
_POLARS_HOW = {
    JoinHow.INNER: "inner",
    JoinHow.LEFT: "left",
    JoinHow.RIGHT: "right",
    JoinHow.OUTER: "full",
    JoinHow.CROSS: "cross",
}


def empty_frame(columns: Optional[Sequence[str]] = None) -> pl.DataFrame:
    """Zero-row frame with the given (untyped) columns, or no columns at all."""
    if not columns:
        return pl.DataFrame()
    return pl.DataFrame(schema={c: pl.Null for c in dict.fromkeys(columns)})


def common_columns(frames: Sequence[pl.DataFrame]) -> List[str]:
    """Columns present in every frame, in the first frame's order."""
    if not frames:
        return []
    shared = set(frames[0].columns)
    for df in frames[1:]:
        shared &= set(df.columns)
    return [c for c in frames[0].columns if c in shared]


def text_expr(column: str, dtype: pl.DataType) -> Optional[pl.Expr]:
    """Expression rendering ``column`` as text, or None when it has no text form.

    Lists of scalars are joined with commas and structs are JSON-encoded;
    lists of nested values have no text form.
    """
    col = pl.col(column)
    if isinstance(dtype, pl.Struct):
        return col.struct.json_encode()
    if isinstance(dtype, (pl.List, pl.Array)):
        if dtype.inner.is_nested():
            return None
        if isinstance(dtype, pl.Array):
            col = col.cast(pl.List(dtype.inner))
        return col.list.eval(pl.element().cast(pl.Utf8, strict=False)).list.join(",")
    return col.cast(pl.Utf8, strict=False)


def _has_supertype(frames: Sequence[pl.DataFrame], column: str) -> bool:
    try:
        pl.concat([df.select(column) for df in frames], how="vertical_relaxed")
    except pl.exceptions.PolarsError:
        return False
    return True


def _unify_dtypes(frames: Sequence[pl.DataFrame], shared: List[str]) -> List[pl.DataFrame]:
    """Cast, or drop, shared columns whose dtypes have no common supertype."""
    out = list(frames)
    for col in shared:
        if len({str(df.schema[col]) for df in out}) < 2 or _has_supertype(out, col):
            continue
        dtypes = sorted({str(df.schema[col]) for df in out})
        exprs = [text_expr(col, df.schema[col]) for df in out]
        if any(e is None for e in exprs):
            logger.warning("Dropping column %s: incompatible types across files %s", col, dtypes)
            out = [df.drop(col) for df in out]
            continue
        logger.warning("Casting column %s to text: incompatible types across files %s", col, dtypes)
        out = [df.with_columns(e.alias(col)) for df, e in zip(out, exprs)]
    return out


def concat_common_columns(
    frames: Sequence[pl.DataFrame], columns: Optional[Sequence[str]] = None
) -> pl.DataFrame:
    """Stack frames row-wise on the columns they all share.

    Columns missing from any one frame are dropped from all of them.
    Column dtypes are relaxed to a common supertype (for example an
    all-null column from one file next to an integer column from another).
    A column whose dtypes have no supertype is cast to text in every frame,
    or dropped when it has no text form; either is logged as a warning.
    An empty input yields :func:`empty_frame` of ``columns``.
    """
    if not frames:
        return empty_frame(columns)
    if len(frames) == 1:
        return frames[0]
    shared = common_columns(frames)
    dropped = set().union(*(df.columns for df in frames)) - set(shared)
    if dropped:
        logger.debug("Dropping columns not shared by all files: %s", sorted(dropped))
    projected = [df.select(shared) for df in frames]
    try:
        return pl.concat(projected, how="vertical_relaxed")
    except pl.exceptions.PolarsError:
        return pl.concat(_unify_dtypes(projected, shared), how="vertical_relaxed")


def _normalize_join_keys(
    df: pl.DataFrame, other: pl.DataFrame, on: Sequence[str]
) -> pl.DataFrame:
    casts = []
    for col in on:
        if df.schema[col] != pl.Null:
            continue
        target = other.schema[col]
        if target == pl.Null:
            target = pl.Int64
        casts.append(pl.col(col).cast(target))
    return df.with_columns(casts) if casts else df


def join_frames(
    left: pl.DataFrame,
    right: pl.DataFrame,
    on: Union[str, Sequence[str], None],
    how: Union[JoinHow, str] = JoinHow.LEFT,
) -> pl.DataFrame:
    """Join two frames on key columns.

    A key column that is entirely null (typed Null, as an empty result is)
    is cast to the other side's key type, or Int64 when both are untyped,
    so empty inputs do not fail on a key type mismatch. Key columns are
    coalesced into one; clashing non-key names get a ``_right`` suffix.

    Raises:
        UnknownColumnError: A key column is missing on either side.
    """
    how = JoinHow(how)
    if how is JoinHow.CROSS:
        return left.join(right, how="cross")
    on_columns = [on] if isinstance(on, str) else list(on or [])
    if not on_columns:
        raise ValueError(f"join how={how.value} requires at least one 'on' column")
    for col in on_columns:
        if col not in left.columns or col not in right.columns:
            raise UnknownColumnError(col)
    left_n = _normalize_join_keys(left, right, on_columns)
    right_n = _normalize_join_keys(right, left, on_columns)
    return left_n.join(right_n, on=on_columns, how=_POLARS_HOW[how], coalesce=True)


def search_frame(df: pl.DataFrame, query: str, columns: Sequence[str]) -> pl.DataFrame:
    """Keep rows where any of ``columns`` contains ``query``, ignoring case.

    Requested columns the frame lacks are ignored. List columns match on
    their comma-joined elements and struct columns on their JSON text;
    columns with no text form (lists of nested values) are skipped with a
    warning. An empty query keeps every row.

    Raises:
        NoMatchingColumnsError: None of ``columns`` exist in the frame.
        SearchError: Polars could not evaluate the search.
    """
    if query == "":
        return df
    valid = [c for c in columns if c in df.columns]
    if not valid:
        raise NoMatchingColumnsError(columns)
    needle = query.lower()
    exprs = []
    for c in valid:
        text = text_expr(c, df.schema[c])
        if text is None:
            logger.warning("Skipping column %s of type %s in text search", c, df.schema[c])
            continue
        exprs.append(text.str.to_lowercase().str.contains(needle, literal=True))
    if not exprs:
        return df.clear()
    try:
        return df.filter(pl.any_horizontal(exprs))
    except pl.exceptions.PolarsError as e:
        raise SearchError(f"text search failed: {e}") from e


def aggregate_frame(df: pl.DataFrame, column: str) -> List[Dict[str, Any]]:
    """Count rows per distinct value of ``column``, most frequent first.

    Nulls form their own group. Groups with equal counts keep the order in
    which they first appear in the frame.

    Returns:
        A list of ``{"value": ..., "count": n}`` dicts.

    Raises:
        UnknownColumnError: The frame has no such column.
    """
    if column not in df.columns:
        raise UnknownColumnError(column)
    return (
        df.select(pl.col(column).alias("value"))
        .group_by("value", maintain_order=True)
        .agg(pl.len().alias("count"))
        .sort("count", descending=True, maintain_order=True)
        .to_dicts()
    )


__all__ = [
    "empty_frame",
    "common_columns",
    "text_expr",
    "concat_common_columns",
    "join_frames",
    "search_frame",
    "aggregate_frame",
]
