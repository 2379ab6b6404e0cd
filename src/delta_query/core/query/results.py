"""In-memory operations on fetched query results.

A :class:`QueryResult` wraps the table produced by executing a query.
Every function here works on data that has already been downloaded and
returns a new result; inputs are never modified.

Filtering happens in two stages: ``Query.where`` prunes partitions and rows
while files are fetched (stage 1, preferred), and :func:`filter_result`
narrows an existing result further (stage 2), typically after a join.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence, Union

import polars as pl

from delta_query.core.enums import JoinHow
from delta_query.core.query.compose import (
    aggregate_frame,
    empty_frame,
    join_frames,
    search_frame,
)
from delta_query.core.query.filters import apply_strict


@dataclass(frozen=True, eq=False)
class QueryResult:
    """A materialized table plus how many remote files produced it.

    Attributes:
        table: The rows, as a polars DataFrame.
        files_processed: Files that contributed at least one row.
        total_files: Files considered after partition pruning.
    """

    table: pl.DataFrame
    files_processed: int = 0
    total_files: int = 0

    @property
    def columns(self) -> List[str]:
        return self.table.columns

    def to_rows(self) -> List[Dict[str, Any]]:
        return self.table.to_dicts()

    def count(self) -> int:
        return self.table.height

    def is_empty(self) -> bool:
        return self.count() == 0

    def first(self) -> Optional[Dict[str, Any]]:
        """First row as a dict, or None when there are no rows."""
        if self.is_empty():
            return None
        return self.table.row(0, named=True)

    def sum(self, column: str) -> Union[int, float]:
        """Sum of a numeric column; 0 when the column does not exist."""
        if column not in self.table.columns:
            return 0
        total = self.table.get_column(column).sum()
        return 0 if total is None else total

    def filter(self, predicates: Sequence[str]) -> "QueryResult":
        return filter_result(self, predicates)

    def text_search(self, text: str, columns: Sequence[str]) -> "QueryResult":
        return text_search(self, text, columns)

    def join(
        self,
        other: "QueryResult",
        on: Union[str, Sequence[str], None] = None,
        how: Union[JoinHow, str] = JoinHow.LEFT,
    ) -> "QueryResult":
        return join(self, other, on=on, how=how)

    def aggregate_by_column(self, column: str) -> List[Dict[str, Any]]:
        return aggregate_by_column(self, column)


def empty_result(columns: Optional[Sequence[str]] = None) -> QueryResult:
    """A zero-row result with the given columns and no files counted."""
    return QueryResult(table=empty_frame(columns), files_processed=0, total_files=0)


def filter_result(result: QueryResult, predicates: Sequence[str]) -> QueryResult:
    """Apply extra predicates to an already-fetched result.

    All-or-nothing: on any invalid predicate, unknown column or bad date
    the error is raised and no filtering happens.

    Raises:
        FilterError: See :func:`delta_query.core.query.filters.apply_strict`.

    Examples:
        >>> joined = join(projects, contracts, on="project_id")
        >>> filtered = filter_result(joined, ["square_feet > 50000"])
    """
    if not predicates:
        return result
    return replace(result, table=apply_strict(result.table, predicates))


def text_search(result: QueryResult, text: str, columns: Sequence[str]) -> QueryResult:
    """Case-insensitive substring search across ``columns`` (any column may match).

    Raises:
        NoMatchingColumnsError: None of ``columns`` exist in the result.
    """
    if text == "":
        return result
    return replace(result, table=search_frame(result.table, text, columns))


def join(
    left: QueryResult,
    right: QueryResult,
    on: Union[str, Sequence[str], None] = None,
    how: Union[JoinHow, str] = JoinHow.LEFT,
) -> QueryResult:
    """Join two results; file counters are added together.

    ``how`` is one of inner, left (default), right, outer or cross.
    ``on`` is ignored for cross joins.
    """
    return QueryResult(
        table=join_frames(left.table, right.table, on=on, how=how),
        files_processed=left.files_processed + right.files_processed,
        total_files=left.total_files + right.total_files,
    )


def aggregate_by_column(result: QueryResult, column: str) -> List[Dict[str, Any]]:
    """Group by ``column`` and count rows, sorted by count descending.

    Ties keep first-seen group order; only the count ordering is guaranteed.

    Examples:
        >>> aggregate_by_column(result, "category")
        [{'value': 'a', 'count': 3}, {'value': 'b', 'count': 2}]
    """
    return aggregate_frame(result.table, column)


__all__ = [
    "QueryResult",
    "empty_result",
    "filter_result",
    "text_search",
    "join",
    "aggregate_by_column",
]
