"""Query engine public API.

Predicate parsing, partition pruning, row filtering and result
composition over polars DataFrames, plus the orchestrator that runs a
query against a sharing server.
"""

from .predicate import Predicate, parse_predicate, format_predicate
from .pruning import prune_files, coerce_partition_value
from .filters import apply_predicates, apply_strict, select_columns, parse_predicates
from .compose import concat_common_columns, join_frames, search_frame, aggregate_frame
from .results import (
    QueryResult,
    empty_result,
    filter_result,
    text_search,
    join,
    aggregate_by_column,
)
from .query import Query, execute, execute_query, process_files

__all__ = [
    "Predicate",
    "parse_predicate",
    "format_predicate",
    "prune_files",
    "coerce_partition_value",
    "apply_predicates",
    "apply_strict",
    "select_columns",
    "parse_predicates",
    "concat_common_columns",
    "join_frames",
    "search_frame",
    "aggregate_frame",
    "QueryResult",
    "empty_result",
    "filter_result",
    "text_search",
    "join",
    "aggregate_by_column",
    "Query",
    "execute",
    "execute_query",
    "process_files",
]
