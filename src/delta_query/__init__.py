"""Delta Query: a client for querying tables published over the Delta Sharing protocol.

Resolves a table query into remote Parquet files, prunes them by partition,
downloads and filters them, and offers joins, text search and aggregation
over the combined rows (as polars DataFrames).
"""

__all__ = [
    "__version__",
    "Config",
    "load_config",
    "Query",
    "QueryResult",
    "execute",
    "execute_query",
    "parse_predicate",
    "filter_result",
    "text_search",
    "join",
    "aggregate_by_column",
]

__version__ = "0.1.0"

from .config import Config, load_config  # noqa: E402
from .core.query import (  # noqa: E402
    Query,
    QueryResult,
    aggregate_by_column,
    execute,
    execute_query,
    filter_result,
    join,
    parse_predicate,
    text_search,
)
