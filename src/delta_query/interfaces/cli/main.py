import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

import colorlog
import polars as pl

from delta_query import __version__ as _PACKAGE_VERSION
from delta_query.config import Config, load_config
from delta_query.core.query.predicate import format_predicate, parse_predicate
from delta_query.core.query.query import Query
from delta_query.core.query.results import (
    QueryResult,
    aggregate_by_column,
    filter_result,
    text_search,
)
from delta_query.errors import (
    CatalogError,
    ConfigError,
    FilterError,
    ParseError,
    SearchError,
)
from delta_query.sources.client import DeltaSharingClient
from delta_query.sources.interfaces import FileCatalogClient

OUTPUT_FORMATS = ["json", "csv"]


def setup_logging(
    verbose: bool = False, warnings_only: bool = False, errors_only: bool = False
) -> None:
    logger = logging.getLogger()
    for h in list(logger.handlers):
        logger.removeHandler(h)
    log_format = (
        "%(asctime)s:%(levelname)s:%(name)s in %(filename)s:%(funcName)s:%(lineno)d: %(message)s"
    )
    log_colors = {
        "DEBUG": "cyan",
        "INFO": "green",
        "WARNING": "yellow",
        "ERROR": "red",
        "CRITICAL": "bold_red",
    }
    stream_handler = colorlog.StreamHandler()
    formatter = colorlog.ColoredFormatter(f"%(log_color)s{log_format}", log_colors=log_colors)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)
    if errors_only:
        logger.setLevel(logging.ERROR)
    elif warnings_only:
        logger.setLevel(logging.WARNING)
    else:
        logger.setLevel(logging.DEBUG if verbose else logging.INFO)


def _parse_list_arg(value: Optional[str]) -> Optional[List[str]]:
    """Split a comma-separated argument, dropping empty parts."""
    if not value:
        return None
    parts = [p.strip() for p in value.split(",")]
    return [p for p in parts if p] or None


def _make_client(config: Config) -> FileCatalogClient:
    return DeltaSharingClient.from_config(config)


def _write_output(text: str, output: Optional[str]) -> None:
    if output:
        path = Path(output)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        logging.info("Wrote %s", path)
    else:
        sys.stdout.write(text)
        if not text.endswith("\n"):
            sys.stdout.write("\n")


def _render(data: Any, fmt: str) -> str:
    if fmt == "csv":
        df = data if isinstance(data, pl.DataFrame) else pl.DataFrame(data)
        return df.write_csv()
    rows = data.to_dicts() if isinstance(data, pl.DataFrame) else data
    return json.dumps(rows, ensure_ascii=False, indent=2, default=str)


def cmd_parse(args: argparse.Namespace) -> int:
    """Parse predicates and print them as JSON.

    Returns:
        0 if every predicate parsed, 2 otherwise.
    """
    out = []
    rc = 0
    for text in args.predicates:
        try:
            p = parse_predicate(text)
        except ParseError as e:
            logging.error("Invalid predicate %r: %s", text, e)
            rc = 2
            continue
        out.append(
            {
                "column": p.column,
                "operator": p.operator.value,
                "value": p.value,
                "kind": p.kind.value,
                "canonical": format_predicate(p),
            }
        )
    _write_output(json.dumps(out, ensure_ascii=False, indent=2), None)
    return rc


def cmd_query(args: argparse.Namespace) -> int:
    """Run a table query, optionally post-filter/search/aggregate, and print the rows.

    Returns:
        0 on success
        1 if the sharing server rejected the query
        2 on configuration, filter or search errors
    """
    try:
        config = load_config(
            getattr(args, "config", None),
            endpoint=getattr(args, "endpoint", None),
            bearer_token=getattr(args, "bearer_token", None),
            share=getattr(args, "share", None),
            schema=getattr(args, "schema", None),
            max_workers=getattr(args, "max_workers", None),
            show_progress=bool(getattr(args, "progress", False)) or None,
        )
    except ConfigError as e:
        logging.error("Configuration error: %s", e)
        return 2

    query = Query(args.table)
    columns = _parse_list_arg(getattr(args, "select", None))
    if columns:
        query = query.select(columns)
    for predicate in getattr(args, "where", None) or []:
        query = query.where(predicate)
    limit = getattr(args, "limit", None)
    if limit is not None:
        if limit <= 0:
            logging.error("--limit must be a positive integer")
            return 2
        query = query.with_limit(limit)

    client = _make_client(config)
    try:
        result: QueryResult = query.execute(config=config, client=client)
    except CatalogError as e:
        logging.error("Query on %s failed: %s", args.table, e)
        return 1
    finally:
        close = getattr(client, "close", None)
        if callable(close):
            close()

    logging.info(
        "Fetched %d rows from %d/%d files",
        result.count(),
        result.files_processed,
        result.total_files,
    )

    try:
        post_filters = getattr(args, "filter", None) or []
        if post_filters:
            result = filter_result(result, post_filters)
        search = getattr(args, "search", None)
        if search:
            search_columns = _parse_list_arg(getattr(args, "search_columns", None)) or result.columns
            result = text_search(result, search, search_columns)
    except (FilterError, SearchError) as e:
        logging.error("%s", e)
        return 2

    fmt = getattr(args, "format", "json") or "json"
    aggregate = getattr(args, "aggregate", None)
    if aggregate:
        if aggregate not in result.columns:
            logging.error("Unknown column for --aggregate: %s", aggregate)
            return 2
        data: Any = aggregate_by_column(result, aggregate)
    else:
        data = result.table
    _write_output(_render(data, fmt), getattr(args, "output", None))
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="delta-query",
        description=f"Delta Query (v{_PACKAGE_VERSION})",
    )
    p.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    p.add_argument(
        "--warnings-only",
        action="store_true",
        help="Show only warnings and errors (overrides --verbose)",
    )
    p.add_argument(
        "--errors-only",
        action="store_true",
        help="Show only errors (overrides --warnings-only and --verbose)",
    )

    sub = p.add_subparsers(dest="command", required=True)

    p_parse = sub.add_parser("parse", help="Parse predicate expressions and print them as JSON")
    p_parse.add_argument("predicates", nargs="+", help="Predicates such as \"status = 'open'\"")
    p_parse.set_defaults(func=cmd_parse)

    p_query = sub.add_parser("query", help="Query a shared table and print the rows")
    p_query.add_argument("table", help="Table name within the share/schema")
    p_query.add_argument(
        "--config",
        default=None,
        help="Path to a YAML config file (endpoint, bearer_token, share, schema)",
    )
    p_query.add_argument("--endpoint", default=None, help="Sharing server URL")
    p_query.add_argument("--bearer-token", default=None, help="Bearer token")
    p_query.add_argument("--share", default=None, help="Share name")
    p_query.add_argument("--schema", default=None, help="Schema name (defaults to 'public')")
    p_query.add_argument(
        "--select",
        default=None,
        help="Comma-separated columns to return (defaults to all columns)",
    )
    p_query.add_argument(
        "--where",
        action="append",
        default=[],
        help="Predicate applied while fetching (repeatable), e.g. \"company_id = 100\"",
    )
    p_query.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Row limit hint sent to the server (may not be enforced)",
    )
    p_query.add_argument(
        "--filter",
        action="append",
        default=[],
        help="Strict predicate applied after fetching (repeatable); errors abort",
    )
    p_query.add_argument("--search", default=None, help="Case-insensitive text to search for")
    p_query.add_argument(
        "--search-columns",
        default=None,
        help="Comma-separated columns for --search (defaults to all columns)",
    )
    p_query.add_argument(
        "--aggregate",
        default=None,
        help="Print row counts per distinct value of this column instead of rows",
    )
    p_query.add_argument(
        "--max-workers",
        type=int,
        default=None,
        help="Number of files fetched in parallel (default 1)",
    )
    p_query.add_argument("--progress", action="store_true", help="Show a progress bar")
    p_query.add_argument(
        "--format",
        choices=OUTPUT_FORMATS,
        default="json",
        help="Output format",
    )
    p_query.add_argument("--output", default=None, help="Write output to this file instead of stdout")
    p_query.set_defaults(func=cmd_query)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(
        verbose=bool(args.verbose),
        warnings_only=bool(getattr(args, "warnings_only", False)),
        errors_only=bool(getattr(args, "errors_only", False)),
    )
    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
