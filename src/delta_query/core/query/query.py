"""Composable queries over shared tables.

Example::

    result = (
        Query("projects")
        .where("company_id = 100")
        .select(["project_id", "name"])
        .execute(config=config)
    )
    result.to_rows()

Post-fetch operations (joins, extra filters, search, aggregation) live in
:mod:`delta_query.core.query.results`.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import List, Optional, Sequence, Tuple

import polars as pl
from tqdm import tqdm

from delta_query.config import Config, load_config
from delta_query.core.query.compose import concat_common_columns
from delta_query.core.query.filters import apply_predicates, parse_predicates, select_columns
from delta_query.core.query.predicate import Predicate
from delta_query.core.query.pruning import prune_files
from delta_query.core.query.results import QueryResult, empty_result
from delta_query.errors import DecodeError, TransportError
from delta_query.sources.client import DeltaSharingClient
from delta_query.sources.decoder import ParquetDecoder
from delta_query.sources.interfaces import ColumnarDecoder, FileCatalogClient
from delta_query.sources.manifest import FileReference

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Query:
    """An immutable description of a table query.

    Attributes:
        table: Table name within the configured share and schema.
        columns: Columns to return; None returns all columns.
        filters: Predicate strings, combined with AND.
        limit: Row limit hint for the server (not enforced client-side).
    """

    table: str
    columns: Optional[Tuple[str, ...]] = None
    filters: Tuple[str, ...] = ()
    limit: Optional[int] = None

    def __post_init__(self) -> None:
        if not self.table:
            raise ValueError("table is required")
        if self.columns is not None:
            object.__setattr__(self, "columns", tuple(self.columns))
        object.__setattr__(self, "filters", tuple(self.filters))
        if self.limit is not None and int(self.limit) <= 0:
            raise ValueError(f"limit must be a positive integer, got {self.limit}")

    def where(self, predicate: str) -> "Query":
        """Add a filter predicate such as ``"status = 'active'"``."""
        return replace(self, filters=self.filters + (predicate,))

    def select(self, columns: Sequence[str]) -> "Query":
        """Choose the returned columns; replaces any earlier selection."""
        return replace(self, columns=tuple(columns))

    def with_limit(self, n: int) -> "Query":
        """Set the server-side row limit hint; replaces any earlier limit."""
        return replace(self, limit=n)

    def execute(
        self,
        *,
        config: Optional[Config] = None,
        client: Optional[FileCatalogClient] = None,
        decoder: Optional[ColumnarDecoder] = None,
    ) -> QueryResult:
        return execute(self, config=config, client=client, decoder=decoder)


def _load_file(
    file: FileReference,
    predicates: Sequence[Predicate],
    columns: Optional[Sequence[str]],
    client: FileCatalogClient,
    decoder: ColumnarDecoder,
) -> pl.DataFrame:
    data = client.fetch_bytes(file.url)
    df = decoder.decode(data)
    df = apply_predicates(df, predicates)
    return select_columns(df, columns)


def _process_file(
    index: int,
    total: int,
    file: FileReference,
    predicates: Sequence[Predicate],
    columns: Optional[Sequence[str]],
    client: FileCatalogClient,
    decoder: ColumnarDecoder,
) -> Optional[pl.DataFrame]:
    """Fetch, decode and filter one file; None when it fails or has no rows."""
    try:
        df = _load_file(file, predicates, columns, client, decoder)
    except (TransportError, DecodeError) as e:
        logger.error("Failed to process file %d/%d: %s", index, total, e)
        return None
    if df.height == 0:
        logger.debug("File %d/%d has no matching rows", index, total)
        return None
    return df


def process_files(
    files: Sequence[FileReference],
    *,
    filters: Sequence[str] = (),
    columns: Optional[Sequence[str]] = None,
    client: FileCatalogClient,
    decoder: ColumnarDecoder,
    max_workers: int = 1,
    show_progress: bool = False,
) -> QueryResult:
    """Prune, download, decode and filter files, then combine their rows.

    Per-file transport and decode failures are logged and skipped. The
    result counts every file left after pruning in ``total_files`` and only
    files that contributed rows in ``files_processed``.
    """
    predicates = parse_predicates(filters)
    relevant = prune_files(files, predicates)
    total = len(relevant)
    if total == 0:
        return empty_result(columns)

    def _run(item: Tuple[int, FileReference]) -> Optional[pl.DataFrame]:
        index, file = item
        return _process_file(index, total, file, predicates, columns, client, decoder)

    items = list(enumerate(relevant, start=1))
    pbar = tqdm(total=total, desc="Fetching files", unit="files", disable=not show_progress)
    frames: List[pl.DataFrame] = []
    try:
        if max_workers > 1 and total > 1:
            with ThreadPoolExecutor(max_workers=min(max_workers, total)) as pool:
                for df in pool.map(_run, items):
                    pbar.update(1)
                    if df is not None:
                        frames.append(df)
        else:
            for item in items:
                df = _run(item)
                pbar.update(1)
                if df is not None:
                    frames.append(df)
    finally:
        pbar.close()

    logger.info("Processed %d of %d files with matching rows", len(frames), total)
    return QueryResult(
        table=concat_common_columns(frames, columns),
        files_processed=len(frames),
        total_files=total,
    )


def execute(
    query: Query,
    *,
    config: Optional[Config] = None,
    client: Optional[FileCatalogClient] = None,
    decoder: Optional[ColumnarDecoder] = None,
) -> QueryResult:
    """Run a query end to end.

    ``config`` defaults to :func:`delta_query.config.load_config` (environment
    variables). ``client`` and ``decoder`` default to the HTTP client and
    Parquet decoder.

    Raises:
        ConfigError: The configuration is incomplete.
        CatalogError: The server rejected the table query.
    """
    if config is None:
        config = load_config()
    owned: Optional[DeltaSharingClient] = None
    if client is None:
        owned = DeltaSharingClient.from_config(config)
        client = owned
    decoder = decoder or ParquetDecoder()
    try:
        manifest = client.query_table(
            config.share,
            config.schema,
            query.table,
            limit_hint=query.limit,
            predicate_hints=list(query.filters) or None,
        )
        logger.info("Query on %s returned %d files", query.table, len(manifest.files))
        return process_files(
            manifest.files,
            filters=query.filters,
            columns=query.columns,
            client=client,
            decoder=decoder,
            max_workers=config.max_workers,
            show_progress=config.show_progress,
        )
    finally:
        if owned is not None:
            owned.close()


def execute_query(
    table: str,
    columns: Optional[Sequence[str]] = None,
    filters: Sequence[str] = (),
    limit: Optional[int] = None,
    **kwargs,
) -> QueryResult:
    """Build a :class:`Query` from plain arguments and execute it.

    Keyword arguments (``config``, ``client``, ``decoder``) are passed to
    :func:`execute`.
    """
    query = Query(
        table,
        columns=tuple(columns) if columns is not None else None,
        filters=tuple(filters),
        limit=limit,
    )
    return execute(query, **kwargs)


__all__ = ["Query", "execute", "execute_query", "process_files"]
