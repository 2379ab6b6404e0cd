"""Shared pytest configuration, fixtures, and fakes for query engine testing."""

import io
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

import polars as pl
import pytest

from delta_query.config import Config
from delta_query.core.query.results import QueryResult
from delta_query.errors import TransportError
from delta_query.sources.manifest import FileReference, TableManifest


def make_result(data, files_processed: int = 1, total_files: int = 1) -> QueryResult:
    """Wrap a dict of columns (or a DataFrame) into a QueryResult."""
    df = data if isinstance(data, pl.DataFrame) else pl.DataFrame(data)
    return QueryResult(table=df, files_processed=files_processed, total_files=total_files)


def parquet_bytes(data) -> bytes:
    """Serialize a dict of columns (or a DataFrame) to Parquet bytes."""
    df = data if isinstance(data, pl.DataFrame) else pl.DataFrame(data)
    buf = io.BytesIO()
    df.write_parquet(buf)
    return buf.getvalue()


def file_ref(url: str, **partition_values: Optional[str]) -> FileReference:
    return FileReference(url=url, partition_values=dict(partition_values))


@dataclass
class FakeCatalogClient:
    """In-memory FileCatalogClient.

    ``blobs`` maps a file URL to its bytes, or to an exception raised when
    that URL is fetched.
    """

    files: List[FileReference] = field(default_factory=list)
    blobs: Dict[str, Union[bytes, Exception]] = field(default_factory=dict)
    queries: List[dict] = field(default_factory=list)
    fetched: List[str] = field(default_factory=list)
    closed: bool = False

    def query_table(
        self,
        share: str,
        schema: str,
        table: str,
        *,
        limit_hint: Optional[int] = None,
        predicate_hints: Optional[Sequence[str]] = None,
    ) -> TableManifest:
        self.queries.append(
            {
                "share": share,
                "schema": schema,
                "table": table,
                "limit_hint": limit_hint,
                "predicate_hints": predicate_hints,
            }
        )
        return TableManifest(protocol={"minReaderVersion": 1}, metadata={}, files=list(self.files))

    def fetch_bytes(self, url: str) -> bytes:
        self.fetched.append(url)
        blob = self.blobs.get(url)
        if blob is None:
            raise TransportError(url, "status=404")
        if isinstance(blob, Exception):
            raise blob
        return blob

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def config() -> Config:
    """Minimal valid configuration."""
    return Config(
        endpoint="https://sharing.example.com/delta-sharing",
        bearer_token="token123",
        share="my_share",
    )


@pytest.fixture
def books_frame() -> pl.DataFrame:
    """Small typed table covering int, float, string, bool and date columns."""
    return pl.DataFrame(
        {
            "book_id": [1, 2, 3, 4],
            "title": ["Dune", "Emma", "Ulysses", None],
            "list_price": [19.99, 5.5, 42.0, 12.0],
            "available": [True, False, True, True],
            "published": pl.Series(
                ["2024-01-15", "2023-06-01", "2024-03-30", "2022-12-31"]
            ).str.to_date(),
        }
    )
