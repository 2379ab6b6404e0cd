"""
Protocols for the collaborators a query runs against.
"""

from __future__ import annotations

from typing import Optional, Protocol, Sequence

import polars as pl

from .manifest import TableManifest


class FileCatalogClient(Protocol):
    """
    Resolves a table query into a file manifest and downloads file contents.
    """

    def query_table(
        self,
        share: str,
        schema: str,
        table: str,
        *,
        limit_hint: Optional[int] = None,
        predicate_hints: Optional[Sequence[str]] = None,
    ) -> TableManifest: ...

    def fetch_bytes(self, url: str) -> bytes: ...


class ColumnarDecoder(Protocol):
    """
    Turns the raw bytes of one data file into a table.
    """

    def decode(self, data: bytes) -> pl.DataFrame: ...


__all__ = ["FileCatalogClient", "ColumnarDecoder"]
