from __future__ import annotations

import io

import polars as pl

from delta_query.errors import DecodeError


class ParquetDecoder:
    """Decode Parquet file contents into a polars DataFrame."""

    def decode(self, data: bytes) -> pl.DataFrame:
        if not data:
            raise DecodeError("failed to load parquet data: empty payload")
        try:
            return pl.read_parquet(io.BytesIO(data))
        except Exception as e:  # noqa: BLE001
            raise DecodeError(f"failed to load parquet data: {e}") from e


__all__ = ["ParquetDecoder"]
