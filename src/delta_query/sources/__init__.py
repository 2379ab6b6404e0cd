"""Collaborators that talk to the outside world: the sharing server and file decoding."""

from .manifest import FileReference, TableManifest, parse_query_response
from .client import DeltaSharingClient
from .decoder import ParquetDecoder
from .interfaces import FileCatalogClient, ColumnarDecoder

__all__ = [
    "FileReference",
    "TableManifest",
    "parse_query_response",
    "DeltaSharingClient",
    "ParquetDecoder",
    "FileCatalogClient",
    "ColumnarDecoder",
]
