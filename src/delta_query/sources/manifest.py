"""Table query manifest returned by the sharing server.

The query endpoint answers with newline-delimited JSON:

- line 1: protocol metadata (``{"protocol": {...}}``)
- line 2: table metadata (``{"metaData": {...}}``)
- remaining lines: one file action each, ``{"add": {...}}`` in protocol v1
  or ``{"file": {...}}`` in protocol v2
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from delta_query.errors import CatalogError


@dataclass(frozen=True)
class FileReference:
    """A remote data file and the partition it belongs to.

    Partition values are kept exactly as the server sent them (strings,
    or ``None`` for a null partition).
    """

    url: str
    partition_values: Dict[str, Optional[str]] = field(default_factory=dict)
    id: Optional[str] = None
    size: Optional[int] = None
    stats: Optional[str] = None

    @classmethod
    def from_action(cls, action: Dict[str, Any]) -> "FileReference":
        """Build a reference from an ``add``/``file`` action payload."""
        url = action.get("url")
        if not url:
            raise CatalogError("invalid response format: file action without url")
        size = action.get("size")
        return cls(
            url=str(url),
            partition_values=dict(action.get("partitionValues") or {}),
            id=action.get("id"),
            size=int(size) if size is not None else None,
            stats=action.get("stats"),
        )


@dataclass(frozen=True)
class TableManifest:
    protocol: Dict[str, Any]
    metadata: Dict[str, Any]
    files: List[FileReference] = field(default_factory=list)


def parse_query_response(body: str) -> TableManifest:
    """Parse an NDJSON query response into a :class:`TableManifest`.

    Lines that are neither ``add`` nor ``file`` actions (for example
    ``remove`` or ``cdf``) are ignored.

    Raises:
        CatalogError: When the body has fewer than two JSON lines or any
            line is not valid JSON.
    """
    lines = [line for line in body.split("\n") if line.strip()]
    try:
        decoded = [json.loads(line) for line in lines]
    except json.JSONDecodeError as e:
        raise CatalogError(f"invalid response format: {e}") from e

    if len(decoded) < 2 or not all(isinstance(d, dict) for d in decoded):
        raise CatalogError("invalid response format")

    protocol, metadata, *actions = decoded
    files: List[FileReference] = []
    for action in actions:
        payload = action.get("add") or action.get("file")
        if isinstance(payload, dict):
            files.append(FileReference.from_action(payload))
    return TableManifest(protocol=protocol, metadata=metadata, files=files)


__all__ = ["FileReference", "TableManifest", "parse_query_response"]
