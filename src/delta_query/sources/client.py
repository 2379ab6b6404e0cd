from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence
from urllib.parse import quote

import httpx

from delta_query.config import DEFAULT_TIMEOUT_SEC, Config
from delta_query.errors import CatalogError, TransportError

from .manifest import TableManifest, parse_query_response

DOWNLOAD_CHUNK_SIZE = 1024 * 256
_BODY_PREVIEW = 100


class DeltaSharingClient:
    """HTTP client for the sharing server's REST API.

    ``query_table`` asks the server which data files make up a table
    (optionally narrowed by predicate and limit hints); ``fetch_bytes``
    downloads one of those files from its pre-signed URL.

    The client owns its ``httpx.Client`` unless one is passed in; use it
    as a context manager or call :meth:`close`.
    """

    def __init__(
        self,
        endpoint: str,
        bearer_token: str,
        *,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        http_client: Optional[httpx.Client] = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.bearer_token = bearer_token
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(timeout=timeout_sec, follow_redirects=True)
        self._logger = logging.getLogger(__name__)

    @classmethod
    def from_config(
        cls, config: Config, *, http_client: Optional[httpx.Client] = None
    ) -> "DeltaSharingClient":
        return cls(
            config.endpoint,
            config.bearer_token,
            timeout_sec=config.timeout_sec,
            http_client=http_client,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "DeltaSharingClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _table_query_url(self, share: str, schema: str, table: str) -> str:
        parts = (quote(share, safe=""), quote(schema, safe=""), quote(table, safe=""))
        return f"{self.endpoint}/shares/{parts[0]}/schemas/{parts[1]}/tables/{parts[2]}/query"

    def query_table(
        self,
        share: str,
        schema: str,
        table: str,
        *,
        limit_hint: Optional[int] = None,
        predicate_hints: Optional[Sequence[str]] = None,
    ) -> TableManifest:
        """Run a table query and return the file manifest.

        The limit and predicates are hints; the server may ignore them.

        Raises:
            CatalogError: Non-200 status, network failure or malformed body.
        """
        body: Dict[str, Any] = {}
        if limit_hint is not None:
            body["limitHint"] = int(limit_hint)
        if predicate_hints:
            body["predicateHints"] = list(predicate_hints)

        url = self._table_query_url(share, schema, table)
        headers = {
            "Authorization": f"Bearer {self.bearer_token}",
            "Content-Type": "application/json",
        }
        try:
            response = self._client.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            self._logger.error("Sharing server request failed: %s", e)
            raise CatalogError(f"request failed: {e}") from e

        if response.status_code != 200:
            self._logger.error(
                "Sharing server API error: status=%s body=%s",
                response.status_code,
                response.text[:_BODY_PREVIEW],
            )
            raise CatalogError("api error", status=response.status_code, body=response.text)

        manifest = parse_query_response(response.text)
        self._logger.debug(
            "Table %s.%s.%s resolved to %d files", share, schema, table, len(manifest.files)
        )
        return manifest

    def fetch_bytes(self, url: str) -> bytes:
        """Download a data file.

        Raises:
            TransportError: Non-200 status or network failure.
        """
        try:
            with self._client.stream("GET", url) as r:
                if r.status_code != 200:
                    preview = r.read()[:_BODY_PREVIEW]
                    self._logger.error(
                        "Failed to download data file: status=%s preview=%r",
                        r.status_code,
                        preview,
                    )
                    raise TransportError(url, f"status={r.status_code}")
                chunks = [c for c in r.iter_bytes(chunk_size=DOWNLOAD_CHUNK_SIZE) if c]
        except httpx.HTTPError as e:
            raise TransportError(url, str(e)) from e
        return b"".join(chunks)


__all__ = ["DeltaSharingClient"]
