"""Tests for DeltaSharingClient using httpx's mock transport."""

import json

import httpx
import pytest

from delta_query.errors import CatalogError, TransportError
from delta_query.sources.client import DeltaSharingClient

QUERY_BODY = "\n".join(
    [
        json.dumps({"protocol": {"minReaderVersion": 1}}),
        json.dumps({"metaData": {"id": "t1", "partitionColumns": ["year"]}}),
        json.dumps(
            {
                "add": {
                    "url": "https://files.example.com/part-0.parquet",
                    "id": "f0",
                    "partitionValues": {"year": "2024"},
                    "size": 1024,
                }
            }
        ),
    ]
)


def _client(handler) -> DeltaSharingClient:
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return DeltaSharingClient(
        "https://sharing.example.com/delta-sharing/", "token123", http_client=http
    )


class TestQueryTable:
    """Tests for query_table."""

    def test_request_and_manifest(self):
        """Test the URL, headers and body sent, and the parsed manifest."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, text=QUERY_BODY)

        manifest = _client(handler).query_table(
            "my_share",
            "public",
            "orders",
            limit_hint=100,
            predicate_hints=["year = 2024"],
        )

        assert seen["method"] == "POST"
        assert seen["url"] == (
            "https://sharing.example.com/delta-sharing/shares/my_share/schemas/public/tables/orders/query"
        )
        assert seen["auth"] == "Bearer token123"
        assert seen["body"] == {"limitHint": 100, "predicateHints": ["year = 2024"]}
        assert manifest.protocol == {"protocol": {"minReaderVersion": 1}}
        assert len(manifest.files) == 1
        assert manifest.files[0].partition_values == {"year": "2024"}
        assert manifest.files[0].size == 1024

    def test_hints_are_optional(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, text=QUERY_BODY)

        _client(handler).query_table("s", "public", "t")
        assert seen["body"] == {}

    def test_names_are_url_quoted(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.raw_path.decode()
            return httpx.Response(200, text=QUERY_BODY)

        _client(handler).query_table("my share", "public", "a/b")
        assert seen["path"].endswith("/shares/my%20share/schemas/public/tables/a%2Fb/query")

    @pytest.mark.parametrize("status", [400, 401, 404, 500])
    def test_non_200_raises(self, status):
        client = _client(lambda request: httpx.Response(status, text="nope"))
        with pytest.raises(CatalogError) as exc_info:
            client.query_table("s", "public", "t")
        assert exc_info.value.status == status
        assert exc_info.value.body == "nope"

    def test_network_error_raises(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(CatalogError, match="request failed"):
            _client(handler).query_table("s", "public", "t")

    def test_malformed_body_raises(self):
        client = _client(lambda request: httpx.Response(200, text="{not json"))
        with pytest.raises(CatalogError, match="invalid response format"):
            client.query_table("s", "public", "t")


class TestFetchBytes:
    """Tests for fetch_bytes."""

    def test_returns_body(self):
        payload = b"PAR1" + b"\x00" * 1000 + b"PAR1"
        client = _client(lambda request: httpx.Response(200, content=payload))
        assert client.fetch_bytes("https://files.example.com/part-0.parquet") == payload

    def test_no_auth_header_on_file_urls(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, content=b"x")

        _client(handler).fetch_bytes("https://files.example.com/p.parquet")
        assert seen["auth"] is None

    def test_non_200_raises_transport_error(self):
        client = _client(lambda request: httpx.Response(403, content=b"expired"))
        with pytest.raises(TransportError) as exc_info:
            client.fetch_bytes("https://files.example.com/p.parquet")
        assert exc_info.value.url == "https://files.example.com/p.parquet"
        assert "status=403" in str(exc_info.value)

    def test_network_error_raises_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TransportError):
            _client(handler).fetch_bytes("https://files.example.com/p.parquet")


def test_from_config_and_context_manager(config):
    http = httpx.Client(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
    with DeltaSharingClient.from_config(config, http_client=http) as client:
        assert client.endpoint == "https://sharing.example.com/delta-sharing"
        assert client.bearer_token == "token123"
    # Injected clients are left open for their owner.
    assert not http.is_closed


def test_owned_client_is_closed(config):
    client = DeltaSharingClient.from_config(config)
    client.close()
    assert client._client.is_closed
