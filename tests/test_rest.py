"""Tests for the blocking REST client and the totals probe."""

from __future__ import annotations

import base64
from datetime import datetime, timezone

import httpx
import pytest

from presscache.client.rest import RestClient, auth_headers
from presscache.exceptions import CacheMetadataError
from presscache.models import SiteInfo
from presscache.schema import QueryParam, RestPath


def _handler_with(headers: dict[str, str], status: int = 200):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status, headers=headers, json=[])

    return handler, seen


def test_auth_headers(site: SiteInfo) -> None:
    headers = auth_headers(site)
    token = base64.b64decode(headers["Authorization"].removeprefix("Basic ")).decode()
    assert token == "editor:abcd efgh ijkl"
    assert headers["Accept"] == "application/json"


class TestProbeTotals:
    def test_reads_totals_headers(self, site: SiteInfo, quiet_output) -> None:
        handler, seen = _handler_with({"X-WP-Total": "120", "X-WP-TotalPages": "12"})
        with RestClient(site, transport=httpx.MockTransport(handler)) as client:
            meta = client.probe_totals()

        assert meta is not None
        assert meta.total_records == 120
        assert meta.total_pages == 12
        assert meta.last_updated == datetime.now(timezone.utc).date()

        request = seen[0]
        assert request.url.path == "/wp-json/wp/v2/posts/"
        assert request.url.params["page"] == "1"
        assert request.url.params["per_page"] == "10"
        assert request.url.params["orderby"] == "id"
        assert request.headers["Authorization"].startswith("Basic ")

    def test_missing_headers_raise(self, site: SiteInfo, quiet_output) -> None:
        handler, _ = _handler_with({"X-WP-Total": "120"})
        with RestClient(site, transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(CacheMetadataError):
                client.probe_totals()

    def test_malformed_headers_raise(self, site: SiteInfo, quiet_output) -> None:
        handler, _ = _handler_with({"X-WP-Total": "many", "X-WP-TotalPages": "12"})
        with RestClient(site, transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(CacheMetadataError):
                client.probe_totals()

    def test_unreachable_site_returns_none(self, site: SiteInfo, quiet_output) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Name or service not known", request=request)

        with RestClient(site, transport=httpx.MockTransport(handler)) as client:
            assert client.probe_totals() is None

    def test_tls_failure_downgrades_when_allowed(self, site: SiteInfo, quiet_output) -> None:
        schemes: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            schemes.append(request.url.scheme)
            if request.url.scheme == "https":
                raise httpx.ConnectError(
                    "[SSL: CERTIFICATE_VERIFY_FAILED] certificate verify failed", request=request
                )
            return httpx.Response(200, headers={"X-WP-Total": "3", "X-WP-TotalPages": "1"}, json=[])

        transport = httpx.MockTransport(handler)
        with RestClient(site, transport=transport) as client:
            assert client.probe_totals() is None
        with RestClient(site, transport=transport) as client:
            meta = client.probe_totals(ignore_tls_errors=True)

        assert meta is not None and meta.total_records == 3
        assert schemes == ["https", "https", "http"]


def test_get_builds_collection_url(site: SiteInfo, quiet_output) -> None:
    handler, seen = _handler_with({})
    with RestClient(site, transport=httpx.MockTransport(handler)) as client:
        response = client.get({QueryParam.PER_PAGE: "100"}, RestPath.CATEGORIES)
    assert response is not None and response.status_code == 200
    assert str(seen[0].url) == "https://example.com/wp-json/wp/v2/categories/?per_page=100"


def test_client_requires_context_manager(site: SiteInfo) -> None:
    client = RestClient(site)
    with pytest.raises(AssertionError):
        client.send_get("https://example.com/")
