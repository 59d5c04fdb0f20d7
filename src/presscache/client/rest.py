"""Blocking client used for single requests against a site.

:class:`RestClient` wraps :class:`httpx.Client` and is what the sync engine
uses to probe the collection totals before deciding what to fetch. It adds:

- **Credential header** -- HTTP Basic auth built from the site user and its
  application password, sent with every request.
- **Best-effort sends** -- network failures are logged and reported as
  ``None`` so the caller can decide which error class applies (a failed
  probe is a construction error during a build and a metadata error during
  a sync).
- **TLS downgrade** -- with ``ignore_tls_errors`` a request that fails the
  TLS handshake is repeated over plain ``http://``. Meant for local and
  staging sites only.

See Also:
    :class:`~presscache.client.fetcher.LinkFetcher` for the concurrent
    page fetcher built on :class:`httpx.AsyncClient`.
"""

from __future__ import annotations

import base64
import ssl
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Optional

import httpx

from presscache.client.urls import ASCENDING_BY_ID, DEFAULT_PER_PAGE, make_request_url, to_plain_http
from presscache.exceptions import CacheMetadataError
from presscache.models import CacheMeta, RequestConfig, SiteInfo
from presscache.output import get_output
from presscache.schema import (
    TOTAL_PAGES_HEADER,
    TOTAL_RECORDS_HEADER,
    QueryParam,
    RestPath,
    SchemaKey,
)


def auth_headers(site: SiteInfo) -> dict[str, str]:
    """Headers every request to *site* carries: JSON accept and Basic auth."""
    raw = f"{site.user}:{site.app_password}"
    encoded = base64.b64encode(raw.encode("utf-8")).decode("ascii")
    return {
        "Accept": "application/json",
        "Authorization": f"Basic {encoded}",
    }


def _is_tls_failure(exc: BaseException) -> bool:
    """True when *exc* (or anything in its cause chain) is a TLS handshake failure."""
    seen: set[int] = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, ssl.SSLError):
            return True
        if "ssl" in str(current).lower() or "certificate" in str(current).lower():
            return True
        current = current.__cause__ or current.__context__
    return False


class RestClient:
    """Synchronous client for one site.

    Must be used as a context manager so the underlying connection pool is
    opened and closed around the work.

    Args:
        site: Connection details; its credentials become the auth header.
        request: Timeout and TLS verification settings.
        transport: Optional :mod:`httpx` transport. Tests pass an
            :class:`httpx.MockTransport` here.

    Example::

        with RestClient(site) as client:
            meta = client.probe_totals()
    """

    def __init__(
        self,
        site: SiteInfo,
        request: Optional[RequestConfig] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._site = site
        self._request = request or RequestConfig()
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> RestClient:
        self._client = httpx.Client(
            headers=auth_headers(self._site),
            timeout=self._request.timeout,
            verify=self._request.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # Requests
    # ------------------------------------------------------------------ #

    def send_get(self, url: str, ignore_tls_errors: bool = False) -> Optional[httpx.Response]:
        """GET *url*, returning ``None`` on network failure instead of raising.

        HTTP error statuses are *not* failures here; the response is
        returned and the caller inspects it.
        """
        assert self._client is not None, "Client not initialised -- use as context manager"
        output = get_output()
        try:
            return self._client.get(url)
        except httpx.ConnectError as exc:
            if ignore_tls_errors and url.startswith("https://") and _is_tls_failure(exc):
                output.warning(f"TLS handshake failed for {url}, retrying over plain HTTP")
                return self._send_plain(to_plain_http(url))
            output.warning(f"Could not connect to {url}: {exc}")
        except httpx.HTTPError as exc:
            output.warning(f"Request to {url} failed: {exc.__class__.__name__}: {exc}")
        return None

    def get(
        self,
        query_params: Optional[Mapping[SchemaKey, str]] = None,
        rest_path: SchemaKey = RestPath.POSTS,
        ignore_tls_errors: bool = False,
    ) -> Optional[httpx.Response]:
        """GET a collection path of the site's REST API."""
        url = make_request_url(self._site.api_base_url, query_params, rest_path)
        return self.send_get(url, ignore_tls_errors=ignore_tls_errors)

    def probe_totals(
        self,
        per_page: int = DEFAULT_PER_PAGE,
        ignore_tls_errors: bool = False,
    ) -> Optional[CacheMeta]:
        """Read the collection totals for *per_page* from the response headers.

        Only the first page is requested; its body is ignored.

        Returns:
            Fresh :class:`~presscache.models.CacheMeta` stamped with today's
            UTC date, or ``None`` if the site could not be reached.

        Raises:
            CacheMetadataError: If the site answered without usable
                ``X-WP-Total`` / ``X-WP-TotalPages`` headers.
        """
        params: dict[SchemaKey, str] = {
            QueryParam.PAGE: "1",
            QueryParam.PER_PAGE: str(per_page),
            **ASCENDING_BY_ID,
        }
        response = self.get(params, RestPath.POSTS, ignore_tls_errors=ignore_tls_errors)
        if response is None:
            return None

        total = response.headers.get(TOTAL_RECORDS_HEADER)
        total_pages = response.headers.get(TOTAL_PAGES_HEADER)
        if total is None or total_pages is None:
            raise CacheMetadataError(
                f"Unable to update the cache metadata - HTTP {response.status_code} response "
                "has incomplete, non-exposed or blocked totals headers"
            )
        try:
            meta = CacheMeta(
                total_pages=int(total_pages),
                total_records=int(total),
                last_updated=datetime.now(timezone.utc).date(),
            )
        except ValueError as exc:
            raise CacheMetadataError(
                f"Malformed totals headers: {TOTAL_RECORDS_HEADER}={total!r}, "
                f"{TOTAL_PAGES_HEADER}={total_pages!r}"
            ) from exc
        get_output().debug(
            f"Remote reports {meta.total_records} records on {meta.total_pages} pages"
        )
        return meta

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _send_plain(self, url: str) -> Optional[httpx.Response]:
        assert self._client is not None
        try:
            return self._client.get(url)
        except httpx.HTTPError as exc:
            get_output().warning(f"Plain HTTP request to {url} failed: {exc}")
            return None
