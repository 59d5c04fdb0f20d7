"""Request URL construction for the collection endpoint.

Page links are built with ``orderby=id&order=asc`` so that page numbers are
stable as the collection grows: new posts always land on the
highest-numbered pages, which is what the incremental sync relies on.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Optional
from urllib.parse import urlencode, urlsplit

from presscache.exceptions import InvalidApiUrlError
from presscache.schema import QueryParam, RestPath, SchemaKey

DEFAULT_PER_PAGE = 10

ASCENDING_BY_ID: dict[SchemaKey, str] = {
    QueryParam.ORDER_BY: "id",
    QueryParam.ORDER: "asc",
}


def make_request_url(
    api_base_url: str,
    query_params: Optional[Mapping[SchemaKey, str]] = None,
    rest_path: SchemaKey = RestPath.POSTS,
) -> str:
    """Join the API base, a collection path and query parameters.

    Args:
        api_base_url: e.g. ``https://example.com/wp-json/wp/v2``.
        query_params: Parameters keyed by :class:`~presscache.schema.QueryParam`
            (or any :class:`~presscache.schema.SchemaKey`), kept in the
            given order.
        rest_path: Collection path, :attr:`RestPath.POSTS` by default.

    Returns:
        ``<base><path>/`` followed by ``?k=v&...`` when parameters are given.

    Raises:
        InvalidApiUrlError: If the resulting URL has no http(s) scheme or host.

    Example::

        make_request_url("https://example.com/wp-json/wp/v2",
                         {QueryParam.PAGE: "1", QueryParam.PER_PAGE: "10"})
        # 'https://example.com/wp-json/wp/v2/posts/?page=1&per_page=10'
    """
    url = f"{api_base_url.rstrip('/')}{rest_path.key()}/"
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise InvalidApiUrlError(f"Unable to build a request URL from '{api_base_url}'")
    if query_params:
        url += "?" + urlencode([(param.key(), value) for param, value in query_params.items()])
    return url


def page_links(
    api_base_url: str,
    total_pages: int,
    per_page: int = DEFAULT_PER_PAGE,
    rest_path: SchemaKey = RestPath.POSTS,
) -> list[str]:
    """Links for pages ``1..total_pages`` in ascending-id order."""
    links = []
    for page in range(1, total_pages + 1):
        params: dict[SchemaKey, str] = {QueryParam.PAGE: str(page)}
        if per_page > 0:
            params[QueryParam.PER_PAGE] = str(per_page)
        params.update(ASCENDING_BY_ID)
        links.append(make_request_url(api_base_url, params, rest_path))
    return links


def to_plain_http(url: str) -> str:
    """Downgrade an ``https://`` link to ``http://`` (local/dev sites with broken TLS)."""
    if url.startswith("https://"):
        return "http://" + url[len("https://"):]
    return url
