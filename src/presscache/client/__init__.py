"""HTTP side of presscache.

Classes:
    :class:`RestClient` -- blocking client for single requests (the totals probe).
    :class:`LinkFetcher` -- concurrent fetcher for lists of page links.

Both send the site's Basic auth header with every request and accept an
optional :mod:`httpx` transport so tests can stand in for the site.

Example::

    from presscache.client import LinkFetcher, RestClient
    from presscache.client.urls import page_links

    with RestClient(site) as client:
        meta = client.probe_totals()
    records = LinkFetcher(site).fetch(page_links(site.api_base_url, meta.total_pages))
"""

from presscache.client.fetcher import LinkFetcher
from presscache.client.rest import RestClient

__all__ = ["LinkFetcher", "RestClient"]
