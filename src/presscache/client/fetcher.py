"""Concurrent page fetcher for the collection endpoint.

:class:`LinkFetcher` takes a list of page links and returns all records on
those pages as one list. Every link becomes its own :mod:`asyncio` task on a
short-lived :class:`httpx.AsyncClient`; nothing is shared between batches.

Failure policy:

* One bad link (network error, error status, a body that is not a JSON
  array) costs only that page. It is logged at debug level and the rest of
  the batch carries on.
* A batch that takes longer than ``shutdown_timeout`` seconds has its
  remaining tasks cancelled; whatever arrived in time is returned.
* With a :class:`~presscache.retry.RetryPolicy` the whole batch is
  re-fetched until the policy accepts it. Exhaustion is a warning, never an
  exception.

The public :meth:`LinkFetcher.fetch` is blocking and runs each batch in its
own event loop. Code that already runs inside an event loop should await
:meth:`LinkFetcher.fetch_batch` instead.
"""

from __future__ import annotations

import asyncio
import itertools
import threading
from collections.abc import Iterable, Sequence
from typing import Any, Optional

import httpx

from presscache.client.rest import auth_headers
from presscache.client.urls import to_plain_http
from presscache.models import Record, RequestConfig, SiteInfo
from presscache.output import get_output
from presscache.retry import RetryPolicy

TASK_TERMINATION_TIMEOUT = 300.0


def merge_pages(pages: Iterable[Optional[list[Record]]]) -> list[Record]:
    """Concatenate page results, skipping failed (``None``) pages."""
    return list(itertools.chain.from_iterable(page for page in pages if page is not None))


class LinkFetcher:
    """Fetch many pages of a site concurrently.

    Args:
        site: Provides the Basic auth credentials sent with every page request.
        request: Per-request timeout and TLS verification settings.
        shutdown_timeout: Upper bound in seconds for one whole batch.
        transport: Optional :mod:`httpx` async transport (tests use
            :class:`httpx.MockTransport`).

    Example::

        fetcher = LinkFetcher(site)
        records = fetcher.fetch(page_links(site.api_base_url, 12))
    """

    def __init__(
        self,
        site: SiteInfo,
        request: Optional[RequestConfig] = None,
        shutdown_timeout: float = TASK_TERMINATION_TIMEOUT,
        transport: Optional[Any] = None,
    ) -> None:
        self._site = site
        self._request = request or RequestConfig()
        self._shutdown_timeout = shutdown_timeout
        self._transport = transport

    def fetch(
        self,
        links: Sequence[str],
        retry: Optional[RetryPolicy] = None,
        ignore_tls_errors: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> list[Record]:
        """Fetch every link and merge the records into one list.

        Args:
            links: Page URLs. Records are merged in link order.
            retry: When given, the merged batch is re-fetched until
                ``retry`` accepts it or its retries run out.
            ignore_tls_errors: Rewrite ``https://`` links to ``http://``.
            cancel_event: Interrupts the wait between retries.

        Returns:
            All records from the pages that could be fetched.
        """
        if ignore_tls_errors:
            links = [to_plain_http(link) for link in links]
        get_output().debug(f"Fetching {len(links)} page link(s)")

        def run_batch() -> list[Record]:
            return asyncio.run(self.fetch_batch(links))

        if retry is None:
            return run_batch()
        return retry.run(run_batch, cancel_event=cancel_event)

    async def fetch_batch(self, links: Sequence[str]) -> list[Record]:
        """Fetch *links* concurrently on a client scoped to this call."""
        if not links:
            return []
        output = get_output()
        async with httpx.AsyncClient(
            headers=auth_headers(self._site),
            timeout=self._request.timeout,
            verify=self._request.verify_ssl,
            follow_redirects=True,
            transport=self._transport,
        ) as client:
            tasks = [asyncio.create_task(self._fetch_page(client, link)) for link in links]
            done, pending = await asyncio.wait(tasks, timeout=self._shutdown_timeout)
            if pending:
                output.warning(
                    f"{len(pending)} of {len(tasks)} page request(s) still running after "
                    f"{self._shutdown_timeout:g}s; cancelling them"
                )
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

        pages: list[Optional[list[Record]]] = []
        for task in tasks:
            if task not in done:
                continue
            exc = task.exception()
            if exc is not None:
                output.debug(f"Page task failed: {exc.__class__.__name__}: {exc}")
                continue
            pages.append(task.result())
        return merge_pages(pages)

    async def _fetch_page(self, client: httpx.AsyncClient, link: str) -> Optional[list[Record]]:
        """One page, or ``None`` when anything about it is unusable."""
        output = get_output()
        output.debug(f"Processing link -> {link}")
        try:
            response = await client.get(link)
        except httpx.HTTPError as exc:
            output.debug(f"Failed processing link {link} due to {exc.__class__.__name__}: {exc}")
            return None
        if response.is_error:
            output.debug(f"Link {link} answered HTTP {response.status_code}")
            return None
        try:
            body = response.json()
        except ValueError as exc:
            output.debug(f"Failed parsing JSON for link {link}: {exc}")
            return None
        if not isinstance(body, list):
            output.debug(f"Expected JSON array but got {type(body).__name__} for link {link}")
            return None
        return body
