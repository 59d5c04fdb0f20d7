"""Sync engine: builds a replica from scratch and keeps it current.

:class:`CacheManager` ties the pieces together for one site and one replica
path:

- :class:`~presscache.client.rest.RestClient` probes the collection totals.
- :class:`~presscache.client.fetcher.LinkFetcher` pulls the pages.
- :class:`~presscache.cache.store.CacheStore` persists the replica and its
  metadata sidecar.

A full build fetches every page. An incremental sync compares the totals the
site reports now with the ones stored at the previous probe, fetches the
pages from the one holding the first unseen record onwards, and appends the
records it has not seen yet. Page links ask for ``orderby=id&order=asc``,
which keeps the newest posts on the highest-numbered pages.

Example::

    manager = CacheManager(site, "~/wp/posts.json")
    manager.build_cache()
    ...
    if manager.sync():
        print("replica updated")
"""

from __future__ import annotations

import math
import threading
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Optional

import httpx

from presscache.cache.analyzer import CacheAnalyzer
from presscache.cache.store import CacheStore
from presscache.client.fetcher import LinkFetcher
from presscache.client.rest import RestClient
from presscache.client.urls import page_links
from presscache.exceptions import (
    CacheConstructionError,
    CacheDivergenceError,
    CacheFileSystemError,
    CacheMetadataError,
)
from presscache.models import CacheMeta, Record, RequestConfig, SiteInfo, SyncConfig
from presscache.output import get_output
from presscache.retry import RetryPolicy
from presscache.schema import CacheKey, RestPath, SchemaKey


def delta_window(old_records: int, new_pages: int, per_page: int) -> range:
    """Page numbers that can hold records past the first *old_records*.

    Pages are ordered by ascending id, so record number ``old_records + 1``
    sits on page ``old_records // per_page + 1``. That page may also hold
    records the replica already has; the caller filters them by id.

    Example::

        >>> list(delta_window(98, 11, 10))
        [10, 11]
        >>> list(delta_window(100, 12, 10))
        [11, 12]
    """
    return range(old_records // per_page + 1, new_pages + 1)


def delta_page_count(record_delta: int, page_delta: int, per_page: int) -> int:
    """How many of the newest pages to fetch when :func:`delta_window` is empty.

    New records that fit on the current last page leave the page count
    unchanged, so the last page is fetched anyway. Otherwise one page per
    new page is fetched.

    Example::

        >>> delta_page_count(4, 0, 10)
        1
        >>> delta_page_count(20, 2, 10)
        2
    """
    if record_delta < per_page and page_delta == 0:
        return page_delta + 1
    return page_delta


def record_ids(records: Sequence[Record]) -> list[int]:
    """Integer ids of *records*; records without one are skipped."""
    ids = []
    for record in records:
        value = record.get(CacheKey.ID.key())
        if isinstance(value, int) and not isinstance(value, bool):
            ids.append(value)
    return ids


def newer_than(last_known_id: Optional[int]):
    """Predicate accepting a batch that contains at least one unseen id."""

    def accepts(batch: Sequence[Record]) -> bool:
        ids = record_ids(batch)
        if not ids:
            return False
        return last_known_id is None or max(ids) > last_known_id

    return accepts


class CacheManager:
    """Build and synchronise the replica of one site.

    Each call is a unit of work: the replica lock is held from the first
    probe to the final write, and a second thread syncing the same path
    waits instead of computing the same delta again.

    Args:
        site: The site to replicate.
        cache_path: Where the replica JSON file lives.
        request: Timeout and TLS settings for every request.
        sync_config: Page size, retry and shutdown settings.
        transport: Optional :mod:`httpx` transport used for both the probe
            and the page fetcher (tests pass a :class:`httpx.MockTransport`).
    """

    def __init__(
        self,
        site: SiteInfo,
        cache_path: str | Path,
        *,
        request: Optional[RequestConfig] = None,
        sync_config: Optional[SyncConfig] = None,
        transport: Optional[Any] = None,
    ) -> None:
        self._site = site
        self._store = CacheStore(cache_path)
        self._request = request or RequestConfig()
        self._sync = sync_config or SyncConfig()
        self._transport = transport
        self._cancel = threading.Event()
        self._meta: Optional[CacheMeta] = None

    # ------------------------------------------------------------------ #
    # Properties
    # ------------------------------------------------------------------ #

    @property
    def api_base_url(self) -> str:
        return self._site.api_base_url

    @property
    def cache_path(self) -> Path:
        return self._store.path

    @property
    def meta(self) -> Optional[CacheMeta]:
        """Metadata of the last probe, loaded from the sidecar if needed."""
        if self._meta is None:
            self._meta = self._store.load_meta()
        return self._meta

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    def build_cache(self, overwrite: bool = False, ignore_tls_errors: bool = False) -> None:
        """Fetch every page of the collection and write a fresh replica.

        Args:
            overwrite: Replace an existing replica instead of failing.
            ignore_tls_errors: Fall back to plain HTTP on TLS failures.

        Raises:
            CacheConstructionError: If the site cannot be reached, or the
                replica exists and *overwrite* is false.
            CacheMetadataError: If the site does not expose its totals.
        """
        output = get_output()
        with self._store.lock:
            if self._store.exists() and not overwrite:
                raise CacheConstructionError(
                    f"Cache file already exists at {self._store.path}; pass overwrite to replace it"
                )

            meta = self._probe(ignore_tls_errors)
            if meta is None:
                raise CacheConstructionError(
                    f"Failed to build the cache: no response from {self.api_base_url}"
                )
            self._save_meta(meta)

            links = self.links(meta.total_pages)
            output.info(f"Building cache from {len(links)} page(s) of {self.api_base_url}")
            records = self._fetcher().fetch(links, ignore_tls_errors=ignore_tls_errors)

            try:
                self._store.write(records, overwrite=overwrite)
            except CacheFileSystemError as exc:
                raise CacheConstructionError(str(exc)) from exc
            output.success(f"Cache built at {self._store.path} with {len(records)} record(s)")

    def sync(self, ignore_tls_errors: bool = False) -> bool:
        """Bring the replica up to date with the remote collection.

        Args:
            ignore_tls_errors: Fall back to plain HTTP on TLS failures.

        Returns:
            ``True`` if records were appended, ``False`` if the replica was
            already current.

        Raises:
            CacheMetadataError: If the totals probe fails.
            CacheDivergenceError: If the remote now holds fewer records than
                at the previous probe; the replica is left as it was.
            CacheFileSystemError: If the replica is missing, unreadable, or
                cannot be written.
        """
        output = get_output()
        with self._store.lock:
            self._cancel.clear()
            old_meta = self.meta

            new_meta = self._probe(ignore_tls_errors)
            if new_meta is None:
                raise CacheMetadataError(
                    f"Unable to update the cache metadata: no response from {self.api_base_url}"
                )
            self._save_meta(new_meta)

            replica = self._store.read()
            if old_meta is None:
                old_meta = self._meta_from_replica(replica)
                output.warning(
                    f"No cache metadata found at {self._store.meta_path}; "
                    f"assuming the replica's {old_meta.total_records} record(s) are current"
                )

            record_delta = new_meta.total_records - old_meta.total_records
            page_delta = new_meta.total_pages - old_meta.total_pages
            output.debug(f"Record delta: {record_delta}, page delta: {page_delta}")

            if record_delta == 0 and page_delta == 0:
                output.info("Cache is up to date")
                return False
            if record_delta < 0:
                raise CacheDivergenceError(
                    f"The remote holds {-record_delta} record(s) fewer than at the last sync; "
                    "rebuild the cache with overwrite"
                )

            ids = record_ids(replica)
            last_known_id = max(ids) if ids else None
            links = self._delta_links(old_meta, new_meta)
            policy: RetryPolicy[list[Record]] = RetryPolicy(
                max_retries=self._sync.retry_attempts,
                delay=self._sync.retry_delay,
                predicate=newer_than(last_known_id),
                failure_message="Retries exceeded. Unable to fetch the latest records",
            )
            batch = self._fetcher().fetch(
                links,
                retry=policy,
                ignore_tls_errors=ignore_tls_errors,
                cancel_event=self._cancel,
            )

            known = set(ids)
            fresh = [record for record in batch if record.get(CacheKey.ID.key()) not in known]
            fresh.sort(key=lambda record: record.get(CacheKey.ID.key(), 0), reverse=True)
            fresh = fresh[:record_delta]
            if not fresh:
                # totals ahead of the index: the next sync must see the same delta
                self._save_meta(old_meta)
                output.warning("No new records could be fetched; the replica was not changed")
                return False

            self._store.write(replica + fresh, overwrite=True)
            if len(fresh) < record_delta:
                self._save_meta(self._held_meta(old_meta, len(fresh), new_meta))
                output.warning(
                    f"Only {len(fresh)} of {record_delta} new record(s) could be fetched; "
                    "the next sync fetches the rest"
                )
            output.success(f"Appended {len(fresh)} new record(s) to {self._store.path}")
            return True

    def links(self, total_pages: int) -> list[str]:
        """Links of pages ``1..total_pages`` at the configured page size."""
        return page_links(self.api_base_url, total_pages, per_page=self._sync.per_page)

    def connect(
        self,
        query_params: Optional[Mapping[SchemaKey, str]] = None,
        rest_path: SchemaKey = RestPath.POSTS,
        ignore_tls_errors: bool = False,
    ) -> Optional[httpx.Response]:
        """Send one authenticated GET to *rest_path* of the site.

        Returns ``None`` when the site cannot be reached.
        """
        with RestClient(self._site, self._request, transport=self._transport) as client:
            return client.get(query_params, rest_path, ignore_tls_errors=ignore_tls_errors)

    def cancel(self) -> None:
        """Interrupt the retry wait of a sync running in another thread."""
        self._cancel.set()

    def analyzer(self) -> CacheAnalyzer:
        """A query engine over the current replica."""
        return CacheAnalyzer(self._store.path)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _delta_links(self, old_meta: CacheMeta, new_meta: CacheMeta) -> list[str]:
        """Links to the pages holding records the replica does not have yet."""
        links = self.links(new_meta.total_pages)
        window = delta_window(old_meta.total_records, new_meta.total_pages, self._sync.per_page)
        if window:
            return links[window.start - 1 :]

        record_delta = new_meta.total_records - old_meta.total_records
        page_delta = new_meta.total_pages - old_meta.total_pages
        count = delta_page_count(record_delta, page_delta, self._sync.per_page)
        if count <= 0:
            return []
        return links[-count:]

    def _held_meta(self, old_meta: CacheMeta, appended: int, new_meta: CacheMeta) -> CacheMeta:
        """Metadata describing a replica that received only *appended* records."""
        held = old_meta.total_records + appended
        return CacheMeta(
            total_pages=math.ceil(held / self._sync.per_page),
            total_records=held,
            last_updated=new_meta.last_updated,
        )

    def _meta_from_replica(self, replica: Sequence[Record]) -> CacheMeta:
        total = len(replica)
        return CacheMeta(
            total_pages=math.ceil(total / self._sync.per_page),
            total_records=total,
        )

    def _probe(self, ignore_tls_errors: bool) -> Optional[CacheMeta]:
        with RestClient(self._site, self._request, transport=self._transport) as client:
            return client.probe_totals(self._sync.per_page, ignore_tls_errors=ignore_tls_errors)

    def _save_meta(self, meta: CacheMeta) -> None:
        self._store.save_meta(meta, overwrite=True)
        self._meta = meta

    def _fetcher(self) -> LinkFetcher:
        return LinkFetcher(
            self._site,
            self._request,
            shutdown_timeout=self._sync.shutdown_timeout,
            transport=self._transport,
        )
