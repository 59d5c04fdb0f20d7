"""Canonical Pydantic models shared across all presscache modules.

This is the single source of truth for data shapes in the project. The
models fall into three groups:

**Cache models** -- persisted next to the replica or passed between the
sync engine components:
    :class:`CacheMeta` and :class:`SiteInfo`.

**Query result models** -- produced by
:class:`~presscache.cache.analyzer.CacheAnalyzer`:
    :class:`CacheKeySnapshot`, :class:`ClassMapping`, and
    :class:`ClassGroup`.

**Configuration models** -- serialised as JSON in the user's config
directory: :class:`RequestConfig`, :class:`SyncConfig`,
:class:`OutputConfig`, :class:`GlobalConfig`, and :class:`SiteProfile`.

Records themselves are left as plain ``dict`` objects: the replica is an
opaque JSON array and the analyzer reads fields through
:mod:`presscache.schema` keys.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Record = dict[str, Any]
"""One post as decoded from the remote JSON array."""

_SCHEME_RE = re.compile(r"^https?:/+", re.IGNORECASE)


# --- Cache models ---


class CacheMeta(BaseModel):
    """Remote collection totals observed at the most recent successful probe.

    Stored as ``<replica>_metadata.json`` beside the replica. The values
    are what the site *reported*, not what the replica holds; the two drift
    apart when a sync only partially succeeds.

    The on-disk keys are camelCase (``totalPages``, ``totalRecords``,
    ``lastUpdated``); either spelling is accepted when loading.

    Example::

        meta = CacheMeta(total_pages=12, total_records=120)
        meta.model_dump(mode="json", by_alias=True)
        # {'totalPages': 12, 'totalRecords': 120, 'lastUpdated': None}
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    total_pages: int = Field(default=0, ge=0, alias="totalPages")
    total_records: int = Field(default=0, ge=0, alias="totalRecords")
    last_updated: Optional[date] = Field(default=None, alias="lastUpdated")


class SiteInfo(BaseModel):
    """Connection details of a WordPress site.

    ``domain`` may be given with or without a scheme; it is normalised to a
    bare host (and optional path) so that :attr:`api_base_url` is always
    built the same way.
    """

    model_config = ConfigDict(frozen=True)

    domain: str
    user: str
    app_password: str = Field(repr=False)

    @field_validator("domain")
    @classmethod
    def _strip_scheme(cls, value: str) -> str:
        return _SCHEME_RE.sub("", value.strip()).rstrip("/")

    @property
    def api_base_url(self) -> str:
        """Base URL of the REST API, e.g. ``https://example.com/wp-json/wp/v2``."""
        return f"https://{self.domain}/wp-json/wp/v2"


# --- Query result models ---


class CacheKeySnapshot(BaseModel):
    """Projection of a nested record field onto a chosen set of sub-fields.

    ``values`` holds one entry per requested sub-key. A sub-key missing
    from the record maps to ``None``; nothing is invented.
    """

    cache_key: str
    values: dict[str, Any] = Field(default_factory=dict)


class ClassMapping(BaseModel):
    """A taxonomy label paired with the numeric term id the site assigned to it."""

    model_config = ConfigDict(frozen=True)

    label: str
    term_id: int

    @staticmethod
    def term_ids(mappings: Iterable[ClassMapping]) -> set[int]:
        """Collapse mappings to the set of their term ids."""
        return {mapping.term_id for mapping in mappings}


class ClassGroup(BaseModel):
    """Values collected from one record, keyed by that record's id."""

    model_config = ConfigDict(frozen=True)

    record_id: int
    values: frozenset[Any] = Field(default_factory=frozenset)


# --- Configuration models ---


class RequestConfig(BaseModel):
    """HTTP settings applied to every request made for a site."""

    timeout: float = Field(default=30.0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify TLS certificates")


class SyncConfig(BaseModel):
    """Tuning knobs of the sync engine.

    The defaults match what the WordPress REST API does out of the box and
    are rarely worth changing. ``retry_attempts`` and ``retry_delay`` only
    apply to incremental syncs, where the search index can lag behind the
    totals headers.
    """

    per_page: int = Field(default=10, ge=1, le=100, description="Records per page")
    retry_attempts: int = Field(default=3, ge=0, description="Extra fetches of a delta batch")
    retry_delay: float = Field(default=2.0, ge=0, description="Seconds between delta fetches")
    shutdown_timeout: float = Field(
        default=300.0, gt=0, description="Seconds a fetch batch may run before it is cancelled"
    )


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/presscache/config.json``.

    Fields here have the lowest precedence and can be overridden by the
    project file, environment variables, or CLI flags. See
    :func:`~presscache.config.resolve_config` for the full chain.
    """

    default_profile: Optional[str] = None
    auto_select_single_profile: bool = True
    output: OutputConfig = Field(default_factory=OutputConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)


class SiteProfile(BaseModel):
    """A named site plus where its replica lives.

    The application password is never stored here. ``credential_source``
    points at it instead (``env:VAR``, ``file:/path`` or ``prompt``) and
    is resolved by :func:`~presscache.config.resolve_credential` when the
    profile is used.

    Example::

        SiteProfile(
            name="blog",
            domain="blog.example.com",
            user="editor",
            credential_source="env:BLOG_APP_PASSWORD",
            cache_path="~/wp/blog-posts.json",
        )
    """

    model_config = ConfigDict(extra="allow")

    name: str
    domain: str
    user: str
    credential_source: str = Field(
        default="prompt", description="Credential source: env:VAR, file:/path, prompt"
    )
    cache_path: str = Field(description="Path of the replica JSON file")
    request: RequestConfig = Field(default_factory=RequestConfig)
    sync: Optional[SyncConfig] = Field(
        default=None, description="Overrides the global sync settings for this site"
    )
