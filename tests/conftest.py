"""Shared test fixtures for presscache.

Provides isolated config environments, output state management, a
synthetic replica, and a fake WordPress site served through
:class:`httpx.MockTransport`. These fixtures are automatically discovered
by pytest and available to all test modules without explicit imports.
"""

from __future__ import annotations

import json
import math
from pathlib import Path
from typing import Any, Optional

import httpx
import pytest

from presscache.models import SiteInfo, SyncConfig
from presscache.output import OutputFormat, OutputManager, reset_output, set_output


TAG_WORDS = [
    "python", "web-dev", "rust", "data", "cloud", "devops", "linux", "testing",
    "api", "security", "design", "mobile", "ai", "ml-ops", "databases", "networking",
    "go", "java", "open-source", "performance", "ux", "scaling", "docs", "release-notes",
]
CATEGORY_WORDS = [
    "news", "tutorials", "reviews", "opinion", "interviews", "events", "guides",
    "announcements", "case-studies", "podcasts", "videos", "releases", "community",
    "research", "culture", "careers", "travel", "food", "health", "science", "sports",
    "finance", "education", "music", "books", "film", "gaming", "politics", "weather",
    "local", "world", "business",
]
TAG_IDS = [100 + n for n in range(len(TAG_WORDS))]
CATEGORY_IDS = [500 + n for n in range(len(CATEGORY_WORDS))]


def make_record(post_id: int) -> dict[str, Any]:
    """A post shaped like ``/wp-json/wp/v2/posts`` output.

    Every record has two tags and one category. The ``class_list`` tokens
    are listed in the same order as the ``tags`` / ``categories`` ids.
    """
    j = post_id - 1
    tag_idx = [j % len(TAG_WORDS), (j + 7) % len(TAG_WORDS)]
    cat_idx = j % len(CATEGORY_WORDS)
    return {
        "id": post_id,
        "date": f"2024-01-{(j % 28) + 1:02d}T10:00:00",
        "date_gmt": f"2024-01-{(j % 28) + 1:02d}T09:00:00",
        "guid": {"rendered": f"https://example.com/?p={post_id}"},
        "slug": f"post-number-{post_id}",
        "link": f"https://example.com/post-number-{post_id}/",
        "title": {"rendered": f"Post number {post_id}"},
        "content": {"rendered": f"<p>Body of post {post_id}</p>", "protected": False},
        "excerpt": {"rendered": f"<p>Excerpt {post_id}</p>", "protected": False},
        "categories": [CATEGORY_IDS[cat_idx]],
        "tags": [TAG_IDS[i] for i in tag_idx],
        "class_list": [
            f"post-{post_id}",
            "type-post",
            "status-publish",
            "format-standard",
            "hentry",
            f"category-{CATEGORY_WORDS[cat_idx]}",
            *(f"tag-{TAG_WORDS[i]}" for i in tag_idx),
        ],
    }


def make_records(first: int, last: int) -> list[dict[str, Any]]:
    """Records with ids ``first..last`` inclusive."""
    return [make_record(post_id) for post_id in range(first, last + 1)]


class FakeSite:
    """In-memory WordPress posts collection behind an httpx mock transport.

    Pages are served in the order the request asks for (``orderby=id``,
    ``order=asc|desc``). Every response carries the totals headers unless
    ``omit_totals`` is set; ``reported_totals`` overrides what the headers
    claim, simulating an index that lags behind the totals.
    """

    def __init__(self, records: Optional[list[dict[str, Any]]] = None) -> None:
        self.records: list[dict[str, Any]] = list(records or [])
        self.omit_totals = False
        self.reported_totals: Optional[tuple[int, int]] = None
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self.handler)

    def publish(self, records: list[dict[str, Any]]) -> None:
        self.records.extend(records)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        params = request.url.params
        page = int(params.get("page", "1"))
        per_page = int(params.get("per_page", "10"))
        ordered = sorted(self.records, key=lambda r: r["id"], reverse=params.get("order") == "desc")

        total = len(ordered)
        total_pages = math.ceil(total / per_page)
        headers = {}
        if not self.omit_totals:
            reported = self.reported_totals or (total, total_pages)
            headers = {"X-WP-Total": str(reported[0]), "X-WP-TotalPages": str(reported[1])}

        if page > max(total_pages, 1):
            return httpx.Response(
                400,
                headers=headers,
                json={"code": "rest_post_invalid_page_number", "data": {"status": 400}},
            )
        start = (page - 1) * per_page
        return httpx.Response(200, headers=headers, json=ordered[start:start + per_page])

    def requested_pages(self) -> list[int]:
        return sorted(int(r.url.params.get("page", "1")) for r in self.requests)


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams the
    cached references go stale once the test finishes.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Replica fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def replica_records() -> list[dict[str, Any]]:
    """100 posts using 24 distinct tags and 32 distinct categories."""
    return make_records(1, 100)


@pytest.fixture
def replica_path(tmp_path: Path, replica_records: list[dict[str, Any]]) -> Path:
    """The synthetic replica written as pretty-printed JSON."""
    path = tmp_path / "posts.json"
    path.write_text(json.dumps(replica_records, indent=2), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Remote site fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def site() -> SiteInfo:
    return SiteInfo(domain="example.com", user="editor", app_password="abcd efgh ijkl")


@pytest.fixture
def fake_site(replica_records: list[dict[str, Any]]) -> FakeSite:
    """A fake remote holding the same 100 posts as the synthetic replica."""
    return FakeSite(replica_records)


@pytest.fixture
def fast_sync() -> SyncConfig:
    """Sync settings without back-off delays."""
    return SyncConfig(retry_delay=0, shutdown_timeout=10)


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path,
    clears all PRESSCACHE_* environment variables and changes the working
    directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setattr("presscache.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "PRESSCACHE_PROFILE",
        "PRESSCACHE_SITE",
        "PRESSCACHE_USER",
        "PRESSCACHE_APP_PASSWORD",
        "PRESSCACHE_CACHE_PATH",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    """Install a PLAIN-format, quiet OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def json_output() -> OutputManager:
    """Install a JSON-format OutputManager as the global output."""
    output = OutputManager(format=OutputFormat.JSON, no_color=True)
    set_output(output)
    yield output
    reset_output()


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()
