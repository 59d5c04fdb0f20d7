"""Cache commands -- build, sync, and query the replica of the active site.

``build`` and ``sync`` talk to the site; ``stats``, ``tags`` and
``categories`` only read the local replica and work offline. All of them
act on the profile chosen with ``--profile`` (or the default profile, see
:func:`~presscache.config.resolve_config`).
"""

from __future__ import annotations

from pathlib import Path

import typer

from presscache.cache.analyzer import CacheAnalyzer
from presscache.cache.manager import CacheManager
from presscache.exceptions import ConfigError
from presscache.models import GlobalConfig, SiteProfile
from presscache.output import (
    OutputFormat,
    format_response,
    get_output,
    info,
    print_table,
    success,
)


def _active_profile(ctx: typer.Context) -> tuple[GlobalConfig, SiteProfile]:
    """Resolve the profile the command runs against.

    Raises:
        ConfigError: If no profile is configured.
    """
    from presscache.config import resolve_config

    cli_profile = ctx.obj.get("profile") if ctx.obj else None
    config, profile = resolve_config(cli_profile=cli_profile)
    if profile is None:
        raise ConfigError(
            "No site profile configured. Create one with 'presscache profile add' "
            "or set PRESSCACHE_SITE, PRESSCACHE_USER and PRESSCACHE_APP_PASSWORD."
        )
    return config, profile


def _manager(ctx: typer.Context) -> CacheManager:
    from presscache.config import effective_sync_config, site_info_for

    config, profile = _active_profile(ctx)
    return CacheManager(
        site_info_for(profile),
        profile.cache_path,
        request=profile.request,
        sync_config=effective_sync_config(config, profile),
    )


def _analyzer(ctx: typer.Context) -> CacheAnalyzer:
    _, profile = _active_profile(ctx)
    return CacheAnalyzer(Path(profile.cache_path))


def build_command(
    ctx: typer.Context,
    overwrite: bool = typer.Option(
        False, "--overwrite", help="Replace an existing replica."
    ),
    insecure: bool = typer.Option(
        False, "--insecure", help="Fall back to plain HTTP when TLS fails (local sites only)."
    ),
) -> None:
    """Fetch every post of the site into a fresh replica.

    Example::

        presscache build
        presscache -p blog build --overwrite
    """
    manager = _manager(ctx)
    manager.build_cache(overwrite=overwrite, ignore_tls_errors=insecure)


def sync_command(
    ctx: typer.Context,
    insecure: bool = typer.Option(
        False, "--insecure", help="Fall back to plain HTTP when TLS fails (local sites only)."
    ),
) -> None:
    """Append posts published since the last build or sync.

    Prints ``updated`` or ``current`` on stdout (``{"updated": ...}`` with
    ``--json``).
    """
    manager = _manager(ctx)
    updated = manager.sync(ignore_tls_errors=insecure)
    output = get_output()
    if output.format == OutputFormat.JSON:
        format_response({"updated": updated})
    else:
        output.print_data("updated" if updated else "current")


def stats_command(ctx: typer.Context) -> None:
    """Show record, slug and taxonomy counts of the replica."""
    from presscache.cache.store import CacheStore

    _, profile = _active_profile(ctx)
    analyzer = CacheAnalyzer(Path(profile.cache_path))
    meta = CacheStore(profile.cache_path).load_meta()

    stats = {
        "posts": analyzer.post_count(),
        "slugs": analyzer.slug_count(),
        "tags": analyzer.tag_count(),
        "categories": analyzer.category_count(),
        "remote_records": meta.total_records if meta else None,
        "remote_pages": meta.total_pages if meta else None,
        "last_updated": meta.last_updated.isoformat() if meta and meta.last_updated else None,
    }
    info(f"Replica: {analyzer.path}")
    if get_output().format == OutputFormat.JSON:
        format_response(stats)
    else:
        rows = [[name, "" if value is None else str(value)] for name, value in stats.items()]
        print_table(["Metric", "Value"], rows, title=f"Replica of {profile.domain}")


def tags_command(
    ctx: typer.Context,
    ids: bool = typer.Option(
        False, "--ids", help="Pair each tag with its term id (positional, best effort)."
    ),
) -> None:
    """List the distinct tags found in the replica's class lists."""
    _list_taxonomy(ctx, "tag", ids)


def categories_command(
    ctx: typer.Context,
    ids: bool = typer.Option(
        False, "--ids", help="Pair each category with its term id (positional, best effort)."
    ),
) -> None:
    """List the distinct categories found in the replica's class lists."""
    _list_taxonomy(ctx, "category", ids)


def _list_taxonomy(ctx: typer.Context, kind: str, with_ids: bool) -> None:
    from presscache.cache.analyzer import clean_class_token
    from presscache.models import ClassMapping
    from presscache.schema import TaxonomyMarker, TaxonomyValues

    analyzer = _analyzer(ctx)
    marker = TaxonomyMarker.TAG if kind == "tag" else TaxonomyMarker.CATEGORY
    values = TaxonomyValues.TAGS if kind == "tag" else TaxonomyValues.CATEGORIES

    if not with_ids:
        labels = sorted(analyzer.tags() if kind == "tag" else analyzer.categories())
        format_response(labels)
        return

    mappings: set[ClassMapping] = analyzer.map_class_ids(
        lambda token: clean_class_token(token, marker), marker, values
    )
    ordered = sorted(mappings, key=lambda m: (m.label, m.term_id))
    print_table(
        ["Label", "Term ID"],
        [[m.label, str(m.term_id)] for m in ordered],
        title=f"{kind.capitalize()} mappings",
    )
    success(f"{len(ClassMapping.term_ids(ordered))} distinct term id(s)")

