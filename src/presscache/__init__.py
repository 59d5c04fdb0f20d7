"""presscache -- keep a local JSON replica of a WordPress post collection.

The package mirrors the ``/wp-json/wp/v2/posts`` collection of a site into a
single pretty-printed JSON file, keeps it current with cheap incremental
syncs, and answers questions about it offline.

Typical workflow::

    from presscache import CacheManager, SiteInfo

    manager = CacheManager(SiteInfo(domain="example.com", user="me",
                                    app_password="xxxx"), "posts.json")
    manager.build_cache(overwrite=True)   # first full pull
    manager.sync()                        # later, fetch only what is new
    analyzer = manager.analyzer()
    analyzer.tag_count()

Modules:
    cache: Sync engine, on-disk store, and offline analyzer.
    client: URL building, the metadata probe client, and the link fetcher.
    models: Pydantic models shared across the package.
    schema: Extensible record key sets (fields, sub-fields, taxonomy markers).
    config: XDG-aware configuration and site profile management.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"

from presscache.cache.analyzer import CacheAnalyzer  # noqa: E402
from presscache.cache.manager import CacheManager  # noqa: E402
from presscache.models import CacheMeta, SiteInfo  # noqa: E402

__all__ = ["CacheAnalyzer", "CacheManager", "CacheMeta", "SiteInfo", "__version__"]
