"""Exception hierarchy for presscache.

All exceptions inherit from :class:`PresscacheError`, which carries an
``exit_code`` attribute mapped to a constant from
:mod:`presscache.exit_codes`. The CLI entry point in
:func:`presscache.app.main` catches ``PresscacheError`` and exits with the
matching code, while unexpected exceptions produce a crash log.

Per-link fetch failures never surface as exceptions; they are logged and the
batch carries on. Everything below is fatal for the operation that raised it.

Subclass hierarchy::

    PresscacheError (exit 1)
    +-- ConfigError              (exit 1)
    +-- CacheConstructionError   (exit 3)
    +-- CacheFileSystemError     (exit 4)
    +-- CacheMetadataError       (exit 5)
    |   +-- CacheDivergenceError (exit 5)
    +-- InvalidApiUrlError       (exit 6)
"""

from presscache.exit_codes import (
    EXIT_CONSTRUCTION_ERROR,
    EXIT_FILESYSTEM_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_URL,
    EXIT_METADATA_ERROR,
)


class PresscacheError(Exception):
    """Base exception for all presscache errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigError(PresscacheError):
    """Raised for configuration problems (missing profiles, invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE


class CacheConstructionError(PresscacheError):
    """Raised when an initial replica cannot be established.

    Covers an unreachable site during the first metadata probe, a target
    file that already exists without ``overwrite``, and paths that cannot
    be created.
    """

    exit_code = EXIT_CONSTRUCTION_ERROR


class CacheFileSystemError(PresscacheError):
    """Raised when the replica file is missing, unreadable, or cannot be written."""

    exit_code = EXIT_FILESYSTEM_ERROR


class CacheMetadataError(PresscacheError):
    """Raised when the remote totals are unobtainable or malformed.

    The usual cause is a proxy or security plugin stripping the
    ``X-WP-Total`` / ``X-WP-TotalPages`` response headers.
    """

    exit_code = EXIT_METADATA_ERROR


class CacheDivergenceError(CacheMetadataError):
    """Raised when the site reports fewer records than the last sync saw.

    Deleted posts cannot be located by an incremental sync; the replica has
    to be rebuilt with ``build_cache(overwrite=True)``.
    """


class InvalidApiUrlError(PresscacheError):
    """Raised when a request URL cannot be built from the configured site."""

    exit_code = EXIT_INVALID_URL
