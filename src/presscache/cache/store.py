"""On-disk replica and its metadata sidecar.

A replica is two files in the same directory::

    posts.json            # pretty-printed JSON array of post objects
    posts_metadata.json   # {"totalPages": .., "totalRecords": .., "lastUpdated": ..}

:class:`CacheStore` owns both. Writes go through
:func:`~presscache.config.atomic_write`, so a failed or interrupted write
leaves the previous file in place. Every store for the same replica path
shares one re-entrant lock (see :func:`replica_lock`); the sync engine holds
it for the whole of a build or sync, and the store takes it again around
each individual write.

Readers do not lock. The analyzer loads its own copy and never touches the
live file again.
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from presscache.config import atomic_write
from presscache.exceptions import (
    CacheConstructionError,
    CacheFileSystemError,
    CacheMetadataError,
)
from presscache.models import CacheMeta, Record
from presscache.output import get_output

_registry_lock = threading.Lock()
_replica_locks: dict[Path, threading.RLock] = {}


def replica_lock(cache_path: str | Path) -> threading.RLock:
    """Process-wide lock guarding writes to *cache_path* and its sidecar."""
    key = Path(cache_path).expanduser().resolve()
    with _registry_lock:
        lock = _replica_locks.get(key)
        if lock is None:
            lock = threading.RLock()
            _replica_locks[key] = lock
        return lock


def meta_path_for(cache_path: str | Path) -> Path:
    """``<dir>/<name without extension>_metadata.json`` for a replica path."""
    path = Path(cache_path)
    return path.with_name(f"{path.stem}_metadata.json")


class CacheStore:
    """Read and write one replica and its metadata sidecar.

    Args:
        cache_path: Location of the replica JSON file. ``~`` is expanded.
    """

    def __init__(self, cache_path: str | Path) -> None:
        self._path = Path(cache_path).expanduser()
        self._meta_path = meta_path_for(self._path)
        self._lock = replica_lock(self._path)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def meta_path(self) -> Path:
        return self._meta_path

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def exists(self) -> bool:
        return self._path.is_file()

    # ------------------------------------------------------------------ #
    # Metadata sidecar
    # ------------------------------------------------------------------ #

    def load_meta(self) -> Optional[CacheMeta]:
        """Return the stored metadata, or ``None`` when there is no sidecar.

        Raises:
            CacheMetadataError: If the sidecar exists but cannot be parsed.
        """
        if not self._meta_path.is_file():
            return None
        get_output().debug(f"Loading cache metadata from: {self._meta_path}")
        try:
            data = json.loads(self._meta_path.read_text(encoding="utf-8"))
            return CacheMeta.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise CacheMetadataError(
                f"Invalid cache metadata at {self._meta_path}: {exc}"
            ) from exc

    def save_meta(self, meta: CacheMeta, overwrite: bool = True) -> bool:
        """Persist *meta*; returns whether the sidecar was written.

        An existing sidecar is only replaced when *overwrite* is set.

        Raises:
            CacheFileSystemError: If the sidecar cannot be written.
        """
        existed = self._meta_path.is_file()
        if existed and not overwrite:
            return False
        payload = json.dumps(meta.model_dump(mode="json", by_alias=True), indent=2) + "\n"
        with self._lock:
            try:
                atomic_write(self._meta_path, payload)
            except OSError as exc:
                raise CacheFileSystemError(
                    f"Failed to write cache metadata {self._meta_path}: {exc}"
                ) from exc
        get_output().debug(
            "Replaced cache metadata file" if existed else "Successfully created cache metadata."
        )
        return True

    # ------------------------------------------------------------------ #
    # Replica
    # ------------------------------------------------------------------ #

    def read(self) -> list[Record]:
        """Load the replica array.

        Raises:
            CacheFileSystemError: If the file is missing, unreadable, or not
                a JSON array.
        """
        if not self._path.is_file():
            raise CacheFileSystemError(f"Cache file does not exist at {self._path}")
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise CacheFileSystemError(f"Failed to read cache file {self._path}: {exc}") from exc
        if not isinstance(data, list):
            raise CacheFileSystemError(
                f"Cache file {self._path} holds a JSON {type(data).__name__}, expected an array"
            )
        return data

    def write(self, records: list[Record], overwrite: bool) -> None:
        """Persist *records* as the replica.

        Raises:
            CacheConstructionError: If the file exists and *overwrite* is false.
            CacheFileSystemError: If the file cannot be written; the previous
                replica is left untouched.
        """
        payload = json.dumps(records, indent=2, ensure_ascii=False) + "\n"
        with self._lock:
            if self.exists() and not overwrite:
                raise CacheConstructionError(
                    f"Cache file already exists at {self._path}; pass overwrite to replace it"
                )
            try:
                atomic_write(self._path, payload)
            except OSError as exc:
                raise CacheFileSystemError(
                    f"Failed to write cache file {self._path}: {exc}"
                ) from exc
