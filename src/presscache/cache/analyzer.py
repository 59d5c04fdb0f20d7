"""Offline queries over a loaded replica.

:class:`CacheAnalyzer` reads the replica once into an immutable tuple and
answers every question from memory. It never writes, never touches the
network, and keeps no mutable state after :meth:`CacheAnalyzer.load`, so one
instance can be shared between threads. A sync that happens later is only
visible after another :meth:`~CacheAnalyzer.load`.

Fields are addressed through :class:`~presscache.schema.SchemaKey` objects,
so custom fields work the same way as the built-in
:class:`~presscache.schema.CacheKey` members.

Class lists
-----------

WordPress adds a ``class_list`` array to every post::

    "class_list": ["post-7", "type-post", "status-publish",
                   "category-news", "tag-python", "tag-web-dev"]

The ``tag-`` and ``category-`` tokens carry the same taxonomy as the
numeric ``tags`` / ``categories`` arrays. :meth:`CacheAnalyzer.map_class_ids`
pairs the two *by position* within each record. Nothing in the REST API
promises that the two arrays are in the same order; check a few pairs
against ``/wp-json/wp/v2/tags`` before relying on the mapping.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
from typing import Any, Optional, Union

from presscache.exceptions import CacheFileSystemError
from presscache.models import CacheKeySnapshot, ClassGroup, ClassMapping, Record
from presscache.output import get_output
from presscache.schema import (
    CacheKey,
    CacheSubKey,
    SchemaKey,
    TaxonomyMarker,
    TaxonomyValues,
)

_NON_ALPHANUMERIC_RE = re.compile(r"[^a-zA-Z0-9]+")

ClassFilter = Union[Callable[[str], bool], SchemaKey]


def identity(value: Any) -> Any:
    """Pass-through transform; skips class token cleaning."""
    return value


def clean_class_token(token: str, marker: Optional[SchemaKey] = None) -> str:
    """Turn a class token into a readable label.

    Strips a leading ``<marker>-`` and turns every run of non-alphanumeric
    characters into one space::

        >>> clean_class_token("tag-web-dev", TaxonomyMarker.TAG)
        'web dev'
    """
    if marker is not None:
        prefix = f"{marker.key()}-"
        if token.startswith(prefix):
            token = token[len(prefix):]
    return _NON_ALPHANUMERIC_RE.sub(" ", token).strip()


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class CacheAnalyzer:
    """Read-only query engine over a replica file.

    Args:
        path: Replica to load right away. Without it the analyzer starts
            empty until :meth:`load` is called.

    Example::

        analyzer = CacheAnalyzer("~/wp/posts.json")
        analyzer.post_count()
        analyzer.tags()
    """

    def __init__(self, path: Optional[str | Path] = None) -> None:
        self._records: tuple[Record, ...] = ()
        self._path: Optional[Path] = None
        if path is not None:
            self.load(path)

    @property
    def path(self) -> Optional[Path]:
        return self._path

    @property
    def records(self) -> tuple[Record, ...]:
        return self._records

    def load(self, path: str | Path) -> None:
        """Load (or reload) the replica at *path*.

        Raises:
            CacheFileSystemError: If the file is missing, unreadable, or not
                a JSON array.
        """
        replica = Path(path).expanduser()
        if not replica.is_file():
            raise CacheFileSystemError(f"Cache file does not exist at {replica}")
        try:
            data = json.loads(replica.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise CacheFileSystemError(f"Failed to read cache file {replica}: {exc}") from exc
        if not isinstance(data, list):
            raise CacheFileSystemError(f"Cache file {replica} is not a JSON array")
        self._records = tuple(record for record in data if isinstance(record, dict))
        self._path = replica
        get_output().debug(f"Loaded {len(self._records)} record(s) from {replica}")

    # ------------------------------------------------------------------ #
    # Projections
    # ------------------------------------------------------------------ #

    def values(self, key: SchemaKey) -> Iterator[Any]:
        """Values of *key* from every record that has it."""
        name = key.key()
        return (record[name] for record in self._records if name in record)

    def arrays(self, key: SchemaKey) -> Iterator[list[Any]]:
        """Values of *key* that are JSON arrays."""
        return (value for value in self.values(key) if isinstance(value, list))

    def value_set(self, key: SchemaKey, transform: Callable[[Any], Any] = identity) -> set[Any]:
        """Distinct transformed values of *key*. *transform* must return hashables."""
        return {transform(value) for value in self.values(key)}

    def key_count(self, key: SchemaKey) -> int:
        """Number of records that carry *key*."""
        return sum(1 for _ in self.values(key))

    def class_value_count(self, class_value: SchemaKey) -> int:
        """Distinct term ids across every record's *class_value* array."""
        ids = {_as_int(item) for array in self.arrays(class_value) for item in array}
        ids.discard(None)
        return len(ids)

    # ------------------------------------------------------------------ #
    # Snapshots
    # ------------------------------------------------------------------ #

    def snapshots(
        self,
        transform: Callable[[Any], Any],
        cache_key: SchemaKey,
        *sub_keys: SchemaKey,
    ) -> list[CacheKeySnapshot]:
        """One snapshot per record whose *cache_key* holds an object.

        Each snapshot has an entry for every requested sub-key: the
        transformed value, or ``None`` when the record lacks it.
        """
        snapshots = []
        for value in self.values(cache_key):
            if not isinstance(value, dict):
                continue
            picked = {
                sub.key(): transform(value[sub.key()]) if sub.key() in value else None
                for sub in sub_keys
            }
            snapshots.append(CacheKeySnapshot(cache_key=cache_key.key(), values=picked))
        return snapshots

    def contents(self) -> list[CacheKeySnapshot]:
        return self.snapshots(
            identity, CacheKey.CONTENT, CacheSubKey.RENDERED, CacheSubKey.PROTECTED
        )

    def excerpts(self) -> list[CacheKeySnapshot]:
        return self.snapshots(
            identity, CacheKey.EXCERPT, CacheSubKey.RENDERED, CacheSubKey.PROTECTED
        )

    def guids(self) -> list[CacheKeySnapshot]:
        return self.snapshots(identity, CacheKey.GUID, CacheSubKey.RENDERED)

    # ------------------------------------------------------------------ #
    # Counts and sets
    # ------------------------------------------------------------------ #

    def tag_count(self) -> int:
        return self.class_value_count(TaxonomyValues.TAGS)

    def category_count(self) -> int:
        return self.class_value_count(TaxonomyValues.CATEGORIES)

    def post_count(self) -> int:
        return self.key_count(CacheKey.ID)

    def slug_count(self) -> int:
        return self.key_count(CacheKey.SLUG)

    def slugs(self) -> set[str]:
        return self.value_set(CacheKey.SLUG, str)

    def links(self) -> set[str]:
        return self.value_set(CacheKey.LINK, str)

    def tags(self) -> set[str]:
        """Cleaned labels of every ``tag-`` class token."""
        return {
            clean_class_token(token, TaxonomyMarker.TAG)
            for token in self.class_list(TaxonomyMarker.TAG)
        }

    def categories(self) -> set[str]:
        """Cleaned labels of every ``category-`` class token."""
        return {
            clean_class_token(token, TaxonomyMarker.CATEGORY)
            for token in self.class_list(TaxonomyMarker.CATEGORY)
        }

    # ------------------------------------------------------------------ #
    # Class lists
    # ------------------------------------------------------------------ #

    def class_list(self, selector: ClassFilter) -> Iterator[str]:
        """Class tokens of all records that pass *selector*.

        *selector* is either a predicate over the token or a marker; a
        marker selects the tokens that contain its key.
        """
        accepts = self._token_filter(selector)
        return (token for tokens in self._class_lists() for token in tokens if accepts(token))

    def map_class_ids(
        self,
        transform: Callable[[str], str],
        marker: SchemaKey,
        class_value: SchemaKey,
    ) -> set[ClassMapping]:
        """Pair marker tokens with term ids, position by position, per record.

        Within each record the ``n``-th token containing *marker* is paired
        with the ``n``-th id of *class_value*. The shorter list decides how
        many pairs a record contributes. See the module notes on ordering.
        """
        mappings: set[ClassMapping] = set()
        for record in self._records:
            mappings.update(self._record_mappings(record, transform, marker, class_value))
        return mappings

    def group_class_list_by_id(
        self,
        transform: Callable[[str], Any] = identity,
        marker: Optional[SchemaKey] = None,
    ) -> list[ClassGroup]:
        """One group per record that has an id and a class list.

        Tokens are narrowed to *marker* when one is given, then transformed.
        """
        accepts = self._token_filter(marker) if marker is not None else None
        groups = []
        for record in self._records:
            record_id = _as_int(record.get(CacheKey.ID.key()))
            tokens = record.get(CacheKey.CLASS_LIST.key())
            if record_id is None or not isinstance(tokens, list):
                continue
            values = frozenset(
                transform(token)
                for token in tokens
                if isinstance(token, str) and (accepts is None or accepts(token))
            )
            groups.append(ClassGroup(record_id=record_id, values=values))
        return groups

    def group_mappings_by_id(
        self,
        marker: SchemaKey,
        class_value: SchemaKey,
        transform: Optional[Callable[[str], str]] = None,
    ) -> list[ClassGroup]:
        """Like :meth:`group_class_list_by_id`, with :class:`ClassMapping` values.

        *transform* defaults to :func:`clean_class_token` for *marker*.
        """
        if transform is None:
            transform = lambda token: clean_class_token(token, marker)  # noqa: E731
        groups = []
        for record in self._records:
            record_id = _as_int(record.get(CacheKey.ID.key()))
            if record_id is None or not isinstance(record.get(CacheKey.CLASS_LIST.key()), list):
                continue
            mappings = self._record_mappings(record, transform, marker, class_value)
            groups.append(ClassGroup(record_id=record_id, values=frozenset(mappings)))
        return groups

    # ------------------------------------------------------------------ #
    # Term frequency
    # ------------------------------------------------------------------ #

    def term_frequency_by_class_value(
        self, class_value: SchemaKey, mapping: ClassMapping
    ) -> int:
        """How often ``mapping.term_id`` appears across the *class_value* arrays."""
        return sum(
            1
            for array in self.arrays(class_value)
            for item in array
            if _as_int(item) == mapping.term_id
        )

    def term_frequency_by_marker(
        self, marker: SchemaKey, mapping: ClassMapping, partial: bool = False
    ) -> int:
        """How often ``mapping.label`` appears among the *marker* class tokens.

        Tokens are compared raw (not cleaned): equal to the label, or
        containing it when *partial* is set.
        """
        label = mapping.label
        if partial:
            return sum(1 for token in self.class_list(marker) if label in token)
        return sum(1 for token in self.class_list(marker) if token == label)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _class_lists(self) -> Iterator[list[str]]:
        for tokens in self.arrays(CacheKey.CLASS_LIST):
            yield [token for token in tokens if isinstance(token, str)]

    @staticmethod
    def _token_filter(selector: ClassFilter) -> Callable[[str], bool]:
        if isinstance(selector, SchemaKey):
            needle = selector.key()
            return lambda token: needle in token
        return selector

    def _record_mappings(
        self,
        record: Record,
        transform: Callable[[str], str],
        marker: SchemaKey,
        class_value: SchemaKey,
    ) -> Iterable[ClassMapping]:
        tokens = record.get(CacheKey.CLASS_LIST.key())
        ids = record.get(class_value.key())
        if not isinstance(tokens, list) or not isinstance(ids, list):
            return []
        needle = marker.key()
        labels = [transform(t) for t in tokens if isinstance(t, str) and needle in t]
        term_ids = [_as_int(item) for item in ids]
        return [
            ClassMapping(label=label, term_id=term_id)
            for label, term_id in zip(labels, term_ids)
            if term_id is not None
        ]
