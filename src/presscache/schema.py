"""Extensible key sets describing the shape of a cached post.

Every lookup the analyzer performs is keyed by an object that satisfies the
:class:`SchemaKey` protocol: it has a ``key()`` method returning the JSON
field name. The enums in this module are the default, closed sets of keys
for a stock WordPress posts collection:

* :class:`CacheKey` -- top-level record fields (``id``, ``slug``, ...).
* :class:`CacheSubKey` -- fields inside nested objects (``rendered``, ...).
* :class:`TaxonomyMarker` -- prefixes used in ``class_list`` tokens.
* :class:`TaxonomyValues` -- numeric term-id array fields.
* :class:`QueryParam` / :class:`RestPath` -- request URL building blocks.

Sites with custom post fields do not subclass these enums. Anything with a
``key()`` method works::

    @dataclass(frozen=True)
    class CustomField:
        name: str

        def key(self) -> str:
            return self.name

    analyzer.value_set(CustomField("acf"))
"""

from __future__ import annotations

import enum
from typing import Protocol, runtime_checkable


@runtime_checkable
class SchemaKey(Protocol):
    """Anything that names a JSON field."""

    def key(self) -> str: ...


class _KeyEnum(str, enum.Enum):
    """Common base for the default key sets: ``key()`` is the enum value."""

    def key(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


class CacheKey(_KeyEnum):
    """Top-level fields of a post record."""

    ID = "id"
    SLUG = "slug"
    TITLE = "title"
    LINK = "link"
    GUID = "guid"
    DATE = "date"
    DATE_GMT = "date_gmt"
    CONTENT = "content"
    CLASS_LIST = "class_list"
    EXCERPT = "excerpt"


class CacheSubKey(_KeyEnum):
    """Fields inside the nested ``title`` / ``content`` / ``excerpt`` / ``guid`` objects."""

    RENDERED = "rendered"
    PROTECTED = "protected"


class TaxonomyMarker(_KeyEnum):
    """Prefixes of ``class_list`` tokens, e.g. ``tag-python`` or ``category-news``."""

    TAG = "tag"
    CATEGORY = "category"
    POST = "post"
    TYPE = "type"
    STATUS = "status"


class TaxonomyValues(_KeyEnum):
    """Array fields holding numeric term ids."""

    CATEGORIES = "categories"
    TAGS = "tags"


class QueryParam(_KeyEnum):
    """Query-string parameters understood by the collection endpoint."""

    PAGE = "page"
    PER_PAGE = "per_page"
    ORDER = "order"
    ORDER_BY = "orderby"
    TIMESTAMP = "_t"


class RestPath(_KeyEnum):
    """Collection paths below ``/wp-json/wp/v2``."""

    POSTS = "/posts"
    PAGES = "/pages"
    MEDIA = "/media"
    TAGS = "/tags"
    CATEGORIES = "/categories"


# Header names reporting the collection totals for the current page size.
TOTAL_RECORDS_HEADER = "x-wp-total"
TOTAL_PAGES_HEADER = "x-wp-totalpages"
