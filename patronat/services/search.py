"""Substring search over small in-memory collections.

Collections here hold tens to a few hundred documents, so a linear scan over
the configured fields is enough.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Iterable, Sequence

from patronat.services.store import get_field

DEFAULT_SEARCH_FIELDS = ('name', 'description')
DEFAULT_DEBOUNCE_SECONDS = 0.3

# Search configuration per listable collection
SEARCH_CONFIG: dict[str, dict[str, Sequence[str]]] = {
    'partners': {'fields': ('name', 'lastName', 'email', 'dni', 'phone'), 'arrays': ()},
    'games': {'fields': ('name', 'description', 'location', 'season', 'status'), 'arrays': ()},
    'crews': {'fields': ('title', 'season', 'status'), 'arrays': ('membersNames',)},
    'events': {'fields': ('title', 'description', 'location', 'category', 'status'), 'arrays': ('tags',)},
    'collaborators': {'fields': ('name', 'url'), 'arrays': ()},
    'participants': {'fields': ('name', 'url'), 'arrays': ()},
    'uploads': {'fields': ('name', 'description', 'category'), 'arrays': ('tags',)},
    'users': {'fields': ('displayName', 'email', 'role'), 'arrays': ()},
    'seasons': {'fields': ('seasonYear',), 'arrays': ()},
}


def _as_text(value: Any, case_sensitive: bool) -> str:
    text = '' if value is None else str(value)
    return text if case_sensitive else text.lower()


def matches(item: dict, query: str, search_fields: Sequence[str] = DEFAULT_SEARCH_FIELDS,
            array_fields: Sequence[str] = (), case_sensitive: bool = False) -> bool:
    needle = _as_text(query.strip(), case_sensitive)
    if not needle:
        return True
    for field in search_fields:
        if needle in _as_text(get_field(item, field), case_sensitive):
            return True
    for field in array_fields:
        values = get_field(item, field) or []
        if isinstance(values, (list, tuple)) and any(needle in _as_text(v, case_sensitive) for v in values):
            return True
    return False


def filter_items(
    items: Iterable[dict],
    query: str | None,
    search_fields: Sequence[str] = DEFAULT_SEARCH_FIELDS,
    array_fields: Sequence[str] = (),
    case_sensitive: bool = False,
    custom: Callable[[dict, str], bool] | None = None,
) -> list[dict]:
    """
    Keep the items whose configured fields contain ``query``.

    Args:
        items: Documents as dictionaries
        query: Free text; blank returns every item
        search_fields: Scalar fields (dotted paths allowed)
        array_fields: List fields matched element by element
        case_sensitive: Match case exactly when True
        custom: Optional predicate replacing the field match
    """
    items = list(items)
    if not query or not query.strip():
        return items
    if custom is not None:
        return [item for item in items if custom(item, query)]
    return [item for item in items if matches(item, query, search_fields, array_fields, case_sensitive)]


def search_collection(name: str, items: Iterable[dict], query: str | None) -> list[dict]:
    """Filter items using the configuration registered for collection ``name``."""
    config = SEARCH_CONFIG.get(name, {'fields': DEFAULT_SEARCH_FIELDS, 'arrays': ()})
    return filter_items(items, query, config['fields'], config['arrays'])


class SearchFilter:
    """Holds a collection and a debounced query over it.

    ``set_query`` records the query; it only takes effect once ``debounce``
    seconds pass without another change.
    """

    def __init__(
        self,
        items: Iterable[dict] = (),
        search_fields: Sequence[str] = DEFAULT_SEARCH_FIELDS,
        array_fields: Sequence[str] = (),
        debounce: float = DEFAULT_DEBOUNCE_SECONDS,
        case_sensitive: bool = False,
        custom: Callable[[dict, str], bool] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.items = list(items)
        self.search_fields = tuple(search_fields)
        self.array_fields = tuple(array_fields)
        self.debounce = debounce
        self.case_sensitive = case_sensitive
        self.custom = custom
        self._clock = clock
        self._query = ''
        self._pending: str | None = None
        self._pending_since = 0.0

    def set_items(self, items: Iterable[dict]) -> None:
        self.items = list(items)

    def set_query(self, query: str) -> None:
        self._pending = query or ''
        self._pending_since = self._clock()

    @property
    def query(self) -> str:
        """The settled query currently applied."""
        if self._pending is not None and self._clock() - self._pending_since >= self.debounce:
            self._query = self._pending
            self._pending = None
        return self._query

    @property
    def filtered_items(self) -> list[dict]:
        return filter_items(
            self.items,
            self.query,
            self.search_fields,
            self.array_fields,
            self.case_sensitive,
            self.custom,
        )


__all__ = [
    'SEARCH_CONFIG',
    'SearchFilter',
    'filter_items',
    'matches',
    'search_collection',
]
