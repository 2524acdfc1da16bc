"""Memoized, sorted lists of effectively visible child ids.

Entries are keyed by ``(namespace, parent id, sort)`` where the namespace is
the visibility fingerprint of the principal, so two principals only share an
entry when they see exactly the same categories. Entries are never partially
invalidated; they live as long as the configured cache backend keeps them.
"""

from __future__ import annotations

import threading
from typing import (
    TYPE_CHECKING,
    Any,
    Dict,
    Iterable,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Union,
)

from cachetools import LRUCache, TTLCache
from flask import Flask, current_app

from ..constants import DEFAULT_CACHE_MAXSIZE, SORTABLE_FIELDS
from ..errors import InvalidSort

if TYPE_CHECKING:  # pragma: no cover - imported for annotations only
    from ..models import Category
    from .compactor import TreeCompactor


ASC = 1
DESC = -1

_DIRECTIONS = {"asc": ASC, "1": ASC, "desc": DESC, "-1": DESC}


def _direction(name: str, value: Any) -> int:
    if isinstance(value, str) and value.strip().lower() in _DIRECTIONS:
        return _DIRECTIONS[value.strip().lower()]
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise InvalidSort(f"{name}:{value}") from None
    return DESC if number < 0 else ASC


class SortSpec:
    """Ordered ``(field, direction)`` pairs describing a child ordering."""

    __slots__ = ("fields",)

    def __init__(self, fields: Sequence[Tuple[str, int]]) -> None:
        if not fields:
            raise ValueError("a sort needs at least one field")
        normalized: List[Tuple[str, int]] = []
        for name, direction in fields:
            if name not in SORTABLE_FIELDS:
                raise InvalidSort(name)
            normalized.append((name, _direction(name, direction)))
        self.fields: Tuple[Tuple[str, int], ...] = tuple(normalized)

    @classmethod
    def parse(cls, value: Union[None, str, Mapping[str, int], Sequence[Tuple[str, int]], "SortSpec"]) -> "SortSpec":
        """Build a sort from ``None``, ``"name:desc,id"``, ``{"name": -1}``, ``{"name": "desc"}`` or pairs."""

        if isinstance(value, SortSpec):
            return value
        if not value:
            return DEFAULT_SORT
        if isinstance(value, str):
            pairs = []
            for chunk in value.split(","):
                chunk = chunk.strip()
                if not chunk:
                    continue
                name, _, direction = chunk.partition(":")
                direction = direction.strip().lower() or "asc"
                if direction not in _DIRECTIONS:
                    raise InvalidSort(chunk)
                pairs.append((name.strip(), _DIRECTIONS[direction]))
            return cls(pairs) if pairs else DEFAULT_SORT
        if isinstance(value, Mapping):
            return cls(list(value.items()))
        return cls(list(value))

    @property
    def is_natural(self) -> bool:
        """Whether the store's natural order already satisfies this sort.

        ``sortorder`` is distinct among siblings, so any further keys never
        change the order once it leads.
        """
        return self.fields[0][0] == "sortorder"

    @property
    def descending(self) -> bool:
        return self.fields[0][1] == DESC

    def cache_token(self) -> str:
        return ",".join(f"{name}:{direction}" for name, direction in self.fields)

    def sort_records(self, records: Iterable["Category"]) -> List["Category"]:
        """Stable multi-key sort; remaining ties fall back to ascending id."""

        ordered = sorted(records, key=lambda record: record.id)
        for name, direction in reversed(self.fields):
            ordered.sort(key=lambda record: _sort_value(record, name), reverse=direction == DESC)
        return ordered

    def __eq__(self, other: object) -> bool:
        return isinstance(other, SortSpec) and self.fields == other.fields

    def __hash__(self) -> int:
        return hash(self.fields)

    def __repr__(self) -> str:
        return f"SortSpec({self.cache_token()!r})"


def _sort_value(record: Any, name: str) -> Tuple[bool, Any]:
    value = getattr(record, name, None)
    if isinstance(value, str):
        value = value.casefold()
    return (value is None, value)


DEFAULT_SORT = SortSpec((("sortorder", ASC),))


class IdCache(Protocol):
    def get(self, key: str) -> Optional[Sequence[int]]: ...

    def set(self, key: str, ids: Sequence[int]) -> None: ...


def _make_backend(maxsize: int, ttl: float):
    if ttl:
        return TTLCache(maxsize=maxsize, ttl=ttl)
    return LRUCache(maxsize=maxsize)


class ChildIdCache:
    """Flask extension holding the shared child id cache of an application."""

    extension_name = "category_child_cache"

    def __init__(self, app: Optional[Flask] = None) -> None:
        self._lock = threading.Lock()
        if app is not None:
            self.init_app(app)

    def init_app(self, app: Flask) -> None:
        maxsize = int(app.config.get("CATEGORY_CACHE_MAXSIZE") or DEFAULT_CACHE_MAXSIZE)
        ttl = float(app.config.get("CATEGORY_CACHE_TTL") or 0)
        app.extensions[self.extension_name] = _make_backend(maxsize, ttl)
        app.logger.debug("Category child cache ready (maxsize=%s, ttl=%s)", maxsize, ttl or "none")

    @property
    def backend(self):
        return current_app.extensions[self.extension_name]

    def get(self, key: str) -> Optional[Tuple[int, ...]]:
        with self._lock:
            return self.backend.get(key)

    def set(self, key: str, ids: Sequence[int]) -> None:
        with self._lock:
            self.backend[key] = tuple(ids)

    def clear(self) -> None:
        with self._lock:
            self.backend.clear()
        current_app.logger.info("Category child cache cleared")

    def __len__(self) -> int:
        return len(self.backend)


class SortedChildCache:
    """Serve compacted and sorted child ids, computing each entry once."""

    def __init__(
        self,
        store: Any,
        compactor: "TreeCompactor",
        cache: IdCache,
        namespace: str = "",
    ) -> None:
        self.store = store
        self.compactor = compactor
        self.cache = cache
        self.namespace = namespace

    def cache_key(self, parent_id: int, sort: SortSpec) -> str:
        return f"{self.namespace}:{parent_id}:{sort.cache_token()}"

    def get_sorted_children(self, parent_id: int, sort: Optional[SortSpec] = None) -> List[int]:
        ids, _ = self.fetch(parent_id, sort)
        return ids

    def fetch(
        self, parent_id: int, sort: Optional[SortSpec] = None
    ) -> Tuple[List[int], Optional[Dict[int, "Category"]]]:
        """Return the sorted ids plus any records read while sorting them."""

        sort = sort or DEFAULT_SORT
        key = self.cache_key(parent_id, sort)
        cached = self.cache.get(key)
        if cached is not None:
            return list(cached), None

        records: Optional[Dict[int, "Category"]] = None
        ids = self.compactor.compact(parent_id)
        if sort.is_natural:
            if sort.descending:
                ids.reverse()
        elif ids:
            records = self.store.records_by_ids(ids)
            ids = [record.id for record in sort.sort_records(records.values())]
        self.cache.set(key, ids)
        return ids, records
