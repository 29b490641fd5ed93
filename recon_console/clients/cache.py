"""Response cache for backend queries.

Entries are keyed by query name plus parameters and labelled with tags
(``Batches``, ``Records`` ...).  Mutations never write into the cache;
they invalidate tags and the next query goes back to the backend.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Hashable, Iterable

from recon_console.core.logging import get_logger

logger = get_logger(__name__)

CacheKey = tuple[str, tuple[tuple[str, Hashable], ...]]


@dataclass
class CacheEntry:
    value: Any
    tags: frozenset[str] = field(default_factory=frozenset)


class ResponseCache:
    """In-memory query cache with tag-based invalidation."""

    def __init__(self) -> None:
        self._entries: dict[CacheKey, CacheEntry] = {}

    @staticmethod
    def make_key(query: str, params: dict[str, Any] | None = None) -> CacheKey:
        """Build a stable key; ``None`` params are left out."""
        items = tuple(
            sorted((k, v) for k, v in (params or {}).items() if v is not None)
        )
        return (query, items)

    def get(self, key: CacheKey) -> tuple[bool, Any]:
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        return True, entry.value

    def set(self, key: CacheKey, value: Any, tags: Iterable[str] = ()) -> None:
        self._entries[key] = CacheEntry(value=value, tags=frozenset(tags))

    def invalidate(self, *tags: str) -> int:
        """Drop every entry carrying any of ``tags``; return how many."""
        wanted = set(tags)
        stale = [k for k, e in self._entries.items() if e.tags & wanted]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("Invalidated %d cache entries for tags %s", len(stale), tags)
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
