"""Session-scoped, append-only caches for immutable lookups."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Hashable
from typing import Generic, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class SessionCache(Generic[K, V]):
    """In-memory cache owned by a single client session.

    Entries are few (topic keys, token decimals) and never change once set,
    so the cache is unbounded and has no eviction policy. It lives exactly as
    long as the object that owns it and is never persisted. Two tasks racing
    to fill the same key store the same value, so last-write-wins is safe.
    """

    def __init__(self) -> None:
        self._entries: dict[K, V] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: K) -> V | None:
        """Return the cached value for ``key`` or ``None``."""
        return self._entries.get(key)

    def set(self, key: K, value: V) -> None:
        """Store ``value`` for ``key``."""
        self._entries[key] = value

    def discard(self, key: K) -> None:
        """Drop ``key``; used only when the underlying value is superseded."""
        self._entries.pop(key, None)

    async def get_or_load(self, key: K, loader: Callable[[], Awaitable[V]]) -> V:
        """Return the cached value, awaiting ``loader`` on a miss."""
        if key in self._entries:
            return self._entries[key]
        value = await loader()
        self._entries[key] = value
        return value
