from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Iterable

from ..protocol import ServerDescriptor
from ..registry import TTLRegistry

DEFAULT_PAGE_SIZE = 28


class PageOutOfRange(ValueError):
    pass


@dataclass(frozen=True)
class Page:
    number: int
    page_count: int
    items: tuple[ServerDescriptor, ...]

    @property
    def has_previous(self) -> bool:
        return self.number > 0

    @property
    def has_next(self) -> bool:
        return self.number < self.page_count - 1


@dataclass(frozen=True)
class ServerListCache:
    """One user's last received server list and its name index.

    Instances are immutable; a new payload replaces the whole cache, so the
    sequence and the index always come from the same list.
    """

    servers: tuple[ServerDescriptor, ...] = ()
    page_size: int = DEFAULT_PAGE_SIZE
    _by_name: dict[str, ServerDescriptor] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.page_size < 1:
            raise ValueError("page_size must be >= 1.")
        index: dict[str, ServerDescriptor] = {}
        for server in self.servers:
            index.setdefault(server.name, server)
        object.__setattr__(self, "_by_name", index)

    def lookup(self, name: str) -> ServerDescriptor | None:
        return self._by_name.get(name)

    @property
    def is_empty(self) -> bool:
        return not self.servers

    @property
    def page_count(self) -> int:
        return max(1, math.ceil(len(self.servers) / self.page_size))

    def page(self, number: int) -> Page:
        if number < 0 or number >= self.page_count:
            raise PageOutOfRange(f"Page {number} is out of range (0-{self.page_count - 1}).")
        start = number * self.page_size
        end = min(start + self.page_size, len(self.servers))
        return Page(number=number, page_count=self.page_count, items=self.servers[start:end])

    def __len__(self) -> int:
        return len(self.servers)


class ServerListCaches:
    """Per-user caches; entries expire ``ttl_s`` seconds after their last refresh."""

    def __init__(self, *, page_size: int = DEFAULT_PAGE_SIZE, ttl_s: float | None = None, clock=time.monotonic):
        self.page_size = page_size
        self._registry: TTLRegistry[str, ServerListCache] = TTLRegistry(ttl_s, clock=clock)

    def get(self, user: str) -> ServerListCache:
        cache = self._registry.peek(user)
        if cache is None:
            cache = ServerListCache(page_size=self.page_size)
        return cache

    def open(self, user: str) -> ServerListCache:
        """Cache for a user opening the UI, created empty on first use."""
        cache = self._registry.peek(user)
        if cache is None:
            cache = ServerListCache(page_size=self.page_size)
            self._registry.put(user, cache)
        return cache

    def refresh(self, user: str, servers: Iterable[ServerDescriptor]) -> ServerListCache:
        cache = ServerListCache(servers=tuple(servers), page_size=self.page_size)
        self._registry.put(user, cache)
        return cache

    def lookup(self, user: str, name: str) -> ServerDescriptor | None:
        return self.get(user).lookup(name)

    def discard(self, user: str) -> None:
        self._registry.pop(user)

    def sweep(self) -> list[str]:
        return self._registry.sweep()

    def __contains__(self, user: object) -> bool:
        return user in self._registry
