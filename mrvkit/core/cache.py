"""Result cache abstractions injected into analyzers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Hashable


class ResultCache(ABC):
    """Abstract key/value store for computed analysis results."""

    @abstractmethod
    def get(self, key: Hashable) -> Any | None:
        """Return the cached value for *key* or ``None``."""

    @abstractmethod
    def set(self, key: Hashable, value: Any) -> None:
        """Store *value* under *key*."""

    @abstractmethod
    def clear(self) -> None:
        """Drop every cached entry."""


class NullCache(ResultCache):
    """Cache that never stores anything."""

    def get(self, key: Hashable) -> Any | None:  # pragma: no cover - trivial
        return None

    def set(self, key: Hashable, value: Any) -> None:  # pragma: no cover - trivial
        return None

    def clear(self) -> None:  # pragma: no cover - trivial
        return None


class InMemoryCache(ResultCache):
    """Least-recently-used cache bounded by ``max_entries``."""

    def __init__(self, max_entries: int = 128) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: OrderedDict[Hashable, Any] = OrderedDict()

    def get(self, key: Hashable) -> Any | None:
        if key not in self._entries:
            return None
        self._entries.move_to_end(key)
        return self._entries[key]

    def set(self, key: Hashable, value: Any) -> None:
        self._entries[key] = value
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
