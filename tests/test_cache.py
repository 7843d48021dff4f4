# pylint: disable=missing-module-docstring,missing-function-docstring
import pytest

from mrvkit.core.cache import InMemoryCache, NullCache


def test_null_cache_never_stores():
    cache = NullCache()
    cache.set("k", 1)
    assert cache.get("k") is None


def test_in_memory_cache_evicts_least_recently_used():
    cache = InMemoryCache(max_entries=2)
    cache.set("a", 1)
    cache.set("b", 2)
    assert cache.get("a") == 1  # refresh "a"
    cache.set("c", 3)
    assert "b" not in cache
    assert cache.get("a") == 1
    assert cache.get("c") == 3
    assert len(cache) == 2


def test_in_memory_cache_clear():
    cache = InMemoryCache()
    cache.set(("proj", 1), "result")
    cache.clear()
    assert cache.get(("proj", 1)) is None


def test_in_memory_cache_rejects_empty_capacity():
    with pytest.raises(ValueError):
        InMemoryCache(max_entries=0)
