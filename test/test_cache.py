import threading

import pytest

from twowaysql.cache import TemplateCache
from twowaysql.errors import UnbalancedParenthesis
from twowaysql.nodes import Template


def test_cached_template_is_reused():
    cache = TemplateCache()
    template = cache.get("SELECT 1", "a.sql")
    assert cache.get("SELECT 1", "a.sql") is template
    assert cache.get("SELECT 1", "b.sql") is not template
    assert template.resource_info == "a.sql"
    assert "SELECT 1" in cache
    assert len(cache) == 2


def test_least_recently_used_is_evicted():
    cache = TemplateCache(maxsize=2)
    cache.get("SELECT 1")
    cache.get("SELECT 2")
    cache.get("SELECT 1")
    cache.get("SELECT 3")
    assert len(cache) == 2
    assert "SELECT 1" in cache
    assert "SELECT 2" not in cache


def test_errors_are_not_cached():
    cache = TemplateCache()
    for _ in range(2):
        with pytest.raises(UnbalancedParenthesis):
            cache.get("SELECT (1")
    assert len(cache) == 0


def test_clear():
    cache = TemplateCache()
    cache.get("SELECT 1")
    cache.clear()
    assert len(cache) == 0


def test_invalid_maxsize():
    with pytest.raises(ValueError):
        TemplateCache(maxsize=0)


def test_concurrent_access():
    cache = TemplateCache()
    results = []

    def worker():
        for _ in range(50):
            results.append(cache.get("SELECT * FROM t WHERE a = /* $a */1"))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 200
    assert all(isinstance(t, Template) for t in results)
    assert len(cache) == 1
