# tests/unit/test_search_cache.py
from __future__ import annotations

import os

import pytest

from propsearch.core.cache.search_cache import FileSearchCache, NullSearchCache, cache_key
from propsearch.core.intent.parser import parse_intent
from propsearch.orchestrators.search_orchestrator import constraint_fingerprint
from propsearch.schemas.labels import Vertical
from propsearch.schemas.models import SearchResult
from tests.utils import make_candidate

T0 = 1_700_000_000.0


@pytest.fixture
def result() -> SearchResult:
    return SearchResult(query="casa en Temuco", vertical=Vertical.real_estate, results=(make_candidate(),))


@pytest.fixture
def clocked(tmp_path):
    now = {"t": T0}
    cache = FileSearchCache(tmp_path / "cache", clock=lambda: now["t"])
    return cache, now


def _pin_mtime(cache: FileSearchCache, key: str, vertical: str = "real_estate") -> None:
    os.utime(cache.path_for(vertical, key), (T0, T0))


def test_cache_key_normalizes_case_and_spaces() -> None:
    assert cache_key("Casa  venta   Temuco") == cache_key("casa venta temuco")
    assert cache_key("casa venta temuco") != cache_key("casa venta cunco")
    assert len(cache_key("x")) == 64


def test_cache_key_separates_constraint_fingerprints() -> None:
    wide = constraint_fingerprint(parse_intent("casa en Temuco hasta 5000 UF"), 38_000)
    tight = constraint_fingerprint(parse_intent("casa en Temuco hasta 3000 UF"), 38_000)
    assert wide != tight
    assert cache_key("casa venta Temuco", wide) != cache_key("casa venta Temuco", tight)
    assert cache_key("casa venta Temuco", wide) == cache_key("Casa venta  Temuco", wide)
    assert wide != constraint_fingerprint(parse_intent("casa en Temuco hasta 5000 UF"), 39_000)
    assert constraint_fingerprint(None, 38_000) == ""


def test_roundtrip_within_ttl(clocked, result) -> None:
    cache, now = clocked
    key = cache_key("casa venta Temuco")
    cache.set("real_estate", key, result, ttl=3600)
    _pin_mtime(cache, key)
    now["t"] = T0 + 3599
    hit = cache.get("real_estate", key)
    assert hit is not None
    assert hit.results[0].url == result.results[0].url
    assert cache.path_for("real_estate", key).parent.name == "real_estate"


def test_expired_entry_is_a_miss(clocked, result) -> None:
    cache, now = clocked
    key = cache_key("casa venta Temuco")
    cache.set("real_estate", key, result, ttl=60)
    _pin_mtime(cache, key)
    now["t"] = T0 + 61
    assert cache.get("real_estate", key) is None


def test_zero_ttl_is_not_written(clocked, result) -> None:
    cache, _ = clocked
    key = cache_key("q")
    cache.set("real_estate", key, result, ttl=0)
    assert not cache.path_for("real_estate", key).exists()


def test_corrupt_entry_is_a_miss(clocked, result, caplog) -> None:
    cache, _ = clocked
    key = cache_key("q")
    path = cache.path_for("real_estate", key)
    path.parent.mkdir(parents=True)
    path.write_text("{not json", encoding="utf-8")
    assert cache.get("real_estate", key) is None
    assert "treating as miss" in caplog.text


def test_verticals_are_separate(clocked, result) -> None:
    cache, _ = clocked
    key = cache_key("q")
    cache.set("news", key, result, ttl=60)
    assert cache.get("real_estate", key) is None


def test_purge_removes_expired_and_unreadable(clocked, result) -> None:
    cache, now = clocked
    fresh, stale = cache_key("fresh"), cache_key("stale")
    cache.set("real_estate", fresh, result, ttl=3600)
    cache.set("real_estate", stale, result, ttl=10)
    _pin_mtime(cache, fresh)
    _pin_mtime(cache, stale)
    broken = cache.path_for("news", cache_key("broken"))
    broken.parent.mkdir(parents=True)
    broken.write_text("[]", encoding="utf-8")

    now["t"] = T0 + 100
    assert cache.purge() == 2
    assert cache.get("real_estate", fresh) is not None
    assert not cache.path_for("real_estate", stale).exists()


def test_purge_on_missing_dir(tmp_path) -> None:
    assert FileSearchCache(tmp_path / "nope").purge() == 0


def test_null_cache(result) -> None:
    c = NullSearchCache()
    c.set("real_estate", "k", result, 60)
    assert c.get("real_estate", "k") is None
