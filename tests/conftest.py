# tests/conftest.py
from __future__ import annotations

import os
from pathlib import Path

import pytest

from propsearch.core.cache.search_cache import FileSearchCache
from propsearch.core.tables import SearchTables, default_tables
from propsearch.schemas.models import SearchPolicy
from tests.utils import DEFAULT_POLICY, FakeProvider, make_candidate


# -------- Global isolation --------
@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """No test reads real credentials or table overrides."""
    for var in ("SERPAPI_KEY", "OPENAI_API_KEY", "PROPSEARCH_UF_VALUE", "PROPSEARCH_TABLES_PATH"):
        monkeypatch.delenv(var, raising=False)
    os.environ.setdefault("PYTHONHASHSEED", "0")
    default_tables.cache_clear()
    yield
    default_tables.cache_clear()


# -------- Domain fixtures --------
@pytest.fixture
def tables() -> SearchTables:
    return SearchTables()


@pytest.fixture
def policy() -> SearchPolicy:
    return DEFAULT_POLICY


@pytest.fixture
def file_cache(tmp_path: Path) -> FileSearchCache:
    return FileSearchCache(tmp_path / "search-cache")


@pytest.fixture
def candidate_factory():
    """Callable factory for candidates with overridable URL/title/snippet."""

    def _factory(url: str | None = None, title: str | None = None, snippet: str | None = None, **kw):
        args = {}
        if url is not None:
            args["url"] = url
        if title is not None:
            args["title"] = title
        if snippet is not None:
            args["snippet"] = snippet
        return make_candidate(**args, **kw)

    return _factory


@pytest.fixture
def fake_provider_factory():
    def _factory(*args, **kwargs) -> FakeProvider:
        return FakeProvider(*args, **kwargs)

    return _factory
