# propsearch/providers/base.py
"""
Search Provider Interface

Purpose
-------
Define a minimal, provider-agnostic contract for web search and page text
retrieval so the pipeline can swap engines (HTML scraping, JSON APIs, test
fakes) without touching callers.

Design
------
- Protocol `SearchProvider` with a `name`, `search(query, max_results)` and
  `scrape_page(url, max_length)`.
- Providers raise `SearchProviderError` subclasses on failure; callers turn
  those into zero results plus a diagnostic entry.
- `scrape_page` returns None when nothing useful was found.

Public API
----------
class SearchProvider(Protocol):
    name: str
    def search(self, query: str, max_results: int = 10) -> list[RawResult]
    def scrape_page(self, url: str, max_length: int = 5000) -> str | None
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from propsearch.schemas.models import RawResult


@runtime_checkable
class SearchProvider(Protocol):
    name: str

    def search(self, query: str, max_results: int = 10) -> list[RawResult]: ...

    def scrape_page(self, url: str, max_length: int = 5000) -> str | None: ...


__all__ = ["SearchProvider"]
