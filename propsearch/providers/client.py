# propsearch/providers/client.py
"""
Concurrent fan-out over a SearchProvider.

Purpose
-------
Run all provider queries (or page scrapes) of one request in parallel,
wait for every task, then merge. Merging happens on the calling thread, in
query order, so the merged output does not depend on completion order.

Invariants & Guardrails
-----------------------
- A task that raises or misses the deadline contributes zero results and one
  `ProviderFailure` entry; it never aborts the batch.
- The pool is bounded by `policy.max_workers`; stragglers past the deadline
  are abandoned (not joined) and pending ones cancelled.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field

from propsearch.core.errors import classify_provider_error
from propsearch.providers.base import SearchProvider
from propsearch.schemas.models import ProviderFailure, RawResult, SearchPolicy

logger = logging.getLogger(__name__)

# Extra seconds on top of the per-request timeout before a task is abandoned.
DEADLINE_SLACK_S = 2.0


@dataclass(slots=True)
class FanOutResult:
    results: list[RawResult] = field(default_factory=list)
    failures: list[ProviderFailure] = field(default_factory=list)
    per_query: dict[str, int] = field(default_factory=dict)
    by_query: dict[str, list[RawResult]] = field(default_factory=dict)

    def merged(self, queries: Sequence[str]) -> list[RawResult]:
        """Results of `queries` only, merged in query order, first URL occurrence wins."""
        seen: dict[str, RawResult] = {}
        for q in queries:
            for r in self.by_query.get(q, ()):
                if r.url and r.url not in seen:
                    seen[r.url] = r
        return list(seen.values())


@dataclass(slots=True)
class ScrapeResult:
    pages: dict[str, str] = field(default_factory=dict)
    failures: list[ProviderFailure] = field(default_factory=list)


def _describe(exc: BaseException) -> str:
    err = classify_provider_error(exc) if isinstance(exc, Exception) else exc
    return f"{type(err).__name__}: {err}"


class SearchClient:
    def __init__(self, provider: SearchProvider, policy: SearchPolicy | None = None) -> None:
        self.provider = provider
        self.policy = policy or SearchPolicy()

    @property
    def name(self) -> str:
        return getattr(self.provider, "name", type(self.provider).__name__)

    def _run_all(self, fn, args: Sequence[str], timeout_s: float) -> list[tuple[str, object | None, str | None]]:
        """Run fn(arg) for every arg; returns (arg, value, error) in input order."""
        if not args:
            return []
        pool = ThreadPoolExecutor(max_workers=min(self.policy.max_workers, len(args)), thread_name_prefix="propsearch")
        try:
            futures: list[Future] = [pool.submit(fn, a) for a in args]
            done, _ = wait(futures, timeout=timeout_s + DEADLINE_SLACK_S)
            out: list[tuple[str, object | None, str | None]] = []
            for a, fut in zip(args, futures):
                if fut not in done:
                    fut.cancel()
                    out.append((a, None, f"ProviderTimeoutError: no answer within {timeout_s:g}s"))
                    continue
                exc = fut.exception()
                if exc is not None:
                    out.append((a, None, _describe(exc)))
                else:
                    out.append((a, fut.result(), None))
            return out
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

    def search_many(self, queries: Sequence[str], max_results: int | None = None) -> FanOutResult:
        n = max_results or self.policy.results_per_query
        unique = list(dict.fromkeys(q for q in queries if q and q.strip()))

        def _one(q: str) -> list[RawResult]:
            return list(self.provider.search(q, n))

        fan = FanOutResult()
        for query, value, error in self._run_all(_one, unique, self.policy.search_timeout_s):
            if error is not None:
                logger.warning("Provider %s failed for %r: %s", self.name, query, error)
                fan.failures.append(ProviderFailure(provider=self.name, query=query, error=error))
                fan.per_query[query] = 0
                continue
            items: list[RawResult] = list(value or [])  # type: ignore[call-overload]
            fan.per_query[query] = len(items)
            fan.by_query[query] = items
        fan.results = fan.merged(unique)
        logger.info("Provider %s: %d queries → %d unique results", self.name, len(unique), len(fan.results))
        return fan

    def scrape_many(self, urls: Sequence[str]) -> ScrapeResult:
        unique = list(dict.fromkeys(u for u in urls if u))[: self.policy.scrape_top_n]
        max_len = self.policy.scrape_max_length

        def _one(u: str) -> str | None:
            return self.provider.scrape_page(u, max_len)

        out = ScrapeResult()
        for url, value, error in self._run_all(_one, unique, self.policy.scrape_timeout_s):
            if error is not None:
                logger.warning("Scrape failed for %s: %s", url, error)
                out.failures.append(ProviderFailure(provider=self.name, query=url, error=error))
            elif value:
                out.pages[url] = str(value)
        logger.info("Scraped %d/%d pages", len(out.pages), len(unique))
        return out


__all__ = ["SearchClient", "FanOutResult", "ScrapeResult"]
