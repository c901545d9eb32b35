# propsearch/orchestrators/search_orchestrator.py
"""
End-to-end search resolution for one natural-language request.

Stages (each returns new values; nothing upstream is mutated):
  plan → cache lookup → provider fan-out (+ fallback provider) → facts/rank
  → scrape top-N → re-rank → optional external re-rank → zones → validation
  → partition (individual vs listing pages) → sufficiency + suggestions
  → context payload → cache write-through

No stage aborts the call: provider failures become diagnostics, cache and
exchange-rate problems degrade to a miss and the fallback rate.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Sequence

from propsearch.core.cache.search_cache import NullSearchCache, SearchCache, cache_key
from propsearch.core.geo.zones import ZoneResolver
from propsearch.core.policy.domains import DomainPolicy
from propsearch.core.query.builder import build_queries
from propsearch.core.rank.ranker import HeuristicRanker, needs_external_rerank
from propsearch.core.tables import SearchTables, default_tables
from propsearch.core.validate.candidates import CandidateValidator, summarize_report
from propsearch.orchestrators.context import build_context
from propsearch.orchestrators.expansion import build_suggestions
from propsearch.providers.base import SearchProvider
from propsearch.providers.client import FanOutResult, SearchClient
from propsearch.schemas.labels import TrustTier, UrlCategory, Verdict, Vertical
from propsearch.schemas.models import (
    Candidate,
    ProviderFailure,
    QueryPlan,
    ResolvedZoneSet,
    SearchIntent,
    SearchDiagnostics,
    SearchPolicy,
    SearchResult,
    ValidationStats,
)
from propsearch.tools.exchange_rate import ExchangeRateSource, resolve_uf_rate
from propsearch.tools.reranker import MAX_RERANK_ITEMS, Reranker, apply_rerank

logger = logging.getLogger(__name__)


def constraint_fingerprint(intent: SearchIntent | None, uf_rate: float) -> str:
    """
    Stable text of everything validation depends on besides the provider
    results: the parsed constraints and the UF rate. Requests that share a
    first query but differ here must not share a cache entry.
    """
    if intent is None:
        return ""
    b = intent.budget
    fields = {
        "operation": intent.operation.value,
        "type": intent.property_type.value,
        "location": intent.location.name if intent.location else None,
        "budget": [b.amount, b.minimum, b.currency.value, b.tolerance_pct] if b else None,
        "area_m2": intent.area.m2 if intent.area else None,
        "bedrooms": intent.bedrooms_min,
        "bathrooms": intent.bathrooms_min,
        "qualifier": intent.zone_qualifier.tag if intent.zone_qualifier else None,
        "hard": sorted(intent.hard_constraints),
        "uf_rate": round(uf_rate, 2),
    }
    return json.dumps(fields, sort_keys=True, ensure_ascii=False)


class SearchOrchestrator:
    def __init__(
        self,
        provider: SearchProvider,
        fallback_provider: SearchProvider | None = None,
        cache: SearchCache | None = None,
        reranker: Reranker | None = None,
        policy: SearchPolicy | None = None,
        tables: SearchTables | None = None,
        rate_source: ExchangeRateSource | None = None,
    ) -> None:
        self.provider = provider
        self.fallback_provider = fallback_provider
        self.cache: SearchCache = cache or NullSearchCache()
        self.reranker = reranker
        self.policy = policy or SearchPolicy()
        self.tables = tables or default_tables()
        self.rate_source = rate_source

        self.domains = DomainPolicy(self.tables)
        self.ranker = HeuristicRanker(self.tables)
        self.zone_resolver = ZoneResolver(self.tables)
        self.validator = CandidateValidator(self.policy)

    # ---------- helpers ----------

    def _fan_out(self, plan: QueryPlan) -> tuple[FanOutResult, list[str], bool, SearchProvider]:
        """Run main + context queries; retry once on the fallback provider when the main set is empty."""
        main = list(plan.queries)
        ctx = list(plan.context_queries)
        providers_used = [getattr(self.provider, "name", "primary")]

        fan = SearchClient(self.provider, self.policy).search_many(main + ctx)
        active: SearchProvider = self.provider
        fallback_used = False
        if not fan.merged(main) and self.fallback_provider is not None:
            logger.info("Primary provider returned nothing; trying fallback")
            fb = SearchClient(self.fallback_provider, self.policy).search_many(main + ctx)
            fb.failures[:0] = fan.failures
            fan, active, fallback_used = fb, self.fallback_provider, True
            providers_used.append(getattr(self.fallback_provider, "name", "fallback"))
        return fan, providers_used, fallback_used, active

    def _scrape_and_rerank(
        self, ranked: list[Candidate], plan: QueryPlan, provider: SearchProvider, failures: list[ProviderFailure]
    ) -> tuple[list[Candidate], int]:
        if not ranked or self.policy.scrape_top_n <= 0:
            return ranked, 0
        top_urls = [c.url for c in ranked[: self.policy.scrape_top_n]]
        scraped = SearchClient(provider, self.policy).scrape_many(top_urls)
        failures.extend(scraped.failures)
        if not scraped.pages:
            return ranked, 0
        # Drop facts so they are re-extracted from title + snippet + page text.
        refreshed = [
            c.model_copy(update={"page_text": scraped.pages[c.url], "facts": None}) if c.url in scraped.pages else c
            for c in ranked
        ]
        return self.ranker.rank(refreshed, plan.cleaned_query, plan.vertical), len(scraped.pages)

    def _external_rerank(self, ranked: list[Candidate], plan: QueryPlan) -> tuple[list[Candidate], bool]:
        if self.reranker is None or not needs_external_rerank(ranked, self.policy.rerank_margin):
            return ranked, False
        try:
            outcome = self.reranker.rerank(ranked[:MAX_RERANK_ITEMS], plan.cleaned_query, plan.vertical.value)
        except Exception as e:  # any reranker failure keeps the heuristic order
            logger.warning("External re-rank skipped: %s", e)
            return ranked, False
        return apply_rerank(ranked, outcome), True

    def _resolve_zones(self, plan: QueryPlan, fan: FanOutResult) -> ResolvedZoneSet | None:
        intent = plan.intent
        if plan.vertical is not Vertical.real_estate or intent is None or intent.zone_qualifier is None:
            return None
        return self.zone_resolver.resolve(intent, fan.merged(plan.context_queries))

    def count_valid_listings(self, results: Sequence[Candidate], vertical: Vertical) -> int:
        """Specific-URL results on a trusted portal that passed (or soft-failed) validation."""
        n = 0
        for c in results:
            if c.facts is None or c.facts.url_category is not UrlCategory.specific:
                continue
            if self.domains.get_tier(c.url, vertical) is TrustTier.none:
                continue
            if c.validation is None or c.validation.verdict not in (Verdict.passed, Verdict.soft_fail):
                continue
            n += 1
        return n

    # ---------- public ----------

    def search(self, query: str, vertical: Vertical | str = "auto", uf_rate: float | None = None) -> SearchResult:
        started = time.monotonic()
        plan = build_queries(
            query,
            vertical,
            tables=self.tables,
            max_queries=self.policy.max_queries,
            max_context_queries=self.policy.max_context_queries,
        )
        v = plan.vertical
        rate = uf_rate if uf_rate and uf_rate > 0 else resolve_uf_rate(self.rate_source, self.policy.fallback_uf_rate)
        key = cache_key(
            plan.queries[0] if plan.queries else plan.cleaned_query,
            constraint_fingerprint(plan.intent, rate),
        )

        hit = self.cache.get(v.value, key)
        if hit is not None:
            logger.info("Cache hit for %r (%s)", query, v.value)
            diag = hit.diagnostics.model_copy(
                update={"cache_hit": True, "elapsed_ms": int((time.monotonic() - started) * 1000)}
            )
            return hit.model_copy(update={"cached": True, "diagnostics": diag})

        # 1) provider fan-out
        fan, providers_used, fallback_used, active = self._fan_out(plan)
        failures = list(fan.failures)
        raw = fan.merged(plan.queries)
        logger.info("Search %r: %d queries, %d raw results", query, len(plan.queries), len(raw))

        # 2) facts + rank, then scrape the head and rank again
        ranked = self.ranker.rank((Candidate(raw=r) for r in raw), plan.cleaned_query, v)
        after_rank = len(ranked)
        ranked, scraped_count = self._scrape_and_rerank(ranked, plan, active, failures)
        ranked, reranked = self._external_rerank(ranked, plan)

        # 3) zones + validation
        zones = self._resolve_zones(plan, fan)
        stats: ValidationStats | None = None
        if v is Vertical.real_estate and plan.intent is not None:
            report = self.validator.validate(ranked, plan.intent, zones, rate)
            stats = report.stats
            logger.info(summarize_report(report))
            verdict_by_url = {c.url: c for c in report.admitted}
            admitted = [verdict_by_url[c.url] for c in ranked if c.url in verdict_by_url]
        else:
            admitted = ranked

        results = [c for c in admitted if not (c.validation and c.validation.is_listing_page)]
        listing_pages = [c for c in admitted if c.validation and c.validation.is_listing_page]
        results = results[: self.policy.max_results]
        listing_pages = listing_pages[: self.policy.max_results]

        # 4) sufficiency
        valid_count = self.count_valid_listings(results, v)
        insufficient = v is Vertical.real_estate and valid_count < self.policy.min_valid_listings
        suggestions = build_suggestions(plan.intent, self.policy, self.tables) if insufficient else []
        if insufficient:
            logger.info("Only %d valid listings (< %d); suggesting expansions", valid_count, self.policy.min_valid_listings)

        context = build_context(
            query,
            v,
            results,
            listing_pages,
            intent=plan.intent,
            zones=zones,
            insufficient=insufficient,
            suggestions=suggestions,
            policy=self.domains,
        )

        diagnostics = SearchDiagnostics(
            providers_used=tuple(providers_used),
            fallback_used=fallback_used,
            raw_result_count=len(raw),
            after_rank_count=after_rank,
            scraped_count=scraped_count,
            reranked=reranked,
            failures=tuple(failures),
            uf_rate=rate,
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )
        result = SearchResult(
            query=query,
            vertical=v,
            intent=plan.intent,
            queries_used=plan.queries,
            context_queries=plan.context_queries,
            results=tuple(results),
            listing_pages=tuple(listing_pages),
            zones=zones,
            validation_stats=stats,
            valid_listing_count=valid_count,
            insufficient=insufficient,
            expansion_suggestions=tuple(suggestions),
            context_payload=context,
            diagnostics=diagnostics,
        )

        if not result.is_empty:
            self.cache.set(v.value, key, result, self.policy.cache_ttl_s)
        return result


def search(
    query: str,
    provider: SearchProvider,
    *,
    vertical: Vertical | str = "auto",
    uf_rate: float | None = None,
    policy: SearchPolicy | None = None,
) -> SearchResult:
    """Convenience wrapper: one-off orchestrator without cache or re-ranker."""
    return SearchOrchestrator(provider, policy=policy).search(query, vertical, uf_rate)


__all__ = ["SearchOrchestrator", "constraint_fingerprint", "search"]
