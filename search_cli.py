# search_cli.py

from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path

from propsearch.core.cache.search_cache import FileSearchCache, NullSearchCache
from propsearch.core.errors import RerankError
from propsearch.core.tables import load_tables
from propsearch.orchestrators.search_orchestrator import SearchOrchestrator
from propsearch.providers.duckduckgo import DuckDuckGoHtmlProvider
from propsearch.providers.serpapi import SerpApiProvider
from propsearch.schemas.models import SearchPolicy, SearchResult
from propsearch.tools.exchange_rate import EnvExchangeRate, HttpExchangeRate
from propsearch.tools.reranker import OpenAIReranker

logger = logging.getLogger("propsearch.cli")

_VERTICALS = ("auto", "real_estate", "legal", "news", "retail", "general")


def _build_providers(name: str, policy: SearchPolicy):
    ddg = DuckDuckGoHtmlProvider.from_policy(policy)
    if name == "duckduckgo":
        return ddg, None
    serp = SerpApiProvider.from_policy(policy)
    if not serp.configured:
        logger.warning("SERPAPI_KEY not set; using DuckDuckGo only")
        return ddg, None
    return serp, ddg


def _print_summary(result: SearchResult) -> None:
    d = result.diagnostics
    print(f"vertical: {result.vertical.value}  cached: {result.cached}  elapsed: {d.elapsed_ms} ms")
    if result.intent is not None:
        print(f"intent confidence: {result.intent.confidence:.2f}")
        for q in result.intent.clarifying_questions:
            print(f"  ? {q}")
    print(f"queries: {len(result.queries_used)} (+{len(result.context_queries)} context)")
    print(f"providers: {', '.join(d.providers_used)}  raw={d.raw_result_count} failures={len(d.failures)}")
    if result.zones is not None and result.zones.resolved:
        print(f"zones: {', '.join(result.zones.sectors_matching)} [{result.zones.confidence.value}]")
    for i, c in enumerate(result.results, start=1):
        verdict = c.validation.verdict.value if c.validation else "-"
        print(f"{i:>2}. {c.score or 0:.3f} {verdict:<10} {c.title[:70]}")
        print(f"    {c.url}")
    if result.listing_pages:
        print(f"listing pages: {len(result.listing_pages)}")
    if result.insufficient:
        print(f"insufficient: {result.valid_listing_count} valid listings")
        for s in result.expansion_suggestions:
            print(f"  - {s.description}")


def main() -> int:
    p = argparse.ArgumentParser(description="Natural-language property search")
    p.add_argument("query", type=str, nargs="?", default=None)
    p.add_argument("--vertical", type=str, choices=_VERTICALS, default="auto")
    p.add_argument("--provider", type=str, choices=("serpapi", "duckduckgo"), default="serpapi")
    p.add_argument("--uf-rate", type=float, default=None, help="CLP per UF; default asks the rate source")
    p.add_argument("--uf-source", type=str, choices=("env", "http", "none"), default="env")
    p.add_argument("--cache", type=int, choices=(0, 1), default=1)
    p.add_argument("--cache-dir", type=str, default=None)
    p.add_argument("--purge-cache", action="store_true", help="Remove expired cache entries and exit")
    p.add_argument("--rerank", type=int, choices=(0, 1), default=0, help="Enable the language-model re-ranker")
    p.add_argument("--tables", type=str, default=None, help="JSON file with table overrides")
    p.add_argument("--json", type=int, choices=(0, 1), default=0)
    p.add_argument("--context", type=int, choices=(0, 1), default=0, help="Print the grounding context block")
    p.add_argument("-v", "--verbose", action="store_true")

    args = p.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    overrides = {"cache_dir": Path(args.cache_dir)} if args.cache_dir else {}
    policy = SearchPolicy.from_env(**overrides)

    if args.purge_cache:
        removed = FileSearchCache(policy.cache_dir).purge()
        print(f"purged {removed} cache entries")
        return 0
    if not args.query:
        p.error("a query is required")

    primary, fallback = _build_providers(args.provider, policy)
    cache = FileSearchCache(policy.cache_dir) if args.cache else NullSearchCache()

    reranker = None
    if args.rerank:
        try:
            reranker = OpenAIReranker()
        except RerankError as e:
            logger.warning("Re-ranker disabled: %s", e)

    rate_source = None
    if args.uf_source == "http":
        rate_source = HttpExchangeRate()
    elif args.uf_source == "env" and os.getenv("PROPSEARCH_UF_VALUE"):
        rate_source = EnvExchangeRate()

    tables = load_tables(Path(args.tables)) if args.tables else None

    orchestrator = SearchOrchestrator(
        primary,
        fallback_provider=fallback,
        cache=cache,
        reranker=reranker,
        policy=policy,
        tables=tables,
        rate_source=rate_source,
    )
    result = orchestrator.search(args.query, args.vertical, args.uf_rate)

    if args.json:
        print(result.model_dump_json(indent=2))
    else:
        _print_summary(result)
    if args.context and result.context_payload is not None:
        print()
        print(result.context_payload.text)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
