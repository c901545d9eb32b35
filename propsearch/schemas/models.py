# propsearch/schemas/models.py

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from propsearch.schemas.labels import (
    AreaUnit,
    Currency,
    HardConstraint,
    Operation,
    PropertyType,
    Setting,
    UrlCategory,
    Verdict,
    Vertical,
    ZoneConfidence,
    ZoneSource,
)

_FROZEN = ConfigDict(frozen=True, extra="ignore")

# =========================
# Intent
# =========================


class Location(BaseModel):
    model_config = _FROZEN

    name: str = Field(..., description="Canonical place name (gazetteer spelling when known).")
    raw: str = Field(..., description="Surface text matched in the query.")


class ZoneQualifier(BaseModel):
    """A neighbourhood-level preference such as 'barrio alto' or 'condominio'."""

    model_config = _FROZEN

    raw: str = Field(..., description="Surface text matched in the query.")
    tag: str = Field(..., description="Canonical qualifier label (e.g. 'sector alto').")
    premium: bool = Field(False, description="Qualifier implies an upper-end area; enables price/zone coherence checks.")
    hard: bool = Field(False, description="Qualifier must be enforced as a zone constraint.")


class Budget(BaseModel):
    model_config = _FROZEN

    amount: float = Field(..., gt=0, description="Budget ceiling in `currency` units.")
    minimum: float | None = Field(None, ge=0, description="Lower bound for explicit ranges (e.g. 'entre 5.000 y 8.000 UF').")
    currency: Currency = Field(..., description="CLP or UF.")
    tolerance_pct: float = Field(12.0, ge=0, le=100, description="Allowed deviation around the range, in percent.")
    raw: str = Field("", description="Surface text matched in the query.")


class Area(BaseModel):
    model_config = _FROZEN

    amount: float = Field(..., gt=0, description="Amount as written, in `unit`.")
    unit: AreaUnit = Field(..., description="m2 or ha.")
    m2: float = Field(..., gt=0, description="Amount normalized to square metres (1 ha = 10,000 m²).")


class SearchIntent(BaseModel):
    """
    Structured reading of a free-text property request.

    Produced once per request by the intent parser and never mutated.
    Every field is optional in spirit: a query with no recognizable content
    yields an intent with confidence 0 and clarifying questions.
    """

    model_config = _FROZEN

    raw_query: str = ""
    property_type: PropertyType = PropertyType.unknown
    operation: Operation = Operation.sale
    location: Location | None = None
    zone_qualifier: ZoneQualifier | None = None
    budget: Budget | None = None
    area: Area | None = None
    bedrooms_min: int | None = Field(None, ge=0)
    bathrooms_min: int | None = Field(None, ge=0)
    required_features: tuple[str, ...] = ()
    hard_constraints: tuple[str, ...] = Field((), description="Subset of HardConstraint values plus hard feature tags.")
    soft_constraints: tuple[str, ...] = ()
    setting: Setting = Setting.unknown
    priorities: tuple[str, ...] = ()
    confidence: float = Field(0.0, ge=0, le=1)
    clarifying_questions: tuple[str, ...] = ()

    def has_hard(self, constraint: HardConstraint | str) -> bool:
        key = constraint.value if isinstance(constraint, HardConstraint) else constraint
        return key in self.hard_constraints


# =========================
# Query plan
# =========================


class QueryPlan(BaseModel):
    model_config = _FROZEN

    vertical: Vertical
    queries: tuple[str, ...] = Field(..., description="Provider queries, in dispatch order.")
    context_queries: tuple[str, ...] = Field((), description="Zone/market context queries (real estate only).")
    cleaned_query: str = Field("", description="Normalized user text; used for relevance scoring only.")
    intent: SearchIntent | None = None


# =========================
# Results & candidates
# =========================


class RawResult(BaseModel):
    model_config = _FROZEN

    title: str = ""
    url: str
    snippet: str = ""
    position: int = Field(0, ge=0, description="1-based rank reported by the provider (0 if unknown).")
    provider: str = ""
    date: str | None = None


class ExtractedFacts(BaseModel):
    model_config = _FROZEN

    price_clp: float | None = None
    price_uf: float | None = None
    area_m2: float | None = None
    price_per_m2: float | None = None
    bedrooms: int | None = None
    bathrooms: int | None = None
    url_category: UrlCategory = UrlCategory.unknown
    validated_field_count: int = 0

    @property
    def has_price(self) -> bool:
        return self.price_clp is not None or self.price_uf is not None


class ScoreBreakdown(BaseModel):
    model_config = _FROZEN

    query_match: float = 0.0
    domain_trust: float = 0.0
    listing_type: float = 0.0
    data_richness: float = 0.0
    freshness: float = 0.0
    penalty: float = 0.0


class Validation(BaseModel):
    model_config = _FROZEN

    verdict: Verdict
    is_listing_page: bool = False
    failures: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()


class Candidate(BaseModel):
    """
    One search result moving through the pipeline.

    Stages enrich a copy (`model_copy(update=...)`); none clears a field set
    by an earlier stage.
    """

    model_config = _FROZEN

    raw: RawResult
    page_text: str | None = None
    facts: ExtractedFacts | None = None
    score: float | None = None
    breakdown: ScoreBreakdown | None = None
    validation: Validation | None = None
    rerank_note: str | None = None

    @property
    def url(self) -> str:
        return self.raw.url

    @property
    def title(self) -> str:
        return self.raw.title

    @property
    def snippet(self) -> str:
        return self.raw.snippet

    @property
    def text(self) -> str:
        """Title + snippet + scraped text, the haystack every text check runs against."""
        parts = [self.raw.title, self.raw.snippet]
        if self.page_text:
            parts.append(self.page_text)
        return " ".join(p for p in parts if p)


# =========================
# Zones & validation
# =========================


class ResolvedZoneSet(BaseModel):
    model_config = _FROZEN

    city: str | None = None
    qualifier: str | None = None
    sectors_matching: tuple[str, ...] = ()
    sectors_excluded: tuple[str, ...] = ()
    confidence: ZoneConfidence = ZoneConfidence.low
    source: ZoneSource = ZoneSource.none
    raw_context: str = ""
    note: str = ""

    @property
    def resolved(self) -> bool:
        return bool(self.sectors_matching or self.sectors_excluded)


class ValidationStats(BaseModel):
    model_config = _FROZEN

    total: int = 0
    passed: int = 0
    soft_failed: int = 0
    hard_failed: int = 0
    incomplete: int = 0
    listing_pages: int = 0
    price_range_applied: tuple[float, float] | None = Field(None, description="Tolerance-adjusted range in UF.")
    zone_filter_applied: bool = False
    uf_rate: float | None = None


class ValidationReport(BaseModel):
    model_config = _FROZEN

    passed: tuple[Candidate, ...] = ()
    soft_failed: tuple[Candidate, ...] = ()
    hard_failed: tuple[Candidate, ...] = ()
    incomplete: tuple[Candidate, ...] = ()
    stats: ValidationStats = ValidationStats()

    @property
    def admitted(self) -> tuple[Candidate, ...]:
        return self.passed + self.soft_failed


# =========================
# Orchestrator output
# =========================


class ExpansionSuggestion(BaseModel):
    model_config = _FROZEN

    kind: Literal["location", "budget", "area", "property_type", "generic"]
    description: str
    query: str | None = Field(None, description="Ready-to-run rewritten request, when one applies.")


class ProviderFailure(BaseModel):
    model_config = _FROZEN

    provider: str
    query: str
    error: str


class SearchDiagnostics(BaseModel):
    model_config = _FROZEN

    providers_used: tuple[str, ...] = ()
    fallback_used: bool = False
    raw_result_count: int = 0
    after_rank_count: int = 0
    scraped_count: int = 0
    reranked: bool = False
    failures: tuple[ProviderFailure, ...] = ()
    cache_hit: bool = False
    uf_rate: float | None = None
    elapsed_ms: int = 0


class ContextPayload(BaseModel):
    """
    Grounding block handed to the downstream language model.

    `allowed_urls` is the numbered allow-list; every entry is literally the URL
    of a candidate in the result.
    """

    model_config = _FROZEN

    text: str
    allowed_urls: tuple[str, ...] = ()


class SearchResult(BaseModel):
    model_config = _FROZEN

    query: str
    vertical: Vertical
    intent: SearchIntent | None = None
    queries_used: tuple[str, ...] = ()
    context_queries: tuple[str, ...] = ()
    results: tuple[Candidate, ...] = Field((), description="Admitted individual items (never listing pages).")
    listing_pages: tuple[Candidate, ...] = Field((), description="Admitted search/category pages.")
    zones: ResolvedZoneSet | None = None
    validation_stats: ValidationStats | None = None
    valid_listing_count: int = 0
    insufficient: bool = False
    expansion_suggestions: tuple[ExpansionSuggestion, ...] = ()
    context_payload: ContextPayload | None = None
    diagnostics: SearchDiagnostics = SearchDiagnostics()
    cached: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.results and not self.listing_pages


# =========================
# Runtime policy
# =========================

_ENV_PREFIX = "PROPSEARCH_"


class SearchPolicy(BaseModel):
    """
    Tunables for one search call.

    Everything the pipeline treats as a threshold, budget or timeout lives here
    so tests and deployments can override values without touching code.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, extra="ignore")

    max_queries: int = Field(8, ge=1, le=8, description="Upper bound on provider queries per request.")
    max_context_queries: int = Field(2, ge=0, le=2, description="Upper bound on zone/market context queries.")
    results_per_query: int = Field(10, ge=1, le=10, description="Results requested from the provider per query.")
    search_timeout_s: float = Field(10.0, gt=0, description="Per-request timeout for provider searches.")
    scrape_timeout_s: float = Field(8.0, gt=0, description="Per-page timeout for scraping.")
    max_workers: int = Field(8, ge=1, description="Thread pool size for provider fan-out.")
    scrape_top_n: int = Field(5, ge=0, description="Scrape at most this many top-ranked candidates.")
    scrape_max_length: int = Field(5000, ge=100, description="Truncate scraped page text to this many characters.")
    max_results: int = Field(10, ge=1, description="Cap on admitted candidates returned.")
    cache_ttl_s: int = Field(6 * 3600, ge=0, description="Lifetime of cached search results in seconds.")
    cache_dir: Path = Field(Path("data/cache/search"), description="Directory for the file search cache.")
    min_valid_listings: int = Field(3, ge=0, description="Below this count the result is flagged insufficient.")
    rerank_margin: float = Field(0.08, ge=0, le=1, description="External re-rank fires when top − third score is below this.")
    premium_fail_ratio: float = Field(
        0.30, ge=0, le=1, description="Premium qualifier: price below this fraction of the ceiling is a hard failure."
    )
    premium_warn_ratio: float = Field(
        0.50, ge=0, le=1, description="Premium qualifier: price below this fraction of the ceiling is a warning."
    )
    fallback_uf_rate: float = Field(38800.0, gt=0, description="CLP per UF used when no rate source answers.")
    budget_expansion_pct: float = Field(25.0, ge=0, description="Budget increase proposed by expansion suggestions.")
    area_relax_pct: float = Field(25.0, ge=0, le=90, description="Area reduction proposed by expansion suggestions.")
    user_agent: str = Field(
        "Mozilla/5.0 (compatible; propsearch/0.3; +search-resolution)",
        description="User-Agent header for provider and scrape requests.",
    )

    @field_validator("premium_warn_ratio")
    @classmethod
    def _warn_above_fail(cls, v: float, info: Any) -> float:
        fail = info.data.get("premium_fail_ratio")
        if fail is not None and v < fail:
            raise ValueError("premium_warn_ratio must be >= premium_fail_ratio")
        return v

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None, **overrides: Any) -> SearchPolicy:
        """
        Build a policy from `PROPSEARCH_<FIELD>` environment variables.

        Unknown or empty variables are ignored; explicit keyword overrides win.
        """
        source = os.environ if env is None else env
        values: dict[str, Any] = {}
        for name in cls.model_fields:
            raw = source.get(f"{_ENV_PREFIX}{name.upper()}")
            if raw is not None and raw.strip() != "":
                values[name] = raw.strip()
        values.update(overrides)
        return cls(**values)


__all__ = [
    "Location",
    "ZoneQualifier",
    "Budget",
    "Area",
    "SearchIntent",
    "QueryPlan",
    "RawResult",
    "ExtractedFacts",
    "ScoreBreakdown",
    "Validation",
    "Candidate",
    "ResolvedZoneSet",
    "ValidationStats",
    "ValidationReport",
    "ExpansionSuggestion",
    "ProviderFailure",
    "SearchDiagnostics",
    "ContextPayload",
    "SearchResult",
    "SearchPolicy",
]
