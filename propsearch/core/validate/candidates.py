# propsearch/core/validate/candidates.py
"""
Admission checks for ranked candidates against the request's constraints.

Rules per candidate:
  - listing/search pages: PASS, flagged `is_listing_page` (never shown as a
    single property downstream)
  - unknown-shape URL with no price, area or room facts: INCOMPLETE
  - price: outside the tolerance-adjusted budget range (in UF) → hard failure
    when price is a hard constraint, warning otherwise
  - zone: mention of an excluded sector → hard failure; no sector mention
    under high resolver confidence → warning
  - premium qualifier coherence: price below `premium_fail_ratio` of the
    ceiling → hard failure; below `premium_warn_ratio` → warning
  - bedroom/bathroom shortfall → warning only

Verdict = HARD_FAIL if any failure, else SOFT_FAIL if any warning, else PASS.
All money comparisons are in UF using the single rate passed to `validate`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from propsearch.core.extract.facts import extract_facts
from propsearch.core.geo.zones import mentions, norm_sector
from propsearch.core.intent.parser import format_cl, price_range
from propsearch.schemas.labels import Currency, HardConstraint, UrlCategory, Verdict, ZoneConfidence
from propsearch.schemas.models import (
    Candidate,
    ExtractedFacts,
    ResolvedZoneSet,
    SearchIntent,
    SearchPolicy,
    Validation,
    ValidationReport,
    ValidationStats,
)

logger = logging.getLogger(__name__)

LISTING_PAGE_WARNING = "Search/listing page: groups several properties, not an individual listing"
NO_PRICE_WARNING = "No price detected"
NO_FACTS_NOTE = "No price, area or room facts and the URL shape is unknown"


def to_uf(amount: float, currency: Currency, uf_rate: float) -> float:
    return amount if currency is Currency.UF else amount / uf_rate


def candidate_price_uf(facts: ExtractedFacts, uf_rate: float) -> float | None:
    """Prefer an explicit UF price; otherwise convert the CLP price."""
    if facts.price_uf is not None:
        return facts.price_uf
    if facts.price_clp is not None:
        return facts.price_clp / uf_rate
    return None


def _pct(a: float, b: float) -> int:
    return round(abs(a - b) / b * 100) if b else 0


class CandidateValidator:
    def __init__(self, policy: SearchPolicy | None = None) -> None:
        self.policy = policy or SearchPolicy()

    def budget_range_uf(self, intent: SearchIntent, uf_rate: float) -> tuple[float, float] | None:
        rng = price_range(intent)
        if rng is None or intent.budget is None:
            return None
        cur = intent.budget.currency
        return to_uf(rng[0], cur, uf_rate), to_uf(rng[1], cur, uf_rate)

    # ---- per-candidate checks ----

    def _check_price(self, price_uf: float, rng: tuple[float, float], hard: bool, failures: list[str], warnings: list[str]) -> None:
        lo, hi = rng
        msg = None
        if price_uf > hi:
            msg = f"Price {format_cl(price_uf)} UF is {_pct(price_uf, hi)}% above the budget ceiling ({format_cl(hi)} UF incl. tolerance)"
        elif lo > 0 and price_uf < lo:
            msg = f"Price {format_cl(price_uf)} UF is {_pct(price_uf, lo)}% below the budget minimum ({format_cl(lo)} UF incl. tolerance)"
        if msg:
            (failures if hard else warnings).append(msg)

    def _check_zone(self, text: str, zones: ResolvedZoneSet, failures: list[str], warnings: list[str]) -> None:
        excluded_hits = [s for s in zones.sectors_excluded if mentions(text, s)]
        excluded_keys = [norm_sector(e) for e in excluded_hits]
        matching_hits = [
            s
            for s in zones.sectors_matching
            if mentions(text, s) and not any(norm_sector(s) != e and norm_sector(s) in e for e in excluded_keys)
        ]
        if matching_hits:
            return
        if excluded_hits:
            failures.append(f"Located in excluded sector: {excluded_hits[0]}")
        elif zones.confidence is ZoneConfidence.high:
            warnings.append(f"No sector matching {zones.qualifier or 'the requested zone'!r} mentioned; location unverified")

    def _check_coherence(self, price_uf: float, intent: SearchIntent, uf_rate: float, failures: list[str], warnings: list[str]) -> None:
        b = intent.budget
        if b is None:
            return
        ceiling = to_uf(b.amount, b.currency, uf_rate)
        if ceiling <= 0:
            return
        ratio = price_uf / ceiling
        tag = intent.zone_qualifier.tag if intent.zone_qualifier else "premium area"
        if ratio < self.policy.premium_fail_ratio:
            failures.append(
                f"Price {format_cl(price_uf)} UF is {round(ratio * 100)}% of the budget; implausible for {tag}"
            )
        elif ratio < self.policy.premium_warn_ratio:
            warnings.append(f"Price {format_cl(price_uf)} UF is {round(ratio * 100)}% of the budget; check it really is {tag}")

    def validate_one(
        self,
        cand: Candidate,
        intent: SearchIntent,
        zones: ResolvedZoneSet | None,
        uf_rate: float,
        rng: tuple[float, float] | None = None,
    ) -> Candidate:
        facts, v = self.assess(cand, intent, zones, uf_rate, rng)
        return cand.model_copy(update={"facts": facts, "validation": v})

    def assess(
        self,
        cand: Candidate,
        intent: SearchIntent,
        zones: ResolvedZoneSet | None,
        uf_rate: float,
        rng: tuple[float, float] | None = None,
    ) -> tuple[ExtractedFacts, Validation]:
        facts = cand.facts or extract_facts(cand.title, cand.snippet, cand.url, cand.page_text)

        if facts.url_category is UrlCategory.listing:
            v = Validation(verdict=Verdict.passed, is_listing_page=True, warnings=(LISTING_PAGE_WARNING,))
            return facts, v

        no_facts = not facts.has_price and facts.area_m2 is None and facts.bedrooms is None
        if facts.url_category is UrlCategory.unknown and no_facts:
            v = Validation(verdict=Verdict.incomplete, warnings=(NO_FACTS_NOTE,))
            return facts, v

        failures: list[str] = []
        warnings: list[str] = []

        if not facts.has_price:
            warnings.append(NO_PRICE_WARNING)

        price_uf = candidate_price_uf(facts, uf_rate)
        if rng is None:
            rng = self.budget_range_uf(intent, uf_rate)

        if price_uf is not None and rng is not None:
            self._check_price(price_uf, rng, intent.has_hard(HardConstraint.price), failures, warnings)

        if zones is not None and zones.resolved and intent.has_hard(HardConstraint.zone):
            self._check_zone(cand.text, zones, failures, warnings)

        q = intent.zone_qualifier
        if q is not None and q.premium and price_uf is not None:
            self._check_coherence(price_uf, intent, uf_rate, failures, warnings)

        if intent.bedrooms_min and facts.bedrooms is not None and facts.bedrooms < intent.bedrooms_min:
            warnings.append(f"{facts.bedrooms} bedrooms, fewer than the {intent.bedrooms_min} requested")
        if intent.bathrooms_min and facts.bathrooms is not None and facts.bathrooms < intent.bathrooms_min:
            warnings.append(f"{facts.bathrooms} bathrooms, fewer than the {intent.bathrooms_min} requested")

        if failures:
            verdict = Verdict.hard_fail
        elif warnings:
            verdict = Verdict.soft_fail
        else:
            verdict = Verdict.passed
        v = Validation(verdict=verdict, failures=tuple(failures), warnings=tuple(warnings))
        return facts, v

    # ---- batch ----

    def validate(
        self,
        candidates: Iterable[Candidate],
        intent: SearchIntent,
        zones: ResolvedZoneSet | None,
        uf_rate: float,
    ) -> ValidationReport:
        if uf_rate <= 0:
            uf_rate = self.policy.fallback_uf_rate
        rng = self.budget_range_uf(intent, uf_rate)

        buckets: dict[Verdict, list[Candidate]] = {v: [] for v in Verdict}
        listing_pages = 0
        for cand in candidates:
            facts, v = self.assess(cand, intent, zones, uf_rate, rng)
            buckets[v.verdict].append(cand.model_copy(update={"facts": facts, "validation": v}))
            if v.is_listing_page:
                listing_pages += 1

        stats = ValidationStats(
            total=sum(len(b) for b in buckets.values()),
            passed=len(buckets[Verdict.passed]),
            soft_failed=len(buckets[Verdict.soft_fail]),
            hard_failed=len(buckets[Verdict.hard_fail]),
            incomplete=len(buckets[Verdict.incomplete]),
            listing_pages=listing_pages,
            price_range_applied=(round(rng[0], 2), round(rng[1], 2)) if rng else None,
            zone_filter_applied=bool(zones and zones.resolved and intent.has_hard(HardConstraint.zone)),
            uf_rate=uf_rate,
        )
        logger.info(
            "Validation: %d passed, %d soft, %d hard, %d incomplete",
            stats.passed,
            stats.soft_failed,
            stats.hard_failed,
            stats.incomplete,
        )
        return ValidationReport(
            passed=tuple(buckets[Verdict.passed]),
            soft_failed=tuple(buckets[Verdict.soft_fail]),
            hard_failed=tuple(buckets[Verdict.hard_fail]),
            incomplete=tuple(buckets[Verdict.incomplete]),
            stats=stats,
        )


def summarize_report(report: ValidationReport | ValidationStats) -> str:
    stats = report.stats if isinstance(report, ValidationReport) else report
    parts = [
        f"{stats.passed} passed",
        f"{stats.soft_failed} with warnings",
        f"{stats.hard_failed} rejected",
    ]
    if stats.incomplete:
        parts.append(f"{stats.incomplete} incomplete")
    extras: list[str] = []
    if stats.price_range_applied:
        lo, hi = stats.price_range_applied
        extras.append(f"price range {format_cl(lo)}-{format_cl(hi)} UF")
    if stats.zone_filter_applied:
        extras.append("zone filter on")
    line = "Validation: " + ", ".join(parts)
    if extras:
        line += " (" + "; ".join(extras) + ")"
    return line


__all__ = [
    "CandidateValidator",
    "summarize_report",
    "candidate_price_uf",
    "to_uf",
    "LISTING_PAGE_WARNING",
    "NO_PRICE_WARNING",
]
