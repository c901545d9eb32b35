# tests/unit/test_validator.py
from __future__ import annotations

import pytest

from propsearch.core.validate.candidates import (
    LISTING_PAGE_WARNING,
    NO_PRICE_WARNING,
    CandidateValidator,
    candidate_price_uf,
    summarize_report,
)
from propsearch.schemas.labels import Verdict, ZoneConfidence
from propsearch.schemas.models import ExtractedFacts, SearchPolicy
from tests.utils import (
    DEFAULT_UF_RATE,
    PI_LISTING,
    PI_SPECIFIC,
    SECTOR_ALTO_QUERY,
    TEMUCO_QUERY,
    make_candidate,
    make_intent,
    make_zones,
)


@pytest.fixture
def validator() -> CandidateValidator:
    return CandidateValidator()


def _check(validator, snippet, query=TEMUCO_QUERY, zones=None, url=PI_SPECIFIC):
    cand = make_candidate(url, snippet=snippet)
    return validator.validate_one(cand, make_intent(query), zones, DEFAULT_UF_RATE).validation


def test_assess_matches_validate_one(validator) -> None:
    cand = make_candidate(PI_SPECIFIC, snippet="UF 9.000 · 3 dormitorios")
    intent = make_intent()
    facts, v = validator.assess(cand, intent, None, DEFAULT_UF_RATE)
    checked = validator.validate_one(cand, intent, None, DEFAULT_UF_RATE)
    assert v.verdict is Verdict.hard_fail
    assert checked.validation == v
    assert checked.facts == facts
    assert cand.validation is None


# -------- price --------


def test_within_budget_passes(validator) -> None:
    v = _check(validator, "UF 4.500 · 3 dormitorios · 2 baños · 180 m2")
    assert v.verdict is Verdict.passed
    assert v.failures == () and v.warnings == ()


def test_over_budget_is_never_pass(validator) -> None:
    v = _check(validator, "UF 6.000 · 3 dormitorios")
    assert v.verdict is Verdict.hard_fail
    assert "above the budget ceiling" in v.failures[0]


def test_over_budget_is_a_warning_when_price_is_soft(validator) -> None:
    intent = make_intent(TEMUCO_QUERY)
    soft = intent.model_copy(update={"hard_constraints": ()})
    cand = make_candidate(snippet="UF 6.000 · 3 dormitorios")
    v = validator.validate_one(cand, soft, None, DEFAULT_UF_RATE).validation
    assert v.verdict is Verdict.soft_fail
    assert any("above the budget ceiling" in w for w in v.warnings)


def test_tolerance_band_edge(validator) -> None:
    # 5% over 5.000 UF is still inside the band
    assert _check(validator, "UF 5.250 · 3 dormitorios").verdict is Verdict.passed
    assert _check(validator, "UF 5.300 · 3 dormitorios").verdict is Verdict.hard_fail


def test_clp_price_is_converted_with_the_given_rate() -> None:
    facts = ExtractedFacts(price_clp=190_000_000)
    assert candidate_price_uf(facts, 38_000) == pytest.approx(5_000)
    assert candidate_price_uf(ExtractedFacts(price_uf=10, price_clp=1), 38_000) == 10
    assert candidate_price_uf(ExtractedFacts(), 38_000) is None


def test_missing_price_is_a_warning(validator) -> None:
    v = _check(validator, "3 dormitorios · 180 m2")
    assert v.verdict is Verdict.soft_fail
    assert NO_PRICE_WARNING in v.warnings


# -------- premium coherence --------


@pytest.mark.parametrize(
    ("snippet", "verdict"),
    [
        ("UF 1.400 · casa en Pueblo Nuevo", Verdict.hard_fail),  # 28% of ceiling
        ("UF 2.000 · casa en Pueblo Nuevo", Verdict.soft_fail),  # 40%
        ("UF 2.600 · casa en Pueblo Nuevo", Verdict.passed),  # 52%
    ],
)
def test_premium_coherence_thresholds(validator, snippet, verdict) -> None:
    assert _check(validator, snippet, SECTOR_ALTO_QUERY, make_zones()).verdict is verdict


def test_coherence_ratios_come_from_policy() -> None:
    strict = CandidateValidator(SearchPolicy(premium_fail_ratio=0.5, premium_warn_ratio=0.6))
    v = _check(strict, "UF 2.000 · casa en Pueblo Nuevo", SECTOR_ALTO_QUERY, make_zones())
    assert v.verdict is Verdict.hard_fail


# -------- zones --------


def test_excluded_sector_is_rejected(validator) -> None:
    v = _check(validator, "UF 4.000 · casa en Amanecer", SECTOR_ALTO_QUERY, make_zones())
    assert v.verdict is Verdict.hard_fail
    assert v.failures == ("Located in excluded sector: Amanecer",)


def test_longer_excluded_name_beats_shorter_matching_name(validator) -> None:
    v = _check(validator, "UF 4.000 · casa en Pueblo Nuevo Sur", SECTOR_ALTO_QUERY, make_zones())
    assert v.verdict is Verdict.hard_fail
    assert "Pueblo Nuevo Sur" in v.failures[0]


def test_matching_sector_passes(validator) -> None:
    v = _check(validator, "UF 4.000 · casa en Las Quilas", SECTOR_ALTO_QUERY, make_zones())
    assert v.verdict is Verdict.passed


def test_unmentioned_sector_warns_only_with_high_confidence(validator) -> None:
    high = _check(validator, "UF 4.000 · casa amplia", SECTOR_ALTO_QUERY, make_zones())
    assert high.verdict is Verdict.soft_fail
    assert any("location unverified" in w for w in high.warnings)

    medium = _check(validator, "UF 4.000 · casa amplia", SECTOR_ALTO_QUERY, make_zones(confidence=ZoneConfidence.medium))
    assert medium.verdict is Verdict.passed


# -------- shape / rooms --------


def test_listing_page_passes_flagged(validator) -> None:
    v = _check(validator, "1.234 casas en venta", url=PI_LISTING)
    assert v.verdict is Verdict.passed
    assert v.is_listing_page
    assert LISTING_PAGE_WARNING in v.warnings


def test_unknown_url_without_facts_is_incomplete(validator) -> None:
    v = _check(validator, "Un artículo sin datos", url="https://www.example.cl/articulo")
    assert v.verdict is Verdict.incomplete


def test_room_shortfall_is_a_warning(validator) -> None:
    v = _check(validator, "UF 4.500 · 2 dormitorios · 1 baño")
    assert v.verdict is Verdict.soft_fail
    assert any("2 bedrooms" in w for w in v.warnings)


# -------- batch --------


def test_validate_batch_stats_and_summary(validator) -> None:
    cands = [
        make_candidate(PI_SPECIFIC, snippet="UF 4.500 · 3 dormitorios"),
        make_candidate(PI_SPECIFIC + "-2", snippet="UF 9.000 · 3 dormitorios"),
        make_candidate(PI_LISTING, snippet="casas en venta"),
        make_candidate("https://www.example.cl/articulo", snippet="nada"),
    ]
    report = validator.validate(cands, make_intent(TEMUCO_QUERY), None, 0)
    s = report.stats
    assert (s.total, s.passed, s.hard_failed, s.incomplete, s.listing_pages) == (4, 2, 1, 1, 1)
    assert s.uf_rate == SearchPolicy().fallback_uf_rate
    assert s.price_range_applied == (0.0, 5250.0)
    assert not s.zone_filter_applied
    assert len(report.admitted) == 2

    line = summarize_report(report)
    assert line.startswith("Validation: 2 passed, 0 with warnings, 1 rejected, 1 incomplete")
    assert "5.250 UF" in line
    assert summarize_report(report.stats) == line
