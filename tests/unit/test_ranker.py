# tests/unit/test_ranker.py
from __future__ import annotations

import pytest

from propsearch.core.rank.ranker import (
    PENALTY_CAP,
    HeuristicRanker,
    canonical_url,
    is_blocked,
    needs_external_rerank,
)
from propsearch.schemas.labels import Vertical
from tests.utils import PI_LISTING, PI_SPECIFIC, TOCTOC_SPECIFIC, YAPO_SPECIFIC, make_candidate


@pytest.fixture
def ranker() -> HeuristicRanker:
    return HeuristicRanker(current_year=2025)


def test_canonical_url_equality() -> None:
    assert canonical_url("https://www.Site.cl/a/?utm_source=x") == canonical_url("https://site.cl/a")


def test_canonical_url_details() -> None:
    assert canonical_url("HTTPS://WWW.Example.CL:443/Path/?b=2&a=1&fbclid=z#frag") == "https://example.cl/Path?a=1&b=2"
    assert canonical_url("http://example.cl:8080/x") == "http://example.cl:8080/x"
    assert canonical_url("https://example.cl/x?UTM_Campaign=y") == "https://example.cl/x"


def test_is_blocked() -> None:
    assert is_blocked("https://www.google.com/search?q=casa")
    assert is_blocked("https://m.facebook.com/marketplace/item/1")
    assert not is_blocked(PI_SPECIFIC)


def test_case_variant_urls_are_merged(ranker: HeuristicRanker) -> None:
    a = make_candidate("https://www.portalinmobiliario.com/venta/casa/temuco/MLC-123456789-casa/?utm_source=Google")
    b = make_candidate("https://PortalInmobiliario.com/venta/casa/temuco/MLC-123456789-casa?utm_source=bing")
    ranked = ranker.rank([a, b], "casa temuco", Vertical.real_estate)
    assert len(ranked) == 1
    assert ranked[0].url == a.url  # first occurrence wins


def test_rank_is_deterministic(ranker: HeuristicRanker) -> None:
    cands = [
        make_candidate(YAPO_SPECIFIC, "Casa Temuco", "UF 4.000 · 3 dormitorios"),
        make_candidate(PI_SPECIFIC, "Casa en venta Temuco Pueblo Nuevo", "UF 4.500 · 3 dormitorios · 180 m2"),
        make_candidate("https://blog.example.cl/guia-comprar-casa", "Guía para comprar casa", "consejos"),
        make_candidate(PI_LISTING, "Casas en venta en Temuco", "1.234 resultados"),
    ]
    first = ranker.rank(cands, "casa venta temuco", Vertical.real_estate)
    second = ranker.rank(cands, "casa venta temuco", Vertical.real_estate)
    assert [c.url for c in first] == [c.url for c in second]
    assert [c.score for c in first] == [c.score for c in second]
    assert first[0].url == PI_SPECIFIC
    assert first[-1].url == "https://blog.example.cl/guia-comprar-casa"


def test_score_components_and_bounds(ranker: HeuristicRanker) -> None:
    [scored] = ranker.rank([make_candidate(TOCTOC_SPECIFIC)], "casa temuco", Vertical.real_estate)
    bd = scored.breakdown
    assert bd is not None
    assert bd.domain_trust == 0.9
    assert bd.query_match == 1.0
    assert bd.listing_type == 1.0
    assert 0.0 <= scored.score <= 1.0
    assert scored.facts is not None and scored.facts.price_uf == 4500


def test_penalties_are_capped(ranker: HeuristicRanker) -> None:
    c = make_candidate("https://amp.example.cl/blog/buscar/?q=casa&amp=1", "Blog: cómo comprar", "")
    assert ranker.penalty(c, Vertical.real_estate) == pytest.approx(PENALTY_CAP)


def test_freshness_bands(ranker: HeuristicRanker) -> None:
    assert ranker.freshness(make_candidate(snippet="publicado 2025")) == 0.9
    assert ranker.freshness(make_candidate(snippet="publicado 2023")) == 0.7
    assert ranker.freshness(make_candidate(snippet="publicado 2022")) == 0.4
    assert ranker.freshness(make_candidate(snippet="publicado 2015")) == 0.2
    assert ranker.freshness(make_candidate(snippet="sin fecha")) == 0.5
    # future years are ignored
    assert ranker.freshness(make_candidate(snippet="proyecto 2031")) == 0.5


def test_needs_external_rerank() -> None:
    def _scored(*scores: float):
        return [make_candidate(f"https://x.cl/{i}").model_copy(update={"score": s}) for i, s in enumerate(scores)]

    assert needs_external_rerank(_scored(0.80, 0.78, 0.75))
    assert not needs_external_rerank(_scored(0.90, 0.70, 0.60))
    assert not needs_external_rerank(_scored(0.80, 0.79))
    assert needs_external_rerank(_scored(0.90, 0.70, 0.60), margin=0.5)
