# tests/unit/test_zones.py
from __future__ import annotations

from propsearch.core.geo.zones import ZoneResolver, mentions, norm_sector, resolve_zones
from propsearch.schemas.labels import ZoneConfidence, ZoneSource
from tests.utils import SECTOR_ALTO_QUERY, TEMUCO_QUERY, make_intent, make_raw


def _ctx(snippet: str, title: str = "Barrios de la ciudad"):
    return make_raw("https://blog.example.cl/barrios", title=title, snippet=snippet)


def test_candidate_names_patterns_and_city_skip() -> None:
    r = ZoneResolver()
    names = r.candidate_names("Casas en Avenida Alemania. Vale la pena vivir en Temuco. Sector Las Quilas.", "Temuco")
    assert "Alemania" in names
    assert "Las Quilas" in names
    assert "Temuco" not in names


def test_classify_premium_and_plain_windows() -> None:
    r = ZoneResolver()
    text = "Pueblo Nuevo es un barrio exclusivo. " + "x" * 200 + " Amanecer es una zona popular."
    matching, excluded = r.classify(["Pueblo Nuevo", "Amanecer"], text, premium=True)
    assert matching == ["Pueblo Nuevo"]
    assert excluded == ["Amanecer"]


def test_classify_non_premium_qualifier_keeps_everything() -> None:
    matching, excluded = ZoneResolver().classify(["Amanecer"], "Amanecer zona popular", premium=False)
    assert matching == ["Amanecer"] and excluded == []


def test_resolve_with_context_and_known_table_is_high() -> None:
    ctx = [_ctx("El sector Pueblo Nuevo es el barrio más exclusivo y residencial de la ciudad.")]
    zones = resolve_zones(make_intent(SECTOR_ALTO_QUERY), ctx)
    assert zones.city == "Temuco"
    assert zones.qualifier == "sector alto"
    assert zones.sectors_matching[0] == "Pueblo Nuevo"
    assert "Las Quilas" in zones.sectors_matching
    assert "Amanecer" in zones.sectors_excluded
    assert zones.confidence is ZoneConfidence.high
    assert zones.source is ZoneSource.both
    assert "Barrios de la ciudad" in zones.raw_context


def test_resolve_known_table_only_is_medium() -> None:
    zones = resolve_zones(make_intent(SECTOR_ALTO_QUERY))
    assert zones.confidence is ZoneConfidence.medium
    assert zones.source is ZoneSource.known_table
    assert zones.resolved


def test_sector_in_both_lists_counts_as_matching() -> None:
    ctx = [_ctx("Villa Nielol, un sector popular y económico.")]
    zones = resolve_zones(make_intent(SECTOR_ALTO_QUERY), ctx)
    assert "Nielol" in zones.sectors_matching
    assert "Nielol" not in zones.sectors_excluded


def test_unknown_city_without_context_is_low() -> None:
    zones = resolve_zones(make_intent("casa en Cunco sector alto"))
    assert zones.city == "Cunco"
    assert zones.confidence is ZoneConfidence.low
    assert zones.source is ZoneSource.none
    assert not zones.resolved


def test_no_qualifier_leaves_a_note() -> None:
    zones = resolve_zones(make_intent(TEMUCO_QUERY))
    assert not zones.resolved
    assert zones.note


def test_mentions_is_whole_phrase_and_accent_blind() -> None:
    assert mentions("Casa en PUEBLO NUEVO sur", "Pueblo Nuevo")
    assert not mentions("Casa en Pueblonuevo", "Pueblo Nuevo")
    assert mentions("Depto en Ñuñoa", "nunoa")
    assert not mentions("cualquier texto", "")


def test_norm_sector_folds_case_accents_and_padding() -> None:
    assert norm_sector("  Pueblo Nuevo ") == "pueblo nuevo"
    assert norm_sector("Ñielol") == norm_sector("ñielol")
    assert norm_sector("Lomas de Ayelén") == "lomas de ayelen"
