# tests/unit/test_facts.py
from __future__ import annotations

import pytest

from propsearch.core.extract.facts import (
    classify_url,
    extract_area_m2,
    extract_bathrooms,
    extract_bedrooms,
    extract_facts,
    extract_price_clp,
    extract_price_uf,
)
from propsearch.schemas.labels import UrlCategory
from tests.utils import PI_LISTING, PI_SPECIFIC, TOCTOC_SPECIFIC, YAPO_SPECIFIC


@pytest.mark.parametrize(
    "text,expected",
    [
        ("Casa en venta UF 5.900", 5900.0),
        ("UF5.900 conversable", 5900.0),
        ("precio 8000 UF", 8000.0),
        ("3.250 UF, 2 dormitorios", 3250.0),
        ("sin precio publicado", None),
    ],
)
def test_extract_price_uf(text: str, expected: float | None) -> None:
    assert extract_price_uf(text) == expected


def test_uf_amount_is_never_split_inside_a_longer_number() -> None:
    # "8000 UF" must not be read as 000
    assert extract_price_uf("valor 8000 UF") == 8000.0


def test_extract_price_clp_explicit_and_millions() -> None:
    assert extract_price_clp("Precio $120.000.000") == 120_000_000.0
    assert extract_price_clp("vendo en 85 millones") == 85_000_000.0
    assert extract_price_clp("vendo en 85,5 millones") == 85_500_000.0
    # monthly rents sit below a million pesos
    assert extract_price_clp("Arriendo $ 650.000 mensual") == 650_000.0
    assert extract_price_clp("Precio $1.200") == 1_200.0
    assert extract_price_clp("$600") is None


def test_extract_area_m2_and_hectares() -> None:
    assert extract_area_m2("terreno de 5.000 m2") == 5000.0
    assert extract_area_m2("superficie 180 m²") == 180.0
    assert extract_area_m2("parcela de 1,5 ha") == 15_000.0
    assert extract_area_m2("2 hectáreas con bosque") == 20_000.0
    assert extract_area_m2("sin superficie") is None


def test_rooms() -> None:
    assert extract_bedrooms("3 dormitorios, 2 baños") == 3
    assert extract_bathrooms("3 dormitorios, 2 baños") == 2
    assert extract_bedrooms("casa 4D 3B") == 4
    assert extract_bathrooms("casa 4D 3B") == 3


@pytest.mark.parametrize(
    "url,expected",
    [
        (PI_SPECIFIC, UrlCategory.specific),
        (TOCTOC_SPECIFIC, UrlCategory.specific),
        (YAPO_SPECIFIC, UrlCategory.specific),
        (PI_LISTING, UrlCategory.listing),
        ("https://www.portalinmobiliario.com/venta/casa/temuco-araucania/_Desde_49", UrlCategory.listing),
        ("https://www.chilepropiedades.cl/propiedades/venta/casa/temuco", UrlCategory.listing),
        ("https://www.example.cl/comuna/temuco/", UrlCategory.listing),
        ("https://www.example.cl/propiedad/casa-bonita", UrlCategory.specific),
        ("https://casa.mercadolibre.cl/MLC-1234567890-casa-temuco-_JM", UrlCategory.specific),
        ("https://www.example.cl/nosotros", UrlCategory.unknown),
        ("", UrlCategory.unknown),
    ],
)
def test_classify_url(url: str, expected: UrlCategory) -> None:
    assert classify_url(url) is expected


def test_extract_facts_combines_sources_and_price_per_m2() -> None:
    facts = extract_facts(
        "Casa en venta Temuco",
        "Precio $150.000.000 · 3 dormitorios",
        PI_SPECIFIC,
        page_text="Superficie construida 150 m2, 2 baños",
    )
    assert facts.price_clp == 150_000_000.0
    assert facts.area_m2 == 150.0
    assert facts.price_per_m2 == 1_000_000
    assert facts.bedrooms == 3
    assert facts.bathrooms == 2
    assert facts.url_category is UrlCategory.specific
    assert facts.validated_field_count == 4


def test_extract_facts_never_estimates_price_per_m2_from_uf() -> None:
    facts = extract_facts("Parcela", "UF 2.000 · 5.000 m2", "https://x.cl/a")
    assert facts.price_uf == 2000.0
    assert facts.price_per_m2 is None
