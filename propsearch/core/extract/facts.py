# propsearch/core/extract/facts.py
"""
Structured facts from a search result's title, snippet and (optionally)
scraped page text.

Only explicit values are extracted; nothing is estimated. Price per m² is
computed solely from an explicit CLP price and an explicit area. Every
extractor returns None on a miss and the public functions never raise.
"""

from __future__ import annotations

import re
from urllib.parse import urlsplit

from propsearch.core.matching import Rule, first_match, parse_cl_number, parse_decimal
from propsearch.schemas.labels import UrlCategory
from propsearch.schemas.models import ExtractedFacts

# Chilean grouped number: 5.900 | 120.000.000 | 1.250,5
_NUM_FREE = r"(?:\d{1,3}(?:\.\d{3})+|\d+)(?:,\d+)?"
_NUM = r"(?<![\w.,])" + _NUM_FREE


def _cl(m: re.Match[str]) -> float | None:
    return parse_cl_number(m.group(1))


def _clp_millions(m: re.Match[str]) -> float | None:
    v = parse_decimal(m.group(1))
    return None if v is None else v * 1_000_000


def _ha_to_m2(m: re.Match[str]) -> float | None:
    v = parse_decimal(m.group(1))
    return None if v is None else v * 10_000


def _int(m: re.Match[str]) -> int | None:
    try:
        return int(m.group(1))
    except (TypeError, ValueError):
        return None


_CLP_RULES: tuple[Rule[float], ...] = (
    Rule.compile("clp_explicit", r"\$\s?(\d{1,3}(?:\.\d{3}){1,3})(?!\d)", _cl),
    Rule.compile("clp_millions", r"(\d+(?:[.,]\d+)?)\s*millones\b", _clp_millions),
)

_UF_RULES: tuple[Rule[float], ...] = (
    Rule.compile("uf_prefix", r"(?<!\w)UF\s?(" + _NUM_FREE + r")(?!\d)", _cl),
    Rule.compile("uf_suffix", r"(" + _NUM + r")\s*UF\b", _cl),
)

_AREA_RULES: tuple[Rule[float], ...] = (
    Rule.compile("area_m2", r"(" + _NUM + r")\s*m[²2](?!\w)", _cl),
    Rule.compile("area_ha", r"(\d+(?:[.,]\d+)?)\s*(?:ha|hect[áa]reas?)\b", _ha_to_m2),
)

_BEDROOM_RULES: tuple[Rule[int], ...] = (
    Rule.compile("bedrooms_word", r"(\d+)\s*(?:dormitorio|dorm|pieza|habitaci[oó]n)", _int),
    Rule.compile("bedrooms_short", r"\b(\d+)\s*d\b", _int),
)

_BATHROOM_RULES: tuple[Rule[int], ...] = (
    Rule.compile("bathrooms_word", r"(\d+)\s*(?:baño|bano|bath)", _int),
    Rule.compile("bathrooms_short", r"\b(\d+)\s*b\b", _int),
)


def _value(rules, text: str):
    hit = first_match(rules, text)
    return None if hit is None else hit[1]


def extract_price_clp(text: str) -> float | None:
    return _value(_CLP_RULES, text or "")


def extract_price_uf(text: str) -> float | None:
    return _value(_UF_RULES, text or "")


def extract_area_m2(text: str) -> float | None:
    v = _value(_AREA_RULES, text or "")
    return v if v and v > 0 else None


def extract_bedrooms(text: str) -> int | None:
    return _value(_BEDROOM_RULES, text or "")


def extract_bathrooms(text: str) -> int | None:
    return _value(_BATHROOM_RULES, text or "")


# -----------------------------
# URL shape
# -----------------------------

_PAGINATION_RE = re.compile(r"(_Desde_\d+|[?&]page=\d+)", re.IGNORECASE)

_LISTING_PATH_RES = (
    re.compile(r"^/(venta|arriendo|comprar|alquiler)/(casa|departamento|parcela|terreno|sitio|propiedad)s?/"),
    re.compile(r"/(buscar|search|results|listings|resultados)(/|$)"),
    re.compile(r"/(parcelas|casas|departamentos|terrenos|propiedades|avisos)(/|\?|$)"),
)
_LISTING_ID_RES = (
    re.compile(r"/\d{5,}(/|$|\?)"),
    re.compile(r"[-_]\d{6,}"),
)
_CATEGORY_RE = re.compile(r"/(category|categoria|region|comuna|sector)/")

_SPECIFIC_RES = (
    re.compile(r"/(propiedad|property|ficha|detalle|aviso|publicacion|inmueble)/"),
    re.compile(r"/(?=[a-z0-9]*\d)[a-z0-9]{5,}/?$"),
    re.compile(r"[?&]id=\d+"),
    re.compile(r"/\d{6,}(/|$)"),
    re.compile(r"[-_]\d{6,}"),
    re.compile(r"-(casa|depto|departamento|parcela|terreno|sitio)-.*-\d{4,}"),
    re.compile(r"/mlc-?\d+"),
)
_TRAILING_ID_RE = re.compile(r"/\d{4,}/?$")


def classify_url(url: str) -> UrlCategory:
    """
    Decide whether a URL is one specific item, a listing/search page, or unknown.

    Listing signals are checked first; a category path that also carries a
    long numeric identifier is an individual item.
    """
    if not url:
        return UrlCategory.unknown
    if _PAGINATION_RE.search(url):
        return UrlCategory.listing

    low = url.lower()
    try:
        parts = urlsplit(low)
    except ValueError:
        return UrlCategory.unknown
    path = parts.path or ""
    tail = path + (f"?{parts.query}" if parts.query else "")

    for rx in _LISTING_PATH_RES:
        if rx.search(path):
            if any(idr.search(path) for idr in _LISTING_ID_RES):
                return UrlCategory.specific
            return UrlCategory.listing

    if _CATEGORY_RE.search(path):
        return UrlCategory.listing

    if any(rx.search(tail) for rx in _SPECIFIC_RES):
        return UrlCategory.specific
    if _TRAILING_ID_RE.search(path):
        return UrlCategory.specific
    return UrlCategory.unknown


# -----------------------------
# Public entry point
# -----------------------------


def extract_facts(title: str | None, snippet: str | None, url: str | None, page_text: str | None = None) -> ExtractedFacts:
    text = " ".join(p for p in (title, snippet, page_text) if p)

    price_clp = extract_price_clp(text)
    price_uf = extract_price_uf(text)
    area = extract_area_m2(text)
    bedrooms = extract_bedrooms(text)
    bathrooms = extract_bathrooms(text)
    category = classify_url(url or "")

    ppm2 = round(price_clp / area) if price_clp is not None and area else None

    count = 0
    if price_clp is not None or price_uf is not None:
        count += 1
    if area is not None:
        count += 1
    if bedrooms is not None:
        count += 1
    if category is UrlCategory.specific:
        count += 1

    return ExtractedFacts(
        price_clp=price_clp,
        price_uf=price_uf,
        area_m2=area,
        price_per_m2=ppm2,
        bedrooms=bedrooms,
        bathrooms=bathrooms,
        url_category=category,
        validated_field_count=count,
    )


__all__ = [
    "extract_facts",
    "classify_url",
    "extract_price_clp",
    "extract_price_uf",
    "extract_area_m2",
    "extract_bedrooms",
    "extract_bathrooms",
]
