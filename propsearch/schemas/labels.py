# propsearch/schemas/labels.py
from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import TypeVar

T = TypeVar("T", bound=Enum)

# =========================
# Canonical label enums
# =========================


class PropertyType(str, Enum):
    parcela = "parcela"
    terreno = "terreno"
    sitio = "sitio"
    casa = "casa"
    departamento = "departamento"
    local = "local"
    bodega = "bodega"
    campo = "campo"
    oficina = "oficina"
    unknown = "unknown"


class Operation(str, Enum):
    sale = "sale"
    rent = "rent"


class Currency(str, Enum):
    CLP = "CLP"
    UF = "UF"


class AreaUnit(str, Enum):
    m2 = "m2"
    ha = "ha"


class Vertical(str, Enum):
    real_estate = "real_estate"
    legal = "legal"
    news = "news"
    retail = "retail"
    general = "general"


class TrustTier(str, Enum):
    A = "A"
    B = "B"
    none = "none"


class UrlCategory(str, Enum):
    """
    Shape of a result URL:
      - specific: points at one individual item (a single property / product page)
      - listing: search results, category or paginated index pages
      - unknown: neither signal present
    """

    specific = "specific"
    listing = "listing"
    unknown = "unknown"


class Verdict(str, Enum):
    """Closed set of admission verdicts produced by the candidate validator."""

    passed = "PASS"
    soft_fail = "SOFT_FAIL"
    hard_fail = "HARD_FAIL"
    incomplete = "INCOMPLETE"


class ZoneConfidence(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class ZoneSource(str, Enum):
    context = "context"
    known_table = "known-table"
    both = "both"
    none = "none"


class Setting(str, Enum):
    urban = "urban"
    rural = "rural"
    unknown = "unknown"


class HardConstraint(str, Enum):
    price = "price"
    zone = "zone"
    property_type = "property_type"


# =========================
# Alias maps (free text → canonical)
# =========================

VERDICT_ALIASES: dict[str, Verdict] = {
    "pass": Verdict.passed,
    "ok": Verdict.passed,
    "soft_fail": Verdict.soft_fail,
    "warn": Verdict.soft_fail,
    "hard_fail": Verdict.hard_fail,
    "fail": Verdict.hard_fail,
    "incomplete": Verdict.incomplete,
}

CURRENCY_ALIASES: dict[str, Currency] = {
    "uf": Currency.UF,
    "u.f.": Currency.UF,
    "clp": Currency.CLP,
    "$": Currency.CLP,
    "pesos": Currency.CLP,
}

VERTICAL_ALIASES: dict[str, Vertical] = {
    "real_estate": Vertical.real_estate,
    "realestate": Vertical.real_estate,
    "inmobiliario": Vertical.real_estate,
    "propiedades": Vertical.real_estate,
    "legal": Vertical.legal,
    "news": Vertical.news,
    "noticias": Vertical.news,
    "retail": Vertical.retail,
    "productos": Vertical.retail,
    "general": Vertical.general,
}


def to_enum(enum_cls: type[T], value: str | T | None, aliases: Mapping[str, T] | None = None) -> T | None:
    """
    Coerce free text into a member of `enum_cls`.

    Accepts enum members, member values, member names and any key in `aliases`
    (case-insensitive). Returns None when nothing matches.
    """
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    key = str(value).strip()
    if not key:
        return None
    for member in enum_cls:
        if key == member.value or key == member.name:
            return member
    low = key.lower()
    for member in enum_cls:
        if low == str(member.value).lower() or low == member.name.lower():
            return member
    if aliases:
        return aliases.get(low)
    return None


__all__ = [
    "PropertyType",
    "Operation",
    "Currency",
    "AreaUnit",
    "Vertical",
    "TrustTier",
    "UrlCategory",
    "Verdict",
    "ZoneConfidence",
    "ZoneSource",
    "Setting",
    "HardConstraint",
    "VERDICT_ALIASES",
    "CURRENCY_ALIASES",
    "VERTICAL_ALIASES",
    "to_enum",
]
