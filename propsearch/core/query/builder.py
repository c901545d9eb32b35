# propsearch/core/query/builder.py
"""
Provider query construction per vertical.

Real estate: queries are assembled only from SearchIntent fields, so raw
user text never reaches a provider. Order is fixed:
  1) one `site:` query per tier-A portal
  2) one `site:` query per tier-B portal
  3) one spelling/locale variant (accent-stripped place + "Chile")
  4) one untargeted fallback naming the portals as plain keywords
and the list is capped at the query budget.

Other verticals: the raw text is cleaned (abbreviations, meta-instruction
noise, punctuation) and vertical domain hints are appended.
"""

from __future__ import annotations

import logging
import re
from functools import lru_cache

from propsearch.core.intent.parser import format_cl, location_variants, parse_intent
from propsearch.core.policy.domains import DomainPolicy
from propsearch.core.tables import SearchTables, default_tables
from propsearch.schemas.labels import Currency, Operation, PropertyType, TrustTier, Vertical, VERTICAL_ALIASES, to_enum
from propsearch.schemas.models import QueryPlan, SearchIntent

logger = logging.getLogger(__name__)

MAX_QUERIES = 8
MAX_CONTEXT_QUERIES = 2
MAX_FEATURES_IN_QUERY = 2

# Portals named in the untargeted fallback query.
_FALLBACK_PORTAL_NAMES = 3

_PLURALS: dict[PropertyType, str] = {
    PropertyType.parcela: "parcelas",
    PropertyType.terreno: "terrenos",
    PropertyType.sitio: "sitios",
    PropertyType.casa: "casas",
    PropertyType.departamento: "departamentos",
    PropertyType.local: "locales comerciales",
    PropertyType.bodega: "bodegas",
    PropertyType.campo: "campos",
    PropertyType.oficina: "oficinas",
}


# -----------------------------
# Text cleaning (non real-estate)
# -----------------------------


@lru_cache(maxsize=8)
def _compiled_abbrev(pairs: tuple[tuple[str, str], ...]) -> tuple[tuple[re.Pattern[str], str], ...]:
    return tuple((re.compile(p, re.IGNORECASE), r) for p, r in pairs)


@lru_cache(maxsize=8)
def _compiled_noise(patterns: tuple[str, ...]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


def clean_query(text: str, tables: SearchTables | None = None, *, expand_abbreviations: bool = True) -> str:
    """Expand 3d/2b shorthands, drop meta-instructions, tidy punctuation and whitespace."""
    t = tables or default_tables()
    q = text or ""
    if expand_abbreviations:
        for rx, repl in _compiled_abbrev(tuple(t.abbreviations)):
            q = rx.sub(repl, q)
    for rx in _compiled_noise(tuple(t.instruction_noise)):
        q = rx.sub(" ", q)
    q = re.sub(r",\s*,", ",", q)
    q = re.sub(r"\s+", " ", q)
    return q.strip(" ,.;:")


# -----------------------------
# Real-estate phrases
# -----------------------------


def core_phrase(intent: SearchIntent, *, location: str | None = None) -> str:
    """Search phrase built from intent fields only."""
    parts: list[str] = []
    if intent.property_type is not PropertyType.unknown:
        parts.append(intent.property_type.value)
    else:
        parts.append("propiedad")
    parts.append("arriendo" if intent.operation is Operation.rent else "venta")
    place = location if location is not None else (intent.location.name if intent.location else None)
    if place:
        parts.append(place)
    if intent.zone_qualifier:
        parts.append(intent.zone_qualifier.tag)
    if intent.area:
        parts.append(f"{intent.area.amount:g} {intent.area.unit.value}")
    if intent.bedrooms_min:
        parts.append(f"{intent.bedrooms_min} dormitorios")
    for feat in intent.required_features[:MAX_FEATURES_IN_QUERY]:
        parts.append(feat)
    return " ".join(parts)


def build_real_estate_queries(intent: SearchIntent, policy: DomainPolicy, max_queries: int = MAX_QUERIES) -> list[str]:
    core = core_phrase(intent)
    queries: list[str] = []
    tier_a = policy.portals(Vertical.real_estate, TrustTier.A)
    tier_b = policy.portals(Vertical.real_estate, TrustTier.B)

    # Reserve the two trailing slots for the variant and fallback queries.
    site_budget = max(max_queries - 2, 1)
    for domain in (*tier_a, *tier_b):
        if len(queries) >= site_budget:
            break
        queries.append(f"{core} site:{domain}")

    variant_place = None
    if intent.location:
        variants = location_variants(intent.location.name)
        variant_place = variants[-1]
    variant = core_phrase(intent, location=variant_place) + " Chile"
    queries.append(variant)

    names = " ".join(d.split(".")[0] for d in (*tier_a, *tier_b)[:_FALLBACK_PORTAL_NAMES])
    queries.append(f"{core} {names}")

    out = list(dict.fromkeys(queries))
    return out[:max_queries]


def build_context_queries(intent: SearchIntent, max_context: int = MAX_CONTEXT_QUERIES) -> list[str]:
    """Zone and market context queries; they feed zone resolution, never the ranker."""
    if intent.location is None or max_context <= 0:
        return []
    city = intent.location.name
    out: list[str] = []
    if intent.zone_qualifier:
        out.append(f"mejores barrios {intent.zone_qualifier.tag} {city} para vivir")
    else:
        out.append(f"mejores barrios sectores para vivir en {city}")

    kind = _PLURALS.get(intent.property_type, "propiedades")
    price_part = ""
    if intent.budget is not None:
        if intent.budget.currency is Currency.UF:
            price_part = f" {format_cl(intent.budget.amount)} UF"
        else:
            price_part = f" ${format_cl(intent.budget.amount)}"
    out.append(f"precio promedio {kind} {city}{price_part} valor mercado")
    return out[:max_context]


# -----------------------------
# Public entry point
# -----------------------------


def build_queries(
    query: str,
    vertical: Vertical | str = "auto",
    *,
    tables: SearchTables | None = None,
    max_queries: int = MAX_QUERIES,
    max_context_queries: int = MAX_CONTEXT_QUERIES,
) -> QueryPlan:
    t = tables or default_tables()
    policy = DomainPolicy(t)
    max_queries = max(1, min(max_queries, MAX_QUERIES))
    max_context_queries = max(0, min(max_context_queries, MAX_CONTEXT_QUERIES))

    if vertical == "auto" or vertical is None:
        v = policy.detect_vertical(query)
    else:
        v = to_enum(Vertical, vertical, VERTICAL_ALIASES) or Vertical.general

    if v is Vertical.real_estate:
        intent = parse_intent(query, t)
        cleaned = clean_query(query, t)
        queries = build_real_estate_queries(intent, policy, max_queries)
        context = build_context_queries(intent, max_context_queries)
        logger.debug("real-estate plan: %d queries, %d context", len(queries), len(context))
        return QueryPlan(vertical=v, queries=tuple(queries), context_queries=tuple(context), cleaned_query=cleaned, intent=intent)

    cleaned = clean_query(query, t)
    hints = t.vertical_hints.get(v.value) or t.vertical_hints.get(Vertical.general.value, ("Chile",))
    queries = [f"{cleaned} {h}".strip() for h in hints] if cleaned else list(hints)
    queries = list(dict.fromkeys(queries))[:max_queries]
    return QueryPlan(vertical=v, queries=tuple(queries), cleaned_query=cleaned)


__all__ = [
    "MAX_QUERIES",
    "MAX_CONTEXT_QUERIES",
    "build_queries",
    "build_real_estate_queries",
    "build_context_queries",
    "clean_query",
    "core_phrase",
]
