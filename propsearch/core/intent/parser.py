# propsearch/core/intent/parser.py
"""
Free-text property request → SearchIntent.

Pipeline (pure, no I/O, never raises on odd input):
  1) normalize (lower-case, collapse whitespace)
  2) operation (rent vs sale; default sale)
  3) location (gazetteer longest-first, then "en <place>" fallback)
  4) property type (keyword table; earliest hit, longest keyword on ties)
  5) budget (UF range → UF amount → CLP millions → CLP grouped digits)
  6) area (hectares ×10,000 → m², explicit m²) and type inference from area
  7) rooms (explicit word, then digit+letter shorthand)
  8) features (longest-first, word-bounded, de-duplicated; soft vs hard)
  9) zone qualifier (ordered patterns) and urban/rural setting
 10) confidence + clarifying questions
"""

from __future__ import annotations

import re
from functools import lru_cache

from propsearch.core.matching import (
    Rule,
    first_match,
    keyword_regex,
    longest_first,
    normalize_text,
    parse_cl_number,
    parse_decimal,
    strip_accents,
)
from propsearch.core.tables import QualifierSpec, SearchTables, default_tables
from propsearch.schemas.labels import AreaUnit, Currency, HardConstraint, Operation, PropertyType, Setting
from propsearch.schemas.models import Area, Budget, Location, SearchIntent, ZoneQualifier

CONFIDENCE_WEIGHTS: dict[str, float] = {
    "type": 0.30,
    "location": 0.30,
    "budget": 0.15,
    "area": 0.10,
    "features": 0.05,
    "rooms": 0.10,
}

DEFAULT_TOLERANCE_PCT = 12.0
TIGHT_TOLERANCE_PCT = 5.0
LAND_AREA_THRESHOLD_M2 = 1_000.0
RURAL_AREA_THRESHOLD_M2 = 5_000.0

QUESTION_LOCATION = "Which comuna or city are you searching in?"
QUESTION_TYPE = "What type of property are you interested in (casa, departamento, parcela, terreno)?"

_NUM_FREE = r"(?:\d{1,3}(?:\.\d{3})+|\d+)(?:,\d+)?"
_NUM = r"(?<![\w.,])" + _NUM_FREE
_CEILING_WORDS = r"(?:hasta|max|máx|maximo|máximo|tope)"

_RENT_RE = re.compile(r"\b(?:arriendo|arriendos|arrienda|arrendar|alquil\w*|rent)\b")
_BUY_RE = re.compile(r"\bcomprar?\b")
_CEILING_RE = re.compile(r"\b" + _CEILING_WORDS + r"\b")

# "en <place words>"
_EN_PLACE_RE = re.compile(r"\ben\s+(?=([a-záéíóúñü]+(?:\s+[a-záéíóúñü]+){0,4}))")
_PLACE_BREAK_WORDS = frozenset(
    {"con", "y", "hasta", "para", "por", "que", "sin", "cerca", "entre", "max", "máx", "tope", "o", "en", "a", "al"}
)
_PLACE_CONNECTORS = frozenset({"de", "del", "la", "las", "los", "el"})


# -----------------------------
# Budget rules
# -----------------------------


def _uf_range(m: re.Match[str]) -> Budget | None:
    lo = parse_cl_number(m.group(1))
    hi = parse_cl_number(m.group(2))
    if not lo or not hi:
        return None
    lo, hi = min(lo, hi), max(lo, hi)
    return Budget(amount=hi, minimum=lo, currency=Currency.UF, tolerance_pct=TIGHT_TOLERANCE_PCT, raw=m.group(0).strip())


def _uf_amount(m: re.Match[str]) -> Budget | None:
    v = parse_cl_number(m.group(1))
    if not v:
        return None
    tol = TIGHT_TOLERANCE_PCT if _CEILING_RE.search(m.string) else DEFAULT_TOLERANCE_PCT
    return Budget(amount=v, currency=Currency.UF, tolerance_pct=tol, raw=m.group(0).strip())


def _clp_millions(m: re.Match[str]) -> Budget | None:
    v = parse_decimal(m.group(1))
    if not v:
        return None
    return Budget(amount=v * 1_000_000, currency=Currency.CLP, tolerance_pct=DEFAULT_TOLERANCE_PCT, raw=m.group(0).strip())


def _clp_explicit(m: re.Match[str]) -> Budget | None:
    v = parse_cl_number(m.group(1))
    if not v:
        return None
    return Budget(amount=v, currency=Currency.CLP, tolerance_pct=DEFAULT_TOLERANCE_PCT, raw=m.group(0).strip())


_BUDGET_RULES: tuple[Rule[Budget], ...] = (
    Rule.compile("uf_range", r"(?:entre\s+)?(" + _NUM + r")\s*(?:a|-|y)\s*(" + _NUM + r")\s*uf\b", _uf_range),
    Rule.compile("uf_suffix", r"(?:" + _CEILING_WORDS + r"\s+)?(" + _NUM + r")\s*uf\b", _uf_amount),
    Rule.compile("uf_prefix", r"(?:" + _CEILING_WORDS + r"\s+)?\buf\s?(" + _NUM_FREE + r")(?!\d)", _uf_amount),
    Rule.compile("clp_millions", r"(?:" + _CEILING_WORDS + r"\s+)?(\d+(?:[.,]\d+)?)\s*(?:millones?|mm)\b", _clp_millions),
    Rule.compile("clp_explicit", r"\$\s?(\d{1,3}(?:\.\d{3}){1,3})(?!\d)", _clp_explicit),
)


# -----------------------------
# Area rules
# -----------------------------


def _area_ha(m: re.Match[str]) -> Area | None:
    v = parse_decimal(m.group(1))
    if not v:
        return None
    return Area(amount=v, unit=AreaUnit.ha, m2=v * 10_000)


def _area_m2(m: re.Match[str]) -> Area | None:
    v = parse_cl_number(m.group(1))
    if not v:
        return None
    return Area(amount=v, unit=AreaUnit.m2, m2=v)


_AREA_RULES: tuple[Rule[Area], ...] = (
    Rule.compile("area_ha", r"(\d+(?:[.,]\d+)?)\s*(?:ha|hect[áa]reas?)\b", _area_ha),
    Rule.compile("area_m2", r"(" + _NUM + r")\s*(?:m[²2]|mts2?|metros\s+cuadrados)(?!\w)", _area_m2),
)


# -----------------------------
# Room rules
# -----------------------------


def _count(m: re.Match[str]) -> int | None:
    try:
        return int(m.group(1))
    except (TypeError, ValueError):
        return None


_BEDROOM_RULES: tuple[Rule[int], ...] = (
    Rule.compile("bedrooms_word", r"(\d+)\s*(?:dormitorio|dorm|pieza|habitaci[oó]n)", _count),
    Rule.compile("bedrooms_short", r"\b(\d+)\s*d\b", _count),
)

_BATHROOM_RULES: tuple[Rule[int], ...] = (
    Rule.compile("bathrooms_word", r"(\d+)\s*(?:baño|bano|bath)", _count),
    Rule.compile("bathrooms_short", r"\b(\d+)\s*b\b", _count),
)


# -----------------------------
# Table-driven detectors
# -----------------------------


@lru_cache(maxsize=8)
def _keyword_patterns(keys: tuple[str, ...]) -> tuple[tuple[str, re.Pattern[str]], ...]:
    return tuple((k, keyword_regex(k)) for k in longest_first(keys))


@lru_cache(maxsize=8)
def _qualifier_rules(specs: tuple[QualifierSpec, ...]) -> tuple[Rule[tuple[QualifierSpec, str]], ...]:
    def _handler(spec: QualifierSpec):
        return lambda m: (spec, m.group(0).strip())

    return tuple(Rule.compile(spec.tag, spec.pattern, _handler(spec)) for spec in specs)


def _mask(text: str, start: int, end: int) -> str:
    return text[:start] + " " * (end - start) + text[end:]


def detect_location(q: str, tables: SearchTables) -> tuple[Location | None, str]:
    """Return (location, text with the matched place blanked out)."""
    for key, rx in _keyword_patterns(tuple(tables.locations)):
        m = rx.search(q)
        if m:
            return Location(name=tables.locations[key], raw=m.group(0)), _mask(q, m.start(), m.end())

    for m in _EN_PLACE_RE.finditer(q):
        words = m.group(1).split()
        if not words or words[0] in tables.location_stopwords or words[0] in tables.property_types:
            continue
        kept: list[str] = []
        for w in words:
            if w in _PLACE_BREAK_WORDS or w in tables.location_stopwords or w in tables.features:
                break
            kept.append(w)
        while kept and kept[-1] in _PLACE_CONNECTORS:
            kept.pop()
        candidate = " ".join(kept)
        if len(candidate) <= 2:
            continue
        name = " ".join(w if w in _PLACE_CONNECTORS else w.capitalize() for w in kept)
        start = m.start(1)
        return Location(name=name, raw=candidate), _mask(q, start, start + len(candidate))
    return None, q


def detect_property_type(q: str, tables: SearchTables) -> PropertyType | None:
    best: tuple[int, int, str] | None = None  # (position, -len, canonical)
    for key, rx in _keyword_patterns(tuple(tables.property_types)):
        m = rx.search(q)
        if m is None:
            continue
        cand = (m.start(), -len(key), tables.property_types[key])
        if best is None or cand < best:
            best = cand
    if best is None:
        return None
    try:
        return PropertyType(best[2])
    except ValueError:
        return None


def detect_features(q: str, tables: SearchTables) -> tuple[str, ...]:
    found: list[str] = []
    work = q
    for key, rx in _keyword_patterns(tuple(tables.features)):
        m = rx.search(work)
        if m is None:
            continue
        canonical = tables.features[key]
        if canonical not in found:
            found.append(canonical)
        work = rx.sub(lambda mm: " " * len(mm.group(0)), work)
    return tuple(found)


def detect_qualifier(q: str, tables: SearchTables) -> tuple[QualifierSpec, str] | None:
    hit = first_match(_qualifier_rules(tuple(tables.qualifiers)), q)
    return None if hit is None else hit[1]


# -----------------------------
# Public API
# -----------------------------


def parse_intent(query: str | None, tables: SearchTables | None = None) -> SearchIntent:
    t = tables or default_tables()
    q = normalize_text(query)
    if not q:
        return SearchIntent(raw_query=query or "", clarifying_questions=(QUESTION_LOCATION, QUESTION_TYPE))

    hard: list[str] = []
    soft: list[str] = []

    operation = Operation.rent if _RENT_RE.search(q) else Operation.sale
    if _BUY_RE.search(q):
        operation = Operation.sale

    location, q_wo_place = detect_location(q, t)

    explicit_type = detect_property_type(q_wo_place, t)
    if explicit_type is not None:
        hard.append(HardConstraint.property_type.value)

    budget_hit = first_match(_BUDGET_RULES, q)
    budget = budget_hit[1] if budget_hit else None
    if budget is not None:
        hard.append(HardConstraint.price.value)

    area_hit = first_match(_AREA_RULES, q)
    area = area_hit[1] if area_hit else None

    ptype = explicit_type
    if ptype is None and area is not None:
        if area.unit is AreaUnit.ha:
            ptype = PropertyType.parcela
        elif area.m2 > LAND_AREA_THRESHOLD_M2:
            ptype = PropertyType.terreno

    bedrooms_hit = first_match(_BEDROOM_RULES, q)
    bathrooms_hit = first_match(_BATHROOM_RULES, q)
    bedrooms = bedrooms_hit[1] if bedrooms_hit else None
    bathrooms = bathrooms_hit[1] if bathrooms_hit else None

    features = detect_features(q_wo_place, t)
    for feat in features:
        (soft if feat in t.soft_features else hard).append(feat)

    qualifier: ZoneQualifier | None = None
    setting = Setting.unknown
    priorities: tuple[str, ...] = ()
    q_hit = detect_qualifier(q, t)
    if q_hit is not None:
        spec, raw = q_hit
        qualifier = ZoneQualifier(raw=raw, tag=spec.tag, premium=spec.premium, hard=spec.hard)
        if spec.urban is True:
            setting = Setting.urban
        elif spec.urban is False:
            setting = Setting.rural
        priorities = spec.priorities
        (hard if spec.hard else soft).append(HardConstraint.zone.value)

    if setting is Setting.unknown:
        if ptype in (PropertyType.departamento, PropertyType.oficina, PropertyType.local):
            setting = Setting.urban
        elif ptype in (PropertyType.parcela, PropertyType.campo, PropertyType.terreno) and area and area.m2 > RURAL_AREA_THRESHOLD_M2:
            setting = Setting.rural
        if any(re.search(p, q) for p in t.rural_markers):
            setting = Setting.rural

    if not priorities:
        priorities = ("price", "location")

    score = 0.0
    if ptype is not None:
        score += CONFIDENCE_WEIGHTS["type"]
    if location is not None:
        score += CONFIDENCE_WEIGHTS["location"]
    if budget is not None:
        score += CONFIDENCE_WEIGHTS["budget"]
    if area is not None:
        score += CONFIDENCE_WEIGHTS["area"]
    if features:
        score += CONFIDENCE_WEIGHTS["features"]
    if bedrooms is not None or bathrooms is not None:
        score += CONFIDENCE_WEIGHTS["rooms"]

    questions: list[str] = []
    if location is None:
        questions.append(QUESTION_LOCATION)
    if ptype is None:
        questions.append(QUESTION_TYPE)

    return SearchIntent(
        raw_query=query or "",
        property_type=ptype or PropertyType.unknown,
        operation=operation,
        location=location,
        zone_qualifier=qualifier,
        budget=budget,
        area=area,
        bedrooms_min=bedrooms,
        bathrooms_min=bathrooms,
        required_features=features,
        hard_constraints=tuple(dict.fromkeys(hard)),
        soft_constraints=tuple(dict.fromkeys(soft)),
        setting=setting,
        priorities=tuple(priorities),
        confidence=round(min(score, 1.0), 2),
        clarifying_questions=tuple(questions),
    )


def price_range(intent: SearchIntent) -> tuple[float, float] | None:
    """
    Tolerance-adjusted (min, max) in the budget's own currency.

    Explicit ranges widen both edges; a bare ceiling ("hasta X") becomes
    [0, X·(1+tol)].
    """
    b = intent.budget
    if b is None:
        return None
    tol = b.tolerance_pct / 100.0
    hi = b.amount * (1 + tol)
    lo = b.minimum * (1 - tol) if b.minimum is not None else 0.0
    return lo, hi


def location_variants(name: str) -> list[str]:
    """Original spelling first, then the accent-stripped variant when it differs."""
    out = [name]
    plain = strip_accents(name)
    if plain != name:
        out.append(plain)
    return out


def format_cl(n: float) -> str:
    """5000 → '5.000' (Chilean thousands separator)."""
    return f"{round(n):,}".replace(",", ".")


def summarize_intent(intent: SearchIntent) -> str:
    parts: list[str] = []
    if intent.property_type is not PropertyType.unknown:
        parts.append(intent.property_type.value)
    parts.append("for rent" if intent.operation is Operation.rent else "for sale")
    if intent.location:
        parts.append(f"in {intent.location.name}")
    if intent.zone_qualifier:
        parts.append(f"({intent.zone_qualifier.tag})")
    if intent.area:
        amt = intent.area.amount
        parts.append(f"{amt:g} {intent.area.unit.value}")
    b = intent.budget
    if b is not None:
        if b.minimum is not None:
            parts.append(f"{format_cl(b.minimum)}-{format_cl(b.amount)} {b.currency.value}")
        elif b.currency is Currency.CLP:
            parts.append(f"up to ${format_cl(b.amount)}")
        else:
            parts.append(f"up to {format_cl(b.amount)} {b.currency.value}")
    if intent.bedrooms_min:
        parts.append(f"{intent.bedrooms_min}D")
    if intent.bathrooms_min:
        parts.append(f"{intent.bathrooms_min}B")
    if intent.required_features:
        parts.append("with " + ", ".join(intent.required_features))
    return " ".join(parts)


__all__ = [
    "CONFIDENCE_WEIGHTS",
    "parse_intent",
    "price_range",
    "location_variants",
    "summarize_intent",
    "format_cl",
    "detect_location",
    "detect_property_type",
    "detect_features",
    "detect_qualifier",
]
