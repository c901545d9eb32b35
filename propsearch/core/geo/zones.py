# propsearch/core/geo/zones.py
"""
Resolve a zone qualifier ("sector alto", "condominio", ...) into concrete
sector names for a city.

Two sources are merged:
  - context: sector names pulled from context-query results with a few
    surface patterns, each classified by the premium/non-premium words
    around its first mention
  - known table: a small built-in city → qualifier → sectors mapping

A sector listed as both matching and excluded is treated as matching.
Confidence is high when both sources contributed matching sectors, medium
when one did, low otherwise.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping, Sequence

from propsearch.core.matching import strip_accents
from propsearch.core.tables import SearchTables, default_tables
from propsearch.schemas.labels import ZoneConfidence, ZoneSource
from propsearch.schemas.models import Candidate, RawResult, ResolvedZoneSet, SearchIntent

logger = logging.getLogger(__name__)

WINDOW_BEFORE = 100
WINDOW_SIZE = 250
MIN_NAME_LEN = 3
MAX_NAME_LEN = 39
MAX_NAME_WORDS = 4
CONTEXT_SUMMARY_LINES = 5

_UPPER = "A-ZÁÉÍÓÚÑÜ"
_LOWER = "a-záéíóúñü"
_PROPER = rf"[{_UPPER}][{_LOWER}]+(?:\s+(?:(?:de|del|la|las|los)\s+)?[{_UPPER}][{_LOWER}]+)*"

_SECTOR_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"(?:[Ss]ector|[Bb]arrio|[Zz]ona|[Vv]illa|[Pp]oblación|[Cc]ondominio|[Ll]oteo)\s+({_PROPER})"),
    re.compile(rf"({_PROPER})\s+(?:es|son|como)\s+(?:el|los|la|las)\s+(?:barrio|sector|zona|mejor|más)"),
    re.compile(rf"[Vv]ivir\s+en\s+({_PROPER})"),
    re.compile(rf"(?:Av\.?|Avenida)\s+({_PROPER})"),
)


_LEAD_WORD_RE = re.compile(r"^(?:Sector|Barrio|Zona)\s+")


def norm_sector(s: str) -> str:
    return strip_accents(s).lower().strip()


def _unique(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    out: list[str] = []
    for it in items:
        k = norm_sector(it)
        if k and k not in seen:
            seen.add(k)
            out.append(it)
    return out


def _as_texts(results: Iterable[RawResult | Candidate | Mapping[str, str]]) -> list[tuple[str, str]]:
    out: list[tuple[str, str]] = []
    for r in results:
        if isinstance(r, Candidate):
            out.append((r.title, r.snippet))
        elif isinstance(r, RawResult):
            out.append((r.title, r.snippet))
        else:
            out.append((str(r.get("title") or ""), str(r.get("snippet") or "")))
    return out


class ZoneResolver:
    def __init__(self, tables: SearchTables | None = None) -> None:
        self.tables = tables or default_tables()

    # ---- context extraction ----

    def candidate_names(self, text: str, city: str) -> list[str]:
        skip = {norm_sector(s) for s in self.tables.sector_stopwords}
        skip.add(norm_sector(city))
        names: list[str] = []
        for rx in _SECTOR_PATTERNS:
            for m in rx.finditer(text):
                name = m.group(1).strip()
                name = _LEAD_WORD_RE.sub("", name)
                if norm_sector(name) in skip:
                    continue
                if not (MIN_NAME_LEN <= len(name) <= MAX_NAME_LEN):
                    continue
                if len(name.split()) > MAX_NAME_WORDS:
                    continue
                names.append(name)
        return _unique(names)

    def classify(self, names: Sequence[str], text: str, premium: bool) -> tuple[list[str], list[str]]:
        if not premium:
            return list(names), []
        low = text.lower()
        matching: list[str] = []
        excluded: list[str] = []
        for name in names:
            pos = low.find(name.lower())
            if pos < 0:
                continue
            start = max(0, pos - WINDOW_BEFORE)
            window = low[start : start + WINDOW_SIZE]
            is_premium = any(ind in window for ind in self.tables.premium_indicators)
            is_plain = any(ind in window for ind in self.tables.non_premium_indicators)
            if is_plain and not is_premium:
                excluded.append(name)
            else:
                # premium-only and ambiguous both count as matching
                matching.append(name)
        return matching, excluded

    # ---- known table ----

    def known(self, city: str, qualifier: str) -> tuple[list[str], list[str]]:
        target = norm_sector(city)
        for known_city, quals in self.tables.known_sectors.items():
            if norm_sector(known_city) != target:
                continue
            entry = quals.get(qualifier)
            if entry:
                return list(entry.get("sectors", ())), list(entry.get("excluded", ()))
        return [], []

    # ---- public ----

    def resolve(self, intent: SearchIntent, context_results: Iterable[RawResult | Candidate | Mapping[str, str]] = ()) -> ResolvedZoneSet:
        city = intent.location.name if intent.location else None
        qual = intent.zone_qualifier
        if not city or qual is None:
            return ResolvedZoneSet(city=city, qualifier=qual.tag if qual else None, note="no city or zone qualifier to resolve")

        pairs = _as_texts(context_results)
        full_text = " ".join(f"{t} {s}" for t, s in pairs)

        names = self.candidate_names(full_text, city)
        ctx_matching, ctx_excluded = self.classify(names, full_text, qual.premium)
        known_matching, known_excluded = self.known(city, qual.tag)

        matching = _unique([*ctx_matching, *known_matching])
        matching_keys = {norm_sector(m) for m in matching}
        excluded = [e for e in _unique([*ctx_excluded, *known_excluded]) if norm_sector(e) not in matching_keys]

        if ctx_matching and known_matching:
            confidence, source = ZoneConfidence.high, ZoneSource.both
        elif ctx_matching:
            confidence, source = ZoneConfidence.medium, ZoneSource.context
        elif known_matching:
            confidence, source = ZoneConfidence.medium, ZoneSource.known_table
        else:
            confidence = ZoneConfidence.low
            source = ZoneSource.context if ctx_excluded else ZoneSource.none

        lines = [f"{t}: {s}" for t, s in pairs if t or s][:CONTEXT_SUMMARY_LINES]

        logger.info(
            "Zones for %s/%s: %d matching, %d excluded (%s, %s)",
            city,
            qual.tag,
            len(matching),
            len(excluded),
            confidence.value,
            source.value,
        )
        return ResolvedZoneSet(
            city=city,
            qualifier=qual.tag,
            sectors_matching=tuple(matching),
            sectors_excluded=tuple(excluded),
            confidence=confidence,
            source=source,
            raw_context="\n".join(lines),
        )


def resolve_zones(
    intent: SearchIntent,
    context_results: Iterable[RawResult | Candidate | Mapping[str, str]] = (),
    tables: SearchTables | None = None,
) -> ResolvedZoneSet:
    return ZoneResolver(tables).resolve(intent, context_results)


def mentions(text: str, sector: str) -> bool:
    """Accent- and case-insensitive whole-phrase mention test."""
    hay = norm_sector(text)
    needle = norm_sector(sector)
    if not needle:
        return False
    return re.search(r"(?<!\w)" + re.escape(needle) + r"(?!\w)", hay) is not None


__all__ = ["ZoneResolver", "resolve_zones", "mentions", "norm_sector"]
