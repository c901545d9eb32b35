# propsearch/core/rank/ranker.py
"""
Deterministic heuristic ranking of search candidates.

Fixed pipeline:
  (a) drop blocklisted hosts (engines, social, video)
  (b) de-duplicate by canonical URL (first occurrence wins)
  (c) score:
        0.25·query_match + 0.25·domain_trust + 0.20·listing_type
      + 0.15·data_richness + 0.15·freshness − penalty      → clamp [0, 1]
  (d) stable sort, descending

`needs_external_rerank` is advisory: it reports a near-tie at the top so an
optional language-model re-ranker may be consulted.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from datetime import date
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from propsearch.core.extract.facts import extract_facts
from propsearch.core.policy.domains import DomainPolicy, extract_domain, host_matches
from propsearch.core.tables import SearchTables, default_tables
from propsearch.schemas.labels import UrlCategory, Vertical
from propsearch.schemas.models import Candidate, ExtractedFacts, ScoreBreakdown

logger = logging.getLogger(__name__)

WEIGHTS: dict[str, float] = {
    "query_match": 0.25,
    "domain_trust": 0.25,
    "listing_type": 0.20,
    "data_richness": 0.15,
    "freshness": 0.15,
}

RICHNESS_WEIGHTS: dict[str, float] = {
    "price": 0.35,
    "area": 0.25,
    "bedrooms": 0.15,
    "bathrooms": 0.10,
    "price_per_m2": 0.15,
}

PENALTY_CAP = 0.6
PENALTY_SEARCH_PATH = 0.20
PENALTY_AMP = 0.15
PENALTY_INFORMATIONAL = 0.25

LISTING_BONUS_CAP = 0.10
LISTING_BONUS_PER_SIGNAL = 0.02

DEFAULT_RERANK_MARGIN = 0.08

_TOKEN_RE = re.compile(r"[^\w\s]", re.UNICODE)
_YEAR_RE = re.compile(r"(?<!\d)(19[89]\d|20\d{2})(?!\d)")
_SEARCH_PATH_RE = re.compile(r"/(buscar|search|resultados|results|listings|category|categoria|tag|etiqueta)(/|$)|[?&](q|s|query|search)=")
_AMP_RE = re.compile(r"(/amp(/|$)|[?&]amp(=|&|$)|\.amp(\.|/|$)|\bamp\.)")


# -----------------------------
# URL canonicalisation
# -----------------------------


def canonical_url(url: str, tables: SearchTables | None = None) -> str:
    """
    Canonical form used for de-duplication.

    Lower-cases the scheme and host, strips "www.", drops the fragment, a
    trailing slash and tracking parameters, and sorts the remaining query
    parameters. Path case is preserved.
    """
    t = tables or default_tables()
    raw = (url or "").strip()
    try:
        parts = urlsplit(raw)
    except ValueError:
        return raw
    if not parts.netloc:
        return raw.rstrip("/")

    scheme = (parts.scheme or "https").lower()
    host = (parts.hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    try:
        port = parts.port
    except ValueError:
        port = None
    netloc = host if port is None or port in (80, 443) else f"{host}:{port}"

    path = parts.path.rstrip("/")
    kept = []
    for k, v in parse_qsl(parts.query, keep_blank_values=True):
        kl = k.lower()
        if kl in t.tracking_params or any(kl.startswith(p) for p in t.tracking_prefixes):
            continue
        kept.append((k, v))
    kept.sort()
    return urlunsplit((scheme, netloc, path, urlencode(kept), ""))


def is_blocked(url: str, tables: SearchTables | None = None) -> bool:
    t = tables or default_tables()
    host = extract_domain(url)
    return bool(host) and any(host_matches(host, b) for b in t.blocked_hosts)


# -----------------------------
# Ranker
# -----------------------------


class HeuristicRanker:
    def __init__(self, tables: SearchTables | None = None, *, current_year: int | None = None) -> None:
        self.tables = tables or default_tables()
        self.policy = DomainPolicy(self.tables)
        self.current_year = current_year or date.today().year

    # ---- components ----

    def tokenize(self, text: str) -> list[str]:
        words = _TOKEN_RE.sub(" ", (text or "").lower()).split()
        return [w for w in words if w not in self.tables.rank_stopwords]

    def query_match(self, cand: Candidate, terms: Sequence[str]) -> float:
        if not terms:
            return 0.5
        hay = f"{cand.title} {cand.snippet}".lower()
        hits = sum(1 for term in terms if term in hay)
        return hits / len(terms)

    def listing_type_score(self, cand: Candidate, facts: ExtractedFacts, vertical: Vertical) -> float:
        if vertical is not Vertical.real_estate:
            return 0.5
        base = {UrlCategory.specific: 0.9, UrlCategory.listing: 0.5}.get(facts.url_category, 0.2)
        hay = cand.text.lower()
        signals = sum(1 for kw in self.tables.listing_signals if kw in hay)
        bonus = min(LISTING_BONUS_CAP, signals * LISTING_BONUS_PER_SIGNAL)
        return min(1.0, base + bonus)

    @staticmethod
    def data_richness(facts: ExtractedFacts) -> float:
        score = 0.0
        if facts.has_price:
            score += RICHNESS_WEIGHTS["price"]
        if facts.area_m2 is not None:
            score += RICHNESS_WEIGHTS["area"]
        if facts.bedrooms is not None:
            score += RICHNESS_WEIGHTS["bedrooms"]
        if facts.bathrooms is not None:
            score += RICHNESS_WEIGHTS["bathrooms"]
        if facts.price_per_m2 is not None:
            score += RICHNESS_WEIGHTS["price_per_m2"]
        return min(score, 1.0)

    def freshness(self, cand: Candidate) -> float:
        text = " ".join(p for p in (cand.title, cand.snippet, cand.raw.date or "") if p)
        years = [int(y) for y in _YEAR_RE.findall(text)]
        years = [y for y in years if y <= self.current_year]
        if not years:
            return 0.5
        age = self.current_year - max(years)
        if age <= 1:
            return 0.9
        if age == 2:
            return 0.7
        if age == 3:
            return 0.4
        return 0.2

    def penalty(self, cand: Candidate, vertical: Vertical) -> float:
        url = cand.url.lower()
        try:
            parts = urlsplit(url)
            path_q = parts.path + (f"?{parts.query}" if parts.query else "")
            host = parts.hostname or ""
        except ValueError:
            path_q, host = url, ""
        p = 0.0
        if _SEARCH_PATH_RE.search(path_q):
            p += PENALTY_SEARCH_PATH
        if _AMP_RE.search(path_q) or host.startswith("amp."):
            p += PENALTY_AMP
        if vertical is Vertical.real_estate:
            title = cand.title.lower()
            if any(m in title for m in self.tables.informational_markers) or "/blog" in path_q:
                p += PENALTY_INFORMATIONAL
        return min(p, PENALTY_CAP)

    # ---- scoring ----

    def score(self, cand: Candidate, terms: Sequence[str], vertical: Vertical) -> Candidate:
        facts = cand.facts or extract_facts(cand.title, cand.snippet, cand.url, cand.page_text)
        bd = ScoreBreakdown(
            query_match=round(self.query_match(cand, terms), 4),
            domain_trust=self.policy.get_trust_score(cand.url, vertical),
            listing_type=round(self.listing_type_score(cand, facts, vertical), 4),
            data_richness=round(self.data_richness(facts), 4),
            freshness=self.freshness(cand),
            penalty=round(self.penalty(cand, vertical), 4),
        )
        total = (
            WEIGHTS["query_match"] * bd.query_match
            + WEIGHTS["domain_trust"] * bd.domain_trust
            + WEIGHTS["listing_type"] * bd.listing_type
            + WEIGHTS["data_richness"] * bd.data_richness
            + WEIGHTS["freshness"] * bd.freshness
            - bd.penalty
        )
        total = round(max(0.0, min(1.0, total)), 4)
        return cand.model_copy(update={"facts": facts, "score": total, "breakdown": bd})

    def filter_and_dedupe(self, candidates: Iterable[Candidate]) -> list[Candidate]:
        seen: set[str] = set()
        out: list[Candidate] = []
        dropped = 0
        for cand in candidates:
            if is_blocked(cand.url, self.tables):
                dropped += 1
                continue
            key = canonical_url(cand.url, self.tables)
            if key in seen:
                continue
            seen.add(key)
            out.append(cand)
        if dropped:
            logger.debug("Dropped %d blocklisted results", dropped)
        return out

    def rank(self, candidates: Iterable[Candidate], query: str, vertical: Vertical | str) -> list[Candidate]:
        v = vertical if isinstance(vertical, Vertical) else Vertical(vertical)
        terms = self.tokenize(query)
        survivors = self.filter_and_dedupe(candidates)
        scored = [self.score(c, terms, v) for c in survivors]
        # sorted() is stable: equal scores keep input order.
        return sorted(scored, key=lambda c: -(c.score or 0.0))


def needs_external_rerank(ranked: Sequence[Candidate], margin: float = DEFAULT_RERANK_MARGIN) -> bool:
    """True when at least 3 candidates exist and top − third score is below `margin`."""
    if len(ranked) < 3:
        return False
    top = ranked[0].score or 0.0
    third = ranked[2].score or 0.0
    return (top - third) < margin


__all__ = [
    "WEIGHTS",
    "RICHNESS_WEIGHTS",
    "PENALTY_CAP",
    "DEFAULT_RERANK_MARGIN",
    "HeuristicRanker",
    "canonical_url",
    "is_blocked",
    "needs_external_rerank",
]
