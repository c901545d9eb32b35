# propsearch/core/policy/domains.py
"""
Domain trust tiers per vertical, and vertical detection from free text.

Tier A (0.9) = primary sources, tier B (0.6) = secondary, anything else 0.2.
A URL belongs to a tier when its host equals a listed domain or is a
subdomain of one ("www." is ignored).
"""

from __future__ import annotations

from urllib.parse import urlsplit

from propsearch.core.tables import SearchTables, default_tables
from propsearch.schemas.labels import TrustTier, Vertical

TRUST_SCORES: dict[TrustTier, float] = {
    TrustTier.A: 0.9,
    TrustTier.B: 0.6,
    TrustTier.none: 0.2,
}


def extract_domain(url_or_domain: str) -> str:
    """'https://www.PortalInmobiliario.com/x' → 'portalinmobiliario.com'."""
    s = (url_or_domain or "").strip()
    host = ""
    if "://" in s or s.startswith("//"):
        try:
            host = urlsplit(s).hostname or ""
        except ValueError:
            host = ""
    if not host:
        host = s.split("/", 1)[0].split("?", 1)[0].split(":", 1)[0]
    host = host.lower().rstrip(".")
    if host.startswith("www."):
        host = host[4:]
    return host


def host_matches(host: str, domain: str) -> bool:
    return host == domain or host.endswith("." + domain)


class DomainPolicy:
    def __init__(self, tables: SearchTables | None = None) -> None:
        self.tables = tables or default_tables()

    # ---- tiers ----

    def portals(self, vertical: Vertical | str, tier: TrustTier | str) -> tuple[str, ...]:
        v = vertical.value if isinstance(vertical, Vertical) else str(vertical)
        t = tier.value if isinstance(tier, TrustTier) else str(tier)
        return tuple(self.tables.domain_tiers.get(v, {}).get(t, ()))

    def get_tier(self, url: str, vertical: Vertical | str) -> TrustTier:
        host = extract_domain(url)
        if not host:
            return TrustTier.none
        for tier in (TrustTier.A, TrustTier.B):
            if any(host_matches(host, d) for d in self.portals(vertical, tier)):
                return tier
        return TrustTier.none

    def get_trust_score(self, url: str, vertical: Vertical | str) -> float:
        return TRUST_SCORES[self.get_tier(url, vertical)]

    def is_whitelisted(self, url: str, vertical: Vertical | str | None = None) -> bool:
        """True when the host is tier A/B in `vertical` (any vertical when None)."""
        if vertical is not None:
            return self.get_tier(url, vertical) is not TrustTier.none
        return any(self.get_tier(url, v) is not TrustTier.none for v in self.tables.domain_tiers)

    # ---- vertical detection ----

    def _has_any(self, haystack: str, group: str) -> bool:
        return any(term in haystack for term in self.tables.vertical_keywords.get(group, ()))

    def detect_vertical(self, text: str) -> Vertical:
        """
        Classify a request into a vertical; first match wins in the order
        legal > real estate > news > retail > general.

        Currency and market questions ("dólar hoy", "UF a pesos") without any
        property noun are kept out of real estate and fall through to the
        later verticals.
        """
        q = f" {(text or '').lower()} "

        if self._has_any(q, "legal"):
            return Vertical.legal

        financial = self._has_any(q, "financial_guard")
        if self._has_any(q, "real_estate"):
            return Vertical.real_estate
        if not financial and self._has_any(q, "real_estate_weak"):
            return Vertical.real_estate

        if self._has_any(q, "news"):
            return Vertical.news
        if self._has_any(q, "retail"):
            return Vertical.retail
        return Vertical.general


def detect_vertical(text: str, tables: SearchTables | None = None) -> Vertical:
    return DomainPolicy(tables).detect_vertical(text)


def get_tier(url: str, vertical: Vertical | str, tables: SearchTables | None = None) -> TrustTier:
    return DomainPolicy(tables).get_tier(url, vertical)


def get_trust_score(url: str, vertical: Vertical | str, tables: SearchTables | None = None) -> float:
    return DomainPolicy(tables).get_trust_score(url, vertical)


__all__ = [
    "TRUST_SCORES",
    "DomainPolicy",
    "extract_domain",
    "host_matches",
    "detect_vertical",
    "get_tier",
    "get_trust_score",
]
