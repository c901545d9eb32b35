# tests/utils.py
"""
Single source of truth for test data, factories, and fake collaborators.
Update values here to cascade across the test suite.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from propsearch.core.errors import ProviderTimeoutError
from propsearch.core.intent.parser import parse_intent
from propsearch.schemas.labels import ZoneConfidence, ZoneSource
from propsearch.schemas.models import Candidate, RawResult, ResolvedZoneSet, SearchIntent, SearchPolicy

# -----------------------------
# Global defaults (edit once)
# -----------------------------

DEFAULT_UF_RATE = 38_000.0
TEMUCO_QUERY = "casa en Temuco hasta 5000 UF 3 dormitorios"
SECTOR_ALTO_QUERY = "casa en Temuco sector alto hasta 5000 UF"

# Specific listing pages on trusted portals
PI_SPECIFIC = "https://www.portalinmobiliario.com/venta/casa/temuco/MLC-123456789-casa-pueblo-nuevo"
TOCTOC_SPECIFIC = "https://www.toctoc.com/propiedades/compraventa/casa/temuco/casa-en-venta/1234567"
YAPO_SPECIFIC = "https://www.yapo.cl/araucania/casas_venta/casa-temuco-98765432"
# Search/listing page
PI_LISTING = "https://www.portalinmobiliario.com/venta/casa/temuco-araucania"

DEFAULT_POLICY = SearchPolicy(scrape_top_n=0, cache_ttl_s=3600)


# -----------------------------
# Factories
# -----------------------------


def make_raw(
    url: str = PI_SPECIFIC,
    title: str = "Casa en venta Temuco",
    snippet: str = "UF 4.500 · 3 dormitorios · 2 baños · 180 m2",
    *,
    position: int = 1,
    provider: str = "fake",
    date: str | None = None,
) -> RawResult:
    return RawResult(title=title, url=url, snippet=snippet, position=position, provider=provider, date=date)


def make_candidate(
    url: str = PI_SPECIFIC,
    title: str = "Casa en venta Temuco",
    snippet: str = "UF 4.500 · 3 dormitorios · 2 baños · 180 m2",
    *,
    page_text: str | None = None,
    **raw_kwargs,
) -> Candidate:
    return Candidate(raw=make_raw(url, title, snippet, **raw_kwargs), page_text=page_text)


def make_intent(query: str = TEMUCO_QUERY) -> SearchIntent:
    return parse_intent(query)


def make_zones(
    matching: Sequence[str] = ("Pueblo Nuevo", "Las Quilas"),
    excluded: Sequence[str] = ("Amanecer", "Pueblo Nuevo Sur"),
    *,
    confidence: ZoneConfidence = ZoneConfidence.high,
    city: str = "Temuco",
    qualifier: str = "sector alto",
) -> ResolvedZoneSet:
    return ResolvedZoneSet(
        city=city,
        qualifier=qualifier,
        sectors_matching=tuple(matching),
        sectors_excluded=tuple(excluded),
        confidence=confidence,
        source=ZoneSource.both if confidence is ZoneConfidence.high else ZoneSource.known_table,
    )


# -----------------------------
# Fake collaborators
# -----------------------------


class FakeProvider:
    """
    Deterministic provider: returns canned results by substring match on the
    query, records every call, and can be told to fail on some queries.
    """

    def __init__(
        self,
        results: Mapping[str, Iterable[RawResult]] | Iterable[RawResult] = (),
        *,
        name: str = "fake",
        fail_on: Sequence[str] = (),
        pages: Mapping[str, str] | None = None,
    ) -> None:
        self.name = name
        if isinstance(results, Mapping):
            self._by_key = {k: list(v) for k, v in results.items()}
            self._default: list[RawResult] = []
        else:
            self._by_key = {}
            self._default = list(results)
        self.fail_on = tuple(fail_on)
        self.pages = dict(pages or {})
        self.queries: list[str] = []
        self.scraped: list[str] = []

    def search(self, query: str, max_results: int = 10) -> list[RawResult]:
        self.queries.append(query)
        if any(f in query for f in self.fail_on):
            raise ProviderTimeoutError(f"fake timeout for {query!r}")
        for key, items in self._by_key.items():
            if key in query:
                return items[:max_results]
        return self._default[:max_results]

    def scrape_page(self, url: str, max_length: int = 5000) -> str | None:
        self.scraped.append(url)
        text = self.pages.get(url)
        return text[:max_length] if text else None


class FakeRateSource:
    def __init__(self, rate: float | None = DEFAULT_UF_RATE, exc: Exception | None = None) -> None:
        self.rate = rate
        self.exc = exc
        self.calls = 0

    def current_rate(self) -> float:
        self.calls += 1
        if self.exc is not None:
            raise self.exc
        assert self.rate is not None
        return self.rate


class FakeResp:
    """Minimal stand-in for requests.Response."""

    def __init__(self, status_code: int = 200, text: str = "", json_data=None, headers: Mapping[str, str] | None = None) -> None:
        self.status_code = status_code
        self.text = text
        self._json = json_data
        self.headers = dict(headers or {"Content-Type": "text/html; charset=utf-8"})
        self.content = text.encode("utf-8")

    def json(self):
        if self._json is None:
            raise ValueError("no JSON body")
        return self._json

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            import requests

            raise requests.HTTPError(f"HTTP {self.status_code}")
