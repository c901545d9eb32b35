# tests/unit/test_providers_http.py
from __future__ import annotations

import pytest
import requests

from propsearch.core.errors import (
    ProviderBlockedError,
    ProviderHttpError,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)
from propsearch.providers import DuckDuckGoHtmlProvider, SearchProvider, SerpApiProvider
from propsearch.providers.duckduckgo import decode_result_url, parse_results
from propsearch.providers.scrape import fetch_page_text, html_to_text
from propsearch.schemas.models import SearchPolicy
from tests.utils import FakeResp

DDG_HTML = """
<html><body>
  <div class="result result--ad">
    <a class="result__a" href="https://ads.example.com/x">Publicidad</a>
  </div>
  <div class="result results_links">
    <h2><a class="result__a" href="//duckduckgo.com/l/?uddg=https%3A%2F%2Fwww.portalinmobiliario.com%2Fventa%2Fcasa%2Ftemuco%2FMLC-123456789-casa&amp;rut=abc">Casa en venta Temuco</a></h2>
    <a class="result__snippet">UF 4.500 · 3 dormitorios</a>
  </div>
  <div class="result results_links">
    <h2><a class="result__a" href="https://www.yapo.cl/araucania/casa-temuco-98765432">Casa Temuco</a></h2>
  </div>
  <div class="result results_links">
    <h2><a class="result__a" href="javascript:void(0)">Broken</a></h2>
  </div>
</body></html>
"""


# -------- DuckDuckGo --------


def test_decode_result_url() -> None:
    href = "//duckduckgo.com/l/?uddg=https%3A%2F%2Fsite.cl%2Fa%3Fb%3D1&rut=x"
    assert decode_result_url(href) == "https://site.cl/a?b=1"
    assert decode_result_url("https://site.cl/direct") == "https://site.cl/direct"
    assert decode_result_url("") == ""


def test_parse_results_skips_ads_and_bad_links() -> None:
    results = parse_results(DDG_HTML, 10)
    assert [r.url for r in results] == [
        "https://www.portalinmobiliario.com/venta/casa/temuco/MLC-123456789-casa",
        "https://www.yapo.cl/araucania/casa-temuco-98765432",
    ]
    assert results[0].snippet == "UF 4.500 · 3 dormitorios"
    assert results[1].snippet == ""
    assert [r.position for r in results] == [1, 2]
    assert parse_results(DDG_HTML, 1)[0].provider == "duckduckgo"
    assert len(parse_results(DDG_HTML, 1)) == 1


def test_parse_results_detects_challenge() -> None:
    with pytest.raises(ProviderBlockedError):
        parse_results('<form id="challenge-form"></form>', 10)


def test_ddg_search_sends_query_and_region(monkeypatch) -> None:
    seen = {}

    def fake_get(url, params=None, headers=None, timeout=None):
        seen.update(url=url, params=params, timeout=timeout)
        return FakeResp(200, DDG_HTML)

    monkeypatch.setattr("propsearch.providers.duckduckgo.requests.get", fake_get)
    provider = DuckDuckGoHtmlProvider(timeout=3)
    assert isinstance(provider, SearchProvider)
    results = provider.search("casa venta Temuco", max_results=5)
    assert len(results) == 2
    assert seen["params"] == {"q": "casa venta Temuco", "kl": "cl-es"}
    assert seen["timeout"] == 3


@pytest.mark.parametrize(("status", "exc"), [(202, ProviderBlockedError), (429, ProviderBlockedError), (500, ProviderHttpError)])
def test_ddg_status_errors(monkeypatch, status, exc) -> None:
    monkeypatch.setattr("propsearch.providers.duckduckgo.requests.get", lambda *a, **k: FakeResp(status, ""))
    with pytest.raises(exc):
        DuckDuckGoHtmlProvider().search("q")


def test_ddg_timeout_is_typed(monkeypatch) -> None:
    def boom(*a, **k):
        raise requests.Timeout("read timed out")

    monkeypatch.setattr("propsearch.providers.duckduckgo.requests.get", boom)
    with pytest.raises(ProviderTimeoutError):
        DuckDuckGoHtmlProvider().search("q")


# -------- SerpAPI --------


def test_serpapi_without_key_is_unavailable() -> None:
    provider = SerpApiProvider()
    assert not provider.configured
    with pytest.raises(ProviderUnavailableError):
        provider.search("q")


def test_serpapi_parses_organic_results(monkeypatch) -> None:
    seen = {}
    body = {
        "organic_results": [
            {"link": "https://www.toctoc.com/propiedades/1234567", "title": "Casa", "snippet": "UF 4.000", "position": 1, "date": "2025"},
            {"title": "no link"},
            {"link": "https://www.yapo.cl/a-98765432", "title": "Casa 2", "position": 3},
        ]
    }

    def fake_get(url, params=None, timeout=None):
        seen.update(params=params)
        return FakeResp(200, json_data=body)

    monkeypatch.setattr("propsearch.providers.serpapi.requests.get", fake_get)
    results = SerpApiProvider("k").search("casa temuco", max_results=25)
    assert [r.position for r in results] == [1, 3]
    assert results[0].date == "2025"
    assert results[1].snippet == ""
    p = seen["params"]
    assert (p["engine"], p["gl"], p["hl"], p["num"], p["api_key"]) == ("google", "cl", "es", 10, "k")


def test_serpapi_no_results_is_empty(monkeypatch) -> None:
    body = {"error": "Google hasn't returned any results for this query."}
    monkeypatch.setattr("propsearch.providers.serpapi.requests.get", lambda *a, **k: FakeResp(200, json_data=body))
    assert SerpApiProvider("k").search("q") == []


@pytest.mark.parametrize(
    ("resp", "exc"),
    [
        (FakeResp(429), ProviderBlockedError),
        (FakeResp(401), ProviderHttpError),
        (FakeResp(200, json_data={"error": "Invalid API key"}), ProviderResponseError),
        (FakeResp(200, json_data=["not", "an", "object"]), ProviderResponseError),
        (FakeResp(200, text="<html>"), ProviderResponseError),
    ],
)
def test_serpapi_errors(monkeypatch, resp, exc) -> None:
    monkeypatch.setattr("propsearch.providers.serpapi.requests.get", lambda *a, **k: resp)
    with pytest.raises(exc):
        SerpApiProvider("k").search("q")


def test_serpapi_reads_key_from_env(monkeypatch) -> None:
    monkeypatch.setenv("SERPAPI_KEY", "from-env")
    assert SerpApiProvider().configured


# -------- page scraping --------


def test_html_to_text_strips_chrome_and_truncates() -> None:
    body = "<nav>menu</nav><script>var x=1;</script><main><p>" + "Casa amplia en Temuco. " * 10 + "</p></main><footer>pie</footer>"
    text = html_to_text(body, max_length=60)
    assert text is not None
    assert text.startswith("Casa amplia en Temuco.")
    assert text.endswith("...")
    assert "menu" not in text and "var x" not in text
    assert html_to_text("<p>corto</p>") is None


def test_fetch_page_text(monkeypatch) -> None:
    page = "<html><body><p>" + "Departamento luminoso en Ñuñoa. " * 5 + "</p></body></html>"
    monkeypatch.setattr("propsearch.providers.scrape.requests.get", lambda *a, **k: FakeResp(200, page))
    assert "Ñuñoa" in fetch_page_text("https://site.cl/p")

    pdf = FakeResp(200, "%PDF", headers={"Content-Type": "application/pdf"})
    monkeypatch.setattr("propsearch.providers.scrape.requests.get", lambda *a, **k: pdf)
    assert fetch_page_text("https://site.cl/doc.pdf") is None

    monkeypatch.setattr("propsearch.providers.scrape.requests.get", lambda *a, **k: FakeResp(404))
    with pytest.raises(ProviderHttpError):
        fetch_page_text("https://site.cl/missing")


@pytest.mark.parametrize("provider_cls", [DuckDuckGoHtmlProvider, SerpApiProvider])
def test_providers_take_timeouts_and_agent_from_policy(monkeypatch, provider_cls) -> None:
    policy = SearchPolicy(search_timeout_s=3.5, scrape_timeout_s=2.0, user_agent="propsearch-test/1.0")
    provider = provider_cls.from_policy(policy)
    assert provider.timeout == 3.5

    seen = {}

    def fake_get(url, **kwargs):
        seen.update(kwargs)
        return FakeResp(200, "<html><body><p>" + "Casa en venta en Temuco con jardín. " * 5 + "</p></body></html>")

    monkeypatch.setattr("propsearch.providers.scrape.requests.get", fake_get)
    assert provider.scrape_page("https://www.portalinmobiliario.com/x", 5000) is not None
    assert seen["timeout"] == 2.0
    assert seen["headers"]["User-Agent"] == "propsearch-test/1.0"
