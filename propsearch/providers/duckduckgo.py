# propsearch/providers/duckduckgo.py
"""
DuckDuckGo HTML endpoint provider.

No API key. Results are parsed from `html.duckduckgo.com/html/` with
BeautifulSoup; redirect links (`/l/?uddg=...`) are decoded back to the
target URL. An anomaly/CAPTCHA page is reported as ProviderBlockedError.
"""

from __future__ import annotations

import logging
from urllib.parse import parse_qs, urljoin, urlsplit

import requests
from bs4 import BeautifulSoup

from propsearch.core.errors import ProviderBlockedError, ProviderHttpError, provider_error_guard
from propsearch.providers.scrape import DEFAULT_TIMEOUT_S as SCRAPE_TIMEOUT_S
from propsearch.providers.scrape import fetch_page_text
from propsearch.schemas.models import RawResult, SearchPolicy

logger = logging.getLogger(__name__)

ENDPOINT = "https://html.duckduckgo.com/html/"
DEFAULT_TIMEOUT_S = 10.0
_DEFAULT_UA = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/124.0 Safari/537.36"


def decode_result_url(href: str) -> str:
    """Turn a DuckDuckGo redirect link into the target URL."""
    if not href:
        return ""
    absolute = urljoin("https://duckduckgo.com", href)
    parts = urlsplit(absolute)
    if parts.hostname and parts.hostname.endswith("duckduckgo.com") and parts.path.startswith("/l/"):
        target = parse_qs(parts.query).get("uddg")
        if target:
            return target[0]
    return absolute


def parse_results(html: str, max_results: int, provider: str = "duckduckgo") -> list[RawResult]:
    soup = BeautifulSoup(html or "", "lxml")
    if soup.select_one("form#challenge-form") or soup.select_one(".anomaly-modal__title"):
        raise ProviderBlockedError("duckduckgo anomaly challenge")
    out: list[RawResult] = []
    for node in soup.select(".result"):
        if "result--ad" in (node.get("class") or []):
            continue
        link = node.select_one("a.result__a")
        if link is None:
            continue
        url = decode_result_url(str(link.get("href") or ""))
        if not url.startswith(("http://", "https://")):
            continue
        snippet_node = node.select_one(".result__snippet")
        out.append(
            RawResult(
                title=link.get_text(" ", strip=True),
                url=url,
                snippet=snippet_node.get_text(" ", strip=True) if snippet_node else "",
                position=len(out) + 1,
                provider=provider,
            )
        )
        if len(out) >= max_results:
            break
    return out


class DuckDuckGoHtmlProvider:
    name = "duckduckgo"

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT_S,
        scrape_timeout: float = SCRAPE_TIMEOUT_S,
        user_agent: str = _DEFAULT_UA,
        region: str = "cl-es",
    ) -> None:
        self.timeout = timeout
        self.scrape_timeout = scrape_timeout
        self.user_agent = user_agent
        self.region = region

    @classmethod
    def from_policy(cls, policy: SearchPolicy) -> DuckDuckGoHtmlProvider:
        return cls(timeout=policy.search_timeout_s, scrape_timeout=policy.scrape_timeout_s, user_agent=policy.user_agent)

    def search(self, query: str, max_results: int = 10) -> list[RawResult]:
        with provider_error_guard():
            resp = requests.get(
                ENDPOINT,
                params={"q": query, "kl": self.region},
                headers={"User-Agent": self.user_agent, "Accept-Language": "es-CL,es;q=0.9"},
                timeout=self.timeout,
            )
            if resp.status_code in (202, 403, 429):
                raise ProviderBlockedError(f"duckduckgo refused request (HTTP {resp.status_code})")
            if resp.status_code >= 400:
                raise ProviderHttpError(f"duckduckgo HTTP {resp.status_code}")
            results = parse_results(resp.text, max_results, self.name)
        logger.debug("duckduckgo %r → %d results", query, len(results))
        return results

    def scrape_page(self, url: str, max_length: int = 5000) -> str | None:
        return fetch_page_text(url, max_length=max_length, timeout=self.scrape_timeout, user_agent=self.user_agent)


__all__ = ["DuckDuckGoHtmlProvider", "decode_result_url", "parse_results", "ENDPOINT"]
