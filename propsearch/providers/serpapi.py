# propsearch/providers/serpapi.py
"""
SerpAPI (Google engine) provider.

Environment
-----------
SERPAPI_KEY : required; without it the provider raises ProviderUnavailableError
"""

from __future__ import annotations

import logging
import os

import requests

from propsearch.core.errors import (
    ProviderBlockedError,
    ProviderHttpError,
    ProviderResponseError,
    ProviderUnavailableError,
    provider_error_guard,
)
from propsearch.providers.scrape import DEFAULT_TIMEOUT_S as SCRAPE_TIMEOUT_S
from propsearch.providers.scrape import DEFAULT_USER_AGENT, fetch_page_text
from propsearch.schemas.models import RawResult, SearchPolicy

logger = logging.getLogger(__name__)

ENDPOINT = "https://serpapi.com/search.json"
DEFAULT_TIMEOUT_S = 12.0
MAX_NUM = 10


class SerpApiProvider:
    name = "serpapi"

    def __init__(
        self,
        api_key: str | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT_S,
        scrape_timeout: float = SCRAPE_TIMEOUT_S,
        user_agent: str = DEFAULT_USER_AGENT,
        location: str = "Chile",
    ) -> None:
        self.api_key = api_key if api_key is not None else os.getenv("SERPAPI_KEY", "")
        self.timeout = timeout
        self.scrape_timeout = scrape_timeout
        self.user_agent = user_agent
        self.location = location

    @classmethod
    def from_policy(cls, policy: SearchPolicy, api_key: str | None = None) -> SerpApiProvider:
        return cls(
            api_key,
            timeout=policy.search_timeout_s,
            scrape_timeout=policy.scrape_timeout_s,
            user_agent=policy.user_agent,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _params(self, query: str, max_results: int) -> dict[str, str | int]:
        return {
            "engine": "google",
            "q": query,
            "location": self.location,
            "gl": "cl",
            "hl": "es",
            "num": max(1, min(max_results, MAX_NUM)),
            "api_key": self.api_key,
        }

    def search(self, query: str, max_results: int = 10) -> list[RawResult]:
        if not self.api_key:
            raise ProviderUnavailableError("SERPAPI_KEY not set for SerpApiProvider.")
        with provider_error_guard():
            resp = requests.get(ENDPOINT, params=self._params(query, max_results), timeout=self.timeout)
            if resp.status_code == 429:
                raise ProviderBlockedError("serpapi rate limit (HTTP 429)")
            if resp.status_code >= 400:
                raise ProviderHttpError(f"serpapi HTTP {resp.status_code}")
            data = resp.json()
            if not isinstance(data, dict):
                raise ProviderResponseError("serpapi returned a non-object body")
            if data.get("error") and not data.get("organic_results"):
                err = str(data["error"])
                # "no results" is an answer, not a failure
                if "hasn't returned any results" in err:
                    return []
                raise ProviderResponseError(f"serpapi error: {err}")
            results: list[RawResult] = []
            for item in data.get("organic_results") or []:
                url = str(item.get("link") or "")
                if not url:
                    continue
                results.append(
                    RawResult(
                        title=str(item.get("title") or ""),
                        url=url,
                        snippet=str(item.get("snippet") or ""),
                        position=int(item.get("position") or len(results) + 1),
                        provider=self.name,
                        date=item.get("date"),
                    )
                )
                if len(results) >= max_results:
                    break
        logger.debug("serpapi %r → %d results", query, len(results))
        return results

    def scrape_page(self, url: str, max_length: int = 5000) -> str | None:
        return fetch_page_text(url, max_length=max_length, timeout=self.scrape_timeout, user_agent=self.user_agent)


__all__ = ["SerpApiProvider", "ENDPOINT"]
