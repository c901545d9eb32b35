# propsearch/providers/scrape.py
"""
Plain-text page retrieval shared by providers.

The page is fetched with `requests`, parsed with BeautifulSoup (lxml), and
reduced to visible text: script/style/nav/header/footer/noscript blocks are
dropped, whitespace is collapsed and the result is truncated.
"""

from __future__ import annotations

import logging
import re

import requests
from bs4 import BeautifulSoup

from propsearch.core.errors import ProviderHttpError, provider_error_guard

logger = logging.getLogger(__name__)

MIN_TEXT_LENGTH = 50
DEFAULT_TIMEOUT_S = 8.0
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; propsearch/0.3)"
_STRIP_TAGS = ("script", "style", "nav", "header", "footer", "noscript", "svg", "iframe")
_WS_RE = re.compile(r"\s+")


def html_to_text(html: str, max_length: int = 5000) -> str | None:
    soup = BeautifulSoup(html or "", "lxml")
    for tag in soup(list(_STRIP_TAGS)):
        tag.decompose()
    text = _WS_RE.sub(" ", soup.get_text(" ")).strip()
    if len(text) <= MIN_TEXT_LENGTH:
        return None
    if len(text) > max_length:
        text = text[:max_length].rstrip() + "..."
    return text


def fetch_page_text(
    url: str,
    *,
    max_length: int = 5000,
    timeout: float = DEFAULT_TIMEOUT_S,
    user_agent: str = DEFAULT_USER_AGENT,
) -> str | None:
    """GET `url` and return its visible text; raises SearchProviderError subclasses."""
    with provider_error_guard():
        resp = requests.get(
            url,
            headers={"User-Agent": user_agent, "Accept-Language": "es-CL,es;q=0.9"},
            timeout=timeout,
        )
        if resp.status_code >= 400:
            raise ProviderHttpError(f"HTTP {resp.status_code} for {url}")
        ctype = resp.headers.get("Content-Type", "") if resp.headers else ""
        if ctype and "html" not in ctype.lower() and "text" not in ctype.lower():
            logger.debug("Skipping non-HTML page %s (%s)", url, ctype)
            return None
        return html_to_text(resp.text, max_length)


__all__ = ["html_to_text", "fetch_page_text", "MIN_TEXT_LENGTH", "DEFAULT_USER_AGENT"]
