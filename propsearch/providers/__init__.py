# propsearch/providers/__init__.py
"""
Search providers

Exports the provider contract, the two web implementations and the
concurrent client used by the orchestrator.
"""

from .base import SearchProvider
from .client import FanOutResult, ScrapeResult, SearchClient
from .duckduckgo import DuckDuckGoHtmlProvider
from .serpapi import SerpApiProvider

__all__ = [
    "SearchProvider",
    "SearchClient",
    "FanOutResult",
    "ScrapeResult",
    "DuckDuckGoHtmlProvider",
    "SerpApiProvider",
]
