# propsearch/core/errors.py
"""
Typed errors + utilities for search providers and pipeline collaborators.

Exports
-------
- SearchProviderError, ProviderTimeoutError, ProviderHttpError,
  ProviderResponseError, ProviderBlockedError, ProviderUnavailableError
- CacheError, ExchangeRateError, RerankError
- PROVIDER_ERRORS
- classify_provider_error(exc)
- provider_error_guard()
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterator
from contextlib import contextmanager

import requests

# =========================
# Exception types
# =========================


class SearchProviderError(RuntimeError):
    """Base class for search-provider failures (search or page scrape)."""


class ProviderTimeoutError(SearchProviderError):
    """The provider did not answer within the per-request timeout."""


class ProviderHttpError(SearchProviderError):
    """Transport failure or an HTTP status >= 400."""


class ProviderResponseError(SearchProviderError):
    """The provider answered but the body could not be parsed."""


class ProviderBlockedError(SearchProviderError):
    """A CAPTCHA, WAF or rate limiter refused the request."""


class ProviderUnavailableError(SearchProviderError):
    """The provider is not configured (e.g. missing API key)."""


class CacheError(RuntimeError):
    """Search cache could not be read or written."""


class ExchangeRateError(RuntimeError):
    """No usable UF→CLP rate could be obtained from a rate source."""


class RerankError(RuntimeError):
    """External re-ranker failed or returned an unusable answer."""


PROVIDER_ERRORS = (
    ProviderTimeoutError,
    ProviderHttpError,
    ProviderResponseError,
    ProviderBlockedError,
    ProviderUnavailableError,
)

_BLOCKED_PATTERN = re.compile(
    r"(captcha|cf-chl|cloudflare|hcaptcha|recaptcha|anomaly|unusual\s+traffic|too\s+many\s+requests|\b429\b)",
    re.IGNORECASE,
)

# =========================
# Classification helpers
# =========================


def classify_provider_error(exc: Exception) -> SearchProviderError:
    """
    Map arbitrary exceptions raised inside a provider to a typed SearchProviderError.

    Heuristics:
      - SearchProviderError subclasses → passed through
      - requests.Timeout → ProviderTimeoutError
      - messages hinting at CAPTCHA / rate limiting → ProviderBlockedError
      - other requests.* errors → ProviderHttpError
      - JSON decode / KeyError / parser errors → ProviderResponseError
      - Fallback → SearchProviderError
    """
    if isinstance(exc, SearchProviderError):
        return exc

    msg = f"{type(exc).__name__}: {exc}"

    if isinstance(exc, requests.Timeout):
        return ProviderTimeoutError(msg)

    if _BLOCKED_PATTERN.search(msg):
        return ProviderBlockedError(msg)

    if isinstance(exc, requests.exceptions.InvalidJSONError):
        return ProviderResponseError(msg)

    if isinstance(exc, requests.RequestException):
        return ProviderHttpError(msg)

    if isinstance(exc, json.JSONDecodeError | KeyError | TypeError | ValueError):
        return ProviderResponseError(msg)

    if any(k in msg.lower() for k in ("parser", "lxml", "beautifulsoup", "bs4")):
        return ProviderResponseError(msg)

    return SearchProviderError(msg)


@contextmanager
def provider_error_guard() -> Iterator[None]:
    """Context manager to normalize unexpected exceptions from provider internals."""
    try:
        yield
    except PROVIDER_ERRORS:
        raise
    except Exception as exc:  # noqa: BLE001
        raise classify_provider_error(exc) from exc


__all__ = [
    "SearchProviderError",
    "ProviderTimeoutError",
    "ProviderHttpError",
    "ProviderResponseError",
    "ProviderBlockedError",
    "ProviderUnavailableError",
    "CacheError",
    "ExchangeRateError",
    "RerankError",
    "PROVIDER_ERRORS",
    "classify_provider_error",
    "provider_error_guard",
]
