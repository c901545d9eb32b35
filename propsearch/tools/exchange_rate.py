# propsearch/tools/exchange_rate.py
"""
UF → CLP exchange-rate sources.

The pipeline never reads a global rate: callers pass one explicitly, or
`resolve_uf_rate(source, fallback)` asks a source once and falls back to the
configured constant on any failure.

Environment
-----------
PROPSEARCH_UF_VALUE : rate used by EnvExchangeRate
PROPSEARCH_UF_URL   : override for HttpExchangeRate's endpoint
"""

from __future__ import annotations

import logging
import os
from typing import Protocol

import requests

from propsearch.core.errors import ExchangeRateError

logger = logging.getLogger(__name__)

DEFAULT_UF_URL = "https://mindicador.cl/api/uf"
# Sanity band for CLP per UF; anything outside is treated as a bad answer.
MIN_PLAUSIBLE = 10_000.0
MAX_PLAUSIBLE = 200_000.0


class ExchangeRateSource(Protocol):
    def current_rate(self) -> float: ...


def _check(rate: float, origin: str) -> float:
    if not (MIN_PLAUSIBLE <= rate <= MAX_PLAUSIBLE):
        raise ExchangeRateError(f"implausible UF rate {rate!r} from {origin}")
    return rate


class StaticExchangeRate:
    def __init__(self, rate: float) -> None:
        self.rate = float(rate)

    def current_rate(self) -> float:
        return _check(self.rate, "static")


class EnvExchangeRate:
    def __init__(self, var: str = "PROPSEARCH_UF_VALUE") -> None:
        self.var = var

    def current_rate(self) -> float:
        raw = os.getenv(self.var, "").strip()
        if not raw:
            raise ExchangeRateError(f"{self.var} not set")
        try:
            value = float(raw.replace(".", "").replace(",", ".")) if "," in raw else float(raw)
        except ValueError as e:
            raise ExchangeRateError(f"{self.var} is not a number: {raw!r}") from e
        return _check(value, self.var)


class HttpExchangeRate:
    """
    JSON indicator API returning `{"serie": [{"valor": <float>, ...}, ...]}`
    (mindicador.cl shape); a flat `{"valor": <float>}` body is accepted too.
    """

    def __init__(self, url: str | None = None, *, timeout: float = 5.0) -> None:
        self.url = url or os.getenv("PROPSEARCH_UF_URL", DEFAULT_UF_URL)
        self.timeout = timeout

    def current_rate(self) -> float:
        try:
            resp = requests.get(self.url, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise ExchangeRateError(f"UF rate request failed: {e}") from e
        try:
            if isinstance(data, dict) and data.get("serie"):
                value = float(data["serie"][0]["valor"])
            else:
                value = float(data["valor"])
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise ExchangeRateError(f"unexpected UF payload: {e}") from e
        return _check(value, self.url)


def resolve_uf_rate(source: ExchangeRateSource | None, fallback: float) -> float:
    """Ask `source` once; any failure yields `fallback`. Never raises."""
    if source is None:
        return fallback
    try:
        return float(source.current_rate())
    except ExchangeRateError as e:
        logger.warning("UF rate unavailable (%s); using fallback %.2f", e, fallback)
    except Exception as e:  # noqa: BLE001
        logger.warning("UF rate source crashed (%s: %s); using fallback %.2f", type(e).__name__, e, fallback)
    return fallback


__all__ = [
    "ExchangeRateSource",
    "StaticExchangeRate",
    "EnvExchangeRate",
    "HttpExchangeRate",
    "resolve_uf_rate",
    "DEFAULT_UF_URL",
]
