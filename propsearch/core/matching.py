# propsearch/core/matching.py
"""
Ordered regex rules and small text helpers shared by the parsers.

A `Rule` pairs a compiled pattern with a handler that turns the match into a
value. `first_match` walks rules in order and returns the first value a
handler accepts (a handler returning None lets the next rule try), which is
how every "first match wins" table in the pipeline is evaluated.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from re import Match, Pattern
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Rule(Generic[T]):
    name: str
    pattern: Pattern[str]
    handler: Callable[[Match[str]], T | None]

    @classmethod
    def compile(cls, name: str, pattern: str, handler: Callable[[Match[str]], T | None], flags: int = re.IGNORECASE) -> Rule[T]:
        return cls(name=name, pattern=re.compile(pattern, flags), handler=handler)

    def apply(self, text: str) -> T | None:
        m = self.pattern.search(text)
        if m is None:
            return None
        return self.handler(m)


def first_match(rules: Iterable[Rule[T]], text: str) -> tuple[str, T] | None:
    """Return (rule name, value) for the first rule whose handler yields a value."""
    for rule in rules:
        value = rule.apply(text)
        if value is not None:
            return rule.name, value
    return None


def all_matches(rules: Iterable[Rule[T]], text: str) -> Iterator[tuple[str, T]]:
    """Yield (rule name, value) for every rule that produces a value, in rule order."""
    for rule in rules:
        value = rule.apply(text)
        if value is not None:
            yield rule.name, value


# -----------------------------
# Text helpers
# -----------------------------

_WS_RE = re.compile(r"\s+")


def normalize_text(text: str | None) -> str:
    """Lower-case and collapse whitespace."""
    if not text:
        return ""
    return _WS_RE.sub(" ", text.lower()).strip()


def strip_accents(text: str) -> str:
    """'Pucón' → 'Pucon', 'Ñuñoa' → 'Nunoa'."""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def parse_cl_number(raw: str) -> float | None:
    """
    Parse a number written Chilean-style: '.' groups thousands, ',' is decimal.

    '5.900' → 5900.0, '1.250,5' → 1250.5, '2,5' → 2.5, '120' → 120.0
    """
    s = (raw or "").strip().replace(" ", "")
    if not s:
        return None
    s = s.replace(".", "").replace(",", ".")
    try:
        return float(s)
    except ValueError:
        return None


def parse_decimal(raw: str) -> float | None:
    """Parse a short decimal where either '.' or ',' is the decimal mark ('2.5', '2,5')."""
    try:
        return float((raw or "").strip().replace(",", "."))
    except ValueError:
        return None


def keyword_regex(keyword: str) -> Pattern[str]:
    """Word-bounded, case-insensitive pattern for a literal keyword."""
    return re.compile(r"(?<!\w)" + re.escape(keyword) + r"(?!\w)", re.IGNORECASE)


def longest_first(keys: Iterable[str]) -> list[str]:
    """Sort keys longest-first, ties broken alphabetically so the order is stable."""
    return sorted(keys, key=lambda k: (-len(k), k))


__all__ = [
    "Rule",
    "first_match",
    "all_matches",
    "normalize_text",
    "strip_accents",
    "parse_cl_number",
    "parse_decimal",
    "keyword_regex",
    "longest_first",
]
