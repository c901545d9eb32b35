# propsearch/tools/reranker.py
"""
Optional language-model re-ranker (advisory)

Purpose
-------
When heuristic scores at the top are too close to separate (see
`needs_external_rerank`), ask a chat model to order the top ≤8 candidates.
The answer is a 1-based permutation plus a short note per item.

Design
------
- Protocol `Reranker` keeps `rerank(items, query, vertical)`.
- `OpenAIReranker` is the production implementation; tests use fakes.
- `apply_rerank(ranked, outcome)` is pure: it reorders the head, appends any
  head item the model did not mention, then the untouched tail. Malformed
  answers leave the original order.

Environment
-----------
OPENAI_API_KEY            : required by OpenAIReranker
PROPSEARCH_RERANK_MODEL   : default "gpt-4o-mini"
PROPSEARCH_RERANK_TIMEOUT_S : default "8"
"""

from __future__ import annotations

import json
import logging
import os
import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from propsearch.core.errors import RerankError
from propsearch.core.policy.domains import extract_domain
from propsearch.schemas.models import Candidate

logger = logging.getLogger(__name__)

MAX_RERANK_ITEMS = 8
SNIPPET_CHARS = 150
_JSON_OBJ_RE = re.compile(r"\{.*\}", re.DOTALL)


@dataclass(frozen=True, slots=True)
class RerankOutcome:
    order: tuple[int, ...] = ()
    notes: tuple[str | None, ...] = ()


class Reranker(Protocol):
    def rerank(self, items: Sequence[Candidate], query: str, vertical: str) -> RerankOutcome: ...


# ---------- prompt / parsing ----------


def build_prompt(items: Sequence[Candidate], query: str, vertical: str) -> str:
    lines = []
    for i, c in enumerate(items[:MAX_RERANK_ITEMS], start=1):
        title = c.title or "(untitled)"
        snippet = (c.snippet or "")[:SNIPPET_CHARS]
        host = extract_domain(c.url) or "unknown"
        lines.append(f"#{i} | {title} | {snippet} | {host}")
    return (
        f'User request: "{query}" (vertical: {vertical})\n\n'
        "Order the following search results from most to least relevant to the request.\n"
        'Reply ONLY with JSON: {"order": [3, 1, 5, ...], "notes": ["reason 1", "reason 2", ...]}\n\n'
        + "\n".join(lines)
    )


def parse_outcome(text: str) -> RerankOutcome:
    """Tolerant JSON reader: strips code fences, finds the first object."""
    if not isinstance(text, str) or not text.strip():
        raise RerankError("empty re-rank answer")
    s = text.strip()
    if s.startswith("```"):
        s = re.sub(r"^```(?:json)?\s*", "", s, count=1, flags=re.IGNORECASE)
        s = re.sub(r"\s*```$", "", s, count=1)
    try:
        data = json.loads(s)
    except ValueError:
        m = _JSON_OBJ_RE.search(s)
        if not m:
            raise RerankError("no JSON object in re-rank answer") from None
        try:
            data = json.loads(m.group(0))
        except ValueError as e:
            raise RerankError(f"invalid JSON in re-rank answer: {e}") from e
    if not isinstance(data, dict) or not isinstance(data.get("order"), list):
        raise RerankError("re-rank answer lacks an 'order' list")
    order: list[int] = []
    for x in data["order"]:
        if isinstance(x, bool) or not isinstance(x, int | float) or int(x) != x:
            raise RerankError(f"non-integer position in order: {x!r}")
        order.append(int(x))
    raw_notes = data.get("notes") if isinstance(data.get("notes"), list) else []
    notes = tuple(str(n) if n is not None else None for n in raw_notes)
    return RerankOutcome(order=tuple(order), notes=notes)


def apply_rerank(ranked: Sequence[Candidate], outcome: RerankOutcome | None) -> list[Candidate]:
    """
    Apply a 1-based permutation to the first ≤8 candidates.

    Unknown positions and repeats make the whole answer invalid (original order
    kept). Head items the model skipped follow in their original order.
    """
    items = list(ranked)
    if not outcome or not outcome.order:
        return items
    head, tail = items[:MAX_RERANK_ITEMS], items[MAX_RERANK_ITEMS:]
    positions = list(outcome.order)
    if len(set(positions)) != len(positions) or any(p < 1 or p > len(head) for p in positions):
        logger.warning("Discarding malformed re-rank order %s", positions)
        return items

    reordered: list[Candidate] = []
    for idx, pos in enumerate(positions):
        note = outcome.notes[idx] if idx < len(outcome.notes) else None
        cand = head[pos - 1]
        reordered.append(cand.model_copy(update={"rerank_note": note}) if note else cand)
    mentioned = set(positions)
    reordered.extend(c for i, c in enumerate(head, start=1) if i not in mentioned)
    return reordered + tail


# ---------- OpenAI ----------


class OpenAIReranker:
    def __init__(self, api_key: str | None = None, *, model: str | None = None, timeout_s: float | None = None) -> None:
        key = api_key or os.getenv("OPENAI_API_KEY")
        if not key:
            raise RerankError("OPENAI_API_KEY not set for OpenAIReranker.")
        try:
            from openai import OpenAI
        except ImportError as e:
            raise RerankError("OpenAI SDK not available. Install `openai>=1.0`.") from e

        self._client = OpenAI(api_key=key)
        self._model = model or os.getenv("PROPSEARCH_RERANK_MODEL", "gpt-4o-mini")
        self._timeout_s = timeout_s or float(os.getenv("PROPSEARCH_RERANK_TIMEOUT_S", "8"))

    def _complete(self, prompt: str) -> str:
        resp = self._client.chat.completions.create(
            model=self._model,
            messages=[{"role": "user", "content": prompt}],
            max_tokens=300,
            temperature=0,
            timeout=self._timeout_s,
        )
        return resp.choices[0].message.content or ""

    def rerank(self, items: Sequence[Candidate], query: str, vertical: str) -> RerankOutcome:
        prompt = build_prompt(items, query, vertical)
        try:
            text = self._complete(prompt)
        except Exception as e:  # noqa: BLE001
            raise RerankError(f"{type(e).__name__}: {e}") from e
        return parse_outcome(text)


__all__ = [
    "MAX_RERANK_ITEMS",
    "RerankOutcome",
    "Reranker",
    "OpenAIReranker",
    "apply_rerank",
    "build_prompt",
    "parse_outcome",
]
