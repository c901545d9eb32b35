# tests/unit/test_reranker.py
from __future__ import annotations

from types import SimpleNamespace

import pytest

from propsearch.core.errors import RerankError
from propsearch.tools.reranker import (
    MAX_RERANK_ITEMS,
    OpenAIReranker,
    RerankOutcome,
    apply_rerank,
    build_prompt,
    parse_outcome,
)
from tests.utils import make_candidate


def _cands(n: int):
    return [make_candidate(f"https://www.toctoc.com/propiedades/{1000000 + i}", title=f"Casa {i}") for i in range(n)]


def test_build_prompt_lists_items_with_host() -> None:
    items = _cands(10)
    prompt = build_prompt(items, "casa en Temuco", "real_estate")
    assert 'User request: "casa en Temuco" (vertical: real_estate)' in prompt
    assert "#1 | Casa 0 | UF 4.500" in prompt
    assert "| toctoc.com" in prompt
    assert f"#{MAX_RERANK_ITEMS} |" in prompt
    assert f"#{MAX_RERANK_ITEMS + 1} |" not in prompt


@pytest.mark.parametrize(
    "text",
    [
        '{"order": [2, 1], "notes": ["mejor precio", null]}',
        '```json\n{"order": [2, 1], "notes": ["mejor precio", null]}\n```',
        'Aquí va: {"order": [2.0, 1], "notes": ["mejor precio", null]} listo',
    ],
)
def test_parse_outcome_tolerates_wrapping(text) -> None:
    out = parse_outcome(text)
    assert out.order == (2, 1)
    assert out.notes == ("mejor precio", None)


@pytest.mark.parametrize(
    "text",
    ["", "sin json", '{"orden": [1]}', '{"order": [1, "dos"]}', '{"order": [1.5]}', '{"order": [true]}'],
)
def test_parse_outcome_rejects_malformed(text) -> None:
    with pytest.raises(RerankError):
        parse_outcome(text)


def test_apply_rerank_reorders_head_and_keeps_tail() -> None:
    items = _cands(10)
    out = apply_rerank(items, RerankOutcome(order=(3, 1), notes=("más barata", "")))
    assert [c.title for c in out[:3]] == ["Casa 2", "Casa 0", "Casa 1"]
    assert out[0].rerank_note == "más barata"
    assert out[1].rerank_note is None
    # head items not mentioned keep their order, then the tail
    assert [c.title for c in out[3:]] == [f"Casa {i}" for i in range(3, 10)]
    assert len(out) == 10


@pytest.mark.parametrize("order", [(1, 1), (0, 2), (9,), (2, 5)])
def test_apply_rerank_discards_bad_positions(order) -> None:
    items = _cands(4)
    assert apply_rerank(items, RerankOutcome(order=order)) == items


def test_apply_rerank_without_outcome() -> None:
    items = _cands(3)
    assert apply_rerank(items, None) == items
    assert apply_rerank(items, RerankOutcome()) == items


# -------- OpenAI adapter --------


class _FakeCompletions:
    def __init__(self, content=None, exc=None) -> None:
        self.content = content
        self.exc = exc
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.exc:
            raise self.exc
        msg = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=msg)])


def _patch_openai(monkeypatch, completions: _FakeCompletions) -> None:
    class FakeOpenAI:
        def __init__(self, api_key=None) -> None:
            self.chat = SimpleNamespace(completions=completions)

    monkeypatch.setattr("openai.OpenAI", FakeOpenAI)


def test_openai_reranker_requires_key() -> None:
    with pytest.raises(RerankError):
        OpenAIReranker()


def test_openai_reranker_roundtrip(monkeypatch) -> None:
    comp = _FakeCompletions('{"order": [2, 1], "notes": ["a", "b"]}')
    _patch_openai(monkeypatch, comp)
    monkeypatch.setenv("PROPSEARCH_RERANK_MODEL", "test-model")
    out = OpenAIReranker("k").rerank(_cands(2), "casa", "real_estate")
    assert out.order == (2, 1)
    assert comp.kwargs["model"] == "test-model"
    assert comp.kwargs["temperature"] == 0


def test_openai_reranker_wraps_sdk_errors(monkeypatch) -> None:
    _patch_openai(monkeypatch, _FakeCompletions(exc=TimeoutError("slow")))
    with pytest.raises(RerankError, match="TimeoutError"):
        OpenAIReranker("k").rerank(_cands(2), "casa", "real_estate")
