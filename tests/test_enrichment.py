import logging
from typing import Any

import pytest

import budget_ingest.enrichment as enrichment_mod
from budget_ingest.enrichment import (
    DEFAULT_CATEGORIES,
    build_response_format,
    parse_suggestion,
    suggest_category,
)
from tests.helpers.openai_stub import OpenAIStub


def _install_stub(monkeypatch: pytest.MonkeyPatch, decide) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []
    stub = OpenAIStub(decide, calls)
    monkeypatch.setattr(enrichment_mod, "OpenAI", lambda *a, **kw: stub)
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")
    return calls


def test_suggest_category_happy_path(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install_stub(
        monkeypatch,
        lambda d: {
            "category": "Food",
            "sub_category": "Bakery",
            "merchant_description": f"{d} is a bakery",
            "confidence": 0.9,
        },
    )

    suggestion = suggest_category("BYENS BRØDHUS")

    assert suggestion is not None
    assert (suggestion.category, suggestion.sub_category) == ("Food", "Bakery")
    assert suggestion.merchant_description == "BYENS BRØDHUS is a bakery"
    assert suggestion.confidence == 0.9

    assert len(calls) == 1
    fmt = calls[0]["text"]["format"]
    assert fmt["strict"] is True
    assert fmt["schema"]["properties"]["category"]["enum"] == list(DEFAULT_CATEGORIES)


def test_missing_api_key_skips_the_call(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    calls = _install_stub(monkeypatch, lambda d: {"category": "Food", "confidence": 1})
    monkeypatch.delenv("OPENAI_API_KEY")
    caplog.set_level(logging.WARNING, logger="budget_ingest")

    assert suggest_category("NETTO") is None
    assert calls == []
    assert any("missing OPENAI_API_KEY" in r.getMessage() for r in caplog.records)


def test_blank_descriptor_returns_none(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = _install_stub(monkeypatch, lambda d: {"category": "Food", "confidence": 1})
    assert suggest_category("   ") is None
    assert calls == []


def test_api_failure_returns_none(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fail(_d: str):
        raise RuntimeError("rate limited")

    _install_stub(monkeypatch, _fail)
    assert suggest_category("NETTO") is None


@pytest.mark.parametrize(
    "body",
    [
        "not json",
        {"category": "Gambling", "confidence": 0.5},
        {"category": "Food", "confidence": 1.5},
        {"category": "", "confidence": 0.5},
    ],
)
def test_invalid_output_returns_none(monkeypatch: pytest.MonkeyPatch, body) -> None:
    _install_stub(monkeypatch, lambda _d: body)
    assert suggest_category("NETTO") is None


def test_explicit_client_bypasses_env_check() -> None:
    stub = OpenAIStub(lambda d: {"category": "Transport", "confidence": 0.4})
    suggestion = suggest_category(
        "DSB", categories=["Transport"], client=stub  # type: ignore[arg-type]
    )
    assert suggestion is not None and suggestion.category == "Transport"
    assert stub.calls[0]["model"]


def test_parse_suggestion_normalizes_blanks() -> None:
    s = parse_suggestion(
        {"category": "Food", "sub_category": " ", "merchant_description": "", "confidence": None},
        allowed_categories=["Food"],
    )
    assert s is not None
    assert s.sub_category is None and s.merchant_description is None
    assert s.confidence == 0.0


def test_response_format_requires_categories() -> None:
    with pytest.raises(ValueError):
        build_response_format(["", "  "])
