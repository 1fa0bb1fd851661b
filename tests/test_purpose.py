"""Purpose analysis: LLM providers and the keyword classifier."""

from __future__ import annotations

from types import SimpleNamespace

import httpx
import pytest

from legitimacy_agent.config import Settings
from legitimacy_agent.errors import ProviderSemanticFailure
from legitimacy_agent.purpose import (
    MAX_TEXT_CHARS,
    ContentPurposeProbe,
    normalize_llm_output,
    page_text,
    rule_based_analysis,
)


def test_rule_based_category_and_flags() -> None:
    text = (
        "Shop our store. Add to cart and checkout. Buy now! Limited time offer, act now. "
        "Read our privacy policy. Contact us any time."
    )

    analysis = rule_based_analysis(text)

    assert analysis.analysis_method == "rule-based"
    assert analysis.category == "ecommerce"
    assert "Urgency tactics" in analysis.red_flags
    assert analysis.legitimacy_indicators == ["Has legal policies", "Contact information available"]
    assert analysis.purpose.startswith("Website Analysis:\n\nPrimary Category: Ecommerce\n")
    assert analysis.purpose.endswith("configure an LLM API key.")


def test_rule_based_without_keywords() -> None:
    analysis = rule_based_analysis("zzz qqq")

    assert analysis.category is None
    assert "Unable to determine primary category" in analysis.purpose
    assert analysis.red_flags == []


def test_page_text_is_truncated() -> None:
    markup = "<p>" + "word " * 2000 + "</p><script>secret()</script>"

    text = page_text(markup)

    assert len(text) == MAX_TEXT_CHARS
    assert "secret" not in text


def test_normalize_llm_output() -> None:
    analysis = normalize_llm_output({
        "purpose": "An online widget store.",
        "category": "Ecommerce",
        "red_flags": ["none obvious", None, ""],
        "legitimacy_indicators": "Has contact page",
        "confidence": "med",
    })

    assert analysis.analysis_method == "llm"
    assert analysis.category == "ecommerce"
    assert analysis.red_flags == ["none obvious"]
    assert analysis.legitimacy_indicators == ["Has contact page"]
    assert analysis.confidence == "medium"

    with pytest.raises(ProviderSemanticFailure):
        normalize_llm_output({"category": "news"})


@pytest.mark.asyncio
async def test_openrouter_answer(mock_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "openrouter.ai"
        assert request.headers["authorization"] == "Bearer k"
        return httpx.Response(200, json={"choices": [{"message": {"content": "A legitimate bakery."}}]})

    async with mock_client(handler) as client:
        result = await ContentPurposeProbe(client, Settings(openrouter_api_key="k")).run("https://acme.com/", "<p>Bread</p>")

    assert result.provider == "openrouter"
    assert result.value.purpose == "A legitimate bakery."
    assert result.value.analysis_method == "llm"


@pytest.mark.asyncio
async def test_llm_failure_falls_back_to_rules(mock_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"choices": []})

    async with mock_client(handler) as client:
        result = await ContentPurposeProbe(client, Settings(openrouter_api_key="k")).run("https://acme.com/", "<p>Latest news article</p>")

    assert result.provider == "rule-based"
    assert result.value.category == "news"


class _FakeGeminiModels:
    def __init__(self, text: str):
        self._text = text
        self.calls: list[dict] = []

    async def generate_content(self, **kwargs):
        self.calls.append(kwargs)
        return SimpleNamespace(text=self._text)


class _FakeAsyncGemini:
    def __init__(self, text: str):
        self.models = _FakeGeminiModels(text)
        self.closed = False

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.closed = True


@pytest.mark.asyncio
async def test_gemini_answer_closes_its_client(mock_client, monkeypatch) -> None:
    created: list[_FakeAsyncGemini] = []

    def fake_client(api_key: str):
        assert api_key == "g"
        aio = _FakeAsyncGemini('```json\n{"purpose": "An online bakery.", "category": "ecommerce"}\n```')
        created.append(aio)
        return SimpleNamespace(aio=aio)

    monkeypatch.setattr("legitimacy_agent.purpose.genai.Client", fake_client)

    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("gemini answered; no HTTP provider should run")

    async with mock_client(handler) as client:
        result = await ContentPurposeProbe(client, Settings(gemini_api_key="g")).run("https://acme.com/", "<p>Bread</p>")

    assert result.provider == "gemini"
    assert result.value.purpose == "An online bakery."
    (aio,) = created
    assert aio.closed
    assert len(aio.models.calls) == 1
