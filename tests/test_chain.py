"""Ordered provider fallback."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import pytest

from legitimacy_agent.chain import Provider, VerificationChain
from legitimacy_agent.config import Settings
from legitimacy_agent.errors import ProviderSemanticFailure, TransportFault


@dataclass
class Answer:
    text: str
    confidence: str | None = None


def _const(value):
    calls: list[str] = []

    async def call(arg):
        calls.append(arg)
        return value

    call.calls = calls
    return call


def _raises(error: Exception):
    async def call(arg):
        raise error

    return call


async def _slow(arg):
    await asyncio.sleep(1)
    return Answer("late")


@pytest.mark.asyncio
async def test_first_successful_provider_wins() -> None:
    second = _const(Answer("second"))
    chain = VerificationChain(
        name="t",
        providers=[Provider("a", _const(Answer("first")), confidence="high"), Provider("b", second)],
        settings=Settings(),
    )

    result = await chain.run("x")

    assert result.ok
    assert result.provider == "a"
    assert result.value.text == "first"
    assert result.confidence == "high"
    assert second.calls == []


@pytest.mark.asyncio
async def test_unconfigured_provider_is_skipped_without_calling() -> None:
    keyed = _const(Answer("keyed"))
    chain = VerificationChain(
        name="t",
        providers=[Provider("keyed", keyed, requires=("serpapi_api_key",)), Provider("open", _const(Answer("open")))],
        settings=Settings(),
    )

    result = await chain.run("x")

    assert result.provider == "open"
    assert keyed.calls == []
    assert [a.outcome for a in result.attempts] == ["skipped", "ok"]
    assert not chain.is_configured("keyed")


@pytest.mark.asyncio
async def test_configured_provider_is_called() -> None:
    keyed = _const(Answer("keyed"))
    chain = VerificationChain(
        name="t",
        providers=[Provider("keyed", keyed, requires=("serpapi_api_key",))],
        settings=Settings(serpapi_api_key="k"),
    )

    result = await chain.run("x")

    assert result.provider == "keyed"
    assert keyed.calls == ["x"]


@pytest.mark.asyncio
async def test_faults_fall_through_to_next_provider() -> None:
    chain = VerificationChain(
        name="t",
        providers=[
            Provider("transport", _raises(TransportFault("HTTP 500"))),
            Provider("semantic", _raises(ProviderSemanticFailure("empty"))),
            Provider("bug", _raises(KeyError("data"))),
            Provider("none", _const(None)),
            Provider("good", _const(Answer("ok"))),
        ],
        settings=Settings(),
    )

    result = await chain.run("x")

    assert result.provider == "good"
    assert [a.outcome for a in result.attempts] == ["error", "error", "error", "error", "ok"]
    assert "HTTP 500" in result.attempts[0].detail


@pytest.mark.asyncio
async def test_slow_provider_times_out() -> None:
    chain = VerificationChain(
        name="t",
        providers=[Provider("slow", _slow, timeout=0.05), Provider("fast", _const(Answer("fast")))],
        settings=Settings(),
    )

    result = await chain.run("x")

    assert result.provider == "fast"
    assert result.attempts[0].outcome == "timeout"


@pytest.mark.asyncio
async def test_fallback_answers_when_every_provider_fails() -> None:
    chain = VerificationChain(
        name="t",
        providers=[Provider("down", _raises(TransportFault("refused")))],
        settings=Settings(),
        fallback=Provider("local", _const(Answer("local", confidence="low")), confidence="medium"),
    )

    result = await chain.run("x")

    assert result.ok
    assert result.provider == "local"
    # the value's own confidence overrides the provider default
    assert result.confidence == "low"


@pytest.mark.asyncio
async def test_without_fallback_returns_failure() -> None:
    chain = VerificationChain(
        name="t",
        providers=[Provider("down", _raises(TransportFault("refused")))],
        settings=Settings(),
        exhausted_reason="nothing worked",
    )

    result = await chain.run("x")

    assert not result.ok
    assert result.reason == "nothing worked"
    assert result.value is None


@pytest.mark.asyncio
async def test_misbehaving_fallback_still_yields_failure() -> None:
    chain = VerificationChain(
        name="t",
        providers=[],
        settings=Settings(),
        fallback=Provider("local", _raises(RuntimeError("boom"))),
    )

    result = await chain.run("x")

    assert result.status == "failure"
    assert result.attempts[-1].provider == "local"
