"""
Ordered provider fallback shared by every probe.

Providers are tried in order, each once and under its own timeout. Unconfigured
providers are skipped without touching the network. The first well-formed answer
wins; if none arrives the local fallback answers instead. The chain itself never
raises.
"""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Sequence, TypeVar

from .config import Settings
from .errors import ConfigurationFault
from .logging_utils import get_logger, log_extra
from .models import Confidence, ProbeResult, ProviderAttempt

In = TypeVar("In")
Out = TypeVar("Out")

logger = get_logger(__name__)


@dataclass(frozen=True)
class Provider(Generic[In, Out]):
    name: str
    call: Callable[[In], Awaitable[Out]]
    timeout: float = 10.0
    confidence: Confidence = "medium"
    requires: tuple[str, ...] = ()


@dataclass
class VerificationChain(Generic[In, Out]):
    name: str
    providers: Sequence[Provider[In, Out]]
    settings: Settings
    fallback: Provider[In, Out] | None = None
    exhausted_reason: str = "all providers failed"
    _configured: dict[str, bool] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        # Credential presence is decided once, here, not per call.
        self._configured = {p.name: self.settings.has(*p.requires) for p in self.providers}

    def is_configured(self, provider_name: str) -> bool:
        return self._configured.get(provider_name, False)

    async def run(self, value: In) -> ProbeResult[Out]:
        attempts: list[ProviderAttempt] = []

        for provider in self.providers:
            if not self._configured[provider.name]:
                fault = ConfigurationFault(f"{provider.name} not configured")
                logger.debug(str(fault), extra=log_extra(chain=self.name, provider=provider.name))
                attempts.append(ProviderAttempt(provider=provider.name, outcome="skipped", detail=str(fault)))
                continue

            answer, attempt = await self._attempt(provider, value)
            attempts.append(attempt)
            if attempt.outcome == "ok":
                return ProbeResult.success(answer, provider.name, _confidence_of(answer, provider), attempts)

        if self.fallback is not None:
            answer, attempt = await self._attempt(self.fallback, value)
            attempts.append(attempt)
            if attempt.outcome == "ok":
                return ProbeResult.success(answer, self.fallback.name, _confidence_of(answer, self.fallback), attempts)

        return ProbeResult.failure(self.exhausted_reason, provider="none", attempts=attempts)

    async def _attempt(self, provider: Provider[In, Out], value: In) -> tuple[Any, ProviderAttempt]:
        start = time.perf_counter()
        try:
            answer = await asyncio.wait_for(provider.call(value), timeout=provider.timeout)
        except asyncio.TimeoutError:
            detail = f"timed out after {provider.timeout:g}s"
            logger.info(
                f"{self.name}: {provider.name} {detail}",
                extra=log_extra(chain=self.name, provider=provider.name, outcome="timeout"),
            )
            return None, ProviderAttempt(provider=provider.name, outcome="timeout", detail=detail)
        except Exception as e:
            # ProbeError subclasses, httpx errors, and KeyError/TypeError/ValueError
            # from malformed payloads all mean the provider declined.
            return None, self._failed(provider, e)

        if answer is None:
            return None, self._failed(provider, ValueError("empty answer"))

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        logger.debug(
            f"{self.name}: {provider.name} answered",
            extra=log_extra(chain=self.name, provider=provider.name, elapsed_ms=elapsed_ms),
        )
        return answer, ProviderAttempt(provider=provider.name, outcome="ok")

    def _failed(self, provider: Provider[In, Out], error: Exception) -> ProviderAttempt:
        detail = f"{type(error).__name__}: {error}"
        logger.info(
            f"{self.name}: {provider.name} failed: {detail}",
            extra=log_extra(chain=self.name, provider=provider.name, outcome="error"),
        )
        return ProviderAttempt(provider=provider.name, outcome="error", detail=detail)


def _confidence_of(answer: Any, provider: Provider) -> Confidence:
    own = getattr(answer, "confidence", None)
    if own in ("high", "medium", "low"):
        return own
    return provider.confidence
