"""
Email verification: remote verifiers first, then a local heuristic.

Every provider's verdict is normalized to ``EmailVerification`` so that
"deliverable" from one service and "valid" from another mean the same thing
downstream.
"""
from __future__ import annotations

import re
from typing import Any, Awaitable, Callable

import dns.asyncresolver
import dns.exception
import dns.resolver
import httpx
from email_validator import EmailNotValidError, validate_email

from .chain import Provider, VerificationChain
from .config import Settings
from .errors import ProviderSemanticFailure, TransportFault
from .models import Confidence, EmailVerification, ProbeResult

# True: domain resolves; False: NXDOMAIN; None: could not tell.
MxResolver = Callable[[str], Awaitable["bool | None"]]

_SIMPLE_FORMAT_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

DISPOSABLE_DOMAINS = (
    "10minutemail.com",
    "tempmail.org",
    "guerrillamail.com",
    "mailinator.com",
    "throwaway.email",
    "temp-mail.org",
    "yopmail.com",
    "maildrop.cc",
    "sharklasers.com",
)

TYPO_DOMAINS = {
    "gmail.com": ("gmai.com", "gmial.com", "gmail.co"),
    "yahoo.com": ("yaho.com", "yahoo.co", "yahooo.com"),
    "hotmail.com": ("hotmai.com", "hotmial.com", "hotmail.co"),
    "outlook.com": ("outlok.com", "outlook.co", "outloo.com"),
}


def is_disposable(domain: str) -> bool:
    d = domain.lower()
    return any(d == blocked or d.endswith("." + blocked) for blocked in DISPOSABLE_DOMAINS)


def suggest_domain(domain: str) -> str | None:
    d = domain.lower()
    for correct, typos in TYPO_DOMAINS.items():
        if d in typos:
            return correct
    return None


async def resolve_mx(domain: str, timeout: float = 5.0) -> bool | None:
    """Best-effort existence check: MX first, then A. Only NXDOMAIN counts as 'does not exist'."""
    try:
        answers = await dns.asyncresolver.resolve(domain, "MX", lifetime=timeout)
        return len(answers) > 0 or None
    except dns.resolver.NXDOMAIN:
        return False
    except dns.resolver.NoAnswer:
        pass
    except (dns.resolver.NoNameservers, dns.exception.Timeout):
        return None

    try:
        await dns.asyncresolver.resolve(domain, "A", lifetime=timeout)
        return True
    except dns.resolver.NXDOMAIN:
        return False
    except dns.exception.DNSException:
        return None


def _score_confidence(score: Any) -> Confidence:
    try:
        value = float(score)
    except (TypeError, ValueError):
        return "medium"
    if value <= 1:
        value *= 100
    if value >= 80:
        return "high"
    if value >= 50:
        return "medium"
    return "low"


class EmailVerificationProbe:
    def __init__(self, client: httpx.AsyncClient, settings: Settings, mx_resolver: MxResolver | None = None):
        self._client = client
        self._settings = settings
        self._mx_resolver = mx_resolver or (lambda domain: resolve_mx(domain, settings.dns_timeout_s))
        timeout = settings.email_timeout_s
        self.chain: VerificationChain[str, EmailVerification] = VerificationChain(
            name="email",
            providers=[
                Provider("verifalia", self._verifalia, timeout=timeout, confidence="high", requires=("email_verifier_api_key",)),
                Provider("hunter", self._hunter, timeout=timeout, confidence="high", requires=("email_verifier_api_key",)),
                Provider("emailvalidation", self._emailvalidation, timeout=10.0, confidence="medium", requires=("emailvalidation_api_key",)),
            ],
            settings=settings,
            # The MX lookup carries its own DNS lifetime; leave room for MX + A.
            fallback=Provider("basic", self.basic_check, timeout=settings.dns_timeout_s * 2 + 1, confidence="low"),
        )

    async def run(self, email: str) -> ProbeResult[EmailVerification]:
        email = (email or "").strip()
        if not _SIMPLE_FORMAT_RE.match(email):
            return ProbeResult.success(
                EmailVerification(email=email, valid=False, deliverable=False, format_valid=False, reason="Invalid email format", confidence="high"),
                provider="format-check",
                confidence="high",
            )
        return await self.chain.run(email)

    async def basic_check(self, email: str) -> EmailVerification:
        """Local verdict: syntax, disposable blocklist, typo table and a DNS lookup."""
        local_part, _, domain = email.rpartition("@")
        if not domain or len(domain) < 3:
            return EmailVerification(email=email, valid=False, deliverable=False, format_valid=False, reason="Invalid domain", confidence="high")

        try:
            validate_email(email, check_deliverability=False)
        except EmailNotValidError as e:
            return EmailVerification(email=email, valid=False, deliverable=False, format_valid=False, reason=f"Invalid email format: {e}", confidence="high")

        disposable = is_disposable(domain)
        suggested = suggest_domain(domain)
        exists = await self._mx_resolver(domain) is not False

        valid = exists and not disposable
        if not exists:
            reason = "Domain does not exist"
        elif disposable:
            reason = "Disposable email domain"
        elif suggested:
            reason = f"Possible typo, did you mean {local_part}@{suggested}?"
        else:
            reason = "Basic validation passed"

        return EmailVerification(
            email=email,
            valid=valid,
            deliverable=None if valid else False,
            format_valid=True,
            is_disposable=disposable,
            domain_exists=exists,
            suggestion=f"{local_part}@{suggested}" if suggested else None,
            reason=reason,
            confidence="low" if valid else "medium",
        )

    async def _verifalia(self, email: str) -> EmailVerification:
        res = await self._client.post(
            "https://api.verifalia.com/v2.4/email-validations",
            json={"entries": [{"inputData": email}], "quality": "standard"},
            headers={"authorization": f"Bearer {self._settings.email_verifier_api_key}"},
        )
        if res.status_code != 200:
            # 202 means the job is still queued; we do not poll.
            raise TransportFault(f"verifalia returned HTTP {res.status_code}")
        entries = res.json().get("entries")
        if isinstance(entries, dict):
            entries = entries.get("data")
        if not entries:
            raise ProviderSemanticFailure("verifalia returned no entries")

        entry = entries[0]
        classification = str(entry.get("classification") or "").lower()
        if not classification:
            raise ProviderSemanticFailure("verifalia entry has no classification")
        deliverable = {"deliverable": True, "undeliverable": False}.get(classification)
        return EmailVerification(
            email=email,
            valid=classification == "deliverable",
            deliverable=deliverable,
            reason=classification,
            confidence="high" if deliverable is not None else "medium",
        )

    async def _hunter(self, email: str) -> EmailVerification:
        res = await self._client.get(
            "https://api.hunter.io/v2/email-verifier",
            params={"email": email, "api_key": self._settings.email_verifier_api_key},
        )
        res.raise_for_status()
        data = res.json().get("data")
        if not isinstance(data, dict):
            raise ProviderSemanticFailure("hunter returned no data")

        status = str(data.get("status") or "").lower()
        result = str(data.get("result") or "").lower()
        confidence = _score_confidence(data.get("score"))

        if status in ("valid", "webmail") or result == "deliverable":
            return EmailVerification(email=email, valid=True, deliverable=True, reason=status or result, confidence=confidence)
        if status == "disposable":
            return EmailVerification(email=email, valid=False, deliverable=False, is_disposable=True, reason="disposable", confidence=confidence)
        if status == "invalid" or result == "undeliverable":
            return EmailVerification(email=email, valid=False, deliverable=False, reason=status or result, confidence=confidence)
        if status == "accept_all" or result == "risky":
            return EmailVerification(email=email, valid=False, deliverable=None, reason="accept all (risky)", confidence="low")
        raise ProviderSemanticFailure(f"hunter status unknown: {status or result or 'empty'}")

    async def _emailvalidation(self, email: str) -> EmailVerification:
        res = await self._client.get(
            "https://api.emailvalidation.io/v1/info",
            params={"apikey": self._settings.emailvalidation_api_key, "email": email},
        )
        res.raise_for_status()
        data = res.json()
        state = str(data.get("state") or "").lower()
        if not state:
            raise ProviderSemanticFailure("emailvalidation returned no state")
        return EmailVerification(
            email=email,
            valid=state == "deliverable",
            deliverable={"deliverable": True, "undeliverable": False}.get(state),
            is_disposable=data.get("disposable") if isinstance(data.get("disposable"), bool) else None,
            reason=state,
            confidence=_score_confidence(data.get("score")) if data.get("score") is not None else "medium",
        )
