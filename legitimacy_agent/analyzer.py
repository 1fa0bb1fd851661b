from __future__ import annotations

import asyncio
import time
from typing import Any, Awaitable, TypeVar
from urllib.parse import urlparse

import httpx

from .aggregator import aggregate
from .config import Settings
from .contacts import extract_contacts
from .email_verification import EmailVerificationProbe
from .errors import FetchError
from .fetcher import MAX_REDIRECTS, DocumentContent, PageFetcher, normalize_url
from .liveness import check_liveness
from .logging_utils import get_logger, log_extra
from .models import CheckRequest, EmailCheck, LegitimacyReport, PhoneCheck, ProbeResult
from .phone_verification import PhoneVerificationProbe
from .purpose import ContentPurposeProbe
from .registration import RegistrationAgeProbe
from .search_visibility import SearchVisibilityProbe

T = TypeVar("T")

logger = get_logger(__name__)

MAX_VERIFIED_EMAILS = 3
MAX_VERIFIED_PHONES = 3


def _escaped(name: str, error: BaseException) -> ProbeResult:
    # Probes catch their own faults; anything reaching here is a bug, not a verdict.
    logger.warning(
        f"{name} probe raised {type(error).__name__}: {error}",
        extra=log_extra(probe=name, error=type(error).__name__),
    )
    return ProbeResult.failure(f"{name} probe raised {type(error).__name__}: {error}")


def _settle(name: str, outcome: Any) -> ProbeResult:
    if isinstance(outcome, BaseException):
        return _escaped(name, outcome)
    return outcome


async def _verify_emails(probe: EmailVerificationProbe, emails: tuple[str, ...]) -> list[EmailCheck]:
    checks: list[EmailCheck] = []
    for email in emails[:MAX_VERIFIED_EMAILS]:
        try:
            result = await probe.run(email)
        except Exception as e:
            result = _escaped("email", e)
        checks.append(EmailCheck(email=email, result=result))
    return checks


async def _verify_phones(probe: PhoneVerificationProbe, phones: tuple[str, ...]) -> list[PhoneCheck]:
    checks: list[PhoneCheck] = []
    for phone in phones[:MAX_VERIFIED_PHONES]:
        try:
            result = await probe.run(phone)
        except Exception as e:
            result = _escaped("phone", e)
        checks.append(PhoneCheck(phone=phone, result=result))
    return checks


async def analyze(
    req: CheckRequest,
    settings: Settings | None = None,
    client: httpx.AsyncClient | None = None,
) -> LegitimacyReport:
    """Run every probe for one URL and fold the outcomes into a report.

    Raises ValueError only for a URL that cannot be normalized. Every other
    failure ends up inside the report.
    """
    t0 = time.perf_counter()
    settings = settings or Settings.from_env()

    normalized_url = normalize_url(req.url)
    hostname = urlparse(normalized_url).hostname or ""

    timings: dict[str, int] = {}

    async def timed(name: str, aw: Awaitable[T]) -> T:
        start = time.perf_counter()
        try:
            return await aw
        finally:
            timings[name] = int((time.perf_counter() - start) * 1000)

    logger.info(f"check started for {hostname}", extra=log_extra(url=normalized_url))

    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(max_redirects=MAX_REDIRECTS, timeout=settings.fetch_timeout_s)

    try:
        registration_probe = RegistrationAgeProbe(client, settings)
        search_probe = SearchVisibilityProbe(client, settings)
        fetcher = PageFetcher(client, settings.user_agent, timeout=req.timeout_ms / 1000)

        # Independent first wave; no task cancels its siblings.
        registration_out, fetch_out, search_out = await asyncio.gather(
            timed("registration", registration_probe.run(hostname)),
            timed("fetch", fetcher.fetch(normalized_url)),
            timed("search", search_probe.run(hostname)),
            return_exceptions=True,
        )
        registration = _settle("registration", registration_out)
        search = _settle("search", search_out)

        fetch_error: str | None = None
        document: DocumentContent | None = None
        if isinstance(fetch_out, DocumentContent):
            document = fetch_out
        elif isinstance(fetch_out, FetchError):
            fetch_error = str(fetch_out)
        else:
            fetch_error = f"other: {type(fetch_out).__name__}: {fetch_out}"
            logger.warning(f"page fetch raised {fetch_error}", extra=log_extra(url=normalized_url))

        if document is None:
            contacts = ProbeResult.failure(f"page content unavailable ({fetch_error})", provider="page-fetch")
            purpose = ProbeResult.failure(f"page content unavailable ({fetch_error})", provider="page-fetch")
            email_checks: list[EmailCheck] = []
            phone_checks: list[PhoneCheck] = []
        else:
            bundle = extract_contacts(document.html)
            purpose_probe = ContentPurposeProbe(client, settings)
            email_probe = EmailVerificationProbe(client, settings)
            phone_probe = PhoneVerificationProbe(client, settings)

            purpose_out, links_out, email_checks, phone_checks = await asyncio.gather(
                timed("purpose", purpose_probe.run(normalized_url, document.html)),
                timed("liveness", check_liveness(
                    client,
                    bundle.social_links,
                    timeout=settings.liveness_timeout_s,
                    user_agent=settings.user_agent,
                )),
                timed("emails", _verify_emails(email_probe, bundle.emails)),
                timed("phones", _verify_phones(phone_probe, bundle.phone_numbers)),
                return_exceptions=True,
            )
            purpose = _settle("purpose", purpose_out)
            if isinstance(links_out, BaseException):
                logger.warning(f"liveness raised {type(links_out).__name__}: {links_out}")
                links_out = tuple(link.model_copy(update={"status": "unknown"}) for link in bundle.social_links)
            bundle = bundle.model_copy(update={"social_links": links_out})
            if isinstance(email_checks, BaseException):
                email_checks = []
            if isinstance(phone_checks, BaseException):
                phone_checks = []
            contacts = ProbeResult.success(bundle, provider="page-extract", confidence="high")
    finally:
        if owns_client:
            await client.aclose()

    timings["total"] = int((time.perf_counter() - t0) * 1000)

    report = aggregate(
        url=normalized_url,
        hostname=hostname,
        registration=registration,
        contacts=contacts,
        purpose=purpose,
        search=search,
        email_verifications=email_checks,
        phone_verifications=phone_checks,
        fetch_error=fetch_error,
        timings_ms=timings,
    )
    logger.info(
        f"check finished for {hostname}: {report.score} {report.verdict}",
        extra=log_extra(url=normalized_url, score=report.score, timings_ms=timings),
    )
    return report
