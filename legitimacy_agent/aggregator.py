from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from .models import (
    ContactBundle,
    EmailCheck,
    LegitimacyReport,
    PhoneCheck,
    ProbeResult,
    RegistrationInfo,
    SearchVisibility,
    SignalContribution,
    Verdict,
)

WEIGHT_DOMAIN_AGE = 40
WEIGHT_CONTACT_INFO = 30
WEIGHT_SOCIAL_MEDIA = 20
WEIGHT_SEARCH_PRESENCE = 10


def _clamp_score(score: int) -> int:
    return max(0, min(100, int(score)))


def verdict_for(score: int) -> Verdict:
    if score >= 70:
        return "LIKELY LEGITIMATE"
    if score >= 40:
        return "SUSPICIOUS — NEEDS REVIEW"
    return "LIKELY FAKE/SUSPICIOUS"


def _domain_age_signal(registration: ProbeResult) -> SignalContribution:
    info = registration.value if registration.ok else None
    if not isinstance(info, RegistrationInfo):
        return SignalContribution(
            key="domainAge", weight=WEIGHT_DOMAIN_AGE, awarded=0, probe_failed=True,
            factor="Domain registration date could not be determined",
        )
    mature = info.mature
    return SignalContribution(
        key="domainAge", weight=WEIGHT_DOMAIN_AGE,
        awarded=WEIGHT_DOMAIN_AGE if mature else 0,
        probe_failed=False,
        factor="Domain registered more than 3 years ago" if mature else "Domain registered less than 3 years ago",
    )


def _contact_signal(contacts: ProbeResult) -> SignalContribution:
    bundle = contacts.value if contacts.ok else None
    if not isinstance(bundle, ContactBundle):
        return SignalContribution(
            key="contactInfo", weight=WEIGHT_CONTACT_INFO, awarded=0, probe_failed=True,
            factor="Contact information could not be determined",
        )
    found = bundle.has_contact_info
    return SignalContribution(
        key="contactInfo", weight=WEIGHT_CONTACT_INFO,
        awarded=WEIGHT_CONTACT_INFO if found else 0,
        probe_failed=False,
        factor="Contact information found" if found else "No contact information found",
    )


def _social_signal(contacts: ProbeResult) -> SignalContribution:
    bundle = contacts.value if contacts.ok else None
    if not isinstance(bundle, ContactBundle):
        return SignalContribution(
            key="socialMedia", weight=WEIGHT_SOCIAL_MEDIA, awarded=0, probe_failed=True,
            factor="Social media presence could not be determined",
        )
    found = bundle.has_social_media
    return SignalContribution(
        key="socialMedia", weight=WEIGHT_SOCIAL_MEDIA,
        awarded=WEIGHT_SOCIAL_MEDIA if found else 0,
        probe_failed=False,
        factor="Social media presence detected" if found else "No social media links found",
    )


def _search_signal(search: ProbeResult) -> SignalContribution:
    visibility = search.value if search.ok else None
    if not isinstance(visibility, SearchVisibility):
        return SignalContribution(
            key="searchPresence", weight=WEIGHT_SEARCH_PRESENCE, awarded=0, probe_failed=True,
            factor="Search engine presence could not be determined",
        )
    appears = visibility.appears_in_results
    return SignalContribution(
        key="searchPresence", weight=WEIGHT_SEARCH_PRESENCE,
        awarded=WEIGHT_SEARCH_PRESENCE if appears else 0,
        probe_failed=False,
        factor="Website appears in search results" if appears else "Limited search engine presence",
    )


def score_signals(registration: ProbeResult, contacts: ProbeResult, search: ProbeResult) -> list[SignalContribution]:
    """The four weighted signals in report order: age, contact, social, search."""
    return [
        _domain_age_signal(registration),
        _contact_signal(contacts),
        _social_signal(contacts),
        _search_signal(search),
    ]


def aggregate(
    *,
    url: str,
    hostname: str,
    registration: ProbeResult,
    contacts: ProbeResult,
    purpose: ProbeResult,
    search: ProbeResult,
    email_verifications: Sequence[EmailCheck] = (),
    phone_verifications: Sequence[PhoneCheck] = (),
    fetch_error: str | None = None,
    timings_ms: dict[str, int] | None = None,
    analyzed_at: datetime | None = None,
) -> LegitimacyReport:
    """Combine probe outcomes into the final report.

    A failed probe scores exactly like a negative finding (zero), but its
    signal carries ``probe_failed=True`` and its factor line says the value
    could not be determined. Purpose and the email/phone verdicts are reported
    without affecting the score.
    """
    signals = score_signals(registration, contacts, search)
    score = _clamp_score(sum(s.awarded for s in signals))
    return LegitimacyReport(
        url=url,
        hostname=hostname,
        score=score,
        verdict=verdict_for(score),
        factors=[s.factor for s in signals],
        signals=signals,
        registration=registration,
        contacts=contacts,
        purpose=purpose,
        search=search,
        email_verifications=list(email_verifications),
        phone_verifications=list(phone_verifications),
        fetch_error=fetch_error,
        analyzed_at=(analyzed_at or datetime.now(timezone.utc)).isoformat(),
        timings_ms=dict(timings_ms or {}),
    )
