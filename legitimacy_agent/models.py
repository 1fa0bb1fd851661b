from __future__ import annotations

from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

Confidence = Literal["high", "medium", "low"]
Verdict = Literal["LIKELY LEGITIMATE", "SUSPICIOUS — NEEDS REVIEW", "LIKELY FAKE/SUSPICIOUS"]
LivenessStatus = Literal["found", "active", "broken", "unknown"]


class CheckRequest(BaseModel):
    url: str = Field(..., min_length=1)
    # Upper bound for the page fetch; probes keep their own timeouts.
    timeout_ms: int = Field(15000, ge=1000, le=60000)


class ProviderAttempt(BaseModel):
    provider: str
    outcome: Literal["ok", "skipped", "error", "timeout"]
    detail: str | None = None


class ProbeResult(BaseModel, Generic[T]):
    """Outcome of one probe: either a value from a named provider or a reason it failed."""

    status: Literal["success", "failure"]
    provider: str
    value: T | None = None
    confidence: Confidence | None = None
    reason: str | None = None
    attempts: list[ProviderAttempt] = []

    @property
    def ok(self) -> bool:
        return self.status == "success"

    @classmethod
    def success(cls, value: Any, provider: str, confidence: Confidence = "medium", attempts: list[ProviderAttempt] | None = None):
        return cls(status="success", provider=provider, value=value, confidence=confidence, attempts=attempts or [])

    @classmethod
    def failure(cls, reason: str, provider: str = "none", attempts: list[ProviderAttempt] | None = None):
        return cls(status="failure", provider=provider, reason=reason, attempts=attempts or [])


class RegistrationInfo(BaseModel):
    domain: str
    registration_date: str
    age_years: float
    # from the unrounded age; age_years is for display
    mature: bool
    status: str


class SocialLink(BaseModel):
    model_config = ConfigDict(frozen=True)

    platform: str
    url: str
    status: LivenessStatus = "found"
    status_code: int | None = None
    error: str | None = None


class ContactBundle(BaseModel):
    model_config = ConfigDict(frozen=True)

    emails: tuple[str, ...] = ()
    phone_numbers: tuple[str, ...] = ()
    social_links: tuple[SocialLink, ...] = ()
    addresses: tuple[str, ...] = ()

    @property
    def has_contact_info(self) -> bool:
        return bool(self.emails or self.phone_numbers)

    @property
    def has_social_media(self) -> bool:
        return bool(self.social_links)

    @property
    def active_social_links(self) -> int:
        return sum(1 for link in self.social_links if link.status == "active")

    @property
    def broken_social_links(self) -> int:
        return sum(1 for link in self.social_links if link.status == "broken")


class PurposeAnalysis(BaseModel):
    purpose: str
    analysis_method: Literal["llm", "rule-based"]
    category: str | None = None
    red_flags: list[str] = []
    legitimacy_indicators: list[str] = []
    confidence: Confidence = "medium"


class EmailVerification(BaseModel):
    email: str
    valid: bool
    reason: str
    confidence: Confidence = "medium"
    # True deliverable, False undeliverable, None unknown
    deliverable: bool | None = None
    format_valid: bool | None = None
    is_disposable: bool | None = None
    domain_exists: bool | None = None
    suggestion: str | None = None


class PhoneVerification(BaseModel):
    phone: str
    valid: bool
    reason: str
    confidence: Confidence = "medium"
    clean_phone: str | None = None
    formatted: str | None = None
    country: str | None = None
    carrier: str | None = None
    line_type: str | None = None
    has_valid_format: bool | None = None
    is_valid_length: bool | None = None
    area_code_valid: bool | None = None
    is_fake_pattern: bool | None = None


class SearchResultItem(BaseModel):
    title: str | None = None
    link: str
    snippet: str | None = None


class PresenceChecks(BaseModel):
    has_ssl: bool = False
    response_time_ms: int | None = None
    status_code: int | None = None
    has_robots_txt: bool = False
    has_sitemap: bool = False
    meta_title: bool = False
    meta_description: bool = False
    has_analytics: bool = False


class SearchVisibility(BaseModel):
    domain: str
    appears_in_results: bool
    reason: str
    indexed_pages: int | None = None
    ranking: int | None = None
    is_in_top_ten: bool | None = None
    total_results: str | None = None
    sample_results: list[SearchResultItem] = []
    seo_score: int | None = None
    seo_health: Literal["Excellent", "Good", "Fair", "Poor"] | None = None
    checks: PresenceChecks | None = None
    recommendations: list[str] = []
    confidence: Confidence = "high"


class EmailCheck(BaseModel):
    email: str
    result: ProbeResult


class PhoneCheck(BaseModel):
    phone: str
    result: ProbeResult


class SignalContribution(BaseModel):
    key: Literal["domainAge", "contactInfo", "socialMedia", "searchPresence"]
    weight: int
    awarded: int
    probe_failed: bool
    factor: str


class LegitimacyReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    url: str
    hostname: str
    score: int = Field(..., ge=0, le=100)
    verdict: Verdict
    factors: list[str]
    signals: list[SignalContribution]

    # raw probe outcomes, failures included
    registration: ProbeResult
    contacts: ProbeResult
    purpose: ProbeResult
    search: ProbeResult
    email_verifications: list[EmailCheck] = []
    phone_verifications: list[PhoneCheck] = []
    fetch_error: str | None = None

    # metadata
    analyzed_at: str
    timings_ms: dict[str, int] = {}
