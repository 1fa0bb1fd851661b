from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable

import httpx

from .chain import Provider, VerificationChain
from .config import Settings
from .errors import ProviderSemanticFailure, TransportFault
from .fetcher import bare_domain
from .models import ProbeResult, RegistrationInfo

MATURE_DOMAIN_YEARS = 3.0
UNKNOWN_REGISTRATION = "unable to determine registration date"

_DAYS_PER_YEAR = 365.25
_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S %Z",
    "%Y-%m-%d %H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S%z",
    "%Y-%m-%dT%H:%M:%S.%f%z",
    "%Y-%m-%d",
    "%d-%b-%Y",
    "%Y.%m.%d",
    "%Y/%m/%d",
)


def parse_registry_date(raw: Any) -> datetime | None:
    """Best-effort parse of the date shapes registries hand back (ISO, whois text, epoch)."""
    if isinstance(raw, list):
        raw = raw[0] if raw else None
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, (int, float)) or (isinstance(raw, str) and raw.strip().isdigit() and len(raw.strip()) >= 9):
        try:
            return datetime.fromtimestamp(float(raw), tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    text = str(raw).strip()
    if not text:
        return None

    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        for fmt in _DATE_FORMATS:
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def age_in_years(created: datetime, now: datetime) -> float:
    return (now - created).total_seconds() / (_DAYS_PER_YEAR * 86400)


def registration_info(domain: str, created: datetime, now: datetime) -> RegistrationInfo:
    age = age_in_years(created, now)
    mature = age >= MATURE_DOMAIN_YEARS
    return RegistrationInfo(
        domain=domain,
        registration_date=created.date().isoformat(),
        age_years=round(age, 2),
        mature=mature,
        status="More than 3 years old" if mature else "Less than 3 years old",
    )


def _registrable_domain_guess(hostname: str) -> str:
    parts = [p for p in hostname.split(".") if p]
    if len(parts) <= 2:
        return hostname
    return ".".join(parts[-2:])


def _whoisjson_date(data: dict) -> Any:
    return data.get("created_date") or data.get("creation_date") or data.get("created")


def _whoisxml_date(data: dict) -> Any:
    record = data.get("WhoisRecord") or {}
    return (
        record.get("createdDateNormalized")
        or record.get("createdDate")
        or (record.get("registryData") or {}).get("createdDate")
    )


def _rdap_date(data: dict) -> Any:
    for event in data.get("events") or []:
        action = str(event.get("eventAction") or "").lower()
        if "registration" in action:
            return event.get("eventDate")
    return None


def _whoisvu_date(data: dict) -> Any:
    return data.get("created")


class RegistrationAgeProbe:
    """Domain age from public registries. There is no local guess for a creation date."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        clock: Callable[[], datetime] | None = None,
    ):
        self._client = client
        self._settings = settings
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        timeout = settings.whois_timeout_s
        self.chain: VerificationChain[str, datetime] = VerificationChain(
            name="registration",
            providers=[
                Provider("whoisjson", self._whoisjson, timeout=timeout, confidence="medium"),
                Provider("whoisxml", self._whoisxml, timeout=timeout, confidence="high", requires=("whois_api_key",)),
                Provider("rdap", self._rdap, timeout=timeout, confidence="high"),
                Provider("whois.vu", self._whoisvu, timeout=timeout, confidence="medium"),
            ],
            settings=settings,
            fallback=None,
            exhausted_reason=UNKNOWN_REGISTRATION,
        )

    async def run(self, hostname: str) -> ProbeResult[RegistrationInfo]:
        domain = bare_domain(hostname)
        result = await self.chain.run(domain)
        if not result.ok:
            return result
        info = registration_info(domain, result.value, self._clock())
        return result.model_copy(update={"value": info})

    async def _get_json(self, url: str, params: dict | None = None, headers: dict | None = None) -> dict:
        res = await self._client.get(
            url,
            params=params,
            headers={"user-agent": self._settings.user_agent, **(headers or {})},
            follow_redirects=True,
        )
        if res.status_code < 200 or res.status_code >= 300:
            raise TransportFault(f"HTTP {res.status_code} from {url}")
        data = res.json()
        if not isinstance(data, dict):
            raise ProviderSemanticFailure("unexpected response shape")
        return data

    def _created(self, raw: Any) -> datetime:
        created = parse_registry_date(raw)
        if created is None:
            raise ProviderSemanticFailure("no creation date in response")
        if created > self._clock():
            raise ProviderSemanticFailure(f"creation date {created.date()} is in the future")
        return created

    async def _whoisjson(self, domain: str) -> datetime:
        data = await self._get_json("https://whoisjson.com/api/v1/whois", params={"domain": domain})
        return self._created(_whoisjson_date(data))

    async def _whoisxml(self, domain: str) -> datetime:
        data = await self._get_json(
            "https://www.whoisxmlapi.com/whoisserver/WhoisService",
            params={"apiKey": self._settings.whois_api_key, "domainName": domain, "outputFormat": "JSON"},
        )
        if "ErrorMessage" in data:
            raise ProviderSemanticFailure(str((data.get("ErrorMessage") or {}).get("msg") or "whoisxml error"))
        return self._created(_whoisxml_date(data))

    async def _rdap(self, domain: str) -> datetime:
        data = await self._get_json(
            f"https://rdap.org/domain/{_registrable_domain_guess(domain)}",
            headers={"accept": "application/rdap+json, application/json"},
        )
        return self._created(_rdap_date(data))

    async def _whoisvu(self, domain: str) -> datetime:
        data = await self._get_json("https://api.whois.vu/", params={"q": domain})
        return self._created(_whoisvu_date(data))
