from __future__ import annotations

import re

import httpx
import phonenumbers
from phonenumbers import NumberParseException, PhoneNumberFormat

from .chain import Provider, VerificationChain
from .config import Settings
from .errors import ProviderSemanticFailure
from .models import PhoneVerification, ProbeResult

# calling code -> (country, min digits, max digits), first prefix match wins
COUNTRY_CODES: dict[str, tuple[str, int, int]] = {
    "1": ("United States/Canada", 11, 11),
    "44": ("United Kingdom", 11, 13),
    "49": ("Germany", 11, 12),
    "33": ("France", 10, 10),
    "39": ("Italy", 10, 11),
    "34": ("Spain", 9, 9),
    "91": ("India", 12, 13),
    "86": ("China", 11, 13),
    "81": ("Japan", 10, 11),
    "61": ("Australia", 10, 11),
}

FAKE_PATTERNS = (
    re.compile(r"^(\d)\1{9,}$"),
    re.compile(r"^1234567890$"),
    re.compile(r"^0000000000$"),
    re.compile(r"^1111111111$"),
)

INVALID_AREA_CODES = frozenset(f"00{d}" for d in range(10))

_FORMAT_RE = re.compile(r"^[\d\s\-()+.]+$")


def clean_phone(phone: str) -> str:
    return re.sub(r"\D", "", phone or "")


def format_phone_number(digits: str) -> str | None:
    """International rendering when the digits form a plausible number, else None."""
    try:
        if len(digits) == 10:
            parsed = phonenumbers.parse(digits, "US")
        else:
            parsed = phonenumbers.parse("+" + digits, None)
    except NumberParseException:
        return None
    if not phonenumbers.is_possible_number(parsed):
        return None
    return phonenumbers.format_number(parsed, PhoneNumberFormat.INTERNATIONAL)


def basic_phone_check(phone: str) -> PhoneVerification:
    digits = clean_phone(phone)

    country = "Unknown"
    is_valid_length = False
    for code, (name, min_len, max_len) in COUNTRY_CODES.items():
        if digits.startswith(code):
            country = name
            is_valid_length = min_len <= len(digits) <= max_len
            break

    if country == "Unknown" and len(digits) == 10:
        country = "United States/Canada (assumed)"
        is_valid_length = True

    has_valid_format = bool(_FORMAT_RE.match(phone or ""))
    is_fake_pattern = any(p.match(digits) for p in FAKE_PATTERNS)

    area_code_valid = True
    if len(digits) == 10 or (len(digits) == 11 and digits.startswith("1")):
        area_code = digits[1:4] if len(digits) == 11 else digits[:3]
        area_code_valid = area_code not in INVALID_AREA_CODES

    valid = has_valid_format and is_valid_length and not is_fake_pattern and area_code_valid
    if not has_valid_format:
        reason = "Invalid format"
    elif not is_valid_length:
        reason = "Invalid length for detected country"
    elif is_fake_pattern:
        reason = "Appears to be fake number pattern"
    elif not area_code_valid:
        reason = "Invalid area code"
    else:
        reason = "Basic validation passed"

    return PhoneVerification(
        phone=phone,
        clean_phone=digits,
        formatted=format_phone_number(digits),
        valid=valid,
        country=country,
        has_valid_format=has_valid_format,
        is_valid_length=is_valid_length,
        area_code_valid=area_code_valid,
        is_fake_pattern=is_fake_pattern,
        reason=reason,
        confidence="medium" if valid else "high",
    )


class PhoneVerificationProbe:
    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        self._client = client
        self._settings = settings
        timeout = settings.phone_timeout_s
        self.chain: VerificationChain[str, PhoneVerification] = VerificationChain(
            name="phone",
            providers=[
                Provider("numverify", self._numverify, timeout=timeout, confidence="high", requires=("phone_verifier_api_key",)),
                Provider("twilio", self._twilio, timeout=timeout, confidence="high", requires=("twilio_account_sid", "twilio_auth_token")),
                Provider("freecarrierlookup", self._freecarrierlookup, timeout=timeout, confidence="medium"),
            ],
            settings=settings,
            fallback=Provider("basic", self._basic, timeout=5.0),
        )

    async def run(self, phone: str) -> ProbeResult[PhoneVerification]:
        digits = clean_phone(phone)
        if len(digits) < 10 or len(digits) > 15:
            return ProbeResult.success(
                PhoneVerification(phone=phone, clean_phone=digits, valid=False, is_valid_length=False, reason="Invalid phone number length", confidence="high"),
                provider="basic",
                confidence="high",
            )
        result = await self.chain.run(phone)
        if result.ok and result.value is not None:
            value = result.value.model_copy(update={"phone": phone, "clean_phone": digits})
            if value.formatted is None:
                value = value.model_copy(update={"formatted": format_phone_number(digits)})
            return result.model_copy(update={"value": value})
        return result

    async def _basic(self, phone: str) -> PhoneVerification:
        return basic_phone_check(phone)

    async def _numverify(self, phone: str) -> PhoneVerification:
        digits = clean_phone(phone)
        res = await self._client.get(
            "http://apilayer.net/api/validate",
            params={"access_key": self._settings.phone_verifier_api_key, "number": digits},
        )
        res.raise_for_status()
        data = res.json()
        if data.get("success") is False or "valid" not in data:
            info = (data.get("error") or {}).get("info") if isinstance(data.get("error"), dict) else None
            raise ProviderSemanticFailure(info or "numverify returned no verdict")
        valid = bool(data.get("valid"))
        return PhoneVerification(
            phone=digits,
            valid=valid,
            country=data.get("country_name") or None,
            carrier=data.get("carrier") or None,
            line_type=data.get("line_type") or None,
            reason="Valid phone number" if valid else "Invalid phone number",
            confidence="high",
        )

    async def _twilio(self, phone: str) -> PhoneVerification:
        digits = clean_phone(phone)
        res = await self._client.get(
            f"https://lookups.twilio.com/v2/PhoneNumbers/+{digits}",
            auth=(self._settings.twilio_account_sid or "", self._settings.twilio_auth_token or ""),
        )
        res.raise_for_status()
        data = res.json()
        if "valid" not in data:
            raise ProviderSemanticFailure("twilio lookup returned no verdict")
        valid = bool(data.get("valid"))
        errors = data.get("validation_errors") or []
        return PhoneVerification(
            phone=digits,
            valid=valid,
            country=data.get("country_code") or None,
            formatted=data.get("national_format") or None,
            reason="Valid phone number" if valid else f"Invalid phone number ({', '.join(errors) or 'rejected'})",
            confidence="high",
        )

    async def _freecarrierlookup(self, phone: str) -> PhoneVerification:
        digits = clean_phone(phone)
        res = await self._client.get(
            "https://freecarrierlookup.com/api/lookup",
            params={"phone": digits},
            headers={"user-agent": self._settings.user_agent},
        )
        res.raise_for_status()
        data = res.json()
        if not isinstance(data, dict) or not isinstance(data.get("success"), bool):
            raise ProviderSemanticFailure("freecarrierlookup returned an unexpected payload")
        valid = data["success"]
        return PhoneVerification(
            phone=digits,
            valid=valid,
            carrier=data.get("carrier") or "Unknown",
            line_type=data.get("line_type") or "Unknown",
            country=data.get("country") or "Unknown",
            reason="Valid phone number" if valid else "Phone verification failed",
            confidence="medium",
        )
