from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv
from pydantic import BaseModel

_HERE = Path(__file__).resolve()
_PROJECT_ROOT = _HERE.parents[1]

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class Settings(BaseModel):
    """Provider credentials and timeouts for one process.

    A provider counts as configured when every credential it names is present
    here. Nothing else in the package reads the environment.
    """

    whois_api_key: str | None = None
    email_verifier_api_key: str | None = None
    emailvalidation_api_key: str | None = None
    phone_verifier_api_key: str | None = None
    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    google_search_api_key: str | None = None
    google_search_engine_id: str | None = None
    serpapi_api_key: str | None = None
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash"
    openrouter_api_key: str | None = None
    openrouter_model: str = "anthropic/claude-3-sonnet"

    user_agent: str = DEFAULT_USER_AGENT
    fetch_timeout_s: float = 15.0
    whois_timeout_s: float = 10.0
    email_timeout_s: float = 15.0
    phone_timeout_s: float = 10.0
    search_timeout_s: float = 15.0
    presence_timeout_s: float = 10.0
    llm_timeout_s: float = 30.0
    liveness_timeout_s: float = 5.0
    dns_timeout_s: float = 5.0
    log_level: str = "INFO"

    def has(self, *names: str) -> bool:
        return all(bool(getattr(self, name, None)) for name in names)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        if environ is None:
            load_dotenv(_PROJECT_ROOT / ".env", override=False)
            environ = os.environ

        values: dict[str, str] = {}
        for name in cls.model_fields:
            raw = (environ.get(name.upper()) or "").strip()
            if raw and not _is_placeholder(raw):
                values[name] = raw
        return cls(**values)


def _is_placeholder(value: str) -> bool:
    # .env.example ships values such as "your_google_search_api_key_here"
    lowered = value.lower()
    return lowered.startswith("your_") and lowered.endswith("_here")
