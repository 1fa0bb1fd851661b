"""Settings loading and credential presence."""

from __future__ import annotations

from legitimacy_agent.config import Settings


def test_from_env_reads_uppercase_names() -> None:
    settings = Settings.from_env({"SERPAPI_API_KEY": "abc", "FETCH_TIMEOUT_S": "7.5"})

    assert settings.serpapi_api_key == "abc"
    assert settings.fetch_timeout_s == 7.5
    assert settings.has("serpapi_api_key")


def test_placeholder_values_count_as_absent() -> None:
    settings = Settings.from_env({
        "GOOGLE_SEARCH_API_KEY": "your_google_search_api_key_here",
        "GOOGLE_SEARCH_ENGINE_ID": "cx-123",
    })

    assert settings.google_search_api_key is None
    assert not settings.has("google_search_api_key", "google_search_engine_id")


def test_has_requires_every_name() -> None:
    settings = Settings(twilio_account_sid="AC1")

    assert not settings.has("twilio_account_sid", "twilio_auth_token")
    assert settings.has()
