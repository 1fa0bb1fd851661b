"""End-to-end checks with every remote service faked."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from legitimacy_agent.analyzer import analyze
from legitimacy_agent.config import Settings
from legitimacy_agent.models import CheckRequest

BARE_PAGE = "<html><head><title>Acme</title></head><body><p>Welcome to our store.</p></body></html>"

FULL_PAGE = """<html><body>
<p>Write to <a href="mailto:hello@acme-widgets.com">hello@acme-widgets.com</a></p>
<p>Phone: (415) 555-2671</p>
<a href="https://facebook.com/acmewidgets">Facebook</a>
</body></html>"""


def _created(days_ago: int) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days_ago)).strftime("%Y-%m-%d")


def _services(page_status: int, page_text: str, created: str, organic: list[dict]):
    def handler(request: httpx.Request) -> httpx.Response:
        host = request.url.host
        if host == "acme-widgets.com":
            return httpx.Response(page_status, text=page_text)
        if host == "whoisjson.com":
            return httpx.Response(200, json={"created_date": created})
        if host == "serpapi.com":
            return httpx.Response(200, json={"organic_results": organic})
        if host == "api.emailvalidation.io":
            return httpx.Response(200, json={"state": "deliverable", "score": 0.9})
        if host == "freecarrierlookup.com":
            return httpx.Response(200, json={"success": True, "carrier": "Pacific Bell"})
        if host == "facebook.com" and request.method == "HEAD":
            return httpx.Response(200)
        return httpx.Response(404)

    return handler


@pytest.mark.asyncio
async def test_young_site_without_signals_scores_zero(mock_client) -> None:
    handler = _services(200, BARE_PAGE, _created(365), [])

    async with mock_client(handler) as client:
        report = await analyze(CheckRequest(url="acme-widgets.com"), settings=Settings(serpapi_api_key="k"), client=client)

    assert report.url == "https://acme-widgets.com/"
    assert report.hostname == "acme-widgets.com"
    assert report.score == 0
    assert report.verdict == "LIKELY FAKE/SUSPICIOUS"
    assert report.factors == [
        "Domain registered less than 3 years ago",
        "No contact information found",
        "No social media links found",
        "Limited search engine presence",
    ]
    assert not any(s.probe_failed for s in report.signals)
    assert report.purpose.provider == "rule-based"
    assert report.email_verifications == []
    assert "total" in report.timings_ms


@pytest.mark.asyncio
async def test_established_site_with_every_signal(mock_client) -> None:
    handler = _services(
        200, FULL_PAGE,
        "2010-05-01",
        [{"title": "Acme", "link": "https://acme-widgets.com/", "snippet": "Widgets"}],
    )
    settings = Settings(serpapi_api_key="k", emailvalidation_api_key="k")

    async with mock_client(handler) as client:
        report = await analyze(CheckRequest(url="https://acme-widgets.com"), settings=settings, client=client)

    assert report.score == 100
    assert report.verdict == "LIKELY LEGITIMATE"
    assert [c.email for c in report.email_verifications] == ["hello@acme-widgets.com"]
    assert report.email_verifications[0].result.provider == "emailvalidation"
    assert [c.phone for c in report.phone_verifications] == ["(415) 555-2671"]
    assert report.phone_verifications[0].result.provider == "freecarrierlookup"
    (link,) = report.contacts.value.social_links
    assert link.status == "active"


@pytest.mark.asyncio
async def test_unreachable_page_keeps_other_signals(mock_client) -> None:
    handler = _services(
        503, "",
        "2010-05-01",
        [{"link": "https://acme-widgets.com/"}],
    )

    async with mock_client(handler) as client:
        report = await analyze(CheckRequest(url="acme-widgets.com"), settings=Settings(serpapi_api_key="k"), client=client)

    assert report.fetch_error.startswith("http_status: HTTP 503")
    assert not report.contacts.ok
    assert not report.purpose.ok
    assert report.score == 50
    assert report.verdict == "SUSPICIOUS — NEEDS REVIEW"
    assert [s.probe_failed for s in report.signals] == [False, True, True, False]


@pytest.mark.asyncio
async def test_every_service_down_still_reports(mock_client) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Name or service not known", request=request)

    async with mock_client(handler) as client:
        report = await analyze(CheckRequest(url="acme-widgets.com"), settings=Settings(), client=client)

    assert report.score == 0
    assert report.fetch_error == "host_not_found: Domain not found or unreachable"
    assert not report.registration.ok
    # the local fallback still answers for search
    assert report.search.provider == "basic-presence"
    assert report.search.value.appears_in_results is False


@pytest.mark.asyncio
async def test_invalid_url_raises_value_error() -> None:
    with pytest.raises(ValueError):
        await analyze(CheckRequest(url="not a url"), settings=Settings())


@pytest.mark.asyncio
async def test_liveness_crash_marks_links_unknown(mock_client, monkeypatch) -> None:
    async def broken_liveness(*args, **kwargs):
        raise RuntimeError("liveness exploded")

    monkeypatch.setattr("legitimacy_agent.analyzer.check_liveness", broken_liveness)
    handler = _services(200, FULL_PAGE, "2010-05-01", [{"link": "https://acme-widgets.com/"}])
    settings = Settings(serpapi_api_key="k", emailvalidation_api_key="k")

    async with mock_client(handler) as client:
        report = await analyze(CheckRequest(url="acme-widgets.com"), settings=settings, client=client)

    assert report.contacts.ok
    (link,) = report.contacts.value.social_links
    assert link.platform == "facebook"
    assert link.status == "unknown"
    # a link that exists still counts toward the social signal
    assert report.signals[2].awarded == 20
