from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlparse, urlunparse

import httpx

from .errors import FetchError

_HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"
MAX_REDIRECTS = 5


@dataclass(frozen=True)
class DocumentContent:
    url: str
    final_url: str
    status_code: int
    content_type: str | None
    html: str


def normalize_url(raw: str) -> str:
    value = (raw or "").strip()
    if not value:
        raise ValueError("URL is required")

    if not re.match(r"^[a-zA-Z][a-zA-Z\d+.-]*://", value):
        value = "https://" + value

    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https"):
        raise ValueError("Invalid URL format: use an http(s) website URL")
    if not parsed.hostname or "." not in parsed.hostname:
        raise ValueError("Invalid URL format: enter a valid website domain")

    path = parsed.path or "/"
    return urlunparse(parsed._replace(path=path, fragment=""))


def bare_domain(hostname: str) -> str:
    return re.sub(r"^www\.", "", (hostname or "").strip().lower())


def browser_headers(user_agent: str) -> dict[str, str]:
    return {
        "user-agent": user_agent,
        "accept": _HTML_ACCEPT,
        "accept-language": "en-US,en;q=0.5",
    }


class PageFetcher:
    """Single GET with redirects, surfacing failures as categorized FetchErrors."""

    def __init__(self, client: httpx.AsyncClient, user_agent: str, timeout: float = 15.0):
        self._client = client
        self._user_agent = user_agent
        self._timeout = timeout

    async def fetch(self, url: str) -> DocumentContent:
        try:
            res = await self._client.get(
                url,
                headers=browser_headers(self._user_agent),
                timeout=self._timeout,
                follow_redirects=True,
            )
        except httpx.TimeoutException as e:
            raise FetchError("timeout", "Request timeout") from e
        except httpx.TooManyRedirects as e:
            raise FetchError("other", "Too many redirects") from e
        except httpx.ConnectError as e:
            raise _classify_connect_error(e) from e
        except httpx.HTTPError as e:
            raise FetchError("other", f"Failed to fetch source code: {e}") from e

        if res.status_code != 200:
            raise FetchError(
                "http_status",
                f"HTTP {res.status_code}: {res.reason_phrase or 'Unable to fetch content'}",
                status_code=res.status_code,
            )
        if not res.content:
            raise FetchError("other", "Empty response body", status_code=res.status_code)

        return DocumentContent(
            url=url,
            final_url=str(res.url),
            status_code=res.status_code,
            content_type=res.headers.get("content-type"),
            html=res.text,
        )


def _classify_connect_error(error: httpx.ConnectError) -> FetchError:
    message = str(error).lower()
    if any(hint in message for hint in ("name or service not known", "nodename nor servname", "getaddrinfo", "no address associated", "name resolution")):
        return FetchError("host_not_found", "Domain not found or unreachable")
    if "refused" in message:
        return FetchError("connection_refused", "Connection refused by server")
    return FetchError("other", f"Failed to fetch source code: {error}")
