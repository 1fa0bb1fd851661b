from __future__ import annotations

import asyncio
from typing import Sequence

import httpx

from .logging_utils import get_logger
from .models import SocialLink

logger = get_logger(__name__)

_MAX_REDIRECTS = 3


async def _probe(client: httpx.AsyncClient, link: SocialLink, timeout: float, user_agent: str) -> SocialLink:
    try:
        res = await asyncio.wait_for(_head(client, link.url, timeout, user_agent), timeout=timeout)
    except asyncio.TimeoutError:
        return link.model_copy(update={"status": "broken", "error": f"timed out after {timeout:g}s"})
    except httpx.HTTPError as e:
        return link.model_copy(update={"status": "broken", "error": f"{type(e).__name__}: {e}"})
    except Exception as e:
        logger.warning(f"liveness probe for {link.url} raised {type(e).__name__}: {e}")
        return link.model_copy(update={"status": "broken", "error": str(e)})

    return link.model_copy(update={
        "status": "active" if res.status_code < 400 else "broken",
        "status_code": res.status_code,
    })


async def _head(client: httpx.AsyncClient, url: str, timeout: float, user_agent: str) -> httpx.Response:
    # Follow at most a few hops by hand; the shared client may allow more.
    current = url
    for _ in range(_MAX_REDIRECTS + 1):
        res = await client.head(current, headers={"user-agent": user_agent}, timeout=timeout, follow_redirects=False)
        location = res.headers.get("location")
        if res.is_redirect and location:
            current = str(httpx.URL(current).join(location))
            continue
        return res
    raise httpx.TooManyRedirects(f"more than {_MAX_REDIRECTS} redirects", request=res.request)


async def check_liveness(
    client: httpx.AsyncClient,
    links: Sequence[SocialLink],
    *,
    timeout: float = 5.0,
    user_agent: str = "Mozilla/5.0",
) -> tuple[SocialLink, ...]:
    """Classify each link as active or broken. Checks run concurrently and independently.

    Results keep the input order. A timeout or transport error marks only that
    link as broken.
    """
    if not links:
        return ()
    checked = await asyncio.gather(*(_probe(client, link, timeout, user_agent) for link in links))
    return tuple(checked)
