from __future__ import annotations

import asyncio
import re
import time

import httpx

from .chain import Provider, VerificationChain
from .config import Settings
from .errors import ProviderSemanticFailure
from .fetcher import bare_domain, browser_headers
from .models import PresenceChecks, ProbeResult, SearchResultItem, SearchVisibility

_TITLE_RE = re.compile(r"<title[^>]*>([^<]+)</title>", re.IGNORECASE)
_DESCRIPTION_RE = re.compile(r"<meta[^>]*name=[\"']description[\"'][^>]*content=[\"']([^\"']+)[\"'][^>]*>", re.IGNORECASE)
_ANALYTICS_RE = re.compile(r"google-analytics|gtag|ga\(|_gaq")
_GENERIC_TLD_RE = re.compile(r"\.(com|org|net|edu|gov)$")

_SITEMAP_PATHS = ("/sitemap.xml", "/sitemap_index.xml")


def general_query(domain: str) -> str:
    return _GENERIC_TLD_RE.sub("", domain)


def seo_health(score: int) -> str:
    if score >= 80:
        return "Excellent"
    if score >= 60:
        return "Good"
    if score >= 40:
        return "Fair"
    return "Poor"


def seo_score(checks: PresenceChecks) -> int:
    score = 0
    if checks.status_code == 200:
        score += 20
    if checks.has_ssl:
        score += 15
    if checks.response_time_ms is not None and checks.response_time_ms < 3000:
        score += 10
    if checks.meta_title:
        score += 15
    if checks.meta_description:
        score += 15
    if checks.has_robots_txt:
        score += 10
    if checks.has_sitemap:
        score += 10
    if checks.has_analytics:
        score += 5
    return score


def seo_recommendations(checks: PresenceChecks) -> list[str]:
    out: list[str] = []
    if not checks.has_ssl:
        out.append("Enable HTTPS/SSL certificate for security and SEO benefits")
    if not checks.meta_title:
        out.append("Add a descriptive title tag to improve search visibility")
    if not checks.meta_description:
        out.append("Add meta description tags to improve click-through rates")
    if not checks.has_robots_txt:
        out.append("Create a robots.txt file to guide search engine crawlers")
    if not checks.has_sitemap:
        out.append("Create and submit an XML sitemap to help search engines index your site")
    if not checks.has_analytics:
        out.append("Install web analytics (like Google Analytics) to track performance")
    if checks.response_time_ms is not None and checks.response_time_ms > 3000:
        out.append("Improve page load speed for better user experience and SEO")
    return out


def presence_budget(request_timeout: float) -> float:
    # two sequential page fetches, then one parallel round of half-timeout checks
    return request_timeout * 2.5 + 5.0


def _first_position(links: list[str], domain: str) -> int | None:
    for i, link in enumerate(links):
        if domain in (link or ""):
            return i + 1
    return None


def _visibility_from_results(domain: str, site_items: list[SearchResultItem], general_links: list[str], total: str | None) -> SearchVisibility:
    ranking = _first_position(general_links, domain)
    appears_in_general = ranking is not None
    if site_items:
        reason = f"Found {len(site_items)} indexed pages"
    elif appears_in_general:
        reason = f"Appears in general search at position {ranking}"
    else:
        reason = "No search presence found"
    return SearchVisibility(
        domain=domain,
        appears_in_results=bool(site_items) or appears_in_general,
        indexed_pages=len(site_items),
        ranking=ranking,
        is_in_top_ten=ranking is not None and ranking <= 10,
        total_results=total or "0",
        sample_results=site_items[:3],
        reason=reason,
        confidence="high",
    )


class SearchVisibilityProbe:
    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        self._client = client
        self._settings = settings
        timeout = settings.search_timeout_s
        self.chain: VerificationChain[str, SearchVisibility] = VerificationChain(
            name="search",
            providers=[
                Provider("google-search", self._google_search, timeout=timeout * 2, confidence="high",
                         requires=("google_search_api_key", "google_search_engine_id")),
                Provider("serpapi", self._serpapi, timeout=timeout * 2, confidence="high", requires=("serpapi_api_key",)),
            ],
            settings=settings,
            fallback=Provider("basic-presence", self.basic_presence, timeout=presence_budget(settings.presence_timeout_s), confidence="low"),
        )

    async def run(self, hostname: str) -> ProbeResult[SearchVisibility]:
        return await self.chain.run(bare_domain(hostname))

    async def _google_search(self, domain: str) -> SearchVisibility:
        async def query(q: str) -> dict:
            res = await self._client.get(
                "https://www.googleapis.com/customsearch/v1",
                params={"key": self._settings.google_search_api_key, "cx": self._settings.google_search_engine_id, "q": q},
                timeout=self._settings.search_timeout_s,
            )
            res.raise_for_status()
            data = res.json()
            if "error" in data:
                raise ProviderSemanticFailure(str((data["error"] or {}).get("message") or "custom search error"))
            return data

        site_data = await query(f"site:{domain}")
        general_data = await query(general_query(domain))

        site_items = [
            SearchResultItem(title=item.get("title"), link=item.get("link") or "", snippet=item.get("snippet"))
            for item in site_data.get("items") or []
        ]
        general_links = [item.get("link") or "" for item in general_data.get("items") or []]
        total = (site_data.get("searchInformation") or {}).get("totalResults")
        return _visibility_from_results(domain, site_items, general_links, total)

    async def _serpapi(self, domain: str) -> SearchVisibility:
        async def query(q: str) -> dict:
            res = await self._client.get(
                "https://serpapi.com/search.json",
                params={"engine": "google", "q": q, "api_key": self._settings.serpapi_api_key},
                timeout=self._settings.search_timeout_s,
            )
            res.raise_for_status()
            data = res.json()
            if data.get("error"):
                raise ProviderSemanticFailure(str(data["error"]))
            return data

        site_data = await query(f"site:{domain}")
        general_data = await query(general_query(domain))

        site_items = [
            SearchResultItem(title=item.get("title"), link=item.get("link") or "", snippet=item.get("snippet"))
            for item in site_data.get("organic_results") or []
        ]
        general_links = [item.get("link") or "" for item in general_data.get("organic_results") or []]
        total = (site_data.get("search_information") or {}).get("total_results")
        return _visibility_from_results(domain, site_items, general_links, str(total) if total is not None else None)

    async def _reachable(self, url: str) -> bool:
        timeout = self._settings.presence_timeout_s / 2
        try:
            res = await asyncio.wait_for(
                self._client.get(url, headers=browser_headers(self._settings.user_agent), timeout=timeout, follow_redirects=True),
                timeout=timeout,
            )
        except (httpx.HTTPError, asyncio.TimeoutError):
            return False
        return 200 <= res.status_code < 300

    async def basic_presence(self, domain: str) -> SearchVisibility:
        """Fetch the site directly and grade structural SEO signals out of 100.

        The page is tried over https then http; robots.txt and the sitemaps are
        then checked concurrently at half the request timeout, so the whole
        check is bounded by ``presence_budget``.
        """
        timeout = self._settings.presence_timeout_s
        checks = PresenceChecks()
        html = ""
        start = time.perf_counter()
        for scheme in ("https", "http"):
            try:
                res = await asyncio.wait_for(
                    self._client.get(
                        f"{scheme}://{domain}",
                        headers=browser_headers(self._settings.user_agent),
                        timeout=timeout,
                        follow_redirects=True,
                    ),
                    timeout=timeout,
                )
            except (httpx.HTTPError, asyncio.TimeoutError):
                continue
            checks.response_time_ms = int((time.perf_counter() - start) * 1000)
            checks.status_code = res.status_code
            checks.has_ssl = scheme == "https"
            html = res.text
            break

        checks.meta_title = bool(_TITLE_RE.search(html))
        checks.meta_description = bool(_DESCRIPTION_RE.search(html))
        checks.has_analytics = bool(_ANALYTICS_RE.search(html))

        robots_urls = [f"{scheme}://{domain}/robots.txt" for scheme in ("https", "http")]
        sitemap_urls = [f"{scheme}://{domain}{path}" for scheme in ("https", "http") for path in _SITEMAP_PATHS]
        found = await asyncio.gather(*(self._reachable(u) for u in robots_urls + sitemap_urls))
        checks.has_robots_txt = any(found[:len(robots_urls)])
        checks.has_sitemap = any(found[len(robots_urls):])

        score = seo_score(checks)
        health = seo_health(score)
        reachable = checks.status_code == 200
        return SearchVisibility(
            domain=domain,
            appears_in_results=reachable,
            seo_score=score,
            seo_health=health,
            checks=checks,
            recommendations=seo_recommendations(checks),
            reason=(
                f"Website accessible with {health.lower()} SEO health ({score}/100)"
                if reachable
                else "Website not accessible or has issues"
            ),
            confidence="low",
        )
