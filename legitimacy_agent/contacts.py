from __future__ import annotations

import html as html_lib
import re

from .models import ContactBundle, SocialLink

MAX_EMAILS = 5
MAX_PHONES = 3
MAX_ADDRESSES = 3
MAX_LINKS_PER_PLATFORM = 2

_SCRIPT_RE = re.compile(r"<script\b[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_STYLE_RE = re.compile(r"<style\b[^>]*>.*?</style>", re.IGNORECASE | re.DOTALL)
_NOSCRIPT_RE = re.compile(r"<noscript\b[^>]*>.*?</noscript>", re.IGNORECASE | re.DOTALL)
_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")

_EMAIL_RE = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)
_PHONE_RE = re.compile(r"(?<![\d\w])(?:\+?1[-.\s]?)?\(?([0-9]{3})\)?[-.\s]?([0-9]{3})[-.\s]?([0-9]{4})(?!\d)")
_ADDRESS_RE = re.compile(
    r"\b\d{1,6}\s+(?:[A-Za-z]+[ ,]+){0,5}?"
    r"(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Drive|Dr|Lane|Ln|Way|Court|Ct)\b",
    re.IGNORECASE,
)

_SOCIAL_PATTERNS: dict[str, re.Pattern[str]] = {
    "facebook": re.compile(r"(?<![\w.-])(?:https?://)?(?:www\.)?facebook\.com/[a-zA-Z0-9._%+-]+", re.IGNORECASE),
    "twitter": re.compile(r"(?<![\w.-])(?:https?://)?(?:www\.)?(?:twitter\.com|x\.com)/[a-zA-Z0-9._%+-]+", re.IGNORECASE),
    "instagram": re.compile(r"(?<![\w.-])(?:https?://)?(?:www\.)?instagram\.com/[a-zA-Z0-9._%+-]+", re.IGNORECASE),
    "linkedin": re.compile(r"(?<![\w.-])(?:https?://)?(?:[a-z]{2,3}\.|www\.)?linkedin\.com/(?:in|company)/[a-zA-Z0-9._%+-]+", re.IGNORECASE),
    "youtube": re.compile(r"(?<![\w.-])(?:https?://)?(?:www\.)?youtube\.com/(?:channel/|user/|c/|@)[a-zA-Z0-9._%+-]+", re.IGNORECASE),
    "tiktok": re.compile(r"(?<![\w.-])(?:https?://)?(?:www\.)?tiktok\.com/@[a-zA-Z0-9._%+-]+", re.IGNORECASE),
}

# Share buttons, tracking pixels and login walls, not profiles.
_SOCIAL_NON_PROFILE = {
    "sharer", "sharer.php", "share", "share.php", "intent", "dialog", "plugins", "tr",
    "login", "login.php", "home", "home.php", "hashtag", "search", "watch", "privacy", "policies",
}

_PLACEHOLDER_EMAIL_DOMAINS = {
    "example.com", "example.org", "example.net", "test.com", "domain.com",
    "yourdomain.com", "email.com", "mysite.com", "sentry.io",
}
_ASSET_SUFFIXES = (".png", ".jpg", ".jpeg", ".gif", ".webp", ".svg", ".ico", ".css", ".js")


def strip_scripts_styles(markup: str) -> str:
    if not markup:
        return ""
    cleaned = _SCRIPT_RE.sub(" ", markup)
    cleaned = _STYLE_RE.sub(" ", cleaned)
    return _COMMENT_RE.sub(" ", cleaned)


def visible_text(markup: str) -> str:
    """Scripts, styles and tags removed, entities decoded, whitespace collapsed."""
    text = _NOSCRIPT_RE.sub(" ", strip_scripts_styles(markup))
    text = _TAG_RE.sub(" ", text)
    text = html_lib.unescape(text)
    return re.sub(r"\s+", " ", text).strip()


def _first_unique(items, limit: int, key=lambda x: x) -> tuple:
    seen: set = set()
    out: list = []
    for item in items:
        k = key(item)
        if k in seen:
            continue
        seen.add(k)
        out.append(item)
        if len(out) >= limit:
            break
    return tuple(out)


def _is_placeholder_email(email: str) -> bool:
    domain = email.rsplit("@", 1)[-1]
    if domain in _PLACEHOLDER_EMAIL_DOMAINS or any(domain.endswith("." + d) for d in _PLACEHOLDER_EMAIL_DOMAINS):
        return True
    return email.endswith(_ASSET_SUFFIXES) or ".." in email


def extract_emails(markup: str) -> tuple[str, ...]:
    source = html_lib.unescape(markup or "")
    found = (m.group(0).strip(".").lower() for m in _EMAIL_RE.finditer(source))
    return _first_unique((e for e in found if not _is_placeholder_email(e)), MAX_EMAILS)


def extract_phone_numbers(text: str) -> tuple[str, ...]:
    matches = (m.group(0).strip() for m in _PHONE_RE.finditer(text or ""))
    return _first_unique(matches, MAX_PHONES, key=lambda p: re.sub(r"\D", "", p)[-10:])


def extract_addresses(text: str) -> tuple[str, ...]:
    matches = (re.sub(r"\s+", " ", m.group(0)).strip(" ,") for m in _ADDRESS_RE.finditer(text or ""))
    return _first_unique(matches, MAX_ADDRESSES, key=str.lower)


def _normalize_social_url(match: str) -> str:
    url = match if match.lower().startswith("http") else f"https://{match}"
    return url.rstrip(".")


def _is_profile(url: str) -> bool:
    path = url.split("://", 1)[-1].split("/", 1)[-1]
    first = path.split("/", 1)[0].lower()
    return first not in _SOCIAL_NON_PROFILE


def extract_social_links(markup: str) -> tuple[SocialLink, ...]:
    links: list[SocialLink] = []
    for platform, pattern in _SOCIAL_PATTERNS.items():
        urls = (_normalize_social_url(m.group(0)) for m in pattern.finditer(markup or ""))
        profiles = (u for u in urls if _is_profile(u))
        for url in _first_unique(profiles, MAX_LINKS_PER_PLATFORM, key=str.lower):
            links.append(SocialLink(platform=platform, url=url))
    return tuple(links)


def extract_contacts(markup: str) -> ContactBundle:
    """Emails, phone numbers, social profiles and street addresses found in a page.

    Pure and deterministic. Emails and social links are read from the markup
    (scripts and styles removed) so ``mailto:`` and ``href`` values count;
    phones and addresses are read from the visible text only.
    """
    cleaned = strip_scripts_styles(markup or "")
    text = visible_text(markup or "")
    return ContactBundle(
        emails=extract_emails(cleaned),
        phone_numbers=extract_phone_numbers(text),
        social_links=extract_social_links(cleaned),
        addresses=extract_addresses(text),
    )
