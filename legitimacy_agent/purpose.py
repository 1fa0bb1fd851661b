"""
Content purpose analysis.

An LLM describes what the site is for when one is configured (Gemini, then
OpenRouter); otherwise a keyword classifier produces a plain-text summary. The
result is informational and never feeds the legitimacy score.
"""
from __future__ import annotations

import json
import re
from typing import Any

import httpx
from google import genai
from google.genai import types

from .chain import Provider, VerificationChain
from .config import Settings
from .contacts import visible_text
from .errors import ProviderSemanticFailure
from .models import ProbeResult, PurposeAnalysis

MAX_TEXT_CHARS = 3000

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"

SYSTEM_PROMPT = (
    "You are a cybersecurity expert specializing in website legitimacy analysis. "
    "Provide detailed, objective assessments of websites based on their content and structure."
)

CATEGORY_KEYWORDS: dict[str, tuple[str, ...]] = {
    "ecommerce": ("shop", "buy", "cart", "checkout", "product", "store", "purchase", "payment"),
    "news": ("news", "article", "breaking", "latest", "report", "journalist"),
    "blog": ("blog", "post", "author", "comment", "subscribe", "archive"),
    "business": ("company", "service", "about us", "contact", "team", "professional"),
    "education": ("course", "learn", "education", "student", "university", "school"),
    "portfolio": ("portfolio", "work", "project", "gallery", "resume", "cv"),
    "social": ("social", "community", "forum", "discussion", "member", "profile"),
    "finance": ("bank", "finance", "investment", "loan", "credit", "money"),
    "health": ("health", "medical", "doctor", "treatment", "medicine", "clinic"),
    "technology": ("software", "app", "technology", "digital", "innovation", "tech"),
}

RED_FLAG_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"urgent|limited time|act now|don't miss", re.IGNORECASE), "Urgency tactics"),
    (re.compile(r"100% guaranteed|risk-free|no questions asked", re.IGNORECASE), "Unrealistic promises"),
    (re.compile(r"click here|download now|free download", re.IGNORECASE), "Suspicious call-to-actions"),
    (re.compile(r"winner|congratulations|you've won", re.IGNORECASE), "Prize/lottery scam indicators"),
    (re.compile(r"verify account|suspended|confirm identity", re.IGNORECASE), "Phishing indicators"),
)

LEGITIMACY_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"privacy policy|terms of service|cookie policy", re.IGNORECASE), "Has legal policies"),
    (re.compile(r"contact us|phone|email|address", re.IGNORECASE), "Contact information available"),
    (re.compile(r"about us|our team|company history", re.IGNORECASE), "Company information provided"),
)

_ALLOWED_CONFIDENCE = {"high", "medium", "low"}


def page_text(markup: str) -> str:
    return visible_text(markup)[:MAX_TEXT_CHARS]


def build_prompt(url: str, text: str) -> str:
    return f"""Analyze this website and determine its purpose, legitimacy indicators, and potential red flags.

Website URL: {url}
Website Content: {text}

Please provide a comprehensive analysis covering:
1. Primary purpose of the website
2. Business model or service offered
3. Legitimacy indicators (professional design, clear contact info, etc.)
4. Red flags or suspicious elements
5. Overall assessment of trustworthiness

Provide your response in a structured format."""


def _gemini_prompt(url: str, text: str) -> str:
    return build_prompt(url, text) + """

Respond with ONLY valid JSON (no markdown, no code blocks):

{
  "purpose": "<the full written assessment>",
  "category": "<one word, e.g. ecommerce, news, blog, business>",
  "red_flags": ["<suspicious elements>"],
  "legitimacy_indicators": ["<trust indicators>"],
  "confidence": "<high|medium|low>"
}"""


def _as_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        value = [value]
    out: list[str] = []
    for item in value:
        if item is None:
            continue
        s = str(item).strip()
        if s:
            out.append(s)
    return out


def _strip_fences(text: str) -> str:
    # The SDK may still return fenced JSON sometimes.
    text = text.strip()
    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    return text.strip()


def normalize_llm_output(raw: Any) -> PurposeAnalysis:
    """Clamp a model's JSON to PurposeAnalysis. An answer without a purpose is rejected."""
    if not isinstance(raw, dict):
        raise ProviderSemanticFailure("model output is not a JSON object")

    purpose = str(raw.get("purpose") or "").strip()
    if not purpose:
        raise ProviderSemanticFailure("model output has no purpose")

    confidence = str(raw.get("confidence") or "high").strip().lower()
    if confidence in ("med", "mid"):
        confidence = "medium"
    if confidence not in _ALLOWED_CONFIDENCE:
        confidence = "high"

    category = str(raw.get("category") or "").strip().lower() or None

    return PurposeAnalysis(
        purpose=purpose,
        analysis_method="llm",
        category=category,
        red_flags=_as_str_list(raw.get("red_flags")),
        legitimacy_indicators=_as_str_list(raw.get("legitimacy_indicators")),
        confidence=confidence,
    )


def _top_category(lowered: str) -> tuple[str, int]:
    scores = {name: sum(lowered.count(word) for word in words) for name, words in CATEGORY_KEYWORDS.items()}
    best = max(scores, key=lambda name: scores[name])
    return best, scores[best]


def rule_based_analysis(text: str) -> PurposeAnalysis:
    category, hits = _top_category(text.lower())
    red_flags = [flag for pattern, flag in RED_FLAG_PATTERNS if pattern.search(text)]
    indicators = [label for pattern, label in LEGITIMACY_PATTERNS if pattern.search(text)]

    lines = ["Website Analysis:", ""]
    if hits > 0:
        lines.append(f"Primary Category: {category.capitalize()}")
        lines.append(f"This appears to be a {category} website based on content analysis.")
    else:
        lines.append("Unable to determine primary category from content analysis.")
    lines.append("")

    if indicators:
        lines.append("Legitimacy Indicators:")
        lines.extend(f"• {i}" for i in indicators)
        lines.append("")
    if red_flags:
        lines.append("Red Flags Detected:")
        lines.extend(f"• {f}" for f in red_flags)
        lines.append("")
    lines.append("Note: This is a basic analysis. For more detailed insights, configure an LLM API key.")

    return PurposeAnalysis(
        purpose="\n".join(lines),
        analysis_method="rule-based",
        category=category if hits > 0 else None,
        red_flags=red_flags,
        legitimacy_indicators=indicators,
        confidence="medium",
    )


class ContentPurposeProbe:
    def __init__(self, client: httpx.AsyncClient, settings: Settings):
        self._client = client
        self._settings = settings
        timeout = settings.llm_timeout_s
        self.chain: VerificationChain[tuple[str, str], PurposeAnalysis] = VerificationChain(
            name="purpose",
            providers=[
                Provider("gemini", self._gemini, timeout=timeout, confidence="high", requires=("gemini_api_key",)),
                Provider("openrouter", self._openrouter, timeout=timeout, confidence="high", requires=("openrouter_api_key",)),
            ],
            settings=settings,
            fallback=Provider("rule-based", self._rule_based, timeout=5.0, confidence="medium"),
        )

    async def run(self, url: str, markup: str) -> ProbeResult[PurposeAnalysis]:
        return await self.chain.run((url, page_text(markup)))

    async def _rule_based(self, page: tuple[str, str]) -> PurposeAnalysis:
        return rule_based_analysis(page[1])

    async def _gemini(self, page: tuple[str, str]) -> PurposeAnalysis:
        url, text = page
        config = types.GenerateContentConfig(
            system_instruction=SYSTEM_PROMPT,
            response_mime_type="application/json",
            temperature=0.3,
            max_output_tokens=2048,
        )
        async with genai.Client(api_key=self._settings.gemini_api_key).aio as aclient:
            resp = await aclient.models.generate_content(
                model=self._settings.gemini_model,
                contents=_gemini_prompt(url, text),
                config=config,
            )
        body = _strip_fences(getattr(resp, "text", None) or "")
        if not body:
            raise ProviderSemanticFailure("gemini returned an empty response")
        try:
            raw = json.loads(body)
        except json.JSONDecodeError as e:
            raise ProviderSemanticFailure(f"gemini returned invalid JSON: {e}") from e
        return normalize_llm_output(raw)

    async def _openrouter(self, page: tuple[str, str]) -> PurposeAnalysis:
        url, text = page
        res = await self._client.post(
            OPENROUTER_URL,
            json={
                "model": self._settings.openrouter_model,
                "messages": [
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_prompt(url, text)},
                ],
                "max_tokens": 1000,
                "temperature": 0.3,
            },
            headers={
                "authorization": f"Bearer {self._settings.openrouter_api_key}",
                "x-title": "Website Legitimacy Agent",
            },
            timeout=self._settings.llm_timeout_s,
        )
        res.raise_for_status()
        choices = res.json().get("choices") or []
        content = ((choices[0] if choices else {}).get("message") or {}).get("content")
        if not content or not str(content).strip():
            raise ProviderSemanticFailure("openrouter returned no content")
        return PurposeAnalysis(purpose=str(content).strip(), analysis_method="llm", confidence="high")
