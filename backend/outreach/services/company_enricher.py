# backend/outreach/services/company_enricher.py
"""
Company Enricher - website scrape + Claude extraction

Flow:
1. Fetch a handful of well-known pages (/, /about, /team, /careers, ...)
2. Strip HTML to visible text with BeautifulSoup
3. Ask Claude for a structured company profile (founders, leadership,
   target contacts, size estimate)

Transient failures (timeouts, connection resets, 429/503) are retried with
exponential backoff inside enrich(); anything else raises EnrichmentError.
"""

import re
import logging
from datetime import datetime
from typing import Dict, Optional, Any

import httpx
from bs4 import BeautifulSoup
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

from outreach.config import settings
from outreach.exceptions import EnrichmentError
from outreach.services.llm_client import LLMClient, is_retryable as is_retryable_llm_error

logger = logging.getLogger(__name__)


PAGE_PATHS = ["", "/about", "/about-us", "/company", "/team", "/careers", "/jobs"]
WWW_PAGE_PATHS = ["", "/about"]

MAX_PAGE_CHARS = 30000
MIN_PAGE_CHARS = 100
MAX_PROMPT_CONTENT_CHARS = 50000

BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
}

RETRYABLE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (r"timeout", r"timed out", r"ECONNRESET", r"ETIMEDOUT", r"rate limit",
              r"\b503\b", r"\b429\b", r"temporarily unavailable", r"ENOTFOUND", r"fetch failed")
]


def is_transient_error(exc: BaseException) -> bool:
    """Timeouts, connection errors, rate limits and 5xx are worth another attempt."""
    if isinstance(exc, (httpx.TimeoutException, httpx.NetworkError)):
        return True
    if is_retryable_llm_error(exc):
        return True
    message = str(exc)
    return any(pattern.search(message) for pattern in RETRYABLE_PATTERNS)


def extract_text_from_html(html: str) -> str:
    """Visible page text without scripts, styles and navigation chrome."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "svg", "nav", "footer", "header", "noscript"]):
        tag.decompose()
    text = soup.get_text(separator=" ")
    return re.sub(r"\s+", " ", text).strip()


class CompanyEnricher:
    """Turns a company domain into a structured profile."""

    def __init__(
        self,
        llm_client: Optional[LLMClient] = None,
        max_attempts: int = 3,
        backoff_base: float = 5.0,
        backoff_max: float = 60.0,
        fetch_timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.llm = llm_client or LLMClient(model=settings.ENRICHER_MODEL, max_tokens=4096)
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.fetch_timeout = fetch_timeout
        self.transport = transport

    async def enrich(self, domain: str, name: str) -> Dict[str, Any]:
        """
        Enrich one company.

        Returns:
        {
            "status": "completed",
            "profile": {...},
            "employee_count": 120 | None,
            "partial": False
        }
        Raises EnrichmentError after exhausting retries or on a permanent error.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_base, max=self.backoff_max),
            retry=retry_if_exception(is_transient_error),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    return await self._enrich_once(domain, name)
        except EnrichmentError:
            raise
        except Exception as e:
            raise EnrichmentError(f"Enrichment of {domain} failed: {e}") from e

    async def _enrich_once(self, domain: str, name: str) -> Dict[str, Any]:
        logger.info(f"🔍 Enriching {name} ({domain})")

        pages = await self.fetch_website_content(domain)

        if not pages:
            logger.info(f"No website content fetched for {domain}, saving minimal profile")
            profile = {
                "company_summary": (
                    f"Unable to fetch website content for {name}. "
                    f"Company information is based on job listing data only."
                ),
                "pages_scraped": [],
                "scrape_timestamp": datetime.utcnow().isoformat(),
                "fetch_failed": True,
            }
            return {"status": "completed", "profile": profile, "employee_count": None, "partial": True}

        if not self.llm.is_available():
            raise EnrichmentError("ANTHROPIC_API_KEY not configured")

        response = await self.llm.complete(self.build_extraction_prompt(domain, name, pages))
        try:
            profile = LLMClient.parse_json(response, expect="object")
        except ValueError as e:
            raise EnrichmentError(f"Failed to parse extraction response: {e}") from e

        profile["pages_scraped"] = list(pages.keys())
        profile["scrape_timestamp"] = datetime.utcnow().isoformat()

        employee_count = profile.get("employee_count")
        if not isinstance(employee_count, int) or employee_count <= 0:
            employee_count = None

        logger.info(f"✅ Enriched {domain} from {len(pages)} pages")
        return {"status": "completed", "profile": profile, "employee_count": employee_count, "partial": False}

    async def fetch_website_content(self, domain: str) -> Dict[str, str]:
        """Fetch the known pages; unreachable pages are skipped silently."""
        urls = [f"https://{domain}{path}" for path in PAGE_PATHS]
        urls += [f"https://www.{domain}{path}" for path in WWW_PAGE_PATHS]

        pages = {}
        async with httpx.AsyncClient(
            timeout=self.fetch_timeout,
            headers=BROWSER_HEADERS,
            follow_redirects=True,
            transport=self.transport,
        ) as client:
            for url in urls:
                try:
                    response = await client.get(url)
                except httpx.HTTPError as e:
                    logger.debug(f"Failed to fetch {url}: {e}")
                    continue

                if not response.is_success:
                    continue

                text = extract_text_from_html(response.text)
                if len(text) > MIN_PAGE_CHARS:
                    pages[url] = text[:MAX_PAGE_CHARS]
                    logger.debug(f"Fetched {url}: {len(text)} chars")

        return pages

    def build_extraction_prompt(self, domain: str, name: str, pages: Dict[str, str]) -> str:
        content = "\n\n".join(f"=== {url} ===\n{text}" for url, text in pages.items())
        if len(content) > MAX_PROMPT_CONTENT_CHARS:
            content = content[:MAX_PROMPT_CONTENT_CHARS] + "\n\n[Content truncated...]"

        return f"""Analyze the following website content for the company "{name}" ({domain}) and extract structured information.

Website Content:
{content}

Return a JSON object with this structure. Use null for anything you cannot determine from the content:

{{
    "company_summary": "2-3 sentence summary of what the company does",
    "description": "Longer company description",
    "products": ["Main products or services"],
    "business_model": "B2B, B2C, SaaS, marketplace, etc.",
    "target_market": "Who they serve",
    "employee_count": "Integer estimate of headcount, or null",
    "founders": [{{"name": "Name", "title": "Title", "linkedin_url": null}}],
    "leadership_team": [{{"name": "Name", "title": "Title"}}],
    "target_contacts": [
        {{
            "name": "Full name",
            "title": "Job title",
            "department": "Sales, Marketing, Engineering, etc.",
            "linkedin_url": "LinkedIn profile URL if found",
            "relevance": "Why this person is a good contact for GTM/sales engineering services",
            "priority": "high/medium/low based on decision-making authority"
        }}
    ],
    "recommended_outreach_roles": ["Titles to target if no names are found"],
    "growth_signals": ["Funding, hiring, expansion"]
}}

Best contacts for GTM engineering services are VP/Head of Sales, Revenue or Growth, VP/Head of Marketing,
the CRO, and the CEO/Founder at smaller companies. Only include people actually named in the content.

Return ONLY the JSON object, no additional text or markdown formatting."""


def create_company_enricher() -> CompanyEnricher:
    """Factory function"""
    return CompanyEnricher()
