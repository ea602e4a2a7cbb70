# backend/outreach/services/directory_service.py
"""
SignalHire Service - people directory integration
1. People Search - find candidates at a company by role titles (PROSPECTING)
2. Contact Lookup - email/phone for one person (CONTACT ENRICHMENT)
"""

import asyncio
import logging
from typing import Dict, List, Optional, Any

import httpx

from outreach.config import settings
from outreach.exceptions import DirectoryServiceError
from outreach.services.normalization import normalization_service

logger = logging.getLogger(__name__)


class SignalHireService:
    """SignalHire API client; every call raises DirectoryServiceError on failure."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = "https://www.signalhire.com/api/v1",
        timeout: float = 30.0,
        poll_attempts: int = 10,
        poll_interval: float = 2.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_key = api_key if api_key is not None else settings.SIGNALHIRE_API_KEY
        self.base_url = base_url
        self.timeout = timeout
        self.poll_attempts = poll_attempts
        self.poll_interval = poll_interval
        self.transport = transport

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            headers={
                "apikey": self.api_key or "",
                "Accept": "application/json",
            },
        )

    # ========================================================================
    # PEOPLE SEARCH
    # ========================================================================

    async def search_people(
        self,
        company_name: str,
        role_titles: List[str],
        country: Optional[str] = None,
        limit: int = 20
    ) -> List[Dict[str, Any]]:
        """
        Search people currently at company_name holding one of role_titles.

        Returns:
        [
            {"name": "Jane Doe", "title": "VP Sales",
             "location": "Austin, United States", "linkedin_url": "..."}
        ]
        """
        if not self.is_configured():
            raise DirectoryServiceError("SIGNALHIRE_API_KEY not configured")

        payload = {
            "company": company_name,
            "titles": role_titles,
            "limit": min(limit, settings.MAX_PROSPECTS_PER_COMPANY),
        }
        if country:
            payload["country"] = country

        logger.info(f"SignalHire search: {company_name} ({len(role_titles)} titles, limit {payload['limit']})")

        try:
            async with self._client() as client:
                response = await client.post("/search/people", json=payload)
                response.raise_for_status()
                data = response.json()

            if not isinstance(data, dict):
                raise ValueError(f"expected an object, got {type(data).__name__}")

            results = []
            for item in data.get("items") or []:
                if not isinstance(item, dict):
                    raise ValueError(f"expected result objects, got {type(item).__name__}")
                name = item.get("fullName") or item.get("name")
                if not name:
                    continue
                results.append({
                    "name": name,
                    "title": item.get("currentTitle"),
                    "location": item.get("location"),
                    "linkedin_url": item.get("linkedin"),
                })
        except httpx.HTTPError as e:
            raise DirectoryServiceError(f"People search failed for {company_name}: {e}") from e
        except (ValueError, TypeError) as e:
            raise DirectoryServiceError(f"Malformed people search response for {company_name}: {e}") from e

        return results

    # ========================================================================
    # CONTACT LOOKUP
    # ========================================================================

    async def lookup_contact(self, prospect: Dict[str, Any], domain: str) -> Dict[str, Optional[str]]:
        """
        Find email/phone for one prospect.

        Tries the LinkedIn profile lookup first, then falls back to a
        name + employer search.
        Returns {"email": ..., "phone": ...} (values may be None).
        """
        if not self.is_configured():
            raise DirectoryServiceError("SIGNALHIRE_API_KEY not configured")

        try:
            async with self._client() as client:
                result = None
                if prospect.get("linkedin_url"):
                    result = await self._lookup_by_url(client, prospect["linkedin_url"])

                if not result and prospect.get("name"):
                    result = await self._search_by_name(client, prospect, domain)
        except httpx.HTTPError as e:
            raise DirectoryServiceError(f"Contact lookup failed for {prospect.get('name')}: {e}") from e
        except ValueError as e:
            raise DirectoryServiceError(f"Malformed contact lookup response for {prospect.get('name')}: {e}") from e

        return result or {"email": None, "phone": None}

    async def _lookup_by_url(self, client: httpx.AsyncClient, linkedin_url: str) -> Optional[Dict[str, Optional[str]]]:
        response = await client.get("/candidate/search", params={"url": linkedin_url})

        if response.status_code == 200:
            return self._parse_candidate(response.json())

        if response.status_code == 201:
            # Accepted; results are produced asynchronously
            request_id = response.headers.get("X-Request-Id")
            if request_id:
                return await self._poll_request(client, request_id)

        return None

    async def _poll_request(self, client: httpx.AsyncClient, request_id: str) -> Optional[Dict[str, Optional[str]]]:
        for _ in range(self.poll_attempts):
            await asyncio.sleep(self.poll_interval)

            response = await client.get(f"/candidate/request/{request_id}")
            if response.status_code == 200:
                return self._parse_candidate(response.json())
            if response.status_code != 204:
                logger.warning(f"SignalHire request {request_id} returned {response.status_code}")
                break

        return None

    async def _search_by_name(
        self,
        client: httpx.AsyncClient,
        prospect: Dict[str, Any],
        domain: str
    ) -> Optional[Dict[str, Optional[str]]]:
        response = await client.post(
            "/search",
            json={
                "fullName": prospect["name"],
                "currentEmployer": domain,
                "currentTitle": prospect.get("title"),
                "limit": 1,
            },
        )
        if not response.is_success:
            return None

        items = response.json().get("items") or []
        if not items:
            return None
        return self._parse_candidate(items[0])

    @staticmethod
    def _parse_candidate(data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Optional[str]]]:
        if not data:
            return None

        emails = data.get("emails") or []
        phones = data.get("phones") or []

        email = emails[0].get("email") if emails else None
        phone = phones[0].get("phone") if phones else None

        return {
            "email": normalization_service.normalize_email(email),
            "phone": normalization_service.normalize_phone(phone),
        }


def create_directory_service() -> SignalHireService:
    """Factory function"""
    return SignalHireService()
