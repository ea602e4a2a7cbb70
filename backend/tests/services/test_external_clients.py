# tests/services/test_external_clients.py
"""
Tests for the outbound clients: SignalHire directory, website enricher, Claude wrapper

HTTP is served by httpx.MockTransport; Claude is an AsyncMock.

Run with: pytest tests/services/test_external_clients.py -v
"""

import json
from types import SimpleNamespace

import httpx
import pytest
from unittest.mock import Mock, AsyncMock

from outreach.exceptions import DirectoryServiceError, EnrichmentError
from outreach.services.company_enricher import (
    CompanyEnricher,
    extract_text_from_html,
    is_transient_error,
)
from outreach.services.directory_service import SignalHireService
from outreach.services.llm_client import LLMClient, is_retryable


ABOUT_HTML = """
<html>
  <head><title>Acme</title><style>body { color: red; }</style><script>var tracking = 1;</script></head>
  <body>
    <nav>Home | Pricing | Login</nav>
    <h1>Acme Rockets</h1>
    <p>Acme builds   reusable rockets for small satellite operators.
       Our founders Jane Doe and John Roe started the company in 2019 to make launch
       affordable for everyone.</p>
    <footer>Copyright Acme</footer>
  </body>
</html>
"""


def signalhire(handler, **kwargs):
    return SignalHireService(api_key="sh-key", poll_interval=0, transport=httpx.MockTransport(handler), **kwargs)


def llm_mock(**complete_kwargs):
    llm = Mock()
    llm.is_available.return_value = True
    llm.complete = AsyncMock(**complete_kwargs)
    return llm


# ============================================================================
# TEST: SignalHire
# ============================================================================

class TestSignalHireSearch:
    """People search"""

    @pytest.mark.asyncio
    async def test_maps_results(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["apikey"] = request.headers.get("apikey")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"items": [
                {"fullName": "Jane Doe", "currentTitle": "VP Sales",
                 "location": "Berlin, Germany", "linkedin": "https://linkedin.com/in/janedoe"},
                {"currentTitle": "Nameless"},
            ]})

        results = await signalhire(handler).search_people("Acme", ["VP Sales", "CRO"], country="Germany", limit=5)

        assert results == [{
            "name": "Jane Doe",
            "title": "VP Sales",
            "location": "Berlin, Germany",
            "linkedin_url": "https://linkedin.com/in/janedoe",
        }]
        assert seen["path"] == "/api/v1/search/people"
        assert seen["apikey"] == "sh-key"
        assert seen["body"] == {"company": "Acme", "titles": ["VP Sales", "CRO"], "limit": 5, "country": "Germany"}

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        service = signalhire(lambda request: httpx.Response(503, json={"error": "down"}))

        with pytest.raises(DirectoryServiceError):
            await service.search_people("Acme", ["VP Sales"])

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        [{"fullName": "Jane Doe"}],
        {"items": ["Jane Doe"]},
        {"items": {"fullName": "Jane Doe"}},
    ])
    async def test_unexpected_shape_raises(self, body):
        service = signalhire(lambda request: httpx.Response(200, json=body))

        with pytest.raises(DirectoryServiceError, match="Malformed"):
            await service.search_people("Acme", ["VP Sales"])

    @pytest.mark.asyncio
    async def test_not_configured(self):
        service = SignalHireService(api_key="")

        assert service.is_configured() is False
        with pytest.raises(DirectoryServiceError):
            await service.search_people("Acme", ["VP Sales"])


class TestSignalHireLookup:
    """Contact lookup"""

    @pytest.mark.asyncio
    async def test_linkedin_lookup(self):
        def handler(request):
            assert request.url.path == "/api/v1/candidate/search"
            assert request.url.params["url"] == "https://linkedin.com/in/janedoe"
            return httpx.Response(200, json={
                "emails": [{"email": " Jane.Doe@Acme.com "}],
                "phones": [{"phone": "+1 650 253 0000"}],
            })

        contact = await signalhire(handler).lookup_contact(
            {"name": "Jane Doe", "linkedin_url": "https://linkedin.com/in/janedoe"}, "acme.com"
        )

        assert contact == {"email": "jane.doe@acme.com", "phone": "+16502530000"}

    @pytest.mark.asyncio
    async def test_async_request_is_polled(self):
        polls = []

        def handler(request):
            if request.url.path == "/api/v1/candidate/search":
                return httpx.Response(201, headers={"X-Request-Id": "req-42"})
            polls.append(request.url.path)
            if len(polls) == 1:
                return httpx.Response(204)
            return httpx.Response(200, json={"emails": [{"email": "jane@acme.com"}]})

        contact = await signalhire(handler).lookup_contact(
            {"name": "Jane Doe", "linkedin_url": "https://linkedin.com/in/janedoe"}, "acme.com"
        )

        assert contact["email"] == "jane@acme.com"
        assert polls == ["/api/v1/candidate/request/req-42"] * 2

    @pytest.mark.asyncio
    async def test_falls_back_to_name_search(self):
        def handler(request):
            if request.url.path == "/api/v1/candidate/search":
                return httpx.Response(404)
            body = json.loads(request.content)
            assert request.url.path == "/api/v1/search"
            assert body["fullName"] == "Jane Doe"
            assert body["currentEmployer"] == "acme.com"
            return httpx.Response(200, json={"items": [{"emails": [{"email": "jane@acme.com"}]}]})

        contact = await signalhire(handler).lookup_contact(
            {"name": "Jane Doe", "title": "VP Sales", "linkedin_url": "https://linkedin.com/in/janedoe"}, "acme.com"
        )

        assert contact == {"email": "jane@acme.com", "phone": None}

    @pytest.mark.asyncio
    async def test_no_match(self):
        service = signalhire(lambda request: httpx.Response(200, json={"items": []}))

        assert await service.lookup_contact({"name": "Nobody"}, "acme.com") == {"email": None, "phone": None}

    @pytest.mark.asyncio
    async def test_network_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(DirectoryServiceError):
            await signalhire(handler).lookup_contact({"name": "Jane Doe"}, "acme.com")


# ============================================================================
# TEST: Company Enricher
# ============================================================================

class TestHtmlExtraction:
    """BeautifulSoup text extraction"""

    def test_strips_chrome_and_scripts(self):
        text = extract_text_from_html(ABOUT_HTML)

        assert text.startswith("Acme Acme Rockets Acme builds reusable rockets")
        assert "tracking" not in text
        assert "color: red" not in text
        assert "Pricing" not in text
        assert "Copyright" not in text


class TestCompanyEnricher:
    """Fetch + extract with retries"""

    @staticmethod
    def site(request):
        if request.url.host == "acme.com" and request.url.path == "/":
            return httpx.Response(200, html=ABOUT_HTML)
        if request.url.path == "/team":
            raise httpx.ConnectError("connection reset", request=request)
        return httpx.Response(404)

    def enricher(self, llm, handler=None, **kwargs):
        return CompanyEnricher(
            llm_client=llm,
            backoff_base=0,
            transport=httpx.MockTransport(handler or self.site),
            **kwargs
        )

    @pytest.mark.asyncio
    async def test_fetch_skips_missing_pages(self):
        pages = await self.enricher(llm_mock()).fetch_website_content("acme.com")

        assert list(pages) == ["https://acme.com"]
        assert "reusable rockets" in pages["https://acme.com"]

    @pytest.mark.asyncio
    async def test_enrich(self):
        llm = llm_mock(return_value=(
            '```json\n{"company_summary": "Rockets for smallsats", "employee_count": 42, '
            '"founders": [{"name": "Jane Doe", "title": "CEO"}]}\n```'
        ))

        result = await self.enricher(llm).enrich("acme.com", "Acme")

        assert result["status"] == "completed"
        assert result["partial"] is False
        assert result["employee_count"] == 42
        assert result["profile"]["founders"][0]["name"] == "Jane Doe"
        assert result["profile"]["pages_scraped"] == ["https://acme.com"]
        prompt = llm.complete.await_args.args[0]
        assert "=== https://acme.com ===" in prompt

    @pytest.mark.asyncio
    async def test_non_numeric_employee_count_ignored(self):
        llm = llm_mock(return_value='{"company_summary": "x", "employee_count": "about 50"}')

        assert (await self.enricher(llm).enrich("acme.com", "Acme"))["employee_count"] is None

    @pytest.mark.asyncio
    async def test_unreachable_site_gives_partial_profile(self):
        llm = llm_mock()

        result = await self.enricher(llm, handler=lambda request: httpx.Response(404)).enrich("acme.com", "Acme")

        assert result["partial"] is True
        assert result["profile"]["fetch_failed"] is True
        assert result["employee_count"] is None
        llm.complete.assert_not_called()

    @pytest.mark.asyncio
    async def test_transient_failure_retried(self):
        llm = llm_mock(side_effect=[httpx.ReadTimeout("timed out"), '{"company_summary": "ok"}'])

        result = await self.enricher(llm).enrich("acme.com", "Acme")

        assert result["profile"]["company_summary"] == "ok"
        assert llm.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted(self):
        llm = llm_mock(side_effect=httpx.ReadTimeout("timed out"))

        with pytest.raises(EnrichmentError):
            await self.enricher(llm, max_attempts=3).enrich("acme.com", "Acme")

        assert llm.complete.await_count == 3

    @pytest.mark.asyncio
    async def test_unparseable_reply_not_retried(self):
        llm = llm_mock(return_value="I could not find anything useful.")

        with pytest.raises(EnrichmentError, match="parse"):
            await self.enricher(llm).enrich("acme.com", "Acme")

        assert llm.complete.await_count == 1

    @pytest.mark.parametrize("error,expected", [
        (httpx.ConnectTimeout("connect timeout"), True),
        (RuntimeError("upstream returned 503"), True),
        (RuntimeError("Rate limit exceeded"), True),
        (ValueError("invalid literal"), False),
        (EnrichmentError("Failed to parse extraction response"), False),
    ])
    def test_transient_classification(self, error, expected):
        assert is_transient_error(error) is expected


# ============================================================================
# TEST: Claude client
# ============================================================================

class TestLLMClient:
    """Reply parsing and availability"""

    def test_unavailable_without_key(self):
        assert LLMClient(api_key="").is_available() is False

    @pytest.mark.asyncio
    async def test_complete_joins_text_blocks(self):
        client = LLMClient(api_key="test-key", model="claude-test")
        client._client = Mock()
        client._client.messages.create = AsyncMock(return_value=SimpleNamespace(content=[
            SimpleNamespace(type="text", text="[0.5, "),
            SimpleNamespace(type="tool_use"),
            SimpleNamespace(type="text", text="0.7]"),
        ]))

        assert await client.complete("score these") == "[0.5, 0.7]"
        kwargs = client._client.messages.create.await_args.kwargs
        assert kwargs["model"] == "claude-test"
        assert kwargs["messages"] == [{"role": "user", "content": "score these"}]

    def test_parse_fenced_object(self):
        assert LLMClient.parse_json('```json\n{"a": 1}\n```') == {"a": 1}

    def test_parse_object_in_prose(self):
        assert LLMClient.parse_json('Here you go: {"a": [1, 2]} hope it helps') == {"a": [1, 2]}

    def test_parse_array(self):
        assert LLMClient.parse_json("Scores: [0.1, 0.9]", expect="array") == [0.1, 0.9]

    @pytest.mark.parametrize("reply", ["", "no json here", "{broken"])
    def test_parse_failures(self, reply):
        with pytest.raises(ValueError):
            LLMClient.parse_json(reply)

    def test_retryable_status_codes(self):
        assert is_retryable(SimpleNamespace(status_code=529)) is True
        assert is_retryable(SimpleNamespace(status_code=400)) is False
