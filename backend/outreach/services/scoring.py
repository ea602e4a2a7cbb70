# backend/outreach/services/scoring.py
"""
Prospect scoring strategies.

DeterministicScorer - title keyword heuristics, cannot fail
LLMProspectScorer   - asks Claude for one score per candidate, falls back
                      to DeterministicScorer on any call/parse/length error
"""

import re
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Any

from outreach.config import settings
from outreach.services.llm_client import LLMClient

logger = logging.getLogger(__name__)


VP_PATTERN = re.compile(r"\bvp\b")
CRO_PATTERN = re.compile(r"\bcro\b")
FOUNDER_PATTERN = re.compile(r"founder|\bceo\b")
GTM_KEYWORDS = ("sales", "revenue", "marketing", "growth")


def clamp_score(value: float) -> float:
    return max(0.0, min(float(value), 1.0))


class ScoringContext:
    """Company and job context handed to a scorer."""

    def __init__(
        self,
        company_name: str,
        employee_count: int,
        job_title: str,
        job_location: Optional[str] = None,
        job_description: Optional[str] = None
    ):
        self.company_name = company_name
        self.employee_count = employee_count
        self.job_title = job_title
        self.job_location = job_location
        self.job_description = job_description


class ProspectScorer(ABC):
    """Returns one score in [0, 1] per candidate, same order as the input."""

    @abstractmethod
    async def score(self, context: ScoringContext, candidates: List[Dict[str, Any]]) -> List[float]:
        pass


class DeterministicScorer(ProspectScorer):
    """Keyword heuristic over the candidate's title."""

    def score_one(self, candidate: Dict[str, Any], employee_count: int) -> float:
        title = (candidate.get("title") or "").lower()
        score = 0.5

        if "chief" in title or CRO_PATTERN.search(title):
            score += 0.3
        if VP_PATTERN.search(title) or "vice president" in title:
            score += 0.25
        if "head" in title:
            score += 0.2
        if "director" in title:
            score += 0.15
        if employee_count < settings.SMALL_COMPANY_THRESHOLD and FOUNDER_PATTERN.search(title):
            score += 0.3
        if any(keyword in title for keyword in GTM_KEYWORDS):
            score += 0.1

        return min(score, 1.0)

    async def score(self, context: ScoringContext, candidates: List[Dict[str, Any]]) -> List[float]:
        return [self.score_one(c, context.employee_count) for c in candidates]


class LLMProspectScorer(ProspectScorer):
    """Claude-backed scorer with deterministic fallback."""

    def __init__(self, client: Optional[LLMClient] = None, fallback: Optional[DeterministicScorer] = None):
        self.client = client or LLMClient(model=settings.SCORER_MODEL, max_tokens=1024)
        self.fallback = fallback or DeterministicScorer()

    def build_prompt(self, context: ScoringContext, candidates: List[Dict[str, Any]]) -> str:
        lines = "\n".join(
            f"{i + 1}. {c.get('name')} - {c.get('title') or 'Unknown title'} (Priority: {c.get('priority') or 'unknown'})"
            for i, c in enumerate(candidates)
        )
        description = (context.job_description or "")[:500] or "Not available"

        return f"""You are helping score prospects for a B2B outreach campaign for GTM engineering services.

Company: {context.company_name}
Company Size: {context.employee_count} employees
Job Title: {context.job_title}
Job Location: {context.job_location or 'Not specified'}
Job Description: {description}

Prospects to score:
{lines}

Score each prospect from 0.0 to 1.0 based on:
1. Job relevance to GTM/Sales/Marketing decision-making
2. Seniority level appropriate for company size
3. Likelihood to be interested in GTM engineering services

Return ONLY a JSON array with scores, one per prospect in the same order:
[0.85, 0.72, 0.91, ...]"""

    async def score(self, context: ScoringContext, candidates: List[Dict[str, Any]]) -> List[float]:
        if not candidates:
            return []

        if not self.client.is_available():
            return await self.fallback.score(context, candidates)

        try:
            response = await self.client.complete(self.build_prompt(context, candidates))
            scores = LLMClient.parse_json(response, expect="array")

            if len(scores) != len(candidates):
                raise ValueError(f"Expected {len(candidates)} scores, got {len(scores)}")

            return [clamp_score(s) for s in scores]

        except Exception as e:
            logger.warning(f"LLM scoring failed for {context.company_name}, using heuristic scores: {e}")
            return await self.fallback.score(context, candidates)


def create_prospect_scorer() -> ProspectScorer:
    """LLM scorer when an Anthropic key is configured, heuristic otherwise."""
    if settings.ANTHROPIC_API_KEY:
        return LLMProspectScorer()
    return DeterministicScorer()
