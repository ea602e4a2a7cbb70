# backend/outreach/services/prospect_ranking.py
"""
Prospect Ranking Engine

Pipeline per company:
1. Aggregate candidates from the enriched profile
   (target contacts, founders at small companies, leadership team)
2. Top up from the people directory when fewer than 20
3. Deduplicate by lowercase name + company domain
4. Drop candidates located outside the job's country
5. Score (LLM or heuristic)
6. Order by score x priority weight, keep the top 20
"""

import re
import logging
from typing import Dict, List, Optional, Any

from outreach.config import settings
from outreach.models import PRIORITIES
from outreach.services.normalization import normalization_service
from outreach.services.scoring import ProspectScorer, DeterministicScorer, ScoringContext

logger = logging.getLogger(__name__)


PRIORITY_WEIGHT = {"high": 3, "medium": 2, "low": 1}

VP_PATTERN = re.compile(r"\bvp\b")
CRO_PATTERN = re.compile(r"\bcro\b")
CTO_PATTERN = re.compile(r"\bcto\b")
CEO_PATTERN = re.compile(r"\bceo\b")
OPS_PATTERN = re.compile(r"\bops\b")

GTM_JOB_KEYWORDS = ("gtm", "go-to-market", "sales", "marketing", "revenue")
TECH_JOB_KEYWORDS = ("engineer", "developer", "technical")


# ============================================================================
# TITLE INFERENCE
# ============================================================================

def infer_department(title: Optional[str]) -> str:
    """Department bucket from title keywords."""
    t = (title or "").lower()
    if not t:
        return "Other"

    if "sales" in t or "revenue" in t:
        return "Sales"
    if "marketing" in t or "growth" in t or "demand" in t:
        return "Marketing"
    if "engineer" in t or "tech" in t or CTO_PATTERN.search(t):
        return "Engineering"
    if "product" in t:
        return "Product"
    if "founder" in t or CEO_PATTERN.search(t) or "chief" in t:
        return "Executive"
    if "operations" in t or OPS_PATTERN.search(t):
        return "Operations"
    return "Other"


def infer_priority(title: Optional[str], employee_count: int) -> str:
    """
    Outreach priority from seniority.

    Founders/CEOs at small companies, C-level, CRO and VPs are high;
    heads and directors medium; everyone else low.
    """
    t = (title or "").lower()
    if not t:
        return "low"

    if employee_count < settings.SMALL_COMPANY_THRESHOLD and ("founder" in t or CEO_PATTERN.search(t)):
        return "high"
    if "chief" in t or CRO_PATTERN.search(t) or VP_PATTERN.search(t) or "vice president" in t:
        return "high"
    if "head" in t or "director" in t:
        return "medium"
    return "low"


def determine_target_roles(job_title: Optional[str], employee_count: int) -> List[str]:
    """Role titles to ask the directory for, by job category and company size."""
    job = (job_title or "").lower()
    small = employee_count < settings.SMALL_COMPANY_THRESHOLD
    roles: List[str] = []

    if any(keyword in job for keyword in GTM_JOB_KEYWORDS):
        if small:
            roles += ["Founder", "CEO", "Co-Founder"]
        else:
            roles += [
                "VP Sales", "VP Marketing", "VP Revenue", "VP Growth",
                "Head of Sales", "Head of Marketing", "Head of Revenue",
                "Chief Revenue Officer", "CRO",
            ]
        if employee_count >= 500:
            roles += ["Director of Sales", "Director of Marketing"]

    if any(keyword in job for keyword in TECH_JOB_KEYWORDS):
        if small:
            roles += ["CTO", "Founder"]
        else:
            roles += ["VP Engineering", "Head of Engineering", "CTO"]

    if not roles:
        roles = ["Founder", "CEO"] if small else ["VP", "Head", "Director", "Chief"]

    # A job matching both categories can repeat a title
    return list(dict.fromkeys(roles))


# ============================================================================
# PIPELINE STEPS
# ============================================================================

def aggregate_candidates(profile: Optional[Dict[str, Any]], employee_count: int) -> List[Dict[str, Any]]:
    """Union of target contacts, founders (small companies only) and leadership."""
    profile = profile or {}
    candidates: List[Dict[str, Any]] = []

    for contact in profile.get("target_contacts") or []:
        if not isinstance(contact, dict):
            continue
        candidate = {"source": "website", **contact}
        if not candidate.get("department"):
            candidate["department"] = infer_department(candidate.get("title"))
        priority = str(candidate.get("priority") or "").strip().lower()
        if priority in PRIORITIES:
            candidate["priority"] = priority
        else:
            candidate["priority"] = infer_priority(candidate.get("title"), employee_count)
        candidates.append(candidate)

    if employee_count < settings.SMALL_COMPANY_THRESHOLD:
        for founder in profile.get("founders") or []:
            if not isinstance(founder, dict):
                continue
            candidates.append({
                "source": "website",
                "name": founder.get("name"),
                "title": founder.get("title") or "Founder",
                "department": "Executive",
                "linkedin_url": founder.get("linkedin_url"),
                "priority": "high",
                "relevance": "Founder - key decision maker for small company",
            })

    for leader in profile.get("leadership_team") or []:
        if not isinstance(leader, dict):
            continue
        candidates.append({
            "source": "website",
            **leader,
            "department": infer_department(leader.get("title")),
            "priority": infer_priority(leader.get("title"), employee_count),
        })

    return candidates


def dedupe_candidates(candidates: List[Dict[str, Any]], domain: str) -> List[Dict[str, Any]]:
    """
    One candidate per lowercase name + company domain.

    A high-priority duplicate replaces a lower-priority one already seen;
    otherwise the first one wins. Candidates without a name are dropped.
    """
    unique: Dict[str, Dict[str, Any]] = {}

    for candidate in candidates:
        name = normalization_service.normalize_person_name(candidate.get("name"))
        if not name:
            continue

        key = f"{name}|{domain}"
        existing = unique.get(key)
        if existing is None:
            unique[key] = candidate
        elif candidate.get("priority") == "high" and existing.get("priority") != "high":
            unique[key] = candidate

    return list(unique.values())


def filter_by_location(candidates: List[Dict[str, Any]], country: Optional[str]) -> List[Dict[str, Any]]:
    """Keep candidates in the job's country; unknown locations are kept."""
    if not country:
        return candidates

    token = country.strip().lower()
    return [
        c for c in candidates
        if not c.get("location") or token in c["location"].lower()
    ]


def order_candidates(candidates: List[Dict[str, Any]], limit: int) -> List[Dict[str, Any]]:
    """Sort by ai_score x priority weight (stable), truncate to limit."""
    ranked = sorted(
        candidates,
        key=lambda c: (c.get("ai_score") or 0) * PRIORITY_WEIGHT.get(c.get("priority") or "low", 1),
        reverse=True,
    )
    return ranked[:limit]


# ============================================================================
# ENGINE
# ============================================================================

class ProspectRankingEngine:
    """Produces the ranked candidate list for one company and job."""

    def __init__(
        self,
        directory=None,
        scorer: Optional[ProspectScorer] = None,
        max_prospects: Optional[int] = None
    ):
        self.directory = directory
        self.scorer = scorer or DeterministicScorer()
        self.fallback_scorer = DeterministicScorer()
        self.max_prospects = max_prospects or settings.MAX_PROSPECTS_PER_COMPANY

    def _directory_configured(self) -> bool:
        if self.directory is None:
            return False
        is_configured = getattr(self.directory, "is_configured", None)
        return is_configured() if callable(is_configured) else True

    async def supplementary_search(
        self,
        company_name: str,
        job_title: Optional[str],
        country: Optional[str],
        employee_count: int,
        limit: int
    ) -> List[Dict[str, Any]]:
        roles = determine_target_roles(job_title, employee_count)

        try:
            results = await self.directory.search_people(company_name, roles, country=country, limit=limit)
        except Exception as e:
            logger.warning(f"Directory search failed for {company_name}: {e}")
            return []

        return [
            {
                "source": "signalhire",
                "name": r.get("name"),
                "title": r.get("title"),
                "department": infer_department(r.get("title")),
                "linkedin_url": r.get("linkedin_url"),
                "location": r.get("location"),
                "priority": infer_priority(r.get("title"), employee_count),
                "relevance": f"Found via directory search for {job_title} roles",
            }
            for r in results[:limit]
        ]

    async def score_candidates(self, context: ScoringContext, candidates: List[Dict[str, Any]]) -> List[float]:
        try:
            scores = await self.scorer.score(context, candidates)
            if len(scores) != len(candidates):
                raise ValueError(f"Scorer returned {len(scores)} scores for {len(candidates)} candidates")
            return [max(0.0, min(float(s), 1.0)) for s in scores]
        except Exception as e:
            logger.warning(f"Scoring failed for {context.company_name}, using heuristic scores: {e}")
            return await self.fallback_scorer.score(context, candidates)

    async def rank(
        self,
        company_name: str,
        domain: str,
        profile: Optional[Dict[str, Any]],
        employee_count: Optional[int],
        job: Dict[str, Any]
    ) -> List[Dict[str, Any]]:
        """Ranked, deduplicated candidates for one company (at most max_prospects)."""
        size = employee_count or settings.DEFAULT_EMPLOYEE_COUNT
        country = job.get("country")

        candidates = aggregate_candidates(profile, size)

        if len(candidates) < self.max_prospects and self._directory_configured():
            logger.info(f"Searching directory for additional prospects at {company_name}")
            candidates += await self.supplementary_search(
                company_name,
                job.get("job_title"),
                country,
                size,
                self.max_prospects - len(candidates),
            )

        candidates = dedupe_candidates(candidates, domain)
        candidates = filter_by_location(candidates, country)

        if not candidates:
            return []

        context = ScoringContext(
            company_name=company_name,
            employee_count=size,
            job_title=job.get("job_title") or "",
            job_location=job.get("location"),
            job_description=job.get("description"),
        )
        scores = await self.score_candidates(context, candidates)
        for candidate, score in zip(candidates, scores):
            candidate["ai_score"] = score

        return order_candidates(candidates, self.max_prospects)
