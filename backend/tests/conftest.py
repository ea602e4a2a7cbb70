# tests/conftest.py

import os

# Settings are read at import time; point them at throwaway values first
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENABLE_SCHEDULER", "false")
os.environ["SIGNALHIRE_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""

import pytest
from typing import Dict, List, Optional, Any
from unittest.mock import AsyncMock

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from outreach.database import Base
from outreach import models  # noqa: F401  (registers tables)
from outreach.exceptions import EnrichmentError, DirectoryServiceError
from outreach.services.campaign_store import CampaignStore
from outreach.services.dispatcher import TaskDispatcher
from outreach.services.notifications import Notifier
from outreach.services.prospect_ranking import ProspectRankingEngine
from outreach.services.quota_ledger import QuotaLedger
from outreach.services.retry_policy import RetryOnTouchPolicy
from outreach.services.scoring import DeterministicScorer
from outreach.services.task_tracker import TaskTracker
from outreach.services.workflow_manager import WorkflowManager


# ============================================================================
# FAKE COLLABORATORS
# ============================================================================

class FakeEnricher:
    """Returns canned profiles per domain; domains in `failures` raise."""

    def __init__(self, profiles: Optional[Dict[str, Dict[str, Any]]] = None, failures: Optional[Dict[str, str]] = None):
        self.profiles = profiles or {}
        self.failures = failures or {}
        self.calls: List[str] = []

    async def enrich(self, domain: str, name: str) -> Dict[str, Any]:
        self.calls.append(domain)
        if domain in self.failures:
            raise EnrichmentError(self.failures[domain])
        entry = self.profiles.get(domain, {})
        return {
            "status": "completed",
            "profile": entry.get("profile", {"company_summary": f"{name} summary"}),
            "employee_count": entry.get("employee_count"),
        }


class FakeDirectory:
    """In-memory people directory."""

    def __init__(
        self,
        people: Optional[Dict[str, List[Dict[str, Any]]]] = None,
        emails: Optional[Dict[str, Optional[str]]] = None,
        configured: bool = True,
        fail_lookup_for: Optional[set] = None
    ):
        self.people = people or {}
        self.emails = emails
        self.configured = configured
        self.fail_lookup_for = fail_lookup_for or set()
        self.search_calls: List[Dict[str, Any]] = []
        self.lookup_calls: List[str] = []

    def is_configured(self) -> bool:
        return self.configured

    async def search_people(self, company_name, role_titles, country=None, limit=20):
        self.search_calls.append({
            "company_name": company_name,
            "role_titles": role_titles,
            "country": country,
            "limit": limit,
        })
        return list(self.people.get(company_name, []))[:limit]

    async def lookup_contact(self, prospect, domain):
        self.lookup_calls.append(prospect["name"])
        if prospect["name"] in self.fail_lookup_for:
            raise DirectoryServiceError("lookup timed out")
        if self.emails is not None:
            return {"email": self.emails.get(prospect["name"]), "phone": None}
        local = prospect["name"].split()[0].lower()
        return {"email": f"{local}@{domain}", "phone": "+15555550100"}


# ============================================================================
# DATABASE FIXTURES
# ============================================================================

@pytest.fixture
def engine():
    """Fresh in-memory SQLite database per test"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
def store(session_factory):
    return CampaignStore(session_factory)


@pytest.fixture
def tasks(session_factory):
    return TaskTracker(session_factory)


@pytest.fixture
def quota(session_factory):
    return QuotaLedger(session_factory, daily_limit=150)


# ============================================================================
# WORKFLOW FIXTURES
# ============================================================================

@pytest.fixture
def emitter():
    return AsyncMock()


@pytest.fixture
def enricher():
    return FakeEnricher()


@pytest.fixture
def directory():
    return FakeDirectory()


@pytest.fixture
def manager(store, tasks, quota, enricher, directory, emitter):
    return WorkflowManager(
        store=store,
        tasks=tasks,
        quota=quota,
        enricher=enricher,
        directory=directory,
        ranking=ProspectRankingEngine(directory=directory, scorer=DeterministicScorer()),
        notifier=Notifier(store, emitter=emitter),
        dispatcher=TaskDispatcher(),
        retry_policy=RetryOnTouchPolicy(max_attempts=3),
        lookup_delay=0,
    )


@pytest.fixture
def make_job():
    """Builds a minimal valid job payload"""
    def _make(title="VP of Sales", company="Acme", domain="acme.com", **extra):
        return {
            "job_title": title,
            "company_name": company,
            "company_domain": domain,
            **extra,
        }
    return _make
