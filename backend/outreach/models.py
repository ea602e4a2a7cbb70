# backend/outreach/models.py
"""
SQLAlchemy ORM models for the campaign workflow.

Campaign -> JobPosting -> Company (shared across campaigns by domain)
Campaign -> Prospect (bound to one Company)
Campaign -> BackgroundTask (one row per unit of background work)
QuotaLedgerEntry (one row per calendar day)
Notification (feed shown to the user)
"""

from sqlalchemy import (
    Column, String, Boolean, Integer, Float, Text, DateTime, Date, JSON,
    ForeignKey, CheckConstraint, UniqueConstraint, Index
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from outreach.database import Base
from datetime import datetime


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


# ============================================================================
# STAGE / STATUS VOCABULARY
# ============================================================================

CAMPAIGN_STAGES = [
    "jobs_added",
    "company_enriched",
    "prospects_collected",
    "prospects_selected",
    "ready_for_outreach",
]

ENRICHMENT_STATUSES = ["pending", "processing", "completed", "failed"]

TASK_TYPES = ["company_enrichment", "prospect_collection", "contact_enrichment"]
TASK_STATUSES = ["pending", "processing", "completed", "failed"]
TERMINAL_TASK_STATUSES = {"completed", "failed"}

PRIORITIES = ["high", "medium", "low"]


def stage_index(status: str) -> int:
    """Position of a campaign status in the forward stage sequence."""
    return CAMPAIGN_STAGES.index(status)


# ============================================================================
# CAMPAIGN & JOB MODELS
# ============================================================================

class Campaign(Base):
    """A named collection of job postings pursued together."""
    __tablename__ = "campaigns"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    status = Column(String(50), nullable=False, default="jobs_added", index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    jobs = relationship("JobPosting", cascade="all, delete-orphan")
    prospects = relationship("Prospect", cascade="all, delete-orphan")
    tasks = relationship("BackgroundTask", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(
            "status IN ('jobs_added', 'company_enriched', 'prospects_collected', "
            "'prospects_selected', 'ready_for_outreach')",
            name="chk_campaign_status"
        ),
    )

    def __repr__(self):
        return f"<Campaign(id={self.id}, name='{self.name}', status='{self.status}')>"


class JobPosting(Base):
    """One hiring listing inside a campaign."""
    __tablename__ = "job_postings"

    id = Column(Integer, primary_key=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="SET NULL"))
    external_job_id = Column(String(255))
    job_title = Column(String(500), nullable=False)
    company_name = Column(String(255), nullable=False)
    company_domain = Column(String(255), nullable=False, index=True)
    location = Column(String(255))
    country = Column(String(100))
    salary_string = Column(String(255))
    description = Column(Text)
    job_url = Column(Text)
    posted_date = Column(String(50))
    raw_data = Column(JSONType, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f"<JobPosting(id={self.id}, title='{self.job_title}', domain='{self.company_domain}')>"


# ============================================================================
# COMPANY MODEL
# ============================================================================

class Company(Base):
    """Hiring organization, shared across campaigns by normalized domain."""
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True)
    domain = Column(String(255), nullable=False, unique=True, index=True)
    name = Column(String(255), nullable=False)

    # Payload received with the job feed
    source_data = Column(JSONType)

    # Structured profile produced by the enricher
    # Example: {
    #   "company_summary": "...",
    #   "founders": [{"name": "Jane Doe", "title": "CEO & Co-Founder"}],
    #   "leadership_team": [{"name": "John Roe", "title": "VP Sales"}],
    #   "target_contacts": [{"name": "...", "title": "...", "priority": "high"}]
    # }
    enriched_data = Column(JSONType)

    enrichment_status = Column(String(20), nullable=False, default="pending", index=True)
    enrichment_error = Column(Text)
    enrichment_attempts = Column(Integer, nullable=False, default=0)
    employee_count = Column(Integer)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    enriched_at = Column(DateTime)

    __table_args__ = (
        CheckConstraint(
            "enrichment_status IN ('pending', 'processing', 'completed', 'failed')",
            name="chk_company_enrichment_status"
        ),
    )

    def __repr__(self):
        return f"<Company(id={self.id}, domain='{self.domain}', status='{self.enrichment_status}')>"


# ============================================================================
# PROSPECT MODEL
# ============================================================================

class Prospect(Base):
    """Candidate contact at a hiring company, scoped to one campaign."""
    __tablename__ = "prospects"

    id = Column(Integer, primary_key=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id", ondelete="CASCADE"), nullable=False, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    title = Column(String(255))
    department = Column(String(100))
    linkedin_url = Column(Text)
    location = Column(String(255))
    priority = Column(String(10), default="medium")
    relevance = Column(Text)
    ai_score = Column(Float)
    source = Column(String(50))

    # Selection
    selected = Column(Boolean, nullable=False, default=False, index=True)
    auto_selected = Column(Boolean, nullable=False, default=False)

    # Contact details (null until enriched)
    email = Column(String(255))
    phone = Column(String(50))
    contact_enriched = Column(Boolean, nullable=False, default=False)

    raw_data = Column(JSONType, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Eager so detached rows still expose the company domain
    company = relationship("Company", lazy="joined")

    __table_args__ = (
        CheckConstraint("priority IN ('high', 'medium', 'low')", name="chk_prospect_priority"),
        Index("idx_prospects_campaign_company", "campaign_id", "company_id"),
    )

    @property
    def company_domain(self):
        return self.company.domain if self.company else None

    def __repr__(self):
        return f"<Prospect(id={self.id}, name='{self.name}', title='{self.title}')>"


# ============================================================================
# BACKGROUND TASK MODEL
# ============================================================================

class BackgroundTask(Base):
    """Record of one asynchronous unit of work."""
    __tablename__ = "background_tasks"

    id = Column(Integer, primary_key=True)
    task_type = Column(String(50), nullable=False)
    campaign_id = Column(Integer, ForeignKey("campaigns.id", ondelete="CASCADE"), index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="SET NULL"))
    status = Column(String(20), nullable=False, default="pending", index=True)
    progress = Column(Integer, nullable=False, default=0)
    total = Column(Integer)
    result = Column(JSONType)
    error_message = Column(Text)
    started_at = Column(DateTime)
    completed_at = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        CheckConstraint(
            "task_type IN ('company_enrichment', 'prospect_collection', 'contact_enrichment')",
            name="chk_task_type"
        ),
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="chk_task_status"
        ),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_TASK_STATUSES

    def __repr__(self):
        return f"<BackgroundTask(id={self.id}, type='{self.task_type}', status='{self.status}')>"


# ============================================================================
# QUOTA LEDGER & NOTIFICATIONS
# ============================================================================

class QuotaLedgerEntry(Base):
    """Contact lookups consumed on one calendar day."""
    __tablename__ = "contact_quota_ledger"

    id = Column(Integer, primary_key=True)
    day = Column(Date, nullable=False)
    consumed = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("day", name="uq_contact_quota_ledger_day"),
    )


class Notification(Base):
    """User-facing notification with a deep link back to the campaign."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(255))
    read = Column(Boolean, nullable=False, default=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)
