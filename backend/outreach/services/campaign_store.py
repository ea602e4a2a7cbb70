# backend/outreach/services/campaign_store.py
"""
Campaign Store - datastore access for campaigns, jobs, companies,
prospects and notifications.

Every method runs in its own short transaction and returns detached rows
(the session factory is configured with expire_on_commit=False), so callers
never hold a session across an await.
"""

from typing import Optional, Dict, Any, List, Set
from datetime import datetime
import logging

from sqlalchemy import func, update, delete

from outreach.database import SessionLocal, session_scope
from outreach.models import (
    Campaign,
    JobPosting,
    Company,
    Prospect,
    Notification,
    CAMPAIGN_STAGES,
)
from outreach.services.normalization import normalization_service

logger = logging.getLogger(__name__)


class CampaignStore:
    """SQLAlchemy implementation of the workflow datastore."""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or SessionLocal

    def _session(self):
        return session_scope(self.session_factory)

    # ========================================================================
    # CAMPAIGNS
    # ========================================================================

    def create_campaign(self, name: str, description: Optional[str] = None) -> Campaign:
        with self._session() as db:
            campaign = Campaign(name=name, description=description, status="jobs_added")
            db.add(campaign)
            db.flush()
            logger.info(f"Created campaign {campaign.id} '{name}'")
            return campaign

    def get_campaign(self, campaign_id: int) -> Optional[Campaign]:
        with self._session() as db:
            return db.get(Campaign, campaign_id)

    def list_campaigns(self) -> List[Dict[str, Any]]:
        """Campaigns with job and prospect counts, newest first."""
        with self._session() as db:
            job_counts = dict(
                db.query(JobPosting.campaign_id, func.count(JobPosting.id))
                .group_by(JobPosting.campaign_id)
                .all()
            )
            prospect_counts = dict(
                db.query(Prospect.campaign_id, func.count(Prospect.id))
                .group_by(Prospect.campaign_id)
                .all()
            )
            campaigns = db.query(Campaign).order_by(Campaign.updated_at.desc(), Campaign.id.desc()).all()

            return [
                {
                    "campaign": campaign,
                    "job_count": job_counts.get(campaign.id, 0),
                    "prospect_count": prospect_counts.get(campaign.id, 0),
                }
                for campaign in campaigns
            ]

    def advance_campaign_status(self, campaign_id: int, new_status: str) -> bool:
        """
        Move a campaign forward to new_status.

        Conditional update: only rows currently at an earlier stage change,
        so repeated or stale calls are no-ops. Returns True if the row moved.
        """
        earlier = CAMPAIGN_STAGES[:CAMPAIGN_STAGES.index(new_status)]
        if not earlier:
            return False

        with self._session() as db:
            result = db.execute(
                update(Campaign)
                .where(Campaign.id == campaign_id, Campaign.status.in_(earlier))
                .values(status=new_status, updated_at=datetime.utcnow())
            )
            return result.rowcount == 1

    def touch_campaign(self, campaign_id: int):
        with self._session() as db:
            db.execute(
                update(Campaign)
                .where(Campaign.id == campaign_id)
                .values(updated_at=datetime.utcnow())
            )

    def delete_campaign(self, campaign_id: int) -> bool:
        with self._session() as db:
            campaign = db.get(Campaign, campaign_id)
            if not campaign:
                return False
            db.delete(campaign)
            logger.info(f"Deleted campaign {campaign_id}")
            return True

    # ========================================================================
    # JOB POSTINGS
    # ========================================================================

    def add_job(self, campaign_id: int, company_id: int, job_data: Dict[str, Any]) -> JobPosting:
        with self._session() as db:
            job = JobPosting(
                campaign_id=campaign_id,
                company_id=company_id,
                external_job_id=job_data.get("external_job_id"),
                job_title=job_data["job_title"],
                company_name=job_data["company_name"],
                company_domain=job_data["company_domain"],
                location=job_data.get("location"),
                country=job_data.get("country"),
                salary_string=job_data.get("salary_string"),
                description=job_data.get("description"),
                job_url=job_data.get("job_url"),
                posted_date=job_data.get("posted_date"),
                raw_data=job_data.get("raw_data") or {},
            )
            db.add(job)
            db.execute(
                update(Campaign)
                .where(Campaign.id == campaign_id)
                .values(updated_at=datetime.utcnow())
            )
            db.flush()
            return job

    def get_jobs_by_campaign(self, campaign_id: int) -> List[JobPosting]:
        with self._session() as db:
            return (
                db.query(JobPosting)
                .filter(JobPosting.campaign_id == campaign_id)
                .order_by(JobPosting.created_at, JobPosting.id)
                .all()
            )

    def remove_job(self, campaign_id: int, job_id: int) -> bool:
        with self._session() as db:
            result = db.execute(
                delete(JobPosting).where(
                    JobPosting.campaign_id == campaign_id,
                    JobPosting.id == job_id
                )
            )
            return result.rowcount > 0

    def get_campaign_ids_for_company(self, company_id: int) -> List[int]:
        """Campaigns holding at least one job at this company, most recent job first."""
        with self._session() as db:
            rows = (
                db.query(JobPosting.campaign_id, func.max(JobPosting.id).label("last_job"))
                .filter(JobPosting.company_id == company_id)
                .group_by(JobPosting.campaign_id)
                .order_by(func.max(JobPosting.id).desc())
                .all()
            )
            return [row[0] for row in rows]

    # ========================================================================
    # COMPANIES
    # ========================================================================

    def get_or_create_company(
        self,
        domain: str,
        name: str,
        source_data: Optional[Dict[str, Any]] = None,
        employee_count: Optional[int] = None
    ) -> Company:
        """Create a company by domain, or refresh its feed data if it exists."""
        with self._session() as db:
            company = db.query(Company).filter(Company.domain == domain).first()

            if company:
                if source_data:
                    company.source_data = source_data
                if employee_count:
                    company.employee_count = employee_count
                db.flush()
                return company

            company = Company(
                domain=domain,
                name=name,
                source_data=source_data,
                employee_count=employee_count,
                enrichment_status="pending",
                enrichment_attempts=0,
            )
            db.add(company)
            db.flush()
            logger.info(f"Created company {company.id} for domain {domain}")
            return company

    def get_company(self, domain: str) -> Optional[Company]:
        domain = normalization_service.normalize_domain(domain)
        with self._session() as db:
            return db.query(Company).filter(Company.domain == domain).first()

    def get_company_by_id(self, company_id: int) -> Optional[Company]:
        with self._session() as db:
            return db.get(Company, company_id)

    def get_companies_by_campaign(self, campaign_id: int) -> List[Company]:
        """Distinct companies referenced by the campaign's jobs, in job order."""
        with self._session() as db:
            rows = (
                db.query(Company, func.min(JobPosting.id).label("first_job"))
                .join(JobPosting, JobPosting.company_id == Company.id)
                .filter(JobPosting.campaign_id == campaign_id)
                .group_by(Company.id)
                .order_by(func.min(JobPosting.id))
                .all()
            )
            return [row[0] for row in rows]

    def list_companies(self) -> List[Company]:
        with self._session() as db:
            return db.query(Company).order_by(Company.updated_at.desc(), Company.id.desc()).all()

    def company_stats(self) -> Dict[str, int]:
        with self._session() as db:
            counts = dict(
                db.query(Company.enrichment_status, func.count(Company.id))
                .group_by(Company.enrichment_status)
                .all()
            )
        stats = {status: counts.get(status, 0) for status in ("pending", "processing", "completed", "failed")}
        stats["total"] = sum(stats.values())
        return stats

    def claim_company_for_enrichment(self, domain: str) -> bool:
        """
        Flip a pending/failed company to processing.

        The processing status is the lock: only one caller wins the update,
        and a company already processing or completed is never claimed.
        """
        with self._session() as db:
            result = db.execute(
                update(Company)
                .where(
                    Company.domain == domain,
                    Company.enrichment_status.in_(["pending", "failed"])
                )
                .values(enrichment_status="processing", updated_at=datetime.utcnow())
            )
            return result.rowcount == 1

    def save_enriched_data(
        self,
        domain: str,
        enriched_data: Dict[str, Any],
        employee_count: Optional[int] = None
    ) -> Optional[Company]:
        with self._session() as db:
            company = db.query(Company).filter(Company.domain == domain).first()
            if not company:
                return None

            company.enriched_data = enriched_data
            company.enrichment_status = "completed"
            company.enrichment_error = None
            company.enriched_at = datetime.utcnow()
            if employee_count and not company.employee_count:
                company.employee_count = employee_count
            db.flush()
            return company

    def record_enrichment_error(self, domain: str, error_message: str):
        with self._session() as db:
            db.execute(
                update(Company)
                .where(Company.domain == domain)
                .values(
                    enrichment_status="failed",
                    enrichment_error=error_message,
                    enrichment_attempts=Company.enrichment_attempts + 1,
                    updated_at=datetime.utcnow()
                )
            )

    def release_stale_claims(self, cutoff: datetime, active_company_ids: Set[int]) -> List[str]:
        """
        Fail companies stuck in processing since before cutoff with no live
        enrichment task, so they become retryable again.
        """
        with self._session() as db:
            query = db.query(Company).filter(
                Company.enrichment_status == "processing",
                Company.updated_at < cutoff
            )
            if active_company_ids:
                query = query.filter(Company.id.notin_(active_company_ids))
            stuck = query.all()

            now = datetime.utcnow()
            for company in stuck:
                company.enrichment_status = "failed"
                company.enrichment_error = "Enrichment was interrupted; please retry"
                company.enrichment_attempts = (company.enrichment_attempts or 0) + 1
                company.updated_at = now

            return [company.domain for company in stuck]

    def reset_for_retry(self, domain: str) -> Optional[Company]:
        """Back to pending with the error cleared; the attempt counter is kept."""
        with self._session() as db:
            company = db.query(Company).filter(Company.domain == domain).first()
            if not company:
                return None
            company.enrichment_status = "pending"
            company.enrichment_error = None
            db.flush()
            return company

    def get_failed_companies(self, max_attempts: Optional[int] = None, limit: Optional[int] = None) -> List[Company]:
        with self._session() as db:
            query = db.query(Company).filter(Company.enrichment_status == "failed")
            if max_attempts is not None:
                query = query.filter(Company.enrichment_attempts < max_attempts)
            query = query.order_by(Company.updated_at.asc(), Company.id.asc())
            if limit:
                query = query.limit(limit)
            return query.all()

    # ========================================================================
    # PROSPECTS
    # ========================================================================

    def existing_prospect_names(self, campaign_id: int, company_id: int) -> Set[str]:
        with self._session() as db:
            names = (
                db.query(Prospect.name)
                .filter(Prospect.campaign_id == campaign_id, Prospect.company_id == company_id)
                .all()
            )
            return {normalization_service.normalize_person_name(row[0]) for row in names}

    def create_prospects(
        self,
        campaign_id: int,
        company_id: int,
        candidates: List[Dict[str, Any]]
    ) -> List[Prospect]:
        with self._session() as db:
            prospects = []
            for candidate in candidates:
                prospect = Prospect(
                    campaign_id=campaign_id,
                    company_id=company_id,
                    name=candidate["name"],
                    title=candidate.get("title"),
                    department=candidate.get("department"),
                    linkedin_url=candidate.get("linkedin_url"),
                    location=candidate.get("location"),
                    priority=candidate.get("priority") or "medium",
                    relevance=candidate.get("relevance"),
                    ai_score=candidate.get("ai_score"),
                    source=candidate.get("source"),
                    email=candidate.get("email"),
                    phone=candidate.get("phone"),
                    raw_data=candidate,
                )
                db.add(prospect)
                prospects.append(prospect)
            db.flush()
            # load the eager company relationship before detaching
            for prospect in prospects:
                db.refresh(prospect)
            return prospects

    def get_prospect(self, prospect_id: int) -> Optional[Prospect]:
        with self._session() as db:
            return db.get(Prospect, prospect_id)

    def get_prospects_by_campaign(self, campaign_id: int) -> List[Prospect]:
        with self._session() as db:
            return (
                db.query(Prospect)
                .join(Company, Company.id == Prospect.company_id)
                .filter(Prospect.campaign_id == campaign_id)
                .order_by(Company.name, Prospect.id)
                .all()
            )

    def get_prospects_by_company(self, company_id: int) -> List[Prospect]:
        with self._session() as db:
            return (
                db.query(Prospect)
                .filter(Prospect.company_id == company_id)
                .order_by(Prospect.ai_score.desc(), Prospect.id)
                .all()
            )

    def get_selected_prospects(self, campaign_id: int) -> List[Prospect]:
        with self._session() as db:
            return (
                db.query(Prospect)
                .join(Company, Company.id == Prospect.company_id)
                .filter(Prospect.campaign_id == campaign_id, Prospect.selected.is_(True))
                .order_by(Company.name, Prospect.id)
                .all()
            )

    def update_prospect_selection(self, prospect_id: int, selected: bool, auto_selected: bool = False) -> bool:
        with self._session() as db:
            result = db.execute(
                update(Prospect)
                .where(Prospect.id == prospect_id)
                .values(selected=selected, auto_selected=auto_selected, updated_at=datetime.utcnow())
            )
            return result.rowcount == 1

    def update_prospect_contact(
        self,
        prospect_id: int,
        email: Optional[str],
        phone: Optional[str],
        contact_enriched: bool = True
    ):
        with self._session() as db:
            db.execute(
                update(Prospect)
                .where(Prospect.id == prospect_id)
                .values(
                    email=email,
                    phone=phone,
                    contact_enriched=contact_enriched,
                    updated_at=datetime.utcnow()
                )
            )

    # ========================================================================
    # NOTIFICATIONS
    # ========================================================================

    def create_notification(self, type: str, title: str, message: str, link: Optional[str] = None) -> Notification:
        with self._session() as db:
            notification = Notification(type=type, title=title, message=message, link=link, read=False)
            db.add(notification)
            db.flush()
            return notification

    def get_unread_notifications(self) -> List[Notification]:
        with self._session() as db:
            return (
                db.query(Notification)
                .filter(Notification.read.is_(False))
                .order_by(Notification.created_at.desc(), Notification.id.desc())
                .all()
            )

    def get_recent_notifications(self, limit: int = 50) -> List[Notification]:
        with self._session() as db:
            return (
                db.query(Notification)
                .order_by(Notification.created_at.desc(), Notification.id.desc())
                .limit(limit)
                .all()
            )

    def mark_notification_read(self, notification_id: int) -> bool:
        with self._session() as db:
            result = db.execute(
                update(Notification)
                .where(Notification.id == notification_id)
                .values(read=True)
            )
            return result.rowcount == 1

    def mark_all_notifications_read(self) -> int:
        with self._session() as db:
            result = db.execute(
                update(Notification)
                .where(Notification.read.is_(False))
                .values(read=True)
            )
            return result.rowcount
