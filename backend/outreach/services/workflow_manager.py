# backend/outreach/services/workflow_manager.py
"""
Workflow Manager - campaign stage controller

Stages (forward only):
    jobs_added -> company_enriched -> prospects_collected
               -> prospects_selected -> ready_for_outreach

1. Jobs added to a campaign trigger company enrichment
2. When every company in the campaign is enriched -> company_enriched
3. Prospect collection (background task) -> prospects_collected
4. Auto-select top prospects per company -> prospects_selected
5. Contact enrichment of selected prospects (quota-gated) -> ready_for_outreach

Long-running steps are dispatched as background operations and tracked
through BackgroundTask rows; the caller gets the task back immediately.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Any

from outreach.config import settings
from outreach.exceptions import (
    NotFoundError,
    ValidationError,
    QuotaExceededError,
)
from outreach.models import (
    Campaign,
    JobPosting,
    Company,
    Prospect,
    BackgroundTask,
    stage_index,
)
from outreach.services.campaign_store import CampaignStore
from outreach.services.company_enricher import create_company_enricher
from outreach.services.directory_service import create_directory_service
from outreach.services.dispatcher import TaskDispatcher
from outreach.services.normalization import normalization_service
from outreach.services.notifications import Notifier
from outreach.services.prospect_ranking import ProspectRankingEngine, PRIORITY_WEIGHT
from outreach.services.quota_ledger import QuotaLedger
from outreach.services.retry_policy import RetryPolicy, RetryOnTouchPolicy
from outreach.services.scoring import create_prospect_scorer
from outreach.services.task_tracker import TaskTracker

logger = logging.getLogger(__name__)


REQUIRED_JOB_FIELDS = ("job_title", "company_name", "company_domain")


class WorkflowManager:
    """Sequences the campaign stages and owns their background work."""

    def __init__(
        self,
        store: CampaignStore,
        tasks: TaskTracker,
        quota: QuotaLedger,
        enricher,
        directory,
        ranking: ProspectRankingEngine,
        notifier: Notifier,
        dispatcher: Optional[TaskDispatcher] = None,
        retry_policy: Optional[RetryPolicy] = None,
        lookup_delay: Optional[float] = None,
        auto_select_count: Optional[int] = None
    ):
        self.store = store
        self.tasks = tasks
        self.quota = quota
        self.enricher = enricher
        self.directory = directory
        self.ranking = ranking
        self.notifier = notifier
        self.dispatcher = dispatcher or TaskDispatcher()
        self.retry_policy = retry_policy or RetryOnTouchPolicy()
        self.lookup_delay = settings.CONTACT_LOOKUP_DELAY_SECONDS if lookup_delay is None else lookup_delay
        self.auto_select_count = auto_select_count or settings.AUTO_SELECT_PER_COMPANY

    # ========================================================================
    # READ ACCESSORS
    # ========================================================================

    def get_campaign(self, campaign_id: int) -> Campaign:
        campaign = self.store.get_campaign(campaign_id)
        if not campaign:
            raise NotFoundError("Campaign", campaign_id)
        return campaign

    def list_campaigns(self) -> List[Dict[str, Any]]:
        return self.store.list_campaigns()

    def get_jobs(self, campaign_id: int) -> List[JobPosting]:
        self.get_campaign(campaign_id)
        return self.store.get_jobs_by_campaign(campaign_id)

    def get_campaign_companies(self, campaign_id: int) -> List[Company]:
        self.get_campaign(campaign_id)
        return self.store.get_companies_by_campaign(campaign_id)

    def get_prospects(self, campaign_id: int) -> List[Prospect]:
        self.get_campaign(campaign_id)
        return self.store.get_prospects_by_campaign(campaign_id)

    def get_prospect(self, prospect_id: int) -> Prospect:
        prospect = self.store.get_prospect(prospect_id)
        if not prospect:
            raise NotFoundError("Prospect", prospect_id)
        return prospect

    def get_company(self, domain: str) -> Company:
        company = self.store.get_company(domain)
        if not company:
            raise NotFoundError("Company", domain)
        return company

    def get_tasks(self, campaign_id: int) -> List[BackgroundTask]:
        self.get_campaign(campaign_id)
        return self.tasks.get_tasks_by_campaign(campaign_id)

    def get_task(self, task_id: int) -> BackgroundTask:
        task = self.tasks.get_task(task_id)
        if not task:
            raise NotFoundError("Task", task_id)
        return task

    # ========================================================================
    # CAMPAIGNS & JOBS
    # ========================================================================

    def create_campaign(self, name: Optional[str], description: Optional[str] = None) -> Campaign:
        if not name or not name.strip():
            raise ValidationError("Campaign name is required")
        return self.store.create_campaign(name.strip(), description)

    def delete_campaign(self, campaign_id: int):
        if not self.store.delete_campaign(campaign_id):
            raise NotFoundError("Campaign", campaign_id)

    async def add_job(self, campaign_id: int, job_data: Dict[str, Any]) -> JobPosting:
        """
        Add a job posting and kick off enrichment of its company.

        pending company   -> enrichment dispatched
        failed company    -> retried once if the retry policy allows
        completed company -> campaign enrichment check runs right away
        processing        -> nothing; completion will check this campaign
        """
        missing = [field for field in REQUIRED_JOB_FIELDS if not str(job_data.get(field) or "").strip()]
        if missing:
            raise ValidationError(f"Missing required job fields: {', '.join(missing)}")

        domain = normalization_service.normalize_domain(job_data["company_domain"])
        if not domain:
            raise ValidationError(f"Invalid company domain: {job_data['company_domain']}")

        self.get_campaign(campaign_id)

        company_name = job_data["company_name"].strip()
        company = self.store.get_or_create_company(
            domain,
            company_name,
            source_data=job_data.get("company_data"),
            employee_count=job_data.get("employee_count"),
        )

        job = self.store.add_job(campaign_id, company.id, {
            **job_data,
            "job_title": job_data["job_title"].strip(),
            "company_name": company_name,
            "company_domain": domain,
            "raw_data": job_data.get("raw_data") or dict(job_data),
        })
        logger.info(f"Added job {job.id} '{job.job_title}' at {domain} to campaign {campaign_id}")

        # Re-read after the job exists so a concurrent completion cannot be missed
        company = self.store.get_company_by_id(company.id)

        if company.enrichment_status == "pending":
            self._dispatch_enrichment(campaign_id, domain, company.name)
        elif company.enrichment_status == "failed":
            if self.retry_policy.should_retry_now(company):
                logger.info(f"Retrying failed enrichment for {domain} (attempt {company.enrichment_attempts + 1})")
                self._dispatch_enrichment(campaign_id, domain, company.name)
            else:
                logger.info(f"Not retrying {domain}: {company.enrichment_attempts} attempts used")
        elif company.enrichment_status == "completed":
            await self.check_campaign_enrichment_status(campaign_id)

        return job

    async def remove_job(self, campaign_id: int, job_id: int):
        self.get_campaign(campaign_id)
        if not self.store.remove_job(campaign_id, job_id):
            raise NotFoundError("Job", job_id)

        # The removed job may have been the last one waiting on enrichment
        await self.check_campaign_enrichment_status(campaign_id)

    # ========================================================================
    # STAGE TRANSITIONS
    # ========================================================================

    def _advance(self, campaign_id: int, new_status: str) -> bool:
        advanced = self.store.advance_campaign_status(campaign_id, new_status)
        if advanced:
            logger.info(f"Campaign {campaign_id} -> {new_status}")
        else:
            logger.info(f"Campaign {campaign_id} not moved to {new_status}: already at or past it")
        return advanced

    async def check_campaign_enrichment_status(self, campaign_id: int) -> bool:
        """
        Advance jobs_added -> company_enriched once every company is enriched.

        Safe to call repeatedly: only the call that moves the campaign
        emits a notification.
        """
        campaign = self.store.get_campaign(campaign_id)
        if not campaign or campaign.status != "jobs_added":
            return False

        companies = self.store.get_companies_by_campaign(campaign_id)
        if not companies:
            return False

        if not all(c.enrichment_status == "completed" for c in companies):
            return False

        if not self._advance(campaign_id, "company_enriched"):
            return False

        await self.notifier.notify(
            "campaign_ready",
            "Campaign Ready for Prospect Collection",
            f"All {len(companies)} companies in {campaign.name} have been enriched",
            campaign_id,
        )
        return True

    # ========================================================================
    # STAGE 2: COMPANY ENRICHMENT
    # ========================================================================

    def _dispatch_enrichment(self, campaign_id: Optional[int], domain: str, name: str):
        self.dispatcher.dispatch(
            self.enrich_company(campaign_id, domain, name),
            name=f"company_enrichment:{domain}"
        )

    async def enrich_company(self, campaign_id: Optional[int], domain: str, name: str) -> Optional[Dict[str, Any]]:
        """
        Enrich one company and re-check every campaign that references it.

        The pending/failed -> processing claim is the lock: a second trigger
        while enrichment is running is a no-op.
        """
        if not self.store.claim_company_for_enrichment(domain):
            logger.info(f"Skipping enrichment of {domain}: already processing or completed")
            return None

        # Anything failing past the claim must release it, or the company stays processing
        task = None
        try:
            company = self.store.get_company(domain)
            task = self.tasks.create_task("company_enrichment", campaign_id, company.id, total=1)
            self.tasks.set_progress(task.id, 0)

            result = await self.enricher.enrich(domain, name)
            self.store.save_enriched_data(domain, result.get("profile") or {}, result.get("employee_count"))
        except Exception as e:
            logger.error(f"❌ Enrichment failed for {domain}: {e}")
            self.store.record_enrichment_error(domain, str(e))
            if task is not None:
                self.tasks.fail(task.id, str(e))
            await self.notifier.notify(
                "enrichment_failed",
                "Company Enrichment Failed",
                f"Failed to enrich {name}: {e}",
                campaign_id,
            )
            return None

        self.tasks.complete(task.id, {
            "domain": domain,
            "status": result.get("status", "completed"),
            "partial": bool(result.get("partial")),
            "employee_count": result.get("employee_count"),
        })

        await self.notifier.notify(
            "enrichment_complete",
            "Company Enrichment Complete",
            f"{name} has been enriched successfully",
            campaign_id,
        )

        for referencing_campaign_id in self.store.get_campaign_ids_for_company(company.id):
            await self.check_campaign_enrichment_status(referencing_campaign_id)

        return result

    async def retry_company(self, domain: str) -> Dict[str, Any]:
        """
        Manual retry: back to pending, error cleared, attempts kept, and
        enrichment re-dispatched for the latest campaign using the company.
        """
        company = self.get_company(domain)
        if company.enrichment_status == "processing":
            raise ValidationError(f"{company.domain} is already being enriched")

        self.store.reset_for_retry(company.domain)
        campaign_id = self._latest_campaign_for(company)
        self._dispatch_enrichment(campaign_id, company.domain, company.name)

        logger.info(f"Manual retry of {company.domain} (campaign {campaign_id})")
        return {"domain": company.domain, "status": "pending", "campaign_id": campaign_id}

    async def bulk_retry_failed(self) -> Dict[str, Any]:
        """Retry every failed company still under the attempt ceiling."""
        failed = self.store.get_failed_companies()
        eligible = [c for c in failed if self.retry_policy.eligible_for_sweep(c)]

        for company in eligible:
            self.store.reset_for_retry(company.domain)
            self._dispatch_enrichment(self._latest_campaign_for(company), company.domain, company.name)

        if failed:
            logger.info(f"Retry sweep: {len(eligible)} of {len(failed)} failed companies re-dispatched")

        return {
            "retried": len(eligible),
            "skipped": len(failed) - len(eligible),
            "domains": [c.domain for c in eligible],
        }

    def _latest_campaign_for(self, company: Company) -> Optional[int]:
        campaign_ids = self.store.get_campaign_ids_for_company(company.id)
        return campaign_ids[0] if campaign_ids else None

    # ========================================================================
    # STAGE 3: PROSPECT COLLECTION
    # ========================================================================

    async def collect_prospects(self, campaign_id: int) -> BackgroundTask:
        campaign = self.get_campaign(campaign_id)
        if campaign.status == "jobs_added":
            raise ValidationError("Please wait for company enrichment to complete first")

        companies = self.store.get_companies_by_campaign(campaign_id)
        task = self.tasks.create_task("prospect_collection", campaign_id, total=len(companies))

        self.dispatcher.dispatch(
            self._run_prospect_collection(campaign_id, task.id),
            name=f"prospect_collection:{task.id}"
        )
        return task

    async def _run_prospect_collection(self, campaign_id: int, task_id: int):
        try:
            self.tasks.set_progress(task_id, 0)

            jobs_by_company: Dict[int, JobPosting] = {}
            for job in self.store.get_jobs_by_campaign(campaign_id):
                jobs_by_company.setdefault(job.company_id, job)

            companies = self.store.get_companies_by_campaign(campaign_id)
            processed = total_prospects = skipped = 0
            errors: List[Dict[str, str]] = []

            for company in companies:
                if company.enrichment_status != "completed":
                    skipped += 1
                else:
                    try:
                        created = await self.collect_prospects_for_company(
                            campaign_id, company, jobs_by_company[company.id]
                        )
                        total_prospects += len(created)
                    except Exception as e:
                        logger.error(f"Prospect collection failed for {company.domain}: {e}")
                        errors.append({"domain": company.domain, "error": str(e)})

                processed += 1
                self.tasks.set_progress(task_id, processed)

            self.tasks.complete(task_id, {
                "total_prospects": total_prospects,
                "companies_processed": processed,
                "companies_skipped": skipped,
                "error_count": len(errors),
                "errors": errors,
            })
        except Exception as e:
            self.tasks.fail(task_id, str(e))
            raise

        self._advance(campaign_id, "prospects_collected")
        await self.notifier.notify(
            "prospects_collected",
            "Prospect Collection Complete",
            f"Collected {total_prospects} prospects from {len(companies)} companies",
            campaign_id,
        )

    async def collect_prospects_for_company(
        self,
        campaign_id: int,
        company: Company,
        job: JobPosting
    ) -> List[Prospect]:
        size = company.employee_count or settings.DEFAULT_EMPLOYEE_COUNT
        logger.info(f"Collecting prospects for {company.name} ({size} employees)")

        ranked = await self.ranking.rank(
            company.name,
            company.domain,
            company.enriched_data,
            company.employee_count,
            {
                "job_title": job.job_title,
                "country": job.country,
                "location": job.location,
                "description": job.description,
            },
        )

        # Re-collection never duplicates a person already saved for this company
        existing = self.store.existing_prospect_names(campaign_id, company.id)
        fresh = [
            c for c in ranked
            if normalization_service.normalize_person_name(c.get("name")) not in existing
        ]
        return self.store.create_prospects(campaign_id, company.id, fresh)

    # ========================================================================
    # STAGE 4: SELECTION
    # ========================================================================

    async def auto_select(self, campaign_id: int) -> Dict[str, Any]:
        """Select the top prospects per company and advance to prospects_selected."""
        campaign = self.get_campaign(campaign_id)
        if stage_index(campaign.status) < stage_index("prospects_collected"):
            raise ValidationError("Prospects must be collected before auto-selection")

        by_company: Dict[int, List[Prospect]] = {}
        for prospect in self.store.get_prospects_by_campaign(campaign_id):
            by_company.setdefault(prospect.company_id, []).append(prospect)

        selected = 0
        for prospects in by_company.values():
            ranked = sorted(
                prospects,
                key=lambda p: (p.ai_score or 0) * PRIORITY_WEIGHT.get(p.priority or "low", 1),
                reverse=True,
            )
            for prospect in ranked[:self.auto_select_count]:
                self.store.update_prospect_selection(prospect.id, True, auto_selected=True)
                selected += 1

        if self._advance(campaign_id, "prospects_selected"):
            await self.notifier.notify(
                "prospects_selected",
                "Prospects Auto-Selected",
                f"Selected {selected} top prospects across {len(by_company)} companies",
                campaign_id,
            )

        return {"selected": selected, "companies": len(by_company)}

    def set_prospect_selection(self, prospect_id: int, selected: bool) -> Prospect:
        """Manual toggle; never moves the campaign stage."""
        self.get_prospect(prospect_id)
        self.store.update_prospect_selection(prospect_id, selected, auto_selected=False)
        return self.store.get_prospect(prospect_id)

    # ========================================================================
    # STAGE 5: CONTACT ENRICHMENT
    # ========================================================================

    async def enrich_contacts(self, campaign_id: int) -> BackgroundTask:
        """
        Look up contact details for the selected prospects.

        Rejected up front, with no lookups made, when the pending prospects
        would push today's count past the daily limit.
        """
        self.get_campaign(campaign_id)

        selected = self.store.get_selected_prospects(campaign_id)
        if not selected:
            raise ValidationError("No prospects selected for contact enrichment")

        if self.directory is None or not self.directory.is_configured():
            raise ValidationError("Contact lookup service is not configured")

        pending = [p for p in selected if not p.contact_enriched]
        if not self.quota.can_consume(len(pending)):
            raise QuotaExceededError(self.quota.today_count(), self.quota.daily_limit, len(pending))

        task = self.tasks.create_task("contact_enrichment", campaign_id, total=len(selected))
        self.dispatcher.dispatch(
            self._run_contact_enrichment(campaign_id, task.id),
            name=f"contact_enrichment:{task.id}"
        )
        return task

    async def _run_contact_enrichment(self, campaign_id: int, task_id: int):
        try:
            self.tasks.set_progress(task_id, 0)

            prospects = self.store.get_selected_prospects(campaign_id)
            processed = enriched = skipped = not_found = 0
            errors: List[Dict[str, Any]] = []
            lookups = 0

            for prospect in prospects:
                if prospect.contact_enriched:
                    skipped += 1
                    processed += 1
                    self.tasks.set_progress(task_id, processed)
                    continue

                if lookups:
                    await asyncio.sleep(self.lookup_delay)
                lookups += 1

                try:
                    contact = await self.directory.lookup_contact(
                        {
                            "name": prospect.name,
                            "title": prospect.title,
                            "linkedin_url": prospect.linkedin_url,
                        },
                        prospect.company_domain,
                    )
                except Exception as e:
                    logger.warning(f"Contact lookup failed for {prospect.name}: {e}")
                    errors.append({"prospect_id": prospect.id, "error": str(e)})
                    contact = None

                if contact and contact.get("email"):
                    self.store.update_prospect_contact(prospect.id, contact["email"], contact.get("phone"), True)
                    self.quota.consume(1)
                    enriched += 1
                elif contact is not None:
                    not_found += 1

                processed += 1
                self.tasks.set_progress(task_id, processed)

            self.tasks.complete(task_id, {
                "enriched_count": enriched,
                "skipped_count": skipped,
                "not_found_count": not_found,
                "error_count": len(errors),
                "errors": errors,
            })
        except Exception as e:
            self.tasks.fail(task_id, str(e))
            raise

        self._advance(campaign_id, "ready_for_outreach")
        await self.notifier.notify(
            "contacts_enriched",
            "Contact Enrichment Complete",
            f"Enriched {enriched} contacts with email addresses",
            campaign_id,
        )

    # ========================================================================
    # SUPERVISION
    # ========================================================================

    def fail_stale_tasks(self, minutes: Optional[int] = None) -> List[int]:
        """
        Fail orphaned tasks, then release companies left in processing
        without a live enrichment task.
        """
        if minutes is None:
            minutes = settings.STALE_TASK_MINUTES
        threshold = timedelta(minutes=minutes)

        stale = self.tasks.fail_stale(threshold)

        active_company_ids = {
            task.company_id
            for task in self.tasks.get_active_tasks()
            if task.task_type == "company_enrichment" and task.company_id
        }
        released = self.store.release_stale_claims(datetime.utcnow() - threshold, active_company_ids)
        if released:
            logger.warning(f"Released {len(released)} interrupted company enrichments: {released}")

        return stale

    def quota_status(self) -> Dict[str, Any]:
        return self.quota.status()


def create_workflow_manager(session_factory=None, notifier_emitter=None) -> WorkflowManager:
    """Factory function wiring the production collaborators."""
    store = CampaignStore(session_factory)
    directory = create_directory_service()

    return WorkflowManager(
        store=store,
        tasks=TaskTracker(session_factory),
        quota=QuotaLedger(session_factory),
        enricher=create_company_enricher(),
        directory=directory,
        ranking=ProspectRankingEngine(directory=directory, scorer=create_prospect_scorer()),
        notifier=Notifier(store, emitter=notifier_emitter),
        dispatcher=TaskDispatcher(),
        retry_policy=RetryOnTouchPolicy(),
    )
