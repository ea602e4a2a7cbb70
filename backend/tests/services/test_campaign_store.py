# tests/services/test_campaign_store.py
"""
Tests for CampaignStore

Coverage:
- Forward-only campaign status updates
- Enrichment claim (status as lock), error bookkeeping, retry reset
- Company/job/prospect queries
- Notifications feed

Run with: pytest tests/services/test_campaign_store.py -v
"""

import pytest


@pytest.fixture
def campaign(store):
    return store.create_campaign("Q3 SaaS hiring")


@pytest.fixture
def company(store):
    return store.get_or_create_company("acme.com", "Acme")


# ============================================================================
# TEST: Campaign Status
# ============================================================================

class TestCampaignStatus:
    """advance_campaign_status only moves forward"""

    def test_new_campaign_starts_at_jobs_added(self, campaign):
        assert campaign.status == "jobs_added"

    def test_advance(self, store, campaign):
        assert store.advance_campaign_status(campaign.id, "company_enriched") is True
        assert store.get_campaign(campaign.id).status == "company_enriched"

    def test_repeat_advance_is_noop(self, store, campaign):
        store.advance_campaign_status(campaign.id, "company_enriched")

        assert store.advance_campaign_status(campaign.id, "company_enriched") is False

    def test_never_moves_backwards(self, store, campaign):
        store.advance_campaign_status(campaign.id, "prospects_collected")

        assert store.advance_campaign_status(campaign.id, "company_enriched") is False
        assert store.get_campaign(campaign.id).status == "prospects_collected"

    def test_cannot_advance_to_first_stage(self, store, campaign):
        assert store.advance_campaign_status(campaign.id, "jobs_added") is False

    def test_list_campaigns_counts(self, store, campaign, company):
        store.add_job(campaign.id, company.id, {
            "job_title": "AE", "company_name": "Acme", "company_domain": "acme.com"
        })
        store.create_prospects(campaign.id, company.id, [{"name": "Ann Lee"}, {"name": "Bob Stone"}])
        empty = store.create_campaign("Empty")

        rows = {row["campaign"].id: row for row in store.list_campaigns()}

        assert rows[campaign.id]["job_count"] == 1
        assert rows[campaign.id]["prospect_count"] == 2
        assert rows[empty.id]["job_count"] == 0

    def test_delete_campaign_keeps_companies(self, store, campaign, company):
        store.add_job(campaign.id, company.id, {
            "job_title": "AE", "company_name": "Acme", "company_domain": "acme.com"
        })
        store.create_prospects(campaign.id, company.id, [{"name": "Ann Lee"}])

        assert store.delete_campaign(campaign.id) is True

        assert store.get_campaign(campaign.id) is None
        assert store.get_jobs_by_campaign(campaign.id) == []
        assert store.get_prospects_by_campaign(campaign.id) == []
        assert store.get_company("acme.com") is not None
        assert store.delete_campaign(campaign.id) is False


# ============================================================================
# TEST: Companies
# ============================================================================

class TestCompanyEnrichmentState:
    """Claim / error / reset bookkeeping"""

    def test_get_or_create_is_idempotent(self, store, company):
        again = store.get_or_create_company("acme.com", "Acme Inc", employee_count=40)

        assert again.id == company.id
        assert again.employee_count == 40
        assert store.company_stats()["total"] == 1

    def test_lookup_normalizes_domain(self, store, company):
        assert store.get_company("https://www.ACME.com/about").id == company.id

    def test_claim_is_exclusive(self, store, company):
        assert store.claim_company_for_enrichment("acme.com") is True
        assert store.claim_company_for_enrichment("acme.com") is False
        assert store.get_company("acme.com").enrichment_status == "processing"

    def test_completed_company_is_not_claimed(self, store, company):
        store.claim_company_for_enrichment("acme.com")
        store.save_enriched_data("acme.com", {"company_summary": "x"}, employee_count=25)

        assert store.claim_company_for_enrichment("acme.com") is False
        loaded = store.get_company("acme.com")
        assert loaded.enrichment_status == "completed"
        assert loaded.employee_count == 25
        assert loaded.enriched_at is not None

    def test_error_increments_attempts(self, store, company):
        store.claim_company_for_enrichment("acme.com")
        store.record_enrichment_error("acme.com", "Website unreachable")

        loaded = store.get_company("acme.com")
        assert loaded.enrichment_status == "failed"
        assert loaded.enrichment_attempts == 1
        assert loaded.enrichment_error == "Website unreachable"

        # failed companies can be claimed again
        assert store.claim_company_for_enrichment("acme.com") is True

    def test_reset_keeps_attempt_counter(self, store, company):
        for _ in range(3):
            store.record_enrichment_error("acme.com", "boom")

        reset = store.reset_for_retry("acme.com")

        assert reset.enrichment_status == "pending"
        assert reset.enrichment_error is None
        assert reset.enrichment_attempts == 3

    def test_failed_companies_respects_ceiling(self, store):
        store.get_or_create_company("one.com", "One")
        store.get_or_create_company("three.com", "Three")
        store.record_enrichment_error("one.com", "boom")
        for _ in range(3):
            store.record_enrichment_error("three.com", "boom")

        eligible = store.get_failed_companies(max_attempts=3)

        assert [c.domain for c in eligible] == ["one.com"]
        assert len(store.get_failed_companies()) == 2

    def test_company_stats(self, store):
        store.get_or_create_company("one.com", "One")
        store.get_or_create_company("two.com", "Two")
        store.record_enrichment_error("two.com", "boom")

        stats = store.company_stats()

        assert stats["pending"] == 1
        assert stats["failed"] == 1
        assert stats["completed"] == 0
        assert stats["total"] == 2

    def test_companies_by_campaign_are_distinct(self, store, campaign, company):
        other = store.get_or_create_company("globex.com", "Globex")
        for company_id, domain in ((company.id, "acme.com"), (other.id, "globex.com"), (company.id, "acme.com")):
            store.add_job(campaign.id, company_id, {
                "job_title": "AE", "company_name": domain, "company_domain": domain
            })

        companies = store.get_companies_by_campaign(campaign.id)

        assert [c.domain for c in companies] == ["acme.com", "globex.com"]

    def test_campaign_ids_for_company(self, store, company):
        first = store.create_campaign("First")
        second = store.create_campaign("Second")
        job = {"job_title": "AE", "company_name": "Acme", "company_domain": "acme.com"}
        store.add_job(first.id, company.id, job)
        store.add_job(second.id, company.id, job)

        assert store.get_campaign_ids_for_company(company.id) == [second.id, first.id]


# ============================================================================
# TEST: Prospects
# ============================================================================

class TestProspects:
    """Prospect persistence and selection"""

    def test_create_prospects_exposes_domain(self, store, campaign, company):
        prospects = store.create_prospects(campaign.id, company.id, [
            {"name": "Ann Lee", "title": "VP Sales", "priority": "high", "ai_score": 0.85}
        ])

        assert prospects[0].company_domain == "acme.com"
        assert prospects[0].selected is False
        assert prospects[0].contact_enriched is False

    def test_existing_names_are_normalized(self, store, campaign, company):
        store.create_prospects(campaign.id, company.id, [{"name": "Ann  LEE"}])

        assert store.existing_prospect_names(campaign.id, company.id) == {"ann lee"}

    def test_selection_and_contact_updates(self, store, campaign, company):
        ann, bob = store.create_prospects(campaign.id, company.id, [{"name": "Ann Lee"}, {"name": "Bob Stone"}])

        assert store.update_prospect_selection(ann.id, True, auto_selected=True) is True
        store.update_prospect_contact(ann.id, "ann@acme.com", None)

        selected = store.get_selected_prospects(campaign.id)
        assert [p.id for p in selected] == [ann.id]
        assert selected[0].auto_selected is True
        assert selected[0].email == "ann@acme.com"
        assert selected[0].contact_enriched is True
        assert store.update_prospect_selection(9999, True) is False


# ============================================================================
# TEST: Notifications
# ============================================================================

class TestNotifications:
    """Notification feed"""

    def test_read_flags(self, store):
        first = store.create_notification("campaign_ready", "Ready", "All companies enriched", "/campaigns/1")
        store.create_notification("prospects_collected", "Collected", "12 prospects", "/campaigns/1")

        assert len(store.get_unread_notifications()) == 2

        assert store.mark_notification_read(first.id) is True
        assert [n.type for n in store.get_unread_notifications()] == ["prospects_collected"]

        assert store.mark_all_notifications_read() == 1
        assert store.get_unread_notifications() == []
        assert len(store.get_recent_notifications()) == 2
        assert store.mark_notification_read(9999) is False
