"""Pydantic schemas for request/response validation."""

from outreach.schemas.campaign import (
    CampaignCreate,
    CampaignResponse,
    CampaignSummary,
    JobCreate,
    JobResponse,
    CompanyResponse,
    CompanyDetail,
    CompanyStats,
    RetryResponse,
    BulkRetryResponse,
    ProspectResponse,
    ProspectSelectionUpdate,
    AutoSelectResponse,
    TaskResponse,
    NotificationResponse,
    QuotaStatus,
)
