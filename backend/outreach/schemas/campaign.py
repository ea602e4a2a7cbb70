# backend/outreach/schemas/campaign.py
"""
Pydantic schemas for the campaign workflow API
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Dict, Any
from datetime import datetime


# ========================================
# CAMPAIGN SCHEMAS
# ========================================

class CampaignCreate(BaseModel):
    """Schema for creating a campaign"""
    name: str = Field(..., max_length=255, description="Campaign name")
    description: Optional[str] = Field(None, description="Free-form notes")


class CampaignResponse(BaseModel):
    """Schema for campaign response"""
    id: int
    name: str
    description: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CampaignSummary(CampaignResponse):
    """Campaign with job and prospect counts"""
    job_count: int = 0
    prospect_count: int = 0


# ========================================
# JOB SCHEMAS
# ========================================

class JobCreate(BaseModel):
    """Schema for adding a job posting to a campaign"""
    job_title: str = Field(..., description="Job posting title")
    company_name: str = Field(..., description="Hiring company name")
    company_domain: str = Field(..., description="Hiring company website domain")
    external_job_id: Optional[str] = None
    location: Optional[str] = None
    country: Optional[str] = None
    salary_string: Optional[str] = None
    description: Optional[str] = None
    job_url: Optional[str] = None
    posted_date: Optional[str] = None
    employee_count: Optional[int] = Field(None, ge=1, description="Headcount from the job feed, if known")
    company_data: Optional[Dict[str, Any]] = Field(None, description="Company payload from the job feed")
    raw_data: Optional[Dict[str, Any]] = None


class JobResponse(BaseModel):
    """Schema for job posting response"""
    id: int
    campaign_id: int
    company_id: Optional[int] = None
    external_job_id: Optional[str] = None
    job_title: str
    company_name: str
    company_domain: str
    location: Optional[str] = None
    country: Optional[str] = None
    salary_string: Optional[str] = None
    job_url: Optional[str] = None
    posted_date: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ========================================
# COMPANY SCHEMAS
# ========================================

class CompanyResponse(BaseModel):
    """Schema for company response"""
    id: int
    domain: str
    name: str
    enrichment_status: str
    enrichment_error: Optional[str] = None
    enrichment_attempts: int = 0
    employee_count: Optional[int] = None
    enriched_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CompanyDetail(CompanyResponse):
    """Company with enrichment payloads"""
    source_data: Optional[Dict[str, Any]] = None
    enriched_data: Optional[Dict[str, Any]] = None


class CompanyStats(BaseModel):
    total: int
    pending: int
    processing: int
    completed: int
    failed: int


class RetryResponse(BaseModel):
    domain: str
    status: str
    campaign_id: Optional[int] = None


class BulkRetryResponse(BaseModel):
    retried: int
    skipped: int
    domains: List[str]


# ========================================
# PROSPECT SCHEMAS
# ========================================

class ProspectResponse(BaseModel):
    """Schema for prospect response"""
    id: int
    campaign_id: int
    company_id: int
    company_domain: Optional[str] = None
    name: str
    title: Optional[str] = None
    department: Optional[str] = None
    linkedin_url: Optional[str] = None
    location: Optional[str] = None
    priority: Optional[str] = None
    relevance: Optional[str] = None
    ai_score: Optional[float] = None
    source: Optional[str] = None
    selected: bool = False
    auto_selected: bool = False
    email: Optional[str] = None
    phone: Optional[str] = None
    contact_enriched: bool = False

    class Config:
        from_attributes = True


class ProspectSelectionUpdate(BaseModel):
    selected: bool


class AutoSelectResponse(BaseModel):
    selected: int
    companies: int


# ========================================
# TASK SCHEMAS
# ========================================

class TaskResponse(BaseModel):
    """Schema for background task response"""
    id: int
    task_type: str
    campaign_id: Optional[int] = None
    company_id: Optional[int] = None
    status: str
    progress: int = 0
    total: Optional[int] = None
    result: Optional[Dict[str, Any]] = None
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ========================================
# NOTIFICATION & QUOTA SCHEMAS
# ========================================

class NotificationResponse(BaseModel):
    """Schema for notification response"""
    id: int
    type: str
    title: str
    message: str
    link: Optional[str] = None
    read: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class QuotaStatus(BaseModel):
    date: str
    current: int
    limit: int
    remaining: int

    @field_validator("remaining")
    @classmethod
    def remaining_not_negative(cls, v):
        return max(v, 0)
