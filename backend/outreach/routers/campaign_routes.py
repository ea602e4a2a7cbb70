# backend/outreach/routers/campaign_routes.py
"""
API endpoints for campaigns and their workflow stages
"""

from fastapi import APIRouter, Depends, status
from typing import List
import logging

from outreach.exceptions import WorkflowError
from outreach.routers.deps import get_workflow_manager, to_http_exception
from outreach.schemas.campaign import (
    CampaignCreate,
    CampaignResponse,
    CampaignSummary,
    JobCreate,
    JobResponse,
    CompanyResponse,
    ProspectResponse,
    AutoSelectResponse,
    TaskResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/campaigns", tags=["campaigns"])


# ========================================
# CAMPAIGN CRUD
# ========================================

@router.get("", response_model=List[CampaignSummary])
async def list_campaigns(manager=Depends(get_workflow_manager)):
    """List campaigns with job and prospect counts, most recently updated first."""
    rows = manager.list_campaigns()
    return [
        CampaignSummary(
            **CampaignResponse.model_validate(row["campaign"]).model_dump(),
            job_count=row["job_count"],
            prospect_count=row["prospect_count"],
        )
        for row in rows
    ]


@router.post("", response_model=CampaignResponse, status_code=status.HTTP_201_CREATED)
async def create_campaign(data: CampaignCreate, manager=Depends(get_workflow_manager)):
    try:
        return manager.create_campaign(data.name, data.description)
    except WorkflowError as e:
        raise to_http_exception(e)


@router.get("/{campaign_id}", response_model=CampaignResponse)
async def get_campaign(campaign_id: int, manager=Depends(get_workflow_manager)):
    try:
        return manager.get_campaign(campaign_id)
    except WorkflowError as e:
        raise to_http_exception(e)


@router.delete("/{campaign_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_campaign(campaign_id: int, manager=Depends(get_workflow_manager)):
    """Delete a campaign with its jobs, prospects and tasks. Companies are kept."""
    try:
        manager.delete_campaign(campaign_id)
    except WorkflowError as e:
        raise to_http_exception(e)


# ========================================
# JOBS
# ========================================

@router.get("/{campaign_id}/jobs", response_model=List[JobResponse])
async def list_jobs(campaign_id: int, manager=Depends(get_workflow_manager)):
    try:
        return manager.get_jobs(campaign_id)
    except WorkflowError as e:
        raise to_http_exception(e)


@router.post("/{campaign_id}/jobs", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
async def add_job(campaign_id: int, data: JobCreate, manager=Depends(get_workflow_manager)):
    """
    Add a job posting to a campaign.

    Enrichment of the hiring company starts in the background.
    """
    try:
        return await manager.add_job(campaign_id, data.model_dump())
    except WorkflowError as e:
        raise to_http_exception(e)


@router.delete("/{campaign_id}/jobs/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_job(campaign_id: int, job_id: int, manager=Depends(get_workflow_manager)):
    try:
        await manager.remove_job(campaign_id, job_id)
    except WorkflowError as e:
        raise to_http_exception(e)


@router.get("/{campaign_id}/companies", response_model=List[CompanyResponse])
async def list_campaign_companies(campaign_id: int, manager=Depends(get_workflow_manager)):
    try:
        return manager.get_campaign_companies(campaign_id)
    except WorkflowError as e:
        raise to_http_exception(e)


# ========================================
# PROSPECTS
# ========================================

@router.get("/{campaign_id}/prospects", response_model=List[ProspectResponse])
async def list_prospects(campaign_id: int, manager=Depends(get_workflow_manager)):
    try:
        return manager.get_prospects(campaign_id)
    except WorkflowError as e:
        raise to_http_exception(e)


@router.post(
    "/{campaign_id}/collect-prospects",
    response_model=TaskResponse,
    status_code=status.HTTP_202_ACCEPTED
)
async def collect_prospects(campaign_id: int, manager=Depends(get_workflow_manager)):
    """Start prospect collection; poll the returned task for progress."""
    try:
        return await manager.collect_prospects(campaign_id)
    except WorkflowError as e:
        raise to_http_exception(e)


@router.post("/{campaign_id}/auto-select", response_model=AutoSelectResponse)
async def auto_select(campaign_id: int, manager=Depends(get_workflow_manager)):
    try:
        return await manager.auto_select(campaign_id)
    except WorkflowError as e:
        raise to_http_exception(e)


@router.post(
    "/{campaign_id}/enrich-contacts",
    response_model=TaskResponse,
    status_code=status.HTTP_202_ACCEPTED
)
async def enrich_contacts(campaign_id: int, manager=Depends(get_workflow_manager)):
    """
    Start contact enrichment of selected prospects.

    Returns 429 with the current count and limit when the daily
    contact-lookup quota would be exceeded.
    """
    try:
        return await manager.enrich_contacts(campaign_id)
    except WorkflowError as e:
        raise to_http_exception(e)


# ========================================
# TASKS
# ========================================

@router.get("/{campaign_id}/tasks", response_model=List[TaskResponse])
async def list_campaign_tasks(campaign_id: int, manager=Depends(get_workflow_manager)):
    try:
        return manager.get_tasks(campaign_id)
    except WorkflowError as e:
        raise to_http_exception(e)
