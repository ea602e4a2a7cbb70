# backend/outreach/routers/company_routes.py
"""
API endpoints for companies and their enrichment state
"""

from fastapi import APIRouter, Depends
from typing import List
import logging

from outreach.exceptions import WorkflowError
from outreach.routers.deps import get_workflow_manager, to_http_exception
from outreach.schemas.campaign import (
    CompanyResponse,
    CompanyDetail,
    CompanyStats,
    RetryResponse,
    BulkRetryResponse,
    ProspectResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/companies", tags=["companies"])


@router.get("", response_model=List[CompanyResponse])
async def list_companies(manager=Depends(get_workflow_manager)):
    return manager.store.list_companies()


@router.get("/stats", response_model=CompanyStats)
async def company_stats(manager=Depends(get_workflow_manager)):
    """Company counts by enrichment status."""
    return manager.store.company_stats()


@router.post("/retry-failed", response_model=BulkRetryResponse)
async def retry_failed_companies(manager=Depends(get_workflow_manager)):
    """Retry every failed company that has not used up its enrichment attempts."""
    result = await manager.bulk_retry_failed()
    logger.info(f"Bulk retry requested: {result['retried']} companies re-dispatched")
    return result


@router.get("/{domain}", response_model=CompanyDetail)
async def get_company(domain: str, manager=Depends(get_workflow_manager)):
    try:
        return manager.get_company(domain)
    except WorkflowError as e:
        raise to_http_exception(e)


@router.get("/{domain}/prospects", response_model=List[ProspectResponse])
async def list_company_prospects(domain: str, manager=Depends(get_workflow_manager)):
    try:
        company = manager.get_company(domain)
        return manager.store.get_prospects_by_company(company.id)
    except WorkflowError as e:
        raise to_http_exception(e)


@router.post("/{domain}/retry", response_model=RetryResponse)
async def retry_company(domain: str, manager=Depends(get_workflow_manager)):
    """
    Manually retry enrichment of one company.

    Allowed even when the automatic attempt limit has been reached.
    """
    try:
        return await manager.retry_company(domain)
    except WorkflowError as e:
        raise to_http_exception(e)
