# backend/outreach/routers/task_routes.py
"""
API endpoints for background task status and the contact quota
"""

from fastapi import APIRouter, Depends, Query
from typing import List
import logging

from outreach.exceptions import WorkflowError
from outreach.routers.deps import get_workflow_manager, to_http_exception
from outreach.schemas.campaign import TaskResponse, QuotaStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["tasks"])


@router.get("/tasks", response_model=List[TaskResponse])
async def list_recent_tasks(
    limit: int = Query(50, ge=1, le=500),
    manager=Depends(get_workflow_manager)
):
    return manager.tasks.get_recent_tasks(limit)


@router.get("/tasks/active", response_model=List[TaskResponse])
async def list_active_tasks(manager=Depends(get_workflow_manager)):
    return manager.tasks.get_active_tasks()


@router.get("/tasks/{task_id}", response_model=TaskResponse)
async def get_task(task_id: int, manager=Depends(get_workflow_manager)):
    try:
        return manager.get_task(task_id)
    except WorkflowError as e:
        raise to_http_exception(e)


@router.get("/quota", response_model=QuotaStatus)
async def get_quota_status(manager=Depends(get_workflow_manager)):
    """Today's contact-lookup usage against the daily limit."""
    return manager.quota_status()
