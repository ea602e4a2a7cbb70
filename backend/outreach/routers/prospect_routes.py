# backend/outreach/routers/prospect_routes.py
"""
API endpoints for individual prospects
"""

from fastapi import APIRouter, Depends
import logging

from outreach.exceptions import WorkflowError
from outreach.routers.deps import get_workflow_manager, to_http_exception
from outreach.schemas.campaign import ProspectResponse, ProspectSelectionUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/prospects", tags=["prospects"])


@router.get("/{prospect_id}", response_model=ProspectResponse)
async def get_prospect(prospect_id: int, manager=Depends(get_workflow_manager)):
    try:
        return manager.get_prospect(prospect_id)
    except WorkflowError as e:
        raise to_http_exception(e)


@router.patch("/{prospect_id}/selection", response_model=ProspectResponse)
async def set_prospect_selection(
    prospect_id: int,
    data: ProspectSelectionUpdate,
    manager=Depends(get_workflow_manager)
):
    """Manually select or deselect a prospect for contact enrichment."""
    try:
        return manager.set_prospect_selection(prospect_id, data.selected)
    except WorkflowError as e:
        raise to_http_exception(e)
