# backend/outreach/routers/notification_routes.py
"""
API endpoints for the notification feed
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import List
import logging

from outreach.routers.deps import get_workflow_manager
from outreach.schemas.campaign import NotificationResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


@router.get("", response_model=List[NotificationResponse])
async def list_recent_notifications(
    limit: int = Query(50, ge=1, le=500),
    manager=Depends(get_workflow_manager)
):
    return manager.store.get_recent_notifications(limit)


@router.get("/unread", response_model=List[NotificationResponse])
async def list_unread_notifications(manager=Depends(get_workflow_manager)):
    return manager.store.get_unread_notifications()


@router.post("/read-all")
async def mark_all_notifications_read(manager=Depends(get_workflow_manager)):
    updated = manager.store.mark_all_notifications_read()
    return {"updated": updated}


@router.post("/{notification_id}/read")
async def mark_notification_read(notification_id: int, manager=Depends(get_workflow_manager)):
    if not manager.store.mark_notification_read(notification_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found"
        )
    return {"id": notification_id, "read": True}
