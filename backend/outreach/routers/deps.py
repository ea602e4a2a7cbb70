"""Shared router dependencies and error mapping."""

import logging
from fastapi import HTTPException, Request, status

from outreach.exceptions import (
    WorkflowError,
    NotFoundError,
    ValidationError,
    QuotaExceededError,
)

logger = logging.getLogger(__name__)


def get_workflow_manager(request: Request):
    """Dependency returning the app-wide WorkflowManager."""
    return request.app.state.workflow_manager


def to_http_exception(error: WorkflowError) -> HTTPException:
    """Map engine exceptions to HTTP responses."""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))

    if isinstance(error, QuotaExceededError):
        return HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail={
                "message": str(error),
                "current": error.current,
                "limit": error.limit,
                "requested": error.requested,
            }
        )

    if isinstance(error, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))

    logger.error(f"Unhandled workflow error: {error}")
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(error))
