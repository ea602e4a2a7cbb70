"""Workflow engine exceptions."""


class WorkflowError(Exception):
    """Base class for errors raised by the campaign workflow engine."""


class NotFoundError(WorkflowError):
    """Requested campaign, company, prospect or task does not exist."""

    def __init__(self, entity: str, identifier):
        self.entity = entity
        self.identifier = identifier
        super().__init__(f"{entity} {identifier} not found")


class ValidationError(WorkflowError):
    """Request rejected before any background work was started."""


class QuotaExceededError(WorkflowError):
    """Daily contact-lookup quota would be exceeded by the request."""

    def __init__(self, current: int, limit: int, requested: int = 0):
        self.current = current
        self.limit = limit
        self.requested = requested
        super().__init__(
            f"Daily email collection limit reached ({current}/{limit}). Try again tomorrow."
        )


class EnrichmentError(WorkflowError):
    """Company enricher could not produce a profile."""


class DirectoryServiceError(WorkflowError):
    """People-search / contact-lookup provider call failed."""
