"""Retry policies for failed company enrichment."""

from abc import ABC, abstractmethod
from typing import Optional

from outreach.config import settings
from outreach.models import Company


class RetryPolicy(ABC):
    """Decides when a failed company enrichment may run again."""

    @abstractmethod
    def should_retry_now(self, company: Company) -> bool:
        """Retry immediately when a new job touches this company?"""

    @abstractmethod
    def eligible_for_sweep(self, company: Company) -> bool:
        """Include this company in the bulk retry sweep?"""


class RetryOnTouchPolicy(RetryPolicy):
    """
    Retry failed companies immediately when touched, up to max_attempts.

    Manual retry bypasses the policy entirely.
    """

    def __init__(self, max_attempts: Optional[int] = None):
        self.max_attempts = max_attempts or settings.MAX_ENRICHMENT_ATTEMPTS

    def _under_ceiling(self, company: Company) -> bool:
        return company.enrichment_status == "failed" and (company.enrichment_attempts or 0) < self.max_attempts

    def should_retry_now(self, company: Company) -> bool:
        return self._under_ceiling(company)

    def eligible_for_sweep(self, company: Company) -> bool:
        return self._under_ceiling(company)
