"""Daily contact-lookup quota."""

from typing import Optional, Dict, Any
from datetime import datetime, date
import logging

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from outreach.config import settings
from outreach.database import SessionLocal, session_scope
from outreach.models import QuotaLedgerEntry

logger = logging.getLogger(__name__)


class QuotaLedger:
    """
    Day-keyed counter of consumed contact lookups (UTC calendar day).

    can_consume() and consume() are separate calls; two concurrent requests
    may both pass the check before either increments. The increment itself
    is a single UPDATE.
    """

    def __init__(self, session_factory=None, daily_limit: Optional[int] = None, today=None):
        self.session_factory = session_factory or SessionLocal
        self.daily_limit = daily_limit if daily_limit is not None else settings.DAILY_CONTACT_LIMIT
        self._today = today or (lambda: datetime.utcnow().date())

    def today(self) -> date:
        return self._today()

    def today_count(self) -> int:
        with session_scope(self.session_factory) as db:
            entry = db.query(QuotaLedgerEntry).filter(QuotaLedgerEntry.day == self.today()).first()
            return entry.consumed if entry else 0

    def can_consume(self, n: int = 1) -> bool:
        return self.today_count() + n <= self.daily_limit

    def consume(self, n: int = 1) -> int:
        """Increment today's counter by n, creating the row on first use."""
        day = self.today()

        try:
            self._increment(day, n, create=True)
        except IntegrityError:
            # Another writer created today's row first
            self._increment(day, n, create=False)

        return self.today_count()

    def _increment(self, day: date, n: int, create: bool):
        with session_scope(self.session_factory) as db:
            result = db.execute(
                update(QuotaLedgerEntry)
                .where(QuotaLedgerEntry.day == day)
                .values(consumed=QuotaLedgerEntry.consumed + n)
            )
            if result.rowcount == 0 and create:
                db.add(QuotaLedgerEntry(day=day, consumed=n))

    def status(self) -> Dict[str, Any]:
        current = self.today_count()
        return {
            "date": self.today().isoformat(),
            "current": current,
            "limit": self.daily_limit,
            "remaining": max(self.daily_limit - current, 0),
        }
