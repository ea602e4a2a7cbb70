"""Background task records: create, progress, complete, fail."""

from typing import Optional, Dict, Any, List
from datetime import datetime, timedelta
import logging

from outreach.database import SessionLocal, session_scope
from outreach.models import BackgroundTask, TASK_TYPES

logger = logging.getLogger(__name__)


class TaskTracker:
    """
    Lifecycle records of background work.

    pending -> processing -> completed | failed

    Terminal rows are never modified again; a retry creates a new task.
    """

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or SessionLocal

    def create_task(
        self,
        task_type: str,
        campaign_id: Optional[int],
        company_id: Optional[int] = None,
        total: Optional[int] = None
    ) -> BackgroundTask:
        if task_type not in TASK_TYPES:
            raise ValueError(f"Unknown task type: {task_type}")

        with session_scope(self.session_factory) as db:
            task = BackgroundTask(
                task_type=task_type,
                campaign_id=campaign_id,
                company_id=company_id,
                status="pending",
                progress=0,
                total=total,
            )
            db.add(task)
            db.flush()
            logger.info(f"Created {task_type} task {task.id} (campaign={campaign_id}, company={company_id})")
            return task

    def _load_open_task(self, db, task_id: int, action: str) -> Optional[BackgroundTask]:
        task = db.get(BackgroundTask, task_id)
        if not task:
            logger.warning(f"Cannot {action} task {task_id}: not found")
            return None
        if task.is_terminal:
            logger.warning(f"Ignoring {action} for task {task_id}: already {task.status}")
            return None
        return task

    def set_progress(self, task_id: int, progress: int, total: Optional[int] = None) -> bool:
        with session_scope(self.session_factory) as db:
            task = self._load_open_task(db, task_id, "update progress of")
            if not task:
                return False

            now = datetime.utcnow()
            if task.status == "pending":
                task.started_at = now
            task.status = "processing"
            task.progress = progress
            if total is not None:
                task.total = total
            task.updated_at = now
            return True

    def complete(self, task_id: int, result: Optional[Dict[str, Any]] = None) -> bool:
        with session_scope(self.session_factory) as db:
            task = self._load_open_task(db, task_id, "complete")
            if not task:
                return False

            now = datetime.utcnow()
            task.status = "completed"
            task.result = result
            if task.total is not None:
                task.progress = task.total
            if task.started_at is None:
                task.started_at = now
            task.completed_at = now
            task.updated_at = now
            logger.info(f"Task {task_id} completed")
            return True

    def fail(self, task_id: int, error: str) -> bool:
        with session_scope(self.session_factory) as db:
            task = self._load_open_task(db, task_id, "fail")
            if not task:
                return False

            now = datetime.utcnow()
            task.status = "failed"
            task.error_message = error
            task.completed_at = now
            task.updated_at = now
            logger.warning(f"Task {task_id} failed: {error}")
            return True

    # ========================================================================
    # READ ACCESSORS
    # ========================================================================

    def get_task(self, task_id: int) -> Optional[BackgroundTask]:
        with session_scope(self.session_factory) as db:
            return db.get(BackgroundTask, task_id)

    def get_tasks_by_campaign(self, campaign_id: int) -> List[BackgroundTask]:
        with session_scope(self.session_factory) as db:
            return (
                db.query(BackgroundTask)
                .filter(BackgroundTask.campaign_id == campaign_id)
                .order_by(BackgroundTask.created_at.desc(), BackgroundTask.id.desc())
                .all()
            )

    def get_active_tasks(self) -> List[BackgroundTask]:
        with session_scope(self.session_factory) as db:
            return (
                db.query(BackgroundTask)
                .filter(BackgroundTask.status.in_(["pending", "processing"]))
                .order_by(BackgroundTask.created_at.desc(), BackgroundTask.id.desc())
                .all()
            )

    def get_recent_tasks(self, limit: int = 50) -> List[BackgroundTask]:
        with session_scope(self.session_factory) as db:
            return (
                db.query(BackgroundTask)
                .order_by(BackgroundTask.created_at.desc(), BackgroundTask.id.desc())
                .limit(limit)
                .all()
            )

    # ========================================================================
    # SUPERVISION
    # ========================================================================

    def fail_stale(self, threshold: timedelta) -> List[int]:
        """
        Fail pending/processing tasks not updated within threshold.

        Work dispatched in-memory is lost on restart; this surfaces those
        orphans so the user can retry.
        """
        cutoff = datetime.utcnow() - threshold
        minutes = int(threshold.total_seconds() // 60)

        with session_scope(self.session_factory) as db:
            stale = (
                db.query(BackgroundTask)
                .filter(
                    BackgroundTask.status.in_(["pending", "processing"]),
                    BackgroundTask.updated_at < cutoff
                )
                .all()
            )

            now = datetime.utcnow()
            for task in stale:
                task.status = "failed"
                task.error_message = f"Task made no progress for {minutes} minutes; please retry"
                task.completed_at = now
                task.updated_at = now

            if stale:
                logger.warning(f"Marked {len(stale)} stale tasks as failed")
            return [task.id for task in stale]
