"""Celery tasks for async operations."""

import logging
from typing import Optional

from celery import Task
from sqlalchemy.orm import Session

from clausebase_worker.celery_app import celery_app
from clausebase_worker.db import get_db
from clausebase_worker.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()


class DatabaseTask(Task):
    """Task with database session."""

    _db: Optional[Session] = None

    @property
    def db(self) -> Session:
        """Get database session."""
        if self._db is None:
            self._db = next(get_db())
        return self._db

    def after_return(self, *args, **kwargs):
        """Close database session after task."""
        if self._db:
            self._db.close()
            self._db = None


class AnchorPending(Exception):
    """Raised to trigger a retry when anchoring did not produce a transaction."""


@celery_app.task(
    base=DatabaseTask,
    bind=True,
    max_retries=settings.anchor_task_max_retries,
    autoretry_for=(AnchorPending,),
    retry_backoff=True,
    retry_backoff_max=settings.anchor_task_retry_backoff_max,
    retry_jitter=True,
)
def anchor_version_proof(self, version_id: str, correlation_id: Optional[str] = None):
    """Anchor a merged version's proof out of band.

    The merge is already committed by the API; failures are recorded on the
    version by ``ProofService`` and retried here with backoff.
    """
    from clausebase_api.ledger.proof import ProofService

    log_extra = {
        "task": "anchor_version_proof",
        "version_id": version_id,
        "correlation_id": correlation_id,
    }

    result = ProofService(self.db).anchor_version(version_id)
    if result.tx_hash:
        logger.info(f"Proof anchored: {result.tx_hash}", extra=log_extra)
        return result.to_dict()

    logger.warning(f"Proof anchoring failed: {result.error}", extra=log_extra)
    if self.request.retries >= self.max_retries:
        # Left for the reconcile-anchors command
        return result.to_dict()
    raise AnchorPending(result.error)


@celery_app.task(
    bind=True,
    max_retries=3,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
)
def deliver_notification(self, event_type: str, payload: dict, correlation_id: Optional[str] = None):
    """Deliver a notification webhook with automatic retries."""
    from clausebase_api.notifications.service import NotificationService

    log_extra = {
        "task": "deliver_notification",
        "event_type": event_type,
        "correlation_id": correlation_id,
    }

    status_code = NotificationService().deliver(event_type, payload)
    logger.info(f"Notification delivered with status {status_code}", extra=log_extra)
    return status_code
