"""Fire-and-forget notifications for contract events."""

import logging
import time
from typing import Optional

import httpx

from clausebase_api.celery_client import get_celery_app
from clausebase_api.settings import get_settings
from clausebase_api.utils.metrics import notifications_enqueued

settings = get_settings()
logger = logging.getLogger(__name__)

DELIVER_TASK_NAME = "clausebase_worker.tasks.deliver_notification"


class NotificationService:
    """Enqueues notification deliveries; never raises to the caller."""

    def __init__(self, webhook_url: Optional[str] = None):
        """Initialize notification service."""
        self.webhook_url = webhook_url or settings.notification_webhook_url

    def _enqueue(self, event_type: str, payload: dict) -> None:
        if not self.webhook_url:
            logger.debug(f"No notification webhook configured, dropping {event_type}")
            return
        try:
            get_celery_app().send_task(DELIVER_TASK_NAME, args=[event_type, payload])
            notifications_enqueued.labels(status="enqueued").inc()
        except Exception as e:
            notifications_enqueued.labels(status="failed").inc()
            logger.warning(f"Failed to enqueue notification delivery: {e}", exc_info=True)

    def notify_version_created(self, version) -> None:
        self._enqueue(
            "version.created",
            {
                "contract_id": version.contract_id,
                "version_id": version.id,
                "version_number": version.version_number,
                "author_id": version.author_id,
                "diff_summary": version.diff_summary,
            },
        )

    def notify_merge_completed(self, version, proof) -> None:
        self._enqueue(
            "version.merged",
            {
                "contract_id": version.contract_id,
                "version_id": version.id,
                "version_number": version.version_number,
                "onchain_proof": proof.to_dict() if proof else None,
            },
        )

    def notify_invitation(self, invitation, contract_title: str, inviter_name: str, invitation_link: str) -> None:
        """Ask the delivery endpoint to email an invitation link."""
        self._enqueue(
            "contract.invitation",
            {
                "invitation_id": invitation.id,
                "contract_id": invitation.contract_id,
                "contract_title": contract_title,
                "email": invitation.email,
                "inviter_name": inviter_name,
                "invitation_link": invitation_link,
                "expires_at": invitation.expires_at.isoformat(),
            },
        )

    def deliver(self, event_type: str, payload: dict) -> int:
        """POST a notification (called by worker); raises so the task retries."""
        if not self.webhook_url:
            raise ValueError("NOTIFICATION_WEBHOOK_URL not set")

        headers = {
            "Content-Type": "application/json",
            "X-Clausebase-Event": event_type,
            "X-Clausebase-Timestamp": str(int(time.time())),
        }
        with httpx.Client(timeout=settings.notification_timeout_seconds) as client:
            response = client.post(
                self.webhook_url,
                json={"event": event_type, "data": payload},
                headers=headers,
            )
            response.raise_for_status()
        return response.status_code
