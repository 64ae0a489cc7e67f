"""Merge orchestration: promote an approved version, then anchor its proof.

Promotion (contract pointer + version flags) is the application-level commit
and happens in one transaction. Anchoring runs only after that transaction is
committed and every lock is released; its failures are recorded on the
version and returned to the caller, never raised.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from clausebase_api.celery_client import get_celery_app
from clausebase_api.errors import InvalidState, NotFound
from clausebase_api.ledger.proof import ProofResult, ProofService
from clausebase_api.locks import version_locks
from clausebase_api.membership.provider import MembershipProvider
from clausebase_api.models import Contract, ContractVersion
from clausebase_api.notifications.service import NotificationService
from clausebase_api.settings import get_settings
from clausebase_api.utils.metrics import merges_completed

logger = logging.getLogger(__name__)
settings = get_settings()

ANCHOR_TASK_NAME = "clausebase_worker.tasks.anchor_version_proof"


@dataclass
class MergeOutcome:
    """Result of an explicit merge."""

    version: ContractVersion
    onchain_proof: ProofResult
    message: str = "Version merged successfully"


class MergeOrchestrator:
    """Promotes versions to current and anchors merge proofs."""

    def __init__(
        self,
        db: Session,
        proof_service: Optional[ProofService] = None,
        notifier: Optional[NotificationService] = None,
        membership: Optional[MembershipProvider] = None,
    ):
        """Initialize merge orchestrator."""
        self.db = db
        self._proof_service = proof_service
        self.notifier = notifier or NotificationService()
        self.membership = membership or MembershipProvider(db)

    @property
    def proof_service(self) -> ProofService:
        if self._proof_service is None:
            self._proof_service = ProofService(self.db)
        return self._proof_service

    def promote(self, contract: Contract, version: ContractVersion, trigger: str) -> bool:
        """Point the contract at the version and mark it merged; no commit.

        Returns False when the version was already merged, which makes a
        second concurrent trigger a no-op.
        """
        if version.merged:
            return False

        contract.current_version = version.id
        contract.updated_at = datetime.utcnow()
        version.merged = True
        version.approval_status = "merged"
        version.merged_at = datetime.utcnow()
        self.db.flush()

        merges_completed.labels(trigger=trigger).inc()
        logger.info(
            f"Version {version.version_number} merged",
            extra={"contract_id": contract.id, "version_id": version.id, "trigger": trigger},
        )
        return True

    def finish(self, version: ContractVersion) -> ProofResult:
        """Post-commit step: anchor proof (inline or via worker) and notify."""
        proof = None
        if settings.anchor_mode == "async":
            proof = self._enqueue_anchor(version)
        if proof is None:
            proof = self.proof_service.anchor_version(version.id)

        self.notifier.notify_merge_completed(version, proof)
        return proof

    def _enqueue_anchor(self, version: ContractVersion) -> Optional[ProofResult]:
        try:
            get_celery_app().send_task(ANCHOR_TASK_NAME, args=[version.id])
        except Exception as e:
            logger.warning(
                f"Failed to enqueue proof anchoring, anchoring inline: {e}",
                extra={"version_id": version.id},
            )
            return None
        return self.proof_service.pending_result(version)

    def merge_version(self, contract_id: str, version_id: str, user_id: str) -> MergeOutcome:
        """Explicitly merge an approved version."""
        contract = self.membership.get_accessible_contract(contract_id, user_id)

        with version_locks.hold(version_id):
            try:
                version = (
                    self.db.query(ContractVersion)
                    .filter(ContractVersion.id == version_id, ContractVersion.contract_id == contract_id)
                    .with_for_update()
                    .first()
                )
                if version is None:
                    raise NotFound("Version not found")
                if version.approval_status != "approved":
                    raise InvalidState("Version must be approved before merging")

                self.promote(contract, version, trigger="explicit")
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        return MergeOutcome(version=version, onchain_proof=self.finish(version))
