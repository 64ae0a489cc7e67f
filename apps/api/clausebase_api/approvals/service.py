"""Approval voting on contract versions."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from clausebase_api.approvals.state import VoteTally, tally_votes
from clausebase_api.errors import Forbidden, InvalidState, NotFound, ValidationError
from clausebase_api.ledger.proof import ProofResult
from clausebase_api.locks import version_locks
from clausebase_api.membership.provider import MembershipProvider
from clausebase_api.merge.orchestrator import MergeOrchestrator
from clausebase_api.models import ContractApproval, ContractVersion
from clausebase_api.models.version import VOTES
from clausebase_api.utils.metrics import votes_cast

logger = logging.getLogger(__name__)

AUTHOR_APPROVAL_COMMENT = "Auto-approved by author"


@dataclass
class VoteOutcome:
    """Result of a vote submission."""

    approval: ContractApproval
    approval_count: int
    rejection_count: int
    status: str
    merged: bool = False
    onchain_proof: Optional[ProofResult] = None


class ApprovalService:
    """Per-version voting ledger and auto-merge trigger."""

    def __init__(
        self,
        db: Session,
        merge: Optional[MergeOrchestrator] = None,
        membership: Optional[MembershipProvider] = None,
    ):
        """Initialize approval service."""
        self.db = db
        self.membership = membership or MembershipProvider(db)
        self.merge = merge or MergeOrchestrator(db, membership=self.membership)

    def _lock_version(self, contract_id: str, version_id: str) -> ContractVersion:
        version = (
            self.db.query(ContractVersion)
            .filter(ContractVersion.id == version_id, ContractVersion.contract_id == contract_id)
            .with_for_update()
            .first()
        )
        if version is None:
            raise NotFound("Version not found")
        return version

    def _upsert(self, version_id: str, user_id: str, vote: str, comment: Optional[str]) -> ContractApproval:
        approval = (
            self.db.query(ContractApproval)
            .filter(ContractApproval.version_id == version_id, ContractApproval.user_id == user_id)
            .first()
        )
        if approval is None:
            approval = ContractApproval(version_id=version_id, user_id=user_id, vote=vote, comment=comment)
            self.db.add(approval)
        else:
            approval.vote = vote
            approval.comment = comment
            approval.created_at = datetime.utcnow()
        self.db.flush()
        return approval

    def recompute(self, version: ContractVersion) -> VoteTally:
        """Recount votes against current membership and store status/score."""
        votes = [
            row.vote
            for row in self.db.query(ContractApproval.vote).filter(ContractApproval.version_id == version.id)
        ]
        tally = tally_votes(votes, self.membership.count_members(version.contract_id))
        version.approval_status = tally.status
        version.approval_score = tally.approval_count
        return tally

    def record_author_approval(self, version: ContractVersion) -> VoteTally:
        """Record the author's implicit approve vote on a new version."""
        self._upsert(version.id, version.author_id, "approve", AUTHOR_APPROVAL_COMMENT)
        return self.recompute(version)

    def submit_vote(
        self,
        contract_id: str,
        version_id: str,
        user_id: str,
        vote: str,
        comment: Optional[str] = None,
    ) -> VoteOutcome:
        """Upsert a member's vote and merge the version on unanimity."""
        contract = self.membership.get_accessible_contract(contract_id, user_id)

        if not self.membership.is_member(contract_id, user_id):
            raise Forbidden("Not a member of this contract")
        if vote not in VOTES:
            raise ValidationError("Valid vote (approve/reject) required")

        with version_locks.hold(version_id):
            try:
                version = self._lock_version(contract_id, version_id)
                if version.author_id == user_id:
                    raise Forbidden(
                        "Your changes are automatically approved. You cannot vote on your own changes."
                    )
                if version.merged:
                    raise InvalidState("Version is already merged")

                approval = self._upsert(version.id, user_id, vote, comment)
                tally = self.recompute(version)
                promoted = tally.should_merge and self.merge.promote(contract, version, trigger="auto")
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        votes_cast.labels(vote=vote).inc()
        logger.info(
            "Vote recorded",
            extra={
                "contract_id": contract_id,
                "version_id": version_id,
                "vote": vote,
                "approval_count": tally.approval_count,
                "total_members": tally.total_members,
            },
        )

        outcome = VoteOutcome(
            approval=approval,
            approval_count=tally.approval_count,
            rejection_count=tally.rejection_count,
            status=version.approval_status,
            merged=version.merged,
        )
        if promoted:
            outcome.onchain_proof = self.merge.finish(version)
        return outcome

    def list_approvals(self, contract_id: str, version_id: str, user_id: str) -> dict:
        """Votes on a version with aggregate counts."""
        self.membership.get_accessible_contract(contract_id, user_id)
        version = (
            self.db.query(ContractVersion)
            .filter(ContractVersion.id == version_id, ContractVersion.contract_id == contract_id)
            .first()
        )
        if version is None:
            raise NotFound("Version not found")

        approvals = (
            self.db.query(ContractApproval)
            .filter(ContractApproval.version_id == version_id)
            .order_by(ContractApproval.created_at.desc())
            .all()
        )
        return {
            "approvals": approvals,
            "status": version.approval_status,
            "approval_count": sum(1 for a in approvals if a.vote == "approve"),
            "rejection_count": sum(1 for a in approvals if a.vote == "reject"),
        }
