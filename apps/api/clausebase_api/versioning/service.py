"""Append-only version chain per contract."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clausebase_api.approvals.service import ApprovalService
from clausebase_api.errors import InvalidState, NotFound, ValidationError
from clausebase_api.ledger.proof import ProofResult
from clausebase_api.locks import contract_locks
from clausebase_api.membership.provider import MembershipProvider
from clausebase_api.merge.orchestrator import MergeOrchestrator
from clausebase_api.models import Contract, ContractDiff, ContractVersion
from clausebase_api.models.user import new_id
from clausebase_api.notifications.service import NotificationService
from clausebase_api.settings import get_settings
from clausebase_api.storage.service import ContentStore, get_content_store
from clausebase_api.utils.metrics import version_append_conflicts, versions_created
from clausebase_api.versioning.diff import DiffEntry, compute_diff

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class VersionResult:
    """A version with its resolved content."""

    version: ContractVersion
    content: str
    onchain_proof: Optional[ProofResult] = None


class VersionService:
    """Creates and reads versions; serializes appends per contract."""

    def __init__(
        self,
        db: Session,
        content_store: Optional[ContentStore] = None,
        merge: Optional[MergeOrchestrator] = None,
        notifier: Optional[NotificationService] = None,
        membership: Optional[MembershipProvider] = None,
    ):
        """Initialize version service."""
        self.db = db
        self.content_store = content_store or get_content_store(db)
        self.notifier = notifier or NotificationService()
        self.membership = membership or MembershipProvider(db)
        self.merge = merge or MergeOrchestrator(db, notifier=self.notifier, membership=self.membership)
        self.approvals = ApprovalService(db, merge=self.merge, membership=self.membership)

    def resolve_content(self, version: ContractVersion) -> str:
        """Load version content from the store that holds it."""
        store = self.content_store
        if store.kind != version.content_store:
            store = get_content_store(self.db, version.content_store)
        return store.get_text(version.content_ref)

    def _get_tip(self, contract_id: str) -> Optional[ContractVersion]:
        return (
            self.db.query(ContractVersion)
            .filter(ContractVersion.contract_id == contract_id)
            .order_by(ContractVersion.version_number.desc())
            .with_for_update()
            .first()
        )

    def _append(self, contract: Contract, author_id: str, content: str, commit_message: str):
        tip = self._get_tip(contract.id)
        reference = self.content_store.put_text(content)
        old_content = self.resolve_content(tip) if tip else ""
        diff = compute_diff(old_content, content)

        version = ContractVersion(
            id=new_id(),
            contract_id=contract.id,
            version_number=tip.version_number + 1 if tip else 1,
            parent_version_id=tip.id if tip else None,
            author_id=author_id,
            content_ref=reference,
            content_store=self.content_store.kind,
            diff_summary=diff.summary,
            commit_message=commit_message or "",
            merged=False,
            approval_status="pending",
            approval_score=0,
        )
        self.db.add(version)
        self.db.flush()

        if tip:
            self.db.add(
                ContractDiff(
                    version_from_id=tip.id,
                    version_to_id=version.id,
                    diff_json=diff.to_json(),
                    summary=diff.summary,
                )
            )

        tally = self.approvals.record_author_approval(version)
        promoted = tally.should_merge and self.merge.promote(contract, version, trigger="auto")
        return version, promoted

    def create_version(
        self,
        contract_id: str,
        author_id: str,
        content: str,
        commit_message: str = "",
    ) -> VersionResult:
        """Append a new version authored (and implicitly approved) by author_id."""
        if not content:
            raise ValidationError("Content required")

        contract = self.membership.get_accessible_contract(contract_id, author_id)

        max_retries = max(1, settings.version_create_max_retries)
        for attempt in range(1, max_retries + 1):
            with contract_locks.hold(contract_id):
                try:
                    version, promoted = self._append(contract, author_id, content, commit_message)
                    self.db.commit()
                    break
                except IntegrityError:
                    self.db.rollback()
                    version_append_conflicts.inc()
                    logger.warning(
                        f"Version number conflict on attempt {attempt}",
                        extra={"contract_id": contract_id},
                    )
                    if attempt == max_retries:
                        raise InvalidState("Concurrent version submission conflict, please retry")
                except Exception:
                    self.db.rollback()
                    raise

        versions_created.inc()
        logger.info(
            f"Created version {version.version_number}",
            extra={"contract_id": contract_id, "version_id": version.id},
        )
        self.notifier.notify_version_created(version)

        result = VersionResult(version=version, content=content)
        if promoted:
            result.onchain_proof = self.merge.finish(version)
        return result

    def _get_scoped(self, contract_id: str, version_id: str) -> ContractVersion:
        version = (
            self.db.query(ContractVersion)
            .filter(ContractVersion.id == version_id, ContractVersion.contract_id == contract_id)
            .first()
        )
        if version is None:
            raise NotFound("Version not found")
        return version

    def get_version(self, contract_id: str, version_id: str, user_id: str) -> VersionResult:
        self.membership.get_accessible_contract(contract_id, user_id)
        version = self._get_scoped(contract_id, version_id)
        return VersionResult(version=version, content=self.resolve_content(version))

    def list_versions(self, contract_id: str, user_id: str) -> list[ContractVersion]:
        self.membership.get_accessible_contract(contract_id, user_id)
        return (
            self.db.query(ContractVersion)
            .filter(ContractVersion.contract_id == contract_id)
            .order_by(ContractVersion.version_number.desc())
            .all()
        )

    def get_history(self, contract_id: str, user_id: str) -> list[ContractVersion]:
        """Merged versions, newest first."""
        self.membership.get_accessible_contract(contract_id, user_id)
        return (
            self.db.query(ContractVersion)
            .filter(
                ContractVersion.contract_id == contract_id,
                ContractVersion.merged == True,  # noqa: E712
            )
            .order_by(ContractVersion.version_number.desc())
            .all()
        )

    def get_current_content(self, contract_id: str, user_id: str) -> Optional[str]:
        """Content of the contract's canonical version, if any has been merged."""
        contract = self.membership.get_accessible_contract(contract_id, user_id)
        if not contract.current_version:
            return None
        return self.resolve_content(self._get_scoped(contract_id, contract.current_version))

    def get_diff(self, contract_id: str, from_id: str, to_id: str, user_id: str) -> dict:
        """Diff between two versions of a contract, older first."""
        if not from_id or not to_id:
            raise ValidationError("Both from and to version IDs required")
        if from_id == to_id:
            raise ValidationError("from and to must be different versions")

        self.membership.get_accessible_contract(contract_id, user_id)
        versions = (
            self.db.query(ContractVersion)
            .filter(
                ContractVersion.id.in_([from_id, to_id]),
                ContractVersion.contract_id == contract_id,
            )
            .order_by(ContractVersion.version_number.asc())
            .all()
        )
        if len(versions) != 2:
            raise NotFound("Versions not found")
        older, newer = versions

        cached = (
            self.db.query(ContractDiff)
            .filter(ContractDiff.version_from_id == older.id, ContractDiff.version_to_id == newer.id)
            .first()
        )
        if cached is not None:
            entries = [DiffEntry.from_dict(item) for item in cached.diff_json]
            summary = cached.summary
        else:
            diff = compute_diff(self.resolve_content(older), self.resolve_content(newer))
            entries = diff.entries
            summary = diff.summary

        return {"from": older, "to": newer, "entries": entries, "summary": summary}
