"""Proof anchoring for merged versions."""

import hashlib
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from clausebase_api.errors import InvalidState, NotFound
from clausebase_api.ledger.anchor import LedgerAnchor, LocalLedgerAnchor, get_ledger_anchor
from clausebase_api.ledger.service import LedgerService
from clausebase_api.models import ContractVersion, User
from clausebase_api.storage.service import ContentStore, ContentStoreError, get_content_store
from clausebase_api.utils.metrics import anchor_attempts

logger = logging.getLogger(__name__)


def generate_content_hash(content: str) -> str:
    """SHA-256 hex digest of version content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


@dataclass
class ProofResult:
    """Outcome of anchoring one version."""

    content_hash: Optional[str]
    content_ref: Optional[str]
    tx_hash: Optional[str]
    error: Optional[str] = None
    status: str = "anchored"  # anchored, failed, pending

    def to_dict(self) -> dict:
        return asdict(self)


class ProofService:
    """Computes, anchors and records merge proofs."""

    def __init__(
        self,
        db: Session,
        anchor: Optional[LedgerAnchor] = None,
        content_store: Optional[ContentStore] = None,
    ):
        """Initialize proof service."""
        self.db = db
        self.anchor = anchor or get_ledger_anchor(db)
        self.content_store = content_store

    def _store_for(self, version: ContractVersion) -> ContentStore:
        if self.content_store is not None and self.content_store.kind == version.content_store:
            return self.content_store
        return get_content_store(self.db, version.content_store)

    def _load_version(self, version_id: str) -> ContractVersion:
        version = self.db.get(ContractVersion, version_id)
        if version is None:
            raise NotFound(f"Version {version_id} not found")
        return version

    def compute_hash(self, version: ContractVersion) -> str:
        """Fetch version content and hash it."""
        content = self._store_for(version).get_text(version.content_ref)
        return generate_content_hash(content)

    def pending_result(self, version: ContractVersion) -> ProofResult:
        """Proof placeholder returned when anchoring runs out of band."""
        try:
            content_hash = version.content_hash or self.compute_hash(version)
        except ContentStoreError as e:
            return ProofResult(None, version.content_ref, None, error=str(e), status="failed")
        return ProofResult(content_hash, version.content_ref, None, status="pending")

    def anchor_version(self, version_id: str) -> ProofResult:
        """Anchor a merged version's proof; never raises for anchoring failures."""
        version = self._load_version(version_id)
        if not version.merged:
            raise InvalidState(f"Version {version_id} is not merged")

        if version.onchain_tx_hash:
            return ProofResult(version.content_hash, version.content_ref, version.onchain_tx_hash)

        log_extra = {"version_id": version.id, "contract_id": version.contract_id}

        try:
            content_hash = self.compute_hash(version)
        except ContentStoreError as e:
            logger.error(f"Cannot hash content for proof: {e}", extra=log_extra)
            anchor_attempts.labels(outcome="content_error").inc()
            # Keep a hash recorded by an earlier attempt
            self._record(version, version.content_hash, None, str(e))
            return ProofResult(version.content_hash, version.content_ref, None, error=str(e), status="failed")

        author = self.db.get(User, version.author_id)
        attributed_identity = author.wallet_address if author else None

        try:
            tx_hash = self.anchor.anchor(content_hash, attributed_identity, f"contract:{version.contract_id}")
        except Exception as e:
            # Merge is already committed; keep the local hash and report the error
            logger.warning(f"Error storing contract proof: {e}", exc_info=True, extra=log_extra)
            anchor_attempts.labels(outcome="failed").inc()
            self.db.rollback()
            version = self._load_version(version_id)
            self._record(version, content_hash, None, str(e))
            return ProofResult(content_hash, version.content_ref, None, error=str(e), status="failed")

        anchor_attempts.labels(outcome="anchored").inc()
        self._record(version, content_hash, tx_hash, None)
        logger.info(f"Proof anchored for version {version.id}: {tx_hash}", extra=log_extra)
        return ProofResult(content_hash, version.content_ref, tx_hash)

    def _record(self, version, content_hash, tx_hash, error):
        version.content_hash = content_hash
        version.onchain_tx_hash = tx_hash
        version.anchor_error = error
        version.anchored_at = datetime.utcnow() if tx_hash else None
        self.db.commit()

    def unanchored_versions(self, limit: int = 100) -> list[ContractVersion]:
        """Merged versions still missing a transaction id."""
        return (
            self.db.query(ContractVersion)
            .filter(
                ContractVersion.merged == True,  # noqa: E712
                ContractVersion.onchain_tx_hash.is_(None),
            )
            .order_by(ContractVersion.merged_at.asc())
            .limit(limit)
            .all()
        )

    def reconcile(self, limit: int = 100) -> list[ProofResult]:
        """Retry anchoring for merged versions without a transaction id."""
        version_ids = [version.id for version in self.unanchored_versions(limit)]
        return [self.anchor_version(version_id) for version_id in version_ids]

    def verify_proof(self, version_id: str) -> dict:
        """Check stored proof against current content and, for local anchors, the chain."""
        version = self._load_version(version_id)
        if not version.content_hash:
            return {"valid": False, "reason": "no proof recorded"}

        current_hash = self.compute_hash(version)
        if current_hash != version.content_hash:
            return {"valid": False, "reason": "content hash mismatch"}

        if isinstance(self.anchor, LocalLedgerAnchor) and version.onchain_tx_hash:
            ledger = LedgerService(self.db)
            event = ledger.find_event(version.onchain_tx_hash)
            if event is None or event.payload_json.get("content_hash") != current_hash:
                return {"valid": False, "reason": "ledger record missing or mismatched"}
            chain_valid, error = ledger.verify_chain(event.stream)
            if not chain_valid:
                return {"valid": False, "reason": error}

        return {"valid": True, "reason": None, "tx_hash": version.onchain_tx_hash}
