"""Tests for merge orchestration and proof anchoring."""

from unittest.mock import MagicMock, patch

import pytest

from clausebase_api.approvals.service import ApprovalService
from clausebase_api.errors import InvalidState, NotFound
from clausebase_api.ledger.anchor import LedgerAnchor, build_proof_memo
from clausebase_api.ledger.errors import LedgerNetworkError, SignerNotConfigured
from clausebase_api.ledger.proof import ProofService, generate_content_hash
from clausebase_api.merge.orchestrator import ANCHOR_TASK_NAME, MergeOrchestrator
from clausebase_api.models import ContractVersion
from clausebase_api.storage.service import ContentStore, ContentUnavailable
from clausebase_api.versioning.service import VersionService


class RecordingAnchor(LedgerAnchor):
    """Anchor that records calls and returns a fixed transaction id."""

    provider = "recording"

    def __init__(self, tx_id="tx-123"):
        self.tx_id = tx_id
        self.calls = []

    def anchor(self, content_hash, attributed_identity, stream):
        self.calls.append((content_hash, attributed_identity, stream))
        return self.tx_id


class FailingAnchor(LedgerAnchor):
    provider = "failing"

    def __init__(self, error):
        self.error = error

    def anchor(self, content_hash, attributed_identity, stream):
        raise self.error


class UnreadableStore(ContentStore):
    """Inline-kind store whose reads fail."""

    kind = "inline"

    def put(self, blob):
        raise ContentUnavailable("Storage client not available")

    def get(self, reference):
        raise ContentUnavailable("Storage client not available")


def build_services(db, anchor):
    merge = MergeOrchestrator(db, proof_service=ProofService(db, anchor=anchor))
    return VersionService(db, merge=merge), ApprovalService(db, merge=merge), merge


def test_merge_attributes_proof_to_author_wallet(db, contract, alice, bob, carol):
    anchor = RecordingAnchor()
    versions, approvals, _ = build_services(db, anchor)
    version = versions.create_version(contract.id, alice.id, "Clause 1").version

    approvals.submit_vote(contract.id, version.id, bob.id, "approve")
    outcome = approvals.submit_vote(contract.id, version.id, carol.id, "approve")

    expected_hash = generate_content_hash("Clause 1")
    assert anchor.calls == [(expected_hash, alice.wallet_address, f"contract:{contract.id}")]
    assert outcome.onchain_proof.tx_hash == "tx-123"
    assert outcome.onchain_proof.content_hash == expected_hash

    db.refresh(version)
    assert version.onchain_tx_hash == "tx-123"
    assert version.content_hash == expected_hash
    assert version.anchored_at is not None
    assert version.anchor_error is None


def test_author_without_wallet_is_attributed_as_unknown(db, make_contract, bob):
    anchor = RecordingAnchor()
    contract = make_contract(bob)
    versions, _, _ = build_services(db, anchor)

    versions.create_version(contract.id, bob.id, "Terms")

    assert anchor.calls[0][1] is None
    assert build_proof_memo("abc", None, prefix="ClausebaseProof") == "ClausebaseProof:abc:CreatedBy:unknown"


@pytest.mark.parametrize(
    "error",
    [
        LedgerNetworkError("Ledger gateway timed out after 20.0s"),
        SignerNotConfigured("LEDGER_SIGNER_CREDENTIAL not set"),
        RuntimeError("unexpected client failure"),
    ],
)
def test_anchor_failure_does_not_undo_merge(db, contract, alice, bob, carol, error):
    versions, approvals, _ = build_services(db, FailingAnchor(error))
    version = versions.create_version(contract.id, alice.id, "Clause 1").version
    approvals.submit_vote(contract.id, version.id, bob.id, "approve")

    outcome = approvals.submit_vote(contract.id, version.id, carol.id, "approve")

    db.refresh(contract)
    db.refresh(version)
    assert outcome.merged is True
    assert contract.current_version == version.id
    assert version.merged is True
    assert outcome.onchain_proof.tx_hash is None
    assert outcome.onchain_proof.status == "failed"
    assert str(error) in outcome.onchain_proof.error
    assert version.onchain_tx_hash is None
    assert version.content_hash == generate_content_hash("Clause 1")
    assert version.anchor_error == str(error)


def test_explicit_merge_requires_approved_status(db, contract, bob):
    versions, _, merge = build_services(db, RecordingAnchor())
    version = versions.create_version(contract.id, bob.id, "Clause 1").version

    version.approval_status = "pending"
    db.commit()

    with pytest.raises(InvalidState):
        merge.merge_version(contract.id, version.id, bob.id)

    db.refresh(contract)
    assert contract.current_version is None


def test_explicit_merge_of_approved_version(db, contract, alice, bob):
    anchor = RecordingAnchor()
    versions, _, merge = build_services(db, anchor)
    version = versions.create_version(contract.id, alice.id, "Clause 1").version
    assert version.approval_status == "approved"

    outcome = merge.merge_version(contract.id, version.id, bob.id)

    db.refresh(contract)
    assert outcome.message == "Version merged successfully"
    assert outcome.onchain_proof.tx_hash == "tx-123"
    assert contract.current_version == version.id
    assert outcome.version.approval_status == "merged"
    # Attribution goes to the author, not the merger
    assert anchor.calls[0][1] == alice.wallet_address


def test_merging_twice_is_rejected_without_reanchoring(db, contract, alice, bob):
    anchor = RecordingAnchor()
    versions, _, merge = build_services(db, anchor)
    version = versions.create_version(contract.id, bob.id, "Clause 1").version
    merge.merge_version(contract.id, version.id, alice.id)

    with pytest.raises(InvalidState):
        merge.merge_version(contract.id, version.id, alice.id)
    assert len(anchor.calls) == 1


def test_promote_is_idempotent(db, contract, alice):
    versions, _, merge = build_services(db, RecordingAnchor())
    version = versions.create_version(contract.id, alice.id, "Clause 1").version

    assert merge.promote(contract, version, trigger="explicit") is True
    first_merged_at = version.merged_at
    assert merge.promote(contract, version, trigger="auto") is False
    assert version.merged_at == first_merged_at


def test_merge_unknown_version(db, contract, alice):
    _, _, merge = build_services(db, RecordingAnchor())
    with pytest.raises(NotFound):
        merge.merge_version(contract.id, "missing", alice.id)


def test_async_mode_enqueues_anchoring(db, make_contract, alice):
    contract = make_contract(alice)
    anchor = RecordingAnchor()
    versions, _, _ = build_services(db, anchor)
    mock_celery = MagicMock()

    with patch("clausebase_api.merge.orchestrator.settings.anchor_mode", "async"), \
         patch("clausebase_api.merge.orchestrator.get_celery_app", return_value=mock_celery):
        result = versions.create_version(contract.id, alice.id, "Solo terms")

    mock_celery.send_task.assert_called_once_with(ANCHOR_TASK_NAME, args=[result.version.id])
    assert anchor.calls == []
    assert result.onchain_proof.status == "pending"
    assert result.onchain_proof.content_hash == generate_content_hash("Solo terms")
    assert result.version.merged is True


def test_async_mode_falls_back_inline_when_broker_is_down(db, make_contract, alice):
    contract = make_contract(alice)
    anchor = RecordingAnchor()
    versions, _, _ = build_services(db, anchor)
    mock_celery = MagicMock()
    mock_celery.send_task.side_effect = ConnectionError("Broker connection failed")

    with patch("clausebase_api.merge.orchestrator.settings.anchor_mode", "async"), \
         patch("clausebase_api.merge.orchestrator.get_celery_app", return_value=mock_celery):
        result = versions.create_version(contract.id, alice.id, "Solo terms")

    assert len(anchor.calls) == 1
    assert result.onchain_proof.tx_hash == "tx-123"


def test_reconcile_retries_failed_anchors(db, make_contract, alice):
    contract = make_contract(alice)
    versions, _, _ = build_services(db, FailingAnchor(LedgerNetworkError("down")))
    version = versions.create_version(contract.id, alice.id, "Solo terms").version
    assert version.onchain_tx_hash is None

    proofs = ProofService(db, anchor=RecordingAnchor("tx-retry"))
    assert [v.id for v in proofs.unanchored_versions()] == [version.id]

    results = proofs.reconcile()

    assert [r.tx_hash for r in results] == ["tx-retry"]
    db.refresh(version)
    assert version.onchain_tx_hash == "tx-retry"
    assert version.anchor_error is None
    assert proofs.unanchored_versions() == []


def test_reconcile_keeps_recorded_hash_when_content_is_unreadable(db, make_contract, alice):
    contract = make_contract(alice)
    versions, _, _ = build_services(db, FailingAnchor(LedgerNetworkError("down")))
    version = versions.create_version(contract.id, alice.id, "Solo terms").version
    expected_hash = generate_content_hash("Solo terms")
    assert version.content_hash == expected_hash

    proofs = ProofService(db, anchor=RecordingAnchor("tx-retry"), content_store=UnreadableStore())
    results = proofs.reconcile()

    assert results[0].status == "failed"
    assert results[0].content_hash == expected_hash
    db.refresh(version)
    assert version.content_hash == expected_hash
    assert version.onchain_tx_hash is None
    assert version.anchor_error == "Storage client not available"


def test_anchor_version_requires_merge(db, contract, alice):
    version = VersionService(db).create_version(contract.id, alice.id, "Clause 1").version
    with pytest.raises(InvalidState):
        ProofService(db, anchor=RecordingAnchor()).anchor_version(version.id)


def test_verify_proof_detects_local_chain_and_missing_proof(db, make_contract, contract, alice):
    solo = make_contract(alice, title="Solo")
    merged = VersionService(db).create_version(solo.id, alice.id, "Solo terms").version
    pending = VersionService(db).create_version(contract.id, alice.id, "Clause 1").version

    proofs = ProofService(db)
    assert proofs.verify_proof(merged.id)["valid"] is True
    assert proofs.verify_proof(pending.id) == {"valid": False, "reason": "no proof recorded"}

    stored = db.get(ContractVersion, merged.id)
    stored.content_hash = "0" * 64
    db.commit()
    assert proofs.verify_proof(merged.id)["reason"] == "content hash mismatch"
