"""Tests for version creation and the per-contract version chain."""

import threading
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from clausebase_api.db.base import Base
from clausebase_api.errors import InvalidState, NotFound, ValidationError
from clausebase_api.models import ContentBlob, Contract, ContractApproval, ContractDiff, ContractVersion
from clausebase_api.storage.service import ContentStore, ContentUnavailable
from clausebase_api.versioning.service import VersionService


class UnavailableStore(ContentStore):
    """Content store whose writes always fail."""

    kind = "inline"

    def put(self, blob: bytes) -> str:
        raise ContentUnavailable("Storage client not available")

    def get(self, reference: str) -> bytes:
        raise ContentUnavailable("Storage client not available")


def test_first_version_has_no_parent(db, contract, alice):
    result = VersionService(db).create_version(contract.id, alice.id, "Clause 1", "Draft")

    version = result.version
    assert version.version_number == 1
    assert version.parent_version_id is None
    assert version.content_store == "inline"
    assert version.content_ref.startswith("sha256:")
    assert version.commit_message == "Draft"
    assert result.content == "Clause 1"
    assert db.query(ContractDiff).count() == 0


def test_versions_link_to_previous_tip(db, contract, alice, bob):
    service = VersionService(db)
    v1 = service.create_version(contract.id, alice.id, "Clause 1").version
    v2 = service.create_version(contract.id, bob.id, "Clause 1\nClause 2").version

    assert v2.version_number == 2
    assert v2.parent_version_id == v1.id
    assert v2.diff_summary == "1 additions, 0 deletions"

    cached = db.query(ContractDiff).one()
    assert cached.version_from_id == v1.id
    assert cached.version_to_id == v2.id
    assert cached.diff_json == [{"type": "add", "line": "Clause 2", "lineNum": 2}]


def test_new_version_is_auto_approved_by_author(db, contract, bob):
    version = VersionService(db).create_version(contract.id, bob.id, "Bob's draft").version

    approvals = db.query(ContractApproval).filter(ContractApproval.version_id == version.id).all()
    assert len(approvals) == 1
    assert approvals[0].user_id == bob.id
    assert approvals[0].vote == "approve"
    assert version.approval_status == "approved"
    assert version.approval_score == 1
    assert version.merged is False


def test_single_member_contract_merges_on_creation(db, make_contract, alice):
    contract = make_contract(alice)

    result = VersionService(db).create_version(contract.id, alice.id, "Solo terms")

    db.refresh(contract)
    assert result.version.merged is True
    assert result.version.approval_status == "merged"
    assert contract.current_version == result.version.id
    assert result.onchain_proof is not None
    assert result.onchain_proof.tx_hash


def test_empty_content_is_rejected(db, contract, alice):
    with pytest.raises(ValidationError):
        VersionService(db).create_version(contract.id, alice.id, "")
    assert db.query(ContractVersion).count() == 0


def test_non_member_cannot_see_contract(db, contract, make_user):
    outsider = make_user("Mallory")
    with pytest.raises(NotFound):
        VersionService(db).create_version(contract.id, outsider.id, "Sneaky edit")


def test_content_store_failure_leaves_no_partial_version(db, contract, alice):
    service = VersionService(db)
    service.create_version(contract.id, alice.id, "Clause 1")

    failing = VersionService(db, content_store=UnavailableStore())
    with pytest.raises(ContentUnavailable):
        failing.create_version(contract.id, alice.id, "Clause 1 amended")

    assert db.query(ContractVersion).count() == 1
    assert db.query(ContractApproval).count() == 1
    assert db.query(ContractDiff).count() == 0


def test_identical_content_is_stored_once(db, contract, alice, bob):
    service = VersionService(db)
    service.create_version(contract.id, alice.id, "Same text")
    service.create_version(contract.id, bob.id, "Same text")

    assert db.query(ContractVersion).count() == 2
    assert db.query(ContentBlob).count() == 1


def test_history_lists_merged_versions_newest_first(db, make_contract, alice):
    contract = make_contract(alice)
    service = VersionService(db)
    v1 = service.create_version(contract.id, alice.id, "One").version
    v2 = service.create_version(contract.id, alice.id, "Two").version

    history = service.get_history(contract.id, alice.id)
    assert [v.id for v in history] == [v2.id, v1.id]
    assert service.get_current_content(contract.id, alice.id) == "Two"


def test_list_and_get_version(db, contract, alice, bob):
    service = VersionService(db)
    v1 = service.create_version(contract.id, alice.id, "One").version
    v2 = service.create_version(contract.id, bob.id, "One\nTwo").version

    assert [v.id for v in service.list_versions(contract.id, bob.id)] == [v2.id, v1.id]
    assert service.get_version(contract.id, v1.id, bob.id).content == "One"
    assert service.get_current_content(contract.id, alice.id) is None

    with pytest.raises(NotFound):
        service.get_version(contract.id, "missing", bob.id)


def test_get_diff_orders_versions_and_uses_cached_diff(db, contract, alice, bob):
    service = VersionService(db)
    v1 = service.create_version(contract.id, alice.id, "a\nb").version
    v2 = service.create_version(contract.id, bob.id, "a\nc").version

    result = service.get_diff(contract.id, v2.id, v1.id, alice.id)

    assert result["from"].id == v1.id
    assert result["to"].id == v2.id
    assert [e.to_dict() for e in result["entries"]] == [
        {"type": "remove", "line": "b", "lineNum": 2},
        {"type": "add", "line": "c", "lineNum": 2},
    ]
    assert result["summary"] == "1 additions, 1 deletions"


def test_get_diff_computes_non_adjacent_versions(db, contract, alice):
    service = VersionService(db)
    v1 = service.create_version(contract.id, alice.id, "a").version
    service.create_version(contract.id, alice.id, "a\nb")
    v3 = service.create_version(contract.id, alice.id, "a\nb\nc").version

    result = service.get_diff(contract.id, v1.id, v3.id, alice.id)
    assert result["summary"] == "2 additions, 0 deletions"


def test_get_diff_validation(db, contract, alice, make_contract, bob):
    service = VersionService(db)
    v1 = service.create_version(contract.id, alice.id, "a").version

    with pytest.raises(ValidationError):
        service.get_diff(contract.id, v1.id, None, alice.id)
    with pytest.raises(ValidationError):
        service.get_diff(contract.id, v1.id, v1.id, alice.id)

    other = make_contract(bob, title="Other")
    foreign = service.create_version(other.id, bob.id, "b").version
    with pytest.raises(NotFound):
        service.get_diff(contract.id, v1.id, foreign.id, alice.id)


def test_append_retries_after_version_number_conflict(db, contract, alice):
    service = VersionService(db)
    v1 = service.create_version(contract.id, alice.id, "a").version
    v2 = service.create_version(contract.id, alice.id, "a\nb").version

    # First tip read is stale, as if another writer appended in between
    real_get_tip = service._get_tip
    stale = iter([v1])

    def get_tip(contract_id):
        tip = next(stale, None)
        return tip if tip is not None else real_get_tip(contract_id)

    with patch.object(service, "_get_tip", side_effect=get_tip) as mock_get_tip:
        result = service.create_version(contract.id, alice.id, "a\nb\nc")

    assert mock_get_tip.call_count == 2
    assert result.version.version_number == 3
    assert result.version.parent_version_id == v2.id
    assert db.query(ContractVersion).filter(ContractVersion.contract_id == contract.id).count() == 3


def test_append_gives_up_after_repeated_conflicts(db, contract, alice):
    service = VersionService(db)
    v1 = service.create_version(contract.id, alice.id, "a").version
    service.create_version(contract.id, alice.id, "a\nb")

    with patch.object(service, "_get_tip", return_value=v1) as mock_get_tip:
        with pytest.raises(InvalidState):
            service.create_version(contract.id, alice.id, "a\nb\nc")

    assert mock_get_tip.call_count == 3
    assert db.query(ContractVersion).filter(ContractVersion.contract_id == contract.id).count() == 2


def test_concurrent_submissions_get_distinct_version_numbers(tmp_path, alice, bob, carol):
    """Parallel appends on one contract yield exactly 1..N with a linear parent chain."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'chain.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    from clausebase_api.contracts.service import ContractService
    from clausebase_api.models import User

    setup = Session()
    for user in (alice, bob, carol):
        setup.merge(User(id=user.id, name=user.name, email=user.email))
    setup.commit()
    contract_id = ContractService(setup).create_contract(alice.id, "Parallel").contract.id
    for member in (bob, carol):
        ContractService(setup).add_member(contract_id, alice.id, member.id, "reviewer")
    setup.close()

    authors = [alice.id, bob.id, carol.id]
    submissions = 12
    errors = []

    def submit(i):
        session = Session()
        try:
            VersionService(session).create_version(contract_id, authors[i % 3], f"Revision {i}")
        except Exception as e:  # surfaced through the assertion below
            errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=submit, args=(i,)) for i in range(submissions)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []

    check = Session()
    versions = (
        check.query(ContractVersion)
        .filter(ContractVersion.contract_id == contract_id)
        .order_by(ContractVersion.version_number)
        .all()
    )
    assert [v.version_number for v in versions] == list(range(1, submissions + 1))
    assert versions[0].parent_version_id is None
    for previous, current in zip(versions, versions[1:]):
        assert current.parent_version_id == previous.id
    assert check.get(Contract, contract_id).current_version is None
    check.close()
    engine.dispose()
