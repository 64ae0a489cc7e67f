"""Tests for contract invitations."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from clausebase_api.approvals.service import ApprovalService
from clausebase_api.errors import Forbidden, NotFound, ValidationError
from clausebase_api.invitations.service import InvitationService, invitation_link
from clausebase_api.models import ContractInvitation
from clausebase_api.notifications.service import NotificationService
from clausebase_api.versioning.service import VersionService


@pytest.fixture
def dana(make_user):
    return make_user("Dana")


def test_invite_defaults_and_expiry(db, make_contract, alice, dana):
    contract = make_contract(alice)
    before = datetime.utcnow()

    invitation = InvitationService(db).invite(contract.id, alice.id, email=dana.email)

    assert invitation.status == "pending"
    assert invitation.weight == 0.5
    assert invitation.role_in_contract == "member"
    assert invitation.invited_by == alice.id
    assert timedelta(days=6, hours=23) < invitation.expires_at - before <= timedelta(days=7, minutes=1)
    assert invitation_link(invitation).endswith(f"/invite/{invitation.invitation_token}")


def test_invite_requires_email_or_wallet(db, make_contract, alice):
    contract = make_contract(alice)
    with pytest.raises(ValidationError):
        InvitationService(db).invite(contract.id, alice.id)


def test_only_creator_can_invite(db, contract, bob, make_user):
    with pytest.raises(Forbidden):
        InvitationService(db).invite(contract.id, bob.id, email="new@example.com")

    outsider = make_user("Outsider")
    with pytest.raises(NotFound):
        InvitationService(db).invite(contract.id, outsider.id, email="new@example.com")


def test_duplicate_pending_invitation_is_rejected(db, make_contract, alice, dana):
    contract = make_contract(alice)
    service = InvitationService(db)
    service.invite(contract.id, alice.id, email=dana.email)

    with pytest.raises(ValidationError, match="already sent"):
        service.invite(contract.id, alice.id, email=dana.email)


def test_existing_member_cannot_be_invited(db, contract, alice, bob):
    with pytest.raises(ValidationError, match="already a member"):
        InvitationService(db).invite(contract.id, alice.id, email=bob.email)


def test_expired_invitation_cannot_be_used_or_block_a_new_one(db, make_contract, alice, dana):
    contract = make_contract(alice)
    service = InvitationService(db)
    invitation = service.invite(contract.id, alice.id, email=dana.email)
    invitation.expires_at = datetime.utcnow() - timedelta(minutes=1)
    db.commit()

    with pytest.raises(NotFound):
        service.get_invitation(invitation.invitation_token)
    with pytest.raises(NotFound):
        service.accept_invitation(invitation.invitation_token, dana.id)

    renewed = service.invite(contract.id, alice.id, email=dana.email)
    assert renewed.invitation_token != invitation.invitation_token


def test_accept_requires_matching_email(db, make_contract, alice, bob, dana):
    contract = make_contract(alice)
    service = InvitationService(db)
    invitation = service.invite(contract.id, alice.id, email=dana.email)

    with pytest.raises(Forbidden):
        service.accept_invitation(invitation.invitation_token, bob.id)

    db.refresh(invitation)
    assert invitation.status == "pending"


def test_wallet_invitation_matches_wallet(db, make_contract, alice, make_user):
    wallet_user = make_user("Eve", wallet_address="EveWallet")
    other = make_user("Frank", wallet_address="FrankWallet")
    contract = make_contract(alice)
    service = InvitationService(db)
    invitation = service.invite(contract.id, alice.id, wallet_address="EveWallet", role_in_contract="witness")

    with pytest.raises(Forbidden):
        service.accept_invitation(invitation.invitation_token, other.id)

    member = service.accept_invitation(invitation.invitation_token, wallet_user.id)
    assert member.role_in_contract == "witness"


def test_accepted_member_is_required_for_unanimity(db, make_contract, alice, bob, dana):
    contract = make_contract(alice, bob)
    version = VersionService(db).create_version(contract.id, alice.id, "Terms").version

    service = InvitationService(db)
    invitation = service.invite(contract.id, alice.id, email=dana.email, weight=0.8)
    member = service.accept_invitation(invitation.invitation_token, dana.id)
    assert member.weight == 0.8

    db.refresh(invitation)
    assert invitation.status == "accepted"
    assert invitation.accepted_by == dana.id
    with pytest.raises(NotFound):
        service.get_invitation(invitation.invitation_token)

    approvals = ApprovalService(db)
    outcome = approvals.submit_vote(contract.id, version.id, bob.id, "approve")
    assert outcome.merged is False

    outcome = approvals.submit_vote(contract.id, version.id, dana.id, "approve")
    assert outcome.merged is True


def test_invitation_and_resend_are_emailed(db, make_contract, alice, dana):
    contract = make_contract(alice)
    notifier = MagicMock(spec=NotificationService)
    service = InvitationService(db, notifier=notifier)

    invitation = service.invite(contract.id, alice.id, email=dana.email)
    service.resend_invitation(invitation.id, alice.id)

    assert notifier.notify_invitation.call_count == 2
    args = notifier.notify_invitation.call_args.args
    assert args[0].id == invitation.id
    assert args[1:] == ("Supply Agreement", "Alice", invitation_link(invitation))


def test_wallet_only_invitation_sends_no_email(db, make_contract, alice):
    contract = make_contract(alice)
    notifier = MagicMock(spec=NotificationService)

    InvitationService(db, notifier=notifier).invite(contract.id, alice.id, wallet_address="SomeWallet")

    notifier.notify_invitation.assert_not_called()


def test_resend_rules(db, contract, alice, bob, dana):
    service = InvitationService(db)
    invitation = service.invite(contract.id, alice.id, email=dana.email)

    with pytest.raises(Forbidden):
        service.resend_invitation(invitation.id, bob.id)
    with pytest.raises(NotFound):
        service.resend_invitation("missing", alice.id)

    service.accept_invitation(invitation.invitation_token, dana.id)
    with pytest.raises(NotFound):
        service.resend_invitation(invitation.id, alice.id)


def test_list_invitations(db, contract, alice, bob, dana, make_user):
    service = InvitationService(db)
    service.invite(contract.id, alice.id, email=dana.email)

    invitations = service.list_invitations(contract.id, bob.id)
    assert [i.email for i in invitations] == [dana.email]
    assert db.query(ContractInvitation).count() == 1

    with pytest.raises(NotFound):
        service.list_invitations(contract.id, make_user("Outsider").id)
