"""Contract invitations: creator-issued tokens that turn into memberships."""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from clausebase_api.errors import Forbidden, NotFound, ValidationError
from clausebase_api.membership.provider import MembershipProvider
from clausebase_api.models import Contract, ContractInvitation, ContractMember, User
from clausebase_api.notifications.service import NotificationService
from clausebase_api.settings import get_settings

logger = logging.getLogger(__name__)
settings = get_settings()

DEFAULT_INVITE_WEIGHT = 0.5
DEFAULT_INVITE_ROLE = "member"


def invitation_link(invitation: ContractInvitation) -> str:
    return f"{settings.frontend_url.rstrip('/')}/invite/{invitation.invitation_token}"


class InvitationService:
    """Issues, resolves and accepts contract invitations."""

    def __init__(self, db: Session, notifier: Optional[NotificationService] = None):
        """Initialize invitation service."""
        self.db = db
        self.membership = MembershipProvider(db)
        self.notifier = notifier or NotificationService()

    def _notify(self, invitation: ContractInvitation, contract: Contract, inviter_id: str) -> None:
        if not invitation.email:
            return
        inviter = self.db.get(User, inviter_id)
        self.notifier.notify_invitation(
            invitation,
            contract.title,
            inviter.name if inviter else "Contract Owner",
            invitation_link(invitation),
        )

    def _require_creator(self, contract_id: str, actor_id: str) -> Contract:
        contract = self.membership.get_accessible_contract(contract_id, actor_id)
        if not self.membership.is_creator(contract_id, actor_id):
            raise Forbidden("Only the contract creator can invite members")
        return contract

    def invite(
        self,
        contract_id: str,
        actor_id: str,
        email: Optional[str] = None,
        wallet_address: Optional[str] = None,
        role_in_contract: Optional[str] = None,
        weight: Optional[float] = None,
    ) -> ContractInvitation:
        """Invite someone by email or wallet address (creator only)."""
        if not email and not wallet_address:
            raise ValidationError("Email or wallet address required")
        contract = self._require_creator(contract_id, actor_id)

        if email:
            identity_match = User.email == email
            invite_match = ContractInvitation.email == email
        else:
            identity_match = User.wallet_address == wallet_address
            invite_match = ContractInvitation.wallet_address == wallet_address

        existing_member = (
            self.db.query(ContractMember.id)
            .join(User, ContractMember.user_id == User.id)
            .filter(ContractMember.contract_id == contract_id, identity_match)
            .first()
        )
        if existing_member is not None:
            raise ValidationError("User is already a member of this contract")

        now = datetime.utcnow()
        pending = (
            self.db.query(ContractInvitation.id)
            .filter(
                ContractInvitation.contract_id == contract_id,
                ContractInvitation.status == "pending",
                ContractInvitation.expires_at > now,
                invite_match,
            )
            .first()
        )
        if pending is not None:
            raise ValidationError("Invitation already sent to this user")

        invitation = ContractInvitation(
            contract_id=contract_id,
            email=email,
            wallet_address=wallet_address,
            role_in_contract=role_in_contract or DEFAULT_INVITE_ROLE,
            weight=DEFAULT_INVITE_WEIGHT if weight is None else weight,
            invitation_token=str(uuid.uuid4()),
            invited_by=actor_id,
            status="pending",
            expires_at=now + timedelta(days=settings.invitation_ttl_days),
        )
        self.db.add(invitation)
        self.db.commit()
        logger.info(
            "Invitation created",
            extra={"contract_id": contract_id, "invitation_id": invitation.id},
        )

        self._notify(invitation, contract, actor_id)
        return invitation

    def list_invitations(self, contract_id: str, user_id: str) -> list[ContractInvitation]:
        self.membership.get_accessible_contract(contract_id, user_id)
        return (
            self.db.query(ContractInvitation)
            .filter(ContractInvitation.contract_id == contract_id)
            .order_by(ContractInvitation.created_at.desc())
            .all()
        )

    def get_invitation(self, token: str) -> ContractInvitation:
        """Pending, unexpired invitation for a token."""
        invitation = (
            self.db.query(ContractInvitation)
            .filter(
                ContractInvitation.invitation_token == token,
                ContractInvitation.status == "pending",
                ContractInvitation.expires_at > datetime.utcnow(),
            )
            .first()
        )
        if invitation is None:
            raise NotFound("Invalid or expired invitation")
        return invitation

    def accept_invitation(self, token: str, user_id: str) -> ContractMember:
        """Join the contract; the new member counts toward unanimity immediately."""
        invitation = self.get_invitation(token)
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")

        if invitation.email and user.email != invitation.email:
            raise Forbidden("Email address does not match invitation")
        if not invitation.email and user.wallet_address != invitation.wallet_address:
            raise Forbidden("Wallet address does not match invitation")
        if self.membership.is_member(invitation.contract_id, user_id):
            raise ValidationError("User is already a member of this contract")

        member = ContractMember(
            contract_id=invitation.contract_id,
            user_id=user_id,
            role_in_contract=invitation.role_in_contract,
            weight=invitation.weight,
        )
        self.db.add(member)
        invitation.status = "accepted"
        invitation.accepted_by = user_id
        invitation.accepted_at = datetime.utcnow()
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ValidationError("User is already a member of this contract")

        logger.info(
            "Invitation accepted",
            extra={"contract_id": invitation.contract_id, "user_id": user_id},
        )
        return member

    def resend_invitation(self, invitation_id: str, actor_id: str) -> ContractInvitation:
        invitation = (
            self.db.query(ContractInvitation)
            .filter(ContractInvitation.id == invitation_id, ContractInvitation.status == "pending")
            .first()
        )
        if invitation is None:
            raise NotFound("Invitation not found or already processed")
        contract = self._require_creator(invitation.contract_id, actor_id)
        self._notify(invitation, contract, actor_id)
        return invitation
