"""Invitation lookup and acceptance routes."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from clausebase_api.db.session import get_db
from clausebase_api.invitations.service import InvitationService, invitation_link
from clausebase_api.models import ContractInvitation
from clausebase_api.routes.schemas import InvitationDetails, InvitationResponse, MemberResponse

router = APIRouter(prefix="/v1/invitations", tags=["invitations"])


def invitation_response(invitation: ContractInvitation) -> InvitationResponse:
    data = InvitationResponse.model_validate(invitation).model_dump()
    data["invitation_link"] = invitation_link(invitation)
    return InvitationResponse(**data)


@router.get("/{token}", response_model=InvitationDetails)
def get_invitation(token: str, db: Session = Depends(get_db)):
    """Invitation details for the landing page; no user context required."""
    invitation = InvitationService(db).get_invitation(token)
    data = InvitationResponse.model_validate(invitation).model_dump()
    return InvitationDetails(
        **data,
        contract_title=invitation.contract.title,
        contract_description=invitation.contract.description,
        invited_by_name=invitation.inviter.name if invitation.inviter else None,
    )


@router.post("/{token}/accept", response_model=MemberResponse)
def accept_invitation(token: str, request: Request, db: Session = Depends(get_db)):
    """Join the invited contract as the calling user."""
    return InvitationService(db).accept_invitation(token, request.state.user_id)


@router.post("/{invitation_id}/resend", response_model=InvitationResponse)
def resend_invitation(invitation_id: str, request: Request, db: Session = Depends(get_db)):
    invitation = InvitationService(db).resend_invitation(invitation_id, request.state.user_id)
    return invitation_response(invitation)
