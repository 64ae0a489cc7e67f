"""Contract and membership routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from clausebase_api.contracts.service import ContractService
from clausebase_api.db.session import get_db
from clausebase_api.invitations.service import InvitationService
from clausebase_api.routes.invitations import invitation_response
from clausebase_api.routes.schemas import ContractResponse, InvitationResponse, MemberResponse, VersionWithContent
from clausebase_api.routes.versions import version_with_content

router = APIRouter(prefix="/v1/contracts", tags=["contracts"])


class ContractCreate(BaseModel):
    """Contract creation request."""

    title: str
    description: Optional[str] = None
    content: Optional[str] = Field(None, description="Initial content; creates version 1")


class ContractCreateResponse(BaseModel):
    contract: ContractResponse
    version: Optional[VersionWithContent] = None


class MemberCreate(BaseModel):
    """Member addition request."""

    user_id: str
    role_in_contract: str
    weight: Optional[float] = None


class InvitationCreate(BaseModel):
    """Invitation request; one of email or wallet_address is required."""

    email: Optional[str] = None
    wallet_address: Optional[str] = None
    role_in_contract: Optional[str] = None
    weight: Optional[float] = None


class StatusUpdate(BaseModel):
    status: str


@router.post("", response_model=ContractCreateResponse, status_code=status.HTTP_201_CREATED)
def create_contract(
    payload: ContractCreate,
    request: Request,
    db: Session = Depends(get_db),
):
    """Create a contract with the caller as creator."""
    created = ContractService(db).create_contract(
        request.state.user_id, payload.title, payload.description, payload.content
    )
    return ContractCreateResponse(
        contract=ContractResponse.model_validate(created.contract),
        version=version_with_content(created.initial_version) if created.initial_version else None,
    )


@router.get("", response_model=list[ContractResponse])
def list_contracts(request: Request, db: Session = Depends(get_db)):
    """Contracts the caller created or belongs to."""
    return ContractService(db).list_contracts(request.state.user_id)


@router.get("/{contract_id}", response_model=ContractResponse)
def get_contract(contract_id: str, request: Request, db: Session = Depends(get_db)):
    return ContractService(db).get_contract(contract_id, request.state.user_id)


@router.get("/{contract_id}/members", response_model=list[MemberResponse])
def list_members(contract_id: str, request: Request, db: Session = Depends(get_db)):
    return ContractService(db).list_members(contract_id, request.state.user_id)


@router.post("/{contract_id}/members", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
def add_member(
    contract_id: str,
    payload: MemberCreate,
    request: Request,
    db: Session = Depends(get_db),
):
    """Add a member (creator only)."""
    return ContractService(db).add_member(
        contract_id,
        request.state.user_id,
        payload.user_id,
        payload.role_in_contract,
        payload.weight,
    )


@router.patch("/{contract_id}/status", response_model=ContractResponse)
def update_status(
    contract_id: str,
    payload: StatusUpdate,
    request: Request,
    db: Session = Depends(get_db),
):
    return ContractService(db).update_status(contract_id, request.state.user_id, payload.status)


@router.post(
    "/{contract_id}/invitations",
    response_model=InvitationResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_invitation(
    contract_id: str,
    payload: InvitationCreate,
    request: Request,
    db: Session = Depends(get_db),
):
    """Invite a member by email or wallet address (creator only)."""
    invitation = InvitationService(db).invite(
        contract_id,
        request.state.user_id,
        email=payload.email,
        wallet_address=payload.wallet_address,
        role_in_contract=payload.role_in_contract,
        weight=payload.weight,
    )
    return invitation_response(invitation)


@router.get("/{contract_id}/invitations", response_model=list[InvitationResponse])
def list_invitations(contract_id: str, request: Request, db: Session = Depends(get_db)):
    invitations = InvitationService(db).list_invitations(contract_id, request.state.user_id)
    return [invitation_response(invitation) for invitation in invitations]
