"""Request/response models shared by the routers."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OnchainProof(BaseModel):
    """Proof anchoring outcome attached to merge responses."""

    content_hash: Optional[str] = None
    content_ref: Optional[str] = None
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    status: str


class VersionResponse(BaseModel):
    """Version metadata."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    contract_id: str
    version_number: int
    parent_version_id: Optional[str] = None
    author_id: str
    content_ref: str
    content_store: str
    diff_summary: Optional[str] = None
    commit_message: str
    merged: bool
    approval_status: str
    approval_score: int
    content_hash: Optional[str] = None
    onchain_tx_hash: Optional[str] = None
    anchor_error: Optional[str] = None
    created_at: datetime
    merged_at: Optional[datetime] = None


class VersionWithContent(VersionResponse):
    content: str
    onchain_proof: Optional[OnchainProof] = None


class ApprovalResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    version_id: str
    user_id: str
    vote: str
    comment: Optional[str] = None
    created_at: datetime


class ContractResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: Optional[str] = None
    status: str
    current_version: Optional[str] = None
    onchain_contract_id: Optional[str] = None
    created_by: str
    created_at: datetime
    updated_at: datetime


class MemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    contract_id: str
    user_id: str
    role_in_contract: str
    weight: float
    joined_at: datetime


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    version_id: str
    user_id: str
    comment: str
    parent_comment_id: Optional[str] = None
    created_at: datetime


class CommentThread(BaseModel):
    comment: CommentResponse
    replies: list[CommentResponse] = Field(default_factory=list)


class InvitationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    contract_id: str
    email: Optional[str] = None
    wallet_address: Optional[str] = None
    role_in_contract: str
    weight: float
    invited_by: str
    status: str
    expires_at: datetime
    created_at: datetime
    invitation_link: Optional[str] = None


class InvitationDetails(InvitationResponse):
    contract_title: str
    contract_description: Optional[str] = None
    invited_by_name: Optional[str] = None
