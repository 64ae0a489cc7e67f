"""Version, approval, merge and comment routes."""

from typing import Optional

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from clausebase_api.approvals.service import ApprovalService
from clausebase_api.comments.service import CommentService
from clausebase_api.db.session import get_db
from clausebase_api.ledger.proof import ProofResult
from clausebase_api.merge.orchestrator import MergeOrchestrator
from clausebase_api.routes.schemas import (
    ApprovalResponse,
    CommentResponse,
    CommentThread,
    OnchainProof,
    VersionResponse,
    VersionWithContent,
)
from clausebase_api.versioning.service import VersionResult, VersionService

router = APIRouter(prefix="/v1/contracts/{contract_id}", tags=["versions"])


class VersionCreate(BaseModel):
    """New version submission."""

    content: Optional[str] = None
    commit_message: Optional[str] = None


class VoteRequest(BaseModel):
    vote: Optional[str] = None
    comment: Optional[str] = None


class VoteResponse(BaseModel):
    approval: ApprovalResponse
    approval_count: int
    rejection_count: int
    status: str
    merged: bool
    auto_merged: bool
    onchain_proof: Optional[OnchainProof] = None


class ApprovalsResponse(BaseModel):
    approvals: list[ApprovalResponse]
    status: str
    approval_count: int
    rejection_count: int


class MergeResponse(BaseModel):
    message: str
    version: VersionResponse
    onchain_proof: OnchainProof


class DiffLine(BaseModel):
    type: str
    line: str
    lineNum: int


class DiffResponse(BaseModel):
    from_version: VersionResponse
    to_version: VersionResponse
    diff: list[DiffLine]
    summary: str


class CommentCreate(BaseModel):
    comment: Optional[str] = None
    parent_comment_id: Optional[str] = None


def proof_model(proof: Optional[ProofResult]) -> Optional[OnchainProof]:
    return OnchainProof(**proof.to_dict()) if proof else None


def version_with_content(result: VersionResult) -> VersionWithContent:
    data = VersionResponse.model_validate(result.version).model_dump()
    return VersionWithContent(
        **data,
        content=result.content,
        onchain_proof=proof_model(result.onchain_proof),
    )


@router.post("/versions", response_model=VersionWithContent, status_code=status.HTTP_201_CREATED)
def create_version(
    contract_id: str,
    payload: VersionCreate,
    request: Request,
    db: Session = Depends(get_db),
):
    """Submit new content as the next version."""
    result = VersionService(db).create_version(
        contract_id, request.state.user_id, payload.content or "", payload.commit_message or ""
    )
    return version_with_content(result)


@router.get("/versions", response_model=list[VersionResponse])
def list_versions(contract_id: str, request: Request, db: Session = Depends(get_db)):
    return VersionService(db).list_versions(contract_id, request.state.user_id)


@router.get("/versions/{version_id}", response_model=VersionWithContent)
def get_version(contract_id: str, version_id: str, request: Request, db: Session = Depends(get_db)):
    return version_with_content(VersionService(db).get_version(contract_id, version_id, request.state.user_id))


@router.get("/history", response_model=list[VersionResponse])
def get_history(contract_id: str, request: Request, db: Session = Depends(get_db)):
    """Merged versions, newest first."""
    return VersionService(db).get_history(contract_id, request.state.user_id)


@router.get("/diff", response_model=DiffResponse)
def get_diff(
    contract_id: str,
    request: Request,
    from_id: Optional[str] = None,
    to_id: Optional[str] = None,
    db: Session = Depends(get_db),
):
    result = VersionService(db).get_diff(contract_id, from_id, to_id, request.state.user_id)
    return DiffResponse(
        from_version=VersionResponse.model_validate(result["from"]),
        to_version=VersionResponse.model_validate(result["to"]),
        diff=[DiffLine(**entry.to_dict()) for entry in result["entries"]],
        summary=result["summary"],
    )


@router.post("/versions/{version_id}/approve", response_model=VoteResponse)
def submit_vote(
    contract_id: str,
    version_id: str,
    payload: VoteRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """Approve or reject a version; merges automatically on unanimity."""
    outcome = ApprovalService(db).submit_vote(
        contract_id, version_id, request.state.user_id, payload.vote or "", payload.comment
    )
    return VoteResponse(
        approval=ApprovalResponse.model_validate(outcome.approval),
        approval_count=outcome.approval_count,
        rejection_count=outcome.rejection_count,
        status=outcome.status,
        merged=outcome.merged,
        auto_merged=outcome.onchain_proof is not None,
        onchain_proof=proof_model(outcome.onchain_proof),
    )


@router.get("/versions/{version_id}/approvals", response_model=ApprovalsResponse)
def list_approvals(contract_id: str, version_id: str, request: Request, db: Session = Depends(get_db)):
    result = ApprovalService(db).list_approvals(contract_id, version_id, request.state.user_id)
    return ApprovalsResponse(
        approvals=[ApprovalResponse.model_validate(a) for a in result["approvals"]],
        status=result["status"],
        approval_count=result["approval_count"],
        rejection_count=result["rejection_count"],
    )


@router.post("/versions/{version_id}/merge", response_model=MergeResponse)
def merge_version(contract_id: str, version_id: str, request: Request, db: Session = Depends(get_db)):
    """Merge an approved version into the contract."""
    outcome = MergeOrchestrator(db).merge_version(contract_id, version_id, request.state.user_id)
    return MergeResponse(
        message=outcome.message,
        version=VersionResponse.model_validate(outcome.version),
        onchain_proof=proof_model(outcome.onchain_proof),
    )


@router.post(
    "/versions/{version_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_comment(
    contract_id: str,
    version_id: str,
    payload: CommentCreate,
    request: Request,
    db: Session = Depends(get_db),
):
    return CommentService(db).add_comment(
        contract_id, version_id, request.state.user_id, payload.comment or "", payload.parent_comment_id
    )


@router.get("/versions/{version_id}/comments", response_model=list[CommentThread])
def list_comments(contract_id: str, version_id: str, request: Request, db: Session = Depends(get_db)):
    threads = CommentService(db).list_comments(contract_id, version_id, request.state.user_id)
    return [
        CommentThread(
            comment=CommentResponse.model_validate(thread["comment"]),
            replies=[CommentResponse.model_validate(reply) for reply in thread["replies"]],
        )
        for thread in threads
    ]
