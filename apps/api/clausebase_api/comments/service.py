"""Threaded comments on versions."""

from typing import Optional

from sqlalchemy.orm import Session

from clausebase_api.errors import NotFound, ValidationError
from clausebase_api.membership.provider import MembershipProvider
from clausebase_api.models import ContractComment, ContractVersion


class CommentService:
    """Comments with one level of replies."""

    def __init__(self, db: Session):
        """Initialize comment service."""
        self.db = db
        self.membership = MembershipProvider(db)

    def _get_version(self, contract_id: str, version_id: str) -> ContractVersion:
        version = (
            self.db.query(ContractVersion)
            .filter(ContractVersion.id == version_id, ContractVersion.contract_id == contract_id)
            .first()
        )
        if version is None:
            raise NotFound("Version not found")
        return version

    def add_comment(
        self,
        contract_id: str,
        version_id: str,
        user_id: str,
        comment: str,
        parent_comment_id: Optional[str] = None,
    ) -> ContractComment:
        if not comment or not comment.strip():
            raise ValidationError("Comment required")
        self.membership.get_accessible_contract(contract_id, user_id)
        self._get_version(contract_id, version_id)

        if parent_comment_id:
            parent = self.db.get(ContractComment, parent_comment_id)
            if parent is None or parent.version_id != version_id:
                raise ValidationError("Parent comment not found on this version")
            if parent.parent_comment_id is not None:
                raise ValidationError("Replies cannot be nested")

        record = ContractComment(
            version_id=version_id,
            user_id=user_id,
            comment=comment,
            parent_comment_id=parent_comment_id,
        )
        self.db.add(record)
        self.db.commit()
        return record

    def list_comments(self, contract_id: str, version_id: str, user_id: str) -> list[dict]:
        """Top-level comments in order, each with its replies."""
        self.membership.get_accessible_contract(contract_id, user_id)
        self._get_version(contract_id, version_id)
        comments = (
            self.db.query(ContractComment)
            .filter(ContractComment.version_id == version_id)
            .order_by(ContractComment.created_at.asc(), ContractComment.id.asc())
            .all()
        )

        threads = []
        by_id = {}
        for item in comments:
            if item.parent_comment_id is None:
                by_id[item.id] = {"comment": item, "replies": []}
                threads.append(by_id[item.id])
        for item in comments:
            if item.parent_comment_id in by_id:
                by_id[item.parent_comment_id]["replies"].append(item)
        return threads
