"""Version chain, approval, diff and comment models."""

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from clausebase_api.db.base import Base
from clausebase_api.models.user import new_id

APPROVAL_STATUSES = ("pending", "approved", "rejected", "merged")
VOTES = ("approve", "reject")


class ContractVersion(Base):
    """Immutable content snapshot plus mutable approval metadata."""

    __tablename__ = "contract_versions"
    __table_args__ = (
        UniqueConstraint("contract_id", "version_number", name="uq_contract_version_number"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    contract_id = Column(String(36), ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True)
    version_number = Column(Integer, nullable=False)
    parent_version_id = Column(String(36), ForeignKey("contract_versions.id"), nullable=True)  # NULL only for version 1
    author_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    content_ref = Column(String(255), nullable=False)  # Opaque content store reference
    content_store = Column(String(20), nullable=False)  # inline, s3, ipfs
    diff_summary = Column(String(255), nullable=True)
    commit_message = Column(Text, nullable=False, default="")
    merged = Column(Boolean, default=False, nullable=False)
    approval_status = Column(String(20), default="pending", nullable=False, index=True)
    approval_score = Column(Integer, default=0, nullable=False)  # Count of approve votes
    content_hash = Column(String(64), nullable=True)  # sha256 hex of content, set at anchoring
    onchain_tx_hash = Column(String(255), nullable=True)
    anchor_error = Column(Text, nullable=True)
    anchored_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    merged_at = Column(DateTime, nullable=True)

    # Relationships
    contract = relationship("Contract", back_populates="versions")
    author = relationship("User")
    approvals = relationship("ContractApproval", back_populates="version", cascade="all, delete-orphan")
    comments = relationship(
        "ContractComment",
        back_populates="version",
        cascade="all, delete-orphan",
        order_by="ContractComment.created_at",
    )


class ContractApproval(Base):
    """One member's vote on one version; upserted per (version, user)."""

    __tablename__ = "contract_approvals"
    __table_args__ = (
        UniqueConstraint("version_id", "user_id", name="uq_approval_version_user"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    version_id = Column(String(36), ForeignKey("contract_versions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    vote = Column(String(10), nullable=False)  # approve, reject
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    version = relationship("ContractVersion", back_populates="approvals")
    user = relationship("User")


class ContractDiff(Base):
    """Cached line-level delta between two versions; written once."""

    __tablename__ = "contract_diffs"
    __table_args__ = (
        UniqueConstraint("version_from_id", "version_to_id", name="uq_diff_pair"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    version_from_id = Column(String(36), ForeignKey("contract_versions.id"), nullable=False, index=True)
    version_to_id = Column(
        String(36), ForeignKey("contract_versions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    diff_json = Column(JSON, nullable=False)
    summary = Column(String(255), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class ContractComment(Base):
    """Remark on a version; replies are one level deep."""

    __tablename__ = "contract_comments"

    id = Column(String(36), primary_key=True, default=new_id)
    version_id = Column(String(36), ForeignKey("contract_versions.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    comment = Column(Text, nullable=False)
    parent_comment_id = Column(String(36), ForeignKey("contract_comments.id"), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    version = relationship("ContractVersion", back_populates="comments")
    user = relationship("User")
