"""Contract and membership models."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Float, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship

from clausebase_api.db.base import Base
from clausebase_api.models.user import new_id

CONTRACT_STATUSES = ("draft", "review", "active", "completed")


class Contract(Base):
    """A document under collaborative control."""

    __tablename__ = "contracts"

    id = Column(String(36), primary_key=True, default=new_id)
    title = Column(String(500), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(50), default="draft", nullable=False, index=True)  # draft, review, active, completed
    current_version = Column(String(36), nullable=True)  # id of the canonical (last merged) version
    onchain_contract_id = Column(String(255), nullable=True)
    created_by = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    creator = relationship("User")
    members = relationship("ContractMember", back_populates="contract", cascade="all, delete-orphan")
    versions = relationship(
        "ContractVersion",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="ContractVersion.version_number",
    )


class ContractMember(Base):
    """Association of a user to a contract with a role and voting weight."""

    __tablename__ = "contract_members"
    __table_args__ = (
        UniqueConstraint("contract_id", "user_id", name="uq_contract_member"),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    contract_id = Column(String(36), ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    role_in_contract = Column(String(100), nullable=False)
    weight = Column(Float, default=0.5, nullable=False)  # Stored only; aggregation is a plain count
    joined_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    contract = relationship("Contract", back_populates="members")
    user = relationship("User")


class ContractInvitation(Base):
    """Pending invitation to join a contract, addressed by email or wallet."""

    __tablename__ = "contract_invitations"

    id = Column(String(36), primary_key=True, default=new_id)
    contract_id = Column(String(36), ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String(255), nullable=True, index=True)
    wallet_address = Column(String(128), nullable=True)
    role_in_contract = Column(String(100), nullable=False)
    weight = Column(Float, default=0.5, nullable=False)
    invitation_token = Column(String(64), nullable=False, unique=True, index=True)
    invited_by = Column(String(36), ForeignKey("users.id"), nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)  # pending, accepted
    expires_at = Column(DateTime, nullable=False)
    accepted_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    accepted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    contract = relationship("Contract")
    inviter = relationship("User", foreign_keys=[invited_by])
