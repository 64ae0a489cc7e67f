"""Membership lookups used for authorization and unanimity thresholds."""

from dataclasses import dataclass

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from clausebase_api.errors import NotFound
from clausebase_api.models import Contract, ContractMember


@dataclass(frozen=True)
class MemberInfo:
    """Member identity and passthrough voting weight."""

    user_id: str
    weight: float
    role: str


class MembershipProvider:
    """Read-only view over contract membership."""

    def __init__(self, db: Session):
        """Initialize provider."""
        self.db = db

    def list_members(self, contract_id: str) -> list[MemberInfo]:
        members = (
            self.db.query(ContractMember)
            .filter(ContractMember.contract_id == contract_id)
            .order_by(ContractMember.joined_at.asc())
            .all()
        )
        return [MemberInfo(m.user_id, m.weight, m.role_in_contract) for m in members]

    def count_members(self, contract_id: str) -> int:
        """Current member count, evaluated at call time."""
        return (
            self.db.query(func.count(ContractMember.id))
            .filter(ContractMember.contract_id == contract_id)
            .scalar()
        )

    def is_member(self, contract_id: str, user_id: str) -> bool:
        return (
            self.db.query(ContractMember.id)
            .filter(
                ContractMember.contract_id == contract_id,
                ContractMember.user_id == user_id,
            )
            .first()
            is not None
        )

    def is_creator(self, contract_id: str, user_id: str) -> bool:
        return (
            self.db.query(Contract.id)
            .filter(Contract.id == contract_id, Contract.created_by == user_id)
            .first()
            is not None
        )

    def get_accessible_contract(self, contract_id: str, user_id: str) -> Contract:
        """Return the contract if the user created it or is a member.

        Inaccessible and missing contracts both raise ``NotFound`` so callers
        cannot probe for existence.
        """
        member_contracts = (
            self.db.query(ContractMember.contract_id)
            .filter(ContractMember.user_id == user_id)
        )
        contract = (
            self.db.query(Contract)
            .filter(
                Contract.id == contract_id,
                or_(Contract.created_by == user_id, Contract.id.in_(member_contracts)),
            )
            .first()
        )
        if contract is None:
            raise NotFound("Contract not found")
        return contract
