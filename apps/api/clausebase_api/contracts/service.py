"""Contract lifecycle and membership management."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from clausebase_api.errors import Forbidden, NotFound, ValidationError
from clausebase_api.membership.provider import MembershipProvider
from clausebase_api.models import Contract, ContractMember, User
from clausebase_api.models.contract import CONTRACT_STATUSES
from clausebase_api.versioning.service import VersionResult, VersionService

logger = logging.getLogger(__name__)

CREATOR_ROLE = "creator"
CREATOR_WEIGHT = 1.0
DEFAULT_MEMBER_WEIGHT = 0.5


@dataclass
class CreatedContract:
    contract: Contract
    initial_version: Optional[VersionResult] = None


class ContractService:
    """Creates contracts and manages their members and status."""

    def __init__(self, db: Session, versions: Optional[VersionService] = None):
        """Initialize contract service."""
        self.db = db
        self.membership = MembershipProvider(db)
        self._versions = versions

    @property
    def versions(self) -> VersionService:
        if self._versions is None:
            self._versions = VersionService(self.db, membership=self.membership)
        return self._versions

    def _require_user(self, user_id: str) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def create_contract(
        self,
        creator_id: str,
        title: str,
        description: Optional[str] = None,
        content: Optional[str] = None,
    ) -> CreatedContract:
        """Create a contract; the creator becomes its first member."""
        if not title or not title.strip():
            raise ValidationError("Contract title required")
        self._require_user(creator_id)

        contract = Contract(title=title.strip(), description=description, status="draft", created_by=creator_id)
        self.db.add(contract)
        self.db.flush()
        self.db.add(
            ContractMember(
                contract_id=contract.id,
                user_id=creator_id,
                role_in_contract=CREATOR_ROLE,
                weight=CREATOR_WEIGHT,
            )
        )
        self.db.commit()
        logger.info("Contract created", extra={"contract_id": contract.id, "creator_id": creator_id})

        initial_version = None
        if content:
            initial_version = self.versions.create_version(
                contract.id, creator_id, content, "Initial version"
            )
            self.db.refresh(contract)
        return CreatedContract(contract=contract, initial_version=initial_version)

    def get_contract(self, contract_id: str, user_id: str) -> Contract:
        return self.membership.get_accessible_contract(contract_id, user_id)

    def list_contracts(self, user_id: str) -> list[Contract]:
        member_contracts = (
            self.db.query(ContractMember.contract_id)
            .filter(ContractMember.user_id == user_id)
        )
        return (
            self.db.query(Contract)
            .filter(or_(Contract.created_by == user_id, Contract.id.in_(member_contracts)))
            .order_by(Contract.updated_at.desc())
            .all()
        )

    def add_member(
        self,
        contract_id: str,
        actor_id: str,
        user_id: str,
        role_in_contract: str,
        weight: Optional[float] = None,
    ) -> ContractMember:
        """Add a member; only the contract creator may do this."""
        self.membership.get_accessible_contract(contract_id, actor_id)
        if not self.membership.is_creator(contract_id, actor_id):
            raise Forbidden("Only the contract creator can add members")
        if not user_id or not role_in_contract:
            raise ValidationError("User ID and role required")
        self._require_user(user_id)
        if self.membership.is_member(contract_id, user_id):
            raise ValidationError("User is already a member of this contract")

        member = ContractMember(
            contract_id=contract_id,
            user_id=user_id,
            role_in_contract=role_in_contract,
            weight=DEFAULT_MEMBER_WEIGHT if weight is None else weight,
        )
        self.db.add(member)
        self.db.commit()
        logger.info("Member added", extra={"contract_id": contract_id, "user_id": user_id})
        return member

    def list_members(self, contract_id: str, user_id: str) -> list[ContractMember]:
        self.membership.get_accessible_contract(contract_id, user_id)
        return (
            self.db.query(ContractMember)
            .filter(ContractMember.contract_id == contract_id)
            .order_by(ContractMember.joined_at.asc())
            .all()
        )

    def update_status(self, contract_id: str, user_id: str, status: str) -> Contract:
        if status not in CONTRACT_STATUSES:
            raise ValidationError("Valid status required")
        contract = self.membership.get_accessible_contract(contract_id, user_id)
        contract.status = status
        self.db.commit()
        return contract
