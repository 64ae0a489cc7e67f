"""Database models - import all models here for Alembic discovery."""

from clausebase_api.models.content import ContentBlob
from clausebase_api.models.contract import Contract, ContractInvitation, ContractMember
from clausebase_api.models.ledger import LedgerEvent
from clausebase_api.models.user import User
from clausebase_api.models.version import ContractApproval, ContractComment, ContractDiff, ContractVersion

__all__ = [
    "User",
    "Contract",
    "ContractMember",
    "ContractInvitation",
    "ContractVersion",
    "ContractApproval",
    "ContractDiff",
    "ContractComment",
    "ContentBlob",
    "LedgerEvent",
]
