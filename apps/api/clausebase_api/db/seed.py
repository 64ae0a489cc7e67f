"""Seed data for development and testing."""

from sqlalchemy.orm import Session

from clausebase_api.contracts.service import ContractService
from clausebase_api.models import Contract, User

DEMO_USERS = [
    {"name": "Alice Mercer", "email": "alice@example.com", "role_title": "Legal Counsel"},
    {"name": "Bob Tanaka", "email": "bob@example.com", "role_title": "Procurement Lead"},
    {"name": "Carol Osei", "email": "carol@example.com", "role_title": "Finance Director"},
]

DEMO_CONTRACT_TITLE = "Master Services Agreement"
DEMO_CONTRACT_CONTENT = "\n".join(
    [
        "MASTER SERVICES AGREEMENT",
        "1. Services. Provider shall perform the services described in each Statement of Work.",
        "2. Fees. Customer shall pay all undisputed invoices within 30 days.",
        "3. Term. This Agreement continues for 12 months from the Effective Date.",
    ]
)


def seed_users(db: Session) -> list[User]:
    """Seed demo users."""
    users = []
    for data in DEMO_USERS:
        user = db.query(User).filter(User.email == data["email"]).first()
        if not user:
            user = User(**data)
            db.add(user)
            db.flush()
        users.append(user)
    db.commit()
    return users


def seed_contract(db: Session, users: list[User]) -> Contract:
    """Seed a demo contract owned by the first user, with the others as members."""
    creator = users[0]
    contract = (
        db.query(Contract)
        .filter(Contract.title == DEMO_CONTRACT_TITLE, Contract.created_by == creator.id)
        .first()
    )
    if contract:
        return contract

    service = ContractService(db)
    created = service.create_contract(
        creator.id,
        DEMO_CONTRACT_TITLE,
        description="Demo contract for local development",
        content=DEMO_CONTRACT_CONTENT,
    )
    for user in users[1:]:
        service.add_member(created.contract.id, creator.id, user.id, "reviewer")
    return created.contract


def seed_all(db: Session):
    """Seed all initial data."""
    users = seed_users(db)
    contract = seed_contract(db, users)
    print(f"Seeded {len(users)} users and contract {contract.id}")
