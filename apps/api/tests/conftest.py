"""Pytest configuration and fixtures."""

import os
from typing import Optional

# Settings are read at import time; point them at SQLite before anything loads
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("CONTENT_STORE_PROVIDER", "inline")
os.environ.setdefault("LEDGER_ANCHOR_PROVIDER", "local")
os.environ.setdefault("ANCHOR_MODE", "inline")

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import clausebase_api.models  # noqa: F401, E402
from clausebase_api.contracts.service import ContractService  # noqa: E402
from clausebase_api.db.base import Base  # noqa: E402
from clausebase_api.models import Contract, User  # noqa: E402

# Use test database URL from environment or default to SQLite in-memory
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")


@pytest.fixture(scope="function")
def engine():
    """Test engine; schema is created fresh per test."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        engine = create_engine(
            TEST_DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(TEST_DATABASE_URL)

    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Create a test database session."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db: Session):
    """Factory for users."""
    counter = {"n": 0}

    def _make(name: Optional[str] = None, wallet_address: Optional[str] = None) -> User:
        counter["n"] += 1
        name = name or f"User {counter['n']}"
        user = User(
            name=name,
            email=f"{name.lower().replace(' ', '.')}.{counter['n']}@example.com",
            wallet_address=wallet_address,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def alice(make_user) -> User:
    return make_user("Alice", wallet_address="AliceWallet1111111111111111111111111111111")


@pytest.fixture
def bob(make_user) -> User:
    return make_user("Bob")


@pytest.fixture
def carol(make_user) -> User:
    return make_user("Carol")


@pytest.fixture
def make_contract(db: Session):
    """Factory for contracts with members; the first user is the creator."""

    def _make(creator: User, *members: User, title: str = "Supply Agreement") -> Contract:
        service = ContractService(db)
        contract = service.create_contract(creator.id, title).contract
        for member in members:
            service.add_member(contract.id, creator.id, member.id, "reviewer")
        return contract

    return _make


@pytest.fixture
def contract(make_contract, alice, bob, carol) -> Contract:
    """Three-member contract created by Alice."""
    return make_contract(alice, bob, carol)
