"""User model."""

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String

from clausebase_api.db.base import Base


def new_id() -> str:
    """Generate a string UUID primary key."""
    return str(uuid.uuid4())


class User(Base):
    """Application user; authentication lives outside this service."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True, unique=True, index=True)
    wallet_address = Column(String(128), nullable=True)  # External ledger identity for proof attribution
    role_title = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
