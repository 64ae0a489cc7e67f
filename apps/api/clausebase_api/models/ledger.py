"""Local proof ledger models."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, JSON, String

from clausebase_api.db.base import Base


class LedgerEvent(Base):
    """Append-only proof ledger with hash chaining, one chain per stream."""

    __tablename__ = "ledger_events"

    id = Column(Integer, primary_key=True, index=True)
    event_hash = Column(String(64), nullable=False, unique=True, index=True)
    previous_event_hash = Column(String(64), nullable=True, index=True)  # NULL for first event in stream
    stream = Column(String(100), nullable=False, index=True)  # e.g. "contract:<id>"
    event_type = Column(String(100), nullable=False, index=True)  # proof.anchored
    payload_json = Column(JSON, nullable=False)
    event_timestamp = Column(String(40), nullable=False)  # ISO timestamp included in the hash
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
