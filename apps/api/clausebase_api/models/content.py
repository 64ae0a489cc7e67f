"""Inline content blob model (local/test content store)."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, LargeBinary, String

from clausebase_api.db.base import Base


class ContentBlob(Base):
    """Content-addressed blob kept in the database."""

    __tablename__ = "content_blobs"

    reference = Column(String(80), primary_key=True)  # "sha256:<hex>"
    data = Column(LargeBinary, nullable=False)
    size = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
