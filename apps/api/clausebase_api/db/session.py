"""Database session management."""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from clausebase_api.settings import get_settings

settings = get_settings()


def _engine_kwargs(url: str) -> dict:
    """Pool options; SQLite engines do not take QueuePool sizing."""
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


engine = create_engine(
    settings.database_url_computed,
    **_engine_kwargs(settings.database_url_computed),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
