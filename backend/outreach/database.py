"""Database connection and session management."""

from contextlib import contextmanager
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from outreach.config import settings

# Normalise async driver URLs to the sync driver used by the engine
database_url = settings.DATABASE_URL.replace(
    "postgresql+asyncpg://", "postgresql://"
)

engine_options = {"echo": settings.LOG_LEVEL == "DEBUG", "pool_pre_ping": True}
if database_url.startswith("postgresql"):
    engine_options.update(pool_size=20, max_overflow=10)

# Create engine
engine = create_engine(database_url, **engine_options)

# Create session factory
SessionLocal = sessionmaker(
    bind=engine,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False
)

# Base class for models
Base = declarative_base()


def get_db():
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope(session_factory=None):
    """Transactional scope: commit on success, rollback on error."""
    session = (session_factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
