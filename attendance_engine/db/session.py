"""
Database session management
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from attendance_engine.core.config import settings
from attendance_engine.db.base import Base

_connect_args = {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    echo=False,
    connect_args=_connect_args,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_sqlite_schema() -> None:
    """Create all tables for SQLite deployments (PostgreSQL uses Alembic migrations)."""
    if "sqlite" in settings.DATABASE_URL:
        import attendance_engine.models  # noqa: F401  (register models on Base.metadata)
        Base.metadata.create_all(bind=engine)


def get_db():
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
