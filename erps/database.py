# erps/database.py
"""
Database connection, session management, and table creation.
Uses SQLAlchemy with PostgreSQL (SQLite is accepted for local runs and tests).
All models are auto-imported here so create_tables() creates every table in one call.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from erps.config import settings


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # Single shared connection so an in-memory DB survives across sessions
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return {
        "pool_pre_ping": True,   # Auto-reconnect if DB connection drops
        "pool_size": 10,
        "max_overflow": 20,
    }


engine = create_engine(
    settings.DATABASE_URL,
    echo=False,                  # Set True to log all SQL queries (debug only)
    **_engine_options(settings.DATABASE_URL),
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """
    Creates all DB tables on startup. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from erps.models.user import User                            # noqa
    from erps.models.warranty import Warranty                    # noqa
    from erps.models.inspection import Inspection                # noqa
    from erps.models.photo import Photo                          # noqa
    from erps.models.verification_token import VerificationToken  # noqa
    from erps.models.audit_history import AuditHistory           # noqa
    from erps.models.reinstatement import Reinstatement          # noqa
    from erps.models.inspection_reminder import InspectionReminder  # noqa
    from erps.models.warranty_terms import WarrantyTerms             # noqa

    Base.metadata.create_all(bind=engine)
