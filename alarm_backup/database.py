# alarm_backup/database.py
"""
Database connection, session management, and table creation for the
daily summary store. Uses SQLAlchemy; SQLite by default, any SQLAlchemy URL
(e.g. PostgreSQL) via DATABASE_URL.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from alarm_backup.config import settings


def build_engine(url: str):
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False}, echo=False)
    return create_engine(
        url,
        pool_pre_ping=True,          # Auto-reconnect if DB connection drops
        pool_size=5,
        max_overflow=10,
        echo=False,                  # Set True to log all SQL queries (debug only)
    )


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: yields a DB session and closes it after request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables(bind=None):
    """
    Creates all DB tables. Safe to call multiple times.
    Import all models here so SQLAlchemy knows about them.
    """
    from alarm_backup.models.summary_event import SummaryEvent  # noqa

    Base.metadata.create_all(bind=bind or engine)
