"""Database helpers: engines, session factories and DB initialization.

Provides read/write session factories and a simple `init_db` helper that
creates tables.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from core import config
from .models import Base

# Read/Write partitioning pattern
# In production, set WRITE_DATABASE_URL and READ_DATABASE_URL to different DB instances.
WRITE_DATABASE_URL = config.WRITE_DATABASE_URL
READ_DATABASE_URL = config.READ_DATABASE_URL


def _connect_args(url: str) -> dict:
    return {"check_same_thread": False} if url.startswith("sqlite") else {}


# Engines
write_engine = create_engine(WRITE_DATABASE_URL, connect_args=_connect_args(WRITE_DATABASE_URL))
read_engine = create_engine(READ_DATABASE_URL, connect_args=_connect_args(READ_DATABASE_URL))

# Session factories
WriteSessionLocal = sessionmaker(bind=write_engine)
ReadSessionLocal = sessionmaker(bind=read_engine)


def init_db(engine=None):
    """Initialize database schema.

    Creates all tables (including the diet plan unique constraint) using
    the SQLAlchemy models. Safe to call repeatedly.
    """
    Base.metadata.create_all(bind=engine or write_engine)


# Convenience generators for dependency injection
def get_write_session():
    """Yield a write-enabled SQLAlchemy session for the request scope."""
    db = WriteSessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_read_session():
    """Yield a read-only SQLAlchemy session for the request scope."""
    db = ReadSessionLocal()
    try:
        yield db
    finally:
        db.close()
