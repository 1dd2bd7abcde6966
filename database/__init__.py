"""Database package: ORM models, session helpers and plan stores."""

from .database import (
    write_engine,
    read_engine,
    WriteSessionLocal,
    ReadSessionLocal,
    init_db,
    get_write_session,
    get_read_session,
)
from . import models

__all__ = [
    "write_engine",
    "read_engine",
    "WriteSessionLocal",
    "ReadSessionLocal",
    "init_db",
    "get_write_session",
    "get_read_session",
    "models",
]
