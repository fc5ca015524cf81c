"""
Database package.
Provides async SQLAlchemy engine, session management, and ORM models.
"""
from app.database.base import Base
from app.database.session import Database

__all__ = [
    "Base",
    "Database",
]
