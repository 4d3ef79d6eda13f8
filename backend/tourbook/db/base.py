"""
Declarative base and shared column helpers.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


def version_column() -> Column:
    """
    Optimistic version counter. Mapped with `version_id_col`, so every ORM
    update is issued as UPDATE ... WHERE version = :old and bumps it.
    """
    return Column(Integer, nullable=False, default=1)
