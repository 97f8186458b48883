"""
Declarative base and shared column mixins.
"""
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, DateTime, Integer, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything stored here is UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class TimestampMixin:
    """Mixin for the creation timestamp."""

    created_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )


class BaseModel(Base, TimestampMixin):
    """Base model with an integer primary key."""

    __abstract__ = True

    id = Column(Integer, primary_key=True, index=True)
