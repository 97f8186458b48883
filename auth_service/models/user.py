"""
User model: the identity record owned by the credential store.
"""
from sqlalchemy import Boolean, Column, DateTime, String

from .base import BaseModel


class User(BaseModel):
    """
    Account identity.

    Created disabled at signup and enabled exactly once by email
    verification. ``password_hash`` is a self-describing bcrypt string.
    """

    __tablename__ = "user"

    username = Column(String(64), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    enabled = Column(Boolean, default=False, nullable=False)
    verified_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, username={self.username}, enabled={self.enabled})>"
