"""
Verification token model: one-time proof of control over a signup's email.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from .base import BaseModel, as_utc, utcnow


class VerificationToken(BaseModel):
    """
    Opaque random token bound to a user.

    ``consumed_at`` is set once, either by a successful verification or when
    a newer token supersedes this one.
    """

    __tablename__ = "verification_token"

    token = Column(String(128), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    consumed_at = Column(DateTime(timezone=True), nullable=True)

    user = relationship("User", lazy="joined")

    __table_args__ = (
        Index("idx_verification_token_user_id", "user_id"),
    )

    @property
    def is_consumed(self) -> bool:
        return self.consumed_at is not None

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return as_utc(self.expires_at) <= (now or utcnow())

    def __repr__(self) -> str:
        return f"<VerificationToken(id={self.id}, user_id={self.user_id})>"
