"""
ORM models. Importing this package registers every table on ``Base.metadata``.
"""
from .base import Base, BaseModel
from .user import User
from .verification_token import VerificationToken

__all__ = ["Base", "BaseModel", "User", "VerificationToken"]
