from .user_repository import UserRepository
from .verification_token_repository import VerificationTokenRepository

__all__ = ["UserRepository", "VerificationTokenRepository"]
