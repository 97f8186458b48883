from .user_factory import (
    TEST_PASSWORD,
    UserFactory,
    VerificationTokenFactory,
    create_user,
)

__all__ = ["TEST_PASSWORD", "UserFactory", "VerificationTokenFactory", "create_user"]
