"""Account signup, email verification and session-token login for the Reddit clone."""

__version__ = "1.0.0"
