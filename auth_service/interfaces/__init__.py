"""
Interface definitions for dependency abstractions.
These Protocol classes define the contracts services depend on.
"""
from .notification_interface import IMailSender, INotificationDispatcher, NotificationEmail
from .repository_interface import IUserRepository, IVerificationTokenRepository

__all__ = [
    "IMailSender",
    "INotificationDispatcher",
    "IUserRepository",
    "IVerificationTokenRepository",
    "NotificationEmail",
]
