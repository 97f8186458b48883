"""
Notification interfaces.

A sender talks to the transport; a dispatcher decides whether the send
happens inside the request or on a background worker.
"""
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class NotificationEmail:
    subject: str
    recipient: str
    body: str


@runtime_checkable
class IMailSender(Protocol):
    """Protocol for outbound mail transports."""

    async def send(self, email: NotificationEmail) -> None:
        """
        Deliver a message.

        Raises:
            DeliveryError: If the transport rejected or could not take the message
        """
        ...


@runtime_checkable
class INotificationDispatcher(Protocol):
    """Protocol for handing notifications off to a sender."""

    async def dispatch(self, email: NotificationEmail) -> None:
        """
        Hand ``email`` off for delivery.

        Raises:
            DeliveryError: If the notification could not be accepted
        """
        ...

    async def start(self) -> None:
        ...

    async def stop(self) -> None:
        ...
