"""
Notification dispatch.

The background dispatcher decouples mail transport latency from the
request/response cycle: ``dispatch`` only enqueues, and a small pool of
worker tasks drains the queue and logs delivery failures.
"""
import asyncio
from typing import List, Optional

import structlog

from ..core.config import Settings
from ..core.exceptions import DeliveryError
from ..interfaces.notification_interface import IMailSender, INotificationDispatcher, NotificationEmail
from .mail_service import mask_email

logger = structlog.get_logger()


class InlineNotificationDispatcher(INotificationDispatcher):
    """Sends within the caller's request; failures surface as DeliveryError."""

    def __init__(self, sender: IMailSender):
        self.sender = sender

    async def dispatch(self, email: NotificationEmail) -> None:
        try:
            await self.sender.send(email)
        except DeliveryError:
            raise
        except Exception as e:
            logger.error("Notification send failed", recipient=mask_email(email.recipient), error=str(e))
            raise DeliveryError(str(e)) from e

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None


class BackgroundNotificationDispatcher(INotificationDispatcher):
    """Queue plus worker pool; the request never waits on the transport."""

    def __init__(
        self,
        sender: IMailSender,
        worker_count: int = 2,
        max_queue_size: int = 1000,
        shutdown_timeout: float = 10.0,
    ):
        self.sender = sender
        self.worker_count = worker_count
        self.max_queue_size = max_queue_size
        self.shutdown_timeout = shutdown_timeout
        self._queue: Optional[asyncio.Queue] = None
        self._workers: List[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    async def start(self) -> None:
        """Start the worker tasks on the running event loop."""
        if self.is_running:
            return
        self._queue = asyncio.Queue(maxsize=self.max_queue_size)
        self._workers = [
            asyncio.create_task(self._worker(index), name=f"mail-worker-{index}")
            for index in range(self.worker_count)
        ]
        logger.info("Notification workers started", worker_count=self.worker_count)

    async def stop(self) -> None:
        """Drain the queue (bounded by ``shutdown_timeout``), then cancel the workers."""
        if not self.is_running:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=self.shutdown_timeout)
        except asyncio.TimeoutError:
            logger.warning("Notification queue not drained before shutdown", pending=self.pending)

        for worker in self._workers:
            worker.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Notification workers stopped")

    async def dispatch(self, email: NotificationEmail) -> None:
        """
        Enqueue ``email`` for delivery.

        Raises:
            DeliveryError: If the dispatcher is not running or the queue is full
        """
        if not self.is_running:
            raise DeliveryError("notification dispatcher is not running")
        try:
            self._queue.put_nowait(email)
        except asyncio.QueueFull as e:
            logger.error("Notification queue full", recipient=mask_email(email.recipient))
            raise DeliveryError("notification queue is full") from e

        logger.debug("Notification queued", recipient=mask_email(email.recipient), pending=self.pending)

    async def join(self) -> None:
        """Wait until every queued notification has been attempted."""
        if self._queue is not None:
            await self._queue.join()

    async def _worker(self, index: int) -> None:
        while True:
            email = await self._queue.get()
            try:
                await self.sender.send(email)
            except DeliveryError as e:
                logger.error(
                    "Background notification delivery failed",
                    worker=index,
                    recipient=mask_email(email.recipient),
                    error=e.message,
                )
            except Exception as e:
                logger.exception(
                    "Unexpected error in notification worker",
                    worker=index,
                    recipient=mask_email(email.recipient),
                    error=str(e),
                )
            finally:
                self._queue.task_done()


def create_notification_dispatcher(settings: Settings, sender: IMailSender) -> INotificationDispatcher:
    if settings.MAIL_DELIVERY_MODE == "inline":
        return InlineNotificationDispatcher(sender)
    return BackgroundNotificationDispatcher(
        sender,
        worker_count=settings.MAIL_WORKER_COUNT,
        max_queue_size=settings.MAIL_QUEUE_SIZE,
        shutdown_timeout=settings.MAIL_SHUTDOWN_TIMEOUT_SECONDS,
    )
