"""
Error taxonomy for the buffered publisher.

Every failure is raised to the immediate caller; nothing here is retried
internally.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .buffer import BufferedEvent


class TransportError(Exception):
    """Raised by a transport when a single send could not be handed to the broker"""
    pass


class PublishError(Exception):
    """Base class for publisher failures"""
    pass


class InvalidArgument(PublishError, ValueError):
    """Raised when a topic or payload is malformed (caller bug, not retried)"""
    pass


class TransmitFailed(PublishError):
    """Raised when a live (non-buffered) send fails"""

    def __init__(self, topic: str, requeued: bool = False):
        self.topic = topic
        self.requeued = requeued
        state = "requeued" if requeued else "dropped"
        super().__init__(f"Failed to transmit message on '{topic}' ({state})")


class FlushFailed(PublishError):
    """
    Raised when a queued message fails to send during a flush.

    The failing entry and everything after it are still queued, in order,
    so calling flush() again later is safe.
    """

    def __init__(
        self,
        sent: int,
        remaining: int,
        event: Optional["BufferedEvent"] = None
    ):
        self.sent = sent
        self.remaining = remaining
        self.event = event
        topic = event.topic if event is not None else None
        super().__init__(
            f"Flush stopped after {sent} message(s); "
            f"{remaining} still queued (failed on topic '{topic}')"
        )


class BufferOverflow(PublishError):
    """Raised when a bounded queue is full and configured to reject new entries"""

    def __init__(self, max_size: int):
        self.max_size = max_size
        super().__init__(f"Pending queue is full (max_size={max_size})")


class PublisherClosed(PublishError):
    """Raised when publishing through a publisher that has been closed"""
    pass
