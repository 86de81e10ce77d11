"""
Buffered Publisher
==================

Bounded Context: Store-and-Forward Message Production

This module provides the connection-state-aware publisher that sits between
event producers and an unreliable MQTT transport.

Design:
- Disconnected: publish() queues the message and returns normally
- Connected: publish() flushes the backlog first, then sends the new message
- flush(): drains the queue in FIFO order and stops on the first failure,
  leaving the failing message and everything after it queued
- One lock serializes every queue mutation (producers, reconnect callback,
  teardown)

Message Flow:
    Producer → BufferedPublisher.publish → PendingQueue (offline)
                                         → flush → Transport.send (online)
    Transport reconnect → BufferedPublisher.flush

Example:
    >>> publisher = BufferedPublisher(transport=transport, logger=logger)
    >>> publisher.publish("sip/events", b'{"event": "REGISTER_OK"}')
    >>> transport.add_connect_listener(publisher.flush)
"""

import threading
from typing import Any, Dict, Optional, Tuple, Union

from ..buffer import BufferedEvent, OverflowPolicy, PendingQueue
from ..errors import (
    BufferOverflow,
    FlushFailed,
    InvalidArgument,
    PublisherClosed,
    TransmitFailed,
    TransportError,
)
from ..logging import StructuredLogger, LogEvent
from ..transport import Transport

Payload = Union[bytes, bytearray, str]


class BufferedPublisher:
    """
    Publisher that never silently loses a message produced while offline.

    Attributes:
        transport: Collaborator providing send() and is_connected()
        logger: Structured logger instance
        requeue_on_transmit_failure: Put a failed live message back in the
            queue instead of dropping it (default: False, live sends are
            fire-and-forget)

    Thread Safety:
        publish(), flush() and close() are mutually exclusive. Transport
        sends happen while the lock is held, so a slow broker blocks other
        producers instead of letting them overtake the backlog.
    """

    def __init__(
        self,
        transport: Transport,
        logger: StructuredLogger,
        max_size: Optional[int] = None,
        overflow_policy: OverflowPolicy = OverflowPolicy.DROP_OLDEST,
        requeue_on_transmit_failure: bool = False
    ):
        """
        Initialize buffered publisher.

        Args:
            transport: Transport used for every send
            logger: Structured logger for observability
            max_size: Bound on queued messages (default: None, unbounded)
            overflow_policy: What to do when a bounded queue is full
            requeue_on_transmit_failure: Re-buffer failed live sends
        """
        self.transport = transport
        self.logger = logger
        self.requeue_on_transmit_failure = requeue_on_transmit_failure

        self._queue = PendingQueue(max_size=max_size, overflow_policy=overflow_policy)
        self._lock = threading.Lock()
        self._closed = False
        self._stats = {
            'published': 0,
            'buffered': 0,
            'flushed': 0,
            'dropped': 0,
            'failed': 0,
        }

    def __enter__(self) -> 'BufferedPublisher':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def pending(self) -> int:
        """Number of messages waiting in the queue."""
        with self._lock:
            return len(self._queue)

    @property
    def closed(self) -> bool:
        return self._closed

    def pending_events(self) -> Tuple[BufferedEvent, ...]:
        """Snapshot of queued messages, oldest first."""
        with self._lock:
            return self._queue.snapshot()

    @staticmethod
    def _validate(topic: str, payload: Payload) -> bytes:
        if not isinstance(topic, str) or not topic:
            raise InvalidArgument(f"topic must be a non-empty string, got {topic!r}")
        if isinstance(payload, str):
            return payload.encode('utf-8')
        if isinstance(payload, (bytes, bytearray)):
            return bytes(payload)
        raise InvalidArgument(
            f"payload must be bytes or str, got {type(payload).__name__}"
        )

    def publish(self, topic: str, payload: Payload) -> None:
        """
        Deliver one message, or queue it if the broker is unreachable.

        Args:
            topic: Destination topic
            payload: Rendered message body (str is encoded as UTF-8)

        Raises:
            InvalidArgument: Empty topic or unsupported payload type
            PublisherClosed: close() was already called
            BufferOverflow: Bounded queue full under REJECT_NEW
            FlushFailed: The backlog could not be drained; the new message
                was queued behind it
            TransmitFailed: The backlog is empty but the new message failed
        """
        data = self._validate(topic, payload)

        with self._lock:
            if self._closed:
                raise PublisherClosed(f"Cannot publish on '{topic}': publisher is closed")

            if not self.transport.is_connected():
                self._enqueue(topic, data)
                return

            try:
                self._flush_locked()
            except FlushFailed:
                # The backlog is still there, so the new message goes behind it.
                try:
                    self._enqueue(topic, data)
                except BufferOverflow:
                    pass
                raise

            self._send_live(topic, data)

    def flush(self) -> int:
        """
        Transmit every queued message in order.

        No-op when disconnected or closed.

        Returns:
            Number of messages sent

        Raises:
            FlushFailed: A send failed; that message and every later one are
                still queued in their original order
        """
        with self._lock:
            return self._flush_locked()

    def close(self) -> None:
        """
        Drop every queued message and refuse further publishes.

        Safe to call multiple times.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            dropped = self._queue.clear()
            self._stats['dropped'] += dropped

        self.logger.info(
            event=LogEvent.BUFFER_CLEARED,
            message="Publisher closed, pending queue dropped",
            metadata={'dropped': dropped}
        )

    def get_stats(self) -> Dict[str, Any]:
        """
        Get publisher statistics.

        Example:
            >>> stats = publisher.get_stats()
            >>> print(f"{stats['pending']} messages waiting")
        """
        with self._lock:
            stats: Dict[str, Any] = dict(self._stats)
            stats['pending'] = len(self._queue)
        stats['connected'] = self.transport.is_connected()
        stats['closed'] = self._closed
        return stats

    # ===== Internals (caller holds self._lock) =====

    def _enqueue(self, topic: str, data: bytes) -> None:
        try:
            evicted = self._queue.append(topic, data)
        except BufferOverflow:
            self._stats['dropped'] += 1
            self.logger.warning(
                event=LogEvent.BUFFER_OVERFLOW,
                message="Pending queue full, rejecting new message",
                metadata={'topic': topic, 'max_size': self._queue.max_size}
            )
            raise

        self._stats['buffered'] += 1
        if evicted is not None:
            self._stats['dropped'] += 1
            self.logger.warning(
                event=LogEvent.BUFFER_OVERFLOW,
                message="Pending queue full, dropped oldest message",
                metadata={'topic': evicted.topic, 'max_size': self._queue.max_size}
            )

        self.logger.warning(
            event=LogEvent.BUFFER_QUEUED,
            message="Queueing message for later delivery",
            metadata={'topic': topic, 'size': len(data), 'pending': len(self._queue)}
        )

    def _flush_locked(self) -> int:
        if self._closed:
            return 0

        if not self.transport.is_connected():
            if self._queue:
                self.logger.warning(
                    event=LogEvent.BUFFER_FLUSH_SKIPPED,
                    message="Cannot publish queued messages while disconnected",
                    metadata={'pending': len(self._queue)}
                )
            return 0

        if not self._queue:
            return 0

        self.logger.info(
            event=LogEvent.BUFFER_FLUSH_STARTED,
            message="Publishing queued messages",
            metadata={'pending': len(self._queue)}
        )

        sent = 0
        for event in self._queue.drain():
            try:
                self.transport.send(event.topic, event.payload)
            except TransportError as e:
                self._stats['failed'] += 1
                remaining = len(self._queue)
                self.logger.error(
                    event=LogEvent.BUFFER_FLUSH_FAILED,
                    message="Failed to publish queued message",
                    exc_info=e,
                    metadata={'topic': event.topic, 'sent': sent, 'remaining': remaining}
                )
                raise FlushFailed(sent=sent, remaining=remaining, event=event) from e

            sent += 1
            self._stats['flushed'] += 1
            self.logger.debug(
                event=LogEvent.BUFFER_ENTRY_SENT,
                message="Published queued message",
                metadata={'topic': event.topic, 'size': event.size}
            )

        self.logger.info(
            event=LogEvent.BUFFER_FLUSH_SUCCESS,
            message=f"Flushed {sent} queued messages",
            metadata={'sent': sent}
        )
        return sent

    def _send_live(self, topic: str, data: bytes) -> None:
        try:
            self.transport.send(topic, data)
        except TransportError as e:
            self._stats['failed'] += 1
            requeued = False
            if self.requeue_on_transmit_failure:
                try:
                    self._enqueue(topic, data)
                    requeued = True
                except BufferOverflow:
                    pass
            else:
                self._stats['dropped'] += 1

            self.logger.error(
                event=LogEvent.MQTT_PUBLISH_FAILED,
                message="Failed to publish",
                exc_info=e,
                metadata={'topic': topic, 'requeued': requeued}
            )
            if requeued:
                self.logger.info(
                    event=LogEvent.BUFFER_REQUEUED,
                    message="Failed message put back in the queue",
                    metadata={'topic': topic, 'pending': len(self._queue)}
                )
            raise TransmitFailed(topic, requeued=requeued) from e

        self._stats['published'] += 1
        self.logger.info(
            event=LogEvent.MQTT_PUBLISH_SUCCESS,
            message="Published message",
            metadata={'topic': topic, 'size': len(data)}
        )
