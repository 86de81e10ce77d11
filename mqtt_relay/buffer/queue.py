"""
Pending Queue
=============

Bounded Context: Store-and-Forward Buffer

This module provides the in-memory FIFO that holds messages published while
the broker connection is down.

Design Principles:
- Immutability: BufferedEvent is a frozen dataclass
- FIFO: insertion order == publish-attempt order, no deduplication
- Forward-only drain: an entry leaves the queue only after the consumer
  has handled it and asked for the next one
- Not thread-safe: the owning publisher serializes access

Example:
    >>> queue = PendingQueue()
    >>> queue.append("sip/events", b'{"event": "CALL_RINGING"}')
    >>> for event in queue.drain():
    ...     transport.send(event.topic, event.payload)
    >>> len(queue)
    0
"""

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Iterator, Optional, Tuple

from ..errors import BufferOverflow


class OverflowPolicy(str, Enum):
    """What a bounded queue does when it is full."""
    DROP_OLDEST = "drop_oldest"    # Evict the head, accept the new entry
    REJECT_NEW = "reject_new"      # Raise BufferOverflow, keep the queue


@dataclass(frozen=True)
class BufferedEvent:
    """
    One message waiting in the pending queue.

    Attributes:
        topic: Destination topic (non-empty)
        payload: Fully rendered message body

    Invariants:
        - topic is non-empty
        - payload is bytes
    """
    topic: str
    payload: bytes

    def __post_init__(self):
        """Validate invariants."""
        if not self.topic:
            raise ValueError("BufferedEvent topic cannot be empty")
        if not isinstance(self.payload, bytes):
            raise ValueError(
                f"BufferedEvent payload must be bytes, got {type(self.payload).__name__}"
            )

    @property
    def size(self) -> int:
        """Payload length in bytes."""
        return len(self.payload)


class PendingQueue:
    """
    Ordered in-memory list of BufferedEvents awaiting transmission.

    Unbounded unless max_size is given; when bounded, overflow_policy decides
    between evicting the oldest entry and rejecting the new one.
    """

    def __init__(
        self,
        max_size: Optional[int] = None,
        overflow_policy: OverflowPolicy = OverflowPolicy.DROP_OLDEST
    ):
        if max_size is not None and max_size <= 0:
            raise ValueError(f"max_size must be > 0, got {max_size}")
        self.max_size = max_size
        self.overflow_policy = OverflowPolicy(overflow_policy)
        self._entries: Deque[BufferedEvent] = deque()

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    @property
    def is_full(self) -> bool:
        return self.max_size is not None and len(self._entries) >= self.max_size

    def append(self, topic: str, payload: bytes) -> Optional[BufferedEvent]:
        """
        Append a message to the tail of the queue.

        Args:
            topic: Destination topic
            payload: Rendered message body

        Returns:
            The entry evicted to make room (DROP_OLDEST on a full queue),
            otherwise None

        Raises:
            BufferOverflow: Queue is full and the policy is REJECT_NEW
            ValueError: topic empty or payload not bytes
        """
        event = BufferedEvent(topic=topic, payload=payload)

        evicted = None
        if self.is_full:
            if self.overflow_policy is OverflowPolicy.REJECT_NEW:
                raise BufferOverflow(self.max_size)
            evicted = self._entries.popleft()

        self._entries.append(event)
        return evicted

    def drain(self) -> Iterator[BufferedEvent]:
        """
        Yield entries in FIFO order, removing each one once the consumer
        moves past it.

        Breaking out of the loop (or raising inside it) leaves the current
        entry and all later ones queued. Entries yielded before that are gone
        for good.

        Example:
            >>> for event in queue.drain():
            ...     if not send(event):
            ...         break   # event stays at the head of the queue
        """
        while self._entries:
            yield self._entries[0]
            self._entries.popleft()

    def clear(self) -> int:
        """Drop every entry. Returns the number of entries dropped."""
        dropped = len(self._entries)
        self._entries.clear()
        return dropped

    def snapshot(self) -> Tuple[BufferedEvent, ...]:
        """Immutable copy of the current entries, head first."""
        return tuple(self._entries)
