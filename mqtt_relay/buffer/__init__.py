"""
Store-and-Forward Buffer
========================

Public API
----------
    BufferedEvent: One queued (topic, payload) pair
    PendingQueue: FIFO of BufferedEvents with forward-only drain
    OverflowPolicy: Behaviour of a bounded queue when full
"""

from .queue import BufferedEvent, OverflowPolicy, PendingQueue

__all__ = [
    'BufferedEvent',
    'OverflowPolicy',
    'PendingQueue',
]
