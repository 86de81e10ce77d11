"""
Publishers
==========

Bounded Context: Message Production

Public API
----------
    BufferedPublisher: Store-and-forward publisher (queue offline, flush on reconnect)
"""

from .buffered import BufferedPublisher

__all__ = [
    'BufferedPublisher',
]
