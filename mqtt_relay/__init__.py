"""
mqtt_relay - Store-and-Forward MQTT Publishing
==============================================

Bounded Context: Outbound messaging over an intermittent broker connection

This package keeps publishing application events while the MQTT connection
is down: messages produced offline are queued in memory and sent, in their
original order, as soon as the connection returns, before any newer message.

Architecture:
- buffer/: PendingQueue and BufferedEvent (FIFO, forward-only drain)
- publishers/: BufferedPublisher (publish / flush / close)
- transport: Transport protocol and paho-mqtt implementation
- relay: EventBus and EventRelay (application events → JSON publishes)
- config: YAML-backed frozen dataclasses
- logging/: Structured JSON logging for observability

Public API
----------
Buffer:
    BufferedEvent, PendingQueue, OverflowPolicy

Publishing:
    BufferedPublisher, Transport, PahoTransport

Relay:
    EventBus, EventRelay, MQTTRelayClient

Configuration:
    RelayConfig, MQTTConfig, BufferConfig

Errors:
    PublishError, InvalidArgument, TransmitFailed, FlushFailed,
    BufferOverflow, PublisherClosed, TransportError

Logging:
    LogEvent, StructuredLogger, create_logger

Example:
    >>> from mqtt_relay import BufferedPublisher, PahoTransport, create_logger
    >>>
    >>> logger = create_logger("softphone")
    >>> transport = PahoTransport(broker_host="localhost", logger=logger)
    >>> publisher = BufferedPublisher(transport=transport, logger=logger)
    >>> transport.add_connect_listener(publisher.flush)
    >>>
    >>> publisher.publish("softphone/events", b'{"event": "STARTUP"}')  # queued
    >>> transport.connect()  # queued message is flushed on connect
"""

# Version
__version__ = "1.0.0"

# Buffer
from .buffer import BufferedEvent, OverflowPolicy, PendingQueue

# Errors
from .errors import (
    PublishError,
    InvalidArgument,
    TransmitFailed,
    FlushFailed,
    BufferOverflow,
    PublisherClosed,
    TransportError,
)

# Publishing
from .publishers import BufferedPublisher
from .transport import Transport, PahoTransport

# Relay
from .relay import EventBus, EventRelay
from .client import MQTTRelayClient

# Configuration
from .config import RelayConfig, MQTTConfig, BufferConfig

# Logging
from .logging import (
    LogEvent,
    StructuredLogger,
    create_logger,
)

__all__ = [
    # Version
    '__version__',
    # Buffer
    'BufferedEvent',
    'OverflowPolicy',
    'PendingQueue',
    # Errors
    'PublishError',
    'InvalidArgument',
    'TransmitFailed',
    'FlushFailed',
    'BufferOverflow',
    'PublisherClosed',
    'TransportError',
    # Publishing
    'BufferedPublisher',
    'Transport',
    'PahoTransport',
    # Relay
    'EventBus',
    'EventRelay',
    'MQTTRelayClient',
    # Configuration
    'RelayConfig',
    'MQTTConfig',
    'BufferConfig',
    # Logging
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
