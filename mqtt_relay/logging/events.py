"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

This module defines typed event names for structured logging.

Event Naming Convention:
    <component>.<category>.<action>

    component: mqtt, buffer, relay, error
    category: publish, flush, queued
    action: success, failed, started

Example Log Query (CloudWatch Insights):
    fields @timestamp, event, message, metadata.pending
    | filter event = "buffer.flush.failed"
    | stats count() by bin(5m)
"""

from enum import Enum


class LogEvent(str, Enum):
    """
    Typed log event names for structured logging.

    Categories:
    - mqtt.*: Broker connection and live sends
    - buffer.*: Pending queue lifecycle (queue, flush, teardown)
    - relay.*: Application events relayed as publishes
    - error.*: Error conditions
    """

    # ========== MQTT Events ==========
    MQTT_CONNECTED = "mqtt.connected"
    """MQTT broker connection established."""

    MQTT_DISCONNECTED = "mqtt.disconnected"
    """MQTT broker connection lost."""

    MQTT_PUBLISH_SUCCESS = "mqtt.publish.success"
    """Live message successfully handed to the broker."""

    MQTT_PUBLISH_FAILED = "mqtt.publish.failed"
    """Live message publication failed."""

    # ========== Buffer Events ==========
    BUFFER_QUEUED = "buffer.queued"
    """Message queued while disconnected."""

    BUFFER_FLUSH_STARTED = "buffer.flush.started"
    """Draining of the pending queue started."""

    BUFFER_FLUSH_SUCCESS = "buffer.flush.success"
    """Pending queue fully drained."""

    BUFFER_FLUSH_FAILED = "buffer.flush.failed"
    """Draining stopped on a failed send."""

    BUFFER_FLUSH_SKIPPED = "buffer.flush.skipped"
    """Flush requested while disconnected."""

    BUFFER_ENTRY_SENT = "buffer.entry.sent"
    """One queued message transmitted."""

    BUFFER_OVERFLOW = "buffer.overflow"
    """Bounded queue full; overflow policy applied."""

    BUFFER_REQUEUED = "buffer.requeued"
    """Message put back at the tail after a failed send."""

    BUFFER_CLEARED = "buffer.cleared"
    """Pending queue dropped on teardown."""

    # ========== Relay Events ==========
    RELAY_ATTACHED = "relay.attached"
    """Relay registered on an event bus."""

    RELAY_DETACHED = "relay.detached"
    """Relay unregistered from an event bus."""

    RELAY_EVENT_FORWARDED = "relay.event.forwarded"
    """Application event handed to the publisher."""

    # ========== Error Events ==========
    SERIALIZATION_ERROR = "error.serialization"
    """Failed to render an event as JSON."""

    LISTENER_ERROR = "error.listener"
    """An event bus listener raised."""

    MQTT_CONNECTION_ERROR = "error.mqtt_connection"
    """Failed to connect to MQTT broker."""

    MQTT_PUBLISH_ERROR = "error.mqtt_publish"
    """Error during message publication."""
