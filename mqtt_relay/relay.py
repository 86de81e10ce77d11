"""
Event Relay
===========

Bounded Context: Application events → MQTT publishes

Responsibilities:
  - EventBus: explicit listener registration and fan-out
  - EventRelay: listener that renders each event as JSON and publishes it
    through a BufferedPublisher

Any callable with the listener signature can subscribe to the bus, so the
publisher never depends on a particular event source.

Threading: EventBus registration is lock-protected; emit() runs listeners in
the caller's thread.

Example:
    >>> bus = EventBus(logger)
    >>> relay = EventRelay(publisher, topic="sip/events", logger=logger)
    >>> relay.attach(bus)
    >>> bus.emit("CALL_ESTABLISHED", {"peer": "sip:alice@example.com"})
"""

import json
import threading
from typing import Any, Callable, Dict, List, Mapping, Optional

from .errors import PublishError
from .logging import StructuredLogger, LogEvent
from .publishers import BufferedPublisher

Listener = Callable[[str, Mapping[str, Any]], None]


class EventBus:
    """
    Registry of event listeners with explicit registration.

    Thread Safety:
      - register/unregister take a lock
      - emit() iterates over a snapshot, so listeners may unregister
        themselves while an event is being delivered
    """

    def __init__(self, logger: StructuredLogger):
        self.logger = logger
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def register(self, listener: Listener) -> None:
        """
        Register a listener.

        Raises:
            ValueError: If listener already registered (double registration)
        """
        with self._lock:
            if listener in self._listeners:
                raise ValueError(f"Listener {listener!r} already registered")
            self._listeners.append(listener)

    def unregister(self, listener: Listener) -> bool:
        """Remove a listener. Returns False if it was not registered."""
        with self._lock:
            try:
                self._listeners.remove(listener)
            except ValueError:
                return False
            return True

    def is_registered(self, listener: Listener) -> bool:
        return listener in self._listeners

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def emit(self, event_name: str, data: Optional[Mapping[str, Any]] = None) -> int:
        """
        Deliver an event to every listener, in registration order.

        A listener that raises is logged and skipped; the others still run.

        Returns:
            Number of listeners that handled the event without raising
        """
        with self._lock:
            listeners = list(self._listeners)

        payload = data or {}
        delivered = 0
        for listener in listeners:
            try:
                listener(event_name, payload)
                delivered += 1
            except Exception as e:
                self.logger.error(
                    event=LogEvent.LISTENER_ERROR,
                    message="Event listener raised",
                    exc_info=e,
                    metadata={'event_name': event_name}
                )
        return delivered


class EventRelay:
    """
    Relays bus events as JSON publishes on a single topic.

    Each event becomes {"event": <name>, ...data}. Failures never propagate
    back into the event source: a rendering error or a publish error is
    logged and the event is dropped.
    """

    def __init__(
        self,
        publisher: BufferedPublisher,
        topic: str,
        logger: StructuredLogger
    ):
        if not topic:
            raise ValueError("topic cannot be empty")
        self.publisher = publisher
        self.topic = topic
        self.logger = logger
        self._forwarded = 0

    def render(self, event_name: str, data: Mapping[str, Any]) -> bytes:
        """
        Render an event as a compact JSON document.

        The event name always wins over an "event" key in data.

        Raises:
            ValueError: data is not a mapping or not JSON-serializable
        """
        try:
            document: Dict[str, Any] = {**data, 'event': event_name}
            return json.dumps(document, separators=(',', ':')).encode('utf-8')
        except (TypeError, ValueError) as e:
            raise ValueError(f"Cannot render event '{event_name}': {e}") from e

    def __call__(self, event_name: str, data: Mapping[str, Any]) -> None:
        try:
            payload = self.render(event_name, data)
        except ValueError as e:
            self.logger.error(
                event=LogEvent.SERIALIZATION_ERROR,
                message="Failed to render event",
                exc_info=e,
                metadata={'event_name': event_name}
            )
            return

        try:
            self.publisher.publish(self.topic, payload)
        except PublishError as e:
            self.logger.warning(
                event=LogEvent.MQTT_PUBLISH_ERROR,
                message=f"Failed to publish message ({e})",
                metadata={'event_name': event_name, 'topic': self.topic}
            )
            return

        self._forwarded += 1
        self.logger.debug(
            event=LogEvent.RELAY_EVENT_FORWARDED,
            message="Relayed event",
            metadata={'event_name': event_name, 'topic': self.topic}
        )

    @property
    def forwarded(self) -> int:
        """Events accepted by the publisher (sent or queued)."""
        return self._forwarded

    def attach(self, bus: EventBus) -> None:
        bus.register(self)
        self.logger.info(
            event=LogEvent.RELAY_ATTACHED,
            message="Relaying events",
            metadata={'topic': self.topic}
        )

    def detach(self, bus: EventBus) -> None:
        if bus.unregister(self):
            self.logger.info(
                event=LogEvent.RELAY_DETACHED,
                message="Stopped relaying events",
                metadata={'topic': self.topic, 'forwarded': self._forwarded}
            )
