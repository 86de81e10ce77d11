"""
MQTT Transport
==============

Bounded Context: MQTT Infrastructure

This module provides the transport collaborator used by BufferedPublisher:
a one-shot `send(topic, payload)` and the connection state it reads through
`is_connected()`.

Design:
- Transport: structural protocol, so tests and other brokers can plug in
- PahoTransport: paho-mqtt client with its own network thread (loop_start)
- Connection state lives in a threading.Event written only by the
  on_connect / on_disconnect callbacks
- Connect listeners let the owner flush its backlog on every (re)connect

Example:
    >>> transport = PahoTransport(broker_host="localhost", logger=logger)
    >>> transport.add_connect_listener(publisher.flush)
    >>> transport.connect()
"""

import threading
from typing import Any, Callable, List, Optional, Protocol, runtime_checkable

import paho.mqtt.client as mqtt

from .errors import TransportError
from .logging import StructuredLogger, LogEvent


@runtime_checkable
class Transport(Protocol):
    """What the publisher needs from a broker connection."""

    def send(self, topic: str, payload: bytes) -> None:
        """Hand one message to the broker. Raises TransportError on failure."""
        ...

    def is_connected(self) -> bool:
        ...


class PahoTransport:
    """
    paho-mqtt backed transport.

    Attributes:
        broker_host: MQTT broker hostname
        broker_port: MQTT broker port
        client_id: MQTT client identifier
        qos: Quality of Service used for every send
        keepalive: MQTT keepalive in seconds
        logger: Structured logger instance

    Thread Safety:
        Callbacks run in paho's network thread (loop_start). Connect
        listeners therefore run there too and must not block for long.
    """

    def __init__(
        self,
        broker_host: str,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "mqtt_relay",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 0,
        keepalive: int = 60,
        retain: bool = False
    ):
        """
        Initialize MQTT transport.

        Args:
            broker_host: MQTT broker hostname
            logger: Structured logger for observability
            broker_port: MQTT broker port (default: 1883)
            client_id: Unique client identifier
            username: MQTT authentication username (optional)
            password: MQTT authentication password (optional)
            qos: Quality of Service (0=fire-and-forget, 1=at-least-once)
            keepalive: Keepalive interval in seconds
            retain: MQTT retain flag for every send
        """
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.client_id = client_id
        self.logger = logger
        self.qos = qos
        self.keepalive = keepalive
        self.retain = retain

        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv311
        )
        if username and password:
            self.client.username_pw_set(username, password)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect

        self._connected = threading.Event()
        self._connect_listeners: List[Callable[[], Any]] = []
        self._running = False

    @property
    def broker(self) -> str:
        return f"{self.broker_host}:{self.broker_port}"

    def add_connect_listener(self, listener: Callable[[], Any]) -> None:
        """Register a callable invoked after every successful (re)connect."""
        self._connect_listeners.append(listener)

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: Any,
        flags: Any,
        reason_code: Any,
        properties: Any = None
    ) -> None:
        """
        Callback when connection established.

        Thread: Runs in MQTT client thread
        """
        if reason_code != 0:
            self._connected.clear()
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Failed to connect to broker (rc={reason_code})",
                metadata={'broker': self.broker}
            )
            return

        self._connected.set()
        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Connected to MQTT broker",
            metadata={'broker': self.broker, 'client_id': self.client_id}
        )

        for listener in list(self._connect_listeners):
            try:
                listener()
            except Exception as e:
                self.logger.error(
                    event=LogEvent.LISTENER_ERROR,
                    message="Connect listener raised",
                    exc_info=e,
                    metadata={'listener': getattr(listener, '__qualname__', repr(listener))}
                )

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: Any,
        disconnect_flags: Any,
        reason_code: Any,
        properties: Any = None
    ) -> None:
        """
        Callback when disconnected from broker.

        Thread: Runs in MQTT client thread
        """
        self._connected.clear()
        self.logger.warning(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Disconnected from MQTT broker",
            metadata={'broker': self.broker, 'reason_code': str(reason_code)}
        )

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Connect to MQTT broker and start the network loop.

        paho keeps reconnecting in the background after this call, so a
        False return only means the first connection did not come up in time.

        Args:
            timeout: Seconds to wait for the first CONNACK

        Returns:
            True if connected within timeout, False otherwise
        """
        try:
            # The network thread makes the first attempt and retries until it succeeds.
            self.client.connect_async(self.broker_host, self.broker_port, keepalive=self.keepalive)
        except ValueError as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Invalid broker settings",
                exc_info=e,
                metadata={'broker': self.broker}
            )
            return False

        if not self._running:
            self.client.loop_start()
            self._running = True

        if self._connected.wait(timeout=timeout):
            return True

        self.logger.error(
            event=LogEvent.MQTT_CONNECTION_ERROR,
            message="Connection timeout",
            metadata={'broker': self.broker, 'timeout': timeout}
        )
        return False

    def disconnect(self) -> None:
        """
        Stop the network loop and disconnect. Safe to call multiple times.
        """
        if not self._running:
            return
        self.client.disconnect()
        self.client.loop_stop()
        self._running = False
        self._connected.clear()

    def is_connected(self) -> bool:
        """Check if currently connected to broker."""
        return self._connected.is_set()

    def send(self, topic: str, payload: bytes) -> None:
        """
        Publish one message.

        Raises:
            TransportError: paho refused the message (not connected, queue
                full, payload too large, ...)
        """
        try:
            result = self.client.publish(
                topic=topic,
                payload=payload,
                qos=self.qos,
                retain=self.retain
            )
        except ValueError as e:
            raise TransportError(f"Invalid publish on '{topic}': {e}") from e

        if result.rc != mqtt.MQTT_ERR_SUCCESS:
            raise TransportError(
                f"Publish on '{topic}' failed: {mqtt.error_string(result.rc)}"
            )
