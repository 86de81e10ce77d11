"""
MQTTRelayClient - wiring for transport, publisher and event relay

Bounded Context: Lifecycle
Responsibilities:
  - Build PahoTransport, BufferedPublisher, EventBus and EventRelay from a
    RelayConfig
  - Flush the backlog on every (re)connect
  - Tear everything down in order: stop relaying, drop the queue, disconnect

Nothing here is global: create one client per broker connection and pass
its `bus` (or `publisher`) to the producers that need it.

Example:
    >>> config = RelayConfig.from_yaml("relay.yaml")
    >>> with MQTTRelayClient(config) as client:
    ...     client.start(timeout=5.0)
    ...     client.bus.emit("REGISTER_OK", {"account": "sip:bob@example.com"})
"""

from typing import Optional

from .config import RelayConfig
from .errors import FlushFailed
from .logging import StructuredLogger, LogEvent, create_logger
from .publishers import BufferedPublisher
from .relay import EventBus, EventRelay
from .transport import PahoTransport


class MQTTRelayClient:
    """
    Owns one broker connection and its store-and-forward publisher.

    Attributes:
        config: Relay configuration
        transport: paho-mqtt transport
        publisher: Buffered publisher bound to the transport
        bus: Event bus producers emit on
        relay: Listener relaying bus events to config.mqtt.publish_topic
    """

    def __init__(
        self,
        config: RelayConfig,
        logger: Optional[StructuredLogger] = None,
        transport: Optional[PahoTransport] = None
    ):
        self.config = config
        self.logger = logger or create_logger("relay", level=config.log_level_value)

        mqtt_config = config.mqtt
        self.transport = transport or PahoTransport(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            client_id=mqtt_config.client_id,
            username=mqtt_config.username,
            password=mqtt_config.password,
            qos=mqtt_config.qos,
            keepalive=mqtt_config.keepalive,
            logger=self.logger,
        )

        buffer_config = config.buffer
        self.publisher = BufferedPublisher(
            transport=self.transport,
            logger=self.logger,
            max_size=buffer_config.max_size,
            overflow_policy=buffer_config.overflow_policy,
            requeue_on_transmit_failure=buffer_config.requeue_on_transmit_failure,
        )

        self.bus = EventBus(self.logger)
        self.relay = EventRelay(
            publisher=self.publisher,
            topic=mqtt_config.publish_topic,
            logger=self.logger,
        )
        self.relay.attach(self.bus)
        self.transport.add_connect_listener(self._on_reconnect)

    def __enter__(self) -> 'MQTTRelayClient':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _on_reconnect(self) -> None:
        """
        Connect listener: drain the backlog.

        Thread: Runs in MQTT client thread
        """
        try:
            self.publisher.flush()
        except FlushFailed as e:
            # Queue is intact from the failing message on; next reconnect retries.
            self.logger.warning(
                event=LogEvent.BUFFER_FLUSH_FAILED,
                message="Reconnect flush incomplete",
                metadata={'sent': e.sent, 'remaining': e.remaining}
            )

    def start(self, timeout: float = 10.0) -> bool:
        """
        Connect to the broker. Events emitted before the connection comes up
        are queued and flushed on connect.
        """
        return self.transport.connect(timeout=timeout)

    def close(self) -> None:
        """Stop relaying, drop pending messages, disconnect."""
        self.relay.detach(self.bus)
        self.publisher.close()
        self.transport.disconnect()
