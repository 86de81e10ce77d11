"""
Shared fixtures: an in-memory transport so publishing can be tested without
a real MQTT broker.
"""

from typing import Callable, List, Set, Tuple

import pytest

from mqtt_relay import TransportError, create_logger


class FakeTransport:
    """Records sends; fails any send whose payload is in fail_payloads."""

    def __init__(self, connected: bool = False):
        self.connected = connected
        self.sent: List[Tuple[str, bytes]] = []
        self.fail_payloads: Set[bytes] = set()
        self.attempts = 0
        self._listeners: List[Callable[[], None]] = []

    def is_connected(self) -> bool:
        return self.connected

    def send(self, topic: str, payload: bytes) -> None:
        self.attempts += 1
        if payload in self.fail_payloads:
            raise TransportError(f"simulated failure for {payload!r}")
        self.sent.append((topic, payload))

    @property
    def payloads(self) -> List[bytes]:
        return [payload for _, payload in self.sent]

    # Lifecycle surface used by MQTTRelayClient
    def add_connect_listener(self, listener: Callable[[], None]) -> None:
        self._listeners.append(listener)

    def connect(self, timeout: float = 10.0) -> bool:
        self.reconnect()
        return True

    def reconnect(self) -> None:
        self.connected = True
        for listener in self._listeners:
            listener()

    def disconnect(self) -> None:
        self.connected = False


@pytest.fixture
def logger():
    return create_logger("test")


@pytest.fixture
def transport():
    return FakeTransport(connected=False)
