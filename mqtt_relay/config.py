"""
Configuration schema for the MQTT relay.

Defines broker settings, buffer policy and logging level. Loaded from YAML
and validated at construction (frozen dataclasses).
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from .buffer import OverflowPolicy


@dataclass(frozen=True)
class MQTTConfig:
    """MQTT broker configuration."""

    broker: str = "localhost"
    port: int = 1883
    client_id: str = "mqtt_relay"
    username: Optional[str] = None
    password: Optional[str] = None
    qos: int = 0
    keepalive: int = 60
    publish_topic: str = "mqtt_relay/events"

    def __post_init__(self):
        """Validate MQTT configuration."""
        if not self.broker:
            raise ValueError("broker cannot be empty")

        if not 1 <= self.port <= 65535:
            raise ValueError(
                f"MQTT port must be in [1, 65535], got {self.port}"
            )

        if self.qos not in {0, 1, 2}:
            raise ValueError(
                f"MQTT QoS must be 0, 1, or 2, got {self.qos}"
            )

        if self.keepalive <= 0:
            raise ValueError(f"keepalive must be > 0, got {self.keepalive}")

        if not self.publish_topic:
            raise ValueError("publish_topic cannot be empty")


@dataclass(frozen=True)
class BufferConfig:
    """
    Pending queue policy.

    max_size None keeps the queue unbounded (messages are only lost on
    teardown). requeue_on_transmit_failure re-buffers a failed live send
    instead of dropping it.
    """

    max_size: Optional[int] = None
    overflow_policy: OverflowPolicy = OverflowPolicy.DROP_OLDEST
    requeue_on_transmit_failure: bool = False

    def __post_init__(self):
        """Validate buffer configuration."""
        if self.max_size is not None and self.max_size <= 0:
            raise ValueError(f"max_size must be > 0, got {self.max_size}")

        try:
            policy = OverflowPolicy(self.overflow_policy)
        except ValueError:
            valid = {p.value for p in OverflowPolicy}
            raise ValueError(
                f"Invalid overflow_policy: {self.overflow_policy}. "
                f"Must be one of {valid}"
            )
        # Frozen dataclass: normalise "drop_oldest" strings to the enum
        object.__setattr__(self, 'overflow_policy', policy)


@dataclass(frozen=True)
class RelayConfig:
    """
    Top-level configuration.

    Immutable after construction (frozen dataclass).
    """

    mqtt: MQTTConfig = field(default_factory=MQTTConfig)
    buffer: BufferConfig = field(default_factory=BufferConfig)
    log_level: str = "INFO"

    def __post_init__(self):
        """Validate relay configuration."""
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Invalid log_level: {self.log_level}")

    @property
    def log_level_value(self) -> int:
        return logging.getLevelName(self.log_level.upper())

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RelayConfig":
        data = data or {}
        # Empty YAML sections load as None
        mqtt_data = data.get("mqtt") or {}
        buffer_data = data.get("buffer") or {}
        try:
            mqtt_config = MQTTConfig(**mqtt_data)
        except TypeError as e:
            raise ValueError(f"Invalid mqtt section: {e}")
        try:
            buffer_config = BufferConfig(**buffer_data)
        except TypeError as e:
            raise ValueError(f"Invalid buffer section: {e}")

        return cls(
            mqtt=mqtt_config,
            buffer=buffer_config,
            log_level=data.get("log_level") or "INFO",
        )

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> "RelayConfig":
        """
        Load configuration from YAML file.

        Example YAML:
            mqtt:
              broker: "localhost"
              port: 1883
              client_id: "softphone_01"
              qos: 1
              publish_topic: "softphone/01/events"

            buffer:
              max_size: 10000
              overflow_policy: "drop_oldest"
              requeue_on_transmit_failure: false

            log_level: "INFO"

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If YAML is invalid or values fail validation
        """
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in {path}: {e}")

        if data is not None and not isinstance(data, dict):
            raise ValueError(f"Config root must be a mapping, got {type(data).__name__}")

        return cls.from_dict(data)
