from __future__ import annotations
import json
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from sqs_consumer.core.models import (
    DEFAULT_ATTRIBUTE_NAMES,
    DEFAULT_IDLE,
    DEFAULT_MAX_NUMBER_OF_MESSAGES,
    DEFAULT_SLEEP,
    DEFAULT_VISIBILITY_TIMEOUT,
    DEFAULT_WAIT_TIME_SECONDS,
    BackoffPolicy,
    ReceiveDescriptor,
)
from sqs_consumer.errors import ConfigurationError

# JSON-style names accepted in config files
_JSON_FIELD_NAMES = {
    "region": "region",
    "attributeNames": "attribute_names",
    "maxNumberOfMessages": "max_number_of_messages",
    "messageAttributeNames": "message_attribute_names",
    "queueUrl": "queue_url",
    "receiveRequestAttemptId": "receive_request_attempt_id",
    "visibilityTimeout": "visibility_timeout",
    "waitTimeSeconds": "wait_time_seconds",
    "idle": "idle",
    "sleep": "sleep",
}

_NUMERIC_FIELDS = {
    "max_number_of_messages": int,
    "visibility_timeout": int,
    "wait_time_seconds": int,
    "idle": int,
    "sleep": float,
}


@dataclass(frozen=True)
class ConsumerConfig:
    """Raw consumer configuration. ``None`` means unset and is defaulted on resolution."""

    region: Optional[str] = None

    attribute_names: Optional[Sequence[str]] = None          # ["All"]
    max_number_of_messages: Optional[int] = None             # 1 - 10, 1
    message_attribute_names: Optional[Sequence[str]] = None
    queue_url: Optional[str] = None
    receive_request_attempt_id: Optional[str] = None
    visibility_timeout: Optional[int] = None                 # 0 - 43200, 30
    wait_time_seconds: Optional[int] = None                  # 0 - 20, 10

    # Backoff during quiet periods:
    # after more than `idle` consecutive empty polls, sleep `sleep` seconds once
    idle: Optional[int] = None
    sleep: Optional[float] = None

    def __post_init__(self) -> None:
        # JSON and env sources may carry numbers as strings
        for name, kind in _NUMERIC_FIELDS.items():
            value = getattr(self, name)
            if value is None:
                continue
            try:
                object.__setattr__(self, name, kind(value))
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Config field {name} must be a number, got {value!r}") from e

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConsumerConfig":
        """
        Build a config from a mapping.

        Accepts the JSON-style names (``queueUrl``, ``waitTimeSeconds``...) as well
        as the snake_case field names.

        Raises:
            ConfigurationError: on unknown keys or a non-mapping input
        """
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config must be a JSON object, got {type(data).__name__}")

        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = _JSON_FIELD_NAMES.get(key, key)
            if name not in known:
                raise ConfigurationError(f"Unknown config field: {key}")
            kwargs[name] = value
        return cls(**kwargs)

    @classmethod
    def from_json_file(cls, path: str | Path) -> "ConsumerConfig":
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Config file {path} is not valid JSON: {e}") from e
        return cls.from_dict(data)


def resolve_receive_descriptor(config: ConsumerConfig) -> ReceiveDescriptor:
    """Apply defaults for every unset receive parameter. No validation, no network."""
    return ReceiveDescriptor(
        queue_url=config.queue_url,
        attribute_names=(
            tuple(config.attribute_names)
            if config.attribute_names is not None
            else DEFAULT_ATTRIBUTE_NAMES
        ),
        max_number_of_messages=(
            config.max_number_of_messages
            if config.max_number_of_messages is not None
            else DEFAULT_MAX_NUMBER_OF_MESSAGES
        ),
        message_attribute_names=(
            tuple(config.message_attribute_names)
            if config.message_attribute_names is not None
            else None
        ),
        receive_request_attempt_id=config.receive_request_attempt_id,
        visibility_timeout=(
            config.visibility_timeout
            if config.visibility_timeout is not None
            else DEFAULT_VISIBILITY_TIMEOUT
        ),
        wait_time_seconds=(
            config.wait_time_seconds
            if config.wait_time_seconds is not None
            else DEFAULT_WAIT_TIME_SECONDS
        ),
    )


def resolve_backoff_policy(config: ConsumerConfig) -> BackoffPolicy:
    return BackoffPolicy(
        idle=config.idle if config.idle is not None else DEFAULT_IDLE,
        sleep=config.sleep if config.sleep is not None else DEFAULT_SLEEP,
    )
