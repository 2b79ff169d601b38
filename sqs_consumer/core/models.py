from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

DEFAULT_ATTRIBUTE_NAMES: Tuple[str, ...] = ("All",)
DEFAULT_MAX_NUMBER_OF_MESSAGES = 1  # SQS accepts 1 - 10
DEFAULT_VISIBILITY_TIMEOUT = 30     # SQS accepts 0 - 43200 seconds
DEFAULT_WAIT_TIME_SECONDS = 10      # SQS accepts 0 - 20 seconds
DEFAULT_IDLE = 0
DEFAULT_SLEEP = 0

@dataclass(frozen=True)
class ReceiveDescriptor:
    """
    Parameters sent with every receive_message call.

    Ranges are not checked here: SQS rejects out-of-range values at receive time.
    """
    queue_url: Optional[str] = None
    attribute_names: Tuple[str, ...] = DEFAULT_ATTRIBUTE_NAMES
    max_number_of_messages: int = DEFAULT_MAX_NUMBER_OF_MESSAGES
    message_attribute_names: Optional[Tuple[str, ...]] = None
    receive_request_attempt_id: Optional[str] = None  # FIFO queues only
    visibility_timeout: int = DEFAULT_VISIBILITY_TIMEOUT
    wait_time_seconds: int = DEFAULT_WAIT_TIME_SECONDS

    def to_request(self) -> Dict[str, Any]:
        """Render keyword arguments for boto3 ``receive_message``."""
        kwargs: Dict[str, Any] = {
            "QueueUrl": self.queue_url,
            "AttributeNames": list(self.attribute_names),
            "MaxNumberOfMessages": self.max_number_of_messages,
            "VisibilityTimeout": self.visibility_timeout,
            "WaitTimeSeconds": self.wait_time_seconds,
        }
        if self.message_attribute_names is not None:
            kwargs["MessageAttributeNames"] = list(self.message_attribute_names)
        if self.receive_request_attempt_id is not None:
            kwargs["ReceiveRequestAttemptId"] = self.receive_request_attempt_id
        return kwargs

@dataclass(frozen=True)
class BackoffPolicy:
    idle: int = DEFAULT_IDLE    # empty polls tolerated before sleeping, 0 disables
    sleep: float = DEFAULT_SLEEP  # seconds, 0 disables

    def should_sleep(self, idle_count: int) -> bool:
        return self.idle > 0 and idle_count > self.idle and self.sleep > 0

@dataclass(frozen=True)
class QueueMessage:
    message_id: str
    receipt_handle: str
    body: str
    attributes: Dict[str, str] = field(default_factory=dict)
    message_attributes: Dict[str, Any] = field(default_factory=dict)
    md5_of_body: Optional[str] = None

    @classmethod
    def from_sqs(cls, raw: Dict[str, Any]) -> "QueueMessage":
        """Build from one entry of a receive_message ``Messages`` list."""
        return cls(
            message_id=raw["MessageId"],
            receipt_handle=raw["ReceiptHandle"],
            body=raw.get("Body", ""),
            attributes=dict(raw.get("Attributes", {})),
            message_attributes=dict(raw.get("MessageAttributes", {})),
            md5_of_body=raw.get("MD5OfBody"),
        )

@dataclass(frozen=True)
class MessageOutcome:
    message: QueueMessage
    handled: bool                       # handler returned without raising
    deleted: bool                       # delete_message succeeded
    error: Optional[BaseException] = None  # handler error, or delete error when handled
