from __future__ import annotations
from typing import Any, Dict, List, Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from sqs_consumer.core.models import QueueMessage, ReceiveDescriptor
from sqs_consumer.errors import DeleteError, QueueStatsError, ReceiveError, SendError


class QueueClient(Protocol):
    """What the worker needs from a queue. SQSClient is the real implementation."""

    def receive(self, descriptor: ReceiveDescriptor) -> List[QueueMessage]: ...

    def delete(self, queue_url: Optional[str], receipt_handle: str) -> None: ...


class SQSClient:
    """AWS SQS client used by the worker."""

    def __init__(self, region: Optional[str] = None, client: Any = None):
        """
        Initialize SQS client.

        Args:
            region: AWS region (e.g., "us-east-1"). None falls back to the
                    boto3 default chain (AWS_DEFAULT_REGION, ~/.aws/config).
            client: Pre-built boto3 SQS client, mostly for tests
        """
        self.region = region
        self.client = client if client is not None else boto3.client("sqs", region_name=region)

    def receive(self, descriptor: ReceiveDescriptor) -> List[QueueMessage]:
        """
        Long-poll for one batch.

        Args:
            descriptor: Resolved receive parameters

        Returns:
            Messages received, possibly empty

        Raises:
            ReceiveError: on any SQS or transport failure
        """
        try:
            response = self.client.receive_message(**descriptor.to_request())
        except (ClientError, BotoCoreError) as e:
            raise ReceiveError(f"Failed to receive messages from SQS: {e}") from e

        return [QueueMessage.from_sqs(raw) for raw in response.get("Messages", [])]

    def delete(self, queue_url: Optional[str], receipt_handle: str) -> None:
        """
        Delete a message from the queue.

        Args:
            queue_url: SQS queue URL
            receipt_handle: Receipt handle from received message
        """
        try:
            self.client.delete_message(
                QueueUrl=queue_url,
                ReceiptHandle=receipt_handle
            )
        except (ClientError, BotoCoreError) as e:
            raise DeleteError(f"Failed to delete SQS message: {e}") from e

    def send(
        self,
        queue_url: str,
        body: str,
        message_attributes: Optional[Dict[str, str]] = None,
        delay_seconds: int = 0,
    ) -> str:
        """
        Send a message to the queue.

        Args:
            queue_url: SQS queue URL
            body: Message body
            message_attributes: Optional string attributes
            delay_seconds: Delay before the message becomes visible

        Returns:
            SQS message id
        """
        kwargs: Dict[str, Any] = {
            "QueueUrl": queue_url,
            "MessageBody": body,
            "DelaySeconds": delay_seconds,
        }
        if message_attributes:
            kwargs["MessageAttributes"] = {
                name: {"StringValue": value, "DataType": "String"}
                for name, value in message_attributes.items()
            }

        try:
            response = self.client.send_message(**kwargs)
        except (ClientError, BotoCoreError) as e:
            raise SendError(f"Failed to send SQS message: {e}") from e
        return response["MessageId"]

    def queue_stats(self, queue_url: str) -> Dict[str, int]:
        """Approximate message counts and timestamps for a queue."""
        try:
            response = self.client.get_queue_attributes(
                QueueUrl=queue_url,
                AttributeNames=["All"]
            )
        except (ClientError, BotoCoreError) as e:
            raise QueueStatsError(f"Failed to read queue attributes: {e}") from e

        attrs = response.get("Attributes", {})

        return {
            "approximate_messages": int(attrs.get("ApproximateNumberOfMessages", 0)),
            "approximate_messages_not_visible": int(attrs.get("ApproximateNumberOfMessagesNotVisible", 0)),
            "approximate_messages_delayed": int(attrs.get("ApproximateNumberOfMessagesDelayed", 0)),
            # Epoch seconds; some endpoints return fractional values
            "created_timestamp": int(float(attrs.get("CreatedTimestamp", 0))),
            "last_modified_timestamp": int(float(attrs.get("LastModifiedTimestamp", 0))),
        }
