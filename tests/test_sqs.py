"""
Module: test_sqs.py
Description: Unit tests for the boto3-backed SQS client.

Uses moto to mock SQS so receive, delete, send and stats run against a
realistic API surface without an AWS account.
"""

import pytest

from sqs_consumer.config import ConsumerConfig
from sqs_consumer.core.events import EVENT_PROCESS_MESSAGE
from sqs_consumer.core.models import ReceiveDescriptor
from sqs_consumer.core.worker import Worker
from sqs_consumer.errors import DeleteError, QueueClientError, QueueStatsError, ReceiveError, SendError
from sqs_consumer.io.sqs import SQSClient


class TestSQSClient:
    """Test cases for SQSClient operations."""

    def test_send_and_receive(self, mock_sqs, queue_url):
        """Test that a sent message comes back with body and attributes."""
        client = SQSClient("us-east-1")
        message_id = client.send(queue_url, "hello", message_attributes={"trace_id": "t-1"})

        messages = client.receive(ReceiveDescriptor(
            queue_url=queue_url,
            message_attribute_names=("All",),
            wait_time_seconds=0,
        ))

        assert len(messages) == 1
        assert messages[0].message_id == message_id
        assert messages[0].body == "hello"
        assert messages[0].receipt_handle
        assert messages[0].message_attributes["trace_id"]["StringValue"] == "t-1"
        assert "ApproximateReceiveCount" in messages[0].attributes

    def test_receive_empty_queue(self, mock_sqs, queue_url):
        """Test that an empty queue yields an empty batch."""
        client = SQSClient("us-east-1")

        assert client.receive(ReceiveDescriptor(queue_url=queue_url, wait_time_seconds=0)) == []

    def test_receive_respects_batch_size(self, mock_sqs, queue_url):
        """Test MaxNumberOfMessages is forwarded."""
        client = SQSClient("us-east-1")
        for i in range(5):
            client.send(queue_url, f"m{i}")

        messages = client.receive(ReceiveDescriptor(
            queue_url=queue_url, max_number_of_messages=3, wait_time_seconds=0,
        ))

        assert 1 <= len(messages) <= 3

    def test_received_message_is_hidden(self, mock_sqs, queue_url):
        """Test that the visibility timeout hides a received message."""
        client = SQSClient("us-east-1")
        client.send(queue_url, "once")
        descriptor = ReceiveDescriptor(queue_url=queue_url, visibility_timeout=60, wait_time_seconds=0)

        assert len(client.receive(descriptor)) == 1
        assert client.receive(descriptor) == []

    def test_delete(self, mock_sqs, queue_url):
        """Test that a deleted message is gone from the queue."""
        client = SQSClient("us-east-1")
        client.send(queue_url, "bye")
        descriptor = ReceiveDescriptor(queue_url=queue_url, visibility_timeout=0, wait_time_seconds=0)
        message = client.receive(descriptor)[0]

        client.delete(queue_url, message.receipt_handle)

        assert client.queue_stats(queue_url)["approximate_messages"] == 0
        assert client.receive(descriptor) == []

    def test_receive_missing_queue(self, mock_sqs):
        """Test that service errors surface as ReceiveError."""
        client = SQSClient("us-east-1")
        missing = "https://sqs.us-east-1.amazonaws.com/123456789012/missing"

        with pytest.raises(ReceiveError):
            client.receive(ReceiveDescriptor(queue_url=missing, wait_time_seconds=0))

    def test_delete_missing_queue(self, mock_sqs):
        """Test that service errors surface as DeleteError."""
        client = SQSClient("us-east-1")
        missing = "https://sqs.us-east-1.amazonaws.com/123456789012/missing"

        with pytest.raises(DeleteError):
            client.delete(missing, "handle")

    def test_send_missing_queue(self, mock_sqs):
        """Test that service errors surface as SendError."""
        client = SQSClient("us-east-1")
        missing = "https://sqs.us-east-1.amazonaws.com/123456789012/missing"

        with pytest.raises(SendError):
            client.send(missing, "body")

    def test_queue_stats(self, mock_sqs, queue_url):
        """Test approximate counts are read from queue attributes."""
        client = SQSClient("us-east-1")
        client.send(queue_url, "a")
        client.send(queue_url, "b")

        stats = client.queue_stats(queue_url)

        assert stats["approximate_messages"] == 2
        assert stats["approximate_messages_not_visible"] == 0
        assert stats["created_timestamp"] > 0

    def test_queue_stats_fractional_timestamps(self):
        """Test epoch timestamps with a fractional part are truncated, not rejected."""

        class StubBoto3Client:
            def get_queue_attributes(self, QueueUrl, AttributeNames):
                return {"Attributes": {
                    "ApproximateNumberOfMessages": "4",
                    "CreatedTimestamp": "1792436652.077293",
                    "LastModifiedTimestamp": "1792436700.5",
                }}

        stats = SQSClient("us-east-1", client=StubBoto3Client()).queue_stats("https://sqs/q")

        assert stats["approximate_messages"] == 4
        assert stats["approximate_messages_delayed"] == 0
        assert stats["created_timestamp"] == 1792436652
        assert stats["last_modified_timestamp"] == 1792436700

    def test_queue_stats_missing_queue(self, mock_sqs):
        """Test that attribute lookups fail with their own error type."""
        client = SQSClient("us-east-1")
        missing = "https://sqs.us-east-1.amazonaws.com/123456789012/missing"

        with pytest.raises(QueueStatsError) as exc_info:
            client.queue_stats(missing)

        assert isinstance(exc_info.value, QueueClientError)
        assert not isinstance(exc_info.value, ReceiveError)


class TestWorkerAgainstSQS:
    """End-to-end loop runs against mocked SQS."""

    def test_consumes_and_deletes(self, mock_sqs, queue_url):
        """Test that handled messages are deleted and failed ones stay queued."""
        client = SQSClient("us-east-1")
        for body in ("ok-1", "ok-2", "fail"):
            client.send(queue_url, body)

        worker = Worker(
            ConsumerConfig(queue_url=queue_url, wait_time_seconds=0, visibility_timeout=60),
            sqs=client,
        )
        seen = []
        processed = []

        def handler(message):
            seen.append(message.body)
            if len(seen) >= 3:
                worker.stop()
            if message.body == "fail":
                raise ValueError("rejected")

        worker.on(EVENT_PROCESS_MESSAGE, processed.append)
        worker.start(handler)

        assert sorted(seen) == ["fail", "ok-1", "ok-2"]
        assert sorted(m.body for m in processed) == ["ok-1", "ok-2"]
        stats = client.queue_stats(queue_url)
        # The rejected message is still held by its visibility timeout
        assert stats["approximate_messages"] == 0
        assert stats["approximate_messages_not_visible"] == 1
