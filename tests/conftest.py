"""
Module: conftest.py
Description: Shared pytest fixtures for sqs-consumer tests.

Provides in-memory queue clients for driving the polling loop
deterministically, and moto-backed SQS fixtures for the boto3 client.
"""

import itertools
import threading
import time

import boto3
import pytest
from moto import mock_aws

from sqs_consumer.core.models import QueueMessage
from sqs_consumer.errors import DeleteError


def make_message(name: str) -> QueueMessage:
    return QueueMessage(message_id=f"id-{name}", receipt_handle=f"rh-{name}", body=name)


class ScriptedClient:
    """
    Queue client replaying a fixed script of receive results.

    Each script entry is a list of messages (a batch, possibly empty) or an
    exception to raise. Once the script is exhausted the client stops the
    attached worker and returns empty batches.
    """

    def __init__(self, script, fail_delete_for=()):
        self.script = list(script)
        self.fail_delete_for = set(fail_delete_for)
        self.worker = None
        self.receive_calls = 0
        self.descriptors = []
        self.deletes = []
        self._lock = threading.Lock()

    def receive(self, descriptor):
        self.receive_calls += 1
        self.descriptors.append(descriptor)
        if not self.script:
            self.worker.stop()
            return []
        result = self.script.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    def delete(self, queue_url, receipt_handle):
        with self._lock:
            self.deletes.append((queue_url, receipt_handle))
        if receipt_handle in self.fail_delete_for:
            raise DeleteError(f"Failed to delete SQS message: {receipt_handle}")


class FakeQueue:
    """
    In-memory queue with SQS visibility semantics.

    A received message stays invisible to every receiver until it is deleted
    or its visibility timeout elapses on ``clock``. Every delivery gets a
    fresh receipt handle; deleting with a stale handle is a no-op.
    """

    def __init__(self, clock=time.monotonic):
        self.clock = clock
        self._lock = threading.Lock()
        self._ids = itertools.count()
        self._messages = {}  # message_id -> [body, invisible_until, receipt_handle]
        self.receive_counts = {}

    def send(self, body: str) -> str:
        with self._lock:
            message_id = f"msg-{next(self._ids)}"
            self._messages[message_id] = [body, 0.0, None]
            self.receive_counts[message_id] = 0
            return message_id

    def receive(self, descriptor):
        now = self.clock()
        batch = []
        with self._lock:
            for message_id, entry in self._messages.items():
                if len(batch) >= descriptor.max_number_of_messages:
                    break
                body, invisible_until, _ = entry
                if invisible_until > now:
                    continue
                self.receive_counts[message_id] += 1
                receipt_handle = f"{message_id}/{self.receive_counts[message_id]}"
                entry[1] = now + descriptor.visibility_timeout
                entry[2] = receipt_handle
                batch.append(QueueMessage(message_id=message_id, receipt_handle=receipt_handle, body=body))
        if not batch:
            # Stand-in for long polling so idle loops do not spin
            time.sleep(0.001)
        return batch

    def delete(self, queue_url, receipt_handle):
        with self._lock:
            for message_id, entry in list(self._messages.items()):
                if entry[2] == receipt_handle:
                    del self._messages[message_id]
                    return

    def __len__(self):
        with self._lock:
            return len(self._messages)


class ManualClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def fake_queue(clock):
    return FakeQueue(clock=clock)


@pytest.fixture
def aws_credentials(monkeypatch):
    """Fake credentials so boto3 never reaches a real account."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")


@pytest.fixture
def mock_sqs(aws_credentials):
    """Run the test inside moto's AWS mock."""
    with mock_aws():
        yield boto3.client("sqs", region_name="us-east-1")


@pytest.fixture
def queue_url(mock_sqs):
    """Create a mock SQS queue and return its URL."""
    response = mock_sqs.create_queue(QueueName="test-queue")
    return response["QueueUrl"]
