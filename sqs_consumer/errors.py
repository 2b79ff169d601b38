class ConsumerError(Exception):
    """Base class for all sqs_consumer errors."""

class ConfigurationError(ConsumerError):
    """Programming mistake detected at setup time. Never raised by a running loop."""

class EventRegistrationError(ConfigurationError):
    """Unknown event name, or a callback whose shape does not fit the event."""

class WorkerStartedError(ConfigurationError):
    """Worker configuration was mutated after a polling loop started."""

class QueueClientError(ConsumerError):
    """Queue transport failure (network, throttling, service error)."""

class ReceiveError(QueueClientError):
    """receive_message failed."""

class DeleteError(QueueClientError):
    """delete_message failed; the message may be delivered again."""

class SendError(QueueClientError):
    """send_message failed."""

class QueueStatsError(QueueClientError):
    """get_queue_attributes failed."""
