from __future__ import annotations

import dataclasses
import logging
import signal
import threading
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any, List, Optional

from sqs_consumer.config import ConsumerConfig, resolve_backoff_policy, resolve_receive_descriptor
from sqs_consumer.core.events import EventRegistry
from sqs_consumer.core.models import BackoffPolicy, MessageOutcome, QueueMessage, ReceiveDescriptor
from sqs_consumer.errors import ConfigurationError, WorkerStartedError
from sqs_consumer.io.sqs import QueueClient, SQSClient

logger = logging.getLogger("sqs_consumer.core.worker")

# Raising means failure: the message is left on the queue for redelivery
Handler = Callable[[QueueMessage], Any]


class Worker:
    """
    Polls an SQS queue and dispatches each batch to a handler.

    Lifecycle:
    1. Construct with a ConsumerConfig, adjust with setters, register events with on()
    2. start() (one loop, blocking) or concurrent() (N loops on threads)
    3. Each loop:
       - sleeps once after too many consecutive empty polls (idle/sleep)
       - receives a batch
       - runs the handler for every message of the batch concurrently
       - deletes messages whose handler succeeded
       - waits for the whole batch before polling again
    4. stop() asks every loop to exit at its next iteration

    Delivery is at-least-once: a failed delete or a crash between handler and
    delete leads to the message being delivered again.
    """

    def __init__(self, config: ConsumerConfig, sqs: Optional[QueueClient] = None):
        """
        Args:
            config: Raw configuration; unset fields get their defaults
            sqs: Queue client. Built from config.region when omitted.
        """
        self._stop_event = threading.Event()
        self._started = False
        self._threads: List[threading.Thread] = []

        self.events = EventRegistry()
        self.set_config(config)
        self.sqs: QueueClient = sqs if sqs is not None else SQSClient(self.config.region)

    def set_config(self, config: ConsumerConfig) -> None:
        """Replace the whole configuration and re-resolve defaults."""
        self._ensure_not_started()
        self.config = config
        self.receive_input: ReceiveDescriptor = resolve_receive_descriptor(config)
        self.backoff: BackoffPolicy = resolve_backoff_policy(config)

    def set_attribute_names(self, attribute_names: Sequence[str]) -> None:
        self._replace_input(attribute_names=tuple(attribute_names))

    def set_max_number_of_messages(self, max_number_of_messages: int) -> None:
        self._replace_input(max_number_of_messages=max_number_of_messages)

    def set_message_attribute_names(self, message_attribute_names: Sequence[str]) -> None:
        self._replace_input(
            message_attribute_names=tuple(message_attribute_names) if message_attribute_names else None
        )

    def set_queue_url(self, queue_url: str) -> None:
        self._replace_input(queue_url=queue_url or None)

    def set_receive_request_attempt_id(self, receive_request_attempt_id: str) -> None:
        self._replace_input(receive_request_attempt_id=receive_request_attempt_id or None)

    def set_visibility_timeout(self, visibility_timeout: int) -> None:
        self._replace_input(visibility_timeout=visibility_timeout)

    def set_wait_time_seconds(self, wait_time_seconds: int) -> None:
        self._replace_input(wait_time_seconds=wait_time_seconds)

    def set_sqs(self, sqs: QueueClient) -> None:
        self._ensure_not_started()
        self.sqs = sqs

    def on(self, event: str, callback: Callable[..., Any]) -> None:
        """Register an observer. See EventRegistry.register for the accepted events."""
        self._ensure_not_started()
        self.events.register(event, callback)

    def _replace_input(self, **changes: Any) -> None:
        # Setters bypass defaulting: only the named field changes
        self._ensure_not_started()
        self.receive_input = dataclasses.replace(self.receive_input, **changes)

    def _ensure_not_started(self) -> None:
        if self._started:
            raise WorkerStartedError("Worker configuration cannot change once polling has started")

    @property
    def stopping(self) -> bool:
        """True once stop() was called. Long-running handlers may poll this."""
        return self._stop_event.is_set()

    def stop(self) -> None:
        """Ask every loop to exit before its next receive. In-flight batches finish normally."""
        if not self._stop_event.is_set():
            logger.info("Stop requested, loops will exit after their current batch")
        self._stop_event.set()

    def start(self, handler: Handler) -> None:
        """
        Run one polling loop in the calling thread until stop() is called.

        Without stop() this never returns. Receive, handler and delete errors
        are logged and never propagate.
        """
        self._started = True
        queue_url = self.receive_input.queue_url
        logger.info("Starting polling loop", extra={"queue_url": queue_url})

        idle = 0
        while not self._stop_event.is_set():
            if self.backoff.should_sleep(idle):
                idle = 0
                logger.debug(
                    f"Too many empty polls, sleeping {self.backoff.sleep}s",
                    extra={"queue_url": queue_url},
                )
                if self._backoff_sleep(self.backoff.sleep):
                    break

            try:
                messages = self.sqs.receive(self.receive_input)
            except Exception as e:
                logger.error(
                    f"ReceiveMessage error: {e}",
                    exc_info=True,
                    extra={"queue_url": queue_url, "error": str(e)},
                )
                self.events.emit_receive_message_error(e)
                continue

            if not messages:
                idle += 1
                continue

            idle = 0
            logger.debug(f"Received {len(messages)} message(s)", extra={"queue_url": queue_url})
            self.events.emit_receive_message(messages)
            outcomes = self.process_batch(handler, messages)
            self._log_batch_summary(queue_url, outcomes)

        logger.info("Polling loop stopped", extra={"queue_url": queue_url})

    def concurrent(self, handler: Handler, concurrency: int) -> List[threading.Thread]:
        """
        Start ``concurrency`` independent polling loops on daemon threads.

        Loops share this worker and are not coordinated: the queue's visibility
        timeout keeps them from receiving the same message at the same time.

        Returns:
            The started threads
        """
        if concurrency < 1:
            raise ConfigurationError(f"concurrency must be >= 1, got {concurrency}")

        self._started = True
        threads = []
        for i in range(concurrency):
            thread = threading.Thread(
                target=self.start,
                args=(handler,),
                name=f"sqs-consumer-{len(self._threads) + i}",
                daemon=True,
            )
            thread.start()
            threads.append(thread)

        self._threads.extend(threads)
        logger.info(f"Started {concurrency} polling loop(s)")
        return threads

    def _backoff_sleep(self, seconds: float) -> bool:
        """Block for ``seconds`` or until stop(). Returns True if stopped."""
        return self._stop_event.wait(seconds)

    def _log_batch_summary(self, queue_url: Optional[str], outcomes: Sequence[MessageOutcome]) -> None:
        handled = sum(1 for o in outcomes if o.handled)
        delete_failed = sum(1 for o in outcomes if o.handled and not o.deleted)
        logger.debug(
            f"Batch done: {handled}/{len(outcomes)} handled, {delete_failed} delete failure(s)",
            extra={
                "queue_url": queue_url,
                "batch_size": len(outcomes),
                "handled": handled,
                "failed": len(outcomes) - handled,
                "delete_failed": delete_failed,
            },
        )

    def join(self, timeout: Optional[float] = None) -> None:
        """Wait for loops started by concurrent() to exit."""
        for thread in self._threads:
            thread.join(timeout)

    def install_signal_handlers(self) -> None:
        """
        Map SIGTERM/SIGINT to stop().

        A second signal raises KeyboardInterrupt; messages still in flight are
        redelivered after their visibility timeout. Must be called from the
        main thread.
        """

        def signal_handler(signum: int, frame: Any) -> None:
            sig_name = signal.Signals(signum).name
            if not self._stop_event.is_set():
                logger.info(f"Received {sig_name} signal. Finishing current batches before exiting.")
                self.stop()
            else:
                logger.warning(
                    f"Received second {sig_name} signal. Forcing immediate shutdown. "
                    "In-flight messages will be redelivered after their visibility timeout."
                )
                raise KeyboardInterrupt("Forced shutdown by second signal")

        signal.signal(signal.SIGTERM, signal_handler)
        signal.signal(signal.SIGINT, signal_handler)

    def process_batch(self, handler: Handler, messages: Sequence[QueueMessage]) -> List[MessageOutcome]:
        """
        Handle every message of a batch concurrently and block until all are done.

        Returns:
            One outcome per message, in batch order
        """
        if not messages:
            return []

        with ThreadPoolExecutor(max_workers=len(messages), thread_name_prefix="sqs-msg") as executor:
            futures = [executor.submit(self._handle_message, handler, m) for m in messages]
            return [f.result() for f in futures]

    def _handle_message(self, handler: Handler, message: QueueMessage) -> MessageOutcome:
        queue_url = self.receive_input.queue_url

        try:
            handler(message)
        except Exception as e:
            logger.error(
                f"handleMessage error: {e}",
                exc_info=True,
                extra={"queue_url": queue_url, "message_id": message.message_id, "error": str(e)},
            )
            return MessageOutcome(message=message, handled=False, deleted=False, error=e)

        # Best-effort acknowledge: a failed delete is logged, never retried
        delete_error: Optional[Exception] = None
        try:
            self.sqs.delete(queue_url, message.receipt_handle)
        except Exception as e:
            delete_error = e
            logger.error(
                f"DeleteMessage error: {e}",
                extra={"queue_url": queue_url, "message_id": message.message_id, "error": str(e)},
            )

        self.events.emit_process_message(message)
        return MessageOutcome(
            message=message,
            handled=True,
            deleted=delete_error is None,
            error=delete_error,
        )
