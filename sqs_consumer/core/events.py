from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import Any, List, Optional

from sqs_consumer.core.models import QueueMessage
from sqs_consumer.errors import EventRegistrationError

logger = logging.getLogger("sqs_consumer.core.events")

EVENT_RECEIVE_MESSAGE = "ReceiveMessage"
EVENT_PROCESS_MESSAGE = "ProcessMessage"
EVENT_RECEIVE_MESSAGE_ERROR = "ReceiveMessageError"

OnReceiveMessage = Callable[[List[QueueMessage]], Any]
OnProcessMessage = Callable[[QueueMessage], Any]
OnReceiveMessageError = Callable[[Exception], Any]

# Event name -> slot attribute on EventRegistry
_SLOTS = {
    EVENT_RECEIVE_MESSAGE: "on_receive_message",
    EVENT_PROCESS_MESSAGE: "on_process_message",
    EVENT_RECEIVE_MESSAGE_ERROR: "on_receive_message_error",
}


def _accepts_single_argument(callback: Callable[..., Any]) -> bool:
    try:
        sig = inspect.signature(callback)
    except (TypeError, ValueError):
        # Some builtins expose no signature; trust them
        return True
    try:
        sig.bind(object())
    except TypeError:
        return False
    return True


class EventRegistry:
    """
    Three optional observer slots, one per lifecycle event.

    Registration is validated eagerly so that a wrong event name or a callback
    with the wrong arity fails during setup, never inside a running loop.
    Slots are read without locking: register everything before starting.
    """

    def __init__(self) -> None:
        self.on_receive_message: Optional[OnReceiveMessage] = None
        self.on_process_message: Optional[OnProcessMessage] = None
        self.on_receive_message_error: Optional[OnReceiveMessageError] = None

    def register(self, event: str, callback: Callable[..., Any]) -> None:
        """
        Register ``callback`` for ``event``, replacing any previous one.

        Args:
            event: One of EVENT_RECEIVE_MESSAGE, EVENT_PROCESS_MESSAGE, EVENT_RECEIVE_MESSAGE_ERROR
            callback: Callable taking exactly one positional argument

        Raises:
            EventRegistrationError: unknown event, or callback of the wrong shape
        """
        slot = _SLOTS.get(event)
        if slot is None:
            available = ", ".join(_SLOTS)
            raise EventRegistrationError(f"Unknown event '{event}'. Available: {available}")
        if not callable(callback):
            raise EventRegistrationError(f"Callback for '{event}' is not callable: {callback!r}")
        if not _accepts_single_argument(callback):
            raise EventRegistrationError(
                f"Callback for '{event}' must accept exactly one positional argument"
            )
        setattr(self, slot, callback)

    def emit_receive_message(self, messages: List[QueueMessage]) -> None:
        if self.on_receive_message is not None:
            self._call(EVENT_RECEIVE_MESSAGE, self.on_receive_message, messages)

    def emit_process_message(self, message: QueueMessage) -> None:
        if self.on_process_message is not None:
            self._call(EVENT_PROCESS_MESSAGE, self.on_process_message, message)

    def emit_receive_message_error(self, error: Exception) -> None:
        if self.on_receive_message_error is not None:
            self._call(EVENT_RECEIVE_MESSAGE_ERROR, self.on_receive_message_error, error)

    @staticmethod
    def _call(event: str, callback: Callable[[Any], Any], arg: Any) -> None:
        # Observers must not take the polling loop down with them
        try:
            callback(arg)
        except Exception as e:
            logger.error(f"{event} callback failed: {e}", exc_info=True, extra={"event": event})
