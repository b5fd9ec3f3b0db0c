"""
Consumer lifecycle events.

The consumer publishes one ConsumerEvent at every lifecycle point. Event
names (the enum values) are the stable contract for observability
integrations. Integrations subclass ConsumerListener and override only the
hooks they care about:

    class Metrics(ConsumerListener):
        def on_message_processed(self, message):
            counter.inc()

    consumer.subscribe(Metrics())
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Any, List, Optional, Sequence, Union

from .logging import StructuredLogger, get_logger
from .message import Message


Subject = Union[Message, Sequence[Message], None]


class ConsumerEvent(str, Enum):
    STOPPED = "stopped"
    MESSAGE_RECEIVED = "message_received"
    MESSAGE_PROCESSED = "message_processed"
    BATCH_MESSAGE_RECEIVED = "batch_message_received"
    BATCH_MESSAGE_PROCESSED = "batch_message_processed"
    RESPONSE_PROCESSED = "response_processed"
    EMPTY = "empty"
    NULL_RESPONSE = "null_response"
    ERROR = "error"
    TIMEOUT_ERROR = "timeout_error"
    PROCESSING_ERROR = "processing_error"


class ConsumerListener:
    """Observer of consumer events. Every hook is a no-op by default."""

    def on_stopped(self) -> None:
        pass

    def on_message_received(self, message: Message) -> None:
        pass

    def on_message_processed(self, message: Message) -> None:
        pass

    def on_batch_message_received(self, messages: List[Message]) -> None:
        pass

    def on_batch_message_processed(self, messages: List[Message]) -> None:
        pass

    def on_response_processed(self) -> None:
        pass

    def on_empty(self) -> None:
        pass

    def on_null_response(self) -> None:
        pass

    def on_error(self, error: BaseException, subject: Subject = None) -> None:
        """Transport failure; subject is the message, the batch, or None for receive."""
        pass

    def on_timeout_error(self, error: BaseException, message: Message) -> None:
        pass

    def on_processing_error(self, error: BaseException, message: Message) -> None:
        pass


class EventBus:
    """
    Fan events out to subscribed listeners.

    Dispatch is synchronous on the publishing thread. A listener that raises
    is logged and skipped; it never reaches the poll loop.
    """

    def __init__(self, listeners: Sequence[ConsumerListener] = (), logger: Optional[StructuredLogger] = None):
        self._listeners: List[ConsumerListener] = list(listeners)
        self._lock = threading.Lock()
        self.logger = logger or get_logger("events")

    def subscribe(self, listener: ConsumerListener) -> None:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def unsubscribe(self, listener: ConsumerListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    @property
    def listeners(self) -> List[ConsumerListener]:
        with self._lock:
            return list(self._listeners)

    def publish(self, event: ConsumerEvent, *args: Any) -> None:
        hook = f"on_{ConsumerEvent(event).value}"
        for listener in self.listeners:
            try:
                getattr(listener, hook)(*args)
            except Exception as e:
                self.logger.warning("Listener failed", {
                    "event": ConsumerEvent(event).value,
                    "listener": type(listener).__name__,
                    "error": f"{type(e).__name__}: {e}",
                })


class LoggingListener(ConsumerListener):
    """Writes every consumer event to the structured log."""

    def __init__(self, logger: Optional[StructuredLogger] = None):
        self.logger = logger or get_logger("consumer")

    def on_stopped(self) -> None:
        self.logger.info("Consumer stopped", {"event": ConsumerEvent.STOPPED.value})

    def on_message_received(self, message: Message) -> None:
        self.logger.debug("Message received", {
            "event": ConsumerEvent.MESSAGE_RECEIVED.value,
            "message_id": message.message_id,
            "receive_count": message.receive_count,
        })

    def on_message_processed(self, message: Message) -> None:
        self.logger.info("Message processed", {
            "event": ConsumerEvent.MESSAGE_PROCESSED.value,
            "message_id": message.message_id,
        })

    def on_batch_message_received(self, messages: List[Message]) -> None:
        self.logger.debug(f"Batch of {len(messages)} message(s) received", {
            "event": ConsumerEvent.BATCH_MESSAGE_RECEIVED.value,
            "message_ids": [m.message_id for m in messages],
        })

    def on_batch_message_processed(self, messages: List[Message]) -> None:
        self.logger.info(f"Batch of {len(messages)} message(s) processed", {
            "event": ConsumerEvent.BATCH_MESSAGE_PROCESSED.value,
            "message_ids": [m.message_id for m in messages],
        })

    def on_response_processed(self) -> None:
        self.logger.debug("Response processed", {"event": ConsumerEvent.RESPONSE_PROCESSED.value})

    def on_empty(self) -> None:
        self.logger.debug("Queue empty", {"event": ConsumerEvent.EMPTY.value})

    def on_null_response(self) -> None:
        self.logger.warning("Null receive response", {"event": ConsumerEvent.NULL_RESPONSE.value})

    def on_error(self, error: BaseException, subject: Subject = None) -> None:
        extra = {"event": ConsumerEvent.ERROR.value}
        if isinstance(subject, Message):
            extra["message_id"] = subject.message_id
        elif subject:
            extra["message_ids"] = [m.message_id for m in subject]
        if hasattr(error, "to_dict"):
            extra["sqs_error"] = error.to_dict()
        self.logger.error(error, extra)

    def on_timeout_error(self, error: BaseException, message: Message) -> None:
        self.logger.warning(str(error), {
            "event": ConsumerEvent.TIMEOUT_ERROR.value,
            "message_id": message.message_id,
        })

    def on_processing_error(self, error: BaseException, message: Message) -> None:
        self.logger.error(error, {
            "event": ConsumerEvent.PROCESSING_ERROR.value,
            "message_id": message.message_id,
        })


__all__ = ["ConsumerEvent", "ConsumerListener", "EventBus", "LoggingListener", "Subject"]
