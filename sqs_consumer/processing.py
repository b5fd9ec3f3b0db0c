"""
Message and batch processing.

MessageProcessor: one message -> timeout-guarded handler -> delete.
BatchProcessor:   whole batch -> handler once -> one batch delete.

On failure both report through the event bus and, when
terminate_visibility_timeout is on, set visibility to 0 so the queue
redelivers right away instead of waiting out the lease. Neither processor
raises: every outcome becomes an event.
"""

from __future__ import annotations

from typing import List, Optional

from .config import ConsumerConfig
from .contracts import BatchHandler, MessageHandler, TransportProto
from .errors import ErrorKind, HandlerTimeoutError, ProcessingError, SQSError, classify_error
from .events import ConsumerEvent, EventBus
from .logging import StructuredLogger, get_logger
from .message import Message
from .timeout import run_with_timeout


# ==========================================================
# Single-message path
# ==========================================================

class MessageProcessor:
    """Runs the per-message path for a consumer in SingleMessageMode."""

    def __init__(
        self,
        config: ConsumerConfig,
        handler: MessageHandler,
        transport: TransportProto,
        events: EventBus,
        logger: Optional[StructuredLogger] = None,
    ):
        self.config = config
        self.handler = handler
        self.transport = transport
        self.events = events
        self.logger = logger or get_logger("processing")

    def process(self, message: Message) -> None:
        self.events.publish(ConsumerEvent.MESSAGE_RECEIVED, message)
        try:
            self.execute_handler(message)
            self.transport.delete_message(self.config.queue_url, message.receipt_handle)
            self.events.publish(ConsumerEvent.MESSAGE_PROCESSED, message)
        except Exception as e:
            self._report(e, message)
            if self.config.terminate_visibility_timeout:
                self._release(message)

    def execute_handler(self, message: Message) -> None:
        """Run the handler under the configured deadline, normalising its failures."""
        try:
            run_with_timeout(self.handler, message, self.config.handle_message_timeout)
        except (HandlerTimeoutError, SQSError):
            raise
        except Exception as e:
            raise ProcessingError(e) from e

    def _report(self, error: Exception, message: Message) -> None:
        kind = classify_error(error)
        if kind in (ErrorKind.TRANSPORT, ErrorKind.AUTHENTICATION):
            self.events.publish(ConsumerEvent.ERROR, error, message)
        elif kind is ErrorKind.TIMEOUT:
            self.events.publish(ConsumerEvent.TIMEOUT_ERROR, error, message)
        else:
            self.events.publish(ConsumerEvent.PROCESSING_ERROR, error, message)

    def _release(self, message: Message) -> None:
        self.logger.debug("Releasing message visibility", {"message_id": message.message_id})
        try:
            self.transport.change_visibility(self.config.queue_url, message.receipt_handle, 0)
        except Exception as e:
            self.events.publish(ConsumerEvent.ERROR, e, message)


# ==========================================================
# Whole-batch path
# ==========================================================

class BatchProcessor:
    """Runs the whole-batch path for a consumer in BatchMode."""

    def __init__(
        self,
        config: ConsumerConfig,
        handler: BatchHandler,
        transport: TransportProto,
        events: EventBus,
        logger: Optional[StructuredLogger] = None,
    ):
        self.config = config
        self.handler = handler
        self.transport = transport
        self.events = events
        self.logger = logger or get_logger("processing")

    def process(self, messages: List[Message]) -> None:
        self.events.publish(ConsumerEvent.BATCH_MESSAGE_RECEIVED, messages)
        for message in messages:
            self.events.publish(ConsumerEvent.MESSAGE_RECEIVED, message)

        try:
            self.execute_handler(messages)
            self.transport.delete_message_batch(self.config.queue_url, messages)
            self.events.publish(ConsumerEvent.BATCH_MESSAGE_PROCESSED, messages)
            for message in messages:
                self.events.publish(ConsumerEvent.MESSAGE_PROCESSED, message)
        except Exception as e:
            self.events.publish(ConsumerEvent.ERROR, e, messages)
            if self.config.terminate_visibility_timeout:
                self._release(messages)

    def execute_handler(self, messages: List[Message]) -> None:
        # No deadline here: handle_message_timeout applies to single messages only
        try:
            self.handler(messages)
        except SQSError:
            raise
        except Exception as e:
            raise ProcessingError(e) from e

    def _release(self, messages: List[Message]) -> None:
        self.logger.debug("Releasing batch visibility", {"message_ids": [m.message_id for m in messages]})
        try:
            self.transport.change_visibility_batch(self.config.queue_url, messages, 0)
        except Exception as e:
            self.events.publish(ConsumerEvent.ERROR, e, messages)


__all__ = ["MessageProcessor", "BatchProcessor"]
