"""
SQS consumer: the poll loop.

One consumer owns one loop thread. Each iteration:
  1. stopped?            -> publish `stopped`, exit
  2. receive (long-poll) -> up to batch_size messages
  3. dispatch            -> BatchProcessor, or MessageProcessor fanned out
                            concurrently over the batch; wait for all
  4. receive failed      -> publish `error`; on credential errors wait
                            authentication_error_timeout before the next receive
  5. cycle raised        -> Exception: publish `error`, keep polling;
                            BaseException: clear the running flag, publish
                            `stopped`, re-raise

Only one receive is ever outstanding: the next one starts after the whole
cycle, including every handler, has finished. The running flag is the only
state shared across threads.

Example:
    consumer = Consumer.create(
        queue_url="https://sqs.eu-west-1.amazonaws.com/123/orders",
        handle_message=lambda m: print(m.body),
        batch_size=10,
    )
    consumer.subscribe(LoggingListener())
    consumer.start()
"""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Sequence

from .config import BatchMode, ConsumerConfig
from .contracts import TransportProto
from .errors import is_authentication_error
from .events import ConsumerEvent, ConsumerListener, EventBus
from .io_sqs import SQSTransport
from .logging import StructuredLogger, get_logger
from .message import Message
from .processing import BatchProcessor, MessageProcessor


class Consumer:
    """Long-polling SQS consumer. Build with Consumer.create() or from a ConsumerConfig."""

    def __init__(
        self,
        config: ConsumerConfig,
        transport: Optional[TransportProto] = None,
        listeners: Sequence[ConsumerListener] = (),
        logger: Optional[StructuredLogger] = None,
    ):
        self.config = config
        self.logger = logger or get_logger("consumer")
        self.transport = transport or SQSTransport()
        self.events = EventBus(listeners, logger=self.logger)

        mode = config.handler_mode
        if isinstance(mode, BatchMode):
            self._processor = BatchProcessor(config, mode.handler, self.transport, self.events, self.logger)
        else:
            self._processor = MessageProcessor(config, mode.handler, self.transport, self.events, self.logger)

        self._running = False
        self._lock = threading.RLock()  # stop() may run from a signal handler
        self._wake = threading.Event()
        self._thread: Optional[threading.Thread] = None  # live loop, cleared on exit
        self._last_thread: Optional[threading.Thread] = None

    @classmethod
    def create(
        cls,
        *,
        sqs=None,
        region: Optional[str] = None,
        listeners: Sequence[ConsumerListener] = (),
        logger: Optional[StructuredLogger] = None,
        **options,
    ) -> "Consumer":
        """
        Validate options and build a consumer over a boto3 SQS client.

        Args:
            sqs: existing boto3 SQS client (default: created lazily for region)
            region: AWS region when no client is given (default: AWS_REGION or eu-west-1)
            listeners: ConsumerListener instances to subscribe up front
            **options: ConsumerConfig.create() options (queue_url, handle_message, ...)

        Raises:
            ConfigurationError on invalid options
        """
        config = ConsumerConfig.create(**options)
        transport = SQSTransport(sqs_client=sqs, region=region)
        return cls(config, transport=transport, listeners=listeners, logger=logger)

    # ------------------------------------------------------------------------
    # LIFECYCLE
    # ------------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Start polling on a background thread. No-op if already running."""
        with self._lock:
            if self._running:
                return
            self.logger.info("Starting consumer", {"queue_url": self.config.queue_url})
            self._running = True
            self._wake.clear()
            if self._thread is not None:
                # Previous loop has not reached its stop check yet; it keeps going
                return
            self._thread = threading.Thread(target=self._loop, name="sqs-consumer-poll", daemon=True)
            self._last_thread = self._thread
            self._thread.start()

    def run(self) -> None:
        """Poll on the calling thread until stop() is called. No-op if already running."""
        with self._lock:
            if self._running or self._thread is not None:
                return
            self.logger.info("Starting consumer", {"queue_url": self.config.queue_url})
            self._running = True
            self._wake.clear()
            self._thread = threading.current_thread()
            self._last_thread = self._thread
        self._loop()

    def stop(self) -> None:
        """
        Ask the loop to exit after the in-flight cycle. Always publishes `stopped`.

        In-flight receives and handlers are not interrupted. A pending
        authentication backoff is cut short.
        """
        with self._lock:
            self.logger.info("Stopping consumer", {"queue_url": self.config.queue_url})
            self._running = False
            self._wake.set()
        self.events.publish(ConsumerEvent.STOPPED)

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the loop thread to exit. Returns True if it has."""
        t = self._last_thread
        if t is None or t is threading.current_thread():
            return True
        t.join(timeout)
        return not t.is_alive()

    def subscribe(self, listener: ConsumerListener) -> None:
        self.events.subscribe(listener)

    def unsubscribe(self, listener: ConsumerListener) -> None:
        self.events.unsubscribe(listener)

    # ------------------------------------------------------------------------
    # POLL LOOP
    # ------------------------------------------------------------------------

    def _loop(self) -> None:
        try:
            while True:
                with self._lock:
                    if not self._running:
                        self._thread = None
                        break
                try:
                    delay = self.poll_once()
                except Exception as e:
                    self.logger.error(e, {"queue_url": self.config.queue_url})
                    self.events.publish(ConsumerEvent.ERROR, e)
                    continue
                if delay > 0 and self._running:
                    self._wake.wait(delay)
        except BaseException as e:
            # Cancellation or interpreter exit: leave the consumer restartable
            with self._lock:
                self._running = False
                self._thread = None
            self.logger.error(e, {"queue_url": self.config.queue_url})
            self.events.publish(ConsumerEvent.STOPPED)
            raise
        self.events.publish(ConsumerEvent.STOPPED)

    def poll_once(self) -> float:
        """
        Run one receive -> dispatch cycle.

        Returns:
            Seconds to wait before the next receive (0 unless the receive
            failed with a credential error)
        """
        self.logger.debug("Polling for messages", {"queue_url": self.config.queue_url})
        try:
            messages = self.transport.receive_messages(
                self.config.queue_url,
                self.config.attribute_names,
                self.config.message_attribute_names,
                self.config.batch_size,
                self.config.wait_time_seconds,
                self.config.visibility_timeout,
            )
        except Exception as e:
            self.events.publish(ConsumerEvent.ERROR, e)
            if is_authentication_error(e):
                self.logger.warning("There was an authentication error. Pausing before retrying.", {
                    "queue_url": self.config.queue_url,
                    "backoff_ms": self.config.authentication_error_timeout,
                })
                return self.config.authentication_error_timeout / 1000.0
            return 0.0

        self.handle_response(messages)
        return 0.0

    def handle_response(self, messages: Optional[List[Message]]) -> None:
        if messages is None:
            self.events.publish(ConsumerEvent.NULL_RESPONSE)
            return
        if not messages:
            self.events.publish(ConsumerEvent.EMPTY)
            return

        if isinstance(self._processor, BatchProcessor):
            self._processor.process(messages)
        elif len(messages) == 1:
            self._processor.process(messages[0])
        else:
            # No ordering or locking between messages of one batch
            with ThreadPoolExecutor(max_workers=len(messages), thread_name_prefix="sqs-consumer-msg") as pool:
                list(pool.map(self._processor.process, messages))

        self.events.publish(ConsumerEvent.RESPONSE_PROCESSED)


__all__ = ["Consumer"]
