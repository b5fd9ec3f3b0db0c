"""
Shared pytest fixtures for the consumer tests.

FakeTransport stands in for SQS: receive_messages() plays back a script of
responses (message lists, None, or exceptions to raise) and every queue
call is recorded for assertions. RecordingListener captures published
events in order.
"""

from __future__ import annotations

import json
import threading
from typing import Any, Callable, List, Optional, Sequence, Tuple

import pytest

from sqs_consumer.events import ConsumerListener
from sqs_consumer.message import Message


def make_raw(i: int, body: Any = None) -> dict:
    return {
        "MessageId": f"m-{i}",
        "ReceiptHandle": f"rh-{i}",
        "Body": json.dumps(body if body is not None else {"n": i}),
        "Attributes": {"ApproximateReceiveCount": "1"},
    }


def make_messages(n: int) -> List[Message]:
    return [Message.from_raw(make_raw(i)) for i in range(n)]


class FakeTransport:
    """Implements TransportProto in memory."""

    def __init__(self, script: Sequence[Any] = (), on_exhausted: Optional[Callable[[], None]] = None):
        self.script = list(script)
        self.on_exhausted = on_exhausted
        self.receive_calls: List[dict] = []
        self.deleted: List[str] = []
        self.batch_deletes: List[List[str]] = []
        self.visibility_changes: List[Tuple[str, int]] = []
        self.batch_visibility_changes: List[Tuple[List[str], int]] = []
        self.fail_delete: Optional[Exception] = None
        self.fail_visibility: Optional[Exception] = None
        self._lock = threading.Lock()

    def receive_messages(self, queue_url, attribute_names, message_attribute_names,
                         max_messages, wait_seconds, visibility_timeout=None):
        with self._lock:
            self.receive_calls.append({
                "queue_url": queue_url,
                "attribute_names": tuple(attribute_names),
                "message_attribute_names": tuple(message_attribute_names),
                "max_messages": max_messages,
                "wait_seconds": wait_seconds,
                "visibility_timeout": visibility_timeout,
            })
            step = self.script.pop(0) if self.script else []
            exhausted = not self.script
        if exhausted and self.on_exhausted is not None:
            self.on_exhausted()
        if isinstance(step, Exception):
            raise step
        return step

    def delete_message(self, queue_url, receipt_handle):
        if self.fail_delete is not None:
            raise self.fail_delete
        with self._lock:
            self.deleted.append(receipt_handle)

    def delete_message_batch(self, queue_url, messages):
        if self.fail_delete is not None:
            raise self.fail_delete
        with self._lock:
            self.batch_deletes.append([m.receipt_handle for m in messages])

    def change_visibility(self, queue_url, receipt_handle, visibility_timeout=0):
        with self._lock:
            self.visibility_changes.append((receipt_handle, visibility_timeout))
        if self.fail_visibility is not None:
            raise self.fail_visibility

    def change_visibility_batch(self, queue_url, messages, visibility_timeout=0):
        with self._lock:
            self.batch_visibility_changes.append(([m.receipt_handle for m in messages], visibility_timeout))
        if self.fail_visibility is not None:
            raise self.fail_visibility


class RecordingListener(ConsumerListener):
    """Records (event_name, args) tuples in publish order."""

    def __init__(self):
        self.events: List[Tuple[str, tuple]] = []
        self._lock = threading.Lock()

    def _record(self, name: str, *args) -> None:
        with self._lock:
            self.events.append((name, args))

    @property
    def names(self) -> List[str]:
        with self._lock:
            return [name for name, _ in self.events]

    def of(self, name: str) -> List[tuple]:
        with self._lock:
            return [args for n, args in self.events if n == name]

    def on_stopped(self):
        self._record("stopped")

    def on_message_received(self, message):
        self._record("message_received", message)

    def on_message_processed(self, message):
        self._record("message_processed", message)

    def on_batch_message_received(self, messages):
        self._record("batch_message_received", messages)

    def on_batch_message_processed(self, messages):
        self._record("batch_message_processed", messages)

    def on_response_processed(self):
        self._record("response_processed")

    def on_empty(self):
        self._record("empty")

    def on_null_response(self):
        self._record("null_response")

    def on_error(self, error, subject=None):
        self._record("error", error, subject)

    def on_timeout_error(self, error, message):
        self._record("timeout_error", error, message)

    def on_processing_error(self, error, message):
        self._record("processing_error", error, message)


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def recorder() -> RecordingListener:
    return RecordingListener()


QUEUE_URL = "https://sqs.eu-west-1.amazonaws.com/123456789012/test-queue"
