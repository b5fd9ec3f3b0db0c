# sqs_consumer/contracts.py
"""
Consumer contracts.
- No logic here.
- Just handler types and the duck-typed seams the consumer is wired through.

Users provide exactly ONE handler:
  - handle_message(message) for per-message processing
  - handle_message_batch(messages) for whole-batch processing
A handler signals failure by raising; returning normally means "delete it".

The consumer talks to the queue only through TransportProto, so tests and
alternative backends can swap in their own implementation.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, runtime_checkable

from .message import Message

# ---------------------------
# Handler types
# ---------------------------

MessageHandler = Callable[[Message], Any]
BatchHandler = Callable[[List[Message]], Any]


# ---------------------------
# IO & Logger protocols (duck-typed)
# ---------------------------

@runtime_checkable
class TransportProto(Protocol):
    """Queue operations the consumer depends on. Failures raise SQSError."""

    def receive_messages(
        self,
        queue_url: str,
        attribute_names: Sequence[str],
        message_attribute_names: Sequence[str],
        max_messages: int,
        wait_seconds: int,
        visibility_timeout: Optional[int] = None,
    ) -> Optional[List[Message]]: ...

    def delete_message(self, queue_url: str, receipt_handle: str) -> None: ...

    def delete_message_batch(self, queue_url: str, messages: Sequence[Message]) -> None: ...

    def change_visibility(self, queue_url: str, receipt_handle: str, visibility_timeout: int = 0) -> None: ...

    def change_visibility_batch(
        self, queue_url: str, messages: Sequence[Message], visibility_timeout: int = 0
    ) -> None: ...


@runtime_checkable
class LoggerProto(Protocol):
    """Structured logger used everywhere."""
    def info(self, msg: str, extra: Optional[Dict[str, Any]] = None) -> None: ...
    def warning(self, msg: str, extra: Optional[Dict[str, Any]] = None) -> None: ...
    def error(self, msg: Any, extra: Optional[Dict[str, Any]] = None) -> None: ...
    def debug(self, msg: str, extra: Optional[Dict[str, Any]] = None) -> None: ...


__all__ = [
    "MessageHandler",
    "BatchHandler",
    "TransportProto",
    "LoggerProto",
]
