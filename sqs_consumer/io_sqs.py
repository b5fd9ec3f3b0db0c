"""
SQS transport: receive, delete, and change visibility (single + batch).

The consumer's only window onto the queue:
- Lazy boto3 client tuned for long-polling
- Client-side retry with jittered backoff on transient error codes
- Every failure surfaces as SQSError with transport metadata attached
- Partial batch failures are reported, never silently dropped
"""

from __future__ import annotations

import os
import random
import time
from typing import Any, Callable, Dict, List, Optional, Sequence
from urllib.parse import urlparse

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .constants import (
    DEFAULT_REGION,
    DEFAULT_TRANSPORT_RETRIES,
    MAX_BATCH_SIZE,
    MAX_WAIT_TIME_SECONDS,
    RETRIABLE_ERROR_CODES,
    SQS_MAX_VISIBILITY,
)
from .errors import SQSError, to_sqs_error
from .logging import get_logger
from .message import Message


# ============================================================================
# CLIENT
# ============================================================================

def get_sqs_client(region: Optional[str] = None):
    """Create SQS client (one per consumer). Tuned for long-polling."""
    return boto3.client(
        "sqs",
        region_name=region,
        config=Config(
            retries={"max_attempts": 3, "mode": "standard"},
            read_timeout=MAX_WAIT_TIME_SECONDS + 50,  # > 20s long-poll
            connect_timeout=3,
        ),
    )


class SQSTransport:
    """
    Implements contracts.TransportProto on top of a boto3 SQS client.

    Pass sqs_client to reuse an existing (or stubbed) client; otherwise one
    is created lazily for the given region (default: AWS_REGION, read when
    the transport is built, else eu-west-1).
    """

    def __init__(
        self,
        sqs_client=None,
        region: Optional[str] = None,
        max_retries: int = DEFAULT_TRANSPORT_RETRIES,
        logger=None,
    ):
        self._sqs = sqs_client
        self._region = region or os.environ.get("AWS_REGION") or DEFAULT_REGION
        self.max_retries = max(1, int(max_retries))
        self.logger = logger or get_logger("io_sqs")

    @property
    def sqs(self):
        if self._sqs is None:
            self._sqs = get_sqs_client(self._region)
        return self._sqs

    @property
    def region(self) -> Optional[str]:
        meta = getattr(self._sqs, "meta", None)
        return getattr(meta, "region_name", None) or self._region

    @property
    def hostname(self) -> Optional[str]:
        meta = getattr(self._sqs, "meta", None)
        endpoint = getattr(meta, "endpoint_url", None)
        return urlparse(endpoint).hostname if endpoint else None

    # ------------------------------------------------------------------------
    # RECEIVING
    # ------------------------------------------------------------------------

    def receive_messages(
        self,
        queue_url: str,
        attribute_names: Sequence[str] = (),
        message_attribute_names: Sequence[str] = (),
        max_messages: int = 1,
        wait_seconds: int = MAX_WAIT_TIME_SECONDS,
        visibility_timeout: Optional[int] = None,
    ) -> Optional[List[Message]]:
        """
        Long-poll the queue.

        Returns:
            None if the service gave no response body, [] when no messages
            arrived within wait_seconds, else the received messages in order.
        """
        params: Dict[str, Any] = {
            "QueueUrl": queue_url,
            "AttributeNames": list(attribute_names),
            "MessageAttributeNames": list(message_attribute_names),
            "MaxNumberOfMessages": max(1, min(int(max_messages), MAX_BATCH_SIZE)),
            "WaitTimeSeconds": max(0, min(int(wait_seconds), MAX_WAIT_TIME_SECONDS)),
        }
        if visibility_timeout is not None:
            params["VisibilityTimeout"] = int(visibility_timeout)

        self.logger.debug("Receiving messages", {
            "queue_url": queue_url,
            "max_messages": params["MaxNumberOfMessages"],
        })
        resp = self._call("SQS receive message failed", self.sqs.receive_message, **params)
        if resp is None:
            return None

        messages = []
        for raw in resp.get("Messages") or []:
            try:
                messages.append(Message.from_raw(raw))
            except ValueError as e:
                # Left in flight; SQS redelivers it once its visibility lapses
                self.logger.warning("Skipping malformed message", {
                    "queue_url": queue_url,
                    "message_id": raw.get("MessageId") if isinstance(raw, dict) else None,
                    "error": str(e),
                })
        if messages:
            self.logger.debug(f"Received {len(messages)} message(s)", {"queue_url": queue_url})
        return messages

    # ------------------------------------------------------------------------
    # ACKNOWLEDGEMENT
    # ------------------------------------------------------------------------

    def delete_message(self, queue_url: str, receipt_handle: str) -> None:
        """ACK message: permanently remove from queue."""
        if not isinstance(receipt_handle, str) or not receipt_handle.strip():
            raise ValueError("delete_message: receipt_handle required")

        self._call(
            "SQS delete message failed",
            self.sqs.delete_message,
            QueueUrl=queue_url,
            ReceiptHandle=receipt_handle,
        )

    def delete_message_batch(self, queue_url: str, messages: Sequence[Message]) -> None:
        """ACK up to 10 messages in one call."""
        if not messages:
            return
        self.logger.debug("Deleting messages", {
            "queue_url": queue_url,
            "message_ids": [m.message_id for m in messages],
        })
        resp = self._call(
            "SQS delete message failed",
            self.sqs.delete_message_batch,
            QueueUrl=queue_url,
            Entries=[m.delete_entry() for m in messages],
        )
        self._check_batch_failures("SQS delete message failed", resp)

    # ------------------------------------------------------------------------
    # VISIBILITY
    # ------------------------------------------------------------------------

    def change_visibility(self, queue_url: str, receipt_handle: str, visibility_timeout: int = 0) -> None:
        """Shorten (0 = release now) or extend a message's invisibility."""
        if not isinstance(receipt_handle, str) or not receipt_handle.strip():
            raise ValueError("change_visibility: receipt_handle required")
        if not isinstance(visibility_timeout, int) or visibility_timeout < 0:
            raise ValueError("change_visibility: timeout must be non-negative int")

        self._call(
            "SQS change message visibility failed",
            self.sqs.change_message_visibility,
            QueueUrl=queue_url,
            ReceiptHandle=receipt_handle,
            VisibilityTimeout=min(visibility_timeout, SQS_MAX_VISIBILITY),
        )

    def change_visibility_batch(
        self,
        queue_url: str,
        messages: Sequence[Message],
        visibility_timeout: int = 0,
    ) -> None:
        """Change visibility for up to 10 messages in one call."""
        if not messages:
            return
        timeout = min(int(visibility_timeout), SQS_MAX_VISIBILITY)
        resp = self._call(
            "SQS change message visibility failed",
            self.sqs.change_message_visibility_batch,
            QueueUrl=queue_url,
            Entries=[m.visibility_entry(timeout) for m in messages],
        )
        self._check_batch_failures("SQS change message visibility failed", resp)

    # ------------------------------------------------------------------------
    # PRIVATE HELPERS
    # ------------------------------------------------------------------------

    def _call(self, failure_message: str, func: Callable, **kwargs):
        """Run a boto3 call with retry, translating any failure into SQSError."""
        try:
            return self._retry(func, **kwargs)
        except (ClientError, BotoCoreError) as e:
            raise to_sqs_error(
                e,
                f"{failure_message}: {e}",
                region=self.region,
                hostname=self.hostname,
            ) from e

    def _retry(self, func: Callable, *args, **kwargs):
        """Retry a boto3 call with exponential backoff on retriable errors."""
        delay = 0.25
        for attempt in range(1, self.max_retries + 1):
            try:
                return func(*args, **kwargs)
            except ClientError as e:
                code = e.response.get("Error", {}).get("Code", "")
                if code in RETRIABLE_ERROR_CODES and attempt < self.max_retries:
                    self.logger.debug("Retrying SQS call", {"code": code, "attempt": attempt})
                    time.sleep(delay + random.uniform(0, 0.25))
                    delay = min(delay * 2, 5.0)
                    continue
                raise
        raise RuntimeError(f"Failed after {self.max_retries} attempts")

    def _check_batch_failures(self, failure_message: str, resp: Optional[Dict[str, Any]]) -> None:
        failures = (resp or {}).get("Failed") or []
        if not failures:
            return
        for f in failures:
            self.logger.warning("Batch entry failed", {
                "entry_id": f.get("Id"),
                "code": f.get("Code"),
                "message": f.get("Message"),
                "sender_fault": f.get("SenderFault"),
            })
        ids = ", ".join(str(f.get("Id")) for f in failures)
        raise SQSError(
            f"{failure_message}: {len(failures)} entr{'y' if len(failures) == 1 else 'ies'} failed ({ids})",
            code="BatchEntryFailed",
            retryable=any(f.get("Code") in RETRIABLE_ERROR_CODES for f in failures),
            region=self.region,
            hostname=self.hostname,
        )


__all__ = ["SQSTransport", "get_sqs_client"]
