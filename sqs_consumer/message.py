"""
Received message model.

A Message is what the queue handed us: identity, the receipt handle needed
to delete it or change its visibility, the body and its attribute maps.
Handlers only ever read it; the consumer never mutates one.

NOTE: the receipt handle is a one-time capability issued per receive, not a
stable key. Use message_id to identify a message across deliveries.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional


RawMessage = Dict[str, Any]


@dataclass(frozen=True)
class Message:
    """Immutable view of a single SQS message."""
    message_id: str
    receipt_handle: str
    body: Optional[str] = None
    attributes: Mapping[str, str] = field(default_factory=dict, hash=False)
    message_attributes: Mapping[str, Any] = field(default_factory=dict, hash=False)
    md5_of_body: Optional[str] = None

    @classmethod
    def from_raw(cls, raw: RawMessage) -> "Message":
        """Build from one entry of a ReceiveMessage response."""
        if not isinstance(raw, dict):
            raise ValueError(f"Message must be a dict, got {type(raw).__name__}")

        receipt_handle = raw.get("ReceiptHandle")
        if not isinstance(receipt_handle, str) or not receipt_handle.strip():
            raise ValueError("Message is missing ReceiptHandle")

        message_id = raw.get("MessageId")
        if not isinstance(message_id, str):
            raise ValueError(f"MessageId must be str, got {type(message_id).__name__}")

        return cls(
            message_id=message_id,
            receipt_handle=receipt_handle,
            body=raw.get("Body"),
            attributes=MappingProxyType(dict(raw.get("Attributes") or {})),
            message_attributes=MappingProxyType(dict(raw.get("MessageAttributes") or {})),
            md5_of_body=raw.get("MD5OfBody"),
        )

    @property
    def receive_count(self) -> int:
        """ApproximateReceiveCount (1 when the attribute was not requested)."""
        return int(self.attributes.get("ApproximateReceiveCount", 1))

    def json(self, *, allow_sns_envelope: bool = True) -> Any:
        """Decode the body as JSON, unwrapping an SNS notification envelope."""
        if not isinstance(self.body, str) or not self.body.strip():
            raise ValueError("Message body empty or not string")

        try:
            parsed = json.loads(self.body)
        except json.JSONDecodeError as e:
            raise ValueError(f"Message body invalid JSON: {e}") from e

        # SNS -> SQS subscriptions deliver {"Type": "Notification", "Message": "..."}
        if allow_sns_envelope and isinstance(parsed, dict) and "Message" in parsed:
            inner = parsed["Message"]
            if isinstance(inner, str):
                try:
                    return json.loads(inner)
                except json.JSONDecodeError as e:
                    raise ValueError(f"SNS Message invalid JSON: {e}") from e
            return inner

        return parsed

    def delete_entry(self) -> Dict[str, str]:
        """Entry for DeleteMessageBatch."""
        return {"Id": self.message_id, "ReceiptHandle": self.receipt_handle}

    def visibility_entry(self, visibility_timeout: int = 0) -> Dict[str, Any]:
        """Entry for ChangeMessageVisibilityBatch."""
        return {
            "Id": self.message_id,
            "ReceiptHandle": self.receipt_handle,
            "VisibilityTimeout": visibility_timeout,
        }


__all__ = ["Message", "RawMessage"]
