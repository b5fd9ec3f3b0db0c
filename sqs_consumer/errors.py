"""
Consumer error types and the error classifier.

Every failure the poll loop can see falls into one ErrorKind:
- TIMEOUT:        handler exceeded handle_message_timeout (HandlerTimeoutError)
- TRANSPORT:      a queue call failed (SQSError, with transport metadata)
- AUTHENTICATION: a TRANSPORT error caused by bad/expired credentials
- PROCESSING:     anything else the handler raised (ProcessingError)

Classification is pure. The loop decides routing and backoff.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    NoCredentialsError,
    PartialCredentialsError,
)

from .constants import AUTH_ERROR_CODES, AUTH_ERROR_STATUS, RETRIABLE_ERROR_CODES


# ============================================================================
# ERROR TYPES
# ============================================================================

class ConfigurationError(ValueError):
    """Invalid consumer options. Raised at construction, never inside the loop."""


class SQSError(Exception):
    """A queue operation (receive/delete/change visibility) failed."""

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        status_code: Optional[int] = None,
        retryable: bool = False,
        region: Optional[str] = None,
        hostname: Optional[str] = None,
        time: Optional[datetime] = None,
    ):
        super().__init__(message)
        self.code = code
        self.status_code = status_code
        self.retryable = retryable
        self.region = region
        self.hostname = hostname
        self.time = time or datetime.now(timezone.utc)

    def to_dict(self):
        return {
            "message": str(self),
            "code": self.code,
            "status_code": self.status_code,
            "retryable": self.retryable,
            "region": self.region,
            "hostname": self.hostname,
            "time": self.time.isoformat(),
        }


class HandlerTimeoutError(Exception):
    """The message handler did not finish before its deadline."""

    def __init__(self, timeout_ms: Optional[float] = None):
        self.timeout_ms = timeout_ms
        if timeout_ms is None:
            super().__init__("Operation timed out.")
        else:
            super().__init__(f"Message handler timed out after {timeout_ms:g}ms: Operation timed out.")


class ProcessingError(Exception):
    """The message handler raised. The original exception is __cause__."""

    def __init__(self, cause: BaseException):
        super().__init__(f"Unexpected message handler failure: {cause}")
        self.__cause__ = cause


class ErrorKind(str, Enum):
    AUTHENTICATION = "authentication"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    PROCESSING = "processing"


# ============================================================================
# WRAPPING
# ============================================================================

def to_sqs_error(
    exc: BaseException,
    message: str,
    *,
    region: Optional[str] = None,
    hostname: Optional[str] = None,
) -> SQSError:
    """Translate a botocore failure into an SQSError carrying transport metadata."""
    if isinstance(exc, SQSError):
        return exc

    code: Optional[str] = None
    status_code: Optional[int] = None

    if isinstance(exc, ClientError):
        code = exc.response.get("Error", {}).get("Code")
        status_code = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    elif isinstance(exc, (NoCredentialsError, PartialCredentialsError)):
        code = "CredentialsError"
    elif isinstance(exc, BotoCoreError):
        code = type(exc).__name__

    retryable = code in RETRIABLE_ERROR_CODES or (status_code is not None and status_code >= 500)

    err = SQSError(
        message,
        code=code,
        status_code=status_code,
        retryable=retryable,
        region=region,
        hostname=hostname,
    )
    err.__cause__ = exc
    return err


# ============================================================================
# CLASSIFICATION
# ============================================================================

def is_authentication_error(exc: BaseException) -> bool:
    """True for transport errors caused by rejected or missing credentials."""
    if not isinstance(exc, SQSError):
        return False
    return exc.status_code == AUTH_ERROR_STATUS or exc.code in AUTH_ERROR_CODES


def classify_error(exc: BaseException) -> ErrorKind:
    """Assign a failure to its ErrorKind. Side-effect free."""
    if isinstance(exc, HandlerTimeoutError):
        return ErrorKind.TIMEOUT
    if isinstance(exc, SQSError):
        if is_authentication_error(exc):
            return ErrorKind.AUTHENTICATION
        return ErrorKind.TRANSPORT
    return ErrorKind.PROCESSING


__all__ = [
    "ConfigurationError",
    "SQSError",
    "HandlerTimeoutError",
    "ProcessingError",
    "ErrorKind",
    "to_sqs_error",
    "is_authentication_error",
    "classify_error",
]
