"""
constants.py – protocol limits and defaults for the SQS consumer.

Everything that tunes the poll loop without user input lives here so the
config layer, transport and loop agree on the same numbers.
"""

# ============================================================================
# RECEIVE LIMITS (imposed by the SQS ReceiveMessage API)
# ============================================================================

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 10
DEFAULT_BATCH_SIZE = 1

MAX_WAIT_TIME_SECONDS = 20  # long-poll ceiling
DEFAULT_WAIT_TIME_SECONDS = 20

SQS_MAX_VISIBILITY = 43_200  # 12h hard SQS limit

# ============================================================================
# CONSUMER DEFAULTS
# ============================================================================

DEFAULT_AUTH_ERROR_TIMEOUT_MS = 10_000
DEFAULT_REGION = "eu-west-1"  # when AWS_REGION is unset
DEFAULT_TRANSPORT_RETRIES = 3

# ============================================================================
# ERROR CODES
# ============================================================================

RETRIABLE_ERROR_CODES = {
    "Throttling", "ThrottlingException", "ServiceUnavailable",
    "RequestThrottled", "InternalError", "InternalFailure",
    "RequestTimeout", "500", "502", "503", "504",
}

# Codes meaning the caller's credentials are missing, invalid or expired
AUTH_ERROR_CODES = {
    "CredentialsError",
    "InvalidClientTokenId",
    "ExpiredToken",
    "ExpiredTokenException",
    "UnrecognizedClientException",
    "SignatureDoesNotMatch",
    "AccessDenied",
    "AccessDeniedException",
}

AUTH_ERROR_STATUS = 403
