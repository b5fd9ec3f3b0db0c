# service/handlers.py
"""Example handlers for the runner. Point HANDLER_PATH at one of these."""
from sqs_consumer.logging import get_logger

logger = get_logger("service")


def log_message(message):
    """Single mode: log the body; returning normally deletes the message."""
    logger.info("Handling message", {
        "message_id": message.message_id,
        "receive_count": message.receive_count,
        "body": message.body,
    })


def log_batch(messages):
    """Batch mode: one call per received batch."""
    logger.info(f"Handling batch of {len(messages)}", {
        "message_ids": [m.message_id for m in messages],
    })


class JsonHandler:
    """
    Class-based handler: the runner instantiates it once and calls it per message.
    Bodies must be JSON objects (SNS envelopes are unwrapped); anything else
    raises, so the message is reported as a processing_error and redelivered.
    """

    def __init__(self):
        self.handled = 0

    def __call__(self, message):
        payload = message.json()
        if not isinstance(payload, dict):
            raise ValueError("payload not a dict")
        self.handled += 1
        logger.info("Handled JSON message", {"message_id": message.message_id, "keys": sorted(payload)})
