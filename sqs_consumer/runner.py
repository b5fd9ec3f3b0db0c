"""
Consumer runner: `sqs-consumer` / `python -m sqs_consumer.runner`.

Loads settings (YAML + env), imports the handler by dotted path, and polls
until SIGINT/SIGTERM.

    QUEUE_URL=https://sqs.eu-west-1.amazonaws.com/123/orders \
    sqs-consumer --handler service.handlers.log_message --mode single
"""

import argparse
import importlib
import signal
import sys
from typing import Any, Callable, List, Optional

from .config import config_from_settings, load_settings
from .consumer import Consumer
from .events import LoggingListener
from .io_sqs import SQSTransport
from .logging import get_logger


# ==========================================================
# Helpers
# ==========================================================

def load_handler(path: str) -> Callable[..., Any]:
    """Import `package.module.attr` and return the callable it names."""
    if not path or "." not in path:
        raise RuntimeError(f"Invalid handler path: {path!r} (expected module.attr)")
    mod, attr = path.rsplit(".", 1)
    handler = getattr(importlib.import_module(mod), attr, None)
    if handler is None:
        raise RuntimeError(f"Handler {attr!r} not found in module {mod!r}")
    # Classes (like service hooks) are instantiated; instances must be callable
    if isinstance(handler, type):
        handler = handler()
    if not callable(handler):
        raise RuntimeError(f"Handler {path!r} is not callable")
    return handler


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="sqs-consumer", description="Long-poll an SQS queue into a handler.")
    parser.add_argument("--config", default=None, help="Path to a YAML settings file")
    parser.add_argument("--queue-url", default=None, help="Queue to consume (overrides settings)")
    parser.add_argument("--handler", default=None, help="Dotted path to the handler, e.g. service.handlers.log_message")
    parser.add_argument("--mode", choices=("single", "batch"), default=None, help="Handler mode")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    return parser.parse_args(argv)


# ==========================================================
# Builder
# ==========================================================

def build_consumer(args: argparse.Namespace, sqs=None) -> Consumer:
    """Turn CLI args + settings into a ready (not yet started) consumer."""
    settings = load_settings(args.config)
    if args.queue_url:
        settings["queue_url"] = args.queue_url

    log_level = args.log_level or settings.get("log_level", "INFO")
    logger = get_logger("runner", level=log_level)

    if not settings.get("queue_url"):
        raise RuntimeError("Missing queue URL (set QUEUE_URL, --queue-url or queue_url in config)")

    handler_path = args.handler or settings.get("handler_path")
    if not handler_path:
        raise RuntimeError("Missing handler (set HANDLER_PATH, --handler or handler_path in config)")
    mode = args.mode or settings.get("handler_mode", "single")

    handler = load_handler(handler_path)
    config = config_from_settings(settings, handler, mode)
    transport = SQSTransport(sqs_client=sqs, region=settings.get("region"))

    logger.info("Consumer configured", {
        "queue_url": config.queue_url,
        "handler_path": handler_path,
        "mode": mode,
        "batch_size": config.batch_size,
    })
    return Consumer(
        config,
        transport=transport,
        listeners=[LoggingListener(get_logger("consumer", level=log_level))],
        logger=get_logger("consumer", level=log_level),
    )


# ==========================================================
# Entrypoint
# ==========================================================

def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    consumer = build_consumer(args)
    logger = get_logger("runner")

    def request_shutdown(signum, _frame):
        logger.info("Shutdown signal received", {"signal": signum})
        consumer.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, request_shutdown)

    consumer.start()
    # Short joins keep the main thread responsive to signals
    while not consumer.join(timeout=1.0):
        pass
    logger.info("Consumer exited")
    return 0


if __name__ == "__main__":
    sys.exit(main())
