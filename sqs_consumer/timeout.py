"""
Timeout guard for handler invocations.

Races a handler call against a deadline. The call runs on its own daemon
thread and we join it for at most the deadline. Python threads cannot be
killed, so a handler that loses the race keeps running in the background;
whatever it returns or raises after that is dropped.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, Optional, TypeVar

from .errors import HandlerTimeoutError


T = TypeVar("T")


def run_with_timeout(func: Callable[[T], Any], arg: T, timeout_ms: Optional[float] = None) -> Any:
    """
    Call func(arg), failing with HandlerTimeoutError if it takes longer than timeout_ms.

    Args:
        func: handler to invoke
        arg: single argument for the handler (a Message or a list of them)
        timeout_ms: deadline in milliseconds; None/0 runs the call inline

    Returns:
        Whatever func returned

    Raises:
        HandlerTimeoutError if the deadline elapsed first
        Any exception func raised before the deadline
    """
    if not timeout_ms:
        return func(arg)

    outcome: Dict[str, Any] = {}
    done = threading.Event()

    def target() -> None:
        try:
            outcome["result"] = func(arg)
        except BaseException as e:  # re-raised on the caller's thread
            outcome["error"] = e
        finally:
            done.set()

    t = threading.Thread(target=target, name="sqs-consumer-handler", daemon=True)
    t.start()

    if not done.wait(timeout_ms / 1000.0):
        raise HandlerTimeoutError(timeout_ms)

    if "error" in outcome:
        raise outcome["error"]
    return outcome.get("result")


__all__ = ["run_with_timeout"]
