"""
Consumer configuration.

Two layers:
- ConsumerConfig: the validated, immutable options one Consumer runs with.
  Built by ConsumerConfig.create(), which rejects bad options up front so
  nothing invalid ever reaches the poll loop.
- Settings: a plain dict merged from config/<name>.yaml + environment
  variables, used by the runner to build a ConsumerConfig.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

import yaml

from .constants import (
    DEFAULT_AUTH_ERROR_TIMEOUT_MS,
    DEFAULT_BATCH_SIZE,
    DEFAULT_WAIT_TIME_SECONDS,
    MAX_BATCH_SIZE,
    MAX_WAIT_TIME_SECONDS,
    MIN_BATCH_SIZE,
    SQS_MAX_VISIBILITY,
)
from .contracts import BatchHandler, MessageHandler
from .errors import ConfigurationError


# ============================================================================
# HANDLER MODES
# ============================================================================

@dataclass(frozen=True)
class SingleMessageMode:
    """Each message goes to handler(message) on its own."""
    handler: MessageHandler


@dataclass(frozen=True)
class BatchMode:
    """The whole received batch goes to handler(messages) at once."""
    handler: BatchHandler


HandlerMode = Union[SingleMessageMode, BatchMode]


# ============================================================================
# CONFIG SCHEMA
# ============================================================================

@dataclass(frozen=True)
class ConsumerConfig:
    """Validated consumer options. Build with ConsumerConfig.create()."""
    queue_url: str
    handler_mode: HandlerMode
    batch_size: int = DEFAULT_BATCH_SIZE
    wait_time_seconds: int = DEFAULT_WAIT_TIME_SECONDS
    visibility_timeout: Optional[int] = None
    handle_message_timeout: Optional[float] = None  # ms
    terminate_visibility_timeout: bool = False
    authentication_error_timeout: float = DEFAULT_AUTH_ERROR_TIMEOUT_MS  # ms
    attribute_names: Tuple[str, ...] = field(default_factory=tuple)
    message_attribute_names: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def is_batch(self) -> bool:
        return isinstance(self.handler_mode, BatchMode)

    @classmethod
    def create(
        cls,
        queue_url: Optional[str] = None,
        handle_message: Optional[MessageHandler] = None,
        handle_message_batch: Optional[BatchHandler] = None,
        *,
        batch_size: Optional[int] = None,
        wait_time_seconds: Optional[int] = None,
        visibility_timeout: Optional[int] = None,
        handle_message_timeout: Optional[float] = None,
        terminate_visibility_timeout: bool = False,
        authentication_error_timeout: Optional[float] = None,
        attribute_names=None,
        message_attribute_names=None,
    ) -> "ConsumerConfig":
        """
        Validate raw options and build a ConsumerConfig.

        Raises:
            ConfigurationError if a required option is missing or a value is
            out of range
        """
        if not queue_url or not isinstance(queue_url, str):
            raise ConfigurationError("Missing SQS consumer option [queue_url].")

        if handle_message is None and handle_message_batch is None:
            raise ConfigurationError(
                "Missing SQS consumer option [handle_message or handle_message_batch]."
            )
        if handle_message is not None and handle_message_batch is not None:
            raise ConfigurationError(
                "SQS consumer options [handle_message] and [handle_message_batch] are mutually exclusive."
            )

        handler = handle_message if handle_message is not None else handle_message_batch
        if not callable(handler):
            raise ConfigurationError("SQS consumer handler must be callable.")
        mode: HandlerMode = (
            SingleMessageMode(handle_message) if handle_message is not None
            else BatchMode(handle_message_batch)
        )

        batch_size = DEFAULT_BATCH_SIZE if batch_size is None else batch_size
        if not _is_int(batch_size) or not MIN_BATCH_SIZE <= batch_size <= MAX_BATCH_SIZE:
            raise ConfigurationError(
                f"SQS batch_size option must be between {MIN_BATCH_SIZE} and {MAX_BATCH_SIZE}."
            )

        wait_time_seconds = DEFAULT_WAIT_TIME_SECONDS if wait_time_seconds is None else wait_time_seconds
        if not _is_int(wait_time_seconds) or not 0 <= wait_time_seconds <= MAX_WAIT_TIME_SECONDS:
            raise ConfigurationError(
                f"SQS wait_time_seconds option must be between 0 and {MAX_WAIT_TIME_SECONDS}."
            )

        if visibility_timeout is not None and (
            not _is_int(visibility_timeout) or not 0 <= visibility_timeout <= SQS_MAX_VISIBILITY
        ):
            raise ConfigurationError(
                f"SQS visibility_timeout option must be between 0 and {SQS_MAX_VISIBILITY}."
            )

        if handle_message_timeout is not None and not _is_positive(handle_message_timeout):
            raise ConfigurationError("SQS handle_message_timeout option must be a positive number of ms.")

        if authentication_error_timeout is None:
            authentication_error_timeout = DEFAULT_AUTH_ERROR_TIMEOUT_MS
        if not _is_non_negative(authentication_error_timeout):
            raise ConfigurationError("SQS authentication_error_timeout option must be a non-negative number of ms.")

        return cls(
            queue_url=queue_url,
            handler_mode=mode,
            batch_size=batch_size,
            wait_time_seconds=wait_time_seconds,
            visibility_timeout=visibility_timeout,
            handle_message_timeout=handle_message_timeout,
            terminate_visibility_timeout=bool(terminate_visibility_timeout),
            authentication_error_timeout=authentication_error_timeout,
            attribute_names=tuple(attribute_names or ()),
            message_attribute_names=tuple(message_attribute_names or ()),
        )


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_positive(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def _is_non_negative(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value >= 0


# ============================================================================
# SETTINGS (YAML + ENV)
# ============================================================================

CONFIG_DIR = os.path.join(os.path.dirname(__file__), "config")


def _parse_bool(value: str) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes", "on")


# env var -> (settings key, parser)
ENV_OVERRIDES = {
    "QUEUE_URL": ("queue_url", str),
    "AWS_REGION": ("region", str),
    "BATCH_SIZE": ("batch_size", int),
    "WAIT_TIME_SECONDS": ("wait_time_seconds", int),
    "VISIBILITY_TIMEOUT": ("visibility_timeout", int),
    "HANDLE_MESSAGE_TIMEOUT_MS": ("handle_message_timeout", float),
    "TERMINATE_VISIBILITY_TIMEOUT": ("terminate_visibility_timeout", _parse_bool),
    "AUTH_ERROR_TIMEOUT_MS": ("authentication_error_timeout", float),
    "LOG_LEVEL": ("log_level", str),
    "HANDLER_PATH": ("handler_path", str),
    "HANDLER_MODE": ("handler_mode", str),
}


def load_yaml_file(filepath: str) -> Dict[str, Any]:
    """
    Parse a single YAML file.
    Returns {} if the file doesn't exist (not an error).

    Raises:
        yaml.YAMLError if the file exists but is invalid YAML
        ConfigurationError if the document is not a mapping
    """
    if not os.path.exists(filepath):
        return {}
    with open(filepath, "r") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {filepath} must contain a mapping")
    return data


def load_env_vars(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Read consumer-related env vars, parsed into settings keys."""
    environ = os.environ if environ is None else environ
    out: Dict[str, Any] = {}
    for var, (key, parse) in ENV_OVERRIDES.items():
        raw = environ.get(var)
        if raw is None or raw == "":
            continue
        try:
            out[key] = parse(raw)
        except ValueError as e:
            raise ConfigurationError(f"Invalid value for {var}: {raw!r}") from e
    return out


def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge config dicts. Later configs override earlier ones.

    Example:
        merge_configs({"consumer": {"batch_size": 1}}, {"consumer": {"batch_size": 5}})
        # {"consumer": {"batch_size": 5}}
    """
    result: Dict[str, Any] = {}
    for cfg in configs:
        for key, value in (cfg or {}).items():
            if isinstance(value, dict) and isinstance(result.get(key), dict):
                result[key] = merge_configs(result[key], value)
            else:
                result[key] = value
    return result


def load_settings(path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Load runner settings.

    Priority (highest to lowest):
    1. Environment variables
    2. The YAML file at path, or config/<CONSUMER_CONFIG>.yaml (default: default.yaml)
    """
    environ = os.environ if environ is None else environ
    if path is None:
        name = environ.get("CONSUMER_CONFIG", "default")
        path = os.path.join(CONFIG_DIR, f"{name}.yaml")
    elif not os.path.exists(path):
        raise FileNotFoundError(f"Missing config file at {path}")

    file_settings = load_yaml_file(path)
    # The YAML nests consumer options under "consumer"; flatten for lookups
    flat = merge_configs(
        {k: v for k, v in file_settings.items() if k != "consumer"},
        file_settings.get("consumer") or {},
    )
    return merge_configs(flat, load_env_vars(environ))


def config_from_settings(settings: Dict[str, Any], handler: Any, mode: str = "single") -> ConsumerConfig:
    """Build a validated ConsumerConfig from a settings dict and a loaded handler."""
    mode = (mode or "single").strip().lower()
    if mode not in ("single", "batch"):
        raise ConfigurationError(f"Unsupported handler mode: {mode}")

    return ConsumerConfig.create(
        queue_url=settings.get("queue_url"),
        handle_message=handler if mode == "single" else None,
        handle_message_batch=handler if mode == "batch" else None,
        batch_size=settings.get("batch_size"),
        wait_time_seconds=settings.get("wait_time_seconds"),
        visibility_timeout=settings.get("visibility_timeout"),
        handle_message_timeout=settings.get("handle_message_timeout"),
        terminate_visibility_timeout=bool(settings.get("terminate_visibility_timeout", False)),
        authentication_error_timeout=settings.get("authentication_error_timeout"),
        attribute_names=settings.get("attribute_names"),
        message_attribute_names=settings.get("message_attribute_names"),
    )


__all__ = [
    "SingleMessageMode",
    "BatchMode",
    "HandlerMode",
    "ConsumerConfig",
    "load_yaml_file",
    "load_env_vars",
    "merge_configs",
    "load_settings",
    "config_from_settings",
]
