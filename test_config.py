"""Tests for ConsumerConfig validation and the YAML/env settings loader."""
from __future__ import annotations

import pytest

from conftest import QUEUE_URL
from sqs_consumer.config import (
    BatchMode,
    ConsumerConfig,
    SingleMessageMode,
    config_from_settings,
    load_env_vars,
    load_settings,
    merge_configs,
)
from sqs_consumer.errors import ConfigurationError


def handler(message):
    return None


@pytest.mark.parametrize("batch_size", range(1, 11))
def test_batch_size_in_range_is_accepted(batch_size):
    cfg = ConsumerConfig.create(QUEUE_URL, handle_message=handler, batch_size=batch_size)
    assert cfg.batch_size == batch_size


@pytest.mark.parametrize("batch_size", [0, 11, -1, 100, 2.5, True, "5"])
def test_batch_size_out_of_range_is_rejected(batch_size):
    with pytest.raises(ConfigurationError, match="batch_size option must be between 1 and 10"):
        ConsumerConfig.create(QUEUE_URL, handle_message=handler, batch_size=batch_size)


def test_missing_handler_is_rejected():
    with pytest.raises(ConfigurationError, match=r"handle_message or handle_message_batch"):
        ConsumerConfig.create(QUEUE_URL)


def test_both_handlers_are_rejected():
    with pytest.raises(ConfigurationError, match="mutually exclusive"):
        ConsumerConfig.create(QUEUE_URL, handle_message=handler, handle_message_batch=handler)


def test_missing_queue_url_is_rejected():
    with pytest.raises(ConfigurationError, match=r"\[queue_url\]"):
        ConsumerConfig.create(None, handle_message=handler)


def test_non_callable_handler_is_rejected():
    with pytest.raises(ConfigurationError, match="callable"):
        ConsumerConfig.create(QUEUE_URL, handle_message="not a function")


def test_configuration_error_is_a_value_error():
    with pytest.raises(ValueError):
        ConsumerConfig.create(QUEUE_URL, handle_message=handler, batch_size=0)


def test_defaults():
    cfg = ConsumerConfig.create(QUEUE_URL, handle_message=handler)
    assert cfg.batch_size == 1
    assert cfg.wait_time_seconds == 20
    assert cfg.visibility_timeout is None
    assert cfg.handle_message_timeout is None
    assert cfg.terminate_visibility_timeout is False
    assert cfg.authentication_error_timeout == 10_000
    assert cfg.attribute_names == ()
    assert cfg.message_attribute_names == ()


def test_handler_mode_is_a_tagged_variant():
    single = ConsumerConfig.create(QUEUE_URL, handle_message=handler)
    batch = ConsumerConfig.create(QUEUE_URL, handle_message_batch=handler)

    assert isinstance(single.handler_mode, SingleMessageMode)
    assert single.handler_mode.handler is handler
    assert single.is_batch is False
    assert isinstance(batch.handler_mode, BatchMode)
    assert batch.is_batch is True


def test_attribute_filters_are_kept_verbatim():
    cfg = ConsumerConfig.create(
        QUEUE_URL,
        handle_message=handler,
        attribute_names=["All"],
        message_attribute_names=["trace_id", "tenant"],
    )
    assert cfg.attribute_names == ("All",)
    assert cfg.message_attribute_names == ("trace_id", "tenant")


@pytest.mark.parametrize("option,value", [
    ("wait_time_seconds", 21),
    ("wait_time_seconds", -1),
    ("visibility_timeout", 43_201),
    ("visibility_timeout", -5),
    ("handle_message_timeout", 0),
    ("handle_message_timeout", -10),
    ("authentication_error_timeout", -1),
])
def test_out_of_range_options_are_rejected(option, value):
    with pytest.raises(ConfigurationError):
        ConsumerConfig.create(QUEUE_URL, handle_message=handler, **{option: value})


def test_config_is_immutable():
    cfg = ConsumerConfig.create(QUEUE_URL, handle_message=handler)
    with pytest.raises(Exception):
        cfg.batch_size = 5


# ----------------------------------------------------------------------
# Settings loader
# ----------------------------------------------------------------------

def test_merge_configs_is_deep_and_later_wins():
    base = {"consumer": {"batch_size": 1, "wait_time_seconds": 20}, "region": "eu-west-1"}
    override = {"consumer": {"batch_size": 5}}
    assert merge_configs(base, override) == {
        "consumer": {"batch_size": 5, "wait_time_seconds": 20},
        "region": "eu-west-1",
    }


def test_load_env_vars_parses_types():
    env = {
        "QUEUE_URL": QUEUE_URL,
        "BATCH_SIZE": "4",
        "TERMINATE_VISIBILITY_TIMEOUT": "true",
        "HANDLE_MESSAGE_TIMEOUT_MS": "250",
        "UNRELATED": "x",
    }
    assert load_env_vars(env) == {
        "queue_url": QUEUE_URL,
        "batch_size": 4,
        "terminate_visibility_timeout": True,
        "handle_message_timeout": 250.0,
    }


def test_load_env_vars_rejects_bad_numbers():
    with pytest.raises(ConfigurationError, match="BATCH_SIZE"):
        load_env_vars({"BATCH_SIZE": "ten"})


def test_load_settings_env_overrides_yaml(tmp_path):
    path = tmp_path / "orders.yaml"
    path.write_text(
        "region: us-east-1\n"
        "consumer:\n"
        "  queue_url: https://example/q\n"
        "  batch_size: 3\n"
        "  wait_time_seconds: 5\n"
    )
    settings = load_settings(str(path), environ={"BATCH_SIZE": "7"})
    assert settings["region"] == "us-east-1"
    assert settings["queue_url"] == "https://example/q"
    assert settings["batch_size"] == 7
    assert settings["wait_time_seconds"] == 5


def test_load_settings_uses_packaged_default():
    settings = load_settings(environ={})
    assert settings["batch_size"] == 1
    assert settings["wait_time_seconds"] == 20
    assert settings["authentication_error_timeout"] == 10000
    assert settings["handler_mode"] == "single"
    assert settings["queue_url"] is None


def test_load_settings_unknown_named_config_is_empty():
    assert load_settings(environ={"CONSUMER_CONFIG": "does-not-exist"}) == {}


def test_load_settings_missing_explicit_path(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(str(tmp_path / "nope.yaml"), environ={})


def test_config_from_settings_batch_mode():
    settings = {"queue_url": QUEUE_URL, "batch_size": 10, "terminate_visibility_timeout": True}
    cfg = config_from_settings(settings, handler, "batch")
    assert cfg.is_batch
    assert cfg.batch_size == 10
    assert cfg.terminate_visibility_timeout is True


def test_config_from_settings_rejects_unknown_mode():
    with pytest.raises(ConfigurationError, match="Unsupported handler mode"):
        config_from_settings({"queue_url": QUEUE_URL}, handler, "fanout")


@pytest.mark.parametrize("value", [0, 0.0, 250.5])
def test_auth_backoff_may_be_zero_or_fractional(value):
    cfg = ConsumerConfig.create(QUEUE_URL, handle_message=handler, authentication_error_timeout=value)
    assert cfg.authentication_error_timeout == value


def test_auth_backoff_of_zero_from_environment():
    settings = load_env_vars({"QUEUE_URL": QUEUE_URL, "AUTH_ERROR_TIMEOUT_MS": "0"})
    cfg = config_from_settings(settings, handler)
    assert cfg.authentication_error_timeout == 0.0
