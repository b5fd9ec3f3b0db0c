"""Tests for the runner entrypoint and the example handlers."""
from __future__ import annotations

import signal

import pytest

from conftest import QUEUE_URL, make_messages, make_raw
from service.handlers import JsonHandler, log_batch, log_message
from sqs_consumer import runner
from sqs_consumer.config import ENV_OVERRIDES
from sqs_consumer.message import Message


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in list(ENV_OVERRIDES) + ["CONSUMER_CONFIG"]:
        monkeypatch.delenv(var, raising=False)


# ----------------------------------------------------------------------
# load_handler
# ----------------------------------------------------------------------

def test_load_handler_function():
    assert runner.load_handler("service.handlers.log_message") is log_message


def test_load_handler_instantiates_classes():
    handler = runner.load_handler("service.handlers.JsonHandler")
    assert isinstance(handler, JsonHandler)


@pytest.mark.parametrize("path", ["", "nodots", "service.handlers.missing", "sqs_consumer.constants.MAX_BATCH_SIZE"])
def test_load_handler_rejects_bad_paths(path):
    with pytest.raises(RuntimeError):
        runner.load_handler(path)


# ----------------------------------------------------------------------
# build_consumer
# ----------------------------------------------------------------------

def test_build_consumer_from_cli_args():
    client = object()
    args = runner.parse_args([
        "--queue-url", QUEUE_URL,
        "--handler", "service.handlers.log_batch",
        "--mode", "batch",
        "--log-level", "DEBUG",
    ])

    consumer = runner.build_consumer(args, sqs=client)

    assert consumer.config.queue_url == QUEUE_URL
    assert consumer.config.is_batch
    assert consumer.config.handler_mode.handler is log_batch
    assert consumer.config.attribute_names == ("ApproximateReceiveCount", "SentTimestamp")
    assert consumer.transport.sqs is client
    assert consumer.transport.region == "eu-west-1"
    assert not consumer.is_running


def test_build_consumer_reads_environment(monkeypatch):
    monkeypatch.setenv("QUEUE_URL", QUEUE_URL)
    monkeypatch.setenv("BATCH_SIZE", "7")
    monkeypatch.setenv("AWS_REGION", "us-east-1")

    consumer = runner.build_consumer(runner.parse_args([]), sqs=object())

    assert consumer.config.batch_size == 7
    assert not consumer.config.is_batch
    assert consumer.config.handler_mode.handler is log_message
    assert consumer.transport.region == "us-east-1"


def test_build_consumer_requires_queue_url():
    with pytest.raises(RuntimeError, match="Missing queue URL"):
        runner.build_consumer(runner.parse_args([]), sqs=object())


def test_build_consumer_rejects_unknown_mode_from_env(monkeypatch):
    monkeypatch.setenv("QUEUE_URL", QUEUE_URL)
    monkeypatch.setenv("HANDLER_MODE", "stream")

    with pytest.raises(ValueError, match="Unsupported handler mode"):
        runner.build_consumer(runner.parse_args([]), sqs=object())


# ----------------------------------------------------------------------
# main
# ----------------------------------------------------------------------

class FakeConsumer:
    def __init__(self):
        self.started = False
        self.stopped = False
        self.joins = 0

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=None):
        self.joins += 1
        return self.joins > 2


def test_main_runs_until_loop_exits(monkeypatch):
    fake = FakeConsumer()
    handlers = {}
    monkeypatch.setattr(runner, "build_consumer", lambda args: fake)
    monkeypatch.setattr(runner.signal, "signal", lambda sig, handler: handlers.__setitem__(sig, handler))

    assert runner.main(["--queue-url", QUEUE_URL]) == 0
    assert fake.started
    assert fake.joins == 3
    assert set(handlers) == {signal.SIGINT, signal.SIGTERM}

    handlers[signal.SIGTERM](signal.SIGTERM, None)
    assert fake.stopped


# ----------------------------------------------------------------------
# Example handlers
# ----------------------------------------------------------------------

def test_example_handlers_accept_messages():
    messages = make_messages(2)
    log_message(messages[0])
    log_batch(messages)


def test_json_handler_counts_dict_payloads():
    handler = JsonHandler()
    handler(Message.from_raw(make_raw(1, {"order_id": 1})))
    assert handler.handled == 1


def test_json_handler_rejects_non_objects():
    handler = JsonHandler()
    with pytest.raises(ValueError, match="payload not a dict"):
        handler(Message.from_raw(make_raw(1, [1, 2, 3])))
    assert handler.handled == 0
