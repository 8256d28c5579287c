"""Tests for process startup, client wiring and signal handling."""

from __future__ import annotations

import signal
import threading
import time
from unittest.mock import MagicMock, patch

from botocore.exceptions import NoRegionError

import dispatch_consumer.aws_clients as clients
import dispatch_consumer.main as main_mod
from dispatch_consumer.config import Settings
from dispatch_consumer.envelope import EnvelopeFormat

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/orders"


def _wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_missing_queue_url_exits_with_config_error(monkeypatch):
    monkeypatch.delenv("SQS_QUEUE_URL", raising=False)
    start = MagicMock()
    monkeypatch.setattr(main_mod, "start_health_server", start)

    assert main_mod.main() == main_mod.EXIT_CONFIG_ERROR
    start.assert_not_called()


def test_build_consumer_wires_clients():
    settings = Settings(
        queue_url=QUEUE_URL,
        region="eu-west-1",
        registry_table="lambdas",
        integrity_function="validator-fn",
        envelope_format=EnvelopeFormat.SNS,
        invoke_read_timeout=12,
        selector_seed=3,
    )
    clients._reset_clients()
    try:
        with patch("dispatch_consumer.aws_clients.boto3") as mock_boto3:
            mock_boto3.client.side_effect = lambda service, **kwargs: MagicMock(name=service)
            consumer = main_mod.build_consumer(settings)

        services = [c.args[0] for c in mock_boto3.client.call_args_list]
        assert sorted(services) == ["dynamodb", "lambda", "sqs"]
        for c in mock_boto3.client.call_args_list:
            assert c.kwargs["region_name"] == "eu-west-1"
        lambda_call = next(c for c in mock_boto3.client.call_args_list if c.args[0] == "lambda")
        assert lambda_call.kwargs["config"].read_timeout == 12

        assert consumer.queue.queue_url == QUEUE_URL
        assert consumer.registry.table_name == "lambdas"
        assert consumer.validator.function_name == "validator-fn"
        assert consumer.envelope_format is EnvelopeFormat.SNS
    finally:
        clients._reset_clients()


def test_main_runs_consumer_and_handles_signals(monkeypatch):
    monkeypatch.setenv("SQS_QUEUE_URL", QUEUE_URL)
    monkeypatch.setenv("HEALTH_PORT", "18080")
    health = MagicMock()
    consumer = MagicMock()
    handlers = {}
    monkeypatch.setattr(main_mod, "start_health_server", MagicMock(return_value=health))
    monkeypatch.setattr(main_mod, "build_consumer", MagicMock(return_value=consumer))
    monkeypatch.setattr(main_mod.signal, "signal", lambda signum, handler: handlers.__setitem__(signum, handler))

    assert main_mod.main() == main_mod.EXIT_OK

    main_mod.start_health_server.assert_called_once_with(18080, "dispatch-consumer")
    stop_event = consumer.run.call_args.args[0]
    assert isinstance(stop_event, threading.Event)
    assert set(handlers) == {signal.SIGINT, signal.SIGTERM}

    handlers[signal.SIGTERM](signal.SIGTERM, None)
    assert stop_event.is_set()
    assert _wait_for(lambda: health.stop.called)


def test_health_bind_failure_is_fatal(monkeypatch):
    monkeypatch.setenv("SQS_QUEUE_URL", QUEUE_URL)
    monkeypatch.setattr(main_mod, "start_health_server", MagicMock(side_effect=OSError("address in use")))
    build = MagicMock()
    monkeypatch.setattr(main_mod, "build_consumer", build)

    assert main_mod.main() == main_mod.EXIT_STARTUP_FAILURE
    build.assert_not_called()


def test_client_construction_failure_is_fatal(monkeypatch):
    monkeypatch.setenv("SQS_QUEUE_URL", QUEUE_URL)
    health = MagicMock()
    monkeypatch.setattr(main_mod, "start_health_server", MagicMock(return_value=health))
    monkeypatch.setattr(main_mod, "build_consumer", MagicMock(side_effect=NoRegionError()))

    assert main_mod.main() == main_mod.EXIT_STARTUP_FAILURE
    health.stop.assert_called_once()
