"""main.py — Process entrypoint: configuration, clients, health server, signals.

Startup order:
    1. Load settings from the environment (exit 2 if SQS_QUEUE_URL is missing
       or any value is invalid).
    2. Start the liveness endpoint.
    3. Build the SQS, DynamoDB and Lambda clients (exit 1 on failure).
    4. Consume until SIGINT/SIGTERM, then stop the health server.
"""

from __future__ import annotations

import logging
import signal
import sys
import threading

from botocore.exceptions import BotoCoreError

from dispatch_consumer import aws_clients
from dispatch_consumer.config import Settings, logger
from dispatch_consumer.consumer import DispatchConsumer
from dispatch_consumer.errors import ConfigError
from dispatch_consumer.health import HealthServer, start_health_server
from dispatch_consumer.invoker import IntegrityValidator, LambdaInvoker, WorkerInvoker
from dispatch_consumer.queue_gateway import SqsQueueGateway
from dispatch_consumer.registry import WorkerRegistry
from dispatch_consumer.selection import WorkerSelector

__all__ = ["build_consumer", "main"]

HEALTH_SHUTDOWN_TIMEOUT_SECONDS = 5.0

EXIT_OK = 0
EXIT_STARTUP_FAILURE = 1
EXIT_CONFIG_ERROR = 2


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        stream=sys.stderr,
    )
    logger.setLevel(level)


def build_consumer(settings: Settings) -> DispatchConsumer:
    """Wire boto3 clients into the pipeline collaborators."""
    lambda_invoker = LambdaInvoker(
        aws_clients._get_lambda(
            settings.region,
            connect_timeout=settings.invoke_connect_timeout,
            read_timeout=settings.invoke_read_timeout,
        )
    )
    return DispatchConsumer(
        queue=SqsQueueGateway(aws_clients._get_sqs(settings.region), settings.queue_url),
        validator=IntegrityValidator(lambda_invoker, settings.integrity_function),
        registry=WorkerRegistry(aws_clients._get_ddb(settings.region), settings.registry_table),
        selector=WorkerSelector.seeded(settings.selector_seed),
        invoker=WorkerInvoker(lambda_invoker),
        envelope_format=settings.envelope_format,
        max_messages=settings.max_messages,
        wait_seconds=settings.wait_seconds,
        visibility_timeout=settings.visibility_timeout,
        receive_error_backoff=settings.receive_error_backoff,
    )


def _install_signal_handlers(stop_event: threading.Event, health_server: HealthServer) -> None:
    def _handle(signum, _frame) -> None:
        logger.info("[INFO] Received shutdown signal (%s)", signal.Signals(signum).name)
        # Health shutdown blocks on its serving thread; keep it off the signal frame.
        threading.Thread(
            target=health_server.stop,
            args=(HEALTH_SHUTDOWN_TIMEOUT_SECONDS,),
            name="health-shutdown",
            daemon=True,
        ).start()
        stop_event.set()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def main() -> int:
    try:
        settings = Settings.from_env()
    except ConfigError as exc:
        logging.basicConfig(level=logging.INFO)
        logger.error("[ERROR] %s", exc)
        return EXIT_CONFIG_ERROR

    _configure_logging(settings.log_level)
    logger.info(
        "[START] dispatch-consumer: queue=%s region=%s registry=%s envelope=%s",
        settings.queue_url, settings.region, settings.registry_table, settings.envelope_format.value,
    )

    try:
        health_server = start_health_server(settings.health_port, settings.service_name)
    except OSError as exc:
        logger.error("[ERROR] Health server failed on port %d: %s", settings.health_port, exc)
        return EXIT_STARTUP_FAILURE

    try:
        consumer = build_consumer(settings)
    except (BotoCoreError, ValueError) as exc:
        logger.error("[ERROR] Failed to create AWS clients: %s", exc)
        health_server.stop(HEALTH_SHUTDOWN_TIMEOUT_SECONDS)
        return EXIT_STARTUP_FAILURE

    stop_event = threading.Event()
    _install_signal_handlers(stop_event, health_server)
    consumer.run(stop_event)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
