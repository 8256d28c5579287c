"""consumer.py — SQS consume loop and per-message dispatch pipeline.

Flow per message:
    SQS receive
    -> decode body (direct or SNS envelope)
    -> integrity validator Lambda (statusCode 200 required)
    -> registry scan, keep healthy workers
    -> uniform random pick
    -> invoke selected worker Lambda
    -> delete message

Disposition on failure:
    decode failure          delete now (poison message, never retried)
    integrity rejection     leave in queue, redelivered after visibility timeout
    no healthy worker       leave in queue
    dispatch failure        leave in queue
    delete failure          outcome ack_failed; redelivery may reprocess

Messages of one batch are processed sequentially in receipt order. The stop
signal is checked between poll cycles only.
"""

from __future__ import annotations

import enum
import threading
from typing import Any, Callable, List, Optional

from dispatch_consumer.config import (
    DEFAULT_RECEIVE_ERROR_BACKOFF_SECONDS,
    DEFAULT_RECEIVE_MAX_MESSAGES,
    DEFAULT_RECEIVE_WAIT_SECONDS,
    DEFAULT_VISIBILITY_TIMEOUT_SECONDS,
    logger,
)
from dispatch_consumer.envelope import EnvelopeFormat, decode_body
from dispatch_consumer.errors import (
    AcknowledgeFailed,
    DispatchFailed,
    IntegrityRejected,
    MalformedMessage,
    NoHealthyWorker,
    TransientReceiveError,
)
from dispatch_consumer.invoker import IntegrityValidator, WorkerInvoker
from dispatch_consumer.queue_gateway import QueueMessage, SqsQueueGateway
from dispatch_consumer.registry import WorkerDescriptor, WorkerRegistry
from dispatch_consumer.selection import WorkerSelector
from dispatch_consumer.serialization import _emit_structured_observability, _monotonic_ms

__all__ = ["DispatchConsumer", "MessageOutcome"]


class MessageOutcome(str, enum.Enum):
    ACKNOWLEDGED = "acknowledged"
    DROPPED = "dropped"
    DEFERRED = "deferred"
    # Handled, but the delete did not happen; the queue will redeliver.
    ACK_FAILED = "ack_failed"


class DispatchConsumer:
    """Owns the poll loop and the acknowledge-or-defer decision per message."""

    def __init__(
        self,
        *,
        queue: SqsQueueGateway,
        validator: IntegrityValidator,
        registry: WorkerRegistry,
        selector: WorkerSelector,
        invoker: WorkerInvoker,
        envelope_format: EnvelopeFormat = EnvelopeFormat.DIRECT,
        max_messages: int = DEFAULT_RECEIVE_MAX_MESSAGES,
        wait_seconds: int = DEFAULT_RECEIVE_WAIT_SECONDS,
        visibility_timeout: int = DEFAULT_VISIBILITY_TIMEOUT_SECONDS,
        receive_error_backoff: float = DEFAULT_RECEIVE_ERROR_BACKOFF_SECONDS,
        sleep: Optional[Callable[[float], Any]] = None,
    ) -> None:
        self.queue = queue
        self.validator = validator
        self.registry = registry
        self.selector = selector
        self.invoker = invoker
        self.envelope_format = envelope_format
        self.max_messages = max_messages
        self.wait_seconds = wait_seconds
        self.visibility_timeout = visibility_timeout
        self.receive_error_backoff = receive_error_backoff
        self._stop_event = threading.Event()
        self._sleep = sleep or self._interruptible_sleep

    # -----------------------------------------------------------------------
    # Poll loop
    # -----------------------------------------------------------------------

    def _interruptible_sleep(self, seconds: float) -> None:
        self._stop_event.wait(seconds)

    def run(self, stop_event: Optional[threading.Event] = None) -> None:
        """Poll until ``stop_event`` is set; the in-flight cycle always completes."""
        if stop_event is not None:
            self._stop_event = stop_event
        logger.info("[START] Starting SQS consumer on %s", self.queue.queue_url)
        while not self._stop_event.is_set():
            self.poll_once()
        logger.info("[END] Shutting down consumer")

    def poll_once(self) -> List[MessageOutcome]:
        """One receive call plus sequential processing of whatever it returned."""
        try:
            messages = self.queue.receive(
                max_messages=self.max_messages,
                wait_seconds=self.wait_seconds,
                visibility_timeout=self.visibility_timeout,
            )
        except TransientReceiveError as exc:
            logger.error("[ERROR] Error receiving messages: %s", exc)
            self._sleep(self.receive_error_backoff)
            return []

        if messages:
            logger.info("[INFO] Received %d message(s)", len(messages))
        return [self.process_message(message) for message in messages]

    # -----------------------------------------------------------------------
    # Pipeline
    # -----------------------------------------------------------------------

    def process_message(self, message: QueueMessage) -> MessageOutcome:
        """Carry one delivery through the pipeline and decide its fate."""
        started = _monotonic_ms()
        worker: Optional[WorkerDescriptor] = None
        error_code = ""
        logger.info(
            "[INFO] Processing message %s (receive count %d)",
            message.message_id, message.receive_count,
        )

        try:
            try:
                payload = decode_body(message.body, self.envelope_format)
            except MalformedMessage as exc:
                logger.warning("[WARNING] Dropping malformed message %s: %s", message.message_id, exc)
                error_code = exc.error_code
                outcome = MessageOutcome.DROPPED
            else:
                worker = self._dispatch(payload)
                outcome = MessageOutcome.ACKNOWLEDGED
            if not self._acknowledge(message):
                error_code = AcknowledgeFailed.error_code
                outcome = MessageOutcome.ACK_FAILED
        except (IntegrityRejected, NoHealthyWorker, DispatchFailed) as exc:
            logger.warning(
                "[WARNING] Leaving message %s for redelivery: %s", message.message_id, exc,
            )
            error_code = exc.error_code
            outcome = MessageOutcome.DEFERRED
        except Exception as exc:
            logger.exception(
                "[ERROR] Unexpected failure processing message %s: %s", message.message_id, exc,
            )
            error_code = "unexpected_error"
            outcome = MessageOutcome.DEFERRED

        _emit_structured_observability(
            event="message_processed",
            message_id=message.message_id,
            outcome=outcome.value,
            worker_id=worker.identity if worker else None,
            latency_ms=_monotonic_ms() - started,
            error_code=error_code,
            extra={"receive_count": message.receive_count},
        )
        return outcome

    def _dispatch(self, payload: Any) -> WorkerDescriptor:
        """Integrity gate, health filter, selection and invoke; returns the chosen worker."""
        self.validator.validate(payload)
        healthy = self.registry.healthy_workers()
        worker = self.selector.select(healthy)
        result = self.invoker.dispatch(worker, payload)
        logger.info(
            "[SUCCESS] Worker %s accepted message (status %d)",
            worker.label, result.status_code,
        )
        return worker

    def _acknowledge(self, message: QueueMessage) -> bool:
        if not message.receipt_handle:
            logger.error(
                "[ERROR] Message %s has no receipt handle, cannot delete", message.message_id,
            )
            return False
        try:
            self.queue.delete(message.receipt_handle)
        except AcknowledgeFailed as exc:
            logger.error("[ERROR] Error deleting message %s: %s", message.message_id, exc)
            return False
        logger.info("[INFO] Successfully deleted message: %s", message.message_id)
        return True
