"""errors.py — Failure taxonomy for the dispatch pipeline.

Each pipeline stage raises exactly one of these; the consumer maps the type
to its disposition (drop, defer for redelivery, or log only).
"""

from __future__ import annotations

__all__ = [
    "AcknowledgeFailed",
    "ConfigError",
    "DispatchConsumerError",
    "DispatchFailed",
    "IntegrityRejected",
    "InvocationError",
    "MalformedMessage",
    "NoHealthyWorker",
    "TransientReceiveError",
]


class DispatchConsumerError(Exception):
    """Base class for every error raised by this package."""

    error_code = "dispatch_consumer_error"


class ConfigError(DispatchConsumerError, ValueError):
    """Raised when process configuration is missing or invalid."""

    error_code = "config_error"


class TransientReceiveError(DispatchConsumerError):
    """Raised when the queue receive call fails."""

    error_code = "receive_failed"


class MalformedMessage(DispatchConsumerError):
    """Raised when a message body is absent or cannot be decoded."""

    error_code = "malformed_message"


class InvocationError(DispatchConsumerError):
    """Raised when a Lambda invoke fails at transport or function level."""

    error_code = "invocation_error"

    def __init__(self, message: str, *, function_error: str = "", payload: bytes = b"") -> None:
        super().__init__(message)
        self.function_error = function_error
        self.payload = payload


class IntegrityRejected(DispatchConsumerError):
    """Raised when the validator rejects a payload or cannot be reached."""

    error_code = "integrity_rejected"


class NoHealthyWorker(DispatchConsumerError):
    """Raised when the registry yields no healthy worker."""

    error_code = "no_healthy_worker"


class DispatchFailed(DispatchConsumerError):
    """Raised when the selected worker invoke fails."""

    error_code = "dispatch_failed"


class AcknowledgeFailed(DispatchConsumerError):
    """Raised when deleting a message by receipt handle fails."""

    error_code = "acknowledge_failed"
