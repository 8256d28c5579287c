"""config.py — Environment configuration, receive-loop constants, logging.

Environment variables:
    SQS_QUEUE_URL                  required
    AWS_REGION                     default: us-east-1
    HEALTH_PORT                    default: 8080
    SERVICE_NAME                   default: dispatch-consumer
    WORKER_REGISTRY_TABLE          default: worker-registry
    INTEGRITY_FUNCTION_NAME        default: integrity-validator
    ENVELOPE_FORMAT                default: direct (direct | sns)
    RECEIVE_MAX_MESSAGES           default: 10
    RECEIVE_WAIT_SECONDS           default: 20
    VISIBILITY_TIMEOUT_SECONDS     default: 30
    RECEIVE_ERROR_BACKOFF_SECONDS  default: 5
    INVOKE_CONNECT_TIMEOUT_SECONDS default: 2
    INVOKE_READ_TIMEOUT_SECONDS    default: 12
    SELECTOR_SEED                  default: unset (system-seeded)
    LOG_LEVEL                      default: INFO
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dispatch_consumer.envelope import EnvelopeFormat
from dispatch_consumer.errors import ConfigError

__all__ = [
    "DEFAULT_HEALTH_PORT",
    "DEFAULT_REGION",
    "DEFAULT_SERVICE_NAME",
    "SQS_MAX_RECEIVE_MESSAGES",
    "SQS_MAX_VISIBILITY_TIMEOUT_SECONDS",
    "SQS_MAX_WAIT_SECONDS",
    "Settings",
    "logger",
]

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_REGION = "us-east-1"
DEFAULT_HEALTH_PORT = 8080
DEFAULT_SERVICE_NAME = "dispatch-consumer"
DEFAULT_REGISTRY_TABLE = "worker-registry"
DEFAULT_INTEGRITY_FUNCTION = "integrity-validator"

DEFAULT_RECEIVE_MAX_MESSAGES = 10
DEFAULT_RECEIVE_WAIT_SECONDS = 20
DEFAULT_VISIBILITY_TIMEOUT_SECONDS = 30
DEFAULT_RECEIVE_ERROR_BACKOFF_SECONDS = 5
DEFAULT_INVOKE_CONNECT_TIMEOUT_SECONDS = 2
DEFAULT_INVOKE_READ_TIMEOUT_SECONDS = 12

# SQS service limits
SQS_MAX_RECEIVE_MESSAGES = 10
SQS_MAX_WAIT_SECONDS = 20
SQS_MAX_VISIBILITY_TIMEOUT_SECONDS = 43200

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logger = logging.getLogger("dispatch_consumer")


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


def _int_env(
    environ: Mapping[str, str],
    name: str,
    default: int,
    *,
    minimum: int = 0,
    maximum: Optional[int] = None,
) -> int:
    raw = str(environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum or (maximum is not None and value > maximum):
        bound = f"{minimum}..{maximum}" if maximum is not None else f">= {minimum}"
        raise ConfigError(f"{name} must be in range {bound}, got {value}")
    return value


def _str_env(environ: Mapping[str, str], name: str, default: str) -> str:
    return str(environ.get(name) or "").strip() or default


@dataclass(frozen=True)
class Settings:
    queue_url: str
    region: str = DEFAULT_REGION
    health_port: int = DEFAULT_HEALTH_PORT
    service_name: str = DEFAULT_SERVICE_NAME
    registry_table: str = DEFAULT_REGISTRY_TABLE
    integrity_function: str = DEFAULT_INTEGRITY_FUNCTION
    envelope_format: EnvelopeFormat = EnvelopeFormat.DIRECT
    max_messages: int = DEFAULT_RECEIVE_MAX_MESSAGES
    wait_seconds: int = DEFAULT_RECEIVE_WAIT_SECONDS
    visibility_timeout: int = DEFAULT_VISIBILITY_TIMEOUT_SECONDS
    receive_error_backoff: int = DEFAULT_RECEIVE_ERROR_BACKOFF_SECONDS
    invoke_connect_timeout: int = DEFAULT_INVOKE_CONNECT_TIMEOUT_SECONDS
    invoke_read_timeout: int = DEFAULT_INVOKE_READ_TIMEOUT_SECONDS
    selector_seed: Optional[int] = None
    log_level: str = "INFO"

    @property
    def invoke_budget_seconds(self) -> int:
        """Worst-case wall time of the two synchronous invokes per message."""
        return 2 * (self.invoke_connect_timeout + self.invoke_read_timeout)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from the process environment.

        Raises ConfigError when SQS_QUEUE_URL is absent or any value is
        malformed, so the process can refuse to start.
        """
        env = os.environ if environ is None else environ

        queue_url = str(env.get("SQS_QUEUE_URL") or "").strip()
        if not queue_url:
            raise ConfigError("SQS_QUEUE_URL environment variable is required")

        raw_format = _str_env(env, "ENVELOPE_FORMAT", EnvelopeFormat.DIRECT.value).lower()
        try:
            envelope_format = EnvelopeFormat(raw_format)
        except ValueError:
            allowed = ", ".join(f.value for f in EnvelopeFormat)
            raise ConfigError(f"ENVELOPE_FORMAT must be one of: {allowed}; got {raw_format!r}") from None

        seed_raw = str(env.get("SELECTOR_SEED") or "").strip()
        selector_seed: Optional[int] = None
        if seed_raw:
            try:
                selector_seed = int(seed_raw)
            except ValueError:
                raise ConfigError(f"SELECTOR_SEED must be an integer, got {seed_raw!r}") from None

        log_level = _str_env(env, "LOG_LEVEL", "INFO").upper()
        if not isinstance(logging.getLevelName(log_level), int):
            raise ConfigError(f"LOG_LEVEL is not a logging level name: {log_level!r}")

        settings = cls(
            queue_url=queue_url,
            region=_str_env(env, "AWS_REGION", DEFAULT_REGION),
            health_port=_int_env(env, "HEALTH_PORT", DEFAULT_HEALTH_PORT, minimum=1, maximum=65535),
            service_name=_str_env(env, "SERVICE_NAME", DEFAULT_SERVICE_NAME),
            registry_table=_str_env(env, "WORKER_REGISTRY_TABLE", DEFAULT_REGISTRY_TABLE),
            integrity_function=_str_env(env, "INTEGRITY_FUNCTION_NAME", DEFAULT_INTEGRITY_FUNCTION),
            envelope_format=envelope_format,
            max_messages=_int_env(
                env, "RECEIVE_MAX_MESSAGES", DEFAULT_RECEIVE_MAX_MESSAGES,
                minimum=1, maximum=SQS_MAX_RECEIVE_MESSAGES,
            ),
            wait_seconds=_int_env(
                env, "RECEIVE_WAIT_SECONDS", DEFAULT_RECEIVE_WAIT_SECONDS,
                maximum=SQS_MAX_WAIT_SECONDS,
            ),
            visibility_timeout=_int_env(
                env, "VISIBILITY_TIMEOUT_SECONDS", DEFAULT_VISIBILITY_TIMEOUT_SECONDS,
                maximum=SQS_MAX_VISIBILITY_TIMEOUT_SECONDS,
            ),
            receive_error_backoff=_int_env(
                env, "RECEIVE_ERROR_BACKOFF_SECONDS", DEFAULT_RECEIVE_ERROR_BACKOFF_SECONDS,
            ),
            invoke_connect_timeout=_int_env(
                env, "INVOKE_CONNECT_TIMEOUT_SECONDS", DEFAULT_INVOKE_CONNECT_TIMEOUT_SECONDS, minimum=1,
            ),
            invoke_read_timeout=_int_env(
                env, "INVOKE_READ_TIMEOUT_SECONDS", DEFAULT_INVOKE_READ_TIMEOUT_SECONDS, minimum=1,
            ),
            selector_seed=selector_seed,
            log_level=log_level,
        )

        # Validator call plus worker call must both fit inside one visibility window.
        if settings.invoke_budget_seconds >= settings.visibility_timeout:
            raise ConfigError(
                "2 * (INVOKE_CONNECT_TIMEOUT_SECONDS + INVOKE_READ_TIMEOUT_SECONDS) = "
                f"{settings.invoke_budget_seconds}s must be below "
                f"VISIBILITY_TIMEOUT_SECONDS = {settings.visibility_timeout}s"
            )
        return settings
