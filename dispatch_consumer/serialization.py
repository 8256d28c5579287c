"""serialization.py — DynamoDB deserialization, timestamps, structured observability."""

from __future__ import annotations

import datetime as dt
import json
import time
from decimal import Decimal
from typing import Any, Dict, Optional

from boto3.dynamodb.types import TypeDeserializer

from dispatch_consumer.config import logger

__all__ = [
    "_deserialize",
    "_emit_structured_observability",
    "_monotonic_ms",
    "_now_z",
]

# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

_DESER = TypeDeserializer()


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == int(value) else float(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, set):
        return {_plain(v) for v in value}
    return value


def _deserialize(item: Dict[str, Any]) -> Dict[str, Any]:
    """Deserialize a DynamoDB item to a plain Python dict."""
    return {k: _plain(_DESER.deserialize(v)) for k, v in item.items()}


def _now_z() -> str:
    """Current UTC timestamp in ISO 8601 format with Z suffix."""
    return dt.datetime.now(dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


# ---------------------------------------------------------------------------
# Observability
# ---------------------------------------------------------------------------


def _emit_structured_observability(
    *,
    event: str,
    message_id: Optional[str] = None,
    outcome: Optional[str] = None,
    worker_id: Optional[str] = None,
    latency_ms: Optional[int] = None,
    error_code: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    payload: Dict[str, Any] = {
        "timestamp": _now_z(),
        "component": "dispatch_consumer",
        "event": event,
        "message_id": str(message_id or ""),
        "outcome": str(outcome or ""),
        "worker_id": str(worker_id or ""),
        "latency_ms": int(max(0, latency_ms or 0)),
        "error_code": str(error_code or ""),
    }
    if extra:
        payload.update(extra)
    logger.info("[OBSERVABILITY] %s", json.dumps(payload, sort_keys=True, default=str))
