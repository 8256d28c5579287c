"""envelope.py — Queue body decoding for the two supported wire formats.

direct:  the body is the payload JSON, used as-is.
sns:     the body is an SNS notification envelope
         {Type, Message, MessageId, TopicArn, Timestamp} whose ``Message``
         field is itself JSON text holding the payload.

Exactly one format is active per deployment. Bodies are never inspected to
guess the format.
"""

from __future__ import annotations

import enum
import json
from typing import Any, Optional

from dispatch_consumer.errors import MalformedMessage

__all__ = ["EnvelopeFormat", "decode_body"]


class EnvelopeFormat(str, enum.Enum):
    DIRECT = "direct"
    SNS = "sns"


def _reject_constant(name: str) -> Any:
    # json.loads would otherwise accept NaN, Infinity and -Infinity.
    raise MalformedMessage(f"non-standard JSON constant {name}")


def _loads(raw: Any, what: str) -> Any:
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedMessage(f"{what} is not valid UTF-8: {exc}") from exc
    try:
        return json.loads(raw, parse_constant=_reject_constant)
    except MalformedMessage as exc:
        raise MalformedMessage(f"{what} is not valid JSON: {exc}") from exc
    except (json.JSONDecodeError, TypeError) as exc:
        raise MalformedMessage(f"{what} is not valid JSON: {exc}") from exc


def _unwrap_sns(envelope: Any) -> Any:
    if not isinstance(envelope, dict):
        raise MalformedMessage(f"SNS envelope must be a JSON object, got {type(envelope).__name__}")
    inner = envelope.get("Message")
    if not isinstance(inner, str):
        raise MalformedMessage("SNS envelope has no string Message field")
    return _loads(inner, "SNS Message field")


def decode_body(body: Optional[Any], envelope_format: EnvelopeFormat) -> Any:
    """Decode a raw queue body into the business payload.

    The returned value is the parsed JSON tree, passed through unchanged by
    every later stage. Raises MalformedMessage for an empty body or one that
    does not decode under ``envelope_format``.
    """
    if body is None or (isinstance(body, (str, bytes, bytearray)) and not body.strip()):
        raise MalformedMessage("message body is empty")

    decoded = _loads(body, "message body")
    if envelope_format is EnvelopeFormat.SNS:
        return _unwrap_sns(decoded)
    return decoded
