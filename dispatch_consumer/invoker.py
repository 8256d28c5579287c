"""invoker.py — Synchronous Lambda invocation: integrity validator and worker dispatch.

Both remote calls go through LambdaInvoker.invoke_sync, which treats a
FunctionError in an otherwise successful response as a failure.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError

from dispatch_consumer.config import logger
from dispatch_consumer.errors import DispatchFailed, IntegrityRejected, InvocationError
from dispatch_consumer.registry import WorkerDescriptor

__all__ = [
    "IntegrityValidator",
    "IntegrityVerdict",
    "InvocationResult",
    "LambdaInvoker",
    "WorkerInvoker",
]

INTEGRITY_ACCEPTED_STATUS = 200


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InvocationResult:
    function_name: str
    status_code: int
    payload: bytes
    executed_version: str = ""

    def json(self) -> Any:
        if not self.payload:
            return None
        return json.loads(self.payload.decode("utf-8"))


@dataclass(frozen=True)
class IntegrityVerdict:
    status_code: int
    body: Any = None

    @property
    def accepted(self) -> bool:
        return self.status_code == INTEGRITY_ACCEPTED_STATUS


# ---------------------------------------------------------------------------
# Lambda invoke wrapper
# ---------------------------------------------------------------------------


def _encode_payload(payload: Any) -> bytes:
    try:
        return json.dumps(payload, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise InvocationError(f"payload is not JSON-serializable: {exc}") from exc


def _read_payload(resp: dict) -> bytes:
    stream = resp.get("Payload")
    if stream is None:
        return b""
    raw = stream.read() if hasattr(stream, "read") else stream
    if isinstance(raw, str):
        return raw.encode("utf-8")
    return bytes(raw or b"")


class LambdaInvoker:
    """Wraps a boto3 Lambda client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def _invoke(self, function_name: str, payload: Any, invocation_type: str) -> dict:
        try:
            return self._client.invoke(
                FunctionName=function_name,
                InvocationType=invocation_type,
                Payload=_encode_payload(payload),
            )
        except (ClientError, BotoCoreError) as exc:
            raise InvocationError(f"error invoking lambda {function_name}: {exc}") from exc

    def invoke_sync(self, function_name: str, payload: Any) -> InvocationResult:
        """RequestResponse invoke. Raises InvocationError on transport or function error."""
        resp = self._invoke(function_name, payload, "RequestResponse")
        body = _read_payload(resp)
        function_error = resp.get("FunctionError")
        if function_error:
            raise InvocationError(
                f"lambda function error from {function_name}: {function_error}, "
                f"payload: {body.decode('utf-8', errors='replace')[:500]}",
                function_error=function_error,
                payload=body,
            )
        return InvocationResult(
            function_name=function_name,
            status_code=int(resp.get("StatusCode") or 0),
            payload=body,
            executed_version=str(resp.get("ExecutedVersion") or ""),
        )

    def invoke_json(self, function_name: str, payload: Any) -> Any:
        """Sync invoke and decode the response payload as JSON."""
        result = self.invoke_sync(function_name, payload)
        try:
            return result.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise InvocationError(f"error unmarshalling response from {function_name}: {exc}") from exc

    def invoke_async(self, function_name: str, payload: Any) -> None:
        """Fire-and-forget Event invoke."""
        self._invoke(function_name, payload, "Event")

    def dry_run(self, function_name: str, payload: Any) -> None:
        """Validate parameters and permissions without running the function."""
        self._invoke(function_name, payload, "DryRun")


# ---------------------------------------------------------------------------
# Pipeline collaborators
# ---------------------------------------------------------------------------


class IntegrityValidator:
    """Calls the validator Lambda; only statusCode 200 is acceptance."""

    def __init__(self, invoker: LambdaInvoker, function_name: str) -> None:
        self._invoker = invoker
        self.function_name = function_name

    def validate(self, payload: Any) -> IntegrityVerdict:
        """Return the accepted verdict or raise IntegrityRejected.

        Call failures, function errors and unparseable responses all count
        as rejection.
        """
        try:
            response = self._invoker.invoke_json(self.function_name, payload)
        except InvocationError as exc:
            raise IntegrityRejected(f"error calling the integrity lambda: {exc}") from exc

        if not isinstance(response, dict):
            raise IntegrityRejected(f"integrity response is not an object: {response!r}"[:500])
        status_code = response.get("statusCode")
        if isinstance(status_code, bool) or not isinstance(status_code, int):
            raise IntegrityRejected(f"integrity response has no integer statusCode: {response!r}"[:500])

        verdict = IntegrityVerdict(status_code=status_code, body=response.get("body"))
        if not verdict.accepted:
            raise IntegrityRejected(f"not matching signatures: {verdict!r}"[:500])
        return verdict


class WorkerInvoker:
    """Forwards the decoded payload to the selected worker."""

    def __init__(self, invoker: LambdaInvoker) -> None:
        self._invoker = invoker

    def dispatch(self, worker: WorkerDescriptor, payload: Any) -> InvocationResult:
        logger.info(
            "[INFO] Invoking worker %s (target: %s)",
            worker.label, worker.endpoint_reference,
        )
        try:
            result = self._invoker.invoke_sync(worker.endpoint_reference, payload)
        except InvocationError as exc:
            raise DispatchFailed(f"error invoking worker {worker.endpoint_reference}: {exc}") from exc
        logger.debug(
            "Worker %s response: %s",
            worker.label, result.payload.decode("utf-8", errors="replace")[:500],
        )
        return result
