"""queue_gateway.py — SQS queue gateway: long-poll receive and delete-by-receipt-handle."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from dispatch_consumer.errors import AcknowledgeFailed, TransientReceiveError

__all__ = ["QueueMessage", "SqsQueueGateway"]


@dataclass(frozen=True)
class QueueMessage:
    """One delivery of a queue message.

    ``receipt_handle`` identifies this specific delivery; without it the
    message cannot be acknowledged.
    """

    body: Optional[str]
    receipt_handle: Optional[str]
    message_id: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_sqs(cls, raw: Dict[str, Any]) -> "QueueMessage":
        return cls(
            body=raw.get("Body"),
            receipt_handle=raw.get("ReceiptHandle") or None,
            message_id=raw.get("MessageId") or None,
            attributes=dict(raw.get("Attributes") or {}),
        )

    @property
    def receive_count(self) -> int:
        try:
            return int(self.attributes.get("ApproximateReceiveCount") or 0)
        except ValueError:
            return 0


def _aws_error_code(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        return exc.response.get("Error", {}).get("Code", "Unknown")
    return type(exc).__name__


class SqsQueueGateway:
    """Thin wrapper over an SQS client bound to one queue URL."""

    def __init__(self, client: Any, queue_url: str) -> None:
        self._client = client
        self.queue_url = queue_url

    def receive(self, *, max_messages: int, wait_seconds: int, visibility_timeout: int) -> List[QueueMessage]:
        try:
            resp = self._client.receive_message(
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=max_messages,
                WaitTimeSeconds=wait_seconds,
                VisibilityTimeout=visibility_timeout,
                AttributeNames=["ApproximateReceiveCount"],
            )
        except (ClientError, BotoCoreError) as exc:
            raise TransientReceiveError(
                f"receive_message failed ({_aws_error_code(exc)}): {exc}"
            ) from exc
        return [QueueMessage.from_sqs(raw) for raw in resp.get("Messages") or []]

    def delete(self, receipt_handle: str) -> None:
        try:
            self._client.delete_message(QueueUrl=self.queue_url, ReceiptHandle=receipt_handle)
        except (ClientError, BotoCoreError) as exc:
            raise AcknowledgeFailed(
                f"delete_message failed ({_aws_error_code(exc)}): {exc}"
            ) from exc
