"""Unit tests for the SQS queue gateway."""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock

from botocore.exceptions import ClientError, EndpointConnectionError

from dispatch_consumer.errors import AcknowledgeFailed, TransientReceiveError
from dispatch_consumer.queue_gateway import QueueMessage, SqsQueueGateway

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/orders"


class QueueMessageTests(unittest.TestCase):
    def test_from_sqs(self):
        msg = QueueMessage.from_sqs({
            "MessageId": "m-1",
            "ReceiptHandle": "rh-1",
            "Body": '{"orderId": "123"}',
            "Attributes": {"ApproximateReceiveCount": "3"},
        })
        self.assertEqual(msg.message_id, "m-1")
        self.assertEqual(msg.receipt_handle, "rh-1")
        self.assertEqual(msg.body, '{"orderId": "123"}')
        self.assertEqual(msg.receive_count, 3)

    def test_from_sqs_missing_fields(self):
        msg = QueueMessage.from_sqs({"ReceiptHandle": ""})
        self.assertIsNone(msg.body)
        self.assertIsNone(msg.receipt_handle)
        self.assertIsNone(msg.message_id)
        self.assertEqual(msg.receive_count, 0)


class SqsQueueGatewayTests(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.gateway = SqsQueueGateway(self.client, QUEUE_URL)

    def test_receive_request_and_messages(self):
        self.client.receive_message.return_value = {
            "Messages": [
                {"MessageId": "m-1", "ReceiptHandle": "rh-1", "Body": "{}"},
                {"MessageId": "m-2", "ReceiptHandle": "rh-2", "Body": "[]"},
            ]
        }
        messages = self.gateway.receive(max_messages=10, wait_seconds=20, visibility_timeout=30)
        self.assertEqual([m.message_id for m in messages], ["m-1", "m-2"])
        self.client.receive_message.assert_called_once_with(
            QueueUrl=QUEUE_URL,
            MaxNumberOfMessages=10,
            WaitTimeSeconds=20,
            VisibilityTimeout=30,
            AttributeNames=["ApproximateReceiveCount"],
        )

    def test_receive_empty(self):
        self.client.receive_message.return_value = {}
        self.assertEqual(self.gateway.receive(max_messages=10, wait_seconds=20, visibility_timeout=30), [])

    def test_receive_failure(self):
        for exc in (
            ClientError({"Error": {"Code": "AWS.SimpleQueueService.NonExistentQueue", "Message": "x"}}, "ReceiveMessage"),
            EndpointConnectionError(endpoint_url="https://sqs.us-east-1.amazonaws.com"),
        ):
            with self.subTest(exc=type(exc).__name__):
                self.client.receive_message.side_effect = exc
                with self.assertRaises(TransientReceiveError):
                    self.gateway.receive(max_messages=10, wait_seconds=20, visibility_timeout=30)

    def test_delete(self):
        self.gateway.delete("rh-1")
        self.client.delete_message.assert_called_once_with(QueueUrl=QUEUE_URL, ReceiptHandle="rh-1")

    def test_delete_failure(self):
        self.client.delete_message.side_effect = ClientError(
            {"Error": {"Code": "ReceiptHandleIsInvalid", "Message": "expired"}}, "DeleteMessage",
        )
        with self.assertRaises(AcknowledgeFailed) as ctx:
            self.gateway.delete("rh-1")
        self.assertIn("ReceiptHandleIsInvalid", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
