"""Unit tests for queue body decoding."""

from __future__ import annotations

import json
import unittest

from dispatch_consumer.envelope import EnvelopeFormat, decode_body
from dispatch_consumer.errors import MalformedMessage


def _sns(message) -> str:
    return json.dumps({
        "Type": "Notification",
        "MessageId": "5b7c0f4e-0000-4000-8000-000000000001",
        "TopicArn": "arn:aws:sns:us-east-1:123456789012:orders",
        "Message": message,
        "Timestamp": "2026-10-19T10:00:00.000Z",
    })


class DirectFormatTests(unittest.TestCase):
    def test_object_payload(self):
        self.assertEqual(
            decode_body('{"orderId": "123", "amount": 42}', EnvelopeFormat.DIRECT),
            {"orderId": "123", "amount": 42},
        )

    def test_non_object_json_passes_through(self):
        self.assertEqual(decode_body("[1, 2, 3]", EnvelopeFormat.DIRECT), [1, 2, 3])
        self.assertEqual(decode_body('"text"', EnvelopeFormat.DIRECT), "text")

    def test_bytes_body(self):
        self.assertEqual(decode_body(b'{"k": "v"}', EnvelopeFormat.DIRECT), {"k": "v"})

    def test_empty_and_missing_bodies_are_malformed(self):
        for body in (None, "", "   ", b""):
            with self.subTest(body=body):
                with self.assertRaises(MalformedMessage):
                    decode_body(body, EnvelopeFormat.DIRECT)

    def test_invalid_json_is_malformed(self):
        with self.assertRaises(MalformedMessage):
            decode_body("{orderId: 123", EnvelopeFormat.DIRECT)

    def test_non_finite_constants_are_malformed(self):
        for body in ('{"amount": NaN}', '{"amount": Infinity}', "[-Infinity]", "NaN"):
            with self.subTest(body=body):
                with self.assertRaises(MalformedMessage):
                    decode_body(body, EnvelopeFormat.DIRECT)

    def test_invalid_utf8_is_malformed(self):
        with self.assertRaises(MalformedMessage):
            decode_body(b"\xff\xfe{}", EnvelopeFormat.DIRECT)


class SnsFormatTests(unittest.TestCase):
    def test_unwraps_message_field(self):
        body = _sns(json.dumps({"orderId": "123", "amount": 42}))
        self.assertEqual(
            decode_body(body, EnvelopeFormat.SNS),
            {"orderId": "123", "amount": 42},
        )

    def test_message_field_not_json(self):
        with self.assertRaises(MalformedMessage):
            decode_body(_sns("plain text"), EnvelopeFormat.SNS)

    def test_message_field_with_nan_is_malformed(self):
        with self.assertRaises(MalformedMessage):
            decode_body(_sns('{"orderId": "123", "amount": NaN}'), EnvelopeFormat.SNS)

    def test_message_field_not_string(self):
        with self.assertRaises(MalformedMessage):
            decode_body(_sns({"orderId": "123"}), EnvelopeFormat.SNS)

    def test_missing_message_field(self):
        with self.assertRaises(MalformedMessage):
            decode_body(json.dumps({"Type": "Notification"}), EnvelopeFormat.SNS)

    def test_envelope_not_object(self):
        with self.assertRaises(MalformedMessage):
            decode_body("[]", EnvelopeFormat.SNS)


def test_format_values_match_configuration_names():
    assert EnvelopeFormat("direct") is EnvelopeFormat.DIRECT
    assert EnvelopeFormat("sns") is EnvelopeFormat.SNS


if __name__ == "__main__":
    unittest.main()
