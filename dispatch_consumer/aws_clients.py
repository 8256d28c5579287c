"""aws_clients.py — Lazy-singleton AWS service clients (SQS, DynamoDB, Lambda).

Clients are created on first call and reused for the lifetime of the process.
The consume loop is single-threaded, so no locking is needed around them.
"""

from __future__ import annotations

import os
from typing import Optional

import boto3
from botocore.config import Config

from dispatch_consumer.config import (
    DEFAULT_INVOKE_CONNECT_TIMEOUT_SECONDS,
    DEFAULT_INVOKE_READ_TIMEOUT_SECONDS,
    DEFAULT_REGION,
)

__all__ = [
    "_get_ddb",
    "_get_lambda",
    "_get_sqs",
    "_reset_clients",
]

# ---------------------------------------------------------------------------
# Client singletons
# ---------------------------------------------------------------------------

_sqs = None
_ddb = None
_lambda = None


def _default_region() -> str:
    return os.environ.get("AWS_REGION") or DEFAULT_REGION


def _get_sqs(region: Optional[str] = None):
    """Get (or create) the SQS client singleton."""
    global _sqs
    if _sqs is None:
        _sqs = boto3.client(
            "sqs",
            region_name=region or _default_region(),
            config=Config(retries={"max_attempts": 3, "mode": "standard"}),
        )
    return _sqs


def _get_ddb(region: Optional[str] = None):
    """Get (or create) the DynamoDB client singleton."""
    global _ddb
    if _ddb is None:
        _ddb = boto3.client(
            "dynamodb",
            region_name=region or _default_region(),
            config=Config(retries={"max_attempts": 5, "mode": "standard"}),
        )
    return _ddb


def _get_lambda(
    region: Optional[str] = None,
    connect_timeout: int = DEFAULT_INVOKE_CONNECT_TIMEOUT_SECONDS,
    read_timeout: int = DEFAULT_INVOKE_READ_TIMEOUT_SECONDS,
):
    """Get (or create) the Lambda client singleton.

    Read timeout bounds every synchronous invoke; a timed-out call surfaces
    as a BotoCoreError and the message is left for redelivery. Each invoke
    is sent exactly once; the client never retries it.
    """
    global _lambda
    if _lambda is None:
        _lambda = boto3.client(
            "lambda",
            region_name=region or _default_region(),
            config=Config(
                connect_timeout=connect_timeout,
                read_timeout=read_timeout,
                retries={"total_max_attempts": 1, "mode": "standard"},
            ),
        )
    return _lambda


def _reset_clients() -> None:
    global _sqs, _ddb, _lambda
    _sqs = None
    _ddb = None
    _lambda = None
