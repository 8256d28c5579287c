"""registry.py — Read-only access to the DynamoDB worker registry.

Table item schema (attribute names as stored):
    id               stable worker identity
    arn              invocation target (Lambda function name or ARN)
    direccionLambda  worker URL, advisory
    estadoSalud      "saludable" (healthy) | "fallando" (unhealthy)
    nombreLambda     display name
    ultimoLatido     last heartbeat timestamp, advisory

Health is maintained by external heartbeat reporters. This module only reads
it and never writes to the table.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from dispatch_consumer.config import logger
from dispatch_consumer.errors import NoHealthyWorker
from dispatch_consumer.serialization import _deserialize

__all__ = ["HealthState", "WorkerDescriptor", "WorkerRegistry"]

ATTR_ID = "id"
ATTR_ARN = "arn"
ATTR_URL = "direccionLambda"
ATTR_HEALTH = "estadoSalud"
ATTR_NAME = "nombreLambda"
ATTR_HEARTBEAT = "ultimoLatido"


class HealthState(str, enum.Enum):
    HEALTHY = "saludable"
    UNHEALTHY = "fallando"


def _parse_health(raw: Any) -> HealthState:
    # Anything other than the exact healthy marker is treated as unhealthy.
    if raw == HealthState.HEALTHY.value:
        return HealthState.HEALTHY
    return HealthState.UNHEALTHY


@dataclass(frozen=True)
class WorkerDescriptor:
    identity: str
    endpoint_reference: str
    health_state: HealthState
    display_name: str = ""
    endpoint_url: str = ""
    last_heartbeat: str = ""

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "WorkerDescriptor":
        """Build a descriptor from a deserialized registry item."""
        return cls(
            identity=str(item.get(ATTR_ID) or ""),
            endpoint_reference=str(item.get(ATTR_ARN) or ""),
            health_state=_parse_health(item.get(ATTR_HEALTH)),
            display_name=str(item.get(ATTR_NAME) or ""),
            endpoint_url=str(item.get(ATTR_URL) or ""),
            last_heartbeat=str(item.get(ATTR_HEARTBEAT) or ""),
        )

    @property
    def is_healthy(self) -> bool:
        return self.health_state is HealthState.HEALTHY

    @property
    def label(self) -> str:
        return self.display_name or self.identity or self.endpoint_reference


class WorkerRegistry:
    """Scans the worker registry table through a DynamoDB client."""

    def __init__(self, client: Any, table_name: str) -> None:
        self._client = client
        self.table_name = table_name

    def scan(self) -> List[WorkerDescriptor]:
        """Full table scan, following LastEvaluatedKey until exhausted.

        Raises ClientError / BotoCoreError on failure.
        """
        kwargs: Dict[str, Any] = {"TableName": self.table_name}
        descriptors: List[WorkerDescriptor] = []
        while True:
            resp = self._client.scan(**kwargs)
            for raw in resp.get("Items", []):
                descriptors.append(WorkerDescriptor.from_item(_deserialize(raw)))
            if "LastEvaluatedKey" not in resp:
                break
            kwargs["ExclusiveStartKey"] = resp["LastEvaluatedKey"]
        return descriptors

    def healthy_workers(self) -> List[WorkerDescriptor]:
        """Scan and keep only descriptors flagged healthy.

        Raises NoHealthyWorker when the scan fails or nothing healthy remains;
        either way the message is left for redelivery.
        """
        try:
            descriptors = self.scan()
        except (ClientError, BotoCoreError) as exc:
            raise NoHealthyWorker(f"registry scan of table '{self.table_name}' failed: {exc}") from exc

        healthy = []
        for d in descriptors:
            if not d.is_healthy:
                continue
            if not d.endpoint_reference:
                logger.warning(
                    "[WARNING] Registry '%s': healthy worker %s has no '%s', skipping",
                    self.table_name, d.identity, ATTR_ARN,
                )
                continue
            healthy.append(d)
        logger.info(
            "[INFO] Registry '%s': %d worker(s), %d healthy",
            self.table_name, len(descriptors), len(healthy),
        )
        if not healthy:
            raise NoHealthyWorker(f"no healthy workers in table '{self.table_name}'")
        return healthy

    def get(self, identity: str) -> Optional[WorkerDescriptor]:
        """Fetch a single descriptor by id, or None if absent."""
        resp = self._client.get_item(
            TableName=self.table_name,
            Key={ATTR_ID: {"S": identity}},
        )
        raw = resp.get("Item")
        if not raw:
            return None
        return WorkerDescriptor.from_item(_deserialize(raw))
