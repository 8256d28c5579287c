"""dispatch_consumer — SQS-driven dispatcher for registry-managed worker Lambdas.

Provides:
    - SQS long-poll consumer with delete-on-success acknowledgment
    - Integrity gate via a synchronous validator Lambda
    - Health-filtered, uniformly random worker selection from DynamoDB
    - Liveness endpoint for container health checks
"""

__version__ = "1.0.0"
