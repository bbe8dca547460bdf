"""
Execution Engine Package.

============================================================
PURPOSE
============================================================
Executes outbound connector calls under the connector's retry
policy, producing one immutable IntegrationLog per call.

CRITICAL PRINCIPLE:
    "A disabled connector never reaches the network."

============================================================
MODULES
============================================================
- backoff: compute_retry_delay, shared with webhook delivery
- execution_service: IntegrationExecutionService

============================================================
"""

from execution_engine.backoff import compute_retry_delay
from execution_engine.execution_service import (
    DISABLED_MESSAGE,
    IntegrationExecutionService,
    OutboundCall,
)


__all__ = [
    "compute_retry_delay",
    "DISABLED_MESSAGE",
    "IntegrationExecutionService",
    "OutboundCall",
]
