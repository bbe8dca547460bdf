"""
Connectors Package.

Connector registry and the outbound HTTP client used for
connector calls.
"""

from connectors.http_client import (
    CORRELATION_HEADER,
    ConnectorHttpClient,
    IntegrationCallResult,
    build_url,
)
from connectors.masking import mask_fields, mask_headers, mask_url, mask_value
from connectors.registry import ConnectorRegistry


__all__ = [
    "CORRELATION_HEADER",
    "ConnectorHttpClient",
    "IntegrationCallResult",
    "build_url",
    "ConnectorRegistry",
    "mask_value",
    "mask_headers",
    "mask_fields",
    "mask_url",
]
