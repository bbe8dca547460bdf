"""
Connectors - Outbound HTTP Client.

============================================================
PURPOSE
============================================================
Performs the actual network call for a connector. Raises
TransientExecutionError on transport failures and non-2xx
responses so the Execution Engine can apply the connector's
retry policy.

============================================================
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, Optional

import aiohttp

from core.config import HttpConfig
from core.exceptions import TransientExecutionError
from connectors.masking import mask_url
from storage.models.connectors import Connector


logger = logging.getLogger(__name__)


CORRELATION_HEADER = "X-Correlation-ID"


# ============================================================
# CALL RESULT
# ============================================================

@dataclass
class IntegrationCallResult:
    """What a successful outbound call returns to the Execution Engine."""

    http_method: str
    endpoint: str
    status_code: Optional[int] = None
    response_body: Optional[str] = None
    request_summary: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status_code is not None and 200 <= self.status_code < 300


def build_url(base_url: str, resource: str) -> str:
    """Join base URL and resource without doubling slashes."""
    return f"{base_url.rstrip('/')}/{resource.lstrip('/')}"


# ============================================================
# CLIENT
# ============================================================

class ConnectorHttpClient:
    """
    aiohttp-backed client for connector endpoints.

    One ClientSession is reused across calls; call close() on shutdown.
    """

    def __init__(
        self,
        config: Optional[HttpConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._config = config or HttpConfig()
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create HTTP session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._config.timeout_seconds),
                headers={"User-Agent": self._config.user_agent},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def get(
        self,
        connector: Connector,
        resource: str,
        correlation_id: str,
        headers: Optional[Dict[str, str]] = None,
    ) -> IntegrationCallResult:
        """
        GET {endpoint_base_url}/{resource}.

        Returns:
            IntegrationCallResult with the verbatim response body

        Raises:
            TransientExecutionError: On transport error or non-2xx status
        """
        url = build_url(connector.endpoint_base_url or "", resource)
        endpoint = f"/{resource.lstrip('/')}"
        request_headers = {CORRELATION_HEADER: correlation_id, "Accept": "application/json"}
        if headers:
            request_headers.update(headers)

        session = await self._get_session()
        try:
            async with session.get(url, headers=request_headers) as response:
                body = await response.text()
                if not 200 <= response.status < 300:
                    raise TransientExecutionError(
                        f"HTTP {response.status}: {response.reason}",
                        status_code=response.status,
                        endpoint=endpoint,
                    )
                return IntegrationCallResult(
                    http_method="GET",
                    endpoint=endpoint,
                    status_code=response.status,
                    response_body=body,
                    request_summary=f"GET {mask_url(url)}",
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"GET {mask_url(url)} failed: {type(e).__name__}: {e}")
            raise TransientExecutionError(
                f"Request to {endpoint} failed: {type(e).__name__}: {e}",
                endpoint=endpoint,
                cause=e,
            ) from e
