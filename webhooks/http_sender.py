"""
Webhooks - Outbound HTTP.

Thin aiohttp wrapper used for deliveries and verification
handshakes. Transport failures propagate as aiohttp.ClientError
or asyncio.TimeoutError; any HTTP status is returned.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import aiohttp

from core.config import HttpConfig


logger = logging.getLogger(__name__)


@dataclass
class WebhookResponse:
    status: int
    reason: str
    body: str

    @property
    def is_success(self) -> bool:
        return 200 <= self.status < 300


class WebhookHttpSender:
    """Reuses one ClientSession across posts; call close() on shutdown."""

    def __init__(
        self,
        config: Optional[HttpConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self._config = config or HttpConfig()
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
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

    async def post(self, url: str, body: str, headers: Dict[str, str]) -> WebhookResponse:
        """POST a pre-serialized body verbatim."""
        session = await self._get_session()
        async with session.post(url, data=body.encode("utf-8"), headers=headers) as response:
            text = await response.text()
            logger.debug(f"POST {url} -> {response.status}")
            return WebhookResponse(status=response.status, reason=response.reason or "", body=text)
