"""HTTP transport used by the embedding client."""

import asyncio
from typing import Any, Dict, NamedTuple, Optional, Protocol

import aiohttp
from loguru import logger

from table_memory.services.errors import NetworkError


class TransportResponse(NamedTuple):
    """Raw HTTP response."""

    status: int
    text: str


class HttpTransport(Protocol):
    """Anything able to POST a JSON document and return the raw response."""

    async def post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Dict[str, str],
    ) -> TransportResponse:
        """POST ``payload`` as JSON to ``url``."""

    async def close(self) -> None:
        """Release any pooled connections."""


class AiohttpTransport:
    """:class:`HttpTransport` backed by a lazily created aiohttp session."""

    def __init__(self, timeout: int = 30) -> None:
        """
        Initialize the transport.

        :param timeout: total request timeout in seconds
        """
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Dict[str, str],
    ) -> TransportResponse:
        """
        POST ``payload`` as JSON.

        :param url: target URL
        :param payload: JSON serializable body
        :param headers: request headers
        :returns: status code and body text
        :raises NetworkError: if the request could not be completed
        """
        session = self._get_session()
        try:
            async with session.post(url, json=payload, headers=headers) as response:
                text = await response.text()
                return TransportResponse(status=response.status, text=text)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(f"Request to {url} failed: {e!r}") from e

    async def close(self) -> None:
        """Close the underlying session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
            logger.debug("Closed embedding HTTP session")
        self._session = None
