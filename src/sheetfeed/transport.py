"""Transport layer for feed requests.

Defines the FeedTransport interface and its production implementation:
- HttpxFeedTransport: async HTTP via httpx

Transports only move bytes. Status handling and parsing happen in
``sheetfeed.request.read_response``.
"""

from __future__ import annotations

import ssl
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field

import certifi
import httpx
from loguru import logger

from sheetfeed.exceptions import TransportError

DEFAULT_TIMEOUT = 60.0


@dataclass(frozen=True)
class FeedRequest:
    """A fully built outbound request."""

    url: str
    method: str
    headers: dict[str, str] = field(default_factory=dict)
    body: str | None = None


@dataclass(frozen=True)
class TransportResponse:
    """Raw response as received from the wire."""

    status: int
    headers: Mapping[str, str]
    text: str

    @property
    def content_type(self) -> str:
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return ""


class FeedTransport(ABC):
    """Abstract base class for sending feed requests."""

    @abstractmethod
    async def send(self, request: FeedRequest) -> TransportResponse:
        """Send one request and return the raw response.

        Args:
            request: The request to send

        Returns:
            TransportResponse with status, headers and body text
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections."""
        ...


class HttpxFeedTransport(FeedTransport):
    """Production transport using httpx."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT) -> None:
        """Initialize the transport.

        Args:
            timeout: Request timeout in seconds
        """
        ssl_context = ssl.create_default_context(cafile=certifi.where())
        self._client = httpx.AsyncClient(timeout=timeout, verify=ssl_context)

    async def send(self, request: FeedRequest) -> TransportResponse:
        try:
            response = await self._client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.body.encode("utf-8") if request.body is not None else None,
            )
        except httpx.RequestError as e:
            logger.warning("Network error", method=request.method, url=request.url)
            raise TransportError(f"Network error: {e}") from e

        return TransportResponse(
            status=response.status_code,
            headers=dict(response.headers),
            text=response.text,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()
