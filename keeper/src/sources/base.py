"""Base HTTP source and shared HTTP client management.

The gist config source and the price service client both inherit from
BaseHttpSource. A shared httpx.AsyncClient is used across all sources to
avoid connection overhead.

.. code-block:: python

    class MySource(BaseHttpSource):
        name = "mysource"

        async def fetch_thing(self) -> dict:
            response = await self._get("https://api.example.com/thing")
            return response.json()
"""

import logging
from typing import Any, ClassVar

import httpx

from ..errors import KeeperError

logger = logging.getLogger(__name__)


class SourceError(KeeperError):
    """Base exception for HTTP source errors."""

    pass


class SourceHTTPError(SourceError):
    """Raised when an HTTP request returns a non-2xx status.

    :ivar status_code: HTTP status code from the failed request.
    """

    def __init__(self, status_code: int, message: str):
        """Initialize the HTTP error.

        :param status_code: HTTP status code.
        :param message: Error message from response.
        """
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {message}")


class BaseHttpSource:
    """Base class for HTTP backed collaborators.

    :cvar name: Identifier used in log messages.
    :cvar DEFAULT_TIMEOUT: Default HTTP request timeout in seconds.
    :ivar timeout: Request timeout in seconds.
    :ivar client: Optional client overriding the shared one (used by tests).
    """

    # Class-level shared HTTP client
    _shared_client: ClassVar[httpx.AsyncClient | None] = None

    name: ClassVar[str] = ""

    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """Initialize the source.

        :param timeout: Request timeout in seconds (default: 10).
        :param client: Optional HTTP client to use instead of the shared one.
        """
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.client = client

    @classmethod
    def get_shared_client(cls) -> httpx.AsyncClient:
        """Get or create the shared HTTP client.

        :returns: Shared httpx.AsyncClient instance.
        """
        if cls._shared_client is None or cls._shared_client.is_closed:
            cls._shared_client = httpx.AsyncClient(
                timeout=httpx.Timeout(30.0, connect=10.0),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
                follow_redirects=True,
            )
        return cls._shared_client

    @classmethod
    async def close_shared_client(cls) -> None:
        """Close the shared HTTP client."""
        if cls._shared_client is not None and not cls._shared_client.is_closed:
            await cls._shared_client.aclose()
            cls._shared_client = None

    async def _get(
        self,
        url: str,
        *,
        params: Any = None,
        headers: dict | None = None,
    ) -> httpx.Response:
        """Make an HTTP GET request.

        :param url: Request URL.
        :param params: Optional query parameters (mapping or list of pairs).
        :param headers: Optional request headers.
        :returns: httpx.Response object.
        :raises SourceHTTPError: On non-2xx response.
        :raises SourceError: On network/timeout errors.
        """
        client = self.client or self.get_shared_client()
        try:
            response = await client.get(
                url,
                params=params,
                headers=headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise SourceError(f"Request timeout: {e}") from e
        except httpx.RequestError as e:
            raise SourceError(f"Request failed: {e}") from e

        if not response.is_success:
            logger.debug(
                "[%s] HTTP GET %s failed with status %s: %s",
                self.name,
                url,
                response.status_code,
                response.text[:200],
            )
            raise SourceHTTPError(response.status_code, response.text[:200])
        return response
