"""
Async content fetcher for changelog pages.
Wraps httpx with a shared client configuration and request throttling.
"""

from typing import Dict, Optional

import httpx
from asyncio_throttle import Throttler
import structlog

from .errors import FetchError
from .models import FetchResponse

logger = structlog.get_logger(__name__)


class ContentFetcher:
    """
    Retrieves page content for source URLs.

    Network failures always raise FetchError. Non-2xx responses raise too,
    unless the caller asks for the raw response with raise_for_status=False.
    """

    def __init__(
        self,
        timeout: float = 30,
        headers: Optional[Dict[str, str]] = None,
        rate_limit_per_second: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the fetcher.

        Args:
            timeout: Request timeout in seconds
            headers: Default request headers
            rate_limit_per_second: Maximum number of requests per second
            transport: Optional httpx transport (used to stub the network)
        """
        self.throttler = Throttler(rate_limit=rate_limit_per_second)
        self.logger = logger.bind(component="fetcher")

        # HTTP client configuration
        self.client_config = {
            "timeout": timeout,
            "headers": headers or {},
            "follow_redirects": True,
        }
        if transport is not None:
            self.client_config["transport"] = transport

    async def fetch(self, url: str, raise_for_status: bool = True) -> FetchResponse:
        """
        Fetch a URL.

        Args:
            url: URL to request
            raise_for_status: Raise FetchError on non-2xx responses

        Returns:
            FetchResponse with status code and body text
        """
        url = str(url)
        try:
            async with self.throttler:
                async with httpx.AsyncClient(**self.client_config) as client:
                    response = await client.get(url)
        except httpx.HTTPError as e:
            self.logger.warning("Request failed", url=url, error=str(e))
            raise FetchError(url, f"request to {url} failed: {e}") from e

        result = FetchResponse(
            url=url,
            status_code=response.status_code,
            text=response.text
        )

        if raise_for_status and not result.ok:
            self.logger.warning(
                "Unexpected HTTP status",
                url=url,
                status_code=result.status_code
            )
            raise FetchError(
                url,
                f"{url} returned HTTP {result.status_code}",
                status_code=result.status_code
            )

        self.logger.debug(
            "Fetched page",
            url=url,
            status_code=result.status_code,
            size_bytes=len(result.text)
        )
        return result

    async def fetch_text(self, url: str) -> str:
        """Fetch a URL and return its body, raising FetchError on any failure."""
        response = await self.fetch(url, raise_for_status=True)
        return response.text
