"""
Origin HTTP client for the fetch proxy.
"""

from typing import Optional

import httpx

from shared.logging import get_logger


class OriginClient:
    """Thin wrapper over ``httpx.AsyncClient`` for upstream fetches.

    Redirects are not followed by default: a 3xx is reported as the origin
    status, so the proxy never lands on a host the private-network guard
    did not check.
    """

    def __init__(
        self,
        timeout_seconds: float = 10.0,
        follow_redirects: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.logger = get_logger("fetch_proxy.origin_client")
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=follow_redirects,
            transport=transport,
        )

    async def open(self, url: str) -> httpx.Response:
        """Send a GET and return the response with its body still unread.

        The caller must close the response. Transport failures raise
        ``httpx.RequestError``; HTTP error statuses do not raise.
        """
        request = self._client.build_request("GET", url)
        response = await self._client.send(request, stream=True)
        self.logger.debug("Origin responded", url=url, status_code=response.status_code)
        return response

    async def close(self) -> None:
        await self._client.aclose()
