"""
Authenticated transport for the Aptus portal.

A PortalSession owns one httpx.AsyncClient and therefore one cookie jar. It
is created by the login handshake and handed to whoever asked for it; it is
not shared between concurrent operations.
"""
import logging
from typing import Optional, Dict, Any, Mapping
import httpx

from .endpoints import DEFAULT_HEADERS

logger = logging.getLogger(__name__)


class PortalSession:
    """
    Cookie-bearing transport used for every portal request.

    Redirects are never followed automatically; callers inspect them.
    """

    def __init__(
        self,
        user_agent: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = dict(DEFAULT_HEADERS)
        if user_agent:
            headers["User-Agent"] = user_agent
        self.client = httpx.AsyncClient(
            headers=headers,
            follow_redirects=False,
            timeout=timeout,
            transport=transport,
        )
        self.authenticated = False
        self.requests_made = 0

    async def get(self, url: str, referer: Optional[str] = None) -> httpx.Response:
        return await self._send("GET", url, referer=referer)

    async def post_form(
        self,
        url: str,
        data: Mapping[str, Any],
        referer: Optional[str] = None,
    ) -> httpx.Response:
        return await self._send("POST", url, referer=referer, data=dict(data))

    async def _send(self, method: str, url: str, referer: Optional[str] = None, **kwargs) -> httpx.Response:
        headers = {"Referer": referer} if referer else None
        response = await self.client.request(method, url, headers=headers, **kwargs)
        self.requests_made += 1
        logger.debug(f"{method} {url} -> {response.status_code}")
        return response

    def get_cookies(self) -> Dict[str, str]:
        """Get session cookies"""
        return dict(self.client.cookies)

    @property
    def is_closed(self) -> bool:
        return self.client.is_closed

    async def aclose(self):
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()
