"""Authenticated HTTP client for the vault API"""

import asyncio
import json
import logging
from typing import Any, Optional

import httpx

from settings import CONNECT_TIMEOUT, REQUEST_TIMEOUT
from vault_oauth import AuthSessionManager, SessionExpiredError, SingleFlight

logger = logging.getLogger(__name__)

TOKEN_EXPIRED = "token_expired"

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


def is_token_expired_response(response: httpx.Response) -> bool:
    """True for a 401 whose body names token_expired as the error"""
    if response.status_code != 401:
        return False
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return False
    if not isinstance(body, dict):
        return False
    return body.get("error") == TOKEN_EXPIRED or body.get("code") == TOKEN_EXPIRED


class AuthenticatedClient:
    """Sends vault API requests with the session's base URL and bearer token

    A 401 token_expired response triggers one coordinated refresh and a
    single retry. Every other failure is raised unchanged.
    """

    def __init__(
        self,
        session: AuthSessionManager,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[httpx.Timeout] = None,
    ):
        """Initialize the client

        Args:
            session: Session manager providing vault URL and tokens
            transport: Optional httpx transport (tests)
            timeout: Request timeout (default: REQUEST_TIMEOUT / CONNECT_TIMEOUT)
        """
        self.session = session
        self._client = httpx.AsyncClient(
            transport=transport,
            headers=DEFAULT_HEADERS,
            timeout=timeout or httpx.Timeout(REQUEST_TIMEOUT, connect=CONNECT_TIMEOUT),
        )
        self._refresh_flight: SingleFlight[str] = SingleFlight("request token refresh")

    async def __aenter__(self) -> "AuthenticatedClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send an authenticated request

        Args:
            method: HTTP method
            url: Path relative to the vault URL, or an absolute URL
            **kwargs: Passed to httpx.AsyncClient.build_request (json, params, headers...)

        Returns:
            Successful response

        Raises:
            httpx.HTTPStatusError: Non-2xx response that was not recovered
            httpx.RequestError: Transport failure, including timeouts
        """
        request = await self._prepare(method, url, **kwargs)
        response = await self._client.send(request)

        if is_token_expired_response(response):
            await response.aclose()
            response = await self._recover(request)

        response.raise_for_status()
        return response

    async def get(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("GET", url, **kwargs)

    async def post(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, **kwargs)

    async def put(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("PUT", url, **kwargs)

    async def delete(self, url: str, **kwargs: Any) -> httpx.Response:
        return await self.request("DELETE", url, **kwargs)

    async def _prepare(self, method: str, url: str, **kwargs: Any) -> httpx.Request:
        vault_url, access_token = await asyncio.gather(
            self.session.get_vault_origin(),
            self.session.get_access_token(),
        )

        if vault_url and not url.startswith(("http://", "https://")):
            url = f"{vault_url.rstrip('/')}/{url.lstrip('/')}"

        request = self._client.build_request(method, url, **kwargs)
        if access_token:
            request.headers["Authorization"] = f"Bearer {access_token}"
        else:
            logger.debug(f"No vault session, sending {method} {request.url.path} unauthenticated")
        return request

    async def _recover(self, request: httpx.Request) -> httpx.Response:
        """Refresh once (shared with concurrent requests) and retry the request"""
        logger.info(f"Access token expired during {request.method} {request.url.path}, refreshing")
        new_token = await self._refresh_flight.run(self._refresh_access_token)

        request.headers["Authorization"] = f"Bearer {new_token}"
        # Retried requests are never recovered again
        return await self._client.send(request)

    async def _refresh_access_token(self) -> str:
        try:
            await self.session.refresh_token()
            new_token = await self.session.get_access_token()
            if not new_token:
                raise SessionExpiredError("Session ended while refreshing the access token.")
        except Exception as e:
            logger.error(f"Token refresh after 401 failed, logging out: {e}")
            await self.session.logout()
            raise
        return new_token
