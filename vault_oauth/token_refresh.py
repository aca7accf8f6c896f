"""OAuth token refresh for the vault"""

import logging
import time
from typing import Any, Dict, Optional

import httpx

from settings import CLIENT_ID, TOKEN_EXCHANGE_TIMEOUT, TOKEN_EXPIRY_BUFFER_SECONDS, TOKEN_REFRESH_PATH
from .utils import join_vault_url


logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch"""
    return int(time.time() * 1000)


async def refresh_vault_tokens(
    vault_url: str,
    refresh_token: str,
    device_id: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """Request a new token set with a refresh token

    Errors are not wrapped; the caller decides whether they end the session.

    Args:
        vault_url: Vault origin
        refresh_token: Refresh token from the previous token set
        device_id: Device identifier the refresh token is scoped to
        transport: Optional httpx transport (tests)

    Returns:
        Raw token payload from the server

    Raises:
        httpx.HTTPStatusError: Non-2xx response
        httpx.RequestError: Transport failure or timeout
    """
    refresh_url = join_vault_url(vault_url, TOKEN_REFRESH_PATH)
    data = {
        "grant_type": "refresh_token",
        "refresh_token": refresh_token,
        "client_id": CLIENT_ID,
        "device_id": device_id,
    }

    logger.info("Attempting to refresh vault tokens...")
    async with httpx.AsyncClient(transport=transport, timeout=TOKEN_EXCHANGE_TIMEOUT) as client:
        response = await client.post(
            refresh_url,
            json=data,
            headers={"Content-Type": "application/json"},
        )

    if not response.is_success:
        logger.error(f"Token refresh failed with status {response.status_code}")
    response.raise_for_status()

    payload = response.json()
    logger.info("Successfully refreshed vault tokens")
    return payload


def should_refresh_access_token(
    expires_at: Optional[int],
    buffer_seconds: Optional[float] = None,
    current_ms: Optional[int] = None,
) -> bool:
    """Check if an access token is expired or about to expire

    Tokens without a known expiry are never refreshed proactively; a 401
    from the API still triggers a reactive refresh.

    Args:
        expires_at: Absolute expiry in milliseconds since the epoch
        buffer_seconds: Refresh this long before expiry (default: setting)
        current_ms: Override for the current time

    Returns:
        True if token should be refreshed
    """
    if expires_at is None:
        return False

    if buffer_seconds is None:
        buffer_seconds = TOKEN_EXPIRY_BUFFER_SECONDS
    if current_ms is None:
        current_ms = now_ms()

    return current_ms >= expires_at - int(buffer_seconds * 1000)
