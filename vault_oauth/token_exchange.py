"""OAuth authorization code exchange against the vault"""

import json
import logging
from typing import Any, Dict, Optional

import httpx

from settings import CLIENT_ID, REDIRECT_URI, TOKEN_EXCHANGE_TIMEOUT, TOKEN_PATH
from .errors import TokenExchangeError
from .utils import join_vault_url


logger = logging.getLogger(__name__)


def server_error_detail(response: httpx.Response) -> Optional[str]:
    """Extract the server's error_description (or error code) from a response

    Returns:
        Detail string, or None if the body carries none
    """
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None

    if not isinstance(body, dict):
        return None
    detail = body.get("error_description") or body.get("error") or body.get("message")
    return str(detail) if detail else None


async def exchange_code_for_tokens(
    vault_url: str,
    code: str,
    code_verifier: str,
    device_id: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """Exchange an authorization code for vault tokens

    Args:
        vault_url: Vault origin the login was started against
        code: Authorization code from the OAuth callback
        code_verifier: PKCE verifier matching the challenge sent at authorize
        device_id: Stable device identifier scoping the refresh token
        transport: Optional httpx transport (tests)

    Returns:
        Raw token payload from the server

    Raises:
        TokenExchangeError: On transport failure or non-2xx response
    """
    token_url = join_vault_url(vault_url, TOKEN_PATH)
    data = {
        "grant_type": "authorization_code",
        "code": code,
        "code_verifier": code_verifier,
        "redirect_uri": REDIRECT_URI,
        "client_id": CLIENT_ID,
        "device_id": device_id,
    }

    logger.info(f"Exchanging authorization code for tokens at {token_url}")

    try:
        async with httpx.AsyncClient(transport=transport, timeout=TOKEN_EXCHANGE_TIMEOUT) as client:
            response = await client.post(
                token_url,
                json=data,
                headers={"Content-Type": "application/json"},
            )
    except httpx.TimeoutException as e:
        logger.error(f"Token exchange timed out after {TOKEN_EXCHANGE_TIMEOUT} seconds: {e}")
        raise TokenExchangeError(f"Token exchange timed out: {e}") from e
    except httpx.RequestError as e:
        logger.error(f"Token exchange request failed: {e}")
        raise TokenExchangeError(f"Token exchange request failed: {e}") from e

    logger.debug(f"Token exchange response status: {response.status_code}")

    if not response.is_success:
        detail = server_error_detail(response)
        logger.error(f"Token exchange failed with status {response.status_code}: {detail or response.text}")
        raise TokenExchangeError(
            f"Token exchange failed: {response.status_code} - {detail or response.reason_phrase}",
            status_code=response.status_code,
            detail=detail,
        )

    try:
        payload = response.json()
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse token exchange response: {e}")
        raise TokenExchangeError(
            "Token exchange returned an unreadable response",
            status_code=response.status_code,
        ) from e

    if not isinstance(payload, dict):
        raise TokenExchangeError(
            "Token exchange returned an unexpected response",
            status_code=response.status_code,
        )

    logger.info("Successfully exchanged authorization code for tokens")
    return payload
