"""Vault session manager: login, code exchange, token storage and refresh"""

import asyncio
import datetime
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from settings import CLIENT_ID, REDIRECT_URI, TOKEN_EXPIRY_BUFFER_SECONDS
from .authorization import AuthorizationURLBuilder
from .browser import BrowserAuthSession, SystemBrowserAuthSession
from .errors import (
    AuthorizationError,
    CredentialStoreError,
    InvalidTokenResponseError,
    MissingCodeError,
    MissingRefreshTokenError,
    MissingStateError,
    MissingVaultUrlError,
    MissingVerifierError,
    StateMismatchError,
)
from .models import AuthSessionOutcome, AuthSessionResult, AuthState, SessionCredentials, TokenResponse
from .pkce import PKCEManager
from .single_flight import SingleFlight
from .storage import SESSION_KEYS, CredentialStore, KeyringCredentialStore, StorageKeys
from .token_exchange import exchange_code_for_tokens
from .token_refresh import now_ms, refresh_vault_tokens, should_refresh_access_token
from .utils import clean_vault_url, query_params


logger = logging.getLogger(__name__)

MACHINE_ID_FILES = (Path("/etc/machine-id"), Path("/var/lib/dbus/machine-id"))


def _parse_expiry(raw: Optional[str]) -> Optional[int]:
    if raw is None:
        return None
    try:
        return int(float(raw))
    except (ValueError, OverflowError):
        logger.warning("Ignoring unreadable token expiry in secure storage")
        return None


def _native_device_id() -> Optional[str]:
    """App-scoped identifier derived from the OS machine id, if there is one"""
    for path in MACHINE_ID_FILES:
        try:
            machine_id = path.read_text().strip()
        except OSError:
            continue
        if machine_id:
            # Never send the raw machine id; scope it to this client
            return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{CLIENT_ID}:{machine_id}"))
    return None


class AuthSessionManager:
    """Manages the vault OAuth session with automatic refresh

    One instance per process; share it with every consumer that needs
    authenticated access.
    """

    def __init__(
        self,
        store: Optional[CredentialStore] = None,
        browser: Optional[BrowserAuthSession] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        expiry_buffer_seconds: Optional[float] = None,
    ):
        """Initialize session manager

        Args:
            store: Secure credential store (default: OS keychain)
            browser: Interactive browser session (default: system browser)
            transport: Optional httpx transport for token endpoint calls
            expiry_buffer_seconds: Proactive refresh window (default: setting)
        """
        self.store = store or KeyringCredentialStore()
        self.pkce = PKCEManager(self.store)
        self.auth_builder = AuthorizationURLBuilder(self.pkce)
        self.browser = browser or SystemBrowserAuthSession()
        self.transport = transport
        self.expiry_buffer_seconds = (
            TOKEN_EXPIRY_BUFFER_SECONDS if expiry_buffer_seconds is None else expiry_buffer_seconds
        )
        self.state = AuthState.LOGGED_OUT
        self._refresh_flight: SingleFlight[None] = SingleFlight("token refresh")

    # Login flow

    async def start_login(self, vault_url: str) -> AuthSessionResult:
        """Start the Authorization Code + PKCE flow in the system browser

        Args:
            vault_url: Vault origin, e.g. https://vault.example.com

        Returns:
            Browser session result; the caller handles the callback URL
        """
        vault_url = clean_vault_url(vault_url)
        previous_url = await self.get_vault_origin()
        if previous_url and previous_url != vault_url:
            # Tokens are bound to the vault that issued them
            logger.info(f"Switching vault from {previous_url} to {vault_url}, ending the previous session")
            await self.logout()

        self.state = AuthState.LOGIN_STARTED

        await self.store.set(StorageKeys.VAULT_URL, vault_url)
        auth_url = await self.auth_builder.get_authorize_url(vault_url)

        logger.info(f"Starting vault login at {vault_url}")
        self.state = AuthState.AWAITING_CALLBACK
        result = await self.browser.open(auth_url, REDIRECT_URI)

        if result.type != AuthSessionOutcome.SUCCESS:
            logger.info(f"Browser authentication ended without a callback: {result.type.value}")
            await self._settle_state()
        return result

    async def handle_callback(self, url: str) -> str:
        """Validate the redirect URL and extract the authorization code

        Stored verifier and state are left in place for the exchange.

        Args:
            url: Callback URL, e.g. pulse://auth/callback?code=...&state=...

        Returns:
            Authorization code
        """
        params = query_params(url)

        server_error = params.get("error")
        if server_error:
            description = params.get("error_description") or server_error
            logger.error(f"Authorization server returned an error: {server_error}")
            raise AuthorizationError(description, error_code=server_error)

        code = params.get("code")
        returned_state = params.get("state")
        if not code:
            raise MissingCodeError()
        if not returned_state:
            raise MissingStateError()

        stored_state = await self.store.get(StorageKeys.STATE)
        if returned_state != stored_state:
            logger.error("OAuth state mismatch - refusing to exchange code")
            raise StateMismatchError()

        return code

    async def exchange_code_for_token(self, code: str) -> Dict[str, Any]:
        """Exchange an authorization code for the raw token payload

        The PKCE verifier and state are consumed: they are erased once the
        server accepts the code.
        """
        vault_url, code_verifier = await asyncio.gather(
            self.store.get(StorageKeys.VAULT_URL),
            self.store.get(StorageKeys.CODE_VERIFIER),
        )
        if not vault_url:
            raise MissingVaultUrlError()
        if not code_verifier:
            raise MissingVerifierError()

        device_id = await self.get_device_id()

        self.state = AuthState.EXCHANGING
        try:
            payload = await exchange_code_for_tokens(
                vault_url, code, code_verifier, device_id, transport=self.transport
            )
        except Exception:
            await self._settle_state()
            raise

        await self.pkce.clear_pkce()
        return payload

    async def complete_login(self, callback_url: str) -> None:
        """Validate a callback, exchange its code and store the tokens"""
        code = await self.handle_callback(callback_url)
        payload = await self.exchange_code_for_token(code)
        await self.store_tokens(payload)
        logger.info("Vault login complete")

    # Token storage

    async def store_tokens(self, payload: Dict[str, Any]) -> None:
        """Persist a token set returned by the token endpoint

        Args:
            payload: Body with access_token and optional refresh_token / expires_in
        """
        if not isinstance(payload, dict):
            raise InvalidTokenResponseError("Token response is not a JSON object.")
        try:
            tokens = TokenResponse.model_validate(payload)
        except ValidationError as e:
            raise InvalidTokenResponseError(f"Token response is malformed: {e}") from e

        if not tokens.access_token:
            raise InvalidTokenResponseError("Token response is missing access_token.")

        writes = [self.store.set(StorageKeys.ACCESS_TOKEN, tokens.access_token)]
        if tokens.refresh_token:
            writes.append(self.store.set(StorageKeys.REFRESH_TOKEN, tokens.refresh_token))
        if tokens.expires_in is not None:
            expires_at = now_ms() + int(tokens.expires_in * 1000)
            writes.append(self.store.set(StorageKeys.TOKEN_EXPIRY, str(expires_at)))
        else:
            # No expiry for this token set; a previous one must not linger
            writes.append(self.store.delete(StorageKeys.TOKEN_EXPIRY))

        await asyncio.gather(*writes)
        self.state = AuthState.LOGGED_IN
        logger.debug(f"Stored vault tokens (refresh token: {'yes' if tokens.refresh_token else 'no'})")

    # Token retrieval

    async def get_access_token(self) -> Optional[str]:
        """Get a valid access token, refreshing it first if it is about to expire

        A failed refresh ends the session.

        Returns:
            Access token, or None if the user must authenticate
        """
        access_token, raw_expiry = await asyncio.gather(
            self.store.get(StorageKeys.ACCESS_TOKEN),
            self.store.get(StorageKeys.TOKEN_EXPIRY),
        )
        if not access_token:
            return None

        if not should_refresh_access_token(_parse_expiry(raw_expiry), self.expiry_buffer_seconds):
            return access_token

        logger.info("Vault access token expiring, attempting refresh...")
        try:
            await self._refresh_flight.run(self._refresh_if_stale)
        except CredentialStoreError:
            raise
        except Exception as e:
            logger.error(f"Failed to refresh vault access token, logging out: {e}")
            await self.logout()
            return None

        return await self.store.get(StorageKeys.ACCESS_TOKEN)

    async def refresh_token(self) -> None:
        """Obtain and store a new token set using the stored refresh token

        Concurrent calls share one request to the refresh endpoint.

        Raises:
            MissingVaultUrlError: No vault origin stored
            MissingRefreshTokenError: No refresh token stored; log in again
            httpx.HTTPError: Transport or server failure, unwrapped
        """
        await self._refresh_flight.run(self._refresh)

    async def _refresh_if_stale(self) -> None:
        # Another flight may have renewed the token since the caller looked
        raw_expiry = await self.store.get(StorageKeys.TOKEN_EXPIRY)
        if should_refresh_access_token(_parse_expiry(raw_expiry), self.expiry_buffer_seconds):
            await self._refresh()

    async def _refresh(self) -> None:
        vault_url, refresh_token = await asyncio.gather(
            self.store.get(StorageKeys.VAULT_URL),
            self.store.get(StorageKeys.REFRESH_TOKEN),
        )
        if not vault_url:
            raise MissingVaultUrlError()
        if not refresh_token:
            raise MissingRefreshTokenError()

        device_id = await self.get_device_id()

        self.state = AuthState.REFRESHING
        try:
            payload = await refresh_vault_tokens(
                vault_url, refresh_token, device_id, transport=self.transport
            )
            await self.store_tokens(payload)
        finally:
            if self.state == AuthState.REFRESHING:
                self.state = AuthState.LOGGED_IN

    # Session state

    async def logout(self) -> None:
        """Delete every session key; the device id is kept"""
        await self.store.delete_many(SESSION_KEYS)
        self.pkce.code_verifier = None
        self.pkce.state = None
        self.state = AuthState.LOGGED_OUT
        logger.info("Logged out of vault")

    async def is_authenticated(self) -> bool:
        """True if an access token is stored, expired or not

        For UI gating only; use get_access_token() before calling the API.
        """
        return await self.store.get(StorageKeys.ACCESS_TOKEN) is not None

    async def get_vault_origin(self) -> Optional[str]:
        return await self.store.get(StorageKeys.VAULT_URL)

    async def get_device_id(self) -> str:
        """Stable device identifier, created on first use and kept across logouts"""
        stored = await self.store.get(StorageKeys.DEVICE_ID)
        if stored:
            return stored

        device_id = _native_device_id() or str(uuid.uuid4())
        await self.store.set(StorageKeys.DEVICE_ID, device_id)
        logger.debug("Generated new device id")
        return device_id

    async def get_credentials(self) -> Optional[SessionCredentials]:
        """Stored session credentials, or None when logged out"""
        vault_url, access_token, refresh_token, raw_expiry = await asyncio.gather(
            self.store.get(StorageKeys.VAULT_URL),
            self.store.get(StorageKeys.ACCESS_TOKEN),
            self.store.get(StorageKeys.REFRESH_TOKEN),
            self.store.get(StorageKeys.TOKEN_EXPIRY),
        )
        if not access_token:
            return None
        return SessionCredentials(
            vault_origin=vault_url,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=_parse_expiry(raw_expiry),
        )

    async def get_status(self) -> Dict[str, Any]:
        """Get authentication status information without exposing secrets

        Returns:
            Dictionary with status information
        """
        credentials = await self.get_credentials()
        if credentials is None:
            return {
                "has_tokens": False,
                "is_expired": True,
                "vault_url": await self.get_vault_origin(),
                "has_refresh_token": False,
                "expires_at": None,
                "time_until_expiry": None,
            }

        expires_at = None
        time_until_expiry = None
        is_expired = False

        if credentials.expires_at is not None:
            expires_dt = datetime.datetime.fromtimestamp(
                credentials.expires_at / 1000, datetime.timezone.utc
            )
            expires_at = expires_dt.isoformat().replace("+00:00", "Z")
            delta = (credentials.expires_at - now_ms()) / 1000
            if delta > 0:
                hours = int(delta // 3600)
                minutes = int((delta % 3600) // 60)
                time_until_expiry = f"{hours}h {minutes}m"
            else:
                time_until_expiry = "expired"
                is_expired = True

        return {
            "has_tokens": True,
            "is_expired": is_expired,
            "vault_url": credentials.vault_origin,
            "has_refresh_token": bool(credentials.refresh_token),
            "expires_at": expires_at,
            "time_until_expiry": time_until_expiry,
        }

    async def _settle_state(self) -> None:
        self.state = AuthState.LOGGED_IN if await self.is_authenticated() else AuthState.LOGGED_OUT
