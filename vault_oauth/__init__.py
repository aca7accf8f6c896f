"""Vault OAuth authentication module

Authorization Code + PKCE login against a user-specified vault origin,
secure token persistence and transparent token refresh.
"""

from .models import (
    PkceCodes,
    SessionCredentials,
    AuthState,
    AuthSessionOutcome,
    AuthSessionResult,
    TokenResponse,
)
from .errors import (
    VaultAuthError,
    AuthorizationError,
    MissingCodeError,
    MissingStateError,
    StateMismatchError,
    MissingVaultUrlError,
    MissingVerifierError,
    MissingRefreshTokenError,
    InvalidTokenResponseError,
    TokenExchangeError,
    CredentialStoreError,
    SessionExpiredError,
    describe_login_error,
)
from .pkce import (
    PKCEManager,
    generate_code_verifier,
    generate_code_challenge,
    generate_state,
    generate_pkce,
)
from .authorization import AuthorizationURLBuilder
from .browser import BrowserAuthSession, SystemBrowserAuthSession
from .storage import CredentialStore, KeyringCredentialStore, StorageKeys, SESSION_KEYS
from .single_flight import SingleFlight
from .token_exchange import exchange_code_for_tokens
from .token_refresh import refresh_vault_tokens, should_refresh_access_token
from .token_manager import AuthSessionManager
from .utils import decode_token_payload

__all__ = [
    "PkceCodes",
    "SessionCredentials",
    "AuthState",
    "AuthSessionOutcome",
    "AuthSessionResult",
    "TokenResponse",
    "VaultAuthError",
    "AuthorizationError",
    "MissingCodeError",
    "MissingStateError",
    "StateMismatchError",
    "MissingVaultUrlError",
    "MissingVerifierError",
    "MissingRefreshTokenError",
    "InvalidTokenResponseError",
    "TokenExchangeError",
    "CredentialStoreError",
    "SessionExpiredError",
    "describe_login_error",
    "PKCEManager",
    "generate_code_verifier",
    "generate_code_challenge",
    "generate_state",
    "generate_pkce",
    "AuthorizationURLBuilder",
    "BrowserAuthSession",
    "SystemBrowserAuthSession",
    "CredentialStore",
    "KeyringCredentialStore",
    "StorageKeys",
    "SESSION_KEYS",
    "SingleFlight",
    "exchange_code_for_tokens",
    "refresh_vault_tokens",
    "should_refresh_access_token",
    "AuthSessionManager",
    "decode_token_payload",
]
