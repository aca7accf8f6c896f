"""Exceptions raised by the vault OAuth client

All exceptions inherit from VaultAuthError. Transport and server failures
during token refresh are not wrapped: they surface as httpx exceptions so the
caller can tell a network error from a rejected refresh token.
"""

from typing import Optional


class VaultAuthError(Exception):
    """Base exception for all vault authentication errors

    Attributes:
        message: Human-readable error description
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class AuthorizationError(VaultAuthError):
    """The authorization server returned an error in the callback"""

    def __init__(self, description: str, error_code: Optional[str] = None) -> None:
        self.description = description
        self.error_code = error_code
        super().__init__(f"Authorization error: {description}")


class MissingCodeError(VaultAuthError):
    """Callback URL has no authorization code"""

    def __init__(self) -> None:
        super().__init__("Callback URL is missing the authorization code.")


class MissingStateError(VaultAuthError):
    """Callback URL has no state parameter"""

    def __init__(self) -> None:
        super().__init__("Callback URL is missing the state parameter.")


class StateMismatchError(VaultAuthError):
    """Returned state does not match the stored one (possible CSRF)"""

    def __init__(self) -> None:
        super().__init__("State mismatch - possible CSRF attack detected.")


class MissingVaultUrlError(VaultAuthError):
    """No vault origin in secure storage"""

    def __init__(self) -> None:
        super().__init__("No vault URL found in secure storage.")


class MissingVerifierError(VaultAuthError):
    """No PKCE code verifier in secure storage"""

    def __init__(self) -> None:
        super().__init__("No code_verifier found in secure storage.")


class MissingRefreshTokenError(VaultAuthError):
    """No refresh token stored; the user must log in again"""

    def __init__(self) -> None:
        super().__init__("No refresh token found - user must log in again.")


class InvalidTokenResponseError(VaultAuthError):
    """Token endpoint payload is unusable"""


class TokenExchangeError(VaultAuthError):
    """Authorization code exchange failed

    Attributes:
        status_code: HTTP status of the token endpoint, None for transport errors
        detail: Server-provided error_description (or error code) when available
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        detail: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class CredentialStoreError(VaultAuthError):
    """OS-backed secure storage is unavailable or failed"""


class SessionExpiredError(VaultAuthError):
    """The session could not be renewed; re-authentication is required"""


def describe_login_error(error: Exception) -> str:
    """Most specific message for a failed login

    Server-provided detail first, then the error's own message, then a
    generic fallback.
    """
    if isinstance(error, TokenExchangeError) and error.detail:
        return error.detail
    if isinstance(error, VaultAuthError):
        return error.message
    return str(error) or "An unexpected error occurred."
