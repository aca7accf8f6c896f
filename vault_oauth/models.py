"""Data models for vault OAuth authentication"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


@dataclass
class PkceCodes:
    """PKCE (Proof Key for Code Exchange) codes for OAuth flow

    Attributes:
        code_verifier: Random string used to generate code_challenge
        code_challenge: SHA256 hash of code_verifier, sent in auth request
    """
    code_verifier: str
    code_challenge: str


@dataclass
class SessionCredentials:
    """Session tokens as held in secure storage

    Attributes:
        vault_origin: Vault the tokens were issued by
        access_token: Bearer token for API authentication
        refresh_token: Token for refreshing expired access tokens
        expires_at: Absolute expiry in milliseconds since the epoch
    """
    vault_origin: Optional[str]
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[int] = None


class AuthState(str, Enum):
    """Lifecycle of a vault session"""
    LOGGED_OUT = "logged_out"
    LOGIN_STARTED = "login_started"
    AWAITING_CALLBACK = "awaiting_callback"
    EXCHANGING = "exchanging"
    LOGGED_IN = "logged_in"
    REFRESHING = "refreshing"


class AuthSessionOutcome(str, Enum):
    """How an interactive browser session ended"""
    SUCCESS = "success"
    CANCEL = "cancel"
    DISMISS = "dismiss"
    FAILED = "failed"


@dataclass
class AuthSessionResult:
    """Result of an interactive browser authentication session

    Attributes:
        type: Outcome of the session
        url: Redirect URL the browser landed on (only for SUCCESS)
    """
    type: AuthSessionOutcome
    url: Optional[str] = None

    @property
    def is_user_abort(self) -> bool:
        return self.type in (AuthSessionOutcome.CANCEL, AuthSessionOutcome.DISMISS)


class TokenResponse(BaseModel):
    """Token endpoint response body (exchange and refresh)"""
    model_config = ConfigDict(extra="allow")

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[float] = None
    token_type: Optional[str] = None
