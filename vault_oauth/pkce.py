"""PKCE (Proof Key for Code Exchange) generation and management (RFC 7636)"""

import base64
import hashlib
import secrets
from typing import Optional, Tuple

from .models import PkceCodes
from .storage import CredentialStore, StorageKeys

VERIFIER_BYTES = 32
STATE_BYTES = 16


def base64url_encode(data: bytes) -> str:
    """Base64url encoding without padding"""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def generate_code_verifier() -> str:
    """Generate a high-entropy code verifier

    32 random bytes encode to a 43 character string.
    """
    return base64url_encode(secrets.token_bytes(VERIFIER_BYTES))


def generate_code_challenge(code_verifier: str) -> str:
    """Derive the S256 code challenge: BASE64URL(SHA256(ASCII(code_verifier)))"""
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    return base64url_encode(digest)


def generate_state() -> str:
    """Generate the CSRF state binding an authorize request to its callback"""
    return base64url_encode(secrets.token_bytes(STATE_BYTES))


def generate_pkce() -> PkceCodes:
    """Generate a verifier and its matching challenge"""
    code_verifier = generate_code_verifier()
    return PkceCodes(
        code_verifier=code_verifier,
        code_challenge=generate_code_challenge(code_verifier),
    )


class PKCEManager:
    """Keeps the PKCE verifier and state of one login attempt in secure storage

    The values are written when the authorize URL is built and must survive
    the round trip through the system browser.
    """

    def __init__(self, store: CredentialStore):
        self.store = store
        self.code_verifier: Optional[str] = None
        self.state: Optional[str] = None

    def generate_pkce(self) -> Tuple[str, str]:
        """Generate a fresh verifier, challenge and state for a new attempt

        Returns:
            Tuple of (code_verifier, code_challenge)
        """
        codes = generate_pkce()
        self.code_verifier = codes.code_verifier
        self.state = generate_state()
        return codes.code_verifier, codes.code_challenge

    async def save_pkce(self) -> None:
        """Persist verifier and state for retrieval after the redirect"""
        if not self.code_verifier or not self.state:
            raise ValueError("No PKCE values to save. Call generate_pkce() first.")
        await self.store.set(StorageKeys.CODE_VERIFIER, self.code_verifier)
        await self.store.set(StorageKeys.STATE, self.state)

    async def load_pkce(self) -> Tuple[Optional[str], Optional[str]]:
        """Load saved PKCE values

        Returns:
            Tuple of (code_verifier, state), either may be None
        """
        self.code_verifier = await self.store.get(StorageKeys.CODE_VERIFIER)
        self.state = await self.store.get(StorageKeys.STATE)
        return self.code_verifier, self.state

    async def clear_pkce(self) -> None:
        """Erase PKCE values once consumed"""
        await self.store.delete_many((StorageKeys.CODE_VERIFIER, StorageKeys.STATE))
        self.code_verifier = None
        self.state = None
