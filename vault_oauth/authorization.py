"""OAuth authorization URL construction for the vault"""

from urllib.parse import urlencode

from settings import AUTHORIZE_PATH, CLIENT_ID, REDIRECT_URI
from .pkce import PKCEManager
from .utils import join_vault_url


class AuthorizationURLBuilder:
    """Builds OAuth authorization URLs with PKCE for a vault origin"""

    def __init__(self, pkce_manager: PKCEManager):
        self.pkce = pkce_manager

    async def get_authorize_url(self, vault_url: str) -> str:
        """Construct the authorize URL for a fresh login attempt

        Generates and persists a new verifier and state before returning.

        Args:
            vault_url: Vault origin, e.g. https://vault.example.com

        Returns:
            Full authorization URL
        """
        _, code_challenge = self.pkce.generate_pkce()

        # Save PKCE values for the token exchange after the redirect
        await self.pkce.save_pkce()

        params = {
            "response_type": "code",
            "client_id": CLIENT_ID,
            "redirect_uri": REDIRECT_URI,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
            "state": self.pkce.state,
        }

        return f"{join_vault_url(vault_url, AUTHORIZE_PATH)}?{urlencode(params)}"
