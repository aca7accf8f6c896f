"""Vault OAuth authentication CLI flow"""

import logging
import re

from rich.console import Console

from vault_oauth import (
    AuthSessionManager,
    AuthSessionOutcome,
    CredentialStoreError,
    VaultAuthError,
    describe_login_error,
)

logger = logging.getLogger(__name__)

VAULT_URL_PATTERN = re.compile(r"^https?://", re.IGNORECASE)


def validate_vault_url(vault_url: str) -> str:
    """Check a user-entered vault URL

    Args:
        vault_url: Raw input

    Returns:
        The trimmed URL

    Raises:
        ValueError: Empty, or not an http(s) URL
    """
    vault_url = (vault_url or "").strip()
    if not vault_url:
        raise ValueError("Vault URL is required.")
    if not VAULT_URL_PATTERN.match(vault_url):
        raise ValueError("Vault URL must start with http:// or https://")
    return vault_url


class VaultCLIAuthFlow:
    """Handle vault OAuth authentication flow in CLI"""

    def __init__(self, session: AuthSessionManager, console: Console):
        self.session = session
        self.console = console

    async def authenticate(self, vault_url: str) -> bool:
        """Run the vault OAuth authentication flow

        Args:
            vault_url: Vault origin entered by the user

        Returns:
            True if successful, False otherwise
        """
        try:
            vault_url = validate_vault_url(vault_url)
        except ValueError as e:
            self.console.print(f"[red]{e}[/red]")
            return False

        logger.debug(f"Starting authentication flow against {vault_url}")
        self.console.print(f"\n[bold]Step 1:[/bold] Authorizing with [cyan]{vault_url}[/cyan]...")

        try:
            result = await self.session.start_login(vault_url)

            if result.is_user_abort:
                # Backing out of the browser is not a failure
                self.console.print("[dim]Login cancelled.[/dim]")
                return False

            if result.type != AuthSessionOutcome.SUCCESS or not result.url:
                self.console.print(
                    "[red]Login Failed:[/red] Authentication could not be completed. Please try again."
                )
                return False

            self.console.print("\n[bold]Step 2:[/bold] Exchanging code for tokens...")
            await self.session.complete_login(result.url)

        except CredentialStoreError:
            raise
        except VaultAuthError as e:
            logger.error(f"Vault login failed: {e}")
            self.console.print(f"[red]Login Error:[/red] {describe_login_error(e)}")
            return False

        self.console.print("[green][OK][/green] Authentication successful!")
        return True
