"""Status display functionality for CLI"""

from typing import Any, Dict, List

from rich.table import Table

from uploads import UploadDestination


def show_token_status(status: Dict[str, Any], console):
    """
    Display vault session status

    Args:
        status: AuthSessionManager.get_status() result
        console: Rich console for output
    """
    table = Table(title="Vault Session")
    table.add_column("Property", style="cyan")
    table.add_column("Value")

    table.add_row("Vault URL", status["vault_url"] or "-")
    table.add_row("Has Tokens", "Yes" if status["has_tokens"] else "No")
    table.add_row("Is Expired", "Yes" if status["is_expired"] else "No")
    table.add_row("Refresh Token", "Yes" if status["has_refresh_token"] else "No")

    if status["expires_at"]:
        table.add_row("Expires At", status["expires_at"])
        table.add_row("Time Until Expiry", status["time_until_expiry"])

    console.print(table)


def get_auth_status(status: Dict[str, Any]) -> tuple[str, str]:
    """
    Get authentication status and expiry info

    Args:
        status: AuthSessionManager.get_status() result

    Returns:
        Tuple of (status, detail_message)
    """
    if not status["has_tokens"]:
        return "NO AUTH", "Not logged in"

    if status["is_expired"]:
        if status["has_refresh_token"]:
            return "EXPIRED", "Token expired, will refresh on next use"
        return "EXPIRED", "Token expired, please login again"

    if status["time_until_expiry"]:
        return "VALID", f"Expires in {status['time_until_expiry']}"

    return "VALID", "No expiry reported"


def show_destinations(destinations: List[UploadDestination], console):
    """Display saved upload destinations"""
    if not destinations:
        console.print("[dim]No upload destinations configured.[/dim]")
        return

    table = Table(title="Upload Destinations")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Server")
    table.add_column("Expires At")

    for destination in destinations:
        table.add_row(destination.id, destination.name, destination.server, destination.expires_at)

    console.print(table)
