"""CLI entry point and argument parsing"""

import argparse
import asyncio
import sys

import httpx
from rich.console import Console
from rich.prompt import Prompt

import settings
from auth_cli import VaultCLIAuthFlow
from cli.status_display import get_auth_status, show_destinations, show_token_status
from deep_links import DeepLinkDispatcher, DeepLinkKind
from uploads import UploadDestinationStore
from utils import configure_logging
from vault_oauth import AuthSessionManager, CredentialStoreError, SystemBrowserAuthSession, VaultAuthError


console = Console()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pulse-vault", description="Pulse vault client CLI")
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    login = subparsers.add_parser("login", help="Log in to a vault in the browser")
    login.add_argument("--vault", default=None, help="Vault URL, e.g. https://vault.example.com")

    subparsers.add_parser("logout", help="Forget the stored session")
    subparsers.add_parser("status", help="Show session status")
    subparsers.add_parser("refresh", help="Refresh the access token now")
    subparsers.add_parser("token", help="Check that a valid access token is available")

    destinations = subparsers.add_parser("destinations", help="Manage upload destinations")
    destination_commands = destinations.add_subparsers(dest="destinations_command", required=True)
    destination_commands.add_parser("list", help="List upload destinations")
    add = destination_commands.add_parser("add", help="Add or update an upload destination")
    add.add_argument("server", help="Vault server URL")
    add.add_argument("token", help="Destination token")
    add.add_argument("--name", default=None, help="Display name")
    remove = destination_commands.add_parser("remove", help="Remove an upload destination")
    remove.add_argument("id", help="Destination id")

    open_link = subparsers.add_parser("open-link", help="Handle an app link (OAuth callback or upload link)")
    open_link.add_argument("url", help="Link URL")

    return parser


async def run_login(session: AuthSessionManager, vault_url: str) -> int:
    flow = VaultCLIAuthFlow(session, console)
    return 0 if await flow.authenticate(vault_url) else 1


async def run_status(session: AuthSessionManager) -> int:
    status = await session.get_status()
    label, detail = get_auth_status(status)
    console.print(f"[bold]{label}[/bold] {detail}")
    show_token_status(status, console)
    return 0


async def run_refresh(session: AuthSessionManager) -> int:
    try:
        await session.refresh_token()
    except VaultAuthError as e:
        console.print(f"[red]Refresh failed:[/red] {e.message}")
        return 1
    except httpx.HTTPStatusError as e:
        console.print(f"[red]Refresh failed:[/red] HTTP {e.response.status_code}. Please login again")
        return 1
    except httpx.HTTPError as e:
        console.print(f"[red]Network error during token refresh:[/red] {e}")
        return 1

    status = await session.get_status()
    console.print(f"[green][OK][/green] Token refreshed. Valid for: {status['time_until_expiry'] or 'unknown'}")
    return 0


async def run_token(session: AuthSessionManager) -> int:
    if await session.get_access_token():
        console.print("[green][OK][/green] A valid access token is available")
        return 0
    console.print("[yellow]No valid access token. Please login.[/yellow]")
    return 1


async def run_destinations(args, destinations: UploadDestinationStore) -> int:
    if args.destinations_command == "list":
        show_destinations(await destinations.list_destinations(), console)
        return 0

    if args.destinations_command == "add":
        destination = await destinations.add_destination(args.server, args.token, args.name)
        console.print(f"[green][OK][/green] Saved destination [cyan]{destination.name}[/cyan] ({destination.id})")
        return 0

    if await destinations.remove_destination(args.id):
        console.print(f"[green][OK][/green] Removed destination {args.id}")
        return 0
    console.print(f"[yellow]No destination with id {args.id}[/yellow]")
    return 1


async def run_open_link(session: AuthSessionManager, destinations: UploadDestinationStore, url: str) -> int:
    dispatcher = DeepLinkDispatcher(session, destinations)
    result = await dispatcher.dispatch(url)

    if result.kind == DeepLinkKind.IGNORED:
        console.print("[dim]Link not recognised, nothing to do.[/dim]")
        return 1
    if not result.ok:
        console.print(f"[red]{result.message}[/red]")
        return 1
    if result.kind == DeepLinkKind.UPLOAD:
        console.print(f"Upload requested for draft [cyan]{result.params['draftId']}[/cyan]")
        return 0

    console.print(f"[green][OK][/green] {result.message}")
    return 0


async def run(args) -> int:
    session = AuthSessionManager(browser=SystemBrowserAuthSession(console=console))
    destinations = UploadDestinationStore()

    if args.command == "login":
        vault_url = args.vault or settings.DEFAULT_VAULT_URL or Prompt.ask("Vault URL", console=console)
        return await run_login(session, vault_url)
    if args.command == "logout":
        await session.logout()
        console.print("[green][OK][/green] Logged out")
        return 0
    if args.command == "status":
        return await run_status(session)
    if args.command == "refresh":
        return await run_refresh(session)
    if args.command == "token":
        return await run_token(session)
    if args.command == "destinations":
        return await run_destinations(args, destinations)
    return await run_open_link(session, destinations, args.url)


def main(argv=None):
    """Entry point for the CLI"""
    args = build_parser().parse_args(argv)
    configure_logging(settings.LOG_LEVEL, debug=args.debug, log_file=settings.DEBUG_LOG_FILE)

    try:
        exit_code = asyncio.run(run(args))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        exit_code = 130
    except CredentialStoreError as e:
        console.print(f"[red]Secure storage error:[/red] {e.message}")
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
