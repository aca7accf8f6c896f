"""Interactive browser sessions for the authorization step"""

import logging
import webbrowser
from abc import ABC, abstractmethod
from typing import Callable, Optional

from rich.console import Console

from .models import AuthSessionOutcome, AuthSessionResult


logger = logging.getLogger(__name__)


class BrowserAuthSession(ABC):
    """Opens an authorization URL and waits for the redirect back to the app"""

    @abstractmethod
    async def open(self, auth_url: str, redirect_uri: str) -> AuthSessionResult:
        """Run the session until the user finishes or abandons it

        Cancellation and dismissal are outcomes, not errors.
        """


class SystemBrowserAuthSession(BrowserAuthSession):
    """Uses the default system browser and asks for the redirect URL

    Desktop browsers cannot hand a custom-scheme redirect back to a terminal
    process, so the user pastes the URL the browser ended up on.
    """

    def __init__(
        self,
        console: Optional[Console] = None,
        prompt: Callable[[str], str] = input,
    ):
        """Initialize the browser session

        Args:
            console: Rich console for instructions
            prompt: Reads one line of user input (default: input)
        """
        self.console = console or Console()
        self.prompt = prompt

    async def open(self, auth_url: str, redirect_uri: str) -> AuthSessionResult:
        if webbrowser.open(auth_url):
            self.console.print("[green][OK][/green] Browser opened for vault authentication")
        else:
            self.console.print("[yellow]Could not open browser automatically[/yellow]")
            self.console.print(f"Please open this URL manually:\n{auth_url}")

        self.console.print("\nComplete the login in your browser, then paste the URL you were redirected to.")
        self.console.print(f"[dim]It starts with: {redirect_uri}?[/dim]")
        self.console.print("[dim]Leave empty to go back.[/dim]\n")

        # Plain input avoids event loop conflicts with prompt libraries
        try:
            callback_url = self.prompt("Callback URL: ")
        except (KeyboardInterrupt, EOFError):
            logger.debug("Browser authentication cancelled by user")
            return AuthSessionResult(type=AuthSessionOutcome.CANCEL)

        callback_url = (callback_url or "").strip()
        if not callback_url:
            logger.debug("Browser authentication dismissed")
            return AuthSessionResult(type=AuthSessionOutcome.DISMISS)

        if not callback_url.startswith(redirect_uri):
            logger.warning("Pasted URL does not match the app redirect URI")
            return AuthSessionResult(type=AuthSessionOutcome.FAILED, url=callback_url)

        return AuthSessionResult(type=AuthSessionOutcome.SUCCESS, url=callback_url)
