"""Routing for inbound app links

Three kinds of URL reach the app:
- the OAuth redirect (pulse://auth/callback?code=...&state=...)
- destination setup (...?mode=configure_destination&server=...&token=...[&name=...])
- per-draft upload (...?mode=upload&draftId=<uuid-v4>&server=...&token=...)
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional

from settings import REDIRECT_URI
from uploads import UploadDestinationStore
from vault_oauth import AuthSessionManager, CredentialStoreError, VaultAuthError, describe_login_error
from vault_oauth.utils import query_params

logger = logging.getLogger(__name__)

UUID_V4_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-4[0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)

UploadHandler = Callable[[str, str, str], Awaitable[None]]


class DeepLinkKind(str, Enum):
    AUTH_CALLBACK = "auth_callback"
    CONFIGURE_DESTINATION = "configure_destination"
    UPLOAD = "upload"
    SERVER_NOT_SETUP = "server_not_setup"
    IGNORED = "ignored"


@dataclass
class DeepLinkResult:
    """What a link did

    Attributes:
        kind: Route the link took
        ok: False when the routed operation failed
        message: User-facing summary
        params: Link parameters passed on (for upload routes)
    """
    kind: DeepLinkKind
    ok: bool = True
    message: str = ""
    params: Dict[str, str] = field(default_factory=dict)


def is_auth_callback(url: str) -> bool:
    return url.startswith(REDIRECT_URI)


def is_uuid_v4(value: Optional[str]) -> bool:
    return bool(value and UUID_V4_PATTERN.match(value))


class DeepLinkDispatcher:
    """Sends each inbound link to the component that owns it"""

    def __init__(
        self,
        session: AuthSessionManager,
        destinations: UploadDestinationStore,
        upload_handler: Optional[UploadHandler] = None,
    ):
        """Initialize the dispatcher

        Args:
            session: Completes OAuth callbacks
            destinations: Receives destination setup links
            upload_handler: Upload collaborator called with (draft_id, server, token)
        """
        self.session = session
        self.destinations = destinations
        self.upload_handler = upload_handler

    async def dispatch(self, url: str) -> DeepLinkResult:
        url = url.strip()

        if is_auth_callback(url):
            return await self._handle_auth_callback(url)

        params = query_params(url)
        mode = params.get("mode")
        if mode == "configure_destination":
            return await self._handle_configure_destination(params)
        if mode == "upload":
            return await self._handle_upload(params)

        logger.debug("Ignoring link with no known route")
        return DeepLinkResult(kind=DeepLinkKind.IGNORED)

    async def _handle_auth_callback(self, url: str) -> DeepLinkResult:
        try:
            await self.session.complete_login(url)
        except CredentialStoreError:
            raise
        except VaultAuthError as e:
            logger.error(f"OAuth callback failed: {e}")
            return DeepLinkResult(
                kind=DeepLinkKind.AUTH_CALLBACK,
                ok=False,
                message=describe_login_error(e),
            )
        return DeepLinkResult(kind=DeepLinkKind.AUTH_CALLBACK, message="Logged in to vault.")

    async def _handle_configure_destination(self, params: Dict[str, str]) -> DeepLinkResult:
        server = params.get("server")
        token = params.get("token")
        if not server or not token:
            logger.warning("Destination link missing server or token")
            return DeepLinkResult(
                kind=DeepLinkKind.CONFIGURE_DESTINATION,
                ok=False,
                message="Destination link is missing the server or token.",
            )

        destination = await self.destinations.add_destination(server, token, params.get("name"))
        return DeepLinkResult(
            kind=DeepLinkKind.CONFIGURE_DESTINATION,
            message="Upload destination added. You can choose it when uploading a video.",
            params={"id": destination.id, "server": destination.server},
        )

    async def _handle_upload(self, params: Dict[str, str]) -> DeepLinkResult:
        draft_id = params.get("draftId")
        server = params.get("server")
        token = params.get("token")

        if not (is_uuid_v4(draft_id) and server and token):
            passed_on = {key: value for key, value in (("server", server), ("token", token)) if value}
            return DeepLinkResult(
                kind=DeepLinkKind.SERVER_NOT_SETUP,
                ok=False,
                message="This server is not set up for uploads.",
                params=passed_on,
            )

        if self.upload_handler is not None:
            await self.upload_handler(draft_id, server, token)
        return DeepLinkResult(
            kind=DeepLinkKind.UPLOAD,
            params={"draftId": draft_id, "server": server, "token": token},
        )
