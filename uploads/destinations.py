"""Saved upload destinations (vault server + destination token)

Stored as one JSON list in a user-only file. At most one destination exists
per normalized server origin; adding a known origin updates that entry.
"""

import asyncio
import datetime
import json
import logging
import os
import platform
import uuid
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from settings import DESTINATION_DEFAULT_TTL_DAYS, DESTINATIONS_FILE
from .tokens import format_timestamp, token_expiry_iso

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}


class UploadDestination(BaseModel):
    """A vault the user can pick at upload time"""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    server: str
    token: str
    expires_at: str = Field(alias="expiresAt")

    def to_storage(self) -> dict:
        return self.model_dump(by_alias=True)


def normalize_origin(server: str) -> str:
    """Reduce a server URL to its origin: scheme + host (+ non-default port)

    Host and scheme are lower-cased; path, query and trailing slash dropped.
    Unparseable input is returned trimmed, without a trailing slash.
    """
    raw = server.strip()
    try:
        parts = urlsplit(raw)
        port = parts.port
    except ValueError:
        return raw.rstrip("/")

    scheme = parts.scheme.lower()
    host = parts.hostname
    if not scheme or not host:
        return raw.rstrip("/")

    if ":" in host:
        host = f"[{host}]"
    if port is not None and DEFAULT_PORTS.get(scheme) != port:
        host = f"{host}:{port}"
    return f"{scheme}://{host}"


class UploadDestinationStore:
    """Persistent list of upload destinations"""

    def __init__(self, path: Optional[str] = None):
        """Initialize destination storage

        Args:
            path: JSON file (default: DESTINATIONS_FILE setting)
        """
        self.path = Path(path if path else DESTINATIONS_FILE)
        self._lock = asyncio.Lock()

    async def list_destinations(self) -> List[UploadDestination]:
        """All destinations in insertion order; empty if none or unreadable"""
        return await asyncio.to_thread(self._read)

    async def add_destination(
        self,
        server: str,
        token: str,
        name: Optional[str] = None,
    ) -> UploadDestination:
        """Add a destination, or update the one for the same server

        Args:
            server: Vault URL; only its origin is kept
            token: Destination token
            name: Display name (default: the normalized origin)

        Returns:
            Stored destination
        """
        normalized = normalize_origin(server)
        expires_at = token_expiry_iso(token) or format_timestamp(
            datetime.datetime.now(datetime.timezone.utc)
            + datetime.timedelta(days=DESTINATION_DEFAULT_TTL_DAYS)
        )
        display_name = (name or "").strip() or normalized

        async with self._lock:
            destinations = await asyncio.to_thread(self._read)
            existing = next(
                (i for i, d in enumerate(destinations) if normalize_origin(d.server) == normalized),
                None,
            )

            destination = UploadDestination(
                id=destinations[existing].id if existing is not None else str(uuid.uuid4()),
                name=display_name,
                server=normalized,
                token=token,
                expires_at=expires_at,
            )
            if existing is not None:
                destinations[existing] = destination
            else:
                destinations.append(destination)

            await asyncio.to_thread(self._write, destinations)

        logger.info(f"Added/updated upload destination {destination.id} for {normalized}")
        return destination

    async def remove_destination(self, destination_id: str) -> bool:
        """Remove a destination by id

        Returns:
            True if a destination was removed
        """
        async with self._lock:
            destinations = await asyncio.to_thread(self._read)
            remaining = [d for d in destinations if d.id != destination_id]
            if len(remaining) == len(destinations):
                return False
            await asyncio.to_thread(self._write, remaining)

        logger.info(f"Removed upload destination {destination_id}")
        return True

    async def get_destination(self, destination_id: str) -> Optional[UploadDestination]:
        for destination in await self.list_destinations():
            if destination.id == destination_id:
                return destination
        return None

    def _read(self) -> List[UploadDestination]:
        if not self.path.exists():
            return []

        try:
            raw = json.loads(self.path.read_text())
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Failed to load upload destinations from {self.path}: {e}")
            return []

        if not isinstance(raw, list):
            logger.error(f"Upload destinations file {self.path} does not hold a list")
            return []

        destinations = []
        for item in raw:
            try:
                destinations.append(UploadDestination.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Skipping malformed upload destination: {e}")
        return destinations

    def _write(self, destinations: List[UploadDestination]) -> None:
        parent_dir = self.path.parent
        if not parent_dir.exists():
            parent_dir.mkdir(parents=True, exist_ok=True)
            # Set directory permissions to 700 on Unix-like systems
            if platform.system() != "Windows":
                os.chmod(parent_dir, 0o700)

        self.path.write_text(json.dumps([d.to_storage() for d in destinations], indent=2))

        # Tokens inside: 600 on Unix-like systems
        if platform.system() != "Windows":
            os.chmod(self.path, 0o600)
