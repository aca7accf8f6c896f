"""Secure credential storage for vault OAuth

Credentials live in the operating system's secret store (macOS Keychain,
Windows Credential Manager, Secret Service on Linux) through keyring. There
is no plaintext fallback: when the backend is unavailable every access raises
CredentialStoreError.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

from settings import KEYRING_SERVICE
from .errors import CredentialStoreError


logger = logging.getLogger(__name__)


class StorageKeys:
    """Secure storage key names"""
    VAULT_URL = "auth_vault_url"
    CODE_VERIFIER = "auth_code_verifier"
    STATE = "auth_state"
    ACCESS_TOKEN = "auth_access_token"
    REFRESH_TOKEN = "auth_refresh_token"
    TOKEN_EXPIRY = "auth_token_expiry"
    DEVICE_ID = "auth_device_id"


# Everything logout removes; the device id deliberately survives
SESSION_KEYS = (
    StorageKeys.VAULT_URL,
    StorageKeys.CODE_VERIFIER,
    StorageKeys.STATE,
    StorageKeys.ACCESS_TOKEN,
    StorageKeys.REFRESH_TOKEN,
    StorageKeys.TOKEN_EXPIRY,
)


class CredentialStore(ABC):
    """Async key-value store with confidentiality guarantees

    Reads and writes are atomic per key; nothing wider is locked.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if the key is absent"""

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one"""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key; removing an absent key is a no-op"""

    async def delete_many(self, keys) -> None:
        """Remove several keys concurrently"""
        await asyncio.gather(*(self.delete(key) for key in keys))


class KeyringCredentialStore(CredentialStore):
    """Credential store backed by the OS keychain"""

    def __init__(self, service: Optional[str] = None):
        """Initialize keyring storage

        Args:
            service: Keychain service name (default: KEYRING_SERVICE setting)
        """
        self.service = service or KEYRING_SERVICE

    async def get(self, key: str) -> Optional[str]:
        try:
            return await asyncio.to_thread(keyring.get_password, self.service, key)
        except KeyringError as e:
            logger.error(f"Secure storage read failed for {key}: {e}")
            raise CredentialStoreError(f"Secure storage unavailable: {e}") from e

    async def set(self, key: str, value: str) -> None:
        try:
            await asyncio.to_thread(keyring.set_password, self.service, key, value)
        except KeyringError as e:
            logger.error(f"Secure storage write failed for {key}: {e}")
            raise CredentialStoreError(f"Secure storage unavailable: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(keyring.delete_password, self.service, key)
        except PasswordDeleteError:
            # Not stored
            return
        except KeyringError as e:
            logger.error(f"Secure storage delete failed for {key}: {e}")
            raise CredentialStoreError(f"Secure storage unavailable: {e}") from e
