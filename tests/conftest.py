"""Shared fixtures: in-memory secure storage, scripted browser, fake vault"""

import asyncio
import json
from typing import Dict, List, Optional

import httpx
import pytest

from vault_oauth import (
    AuthSessionManager,
    AuthSessionOutcome,
    AuthSessionResult,
    BrowserAuthSession,
    CredentialStore,
    StorageKeys,
)

VAULT_URL = "https://vault.test"


class MemoryCredentialStore(CredentialStore):
    """Dict-backed store that yields to the loop on every access like a real backend"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.values: Dict[str, str] = dict(initial or {})

    async def get(self, key):
        await asyncio.sleep(0)
        return self.values.get(key)

    async def set(self, key, value):
        await asyncio.sleep(0)
        self.values[key] = value

    async def delete(self, key):
        await asyncio.sleep(0)
        self.values.pop(key, None)


class ScriptedBrowser(BrowserAuthSession):
    """Records the authorize URL and answers with a prepared outcome"""

    def __init__(self, outcome=AuthSessionOutcome.SUCCESS, callback_url=None):
        self.outcome = outcome
        self.callback_url = callback_url
        self.opened: List[str] = []

    async def open(self, auth_url, redirect_uri):
        self.opened.append(auth_url)
        url = self.callback_url
        if callable(url):
            url = url(auth_url)
        return AuthSessionResult(type=self.outcome, url=url)


class FakeVault:
    """Token endpoints of a vault, served through httpx.MockTransport"""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.token_response = httpx.Response(
            200, json={"access_token": "A1", "refresh_token": "R1", "expires_in": 3600}
        )
        self.refresh_response = httpx.Response(
            200, json={"access_token": "A2", "refresh_token": "R2", "expires_in": 3600}
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.path == "/oauth/token":
            return self.token_response
        if request.url.path == "/oauth/token/refresh":
            return self.refresh_response
        return httpx.Response(404, json={"error": "not_found"})

    def calls(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def body(self, path: str, index: int = 0) -> dict:
        return json.loads(self.calls(path)[index].content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def store():
    return MemoryCredentialStore({StorageKeys.DEVICE_ID: "device-1"})


@pytest.fixture
def vault():
    return FakeVault()


@pytest.fixture
def browser():
    return ScriptedBrowser()


@pytest.fixture
def session(store, vault, browser):
    return AuthSessionManager(store=store, browser=browser, transport=vault.transport)


def logged_in_values(expires_at_ms: Optional[int] = None, refresh_token: str = "R1") -> Dict[str, str]:
    """Storage contents of a logged-in session"""
    values = {
        StorageKeys.VAULT_URL: VAULT_URL,
        StorageKeys.ACCESS_TOKEN: "A1",
        StorageKeys.REFRESH_TOKEN: refresh_token,
        StorageKeys.DEVICE_ID: "device-1",
    }
    if expires_at_ms is not None:
        values[StorageKeys.TOKEN_EXPIRY] = str(expires_at_ms)
    return values
