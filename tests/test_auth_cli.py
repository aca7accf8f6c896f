import asyncio
import io
from unittest.mock import AsyncMock
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from rich.console import Console

from auth_cli import VaultCLIAuthFlow, validate_vault_url
from vault_oauth import AuthSessionManager, AuthSessionOutcome, CredentialStoreError, StorageKeys
from tests.conftest import ScriptedBrowser


def echo_state(auth_url):
    state = parse_qs(urlsplit(auth_url).query)["state"][0]
    return f"pulse://auth/callback?code=ABC&state={state}"


def run_flow(store, vault, browser, vault_url="https://vault.test"):
    output = io.StringIO()
    session = AuthSessionManager(store=store, browser=browser, transport=vault.transport)
    flow = VaultCLIAuthFlow(session, Console(file=output, width=200))
    ok = asyncio.run(flow.authenticate(vault_url))
    return ok, output.getvalue()


@pytest.mark.parametrize("url", ["", "   ", "vault.example.com", "ftp://vault.example.com"])
def test_invalid_vault_urls(url):
    with pytest.raises(ValueError):
        validate_vault_url(url)


def test_valid_vault_url_is_trimmed():
    assert validate_vault_url(" https://vault.example.com ") == "https://vault.example.com"


def test_successful_login(store, vault):
    ok, output = run_flow(store, vault, ScriptedBrowser(callback_url=echo_state))

    assert ok
    assert "Authentication successful" in output
    assert store.values[StorageKeys.ACCESS_TOKEN] == "A1"


def test_invalid_url_never_opens_browser(store, vault):
    browser = ScriptedBrowser(callback_url=echo_state)

    ok, output = run_flow(store, vault, browser, vault_url="vault.example.com")

    assert not ok
    assert browser.opened == []
    assert "http://" in output


@pytest.mark.parametrize("outcome", [AuthSessionOutcome.CANCEL, AuthSessionOutcome.DISMISS])
def test_user_abort_is_quiet(store, vault, outcome):
    ok, output = run_flow(store, vault, ScriptedBrowser(outcome=outcome))

    assert not ok
    assert "Login cancelled" in output
    assert "Login Failed" not in output and "Login Error" not in output


def test_failed_session_shows_generic_failure(store, vault):
    ok, output = run_flow(store, vault, ScriptedBrowser(outcome=AuthSessionOutcome.FAILED))

    assert not ok
    assert "Authentication could not be completed" in output


def test_server_error_description_is_shown(store, vault):
    vault.token_response = httpx.Response(400, json={"error": "invalid_grant", "error_description": "Code expired"})

    ok, output = run_flow(store, vault, ScriptedBrowser(callback_url=echo_state))

    assert not ok
    assert "Login Error: Code expired" in output


def test_storage_failure_is_not_reported_as_login_error(store, vault):
    session = AuthSessionManager(store=store, browser=ScriptedBrowser(), transport=vault.transport)
    session.start_login = AsyncMock(side_effect=CredentialStoreError("Secure storage unavailable"))
    output = io.StringIO()
    flow = VaultCLIAuthFlow(session, Console(file=output))

    with pytest.raises(CredentialStoreError):
        asyncio.run(flow.authenticate("https://vault.test"))

    assert "Login Error" not in output.getvalue()
