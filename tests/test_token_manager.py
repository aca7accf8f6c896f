import asyncio
import time
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from vault_oauth import (
    AuthorizationError,
    AuthSessionManager,
    AuthSessionOutcome,
    AuthState,
    InvalidTokenResponseError,
    MissingCodeError,
    MissingRefreshTokenError,
    MissingStateError,
    StateMismatchError,
    StorageKeys,
    TokenExchangeError,
    generate_code_challenge,
)
from tests.conftest import VAULT_URL, MemoryCredentialStore, ScriptedBrowser, logged_in_values


def callback_for(code):
    """Callback URL echoing the state of the authorize URL"""
    def build(auth_url):
        state = parse_qs(urlsplit(auth_url).query)["state"][0]
        return f"pulse://auth/callback?code={code}&state={state}"
    return build


def now_ms():
    return int(time.time() * 1000)


class TestLogin:
    def test_full_login_scenario(self, store, vault):
        browser = ScriptedBrowser(callback_url=callback_for("ABC"))
        session = AuthSessionManager(store=store, browser=browser, transport=vault.transport)

        async def scenario():
            result = await session.start_login(" https://vault.test/ ")
            verifier = store.values[StorageKeys.CODE_VERIFIER]
            await session.complete_login(result.url)
            return result, verifier

        result, verifier = asyncio.run(scenario())

        assert result.type == AuthSessionOutcome.SUCCESS
        challenge = parse_qs(urlsplit(browser.opened[0]).query)["code_challenge"][0]
        assert challenge == generate_code_challenge(verifier)

        body = vault.body("/oauth/token")
        assert str(vault.calls("/oauth/token")[0].url) == "https://vault.test/oauth/token"
        assert body["grant_type"] == "authorization_code"
        assert body["code"] == "ABC"
        assert body["code_verifier"] == verifier
        assert body["redirect_uri"] == "pulse://auth/callback"
        assert body["client_id"] == "pulse-mobile"
        assert body["device_id"] == "device-1"

        assert store.values[StorageKeys.VAULT_URL] == VAULT_URL
        assert store.values[StorageKeys.ACCESS_TOKEN] == "A1"
        assert store.values[StorageKeys.REFRESH_TOKEN] == "R1"
        assert int(store.values[StorageKeys.TOKEN_EXPIRY]) > now_ms() + 3500 * 1000
        # Verifier and state are single use
        assert StorageKeys.CODE_VERIFIER not in store.values
        assert StorageKeys.STATE not in store.values
        assert session.state == AuthState.LOGGED_IN

    def test_state_mismatch_never_contacts_token_endpoint(self, store, vault, session):
        async def scenario():
            await session.start_login(VAULT_URL)
            await session.complete_login("pulse://auth/callback?code=ABC&state=S2")

        with pytest.raises(StateMismatchError):
            asyncio.run(scenario())

        assert vault.requests == []
        assert StorageKeys.ACCESS_TOKEN not in store.values

    @pytest.mark.parametrize("url, error", [
        ("pulse://auth/callback?error=access_denied&error_description=User+denied", AuthorizationError),
        ("pulse://auth/callback?state=S1", MissingCodeError),
        ("pulse://auth/callback?code=ABC", MissingStateError),
    ])
    def test_invalid_callbacks(self, store, session, url, error):
        store.values[StorageKeys.STATE] = "S1"
        with pytest.raises(error):
            asyncio.run(session.handle_callback(url))

    def test_authorization_error_keeps_server_description(self, session):
        with pytest.raises(AuthorizationError) as exc_info:
            asyncio.run(session.handle_callback(
                "pulse://auth/callback?error=access_denied&error_description=User+denied"
            ))
        assert exc_info.value.description == "User denied"
        assert exc_info.value.error_code == "access_denied"

    def test_exchange_failure_carries_server_detail(self, store, vault, session):
        vault.token_response = httpx.Response(
            400, json={"error": "invalid_grant", "error_description": "Code already used"}
        )
        store.values.update({
            StorageKeys.VAULT_URL: VAULT_URL,
            StorageKeys.CODE_VERIFIER: "v" * 43,
            StorageKeys.STATE: "S1",
        })

        with pytest.raises(TokenExchangeError) as exc_info:
            asyncio.run(session.complete_login("pulse://auth/callback?code=ABC&state=S1"))

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Code already used"
        # Verifier survives a rejected exchange
        assert store.values[StorageKeys.CODE_VERIFIER] == "v" * 43
        assert session.state == AuthState.LOGGED_OUT

    @pytest.mark.parametrize("outcome", [AuthSessionOutcome.CANCEL, AuthSessionOutcome.DISMISS])
    def test_user_abort_is_not_an_error(self, store, vault, outcome):
        session = AuthSessionManager(
            store=store, browser=ScriptedBrowser(outcome=outcome), transport=vault.transport
        )

        result = asyncio.run(session.start_login(VAULT_URL))

        assert result.is_user_abort
        assert vault.requests == []
        assert session.state == AuthState.LOGGED_OUT


class TestStoreTokens:
    def test_missing_access_token_is_rejected(self, store, session):
        with pytest.raises(InvalidTokenResponseError):
            asyncio.run(session.store_tokens({"refresh_token": "R1", "expires_in": 60}))
        assert StorageKeys.REFRESH_TOKEN not in store.values

    def test_optional_fields_leave_previous_refresh_token(self, store, session):
        store.values.update(logged_in_values(expires_at_ms=now_ms() + 10_000))

        asyncio.run(session.store_tokens({"access_token": "A9"}))

        assert store.values[StorageKeys.ACCESS_TOKEN] == "A9"
        assert store.values[StorageKeys.REFRESH_TOKEN] == "R1"
        assert StorageKeys.TOKEN_EXPIRY not in store.values


class TestAccessToken:
    def test_token_outside_buffer_is_returned_without_refresh(self, store, vault, session):
        store.values.update(logged_in_values(expires_at_ms=now_ms() + 120_000))

        assert asyncio.run(session.get_access_token()) == "A1"
        assert vault.requests == []

    def test_token_inside_buffer_is_refreshed(self, store, vault, session):
        store.values.update(logged_in_values(expires_at_ms=now_ms() + 30_000))

        assert asyncio.run(session.get_access_token()) == "A2"

        body = vault.body("/oauth/token/refresh")
        assert body == {
            "grant_type": "refresh_token",
            "refresh_token": "R1",
            "client_id": "pulse-mobile",
            "device_id": "device-1",
        }
        assert store.values[StorageKeys.REFRESH_TOKEN] == "R2"

    def test_token_without_expiry_is_returned_as_is(self, store, vault, session):
        store.values.update(logged_in_values())

        assert asyncio.run(session.get_access_token()) == "A1"
        assert vault.requests == []

    def test_logged_out_returns_none(self, session):
        assert asyncio.run(session.get_access_token()) is None

    def test_refresh_failure_logs_out_and_keeps_device_id(self, store, vault, session):
        vault.refresh_response = httpx.Response(401, json={"error": "invalid_grant"})
        store.values.update(logged_in_values(expires_at_ms=now_ms() - 1000))

        assert asyncio.run(session.get_access_token()) is None

        assert store.values == {StorageKeys.DEVICE_ID: "device-1"}
        assert session.state == AuthState.LOGGED_OUT

    def test_concurrent_callers_share_one_refresh(self, store, vault, session):
        store.values.update(logged_in_values(expires_at_ms=now_ms() - 1000))

        async def scenario():
            return await asyncio.gather(*(session.get_access_token() for _ in range(5)))

        assert asyncio.run(scenario()) == ["A2"] * 5
        assert len(vault.calls("/oauth/token/refresh")) == 1


class TestRefreshToken:
    def test_without_refresh_token_raises(self, store, session):
        store.values.update({StorageKeys.VAULT_URL: VAULT_URL, StorageKeys.ACCESS_TOKEN: "A1"})

        with pytest.raises(MissingRefreshTokenError):
            asyncio.run(session.refresh_token())

    def test_server_errors_propagate_unwrapped(self, store, vault, session):
        vault.refresh_response = httpx.Response(500, json={"error": "server_error"})
        store.values.update(logged_in_values())

        with pytest.raises(httpx.HTTPStatusError):
            asyncio.run(session.refresh_token())
        # refresh_token() alone never ends the session
        assert store.values[StorageKeys.ACCESS_TOKEN] == "A1"

    def test_concurrent_refreshes_collapse(self, store, vault, session):
        store.values.update(logged_in_values())

        async def scenario():
            await asyncio.gather(*(session.refresh_token() for _ in range(3)))

        asyncio.run(scenario())
        assert len(vault.calls("/oauth/token/refresh")) == 1


class TestSessionState:
    def test_logout_keeps_only_device_id(self, store, session):
        store.values.update(logged_in_values(expires_at_ms=now_ms() + 60_000))
        store.values[StorageKeys.STATE] = "S1"

        asyncio.run(session.logout())

        assert store.values == {StorageKeys.DEVICE_ID: "device-1"}

    def test_device_id_is_created_once(self):
        store = MemoryCredentialStore()
        session = AuthSessionManager(store=store, browser=ScriptedBrowser())

        async def scenario():
            return await session.get_device_id(), await session.get_device_id()

        first, second = asyncio.run(scenario())
        assert first == second == store.values[StorageKeys.DEVICE_ID]

    def test_status_hides_secrets(self, store, session):
        store.values.update(logged_in_values(expires_at_ms=now_ms() + 2 * 3600 * 1000))

        status = asyncio.run(session.get_status())

        assert status["has_tokens"] is True
        assert status["is_expired"] is False
        assert status["vault_url"] == VAULT_URL
        assert status["expires_at"].endswith("Z")
        assert status["time_until_expiry"].startswith("1h") or status["time_until_expiry"].startswith("2h")
        assert "A1" not in str(status) and "R1" not in str(status)

    def test_status_when_logged_out(self, session):
        status = asyncio.run(session.get_status())
        assert status["has_tokens"] is False
        assert status["expires_at"] is None


class TestVaultSwitch:
    def test_login_to_another_vault_drops_previous_tokens(self, store, vault):
        store.values.update(logged_in_values(expires_at_ms=now_ms() + 3600 * 1000))
        session = AuthSessionManager(
            store=store, browser=ScriptedBrowser(outcome=AuthSessionOutcome.CANCEL), transport=vault.transport
        )

        asyncio.run(session.start_login("https://other.test"))

        assert store.values[StorageKeys.VAULT_URL] == "https://other.test"
        assert StorageKeys.ACCESS_TOKEN not in store.values
        assert StorageKeys.REFRESH_TOKEN not in store.values
        assert store.values[StorageKeys.DEVICE_ID] == "device-1"
        assert session.state == AuthState.LOGGED_OUT

    def test_abandoned_relogin_to_same_vault_keeps_session(self, store, vault):
        store.values.update(logged_in_values(expires_at_ms=now_ms() + 3600 * 1000))
        session = AuthSessionManager(
            store=store, browser=ScriptedBrowser(outcome=AuthSessionOutcome.DISMISS), transport=vault.transport
        )

        asyncio.run(session.start_login(f"{VAULT_URL}/"))

        assert store.values[StorageKeys.ACCESS_TOKEN] == "A1"
        assert session.state == AuthState.LOGGED_IN
