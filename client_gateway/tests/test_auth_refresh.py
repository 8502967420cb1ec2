"""
Unit tests for credentials and the token refresh coordinator.
"""

import asyncio

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from prometheus_client import CollectorRegistry

from shared.errors import ErrorKind, GatewayError, StorageQuotaExceeded
from shared.metrics import MetricsCollector
from client_gateway.app.auth.credentials import CredentialStore
from client_gateway.app.auth.refresh import AuthRefreshCoordinator, AuthState, LoginRedirector
from client_gateway.app.caching.storage import InMemoryStore
from client_gateway.app.models import TokenPair


class TestCredentialStore:
    """Test cases for CredentialStore."""

    @pytest.fixture
    def store(self):
        return InMemoryStore()

    @pytest.fixture
    def credentials(self, store):
        return CredentialStore(store)

    @pytest.mark.asyncio
    async def test_access_token_precedence(self, credentials, store):
        """General token wins, then admin, creator, member."""
        await store.set("memberToken", "m")
        assert await credentials.access_token() == "m"

        await store.set("creatorToken", "c")
        assert await credentials.access_token() == "c"

        await store.set("adminToken", "a")
        assert await credentials.access_token() == "a"

        await store.set("token", "g")
        assert await credentials.access_token() == "g"

    @pytest.mark.asyncio
    async def test_store_tokens_keeps_refresh_token_when_absent(self, credentials):
        await credentials.store_tokens("t1", "r1")
        await credentials.store_tokens("t2")

        assert await credentials.access_token() == "t2"
        assert await credentials.refresh_token() == "r1"

    @pytest.mark.asyncio
    async def test_clear_removes_everything(self, credentials, store):
        await credentials.store_tokens("t", "r")
        await credentials.set_role("creator")
        await credentials.set_role_token("creator", "t")
        await store.set("api_cache_/a", "{}")

        await credentials.clear()

        assert await credentials.access_token() is None
        assert await credentials.refresh_token() is None
        assert await credentials.role() is None
        assert store.snapshot() == {"api_cache_/a": "{}"}

    @pytest.mark.asyncio
    async def test_set_token_none_deletes(self, credentials):
        await credentials.set_token("t")
        await credentials.set_token(None)

        assert await credentials.access_token() is None


class TestTokenPair:
    """Test cases for TokenPair.from_payload."""

    def test_wrapped_payload(self):
        pair = TokenPair.from_payload({"success": True, "data": {"token": "t", "refreshToken": "r"}})

        assert pair == TokenPair("t", "r")

    def test_flat_payload(self):
        assert TokenPair.from_payload({"token": "t"}) == TokenPair("t")

    @pytest.mark.parametrize("payload", [None, [], {"data": {}}, {"success": False}])
    def test_missing_token_is_rejected(self, payload):
        with pytest.raises(ValueError):
            TokenPair.from_payload(payload)


class TestLoginRedirector:
    """Test cases for LoginRedirector."""

    @pytest.mark.parametrize("path,target", [
        ("/admin/dashboard", "/admin/login"),
        ("/creator/content", "/creator/login"),
        ("/member/browse", "/member/login"),
        ("/", "/member/login"),
        (None, "/member/login"),
    ])
    def test_login_path(self, path, target):
        assert LoginRedirector().login_path(path) == target

    @pytest.mark.asyncio
    async def test_redirect_awaits_async_navigate(self):
        navigate = AsyncMock()
        redirector = LoginRedirector(current_path=lambda: "/creator/uploads", navigate=navigate)

        assert await redirector.redirect() == "/creator/login"
        navigate.assert_awaited_once_with("/creator/login")


class TestAuthRefreshCoordinator:
    """Test cases for AuthRefreshCoordinator."""

    @pytest.fixture
    def credentials(self):
        return CredentialStore(InMemoryStore())

    @pytest.fixture
    def navigate(self):
        return MagicMock()

    @pytest.fixture
    def metrics(self):
        return MetricsCollector("gateway", CollectorRegistry())

    def make_coordinator(self, credentials, refresh_call, navigate, metrics=None):
        redirector = LoginRedirector(current_path=lambda: "/member/home", navigate=navigate)
        return AuthRefreshCoordinator(credentials, refresh_call, redirector, metrics=metrics)

    @pytest.mark.asyncio
    async def test_successful_refresh_stores_new_tokens(self, credentials, navigate, metrics):
        await credentials.store_tokens("old", "refresh-1")
        refresh_call = AsyncMock(return_value=TokenPair("new", "refresh-2"))
        coordinator = self.make_coordinator(credentials, refresh_call, navigate, metrics)

        token = await coordinator.acquire_token()

        assert token == "new"
        assert coordinator.state is AuthState.IDLE
        assert await credentials.access_token() == "new"
        assert await credentials.refresh_token() == "refresh-2"
        refresh_call.assert_awaited_once_with("refresh-1")
        navigate.assert_not_called()
        assert metrics.get_sample_value("gateway_token_refresh_total", {"result": "success"}) == 1

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_refresh(self, credentials, navigate):
        """Only the first caller refreshes; the rest wait for its token."""
        await credentials.store_tokens("old", "refresh-1")
        release = asyncio.Event()

        async def slow_refresh(refresh_token):
            await release.wait()
            return TokenPair("new", "refresh-2")

        refresh_call = AsyncMock(side_effect=slow_refresh)
        coordinator = self.make_coordinator(credentials, refresh_call, navigate)

        tasks = [asyncio.create_task(coordinator.acquire_token()) for _ in range(5)]
        await asyncio.sleep(0)

        assert coordinator.state is AuthState.REFRESHING
        assert coordinator.waiting == 4

        release.set()
        results = await asyncio.gather(*tasks)

        assert results == ["new"] * 5
        assert refresh_call.await_count == 1
        assert coordinator.waiting == 0

    @pytest.mark.asyncio
    async def test_missing_refresh_token_logs_out(self, credentials, navigate):
        await credentials.store_tokens("old")
        refresh_call = AsyncMock()
        coordinator = self.make_coordinator(credentials, refresh_call, navigate)

        with pytest.raises(GatewayError) as exc_info:
            await coordinator.acquire_token()

        assert exc_info.value.kind is ErrorKind.UNAUTHORIZED
        assert exc_info.value.details["reason"] == "missing_refresh_token"
        assert coordinator.state is AuthState.LOGGED_OUT
        assert await credentials.access_token() is None
        refresh_call.assert_not_called()
        navigate.assert_called_once_with("/member/login")

    @pytest.mark.asyncio
    async def test_failed_refresh_rejects_every_waiter(self, credentials, navigate, metrics):
        """A failed refresh logs out once and rejects all parked callers with its error."""
        await credentials.store_tokens("old", "refresh-1")
        release = asyncio.Event()
        refresh_error = GatewayError(ErrorKind.SERVER_ERROR, "Server error. Please try again later.", status_code=503)

        async def failing_refresh(refresh_token):
            await release.wait()
            raise refresh_error

        coordinator = self.make_coordinator(credentials, AsyncMock(side_effect=failing_refresh), navigate, metrics)

        tasks = [asyncio.create_task(coordinator.acquire_token()) for _ in range(3)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(r is refresh_error for r in results)
        assert coordinator.state is AuthState.LOGGED_OUT
        assert await credentials.refresh_token() is None
        navigate.assert_called_once_with("/member/login")
        assert metrics.get_sample_value("gateway_token_refresh_total", {"result": "failure"}) == 1

    @pytest.mark.asyncio
    async def test_unexpected_refresh_failure_is_wrapped(self, credentials, navigate):
        await credentials.store_tokens("old", "refresh-1")
        coordinator = self.make_coordinator(credentials, AsyncMock(side_effect=ValueError("bad body")), navigate)

        with pytest.raises(GatewayError) as exc_info:
            await coordinator.acquire_token()

        assert exc_info.value.kind is ErrorKind.UNAUTHORIZED
        assert exc_info.value.details["refresh_error"] == {"kind": "ValueError", "message": "bad body"}
        assert coordinator.state is AuthState.LOGGED_OUT

    @pytest.mark.asyncio
    async def test_store_failure_settles_waiters_and_logs_out(self, navigate):
        """A credential write failing mid-refresh never leaves the coordinator stuck."""
        store = InMemoryStore()
        credentials = CredentialStore(store)
        await credentials.store_tokens("old", "refresh-1")
        release = asyncio.Event()

        async def slow_refresh(refresh_token):
            await release.wait()
            return TokenPair("new", "refresh-2")

        coordinator = self.make_coordinator(credentials, AsyncMock(side_effect=slow_refresh), navigate)
        tasks = [asyncio.create_task(coordinator.acquire_token()) for _ in range(2)]
        await asyncio.sleep(0)
        assert coordinator.waiting == 1

        with patch.object(store, "set", new=AsyncMock(side_effect=StorageQuotaExceeded())):
            release.set()
            results = await asyncio.wait_for(asyncio.gather(*tasks, return_exceptions=True), timeout=1)

        assert all(isinstance(r, GatewayError) for r in results)
        assert all(r.kind is ErrorKind.UNAUTHORIZED for r in results)
        assert results[0].details["refresh_error"]["kind"] == "StorageQuotaExceeded"
        assert coordinator.state is AuthState.LOGGED_OUT
        assert coordinator.waiting == 0
        navigate.assert_called_once_with("/member/login")

        with pytest.raises(GatewayError) as exc_info:
            await asyncio.wait_for(coordinator.acquire_token(), timeout=1)
        assert exc_info.value.details["reason"] == "logged_out"

    @pytest.mark.asyncio
    async def test_logged_out_rejects_without_refreshing(self, credentials, navigate):
        await credentials.store_tokens("old")
        refresh_call = AsyncMock()
        coordinator = self.make_coordinator(credentials, refresh_call, navigate)

        with pytest.raises(GatewayError):
            await coordinator.acquire_token()
        await credentials.store_tokens("old", "refresh-1")

        with pytest.raises(GatewayError) as exc_info:
            await coordinator.acquire_token()

        assert exc_info.value.details["reason"] == "logged_out"
        refresh_call.assert_not_called()
        assert navigate.call_count == 1

    @pytest.mark.asyncio
    async def test_reset_starts_new_session(self, credentials, navigate):
        await credentials.store_tokens("old")
        coordinator = self.make_coordinator(
            credentials, AsyncMock(return_value=TokenPair("fresh")), navigate
        )
        with pytest.raises(GatewayError):
            await coordinator.acquire_token()

        coordinator.reset()
        await credentials.store_tokens("login-token", "refresh-9")

        assert coordinator.state is AuthState.IDLE
        assert await coordinator.acquire_token() == "fresh"
