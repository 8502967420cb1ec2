"""
Single-flight access token refresh.

The coordinator owns a three-state machine:

- IDLE: responses pass through untouched.
- REFRESHING: one refresh call is in flight. Any other request that hits an
  authentication failure parks a future in the waiter list instead of
  starting a second refresh.
- LOGGED_OUT: credentials were cleared and the caller redirected to a login
  surface. Nothing refreshes again until ``reset()`` after a fresh login.

The IDLE -> REFRESHING transition happens before the first ``await`` of a
refresh, so the event loop cannot interleave a second refresh between the
state check and the state change.
"""

import asyncio
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, TYPE_CHECKING

from shared.errors import ErrorKind, GatewayError
from shared.logging import get_logger
from ..domain.error_normalizer import SESSION_EXPIRED_MESSAGE
from ..models import TokenPair
from .credentials import CredentialStore

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


ADMIN_LOGIN_PATH = "/admin/login"
CREATOR_LOGIN_PATH = "/creator/login"
MEMBER_LOGIN_PATH = "/member/login"

RefreshCall = Callable[[str], Awaitable[TokenPair]]


class AuthState(str, Enum):
    """Refresh coordinator states."""
    IDLE = "idle"
    REFRESHING = "refreshing"
    LOGGED_OUT = "logged_out"


def session_expired_error(details: Optional[Dict[str, Any]] = None) -> GatewayError:
    return GatewayError(
        ErrorKind.UNAUTHORIZED,
        SESSION_EXPIRED_MESSAGE,
        status_code=401,
        details=details,
    )


class LoginRedirector:
    """Sends a logged-out caller to the login surface for its section."""

    def __init__(
        self,
        current_path: Optional[Callable[[], Optional[str]]] = None,
        navigate: Optional[Callable[[str], Any]] = None,
    ):
        self.current_path = current_path
        self.navigate = navigate
        self.logger = get_logger("gateway.login_redirector")

    def login_path(self, path: Optional[str] = None) -> str:
        path = path or ""
        if path.startswith("/admin"):
            return ADMIN_LOGIN_PATH
        if path.startswith("/creator"):
            return CREATOR_LOGIN_PATH
        return MEMBER_LOGIN_PATH

    async def redirect(self) -> str:
        current = self.current_path() if self.current_path else None
        target = self.login_path(current)
        self.logger.info("Redirecting to login", current_path=current, target=target)

        if self.navigate is not None:
            result = self.navigate(target)
            if inspect.isawaitable(result):
                await result
        return target


class AuthRefreshCoordinator:
    """Exchanges the refresh credential for a new access credential, once."""

    def __init__(
        self,
        credentials: CredentialStore,
        refresh_call: RefreshCall,
        redirector: Optional[LoginRedirector] = None,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.credentials = credentials
        self.refresh_call = refresh_call
        self.redirector = redirector or LoginRedirector()
        self.metrics = metrics
        self.logger = get_logger("gateway.auth_refresh")

        self._state = AuthState.IDLE
        self._waiters: List[asyncio.Future] = []

    @property
    def state(self) -> AuthState:
        return self._state

    @property
    def waiting(self) -> int:
        return len(self._waiters)

    def reset(self):
        """Start a new session after a fresh login."""
        if self._state is AuthState.REFRESHING:
            return
        self._state = AuthState.IDLE

    async def acquire_token(self) -> str:
        """Return a fresh access token, refreshing at most once concurrently.

        Raises:
            GatewayError: the refresh endpoint's own error when the refresh
                call failed; UNAUTHORIZED when no refresh credential exists,
                the credential store failed, or the session is already
                logged out.
        """
        if self._state is AuthState.REFRESHING:
            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            self.logger.debug("Waiting for in-flight token refresh", waiting=len(self._waiters))
            return await waiter

        if self._state is AuthState.LOGGED_OUT:
            raise session_expired_error({"reason": "logged_out"})

        self._state = AuthState.REFRESHING
        try:
            return await self._refresh()
        except asyncio.CancelledError:
            self._state = AuthState.IDLE
            self._settle(error=session_expired_error({"reason": "refresh_cancelled"}))
            raise
        except GatewayError as error:
            self.logger.error("Token refresh failed", kind=error.kind.value, error=error.message)
            await self._log_out(error)
            raise
        except Exception as exc:
            self.logger.error("Token refresh failed", error=str(exc))
            error = session_expired_error({"reason": "refresh_failed", "refresh_error": _describe(exc)})
            await self._log_out(error)
            raise error from exc

    async def _refresh(self) -> str:
        refresh_token = await self.credentials.refresh_token()
        if not refresh_token:
            raise session_expired_error({"reason": "missing_refresh_token"})

        try:
            pair = await self.refresh_call(refresh_token)
        except Exception:
            self._record("failure")
            raise

        await self.credentials.store_tokens(pair.token, pair.refresh_token)
        self._record("success")
        self._state = AuthState.IDLE
        released = self._settle(token=pair.token)
        self.logger.info("Token refreshed", released_waiters=released)
        return pair.token

    async def _log_out(self, error: GatewayError):
        self._state = AuthState.LOGGED_OUT
        self._settle(error=error)
        try:
            await self.credentials.clear()
        except Exception as exc:
            self.logger.error("Clearing credentials failed", error=str(exc))
        await self.redirector.redirect()

    def _settle(self, token: Optional[str] = None, error: Optional[BaseException] = None) -> int:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if waiter.done():
                continue
            if error is not None:
                waiter.set_exception(error)
            else:
                waiter.set_result(token)
        return len(waiters)

    def _record(self, result: str):
        if self.metrics:
            self.metrics.increment_counter("gateway_token_refresh_total", result=result)


def _describe(exc: Exception) -> Dict[str, Any]:
    if isinstance(exc, GatewayError):
        return {"kind": exc.kind.value, "message": exc.message, "status_code": exc.status_code}
    return {"kind": type(exc).__name__, "message": str(exc)}
