"""
Auth client for login, logout and current-user lookups.
"""

from typing import Any, Dict, Optional, TYPE_CHECKING

from shared.errors import ErrorKind, GatewayError
from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..gateway import Gateway


LOGIN_PATHS = {
    "member": "/auth/login",
    "creator": "/auth/creator/login",
    "admin": "/auth/admin/login",
}
LOGOUT_PATH = "/auth/logout"


class AuthClient:
    """Client for the authentication endpoints."""

    def __init__(self, gateway: "Gateway"):
        self.gateway = gateway
        self.logger = get_logger("gateway.auth_client")

    async def login(
        self,
        email: str,
        password: str,
        role: str = "member",
        *,
        remember_me: bool = False,
        device_info: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Log in and persist the returned credentials for ``role``.

        Raises:
            ValueError: unknown role.
            GatewayError: the login call failed.
        """
        path = LOGIN_PATHS.get(role)
        if path is None:
            raise ValueError(f"Unknown role: {role}")

        body: Dict[str, Any] = {"email": email, "password": password, "rememberMe": remember_me}
        if device_info:
            body["deviceInfo"] = device_info

        response = await self.gateway.post(path, body, queue_if_offline=False, cache=False) or {}
        token = response.get("token")
        if token:
            await self.gateway.login(token, response.get("refreshToken"), role)
            self.logger.info("Logged in", role=role)
        else:
            self.logger.warning("Login response carried no token", role=role)
        return response

    async def logout(self):
        """Tell the server, then drop local credentials and cached responses.

        Local state is cleared even when the server call fails.
        """
        try:
            if await self.gateway.credentials.access_token():
                await self.gateway.post(LOGOUT_PATH, {}, queue_if_offline=False)
        except GatewayError as e:
            self.logger.warning("Logout call failed, clearing local session", kind=e.kind.value)
        finally:
            await self.gateway.logout()

    async def me(self) -> Any:
        role = await self.gateway.credentials.role()
        if not role:
            raise GatewayError(ErrorKind.UNAUTHORIZED, "No user role found", status_code=401)
        path = "/auth/admin/me" if role == "admin" else "/auth/me"
        return await self.gateway.get(path)
