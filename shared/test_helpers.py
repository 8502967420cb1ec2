"""
Test helper functions and factory methods for the Creator Platform client layer.
"""

import inspect
import uuid
from collections import defaultdict, deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Deque, DefaultDict, Dict, List, Tuple, Union

import httpx
import jwt


@dataclass
class TestUser:
    """A platform account used in tests."""
    user_id: str
    username: str
    email: str
    role: str
    password: str = "password123"


@dataclass
class TestToken:
    """Access and refresh tokens issued together."""
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: str = "Bearer"


class TestDataFactory:
    """Canned API payloads for connections, notifications and users."""

    @staticmethod
    def create_test_users() -> List[TestUser]:
        """Create one user per role."""
        return [
            TestUser(user_id="member-1", username="jamie.fan", email="jamie@example.com", role="member"),
            TestUser(user_id="creator-1", username="studio.rae", email="rae@example.com", role="creator"),
            TestUser(user_id="admin-1", username="ops", email="ops@example.com", role="admin"),
        ]

    @staticmethod
    def create_test_connections() -> List[Dict[str, Any]]:
        return [
            {
                "_id": "conn-1",
                "status": "active",
                "connectionType": "subscriber",
                "otherUser": {"username": "studio.rae", "displayName": "Rae"},
                "totalSpent": 42.5,
                "isPinned": True,
            },
            {
                "_id": "conn-2",
                "status": "pending",
                "connectionType": "standard",
                "otherUser": {"username": "night.owl", "displayName": "Owl"},
                "totalSpent": 0,
                "isPinned": False,
            },
        ]

    @staticmethod
    def create_connection_stats() -> Dict[str, Any]:
        return {"success": True, "data": {"total": 2, "active": 1, "pending": 1, "blocked": 0}}

    @staticmethod
    def create_test_notifications() -> List[Dict[str, Any]]:
        return [
            {"_id": "notif-1", "type": "tip", "title": "New tip", "read": False},
            {"_id": "notif-2", "type": "message", "title": "New message", "read": True},
        ]


class MockTokenGenerator:
    """HS256 tokens shaped like the platform's session tokens."""

    def __init__(self, issuer: str = "https://api.test", secret: str = "mock-secret"):
        self.issuer = issuer
        self.secret = secret

    def _sign(self, user: TestUser, lifetime: int, **claims) -> str:
        issued = datetime.now(timezone.utc)
        claims.update(
            iss=self.issuer,
            sub=user.user_id,
            iat=int(issued.timestamp()),
            exp=int((issued + timedelta(seconds=lifetime)).timestamp()),
            jti=uuid.uuid4().hex,
        )
        return jwt.encode(claims, self.secret, algorithm="HS256")

    def generate_access_token(self, user: TestUser, expires_in: int = 3600) -> str:
        return self._sign(user, expires_in, email=user.email, role=user.role)

    def generate_refresh_token(self, user: TestUser, expires_in: int = 2592000) -> str:
        return self._sign(user, expires_in, typ="Refresh")

    def generate_token_pair(self, user: TestUser) -> TestToken:
        return TestToken(
            access_token=self.generate_access_token(user),
            refresh_token=self.generate_refresh_token(user),
            expires_in=3600,
        )

    def decode(self, token: str) -> Dict[str, Any]:
        return jwt.decode(token, self.secret, algorithms=["HS256"])


Scripted = Union[httpx.Response, Exception, Callable[[httpx.Request], Any]]


class ScriptedBackend:
    """Route table for ``httpx.MockTransport`` that records every request.

    Each route holds a script of responses consumed in order; the last entry
    repeats. An exception instance is raised instead of returned, and a
    callable is invoked with the request (and awaited if it returns an
    awaitable).
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Deque[Scripted]] = {}
        self.calls: List[httpx.Request] = []
        self.hits: DefaultDict[Tuple[str, str], int] = defaultdict(int)

    def add(self, method: str, path: str, *script: Scripted) -> "ScriptedBackend":
        self.routes[(method.upper(), path)] = deque(script)
        return self

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        key = (request.method, request.url.path)
        self.hits[key] += 1

        script = self.routes.get(key)
        if not script:
            return httpx.Response(404, json={"message": "Not Found"})

        step = script.popleft() if len(script) > 1 else script[0]
        if isinstance(step, Exception):
            raise step
        if callable(step):
            step = step(request)
            if inspect.isawaitable(step):
                step = await step
        if isinstance(step, httpx.Response):
            # Responses are single-use
            return httpx.Response(step.status_code, headers=step.headers, content=step.content)
        return step

    def calls_to(self, method: str, path: str) -> List[httpx.Request]:
        return [c for c in self.calls if c.method == method.upper() and c.url.path == path]


def connect_error(message: str = "network unreachable") -> httpx.ConnectError:
    return httpx.ConnectError(message)


class TestEnvironment:
    """Test environment configuration."""

    @staticmethod
    def get_mock_config() -> Dict[str, Any]:
        """Get mock environment configuration."""
        return {
            "GATEWAY_ENV": "test",
            "GATEWAY_LOG_LEVEL": "debug",
            "GATEWAY_API_BASE_URL": "https://api.test",
            "GATEWAY_SOCKET_URL": "wss://api.test/socket",
            "GATEWAY_CACHE_TTL_SECONDS": "300",
            "GATEWAY_TIMEZONE": "Europe/London",
        }


# Global instances for easy access
test_data_factory = TestDataFactory()
mock_token_generator = MockTokenGenerator()
test_environment = TestEnvironment()
