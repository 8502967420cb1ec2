"""
Persisted access/refresh credentials.
"""

from typing import Optional

from shared.logging import get_logger
from ..caching.storage import KeyValueStore


TOKEN_KEY = "token"
REFRESH_TOKEN_KEY = "refreshToken"
ADMIN_TOKEN_KEY = "adminToken"
CREATOR_TOKEN_KEY = "creatorToken"
MEMBER_TOKEN_KEY = "memberToken"
USER_ROLE_KEY = "userRole"

# First non-empty token wins
TOKEN_PRECEDENCE = (TOKEN_KEY, ADMIN_TOKEN_KEY, CREATOR_TOKEN_KEY, MEMBER_TOKEN_KEY)

ROLE_TOKEN_KEYS = {
    "admin": ADMIN_TOKEN_KEY,
    "creator": CREATOR_TOKEN_KEY,
    "member": MEMBER_TOKEN_KEY,
}

ALL_CREDENTIAL_KEYS = (
    TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    ADMIN_TOKEN_KEY,
    CREATOR_TOKEN_KEY,
    MEMBER_TOKEN_KEY,
    USER_ROLE_KEY,
)


class CredentialStore:
    """Reads and writes credentials under their fixed storage keys."""

    def __init__(self, store: KeyValueStore):
        self.store = store
        self.logger = get_logger("gateway.credentials")

    async def access_token(self) -> Optional[str]:
        for key in TOKEN_PRECEDENCE:
            value = await self.store.get(key)
            if value:
                return value
        return None

    async def refresh_token(self) -> Optional[str]:
        return await self.store.get(REFRESH_TOKEN_KEY) or None

    async def role(self) -> Optional[str]:
        return await self.store.get(USER_ROLE_KEY) or None

    async def store_tokens(self, token: str, refresh_token: Optional[str] = None):
        """Persist a new access token, and the refresh token only if given."""
        await self.store.set(TOKEN_KEY, token)
        if refresh_token:
            await self.store.set(REFRESH_TOKEN_KEY, refresh_token)

    async def set_role_token(self, role: str, token: str):
        key = ROLE_TOKEN_KEYS.get(role)
        if key:
            await self.store.set(key, token)

    async def set_token(self, token: Optional[str]):
        if token:
            await self.store.set(TOKEN_KEY, token)
        else:
            await self.store.delete(TOKEN_KEY)

    async def set_role(self, role: Optional[str]):
        if role:
            await self.store.set(USER_ROLE_KEY, role)
        else:
            await self.store.delete(USER_ROLE_KEY)

    async def clear(self):
        """Remove every credential and the stored role."""
        for key in ALL_CREDENTIAL_KEYS:
            await self.store.delete(key)
        self.logger.info("Cleared stored credentials")
