"""
Notifications client.
"""

from typing import Any, Dict, Optional, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..gateway import Gateway


# UI filter name -> query parameter override
FILTER_PARAMS = {
    "unread": ("unreadOnly", "true"),
    "connections": ("type", "connection"),
    "earnings": ("filter", "earnings"),
    "messages": ("type", "message"),
}


class NotificationsClient:
    """Client for the notifications endpoints."""

    def __init__(self, gateway: "Gateway"):
        self.gateway = gateway
        self.logger = get_logger("gateway.notifications_client")

    async def get_notifications(
        self,
        filter: str = "all",
        page: int = 1,
        limit: int = 20,
        type: Optional[str] = None,
        unread_only: bool = False,
    ) -> Any:
        params = {
            "page": str(page),
            "limit": str(limit),
            "unreadOnly": "true" if unread_only else "false",
        }
        if filter in FILTER_PARAMS:
            key, value = FILTER_PARAMS[filter]
            params[key] = value
        if type:
            params["type"] = type
        return await self.gateway.get("/notifications", params=params)

    async def mark_as_read(self, notification_id: str) -> Any:
        return await self.gateway.patch(f"/notifications/{notification_id}/read")

    async def mark_all_as_read(self) -> Any:
        return await self.gateway.patch("/notifications/mark-all-read")

    async def delete_notification(self, notification_id: str) -> Any:
        return await self.gateway.delete(f"/notifications/{notification_id}")

    async def get_unread_count(self) -> Any:
        return await self.gateway.get("/notifications/unread/count")

    async def get_stats(self) -> Any:
        return await self.gateway.get("/notifications/stats")

    async def get_preferences(self) -> Any:
        return await self.gateway.get("/notifications/preferences")

    async def update_preferences(self, preferences: Dict[str, Any]) -> Any:
        return await self.gateway.put("/notifications/preferences", preferences)

    async def subscribe_push(self, subscription: Dict[str, Any]) -> Any:
        return await self.gateway.post("/notifications/push/subscribe", {"subscription": subscription})

    async def unsubscribe_push(self, endpoint: str) -> Any:
        return await self.gateway.post("/notifications/push/unsubscribe", {"endpoint": endpoint})
