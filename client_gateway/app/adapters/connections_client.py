"""
Connections client for member/creator connections, swipes and messages.
"""

from typing import Any, Dict, Iterable, Optional, TYPE_CHECKING

from shared.logging import get_logger

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from ..gateway import Gateway


class ConnectionsClient:
    """Client for the connections endpoints."""

    def __init__(self, gateway: "Gateway"):
        self.gateway = gateway
        self.logger = get_logger("gateway.connections_client")

    async def get_connections(
        self,
        status: Optional[str] = None,
        type: Optional[str] = None,
        search: Optional[str] = None,
        sort: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """List connections; empty filters are left out of the query."""
        filters = {
            "status": status,
            "type": type,
            "search": search,
            "sort": sort,
            "page": page,
            "limit": limit,
        }
        params = {key: value for key, value in filters.items() if value}

        response = await self.gateway.get("/connections", params=params) or {}
        return {
            "success": True,
            "connections": response.get("connections") or [],
            "stats": response.get("stats") or {},
            "total": response.get("total") or 0,
        }

    async def get_connection_stats(self) -> Any:
        return await self.gateway.get("/connections/stats")

    async def delete_connection(self, connection_id: str) -> Any:
        return await self.gateway.delete(f"/connections/{connection_id}")

    async def bulk_delete_connections(self, connection_ids: Iterable[str]) -> Any:
        ids = list(connection_ids)
        self.logger.info("Bulk deleting connections", count=len(ids))
        return await self.gateway.post("/connections/bulk", {"action": "delete", "connectionIds": ids})

    async def accept_connection(self, connection_id: str) -> Any:
        return await self.gateway.post(f"/connections/{connection_id}/accept")

    async def decline_connection(self, connection_id: str) -> Any:
        return await self.gateway.post(f"/connections/{connection_id}/decline")

    async def pin_connection(self, connection_id: str, pin: bool = True) -> Any:
        return await self.gateway.put(f"/connections/{connection_id}/pin", {"pin": pin})

    async def archive_connection(self, connection_id: str, archive: bool = True) -> Any:
        return await self.gateway.put(f"/connections/{connection_id}/archive", {"archive": archive})

    async def block_connection(self, connection_id: str, reason: str = "") -> Any:
        return await self.gateway.post(f"/connections/{connection_id}/block", {"reason": reason})

    async def get_swipe_stack(self, **params) -> Any:
        return await self.gateway.get("/connections/stack", params=params or None)

    async def swipe(self, creator_id: str, direction: str, swipe_data: Optional[Dict[str, Any]] = None) -> Any:
        """Swipe ``left``, ``right`` or ``super`` on a creator."""
        body = {"creatorId": creator_id, "direction": direction}
        body.update(swipe_data or {})
        return await self.gateway.post("/connections/swipe", body)

    async def send_message(self, connection_id: str, message: Dict[str, Any]) -> Any:
        return await self.gateway.post(f"/connections/{connection_id}/messages", message)

    async def get_messages(self, connection_id: str, **params) -> Any:
        return await self.gateway.get(f"/connections/{connection_id}/messages", params=params or None)

    async def mark_messages_read(self, connection_id: str) -> Any:
        return await self.gateway.put(f"/connections/{connection_id}/messages/read")

    async def delete_message(self, message_id: str) -> Any:
        return await self.gateway.delete(f"/connections/messages/{message_id}")
