from typing import Any, Dict, Optional, Set
from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder
from utils.logger import get_logger

logger = get_logger("Realtime")

ORDER_CREATED = "order-created"
ORDER_STATUS_UPDATED = "order-status-updated"
ORDER_UPDATED = "order-updated"
ORDER_DELETED = "order-deleted"
BULK_ORDERS_UPDATED = "bulk-orders-updated"


def room_name(restaurant_id: str) -> str:
    return f"restaurant-{restaurant_id}"


class RealtimeBroadcaster:
    """
    Groups connected sockets by restaurant and fans events out to a group.
    Best effort: no replay for late joiners, no acks, dead sockets are dropped.
    """

    def __init__(self):
        self.rooms: Dict[str, Set[WebSocket]] = {}

    def join(self, websocket: WebSocket, restaurant_id: str) -> str:
        room = room_name(restaurant_id)
        self.rooms.setdefault(room, set()).add(websocket)
        logger.info(f"Socket joined {room} ({len(self.rooms[room])} connected)")
        return room

    def disconnect(self, websocket: WebSocket):
        for room in list(self.rooms):
            members = self.rooms[room]
            members.discard(websocket)
            if not members:
                del self.rooms[room]

    def connection_count(self, restaurant_id: str) -> int:
        return len(self.rooms.get(room_name(restaurant_id), ()))

    async def emit(self, restaurant_id: str, event: str, data: Dict[str, Any], exclude: Optional[WebSocket] = None) -> int:
        """Send `event` to everyone in the restaurant's room, returns the delivered count."""
        room = room_name(restaurant_id)
        members = list(self.rooms.get(room, ()))
        payload = jsonable_encoder({"event": event, "data": data})
        delivered = 0
        for websocket in members:
            if websocket is exclude:
                continue
            try:
                await websocket.send_json(payload)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping socket from {room} after send failure: {e}")
                self.disconnect(websocket)
        logger.debug(f"Emitted {event} to {room}: {delivered}/{len(members)}")
        return delivered
