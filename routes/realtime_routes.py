from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from services.realtime_service import ORDER_UPDATED
from utils.logger import get_logger

logger = get_logger("Realtime_Route")

router = APIRouter(tags=["Realtime"])


@router.websocket("/ws")
async def realtime_socket(websocket: WebSocket):
    """
    Dashboard channel. Clients send {"event": "join-restaurant", "restaurantId": ...}
    and then receive {"event": ..., "data": ...} for that restaurant's orders.
    """
    broadcaster = websocket.app.state.container.broadcaster
    await websocket.accept()
    logger.info("New client connected")
    joined = set()
    try:
        while True:
            try:
                message = await websocket.receive_json()
            except ValueError:
                logger.warning("Ignoring socket frame that is not JSON")
                continue
            if not isinstance(message, dict):
                continue
            event = message.get("event")
            if event == "join-restaurant":
                restaurant_id = str(message.get("restaurantId") or "")
                if not restaurant_id:
                    await websocket.send_json({"event": "error", "data": {"message": "restaurantId is required."}})
                    continue
                room = broadcaster.join(websocket, restaurant_id)
                joined.add(restaurant_id)
                await websocket.send_json({"event": "joined", "data": {"room": room, "restaurantId": restaurant_id}})
            elif event == "order-status-update":
                # relay to the rest of the room
                data = message.get("data") or {}
                restaurant_id = str(data.get("restaurantId") or "")
                if restaurant_id in joined:
                    await broadcaster.emit(restaurant_id, ORDER_UPDATED, data, exclude=websocket)
            else:
                logger.debug(f"Ignoring socket event {event}")
    except WebSocketDisconnect:
        logger.info("Client disconnected")
    finally:
        broadcaster.disconnect(websocket)
