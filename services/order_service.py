import math
import uuid
from datetime import datetime
from typing import Callable, List, Optional
from db.base import AccountStore, DuplicateKeyError, OrderStore
from core.exceptions import Conflict, NotFound, ValidationError
from models.order import ORDER_STATUSES, OrderCreate, OrderOut, OrderUpdate
from services import realtime_service as events
from services.notification_service import NotificationService
from services.realtime_service import RealtimeBroadcaster
from utils.clock import utc_now
from utils.logger import get_logger

logger = get_logger("Order_Service")

# Status changes are caller-directed: any status may follow any other.

# client sort keys -> stored fields
SORT_FIELDS = {
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "readyAt": "ready_at",
    "completedAt": "completed_at",
    "orderId": "order_id",
    "customerName": "customer_name",
    "status": "status",
    "priority": "priority",
    "totalAmount": "total_amount",
    "estimatedTime": "estimated_time",
}


def parse_sort(sort: Optional[str]):
    """'-createdAt' -> ('created_at', True)."""
    sort = (sort or "-createdAt").strip()
    descending = sort.startswith("-")
    key = sort.lstrip("-+")
    field = SORT_FIELDS.get(key)
    if field is None:
        raise ValidationError(f"Unsupported sort key: {key}.")
    return field, descending


def serialize(order: dict) -> dict:
    return OrderOut.model_validate(order).model_dump(by_alias=True)


class OrderService:
    def __init__(
        self,
        orders: OrderStore,
        accounts: AccountStore,
        notifier: NotificationService,
        broadcaster: RealtimeBroadcaster,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.orders = orders
        self.accounts = accounts
        self.notifier = notifier
        self.broadcaster = broadcaster
        self.clock = clock

    async def create(self, restaurant_id: str, payload: OrderCreate) -> dict:
        logger.info(f"Creating order {payload.order_id} for restaurant {restaurant_id}")
        if await self.orders.order_id_exists(payload.order_id):
            raise Conflict("Order ID already exists.")
        now = self.clock()
        doc = payload.model_dump()
        doc.update({
            "id": uuid.uuid4().hex,
            "restaurant_id": restaurant_id,
            "status": "pending",
            "notification_sent": False,
            "notification_history": [],
            "created_at": now,
            "updated_at": now,
            "ready_at": None,
            "completed_at": None,
        })
        try:
            order = await self.orders.insert(doc)
        except DuplicateKeyError:
            raise Conflict("Order ID already exists.")
        logger.info(f"Order {order['order_id']} created with id {order['id']}")
        await self.broadcaster.emit(restaurant_id, events.ORDER_CREATED, {
            "order": serialize(order),
            "restaurantId": restaurant_id,
        })
        return order

    async def get(self, restaurant_id: str, order_id: str) -> dict:
        order = await self.orders.get(restaurant_id, order_id)
        if not order:
            logger.warning(f"Order {order_id} not found for restaurant {restaurant_id}")
            raise NotFound("Order not found.")
        return order

    async def list_orders(self, restaurant_id: str, status: Optional[str] = None, page: int = 1, limit: int = 20, sort: Optional[str] = None) -> dict:
        """Fetch a page of the restaurant's orders, newest first unless told otherwise"""
        if status == "all":
            status = None
        if status and status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid status: {status}.")
        field, descending = parse_sort(sort)
        skip = (page - 1) * limit
        orders, total = await self.orders.page(restaurant_id, status, field, descending, skip, limit)
        return {
            "orders": orders,
            "pagination": {
                "current_page": page,
                "total_pages": math.ceil(total / limit) if limit else 0,
                "total_orders": total,
                "has_next": skip + limit < total,
                "has_prev": page > 1,
            },
        }

    async def _notifications_enabled(self, restaurant_id: str) -> tuple:
        account = await self.accounts.get_by_id(restaurant_id)
        if account is None:
            # token-only sessions have no stored preferences
            return True, None
        enabled = account.get("whatsapp_enabled", True) and (account.get("settings") or {}).get("auto_notifications", True)
        return enabled, account

    def _status_changes(self, status: str, now: datetime) -> dict:
        changes = {"status": status, "updated_at": now}
        if status == "ready":
            changes["ready_at"] = now
            changes["notification_sent"] = True
        elif status == "completed":
            changes["completed_at"] = now
        return changes

    async def update_status(self, restaurant_id: str, order_id: str, status: str) -> dict:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid status: {status}.")
        old_status = (await self.get(restaurant_id, order_id))["status"]
        order = await self.orders.update_fields(restaurant_id, order_id, self._status_changes(status, self.clock()))
        if order is None:
            raise NotFound("Order not found.")
        logger.info(f"Order {order_id} status {old_status} -> {status}")

        if status == "ready":
            enabled, account = await self._notifications_enabled(restaurant_id)
            if enabled:
                # a failed send is recorded, the status change stands
                entry = await self.notifier.send_order_ready(order, account)
                order = await self.orders.push_notification(restaurant_id, order_id, entry) or order

        await self.broadcaster.emit(restaurant_id, events.ORDER_STATUS_UPDATED, {
            "orderId": order_id,
            "status": status,
            "oldStatus": old_status,
            "restaurantId": restaurant_id,
            "readyAt": order.get("ready_at"),
            "notificationSent": order["notification_sent"],
        })
        return order

    async def update(self, restaurant_id: str, order_id: str, payload: OrderUpdate) -> dict:
        changes = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
        order = await self.orders.update_fields(restaurant_id, order_id, {**changes, "updated_at": self.clock()})
        if order is None:
            raise NotFound("Order not found.")
        logger.info(f"Order {order_id} updated: {sorted(changes)}")
        await self.broadcaster.emit(restaurant_id, events.ORDER_UPDATED, {
            "order": serialize(order),
            "restaurantId": restaurant_id,
        })
        return order

    async def delete(self, restaurant_id: str, order_id: str):
        deleted = await self.orders.delete(restaurant_id, order_id)
        if not deleted:
            raise NotFound("Order not found.")
        logger.info(f"Order {order_id} deleted")
        await self.broadcaster.emit(restaurant_id, events.ORDER_DELETED, {
            "orderId": order_id,
            "restaurantId": restaurant_id,
        })

    async def bulk_update_status(self, restaurant_id: str, order_ids: List[str], status: str) -> int:
        if status not in ORDER_STATUSES:
            raise ValidationError(f"Invalid status: {status}.")
        changes = self._status_changes(status, self.clock())
        updated = []
        for order in await self.orders.find(restaurant_id, order_ids=order_ids):
            order = await self.orders.update_fields(restaurant_id, order["order_id"], changes)
            if order is not None:
                updated.append(order)

        if status == "ready" and updated:
            enabled, account = await self._notifications_enabled(restaurant_id)
            if enabled:
                # one at a time, paced like send_bulk
                for index, order in enumerate(updated):
                    if index:
                        await self.notifier.pause()
                    entry = await self.notifier.send_order_ready(order, account)
                    await self.orders.push_notification(restaurant_id, order["order_id"], entry)

        logger.info(f"Bulk update: {len(updated)} of {len(order_ids)} orders set to {status}")
        await self.broadcaster.emit(restaurant_id, events.BULK_ORDERS_UPDATED, {
            "orderIds": order_ids,
            "status": status,
            "restaurantId": restaurant_id,
        })
        return len(updated)

    async def bulk_notify(self, restaurant_id: str, order_ids: List[str], message: str) -> List[dict]:
        """Send one custom message to the customers of the selected orders."""
        orders = await self.orders.find(restaurant_id, order_ids=order_ids)
        results = await self.notifier.send_bulk(orders, message)
        for order, result in zip(orders, results):
            await self.orders.push_notification(restaurant_id, order["order_id"], {
                "type": "whatsapp",
                "sent_at": self.clock(),
                "status": "sent" if result["success"] else "failed",
                "message": message,
                "error": result["error"],
                "message_id": result["message_id"],
            })
        return results

    async def stats_overview(self, restaurant_id: str, since: Optional[datetime]) -> dict:
        orders = await self.orders.find(restaurant_id, since=since)
        stats = {}
        for order in orders:
            bucket = stats.setdefault(order["status"], {"count": 0, "totalAmount": 0})
            bucket["count"] += 1
            bucket["totalAmount"] += order.get("total_amount") or 0
        revenue = sum(o.get("total_amount") or 0 for o in orders if o["status"] == "completed")
        return {
            "stats": stats,
            "totalOrders": len(orders),
            "totalRevenue": revenue,
        }
