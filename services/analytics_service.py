"""
Read-only aggregates over a restaurant's orders and QR codes.

Periods map to a start timestamp: today (midnight), week (last 7 days),
month (first of the month), quarter (first day of the quarter). Anything
else means no lower bound.
"""

from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional
from db.base import OrderStore, QRCodeStore
from utils.clock import utc_now
from utils.logger import get_logger

logger = get_logger("Analytics_Service")

PERIODS = ("today", "week", "month", "quarter")


def period_start(period: str, now: datetime) -> Optional[datetime]:
    if period == "today":
        return now.replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if period == "quarter":
        first_month = (now.month - 1) // 3 * 3 + 1
        return now.replace(month=first_month, day=1, hour=0, minute=0, second=0, microsecond=0)
    return None


def minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60


def average(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0


def successful_notifications(orders: Iterable[dict]) -> int:
    return sum(
        1
        for order in orders
        for entry in order.get("notification_history") or []
        if entry.get("status") == "sent"
    )


def qr_totals(codes: List[dict]) -> dict:
    return {
        "totalCodes": len(codes),
        "activeCodes": sum(1 for c in codes if c.get("is_active")),
        "totalScans": sum(c.get("scan_count", 0) for c in codes),
        "totalOptIns": sum(c.get("opt_in_count", 0) for c in codes),
    }


class AnalyticsService:
    def __init__(self, orders: OrderStore, qr_codes: QRCodeStore, clock: Callable[[], datetime] = utc_now):
        self.orders = orders
        self.qr_codes = qr_codes
        self.clock = clock

    async def _orders_since(self, restaurant_id: str, period: str) -> List[dict]:
        since = period_start(period, self.clock())
        return await self.orders.find(restaurant_id, since=since)

    async def dashboard(self, restaurant_id: str, period: str = "today") -> dict:
        orders = await self._orders_since(restaurant_id, period)
        logger.info(f"Dashboard for {restaurant_id} over {period}: {len(orders)} orders")

        order_stats = {}
        for order in orders:
            bucket = order_stats.setdefault(order["status"], {"count": 0, "totalAmount": 0, "amounts": []})
            amount = order.get("total_amount") or 0
            bucket["count"] += 1
            bucket["totalAmount"] += amount
            bucket["amounts"].append(amount)
        for bucket in order_stats.values():
            bucket["avgAmount"] = average(bucket.pop("amounts"))

        completed = [o.get("total_amount") or 0 for o in orders if o["status"] == "completed"]
        prep_times = [
            minutes_between(o["created_at"], o["ready_at"])
            for o in orders
            if o.get("ready_at")
        ]

        # recent orders ignore the period, same as the dashboard list
        recent, _ = await self.orders.page(restaurant_id, None, "created_at", True, 0, 5)
        codes = await self.qr_codes.find(restaurant_id)

        return {
            "period": period,
            "orderStats": order_stats,
            "revenue": {
                "totalRevenue": sum(completed),
                "avgOrderValue": average(completed),
                "totalOrders": len(completed),
            },
            "notifications": {
                "totalNotifications": sum(1 for o in orders if o.get("notification_sent")),
                "successfulNotifications": successful_notifications(orders),
            },
            "qrCodes": qr_totals(codes),
            "recentOrders": [
                {
                    "orderId": o["order_id"],
                    "customerName": o["customer_name"],
                    "status": o["status"],
                    "totalAmount": o.get("total_amount") or 0,
                    "createdAt": o["created_at"],
                }
                for o in recent
            ],
            "avgPrepTime": average(prep_times),
        }

    async def trends(self, restaurant_id: str, days: int = 7) -> dict:
        since = self.clock() - timedelta(days=days)
        orders = await self.orders.find(restaurant_id, since=since)
        by_day = {}
        for order in orders:
            day = order["created_at"].strftime("%Y-%m-%d")
            bucket = by_day.setdefault(day, {"statuses": {}, "totalOrders": 0, "totalAmount": 0})
            amount = order.get("total_amount") or 0
            status = bucket["statuses"].setdefault(order["status"], {"status": order["status"], "count": 0, "totalAmount": 0})
            status["count"] += 1
            status["totalAmount"] += amount
            bucket["totalOrders"] += 1
            bucket["totalAmount"] += amount
        trends = [
            {
                "date": day,
                "statuses": list(bucket["statuses"].values()),
                "totalOrders": bucket["totalOrders"],
                "totalAmount": bucket["totalAmount"],
            }
            for day, bucket in sorted(by_day.items())
        ]
        return {"days": days, "trends": trends}

    async def performance(self, restaurant_id: str, period: str = "month") -> dict:
        orders = await self._orders_since(restaurant_id, period)
        completion_times = [
            minutes_between(o["created_at"], o["completed_at"])
            for o in orders
            if o.get("completed_at")
        ]
        notified = [o for o in orders if o.get("notification_sent")]
        total = len(orders)
        completed = sum(1 for o in orders if o["status"] == "completed")
        cancelled = sum(1 for o in orders if o["status"] == "cancelled")
        return {
            "period": period,
            "completionTime": {
                "avgCompletionTime": average(completion_times),
                "minCompletionTime": min(completion_times) if completion_times else 0,
                "maxCompletionTime": max(completion_times) if completion_times else 0,
            },
            "notificationRate": {
                "totalNotifications": len(notified),
                "successfulNotifications": successful_notifications(notified),
            },
            "satisfaction": {
                "totalOrders": total,
                "completedOrders": completed,
                "cancelledOrders": cancelled,
                "completionRate": completed / total if total else 0,
                "cancellationRate": cancelled / total if total else 0,
            },
        }
