from datetime import datetime, timedelta

import pytest

from db.memory_store import MemoryOrderStore, MemoryQRCodeStore
from services.analytics_service import AnalyticsService, period_start

NOW = datetime(2026, 5, 14, 15, 30)


@pytest.mark.parametrize("period,expected", [
    ("today", datetime(2026, 5, 14)),
    ("week", datetime(2026, 5, 7, 15, 30)),
    ("month", datetime(2026, 5, 1)),
    ("quarter", datetime(2026, 4, 1)),
    ("all", None),
])
def test_period_start(period, expected):
    assert period_start(period, NOW) == expected


def test_quarter_start_in_first_quarter():
    assert period_start("quarter", datetime(2026, 3, 31, 23, 59)) == datetime(2026, 1, 1)


def make_order(order_id, status, created_at, amount=10.0, ready_after=None, completed_after=None, history=()):
    return {
        "id": f"id-{order_id}",
        "order_id": order_id,
        "restaurant_id": "r1",
        "customer_name": "Jane",
        "phone_number": "+15551234567",
        "status": status,
        "total_amount": amount,
        "notification_sent": ready_after is not None,
        "notification_history": [{"status": s} for s in history],
        "created_at": created_at,
        "updated_at": created_at,
        "ready_at": created_at + timedelta(minutes=ready_after) if ready_after is not None else None,
        "completed_at": created_at + timedelta(minutes=completed_after) if completed_after is not None else None,
    }


@pytest.fixture
def stores():
    return MemoryOrderStore(), MemoryQRCodeStore()


@pytest.fixture
def analytics(stores):
    orders, codes = stores
    return AnalyticsService(orders, codes, clock=lambda: NOW)


async def test_dashboard_without_orders_is_all_zero(analytics):
    body = await analytics.dashboard("r1", "today")
    assert body["orderStats"] == {}
    assert body["revenue"] == {"totalRevenue": 0, "avgOrderValue": 0, "totalOrders": 0}
    assert body["notifications"] == {"totalNotifications": 0, "successfulNotifications": 0}
    assert body["qrCodes"] == {"totalCodes": 0, "activeCodes": 0, "totalScans": 0, "totalOptIns": 0}
    assert body["recentOrders"] == []
    assert body["avgPrepTime"] == 0


async def test_dashboard_aggregates_today(analytics, stores):
    orders, codes = stores
    today = datetime(2026, 5, 14, 12, 0)
    await orders.insert(make_order("A1", "completed", today, 20.0, ready_after=10, completed_after=15, history=["sent"]))
    await orders.insert(make_order("A2", "completed", today, 10.0, ready_after=20, completed_after=25, history=["failed"]))
    await orders.insert(make_order("A3", "pending", today, 5.0))
    await orders.insert(make_order("OLD", "completed", datetime(2026, 5, 1), 100.0))
    await codes.insert({"id": "q1", "restaurant_id": "r1", "code": "ABCD1234", "is_active": True,
                        "scan_count": 4, "opt_in_count": 2, "created_at": today})

    body = await analytics.dashboard("r1", "today")
    assert body["orderStats"]["completed"] == {"count": 2, "totalAmount": 30.0, "avgAmount": 15.0}
    assert body["orderStats"]["pending"] == {"count": 1, "totalAmount": 5.0, "avgAmount": 5.0}
    assert body["revenue"] == {"totalRevenue": 30.0, "avgOrderValue": 15.0, "totalOrders": 2}
    assert body["notifications"] == {"totalNotifications": 2, "successfulNotifications": 1}
    assert body["avgPrepTime"] == 15
    assert body["qrCodes"]["totalScans"] == 4
    assert len(body["recentOrders"]) == 4


async def test_month_includes_older_orders(analytics, stores):
    orders, _ = stores
    await orders.insert(make_order("OLD", "completed", datetime(2026, 5, 1), 100.0))
    body = await analytics.dashboard("r1", "month")
    assert body["revenue"]["totalRevenue"] == 100.0


async def test_other_restaurants_are_excluded(analytics, stores):
    orders, _ = stores
    foreign = make_order("X1", "completed", datetime(2026, 5, 14, 9), 50.0)
    foreign["restaurant_id"] = "r2"
    await orders.insert(foreign)
    body = await analytics.dashboard("r1", "today")
    assert body["revenue"]["totalRevenue"] == 0


async def test_trends_group_by_day(analytics, stores):
    orders, _ = stores
    await orders.insert(make_order("A1", "completed", datetime(2026, 5, 13, 9), 10.0))
    await orders.insert(make_order("A2", "cancelled", datetime(2026, 5, 13, 10), 4.0))
    await orders.insert(make_order("A3", "pending", datetime(2026, 5, 14, 9), 6.0))
    await orders.insert(make_order("OLD", "completed", datetime(2026, 4, 1), 99.0))

    body = await analytics.trends("r1", days=7)
    assert body["days"] == 7
    assert [t["date"] for t in body["trends"]] == ["2026-05-13", "2026-05-14"]
    first = body["trends"][0]
    assert first["totalOrders"] == 2
    assert first["totalAmount"] == 14.0
    assert {s["status"]: s["count"] for s in first["statuses"]} == {"completed": 1, "cancelled": 1}


async def test_performance(analytics, stores):
    orders, _ = stores
    day = datetime(2026, 5, 10, 12)
    await orders.insert(make_order("A1", "completed", day, ready_after=5, completed_after=10, history=["sent"]))
    await orders.insert(make_order("A2", "completed", day, ready_after=10, completed_after=30, history=["sent"]))
    await orders.insert(make_order("A3", "cancelled", day))
    await orders.insert(make_order("A4", "pending", day))

    body = await analytics.performance("r1", "month")
    assert body["completionTime"] == {"avgCompletionTime": 20, "minCompletionTime": 10, "maxCompletionTime": 30}
    assert body["notificationRate"] == {"totalNotifications": 2, "successfulNotifications": 2}
    assert body["satisfaction"] == {
        "totalOrders": 4,
        "completedOrders": 2,
        "cancelledOrders": 1,
        "completionRate": 0.5,
        "cancellationRate": 0.25,
    }


def test_dashboard_endpoint(client, owner, create_order):
    create_order(owner["headers"], "A1", totalAmount=12.0)
    client.patch("/api/orders/A1/status", json={"status": "completed"}, headers=owner["headers"])
    res = client.get("/api/analytics/dashboard", headers=owner["headers"])
    assert res.status_code == 200
    body = res.json()
    assert body["period"] == "today"
    assert body["revenue"]["totalRevenue"] == 12.0
    assert body["recentOrders"][0]["orderId"] == "A1"


def test_analytics_requires_auth(client):
    assert client.get("/api/analytics/performance").status_code == 401
    assert client.get("/api/analytics/orders/trends").status_code == 401
