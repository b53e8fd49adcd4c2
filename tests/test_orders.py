import asyncio

import pytest

from core.exceptions import NotFound
from db.memory_store import MemoryAccountStore, MemoryOrderStore
from models.order import OrderCreate, OrderUpdate
from services.messaging_gateway import DemoWhatsAppGateway
from services.notification_service import NotificationService
from services.order_service import OrderService
from services.realtime_service import RealtimeBroadcaster


def test_create_then_get_roundtrip(client, owner, create_order):
    res = create_order(owner["headers"], "A100")
    assert res.status_code == 201
    created = res.json()["order"]

    res = client.get("/api/orders/A100", headers=owner["headers"])
    assert res.status_code == 200
    order = res.json()["order"]
    assert order["items"] == [{"name": "Burger", "quantity": 2, "price": 7.5, "notes": None}]
    assert order["totalAmount"] == 15.0
    assert order["status"] == "pending"
    assert order["estimatedTime"] == 15
    assert order["priority"] == "normal"
    assert order["notificationSent"] is False
    assert order["notificationHistory"] == []
    assert order["readyAt"] is None
    assert order["id"] == created["id"]
    assert order["restaurantId"] == owner["user"]["id"]


def test_duplicate_order_id_conflicts(client, owner, create_order):
    assert create_order(owner["headers"], "A100").status_code == 201
    res = create_order(owner["headers"], "A100")
    assert res.status_code == 400
    assert res.json()["error"]["message"] == "Order ID already exists."


def test_order_ids_are_unique_across_restaurants(client, owner, create_order):
    create_order(owner["headers"], "A100")
    other = client.post("/api/auth/register", json={"restaurantName": "Other", "phoneNumber": "+15550009999"}).json()
    res = create_order({"Authorization": f"Bearer {other['token']}"}, "A100")
    assert res.status_code == 400


def test_create_requires_core_fields(client, owner):
    res = client.post("/api/orders", json={"orderId": "A1"}, headers=owner["headers"])
    assert res.status_code == 400
    message = res.json()["error"]["message"]
    assert "customerName" in message and "phoneNumber" in message


def test_item_quantity_must_be_positive(client, owner, create_order):
    res = create_order(owner["headers"], "A1", items=[{"name": "Tea", "quantity": 0, "price": 1}])
    assert res.status_code == 400


def test_ready_stamps_and_notifies(client, owner, create_order, gateway):
    created = create_order(owner["headers"], "A100").json()["order"]
    res = client.patch("/api/orders/A100/status", json={"status": "ready"}, headers=owner["headers"])
    assert res.status_code == 200
    order = res.json()["order"]
    assert order["status"] == "ready"
    assert order["readyAt"] >= created["createdAt"]
    assert order["notificationSent"] is True
    assert len(order["notificationHistory"]) == 1
    assert order["notificationHistory"][0]["status"] == "sent"
    assert gateway.sent == [{
        "to": "+15551234567",
        "body": "Your order A100 is ready! Please collect it from the counter.",
        "order_id": "A100",
    }]


def test_ready_uses_account_template(client, owner, create_order, gateway):
    client.put("/api/auth/profile", headers=owner["headers"], json={
        "settings": {"notificationTemplate": "#{customerName}, order #{orderId} from #{restaurantName} is up"},
    })
    create_order(owner["headers"], "A100")
    client.patch("/api/orders/A100", json={"status": "ready"}, headers=owner["headers"])
    assert gateway.sent[0]["body"] == "Jane Doe, order A100 from Testaurant is up"


def test_notifications_respect_account_preference(client, owner, create_order, gateway):
    client.put("/api/auth/profile", headers=owner["headers"], json={"settings": {"autoNotifications": False}})
    create_order(owner["headers"], "A100")
    order = client.patch("/api/orders/A100", json={"status": "ready"}, headers=owner["headers"]).json()["order"]
    assert order["notificationSent"] is True
    assert order["notificationHistory"] == []
    assert gateway.sent == []


def test_failed_notification_keeps_status_change(client, owner, create_order, gateway):
    gateway.fail_for.add("+15551234567")
    create_order(owner["headers"], "A100")
    res = client.patch("/api/orders/A100/status", json={"status": "ready"}, headers=owner["headers"])
    assert res.status_code == 200
    order = res.json()["order"]
    assert order["status"] == "ready"
    entry = order["notificationHistory"][0]
    assert entry["status"] == "failed"
    assert entry["error"] == "Unreachable number"


def test_completed_without_ready_is_allowed(client, owner, create_order):
    created = create_order(owner["headers"], "A100").json()["order"]
    res = client.patch("/api/orders/A100/status", json={"status": "completed"}, headers=owner["headers"])
    assert res.status_code == 200
    order = res.json()["order"]
    assert order["status"] == "completed"
    assert order["completedAt"] >= created["createdAt"]
    assert order["readyAt"] is None
    assert order["notificationSent"] is False


def test_any_status_may_follow_any_other(client, owner, create_order):
    create_order(owner["headers"], "A100")
    for status in ("completed", "pending", "cancelled", "preparing"):
        res = client.patch("/api/orders/A100/status", json={"status": status}, headers=owner["headers"])
        assert res.json()["order"]["status"] == status


def test_unknown_status_is_rejected(client, owner, create_order):
    create_order(owner["headers"], "A100")
    res = client.patch("/api/orders/A100/status", json={"status": "shipped"}, headers=owner["headers"])
    assert res.status_code == 400


def test_status_update_for_missing_order_is_404(client, owner):
    res = client.patch("/api/orders/NOPE/status", json={"status": "ready"}, headers=owner["headers"])
    assert res.status_code == 404
    assert res.json() == {"error": {"message": "Order not found."}}


def test_orders_are_scoped_to_restaurant(client, owner, create_order):
    create_order(owner["headers"], "A100")
    other = client.post("/api/auth/register", json={"restaurantName": "Other", "phoneNumber": "+15550009999"}).json()
    headers = {"Authorization": f"Bearer {other['token']}"}
    assert client.get("/api/orders/A100", headers=headers).status_code == 404
    assert client.delete("/api/orders/A100", headers=headers).status_code == 404
    assert client.get("/api/orders", headers=headers).json()["pagination"]["totalOrders"] == 0


def test_list_pagination_and_filter(client, owner, create_order):
    for i in range(5):
        create_order(owner["headers"], f"A{i}", totalAmount=float(i))
    client.patch("/api/orders/A1/status", json={"status": "ready"}, headers=owner["headers"])

    res = client.get("/api/orders?page=1&limit=2", headers=owner["headers"])
    body = res.json()
    assert [o["orderId"] for o in body["orders"]] == ["A4", "A3"]
    assert body["pagination"] == {
        "currentPage": 1, "totalPages": 3, "totalOrders": 5, "hasNext": True, "hasPrev": False,
    }

    last = client.get("/api/orders?page=3&limit=2", headers=owner["headers"]).json()
    assert [o["orderId"] for o in last["orders"]] == ["A0"]
    assert last["pagination"]["hasNext"] is False
    assert last["pagination"]["hasPrev"] is True

    ready = client.get("/api/orders?status=ready", headers=owner["headers"]).json()
    assert [o["orderId"] for o in ready["orders"]] == ["A1"]
    everything = client.get("/api/orders?status=all", headers=owner["headers"]).json()
    assert everything["pagination"]["totalOrders"] == 5


def test_list_sort_by_amount(client, owner, create_order):
    for i, amount in enumerate([3.0, 1.0, 2.0]):
        create_order(owner["headers"], f"B{i}", totalAmount=amount)
    body = client.get("/api/orders?sort=totalAmount", headers=owner["headers"]).json()
    assert [o["totalAmount"] for o in body["orders"]] == [1.0, 2.0, 3.0]
    bad = client.get("/api/orders?sort=-bogus", headers=owner["headers"])
    assert bad.status_code == 400


def test_update_order_fields(client, owner, create_order):
    create_order(owner["headers"], "A100")
    res = client.put("/api/orders/A100", headers=owner["headers"], json={
        "notes": "no onions", "priority": "urgent", "tags": ["vip"], "estimatedTime": 25,
    })
    assert res.status_code == 200
    order = res.json()["order"]
    assert order["notes"] == "no onions"
    assert order["priority"] == "urgent"
    assert order["tags"] == ["vip"]
    assert order["estimatedTime"] == 25
    assert order["customerName"] == "Jane Doe"


def test_delete_order(client, owner, create_order):
    create_order(owner["headers"], "A100")
    res = client.delete("/api/orders/A100", headers=owner["headers"])
    assert res.json() == {"message": "Order deleted successfully."}
    assert client.get("/api/orders/A100", headers=owner["headers"]).status_code == 404
    assert client.delete("/api/orders/A100", headers=owner["headers"]).status_code == 404


def test_bulk_ready_notifies_each_and_tolerates_failures(client, owner, create_order, gateway):
    create_order(owner["headers"], "A1", phoneNumber="5550000001")
    create_order(owner["headers"], "A2", phoneNumber="5550000002")
    create_order(owner["headers"], "A3", phoneNumber="5550000003")
    gateway.fail_for.add("+15550000002")

    res = client.post("/api/orders/bulk/status", headers=owner["headers"], json={
        "orderIds": ["A1", "A2", "A3", "MISSING"], "status": "ready",
    })
    assert res.status_code == 200
    assert res.json() == {"message": "Updated 3 orders to ready.", "updatedCount": 3}
    assert len(gateway.sent) == 3

    statuses = {}
    for order_id in ("A1", "A2", "A3"):
        order = client.get(f"/api/orders/{order_id}", headers=owner["headers"]).json()["order"]
        assert order["status"] == "ready"
        assert order["readyAt"] is not None
        statuses[order_id] = order["notificationHistory"][0]["status"]
    assert statuses == {"A1": "sent", "A2": "failed", "A3": "sent"}


def test_bulk_completed_sends_nothing(client, owner, create_order, gateway):
    create_order(owner["headers"], "A1")
    res = client.post("/api/orders/bulk/status", headers=owner["headers"], json={"orderIds": ["A1"], "status": "completed"})
    assert res.json()["updatedCount"] == 1
    assert gateway.sent == []


def test_bulk_notify_custom_message(client, owner, create_order, gateway):
    create_order(owner["headers"], "A1", phoneNumber="5550000001")
    create_order(owner["headers"], "A2", phoneNumber="5550000002")
    res = client.post("/api/orders/bulk/notify", headers=owner["headers"], json={
        "orderIds": ["A1", "A2"], "message": "We close in 10 minutes",
    })
    assert res.status_code == 200
    results = res.json()["results"]
    assert [r["to"] for r in results] == ["+15550000001", "+15550000002"]
    assert all(r["success"] for r in results)
    history = client.get("/api/orders/A1", headers=owner["headers"]).json()["order"]["notificationHistory"]
    assert history[0]["message"] == "We close in 10 minutes"


def test_stats_overview(client, owner, create_order):
    create_order(owner["headers"], "A1", totalAmount=10.0)
    create_order(owner["headers"], "A2", totalAmount=20.0)
    create_order(owner["headers"], "A3", totalAmount=5.0)
    client.patch("/api/orders/A1/status", json={"status": "completed"}, headers=owner["headers"])
    client.patch("/api/orders/A2/status", json={"status": "completed"}, headers=owner["headers"])

    body = client.get("/api/orders/stats/overview?period=today", headers=owner["headers"]).json()
    assert body["period"] == "today"
    assert body["totalOrders"] == 3
    assert body["totalRevenue"] == 30.0
    assert body["stats"]["completed"] == {"count": 2, "totalAmount": 30.0}
    assert body["stats"]["pending"] == {"count": 1, "totalAmount": 5.0}


class SlowGateway(DemoWhatsAppGateway):
    async def send(self, to, body, order_id=None):
        await asyncio.sleep(0.05)
        return await super().send(to, body, order_id)


def slow_order_service():
    notifier = NotificationService(SlowGateway(), send_interval=0)
    return OrderService(MemoryOrderStore(), MemoryAccountStore(), notifier, RealtimeBroadcaster())


async def test_edit_made_while_ready_message_is_sending_is_kept():
    service = slow_order_service()
    await service.create("r1", OrderCreate(order_id="A1", customer_name="Jane", phone_number="5551234567"))

    await asyncio.gather(
        service.update_status("r1", "A1", "ready"),
        service.update("r1", "A1", OrderUpdate(notes="no onions")),
    )

    order = await service.get("r1", "A1")
    assert order["notes"] == "no onions"
    assert order["status"] == "ready"
    assert len(order["notification_history"]) == 1


async def test_concurrent_ready_sends_keep_every_history_entry():
    service = slow_order_service()
    await service.create("r1", OrderCreate(order_id="A1", customer_name="Jane", phone_number="5551234567"))

    await asyncio.gather(*(service.update_status("r1", "A1", "ready") for _ in range(3)))

    order = await service.get("r1", "A1")
    assert len(order["notification_history"]) == 3


async def test_update_of_deleted_order_is_404():
    service = slow_order_service()
    await service.create("r1", OrderCreate(order_id="A1", customer_name="Jane", phone_number="5551234567"))
    await service.delete("r1", "A1")
    with pytest.raises(NotFound):
        await service.update("r1", "A1", OrderUpdate(notes="late"))
