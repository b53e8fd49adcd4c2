import pytest

from services.messaging_gateway import DeliveryResult, DemoWhatsAppGateway, TwilioWhatsAppGateway, get_messaging_gateway
from services.notification_service import NotificationService, format_ready_message, format_status_message
from settings.config import Settings
from utils.phone import normalize_phone_number


ORDER = {"order_id": "A7", "customer_name": "Sam", "phone_number": "(555) 123-4567"}


@pytest.mark.parametrize("raw, expected", [
    ("5551234567", "+15551234567"),
    ("(555) 123-4567", "+15551234567"),
    ("+44 20 7946 0958", "+442079460958"),
    ("+1 555 123 4567", "+15551234567"),
    ("919876543210", "+919876543210"),
])
def test_normalize_phone_number(raw, expected):
    assert normalize_phone_number(raw) == expected


def test_normalize_uses_configured_country_code():
    assert normalize_phone_number("9876543210", "91") == "+919876543210"


def test_ready_message_substitutes_placeholders():
    account = {
        "restaurant_name": "Noodle Bar",
        "settings": {"notification_template": "Hi #{customerName}, #{orderId} is ready at #{restaurantName}"},
    }
    assert format_ready_message(ORDER, account) == "Hi Sam, A7 is ready at Noodle Bar"


def test_ready_message_default_template_and_restaurant_fallback():
    assert format_ready_message(ORDER) == "Your order A7 is ready! Please collect it from the counter."
    assert format_ready_message(ORDER, template="#{restaurantName}") == "Restaurant"


def test_status_messages():
    assert "being prepared" in format_status_message(ORDER, "preparing")
    assert "has been cancelled" in format_status_message(ORDER, "cancelled")
    assert format_status_message(ORDER, "delayed") == "Your order #A7 status has been updated to: delayed"


async def test_send_normalizes_and_returns_demo_result():
    service = NotificationService(DemoWhatsAppGateway())
    result = await service.send("555-123-4567", "hello", "A7")
    assert result.success
    assert result.demo
    assert result.to == "+15551234567"
    assert result.status == "delivered"
    assert result.message_id.startswith("demo_")


class ExplodingGateway(DemoWhatsAppGateway):
    async def send(self, to, body, order_id=None):
        raise RuntimeError("provider down")


async def test_send_never_raises():
    service = NotificationService(ExplodingGateway())
    result = await service.send("5551234567", "hello")
    assert not result.success
    assert result.error == "provider down"


async def test_ready_notification_history_entry_records_failure():
    class Failing(DemoWhatsAppGateway):
        async def send(self, to, body, order_id=None):
            return DeliveryResult(success=False, to=to, error="blocked")

    entry = await NotificationService(Failing()).send_order_ready(ORDER)
    assert entry["status"] == "failed"
    assert entry["error"] == "blocked"
    assert entry["type"] == "whatsapp"


async def test_send_bulk_is_sequential_and_paced(monkeypatch):
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr("services.notification_service.asyncio.sleep", fake_sleep)
    service = NotificationService(DemoWhatsAppGateway(), send_interval=1.0)
    orders = [
        {"order_id": "A1", "phone_number": "5550000001"},
        {"order_id": "A2", "phone_number": "5550000002"},
        {"order_id": "A3", "phone_number": "5550000003"},
    ]
    results = await service.send_bulk(orders, "Kitchen closing soon")
    assert [r["order_id"] for r in results] == ["A1", "A2", "A3"]
    assert all(r["success"] for r in results)
    assert sleeps == [1.0, 1.0]


def test_gateway_selected_by_credentials():
    demo = get_messaging_gateway(Settings(TWILIO_ACCOUNT_SID=None, TWILIO_AUTH_TOKEN=None))
    assert isinstance(demo, DemoWhatsAppGateway)
    live = get_messaging_gateway(Settings(
        TWILIO_ACCOUNT_SID="AC" + "0" * 32,
        TWILIO_AUTH_TOKEN="token",
        TWILIO_WHATSAPP_NUMBER="+14155238886",
    ))
    assert isinstance(live, TwilioWhatsAppGateway)
    assert live.provider_name == "twilio"
