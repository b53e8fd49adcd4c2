import os

os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient

from main import create_app
from services.messaging_gateway import DeliveryResult, DemoWhatsAppGateway
from settings.config import Settings


class RecordingGateway(DemoWhatsAppGateway):
    """Demo gateway that remembers what it was asked to send."""

    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    async def send(self, to, body, order_id=None):
        self.sent.append({"to": to, "body": body, "order_id": order_id})
        if to in self.fail_for:
            return DeliveryResult(success=False, to=to, error="Unreachable number")
        return await super().send(to, body, order_id)


@pytest.fixture
def test_settings():
    return Settings(
        STORAGE_BACKEND="memory",
        ENVIRONMENT="test",
        SECRET_KEY="test-secret",
        FRONTEND_URL="http://frontend.test",
        TWILIO_ACCOUNT_SID=None,
        TWILIO_AUTH_TOKEN=None,
        BULK_SEND_INTERVAL_SECONDS=0,
        OTP_ECHO_ENABLED=True,
    )


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def app(test_settings, gateway):
    return create_app(test_settings, gateway=gateway)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def owner(client):
    """Registered restaurant owner: (token, user, auth headers)."""
    res = client.post("/api/auth/register", json={
        "restaurantName": "Testaurant",
        "phoneNumber": "+15550001111",
    })
    assert res.status_code == 201
    body = res.json()
    return {
        "token": body["token"],
        "user": body["user"],
        "headers": {"Authorization": f"Bearer {body['token']}"},
    }


@pytest.fixture
def create_order(client):
    def _create(headers, order_id="A100", **overrides):
        payload = {
            "orderId": order_id,
            "customerName": "Jane Doe",
            "phoneNumber": "+15551234567",
            "items": [{"name": "Burger", "quantity": 2, "price": 7.5}],
            "totalAmount": 15.0,
        }
        payload.update(overrides)
        return client.post("/api/orders", json=payload, headers=headers)
    return _create
