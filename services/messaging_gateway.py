"""
WhatsApp messaging gateway.

`get_messaging_gateway(settings)` returns the Twilio-backed gateway when
credentials are configured and the demo gateway otherwise. Both return the
same DeliveryResult shape and never raise; failures come back as data.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Optional

from twilio.base.exceptions import TwilioException
from twilio.rest import Client as TwilioClient

from settings.config import Settings
from utils.logger import get_logger

logger = get_logger("WhatsApp_Gateway")


@dataclass
class DeliveryResult:
    """Result from sending one message."""
    success: bool
    to: str
    message_id: Optional[str] = None
    status: Optional[str] = None
    error: Optional[str] = None
    demo: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class BaseMessagingGateway(ABC):

    @property
    @abstractmethod
    def provider_name(self) -> str:
        pass

    @abstractmethod
    async def send(self, to: str, body: str, order_id: Optional[str] = None) -> DeliveryResult:
        """`to` is already normalized to +<digits>."""
        pass


class DemoWhatsAppGateway(BaseMessagingGateway):
    """Logs the message instead of sending it."""

    @property
    def provider_name(self) -> str:
        return "demo"

    async def send(self, to: str, body: str, order_id: Optional[str] = None) -> DeliveryResult:
        logger.info(f"DEMO WhatsApp message to {to} (order {order_id or 'N/A'}): {body}")
        return DeliveryResult(
            success=True,
            to=to,
            message_id=f"demo_{int(time.time() * 1000)}",
            status="delivered",
            demo=True,
        )


class TwilioWhatsAppGateway(BaseMessagingGateway):
    def __init__(self, account_sid: str, auth_token: str, from_number: str):
        self.client = TwilioClient(account_sid, auth_token)
        self.from_number = from_number
        logger.info("TwilioWhatsAppGateway initialized")

    @property
    def provider_name(self) -> str:
        return "twilio"

    def _create(self, to: str, body: str):
        return self.client.messages.create(
            body=body,
            from_=f"whatsapp:{self.from_number}",
            to=f"whatsapp:{to}",
        )

    async def send(self, to: str, body: str, order_id: Optional[str] = None) -> DeliveryResult:
        try:
            # the SDK is blocking
            message = await asyncio.to_thread(self._create, to, body)
        except TwilioException as e:
            logger.error(f"Twilio error sending to {to} (order {order_id}): {e}")
            return DeliveryResult(success=False, to=to, error=str(e))
        except Exception as e:
            logger.error(f"WhatsApp send error to {to} (order {order_id}): {e}", exc_info=True)
            return DeliveryResult(success=False, to=to, error=str(e))

        logger.info(f"WhatsApp message sent to {to}: {message.sid}")
        return DeliveryResult(
            success=True,
            to=to,
            message_id=message.sid,
            status=message.status,
        )


def get_messaging_gateway(settings: Settings) -> BaseMessagingGateway:
    if settings.twilio_configured:
        logger.info("Messaging gateway: Twilio WhatsApp")
        return TwilioWhatsAppGateway(
            settings.TWILIO_ACCOUNT_SID,
            settings.TWILIO_AUTH_TOKEN,
            settings.TWILIO_WHATSAPP_NUMBER,
        )
    logger.warning("Twilio credentials not found. Running in demo mode.")
    return DemoWhatsAppGateway()
