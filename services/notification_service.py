import asyncio
from typing import List, Optional
from services.messaging_gateway import BaseMessagingGateway, DeliveryResult
from utils.clock import utc_now
from utils.logger import get_logger
from utils.phone import normalize_phone_number

logger = get_logger("Notification_Service")

DEFAULT_READY_TEMPLATE = "Your order #{orderId} is ready! Please collect it from the counter."

STATUS_MESSAGES = {
    "preparing": "Your order #{order_id} is now being prepared. We'll notify you when it's ready!",
    "ready": "Your order #{order_id} is ready! Please collect it from the counter.",
    "completed": "Thank you for choosing us! Your order #{order_id} has been completed.",
    "cancelled": "Your order #{order_id} has been cancelled. Please contact us if you have any questions.",
}


def format_ready_message(order: dict, account: Optional[dict] = None, template: Optional[str] = None) -> str:
    """Fill the restaurant's ready template with the order's details."""
    account = account or {}
    if template is None:
        template = (account.get("settings") or {}).get("notification_template") or DEFAULT_READY_TEMPLATE
    return (
        template
        .replace("#{orderId}", str(order.get("order_id", "")))
        .replace("#{customerName}", str(order.get("customer_name", "")))
        .replace("#{restaurantName}", account.get("restaurant_name") or "Restaurant")
    )


def format_status_message(order: dict, status: str) -> str:
    order_id = order.get("order_id", "")
    message = STATUS_MESSAGES.get(status)
    if message is None:
        return f"Your order #{order_id} status has been updated to: {status}"
    return message.format(order_id=order_id)


def history_entry(result: DeliveryResult, message: str) -> dict:
    """Notification history record for an order."""
    return {
        "type": "whatsapp",
        "sent_at": utc_now(),
        "status": "sent" if result.success else "failed",
        "message": message,
        "error": result.error,
        "message_id": result.message_id,
    }


class NotificationService:
    def __init__(self, gateway: BaseMessagingGateway, default_country_code: str = "1", send_interval: float = 1.0):
        self.gateway = gateway
        self.default_country_code = default_country_code
        self.send_interval = send_interval

    async def send(self, phone_number: str, message: str, order_id: Optional[str] = None) -> DeliveryResult:
        """Normalize and dispatch one message. Never raises."""
        to = normalize_phone_number(phone_number, self.default_country_code)
        try:
            return await self.gateway.send(to, message, order_id)
        except Exception as e:
            logger.error(f"Gateway {self.gateway.provider_name} failed for order {order_id}: {e}", exc_info=True)
            return DeliveryResult(success=False, to=to, error=str(e))

    async def send_order_ready(self, order: dict, account: Optional[dict] = None) -> dict:
        message = format_ready_message(order, account)
        result = await self.send(order["phone_number"], message, order.get("order_id"))
        logger.info(f"Ready notification for order {order.get('order_id')}: success={result.success}")
        return history_entry(result, message)

    async def send_status_update(self, order: dict, status: str) -> dict:
        message = format_status_message(order, status)
        result = await self.send(order["phone_number"], message, order.get("order_id"))
        return history_entry(result, message)

    async def pause(self):
        if self.send_interval > 0:
            await asyncio.sleep(self.send_interval)

    async def send_bulk(self, orders: List[dict], message: str) -> List[dict]:
        """
        Sequential sends with a fixed pause in between to stay under the
        provider's rate limit. One result per order, in input order.
        """
        results = []
        for index, order in enumerate(orders):
            if index:
                await self.pause()
            result = await self.send(order["phone_number"], message, order.get("order_id"))
            results.append({"order_id": order.get("order_id"), **result.to_dict()})
        logger.info(f"Bulk send finished: {sum(1 for r in results if r['success'])}/{len(results)} delivered")
        return results
