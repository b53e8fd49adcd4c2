from dataclasses import dataclass
from typing import Optional
from db.base import AccountStore, OrderStore, OtpStore, QRCodeStore
from db.db_operation import MongoConnection
from db.memory_store import MemoryAccountStore, MemoryOrderStore, MemoryOtpStore, MemoryQRCodeStore
from db.mongo_store import MongoAccountStore, MongoOrderStore, MongoQRCodeStore
from services.analytics_service import AnalyticsService
from services.auth_service import AuthService
from services.messaging_gateway import BaseMessagingGateway, get_messaging_gateway
from services.notification_service import NotificationService
from services.order_service import OrderService
from services.qr_service import QRCodeService
from services.realtime_service import RealtimeBroadcaster
from settings.config import Settings
from utils.logger import get_logger

logger = get_logger("Container")


@dataclass
class Container:
    """Everything a request needs, built once per app instance."""
    settings: Settings
    accounts: AccountStore
    orders: OrderStore
    qr_codes: QRCodeStore
    otp_store: OtpStore
    gateway: BaseMessagingGateway
    broadcaster: RealtimeBroadcaster
    auth_service: AuthService
    notification_service: NotificationService
    order_service: OrderService
    qr_service: QRCodeService
    analytics_service: AnalyticsService
    mongo: Optional[MongoConnection] = None


def build_container(settings: Settings, gateway: Optional[BaseMessagingGateway] = None) -> Container:
    mongo = None
    if settings.STORAGE_BACKEND == "memory":
        logger.warning("Using in-memory stores, data is lost on restart")
        accounts, orders, qr_codes = MemoryAccountStore(), MemoryOrderStore(), MemoryQRCodeStore()
    elif settings.STORAGE_BACKEND == "mongo":
        mongo = MongoConnection(settings)
        accounts, orders, qr_codes = MongoAccountStore(mongo), MongoOrderStore(mongo), MongoQRCodeStore(mongo)
    else:
        raise ValueError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND}")

    # one-time passwords never leave process memory
    otp_store = MemoryOtpStore()
    gateway = gateway or get_messaging_gateway(settings)
    broadcaster = RealtimeBroadcaster()
    notification_service = NotificationService(
        gateway,
        default_country_code=settings.DEFAULT_COUNTRY_CODE,
        send_interval=settings.BULK_SEND_INTERVAL_SECONDS,
    )
    return Container(
        settings=settings,
        accounts=accounts,
        orders=orders,
        qr_codes=qr_codes,
        otp_store=otp_store,
        gateway=gateway,
        broadcaster=broadcaster,
        auth_service=AuthService(accounts, otp_store, settings),
        notification_service=notification_service,
        order_service=OrderService(orders, accounts, notification_service, broadcaster),
        qr_service=QRCodeService(qr_codes, accounts, settings.FRONTEND_URL, settings.DEFAULT_COUNTRY_CODE),
        analytics_service=AnalyticsService(orders, qr_codes),
        mongo=mongo,
    )
