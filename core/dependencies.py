from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from typing import Optional
from pydantic import BaseModel
from core.container import Container
from core.exceptions import Unauthenticated
from services.analytics_service import AnalyticsService
from services.auth_service import AuthService
from services.order_service import OrderService
from services.qr_service import QRCodeService
from utils.jwt_handler import TokenExpired, TokenInvalid, decode_access_token
from utils.logger import get_logger

logger = get_logger("Dependencies")

# auto_error off so a missing header gets our own 401 body
bearer_scheme = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    """
    Request-scoped principal, rebuilt from the token claims alone.
    The stored account is not re-read, so role changes only show up
    with a new token.
    """
    id: str
    role: str = "owner"
    phone_number: Optional[str] = None
    restaurant_name: Optional[str] = None
    name: Optional[str] = None


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_auth_service(container: Container = Depends(get_container)) -> AuthService:
    return container.auth_service


def get_order_service(container: Container = Depends(get_container)) -> OrderService:
    return container.order_service


def get_qr_service(container: Container = Depends(get_container)) -> QRCodeService:
    return container.qr_service


def get_analytics_service(container: Container = Depends(get_container)) -> AnalyticsService:
    return container.analytics_service


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    container: Container = Depends(get_container),
) -> CurrentUser:
    """
    Decode the bearer token and build the CurrentUser from its claims.
    """
    if credentials is None or not credentials.credentials:
        logger.debug("Request without bearer token")
        raise Unauthenticated("Access denied. No token provided.")
    try:
        payload = decode_access_token(credentials.credentials, container.settings)
    except TokenExpired:
        logger.warning("Expired token presented")
        raise Unauthenticated("Token expired.")
    except TokenInvalid:
        logger.warning("JWT Error: Invalid token")
        raise Unauthenticated("Invalid token.")

    subject = payload.get("sub")
    if not subject:
        raise Unauthenticated("Invalid token.")
    return CurrentUser(
        id=subject,
        role=payload.get("role") or "owner",
        phone_number=payload.get("phone"),
        restaurant_name=payload.get("restaurant_name"),
        name=payload.get("name"),
    )
