# core/authorization.py
from fastapi import Depends
from core.dependencies import get_current_user, CurrentUser
from core.exceptions import Forbidden
from utils.logger import get_logger

logger = get_logger("Authorization")

RESTAURANT_ROLES = ("owner", "staff")

def require_role(*allowed_roles):
    async def _dependency(current_user: CurrentUser = Depends(get_current_user)):
        if current_user.role not in allowed_roles:
            logger.warning(f"Forbidden: {current_user.id} role {current_user.role} not in allowed {allowed_roles}")
            raise Forbidden("Insufficient permissions.")
        return current_user
    return _dependency

# orders, QR management and analytics belong to restaurant staff
require_restaurant_user = require_role(*RESTAURANT_ROLES)
