from fastapi import APIRouter, Depends, Query
from core.authorization import require_restaurant_user
from core.dependencies import CurrentUser, get_analytics_service
from services.analytics_service import AnalyticsService
from utils.logger import get_logger

logger = get_logger("Analytics_Route")

router = APIRouter(prefix="/api/analytics", tags=["Analytics"])


@router.get("/dashboard")
async def dashboard(
    period: str = Query("today", description="today, week, month or quarter"),
    current_user: CurrentUser = Depends(require_restaurant_user),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    return await analytics_service.dashboard(current_user.id, period)


@router.get("/orders/trends")
async def order_trends(
    days: int = Query(7, ge=1, le=365),
    current_user: CurrentUser = Depends(require_restaurant_user),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    return await analytics_service.trends(current_user.id, days)


@router.get("/performance")
async def performance(
    period: str = Query("month", description="week, month or quarter"),
    current_user: CurrentUser = Depends(require_restaurant_user),
    analytics_service: AnalyticsService = Depends(get_analytics_service),
):
    return await analytics_service.performance(current_user.id, period)
