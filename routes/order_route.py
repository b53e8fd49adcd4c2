from fastapi import APIRouter, Depends, Query, status
from models.order import BulkNotifyRequest, BulkStatusUpdate, OrderCreate, OrderOut, OrderStatusUpdate, OrderUpdate
from core.authorization import require_restaurant_user
from core.dependencies import CurrentUser, get_order_service
from services.analytics_service import period_start
from services.order_service import OrderService
from utils.clock import utc_now
from utils.logger import get_logger

logger = get_logger("Order_Route")

router = APIRouter(prefix="/api/orders", tags=["Orders"])


def order_view(order: dict) -> dict:
    return OrderOut.model_validate(order).model_dump(by_alias=True)


@router.get("")
async def get_orders(
    current_user: CurrentUser = Depends(require_restaurant_user),
    order_service: OrderService = Depends(get_order_service),
    status: str | None = Query(None, description="Filter by order status, 'all' for none"),
    page: int = Query(1, ge=1, description="Page number"),
    limit: int = Query(20, ge=1, le=100, description="Number of results per page"),
    sort: str = Query("-createdAt", description="Sort key, '-' prefix for descending"),
):
    """Fetch the restaurant's orders"""
    result = await order_service.list_orders(current_user.id, status, page, limit, sort)
    pagination = result["pagination"]
    return {
        "orders": [order_view(o) for o in result["orders"]],
        "pagination": {
            "currentPage": pagination["current_page"],
            "totalPages": pagination["total_pages"],
            "totalOrders": pagination["total_orders"],
            "hasNext": pagination["has_next"],
            "hasPrev": pagination["has_prev"],
        },
    }


@router.get("/stats/overview")
async def get_order_stats(
    period: str = Query("today"),
    current_user: CurrentUser = Depends(require_restaurant_user),
    order_service: OrderService = Depends(get_order_service),
):
    stats = await order_service.stats_overview(current_user.id, period_start(period, utc_now()))
    return {**stats, "period": period}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    order: OrderCreate,
    current_user: CurrentUser = Depends(require_restaurant_user),
    order_service: OrderService = Depends(get_order_service),
):
    """Create a new order"""
    logger.info(f"Received request to create order {order.order_id} by {current_user.id}")
    new_order = await order_service.create(current_user.id, order)
    return {"message": "Order created successfully.", "order": order_view(new_order)}


@router.post("/bulk/status")
async def bulk_update_status(
    payload: BulkStatusUpdate,
    current_user: CurrentUser = Depends(require_restaurant_user),
    order_service: OrderService = Depends(get_order_service),
):
    updated = await order_service.bulk_update_status(current_user.id, payload.order_ids, payload.status)
    return {"message": f"Updated {updated} orders to {payload.status}.", "updatedCount": updated}


@router.post("/bulk/notify")
async def bulk_notify(
    payload: BulkNotifyRequest,
    current_user: CurrentUser = Depends(require_restaurant_user),
    order_service: OrderService = Depends(get_order_service),
):
    results = await order_service.bulk_notify(current_user.id, payload.order_ids, payload.message)
    return {
        "message": f"Sent {sum(1 for r in results if r['success'])} of {len(results)} notifications.",
        "results": [
            {
                "orderId": r["order_id"],
                "success": r["success"],
                "messageId": r["message_id"],
                "status": r["status"],
                "to": r["to"],
                "error": r["error"],
                "demo": r["demo"],
            }
            for r in results
        ],
    }


@router.get("/{order_id}")
async def get_order(
    order_id: str,
    current_user: CurrentUser = Depends(require_restaurant_user),
    order_service: OrderService = Depends(get_order_service),
):
    order = await order_service.get(current_user.id, order_id)
    return {"order": order_view(order)}


@router.patch("/{order_id}/status")
@router.patch("/{order_id}")
async def change_order_status(
    order_id: str,
    payload: OrderStatusUpdate,
    current_user: CurrentUser = Depends(require_restaurant_user),
    order_service: OrderService = Depends(get_order_service),
):
    """
    Set the order's status. Any status may follow any other; ready stamps
    readyAt and notifies the customer, completed stamps completedAt.
    """
    logger.info(f"Received status update request for {order_id} -> {payload.status} from {current_user.id}")
    order = await order_service.update_status(current_user.id, order_id, payload.status)
    return {"message": "Order status updated successfully.", "order": order_view(order)}


@router.put("/{order_id}")
async def update_order(
    order_id: str,
    payload: OrderUpdate,
    current_user: CurrentUser = Depends(require_restaurant_user),
    order_service: OrderService = Depends(get_order_service),
):
    """Update an existing order"""
    logger.info(f"Received update request for order {order_id} from {current_user.id}")
    order = await order_service.update(current_user.id, order_id, payload)
    return {"message": "Order updated successfully.", "order": order_view(order)}


@router.delete("/{order_id}")
async def delete_order(
    order_id: str,
    current_user: CurrentUser = Depends(require_restaurant_user),
    order_service: OrderService = Depends(get_order_service),
):
    """Delete an existing order"""
    logger.info(f"Received delete request for order {order_id}")
    await order_service.delete(current_user.id, order_id)
    return {"message": "Order deleted successfully."}
