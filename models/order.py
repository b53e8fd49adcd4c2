from pydantic import Field, computed_field
from typing import List, Literal, Optional
from datetime import datetime
from models.base import CamelModel
from utils.clock import utc_now

OrderStatus = Literal["pending", "preparing", "ready", "completed", "cancelled"]
OrderPriority = Literal["low", "normal", "high", "urgent"]

ORDER_STATUSES = ("pending", "preparing", "ready", "completed", "cancelled")


class OrderItem(CamelModel):
    name: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0)
    notes: Optional[str] = None


class NotificationRecord(CamelModel):
    type: Literal["whatsapp", "sms", "email"] = "whatsapp"
    sent_at: datetime
    status: Literal["sent", "delivered", "failed"] = "sent"
    message: Optional[str] = None
    error: Optional[str] = None
    message_id: Optional[str] = None


class OrderCreate(CamelModel):
    order_id: str = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=1)
    phone_number: str = Field(..., min_length=1)
    items: List[OrderItem] = Field(default_factory=list)
    total_amount: float = Field(0, ge=0)
    estimated_time: int = Field(15, ge=0)
    notes: Optional[str] = None
    priority: OrderPriority = "normal"
    tags: List[str] = Field(default_factory=list)


class OrderUpdate(CamelModel):
    customer_name: Optional[str] = Field(None, min_length=1)
    phone_number: Optional[str] = Field(None, min_length=1)
    items: Optional[List[OrderItem]] = None
    total_amount: Optional[float] = Field(None, ge=0)
    estimated_time: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    priority: Optional[OrderPriority] = None
    tags: Optional[List[str]] = None


class OrderStatusUpdate(CamelModel):
    status: OrderStatus


class BulkStatusUpdate(CamelModel):
    order_ids: List[str] = Field(..., min_length=1)
    status: OrderStatus


class BulkNotifyRequest(CamelModel):
    order_ids: List[str] = Field(..., min_length=1)
    message: str = Field(..., min_length=1)


class OrderOut(CamelModel):
    id: str
    order_id: str
    restaurant_id: str
    customer_name: str
    phone_number: str
    status: OrderStatus
    items: List[OrderItem] = Field(default_factory=list)
    total_amount: float = 0
    estimated_time: int = 15
    notes: Optional[str] = None
    priority: OrderPriority = "normal"
    tags: List[str] = Field(default_factory=list)
    notification_sent: bool = False
    notification_history: List[NotificationRecord] = Field(default_factory=list)
    created_at: datetime
    updated_at: Optional[datetime] = None
    ready_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @computed_field
    @property
    def age(self) -> int:
        """Minutes since the order was created."""
        return int((utc_now() - self.created_at).total_seconds() // 60)

    @computed_field(alias="timeSinceReady")
    @property
    def time_since_ready(self) -> Optional[int]:
        if self.ready_at is None:
            return None
        return int((utc_now() - self.ready_at).total_seconds() // 60)


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_orders: int
    has_next: bool
    has_prev: bool


class OrderListResponse(CamelModel):
    orders: List[OrderOut]
    pagination: Pagination


class OrderResponse(CamelModel):
    message: Optional[str] = None
    order: OrderOut
