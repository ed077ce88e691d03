# backend/soora/models/order.py

from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime


class OrderStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    @property
    def rank(self) -> int:
        return STATUS_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)

    def can_advance_to(self, target: "OrderStatus") -> bool:
        """Status only moves forward, except into CANCELLED from any non-terminal state."""
        if self.is_terminal:
            return False
        if target is OrderStatus.CANCELLED:
            return True
        return target.rank > self.rank


# CANCELLED shares the DELIVERED rank; both are terminal
STATUS_RANK = {
    OrderStatus.PENDING: 0,
    OrderStatus.CONFIRMED: 1,
    OrderStatus.PROCESSING: 2,
    OrderStatus.OUT_FOR_DELIVERY: 3,
    OrderStatus.DELIVERED: 4,
    OrderStatus.CANCELLED: 4,
}


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class PaymentMethod(str, Enum):
    STRIPE = "STRIPE"
    CASH_ON_DELIVERY = "CASH_ON_DELIVERY"


# --- Order Item Models ---
class OrderItemCreate(BaseModel):
    product_id: int
    quantity: int = Field(..., ge=1)

class OrderItem(BaseModel):
    id: Optional[int] = None
    order_id: Optional[int] = None
    product_id: int
    product_name: str = Field(..., description="Product name at the time the order was placed.")
    price: float = Field(..., description="Unit price at the time the order was placed.")
    quantity: int
    subtotal: float

    class Config:
        from_attributes = True

# --- Order Models ---
class OrderCreate(BaseModel):
    address_id: int
    items: List[OrderItemCreate] = Field(..., min_length=1)
    payment_method: PaymentMethod
    delivery_notes: Optional[str] = None

class CancelOrderRequest(BaseModel):
    reason: Optional[str] = None

class OrderStatusUpdate(BaseModel):
    status: OrderStatus

class Order(BaseModel):
    id: int
    order_number: str
    user_id: int
    address_id: int
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    payment_method: PaymentMethod
    payment_reference: Optional[str] = None
    subtotal: float
    delivery_fee: float
    total: float
    currency: str = "SGD"
    customer_name: str = ""
    customer_phone: str = ""
    customer_email: Optional[str] = None
    delivery_notes: Optional[str] = None

    # Lalamove linkage, populated once dispatch succeeds
    lalamove_order_id: Optional[str] = None
    lalamove_status: Optional[str] = None
    lalamove_tracking_url: Optional[str] = None
    lalamove_driver_id: Optional[str] = None
    lalamove_driver_name: Optional[str] = None
    lalamove_driver_phone: Optional[str] = None
    lalamove_driver_plate: Optional[str] = None

    estimated_delivery: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItem] = []

    class Config:
        from_attributes = True
