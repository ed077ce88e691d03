# backend/soora/api/order_api.py

from fastapi import APIRouter, HTTPException, status, Depends
from typing import List, Optional

from soora.api.errors import http_error
from soora.dependencies import get_current_user, get_order_service
from soora.models.order import CancelOrderRequest, Order, OrderCreate
from soora.models.user import User
from soora.services.order_service import OrderService

router = APIRouter()

@router.post("/orders", status_code=status.HTTP_201_CREATED)
def create_order(
    body: OrderCreate,
    current_user: User = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service),
):
    """Checkout: prices the delivery, takes the stock and creates a PENDING order."""
    try:
        order, fee = order_service.create_order(current_user, body)
        return {"order": order, "delivery_fee": fee}
    except HTTPException:
        raise
    except Exception as e:
        raise http_error(e, "create order")

@router.get("/orders/my-orders", response_model=List[Order])
def get_my_orders(
    current_user: User = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service),
):
    try:
        return order_service.list_user_orders(current_user)
    except Exception as e:
        raise http_error(e, "fetch orders")

@router.get("/orders/{order_id}", response_model=Order)
def get_order(
    order_id: int,
    current_user: User = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service),
):
    try:
        return order_service.get_order_for_user(order_id, current_user)
    except Exception as e:
        raise http_error(e, "fetch order")

@router.put("/orders/{order_id}/cancel", response_model=Order)
def cancel_order(
    order_id: int,
    body: Optional[CancelOrderRequest] = None,
    current_user: User = Depends(get_current_user),
    order_service: OrderService = Depends(get_order_service),
):
    """Cancel an order and restore its stock. Delivered orders are rejected."""
    try:
        reason = body.reason if body else None
        return order_service.cancel_order(order_id, current_user, reason)
    except Exception as e:
        raise http_error(e, "cancel order")
