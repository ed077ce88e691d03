# backend/soora/api/admin_api.py

from fastapi import APIRouter, Depends, Query
from typing import List, Optional

from soora.api.errors import http_error
from soora.dependencies import get_admin_user, get_order_service
from soora.models.order import Order, OrderStatus, OrderStatusUpdate
from soora.models.user import User
from soora.services.order_service import OrderService

router = APIRouter(prefix="/admin")

@router.get("/orders", response_model=List[Order])
def list_orders(
    status: Optional[OrderStatus] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    admin_user: User = Depends(get_admin_user),
    order_service: OrderService = Depends(get_order_service),
):
    """All orders, newest first - admin only"""
    try:
        return order_service.list_orders(status=status, limit=limit, offset=(page - 1) * limit)
    except Exception as e:
        raise http_error(e, "fetch orders")

@router.put("/orders/{order_id}/status", response_model=Order)
def update_order_status(
    order_id: int,
    body: OrderStatusUpdate,
    admin_user: User = Depends(get_admin_user),
    order_service: OrderService = Depends(get_order_service),
):
    """Move an order forward (or cancel it) - admin only"""
    try:
        return order_service.update_status(order_id, body.status, admin_user)
    except Exception as e:
        raise http_error(e, "update order status")
