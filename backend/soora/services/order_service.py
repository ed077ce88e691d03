# backend/soora/services/order_service.py

import logging
import time
from datetime import timedelta
from typing import List, Optional, Tuple

from soora.core.exceptions import (
    AddressNotFoundError,
    OrderAccessError,
    OrderNotFoundError,
    OrderStateError,
)
from soora.models.delivery import FeeQuote
from soora.models.order import Order, OrderCreate, OrderStatus, PaymentMethod, PaymentStatus
from soora.models.user import User
from soora.services.delivery_fee import DeliveryFeeService
from soora.services.lalamove import LalamoveClient, LalamoveError
from soora.services.order_status import transition_order, utcnow

logger = logging.getLogger(__name__)

CUSTOMER_CANCELLABLE = {OrderStatus.PENDING, OrderStatus.CONFIRMED}
ADMIN_CANCELLABLE = {
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PROCESSING,
    OrderStatus.OUT_FOR_DELIVERY,
}
ESTIMATED_DELIVERY_MINUTES = 30


def generate_order_number() -> str:
    return f"SG-{str(int(time.time() * 1000))[-8:]}"


class OrderService:
    def __init__(self, order_repo, address_repo, fee_service: DeliveryFeeService, client: LalamoveClient):
        self.order_repo = order_repo
        self.address_repo = address_repo
        self.fee_service = fee_service
        self.client = client

    # --- Checkout ---
    def create_order(self, user: User, body: OrderCreate) -> Tuple[Order, FeeQuote]:
        address = self.address_repo.get_address(body.address_id)
        if address is None or address.user_id != user.id:
            raise AddressNotFoundError("Address not found")

        # Never blocks checkout: falls back to the flat fee
        fee = self.fee_service.resolve_fee(address)

        payment_status = (PaymentStatus.PENDING if body.payment_method is PaymentMethod.CASH_ON_DELIVERY
                          else PaymentStatus.PROCESSING)
        order_fields = {
            "order_number": generate_order_number(),
            "user_id": user.id,
            "address_id": address.id,
            "status": OrderStatus.PENDING.value,
            "payment_method": body.payment_method.value,
            "payment_status": payment_status.value,
            "delivery_fee": fee.fee,
            "currency": fee.currency,
            "customer_name": user.name or "",
            "customer_phone": user.phone or "",
            "customer_email": user.email,
            "delivery_notes": body.delivery_notes,
            "estimated_delivery": utcnow() + timedelta(minutes=ESTIMATED_DELIVERY_MINUTES),
        }
        items = [{"product_id": item.product_id, "quantity": item.quantity} for item in body.items]
        order = self.order_repo.create_order(order_fields, items)
        logger.info("Order %s (%s) created for user %s, total %.2f", order.id, order.order_number, user.id, order.total)
        return order, fee

    # --- Reads ---
    def get_order(self, order_id: int) -> Order:
        order = self.order_repo.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(f"Order {order_id} not found")
        return order

    def get_order_for_user(self, order_id: int, user: User) -> Order:
        order = self.get_order(order_id)
        if order.user_id != user.id and not user.is_admin:
            raise OrderAccessError("Forbidden")
        return order

    def list_user_orders(self, user: User) -> List[Order]:
        return self.order_repo.list_orders_for_user(user.id)

    def list_orders(self, status: Optional[OrderStatus] = None, limit: int = 20, offset: int = 0) -> List[Order]:
        return self.order_repo.list_orders(status=status, limit=limit, offset=offset)

    # --- Cancellation ---
    def cancel_order(self, order_id: int, user: User, reason: Optional[str] = None) -> Order:
        """Cancel an order, restore its stock and cancel any Lalamove delivery.

        Repeating the call on a cancelled order is a no-op.
        """
        order = self.get_order_for_user(order_id, user)
        if order.status is OrderStatus.CANCELLED:
            return order
        if order.status is OrderStatus.DELIVERED:
            raise OrderStateError("Delivered orders cannot be cancelled")

        allowed = ADMIN_CANCELLABLE if user.is_admin else CUSTOMER_CANCELLABLE
        if order.status not in allowed:
            raise OrderStateError("Order cannot be cancelled")

        reason = reason or ("Cancelled by admin" if user.is_admin else "Customer requested cancellation")
        if not self.order_repo.cancel_order(order_id, reason, allowed):
            current = self.get_order(order_id)
            if current.status is OrderStatus.CANCELLED:
                return current
            raise OrderStateError("Order cannot be cancelled")

        logger.info("Order %s cancelled: %s", order_id, reason)
        if order.lalamove_order_id:
            try:
                self.client.cancel_order(order.lalamove_order_id)
            except LalamoveError as exc:
                logger.warning("[Lalamove] Could not cancel delivery %s for order %s: %s",
                               order.lalamove_order_id, order_id, exc)
        return self.get_order(order_id)

    # --- Admin ---
    def update_status(self, order_id: int, status: OrderStatus, admin: User) -> Order:
        if status is OrderStatus.CANCELLED:
            return self.cancel_order(order_id, admin)
        order = self.get_order(order_id)
        if order.status is status:
            return order
        if not transition_order(self.order_repo, order, status):
            raise OrderStateError(f"Cannot change status from {order.status.value} to {status.value}")
        return self.get_order(order_id)
