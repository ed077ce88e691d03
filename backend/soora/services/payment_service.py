# backend/soora/services/payment_service.py

import logging
from typing import Optional

from soora.core.exceptions import OrderNotFoundError
from soora.models.order import Order, OrderStatus, PaymentStatus
from soora.services.dispatch import DispatchService
from soora.services.order_status import transition_order

logger = logging.getLogger(__name__)


class PaymentService:
    """Reacts to payment outcomes reported by the payments provider."""

    def __init__(self, order_repo, dispatcher: DispatchService):
        self.order_repo = order_repo
        self.dispatcher = dispatcher

    def _load(self, order_id: int) -> Order:
        order = self.order_repo.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(f"Order {order_id} not found")
        return order

    def confirm_payment(self, order_id: int, payment_reference: Optional[str] = None) -> Order:
        order = self._load(order_id)

        fields = {"payment_status": PaymentStatus.COMPLETED.value}
        if payment_reference:
            fields["payment_reference"] = payment_reference
        self.order_repo.update_fields(order_id, fields)
        transition_order(self.order_repo, order, OrderStatus.CONFIRMED)
        logger.info("Payment confirmed for order %s", order_id)

        order = self._load(order_id)
        if order.lalamove_order_id or order.status.is_terminal:
            return order

        # A delivery failure must never undo a successful payment
        try:
            return self.dispatcher.dispatch(order_id)
        except Exception:
            logger.exception("[Lalamove] Failed to trigger delivery for order %s; awaiting manual dispatch", order_id)
            return self._load(order_id)

    def mark_payment_failed(self, order_id: int) -> Order:
        self._load(order_id)
        self.order_repo.update_fields(order_id, {"payment_status": PaymentStatus.FAILED.value})
        logger.info("Payment failed for order %s", order_id)
        return self._load(order_id)
