# backend/soora/services/tracking.py

import logging
from typing import Optional

from soora.core.exceptions import OrderStateError
from soora.models.delivery import Driver, DriverLocation, LalamoveStatus, TrackingInfo
from soora.models.order import Order
from soora.services.lalamove import LalamoveAPIError, LalamoveClient
from soora.services.webhook import WebhookReconciler

logger = logging.getLogger(__name__)


class DeliveryTrackingService:
    """Pull-based counterpart of the webhook: asks Lalamove for the latest state."""

    def __init__(self, client: LalamoveClient, reconciler: WebhookReconciler):
        self.client = client
        self.reconciler = reconciler

    def track(self, order: Order) -> TrackingInfo:
        if not order.lalamove_order_id:
            raise OrderStateError("No delivery assigned yet")

        delivery = self.client.get_order_status(order.lalamove_order_id)
        updated = self.reconciler.apply(
            order,
            raw_status=delivery.status,
            signal=LalamoveStatus.parse(delivery.status),
            share_link=delivery.share_link,
        ) or order

        driver = None
        if updated.lalamove_driver_name or updated.lalamove_driver_id:
            driver = Driver(
                driver_id=updated.lalamove_driver_id,
                name=updated.lalamove_driver_name,
                phone=updated.lalamove_driver_phone,
                plate_number=updated.lalamove_driver_plate,
            )
        return TrackingInfo(
            order_id=updated.id,
            lalamove_order_id=order.lalamove_order_id,
            status=updated.lalamove_status,
            local_status=updated.status.value,
            share_link=updated.lalamove_tracking_url,
            driver=driver,
        )

    def driver_location(self, order: Order) -> Optional[DriverLocation]:
        if not order.lalamove_order_id:
            return None
        try:
            return self.client.get_driver_location(order.lalamove_order_id)
        except LalamoveAPIError as exc:
            if exc.status_code == 404:
                # No driver assigned yet
                return None
            raise
