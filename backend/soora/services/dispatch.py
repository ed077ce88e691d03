# backend/soora/services/dispatch.py

import logging
from typing import List, Tuple

from soora.core.config import Settings
from soora.core.exceptions import AddressNotFoundError, AlreadyDispatchedError, DispatchError, OrderNotFoundError
from soora.models.delivery import Contact, Location, Quotation
from soora.models.order import Order, OrderStatus
from soora.services.lalamove import LalamoveAPIError, LalamoveClient, LalamoveError
from soora.services.locations import LocationService
from soora.services.order_status import transition_order

logger = logging.getLogger(__name__)

DEFAULT_REMARKS = "Fragile - Alcohol"
INITIAL_PROVIDER_STATUS = "ASSIGNING_DRIVER"


class DispatchService:
    """Books a Lalamove delivery for a paid order.

    Nothing is written to the order until Lalamove has accepted the
    delivery; any earlier failure leaves the order exactly as it was so an
    admin can re-trigger dispatch.
    """

    def __init__(self, client: LalamoveClient, locations: LocationService,
                 order_repo, address_repo, settings: Settings):
        self.client = client
        self.locations = locations
        self.order_repo = order_repo
        self.address_repo = address_repo
        self.settings = settings

    def dispatch(self, order_id: int) -> Order:
        order = self._load_dispatchable(order_id)

        address = self.address_repo.get_address(order.address_id)
        if address is None:
            raise AddressNotFoundError(f"Address {order.address_id} for order {order_id} not found")

        destination = self.locations.resolve_destination(address)
        pickup = self.locations.store_location()

        logger.info("[Lalamove] Requesting quotation for order %s", order_id)
        quotation = self._quote([pickup, destination])
        quotation_id, pickup_stop_id, dropoff_stop_id = self._stop_ids(order_id, quotation)

        # Another dispatch may have completed while we were quoting
        order = self._load_dispatchable(order_id)

        logger.info("[Lalamove] Creating delivery order for order %s", order_id)
        try:
            delivery = self.client.create_order(
                quotation_id,
                sender=Contact(
                    stop_id=pickup_stop_id,
                    name=self.settings.store_name,
                    phone=self.settings.store_phone,
                ),
                recipients=[Contact(
                    stop_id=dropoff_stop_id,
                    name=order.customer_name,
                    phone=order.customer_phone,
                    remarks=order.delivery_notes or DEFAULT_REMARKS,
                )],
                metadata={"orderId": order.id, "orderNumber": order.order_number},
            )
        except LalamoveError as exc:
            logger.error("[Lalamove] Delivery creation failed for order %s: %s", order_id, exc)
            raise DispatchError(f"Could not create delivery for order {order_id}: {exc}") from exc

        recorded = self.order_repo.record_dispatch(
            order_id,
            lalamove_order_id=delivery.order_id,
            lalamove_status=delivery.status or INITIAL_PROVIDER_STATUS,
            tracking_url=delivery.share_link,
        )
        if not recorded:
            logger.error("[Lalamove] Order %s was dispatched concurrently; cancelling duplicate delivery %s",
                         order_id, delivery.order_id)
            self._cancel_duplicate(delivery.order_id)
            raise AlreadyDispatchedError(f"Order {order_id} already has a delivery")

        logger.info("[Lalamove] Delivery %s created for order %s", delivery.order_id, order_id)
        refreshed = self.order_repo.get_order(order_id)
        transition_order(self.order_repo, refreshed, OrderStatus.PROCESSING)
        return self.order_repo.get_order(order_id)

    def _load_dispatchable(self, order_id: int) -> Order:
        order = self.order_repo.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(f"Order {order_id} not found")
        if order.lalamove_order_id:
            raise AlreadyDispatchedError(
                f"Order {order_id} already has Lalamove order {order.lalamove_order_id}"
            )
        if order.status.is_terminal:
            raise DispatchError(f"Order {order_id} is {order.status.value} and cannot be dispatched")
        return order

    def _quote(self, stops: List[Location]) -> Quotation:
        try:
            return self.client.get_quotation(stops, is_route_optimized=True)
        except LalamoveAPIError as exc:
            if exc.status_code in (401, 403):
                raise
            logger.warning("[Lalamove] Quotation failed (%s), retrying once", exc)
        except LalamoveError as exc:
            logger.warning("[Lalamove] Quotation failed (%s), retrying once", exc)
        try:
            return self.client.get_quotation(stops, is_route_optimized=False)
        except LalamoveError as exc:
            raise DispatchError(f"Quotation failed after retry: {exc}") from exc

    @staticmethod
    def _stop_ids(order_id: int, quotation: Quotation) -> Tuple[str, str, str]:
        stop_ids = [stop.stop_id for stop in quotation.stops]
        if not quotation.quotation_id or len(stop_ids) < 2 or not all(stop_ids[:2]):
            logger.error("[Lalamove] Invalid quotation response for order %s: %s", order_id, quotation.raw)
            raise DispatchError(f"Quotation for order {order_id} is missing its id or stop ids")
        return quotation.quotation_id, stop_ids[0], stop_ids[1]

    def _cancel_duplicate(self, provider_id: str) -> None:
        try:
            self.client.cancel_order(provider_id)
        except LalamoveError as exc:
            logger.error("[Lalamove] Could not cancel duplicate delivery %s: %s", provider_id, exc)
