# backend/soora/services/webhook.py

import logging
from typing import Any, Dict, Optional, Tuple

from soora.models.delivery import Driver, LalamoveStatus
from soora.models.order import Order, OrderStatus
from soora.services.order_status import transition_order

logger = logging.getLogger(__name__)

# Every LalamoveStatus must appear here; checked at import time and in tests.
STATUS_MAP = {
    LalamoveStatus.DRIVER_ASSIGNED: OrderStatus.PROCESSING,
    LalamoveStatus.ASSIGNING_DRIVER: OrderStatus.PROCESSING,
    LalamoveStatus.ON_GOING: OrderStatus.OUT_FOR_DELIVERY,
    LalamoveStatus.PICKED_UP: OrderStatus.OUT_FOR_DELIVERY,
    LalamoveStatus.COMPLETED: OrderStatus.DELIVERED,
    LalamoveStatus.CANCELED: OrderStatus.CANCELLED,
    LalamoveStatus.REJECTED: OrderStatus.CANCELLED,
    LalamoveStatus.EXPIRED: OrderStatus.CANCELLED,
}

_unmapped = set(LalamoveStatus) - set(STATUS_MAP)
if _unmapped:
    raise RuntimeError(f"Lalamove statuses without a local mapping: {sorted(s.value for s in _unmapped)}")

# eventType values that imply a status when the payload carries none
EVENT_SIGNALS = {
    "DRIVER_ASSIGNED": LalamoveStatus.DRIVER_ASSIGNED,
    "ORDER_ASSIGNING_DRIVER": LalamoveStatus.ASSIGNING_DRIVER,
    "ORDER_ON_GOING": LalamoveStatus.ON_GOING,
    "ORDER_PICKED_UP": LalamoveStatus.PICKED_UP,
    "ORDER_COMPLETED": LalamoveStatus.COMPLETED,
    "ORDER_CANCELED": LalamoveStatus.CANCELED,
    "ORDER_CANCELLED": LalamoveStatus.CANCELED,
    "ORDER_REJECTED": LalamoveStatus.REJECTED,
    "ORDER_EXPIRED": LalamoveStatus.EXPIRED,
}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def extract_provider_order_id(payload: Dict[str, Any]) -> Optional[str]:
    """The Lalamove order id sits under ``data.order`` or directly under ``data``."""
    data = _as_dict(payload.get("data"))
    order = _as_dict(data.get("order"))
    return _text(order.get("orderId")) or _text(data.get("orderId"))


def resolve_signal(payload: Dict[str, Any]) -> Tuple[Optional[str], Optional[LalamoveStatus]]:
    """Return (raw status to store, parsed status) for a webhook payload.

    An explicit status string wins over the event type.
    """
    data = _as_dict(payload.get("data"))
    order = _as_dict(data.get("order"))
    raw = _text(order.get("status")) or _text(data.get("status"))
    if raw:
        return raw, LalamoveStatus.parse(raw)

    event_type = (_text(payload.get("eventType")) or "").upper()
    signal = EVENT_SIGNALS.get(event_type)
    return (signal.value if signal else None), signal


def extract_driver(payload: Dict[str, Any]) -> Optional[Driver]:
    driver = _as_dict(_as_dict(payload.get("data")).get("driver"))
    if not driver:
        return None
    return Driver(
        driver_id=_text(driver.get("driverId")),
        name=_text(driver.get("name")),
        phone=_text(driver.get("phone")),
        plate_number=_text(driver.get("plateNumber")),
    )


def extract_share_link(payload: Dict[str, Any]) -> Optional[str]:
    data = _as_dict(payload.get("data"))
    return _text(data.get("shareLink")) or _text(_as_dict(data.get("order")).get("shareLink"))


class WebhookReconciler:
    """Applies Lalamove status pushes to the stored order.

    Updates are field-level and idempotent: replaying an event leaves the
    order unchanged, and a late event can never move the status backward.
    """

    def __init__(self, order_repo):
        self.order_repo = order_repo

    def handle_event(self, payload: Dict[str, Any]) -> Optional[Order]:
        provider_id = extract_provider_order_id(payload)
        if not provider_id:
            logger.warning("Webhook %s without an order id ignored", payload.get("eventType"))
            return None

        order = self.order_repo.get_order_by_lalamove_id(provider_id)
        if order is None:
            logger.info("Webhook for unknown Lalamove order %s discarded", provider_id)
            return None

        raw_status, signal = resolve_signal(payload)
        if raw_status and signal is None:
            logger.warning("Unrecognised Lalamove status %r for order %s", raw_status, order.id)
        return self.apply(order, raw_status, signal, extract_driver(payload), extract_share_link(payload))

    def apply(self, order: Order, raw_status: Optional[str], signal: Optional[LalamoveStatus],
              driver: Optional[Driver] = None, share_link: Optional[str] = None) -> Order:
        fields: Dict[str, Any] = {}
        if raw_status:
            fields["lalamove_status"] = raw_status
        if share_link:
            fields["lalamove_tracking_url"] = share_link
        if driver is not None:
            driver_fields = {
                "lalamove_driver_id": driver.driver_id,
                "lalamove_driver_name": driver.name,
                "lalamove_driver_phone": driver.phone,
                "lalamove_driver_plate": driver.plate_number,
            }
            # Linkage fields are never cleared by a partial payload
            fields.update({key: value for key, value in driver_fields.items() if value})

        if fields:
            self.order_repo.update_fields(order.id, fields)

        if signal is not None:
            target = STATUS_MAP[signal]
            extra = {}
            if target is OrderStatus.CANCELLED:
                extra["cancel_reason"] = f"Delivery {signal.value.lower()} by Lalamove"
            transition_order(self.order_repo, order, target, extra)

        return self.order_repo.get_order(order.id)
