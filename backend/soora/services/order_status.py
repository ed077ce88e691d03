# backend/soora/services/order_status.py

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from soora.models.order import Order, OrderStatus

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def transition_order(order_repo, order: Order, target: OrderStatus,
                     extra_fields: Optional[Dict[str, Any]] = None) -> bool:
    """Move ``order`` forward to ``target`` if the status rank allows it.

    The write is a compare-and-set on the current status. If another writer
    got there first, the order is re-read and the check repeated once.
    Returns True when the status was changed.
    """
    fields = dict(extra_fields or {})
    if target is OrderStatus.DELIVERED:
        fields.setdefault("delivered_at", utcnow())

    current = order
    for _ in range(2):
        if not current.status.can_advance_to(target):
            if current.status is not target:
                logger.info("Order %s: ignoring %s -> %s (status only moves forward)",
                            current.id, current.status.value, target.value)
            return False
        if order_repo.transition_status(current.id, current.status, target, fields):
            logger.info("Order %s: %s -> %s", current.id, current.status.value, target.value)
            return True
        current = order_repo.get_order(current.id)
        if current is None:
            return False
    logger.warning("Order %s: gave up moving to %s after concurrent updates", order.id, target.value)
    return False
