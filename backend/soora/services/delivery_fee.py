# backend/soora/services/delivery_fee.py

import logging
import math
from typing import Optional

import requests

from soora.core.config import Settings
from soora.models.address import Address
from soora.models.delivery import FeeQuote, Quotation
from soora.services.lalamove import LalamoveClient, LalamoveError
from soora.services.locations import LocationService, validate_address

logger = logging.getLogger(__name__)


class DeliveryFeeService:
    """Checkout-time delivery pricing.

    The fee shown at checkout is advisory: if Lalamove is unreachable or
    answers with something unusable, the configured flat fee is returned
    instead. Only address validation errors escape ``resolve_fee``.
    """

    def __init__(self, client: LalamoveClient, locations: LocationService, settings: Settings):
        self.client = client
        self.locations = locations
        self.settings = settings

    def resolve_fee(self, address: Address) -> FeeQuote:
        validate_address(address)

        destination = self.locations.resolve_destination(address)
        stops = [self.locations.store_location(), destination]

        quotation = self._quote(stops)
        if quotation is None:
            return self._flat_fee("Live delivery pricing is unavailable; a flat delivery fee was applied.")

        fee = self._parse_fee(quotation.total)
        if fee is None:
            logger.warning("Quotation %s had no usable priceBreakdown.total: %r",
                           quotation.quotation_id, quotation.total)
            return self._flat_fee("Delivery quote was incomplete; a flat delivery fee was applied.")

        return FeeQuote(
            fee=fee,
            currency=quotation.currency or self.settings.currency,
            estimated_time=quotation.estimated_time,
        )

    def _quote(self, stops) -> Optional[Quotation]:
        try:
            return self.client.get_quotation(stops, is_route_optimized=True)
        except (LalamoveError, requests.RequestException) as exc:
            logger.warning("Quotation failed (%s), retrying without route optimisation", exc)
        try:
            return self.client.get_quotation(stops, is_route_optimized=False)
        except (LalamoveError, requests.RequestException) as exc:
            logger.warning("Quotation retry failed (%s), using flat fee", exc)
        return None

    @staticmethod
    def _parse_fee(total: Optional[str]) -> Optional[float]:
        if total is None:
            return None
        try:
            fee = float(total)
        except (TypeError, ValueError):
            return None
        if not math.isfinite(fee) or fee < 0:
            return None
        return fee

    def _flat_fee(self, warning: str) -> FeeQuote:
        return FeeQuote(
            fee=float(self.settings.delivery_fee),
            currency=self.settings.currency,
            is_fallback=True,
            warning=warning,
        )
