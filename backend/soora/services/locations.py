# backend/soora/services/locations.py

import logging
import re
from typing import Optional

from soora.core.config import Settings
from soora.core.exceptions import AddressValidationError
from soora.models.address import Address
from soora.models.delivery import Location
from soora.services.geocoder import FALLBACK_LAT, FALLBACK_LNG, Geocoder

logger = logging.getLogger(__name__)

POSTAL_CODE_RE = re.compile(r"^\d{6}$")
MIN_STREET_LENGTH = 3


def validate_address(address: Address) -> None:
    """Reject addresses that can never be quoted or delivered to."""
    postal_code = (address.postal_code or "").strip()
    if not POSTAL_CODE_RE.match(postal_code):
        raise AddressValidationError("Postal code must be a 6-digit Singapore postal code")
    street = (address.street or "").strip()
    if len(street) < MIN_STREET_LENGTH or not any(ch.isalnum() for ch in street):
        raise AddressValidationError("Street address is missing or too short")


class LocationService:
    """Turns addresses into routable stops: stored coordinates, else geocode, else city centre.

    The stop text is always the customer's own address; the geocoder only supplies coordinates.
    """

    def __init__(self, geocoder: Geocoder, settings: Settings, address_repo=None):
        self.geocoder = geocoder
        self.settings = settings
        self.address_repo = address_repo

    def store_location(self) -> Location:
        return Location(
            lat=self.settings.store_lat,
            lng=self.settings.store_lng,
            address=self.settings.store_address,
        )

    def resolve_destination(self, address: Address) -> Location:
        if address.has_coordinates:
            return Location(lat=address.latitude, lng=address.longitude, address=address.display())

        geo = self.geocoder.resolve(address.street, address.postal_code)
        if geo is None:
            logger.warning("Falling back to city centre for address %s (%s)", address.id, address.postal_code)
            return Location(lat=FALLBACK_LAT, lng=FALLBACK_LNG, address=address.display())

        address.latitude, address.longitude = geo.lat, geo.lng
        self._cache_coordinates(address)
        return Location(lat=geo.lat, lng=geo.lng, address=address.display())

    def _cache_coordinates(self, address: Address) -> None:
        if address.id is None or self.address_repo is None:
            return
        try:
            self.address_repo.update_coordinates(address.id, address.latitude, address.longitude)
        except Exception:
            # A failed write only costs a repeat lookup next time
            logger.exception("Could not store coordinates for address %s", address.id)
