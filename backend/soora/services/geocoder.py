# backend/soora/services/geocoder.py

import logging
import math
from typing import Optional

import requests

from soora.core.config import Settings
from soora.models.delivery import GeocodeResult

logger = logging.getLogger(__name__)

# Singapore city centre, used whenever an address cannot be geocoded
FALLBACK_LAT = 1.3521
FALLBACK_LNG = 103.8198


class Geocoder:
    """Singapore address lookup against OpenStreetMap Nominatim.

    ``resolve`` never raises: any failure returns None and callers
    substitute the city-centre coordinate.
    """

    def __init__(self, url: str, user_agent: str, timeout: float = 5.0,
                 session: Optional[requests.Session] = None):
        self.url = url
        self.user_agent = user_agent
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings) -> "Geocoder":
        return cls(settings.geocoder_url, settings.geocoder_user_agent, settings.geocoder_timeout_seconds)

    def resolve(self, street: str, postal_code: Optional[str] = None) -> Optional[GeocodeResult]:
        query = f"{street}, Singapore {postal_code}" if postal_code else f"{street}, Singapore"
        params = {
            "q": query,
            "format": "json",
            "addressdetails": "1",
            "countrycodes": "sg",
            "limit": "1",
        }
        try:
            response = self.session.get(
                self.url,
                params=params,
                headers={"User-Agent": self.user_agent},
                timeout=self.timeout,
            )
            response.raise_for_status()
            results = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Geocoding failed for %r: %s", query, exc)
            return None

        if not isinstance(results, list) or not results:
            logger.info("No geocoding result for %r", query)
            return None

        first = results[0]
        if not isinstance(first, dict):
            return None
        try:
            lat = float(first.get("lat"))
            lng = float(first.get("lon"))
        except (TypeError, ValueError):
            return None
        if not (math.isfinite(lat) and math.isfinite(lng)):
            return None
        return GeocodeResult(lat=lat, lng=lng, display_name=first.get("display_name") or query)
