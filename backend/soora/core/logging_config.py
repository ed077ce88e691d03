# backend/soora/core/logging_config.py

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure root logging once for the API process."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # Nominatim/Lalamove request lines are noisy at INFO
    logging.getLogger("urllib3").setLevel(logging.WARNING)
