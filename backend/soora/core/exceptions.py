# backend/soora/core/exceptions.py
"""Domain errors raised by services and repositories.

API modules translate these into HTTP responses; see ``soora.api``.
"""


class AddressValidationError(ValueError):
    """Street or postal code is not a usable Singapore address."""


class OrderNotFoundError(LookupError):
    pass


class AddressNotFoundError(LookupError):
    pass


class ProductNotFoundError(LookupError):
    pass


class OrderAccessError(PermissionError):
    """The caller does not own the order and is not an admin."""


class OrderStateError(ValueError):
    """The requested transition is not allowed from the order's current status."""


class InsufficientStockError(ValueError):
    pass


class DispatchError(Exception):
    """Delivery dispatch failed; the order is left in its pre-dispatch state."""


class AlreadyDispatchedError(DispatchError):
    """The order already carries a Lalamove order id."""
