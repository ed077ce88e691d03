# backend/soora/api/errors.py

from fastapi import HTTPException, status

from soora.core.exceptions import (
    AddressNotFoundError,
    AddressValidationError,
    AlreadyDispatchedError,
    DispatchError,
    InsufficientStockError,
    OrderAccessError,
    OrderNotFoundError,
    OrderStateError,
    ProductNotFoundError,
)
from soora.services.lalamove import LalamoveError

# Most specific first: AlreadyDispatchedError is a DispatchError
ERROR_STATUS = (
    (AddressValidationError, status.HTTP_400_BAD_REQUEST),
    (InsufficientStockError, status.HTTP_400_BAD_REQUEST),
    (OrderStateError, status.HTTP_400_BAD_REQUEST),
    (OrderAccessError, status.HTTP_403_FORBIDDEN),
    ((OrderNotFoundError, AddressNotFoundError, ProductNotFoundError), status.HTTP_404_NOT_FOUND),
    (AlreadyDispatchedError, status.HTTP_409_CONFLICT),
    ((DispatchError, LalamoveError), status.HTTP_502_BAD_GATEWAY),
)


def http_error(exc: Exception, action: str = "process request") -> HTTPException:
    """Translate a domain error into the HTTPException the API returns."""
    for error_types, code in ERROR_STATUS:
        if isinstance(exc, error_types):
            return HTTPException(status_code=code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to {action}: {exc}")
