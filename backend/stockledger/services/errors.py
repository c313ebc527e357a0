# Overview: Typed service-layer errors; routes translate them to JSON responses.

"""
Error taxonomy for ledger operations.

Services raise these instead of returning sentinel values. Each carries a
stable machine-readable code, the HTTP status the API maps it to, and a
details dict describing the offending lines so callers can present it.

Raising any of them inside a service operation rolls back the whole
transaction: nothing is partially applied.
"""


class ServiceError(Exception):
    """Base class for expected, user-correctable failures."""
    code = "SERVICE_ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code, "details": self.details}


class StockError(ServiceError):
    code = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """Requested quantity exceeds live stock for one or more products."""
    code = "INSUFFICIENT_STOCK"
    http_status = 409


class ProductNotFoundError(StockError):
    code = "PRODUCT_NOT_FOUND"
    http_status = 404


class InvalidQuantityError(StockError):
    code = "INVALID_QUANTITY"


class EmptyBatchError(StockError):
    """Cart, receiving batch or transfer with no lines."""
    code = "EMPTY_BATCH"


class LocationMismatchError(StockError):
    """Product row is held at the wrong location for the operation."""
    code = "LOCATION_MISMATCH"
    http_status = 409


class NotFoundError(ServiceError):
    code = "NOT_FOUND"
    http_status = 404


class DeliveryStateError(ServiceError):
    """Operation is invalid for the delivery's current status."""
    code = "INVALID_DELIVERY_STATE"
    http_status = 409


class SettingsValidationError(ServiceError):
    code = "INVALID_SETTINGS"


class AuthError(ServiceError):
    code = "AUTHENTICATION_FAILED"
    http_status = 401
