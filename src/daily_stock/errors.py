"""Exception hierarchy shared by the catalog, record engine, and query layer."""

from __future__ import annotations


class StockTrackerError(Exception):
    """Base class for every domain error raised by the package."""


class ValidationError(StockTrackerError, ValueError):
    """Raised when caller supplied input is malformed or out of range.

    Attributes:
        field (str): Name of the offending input field so front-ends can point
            the user at the value that needs correcting.
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class NotFoundError(StockTrackerError, LookupError):
    """Raised when a product or record identifier cannot be resolved."""


class ProductNotFoundError(NotFoundError):
    """Raised when a product id is unknown."""

    def __init__(self, product_id: str) -> None:
        super().__init__(f"Product not found: {product_id}")
        self.product_id = product_id


class RecordNotFoundError(NotFoundError):
    """Raised when a daily record id is unknown."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Record not found: {record_id}")
        self.record_id = record_id


class DuplicateRecordError(StockTrackerError):
    """Raised when a record already exists for a product and date."""

    def __init__(self, product_id: str, date: str) -> None:
        super().__init__(f"Record already exists for product '{product_id}' on {date}")
        self.product_id = product_id
        self.date = date


class InternalConsistencyError(StockTrackerError, RuntimeError):
    """Raised when stored data breaks a referential invariant.

    A daily record pointing at a missing product means a cascade delete did not
    run. The request fails but the store is left untouched.
    """


__all__ = [
    "StockTrackerError",
    "ValidationError",
    "NotFoundError",
    "ProductNotFoundError",
    "RecordNotFoundError",
    "DuplicateRecordError",
    "InternalConsistencyError",
]
