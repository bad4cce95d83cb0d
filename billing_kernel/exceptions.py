"""
Typed exception hierarchy for the billing system.

Every error has a typed class, a machine-readable ``code`` class attribute
and an ``http_status`` class attribute used by the response mapper.  Context
is carried as attributes, never parsed out of the message.

    BillingError (base, 500)
    |
    +-- NotFoundError (404)
    |   +-- BillNotFoundError
    |
    +-- BillingValidationError (400)
    |   +-- InvalidTimeframeError
    |   +-- InvalidDateRangeError
    |   +-- InvalidFilterError
    |
    +-- PersistenceUnavailableError (503)
    |
    +-- ConfigurationError (500)

Code            | When raised
----------------|-------------------------------------------------------
BILL_NOT_FOUND  | get_bill with an unknown id
INVALID_TIMEFRAME | timeframe is not week/month/quarter/year/custom
INVALID_DATE_RANGE | custom range missing, unparsable, or from > to
INVALID_FILTER  | list filters out of range (e.g. non-positive limit)
PERSISTENCE_UNAVAILABLE | live query failed and no fallback was supplied
CONFIGURATION_ERROR | YAML configuration values are invalid

Classification, revenue resolution, profit and aggregation never raise
for data-shape reasons; malformed amounts coerce to zero.
"""

from datetime import date


class BillingError(Exception):
    """
    Base exception for all billing errors.

    All subclasses carry a ``code`` and an ``http_status`` class attribute.
    """

    code: str = "INTERNAL_ERROR"
    http_status: int = 500


# Not-found errors


class NotFoundError(BillingError):
    """Base exception for lookups of entities that do not exist."""

    code: str = "NOT_FOUND"
    http_status: int = 404


class BillNotFoundError(NotFoundError):
    """Bill with given ID was not found."""

    code: str = "BILL_NOT_FOUND"

    def __init__(self, bill_id: str):
        self.bill_id = str(bill_id)
        super().__init__(f"Bill not found: {bill_id}")


# Validation errors


class BillingValidationError(BillingError):
    """Base exception for malformed request parameters."""

    code: str = "VALIDATION_ERROR"
    http_status: int = 400


class InvalidTimeframeError(BillingValidationError):
    """Timeframe is not one of the supported values."""

    code: str = "INVALID_TIMEFRAME"

    def __init__(self, timeframe: str, allowed: tuple[str, ...]):
        self.timeframe = timeframe
        self.allowed = allowed
        super().__init__(
            f"Invalid timeframe {timeframe!r}; expected one of {', '.join(allowed)}"
        )


class InvalidDateRangeError(BillingValidationError):
    """Date range is missing, unparsable, or inverted."""

    code: str = "INVALID_DATE_RANGE"

    def __init__(
        self,
        reason: str,
        date_from: date | str | None = None,
        date_to: date | str | None = None,
    ):
        self.reason = reason
        self.date_from = None if date_from is None else str(date_from)
        self.date_to = None if date_to is None else str(date_to)
        super().__init__(f"Invalid date range: {reason}")


class InvalidFilterError(BillingValidationError):
    """A list filter has an unusable value."""

    code: str = "INVALID_FILTER"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid filter {field}={value!r}: {reason}")


# Infrastructure errors


class PersistenceUnavailableError(BillingError):
    """Live data source failed or timed out and no fallback was supplied."""

    code: str = "PERSISTENCE_UNAVAILABLE"
    http_status: int = 503

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Data source unavailable for {operation}: {reason}")


class ConfigurationError(BillingError):
    """Configuration file is missing or holds invalid values."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid configuration at {key}: {reason}")
