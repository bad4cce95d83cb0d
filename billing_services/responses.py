"""
Map exceptions to transport-neutral error responses.

Billing errors keep their status and message; anything else becomes a
500 with a generic message and is logged with its stack trace.
"""

from __future__ import annotations

from typing import Any

from billing_kernel.exceptions import BillingError
from billing_kernel.logging_config import get_logger

logger = get_logger("services.responses")

INTERNAL_ERROR_MESSAGE = "Internal server error"


def error_response(exc: BaseException) -> tuple[int, dict[str, Any]]:
    """
    Status code and JSON body for an exception raised by a report call.

    Returns:
        (http_status, {"code": ..., "message": ...})
    """
    if isinstance(exc, BillingError):
        if exc.http_status >= 500:
            logger.error(
                "billing_error",
                exc_info=(type(exc), exc, exc.__traceback__),
                extra={"error_code": exc.code},
            )
        else:
            logger.info(
                "request_rejected",
                extra={"error_code": exc.code, "http_status": exc.http_status},
            )
        return exc.http_status, {"code": exc.code, "message": str(exc)}

    logger.error(
        "unhandled_exception",
        exc_info=(type(exc), exc, exc.__traceback__),
        extra={"error_type": type(exc).__name__},
    )
    return BillingError.http_status, {
        "code": BillingError.code,
        "message": INTERNAL_ERROR_MESSAGE,
    }
