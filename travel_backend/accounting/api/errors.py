# accounting/api/errors.py

"""
API ERROR NORMALIZATION

Every domain failure leaves the API as:
    {"error": {"code": "<stable code>", "message": "<human text>"}}
"""

from rest_framework import status
from rest_framework.response import Response

from accounting.services.exceptions import (
    AccountingServiceError,
    DuplicatePostingError,
)
from accounting.services.period_lock import (
    NoOpenPeriodError,
    PeriodCloseError,
    PeriodLockedError,
)

# Errors that describe a conflict with current state rather than bad input.
CONFLICT_ERRORS = (DuplicatePostingError, PeriodLockedError)

ACCOUNTING_ERRORS = (
    AccountingServiceError,
    PeriodLockedError,
    NoOpenPeriodError,
    PeriodCloseError,
)


def error_response(*, code: str, message: str, http_status: int):
    """
    Canonical API error response.
    """
    return Response(
        {"error": {"code": code, "message": message}},
        status=http_status,
    )


def domain_error_response(exc: Exception, *, conflict_errors=CONFLICT_ERRORS):
    http_status = (
        status.HTTP_409_CONFLICT
        if isinstance(exc, conflict_errors)
        else status.HTTP_400_BAD_REQUEST
    )
    return error_response(
        code=getattr(exc, "code", "error"),
        message=str(exc),
        http_status=http_status,
    )


def forbidden(message: str):
    return error_response(
        code="permission_denied",
        message=message,
        http_status=status.HTTP_403_FORBIDDEN,
    )
