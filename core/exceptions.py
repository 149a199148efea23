from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response
from rest_framework import exceptions, status
import logging

logger = logging.getLogger("taskboard.core")


# -------------------------------------------------------------------
# Error taxonomy
# -------------------------------------------------------------------
class ValidationError(exceptions.ValidationError):
    """
    Field-level validation failure.
    `detail` maps each offending field to a list of messages, so every
    violation is reported at once.
    """


class NotFoundError(exceptions.NotFound):
    default_detail = "Not found."


class AccessDeniedError(exceptions.PermissionDenied):
    default_detail = "Access denied."


class ConflictError(exceptions.APIException):
    """Request conflicts with current state (duplicate member, owner removal)."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict with the current state of the resource."
    default_code = "conflict"


class UnexpectedError(exceptions.APIException):
    """Store / infrastructure failure. Detail never leaves the server."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal server error."
    default_code = "unexpected"


class CascadeDeleteError(UnexpectedError):
    default_code = "cascade_failed"


# -------------------------------------------------------------------
# DRF exception handler
# -------------------------------------------------------------------
def _error_response(status_code, errors):
    return Response(
        {
            "success": False,
            "status_code": status_code,
            "errors": errors,
        },
        status=status_code,
    )


def custom_exception_handler(exc, context):
    """
    Wrap DRF + Django exceptions into a consistent response format.

    Success responses (2xx) are not touched.
    Only errors come through here.
    """
    if isinstance(exc, UnexpectedError):
        logger.exception("Unexpected API failure", exc_info=exc)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            {"detail": UnexpectedError.default_detail},
        )

    response = drf_exception_handler(exc, context)

    # If DRF handled it, wrap it
    if response is not None:
        errors = response.data
        if not isinstance(errors, dict):
            errors = {"detail": errors}
        return _error_response(response.status_code, errors)

    # Unhandled exceptions -> 500
    logger.exception("Unhandled API exception", exc_info=exc)

    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        {"detail": UnexpectedError.default_detail},
    )
