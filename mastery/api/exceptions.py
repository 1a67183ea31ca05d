import structlog
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from ..errors import ConcurrentUpdateConflict, FreezeUnavailable, InvalidRequest, MasteryError, NotFound

logger = structlog.get_logger()

STATUS_BY_KIND = {
    InvalidRequest.kind: status.HTTP_400_BAD_REQUEST,
    NotFound.kind: status.HTTP_404_NOT_FOUND,
    FreezeUnavailable.kind: status.HTTP_409_CONFLICT,
    ConcurrentUpdateConflict.kind: status.HTTP_409_CONFLICT,
}


def error_body(kind, message, details=None):
    error = {"kind": kind, "message": message}
    if details:
        error["details"] = details
    return {"error": error}


def tagged_exception_handler(exc, context):
    """Render every failure as ``{"error": {"kind", "message", "details"?}}``."""
    if isinstance(exc, MasteryError):
        logger.info("request_failed", kind=exc.kind, message=exc.message)
        return Response(
            error_body(exc.kind, exc.message, exc.details),
            status=STATUS_BY_KIND.get(exc.kind, status.HTTP_400_BAD_REQUEST),
        )

    response = exception_handler(exc, context)
    if response is None:
        # Unhandled: let Django's 500 handling take over
        return None

    if isinstance(exc, exceptions.ValidationError):
        response.data = error_body(InvalidRequest.kind, "Invalid request", exc.detail)
    elif isinstance(exc, exceptions.Throttled):
        response.data = error_body("throttled", str(exc.detail), {"wait": exc.wait})
    elif isinstance(exc, exceptions.NotFound):
        response.data = error_body(NotFound.kind, str(exc.detail))
    elif isinstance(exc, exceptions.APIException):
        response.data = error_body(exc.default_code, str(exc.detail))
    else:
        # Django Http404 / PermissionDenied
        response.data = error_body("not_found" if response.status_code == 404 else "error", str(exc))
    return response
