import logging

from django.core.exceptions import PermissionDenied, ValidationError as DjangoValidationError
from django.db import IntegrityError
from django.http import Http404, JsonResponse
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class ApiError(exceptions.APIException):
    """Operational error raised from views with an explicit status code."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Bad request."

    def __init__(self, message=None, status_code=None, extra=None):
        super().__init__(detail=message)
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra or {}


def _flatten(detail):
    if isinstance(detail, dict):
        for key, value in detail.items():
            for message in _flatten(value):
                yield message if key == "non_field_errors" else f"{key}: {message}"
    elif isinstance(detail, (list, tuple)):
        for value in detail:
            yield from _flatten(value)
    else:
        yield str(detail)


def exception_handler(exc, context):
    """Render every API error as ``{"error": message}``."""
    view = context.get("view")
    request = context.get("request")

    if isinstance(exc, DjangoValidationError):
        exc = exceptions.ValidationError(
            exc.message_dict if hasattr(exc, "error_dict") else exc.messages
        )
    elif isinstance(exc, IntegrityError):
        logger.warning("Integrity error in %s: %s", type(view).__name__, exc)
        return Response(
            {"error": "A record with that value already exists."},
            status=status.HTTP_400_BAD_REQUEST,
        )

    response = drf_exception_handler(exc, context)
    if response is None:
        logger.exception(
            "Unhandled error on %s %s",
            getattr(request, "method", "?"),
            getattr(request, "path", "?"),
        )
        return Response(
            {"error": "Internal server error."},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, exceptions.ValidationError):
        response.data = {"error": ". ".join(_flatten(exc.detail))}
    elif isinstance(exc, (exceptions.NotAuthenticated, exceptions.AuthenticationFailed)):
        response.data = {"error": "Invalid or missing authentication token."}
    elif isinstance(exc, Http404):
        response.data = {"error": str(exc) or "Not found."}
    elif isinstance(exc, PermissionDenied):
        response.data = {"error": str(exc) or "Access denied."}
    else:
        detail = getattr(exc, "detail", None)
        response.data = {"error": str(detail) if detail is not None else str(exc)}
        if isinstance(exc, ApiError):
            response.data.update(exc.extra)
    return response


def handler404(request, exception=None):
    return JsonResponse({"error": "This route does not exist"}, status=404)


def handler500(request):
    return JsonResponse({"error": "Internal server error."}, status=500)
