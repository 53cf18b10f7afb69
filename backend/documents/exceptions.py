"""Error taxonomy for document issuance and verification.

Every error is a DRF ``APIException`` carrying a stable machine-readable
``code`` so clients can branch on it. ``api_exception_handler`` renders all
API errors (ours and DRF's own) as ``{"code", "message", "details"}``.
"""

from __future__ import annotations

import logging
from typing import Any

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler


logger = logging.getLogger(__name__)


class DocumentError(drf_exceptions.APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "document_error"
    default_detail = "The document operation failed."

    def __init__(self, detail: Any = None, *, details: dict[str, Any] | None = None):
        super().__init__(detail=detail, code=self.default_code)
        self.details = details or {}


class ValidationError(DocumentError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "validation_error"
    default_detail = "Invalid request."


class ForbiddenError(DocumentError):
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "forbidden"
    default_detail = "You are not allowed to perform this action."


class NotFoundError(DocumentError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "not_found"
    default_detail = "Not found."


class ConflictError(DocumentError):
    status_code = status.HTTP_409_CONFLICT
    default_code = "conflict"
    default_detail = "A document with this identifier already exists."


class InvalidTransitionError(DocumentError):
    status_code = status.HTTP_409_CONFLICT
    default_code = "invalid_transition"
    default_detail = "Illegal status change."


class RenderError(DocumentError):
    """Template input out of domain. The client only sees a generic message."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "issuance_failed"
    default_detail = "The document could not be generated."

    public_message = "The document could not be generated."


class StorageError(DocumentError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "storage_error"
    default_detail = "The document storage is unavailable."


# DRF default codes that are renamed in responses.
_CODE_ALIASES = {
    "permission_denied": "forbidden",
    "invalid": "validation_error",
}


def _payload(code: str, message: str, details: Any = None) -> dict[str, Any]:
    return {"code": code, "message": message, "details": details if details is not None else {}}


def api_exception_handler(exc, context):
    if isinstance(exc, Http404):
        exc = drf_exceptions.NotFound()
    elif isinstance(exc, DjangoPermissionDenied):
        exc = drf_exceptions.PermissionDenied()

    response = exception_handler(exc, context)
    if response is None:
        view = context.get("view")
        logger.error(
            "api.unhandled_exception",
            exc_info=exc,
            extra={"view": type(view).__name__ if view is not None else ""},
        )
        return Response(
            _payload("internal_error", "Unexpected server error."),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, RenderError):
        response.data = _payload(exc.default_code, exc.public_message)
        return response

    if isinstance(exc, DocumentError):
        response.data = _payload(exc.default_code, str(exc.detail), exc.details)
        return response

    if isinstance(exc, drf_exceptions.ValidationError):
        response.data = _payload("validation_error", "Invalid request.", response.data)
        return response

    codes = exc.get_codes() if isinstance(exc, drf_exceptions.APIException) else None
    code = codes if isinstance(codes, str) else getattr(exc, "default_code", "error")
    code = _CODE_ALIASES.get(code, code)

    detail = getattr(exc, "detail", "")
    if isinstance(detail, (dict, list)):
        message = str(getattr(exc, "default_detail", "")) or "Request failed."
        details = response.data
    else:
        message = str(detail)
        details = {}
    response.data = _payload(code, message, details)
    return response
