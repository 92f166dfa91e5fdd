"""API error types and the DRF exception handler mapping persistence failures."""

import logging
from typing import Any

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, IntegrityError
from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class InvalidState(APIException):
    """Operation refused because of the current lifecycle state of an object."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Operation not allowed in the current state."
    default_code = "invalid_state"


class Conflict(APIException):
    """Concurrent write lost against a uniqueness constraint."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflicting write, retry the request."
    default_code = "conflict"


def api_exception_handler(exc: Exception, context: dict[str, Any]) -> Response | None:
    """Extend DRF's handler with model validation and database errors.

    Django ``ValidationError`` becomes a 400, ``IntegrityError`` a 409 and any
    other ``DatabaseError`` a generic 500. Everything else keeps DRF semantics.
    """
    if isinstance(exc, DjangoValidationError):
        exc = ValidationError(detail=exc.message_dict if hasattr(exc, "error_dict") else exc.messages)
    elif isinstance(exc, IntegrityError):
        logger.warning("Integrity error in %s: %s", _view_name(context), exc)
        exc = Conflict()

    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, DatabaseError):
        logger.exception("Database failure in %s", _view_name(context))
        return Response({"detail": "Server error."}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return None


def _view_name(context: dict[str, Any]) -> str:
    view = context.get("view")
    return type(view).__name__ if view is not None else "unknown view"
