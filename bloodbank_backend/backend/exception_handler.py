# backend/exception_handler.py

"""
PATH: backend/exception_handler.py

UNIFIED API ERROR ENVELOPE

Every error leaving the API has the same shape:

    {"kind": "...", "message": "...", "errors": [...]}

Handled:
1. PurchaseServiceError subclasses (domain errors) -> their own kind/status
2. DRF exceptions (serializer ValidationError, NotAuthenticated, Throttled...)
   -> mapped to the same envelope
3. Database failures -> unavailable (503)
4. Anything else -> internal_error (500); a traceback is attached
   only when DEBUG is on.

Views never build error responses by hand.
"""

from __future__ import annotations

import logging
import traceback

from django.conf import settings
from django.db import DatabaseError
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from purchases.services.exceptions import PurchaseServiceError, PurchaseUnavailable

logger = logging.getLogger(__name__)


_DRF_KINDS = {
    drf_exceptions.ValidationError: "validation_error",
    drf_exceptions.ParseError: "validation_error",
    drf_exceptions.NotAuthenticated: "unauthorized",
    drf_exceptions.AuthenticationFailed: "unauthorized",
    drf_exceptions.PermissionDenied: "forbidden",
    drf_exceptions.NotFound: "not_found",
    drf_exceptions.MethodNotAllowed: "method_not_allowed",
    drf_exceptions.Throttled: "throttled",
}

_STATUS_KINDS = {
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not_found",
}


def _kind_for(exc) -> str:
    for klass, kind in _DRF_KINDS.items():
        if isinstance(exc, klass):
            return kind
    return "error"


def _flatten_errors(data, prefix: str = "") -> list[dict]:
    """
    DRF error payloads can be:
      {"field": ["msg"]}  /  {"nested": {"field": ["msg"]}}  /  ["msg"]  /  "msg"
    Flatten them into [{"field", "message"}].
    """
    out: list[dict] = []

    if isinstance(data, dict):
        for key, value in data.items():
            name = f"{prefix}.{key}" if prefix else str(key)
            out.extend(_flatten_errors(value, name))
    elif isinstance(data, list):
        for item in data:
            out.extend(_flatten_errors(item, prefix))
    else:
        out.append({"field": prefix or None, "message": str(data)})

    return out


def unified_exception_handler(exc, context):
    # 1) Domain errors
    if isinstance(exc, PurchaseServiceError):
        return Response(exc.to_dict(), status=exc.http_status)

    # Lazy querysets are evaluated in the view (pagination), outside services
    if isinstance(exc, DatabaseError):
        logger.error("Datastore failure", extra={"error": str(exc)})
        unavailable = PurchaseUnavailable()
        return Response(unavailable.to_dict(), status=unavailable.http_status)

    # 2) DRF / Django errors DRF already knows about (Http404, PermissionDenied...)
    response = drf_exception_handler(exc, context)
    if response is not None:
        kind = _kind_for(exc)
        data = response.data

        if kind == "validation_error":
            message = "Validation failed"
            errors = _flatten_errors(data)
        else:
            detail = data.get("detail") if isinstance(data, dict) else data
            message = str(detail) if detail else "Request failed"
            errors = []

        # Django Http404 / PermissionDenied reach here unconverted
        if kind == "error":
            kind = _STATUS_KINDS.get(response.status_code, "error")

        response.data = {"kind": kind, "message": message, "errors": errors}
        return response

    # 3) Unknown -> 500
    view = context.get("view")
    logger.exception(
        "Unhandled API error",
        extra={"view": view.__class__.__name__ if view else None},
    )

    body = {
        "kind": "internal_error",
        "message": "An unexpected error occurred",
        "errors": [],
    }
    if settings.DEBUG:
        body["trace"] = traceback.format_exception(type(exc), exc, exc.__traceback__)

    return Response(body, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
