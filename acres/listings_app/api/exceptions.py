import logging
from typing import Any, Dict, Optional

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import (
    APIException,
    AuthenticationFailed,
    NotAuthenticated,
    Throttled,
    ValidationError,
)
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class APIError(APIException):
    """
    Base for typed domain errors raised by the services.

    Example:
        raise APIError(detail="Payment proof missing.", code="no_proof", status_code=400)
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Bad request."
    default_code = "error"

    def __init__(self, detail=None, code=None, status_code=None):
        super().__init__(detail=detail or self.default_detail, code=code or self.default_code)
        if status_code is not None:
            self.status_code = status_code


class ResourceNotFound(APIError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "The requested resource was not found."
    default_code = "not_found"


class Forbidden(APIError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You do not have permission to perform this action."
    default_code = "forbidden"


class Conflict(APIError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "The request conflicts with the current state of the resource."
    default_code = "conflict"


class InvalidState(Conflict):
    default_detail = "This action is not allowed in the current state."
    default_code = "invalid_state"


class UpstreamFailure(APIError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "An external service failed. Please try again later."
    default_code = "upstream_failure"


def _extract_field_errors(data: Any) -> Optional[Dict[str, list]]:
    """
    Turn DRF's error structure into {field: [messages]} or None.
    """
    if not isinstance(data, dict):
        return None
    normalised = {}
    for key, value in data.items():
        if key == "detail":
            continue
        if isinstance(value, (list, tuple)):
            normalised[key] = [str(v) for v in value]
        else:
            normalised[key] = [str(value)]
    return normalised or None


def _detail_text(data: Any) -> Optional[str]:
    if isinstance(data, (list, tuple)):
        return str(data[0]) if data else None
    if not isinstance(data, dict):
        return str(data) if data is not None else None

    # 1) Direct detail
    if "detail" in data:
        return _detail_text(data["detail"])

    # 2) Serializer non_field_errors
    nfe = data.get("non_field_errors")
    if nfe:
        return _detail_text(nfe)

    # 3) First field message
    for key, value in data.items():
        text = _detail_text(value)
        if text:
            return f"{key}: {text}"
    return None


def custom_exception_handler(exc, context):
    """
    Wrap DRF's default exception_handler so every failure renders the
    envelope {"success": false, "error": <code>, "message": <text>, ...}.
    """
    if isinstance(exc, DjangoPermissionDenied):
        exc = Forbidden()

    response = exception_handler(exc, context)
    request = context.get("request")
    path = request.get_full_path() if request else None

    if response is None:
        logger.exception("Unhandled error on %s", path, exc_info=exc)
        return Response(
            {
                "success": False,
                "error": "error",
                "message": "An unexpected error occurred.",
                "status": status.HTTP_500_INTERNAL_SERVER_ERROR,
                "path": path,
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    status_code = response.status_code
    data = response.data
    detail_text = _detail_text(data)
    field_errors = None
    details_block = None

    # Map high-level code/message
    if isinstance(exc, ValidationError):
        code = "validation_error"
        field_errors = _extract_field_errors(data) if isinstance(data, dict) else None
        message = detail_text or "Invalid input."
    elif isinstance(exc, Throttled):
        code = "rate_limited"
        message = "Too many requests. Please wait before retrying."
        details_block = {"retry_after": getattr(exc, "wait", None)}
    elif isinstance(exc, APIError):
        code = getattr(exc.detail, "code", None) or exc.default_code
        message = detail_text or exc.default_detail
    elif isinstance(exc, (NotAuthenticated, AuthenticationFailed)) or status_code == status.HTTP_401_UNAUTHORIZED:
        code = "unauthorised"
        message = detail_text or "Authentication credentials were not provided or are invalid."
    elif status_code == status.HTTP_403_FORBIDDEN:
        code = "forbidden"
        message = detail_text or "You do not have permission to perform this action."
    elif status_code == status.HTTP_404_NOT_FOUND or isinstance(exc, Http404):
        code = "not_found"
        message = "The requested resource was not found."
    else:
        code = "error"
        message = detail_text or "An error occurred."

    if status_code >= 500:
        logger.error("API error %s on %s: %s", code, path, message)

    body = {
        "success": False,
        "error": code,
        "message": message,
        "status": status_code,
        "path": path,
    }
    if field_errors:
        body["field_errors"] = field_errors
    if details_block:
        body["details"] = details_block
    headers = {
        name: response[name]
        for name in ("WWW-Authenticate", "Retry-After")
        if response.has_header(name)
    }
    return Response(body, status=status_code, headers=headers or None)
