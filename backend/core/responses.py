# core/responses.py

import logging

from rest_framework import exceptions
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


def success(data=None, message=None, status=200):
    body = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return Response(body, status=status)


def flatten_detail(detail):
    if isinstance(detail, dict):
        parts = []
        for field, value in detail.items():
            text = flatten_detail(value)
            parts.append(text if field == "non_field_errors" else f"{field}: {text}")
        return "; ".join(parts)
    if isinstance(detail, (list, tuple)):
        return "; ".join(flatten_detail(item) for item in detail)
    return str(detail)


def envelope_exception_handler(exc, context):
    """
    DRF EXCEPTION_HANDLER that renders every API error as
    {"success": false, "error": "<message>"}.
    """
    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, exceptions.APIException):
        message = flatten_detail(exc.detail)
    else:
        message = flatten_detail(response.data)

    view = context.get("view")
    logger.info(
        "[API] %s failed: %s (%s)",
        type(view).__name__ if view else "request", message, response.status_code,
    )
    response.data = {"success": False, "error": message}
    return response
