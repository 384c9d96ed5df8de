"""
API Error Handling

Project-wide DRF exception handler and the few custom API exceptions the
apps raise. DRF's own handler covers validation, authentication, permission
and not-found errors; this module adds the remaining known error shapes so
that every failure leaves the API as JSON:

- unique violations            -> 409 Conflict
- foreign key / not-null errors -> 400 Bad Request
- Stripe errors                 -> 402 (card) / 502 (provider)
- media host (botocore) errors  -> 502 Bad Gateway
- oversize request bodies       -> 413 Payload Too Large

Author: Agency Development Team
Version: 1.0.0
"""

import logging

import stripe
from botocore.exceptions import BotoCoreError, ClientError
from django.core.exceptions import RequestDataTooBig
from django.db import IntegrityError
from django.http import JsonResponse
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Resource already exists."
    default_code = "conflict"


class LoginLocked(APIException):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_detail = "Too many failed login attempts. Try again later."
    default_code = "login_locked"


class MediaUploadError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Upload rejected."
    default_code = "upload_rejected"


def _integrity_status(exc: IntegrityError) -> int:
    message = str(exc).lower()
    if "unique" in message or "duplicate" in message:
        return status.HTTP_409_CONFLICT
    return status.HTTP_400_BAD_REQUEST


def api_exception_handler(exc, context):
    """
    Map known exception types to JSON responses, delegate the rest to DRF.
    """
    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    view_name = view.__class__.__name__ if view is not None else "unknown"

    if isinstance(exc, IntegrityError):
        code = _integrity_status(exc)
        logger.warning("Integrity error in %s: %s", view_name, exc)
        detail = (
            "Resource already exists."
            if code == status.HTTP_409_CONFLICT
            else "Invalid reference or missing required field."
        )
        return Response({"detail": detail}, status=code)

    if isinstance(exc, stripe.CardError):
        logger.info("Card declined in %s: %s", view_name, exc.user_message)
        return Response(
            {"detail": exc.user_message or "Card declined."},
            status=status.HTTP_402_PAYMENT_REQUIRED,
        )

    if isinstance(exc, stripe.StripeError):
        logger.error("Stripe error in %s: %s", view_name, exc)
        return Response(
            {
                "detail": "Payment provider error.",
                "stripe_error": getattr(exc, "user_message", None) or str(exc),
            },
            status=status.HTTP_502_BAD_GATEWAY,
        )

    if isinstance(exc, (ClientError, BotoCoreError)):
        logger.error("Media host error in %s: %s", view_name, exc)
        return Response(
            {"detail": "Media host error."}, status=status.HTTP_502_BAD_GATEWAY
        )

    if isinstance(exc, RequestDataTooBig):
        return Response(
            {"detail": "Request body too large."},
            status=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )

    return None


def json_not_found(request, exception=None):
    return JsonResponse({"detail": "Route not found."}, status=404)


def json_server_error(request):
    return JsonResponse({"detail": "Internal server error."}, status=500)
