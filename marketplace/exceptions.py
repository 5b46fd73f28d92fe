import logging

from django.db import DatabaseError
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class ListingNotFound(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Listing not found."
    default_code = "not_found"


class InvalidPlan(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid plan selected."
    default_code = "invalid_plan"


class RemoteStoreError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = "The listing store is temporarily unavailable. Please try again."
    default_code = "remote_store_error"


def exception_handler(exc, context):
    """DRF handler that also reports database failures as 503 instead of a bare 500."""
    if isinstance(exc, DatabaseError):
        view = context.get("view")
        logger.exception("Store error in %s", type(view).__name__ if view else "unknown view")
        exc = RemoteStoreError()
    return drf_exception_handler(exc, context)
