import logging

from django.db import DatabaseError
from rest_framework import exceptions, status
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class NotFound(exceptions.NotFound):
    """Missing, or not visible to the caller. The two are never told apart."""


class Conflict(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Resource already exists.'
    default_code = 'conflict'


class InvalidInput(exceptions.ValidationError):
    pass


class InvalidOperation(exceptions.APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Operation not allowed.'
    default_code = 'invalid_operation'


class Forbidden(exceptions.PermissionDenied):
    pass


class Internal(exceptions.APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Internal server error'
    default_code = 'internal'


def drive_exception_handler(exc, context):
    """
    Render API errors as ``{"error": message}``.

    Field-level validation errors keep DRF's shape so clients can map them
    back to inputs. Store and filesystem failures become a logged 500.
    """
    if isinstance(exc, (DatabaseError, OSError)):
        view = context.get('view')
        logger.error("Unhandled storage error in %s", getattr(view, "__name__", view), exc_info=exc)
        exc = Internal()

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, exceptions.ValidationError):
        if isinstance(exc.detail, list) and len(exc.detail) == 1 and isinstance(exc, InvalidInput):
            response.data = {'error': str(exc.detail[0])}
        return response

    detail = response.data.get('detail') if isinstance(response.data, dict) else None
    if isinstance(detail, str) and set(response.data) == {'detail'}:
        response.data = {'error': detail}
    return response
