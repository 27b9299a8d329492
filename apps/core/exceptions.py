"""
API error handling shared by every Bookflix app.

Services raise ``ServiceError`` subclasses for business-rule failures; the
DRF exception handler below renders them, together with DRF's own
exceptions, as ``{"error": ..., "code": ...}`` bodies.
"""

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import Http404
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """
    Base class for expected, user-facing service failures
    """
    default_code = 'service_error'
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message, code=None, status_code=None, extra=None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra or {}

    def as_payload(self):
        payload = {'error': self.message, 'code': self.code}
        payload.update(self.extra)
        return payload


def api_exception_handler(exc, context):
    """
    Render service and validation errors with a uniform body
    """
    if isinstance(exc, ServiceError):
        return Response(exc.as_payload(), status=exc.status_code)

    if isinstance(exc, DjangoValidationError):
        detail = exc.message_dict if hasattr(exc, 'error_dict') else exc.messages
        return Response(
            {'error': 'Validation failed', 'code': 'invalid', 'details': detail},
            status=status.HTTP_400_BAD_REQUEST
        )

    response = exception_handler(exc, context)
    if response is None:
        view = context.get('view')
        logger.exception(f"Unhandled API error in {view.__class__.__name__ if view else 'unknown view'}")
        return None

    if isinstance(exc, Http404):
        response.data = {'error': 'Not found', 'code': 'not_found'}
    elif isinstance(response.data, dict) and 'detail' in response.data:
        response.data = {
            'error': str(response.data['detail']),
            'code': getattr(response.data['detail'], 'code', 'error'),
        }
    else:
        response.data = {'error': 'Validation failed', 'code': 'invalid', 'details': response.data}

    return response
