"""
Shared view helpers for Online Order Fulfillment.
"""

import logging
from functools import wraps

from django.core.exceptions import ObjectDoesNotExist
from rest_framework import status
from rest_framework.exceptions import ValidationError as DRFValidationError
from rest_framework.response import Response

from ..exceptions import BusinessException

logger = logging.getLogger(__name__)

ORGANIZATION_HEADER = 'HTTP_X_ORGANIZATION_ID'


def success_response(data, status_code=status.HTTP_200_OK):
    return Response({
        'success': True,
        'data': data
    }, status=status_code)


def error_response(code: str, message: str, details=None, status_code=status.HTTP_400_BAD_REQUEST):
    error = {
        'code': code,
        'message': message
    }
    if details:
        error['details'] = details
    return Response({
        'success': False,
        'error': error
    }, status=status_code)


def handle_service_errors(func):
    """Translate service exceptions into error envelopes."""

    @wraps(func)
    def wrapper(self, request, *args, **kwargs):
        try:
            return func(self, request, *args, **kwargs)
        except BusinessException as e:
            logger.warning(f"{func.__name__} failed: [{e.code}] {e.message}")
            return error_response(e.code, e.message, e.details)
        except ObjectDoesNotExist as e:
            return error_response('NOT_FOUND', str(e) or 'Not found', status_code=status.HTTP_404_NOT_FOUND)

    return wrapper


class OrganizationScopedMixin:
    """
    Scope querysets and service calls to the caller's organization.

    The organization comes from the ``X-Organization-Id`` header, or the
    ``organization_id`` query parameter.
    """

    def get_organization_id(self) -> int:
        raw = self.request.META.get(ORGANIZATION_HEADER) or self.request.query_params.get('organization_id')
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise DRFValidationError({'organization_id': 'X-Organization-Id header is required'})

    def filter_by_organization(self, queryset):
        return queryset.filter(organization_id=self.get_organization_id())
