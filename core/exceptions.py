"""
Workflow error kinds and the unified API exception handler.

Unauthorized, Forbidden and NotFound map onto DRF's own
``NotAuthenticated``, ``PermissionDenied`` and ``NotFound``; the kinds
below complete the taxonomy.  Every failure is rendered as
``{"ok": false, "error": {"code": ..., "message": ...}}``.
"""
import logging

from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.views import exception_handler as drf_exception_handler
from rest_framework.response import Response

logger = logging.getLogger(__name__)


class InvalidState(APIException):
    """Operation not legal in the entity's current state (includes lost races)."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Operation not allowed in the current state.'
    default_code = 'invalid_state'


class Conflict(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'An active transfer already exists for this patient.'
    default_code = 'conflict'


class StorageError(APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = 'Object storage operation failed.'
    default_code = 'storage_error'


class TextGenerationError(APIException):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_detail = 'AI service is temporarily unavailable. Please try again later.'
    default_code = 'text_generation_unavailable'


class TextGenerationForbidden(TextGenerationError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'AI service access denied. Please check your API key is valid and has proper permissions.'
    default_code = 'text_generation_forbidden'


def _error_code(exc) -> str:
    if isinstance(exc, ValidationError):
        return 'validation_error'
    if isinstance(exc, APIException):
        return getattr(exc, 'default_code', None) or 'api_error'
    return 'api_error'


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        logger.exception('Unhandled error in %s', context.get('view').__class__.__name__, exc_info=exc)
        return Response({'ok': False, 'error': {'code': 'server_error', 'message': str(exc)}}, status=500)
    # normalize response
    detail = None
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data if isinstance(resp.data, list) else str(resp.data)
    return Response({'ok': False, 'error': {'code': _error_code(exc), 'message': detail}}, status=resp.status_code)
