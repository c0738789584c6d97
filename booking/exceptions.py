"""
Error types raised by the booking services and the DRF handler that
turns them into the ``{"ok": false, "error": {...}}`` envelope.
"""
import logging

from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = 'Something went wrong. Please try again.'


class BookingValidationError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid booking data.'
    default_code = 'validation_error'


class NotFoundError(APIException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Not found.'
    default_code = 'not_found'


class SlotConflictError(APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Time slot already booked'
    default_code = 'slot_conflict'
    retryable = True

    def __init__(self, key=None, detail=None):
        super().__init__(detail)
        self.key = key


class AuthorizationError(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'forbidden'


class InvalidTransitionError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Status change not allowed.'
    default_code = 'invalid_transition'


class IntakeDisabledError(APIException):
    status_code = status.HTTP_501_NOT_IMPLEMENTED
    default_detail = 'WhatsApp intake is not enabled.'
    default_code = 'intake_disabled'


class DependencyError(Exception):
    """Failure of an external collaborator (messaging, lookups).

    Never raised into a request; it travels inside a result object and
    is logged by whoever receives it.
    """

    def __init__(self, message: str, *, code=None, provider: str = ''):
        super().__init__(message)
        self.message = message
        self.code = code
        self.provider = provider


def api_exception_handler(exc, context):
    resp = drf_exception_handler(exc, context)
    if resp is None:
        view = context.get('view')
        logger.exception('Unhandled error in %s', getattr(view, '__name__', None) or type(view).__name__)
        return Response(
            {'ok': False, 'error': {'code': 'server_error', 'message': GENERIC_FAILURE_MESSAGE}},
            status=500,
        )
    # normalize response
    if isinstance(resp.data, dict):
        detail = resp.data.get('detail') or resp.data
    else:
        detail = resp.data
    code = getattr(exc, 'default_code', None) if isinstance(exc, APIException) else None
    error = {'code': code or 'api_error', 'message': detail}
    if getattr(exc, 'retryable', False):
        error['retryable'] = True
    return Response({'ok': False, 'error': error}, status=resp.status_code, headers=_passthrough_headers(resp))


def _passthrough_headers(resp):
    return {k: v for k, v in resp.items() if k in ('WWW-Authenticate', 'Retry-After')}
