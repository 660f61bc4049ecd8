"""
Error kinds raised by the coin ledger and the request handlers.

Every kind is a DRF ``APIException`` so a view can let it propagate and get the
right status code, or catch it and build the response itself. The response
body is always ``{"detail": <message>, "code": <kind>}``.
"""

from rest_framework import status
from rest_framework.exceptions import APIException, AuthenticationFailed, NotAuthenticated
from rest_framework.views import exception_handler


class LedgerError(APIException):
    """Base class for all ledger failures."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'The request could not be processed.'
    default_code = 'error'

    @property
    def kind(self):
        return self.default_code

    @property
    def message(self):
        return str(self.detail)

    def to_dict(self):
        return {'detail': self.message, 'code': self.kind}


class Unauthenticated(LedgerError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = 'User must be authenticated.'
    default_code = 'unauthenticated'


class InvalidArgument(LedgerError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid argument.'
    default_code = 'invalid_argument'


class NotFound(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Record not found.'
    default_code = 'not_found'


class FailedPrecondition(LedgerError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Operation is not allowed in the current state.'
    default_code = 'failed_precondition'


class AlreadyExists(LedgerError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Record already exists.'
    default_code = 'already_exists'


class PermissionDenied(LedgerError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'You do not have permission to perform this action.'
    default_code = 'permission_denied'


class Aborted(LedgerError):
    """Transaction gave up after repeated contention. Safe to retry."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The transaction was aborted due to contention. Please retry.'
    default_code = 'aborted'


class Internal(LedgerError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'An unexpected error occurred. Please try again later.'
    default_code = 'internal'


def ledger_exception_handler(exc, context):
    """
    DRF exception handler that adds the error ``code`` to every body.

    Ledger errors keep their own kind; authentication failures raised by DRF
    or simplejwt are reported as 'unauthenticated'.
    """
    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(exc, LedgerError):
        response.data = exc.to_dict()
    elif isinstance(exc, (NotAuthenticated, AuthenticationFailed)):
        detail = exc.detail
        # simplejwt wraps its message in a dict with the failing token types
        if isinstance(detail, dict):
            detail = detail.get('detail', Unauthenticated.default_detail)
        response.data = {'detail': str(detail), 'code': Unauthenticated.default_code}
        response.status_code = status.HTTP_401_UNAUTHORIZED
    return response
