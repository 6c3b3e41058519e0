import logging
from django.core.exceptions import PermissionDenied
from django.db import DatabaseError

from moviebooking.exceptions import BookingError, Conflict, PersistenceFailure, ValidationError
from moviebooking.responses import api_response

logger = logging.getLogger(__name__)

def handler400(request, exception=None):

    logger.warning(f'400 Error: {exception}')
    return api_response(400, message='The request could not be understood.')

def handler403(request, exception=None):

    logger.warning(f'403 Error: {exception}')
    return api_response(403, message='You do not have permission to access this resource.')

def handler404(request, exception=None):

    logger.warning(f'404 Error: {request.path}')
    return api_response(404, message='The requested resource was not found.')

def handler500(request):

    logger.error('500 Internal Server Error')
    return api_response(500, message='An unexpected error occurred.')

def render_booking_error(request, exception):
    status = exception.status_code

    if status >= 500:
        logger.error(f'{status} {type(exception).__name__} on {request.path}: {exception.message}',
                     exc_info=exception)
    else:
        logger.warning(f'{status} {type(exception).__name__} on {request.path}: {exception.message}')

    extra = {}
    if isinstance(exception, ValidationError) and exception.errors:
        extra['errors'] = exception.errors
    if isinstance(exception, Conflict):
        extra['retryable'] = exception.retryable
    return api_response(status, message=exception.message, **extra)

class GlobalExceptionMiddleware:

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        response = self.get_response(request)
        return response

    def process_exception(self, request, exception):

        if isinstance(exception, BookingError):
            return render_booking_error(request, exception)

        if isinstance(exception, DatabaseError):
            logger.error(f'Database error on {request.path}: {exception}', exc_info=exception)
            return api_response(PersistenceFailure.status_code, message=PersistenceFailure.default_message)
        elif isinstance(exception, PermissionDenied):
            return handler403(request, exception)

        logger.error(f'Unhandled exception: {exception}', exc_info=True)
        return None
