"""
Domain errors raised by the catalog and order services.

Each class carries the HTTP status it is rendered with by
``movies.error_handlers.GlobalExceptionMiddleware``. Views never catch these;
they propagate to the middleware.
"""


class BookingError(Exception):
    status_code = 500
    default_message = 'An unexpected error occurred.'
    retryable = False

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(BookingError):
    status_code = 400
    default_message = 'Invalid request.'

    def __init__(self, message=None, errors=None):
        super().__init__(message)
        self.errors = errors or {}


class SeatCodeUnresolved(ValidationError):
    default_message = 'One or more seat codes do not exist.'

    def __init__(self, codes):
        self.codes = list(codes)
        super().__init__(f"Unknown seat codes: {', '.join(self.codes)}")


class PaymentMethodInvalid(ValidationError):
    default_message = 'Invalid payment method.'


class Unauthorized(BookingError):
    status_code = 401
    default_message = 'Authentication credentials were not provided.'


class NotFound(BookingError):
    status_code = 404
    default_message = 'The requested resource was not found.'


class ShowtimeNotFound(NotFound):
    default_message = 'Schedule not found.'


class MovieNotFound(NotFound):
    default_message = 'Movie not found.'


class OrderNotFound(NotFound):
    default_message = 'Order not found.'


class Conflict(BookingError):
    status_code = 409
    default_message = 'The request conflicts with the current state.'
    retryable = True


class SeatAlreadyBooked(Conflict):
    default_message = 'One or more seats have already been booked for this schedule.'

    def __init__(self, seat_codes=None, message=None):
        self.seat_codes = list(seat_codes or [])
        if message is None and self.seat_codes:
            message = f"Seats already booked: {', '.join(self.seat_codes)}"
        super().__init__(message)


class PersistenceFailure(BookingError):
    status_code = 500
    default_message = 'Failed to persist the request. Please try again.'
