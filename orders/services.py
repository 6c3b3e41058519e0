from django.db import DatabaseError, IntegrityError, transaction
import logging

from moviebooking.exceptions import (
    OrderNotFound,
    PaymentMethodInvalid,
    PersistenceFailure,
    SeatAlreadyBooked,
    ShowtimeNotFound,
    Unauthorized,
    ValidationError,
)
from movies.theater_models import Schedule
from .models import Order, OrderSeat, PaymentMethod, Seat
from .utils import SeatManager

logger = logging.getLogger(__name__)


def require_user(user):
    if user is None or not getattr(user, 'is_authenticated', False):
        raise Unauthorized()
    return user


def _codes_for(seat_codes, seat_ids, taken_ids):
    return [code for code, seat_id in zip(seat_codes, seat_ids) if seat_id in taken_ids]


class OrderService:

    @staticmethod
    def create_order(user, schedule_id, payment_id, fullname, email, phone, seat_codes, qr_code=None):
        """
        Commit an order and its seat claims as one unit of work.

        Either the order row and every seat row are stored, or nothing is.
        A seat already sold for the schedule, whether seen by the up-front
        check or by the ``(schedule, seat)`` unique constraint at insert time,
        raises ``SeatAlreadyBooked``.
        """
        require_user(user)

        if not seat_codes:
            raise ValidationError('At least one seat must be selected.',
                                  errors={'seat_codes': ['This field is required.']})

        try:
            with transaction.atomic():
                schedule = Schedule.objects.filter(pk=schedule_id).first()
                if schedule is None:
                    raise ShowtimeNotFound(f"Schedule {schedule_id} not found.")

                payment_method = PaymentMethod.objects.filter(pk=payment_id).first()
                if payment_method is None:
                    raise PaymentMethodInvalid(f"Payment method {payment_id} does not exist.")

                seat_ids = SeatManager.resolve_seat_codes(seat_codes)

                taken = SeatManager.booked_seat_ids(schedule.id, seat_ids, lock=True)
                if taken:
                    raise SeatAlreadyBooked(_codes_for(seat_codes, seat_ids, taken))

                order = Order(
                    user=user,
                    schedule=schedule,
                    payment_method=payment_method,
                    fullname=fullname,
                    email=email,
                    phone_number=phone,
                )
                if qr_code:
                    order.qr_code = qr_code
                order.save()

                try:
                    with transaction.atomic():
                        OrderSeat.objects.bulk_create([
                            OrderSeat(order=order, seat_id=seat_id, schedule=schedule)
                            for seat_id in seat_ids
                        ])
                except IntegrityError as e:
                    # A concurrent order for the same schedule committed one of these seats first.
                    taken = SeatManager.booked_seat_ids(schedule.id, seat_ids)
                    taken_codes = _codes_for(seat_codes, seat_ids, taken) or list(seat_codes)
                    logger.warning(f"Seat conflict on schedule {schedule.id} for seats {taken_codes}: {e}")
                    raise SeatAlreadyBooked(taken_codes) from e

                seats_by_id = Seat.objects.in_bulk(seat_ids)
                order.committed_seats = [seats_by_id[seat_id] for seat_id in seat_ids]

        except DatabaseError as e:
            logger.error(f"Failed to create order for user {user.pk} on schedule {schedule_id}: {e}")
            raise PersistenceFailure() from e

        logger.info(f"Order {order.qr_code} created for user {user.pk}: schedule {schedule.id}, seats {list(seat_codes)}")
        return order


def _order_queryset():
    return (
        Order.objects
        .select_related(
            'schedule__movie',
            'schedule__cinema',
            'schedule__location',
            'schedule__time_slot',
            'payment_method',
        )
        .prefetch_related('order_seats__seat')
    )


def serialize_order_detail(order):
    """Flatten an order with its schedule, movie, reference data and seats into one dict."""
    schedule = order.schedule
    movie = schedule.movie

    return {
        'id': order.id,
        'qr_code': order.qr_code,
        'user_id': order.user_id,
        'schedule_id': order.schedule_id,
        'payment_id': order.payment_method_id,
        'fullname': order.fullname,
        'email': order.email,
        'phone': order.phone_number,
        'created_at': order.created_at.isoformat(),
        'updated_at': order.updated_at.isoformat() if order.updated_at else None,
        'movie': {
            'id': movie.id,
            'title': movie.title,
            'overview': movie.overview,
            'director_name': movie.director_name,
            'duration': movie.duration,
            'popularity': movie.popularity,
            'release_date': movie.release_date.isoformat(),
            'poster_path': movie.poster_path,
            'backdrop_path': movie.backdrop_path,
        },
        'cinema_name': schedule.cinema.name,
        'location': schedule.location.name,
        'time': schedule.time_slot.get_formatted_time(),
        'date': schedule.date.isoformat(),
        'payment': order.payment_method.name,
        'seats': [order_seat.seat.to_dict() for order_seat in order.order_seats.all()],
    }


class OrderQueryService:

    @staticmethod
    def get_order_detail(user, order_id):

        require_user(user)

        order = _order_queryset().filter(pk=order_id, user=user).first()
        if order is None:
            raise OrderNotFound(f"Order {order_id} not found.")
        return serialize_order_detail(order)

    @staticmethod
    def get_order_history(user):

        require_user(user)

        orders = _order_queryset().filter(user=user).order_by('-created_at', '-id')
        return [serialize_order_detail(order) for order in orders]

    @staticmethod
    def get_schedules(movie_id):

        schedules = Schedule.objects.filter(movie_id=movie_id).order_by('date', 'time_slot__time', 'id')
        return [schedule.to_dict() for schedule in schedules]
