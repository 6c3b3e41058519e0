from django.db import connection

from moviebooking.exceptions import SeatCodeUnresolved, ValidationError
from .models import OrderSeat, Seat


def supports_select_for_update():

    return connection.features.has_select_for_update


class SeatManager:

    @staticmethod
    def generate_seat_codes(rows=8, cols=7):
        """Seat codes laid out row by row: A1..A<cols>, B1.., up to ``rows`` rows."""
        codes = []
        for row in range(rows):
            row_letter = chr(65 + row)  # A, B, C...
            for col in range(1, cols + 1):
                codes.append(f"{row_letter}{col}")
        return codes

    @staticmethod
    def resolve_seat_codes(seat_codes):
        """
        Map seat codes to seat ids, keeping the order the codes were given in.

        Every code must exist: a single unknown code rejects the whole lookup.
        """
        seat_codes = list(seat_codes)

        seen = set()
        duplicates = []
        for code in seat_codes:
            if code in seen:
                duplicates.append(code)
            seen.add(code)
        if duplicates:
            raise ValidationError(
                f"Duplicate seat codes: {', '.join(duplicates)}",
                errors={'seat_codes': ['Each seat can only be requested once.']},
            )

        ids_by_code = dict(
            Seat.objects.filter(seat_code__in=seat_codes).values_list('seat_code', 'id')
        )

        missing = [code for code in seat_codes if code not in ids_by_code]
        if missing:
            raise SeatCodeUnresolved(missing)

        return [ids_by_code[code] for code in seat_codes]

    @staticmethod
    def available_seats(schedule_id):
        """
        Seats not claimed by any order for ``schedule_id``.

        A single anti-join statement, so the result comes from one snapshot.
        """
        claimed = OrderSeat.objects.filter(schedule_id=schedule_id).values('seat_id')
        return list(Seat.objects.exclude(id__in=claimed).order_by('id'))

    @staticmethod
    def booked_seat_ids(schedule_id, seat_ids, lock=False):
        """
        Subset of ``seat_ids`` already sold for ``schedule_id``.

        With ``lock=True`` the candidate seat rows are locked first, which
        serialises concurrent bookings touching the same seats on backends
        with row locks. Must run inside a transaction when locking.
        """
        if lock and supports_select_for_update():
            list(Seat.objects.select_for_update().filter(id__in=seat_ids).order_by('id').values_list('id', flat=True))

        return set(
            OrderSeat.objects.filter(
                schedule_id=schedule_id,
                seat_id__in=seat_ids,
            ).values_list('seat_id', flat=True)
        )
