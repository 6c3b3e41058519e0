from django.core.management.base import BaseCommand
from django.db import transaction
from orders.models import Seat
from orders.utils import SeatManager
import logging

logger = logging.getLogger(__name__)

class Command(BaseCommand):
    help = 'Create the global seat pool (A1, A2, ... per row). Existing seat codes are left untouched.'

    def add_arguments(self, parser):
        parser.add_argument('--rows', type=int, default=8, help='Number of seat rows, lettered from A (max 26)')
        parser.add_argument('--cols', type=int, default=7, help='Number of seats per row')

    def handle(self, *args, **options):
        rows = options['rows']
        cols = options['cols']

        if not 1 <= rows <= 26 or cols < 1:
            self.stdout.write(self.style.ERROR('rows must be between 1 and 26 and cols must be positive'))
            return

        codes = SeatManager.generate_seat_codes(rows=rows, cols=cols)

        with transaction.atomic():
            existing = set(Seat.objects.filter(seat_code__in=codes).values_list('seat_code', flat=True))
            new_seats = [Seat(seat_code=code) for code in codes if code not in existing]
            Seat.objects.bulk_create(new_seats)

        logger.info(f"Seeded {len(new_seats)} seats ({len(existing)} already present)")

        self.stdout.write(
            self.style.SUCCESS(f'Created {len(new_seats)} seats, {len(existing)} already existed. Pool size: {Seat.objects.count()}')
        )
