from django.core.management.base import BaseCommand

from movies.cache import LISTING_KINDS
from movies.services import catalog_reader


class Command(BaseCommand):
    help = 'Drop cached catalog listing pages and the genre list so the next read refills them'

    def add_arguments(self, parser):
        parser.add_argument(
            '--pages',
            type=int,
            default=10,
            help='Number of listing pages to drop per listing kind (default: 10)',
        )
        parser.add_argument(
            '--kind',
            choices=LISTING_KINDS,
            action='append',
            help='Listing kind to drop; repeatable. Defaults to every kind.',
        )

    def handle(self, *args, **options):
        kinds = options['kind'] or LISTING_KINDS
        pages = max(options['pages'], 1)

        deleted = catalog_reader.clear(kinds=kinds, pages=pages)

        self.stdout.write(
            self.style.SUCCESS(f'Cleared {deleted} catalog cache keys ({", ".join(kinds)}, pages 1-{pages})')
        )
