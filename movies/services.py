import logging
import math

from django.conf import settings
from django.db.models import Prefetch, Q
from django.utils import timezone

from moviebooking.exceptions import MovieNotFound, ValidationError
from .cache import CatalogCache, GENRES_KEY, LISTING_KINDS, POPULAR, UPCOMING, page_key
from .models import Cast, Genre, Movie

logger = logging.getLogger(__name__)


def get_page_size():
    return getattr(settings, 'CATALOG_PAGE_SIZE', 12)


def normalize_page(page):
    try:
        page = int(page)
    except (TypeError, ValueError):
        return 1
    return page if page > 0 else 1


def build_meta(page, total):
    limit = get_page_size()
    return {
        'page': page,
        'limit': limit,
        'total': total,
        'total_pages': math.ceil(total / limit) if total else 0,
    }


class CatalogStore:
    """Source of truth for catalog reads. Soft-deleted movies never appear here."""

    @staticmethod
    def _with_relations(queryset, include_casts=True):
        prefetches = [Prefetch('genres', queryset=Genre.objects.order_by('name', 'id'))]
        if include_casts:
            prefetches.append(Prefetch('casts', queryset=Cast.objects.order_by('name', 'id')))
        return queryset.prefetch_related(*prefetches)

    @staticmethod
    def _paginate(queryset, page):
        size = get_page_size()
        offset = (page - 1) * size
        return queryset[offset:offset + size]

    @staticmethod
    def upcoming_queryset():
        return Movie.catalog.filter(release_date__gt=timezone.localdate())

    @staticmethod
    def popular_queryset():
        return Movie.catalog.all()

    @classmethod
    def count(cls, kind):
        if kind == UPCOMING:
            return cls.upcoming_queryset().count()
        return cls.popular_queryset().count()

    @classmethod
    def list_page(cls, kind, page):

        if kind == UPCOMING:
            queryset = cls.upcoming_queryset().order_by('release_date', 'id')
        elif kind == POPULAR:
            queryset = cls.popular_queryset().order_by('-popularity', 'id')
        else:
            raise ValidationError(f"Unknown listing kind: {kind}")

        movies = cls._paginate(cls._with_relations(queryset), page)
        return [movie.to_dict() for movie in movies]

    @classmethod
    def search(cls, page=1, search='', genre_id=None):
        """
        Substring search over title and overview with an optional genre filter.

        Not cached: the filter space is unbounded.
        """
        page = normalize_page(page)
        queryset = Movie.catalog.all()

        search = (search or '').strip()
        if search:
            queryset = queryset.filter(
                Q(title__icontains=search) |
                Q(overview__icontains=search)
            )

        if genre_id:
            queryset = queryset.filter(genres__id=genre_id)

        queryset = queryset.distinct()
        total = queryset.count()

        queryset = cls._with_relations(queryset.order_by('-release_date', 'id'), include_casts=False)
        movies = [movie.to_dict(include_casts=False) for movie in cls._paginate(queryset, page)]
        return movies, total

    @classmethod
    def get_movie(cls, movie_id):

        movie = cls._with_relations(Movie.catalog.filter(pk=movie_id)).first()
        if movie is None:
            raise MovieNotFound()
        return movie.to_dict()

    @staticmethod
    def list_genres():
        return [genre.to_dict() for genre in Genre.objects.order_by('name', 'id')]


class CatalogReader:
    """
    Cache-aside reader for the upcoming/popular listings and the genre list.

    Page bodies are cached; totals are always counted live, so a cached page
    can be served next to a fresher total. Catalog writes do not invalidate
    anything and become visible once the cached entry expires.
    """

    def __init__(self, cache=None, store=CatalogStore):
        self.cache = cache or CatalogCache()
        self.store = store

    @property
    def page_ttl(self):
        return getattr(settings, 'CATALOG_CACHE_TTL', 3600)

    @property
    def genre_ttl(self):
        return getattr(settings, 'GENRE_CACHE_TTL', 3600)

    def get_page(self, kind, page=1):

        if kind not in LISTING_KINDS:
            raise ValidationError(f"Unknown listing kind: {kind}")

        page = normalize_page(page)
        key = page_key(kind, page)

        result = self.cache.get(key)
        if result.hit:
            movies = result.value
        else:
            movies = self.store.list_page(kind, page)
            if self.cache.set(key, movies, timeout=self.page_ttl):
                logger.info(f"Cached {len(movies)} movies under {key}")

        return movies, self.store.count(kind)

    def get_all_genres(self):

        result = self.cache.get(GENRES_KEY)
        if result.hit:
            return result.value

        genres = self.store.list_genres()
        self.cache.set(GENRES_KEY, genres, timeout=self.genre_ttl)
        return genres

    def clear(self, kinds=LISTING_KINDS, pages=1):
        """Drop cached listing pages ``1..pages`` for each kind, and the genre list."""
        deleted = 0
        for kind in kinds:
            for page in range(1, pages + 1):
                if self.cache.delete(page_key(kind, page)):
                    deleted += 1
        if self.cache.delete(GENRES_KEY):
            deleted += 1
        return deleted


catalog_reader = CatalogReader()
