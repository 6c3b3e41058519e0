import time
from datetime import timedelta
from io import StringIO
from unittest import mock

from django.conf import settings
from django.core.cache import cache
from django.core.management import call_command
from django.db import DatabaseError
from django.test import TestCase, Client, override_settings
from django.utils import timezone

from moviebooking.exceptions import MovieNotFound, PersistenceFailure, ValidationError
from .cache import CatalogCache, GENRES_KEY, POPULAR, UPCOMING, page_key
from .models import Cast, Genre, Movie
from .services import CatalogReader, CatalogStore, build_meta

LOCMEM_CACHE = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'movies-tests',
    }
}


def make_movie(title, popularity=0.0, days_from_today=-30, **kwargs):
    return Movie.objects.create(
        title=title,
        overview=kwargs.pop('overview', f'{title} overview'),
        director_name=kwargs.pop('director_name', 'Test Director'),
        duration=kwargs.pop('duration', 120),
        popularity=popularity,
        release_date=timezone.now().date() + timedelta(days=days_from_today),
        **kwargs
    )


class BrokenCache:

    def get(self, key):
        raise ConnectionError('redis is down')

    def set(self, key, value, timeout=None):
        raise ConnectionError('redis is down')

    def delete(self, key):
        raise ConnectionError('redis is down')


@override_settings(CACHES=LOCMEM_CACHE)
class CatalogCacheTests(TestCase):

    def setUp(self):
        cache.clear()
        self.catalog_cache = CatalogCache()

    def test_get_reports_miss_then_hit(self):

        result = self.catalog_cache.get('movies:popular:page:1')
        self.assertFalse(result.hit)
        self.assertIsNone(result.value)

        self.catalog_cache.set('movies:popular:page:1', [{'id': 1}], timeout=60)

        result = self.catalog_cache.get('movies:popular:page:1')
        self.assertTrue(result.hit)
        self.assertEqual(result.value, [{'id': 1}])

    def test_empty_list_is_a_hit(self):

        self.catalog_cache.set('movies:upcoming:page:9', [], timeout=60)

        result = self.catalog_cache.get('movies:upcoming:page:9')
        self.assertTrue(result.hit)
        self.assertEqual(result.value, [])

    def test_delete_reverts_to_miss(self):

        self.catalog_cache.set(GENRES_KEY, [{'id': 1, 'name': 'Drama'}], timeout=60)
        self.assertTrue(self.catalog_cache.delete(GENRES_KEY))

        self.assertFalse(self.catalog_cache.get(GENRES_KEY).hit)

    def test_backend_errors_are_swallowed(self):

        broken = CatalogCache(backend=BrokenCache())

        with self.assertLogs('movies.cache', level='WARNING'):
            self.assertFalse(broken.get('movies:popular:page:1').hit)
        with self.assertLogs('movies.cache', level='WARNING'):
            self.assertFalse(broken.set('movies:popular:page:1', [], timeout=60))
        with self.assertLogs('movies.cache', level='WARNING'):
            self.assertFalse(broken.delete('movies:popular:page:1'))

    def test_page_key_layout(self):

        self.assertEqual(page_key(UPCOMING, 3), 'movies:upcoming:page:3')
        self.assertEqual(page_key(POPULAR, 1), 'movies:popular:page:1')


@override_settings(CACHES=LOCMEM_CACHE)
class PopularListingTests(TestCase):

    def setUp(self):
        cache.clear()
        self.reader = CatalogReader()

        self.drama = Genre.objects.create(name='Drama')
        self.action = Genre.objects.create(name='Action')
        self.actor = Cast.objects.create(name='Jane Doe')

        for index in range(13):
            movie = make_movie(f'Movie {index}', popularity=float(index))
            movie.genres.add(self.drama, self.action)
            movie.casts.add(self.actor)

    def test_first_page_holds_twelve_movies_by_descending_popularity(self):

        movies, total = self.reader.get_page(POPULAR, 1)

        self.assertEqual(len(movies), 12)
        self.assertEqual(total, 13)

        popularity = [movie['popularity'] for movie in movies]
        self.assertEqual(popularity, sorted(popularity, reverse=True))
        self.assertEqual(movies[0]['title'], 'Movie 12')

    def test_movies_carry_nested_genres_and_casts(self):

        movies, _ = self.reader.get_page(POPULAR, 1)

        self.assertEqual(
            movies[0]['genres'],
            [{'id': self.action.id, 'name': 'Action'}, {'id': self.drama.id, 'name': 'Drama'}]
        )
        self.assertEqual(movies[0]['casts'], [{'id': self.actor.id, 'name': 'Jane Doe'}])

    def test_second_page_holds_the_remainder(self):

        movies, total = self.reader.get_page(POPULAR, 2)

        self.assertEqual(len(movies), 1)
        self.assertEqual(movies[0]['title'], 'Movie 0')
        self.assertEqual(total, 13)

    def test_invalid_page_falls_back_to_first_page(self):

        first, _ = self.reader.get_page(POPULAR, 1)

        self.assertEqual(self.reader.get_page(POPULAR, 0)[0], first)
        self.assertEqual(self.reader.get_page(POPULAR, 'abc')[0], first)

    def test_miss_populates_cache(self):

        movies, _ = self.reader.get_page(POPULAR, 1)

        self.assertEqual(cache.get('movies:popular:page:1'), movies)

    def test_hit_reproduces_miss_result(self):

        first, first_total = self.reader.get_page(POPULAR, 1)
        second, second_total = self.reader.get_page(POPULAR, 1)

        self.assertEqual(first, second)
        self.assertEqual(first_total, second_total)

    def test_hit_does_not_query_the_movie_table_for_the_body(self):

        self.reader.get_page(POPULAR, 1)

        with mock.patch.object(CatalogStore, 'list_page') as list_page:
            self.reader.get_page(POPULAR, 1)

        list_page.assert_not_called()

    def test_cache_presence_never_changes_the_result(self):

        cold, cold_total = self.reader.get_page(POPULAR, 1)

        cache.clear()
        repopulated, repopulated_total = self.reader.get_page(POPULAR, 1)

        uncached = CatalogReader(cache=CatalogCache(backend=BrokenCache()))
        with self.assertLogs('movies.cache', level='WARNING'):
            degraded, degraded_total = uncached.get_page(POPULAR, 1)

        self.assertEqual(cold, repopulated)
        self.assertEqual(cold, degraded)
        self.assertEqual(cold_total, repopulated_total)
        self.assertEqual(cold_total, degraded_total)

    def test_cached_page_is_stale_until_it_expires(self):

        before, _ = self.reader.get_page(POPULAR, 1)
        cached_at = time.time()

        make_movie('Blockbuster', popularity=999.0)

        stale, total = self.reader.get_page(POPULAR, 1)
        self.assertEqual(stale, before)
        # The total is always counted live, even when the page body is cached.
        self.assertEqual(total, 14)

        clock = mock.Mock()

        clock.time.return_value = cached_at + settings.CATALOG_CACHE_TTL - 60
        with mock.patch('django.core.cache.backends.locmem.time', clock):
            still_cached, _ = self.reader.get_page(POPULAR, 1)
        self.assertEqual(still_cached, before)

        clock.time.return_value = cached_at + settings.CATALOG_CACHE_TTL + 1
        with mock.patch('django.core.cache.backends.locmem.time', clock):
            fresh, _ = self.reader.get_page(POPULAR, 1)

        self.assertEqual(fresh[0]['title'], 'Blockbuster')
        self.assertEqual(fresh[0]['popularity'], 999.0)

    def test_page_is_cached_for_one_hour(self):

        backend = mock.Mock()
        backend.get.return_value = None
        reader = CatalogReader(cache=CatalogCache(backend=backend))

        reader.get_page(POPULAR, 1)

        backend.set.assert_called_once()
        args, kwargs = backend.set.call_args
        self.assertEqual(args[0], 'movies:popular:page:1')
        self.assertEqual(kwargs['timeout'], 3600)

    def test_soft_deleted_movies_are_excluded(self):

        top = Movie.objects.get(title='Movie 12')
        top.soft_delete()

        movies, total = self.reader.get_page(POPULAR, 1)

        self.assertNotIn('Movie 12', [movie['title'] for movie in movies])
        self.assertEqual(total, 12)

    def test_unknown_kind_is_rejected(self):

        with self.assertRaises(ValidationError):
            self.reader.get_page('trending', 1)


@override_settings(CACHES=LOCMEM_CACHE)
class UpcomingListingTests(TestCase):

    def setUp(self):
        cache.clear()
        self.reader = CatalogReader()

        make_movie('Released', days_from_today=-10)
        make_movie('Today', days_from_today=0)
        make_movie('Next Month', days_from_today=30)
        make_movie('Next Week', days_from_today=7)

    def test_only_future_releases_in_release_order(self):

        movies, total = self.reader.get_page(UPCOMING, 1)

        self.assertEqual([movie['title'] for movie in movies], ['Next Week', 'Next Month'])
        self.assertEqual(total, 2)

    def test_upcoming_and_popular_use_separate_keys(self):

        self.reader.get_page(UPCOMING, 1)

        self.assertIsNotNone(cache.get('movies:upcoming:page:1'))
        self.assertIsNone(cache.get('movies:popular:page:1'))


@override_settings(CACHES=LOCMEM_CACHE)
class GenreListTests(TestCase):

    def setUp(self):
        cache.clear()
        self.reader = CatalogReader()

        Genre.objects.create(name='Thriller')
        Genre.objects.create(name='Comedy')

    def test_genres_sorted_by_name_and_cached(self):

        genres = self.reader.get_all_genres()

        self.assertEqual([genre['name'] for genre in genres], ['Comedy', 'Thriller'])
        self.assertEqual(cache.get(GENRES_KEY), genres)

    def test_new_genre_visible_after_expiry(self):

        self.reader.get_all_genres()
        Genre.objects.create(name='Animation')

        self.assertEqual(len(self.reader.get_all_genres()), 2)

        cache.delete(GENRES_KEY)
        self.assertEqual(self.reader.get_all_genres()[0]['name'], 'Animation')

    def test_clear_drops_listing_pages_and_genres(self):

        self.reader.get_all_genres()
        self.reader.get_page(POPULAR, 1)

        self.reader.clear(pages=2)

        self.assertIsNone(cache.get(GENRES_KEY))
        self.assertIsNone(cache.get('movies:popular:page:1'))


class CatalogSearchTests(TestCase):

    def setUp(self):

        self.horror = Genre.objects.create(name='Horror')
        self.comedy = Genre.objects.create(name='Comedy')

        self.night = make_movie('Night Terror', overview='A haunted house', days_from_today=-5)
        self.night.genres.add(self.horror)

        self.laugh = make_movie('Laugh Out Loud', overview='A night of comedy', days_from_today=-1)
        self.laugh.genres.add(self.comedy, self.horror)

        self.plain = make_movie('Quiet Days', overview='Nothing happens', days_from_today=-20)

    def test_search_matches_title_and_overview_case_insensitively(self):

        movies, total = CatalogStore.search(search='NIGHT')

        self.assertEqual(total, 2)
        self.assertEqual([movie['title'] for movie in movies], ['Laugh Out Loud', 'Night Terror'])

    def test_genre_filter_combines_with_search(self):

        movies, total = CatalogStore.search(search='night', genre_id=self.comedy.id)

        self.assertEqual(total, 1)
        self.assertEqual(movies[0]['title'], 'Laugh Out Loud')

    def test_genre_filter_returns_each_movie_once(self):

        movies, total = CatalogStore.search(genre_id=self.horror.id)

        self.assertEqual(total, 2)
        self.assertEqual(len(movies), 2)

    def test_search_excludes_soft_deleted(self):

        self.night.soft_delete()

        movies, total = CatalogStore.search(search='night')

        self.assertEqual(total, 1)
        self.assertEqual(movies[0]['title'], 'Laugh Out Loud')

    def test_search_results_do_not_include_casts(self):

        movies, _ = CatalogStore.search()

        self.assertNotIn('casts', movies[0])
        self.assertIn('genres', movies[0])

    def test_build_meta(self):

        self.assertEqual(build_meta(2, 25), {'page': 2, 'limit': 12, 'total': 25, 'total_pages': 3})
        self.assertEqual(build_meta(1, 0), {'page': 1, 'limit': 12, 'total': 0, 'total_pages': 0})

    def test_movie_detail_and_soft_delete(self):

        detail = CatalogStore.get_movie(self.laugh.id)
        self.assertEqual(detail['title'], 'Laugh Out Loud')
        self.assertEqual(len(detail['genres']), 2)

        self.laugh.soft_delete()

        with self.assertRaises(MovieNotFound):
            CatalogStore.get_movie(self.laugh.id)

        # Still addressable by identity for historical orders.
        self.assertTrue(Movie.objects.filter(pk=self.laugh.id).exists())


@override_settings(CACHES=LOCMEM_CACHE)
class MovieApiTests(TestCase):

    def setUp(self):
        cache.clear()
        self.client = Client()

        self.genre = Genre.objects.create(name='Sci-Fi')
        for index in range(3):
            movie = make_movie(f'Space {index}', popularity=float(index), days_from_today=index + 1)
            movie.genres.add(self.genre)

    def test_popular_endpoint(self):

        response = self.client.get('/movies/popular', {'page': 1})

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual(len(body['data']['movies']), 3)
        self.assertEqual(body['data']['meta']['total'], 3)

    def test_upcoming_endpoint(self):

        response = self.client.get('/movies/upcoming')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['movies'][0]['title'], 'Space 0')

    def test_search_endpoint_with_meta(self):

        response = self.client.get('/movies', {'search': 'space', 'genre': self.genre.id, 'page': 1})

        self.assertEqual(response.status_code, 200)
        data = response.json()['data']
        self.assertEqual(data['meta'], {'page': 1, 'limit': 12, 'total': 3, 'total_pages': 1})

    def test_search_endpoint_rejects_bad_genre(self):

        response = self.client.get('/movies', {'genre': 'scifi'})

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()['success'])

    def test_detail_endpoint(self):

        movie = Movie.objects.get(title='Space 1')

        response = self.client.get(f'/movies/{movie.id}')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data']['title'], 'Space 1')

        response = self.client.get('/movies/999999')
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()['message'], 'Movie not found.')

    def test_genres_endpoint(self):

        response = self.client.get('/movies/genres')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['data'], [{'id': self.genre.id, 'name': 'Sci-Fi'}])

    def test_listing_survives_cache_outage(self):

        broken = CatalogReader(cache=CatalogCache(backend=BrokenCache()))

        with mock.patch('movies.views.catalog_reader', broken):
            with self.assertLogs('movies.cache', level='WARNING'):
                response = self.client.get('/movies/popular')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()['data']['movies']), 3)

    def test_database_error_renders_persistence_failure(self):

        with mock.patch.object(CatalogReader, 'get_page', side_effect=DatabaseError('connection lost')):
            with self.assertLogs('movies.error_handlers', level='ERROR'):
                response = self.client.get('/movies/popular')

        self.assertEqual(response.status_code, 500)
        self.assertFalse(response.json()['success'])
        self.assertEqual(response.json()['message'], PersistenceFailure.default_message)


@override_settings(CACHES=LOCMEM_CACHE)
class ClearCatalogCacheCommandTests(TestCase):

    def setUp(self):
        cache.clear()

    def test_clears_selected_kind_only(self):

        cache.set(page_key(POPULAR, 1), ['popular'])
        cache.set(page_key(UPCOMING, 1), ['upcoming'])
        cache.set(GENRES_KEY, ['genres'])

        out = StringIO()
        call_command('clear_catalog_cache', kind=[POPULAR], pages=1, stdout=out)

        self.assertIsNone(cache.get(page_key(POPULAR, 1)))
        self.assertIsNone(cache.get(GENRES_KEY))
        self.assertEqual(cache.get(page_key(UPCOMING, 1)), ['upcoming'])
        self.assertIn('Cleared', out.getvalue())
