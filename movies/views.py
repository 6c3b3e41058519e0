from django.views.decorators.http import require_GET

from moviebooking.exceptions import ValidationError
from moviebooking.responses import api_response
from .cache import POPULAR, UPCOMING
from .services import CatalogStore, build_meta, catalog_reader, normalize_page


def _listing(request, kind, message):
    page = normalize_page(request.GET.get('page', 1))
    movies, total = catalog_reader.get_page(kind, page)

    return api_response(200, data={
        'movies': movies,
        'meta': build_meta(page, total),
    }, message=message)

@require_GET
def upcoming_movies(request):

    return _listing(request, UPCOMING, 'Get upcoming movies successfully')

@require_GET
def popular_movies(request):

    return _listing(request, POPULAR, 'Get popular movies successfully')

@require_GET
def movie_list(request):

    page = normalize_page(request.GET.get('page', 1))
    search = request.GET.get('search', '')

    genre_id = None
    genre = request.GET.get('genre', '').strip()
    if genre:
        try:
            genre_id = int(genre)
        except ValueError:
            raise ValidationError('genre must be an integer id')

    movies, total = CatalogStore.search(page=page, search=search, genre_id=genre_id)

    return api_response(200, data={
        'movies': movies,
        'meta': build_meta(page, total),
    }, message='Get movies successfully')

@require_GET
def movie_detail(request, movie_id):

    movie = CatalogStore.get_movie(movie_id)
    return api_response(200, data=movie, message='Get movie details successfully')

@require_GET
def genre_list(request):

    genres = catalog_reader.get_all_genres()
    return api_response(200, data=genres, message='Get genres successfully')
