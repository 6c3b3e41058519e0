from django.urls import path
from . import views

urlpatterns = [
    path('movies', views.movie_list, name='movie_list'),

    path('movies/upcoming', views.upcoming_movies, name='upcoming_movies'),
    path('movies/popular', views.popular_movies, name='popular_movies'),
    path('movies/genres', views.genre_list, name='genre_list'),

    path('movies/<int:movie_id>', views.movie_detail, name='movie_detail'),
]
