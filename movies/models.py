from django.db import models
from django.utils import timezone


class Genre(models.Model):

    name = models.CharField(max_length=100, unique=True)

    def __str__(self):
        return self.name

    def to_dict(self):
        return {'id': self.id, 'name': self.name}

    class Meta:
        ordering = ['name']


class Cast(models.Model):

    name = models.CharField(max_length=200)

    def __str__(self):
        return self.name

    def to_dict(self):
        return {'id': self.id, 'name': self.name}

    class Meta:
        ordering = ['name']


class CatalogManager(models.Manager):
    """Movies visible to catalog readers: soft-deleted rows are hidden."""

    def get_queryset(self):
        return super().get_queryset().filter(deleted_at__isnull=True)


class Movie(models.Model):

    title = models.CharField(max_length=200)

    overview = models.TextField(blank=True)

    director_name = models.CharField(max_length=200, blank=True)

    duration = models.IntegerField(help_text="Duration in minutes")
    release_date = models.DateField(db_index=True)

    popularity = models.FloatField(default=0.0, db_index=True)

    # Upload and storage of the images belong to the media service; only the references live here.
    poster_path = models.CharField(max_length=255, blank=True)
    backdrop_path = models.CharField(max_length=255, blank=True)

    genres = models.ManyToManyField(Genre, related_name='movies', blank=True)
    casts = models.ManyToManyField(Cast, related_name='movies', blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    deleted_at = models.DateTimeField(null=True, blank=True)  # Soft delete marker

    objects = models.Manager()
    catalog = CatalogManager()

    def __str__(self):
        return f"{self.title} ({self.release_date.year})"

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    def soft_delete(self):
        self.deleted_at = timezone.now()
        self.save(update_fields=['deleted_at', 'updated_at'])

    def duration_formatted(self):

        hours = self.duration // 60
        minutes = self.duration % 60
        return f"{hours}h {minutes}m"

    def to_dict(self, include_casts=True):
        """
        JSON-ready representation with nested genre and cast lists.

        Expects ``genres``/``casts`` to be prefetched when called in a loop.
        """
        data = {
            'id': self.id,
            'title': self.title,
            'overview': self.overview,
            'director_name': self.director_name,
            'duration': self.duration,
            'popularity': self.popularity,
            'release_date': self.release_date.isoformat(),
            'poster_path': self.poster_path,
            'backdrop_path': self.backdrop_path,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
            'deleted_at': self.deleted_at.isoformat() if self.deleted_at else None,
            'genres': [genre.to_dict() for genre in self.genres.all()],
        }
        if include_casts:
            data['casts'] = [cast.to_dict() for cast in self.casts.all()]
        return data

    class Meta:
        ordering = ['-release_date', 'title']


from .theater_models import Cinema, Location, TimeSlot, Schedule  # noqa: E402,F401
