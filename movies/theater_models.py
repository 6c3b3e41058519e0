from django.db import models


class Cinema(models.Model):
    name = models.CharField(max_length=200)

    def __str__(self):
        return self.name

    def to_dict(self):
        return {'id': self.id, 'name': self.name}

    class Meta:
        ordering = ['id']


class Location(models.Model):
    name = models.CharField(max_length=200)

    def __str__(self):
        return self.name

    def to_dict(self):
        return {'id': self.id, 'name': self.name}

    class Meta:
        ordering = ['id']


class TimeSlot(models.Model):
    time = models.TimeField(unique=True)

    def __str__(self):
        return self.get_formatted_time()

    def get_formatted_time(self):

        return self.time.strftime("%H:%M")

    def to_dict(self):
        return {'id': self.id, 'time': self.get_formatted_time()}

    class Meta:
        ordering = ['time']


class Schedule(models.Model):
    """A screening of a movie at a cinema, location and time slot on a given date."""

    movie = models.ForeignKey('movies.Movie', on_delete=models.PROTECT, related_name='schedules')
    cinema = models.ForeignKey(Cinema, on_delete=models.PROTECT, related_name='schedules')
    location = models.ForeignKey(Location, on_delete=models.PROTECT, related_name='schedules')
    time_slot = models.ForeignKey(TimeSlot, on_delete=models.PROTECT, related_name='schedules')

    date = models.DateField()

    def __str__(self):
        return f"{self.movie.title} - {self.date} {self.time_slot}"

    def to_dict(self):
        return {
            'id': self.id,
            'movie_id': self.movie_id,
            'cinema_id': self.cinema_id,
            'time_id': self.time_slot_id,
            'location_id': self.location_id,
            'date': self.date.isoformat(),
        }

    class Meta:
        ordering = ['date', 'time_slot__time']
        indexes = [
            models.Index(fields=['movie', 'date'], name='schedule_movie_date_idx'),
        ]
