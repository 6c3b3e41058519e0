from django.contrib import admin
from .models import Movie, Genre, Cast
from .theater_models import Cinema, Location, TimeSlot, Schedule

@admin.register(Genre)
class GenreAdmin(admin.ModelAdmin):
    list_display = ['name']
    search_fields = ['name']

@admin.register(Cast)
class CastAdmin(admin.ModelAdmin):
    list_display = ['name']
    search_fields = ['name']

@admin.register(Movie)
class MovieAdmin(admin.ModelAdmin):
    list_display = ['title', 'release_date', 'popularity', 'duration_formatted', 'is_live']

    list_filter = ['genres', 'release_date', ('deleted_at', admin.EmptyFieldListFilter)]

    search_fields = ['title', 'director_name', 'casts__name']

    filter_horizontal = ['genres', 'casts']

    actions = ['soft_delete_movies']

    fieldsets = [
        ('Basic Info', {
            'fields': ['title', 'overview', 'poster_path', 'backdrop_path']
        }),
        ('Details', {
            'fields': ['release_date', 'duration', 'popularity', 'genres']
        }),
        ('Cast & Crew', {
            'fields': ['director_name', 'casts']
        }),
        ('Status', {
            'fields': ['deleted_at']
        }),
    ]

    def duration_formatted(self, obj):
        return obj.duration_formatted()
    duration_formatted.short_description = 'Duration'

    @admin.display(boolean=True, description='Live')
    def is_live(self, obj):
        return not obj.is_deleted

    @admin.action(description="Soft delete selected movies")
    def soft_delete_movies(self, request, queryset):
        updated = 0
        for movie in queryset.filter(deleted_at__isnull=True):
            movie.soft_delete()
            updated += 1
        self.message_user(request, f"{updated} movies hidden from the catalog. Cached listings refresh when they expire.")

@admin.register(Cinema)
class CinemaAdmin(admin.ModelAdmin):
    list_display = ['name']
    search_fields = ['name']

@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):
    list_display = ['name']
    search_fields = ['name']

@admin.register(TimeSlot)
class TimeSlotAdmin(admin.ModelAdmin):
    list_display = ['time']

@admin.register(Schedule)
class ScheduleAdmin(admin.ModelAdmin):
    list_display = ['movie', 'cinema', 'location', 'date', 'time_slot']
    list_filter = ['date', 'cinema', 'location']

    search_fields = ['movie__title', 'cinema__name']

    date_hierarchy = 'date'

    def formfield_for_foreignkey(self, db_field, request, **kwargs):
        if db_field.name == "movie":
            kwargs["queryset"] = Movie.catalog.all()
        return super().formfield_for_foreignkey(db_field, request, **kwargs)
