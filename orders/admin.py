from django.contrib import admin
from .models import Order, OrderSeat, PaymentMethod, Seat

class OrderSeatInline(admin.TabularInline):
    model = OrderSeat
    extra = 0
    fields = ['seat', 'schedule']
    readonly_fields = ['seat', 'schedule']
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ['qr_code', 'user', 'schedule', 'payment_method', 'seat_list', 'created_at']
    list_filter = ['created_at', 'payment_method', 'schedule__movie']
    search_fields = ['qr_code', 'user__username', 'fullname', 'email', 'schedule__movie__title']
    actions = ['export_as_csv']
    inlines = [OrderSeatInline]

    readonly_fields = ['qr_code', 'user', 'schedule', 'payment_method', 'created_at', 'updated_at']

    fieldsets = [
        ('Order Information', {
            'fields': ['qr_code', 'user', 'schedule', 'payment_method']
        }),
        ('Contact', {
            'fields': ['fullname', 'email', 'phone_number']
        }),
        ('Timestamps', {
            'fields': ['created_at', 'updated_at']
        }),
    ]

    def get_queryset(self, request):
        return super().get_queryset(request).prefetch_related('seats')

    def has_add_permission(self, request):
        # Orders are only created through the booking API.
        return False

    def seat_list(self, obj):
        return obj.get_seats_display()
    seat_list.short_description = 'Seats'

    @admin.action(description="Export selected orders to CSV")
    def export_as_csv(self, request, queryset):
        import csv
        from django.http import HttpResponse
        response = HttpResponse(content_type='text/csv')
        response['Content-Disposition'] = 'attachment; filename="selected_orders.csv"'
        writer = csv.writer(response)
        writer.writerow(['Booking Reference', 'User', 'Movie', 'Seats', 'Payment', 'Date'])

        for order in queryset.select_related('user', 'schedule__movie', 'payment_method'):
            writer.writerow([
                order.qr_code,
                order.user.username,
                order.schedule.movie.title,
                order.get_seats_display(),
                order.payment_method.name,
                order.created_at.strftime('%Y-%m-%d %H:%M')
            ])
        return response

@admin.register(Seat)
class SeatAdmin(admin.ModelAdmin):
    list_display = ['seat_code']
    search_fields = ['seat_code']

@admin.register(PaymentMethod)
class PaymentMethodAdmin(admin.ModelAdmin):
    list_display = ['name']
