import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

from movies.theater_models import Schedule


class PaymentMethod(models.Model):
    # A label only: no payment gateway is involved in committing an order.
    name = models.CharField(max_length=100, unique=True)

    def __str__(self):
        return self.name

    def to_dict(self):
        return {'id': self.id, 'name': self.name}

    class Meta:
        ordering = ['id']


class Seat(models.Model):
    """A physical seat. The pool is global and reused by every schedule."""

    seat_code = models.CharField(max_length=10, unique=True)

    def __str__(self):
        return self.seat_code

    def to_dict(self):
        return {'id': self.id, 'seat_code': self.seat_code}

    class Meta:
        ordering = ['id']


def generate_qr_code():
    date_str = timezone.now().strftime('%Y%m%d%H%M%S')
    random_str = uuid.uuid4().hex[:12].upper()
    return f"QR-{date_str}-{random_str}"


class Order(models.Model):

    qr_code = models.CharField(max_length=64, unique=True, editable=False)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name='orders')
    schedule = models.ForeignKey(Schedule, on_delete=models.PROTECT, related_name='orders')
    payment_method = models.ForeignKey(PaymentMethod, on_delete=models.PROTECT, related_name='orders')

    fullname = models.CharField(max_length=200)
    email = models.EmailField()
    phone_number = models.CharField(max_length=30)

    seats = models.ManyToManyField(Seat, through='OrderSeat', related_name='orders')

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.qr_code} - {self.fullname}"

    def save(self, *args, **kwargs):
        if not self.qr_code:
            self.qr_code = generate_qr_code()
        super().save(*args, **kwargs)

    def get_seats_display(self):

        return ", ".join(seat.seat_code for seat in self.seats.all())


class OrderSeat(models.Model):
    """
    One seat claimed by one order.

    ``schedule`` always equals ``order.schedule``; it exists so the database
    can refuse a second claim on the same seat for the same schedule.
    """

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name='order_seats')
    seat = models.ForeignKey(Seat, on_delete=models.PROTECT, related_name='order_seats')
    schedule = models.ForeignKey(Schedule, on_delete=models.PROTECT, related_name='order_seats')

    class Meta:
        ordering = ['order', 'seat']
        constraints = [
            models.UniqueConstraint(fields=['order', 'seat'], name='uniq_order_seat'),
            models.UniqueConstraint(fields=['schedule', 'seat'], name='uniq_schedule_seat'),
        ]

    def __str__(self):
        return f"{self.order_id} - {self.seat_id}"

    def save(self, *args, **kwargs):
        if not self.schedule_id:
            self.schedule_id = self.order.schedule_id
        super().save(*args, **kwargs)
