import datetime
import json
import threading
import time
from io import StringIO
from unittest import mock

from django.contrib.auth.models import AnonymousUser, User
from django.core.management import call_command
from django.db import DatabaseError, IntegrityError, connection, transaction
from django.test import TestCase, TransactionTestCase, Client
from django.utils import timezone

from moviebooking.exceptions import (
    OrderNotFound,
    PaymentMethodInvalid,
    PersistenceFailure,
    SeatAlreadyBooked,
    SeatCodeUnresolved,
    ShowtimeNotFound,
    Unauthorized,
    ValidationError,
)
from movies.models import Movie
from movies.theater_models import Cinema, Location, Schedule, TimeSlot
from .forms import OrderCreateForm
from .models import Order, OrderSeat, PaymentMethod, Seat
from .services import OrderQueryService, OrderService
from .utils import SeatManager


class BookingFixtureMixin:

    def create_fixtures(self):

        self.user = User.objects.create_user(
            username='testuser',
            password='testpass123'
        )
        self.other_user = User.objects.create_user(
            username='otheruser',
            password='testpass123'
        )

        self.movie = Movie.objects.create(
            title='Test Movie',
            overview='Test Overview',
            director_name='Test Director',
            release_date=timezone.now().date(),
            duration=148,
            popularity=7.5,
        )

        self.cinema = Cinema.objects.create(name='ebv.id')
        self.location = Location.objects.create(name='Purwokerto')
        self.time_slot = TimeSlot.objects.create(time=datetime.time(13, 0))

        self.schedule = Schedule.objects.create(
            movie=self.movie,
            cinema=self.cinema,
            location=self.location,
            time_slot=self.time_slot,
            date=timezone.now().date() + timezone.timedelta(days=1),
        )
        self.other_schedule = Schedule.objects.create(
            movie=self.movie,
            cinema=self.cinema,
            location=self.location,
            time_slot=self.time_slot,
            date=timezone.now().date() + timezone.timedelta(days=2),
        )

        self.payment = PaymentMethod.objects.create(name='Dana')

        self.seats = {
            code: Seat.objects.create(seat_code=code)
            for code in ['A1', 'A2', 'A3', 'B1']
        }

    def book(self, seat_codes, user=None, schedule=None, **kwargs):
        return OrderService.create_order(
            user=user or self.user,
            schedule_id=(schedule or self.schedule).id,
            payment_id=kwargs.pop('payment_id', self.payment.id),
            fullname='Farid Darari',
            email='farid@example.com',
            phone='+628123456789',
            seat_codes=seat_codes,
            **kwargs
        )

    def free_codes(self, schedule=None):
        return [seat.seat_code for seat in SeatManager.available_seats((schedule or self.schedule).id)]


class SeatResolverTests(BookingFixtureMixin, TestCase):

    def setUp(self):
        self.create_fixtures()

    def test_codes_resolve_in_request_order(self):

        ids = SeatManager.resolve_seat_codes(['A2', 'A1'])

        self.assertEqual(ids, [self.seats['A2'].id, self.seats['A1'].id])

    def test_unknown_code_rejects_whole_lookup(self):

        with self.assertRaises(SeatCodeUnresolved) as ctx:
            SeatManager.resolve_seat_codes(['A1', 'Z9', 'Z8'])

        self.assertEqual(ctx.exception.codes, ['Z9', 'Z8'])

    def test_duplicate_codes_are_rejected(self):

        with self.assertRaises(ValidationError):
            SeatManager.resolve_seat_codes(['A1', 'A1'])

    def test_all_seats_available_for_fresh_schedule(self):

        self.assertEqual(self.free_codes(), ['A1', 'A2', 'A3', 'B1'])

    def test_available_seats_are_scoped_by_schedule(self):

        self.book(['A1'])

        self.assertEqual(self.free_codes(), ['A2', 'A3', 'B1'])
        self.assertEqual(self.free_codes(self.other_schedule), ['A1', 'A2', 'A3', 'B1'])

    def test_booked_seat_ids(self):

        self.book(['A1', 'A2'])

        taken = SeatManager.booked_seat_ids(
            self.schedule.id,
            [self.seats['A2'].id, self.seats['A3'].id],
        )
        self.assertEqual(taken, {self.seats['A2'].id})

    def test_generate_seat_codes(self):

        codes = SeatManager.generate_seat_codes(rows=2, cols=3)

        self.assertEqual(codes, ['A1', 'A2', 'A3', 'B1', 'B2', 'B3'])


class OrderCreationTests(BookingFixtureMixin, TestCase):

    def setUp(self):
        self.create_fixtures()

    def test_order_is_committed_with_its_seats(self):

        order = self.book(['A2', 'A1'])

        self.assertEqual(Order.objects.count(), 1)
        self.assertEqual(OrderSeat.objects.filter(order=order).count(), 2)
        self.assertEqual([seat.seat_code for seat in order.committed_seats], ['A2', 'A1'])
        self.assertTrue(
            all(order_seat.schedule_id == self.schedule.id for order_seat in OrderSeat.objects.all())
        )

    def test_booking_reference_is_generated_and_unique(self):

        first = self.book(['A1'])
        second = self.book(['A2'])

        self.assertTrue(first.qr_code.startswith('QR-'))
        self.assertNotEqual(first.qr_code, second.qr_code)

    def test_supplied_booking_reference_is_kept(self):

        order = self.book(['A1'], qr_code='QR-CUSTOM-1')

        self.assertEqual(order.qr_code, 'QR-CUSTOM-1')

    def test_same_seat_on_different_schedules(self):

        self.book(['A1'])
        self.book(['A1'], schedule=self.other_schedule)

        self.assertEqual(OrderSeat.objects.filter(seat=self.seats['A1']).count(), 2)

    def test_second_booking_of_a_seat_conflicts(self):

        accepted = self.book(['A1', 'A2'])

        with self.assertRaises(SeatAlreadyBooked) as ctx:
            self.book(['A2', 'A3'], user=self.other_user)

        self.assertTrue(ctx.exception.retryable)
        self.assertEqual(ctx.exception.seat_codes, ['A2'])

        self.assertEqual(Order.objects.count(), 1)
        self.assertEqual(OrderSeat.objects.count(), 2)
        booked = {seat.seat_code for seat in accepted.committed_seats}
        self.assertEqual(set(self.free_codes()), set(self.seats) - booked)

    def test_racing_commit_is_caught_by_unique_constraint(self):

        self.book(['A2'])
        real_check = SeatManager.booked_seat_ids

        def check_before_commit(schedule_id, seat_ids, lock=False):
            # The locked check ran before the other order committed.
            if lock:
                return set()
            return real_check(schedule_id, seat_ids)

        with mock.patch.object(SeatManager, 'booked_seat_ids', side_effect=check_before_commit):
            with self.assertRaises(SeatAlreadyBooked) as ctx:
                self.book(['A3', 'A2'], user=self.other_user)

        self.assertEqual(ctx.exception.seat_codes, ['A2'])

        self.assertFalse(Order.objects.filter(user=self.other_user).exists())
        self.assertFalse(OrderSeat.objects.filter(seat=self.seats['A3']).exists())
        self.assertEqual(self.free_codes(), ['A1', 'A3', 'B1'])

    def test_unique_constraint_scoped_to_schedule(self):

        order = self.book(['A1'])

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                other = Order.objects.create(
                    user=self.other_user,
                    schedule=self.schedule,
                    payment_method=self.payment,
                    fullname='Other',
                    email='other@example.com',
                    phone_number='1',
                )
                OrderSeat.objects.create(order=other, seat=self.seats['A1'])

        self.assertEqual(OrderSeat.objects.get(seat=self.seats['A1']).order, order)

    def test_failure_inserting_seats_leaves_no_order(self):

        with mock.patch.object(OrderSeat.objects, 'bulk_create', side_effect=DatabaseError('disk full')):
            with self.assertRaises(PersistenceFailure):
                self.book(['A1', 'A2', 'A3'])

        self.assertEqual(Order.objects.count(), 0)
        self.assertEqual(OrderSeat.objects.count(), 0)
        self.assertEqual(len(self.free_codes()), 4)

    def test_unknown_seat_code_books_nothing(self):

        with self.assertRaises(SeatCodeUnresolved):
            self.book(['A1', 'Z9'])

        self.assertEqual(Order.objects.count(), 0)

    def test_missing_schedule(self):

        with self.assertRaises(ShowtimeNotFound):
            self.book(['A1'], schedule=Schedule(id=999999))

    def test_invalid_payment_method(self):

        with self.assertRaises(PaymentMethodInvalid):
            self.book(['A1'], payment_id=999999)

    def test_empty_seat_list(self):

        with self.assertRaises(ValidationError):
            self.book([])

    def test_anonymous_user_is_rejected(self):

        with self.assertRaises(Unauthorized):
            self.book(['A1'], user=AnonymousUser())


class ConcurrentOrderTests(BookingFixtureMixin, TransactionTestCase):

    def setUp(self):
        self.create_fixtures()

    def test_overlapping_orders_one_gets_conflict(self):

        start = threading.Barrier(2)
        results = {}
        real_check = SeatManager.booked_seat_ids

        def slow_check(schedule_id, seat_ids, lock=False):
            taken = real_check(schedule_id, seat_ids, lock=lock)
            # Hold the window between the availability check and the insert open.
            time.sleep(0.2)
            return taken

        def place_order(name, user, seat_codes):
            try:
                start.wait(timeout=5)
                results[name] = self.book(seat_codes, user=user)
            except Exception as e:
                results[name] = e
            finally:
                connection.close()

        with mock.patch.object(SeatManager, 'booked_seat_ids', side_effect=slow_check):
            threads = [
                threading.Thread(target=place_order, args=('first', self.user, ['A1', 'A2'])),
                threading.Thread(target=place_order, args=('second', self.other_user, ['A2', 'A3'])),
            ]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join(timeout=30)

        winners = [result for result in results.values() if isinstance(result, Order)]
        losers = [result for result in results.values() if isinstance(result, SeatAlreadyBooked)]

        self.assertEqual(len(winners), 1, results)
        self.assertEqual(len(losers), 1, results)
        self.assertTrue(losers[0].retryable)
        self.assertEqual(losers[0].seat_codes, ['A2'])

        self.assertEqual(Order.objects.count(), 1)
        self.assertEqual(OrderSeat.objects.count(), 2)
        self.assertFalse(Order.objects.exclude(pk=winners[0].pk).exists())

        booked = {seat.seat_code for seat in winners[0].committed_seats}
        self.assertEqual(set(self.free_codes()), set(self.seats) - booked)


class OrderReadModelTests(BookingFixtureMixin, TestCase):

    def setUp(self):
        self.create_fixtures()
        self.first = self.book(['A1', 'A2'])
        self.second = self.book(['B1'], schedule=self.other_schedule)

    def test_order_detail_is_flattened(self):

        detail = OrderQueryService.get_order_detail(self.user, self.first.id)

        self.assertEqual(detail['qr_code'], self.first.qr_code)
        self.assertEqual(detail['movie']['title'], 'Test Movie')
        self.assertEqual(detail['cinema_name'], 'ebv.id')
        self.assertEqual(detail['location'], 'Purwokerto')
        self.assertEqual(detail['time'], '13:00')
        self.assertEqual(detail['payment'], 'Dana')
        self.assertEqual(detail['phone'], '+628123456789')
        self.assertEqual(detail['seats'], [
            {'id': self.seats['A1'].id, 'seat_code': 'A1'},
            {'id': self.seats['A2'].id, 'seat_code': 'A2'},
        ])

    def test_order_detail_is_scoped_to_owner(self):

        with self.assertRaises(OrderNotFound):
            OrderQueryService.get_order_detail(self.other_user, self.first.id)

    def test_history_newest_first(self):

        history = OrderQueryService.get_order_history(self.user)

        self.assertEqual([item['id'] for item in history], [self.second.id, self.first.id])
        self.assertEqual(OrderQueryService.get_order_history(self.other_user), [])

    def test_soft_deleted_movie_still_shown_in_history(self):

        self.movie.soft_delete()

        history = OrderQueryService.get_order_history(self.user)
        self.assertEqual(history[0]['movie']['title'], 'Test Movie')

    def test_schedules_for_movie(self):

        schedules = OrderQueryService.get_schedules(self.movie.id)

        self.assertEqual([item['id'] for item in schedules], [self.schedule.id, self.other_schedule.id])
        self.assertEqual(schedules[0]['cinema_id'], self.cinema.id)


class OrderFormTests(TestCase):

    def valid_data(self, **overrides):
        data = {
            'schedule_id': 8,
            'payment_id': 2,
            'fullname': 'Farid Darari',
            'email': 'farid@example.com',
            'phone': '+628123456789',
            'seat_codes': ['a1', 'A2'],
        }
        data.update(overrides)
        return data

    def test_valid_payload(self):

        form = OrderCreateForm(self.valid_data())

        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data['seat_codes'], ['A1', 'A2'])

    def test_seat_codes_required(self):

        form = OrderCreateForm(self.valid_data(seat_codes=[]))

        self.assertFalse(form.is_valid())
        self.assertIn('seat_codes', form.errors)

    def test_seat_codes_must_be_a_list_of_strings(self):

        self.assertFalse(OrderCreateForm(self.valid_data(seat_codes='A1')).is_valid())
        self.assertFalse(OrderCreateForm(self.valid_data(seat_codes=['A1', 3])).is_valid())
        self.assertFalse(OrderCreateForm(self.valid_data(seat_codes=['A1', ' '])).is_valid())

    def test_too_many_seats(self):

        codes = [f'A{number}' for number in range(1, 12)]
        form = OrderCreateForm(self.valid_data(seat_codes=codes))

        self.assertFalse(form.is_valid())

    def test_invalid_email(self):

        form = OrderCreateForm(self.valid_data(email='not-an-email'))

        self.assertFalse(form.is_valid())
        self.assertIn('email', form.errors)


class OrderApiTests(BookingFixtureMixin, TestCase):

    def setUp(self):
        self.create_fixtures()
        self.client = Client()
        self.client.login(username='testuser', password='testpass123')

    def post_order(self, seat_codes, client=None, **overrides):
        payload = {
            'schedule_id': self.schedule.id,
            'payment_id': self.payment.id,
            'fullname': 'Farid Darari',
            'email': 'farid@example.com',
            'phone': '+628123456789',
            'seat_codes': seat_codes,
        }
        payload.update(overrides)
        return (client or self.client).post('/orders', data=json.dumps(payload), content_type='application/json')

    def test_create_order_returns_201(self):

        response = self.post_order(['A1', 'A2'])

        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual(body['code'], 201)
        self.assertTrue(body['data']['qr_code'].startswith('QR-'))
        self.assertEqual([seat['seat_code'] for seat in body['data']['seats']], ['A1', 'A2'])

    def test_overlapping_orders_one_wins(self):

        other_client = Client()
        other_client.login(username='otheruser', password='testpass123')

        first = self.post_order(['A1', 'A2'])
        second = self.post_order(['A2', 'A3'], client=other_client)

        self.assertEqual(first.status_code, 201)
        self.assertEqual(second.status_code, 409)
        self.assertTrue(second.json()['retryable'])
        self.assertFalse(second.json()['success'])

        response = self.client.get('/orders/seats', {'schedule_id': self.schedule.id})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([seat['seat_code'] for seat in response.json()['data']], ['A3', 'B1'])
        self.assertIn('no-store', response['Cache-Control'])

    def test_anonymous_caller_gets_401(self):

        response = self.post_order(['A1'], client=Client())

        self.assertEqual(response.status_code, 401)
        self.assertEqual(Order.objects.count(), 0)

    def test_malformed_json_gets_400(self):

        response = self.client.post('/orders', data='{not json', content_type='application/json')

        self.assertEqual(response.status_code, 400)

    def test_missing_fields_get_400_with_errors(self):

        response = self.post_order([])

        self.assertEqual(response.status_code, 400)
        self.assertIn('seat_codes', response.json()['errors'])

    def test_unknown_seat_code_gets_400(self):

        response = self.post_order(['A1', 'Z9'])

        self.assertEqual(response.status_code, 400)
        self.assertIn('Z9', response.json()['message'])
        self.assertEqual(Order.objects.count(), 0)

    def test_unknown_schedule_gets_404(self):

        response = self.post_order(['A1'], schedule_id=999999)

        self.assertEqual(response.status_code, 404)

    def test_seats_endpoint_requires_schedule_id(self):

        self.assertEqual(self.client.get('/orders/seats').status_code, 400)
        self.assertEqual(self.client.get('/orders/seats', {'schedule_id': 'x'}).status_code, 400)

    def test_detail_and_history(self):

        order_id = self.post_order(['B1']).json()['data']['order_id']

        detail = self.client.get(f'/orders/{order_id}')
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(detail.json()['data']['seats'][0]['seat_code'], 'B1')

        history = self.client.get('/orders/history')
        self.assertEqual(history.status_code, 200)
        self.assertEqual(len(history.json()['data']), 1)

        self.assertEqual(self.client.get('/orders/999999').status_code, 404)

    def test_schedules_endpoint(self):

        response = self.client.get('/orders/schedules', {'movie_id': self.movie.id})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.json()['data']), 2)
        self.assertEqual(self.client.get('/orders/schedules').status_code, 400)

    def test_reference_data_endpoints(self):

        self.assertEqual(self.client.get('/orders/payments').json()['data'], [{'id': self.payment.id, 'name': 'Dana'}])
        self.assertEqual(self.client.get('/orders/cinemas').json()['data'], [{'id': self.cinema.id, 'name': 'ebv.id'}])
        self.assertEqual(self.client.get('/orders/locations').json()['data'], [{'id': self.location.id, 'name': 'Purwokerto'}])
        self.assertEqual(self.client.get('/orders/times').json()['data'], [{'id': self.time_slot.id, 'time': '13:00'}])


class SeedSeatsCommandTests(TestCase):

    def test_seeds_pool_once(self):

        call_command('seed_seats', rows=2, cols=3, stdout=StringIO())
        call_command('seed_seats', rows=2, cols=3, stdout=StringIO())

        self.assertEqual(
            list(Seat.objects.order_by('id').values_list('seat_code', flat=True)),
            ['A1', 'A2', 'A3', 'B1', 'B2', 'B3']
        )
