from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_GET, require_http_methods
import json
import logging

from accounts.decorators import api_login_required
from moviebooking.exceptions import ValidationError
from moviebooking.responses import api_response
from movies.theater_models import Cinema, Location, TimeSlot
from .forms import OrderCreateForm
from .models import PaymentMethod
from .services import OrderQueryService, OrderService
from .utils import SeatManager

logger = logging.getLogger(__name__)


def _required_int_param(request, name):
    value = request.GET.get(name, '').strip()
    if not value:
        raise ValidationError(f"{name} is required")
    try:
        return int(value)
    except ValueError:
        raise ValidationError(f"invalid {name}")


@csrf_exempt
@api_login_required
@require_http_methods(['POST'])
def create_order(request):

    try:
        data = json.loads(request.body or b'{}')
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError('Invalid request: body must be valid JSON.')

    if not isinstance(data, dict):
        raise ValidationError('Invalid request: body must be a JSON object.')

    form = OrderCreateForm(data)
    if not form.is_valid():
        raise ValidationError('Invalid request.', errors=form.errors.get_json_data())

    order = OrderService.create_order(
        user=request.user,
        schedule_id=form.cleaned_data['schedule_id'],
        payment_id=form.cleaned_data['payment_id'],
        fullname=form.cleaned_data['fullname'],
        email=form.cleaned_data['email'],
        phone=form.cleaned_data['phone'],
        seat_codes=form.cleaned_data['seat_codes'],
    )

    return api_response(201, data={
        'order_id': order.id,
        'qr_code': order.qr_code,
        'seats': [seat.to_dict() for seat in order.committed_seats],
    }, message='Order created successfully')

@api_login_required
@require_GET
def order_history(request):

    history = OrderQueryService.get_order_history(request.user)
    return api_response(200, data=history, message='Get order history successfully')

@api_login_required
@require_GET
def order_detail(request, order_id):

    detail = OrderQueryService.get_order_detail(request.user, order_id)
    return api_response(200, data=detail, message='Get order detail successfully')

@api_login_required
@require_GET
def schedule_list(request):

    movie_id = _required_int_param(request, 'movie_id')
    schedules = OrderQueryService.get_schedules(movie_id)
    return api_response(200, data=schedules, message='Get schedules successfully')

@api_login_required
@require_GET
def available_seats(request):

    schedule_id = _required_int_param(request, 'schedule_id')
    seats = SeatManager.available_seats(schedule_id)

    response = api_response(200, data=[seat.to_dict() for seat in seats], message='Get available seats successfully')

    # Seat availability changes with every booking; never let clients or proxies reuse it.
    response['Cache-Control'] = 'no-cache, no-store, must-revalidate, max-age=0'
    response['Pragma'] = 'no-cache'
    response['Expires'] = '0'
    return response

@api_login_required
@require_GET
def payment_list(request):

    payments = [payment.to_dict() for payment in PaymentMethod.objects.order_by('id')]
    return api_response(200, data=payments, message='Get payment methods successfully')

@api_login_required
@require_GET
def cinema_list(request):

    cinemas = [cinema.to_dict() for cinema in Cinema.objects.order_by('id')]
    return api_response(200, data=cinemas, message='Get cinemas successfully')

@api_login_required
@require_GET
def location_list(request):

    locations = [location.to_dict() for location in Location.objects.order_by('id')]
    return api_response(200, data=locations, message='Get locations successfully')

@api_login_required
@require_GET
def time_list(request):

    times = [time_slot.to_dict() for time_slot in TimeSlot.objects.order_by('time')]
    return api_response(200, data=times, message='Get times successfully')
