from django import forms
from django.conf import settings


class SeatCodesField(forms.Field):
    """A JSON list of seat codes such as ``["A1", "A2"]``."""

    default_error_messages = {
        'invalid_list': 'Enter a list of seat codes.',
        'invalid_code': 'Seat codes must be non-empty strings.',
        'too_many': 'Maximum %(max)s seats allowed per order.',
    }

    def to_python(self, value):
        if value in self.empty_values:
            return []
        if not isinstance(value, (list, tuple)):
            raise forms.ValidationError(self.error_messages['invalid_list'], code='invalid_list')

        codes = []
        for code in value:
            if not isinstance(code, str) or not code.strip():
                raise forms.ValidationError(self.error_messages['invalid_code'], code='invalid_code')
            codes.append(code.strip().upper())
        return codes

    def validate(self, value):
        super().validate(value)

        max_seats = getattr(settings, 'MAX_SEATS_PER_ORDER', 10)
        if len(value) > max_seats:
            raise forms.ValidationError(
                self.error_messages['too_many'], code='too_many', params={'max': max_seats}
            )


class OrderCreateForm(forms.Form):

    schedule_id = forms.IntegerField(
        min_value=1,
        error_messages={'required': 'schedule_id is required.'},
    )

    payment_id = forms.IntegerField(
        min_value=1,
        error_messages={'required': 'payment_id is required.'},
    )

    fullname = forms.CharField(max_length=200)

    email = forms.EmailField()

    phone = forms.CharField(max_length=30)

    seat_codes = SeatCodesField(
        error_messages={'required': 'Please select at least one seat.'},
    )

    def clean_fullname(self):
        fullname = self.cleaned_data.get('fullname', '').strip()

        if not fullname:
            raise forms.ValidationError('Please enter your full name.')

        return fullname
