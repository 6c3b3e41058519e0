from django.contrib.auth.models import AnonymousUser, User
from django.http import JsonResponse
from django.test import TestCase, RequestFactory

from .decorators import api_login_required


@api_login_required
def protected_view(request):
    return JsonResponse({'user': request.user.username})


class ApiLoginRequiredTests(TestCase):

    def setUp(self):
        self.factory = RequestFactory()
        self.user = User.objects.create_user(username='testuser', password='testpass123')

    def test_anonymous_request_gets_401_envelope(self):

        request = self.factory.get('/orders/history')
        request.user = AnonymousUser()

        response = protected_view(request)

        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['code'], 401)
        self.assertFalse(response.json()['success'])

    def test_authenticated_request_reaches_view(self):

        request = self.factory.get('/orders/history')
        request.user = self.user

        response = protected_view(request)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['user'], 'testuser')
