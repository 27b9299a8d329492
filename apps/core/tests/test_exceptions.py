from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import Http404
from django.test import SimpleTestCase
from rest_framework import status
from rest_framework.exceptions import NotAuthenticated, ValidationError

from apps.core.exceptions import ServiceError, api_exception_handler


class ApiExceptionHandlerTest(SimpleTestCase):
    def render(self, exc):
        return api_exception_handler(exc, {'view': None})

    def test_service_error_payload(self):
        exc = ServiceError('Copy is on loan', code='copy_in_circulation', status_code=409, extra={'copy': 2})

        response = self.render(exc)

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data, {'error': 'Copy is on loan', 'code': 'copy_in_circulation', 'copy': 2})

    def test_service_error_defaults(self):
        response = self.render(ServiceError('Nope'))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'service_error')

    def test_django_validation_error(self):
        response = self.render(DjangoValidationError({'amount': ['Must be positive']}))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['details'], {'amount': ['Must be positive']})

    def test_drf_detail_errors_are_flattened(self):
        response = self.render(NotAuthenticated())

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['code'], 'not_authenticated')

    def test_field_errors_kept_as_details(self):
        response = self.render(ValidationError({'bookId': ['This field is required.']}))

        self.assertEqual(response.data['code'], 'invalid')
        self.assertIn('bookId', response.data['details'])

    def test_not_found(self):
        response = self.render(Http404())
        self.assertEqual(response.data, {'error': 'Not found', 'code': 'not_found'})

    def test_unexpected_errors_fall_through(self):
        with self.assertLogs('apps.core.exceptions', level='ERROR'):
            self.assertIsNone(self.render(RuntimeError('boom')))
