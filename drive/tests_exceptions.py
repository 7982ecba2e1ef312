from django.db import DatabaseError
from django.test import SimpleTestCase
from rest_framework import exceptions, status
from .exceptions import Conflict, InvalidInput, NotFound, drive_exception_handler


class ExceptionHandlerTests(SimpleTestCase):
    """Tests for the project-wide DRF exception handler"""

    def handle(self, exc):
        return drive_exception_handler(exc, {'view': None})

    def test_not_found_renders_error_key(self):
        """Test taxonomy errors render as {"error": message}"""
        response = self.handle(NotFound('File not found'))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {'error': 'File not found'})

    def test_conflict(self):
        """Test conflicts map to 409"""
        response = self.handle(Conflict('Tag already exists'))

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data, {'error': 'Tag already exists'})

    def test_invalid_input_message(self):
        """Test a single invalid-input message is flattened"""
        response = self.handle(InvalidInput('Folder name is required'))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': 'Folder name is required'})

    def test_field_errors_keep_their_shape(self):
        """Test serializer field errors are left keyed by field"""
        response = self.handle(exceptions.ValidationError({'email': ['Email already in use']}))

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'email': ['Email already in use']})

    def test_database_error_becomes_logged_500(self):
        """Test store failures become a generic 500 and are logged"""
        with self.assertLogs('drive.exceptions', level='ERROR'):
            response = self.handle(DatabaseError('disk I/O error'))

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data, {'error': 'Internal server error'})

    def test_unknown_exceptions_are_not_handled(self):
        """Test programming errors are left for Django to report"""
        self.assertIsNone(self.handle(KeyError('oops')))
