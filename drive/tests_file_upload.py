import shutil
import tempfile
from django.urls import reverse
from django.test import override_settings
from rest_framework.test import APITestCase
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken
from django.contrib.auth import get_user_model
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.files.storage import default_storage
from .models import File, Folder

User = get_user_model()

MEDIA_ROOT = tempfile.mkdtemp()


def tearDownModule():
    shutil.rmtree(MEDIA_ROOT, ignore_errors=True)


@override_settings(MEDIA_ROOT=MEDIA_ROOT)
class FileUploadAPITests(APITestCase):
    """
    Test suite for upload endpoints:
    - POST /api/files/upload/
    - POST /api/files/upload-multiple/
    """

    def setUp(self):
        """Set up test data"""
        self.upload_url = reverse('file_upload')
        self.upload_multiple_url = reverse('file_upload_multiple')

        self.user = User.objects.create_user(
            username='testuser',
            email='test@example.com',
            password='testpass123'
        )

        refresh = RefreshToken.for_user(self.user)
        self.access_token = str(refresh.access_token)
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token}')

        self.test_file_content = b"This is a test file content for upload testing."
        self.test_file = SimpleUploadedFile(
            "test.txt",
            self.test_file_content,
            content_type="text/plain"
        )

    def test_file_upload_success(self):
        """Test successful file upload"""
        response = self.client.post(self.upload_url, {'file': self.test_file}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['message'], 'File uploaded successfully')

        file_data = response.data['file']
        self.assertEqual(file_data['original_name'], 'test.txt')
        self.assertEqual(file_data['size'], len(self.test_file_content))
        self.assertEqual(file_data['mime_type'], 'text/plain')
        self.assertFalse(file_data['is_public'])
        self.assertIsNone(file_data['public_id'])
        self.assertIsNone(file_data['folder_id'])
        self.assertIsNone(file_data['deleted_at'])

        user_file = File.objects.get(pk=file_data['id'])
        self.assertEqual(user_file.owner, self.user)
        with default_storage.open(user_file.path, 'rb') as handle:
            self.assertEqual(handle.read(), self.test_file_content)

    def test_stored_name_is_generated(self):
        """Test the on-disk name never reuses the client's file name"""
        upload = SimpleUploadedFile("../../etc/Report.TXT", b"data", content_type="text/plain")

        response = self.client.post(self.upload_url, {'file': upload}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user_file = File.objects.get(pk=response.data['file']['id'])
        self.assertRegex(user_file.filename, r'^\d+-\d+\.txt$')
        self.assertTrue(user_file.path.startswith('uploads/'))
        self.assertNotIn('..', user_file.path)

    def test_file_upload_with_metadata(self):
        """Test metadata is kept as JSON and decoded on the way out"""
        data = {
            'file': self.test_file,
            'metadata': '{"project": "apollo", "year": 2024}'
        }

        response = self.client.post(self.upload_url, data, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['file']['metadata'], {'project': 'apollo', 'year': 2024})

    def test_file_upload_invalid_metadata(self):
        """Test metadata that is not JSON is rejected before storing"""
        data = {
            'file': self.test_file,
            'metadata': 'not json'
        }

        response = self.client.post(self.upload_url, data, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('metadata', response.data)
        self.assertFalse(File.objects.exists())

    def test_file_upload_no_file(self):
        """Test upload without file"""
        response = self.client.post(self.upload_url, {}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('file', response.data)

    @override_settings(MAX_FILE_SIZE=10)
    def test_file_upload_too_large(self):
        """Test files above the size limit are rejected"""
        response = self.client.post(self.upload_url, {'file': self.test_file}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('file', response.data)
        self.assertFalse(File.objects.exists())

    def test_file_upload_unauthenticated(self):
        """Test upload without authentication"""
        self.client.credentials()

        response = self.client.post(self.upload_url, {'file': self.test_file}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_file_upload_into_folder(self):
        """Test uploading into one of the user's folders"""
        folder = Folder.objects.create(owner=self.user, name='Docs')

        response = self.client.post(
            self.upload_url,
            {'file': self.test_file, 'folder_id': folder.id},
            format='multipart'
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['file']['folder_id'], folder.id)

    def test_file_upload_into_foreign_folder(self):
        """Test another user's folder cannot receive uploads"""
        other = User.objects.create_user(username='other', email='other@example.com', password='otherpass1')
        folder = Folder.objects.create(owner=other, name='Theirs')

        response = self.client.post(
            self.upload_url,
            {'file': self.test_file, 'folder_id': folder.id},
            format='multipart'
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(File.objects.exists())

    def test_file_upload_into_folder_zero(self):
        """Test folder id 0 is rejected instead of falling back to the root"""
        response = self.client.post(
            self.upload_url,
            {'file': self.test_file, 'folder_id': 0},
            format='multipart'
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(File.objects.exists())

    def test_upload_multiple_into_folder_zero(self):
        """Test the batch upload validates folder id 0 as well"""
        files = [SimpleUploadedFile("a.txt", b"first", content_type="text/plain")]

        response = self.client.post(
            self.upload_multiple_url,
            {'files': files, 'folder_id': 0},
            format='multipart'
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(File.objects.exists())

    def test_upload_multiple(self):
        """Test uploading several files in one request"""
        files = [
            SimpleUploadedFile("a.txt", b"first", content_type="text/plain"),
            SimpleUploadedFile("b.txt", b"second", content_type="text/plain"),
        ]

        response = self.client.post(self.upload_multiple_url, {'files': files}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['message'], 'Successfully uploaded 2 file(s)')
        self.assertEqual(len(response.data['files']), 2)
        self.assertNotIn('errors', response.data)
        self.assertEqual(File.objects.filter(owner=self.user).count(), 2)

    @override_settings(MAX_FILE_SIZE=8)
    def test_upload_multiple_partial_failure(self):
        """Test one oversized item does not undo the others"""
        files = [
            SimpleUploadedFile("small.txt", b"tiny", content_type="text/plain"),
            SimpleUploadedFile("big.txt", b"far too large for the limit", content_type="text/plain"),
        ]

        response = self.client.post(self.upload_multiple_url, {'files': files}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual([f['original_name'] for f in response.data['files']], ['small.txt'])
        self.assertEqual(len(response.data['errors']), 1)
        self.assertEqual(response.data['errors'][0]['filename'], 'big.txt')
        self.assertTrue(response.data['errors'][0]['error'].startswith('File size cannot exceed'))

    @override_settings(MAX_FILE_SIZE=2)
    def test_upload_multiple_all_fail(self):
        """Test a batch where nothing could be stored"""
        files = [
            SimpleUploadedFile("a.txt", b"first", content_type="text/plain"),
            SimpleUploadedFile("b.txt", b"second", content_type="text/plain"),
        ]

        response = self.client.post(self.upload_multiple_url, {'files': files}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(len(response.data['errors']), 2)
        self.assertFalse(File.objects.exists())

    def test_upload_multiple_too_many(self):
        """Test batches are capped at ten files"""
        files = [
            SimpleUploadedFile(f"f{i}.txt", b"x", content_type="text/plain")
            for i in range(11)
        ]

        response = self.client.post(self.upload_multiple_url, {'files': files}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('files', response.data)
        self.assertFalse(File.objects.exists())
