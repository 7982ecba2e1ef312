import os
import shutil
import tempfile
from django.urls import reverse
from django.test import override_settings
from rest_framework.test import APITestCase
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken
from django.contrib.auth import get_user_model
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from .models import File

User = get_user_model()

MEDIA_ROOT = tempfile.mkdtemp()


def tearDownModule():
    shutil.rmtree(MEDIA_ROOT, ignore_errors=True)


@override_settings(MEDIA_ROOT=MEDIA_ROOT)
class FileDownloadAPITests(APITestCase):
    """
    Test suite for content endpoints:
    - GET /api/files/<id>/download/
    - GET /api/files/<id>/preview/
    - PUT /api/files/<id>/visibility/
    - GET /api/public/files/<public_id>/...
    """

    def setUp(self):
        """Set up test data"""
        self.user = User.objects.create_user(
            username='testuser',
            email='test@example.com',
            password='testpass123'
        )

        refresh = RefreshToken.for_user(self.user)
        self.access_token = str(refresh.access_token)
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token}')

        self.text_file = self.store_file('notes.txt', b'line one\nline two\n', 'text/plain')

    def store_file(self, name, content, mime_type):
        path = default_storage.save(f'uploads/{name}', ContentFile(content))
        return File.objects.create(
            owner=self.user,
            filename=os.path.basename(path),
            original_name=name,
            mime_type=mime_type,
            size=len(content),
            path=path,
        )

    def read(self, response):
        return b''.join(response.streaming_content)

    def test_download(self):
        """Test downloading returns the bytes under the original name"""
        response = self.client.get(reverse('file_download', args=[self.text_file.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.read(response), b'line one\nline two\n')
        self.assertIn('attachment', response['Content-Disposition'])
        self.assertIn('notes.txt', response['Content-Disposition'])

    def test_download_with_query_token(self):
        """Test a token in the query string authenticates downloads"""
        self.client.credentials()
        url = reverse('file_download', args=[self.text_file.id])

        response = self.client.get(f'{url}?token={self.access_token}')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.read(response), b'line one\nline two\n')

    def test_query_token_not_accepted_elsewhere(self):
        """Test the query token only works on download-style endpoints"""
        self.client.credentials()
        url = reverse('file_detail', args=[self.text_file.id])

        response = self.client.get(f'{url}?token={self.access_token}')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_download_missing_blob(self):
        """Test a row whose blob has vanished reads as not found"""
        default_storage.delete(self.text_file.path)

        response = self.client.get(reverse('file_download', args=[self.text_file.id]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'File not found on disk')

    def test_download_other_users_private_file(self):
        """Test a private file is forbidden to other users"""
        other = User.objects.create_user(username='other', email='other@example.com', password='otherpass1')
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {RefreshToken.for_user(other).access_token}')

        response = self.client.get(reverse('file_download', args=[self.text_file.id]))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_preview_text(self):
        """Test text files preview as JSON"""
        response = self.client.get(reverse('file_preview', args=[self.text_file.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['type'], 'text')
        self.assertEqual(response.data['content'], 'line one\nline two\n')
        self.assertFalse(response.data['truncated'])

    def test_preview_text_truncated(self):
        """Test long text previews are cut off"""
        long_file = self.store_file('long.txt', b'a' * 12000, 'text/plain')

        response = self.client.get(reverse('file_preview', args=[long_file.id]))

        self.assertTrue(response.data['truncated'])
        self.assertTrue(response.data['content'].startswith('a' * 10000))
        self.assertLess(len(response.data['content']), 12000)

    def test_preview_image_inline(self):
        """Test images are streamed inline"""
        image = self.store_file('pixel.png', b'\x89PNG\r\n\x1a\nfake', 'image/png')

        response = self.client.get(reverse('file_preview', args=[image.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response['Content-Type'], 'image/png')
        self.assertEqual(response['Content-Disposition'], 'inline')
        self.assertEqual(self.read(response), b'\x89PNG\r\n\x1a\nfake')

    def test_preview_unsupported_type(self):
        """Test binary types cannot be previewed"""
        archive = self.store_file('bundle.zip', b'PK\x03\x04', 'application/zip')

        response = self.client.get(reverse('file_preview', args=[archive.id]))

        self.assertEqual(response.status_code, status.HTTP_415_UNSUPPORTED_MEDIA_TYPE)

    def test_publish_and_fetch_public_link(self):
        """Test a published file is readable without credentials"""
        response = self.client.put(
            reverse('file_visibility', args=[self.text_file.id]),
            {'is_public': True},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        public_id = response.data['public_id']
        self.assertRegex(public_id, r'^[0-9a-f]{32}$')
        self.assertEqual(response.data['public_url'], f'/api/public/files/{public_id}/')

        self.client.credentials()
        response = self.client.get(reverse('public_file_info', args=[public_id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['file']['original_name'], 'notes.txt')
        self.assertNotIn('path', response.data['file'])

        response = self.client.get(reverse('public_file_download', args=[public_id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.read(response), b'line one\nline two\n')

        response = self.client.get(reverse('public_file', args=[public_id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response.close()

    def test_unpublish_invalidates_link(self):
        """Test a link stops working once the file is private again"""
        url = reverse('file_visibility', args=[self.text_file.id])
        first_id = self.client.put(url, {'is_public': True}, format='json').data['public_id']

        response = self.client.put(url, {'is_public': False}, format='json')
        self.assertIsNone(response.data['public_id'])

        self.client.credentials()
        response = self.client.get(reverse('public_file_info', args=[first_id]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'File not found or not public')

    def test_republish_mints_new_link(self):
        """Test publishing again never revives the old link"""
        url = reverse('file_visibility', args=[self.text_file.id])
        first_id = self.client.put(url, {'is_public': True}, format='json').data['public_id']
        self.client.put(url, {'is_public': False}, format='json')

        second_id = self.client.put(url, {'is_public': True}, format='json').data['public_id']

        self.assertNotEqual(first_id, second_id)

    def test_publish_twice_keeps_link(self):
        """Test publishing an already public file keeps its link"""
        url = reverse('file_visibility', args=[self.text_file.id])
        first_id = self.client.put(url, {'is_public': True}, format='json').data['public_id']

        second_id = self.client.put(url, {'is_public': True}, format='json').data['public_id']

        self.assertEqual(first_id, second_id)

    def test_visibility_requires_boolean(self):
        """Test is_public must be a real boolean"""
        response = self.client.put(
            reverse('file_visibility', args=[self.text_file.id]),
            {'is_public': 'yes'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_trashed_public_file_is_hidden(self):
        """Test trashing a public file hides its link"""
        public_id = self.client.put(
            reverse('file_visibility', args=[self.text_file.id]),
            {'is_public': True},
            format='json'
        ).data['public_id']
        self.client.delete(reverse('file_detail', args=[self.text_file.id]))

        self.client.credentials()
        response = self.client.get(reverse('public_file_info', args=[public_id]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_public_file_visible_to_other_users(self):
        """Test any user may view a public file but not change it"""
        self.client.put(reverse('file_visibility', args=[self.text_file.id]), {'is_public': True}, format='json')
        other = User.objects.create_user(username='other', email='other@example.com', password='otherpass1')
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {RefreshToken.for_user(other).access_token}')

        response = self.client.get(reverse('file_detail', args=[self.text_file.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.delete(reverse('file_detail', args=[self.text_file.id]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
