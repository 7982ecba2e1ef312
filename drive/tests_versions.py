import os
import shutil
import tempfile
from django.urls import reverse
from django.db import IntegrityError, transaction
from django.test import override_settings
from rest_framework.test import APITestCase
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken
from django.contrib.auth import get_user_model
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from .models import File, FilePermission, FileVersion

User = get_user_model()

MEDIA_ROOT = tempfile.mkdtemp()


def tearDownModule():
    shutil.rmtree(MEDIA_ROOT, ignore_errors=True)


@override_settings(MEDIA_ROOT=MEDIA_ROOT)
class FileVersionAPITests(APITestCase):
    """
    Test suite for version endpoints:
    - GET/POST /api/files/<id>/versions/
    - POST /api/files/<id>/versions/<version_id>/restore/
    - GET /api/files/<id>/versions/<version_id>/download/
    - DELETE /api/files/<id>/versions/<version_id>/
    - GET /api/files/<id>/versions/compare/
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

        path = default_storage.save('uploads/report.txt', ContentFile(b'first draft'))
        self.user_file = File.objects.create(
            owner=self.user,
            filename=os.path.basename(path),
            original_name='report.txt',
            mime_type='text/plain',
            size=11,
            path=path,
            metadata='{"stage": "draft"}',
        )
        self.versions_url = reverse('version_list', args=[self.user_file.id])

    def upload_version(self, content, name='report.txt', description=None):
        data = {'file': SimpleUploadedFile(name, content, content_type='text/plain')}
        if description:
            data['change_description'] = description
        return self.client.post(self.versions_url, data, format='multipart')

    def read(self, response):
        return b''.join(response.streaming_content)

    def test_list_versions_of_fresh_file(self):
        """Test a file with no history reports itself as version 1"""
        response = self.client.get(self.versions_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['versions'], [])
        self.assertEqual(response.data['current']['version_number'], 1)
        self.assertTrue(response.data['current']['is_current'])
        self.assertEqual(response.data['current']['change_description'], 'Current version')

    def test_upload_version(self):
        """Test the first overwrite leaves two rows and moves current to 3"""
        response = self.upload_version(b'second draft', description='Tightened wording')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['version']['version_number'], 2)
        self.assertEqual(response.data['version']['change_description'], 'Tightened wording')

        response = self.client.get(self.versions_url)
        versions = response.data['versions']
        self.assertEqual([v['version_number'] for v in versions], [2, 1])
        self.assertEqual(versions[1]['change_description'], 'Previous version before update')
        self.assertEqual(versions[1]['size'], 11)
        self.assertEqual(response.data['current']['version_number'], 3)

        self.user_file.refresh_from_db()
        self.assertEqual(self.user_file.size, 12)
        self.assertTrue(self.user_file.path.startswith('versions/'))
        with default_storage.open(self.user_file.path, 'rb') as handle:
            self.assertEqual(handle.read(), b'second draft')

    def test_upload_version_numbers_keep_increasing(self):
        """Test each overwrite adds two consecutive numbers"""
        self.upload_version(b'second draft')
        response = self.upload_version(b'third draft')

        self.assertEqual(response.data['version']['version_number'], 4)
        numbers = list(FileVersion.objects.filter(file=self.user_file).values_list('version_number', flat=True))
        self.assertEqual(sorted(numbers), [1, 2, 3, 4])

    def test_upload_version_without_file(self):
        """Test a version upload needs a file"""
        response = self.client.post(self.versions_url, {}, format='multipart')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'No file uploaded')
        self.assertFalse(FileVersion.objects.exists())

    @override_settings(MAX_FILE_SIZE=5)
    def test_upload_version_too_large(self):
        """Test an oversized version leaves the file untouched"""
        response = self.upload_version(b'much too large')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(FileVersion.objects.exists())
        self.user_file.refresh_from_db()
        self.assertEqual(self.user_file.size, 11)

    def test_upload_version_requires_edit(self):
        """Test view access is not enough to upload a version"""
        other = User.objects.create_user(username='other', email='other@example.com', password='otherpass1')
        FilePermission.objects.create(file=self.user_file, user=other, permission='view', granted_by=self.user)
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {RefreshToken.for_user(other).access_token}')

        response = self.upload_version(b'hijack')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.get(self.versions_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_restore_version(self):
        """Test restoring brings back the old content and metadata"""
        self.upload_version(b'second draft')
        self.user_file.refresh_from_db()
        self.user_file.metadata = '{"stage": "final"}'
        self.user_file.save()
        original = FileVersion.objects.get(file=self.user_file, version_number=1)

        response = self.client.post(reverse('version_restore', args=[self.user_file.id, original.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['restored_version'], 1)

        self.user_file.refresh_from_db()
        self.assertEqual(self.user_file.size, 11)
        self.assertEqual(self.user_file.metadata, '{"stage": "draft"}')
        self.assertIn('restored-', self.user_file.filename)
        with default_storage.open(self.user_file.path, 'rb') as handle:
            self.assertEqual(handle.read(), b'first draft')

        snapshot = FileVersion.objects.get(file=self.user_file, version_number=3)
        self.assertEqual(snapshot.change_description, 'Before restoring to version 1')
        self.assertEqual(snapshot.metadata, '{"stage": "final"}')

    def test_restore_version_with_missing_blob(self):
        """Test a restore whose blob is gone changes nothing"""
        self.upload_version(b'second draft')
        original = FileVersion.objects.get(file=self.user_file, version_number=1)
        default_storage.delete(original.path)

        response = self.client.post(reverse('version_restore', args=[self.user_file.id, original.id]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Version file not found on disk')
        self.assertEqual(FileVersion.objects.filter(file=self.user_file).count(), 2)

    def test_restore_version_of_other_file(self):
        """Test a version id must belong to the file in the URL"""
        other_file = File.objects.create(
            owner=self.user, filename='x.txt', original_name='x.txt', size=1, path='uploads/x.txt',
        )
        self.upload_version(b'second draft')
        version = FileVersion.objects.get(file=self.user_file, version_number=1)

        response = self.client.post(reverse('version_restore', args=[other_file.id, version.id]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Version not found')

    def test_download_version(self):
        """Test downloading an old version returns its bytes"""
        self.upload_version(b'second draft')
        original = FileVersion.objects.get(file=self.user_file, version_number=1)

        response = self.client.get(reverse('version_download', args=[self.user_file.id, original.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(self.read(response), b'first draft')

    def test_delete_version_keeps_shared_blob(self):
        """Test a blob still referenced elsewhere survives a version delete"""
        self.upload_version(b'second draft')
        second = FileVersion.objects.get(file=self.user_file, version_number=2)

        response = self.client.delete(reverse('version_delete', args=[self.user_file.id, second.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(FileVersion.objects.filter(pk=second.pk).exists())
        self.user_file.refresh_from_db()
        self.assertTrue(default_storage.exists(self.user_file.path))

    def test_delete_version_removes_unreferenced_blob(self):
        """Test a blob nothing else points at is removed with its version"""
        self.upload_version(b'second draft')
        first = FileVersion.objects.get(file=self.user_file, version_number=1)

        response = self.client.delete(reverse('version_delete', args=[self.user_file.id, first.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(default_storage.exists(first.path))

    def test_compare_versions(self):
        """Test comparing reports size and age differences"""
        self.upload_version(b'a much longer second draft')
        first = FileVersion.objects.get(file=self.user_file, version_number=1)
        second = FileVersion.objects.get(file=self.user_file, version_number=2)

        response = self.client.get(
            reverse('version_compare', args=[self.user_file.id]),
            {'v1': first.id, 'v2': second.id}
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['version1']['version_number'], 1)
        self.assertEqual(response.data['version2']['version_number'], 2)
        self.assertEqual(response.data['differences']['size_diff'], 26 - 11)
        self.assertGreaterEqual(response.data['differences']['time_diff'], 0)

    def test_compare_requires_both_ids(self):
        """Test both v1 and v2 are required"""
        response = self.client.get(reverse('version_compare', args=[self.user_file.id]), {'v1': 1})

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_compare_unknown_version(self):
        """Test comparing against a version that does not exist"""
        self.upload_version(b'second draft')
        first = FileVersion.objects.get(file=self.user_file, version_number=1)

        response = self.client.get(
            reverse('version_compare', args=[self.user_file.id]),
            {'v1': first.id, 'v2': 99999}
        )

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'One or both versions not found')

    def test_version_numbers_unique_per_file(self):
        """Test the database refuses a duplicate number for one file"""
        FileVersion.objects.create(
            file=self.user_file, version_number=1, filename='a', original_name='a',
            size=1, path='versions/a', created_by=self.user,
        )

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                FileVersion.objects.create(
                    file=self.user_file, version_number=1, filename='b', original_name='b',
                    size=1, path='versions/b', created_by=self.user,
                )

    def test_versions_of_trashed_file_still_listed(self):
        """Test history stays readable while the file is in the trash"""
        self.upload_version(b'second draft')
        self.client.delete(reverse('file_detail', args=[self.user_file.id]))

        response = self.client.get(self.versions_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['versions']), 2)
