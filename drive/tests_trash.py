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
from .models import File, FilePermission, FileVersion, Folder

User = get_user_model()

MEDIA_ROOT = tempfile.mkdtemp()


def tearDownModule():
    shutil.rmtree(MEDIA_ROOT, ignore_errors=True)


@override_settings(MEDIA_ROOT=MEDIA_ROOT)
class TrashAPITests(APITestCase):
    """
    Test suite for the trash:
    - DELETE /api/files/<id>/
    - GET /api/files/trash/
    - POST /api/files/<id>/restore/
    - DELETE /api/files/<id>/permanent/
    - DELETE /api/files/trash/empty/
    """

    def setUp(self):
        """Set up test data"""
        self.trash_url = reverse('trash_list')
        self.empty_url = reverse('trash_empty')

        self.user = User.objects.create_user(
            username='testuser',
            email='test@example.com',
            password='testpass123'
        )

        refresh = RefreshToken.for_user(self.user)
        self.access_token = str(refresh.access_token)
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token}')

        self.user_file = self.store_file('draft.txt', b'draft body')

    def store_file(self, name, content):
        path = default_storage.save(f'uploads/{name}', ContentFile(content))
        return File.objects.create(
            owner=self.user,
            filename=os.path.basename(path),
            original_name=name,
            mime_type='text/plain',
            size=len(content),
            path=path,
        )

    def trash(self, user_file):
        return self.client.delete(reverse('file_detail', args=[user_file.id]))

    def test_soft_delete_moves_file_to_trash(self):
        """Test deleting a file only marks it as trashed"""
        response = self.trash(self.user_file)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user_file.refresh_from_db()
        self.assertIsNotNone(self.user_file.deleted_at)
        self.assertTrue(default_storage.exists(self.user_file.path))

        response = self.client.get(reverse('file_detail', args=[self.user_file.id]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.get(reverse('file_list'))
        self.assertEqual(response.data['count'], 0)

    def test_trash_list(self):
        """Test the trash lists trashed files only"""
        self.store_file('keep.txt', b'keep')
        self.trash(self.user_file)

        response = self.client.get(self.trash_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([f['original_name'] for f in response.data['files']], ['draft.txt'])

    def test_restore_from_trash(self):
        """Test a restored file is active again"""
        self.trash(self.user_file)

        response = self.client.post(reverse('file_restore', args=[self.user_file.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user_file.refresh_from_db()
        self.assertIsNone(self.user_file.deleted_at)

    def test_restore_active_file(self):
        """Test restoring a file that is not in the trash"""
        response = self.client.post(reverse('file_restore', args=[self.user_file.id]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'File not found in trash')

    def test_restore_twice(self):
        """Test the second restore of the same file is a not-found"""
        self.trash(self.user_file)
        self.client.post(reverse('file_restore', args=[self.user_file.id]))

        response = self.client.post(reverse('file_restore', args=[self.user_file.id]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_permanent_delete(self):
        """Test purging removes the row, its versions and every blob"""
        old_path = default_storage.save('versions/old.txt', ContentFile(b'old body'))
        FileVersion.objects.create(
            file=self.user_file,
            version_number=1,
            filename='old.txt',
            original_name='draft.txt',
            mime_type='text/plain',
            size=8,
            path=old_path,
            created_by=self.user,
        )
        self.trash(self.user_file)

        response = self.client.delete(reverse('file_permanent_delete', args=[self.user_file.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(File.objects.filter(pk=self.user_file.pk).exists())
        self.assertFalse(FileVersion.objects.exists())
        self.assertFalse(default_storage.exists(self.user_file.path))
        self.assertFalse(default_storage.exists(old_path))

    def test_permanent_delete_requires_trash(self):
        """Test an active file cannot be purged"""
        response = self.client.delete(reverse('file_permanent_delete', args=[self.user_file.id]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertTrue(File.objects.filter(pk=self.user_file.pk).exists())

    def test_permanent_delete_with_missing_blob(self):
        """Test a purge still succeeds when the blob is already gone"""
        default_storage.delete(self.user_file.path)
        self.trash(self.user_file)

        response = self.client.delete(reverse('file_permanent_delete', args=[self.user_file.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(File.objects.filter(pk=self.user_file.pk).exists())

    def test_empty_trash(self):
        """Test emptying the trash purges every trashed file"""
        second = self.store_file('second.txt', b'second')
        survivor = self.store_file('survivor.txt', b'survivor')
        self.trash(self.user_file)
        self.trash(second)

        response = self.client.delete(self.empty_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['deleted_count'], 2)
        self.assertEqual(list(File.objects.values_list('pk', flat=True)), [survivor.pk])
        self.assertTrue(default_storage.exists(survivor.path))

    def test_other_user_cannot_trash_file(self):
        """Test only the owner can move a file to the trash"""
        other = User.objects.create_user(username='other', email='other@example.com', password='otherpass1')
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {RefreshToken.for_user(other).access_token}')

        response = self.trash(self.user_file)

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.user_file.refresh_from_db()
        self.assertIsNone(self.user_file.deleted_at)

    def test_delete_grant_does_not_allow_trash(self):
        """Test a delete grant cannot strand a file in the owner's trash"""
        grantee = User.objects.create_user(username='grantee', email='grantee@example.com', password='granteepass1')
        FilePermission.objects.create(file=self.user_file, user=grantee, permission='delete', granted_by=self.user)
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {RefreshToken.for_user(grantee).access_token}')

        response = self.trash(self.user_file)

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.user_file.refresh_from_db()
        self.assertIsNone(self.user_file.deleted_at)

    def test_admin_cannot_trash_other_users_file(self):
        """Test the admin role does not reach into another user's trash"""
        admin = User.objects.create_user(
            username='admin', email='admin@example.com', password='adminpass1', role=User.ROLE_ADMIN
        )
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {RefreshToken.for_user(admin).access_token}')

        response = self.trash(self.user_file)

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.user_file.refresh_from_db()
        self.assertIsNone(self.user_file.deleted_at)

    def test_trash_then_restore_keeps_attributes(self):
        """Test a trash and restore round trip changes only the timestamps"""
        folder = Folder.objects.create(owner=self.user, name='Drafts')
        File.objects.filter(pk=self.user_file.pk).update(
            folder=folder,
            metadata='{"stage": "review"}',
            is_public=True,
            public_id='ab' * 16,
        )
        ignored = {'deleted_at', 'updated_at'}

        def snapshot():
            row = File.objects.filter(pk=self.user_file.pk).values().get()
            return {key: value for key, value in row.items() if key not in ignored}

        before = snapshot()
        self.trash(self.user_file)
        response = self.client.post(reverse('file_restore', args=[self.user_file.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(snapshot(), before)
