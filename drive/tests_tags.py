from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken
from django.contrib.auth import get_user_model
from .models import File, FileTag, Tag

User = get_user_model()


class TagAPITests(APITestCase):
    """
    Test suite for tag endpoints:
    - GET/POST /api/tags/
    - DELETE /api/tags/<id>/
    - GET/PUT /api/files/<id>/tags/
    """

    def setUp(self):
        """Set up test data"""
        self.tags_url = reverse('tag_list')

        self.user = User.objects.create_user(username='testuser', email='test@example.com', password='testpass123')
        self.admin = User.objects.create_user(
            username='admin', email='admin@example.com', password='adminpass1', role=User.ROLE_ADMIN
        )

        self.user_file = File.objects.create(
            owner=self.user,
            filename='1700000000000-1.txt',
            original_name='notes.txt',
            mime_type='text/plain',
            size=4,
            path='uploads/1700000000000-1.txt',
        )
        self.file_tags_url = reverse('file_tags', args=[self.user_file.id])
        self.work = Tag.objects.create(name='work')
        self.urgent = Tag.objects.create(name='urgent')

        self.authenticate(self.user)

    def authenticate(self, user):
        refresh = RefreshToken.for_user(user)
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')

    def test_list_tags(self):
        """Test tags are listed alphabetically"""
        response = self.client.get(self.tags_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([t['name'] for t in response.data['tags']], ['urgent', 'work'])

    def test_create_tag_requires_manage_tags(self):
        """Test ordinary users cannot create tags"""
        response = self.client.post(self.tags_url, {'name': 'personal'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertFalse(Tag.objects.filter(name='personal').exists())

    def test_admin_creates_tag(self):
        """Test an admin creating a tag"""
        self.authenticate(self.admin)

        response = self.client.post(self.tags_url, {'name': ' personal '}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['tag']['name'], 'personal')

    def test_create_duplicate_tag(self):
        """Test tag names are unique"""
        self.authenticate(self.admin)

        response = self.client.post(self.tags_url, {'name': 'work'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'Tag already exists')

    def test_create_blank_tag(self):
        """Test a tag needs a name"""
        self.authenticate(self.admin)

        response = self.client.post(self.tags_url, {'name': ''}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_delete_tag_detaches_files(self):
        """Test deleting a tag removes it from every file"""
        FileTag.objects.create(file=self.user_file, tag=self.work)
        self.authenticate(self.admin)

        response = self.client.delete(reverse('tag_delete', args=[self.work.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(FileTag.objects.exists())
        self.assertTrue(File.objects.filter(pk=self.user_file.pk).exists())

    def test_delete_tag_requires_manage_tags(self):
        """Test ordinary users cannot delete tags"""
        response = self.client.delete(reverse('tag_delete', args=[self.work.id]))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_delete_missing_tag(self):
        """Test deleting a tag that does not exist"""
        self.authenticate(self.admin)

        response = self.client.delete(reverse('tag_delete', args=[99999]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_set_file_tags(self):
        """Test replacing the tags of a file"""
        FileTag.objects.create(file=self.user_file, tag=self.work)

        response = self.client.put(self.file_tags_url, {'tag_ids': [self.urgent.id]}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(list(self.user_file.tags.values_list('name', flat=True)), ['urgent'])

        response = self.client.get(self.file_tags_url)
        self.assertEqual([t['name'] for t in response.data['tags']], ['urgent'])

    def test_clear_file_tags(self):
        """Test an empty list removes every tag"""
        FileTag.objects.create(file=self.user_file, tag=self.work)

        response = self.client.put(self.file_tags_url, {'tag_ids': []}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(self.user_file.tags.exists())

    def test_set_file_tags_unknown_tag(self):
        """Test unknown tag ids leave the file's tags unchanged"""
        FileTag.objects.create(file=self.user_file, tag=self.work)

        response = self.client.put(self.file_tags_url, {'tag_ids': [self.urgent.id, 99999]}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(list(self.user_file.tags.values_list('name', flat=True)), ['work'])

    def test_set_file_tags_requires_list(self):
        """Test tag_ids must be a list of ids"""
        response = self.client.put(self.file_tags_url, {'tag_ids': 'work'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Tag IDs array is required')

    def test_set_file_tags_of_other_users_file(self):
        """Test tagging a file without edit access"""
        other = User.objects.create_user(username='other', email='other@example.com', password='otherpass1')
        self.authenticate(other)

        response = self.client.put(self.file_tags_url, {'tag_ids': [self.work.id]}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
