from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken
from django.contrib.auth import get_user_model
from django.utils import timezone
import json
from .models import File, FileTag, Folder, Tag

User = get_user_model()


class FileListAPITests(APITestCase):
    """
    Test suite for file listing and attribute endpoints:
    - GET /api/files/
    - GET /api/files/search/
    - GET /api/files/<id>/
    - PUT /api/files/<id>/metadata/
    - PUT /api/files/<id>/move/
    """

    def setUp(self):
        """Set up test data"""
        self.file_list_url = reverse('file_list')
        self.search_url = reverse('file_search')

        self.user = User.objects.create_user(
            username='testuser',
            email='test@example.com',
            password='testpass123'
        )
        self.other_user = User.objects.create_user(
            username='otheruser',
            email='other@example.com',
            password='otherpass123'
        )

        refresh = RefreshToken.for_user(self.user)
        self.access_token = str(refresh.access_token)
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {self.access_token}')

        self.folder = Folder.objects.create(owner=self.user, name='Docs')
        self.report = self.create_file('report.pdf', 'application/pdf', metadata='{"project": "apollo"}')
        self.notes = self.create_file('notes.txt', 'text/plain', folder=self.folder)
        self.photo = self.create_file('photo.png', 'image/png')
        self.create_file('theirs.txt', 'text/plain', owner=self.other_user)

    def create_file(self, name, mime_type, owner=None, folder=None, metadata=None):
        return File.objects.create(
            owner=owner or self.user,
            folder=folder,
            filename=f'1700000000000-{name}',
            original_name=name,
            mime_type=mime_type,
            size=100,
            path=f'uploads/1700000000000-{name}',
            metadata=metadata,
        )

    def test_file_list_only_own_active_files(self):
        """Test the list holds the caller's active files only"""
        File.objects.filter(pk=self.photo.pk).update(deleted_at=timezone.now())

        response = self.client.get(self.file_list_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)
        names = {f['original_name'] for f in response.data['results']}
        self.assertEqual(names, {'report.pdf', 'notes.txt'})

    def test_file_list_by_folder(self):
        """Test folder_id narrows the list to one folder"""
        response = self.client.get(self.file_list_url, {'folder_id': self.folder.id})

        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['original_name'], 'notes.txt')

    def test_file_list_root_only(self):
        """Test folder_id=root lists files outside every folder"""
        response = self.client.get(self.file_list_url, {'folder_id': 'root'})

        names = {f['original_name'] for f in response.data['results']}
        self.assertEqual(names, {'report.pdf', 'photo.png'})

    def test_file_list_pagination(self):
        """Test page_size splits the list into pages"""
        response = self.client.get(self.file_list_url, {'page_size': 2})

        self.assertEqual(response.data['count'], 3)
        self.assertEqual(len(response.data['results']), 2)
        self.assertIsNotNone(response.data['next'])

        response = self.client.get(self.file_list_url, {'page_size': 2, 'page': 2})
        self.assertEqual(len(response.data['results']), 1)

    def test_file_list_unauthenticated(self):
        """Test listing without authentication"""
        self.client.credentials()

        response = self.client.get(self.file_list_url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertIn('error', response.data)

    def test_search_by_name(self):
        """Test query matches the original name case-insensitively"""
        response = self.client.get(self.search_url, {'query': 'REPORT'})

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([f['original_name'] for f in response.data['results']], ['report.pdf'])

    def test_search_by_metadata(self):
        """Test query also matches inside metadata"""
        response = self.client.get(self.search_url, {'query': 'apollo'})

        self.assertEqual([f['original_name'] for f in response.data['results']], ['report.pdf'])

    def test_search_by_type(self):
        """Test type matches a fragment of the MIME type"""
        response = self.client.get(self.search_url, {'type': 'image'})

        self.assertEqual([f['original_name'] for f in response.data['results']], ['photo.png'])

    def test_search_by_tags(self):
        """Test a file carrying several matching tags is listed once"""
        urgent = Tag.objects.create(name='urgent')
        work = Tag.objects.create(name='work')
        FileTag.objects.create(file=self.report, tag=urgent)
        FileTag.objects.create(file=self.report, tag=work)
        FileTag.objects.create(file=self.notes, tag=work)

        response = self.client.get(self.search_url, {'tag_ids': f'{urgent.id},{work.id}'})

        self.assertEqual(response.data['count'], 2)
        names = sorted(f['original_name'] for f in response.data['results'])
        self.assertEqual(names, ['notes.txt', 'report.pdf'])

    def test_search_filters_combine(self):
        """Test every supplied filter must match"""
        response = self.client.get(self.search_url, {'query': 'notes', 'folder_id': 'root'})

        self.assertEqual(response.data['count'], 0)

    def test_search_never_returns_other_users_files(self):
        """Test search is scoped to the caller"""
        response = self.client.get(self.search_url, {'query': 'theirs'})

        self.assertEqual(response.data['count'], 0)

    def test_file_detail(self):
        """Test reading a single file"""
        response = self.client.get(reverse('file_detail', args=[self.report.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['file']['original_name'], 'report.pdf')
        self.assertEqual(response.data['file']['metadata'], {'project': 'apollo'})

    def test_file_detail_not_found(self):
        """Test reading a file that does not exist"""
        response = self.client.get(reverse('file_detail', args=[99999]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data, {'error': 'File not found'})

    def test_update_metadata(self):
        """Test replacing metadata with a JSON object"""
        response = self.client.put(
            reverse('file_metadata', args=[self.notes.id]),
            {'metadata': {'author': 'me', 'pages': 3}},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['metadata'], {'author': 'me', 'pages': 3})
        self.notes.refresh_from_db()
        self.assertEqual(json.loads(self.notes.metadata), {'author': 'me', 'pages': 3})

    def test_search_finds_non_ascii_metadata(self):
        """Test metadata is stored as readable text so search can match it"""
        self.client.put(
            reverse('file_metadata', args=[self.photo.id]),
            {'metadata': {'city': 'Zürich'}},
            format='json'
        )
        self.photo.refresh_from_db()
        self.assertIn('Zürich', self.photo.metadata)

        response = self.client.get(self.search_url, {'query': 'Zürich'})

        self.assertEqual([f['original_name'] for f in response.data['results']], ['photo.png'])

    def test_update_metadata_invalid_json_string(self):
        """Test a metadata string must be JSON"""
        response = self.client.put(
            reverse('file_metadata', args=[self.notes.id]),
            {'metadata': '{broken'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': 'Metadata must be valid JSON'})

    def test_update_metadata_missing(self):
        """Test metadata is required"""
        response = self.client.put(reverse('file_metadata', args=[self.notes.id]), {}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data, {'error': 'Metadata is required'})

    def test_move_file_to_folder_and_back(self):
        """Test moving a file into a folder and back to the root"""
        move_url = reverse('file_move', args=[self.report.id])

        response = self.client.put(move_url, {'folder_id': self.folder.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['file']['folder_id'], self.folder.id)

        response = self.client.put(move_url, {'folder_id': None}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.report.refresh_from_db()
        self.assertIsNone(self.report.folder_id)

    def test_move_file_to_folder_zero(self):
        """Test folder id 0 is an unknown folder, not the root"""
        self.report.folder = self.folder
        self.report.save()

        response = self.client.put(reverse('file_move', args=[self.report.id]), {'folder_id': 0}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.report.refresh_from_db()
        self.assertEqual(self.report.folder_id, self.folder.id)

    def test_move_file_to_foreign_folder(self):
        """Test files cannot be moved into another user's folder"""
        foreign = Folder.objects.create(owner=self.other_user, name='Theirs')

        response = self.client.put(reverse('file_move', args=[self.report.id]), {'folder_id': foreign.id}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
