from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken
from django.contrib.auth import get_user_model
from django.utils import timezone
from .models import File, Folder

User = get_user_model()


class FolderAPITests(APITestCase):
    """
    Test suite for folder endpoints:
    - GET/POST /api/folders/
    - GET /api/folders/root/
    - GET/PUT/DELETE /api/folders/<id>/
    - PUT /api/folders/<id>/move/
    """

    def setUp(self):
        """Set up test data"""
        self.list_url = reverse('folder_list')
        self.root_url = reverse('folder_root')

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

        self.docs = Folder.objects.create(owner=self.user, name='Docs')
        self.reports = Folder.objects.create(owner=self.user, name='Reports', parent=self.docs)
        self.archive = Folder.objects.create(owner=self.user, name='2023', parent=self.reports)

    def create_file(self, name, folder=None, owner=None):
        return File.objects.create(
            owner=owner or self.user,
            folder=folder,
            filename=f'1700000000000-1{name[-4:]}',
            original_name=name,
            mime_type='text/plain',
            size=4,
            path=f'uploads/1700000000000-1{name[-4:]}',
        )

    def test_create_folder(self):
        """Test creating a folder at the root"""
        response = self.client.post(self.list_url, {'name': 'Photos'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['folder']['name'], 'Photos')
        self.assertIsNone(response.data['folder']['parent_id'])

    def test_create_nested_folder(self):
        """Test creating a folder under a parent"""
        response = self.client.post(self.list_url, {'name': 'Drafts', 'parent_id': self.docs.id}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['folder']['parent_id'], self.docs.id)

    def test_create_folder_duplicate_sibling(self):
        """Test sibling names are unique within a parent"""
        response = self.client.post(self.list_url, {'name': 'Reports', 'parent_id': self.docs.id}, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['error'], 'A folder with this name already exists in this location')

    def test_same_name_allowed_under_different_parent(self):
        """Test the uniqueness check is scoped to one parent"""
        response = self.client.post(self.list_url, {'name': 'Reports'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_create_folder_blank_name(self):
        """Test a blank folder name is rejected"""
        response = self.client.post(self.list_url, {'name': '   '}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Folder name is required')

    def test_create_folder_in_foreign_parent(self):
        """Test another user's folder cannot be used as a parent"""
        foreign = Folder.objects.create(owner=self.other_user, name='Theirs')

        response = self.client.post(self.list_url, {'name': 'Mine', 'parent_id': foreign.id}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_guest_cannot_create_folder(self):
        """Test the guest role lacks create_folders"""
        guest = User.objects.create_user(
            username='guest',
            email='guest@example.com',
            password='guestpass123',
            role=User.ROLE_GUEST
        )
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {RefreshToken.for_user(guest).access_token}')

        response = self.client.post(self.list_url, {'name': 'Nope'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_list_folders_only_own(self):
        """Test the folder list holds only the caller's folders"""
        Folder.objects.create(owner=self.other_user, name='Hidden')

        response = self.client.get(self.list_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        names = [folder['name'] for folder in response.data['folders']]
        self.assertEqual(sorted(names), ['2023', 'Docs', 'Reports'])
        self.assertEqual(names[0], 'Docs')

    def test_root_contents(self):
        """Test the root lists top-level folders and files"""
        self.create_file('readme.txt')
        self.create_file('nested.txt', folder=self.docs)

        response = self.client.get(self.root_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['folder'])
        self.assertEqual(response.data['breadcrumbs'], [])
        self.assertEqual([f['name'] for f in response.data['subfolders']], ['Docs'])
        self.assertEqual([f['original_name'] for f in response.data['files']], ['readme.txt'])

    def test_folder_contents_with_breadcrumbs(self):
        """Test breadcrumbs run from the root down to the folder"""
        self.create_file('q1.txt', folder=self.archive)

        response = self.client.get(reverse('folder_detail', args=[self.archive.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['breadcrumbs'], [
            {'id': self.docs.id, 'name': 'Docs'},
            {'id': self.reports.id, 'name': 'Reports'},
            {'id': self.archive.id, 'name': '2023'},
        ])
        self.assertEqual([f['original_name'] for f in response.data['files']], ['q1.txt'])

    def test_folder_contents_exclude_trashed_files(self):
        """Test trashed files do not show up in folder contents"""
        trashed = self.create_file('gone.txt', folder=self.docs)
        File.objects.filter(pk=trashed.pk).update(deleted_at=timezone.now())

        response = self.client.get(reverse('folder_detail', args=[self.docs.id]))

        self.assertEqual(response.data['files'], [])

    def test_foreign_folder_is_not_found(self):
        """Test another user's folder reads as missing"""
        foreign = Folder.objects.create(owner=self.other_user, name='Theirs')

        response = self.client.get(reverse('folder_detail', args=[foreign.id]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Folder not found')

    def test_rename_folder(self):
        """Test renaming a folder"""
        response = self.client.put(reverse('folder_detail', args=[self.reports.id]), {'name': 'Finance'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.reports.refresh_from_db()
        self.assertEqual(self.reports.name, 'Finance')

    def test_rename_folder_to_sibling_name(self):
        """Test a rename cannot collide with a sibling"""
        Folder.objects.create(owner=self.user, name='Invoices', parent=self.docs)

        response = self.client.put(reverse('folder_detail', args=[self.reports.id]), {'name': 'Invoices'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_move_folder(self):
        """Test moving a folder to the root"""
        response = self.client.put(reverse('folder_move', args=[self.archive.id]), {'parent_id': None}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.archive.refresh_from_db()
        self.assertIsNone(self.archive.parent_id)

    def test_move_folder_into_descendant(self):
        """Test a folder cannot be moved below itself"""
        response = self.client.put(reverse('folder_move', args=[self.docs.id]), {'parent_id': self.archive.id}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Cannot move folder into its own descendant')
        self.docs.refresh_from_db()
        self.assertIsNone(self.docs.parent_id)

    def test_move_folder_into_itself(self):
        """Test a folder cannot become its own parent"""
        response = self.client.put(reverse('folder_move', args=[self.docs.id]), {'parent_id': self.docs.id}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_move_folder_name_clash(self):
        """Test moving next to a same-named folder is a conflict"""
        Folder.objects.create(owner=self.user, name='2023')

        response = self.client.put(reverse('folder_move', args=[self.archive.id]), {'parent_id': 'root'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_delete_folder_cascades_and_detaches_files(self):
        """Test deleting a folder removes its subtree but keeps the files"""
        inside = self.create_file('deep.txt', folder=self.archive)

        response = self.client.delete(reverse('folder_detail', args=[self.docs.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Folder.objects.filter(owner=self.user).exists())
        inside.refresh_from_db()
        self.assertIsNone(inside.folder_id)

    def test_delete_foreign_folder(self):
        """Test another user's folder cannot be deleted"""
        foreign = Folder.objects.create(owner=self.other_user, name='Theirs')

        response = self.client.delete(reverse('folder_detail', args=[foreign.id]))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertTrue(Folder.objects.filter(pk=foreign.pk).exists())
