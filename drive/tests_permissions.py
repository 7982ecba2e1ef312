from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken
from django.contrib.auth import get_user_model
from .access import has_file_permission, has_role_permission
from .models import File, FilePermission, Permission, RolePermission

User = get_user_model()


def bearer(user):
    return f'Bearer {RefreshToken.for_user(user).access_token}'


class FilePermissionAPITests(APITestCase):
    """
    Test suite for per-file grants:
    - GET/POST /api/files/<id>/permissions/
    - DELETE /api/files/<id>/permissions/<user_id>/<permission>/
    """

    def setUp(self):
        """Set up test data"""
        self.alice = User.objects.create_user(username='alice', email='alice@example.com', password='alicepass1')
        self.bob = User.objects.create_user(username='bob', email='bob@example.com', password='bobpass123')
        self.admin = User.objects.create_user(
            username='admin',
            email='admin@example.com',
            password='adminpass1',
            role=User.ROLE_ADMIN
        )

        self.user_file = File.objects.create(
            owner=self.alice,
            filename='1700000000000-1.txt',
            original_name='plan.txt',
            mime_type='text/plain',
            size=4,
            path='uploads/1700000000000-1.txt',
        )
        self.detail_url = reverse('file_detail', args=[self.user_file.id])
        self.permissions_url = reverse('file_permissions', args=[self.user_file.id])

        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.alice))

    def test_other_user_is_forbidden(self):
        """Test a private file is forbidden to a user without grants"""
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.bob))

        response = self.client.get(self.detail_url)

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data, {'error': 'Insufficient permissions for this file'})

    def test_grant_view(self):
        """Test a view grant opens reads but not writes"""
        response = self.client.post(
            self.permissions_url,
            {'user_id': self.bob.id, 'permission': 'view'},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['permission']['username'], 'bob')
        self.assertEqual(response.data['permission']['granted_by'], self.alice.id)

        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.bob))
        response = self.client.get(self.detail_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.delete(self.detail_url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_grant_is_idempotent(self):
        """Test granting the same permission twice keeps one row"""
        data = {'user_id': self.bob.id, 'permission': 'edit'}
        self.client.post(self.permissions_url, data, format='json')
        self.client.post(self.permissions_url, data, format='json')

        self.assertEqual(FilePermission.objects.filter(file=self.user_file, user=self.bob).count(), 1)

    def test_grant_invalid_permission(self):
        """Test only view, edit, delete and share can be granted"""
        response = self.client.post(
            self.permissions_url,
            {'user_id': self.bob.id, 'permission': 'own'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('permission', response.data)

    def test_grant_to_unknown_user(self):
        """Test grants need an existing grantee"""
        response = self.client.post(
            self.permissions_url,
            {'user_id': 99999, 'permission': 'view'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('user_id', response.data)

    def test_grant_without_share(self):
        """Test a user who may only view cannot pass access on"""
        FilePermission.objects.create(file=self.user_file, user=self.bob, permission='view', granted_by=self.alice)
        carol = User.objects.create_user(username='carol', email='carol@example.com', password='carolpass1')
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.bob))

        response = self.client.post(
            self.permissions_url,
            {'user_id': carol.id, 'permission': 'view'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'You do not have permission to share this file')

    def test_share_grant_allows_regranting(self):
        """Test a share grant lets the grantee grant others"""
        FilePermission.objects.create(file=self.user_file, user=self.bob, permission='share', granted_by=self.alice)
        carol = User.objects.create_user(username='carol', email='carol@example.com', password='carolpass1')
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.bob))

        response = self.client.post(
            self.permissions_url,
            {'user_id': carol.id, 'permission': 'view'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(has_file_permission(carol, self.user_file, 'view'))

    def test_list_grants_owner_only(self):
        """Test grants are listed to the owner but not to grantees"""
        FilePermission.objects.create(file=self.user_file, user=self.bob, permission='view', granted_by=self.alice)

        response = self.client.get(self.permissions_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.bob))
        response = self.client.get(self.permissions_url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_revoke(self):
        """Test revoking a grant closes access again"""
        FilePermission.objects.create(file=self.user_file, user=self.bob, permission='view', granted_by=self.alice)

        response = self.client.delete(
            reverse('file_permission_revoke', args=[self.user_file.id, self.bob.id, 'view'])
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.bob))
        response = self.client.get(self.detail_url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_admin_can_access_any_file(self):
        """Test the admin role reaches every file"""
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.admin))

        response = self.client.get(self.detail_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.get(self.permissions_url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_edit_grant_allows_metadata_update(self):
        """Test an edit grant allows attribute changes"""
        FilePermission.objects.create(file=self.user_file, user=self.bob, permission='edit', granted_by=self.alice)
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.bob))

        response = self.client.put(
            reverse('file_metadata', args=[self.user_file.id]),
            {'metadata': {'reviewed': True}},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_grants_do_not_reach_the_trash(self):
        """Test only the owner can trash or restore a file"""
        FilePermission.objects.create(file=self.user_file, user=self.bob, permission='delete', granted_by=self.alice)
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.bob))

        response = self.client.delete(self.detail_url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.alice))
        self.client.delete(self.detail_url)
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.bob))

        response = self.client.post(reverse('file_restore', args=[self.user_file.id]))
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_predicate_order(self):
        """Test owner and admin win before grants are consulted"""
        self.assertTrue(has_file_permission(self.alice, self.user_file, 'share'))
        self.assertTrue(has_file_permission(self.admin, self.user_file, 'delete'))
        self.assertFalse(has_file_permission(self.bob, self.user_file, 'view'))

        self.user_file.is_public = True
        self.assertTrue(has_file_permission(self.bob, self.user_file, 'view'))
        self.assertFalse(has_file_permission(self.bob, self.user_file, 'edit'))


class RolePermissionAPITests(APITestCase):
    """
    Test suite for role administration:
    - GET /api/permissions/
    - GET/POST /api/roles/<role>/permissions/
    - DELETE /api/roles/<role>/permissions/<permission_id>/
    - PUT /api/users/<id>/role/
    - GET /api/admin/users/
    """

    def setUp(self):
        """Set up test data"""
        self.admin = User.objects.create_user(
            username='admin',
            email='admin@example.com',
            password='adminpass1',
            role=User.ROLE_ADMIN
        )
        self.user = User.objects.create_user(username='testuser', email='test@example.com', password='testpass123')
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.admin))

    def test_seeded_permissions(self):
        """Test the catalogue is seeded with the role defaults"""
        response = self.client.get(reverse('permission_list'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        names = {p['name'] for p in response.data}
        self.assertIn('manage_users', names)
        self.assertIn('share_files', names)
        self.assertTrue(has_role_permission(self.user, 'create_folders'))
        self.assertFalse(has_role_permission(self.user, 'manage_tags'))

    def test_permission_list_admin_only(self):
        """Test ordinary users cannot read the catalogue"""
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.user))

        response = self.client.get(reverse('permission_list'))

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_role_permissions(self):
        """Test listing the capabilities of a role"""
        response = self.client.get(reverse('role_permissions', args=['user']))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual({p['name'] for p in response.data}, {'create_folders', 'share_files'})

    def test_unknown_role(self):
        """Test a role outside admin, user and guest"""
        response = self.client.get(reverse('role_permissions', args=['wizard']))

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_assign_and_remove_role_permission(self):
        """Test granting a capability to a role and taking it back"""
        manage_tags = Permission.objects.get(name='manage_tags')
        url = reverse('role_permissions', args=['user'])

        response = self.client.post(url, {'permission_id': manage_tags.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(has_role_permission(self.user, 'manage_tags'))

        response = self.client.delete(reverse('role_permission_delete', args=['user', manage_tags.id]))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(RolePermission.objects.filter(role='user', permission=manage_tags).exists())

    def test_assign_role_permission_requires_manage_roles(self):
        """Test ordinary users cannot change role capabilities"""
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.user))
        manage_tags = Permission.objects.get(name='manage_tags')

        response = self.client.post(
            reverse('role_permissions', args=['user']),
            {'permission_id': manage_tags.id},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_change_user_role(self):
        """Test an admin demoting a user to guest"""
        response = self.client.put(reverse('user_role', args=[self.user.id]), {'role': 'guest'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.role, 'guest')

    def test_change_user_role_invalid(self):
        """Test roles outside the fixed set are rejected"""
        response = self.client.put(reverse('user_role', args=[self.user.id]), {'role': 'superuser'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('role', response.data)

    def test_change_role_of_unknown_user(self):
        """Test changing the role of a user that does not exist"""
        response = self.client.put(reverse('user_role', args=[99999]), {'role': 'guest'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_user_cannot_promote_self(self):
        """Test ordinary users cannot change roles"""
        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.user))

        response = self.client.put(reverse('user_role', args=[self.user.id]), {'role': 'admin'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.user.refresh_from_db()
        self.assertEqual(self.user.role, 'user')

    def test_admin_user_list(self):
        """Test the admin user listing"""
        response = self.client.get(reverse('admin_user_list'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual({u['username'] for u in response.data}, {'admin', 'testuser'})

        self.client.credentials(HTTP_AUTHORIZATION=bearer(self.user))
        response = self.client.get(reverse('admin_user_list'))
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
