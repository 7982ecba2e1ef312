from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken
from django.contrib.auth import get_user_model

User = get_user_model()


class UserProfileAPITests(APITestCase):
    """
    Test suite for user endpoints:
    - GET/PUT /api/users/profile/
    - POST /api/users/change-password/
    """

    def setUp(self):
        """Set up test data"""
        self.profile_url = reverse('user_profile')
        self.change_password_url = reverse('change_password')

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

    def test_get_profile(self):
        """Test retrieving the caller's profile"""
        response = self.client.get(self.profile_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'testuser')
        self.assertEqual(response.data['email'], 'test@example.com')
        self.assertEqual(response.data['role'], 'user')
        self.assertIn('created_at', response.data)
        self.assertNotIn('password', response.data)

    def test_get_profile_unauthenticated(self):
        """Test the profile requires authentication"""
        self.client.credentials()

        response = self.client.get(self.profile_url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_update_profile(self):
        """Test changing username and email"""
        response = self.client.put(
            self.profile_url,
            {'username': 'renamed', 'email': 'renamed@example.com'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['username'], 'renamed')
        self.user.refresh_from_db()
        self.assertEqual(self.user.email, 'renamed@example.com')

    def test_update_profile_requires_username_or_email(self):
        """Test an update naming neither username nor email is rejected"""
        response = self.client.put(self.profile_url, {'first_name': 'Only'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_update_profile_username_taken(self):
        """Test another user's username cannot be claimed"""
        response = self.client.put(self.profile_url, {'username': 'otheruser'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('username', response.data)

    def test_update_profile_email_taken(self):
        """Test another user's email cannot be claimed"""
        response = self.client.put(self.profile_url, {'email': 'other@example.com'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_update_profile_cannot_change_role(self):
        """Test the role field is read-only on the profile"""
        response = self.client.put(
            self.profile_url,
            {'username': 'testuser', 'role': 'admin'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertEqual(self.user.role, 'user')

    def test_change_password(self):
        """Test changing the password with the correct current password"""
        response = self.client.post(
            self.change_password_url,
            {'current_password': 'testpass123', 'new_password': 'newpass456'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('newpass456'))

    def test_change_password_wrong_current(self):
        """Test the current password must match"""
        response = self.client.post(
            self.change_password_url,
            {'current_password': 'wrongpass1', 'new_password': 'newpass456'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('current_password', response.data)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('testpass123'))

    def test_change_password_too_short(self):
        """Test new passwords under six characters are rejected"""
        response = self.client.post(
            self.change_password_url,
            {'current_password': 'testpass123', 'new_password': 'abc'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('new_password', response.data)
