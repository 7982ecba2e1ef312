from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken
from django.contrib.auth import get_user_model

User = get_user_model()


class AuthenticationAPITests(APITestCase):
    """
    Test suite for authentication endpoints:
    - POST /api/auth/register/
    - POST /api/auth/login/
    - POST /api/auth/logout/
    - POST /api/auth/token/refresh/
    - GET /api/auth/me/
    """

    def setUp(self):
        """Set up test data"""
        self.register_url = reverse('register')
        self.login_url = reverse('login')
        self.logout_url = reverse('logout')
        self.refresh_url = reverse('token_refresh')
        self.me_url = reverse('me')

        self.valid_user_data = {
            'username': 'testuser',
            'email': 'test@example.com',
            'password': 'securepassword123',
            'password_confirm': 'securepassword123',
            'first_name': 'Test',
            'last_name': 'User'
        }

        self.login_data = {
            'username': 'testuser',
            'password': 'securepassword123'
        }

    def test_health_is_public(self):
        """Test the health check needs no credentials"""
        response = self.client.get(reverse('health'))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'ok')
        self.assertIn('timestamp', response.data)

    def test_user_registration_success(self):
        """Test successful user registration"""
        response = self.client.post(self.register_url, self.valid_user_data, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertIn('user', response.data)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

        user_data = response.data['user']
        self.assertEqual(user_data['username'], 'testuser')
        self.assertEqual(user_data['email'], 'test@example.com')
        self.assertEqual(user_data['role'], 'user')
        self.assertNotIn('password', user_data)

        user = User.objects.get(username='testuser')
        self.assertTrue(user.check_password('securepassword123'))
        self.assertNotEqual(user.password, 'securepassword123')

    def test_user_registration_password_mismatch(self):
        """Test registration with password mismatch"""
        invalid_data = self.valid_user_data.copy()
        invalid_data['password_confirm'] = 'differentpassword'

        response = self.client.post(self.register_url, invalid_data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('non_field_errors', response.data)

    def test_user_registration_weak_password(self):
        """Test registration with a password shorter than six characters"""
        invalid_data = self.valid_user_data.copy()
        invalid_data['password'] = 'ab1'
        invalid_data['password_confirm'] = 'ab1'

        response = self.client.post(self.register_url, invalid_data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_user_registration_short_username(self):
        """Test registration with a two character username"""
        invalid_data = self.valid_user_data.copy()
        invalid_data['username'] = 'ab'

        response = self.client.post(self.register_url, invalid_data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('username', response.data)

    def test_user_registration_duplicate_username(self):
        """Test registration with duplicate username"""
        self.client.post(self.register_url, self.valid_user_data, format='json')

        duplicate_data = self.valid_user_data.copy()
        duplicate_data['email'] = 'different@example.com'

        response = self.client.post(self.register_url, duplicate_data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('username', response.data)

    def test_user_registration_duplicate_email(self):
        """Test registration with duplicate email"""
        self.client.post(self.register_url, self.valid_user_data, format='json')

        duplicate_data = self.valid_user_data.copy()
        duplicate_data['username'] = 'differentuser'

        response = self.client.post(self.register_url, duplicate_data, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('email', response.data)

    def test_user_login_success(self):
        """Test successful login returns both tokens"""
        self.client.post(self.register_url, self.valid_user_data, format='json')

        response = self.client.post(self.login_url, self.login_data, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['username'], 'testuser')

    def test_user_login_with_email(self):
        """Test the email address works as a login identifier"""
        self.client.post(self.register_url, self.valid_user_data, format='json')

        response = self.client.post(
            self.login_url,
            {'username': 'test@example.com', 'password': 'securepassword123'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['username'], 'testuser')

    def test_user_login_invalid_credentials(self):
        """Test login with a wrong password"""
        self.client.post(self.register_url, self.valid_user_data, format='json')

        response = self.client.post(
            self.login_url,
            {'username': 'testuser', 'password': 'wrongpassword1'},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('non_field_errors', response.data)

    def test_token_refresh_success(self):
        """Test a refresh token yields a new access token"""
        register_response = self.client.post(self.register_url, self.valid_user_data, format='json')
        refresh_token = register_response.data['refresh']

        response = self.client.post(self.refresh_url, {'refresh': refresh_token}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_logout_blacklists_refresh_token(self):
        """Test a refresh token cannot be used after logout"""
        register_response = self.client.post(self.register_url, self.valid_user_data, format='json')
        access_token = register_response.data['access']
        refresh_token = register_response.data['refresh']

        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {access_token}')
        response = self.client.post(self.logout_url, {'refresh': refresh_token}, format='json')
        self.assertEqual(response.status_code, status.HTTP_205_RESET_CONTENT)

        self.client.credentials()
        response = self.client.post(self.refresh_url, {'refresh': refresh_token}, format='json')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_logout_requires_authentication(self):
        """Test logout without an access token"""
        response = self.client.post(self.logout_url, {'refresh': 'whatever'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_logout_invalid_refresh_token(self):
        """Test logout with a malformed refresh token"""
        user = User.objects.create_user(username='alice', email='alice@example.com', password='alicepass1')
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {RefreshToken.for_user(user).access_token}')

        response = self.client.post(self.logout_url, {'refresh': 'not-a-token'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('refresh', response.data)

    def test_logout_with_another_users_token(self):
        """Test a user cannot log someone else out"""
        alice = User.objects.create_user(username='alice', email='alice@example.com', password='alicepass1')
        bob = User.objects.create_user(username='bob', email='bob@example.com', password='bobpass123')
        bob_refresh = str(RefreshToken.for_user(bob))
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {RefreshToken.for_user(alice).access_token}')

        response = self.client.post(self.logout_url, {'refresh': bob_refresh}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.client.credentials()
        response = self.client.post(self.refresh_url, {'refresh': bob_refresh}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_me_returns_current_user(self):
        """Test /me returns the caller"""
        user = User.objects.create_user(username='alice', email='alice@example.com', password='alicepass1')
        access_token = str(RefreshToken.for_user(user).access_token)
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {access_token}')

        response = self.client.get(self.me_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['username'], 'alice')
        self.assertEqual(response.data['user']['role'], 'user')

    def test_invalid_access_token(self):
        """Test a malformed bearer token is rejected"""
        self.client.credentials(HTTP_AUTHORIZATION='Bearer not-a-token')

        response = self.client.get(self.me_url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
