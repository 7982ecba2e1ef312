from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken
from django.contrib.auth import get_user_model
from .models import Comment, File, FilePermission
from .views_comments import build_comment_tree

User = get_user_model()


class CommentAPITests(APITestCase):
    """
    Test suite for comment endpoints:
    - GET/POST /api/files/<id>/comments/
    - PUT/DELETE /api/comments/<id>/
    """

    def setUp(self):
        """Set up test data"""
        self.owner = User.objects.create_user(username='owner', email='owner@example.com', password='ownerpass1')
        self.reader = User.objects.create_user(username='reader', email='reader@example.com', password='readerpass1')
        self.stranger = User.objects.create_user(username='stranger', email='stranger@example.com', password='strangerpass1')

        self.user_file = File.objects.create(
            owner=self.owner,
            filename='1700000000000-1.txt',
            original_name='design.txt',
            mime_type='text/plain',
            size=4,
            path='uploads/1700000000000-1.txt',
        )
        FilePermission.objects.create(file=self.user_file, user=self.reader, permission='view', granted_by=self.owner)
        self.comments_url = reverse('comment_list', args=[self.user_file.id])

        self.authenticate(self.owner)

    def authenticate(self, user):
        refresh = RefreshToken.for_user(user)
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')

    def test_add_comment(self):
        """Test posting a top-level comment"""
        response = self.client.post(self.comments_url, {'content': '  Looks good  '}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['content'], 'Looks good')
        self.assertEqual(response.data['username'], 'owner')
        self.assertIsNone(response.data['parent_id'])

    def test_add_comment_blank(self):
        """Test empty comments are rejected"""
        response = self.client.post(self.comments_url, {'content': '   '}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Comment content is required')

    def test_reader_can_comment(self):
        """Test a view grant is enough to comment"""
        self.authenticate(self.reader)

        response = self.client.post(self.comments_url, {'content': 'Question on page 2'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_stranger_cannot_comment(self):
        """Test users without access cannot read or write comments"""
        self.authenticate(self.stranger)

        response = self.client.post(self.comments_url, {'content': 'Hi'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.get(self.comments_url)
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_comment_tree(self):
        """Test replies nest under their parent"""
        parent = Comment.objects.create(file=self.user_file, user=self.owner, content='Parent')
        response = self.client.post(
            self.comments_url,
            {'content': 'Reply', 'parent_id': parent.id},
            format='json'
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.get(self.comments_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['content'], 'Parent')
        self.assertEqual([r['content'] for r in response.data[0]['replies']], ['Reply'])

    def test_reply_to_comment_on_other_file(self):
        """Test a reply's parent must belong to the same file"""
        other_file = File.objects.create(
            owner=self.owner, filename='b.txt', original_name='b.txt', size=1, path='uploads/b.txt',
        )
        foreign_parent = Comment.objects.create(file=other_file, user=self.owner, content='Elsewhere')

        response = self.client.post(
            self.comments_url,
            {'content': 'Reply', 'parent_id': foreign_parent.id},
            format='json'
        )

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['error'], 'Parent comment not found or belongs to different file')

    def test_reply_to_parent_zero(self):
        """Test parent id 0 is rejected instead of posting a top-level comment"""
        response = self.client.post(self.comments_url, {'content': 'Reply', 'parent_id': 0}, format='json')

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Comment.objects.exists())

    def test_edit_own_comment(self):
        """Test authors can edit their comments"""
        comment = Comment.objects.create(file=self.user_file, user=self.reader, content='Typo')
        self.authenticate(self.reader)

        response = self.client.put(reverse('comment_detail', args=[comment.id]), {'content': 'Fixed'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        comment.refresh_from_db()
        self.assertEqual(comment.content, 'Fixed')

    def test_cannot_edit_others_comment(self):
        """Test the file owner cannot rewrite someone else's comment"""
        comment = Comment.objects.create(file=self.user_file, user=self.reader, content='Mine')

        response = self.client.put(reverse('comment_detail', args=[comment.id]), {'content': 'Changed'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['error'], 'You can only edit your own comments')

    def test_delete_comment_removes_replies(self):
        """Test deleting a comment also deletes its replies"""
        parent = Comment.objects.create(file=self.user_file, user=self.owner, content='Parent')
        Comment.objects.create(file=self.user_file, user=self.reader, content='Reply', parent=parent)

        response = self.client.delete(reverse('comment_detail', args=[parent.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(Comment.objects.exists())

    def test_admin_can_moderate(self):
        """Test an admin may delete anyone's comment"""
        admin = User.objects.create_user(
            username='admin', email='admin@example.com', password='adminpass1', role=User.ROLE_ADMIN
        )
        comment = Comment.objects.create(file=self.user_file, user=self.reader, content='Spam')
        self.authenticate(admin)

        response = self.client.delete(reverse('comment_detail', args=[comment.id]))

        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_comment_not_found(self):
        """Test editing a comment that does not exist"""
        response = self.client.put(reverse('comment_detail', args=[99999]), {'content': 'x'}, format='json')

        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_build_comment_tree_drops_orphans(self):
        """Test replies without a listed parent are left out"""
        parent = Comment.objects.create(file=self.user_file, user=self.owner, content='Parent')
        reply = Comment.objects.create(file=self.user_file, user=self.owner, content='Reply', parent=parent)

        tree = build_comment_tree([reply])

        self.assertEqual(tree, [])
