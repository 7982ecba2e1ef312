from django.conf import settings
from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    ROLE_ADMIN = 'admin'
    ROLE_USER = 'user'
    ROLE_GUEST = 'guest'
    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Admin'),
        (ROLE_USER, 'User'),
        (ROLE_GUEST, 'Guest'),
    ]

    email = models.EmailField(unique=True)
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_USER)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def is_admin_role(self):
        return self.role == self.ROLE_ADMIN

    def __str__(self):
        return self.username


class Folder(models.Model):
    """
    A user's folder; folders form one tree per user through ``parent``.
    """
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='folders')
    name = models.CharField(max_length=255)
    parent = models.ForeignKey('self', on_delete=models.CASCADE, null=True, blank=True, related_name='children')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'folders'
        indexes = [
            models.Index(fields=['owner', 'parent'], name='folders_owner_parent_idx'),
        ]

    def __str__(self):
        return self.name


class Tag(models.Model):
    name = models.CharField(max_length=100, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'tags'
        ordering = ['name']

    def __str__(self):
        return self.name


class File(models.Model):
    """
    A stored file. ``filename``/``path`` address the blob on disk while
    ``original_name`` is what the user sees.
    """
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='files')
    folder = models.ForeignKey(Folder, on_delete=models.SET_NULL, null=True, blank=True, related_name='files')
    filename = models.CharField(max_length=255)
    original_name = models.CharField(max_length=255, db_index=True)
    mime_type = models.CharField(max_length=255, blank=True, null=True, db_index=True)
    size = models.BigIntegerField(default=0)
    path = models.TextField()
    metadata = models.TextField(blank=True, null=True)
    is_public = models.BooleanField(default=False)
    public_id = models.CharField(max_length=64, unique=True, null=True, blank=True)
    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)
    tags = models.ManyToManyField(Tag, through='FileTag', related_name='files', blank=True)

    class Meta:
        db_table = 'files'
        indexes = [
            models.Index(fields=['owner', 'deleted_at'], name='files_owner_deleted_idx'),
            models.Index(fields=['owner', 'folder'], name='files_owner_folder_idx'),
        ]

    def __str__(self):
        return f"{self.original_name} ({self.size} bytes)"


class FileTag(models.Model):
    file = models.ForeignKey(File, on_delete=models.CASCADE)
    tag = models.ForeignKey(Tag, on_delete=models.CASCADE)

    class Meta:
        db_table = 'file_tags'
        constraints = [
            models.UniqueConstraint(fields=['file', 'tag'], name='unique_file_tag'),
        ]


class Comment(models.Model):
    file = models.ForeignKey(File, on_delete=models.CASCADE, related_name='comments')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='comments')
    content = models.TextField()
    parent = models.ForeignKey('self', on_delete=models.CASCADE, null=True, blank=True, related_name='replies')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'comments'

    def __str__(self):
        return f"Comment {self.pk} on file {self.file_id}"


class FileVersion(models.Model):
    """
    Immutable snapshot of a file's state. Numbers are per file, starting at 1.
    """
    file = models.ForeignKey(File, on_delete=models.CASCADE, related_name='versions')
    version_number = models.PositiveIntegerField()
    filename = models.CharField(max_length=255)
    original_name = models.CharField(max_length=255)
    mime_type = models.CharField(max_length=255, blank=True, null=True)
    size = models.BigIntegerField(default=0)
    path = models.TextField()
    metadata = models.TextField(blank=True, null=True)
    change_description = models.TextField(blank=True, null=True)
    created_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='file_versions')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'file_versions'
        ordering = ['-version_number']
        constraints = [
            models.UniqueConstraint(fields=['file', 'version_number'], name='unique_file_version_number'),
        ]

    def __str__(self):
        return f"File {self.file_id} v{self.version_number}"


class Permission(models.Model):
    name = models.CharField(max_length=100, unique=True)
    description = models.TextField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'permissions'
        ordering = ['name']

    def __str__(self):
        return self.name


class RolePermission(models.Model):
    role = models.CharField(max_length=16, choices=User.ROLE_CHOICES)
    permission = models.ForeignKey(Permission, on_delete=models.CASCADE, related_name='role_grants')

    class Meta:
        db_table = 'role_permissions'
        constraints = [
            models.UniqueConstraint(fields=['role', 'permission'], name='unique_role_permission'),
        ]

    def __str__(self):
        return f"{self.role}: {self.permission.name}"


class FilePermission(models.Model):
    VIEW = 'view'
    EDIT = 'edit'
    DELETE = 'delete'
    SHARE = 'share'
    PERMISSION_CHOICES = [
        (VIEW, 'View'),
        (EDIT, 'Edit'),
        (DELETE, 'Delete'),
        (SHARE, 'Share'),
    ]

    file = models.ForeignKey(File, on_delete=models.CASCADE, related_name='grants')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='file_grants')
    permission = models.CharField(max_length=16, choices=PERMISSION_CHOICES)
    granted_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='granted_file_permissions')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'file_permissions'
        constraints = [
            models.UniqueConstraint(fields=['file', 'user', 'permission'], name='unique_file_user_permission'),
        ]

    def __str__(self):
        return f"{self.user_id} may {self.permission} file {self.file_id}"
