"""
Authorization for files and role capabilities.

File access is decided by one ordered predicate; the first matching rule
wins:

1. the owner may do anything with the file
2. an ``admin`` may do anything with any file
3. an explicit FilePermission grant for the requested permission allows it
4. ``view`` is allowed on public files
5. everything else is denied

Nothing is cached: every request evaluates the predicate again.
"""
from rest_framework.permissions import BasePermission

from .exceptions import Forbidden, NotFound
from .models import File, FilePermission, RolePermission


def has_file_permission(user, file, permission):
    if file.owner_id == user.pk:
        return True
    if user.is_admin_role:
        return True
    if FilePermission.objects.filter(file=file, user=user, permission=permission).exists():
        return True
    if permission == FilePermission.VIEW and file.is_public:
        return True
    return False


def has_role_permission(user, name):
    if user.is_admin_role:
        return True
    return RolePermission.objects.filter(role=user.role, permission__name=name).exists()


def get_accessible_file(user, file_id, permission, include_trashed=False):
    """
    Load a file for ``user`` and enforce ``permission`` on it.

    Raises NotFound when the file does not exist (or is in the trash) and
    Forbidden when it exists but the predicate denies access.
    """
    queryset = File.objects.all()
    if not include_trashed:
        queryset = queryset.filter(deleted_at__isnull=True)
    try:
        file = queryset.get(pk=file_id)
    except File.DoesNotExist:
        raise NotFound('File not found')

    if not has_file_permission(user, file, permission):
        raise Forbidden('Insufficient permissions for this file')
    return file


def require_role_permission(user, name):
    if not has_role_permission(user, name):
        raise Forbidden('Insufficient permissions')


def is_owner_or_admin(user, file):
    return file.owner_id == user.pk or user.is_admin_role


class HasRolePermission(BasePermission):
    """
    DRF permission checking a named capability of the caller's role.

    Use ``HasRolePermission.named('manage_tags')`` in ``permission_classes``.
    """
    message = 'Insufficient permissions'
    permission_name = None

    @classmethod
    def named(cls, permission_name):
        return type(f"HasRolePermission_{permission_name}", (cls,), {'permission_name': permission_name})

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            return False
        return has_role_permission(user, self.permission_name)


class IsAdminRole(BasePermission):
    message = 'Admin access required'

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.is_admin_role)
