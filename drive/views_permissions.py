import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from .access import (
    HasRolePermission, IsAdminRole, get_accessible_file, is_owner_or_admin,
    require_role_permission,
)
from .exceptions import Forbidden, InvalidInput, NotFound
from .models import File, FilePermission, Permission, RolePermission, User
from .serializers import (
    FilePermissionGrantSerializer, FilePermissionSerializer, PermissionSerializer,
    RoleSerializer, UserSummarySerializer,
)

logger = logging.getLogger(__name__)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def permission_list(request):
    return Response(PermissionSerializer(Permission.objects.all(), many=True).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def role_permissions(request, role):
    """
    GET lists the capabilities of a role (admin only); POST assigns one
    (requires manage_roles)
    """
    if role not in dict(User.ROLE_CHOICES):
        raise NotFound('Role not found')

    if request.method == 'GET':
        if not IsAdminRole().has_permission(request, None):
            raise Forbidden('Admin access required')
        permissions = Permission.objects.filter(role_grants__role=role).order_by('name')
        return Response(PermissionSerializer(permissions, many=True).data)

    require_role_permission(request.user, 'manage_roles')
    permission_id = request.data.get('permission_id')
    if not permission_id:
        raise InvalidInput('Permission ID is required')
    try:
        permission = Permission.objects.get(pk=permission_id)
    except (Permission.DoesNotExist, ValueError, TypeError):
        raise NotFound('Permission not found')

    RolePermission.objects.get_or_create(role=role, permission=permission)
    logger.info("User %s granted %s to role %s", request.user.pk, permission.name, role)
    return Response({'message': 'Permission assigned successfully'})


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, HasRolePermission.named('manage_roles')])
def role_permission_delete(request, role, permission_id):
    RolePermission.objects.filter(role=role, permission_id=permission_id).delete()
    return Response({'message': 'Permission removed successfully'})


@api_view(['PUT'])
@permission_classes([IsAuthenticated, HasRolePermission.named('manage_roles')])
def user_role(request, user_id):
    serializer = RoleSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    updated = User.objects.filter(pk=user_id).update(role=serializer.validated_data['role'])
    if not updated:
        raise NotFound('User not found')
    logger.info("User %s set role of user %s to %s", request.user.pk, user_id, serializer.validated_data['role'])
    return Response({'message': 'User role updated successfully'})


@api_view(['GET'])
@permission_classes([IsAuthenticated, HasRolePermission.named('manage_users')])
def admin_user_list(request):
    users = User.objects.order_by('-created_at', '-id')
    return Response(UserSummarySerializer(users, many=True).data)


def _get_managed_file(request, file_id, action):
    try:
        user_file = File.objects.get(pk=file_id)
    except File.DoesNotExist:
        raise NotFound('File not found')
    if not is_owner_or_admin(request.user, user_file):
        raise Forbidden(f'You do not have permission to {action} permissions for this file')
    return user_file


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def file_permissions(request, file_id):
    """
    GET lists the grants on a file (owner or admin); POST grants one to a
    user (anyone holding share on the file)
    """
    if request.method == 'GET':
        user_file = _get_managed_file(request, file_id, 'view')
        grants = (
            FilePermission.objects.filter(file=user_file)
            .select_related('user', 'granted_by')
            .order_by('-created_at', '-id')
        )
        return Response(FilePermissionSerializer(grants, many=True).data)

    try:
        user_file = get_accessible_file(request.user, file_id, 'share')
    except Forbidden:
        raise Forbidden('You do not have permission to share this file')
    require_role_permission(request.user, 'share_files')

    serializer = FilePermissionGrantSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    grant, _ = FilePermission.objects.update_or_create(
        file=user_file,
        user_id=serializer.validated_data['user_id'],
        permission=serializer.validated_data['permission'],
        defaults={'granted_by': request.user},
    )
    return Response({
        'message': 'File permission granted successfully',
        'permission': FilePermissionSerializer(grant).data,
    })


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def file_permission_revoke(request, file_id, user_id, permission):
    user_file = _get_managed_file(request, file_id, 'revoke')
    FilePermission.objects.filter(file=user_file, user_id=user_id, permission=permission).delete()
    return Response({'message': 'File permission revoked successfully'})
