from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from django.http import FileResponse
from .access import get_accessible_file
from .apps import get_blob_store
from .exceptions import InvalidInput
from .authentication import HeaderOrQueryJWTAuthentication
from .serializers import (
    CurrentVersionSerializer, FileVersionSerializer, VersionSummarySerializer,
)
from .versioning import VersionManager


def versions():
    return VersionManager(get_blob_store())


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def version_list(request, file_id):
    """
    GET lists the file's history plus its current state; POST uploads a
    new version, snapshotting the state it replaces
    """
    if request.method == 'GET':
        user_file = get_accessible_file(request.user, file_id, 'view', include_trashed=True)
        current, stored = versions().list_versions(user_file)
        return Response({
            'current': CurrentVersionSerializer(current).data,
            'versions': FileVersionSerializer(stored, many=True).data,
        })

    user_file = get_accessible_file(request.user, file_id, 'edit')
    uploaded_file = request.data.get('file')
    if not uploaded_file or not hasattr(uploaded_file, 'size'):
        raise InvalidInput('No file uploaded')

    _, version = versions().upload_version(
        user_file,
        request.user,
        uploaded_file,
        change_description=request.data.get('change_description'),
    )
    return Response(
        {
            'message': 'New version uploaded successfully',
            'version': FileVersionSerializer(version).data,
        },
        status=status.HTTP_201_CREATED,
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def version_restore(request, file_id, version_id):
    user_file = get_accessible_file(request.user, file_id, 'edit')
    _, version = versions().restore_version(user_file, request.user, version_id)
    return Response({
        'message': f'File restored to version {version.version_number} successfully',
        'restored_version': version.version_number,
    })


@api_view(['GET'])
@authentication_classes([HeaderOrQueryJWTAuthentication])
@permission_classes([IsAuthenticated])
def version_download(request, file_id, version_id):
    user_file = get_accessible_file(request.user, file_id, 'view', include_trashed=True)
    version, handle = versions().open_version(user_file, version_id)
    return FileResponse(
        handle,
        as_attachment=True,
        filename=version.original_name,
        content_type=version.mime_type or 'application/octet-stream',
    )


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def version_delete(request, file_id, version_id):
    user_file = get_accessible_file(request.user, file_id, 'edit', include_trashed=True)
    versions().delete_version(user_file, version_id)
    return Response({'message': 'Version deleted successfully'})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def version_compare(request, file_id):
    """
    Compare two versions by size and age; contents are not diffed
    """
    user_file = get_accessible_file(request.user, file_id, 'view', include_trashed=True)
    first, second, differences = versions().compare(
        user_file, request.GET.get('v1'), request.GET.get('v2'),
    )
    return Response({
        'version1': VersionSummarySerializer(first).data,
        'version2': VersionSummarySerializer(second).data,
        'differences': differences,
    })
