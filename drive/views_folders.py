from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from . import folders
from .access import require_role_permission
from .exceptions import InvalidInput
from .serializers import FolderSerializer, FileSerializer


def parse_folder_id(value):
    """
    Folder ids arrive as ints, numeric strings, or null/''/'root' for the root.
    """
    if value in (None, '', 'null', 'root'):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidInput('Invalid folder id')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def folder_list(request):
    """
    GET lists every folder of the user; POST creates one
    """
    if request.method == 'GET':
        return Response({'folders': FolderSerializer(folders.list_all(request.user), many=True).data})

    require_role_permission(request.user, 'create_folders')

    folder = folders.create(
        request.user,
        request.data.get('name'),
        parse_folder_id(request.data.get('parent_id')),
    )
    return Response(
        {'message': 'Folder created successfully', 'folder': FolderSerializer(folder).data},
        status=status.HTTP_201_CREATED,
    )


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def folder_root(request):
    return _folder_contents(request, None)


@api_view(['GET', 'PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def folder_detail(request, folder_id):
    """
    GET returns the folder with breadcrumbs, subfolders and files;
    PUT renames it; DELETE removes it and everything below it
    """
    if request.method == 'GET':
        return _folder_contents(request, folder_id)

    if request.method == 'PUT':
        folder = folders.rename(request.user, folder_id, request.data.get('name'))
        return Response({'message': 'Folder renamed successfully', 'folder': FolderSerializer(folder).data})

    folders.delete(request.user, folder_id)
    return Response({'message': 'Folder deleted successfully'})


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def folder_move(request, folder_id):
    folder = folders.move(request.user, folder_id, parse_folder_id(request.data.get('parent_id')))
    return Response({'message': 'Folder moved successfully', 'folder': FolderSerializer(folder).data})


def _folder_contents(request, folder_id):
    folder, subfolders, files = folders.list_children(request.user, folder_id)
    return Response({
        'folder': FolderSerializer(folder).data if folder else None,
        'breadcrumbs': folders.breadcrumbs(request.user, folder_id),
        'subfolders': FolderSerializer(subfolders, many=True).data,
        'files': FileSerializer(files, many=True).data,
    })
