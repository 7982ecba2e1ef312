from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from django.http import FileResponse
from .access import get_accessible_file, require_role_permission
from .apps import get_blob_store
from .authentication import HeaderOrQueryJWTAuthentication
from .exceptions import NotFound
from .lifecycle import FileLifecycle, decode_metadata
from .serializers import FileSerializer, FileUploadSerializer, MultipleFileUploadSerializer
from .views_folders import parse_folder_id

PREVIEW_TEXT_LIMIT = 10000
TEXT_MIME_TYPES = {
    'application/javascript',
    'application/json',
    'application/xml',
}


def lifecycle():
    return FileLifecycle(get_blob_store())


class FileListPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


def paginated(request, queryset):
    paginator = FileListPagination()
    page = paginator.paginate_queryset(queryset, request)
    if page is not None:
        return paginator.get_paginated_response(FileSerializer(page, many=True).data)
    return Response(FileSerializer(queryset, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def file_upload(request):
    """
    Upload a single file, optionally into a folder
    """
    serializer = FileUploadSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    user_file = lifecycle().upload(
        request.user,
        data['file'],
        folder_id=data.get('folder_id'),
        metadata=data.get('metadata'),
    )
    return Response(
        {'message': 'File uploaded successfully', 'file': FileSerializer(user_file).data},
        status=status.HTTP_201_CREATED,
    )


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def file_upload_multiple(request):
    """
    Upload several files at once; failures are reported per file
    """
    serializer = MultipleFileUploadSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    uploaded, errors = lifecycle().upload_many(
        request.user,
        data['files'],
        folder_id=data.get('folder_id'),
        metadata=data.get('metadata'),
    )
    if not uploaded:
        return Response(
            {'error': 'Failed to upload any files', 'errors': errors},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    body = {
        'message': f'Successfully uploaded {len(uploaded)} file(s)',
        'files': FileSerializer(uploaded, many=True).data,
    }
    if errors:
        body['errors'] = errors
    return Response(body, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def file_list(request):
    """
    List the user's active files, optionally limited to one folder
    """
    folder_id = request.GET.get('folder_id')
    if folder_id != 'root':
        folder_id = parse_folder_id(folder_id)
    return paginated(request, lifecycle().list_files(request.user, folder_id))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def file_search(request):
    """
    Search the user's active files. All supplied filters must match.
    """
    tag_ids = []
    for raw in request.GET.get('tag_ids', '').split(','):
        try:
            tag_ids.append(int(raw))
        except ValueError:
            pass

    folder_id = request.GET.get('folder_id')
    if folder_id != 'root':
        folder_id = parse_folder_id(folder_id)

    queryset = lifecycle().search(
        request.user,
        query=request.GET.get('query'),
        tag_ids=tag_ids,
        mime_type=request.GET.get('type'),
        folder_id=folder_id,
    )
    return paginated(request, queryset)


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def file_detail(request, file_id):
    """
    GET returns the file; DELETE moves it to the trash
    """
    if request.method == 'GET':
        user_file = get_accessible_file(request.user, file_id, 'view')
        return Response({'file': FileSerializer(user_file).data})

    lifecycle().soft_delete(request.user, file_id)
    return Response({'message': 'File moved to trash successfully'})


def open_blob(user_file):
    blobs = get_blob_store()
    if not blobs.exists(user_file.path):
        raise NotFound('File not found on disk')
    return blobs.open(user_file.path)


@api_view(['GET'])
@authentication_classes([HeaderOrQueryJWTAuthentication])
@permission_classes([IsAuthenticated])
def file_download(request, file_id):
    """
    Download file content
    """
    user_file = get_accessible_file(request.user, file_id, 'view')
    return FileResponse(
        open_blob(user_file),
        as_attachment=True,
        filename=user_file.original_name,
        content_type=user_file.mime_type or 'application/octet-stream',
    )


@api_view(['GET'])
@authentication_classes([HeaderOrQueryJWTAuthentication])
@permission_classes([IsAuthenticated])
def file_preview(request, file_id):
    """
    Inline preview: images and PDFs are streamed, text comes back as JSON
    """
    user_file = get_accessible_file(request.user, file_id, 'view')
    mime_type = user_file.mime_type or ''

    if mime_type.startswith('image/') or mime_type == 'application/pdf':
        response = FileResponse(open_blob(user_file), content_type=mime_type)
        response['Content-Disposition'] = 'inline'
        response['Cache-Control'] = 'public, max-age=3600'
        return response

    if mime_type.startswith('text/') or mime_type in TEXT_MIME_TYPES:
        with open_blob(user_file) as handle:
            content = handle.read().decode('utf-8', errors='replace')
        truncated = len(content) > PREVIEW_TEXT_LIMIT
        if truncated:
            content = content[:PREVIEW_TEXT_LIMIT] + '\n...(truncated)'
        return Response({
            'type': 'text',
            'content': content,
            'mimetype': mime_type,
            'truncated': truncated,
        })

    return Response(
        {'error': 'File type not supported for preview', 'mimetype': mime_type},
        status=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    )


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def file_metadata(request, file_id):
    user_file = get_accessible_file(request.user, file_id, 'edit')
    user_file = lifecycle().update_metadata(user_file, request.data.get('metadata'))
    return Response({
        'message': 'Metadata updated successfully',
        'metadata': decode_metadata(user_file.metadata),
    })


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def file_visibility(request, file_id):
    """
    Publish or unpublish a file. Publishing hands out an unguessable link.
    """
    user_file = get_accessible_file(request.user, file_id, 'share')
    require_role_permission(request.user, 'share_files')

    user_file = lifecycle().update_visibility(user_file, request.data.get('is_public'))
    public_id = user_file.public_id
    return Response({
        'message': 'File visibility updated successfully',
        'is_public': user_file.is_public,
        'public_id': public_id,
        'public_url': f'/api/public/files/{public_id}/' if public_id else None,
    })


@api_view(['PUT'])
@permission_classes([IsAuthenticated])
def file_move(request, file_id):
    user_file = lifecycle().move(request.user, file_id, parse_folder_id(request.data.get('folder_id')))
    return Response({'message': 'File moved successfully', 'file': FileSerializer(user_file).data})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def trash_list(request):
    return Response({'files': FileSerializer(lifecycle().list_trash(request.user), many=True).data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def file_restore(request, file_id):
    lifecycle().restore(request.user, file_id)
    return Response({'message': 'File restored successfully'})


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def file_permanent_delete(request, file_id):
    lifecycle().purge(request.user, file_id)
    return Response({'message': 'File permanently deleted'})


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def trash_empty(request):
    deleted_count = lifecycle().empty_trash(request.user)
    return Response({'message': 'Trash emptied successfully', 'deleted_count': deleted_count})
