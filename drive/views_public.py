from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from django.http import FileResponse
from .exceptions import NotFound
from .models import File
from .serializers import PublicFileSerializer
from .views_files import open_blob


def _get_public_file(public_id):
    try:
        return File.objects.get(public_id=public_id, is_public=True, deleted_at__isnull=True)
    except File.DoesNotExist:
        raise NotFound('File not found or not public')


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def public_file(request, public_id):
    """
    Serve a shared file inline to anyone holding its link
    """
    user_file = _get_public_file(public_id)
    return FileResponse(
        open_blob(user_file),
        filename=user_file.original_name,
        content_type=user_file.mime_type or 'application/octet-stream',
    )


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def public_file_info(request, public_id):
    user_file = _get_public_file(public_id)
    return Response({'file': PublicFileSerializer(user_file).data})


@api_view(['GET'])
@authentication_classes([])
@permission_classes([AllowAny])
def public_file_download(request, public_id):
    user_file = _get_public_file(public_id)
    return FileResponse(
        open_blob(user_file),
        as_attachment=True,
        filename=user_file.original_name,
        content_type=user_file.mime_type or 'application/octet-stream',
    )
