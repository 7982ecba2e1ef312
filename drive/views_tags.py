from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from django.db import transaction
from .access import HasRolePermission, get_accessible_file, require_role_permission
from .exceptions import Conflict, InvalidInput, NotFound
from .models import FileTag, Tag
from .serializers import TagSerializer


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def tag_list(request):
    """
    GET lists every tag; POST creates one (requires manage_tags)
    """
    if request.method == 'GET':
        return Response({'tags': TagSerializer(Tag.objects.all(), many=True).data})
    return _create_tag(request)


def _create_tag(request):
    require_role_permission(request.user, 'manage_tags')

    name = (request.data.get('name') or '').strip()
    if not name:
        raise InvalidInput('Tag name is required')
    if Tag.objects.filter(name=name).exists():
        raise Conflict('Tag already exists')

    tag = Tag.objects.create(name=name)
    return Response(
        {'message': 'Tag created successfully', 'tag': TagSerializer(tag).data},
        status=status.HTTP_201_CREATED,
    )


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, HasRolePermission.named('manage_tags')])
def tag_delete(request, tag_id):
    deleted, _ = Tag.objects.filter(pk=tag_id).delete()
    if not deleted:
        raise NotFound('Tag not found')
    return Response({'message': 'Tag deleted successfully'})


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated])
def file_tags(request, file_id):
    """
    GET lists a file's tags; PUT replaces them with ``tag_ids``
    """
    if request.method == 'GET':
        user_file = get_accessible_file(request.user, file_id, 'view')
        return Response({'tags': TagSerializer(user_file.tags.all(), many=True).data})

    user_file = get_accessible_file(request.user, file_id, 'edit')
    tag_ids = request.data.get('tag_ids')
    if not isinstance(tag_ids, list) or not all(isinstance(tag_id, int) for tag_id in tag_ids):
        raise InvalidInput('Tag IDs array is required')

    tags = list(Tag.objects.filter(pk__in=tag_ids))
    if len(tags) != len(set(tag_ids)):
        raise NotFound('Tag not found')

    with transaction.atomic():
        FileTag.objects.filter(file=user_file).delete()
        FileTag.objects.bulk_create([FileTag(file=user_file, tag=tag) for tag in tags])

    return Response({'message': 'Tags updated successfully', 'tags': TagSerializer(tags, many=True).data})
