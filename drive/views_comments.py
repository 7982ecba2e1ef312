from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from .access import get_accessible_file, has_role_permission
from .exceptions import Forbidden, InvalidInput, NotFound
from .models import Comment
from .serializers import CommentSerializer


def build_comment_tree(comments):
    """
    Nest comments under their parents as ``replies``, keeping input order.
    Replies whose parent is missing from ``comments`` are dropped.
    """
    nodes = {}
    for comment in comments:
        node = CommentSerializer(comment).data
        node['replies'] = []
        nodes[comment.pk] = node

    roots = []
    for comment in comments:
        node = nodes[comment.pk]
        if comment.parent_id is None:
            roots.append(node)
        elif comment.parent_id in nodes:
            nodes[comment.parent_id]['replies'].append(node)
    return roots


def _clean_content(request):
    content = request.data.get('content')
    if not isinstance(content, str) or not content.strip():
        raise InvalidInput('Comment content is required')
    return content.strip()


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def comment_list(request, file_id):
    """
    GET returns the file's comments as a tree; POST adds one, optionally as
    a reply to ``parent_id``
    """
    user_file = get_accessible_file(request.user, file_id, 'view')

    if request.method == 'GET':
        comments = list(
            Comment.objects.filter(file=user_file).select_related('user').order_by('-created_at', '-id')
        )
        return Response(build_comment_tree(comments))

    content = _clean_content(request)
    parent_id = request.data.get('parent_id')
    if parent_id in (None, ''):
        parent_id = None
    else:
        try:
            parent_id = Comment.objects.get(pk=int(parent_id), file=user_file).pk
        except (Comment.DoesNotExist, TypeError, ValueError):
            raise InvalidInput('Parent comment not found or belongs to different file')

    comment = Comment.objects.create(
        file=user_file,
        user=request.user,
        content=content,
        parent_id=parent_id,
    )
    return Response(CommentSerializer(comment).data, status=status.HTTP_201_CREATED)


def _get_editable_comment(request, comment_id, action):
    try:
        comment = Comment.objects.select_related('user').get(pk=comment_id)
    except Comment.DoesNotExist:
        raise NotFound('Comment not found')

    if comment.user_id != request.user.pk and not has_role_permission(request.user, 'moderate_comments'):
        raise Forbidden(f'You can only {action} your own comments')
    return comment


@api_view(['PUT', 'DELETE'])
@permission_classes([IsAuthenticated])
def comment_detail(request, comment_id):
    if request.method == 'PUT':
        comment = _get_editable_comment(request, comment_id, 'edit')
        comment.content = _clean_content(request)
        comment.save(update_fields=['content', 'updated_at'])
        return Response(CommentSerializer(comment).data)

    comment = _get_editable_comment(request, comment_id, 'delete')
    comment.delete()
    return Response({'message': 'Comment deleted successfully'})
