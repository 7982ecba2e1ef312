"""
Folder hierarchy: listing, breadcrumbs, and the mutations that keep each
user's folders a tree.
"""
import logging

from django.db import transaction
from django.db.models import F

from .exceptions import Conflict, InvalidInput, InvalidOperation, NotFound
from .models import File, Folder

logger = logging.getLogger(__name__)


def get_owned_folder(user, folder_id, message='Folder not found'):
    try:
        return Folder.objects.get(pk=folder_id, owner=user)
    except (Folder.DoesNotExist, ValueError, TypeError):
        raise NotFound(message)


def _clean_name(name):
    if not isinstance(name, str) or not name.strip():
        raise InvalidInput('Folder name is required')
    return name.strip()


def _sibling_exists(user, name, parent_id, exclude_id=None):
    siblings = Folder.objects.filter(owner=user, name=name, parent_id=parent_id)
    if exclude_id is not None:
        siblings = siblings.exclude(pk=exclude_id)
    return siblings.exists()


def list_all(user):
    return Folder.objects.filter(owner=user).order_by(F('parent_id').asc(nulls_first=True), 'name')


def list_children(user, folder_id=None):
    """
    Return ``(folder, subfolders, files)`` for a folder, or the root when
    ``folder_id`` is None. Trashed files are left out.
    """
    folder = get_owned_folder(user, folder_id) if folder_id is not None else None
    subfolders = Folder.objects.filter(owner=user, parent=folder).order_by('name')
    files = (
        File.objects.filter(owner=user, folder=folder, deleted_at__isnull=True)
        .prefetch_related('tags')
        .order_by('original_name')
    )
    return folder, subfolders, files


def breadcrumbs(user, folder_id):
    """
    Path from the root down to ``folder_id`` as ``[{'id', 'name'}, ...]``.

    Stops quietly at a parent that no longer exists or is not the user's.
    """
    crumbs = []
    current_id = folder_id
    while current_id is not None:
        folder = Folder.objects.filter(pk=current_id, owner=user).values('id', 'name', 'parent_id').first()
        if folder is None:
            break
        crumbs.insert(0, {'id': folder['id'], 'name': folder['name']})
        current_id = folder['parent_id']
    return crumbs


def create(user, name, parent_id=None):
    name = _clean_name(name)
    parent = get_owned_folder(user, parent_id, 'Parent folder not found') if parent_id is not None else None

    if _sibling_exists(user, name, parent.pk if parent else None):
        raise Conflict('A folder with this name already exists in this location')

    folder = Folder.objects.create(owner=user, name=name, parent=parent)
    logger.info("User %s created folder %s", user.pk, folder.pk)
    return folder


def rename(user, folder_id, name):
    name = _clean_name(name)
    folder = get_owned_folder(user, folder_id)

    if _sibling_exists(user, name, folder.parent_id, exclude_id=folder.pk):
        raise Conflict('A folder with this name already exists in this location')

    folder.name = name
    folder.save(update_fields=['name', 'updated_at'])
    return folder


def is_ancestor_or_self(user, folder_id, candidate_id):
    """
    Walk up from ``candidate_id`` through parent pointers and report whether
    ``folder_id`` is met on the way, including ``candidate_id`` itself.
    """
    current_id = candidate_id
    while current_id is not None:
        if current_id == folder_id:
            return True
        current_id = (
            Folder.objects.filter(pk=current_id, owner=user)
            .values_list('parent_id', flat=True)
            .first()
        )
    return False


def move(user, folder_id, new_parent_id=None):
    folder = get_owned_folder(user, folder_id)
    parent = None
    if new_parent_id is not None:
        parent = get_owned_folder(user, new_parent_id, 'Parent folder not found')
        if is_ancestor_or_self(user, folder.pk, parent.pk):
            raise InvalidOperation('Cannot move folder into its own descendant')

    if _sibling_exists(user, folder.name, parent.pk if parent else None, exclude_id=folder.pk):
        raise Conflict('A folder with this name already exists in the destination')

    folder.parent = parent
    folder.save(update_fields=['parent', 'updated_at'])
    return folder


def delete(user, folder_id):
    """
    Delete a folder and every folder below it. Files inside any of them
    survive and are moved to the root.
    """
    folder = get_owned_folder(user, folder_id)
    with transaction.atomic():
        folder.delete()
    logger.info("User %s deleted folder %s", user.pk, folder_id)
