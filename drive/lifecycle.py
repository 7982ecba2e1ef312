"""
File lifecycle: upload, trash, restore, purge, and the attribute updates
that do not create versions.

A file moves ``active -> trashed -> active | purged``. Purging is only
possible from the trash.
"""
import json
import logging
import mimetypes
import secrets

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Q
from django.utils import timezone

from .exceptions import InvalidInput, NotFound
from .folders import get_owned_folder
from .models import File

logger = logging.getLogger(__name__)


def guess_mime_type(uploaded_file):
    content_type = getattr(uploaded_file, 'content_type', None)
    if content_type and content_type != 'application/octet-stream':
        return content_type
    mime_type, _ = mimetypes.guess_type(uploaded_file.name)
    return mime_type or content_type or 'application/octet-stream'


def encode_metadata(value):
    """
    Normalise client metadata to the JSON text kept at rest.

    Strings must already be JSON; anything else is serialised.
    """
    if value is None or value == '':
        return None
    if isinstance(value, str):
        try:
            json.loads(value)
        except json.JSONDecodeError:
            raise InvalidInput('Metadata must be valid JSON')
        return value
    return json.dumps(value, ensure_ascii=False)


def decode_metadata(text):
    if not text:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def _folder_scope(queryset, folder_id):
    if folder_id in (None, ''):
        return queryset
    if folder_id == 'root':
        return queryset.filter(folder__isnull=True)
    return queryset.filter(folder_id=folder_id)


class FileLifecycle:
    def __init__(self, blobs):
        self.blobs = blobs

    def get_owned(self, user, file_id, trashed=False):
        queryset = File.objects.filter(owner=user, deleted_at__isnull=not trashed)
        try:
            return queryset.get(pk=file_id)
        except File.DoesNotExist:
            raise NotFound('File not found in trash' if trashed else 'File not found')

    def _check_size(self, uploaded_file):
        max_size = settings.MAX_FILE_SIZE
        if uploaded_file.size > max_size:
            raise InvalidInput(f'File size cannot exceed {max_size // (1024 * 1024)}MB')

    def _store(self, user, uploaded_file, folder, metadata):
        filename, path = self.blobs.save(uploaded_file)
        try:
            return File.objects.create(
                owner=user,
                folder=folder,
                filename=filename,
                original_name=uploaded_file.name,
                mime_type=guess_mime_type(uploaded_file),
                size=uploaded_file.size,
                path=path,
                metadata=metadata,
                is_public=False,
                public_id=None,
            )
        except DatabaseError:
            self.blobs.delete(path)
            raise

    def upload(self, user, uploaded_file, folder_id=None, metadata=None):
        folder = get_owned_folder(user, folder_id) if folder_id is not None else None
        self._check_size(uploaded_file)
        file = self._store(user, uploaded_file, folder, encode_metadata(metadata))
        logger.info("User %s uploaded file %s (%s bytes)", user.pk, file.pk, file.size)
        return file

    def upload_many(self, user, uploaded_files, folder_id=None, metadata=None):
        """
        Store each file independently. Returns ``(uploaded, errors)``; one
        bad item never undoes the others.
        """
        folder = get_owned_folder(user, folder_id) if folder_id is not None else None
        metadata = encode_metadata(metadata)

        uploaded, errors = [], []
        for uploaded_file in uploaded_files:
            try:
                self._check_size(uploaded_file)
                uploaded.append(self._store(user, uploaded_file, folder, metadata))
            except InvalidInput as exc:
                errors.append({'filename': uploaded_file.name, 'error': str(exc.detail[0])})
            except (DatabaseError, OSError) as exc:
                logger.error("Error uploading file %s: %s", uploaded_file.name, exc)
                errors.append({'filename': uploaded_file.name, 'error': 'Failed to save file'})
        return uploaded, errors

    def list_files(self, user, folder_id=None):
        queryset = File.objects.filter(owner=user, deleted_at__isnull=True)
        return _folder_scope(queryset, folder_id).prefetch_related('tags').order_by('-created_at', '-id')

    def search(self, user, query=None, tag_ids=None, mime_type=None, folder_id=None):
        """
        Active files of ``user`` matching every supplied filter.
        """
        queryset = File.objects.filter(owner=user, deleted_at__isnull=True)
        if query:
            queryset = queryset.filter(Q(original_name__icontains=query) | Q(metadata__icontains=query))
        if mime_type:
            queryset = queryset.filter(mime_type__icontains=mime_type)
        if tag_ids:
            queryset = queryset.filter(tags__id__in=tag_ids)
        queryset = _folder_scope(queryset, folder_id)
        return queryset.distinct().prefetch_related('tags').order_by('-created_at', '-id')

    def list_trash(self, user):
        return File.objects.filter(owner=user, deleted_at__isnull=False).order_by('-deleted_at')

    def soft_delete(self, user, file_id):
        file = self.get_owned(user, file_id)
        file.deleted_at = timezone.now()
        file.save(update_fields=['deleted_at'])
        logger.info("File %s moved to trash", file.pk)
        return file

    def restore(self, user, file_id):
        file = self.get_owned(user, file_id, trashed=True)
        file.deleted_at = None
        file.save(update_fields=['deleted_at'])
        return file

    def _blob_paths(self, file):
        paths = {file.path}
        paths.update(file.versions.values_list('path', flat=True))
        return paths

    def _purge(self, file):
        paths = self._blob_paths(file)
        with transaction.atomic():
            file.delete()
        for path in paths:
            self.blobs.delete(path)

    def purge(self, user, file_id):
        file = self.get_owned(user, file_id, trashed=True)
        self._purge(file)
        logger.info("User %s permanently deleted file %s", user.pk, file_id)

    def empty_trash(self, user):
        count = 0
        for file in self.list_trash(user):
            self._purge(file)
            count += 1
        logger.info("User %s emptied trash (%s files)", user.pk, count)
        return count

    def update_metadata(self, file, metadata):
        if metadata is None or metadata == '':
            raise InvalidInput('Metadata is required')
        file.metadata = encode_metadata(metadata)
        file.save(update_fields=['metadata', 'updated_at'])
        return file

    def update_visibility(self, file, is_public):
        """
        Publishing mints a fresh capability token; unpublishing drops it, so
        a token never survives an off/on cycle.
        """
        if not isinstance(is_public, bool):
            raise InvalidInput('isPublic must be a boolean')
        if is_public and not file.public_id:
            file.public_id = secrets.token_hex(16)
        elif not is_public:
            file.public_id = None
        file.is_public = is_public
        file.save(update_fields=['is_public', 'public_id', 'updated_at'])
        return file

    def move(self, user, file_id, folder_id=None):
        file = self.get_owned(user, file_id)
        folder = get_owned_folder(user, folder_id) if folder_id is not None else None
        file.folder = folder
        file.save(update_fields=['folder', 'updated_at'])
        return file
