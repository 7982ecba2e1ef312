"""
File versions.

Every overwrite and every restore first snapshots the live file as a new
version. Numbers are ``max(existing) + 1`` per file, read and written while
the file row is locked; the ``(file, version_number)`` unique constraint
backs this up on databases that ignore row locks.
"""
import logging

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Max

from .blobstore import UPLOADS_DIR, VERSIONS_DIR
from .exceptions import Conflict, InvalidInput, NotFound
from .lifecycle import guess_mime_type
from .models import File, FileVersion

logger = logging.getLogger(__name__)

SNAPSHOT_FIELDS = ('filename', 'original_name', 'mime_type', 'size', 'path', 'metadata')


def next_version_number(file):
    latest = file.versions.aggregate(max_version=Max('version_number'))['max_version']
    return (latest or 0) + 1


def _snapshot(file, version_number, change_description, user):
    return FileVersion.objects.create(
        file=file,
        version_number=version_number,
        change_description=change_description,
        created_by=user,
        **{field: getattr(file, field) for field in SNAPSHOT_FIELDS}
    )


class VersionManager:
    def __init__(self, blobs):
        self.blobs = blobs

    def get_version(self, file, version_id):
        try:
            return FileVersion.objects.select_related('created_by').get(pk=version_id, file=file)
        except (FileVersion.DoesNotExist, ValueError, TypeError):
            raise NotFound('Version not found')

    def list_versions(self, file):
        """
        Stored versions, newest first, plus a ``current`` entry describing
        the live file as the version that would come next.
        """
        versions = list(file.versions.select_related('created_by').order_by('-version_number'))
        latest = versions[0].version_number if versions else 0
        current = {
            'id': None,
            'file_id': file.pk,
            'version_number': latest + 1,
            'filename': file.filename,
            'original_name': file.original_name,
            'mime_type': file.mime_type,
            'size': file.size,
            'metadata': file.metadata,
            'change_description': 'Current version',
            'created_by': file.owner_id,
            'created_by_username': file.owner.username,
            'created_at': file.updated_at,
            'is_current': True,
        }
        return current, versions

    def upload_version(self, file, user, uploaded_file, change_description=None):
        if uploaded_file.size > settings.MAX_FILE_SIZE:
            raise InvalidInput(f'File size cannot exceed {settings.MAX_FILE_SIZE // (1024 * 1024)}MB')
        filename, path = self.blobs.save(uploaded_file, directory=VERSIONS_DIR)
        change_description = change_description or 'New version uploaded'
        try:
            with transaction.atomic():
                file = File.objects.select_for_update().get(pk=file.pk)
                number = next_version_number(file)
                _snapshot(file, number, 'Previous version before update', user)

                file.filename = filename
                file.original_name = uploaded_file.name
                file.mime_type = guess_mime_type(uploaded_file)
                file.size = uploaded_file.size
                file.path = path
                file.save()

                version = _snapshot(file, number + 1, change_description, user)
        except IntegrityError:
            self.blobs.delete(path)
            raise Conflict('Another version was saved concurrently; retry the upload')
        except Exception:
            self.blobs.delete(path)
            raise

        logger.info("User %s uploaded version %s of file %s", user.pk, version.version_number, file.pk)
        return file, version

    def restore_version(self, file, user, version_id):
        version = self.get_version(file, version_id)
        if not self.blobs.exists(version.path):
            raise NotFound('Version file not found on disk')

        filename, path = self.blobs.copy(version.path, version.filename, directory=UPLOADS_DIR, prefix='restored-')
        try:
            with transaction.atomic():
                file = File.objects.select_for_update().get(pk=file.pk)
                _snapshot(
                    file,
                    next_version_number(file),
                    f'Before restoring to version {version.version_number}',
                    user,
                )

                file.filename = filename
                file.original_name = version.original_name
                file.mime_type = version.mime_type
                file.size = version.size
                file.path = path
                file.metadata = version.metadata
                file.save()
        except IntegrityError:
            self.blobs.delete(path)
            raise Conflict('Another version was saved concurrently; retry the restore')
        except Exception:
            self.blobs.delete(path)
            raise

        logger.info("User %s restored file %s to version %s", user.pk, file.pk, version.version_number)
        return file, version

    def open_version(self, file, version_id):
        version = self.get_version(file, version_id)
        if not self.blobs.exists(version.path):
            raise NotFound('Version file not found on disk')
        return version, self.blobs.open(version.path)

    def delete_version(self, file, version_id):
        """
        Drop one version row. Its blob goes too unless the live file or
        another version still points at it.
        """
        version = self.get_version(file, version_id)
        path = version.path
        version.delete()

        still_referenced = (
            File.objects.filter(pk=file.pk, path=path).exists()
            or FileVersion.objects.filter(file=file, path=path).exists()
        )
        if not still_referenced:
            self.blobs.delete(path)

    def compare(self, file, v1_id, v2_id):
        if not v1_id or not v2_id:
            raise InvalidInput('Please provide v1 and v2 version IDs to compare')
        try:
            first = FileVersion.objects.get(pk=v1_id, file=file)
            second = FileVersion.objects.get(pk=v2_id, file=file)
        except (FileVersion.DoesNotExist, ValueError, TypeError):
            raise NotFound('One or both versions not found')

        time_diff = second.created_at - first.created_at
        return first, second, {
            'size_diff': second.size - first.size,
            'time_diff': int(time_diff.total_seconds() * 1000),
        }
