import shutil
import tempfile
from django.core.files.base import ContentFile
from django.core.files.storage import FileSystemStorage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase
from .blobstore import VERSIONS_DIR, BlobStore, generate_blob_name


class BlobStoreTests(SimpleTestCase):
    """Tests for the blob store over a throwaway filesystem storage"""

    def setUp(self):
        """Set up test data"""
        self.location = tempfile.mkdtemp()
        self.blobs = BlobStore(FileSystemStorage(location=self.location))

    def tearDown(self):
        shutil.rmtree(self.location, ignore_errors=True)

    def test_generate_blob_name(self):
        """Test names keep only the lower-cased extension"""
        self.assertRegex(generate_blob_name('Quarterly Report.PDF'), r'^\d+-\d+\.pdf$')
        self.assertRegex(generate_blob_name('README'), r'^\d+-\d+$')
        self.assertRegex(generate_blob_name('a.txt', prefix='restored-'), r'^restored-\d+-\d+\.txt$')

    def test_save_and_open(self):
        """Test saved bytes read back unchanged"""
        filename, path = self.blobs.save(SimpleUploadedFile('a.txt', b'hello'))

        self.assertEqual(path, f'uploads/{filename}')
        self.assertTrue(self.blobs.exists(path))
        self.assertEqual(self.blobs.size(path), 5)
        with self.blobs.open(path) as handle:
            self.assertEqual(handle.read(), b'hello')

    def test_save_into_versions(self):
        """Test version blobs go to their own directory"""
        _, path = self.blobs.save(SimpleUploadedFile('a.txt', b'v2'), directory=VERSIONS_DIR)

        self.assertTrue(path.startswith('versions/'))

    def test_copy(self):
        """Test copying produces an independent blob"""
        source = self.blobs.storage.save('versions/old.txt', ContentFile(b'old'))

        filename, path = self.blobs.copy(source, 'old.txt', prefix='restored-')

        self.assertTrue(filename.startswith('restored-'))
        self.assertNotEqual(path, source)
        self.blobs.delete(source)
        with self.blobs.open(path) as handle:
            self.assertEqual(handle.read(), b'old')

    def test_delete(self):
        """Test deleting an existing blob"""
        _, path = self.blobs.save(SimpleUploadedFile('a.txt', b'bye'))

        self.assertTrue(self.blobs.delete(path))
        self.assertFalse(self.blobs.exists(path))

    def test_delete_missing_blob_is_logged(self):
        """Test deleting a missing blob warns instead of raising"""
        with self.assertLogs('drive.blobstore', level='WARNING'):
            self.assertFalse(self.blobs.delete('uploads/missing.txt'))
