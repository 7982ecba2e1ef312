from django.apps import AppConfig


class DriveConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'drive'

    def ready(self):
        from .blobstore import BlobStore

        self.blob_store = BlobStore()


def get_blob_store():
    """The process-wide blob store, built once when the app registry is ready."""
    from django.apps import apps

    return apps.get_app_config('drive').blob_store
