# Seeds the capability catalog and the default role grants

from django.db import migrations

DEFAULT_PERMISSIONS = [
    ('manage_users', 'Create, update, and delete user accounts'),
    ('manage_roles', 'Assign and revoke user roles'),
    ('view_all_files', 'View all files in the system'),
    ('delete_all_files', 'Delete any file in the system'),
    ('manage_system', 'Access to system configuration and settings'),
    ('create_folders', 'Create new folders'),
    ('delete_folders', 'Delete folders'),
    ('share_files', 'Share files with other users'),
    ('manage_tags', 'Create and delete tags'),
    ('moderate_comments', 'Edit or delete any comment'),
]

USER_PERMISSIONS = ['create_folders', 'share_files']


def seed_permissions(apps, schema_editor):
    Permission = apps.get_model('drive', 'Permission')
    RolePermission = apps.get_model('drive', 'RolePermission')

    for name, description in DEFAULT_PERMISSIONS:
        permission, _ = Permission.objects.get_or_create(name=name, defaults={'description': description})
        RolePermission.objects.get_or_create(role='admin', permission=permission)
        if name in USER_PERMISSIONS:
            RolePermission.objects.get_or_create(role='user', permission=permission)


def unseed_permissions(apps, schema_editor):
    Permission = apps.get_model('drive', 'Permission')
    Permission.objects.filter(name__in=[name for name, _ in DEFAULT_PERMISSIONS]).delete()


class Migration(migrations.Migration):

    dependencies = [
        ('drive', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(seed_permissions, unseed_permissions),
    ]
