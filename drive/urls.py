from django.urls import path
from . import (
    views, views_comments, views_files, views_folders, views_permissions,
    views_public, views_tags, views_versions,
)

urlpatterns = [
    path('health/', views.health, name='health'),

    path('auth/register/', views.register, name='register'),
    path('auth/login/', views.login, name='login'),
    path('auth/logout/', views.logout, name='logout'),
    path('auth/token/refresh/', views.token_refresh, name='token_refresh'),
    path('auth/me/', views.me, name='me'),
    path('users/profile/', views.user_profile, name='user_profile'),
    path('users/change-password/', views.change_password, name='change_password'),

    path('folders/', views_folders.folder_list, name='folder_list'),
    path('folders/root/', views_folders.folder_root, name='folder_root'),
    path('folders/<int:folder_id>/', views_folders.folder_detail, name='folder_detail'),
    path('folders/<int:folder_id>/move/', views_folders.folder_move, name='folder_move'),

    path('files/', views_files.file_list, name='file_list'),
    path('files/upload/', views_files.file_upload, name='file_upload'),
    path('files/upload-multiple/', views_files.file_upload_multiple, name='file_upload_multiple'),
    path('files/search/', views_files.file_search, name='file_search'),
    path('files/trash/', views_files.trash_list, name='trash_list'),
    path('files/trash/empty/', views_files.trash_empty, name='trash_empty'),
    path('files/<int:file_id>/', views_files.file_detail, name='file_detail'),
    path('files/<int:file_id>/preview/', views_files.file_preview, name='file_preview'),
    path('files/<int:file_id>/download/', views_files.file_download, name='file_download'),
    path('files/<int:file_id>/metadata/', views_files.file_metadata, name='file_metadata'),
    path('files/<int:file_id>/visibility/', views_files.file_visibility, name='file_visibility'),
    path('files/<int:file_id>/move/', views_files.file_move, name='file_move'),
    path('files/<int:file_id>/restore/', views_files.file_restore, name='file_restore'),
    path('files/<int:file_id>/permanent/', views_files.file_permanent_delete, name='file_permanent_delete'),

    path('files/<int:file_id>/versions/', views_versions.version_list, name='version_list'),
    path('files/<int:file_id>/versions/compare/', views_versions.version_compare, name='version_compare'),
    path('files/<int:file_id>/versions/<int:version_id>/', views_versions.version_delete, name='version_delete'),
    path('files/<int:file_id>/versions/<int:version_id>/restore/', views_versions.version_restore, name='version_restore'),
    path('files/<int:file_id>/versions/<int:version_id>/download/', views_versions.version_download, name='version_download'),

    path('tags/', views_tags.tag_list, name='tag_list'),
    path('tags/<int:tag_id>/', views_tags.tag_delete, name='tag_delete'),
    path('files/<int:file_id>/tags/', views_tags.file_tags, name='file_tags'),

    path('files/<int:file_id>/comments/', views_comments.comment_list, name='comment_list'),
    path('comments/<int:comment_id>/', views_comments.comment_detail, name='comment_detail'),

    path('permissions/', views_permissions.permission_list, name='permission_list'),
    path('roles/<str:role>/permissions/', views_permissions.role_permissions, name='role_permissions'),
    path(
        'roles/<str:role>/permissions/<int:permission_id>/',
        views_permissions.role_permission_delete,
        name='role_permission_delete',
    ),
    path('users/<int:user_id>/role/', views_permissions.user_role, name='user_role'),
    path('admin/users/', views_permissions.admin_user_list, name='admin_user_list'),
    path('files/<int:file_id>/permissions/', views_permissions.file_permissions, name='file_permissions'),
    path(
        'files/<int:file_id>/permissions/<int:user_id>/<str:permission>/',
        views_permissions.file_permission_revoke,
        name='file_permission_revoke',
    ),

    path('public/files/<str:public_id>/', views_public.public_file, name='public_file'),
    path('public/files/<str:public_id>/info/', views_public.public_file_info, name='public_file_info'),
    path('public/files/<str:public_id>/download/', views_public.public_file_download, name='public_file_download'),
]
