from rest_framework import serializers
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.settings import api_settings
from django.conf import settings
from django.contrib.auth import authenticate
from django.contrib.auth.password_validation import validate_password
import json
from .lifecycle import decode_metadata
from .models import User, Folder, File, Tag, Comment, FileVersion, Permission, FilePermission


def issue_tokens(user):
    refresh = RefreshToken.for_user(user)
    return {'access': str(refresh.access_token), 'refresh': str(refresh)}


class UserSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ('id', 'username', 'email', 'first_name', 'last_name', 'role')


class UserRegistrationSerializer(serializers.ModelSerializer):
    username = serializers.CharField(min_length=3, max_length=150)
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True)

    class Meta:
        model = User
        fields = ('id', 'username', 'email', 'password', 'password_confirm',
                  'first_name', 'last_name')

    def validate_username(self, value):
        if User.objects.filter(username=value).exists():
            raise serializers.ValidationError('A user with that username already exists.')
        return value

    def validate(self, attrs):
        if attrs['password'] != attrs['password_confirm']:
            raise serializers.ValidationError("Password fields didn't match.")
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm')
        return User.objects.create_user(**validated_data)

    def to_representation(self, instance):
        return {
            'user': UserSummarySerializer(instance).data,
            **issue_tokens(instance),
        }


class UserLoginSerializer(serializers.Serializer):
    """
    ``username`` may also be the account's email address.
    """
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, attrs):
        identifier = attrs.get('username')
        password = attrs.get('password')

        if '@' in identifier:
            match = User.objects.filter(email__iexact=identifier).values_list('username', flat=True).first()
            if match:
                identifier = match

        user = authenticate(username=identifier, password=password)
        if not user:
            if User.objects.filter(username=identifier, is_active=False).exists():
                raise serializers.ValidationError('User account is disabled.')
            raise serializers.ValidationError('Invalid username or password.')

        attrs['user'] = user
        return attrs

    def to_representation(self, instance):
        user = instance['user']
        return {
            'user': UserSummarySerializer(user).data,
            **issue_tokens(user),
        }


class LogoutSerializer(serializers.Serializer):
    """
    Takes the caller's refresh token out of circulation.
    """
    refresh = serializers.CharField()

    def validate_refresh(self, value):
        try:
            token = RefreshToken(value)
        except TokenError:
            raise serializers.ValidationError('Invalid or expired refresh token.')

        user = self.context['request'].user
        if str(token.get(api_settings.USER_ID_CLAIM)) != str(user.pk):
            raise serializers.ValidationError('Refresh token belongs to another user.')
        return token

    def save(self, **kwargs):
        self.validated_data['refresh'].blacklist()


class UserProfileSerializer(serializers.ModelSerializer):
    """
    Serializer for the caller's own profile (/api/users/profile/)
    """
    class Meta:
        model = User
        fields = ('id', 'username', 'email', 'first_name', 'last_name',
                  'role', 'created_at', 'updated_at')
        read_only_fields = ('id', 'role', 'created_at', 'updated_at')

    def validate_username(self, value):
        if User.objects.filter(username=value).exclude(pk=self.instance.pk).exists():
            raise serializers.ValidationError('Username already taken')
        return value

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exclude(pk=self.instance.pk).exists():
            raise serializers.ValidationError('Email already in use')
        return value

    def validate(self, attrs):
        if not attrs.get('username') and not attrs.get('email'):
            raise serializers.ValidationError('At least one field (username or email) must be provided')
        return attrs


class ChangePasswordSerializer(serializers.Serializer):
    current_password = serializers.CharField(write_only=True)
    new_password = serializers.CharField(write_only=True, min_length=6)

    def validate_current_password(self, value):
        if not self.context['request'].user.check_password(value):
            raise serializers.ValidationError('Current password is incorrect')
        return value

    def save(self, **kwargs):
        user = self.context['request'].user
        user.set_password(self.validated_data['new_password'])
        user.save()
        return user


class MetadataField(serializers.Field):
    """
    Metadata is stored as JSON text and only decoded on the way out.
    """
    def to_representation(self, value):
        return decode_metadata(value)

    def to_internal_value(self, data):
        return data


class TagSerializer(serializers.ModelSerializer):
    class Meta:
        model = Tag
        fields = ('id', 'name', 'created_at')
        read_only_fields = ('id', 'created_at')


class FileSerializer(serializers.ModelSerializer):
    """
    Serializer for a stored file as seen by its owner
    """
    metadata = MetadataField(read_only=True)
    tags = TagSerializer(many=True, read_only=True)

    class Meta:
        model = File
        fields = ('id', 'filename', 'original_name', 'mime_type', 'size', 'metadata',
                  'is_public', 'public_id', 'folder_id', 'tags', 'deleted_at',
                  'created_at', 'updated_at')
        read_only_fields = fields


class FileUploadSerializer(serializers.Serializer):
    file = serializers.FileField()
    folder_id = serializers.IntegerField(required=False, allow_null=True)
    metadata = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_file(self, value):
        if value.size > settings.MAX_FILE_SIZE:
            raise serializers.ValidationError(
                f'File size cannot exceed {settings.MAX_FILE_SIZE // (1024 * 1024)}MB'
            )
        return value

    def validate_metadata(self, value):
        if not value:
            return None
        try:
            json.loads(value)
        except json.JSONDecodeError:
            raise serializers.ValidationError('Metadata must be valid JSON')
        return value


class MultipleFileUploadSerializer(serializers.Serializer):
    files = serializers.ListField(
        child=serializers.FileField(),
        allow_empty=False,
        max_length=settings.MAX_BATCH_UPLOAD,
    )
    folder_id = serializers.IntegerField(required=False, allow_null=True)
    metadata = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class FolderSerializer(serializers.ModelSerializer):
    class Meta:
        model = Folder
        fields = ('id', 'name', 'parent_id', 'created_at', 'updated_at')
        read_only_fields = fields


class CommentSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True)

    class Meta:
        model = Comment
        fields = ('id', 'file_id', 'user_id', 'username', 'content', 'parent_id',
                  'created_at', 'updated_at')
        read_only_fields = fields


class FileVersionSerializer(serializers.ModelSerializer):
    metadata = MetadataField(read_only=True)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True)
    is_current = serializers.SerializerMethodField()

    class Meta:
        model = FileVersion
        fields = ('id', 'file_id', 'version_number', 'filename', 'original_name', 'mime_type',
                  'size', 'metadata', 'change_description', 'created_by', 'created_by_username',
                  'created_at', 'is_current')
        read_only_fields = fields

    def get_is_current(self, obj):
        return False


class CurrentVersionSerializer(serializers.Serializer):
    """
    The live file rendered as a version entry; it has no row of its own.
    """
    id = serializers.IntegerField(allow_null=True)
    file_id = serializers.IntegerField()
    version_number = serializers.IntegerField()
    filename = serializers.CharField()
    original_name = serializers.CharField()
    mime_type = serializers.CharField(allow_null=True)
    size = serializers.IntegerField()
    metadata = MetadataField()
    change_description = serializers.CharField()
    created_by = serializers.IntegerField()
    created_by_username = serializers.CharField()
    created_at = serializers.DateTimeField()
    is_current = serializers.BooleanField()


class VersionSummarySerializer(serializers.ModelSerializer):
    metadata = MetadataField(read_only=True)

    class Meta:
        model = FileVersion
        fields = ('id', 'version_number', 'original_name', 'size', 'change_description',
                  'created_at', 'metadata')
        read_only_fields = fields


class PermissionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Permission
        fields = ('id', 'name', 'description', 'created_at')
        read_only_fields = fields


class FilePermissionSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True)
    email = serializers.CharField(source='user.email', read_only=True)
    granted_by_username = serializers.CharField(source='granted_by.username', read_only=True)

    class Meta:
        model = FilePermission
        fields = ('id', 'file_id', 'user_id', 'username', 'email', 'permission',
                  'granted_by', 'granted_by_username', 'created_at')
        read_only_fields = fields


class FilePermissionGrantSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
    permission = serializers.ChoiceField(choices=FilePermission.PERMISSION_CHOICES)

    def validate_user_id(self, value):
        if not User.objects.filter(pk=value).exists():
            raise serializers.ValidationError('User not found')
        return value


class RoleSerializer(serializers.Serializer):
    role = serializers.ChoiceField(
        choices=User.ROLE_CHOICES,
        error_messages={'invalid_choice': 'Valid role is required (admin, user, or guest)'},
    )


class PublicFileSerializer(serializers.ModelSerializer):
    """
    What an anonymous holder of a public link may learn about a file
    """
    class Meta:
        model = File
        fields = ('original_name', 'mime_type', 'size', 'created_at')
        read_only_fields = fields
