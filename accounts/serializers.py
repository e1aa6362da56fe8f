import re

from django.contrib.auth import get_user_model
from rest_framework import serializers

User = get_user_model()

PASSWORD_RE = re.compile(r"(?=.*\d)(?=.*[a-z])(?=.*[A-Z])(?=.*[^a-zA-Z0-9]).{8,}")
PASSWORD_HELP = (
    "Password must have at least 8 characters and contain at least one number, "
    "one lowercase, one uppercase letter and one special character."
)

ARTIST_INFO_FIELDS = ("companyName", "tagline", "description", "type", "taxId", "vatNumber", "siret")
ARTIST_INFO_NESTED = ("address", "socialMedia", "policies")


def is_strong_password(password):
    return bool(PASSWORD_RE.match(password or ""))


class UserSerializer(serializers.ModelSerializer):
    firstName = serializers.CharField(source="first_name", read_only=True)
    lastName = serializers.CharField(source="last_name", read_only=True)
    userName = serializers.CharField(source="username", read_only=True)
    artistStatus = serializers.CharField(source="artist_status", read_only=True)
    artistInfo = serializers.SerializerMethodField()
    profilePicture = serializers.CharField(source="profile_picture", read_only=True)
    isEmailVerified = serializers.BooleanField(source="is_email_verified", read_only=True)
    isActive = serializers.BooleanField(source="is_active", read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = User
        fields = (
            "id", "firstName", "lastName", "userName", "email", "role",
            "artistStatus", "artistInfo", "profilePicture", "isEmailVerified",
            "isActive", "createdAt", "updatedAt",
        )

    def get_artistInfo(self, obj):
        if obj.role == User.ROLE_USER and not obj.artist_info:
            return None
        return obj.artist_info


class PublicArtistSerializer(serializers.ModelSerializer):
    firstName = serializers.CharField(source="first_name")
    lastName = serializers.CharField(source="last_name")
    userName = serializers.CharField(source="username")
    profilePicture = serializers.CharField(source="profile_picture")
    artistInfo = serializers.JSONField(source="artist_info")

    class Meta:
        model = User
        fields = ("id", "firstName", "lastName", "userName", "profilePicture", "role", "artistInfo")


class UserSummarySerializer(serializers.ModelSerializer):
    """Nested representation used on artworks, events and orders."""

    firstName = serializers.CharField(source="first_name")
    lastName = serializers.CharField(source="last_name")
    userName = serializers.CharField(source="username")
    profilePicture = serializers.CharField(source="profile_picture")
    companyName = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ("id", "firstName", "lastName", "userName", "profilePicture", "companyName")

    def get_companyName(self, obj):
        return (obj.artist_info or {}).get("companyName")


class SignupSerializer(serializers.Serializer):
    firstName = serializers.CharField(max_length=150)
    lastName = serializers.CharField(max_length=150)
    userName = serializers.CharField(min_length=3, max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)
    intent = serializers.CharField(required=False, allow_blank=True)

    def validate_password(self, value):
        if not is_strong_password(value):
            raise serializers.ValidationError(PASSWORD_HELP)
        return value

    def validate(self, attrs):
        email = attrs["email"].strip().lower()
        username = attrs["userName"].strip().lower()
        if User.objects.filter(email=email).exists():
            raise serializers.ValidationError("Email already registered.")
        if User.objects.filter(username=username).exists():
            raise serializers.ValidationError("Username already taken.")
        attrs["email"] = email
        attrs["userName"] = username
        return attrs

    def create(self, validated_data):
        apply_artist = validated_data.get("intent") == "apply_artist"
        user = User(
            first_name=validated_data["firstName"],
            last_name=validated_data["lastName"],
            username=validated_data["userName"],
            email=validated_data["email"],
            role=User.ROLE_ARTIST if apply_artist else User.ROLE_USER,
            artist_status=User.ARTIST_INCOMPLETE if apply_artist else User.ARTIST_NONE,
        )
        user.set_password(validated_data["password"])
        user.issue_email_verification_token()
        user.save()
        return user


class LoginSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True)


class ProfileUpdateSerializer(serializers.ModelSerializer):
    firstName = serializers.CharField(source="first_name", required=False, max_length=150)
    lastName = serializers.CharField(source="last_name", required=False, max_length=150)
    userName = serializers.CharField(source="username", required=False, min_length=3, max_length=150)
    profilePicture = serializers.URLField(source="profile_picture", required=False, allow_blank=True)

    class Meta:
        model = User
        fields = ("firstName", "lastName", "userName", "profilePicture")

    def validate_userName(self, value):
        value = value.strip().lower()
        taken = User.objects.filter(username=value).exclude(pk=self.instance.pk).exists()
        if taken:
            raise serializers.ValidationError("Username already taken.")
        return value


class AdminUserUpdateSerializer(ProfileUpdateSerializer):
    email = serializers.EmailField(required=False)
    isEmailVerified = serializers.BooleanField(source="is_email_verified", required=False)
    artistInfo = serializers.JSONField(source="artist_info", required=False)

    class Meta(ProfileUpdateSerializer.Meta):
        fields = ProfileUpdateSerializer.Meta.fields + ("email", "isEmailVerified", "artistInfo")

    def validate_email(self, value):
        value = value.strip().lower()
        if User.objects.filter(email=value).exclude(pk=self.instance.pk).exists():
            raise serializers.ValidationError("Email already registered.")
        return value


def merge_artist_info(current, incoming):
    """Merge artist profile fields, updating nested objects key by key."""
    merged = dict(current or {})
    for key in ARTIST_INFO_FIELDS:
        if key in incoming:
            merged[key] = incoming[key]
    for key in ARTIST_INFO_NESTED:
        value = incoming.get(key)
        if isinstance(value, dict):
            merged[key] = {**(merged.get(key) or {}), **value}
    return merged
