from datetime import timedelta

from django.contrib.auth.models import AbstractUser, UserManager as DjangoUserManager
from django.db import models
from django.utils import timezone
from django.utils.crypto import get_random_string


class UserManager(DjangoUserManager):
    def create_superuser(self, username, email=None, password=None, **extra_fields):
        extra_fields.setdefault("role", User.ROLE_SUPER_ADMIN)
        extra_fields.setdefault("is_email_verified", True)
        return super().create_superuser(username, email, password, **extra_fields)


class User(AbstractUser):
    """Marketplace account. ``role`` drives API permissions, ``is_staff`` only the Django admin."""

    ROLE_USER = "user"
    ROLE_ARTIST = "artist"
    ROLE_GALLERIST = "gallerist"
    ROLE_ADMIN = "admin"
    ROLE_SUPER_ADMIN = "superAdmin"

    ROLE_CHOICES = [
        (ROLE_USER, "User"),
        (ROLE_ARTIST, "Artist"),
        (ROLE_GALLERIST, "Gallerist"),
        (ROLE_ADMIN, "Admin"),
        (ROLE_SUPER_ADMIN, "Super admin"),
    ]

    ARTIST_NONE = "none"
    ARTIST_PENDING = "pending"
    ARTIST_INCOMPLETE = "incomplete"
    ARTIST_VERIFIED = "verified"
    ARTIST_SUSPENDED = "suspended"

    ARTIST_STATUS_CHOICES = [
        (ARTIST_NONE, "None"),
        (ARTIST_PENDING, "Pending"),
        (ARTIST_INCOMPLETE, "Incomplete"),
        (ARTIST_VERIFIED, "Verified"),
        (ARTIST_SUSPENDED, "Suspended"),
    ]

    email = models.EmailField(unique=True)
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_USER, db_index=True)
    artist_status = models.CharField(
        max_length=16, choices=ARTIST_STATUS_CHOICES, default=ARTIST_NONE, db_index=True
    )
    artist_info = models.JSONField(default=dict, blank=True)
    profile_picture = models.URLField(max_length=500, blank=True)

    is_email_verified = models.BooleanField(default=False)
    email_verification_token = models.CharField(max_length=64, blank=True, null=True, db_index=True)
    email_verification_expires = models.DateTimeField(blank=True, null=True)
    reset_password_token = models.CharField(max_length=64, blank=True, null=True, db_index=True)
    reset_password_expires = models.DateTimeField(blank=True, null=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = UserManager()

    class Meta:
        ordering = ["-created_at"]

    def __str__(self):
        return f"{self.username} ({self.role})"

    def save(self, *args, **kwargs):
        self.username = (self.username or "").strip().lower()
        self.email = (self.email or "").strip().lower()
        super().save(*args, **kwargs)

    @property
    def is_admin(self):
        return self.role in (self.ROLE_ADMIN, self.ROLE_SUPER_ADMIN)

    @property
    def is_verified_artist(self):
        return self.role in (self.ROLE_ARTIST, self.ROLE_GALLERIST) and self.artist_status == self.ARTIST_VERIFIED

    def issue_email_verification_token(self, hours=24):
        self.email_verification_token = get_random_string(40)
        self.email_verification_expires = timezone.now() + timedelta(hours=hours)
        return self.email_verification_token

    def issue_password_reset_token(self, hours=1):
        self.reset_password_token = get_random_string(40)
        self.reset_password_expires = timezone.now() + timedelta(hours=hours)
        return self.reset_password_token
